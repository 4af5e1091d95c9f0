"""API dependencies."""
from ..core.difficulty_assessor import get_difficulty_assessor, DifficultyAssessor
from ..core.worker import get_worker, GenerationWorker


def get_generation_worker() -> GenerationWorker:
    """Dependency for the generation worker."""
    return get_worker()


def get_assessor() -> DifficultyAssessor:
    """Dependency for difficulty assessor."""
    return get_difficulty_assessor()
