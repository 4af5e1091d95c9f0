"""Core business logic package.

This package contains the engines for board assembly, direction
assignment, blocking analysis, difficulty assessment and level generation.
"""
from .analyzer import DependencyGraph, calculate_block_depths
from .blocking import DirectionDetector, detect_facing_deadlocks
from .difficulty_assessor import DifficultyAssessor, get_difficulty_assessor
from .generator import LevelGenerator, get_generator
from .rng import SeededRandom, create_seeded_random
from .worker import GenerationWorker, get_worker

__all__ = [
    "DependencyGraph",
    "calculate_block_depths",
    "DirectionDetector",
    "detect_facing_deadlocks",
    "DifficultyAssessor",
    "get_difficulty_assessor",
    "LevelGenerator",
    "get_generator",
    "SeededRandom",
    "create_seeded_random",
    "GenerationWorker",
    "get_worker",
]
