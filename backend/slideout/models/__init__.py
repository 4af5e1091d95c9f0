"""Data models package.

This package contains board models, level curves and API schemas.
"""
from .level import (
    DifficultyGrade,
    Axis,
    Direction,
    GeneratorStrategy,
    Block,
    Board,
    DifficultyParams,
    BoardEvaluation,
    GenerationResult,
    ANIMAL_TYPES,
)
from .leveling_config import (
    get_level_params,
    get_reverse_fill_params,
    get_lane_params,
    get_seed,
)
from .schemas import (
    GenerateMessage,
    BlockPayload,
    AnalyzeRequest,
    AnalyzeResponse,
    HintRequest,
    HintResponse,
)

__all__ = [
    # Level models
    "DifficultyGrade",
    "Axis",
    "Direction",
    "GeneratorStrategy",
    "Block",
    "Board",
    "DifficultyParams",
    "BoardEvaluation",
    "GenerationResult",
    "ANIMAL_TYPES",
    # Level curves
    "get_level_params",
    "get_reverse_fill_params",
    "get_lane_params",
    "get_seed",
    # API schemas
    "GenerateMessage",
    "BlockPayload",
    "AnalyzeRequest",
    "AnalyzeResponse",
    "HintRequest",
    "HintResponse",
]
