"""
Level parameter curves.

Two pure ``level -> DifficultyParams`` curves:

1. Reverse-fill curve: a hand-tuned tutorial level, a deliberate spike at
   level 2, then a linear ramp that saturates at level 53.
2. Lane curve: six named phases interpolated linearly, used by the
   lane-uniform and depth-layered strategies.

Both apply a five-level sawtooth where the fifth level of every cycle is a
relief level. Nothing here holds state; only ``get_seed`` may read the clock.
"""
import math
import time
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Any, Tuple

from .level import (
    ALL_LAYOUT_PROFILES,
    DifficultyParams,
    DirectionMix,
    DirectionMode,
    GeneratorStrategy,
    HoleTemplate,
    LayoutProfileName,
)

CYCLE_LENGTH = 5
BLOCK_SIZE = 16


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def cycle_position(level_number: int) -> int:
    """Position inside the five-level sawtooth (0-4)."""
    return (level_number - 1) % CYCLE_LENGTH


def is_relief_level(level_number: int) -> bool:
    return cycle_position(level_number) == CYCLE_LENGTH - 1


def _check_level(level_number: int) -> None:
    if isinstance(level_number, bool) or not isinstance(level_number, int) or level_number < 1:
        raise ValueError(f"level_number must be an integer >= 1, got {level_number!r}")


# =========================================================
# Reverse-fill curve
# =========================================================

REVERSE_FILL_RAMP_LEVELS = 50
MAX_TARGET_DIFFICULTY = 100


def get_phase_name(level_number: int) -> str:
    if level_number == 1:
        return "tutorial"
    if level_number == 2:
        return "spike"
    if level_number <= 10:
        return "growth"
    if level_number <= 30:
        return "challenge"
    if level_number <= 60:
        return "master"
    return "legend"


def get_reverse_fill_params(level_number: int) -> DifficultyParams:
    """Parameters for the reverse-fill (peel) strategy."""
    _check_level(level_number)

    if level_number == 1:
        return DifficultyParams(
            phase_name=get_phase_name(1),
            block_count=6,
            block_size=28,
            depth_factor=0.05,
            animal_types=3,
            strategy=GeneratorStrategy.REVERSE_FILL,
            target_difficulty=10,
            target_difficulty_tolerance=4,
            depth_target_range=(0.0, 1.8),
            removable_ratio_target=(0.6, 1.0),
            max_direction_ratio=0.9,
            max_local_direction_ratio=0.9,
            max_line_direction_ratio=0.9,
            local_direction_grid=2,
            local_direction_weight=0.1,
            axis_balance_weight=0.2,
            line_direction_weight=0.15,
            line_direction_min_count=2,
            direction_mix_target=DirectionMix(up=0.3, right=0.25, down=0.25, left=0.2),
            layout_profiles=(LayoutProfileName.UNIFORM.value, LayoutProfileName.CENTER_HOLLOW.value),
            max_generate_attempts=3,
        )

    if level_number == 2:
        return DifficultyParams(
            phase_name=get_phase_name(2),
            block_count=120,
            block_size=BLOCK_SIZE,
            depth_factor=0.9,
            animal_types=4,
            strategy=GeneratorStrategy.REVERSE_FILL,
            target_difficulty=80,
            target_difficulty_tolerance=8,
            depth_target_range=(4.5, 7.5),
            removable_ratio_target=(0.08, 0.22),
            max_direction_ratio=0.7,
            max_local_direction_ratio=0.65,
            max_line_direction_ratio=0.7,
            local_direction_grid=3,
            local_direction_weight=0.35,
            axis_balance_weight=0.35,
            line_direction_weight=0.45,
            line_direction_min_count=3,
            direction_mix_target=DirectionMix(),
            layout_profiles=(
                LayoutProfileName.RING.value,
                LayoutProfileName.DIAGONAL_BAND.value,
                LayoutProfileName.TWO_LUMPS.value,
                LayoutProfileName.CENTER_HOLLOW.value,
            ),
            max_generate_attempts=3,
            max_generate_time_ms=2000,
            use_edge_entries=True,
            target_fill_rate=0.85,
            force_fill_rate=True,
        )

    progress = min(1.0, (level_number - 3) / REVERSE_FILL_RAMP_LEVELS)
    position = cycle_position(level_number)
    relief = is_relief_level(level_number)
    block_adjust = -10 if relief else position * 3
    depth_adjust = -0.05 if relief else position * 0.01

    block_count = round(120 + progress * 70)
    depth_factor = 0.9 + progress * 0.05
    avg_depth_target = 5.0 + progress * 2.6
    removable_base = max(0.1, 0.2 - progress * 0.08)

    return DifficultyParams(
        phase_name=get_phase_name(level_number),
        block_count=int(_clamp(block_count + block_adjust, 120, 200)),
        block_size=BLOCK_SIZE,
        depth_factor=_clamp(depth_factor + depth_adjust, 0.85, 0.95),
        animal_types=4 if level_number < 10 else 5,
        is_relief_level=relief,
        strategy=GeneratorStrategy.REVERSE_FILL,
        target_difficulty=min(MAX_TARGET_DIFFICULTY, 80 + (level_number - 2) * 2),
        target_difficulty_tolerance=6,
        depth_target_range=(avg_depth_target - 1.2, avg_depth_target + 1.2),
        removable_ratio_target=(max(0.06, removable_base - 0.05), min(0.28, removable_base + 0.05)),
        max_direction_ratio=0.7,
        max_local_direction_ratio=0.6,
        max_line_direction_ratio=0.65,
        local_direction_grid=4,
        local_direction_weight=0.5,
        axis_balance_weight=0.35,
        line_direction_weight=0.5,
        line_direction_min_count=3,
        direction_mix_target=DirectionMix(),
        layout_profiles=ALL_LAYOUT_PROFILES,
        max_generate_attempts=6,
        max_generate_time_ms=2500,
        use_edge_entries=True,
        target_fill_rate=min(0.9, 0.83 + progress * 0.05),
    )


# =========================================================
# Lane curve (lane-uniform and depth-layered strategies)
# =========================================================

@dataclass(frozen=True)
class LanePhase:
    """One ramp of the lane curve; pairs are (start, end) of the phase."""
    name: str
    max_level: Optional[int]  # None: open-ended
    block_count: Tuple[int, int]
    removable_ratio: Tuple[float, float]
    lane_exit_bias: Tuple[float, float]
    animal_types: int
    hole_templates: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "max_level": self.max_level,
            "block_count": list(self.block_count),
            "removable_ratio": list(self.removable_ratio),
            "lane_exit_bias": list(self.lane_exit_bias),
            "animal_types": self.animal_types,
            "hole_templates": list(self.hole_templates),
        }


_SPARSE = HoleTemplate.SPARSE.value
_RING = HoleTemplate.RING.value
_BAND = HoleTemplate.DIAGONAL_BAND.value
_HOLLOW = HoleTemplate.CENTER_HOLLOW.value
_LUMPS = HoleTemplate.TWO_LUMPS.value

LANE_PHASES: Tuple[LanePhase, ...] = (
    LanePhase("tutorial", 2, (92, 120), (0.36, 0.44), (0.90, 0.85), 3, (_HOLLOW, _SPARSE)),
    LanePhase("warmup", 8, (125, 155), (0.28, 0.24), (0.80, 0.65), 4, (_LUMPS, _RING, _BAND)),
    LanePhase("growth", 18, (155, 185), (0.22, 0.18), (0.62, 0.52), 5, (_LUMPS, _BAND, _SPARSE)),
    LanePhase("challenge", 35, (175, 200), (0.18, 0.15), (0.50, 0.42), 5, (_BAND, _RING, _SPARSE)),
    LanePhase("master", 60, (190, 210), (0.15, 0.12), (0.40, 0.32), 5, (_RING, _BAND, _SPARSE)),
    LanePhase("legend", None, (205, 220), (0.12, 0.10), (0.30, 0.22), 5, (_BAND, _LUMPS, _RING)),
)

OPEN_PHASE_LENGTH = 40
LANE_MIN_REMOVABLE_RATIO = 0.10
DEPTH_RAMP_LEVELS = 60


def get_lane_phase(level_number: int) -> Tuple[LanePhase, int]:
    """Phase containing the level and the phase's first level."""
    start = 1
    for phase in LANE_PHASES:
        if phase.max_level is None or level_number <= phase.max_level:
            return phase, start
        start = phase.max_level + 1
    return LANE_PHASES[-1], start


def _depth_mode(level_number: int) -> DirectionMode:
    if is_relief_level(level_number):
        return DirectionMode.PEEL
    return (DirectionMode.PEEL, DirectionMode.SPLIT, DirectionMode.PINCH)[level_number % 3]


def get_lane_params(level_number: int, strategy: GeneratorStrategy = GeneratorStrategy.LANE_UNIFORM) -> DifficultyParams:
    """Parameters for the lane-uniform and depth-layered strategies."""
    _check_level(level_number)
    phase, start = get_lane_phase(level_number)
    length = OPEN_PHASE_LENGTH if phase.max_level is None else phase.max_level - start + 1
    progress = min(1.0, (level_number - start) / length)

    position = cycle_position(level_number)
    relief = is_relief_level(level_number)
    sawtooth = -0.15 if relief else position * 0.04

    base_count = lerp(phase.block_count[0], phase.block_count[1], progress)
    block_count = round(_clamp(base_count + base_count * sawtooth, 80, 220))

    base_ratio = lerp(phase.removable_ratio[0], phase.removable_ratio[1], progress)
    ratio_adjust = 0.06 if relief else -position * 0.01
    removable_ratio = _clamp(base_ratio + ratio_adjust, 0.10, 0.45)

    base_bias = lerp(phase.lane_exit_bias[0], phase.lane_exit_bias[1], progress)
    bias_adjust = 0.10 if relief else -position * 0.02
    lane_exit_bias = _clamp(base_bias + bias_adjust, 0.15, 0.95)

    hole_base = 0.05 if block_count > 170 else 0.07 if block_count > 140 else 0.09
    templates = phase.hole_templates or (_SPARSE,)

    # Depth targets for the depth-layered strategy grow over the first 60 levels.
    depth_progress = min(1.0, (level_number - 1) / DEPTH_RAMP_LEVELS)
    target_avg_depth = 1.5 + 3.5 * depth_progress - (0.5 if relief else 0.0)

    return DifficultyParams(
        phase_name=phase.name,
        block_count=block_count,
        block_size=BLOCK_SIZE,
        animal_types=phase.animal_types,
        is_relief_level=relief,
        strategy=strategy,
        min_removable_ratio=LANE_MIN_REMOVABLE_RATIO,
        hole_rate_range=(hole_base, hole_base + 0.03),
        hole_template=templates[level_number % len(templates)],
        hole_templates=templates,
        initial_removable_ratio=removable_ratio,
        lane_exit_bias=lane_exit_bias,
        target_avg_depth=max(1.0, target_avg_depth),
        target_max_depth=4 + round(8 * depth_progress),
        direction_mode=_depth_mode(level_number),
        core_count=1 if level_number < 10 else 2 if level_number < 30 else 3,
        cross_core_block_ratio=0.0 if level_number < 30 else 0.1,
    )


def get_level_params(
    level_number: int,
    strategy: GeneratorStrategy = GeneratorStrategy.REVERSE_FILL,
) -> DifficultyParams:
    """Resolve the curve for a strategy."""
    strategy = GeneratorStrategy(strategy)
    if strategy is GeneratorStrategy.REVERSE_FILL:
        return get_reverse_fill_params(level_number)
    return get_lane_params(level_number, strategy)


def with_overrides(params: DifficultyParams, **overrides: Any) -> DifficultyParams:
    """Copy of ``params`` with some fields replaced."""
    return replace(params, **overrides)


# =========================================================
# Seeds
# =========================================================

def get_seed(level_number: int, attempt: int = 0, use_time_seed: bool = False) -> int:
    """Base seed for a level.

    With ``use_time_seed`` the low digits of the wall clock are mixed in so
    replays of a level differ; the parameter curve is unaffected.
    """
    seed = (level_number + 1) * 10007 + attempt * 97
    if use_time_seed:
        seed += int(time.time() * 1000) % 100000
    return seed


# =========================================================
# Introspection
# =========================================================

def get_leveling_config() -> Dict[str, Any]:
    """Static description of both curves."""
    return {
        "cycle_length": CYCLE_LENGTH,
        "reverse_fill": {
            "ramp_levels": REVERSE_FILL_RAMP_LEVELS,
            "level_1": get_reverse_fill_params(1).to_dict(),
            "level_2": get_reverse_fill_params(2).to_dict(),
        },
        "lane": {
            "open_phase_length": OPEN_PHASE_LENGTH,
            "phases": [p.to_dict() for p in LANE_PHASES],
        },
    }


def get_complete_level_config(level_number: int) -> Dict[str, Any]:
    """Both curves resolved for one level."""
    reverse = get_reverse_fill_params(level_number)
    lane = get_lane_params(level_number)
    return {
        "level_number": level_number,
        "phase": reverse.phase_name,
        "lane_phase": lane.phase_name,
        "is_relief_level": reverse.is_relief_level,
        "reverse_fill": reverse.to_dict(),
        "lane": lane.to_dict(),
    }


def generate_level_progression(start_level: int, count: int) -> List[Dict[str, Any]]:
    """
    Parameter plan for consecutive levels.

    Args:
        start_level: First level number
        count: Number of levels

    Returns:
        One summary dict per level
    """
    progression = []
    for level_number in range(start_level, start_level + count):
        reverse = get_reverse_fill_params(level_number)
        lane = get_lane_params(level_number)
        progression.append({
            "level_number": level_number,
            "phase": reverse.phase_name,
            "is_relief_level": reverse.is_relief_level,
            "block_count": reverse.block_count,
            "target_difficulty": reverse.target_difficulty,
            "lane_block_count": lane.block_count,
            "lane_removable_ratio": round(lane.initial_removable_ratio, 3),
            "lane_exit_bias": round(lane.lane_exit_bias, 3),
        })
    return progression
