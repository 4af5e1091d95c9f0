"""
Difficulty scoring and the acceptance gate.

A candidate board is measured once (dependency depths, direction balance,
solvability, overlaps) and the measurements are then:
1. Folded into a 0-100 score
2. Checked against the level's acceptance criteria
3. Reported as a validation issue list for the analysis endpoints
"""
import math
import logging
from typing import Dict, List, Any, Optional, Sequence, Tuple

from .analyzer import DependencyGraph
from .assembler import find_overlaps
from .blocking import Bounds, DirectionDetector, detect_facing_deadlocks
from .simulator import BoardView, estimate_deadlock_probability, has_solvable_path
from ..models.level import (
    AcceptanceVerdict,
    Axis,
    Block,
    BoardEvaluation,
    DepthStats,
    DifficultyParams,
    Direction,
    DirectionStats,
    Rect,
    BlockSizing,
    DEFAULT_SIZING,
)

logger = logging.getLogger(__name__)

BALANCED_RATIO = 0.25


def _diversity(max_ratio: float) -> float:
    """1 for a perfect four-way split, 0 when one direction takes everything."""
    return max(0.0, min(1.0, 1 - (max_ratio - BALANCED_RATIO) / (1 - BALANCED_RATIO)))


def _max_share(counts: Dict[Direction, int]) -> float:
    total = sum(counts.values())
    return max(counts.values()) / total if total else 0.0


def compute_local_direction_ratio(blocks: Sequence[Block], rect: Optional[Rect], divisions: int = 3) -> float:
    """Largest single-direction share inside any sector of a ``divisions`` grid."""
    if rect is None or divisions <= 1:
        return BALANCED_RATIO
    sectors: Dict[Tuple[int, int], Dict[Direction, int]] = {}
    for block in blocks:
        if rect.width <= 0 or rect.height <= 0:
            key = (0, 0)
        else:
            col = min(divisions - 1, max(0, math.floor((block.center_x - rect.x) / rect.width * divisions)))
            row = min(divisions - 1, max(0, math.floor((block.center_y - rect.y) / rect.height * divisions)))
            key = (row, col)
        counts = sectors.setdefault(key, dict.fromkeys(Direction, 0))
        counts[block.direction] += 1
    return max((_max_share(c) for c in sectors.values()), default=0.0)


def compute_line_direction_ratio(blocks: Sequence[Block], min_count: int = 3) -> float:
    """Largest single-direction share along any lane holding ``min_count`` blocks."""
    lines: Dict[Tuple[str, Optional[int]], Dict[Direction, int]] = {}
    for block in blocks:
        if block.resolved_axis is Axis.ROW:
            key = ("col", block.grid_col)
        else:
            key = ("row", block.grid_row)
        counts = lines.setdefault(key, dict.fromkeys(Direction, 0))
        counts[block.direction] += 1
    ratio = max(
        (_max_share(c) for c in lines.values() if sum(c.values()) >= min_count),
        default=0.0,
    )
    return ratio or BALANCED_RATIO


def compute_direction_stats(
    blocks: Sequence[Block],
    params: Optional[DifficultyParams] = None,
    sector_rect: Optional[Rect] = None,
) -> DirectionStats:
    """Direction counts and shares, globally, per sector and per lane."""
    divisions = params.local_direction_grid if params else 3
    min_count = params.line_direction_min_count if params else 3
    counts = dict.fromkeys(Direction, 0)
    for block in blocks:
        counts[block.direction] += 1
    total = len(blocks) or 1
    ratios = {d: counts[d] / total for d in Direction}
    return DirectionStats(
        counts=counts,
        ratios=ratios,
        max_direction_ratio=max(ratios.values()),
        max_local_direction_ratio=compute_local_direction_ratio(blocks, sector_rect, divisions),
        max_line_direction_ratio=compute_line_direction_ratio(blocks, min_count),
    )


def compute_difficulty_score(depth: DepthStats, directions: DirectionStats) -> float:
    """Weighted 0-100 score, rounded to one decimal.

    Deep chains, long chains and few free blocks make a board harder; a
    balanced mix of directions makes it harder to read at a glance.
    """
    avg_depth_norm = min(1.0, depth.avg_depth / 8)
    max_depth_norm = min(1.0, depth.max_depth / 16)
    removable_penalty = min(1.0, max(0.0, 1 - depth.removable_ratio))
    score = 100 * (
        0.36 * avg_depth_norm
        + 0.27 * max_depth_norm
        + 0.2 * removable_penalty
        + 0.07 * _diversity(directions.max_direction_ratio)
        + 0.05 * _diversity(directions.max_local_direction_ratio)
        + 0.05 * _diversity(directions.max_line_direction_ratio)
    )
    return round(score * 10) / 10


def removable_floor(block_count: int, min_ratio: float) -> int:
    """Minimum number of blocks that must be free at the start."""
    if block_count <= 0:
        return 0
    if block_count < 12:
        return 1
    return min(block_count, max(6, math.floor(block_count * min_ratio)))


def _in_range(value: float, bounds: Optional[Tuple[float, float]]) -> bool:
    return bounds is None or bounds[0] <= value <= bounds[1]


def is_difficulty_acceptable(
    params: DifficultyParams,
    depth: DepthStats,
    directions: DirectionStats,
    score: float,
    deadlock_probability: Optional[float] = None,
) -> AcceptanceVerdict:
    """Check the level's acceptance criteria.

    ``distance`` is always ``|score - target|`` so rejected candidates can
    be ranked.
    """
    reasons: List[str] = []
    target = params.target_difficulty or 0
    tolerance = params.target_difficulty_tolerance

    if directions.max_direction_ratio > params.max_direction_ratio:
        reasons.append(
            f"direction share {directions.max_direction_ratio:.2f} > {params.max_direction_ratio}"
        )
    if params.max_local_direction_ratio and directions.max_local_direction_ratio > params.max_local_direction_ratio:
        reasons.append(
            f"local direction share {directions.max_local_direction_ratio:.2f} > {params.max_local_direction_ratio}"
        )
    if params.max_line_direction_ratio and directions.max_line_direction_ratio > params.max_line_direction_ratio:
        reasons.append(
            f"lane direction share {directions.max_line_direction_ratio:.2f} > {params.max_line_direction_ratio}"
        )
    if not _in_range(depth.avg_depth, params.depth_target_range):
        reasons.append(f"avg depth {depth.avg_depth:.2f} outside {params.depth_target_range}")
    if params.removable_ratio_target is not None:
        if not _in_range(depth.removable_ratio, params.removable_ratio_target):
            reasons.append(
                f"removable ratio {depth.removable_ratio:.2f} outside {params.removable_ratio_target}"
            )
    else:
        floor = removable_floor(len(depth.depths), params.min_removable_ratio)
        if depth.removable_count < floor:
            reasons.append(f"removable count {depth.removable_count} < {floor}")
    if target and not (max(0.0, target - tolerance) <= score <= target + tolerance):
        reasons.append(f"score {score} outside {target}±{tolerance}")
    if deadlock_probability is not None and not _in_range(deadlock_probability, params.deadlock_prob_range):
        reasons.append(f"deadlock probability {deadlock_probability:.2f} outside {params.deadlock_prob_range}")

    return AcceptanceVerdict(ok=not reasons, distance=abs(score - target), reasons=reasons)


class DifficultyAssessor:
    """Measures candidate boards and applies the acceptance gate."""

    OVERLAP_MARGIN = 1.0

    def __init__(
        self,
        sizing: BlockSizing = DEFAULT_SIZING,
        detector: Optional[DirectionDetector] = None,
    ):
        self.sizing = sizing
        self.detector = detector or DirectionDetector(sizing)

    def evaluate(
        self,
        blocks: Sequence[Block],
        bounds: Bounds,
        params: DifficultyParams,
        seed: int = 0,
        sector_rect: Optional[Rect] = None,
    ) -> BoardEvaluation:
        """
        Measure a board and run the acceptance gate.

        Args:
            blocks: Candidate board.
            bounds: Screen (width, height).
            params: Level parameters holding the acceptance criteria.
            seed: Base seed for the solvability trials.
            sector_rect: Area split into sectors for the local direction
                check, usually the grid's safe rectangle.

        Returns:
            BoardEvaluation with stats, score and verdict.
        """
        graph = DependencyGraph.build(blocks, bounds, self.detector)
        depth = graph.get_stats()
        directions = compute_direction_stats(blocks, params, sector_rect)
        score = compute_difficulty_score(depth, directions)

        view = BoardView(blocks, bounds, self.detector)
        solvable = has_solvable_path(blocks, bounds, seed, params.solvability_attempts, view=view)
        deadlock_probability = None
        if params.deadlock_prob_range is not None:
            deadlock_probability = estimate_deadlock_probability(
                blocks, bounds, seed + 991, params.deadlock_estimate_runs, view=view
            )

        overlap = bool(find_overlaps(blocks, self.OVERLAP_MARGIN))
        ratio = params.removable_ratio_target[0] if params.removable_ratio_target else params.min_removable_ratio
        verdict = is_difficulty_acceptable(params, depth, directions, score, deadlock_probability)
        if overlap:
            verdict.ok = False
            verdict.reasons.insert(0, "blocks overlap")
        if not solvable:
            verdict.ok = False
            verdict.reasons.insert(0, "no solvable removal order found")

        return BoardEvaluation(
            depth=depth,
            directions=directions,
            score=score,
            solvable=solvable,
            overlap=overlap,
            removable_floor=removable_floor(len(blocks), ratio),
            verdict=verdict,
            deadlock_probability=deadlock_probability,
        )

    def validate_board(
        self,
        blocks: Sequence[Block],
        bounds: Bounds,
        params: DifficultyParams,
        seed: int = 0,
        board_rect: Optional[Rect] = None,
    ) -> Dict[str, Any]:
        """
        Structural validation report.

        Returns:
            Dict with ``valid`` and a list of human-readable ``issues``.
        """
        issues: List[str] = []
        overlaps = find_overlaps(blocks, self.OVERLAP_MARGIN)
        for first, second in overlaps[:10]:
            issues.append(f"blocks {first} and {second} overlap")

        if board_rect is not None:
            inner = board_rect.inset(self.sizing.safety_margin)
            outside = [b.id for b in blocks if not inner.contains_rect(b.rect)]
            if outside:
                issues.append(f"{len(outside)} blocks outside the board: {outside[:10]}")

        for deadlock in detect_facing_deadlocks(blocks):
            issues.append(f"facing pair {deadlock['pair']} in {deadlock['axis']} lane {deadlock['lane']}")

        evaluation = self.evaluate(blocks, bounds, params, seed)
        if evaluation.depth.unresolved:
            issues.append(f"{len(evaluation.depth.unresolved)} blocks behind a blocking cycle")
        if evaluation.depth.removable_count < evaluation.removable_floor:
            issues.append(
                f"only {evaluation.depth.removable_count} removable blocks, need {evaluation.removable_floor}"
            )
        if not evaluation.solvable:
            issues.append("no solvable removal order found")
        if evaluation.deadlock_probability is not None and not _in_range(
            evaluation.deadlock_probability, params.deadlock_prob_range
        ):
            issues.append(
                f"deadlock probability {evaluation.deadlock_probability:.2f} outside {params.deadlock_prob_range}"
            )

        return {
            "valid": not issues,
            "issues": issues,
            "evaluation": evaluation.to_dict(),
        }


# Singleton instance
_assessor: Optional[DifficultyAssessor] = None


def get_difficulty_assessor() -> DifficultyAssessor:
    """Get or create difficulty assessor singleton instance."""
    global _assessor
    if _assessor is None:
        _assessor = DifficultyAssessor()
    return _assessor
