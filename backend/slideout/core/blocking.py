"""Exit-path blocking checks.

Blocks with grid coordinates are checked along their lane: a block is blocked
when any other active block has a cell on the lane beyond its front cell.
Blocks without usable grid data fall back to a ray marched across the screen
in the block's diagonal travel direction.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from ..models.level import Axis, Block, BlockSizing, Direction, Rect, DEFAULT_SIZING

logger = logging.getLogger(__name__)

Bounds = Tuple[float, float]


@dataclass
class RaycastResult:
    """Blocks hit by a ray before it left the screen."""
    hits: List[Block] = field(default_factory=list)
    escaped: bool = True


class DirectionDetector:
    """Decides whether a block can currently slide off the board."""

    RAY_STEP = 8
    RAY_MAX_STEPS = 1000
    RAY_START_PAD = 2

    def __init__(self, sizing: BlockSizing = DEFAULT_SIZING):
        self.sizing = sizing

    def is_blocked(
        self,
        block: Block,
        all_blocks: Sequence[Block],
        bounds: Bounds,
    ) -> bool:
        """Check whether ``block`` is obstructed by any other active block.

        Args:
            block: Block to test.
            all_blocks: Full board, ``block`` included.
            bounds: Screen (width, height) used by the raycast fallback.

        Returns:
            True if the exit path is obstructed.
        """
        lane = self.lane_obstructors(block, all_blocks, first_only=True)
        if lane is not None:
            return bool(lane)
        return self._raycast(block, all_blocks, bounds, first_only=True).escaped is False

    def find_obstructors(
        self,
        block: Block,
        all_blocks: Sequence[Block],
        bounds: Bounds,
    ) -> Tuple[List[Block], bool]:
        """All active blocks standing on ``block``'s exit path.

        Returns:
            (obstructors, escapes). ``escapes`` is False only when the ray
            fallback never reached the screen edge, in which case the block is
            blocked no matter what gets removed.
        """
        lane = self.lane_obstructors(block, all_blocks)
        if lane is not None:
            return lane, True
        result = self._raycast(block, all_blocks, bounds)
        return result.hits, result.escaped

    def lane_obstructors(
        self,
        block: Block,
        all_blocks: Sequence[Block],
        first_only: bool = False,
    ) -> Optional[List[Block]]:
        """Lane fast path. None when the block has no usable grid data."""
        if not block.has_grid:
            return None
        axis = block.resolved_axis
        direction = block.direction
        if direction.axis is not axis:
            return None

        dr, dc = direction.grid_delta
        if axis is Axis.ROW:
            lane, front = block.grid_col, (block.grid_row if dr < 0 else block.grid_row + 1)
            sign = dr
        else:
            lane, front = block.grid_row, (block.grid_col if dc < 0 else block.grid_col + 1)
            sign = dc

        found: List[Block] = []
        for other in all_blocks:
            if other is block or not other.is_active:
                continue
            cells = other.cells
            if cells is None:
                continue
            for row, col in cells:
                if axis is Axis.ROW:
                    on_lane, pos = col == lane, row
                else:
                    on_lane, pos = row == lane, col
                if on_lane and (pos - front) * sign >= 0:
                    found.append(other)
                    if first_only:
                        return found
                    break
        return found

    def get_hit_rect(self, block: Block) -> Rect:
        """Block rectangle shrunk so barely-touching neighbours do not count."""
        rect = block.rect
        ratio_inset = min(rect.width, rect.height) * self.sizing.collision_shrink
        inset = max(self.sizing.hitbox_inset, ratio_inset)
        return rect.inset(inset)

    def _raycast(
        self,
        block: Block,
        all_blocks: Sequence[Block],
        bounds: Bounds,
        first_only: bool = False,
    ) -> RaycastResult:
        screen_w, screen_h = bounds
        vx, vy = block.direction.vector
        rect = block.rect
        offset = max(rect.width, rect.height) / 2 + self.RAY_START_PAD
        px = block.center_x + vx * offset
        py = block.center_y + vy * offset

        others = [(o, self.get_hit_rect(o)) for o in all_blocks if o is not block and o.is_active]
        result = RaycastResult()
        seen = set()

        for _ in range(self.RAY_MAX_STEPS):
            px += vx * self.RAY_STEP
            py += vy * self.RAY_STEP
            if px < 0 or px > screen_w or py < 0 or py > screen_h:
                return result
            for other, hit in others:
                if id(other) in seen or not hit.contains_point(px, py):
                    continue
                seen.add(id(other))
                result.hits.append(other)
                if first_only:
                    result.escaped = False
                    return result

        result.escaped = False
        return result


def group_lanes(blocks: Sequence[Block]) -> Dict[Tuple[Axis, int], List[Block]]:
    """Blocks keyed by lane, each lane ordered along its travel axis."""
    lanes: Dict[Tuple[Axis, int], List[Block]] = defaultdict(list)
    for block in blocks:
        key = block.lane_key
        if key is not None:
            lanes[key].append(block)
    for (axis, _), members in lanes.items():
        members.sort(key=lambda b: b.grid_row if axis is Axis.ROW else b.grid_col)
    return dict(lanes)


def find_mixed_lanes(blocks: Sequence[Block]) -> List[Dict]:
    """Lanes holding both opposing directions of their axis."""
    mixed = []
    for (axis, index), members in group_lanes(blocks).items():
        directions = {b.direction for b in members}
        if set(axis.directions) <= directions:
            mixed.append({
                "axis": axis.value,
                "lane": index,
                "blocks": [b.id for b in members],
            })
    return mixed


def detect_facing_deadlocks(blocks: Sequence[Block]) -> List[Dict]:
    """Pairs in one lane that slide into each other.

    A DOWN block above an UP block (or a RIGHT block before a LEFT block) can
    never leave: each waits for the other.
    """
    deadlocks = []
    for (axis, index), members in group_lanes(blocks).items():
        toward_high = Direction.DOWN if axis is Axis.ROW else Direction.RIGHT
        toward_low = toward_high.opposite
        pending = None
        for block in members:
            if block.direction is toward_high:
                pending = block
            elif block.direction is toward_low and pending is not None:
                deadlocks.append({
                    "axis": axis.value,
                    "lane": index,
                    "pair": [pending.id, block.id],
                })
    return deadlocks
