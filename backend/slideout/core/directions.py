"""Direction assignment strategies.

All strategies only ever pick one of a block's two axis directions, so the
lane fast path applies to every generated block.

* Lane-uniform: one shared direction per lane, biased outward.
* Depth-layered: core blocks point inward, edge blocks outward, the middle
  mixes by a difficulty-scaled probability.
* Peel: directions are chosen while freeing the grid one block at a time,
  which yields a removal order as a proof of solvability.
"""
import math
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

from ..models.level import (
    ANIMAL_TYPES,
    Axis,
    Block,
    DifficultyParams,
    Direction,
    DirectionMode,
)
from .analyzer import calculate_block_depths
from .blocking import Bounds, group_lanes
from .deadline import Deadline
from .grid import Grid
from .rng import SeededRandom
from .simulator import BoardView, greedy_peel, has_solvable_path

logger = logging.getLogger(__name__)

Point = Tuple[float, float]

REPAIR_ROUNDS = 4
DEPTH_ADJUST_ROUNDS = 5
DEPTH_PULL = 1.0  # score per unit between a candidate's depth and the wanted depth


# =========================================================
# Shared helpers
# =========================================================

def pick_outward_direction(block: Block, center: Point) -> Direction:
    """Axis direction whose travel vector points away from ``center``."""
    return outward_for_axis(block.resolved_axis, block.center_x - center[0], block.center_y - center[1])


def outward_for_axis(axis: Axis, dx: float, dy: float) -> Direction:
    if axis is Axis.ROW:
        # UP travels (+x, -y)
        return Direction.UP if dx - dy >= 0 else Direction.DOWN
    # RIGHT travels (+x, +y)
    return Direction.RIGHT if dx + dy >= 0 else Direction.LEFT


def pick_inward_direction(block: Block, center: Point) -> Direction:
    return pick_outward_direction(block, center).opposite


def _distance(block: Block, center: Point) -> float:
    return math.hypot(block.center_x - center[0], block.center_y - center[1])


def count_removable(grid: Grid, blocks: Sequence[Block]) -> int:
    """Blocks whose lane is clear right now. Every block must occupy ``grid``."""
    return sum(1 for b in blocks if grid.is_path_clear_to_edge(b, b.direction))


def assign_animal_types(
    blocks: Sequence[Block],
    type_count: int,
    rand: SeededRandom,
    group_by_depth: bool = False,
) -> None:
    """Round-robin animal types over a shuffled order.

    With ``group_by_depth`` each depth group is shuffled on its own and the
    type index carries over between groups, so every layer mixes types.
    """
    types = ANIMAL_TYPES[:max(1, min(type_count, len(ANIMAL_TYPES)))]
    if group_by_depth:
        groups: Dict[int, List[Block]] = defaultdict(list)
        for block in blocks:
            groups[block.depth].append(block)
        ordered = []
        for depth in sorted(groups):
            ordered.extend(rand.shuffle(groups[depth]))
    else:
        ordered = rand.shuffle(list(blocks))
    for i, block in enumerate(ordered):
        block.type = types[i % len(types)]


# =========================================================
# Strategy A: lane-uniform
# =========================================================

def _lane_centroid(members: Sequence[Block]) -> Point:
    return (
        sum(b.center_x for b in members) / len(members),
        sum(b.center_y for b in members) / len(members),
    )


def _lane_outward(axis: Axis, members: Sequence[Block], center: Point) -> Direction:
    cx, cy = _lane_centroid(members)
    return outward_for_axis(axis, cx - center[0], cy - center[1])


def _set_lane(members: Sequence[Block], direction: Direction) -> None:
    for block in members:
        block.set_direction(direction)


def assign_directions_by_lane(
    blocks: Sequence[Block],
    center: Point,
    params: DifficultyParams,
    rand: SeededRandom,
) -> None:
    """Give every lane one direction; outward with probability ``lane_exit_bias``."""
    for (axis, _), members in group_lanes(blocks).items():
        outward = _lane_outward(axis, members, center)
        direction = outward if rand() < params.lane_exit_bias else outward.opposite
        _set_lane(members, direction)


def adjust_for_removable_ratio(
    grid: Grid,
    blocks: Sequence[Block],
    center: Point,
    ratio: float,
) -> int:
    """Flip the most central inward lanes outward until enough blocks are free.

    Returns the number of lanes flipped.
    """
    n = len(blocks)
    if n == 0:
        return 0
    target = min(n, max(6, math.floor(n * ratio)))
    removable = count_removable(grid, blocks)
    if removable >= target:
        return 0

    inward = []
    for (axis, _), members in group_lanes(blocks).items():
        outward = _lane_outward(axis, members, center)
        if members[0].direction is not outward:
            cx, cy = _lane_centroid(members)
            inward.append((math.hypot(cx - center[0], cy - center[1]), members, outward))
    inward.sort(key=lambda item: item[0])

    flipped = 0
    for _, members, outward in inward:
        if removable >= target:
            break
        _set_lane(members, outward)
        flipped += 1
        removable = count_removable(grid, blocks)
    return flipped


# =========================================================
# Strategy B: depth-layered
# =========================================================

def pick_core_centers(
    count: int,
    center: Point,
    width: float,
    height: float,
    rand: SeededRandom,
) -> List[Point]:
    """One to three core centers spread around ``center``."""
    count = max(1, min(3, int(count or 1)))
    if count == 1:
        return [center]
    spread = max(30.0, min(width, height) * 0.22)
    jitter = spread * 0.12
    diagonal = rand() < 0.5
    dx = spread
    dy = spread if diagonal else -spread
    cx, cy = center
    centers = [
        (cx - dx + (rand() - 0.5) * jitter, cy - dy + (rand() - 0.5) * jitter),
        (cx + dx + (rand() - 0.5) * jitter, cy + dy + (rand() - 0.5) * jitter),
    ]
    if count >= 3:
        centers.append((cx + (rand() - 0.5) * spread * 0.7, cy + (rand() - 0.5) * spread * 0.7))
    return centers


def _edge_ratio(params: DifficultyParams, base: float, floor: float, pinch: Tuple[float, float]) -> float:
    ratio = max(floor, params.initial_removable_ratio + base)
    if params.direction_mode is DirectionMode.PINCH:
        ratio = max(pinch[0], ratio - pinch[1])
    elif params.direction_mode is DirectionMode.SPLIT:
        ratio = min(0.42, ratio + 0.03)
    return ratio


def build_blocking_layers(
    core: Sequence[Block],
    max_depth: int,
    center: Point,
    rand: SeededRandom,
    mode: DirectionMode = DirectionMode.PEEL,
) -> None:
    """Point core blocks mostly inward, layer by layer from ``center``.

    ``core`` must be sorted by distance to ``center``. The outermost layer
    is split between inward and outward.
    """
    n = len(core)
    if n == 0:
        return
    layer_count = max(1, min(max_depth, math.ceil(n / 3)))
    per_layer = math.ceil(n / layer_count)
    outward_chance = {DirectionMode.PINCH: 0.35, DirectionMode.SPLIT: 0.60}.get(mode, 0.50)
    inward_chance = {DirectionMode.PINCH: 0.88, DirectionMode.SPLIT: 0.68}.get(mode, 0.75)

    for layer in range(layer_count):
        for block in core[layer * per_layer:(layer + 1) * per_layer]:
            if layer == layer_count - 1:
                if rand() < outward_chance:
                    block.set_direction(pick_outward_direction(block, center))
                else:
                    block.set_direction(pick_inward_direction(block, center))
            elif rand() < inward_chance:
                block.set_direction(pick_inward_direction(block, center))
            else:
                block.set_direction(rand.choice(block.resolved_axis.directions))


def assign_directions_by_depth(
    blocks: Sequence[Block],
    center: Point,
    params: DifficultyParams,
    rand: SeededRandom,
    core_centers: Optional[Sequence[Point]] = None,
) -> None:
    """Core layers inward, edge ring outward, middle mixed."""
    if core_centers and len(core_centers) > 1:
        _assign_directions_multi_core(blocks, center, params, rand, core_centers)
        return

    n = len(blocks)
    avg = params.target_avg_depth
    ordered = sorted(blocks, key=lambda b: _distance(b, center))
    core_count = math.floor(n * min(0.5, 0.25 + avg * 0.12))
    edge_count = math.floor(n * _edge_ratio(params, 0.05, 0.3, (0.26, 0.04)))
    mid_count = max(0, n - core_count - edge_count)

    for block in ordered[n - edge_count:]:
        block.set_direction(pick_outward_direction(block, center))

    build_blocking_layers(ordered[:core_count], params.target_max_depth, center, rand, params.direction_mode)

    inward_ratio = 0.3 + avg * 0.15
    if params.direction_mode is DirectionMode.PINCH:
        inward_ratio = min(0.90, inward_ratio + 0.18)
    elif params.direction_mode is DirectionMode.SPLIT:
        inward_ratio = max(0.18, inward_ratio - 0.10)

    for block in ordered[core_count:core_count + mid_count]:
        if rand() < inward_ratio:
            block.set_direction(pick_inward_direction(block, center))
        else:
            block.set_direction(pick_outward_direction(block, center))


def _assign_directions_multi_core(
    blocks: Sequence[Block],
    center: Point,
    params: DifficultyParams,
    rand: SeededRandom,
    core_centers: Sequence[Point],
) -> None:
    n = len(blocks)
    avg = params.target_avg_depth

    nearest = []
    for block in blocks:
        core = min(core_centers, key=lambda c: _distance(block, c))
        nearest.append((_distance(block, core), block, core))
    nearest.sort(key=lambda item: item[0])

    core_count = math.floor(n * min(0.52, 0.22 + avg * 0.14))
    edge_count = math.floor(n * _edge_ratio(params, 0.04, 0.28, (0.24, 0.05)))
    mid_count = max(0, n - core_count - edge_count)

    for _, block, _ in nearest[n - edge_count:]:
        block.set_direction(pick_outward_direction(block, center))

    by_core: Dict[Point, List[Block]] = defaultdict(list)
    for _, block, core in nearest[:core_count]:
        by_core[core].append(block)
    for core, members in by_core.items():
        build_blocking_layers(members, params.target_max_depth, core, rand, params.direction_mode)

    inward_ratio = 0.32 + avg * 0.16
    if params.direction_mode is DirectionMode.PINCH:
        inward_ratio = min(0.92, inward_ratio + 0.20)
    elif params.direction_mode is DirectionMode.SPLIT:
        inward_ratio = max(0.16, inward_ratio - 0.10)

    for _, block, core in nearest[core_count:core_count + mid_count]:
        if rand() < inward_ratio:
            block.set_direction(pick_inward_direction(block, core))
        else:
            block.set_direction(pick_outward_direction(block, center))

    cross_ratio = max(0.0, min(0.5, params.cross_core_block_ratio))
    candidates = nearest[core_count:n - edge_count]
    if cross_ratio > 0 and candidates:
        for _ in range(min(len(candidates), math.floor(n * cross_ratio))):
            _, block, own = rand.choice(candidates)
            other = rand.choice(core_centers)
            if other != own:
                block.set_direction(pick_inward_direction(block, other))


def split_lane_directions(blocks: Sequence[Block]) -> int:
    """Rewrite each lane into the form UP..UP DOWN..DOWN (LEFT..RIGHT).

    A lane in that form cannot hold a facing pair. The split point is the
    one needing the fewest flips. Returns the number of blocks changed.
    """
    changed = 0
    for (axis, _), members in group_lanes(blocks).items():
        low, high = (Direction.UP, Direction.DOWN) if axis is Axis.ROW else (Direction.LEFT, Direction.RIGHT)
        # cost[k]: HIGH blocks before k plus LOW blocks from k on
        cost = sum(1 for b in members if b.direction is low)
        best_k, best_cost = 0, cost
        for k, block in enumerate(members, start=1):
            cost += 1 if block.direction is high else -1
            if cost < best_cost:
                best_k, best_cost = k, cost
        for i, block in enumerate(members):
            wanted = low if i < best_k else high
            if block.direction is not wanted:
                block.set_direction(wanted)
                changed += 1
    return changed


def adjust_for_target_depth(
    blocks: Sequence[Block],
    center: Point,
    params: DifficultyParams,
    bounds: Bounds,
) -> None:
    """Nudge outliers until the removable count and average depth are near target."""
    n = len(blocks)
    if n == 0:
        return
    target_removable = math.floor(n * params.initial_removable_ratio)
    target_avg = params.target_avg_depth

    for _ in range(DEPTH_ADJUST_ROUNDS):
        stats = calculate_block_depths(blocks, bounds)
        removable = [b for b, d in zip(blocks, stats.depths) if d == 0]
        if len(removable) >= target_removable and stats.avg_depth >= target_avg * 0.7:
            break

        if len(removable) < target_removable:
            blocked = [b for b, d in zip(blocks, stats.depths) if d > 0]
            blocked.sort(key=lambda b: _distance(b, center), reverse=True)
            for block in blocked[:target_removable - len(removable)]:
                block.set_direction(pick_outward_direction(block, center))
        elif stats.avg_depth < target_avg * 0.8:
            excess = len(removable) - target_removable
            removable.sort(key=lambda b: _distance(b, center))
            for block in removable[:max(1, math.floor(excess * 0.3))]:
                block.set_direction(pick_inward_direction(block, center))
        else:
            break


# =========================================================
# Solvability repair (strategies A and B)
# =========================================================

def relax_blocked_directions(
    grid: Grid,
    blocks: Sequence[Block],
    stuck: Sequence[Block],
    center: Point,
    lane_uniform: bool = False,
) -> int:
    """Untangle blocks left behind a blocking cycle.

    Peels the stuck set on its own: blocks clear against the rest of the
    stuck set leave first, and when none is clear the outermost block with
    a clear alternative is turned (its whole lane when ``lane_uniform``).
    Returns the number of turns made.
    """
    stuck_ids = {b.id for b in stuck}
    freed = [b for b in blocks if b.id not in stuck_ids]
    for block in freed:
        grid.release(block)

    lanes = group_lanes(blocks) if lane_uniform else {}
    remaining = sorted(stuck, key=lambda b: _distance(b, center), reverse=True)
    released = []
    turns = 0
    try:
        while remaining:
            clear = [b for b in remaining if grid.is_path_clear_to_edge(b, b.direction)]
            if not clear:
                turned = None
                for block in remaining:
                    outward = pick_outward_direction(block, center)
                    for direction in (outward, outward.opposite):
                        if direction is not block.direction and grid.is_path_clear_to_edge(block, direction):
                            turned = (block, direction)
                            break
                    if turned:
                        break
                if turned is None:
                    return turns
                block, direction = turned
                if lane_uniform:
                    _set_lane(lanes[block.lane_key], direction)
                else:
                    block.set_direction(direction)
                turns += 1
                clear = [block]
            for block in clear:
                grid.release(block)
                released.append(block)
                remaining.remove(block)
    finally:
        for block in freed + released:
            grid.occupy(block)
    return turns


def ensure_solvable_path(
    grid: Grid,
    blocks: Sequence[Block],
    center: Point,
    bounds: Bounds,
    seed: int,
    attempts: int = 6,
    lane_uniform: bool = False,
) -> bool:
    """Repair blocking cycles for a few rounds, then confirm solvability."""
    if not blocks:
        return True
    for round_index in range(REPAIR_ROUNDS):
        view = BoardView(blocks, bounds)
        if has_solvable_path(blocks, bounds, seed + round_index * 131, attempts, view=view):
            return True
        peeled = {i for layer in greedy_peel(view) for i in layer}
        stuck = [b for i, b in enumerate(blocks) if i not in peeled]
        turns = relax_blocked_directions(grid, blocks, stuck, center, lane_uniform)
        logger.debug("Repair round %d: %d stuck, %d turned", round_index, len(stuck), turns)
        if turns == 0:
            break
    return has_solvable_path(blocks, bounds, seed + 777, attempts + 2)


# =========================================================
# Strategy C: peel
# =========================================================

def _sector_key(block: Block, grid: Grid, divisions: int) -> Tuple[int, int]:
    if divisions <= 1:
        return (0, 0)
    rect = grid.safe_rect
    fx = (block.center_x - rect.x) / rect.width if rect.width > 0 else 0.0
    fy = (block.center_y - rect.y) / rect.height if rect.height > 0 else 0.0
    sx = min(divisions - 1, max(0, math.floor(fx * divisions)))
    sy = min(divisions - 1, max(0, math.floor(fy * divisions)))
    return (sx, sy)


def _line_key(block: Block) -> Tuple[str, int]:
    if block.resolved_axis is Axis.ROW:
        return ("col", block.grid_col)
    return ("row", block.grid_row)


class _MixTracker:
    """Running direction counts for one grouping (sector or line)."""

    def __init__(self):
        self.counts: Dict[object, Dict[Direction, int]] = defaultdict(lambda: dict.fromkeys(Direction, 0))
        self.totals: Dict[object, int] = defaultdict(int)

    def ratio(self, key, direction: Direction) -> float:
        total = self.totals.get(key, 0)
        return self.counts[key][direction] / total if total else 0.0

    def add(self, key, direction: Direction) -> None:
        self.counts[key][direction] += 1
        self.totals[key] += 1


def _midpoint(bounds: Optional[Tuple[float, float]], default: float) -> float:
    return (bounds[0] + bounds[1]) / 2 if bounds else default


def peel_depth_targets(params: DifficultyParams, n: int) -> Tuple[float, int]:
    """(average depth, number of initially removable blocks) the peel aims for."""
    target_avg = _midpoint(params.depth_target_range, params.target_avg_depth)
    removable_ratio = _midpoint(params.removable_ratio_target, params.min_removable_ratio)
    return target_avg, min(n, max(1, round(n * removable_ratio)))


class _DepthTracker:
    """Dependency depth of every peeled block, known at the moment it leaves.

    A block leaving along a clear lane is blocked, on the full board, by
    exactly the already peeled blocks that own a cell on that lane. Its
    depth is one more than the deepest of them, 0 when there are none.
    """

    def __init__(self, grid: Grid, blocks: Sequence[Block], params: DifficultyParams):
        self.grid = grid
        self.owner: Dict[Tuple[int, int], int] = {}
        for block in blocks:
            for cell in block.cells or ():
                self.owner[cell] = block.id
        self.depth_of: Dict[int, int] = {}
        self.n = len(blocks)
        self.target_avg, self.zero_quota = peel_depth_targets(params, self.n)
        self.depth_sum = 0
        self.zeros = 0

    def lane_depth(self, block: Block, direction: Direction) -> int:
        dr, dc = direction.grid_delta
        row, col = block.cells[0] if dr < 0 or dc < 0 else block.cells[1]
        deepest = -1
        while True:
            row += dr
            col += dc
            if (row, col) not in self.grid.cells:
                return deepest + 1
            owner = self.owner.get((row, col))
            if owner is not None:
                deepest = max(deepest, self.depth_of.get(owner, -1))

    def desired(self) -> float:
        """Depth that keeps the quota of free blocks and the running average on target."""
        if self.zeros < self.zero_quota:
            return 0.0
        left = self.n - len(self.depth_of)
        needed = (self.target_avg * self.n - self.depth_sum) / max(1, left)
        return min(2 * self.target_avg, max(1.0, needed))

    def commit(self, block: Block, depth: int) -> None:
        self.depth_of[block.id] = depth
        self.depth_sum += depth
        if depth == 0:
            self.zeros += 1


def peel_assign_directions(
    grid: Grid,
    blocks: Sequence[Block],
    params: DifficultyParams,
    rand: SeededRandom,
    deadline: Optional[Deadline] = None,
) -> Optional[List[Block]]:
    """Assign directions while peeling blocks off a fully occupied grid.

    At each step every remaining block is scored for each direction whose
    lane is clear right now; the best pair is committed and the block's
    cells are freed. Besides the direction-mix targets the score pulls the
    resulting dependency depth toward the level's removable share and
    average depth. The returned list is the removal order. Returns None
    when the deadline passes or no block has a clear lane.
    """
    deadline = deadline or Deadline.unbounded()
    n = len(blocks)
    mix = params.direction_mix_target
    target_count = {d: mix.get(d) * n for d in Direction}
    counts = dict.fromkeys(Direction, 0)
    sectors = _MixTracker()
    lines = _MixTracker()
    depths = _DepthTracker(grid, blocks, params)
    sector_of = {b.id: _sector_key(b, grid, params.local_direction_grid) for b in blocks}
    line_of = {b.id: _line_key(b) for b in blocks}

    # Cached (direction, depth) pairs, invalidated per lane when cells are freed.
    lane_members: Dict[Tuple[Axis, int], List[Block]] = group_lanes(blocks)
    available: Dict[int, List[Tuple[Direction, int]]] = {}

    remaining = list(blocks)
    order: List[Block] = []
    while remaining:
        if deadline.expired():
            logger.debug("Peel stopped by deadline after %d of %d blocks", len(order), n)
            return None

        desired = depths.desired()
        best = None
        for block in remaining:
            options = available.get(block.id)
            if options is None:
                options = [(d, depths.lane_depth(block, d)) for d in grid.available_directions(block)]
                available[block.id] = options
            for direction, depth in options:
                share = mix.get(direction)
                score = (
                    (target_count[direction] - counts[direction])
                    + (share - sectors.ratio(sector_of[block.id], direction)) * params.local_direction_weight
                    + (share - lines.ratio(line_of[block.id], direction)) * params.line_direction_weight
                    + block.dist_norm * params.depth_factor
                    - abs(depth - desired) * DEPTH_PULL
                    + (rand() - 0.5) * 0.1
                )
                if best is None or score > best[0]:
                    best = (score, block, direction, depth)

        if best is None:
            return None
        _, block, direction, depth = best
        block.set_direction(direction)
        grid.release(block)
        remaining.remove(block)
        order.append(block)
        depths.commit(block, depth)
        counts[direction] += 1
        sectors.add(sector_of[block.id], direction)
        lines.add(line_of[block.id], direction)

        for row, col in block.cells:
            for key in ((Axis.ROW, col), (Axis.COL, row)):
                for member in lane_members.get(key, ()):
                    available.pop(member.id, None)

    return order
