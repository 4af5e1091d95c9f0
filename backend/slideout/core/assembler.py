"""Board assembly: filling the rotated grid with dominoes.

Two placement modes share the same overlap and bounds checks:

* ``place_grid_dominoes``: center-out greedy matching with a hole budget
  shaped by a hole template (used by the lane-uniform and depth-layered
  strategies).
* ``generate_dense_layout``: profile-weighted greedy matching that aims
  for a fill rate (used by the reverse-fill strategy).

Both return partial results when the target cannot be reached; callers
decide whether a shortfall is acceptable.
"""
import math
import logging
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..models.level import (
    Axis,
    Block,
    BlockSizing,
    Cell,
    DifficultyParams,
    HoleTemplate,
    LayoutProfileName,
    Rect,
    DEFAULT_SIZING,
)
from .deadline import Deadline
from .grid import Grid, NEIGHBOR_OFFSETS
from .rng import SeededRandom

logger = logging.getLogger(__name__)

CellKey = Tuple[int, int]
_SQRT2 = math.sqrt(2)


# =========================================================
# Body overlap
# =========================================================

def _body_frame(block: Block) -> Tuple[float, float, float, float]:
    """Block body as (a, b, half_a, half_b) in the grid-aligned frame.

    ``a`` runs along the RIGHT travel vector and ``b`` along UP, so block
    bodies are axis-aligned rectangles there.
    """
    a = (block.center_x + block.center_y) / _SQRT2
    b = (block.center_x - block.center_y) / _SQRT2
    long_half = block.size * block.sizing.aspect_ratio / 2
    short_half = block.size / 2
    if block.resolved_axis is Axis.ROW:
        return a, b, short_half, long_half
    return a, b, long_half, short_half


def _frames_overlap(p, q, margin: float) -> bool:
    return (
        abs(p[0] - q[0]) < p[2] + q[2] - 2 * margin
        and abs(p[1] - q[1]) < p[3] + q[3] - 2 * margin
    )


def bodies_overlap(first: Block, second: Block, margin: float = 1.0) -> bool:
    """True if the rotated bodies intersect after shrinking each by ``margin``."""
    return _frames_overlap(_body_frame(first), _body_frame(second), margin)


def find_overlaps(blocks: Sequence[Block], margin: float = 1.0) -> List[Tuple[int, int]]:
    """Id pairs of overlapping blocks."""
    frames = [_body_frame(b) for b in blocks]
    pairs = []
    for i in range(len(blocks)):
        for j in range(i + 1, len(blocks)):
            if _frames_overlap(frames[i], frames[j], margin):
                pairs.append((blocks[i].id, blocks[j].id))
    return pairs


def has_overlap(blocks: Sequence[Block], margin: float = 1.0) -> bool:
    return bool(find_overlaps(blocks, margin))


# =========================================================
# Holes
# =========================================================

def pick_hole_rate(params: DifficultyParams, rand: SeededRandom) -> float:
    low, high = sorted(params.hole_rate_range)
    rate = low + (high - low) * rand()
    return max(0.05, min(0.5, rate))


def resolve_hole_template(params: DifficultyParams, rand: SeededRandom) -> str:
    if params.hole_template:
        return params.hole_template
    templates = params.hole_templates or tuple(t.value for t in HoleTemplate)
    return templates[rand.index(len(templates))]


def _neighbor_keys(cell: Cell) -> List[CellKey]:
    return [(cell.row + dr, cell.col + dc) for dr, dc in NEIGHBOR_OFFSETS]


def _spread_holes(ordered: Sequence[Cell], hole_count: int) -> Set[CellKey]:
    """Take cells in order, skipping neighbours of earlier holes, then top up."""
    holes: Set[CellKey] = set()
    blocked: Set[CellKey] = set()
    for cell in ordered:
        if len(holes) >= hole_count:
            break
        if cell.key in blocked:
            continue
        holes.add(cell.key)
        blocked.update(_neighbor_keys(cell))
    for cell in ordered:
        if len(holes) >= hole_count:
            break
        holes.add(cell.key)
    return holes


def select_sparse_holes(cells: Sequence[Cell], hole_count: int, rand: SeededRandom) -> Set[CellKey]:
    if hole_count <= 0:
        return set()
    return _spread_holes(rand.shuffle(list(cells)), hole_count)


def select_holes_by_template(
    cells: Sequence[Cell],
    hole_count: int,
    template: Optional[str],
    rand: SeededRandom,
) -> Set[CellKey]:
    """Pick ``hole_count`` empty cells following a hole template."""
    if hole_count <= 0:
        return set()
    if not template or template == HoleTemplate.SPARSE.value:
        return select_sparse_holes(cells, hole_count, rand)

    root = math.sqrt(len(cells))
    ring_inner = max(2, math.floor(root * 0.22))
    ring_outer = max(ring_inner + 1, math.floor(root * 0.32))
    band = max(1, math.floor(root * 0.10))

    scored = []
    for cell in cells:
        d = cell.dist
        if template == HoleTemplate.RING.value:
            in_ring = ring_inner <= d <= ring_outer
            score = 100 - d if in_ring else -abs(d - ring_inner)
        elif template == HoleTemplate.DIAGONAL_BAND.value:
            score = -abs(abs(cell.row - cell.col) - band) - d * 0.05
        elif template == HoleTemplate.TWO_LUMPS.value:
            stripe = min(abs(cell.row + cell.col), abs(cell.row - cell.col))
            score = -stripe - d * 0.03
        else:  # center hollow
            score = -d
        score += (rand() - 0.5) * 0.25
        scored.append((score, cell))

    scored.sort(key=lambda item: item[0], reverse=True)
    return _spread_holes([cell for _, cell in scored], hole_count)


def order_candidates_center_out(cells: Iterable[Cell], rand: SeededRandom) -> List[Cell]:
    """Cells by Manhattan shell, shuffled within each shell."""
    buckets: Dict[int, List[Cell]] = {}
    for cell in cells:
        buckets.setdefault(cell.dist, []).append(cell)
    ordered: List[Cell] = []
    for dist in sorted(buckets):
        ordered.extend(rand.shuffle(buckets[dist]))
    return ordered


# =========================================================
# Layout profiles
# =========================================================

class LayoutProfile:
    """Spatial weighting of cells; higher weight fills first."""

    def __init__(self, name: str, weight: Callable[[Cell], float]):
        self.name = name
        self.weight = weight

    @classmethod
    def uniform(cls) -> "LayoutProfile":
        return cls(LayoutProfileName.UNIFORM.value, lambda cell: 1.0)


def create_layout_profile(params: DifficultyParams, rand: SeededRandom, grid: Grid) -> LayoutProfile:
    """Pick a profile and jitter its center by up to 10% of the safe rect."""
    profiles = params.layout_profiles or tuple(p.value for p in LayoutProfileName)
    name = params.layout_profile or profiles[rand.index(len(profiles))]
    rect = grid.safe_rect
    center_x = grid.center_x + (rand() - 0.5) * rect.width * 0.2
    center_y = grid.center_y + (rand() - 0.5) * rect.height * 0.2
    max_r = max(rect.width, rect.height) * 0.5 or 1.0
    rotation = rand() * math.pi * 2
    ring_band = 0.55 + rand() * 0.2
    ring_sigma = 0.12
    band_width = max_r * (0.18 + rand() * 0.08)
    lumps_offset = max_r * (0.35 + rand() * 0.1)
    lump_sigma = max_r * 0.35
    cos_r, sin_r = math.cos(rotation), math.sin(rotation)
    lumps = (
        (center_x - lumps_offset, center_y + lumps_offset * 0.3),
        (center_x + lumps_offset, center_y - lumps_offset * 0.3),
    )

    def weight(cell: Cell) -> float:
        dx = cell.x - center_x
        dy = cell.y - center_y
        r = math.hypot(dx, dy) / max_r
        if name == LayoutProfileName.RING.value:
            d = r - ring_band
            return math.exp(-(d * d) / (2 * ring_sigma * ring_sigma)) + 0.2
        if name == LayoutProfileName.DIAGONAL_BAND.value:
            across = abs(dx * sin_r + dy * cos_r)
            return max(0.2, 1 - across / band_width)
        if name == LayoutProfileName.TWO_LUMPS.value:
            total = 0.0
            for lx, ly in lumps:
                d2 = (cell.x - lx) ** 2 + (cell.y - ly) ** 2
                total += math.exp(-d2 / (2 * lump_sigma * lump_sigma))
            return max(0.2, total)
        if name == LayoutProfileName.CENTER_HOLLOW.value:
            return max(0.2, r)
        return 1.0

    return LayoutProfile(name, weight)


# =========================================================
# Assembler
# =========================================================

class BoardAssembler:
    """Places dominoes on a grid without overlaps."""

    DENSE_ATTEMPTS = 3

    def __init__(self, sizing: BlockSizing = DEFAULT_SIZING, overlap_margin: float = 1.0):
        self.sizing = sizing
        self.overlap_margin = overlap_margin

    def fits_board(self, block: Block, board_rect: Rect) -> bool:
        """Bounding box inside the board less the safety margin."""
        return board_rect.inset(self.sizing.safety_margin).contains_rect(block.rect)

    def _can_place(self, block: Block, placed: Sequence[Block], board_rect: Rect) -> bool:
        if not self.fits_board(block, board_rect):
            return False
        frame = _body_frame(block)
        return not any(_frames_overlap(frame, _body_frame(other), self.overlap_margin) for other in placed)

    def place_grid_dominoes(
        self,
        grid: Grid,
        target_count: int,
        holes: Set[CellKey],
        rand: SeededRandom,
        board_rect: Rect,
    ) -> List[Block]:
        """Center-out greedy matching, then a shuffled pass for leftovers.

        Cells in ``holes`` stay empty. Returns fewer than ``target_count``
        blocks when the grid runs out of pairs.
        """
        blocks: List[Block] = []
        if target_count <= 0 or len(grid) < 2:
            return blocks
        used = set(holes)

        def fill(ordered: Iterable[Cell]) -> None:
            for cell in ordered:
                if len(blocks) >= target_count:
                    return
                if cell.key in used:
                    continue
                neighbors = [n for n in grid.neighbors_of(cell) if n.key not in used]
                if not neighbors:
                    continue
                neighbor = neighbors[rand.index(len(neighbors))]
                block = grid.block_from_cells(len(blocks), cell, neighbor)
                if not self._can_place(block, blocks, board_rect):
                    continue
                blocks.append(block)
                used.add(cell.key)
                used.add(neighbor.key)
                grid.occupy(block)

        fill(order_candidates_center_out(grid.cells.values(), rand))
        if len(blocks) < target_count:
            fill(rand.shuffle(list(grid.cells.values())))
        return blocks

    def generate_dense_layout(
        self,
        grid: Grid,
        target_count: int,
        profile: LayoutProfile,
        rand: SeededRandom,
        params: DifficultyParams,
        board_rect: Rect,
        deadline: Optional[Deadline] = None,
    ) -> List[Block]:
        """Profile-weighted filling; keeps the best of a few attempts.

        With ``use_edge_entries`` the later attempts grow inward from the
        boundary cells instead of following the global weight order. The grid
        is left occupied by the returned blocks.
        """
        deadline = deadline or Deadline.unbounded()
        cells = list(grid.cells.values())
        best: List[Block] = []

        for attempt in range(self.DENSE_ATTEMPTS):
            if attempt > 0 and deadline.expired():
                break
            grid.reset()
            if params.use_edge_entries and attempt > 0:
                blocks = self._fill_from_edges(grid, target_count, profile, rand, params, board_rect, deadline)
            else:
                blocks = self._fill_by_weight(grid, cells, target_count, profile, rand, params, board_rect, deadline)
            if len(blocks) > len(best):
                best = blocks
            if len(blocks) >= target_count:
                return blocks

        grid.reset()
        for block in best:
            grid.occupy(block)
        return best

    def _pair_with(
        self,
        grid: Grid,
        cell: Cell,
        profile: LayoutProfile,
        rand: SeededRandom,
        axis_counts: Dict[Axis, int],
        axis_weight: float,
    ) -> Optional[Cell]:
        neighbors = grid.unoccupied_neighbors(cell)
        if not neighbors:
            return None
        total = axis_counts[Axis.ROW] + axis_counts[Axis.COL]

        def score(n: Cell) -> float:
            axis = Axis.ROW if n.row != cell.row else Axis.COL
            bias = 0.5 - axis_counts[axis] / total if total else 0.0
            return profile.weight(n) + bias * axis_weight + (rand() - 0.5) * 0.05

        scored = [(score(n), n) for n in neighbors]
        scored.sort(key=lambda item: item[0], reverse=True)
        return scored[0][1]

    def _fill_by_weight(self, grid, cells, target_count, profile, rand, params, board_rect, deadline) -> List[Block]:
        blocks: List[Block] = []
        axis_counts = {Axis.ROW: 0, Axis.COL: 0}

        def fill(ordered: Iterable[Cell]) -> None:
            for cell in ordered:
                if len(blocks) >= target_count or deadline.expired():
                    return
                if cell.occupied:
                    continue
                self._place_pair(grid, cell, blocks, axis_counts, profile, rand, params, board_rect)

        weighted = [(profile.weight(c) + (rand() - 0.5) * 0.1, c) for c in cells]
        weighted.sort(key=lambda item: item[0], reverse=True)
        fill(c for _, c in weighted)
        if len(blocks) < target_count:
            fill(rand.shuffle(list(cells)))
        return blocks

    def _fill_from_edges(self, grid, target_count, profile, rand, params, board_rect, deadline) -> List[Block]:
        blocks: List[Block] = []
        axis_counts = {Axis.ROW: 0, Axis.COL: 0}
        dead: Set[CellKey] = set()

        while len(blocks) < target_count and not deadline.expired():
            frontier = [c for c in grid.boundary_cells if c.key not in dead and not c.occupied]
            if not frontier:
                break
            cell = max(frontier, key=lambda c: profile.weight(c) + (rand() - 0.5) * 0.1)
            if not self._place_pair(grid, cell, blocks, axis_counts, profile, rand, params, board_rect):
                dead.add(cell.key)

        if len(blocks) < target_count:
            for cell in rand.shuffle(list(grid.cells.values())):
                if len(blocks) >= target_count:
                    break
                if not cell.occupied:
                    self._place_pair(grid, cell, blocks, axis_counts, profile, rand, params, board_rect)
        return blocks

    def _place_pair(self, grid, cell, blocks, axis_counts, profile, rand, params, board_rect) -> bool:
        neighbor = self._pair_with(grid, cell, profile, rand, axis_counts, params.axis_balance_weight)
        if neighbor is None:
            return False
        block = grid.block_from_cells(len(blocks), cell, neighbor)
        if not self._can_place(block, blocks, board_rect):
            return False
        blocks.append(block)
        grid.occupy(block)
        axis_counts[block.axis] += 1
        return True
