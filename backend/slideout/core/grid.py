"""Rotated (diamond) grid over the playfield.

Cells sit on a square lattice turned 45 degrees:

    x = center_x + (col - row) * step
    y = center_y + (col + row) * step

so moving along a row index travels up-right/down-left on screen and moving
along a column index travels down-right/up-left.
"""
import math
import logging
from typing import Dict, List, Optional, Tuple

from ..models.level import (
    Axis,
    Block,
    BlockSizing,
    BoardLayout,
    Cell,
    Direction,
    Rect,
    DEFAULT_LAYOUT,
    DEFAULT_SIZING,
)

logger = logging.getLogger(__name__)

NEIGHBOR_OFFSETS: Tuple[Tuple[int, int], ...] = ((-1, 0), (1, 0), (0, -1), (0, 1))


def validate_dimensions(screen_width: float, screen_height: float) -> None:
    """Reject negative or non-finite screen dimensions."""
    for name, value in (("screenWidth", screen_width), ("screenHeight", screen_height)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{name} must be a number, got {type(value).__name__}")
        if not math.isfinite(value):
            raise ValueError(f"{name} must be finite, got {value}")
        if value < 0:
            raise ValueError(f"{name} must not be negative, got {value}")


def get_board_rect(
    screen_width: float,
    screen_height: float,
    layout: BoardLayout = DEFAULT_LAYOUT,
) -> Rect:
    """Playfield rectangle between the top and bottom bars."""
    validate_dimensions(screen_width, screen_height)
    pad = layout.board_side_padding
    y = layout.top_bar_height + layout.board_top_offset
    bottom = screen_height - layout.bottom_bar_height - layout.board_bottom_margin
    return Rect(
        x=pad,
        y=y,
        width=max(0.0, screen_width - pad * 2),
        height=max(0.0, bottom - y),
    )


def get_safe_rect(
    board_rect: Rect,
    short_side: float,
    sizing: BlockSizing = DEFAULT_SIZING,
) -> Rect:
    """Area where block centers may lie without the body leaving the board."""
    dims = sizing.dimensions(Direction.UP, short_side)
    margin_x = sizing.safety_margin + dims.width / 2 + sizing.render_margin
    margin_y = sizing.safety_margin + dims.height / 2 + sizing.render_margin
    return board_rect.inset(margin_x, margin_y)


def grid_spacing(short_side: float, sizing: BlockSizing = DEFAULT_SIZING) -> Tuple[float, float, float]:
    """Return (cell_gap, cell_step, screen step) for a short side."""
    long_side = short_side * sizing.aspect_ratio
    base_gap = max(4, round(short_side * 0.35))
    cell_gap = max(base_gap, round(long_side - 2 * short_side))
    cell_step = short_side + cell_gap
    return cell_gap, cell_step, cell_step / math.sqrt(2)


class Grid:
    """Addressable cells of the diamond lattice with occupancy tracking.

    ``boundary_cells`` starts as the cells with a missing neighbor and is
    kept up to date as blocks occupy cells: occupied cells leave it, newly
    exposed empty neighbors join it.
    """

    def __init__(
        self,
        cells: Dict[Tuple[int, int], Cell],
        short_side: float,
        step: float,
        cell_step: float,
        safe_rect: Rect,
        sizing: BlockSizing = DEFAULT_SIZING,
    ):
        self.cells = cells
        self.short_side = short_side
        self.step = step
        self.cell_step = cell_step
        self.safe_rect = safe_rect
        self.sizing = sizing
        self.center_x, self.center_y = safe_rect.center
        self.edge_cells: List[Cell] = [c for c in cells.values() if self._is_edge(c)]
        self._boundary: Dict[Tuple[int, int], Cell] = {c.key: c for c in self.edge_cells}

    @classmethod
    def build(
        cls,
        short_side: float,
        board_rect: Rect,
        sizing: BlockSizing = DEFAULT_SIZING,
    ) -> "Grid":
        """Tile the safe part of ``board_rect`` with cells.

        A degenerate safe rectangle yields an empty grid.
        """
        _, cell_step, step = grid_spacing(short_side, sizing)
        safe_rect = get_safe_rect(board_rect, short_side, sizing)
        cx, cy = safe_rect.center
        cells: Dict[Tuple[int, int], Cell] = {}

        if not safe_rect.is_empty:
            max_row = math.floor(safe_rect.height / (2 * step))
            max_col = math.floor(safe_rect.width / (2 * step))
            for row in range(-max_row, max_row + 1):
                for col in range(-max_col, max_col + 1):
                    x = cx + (col - row) * step
                    y = cy + (col + row) * step
                    if not safe_rect.contains_point(x, y):
                        continue
                    cells[(row, col)] = Cell(row=row, col=col, x=x, y=y, dist=abs(row) + abs(col))

        return cls(cells, short_side, step, cell_step, safe_rect, sizing)

    def _is_edge(self, cell: Cell) -> bool:
        return any((cell.row + dr, cell.col + dc) not in self.cells for dr, dc in NEIGHBOR_OFFSETS)

    def __len__(self) -> int:
        return len(self.cells)

    @property
    def max_possible_blocks(self) -> int:
        return len(self.cells) // 2

    @property
    def max_dist(self) -> float:
        """Distance from the center to a corner of the safe rect."""
        return math.hypot(self.safe_rect.width / 2, self.safe_rect.height / 2)

    @property
    def boundary_cells(self) -> List[Cell]:
        return list(self._boundary.values())

    def get_cell(self, row: int, col: int) -> Optional[Cell]:
        return self.cells.get((row, col))

    def is_occupied(self, row: int, col: int) -> bool:
        """Cells outside the grid count as occupied."""
        cell = self.cells.get((row, col))
        return cell.occupied if cell else True

    def neighbors_of(self, cell: Cell) -> List[Cell]:
        """Up to four lattice neighbors that exist in the grid."""
        result = []
        for dr, dc in NEIGHBOR_OFFSETS:
            neighbor = self.cells.get((cell.row + dr, cell.col + dc))
            if neighbor is not None:
                result.append(neighbor)
        return result

    def unoccupied_neighbors(self, cell: Cell) -> List[Cell]:
        return [n for n in self.neighbors_of(cell) if not n.occupied]

    def occupy(self, block: Block) -> None:
        for row, col in block.cells or ():
            cell = self.cells.get((row, col))
            if cell is None:
                continue
            cell.occupied = True
            cell.block_id = block.id
            self._boundary.pop(cell.key, None)
            for neighbor in self.neighbors_of(cell):
                if not neighbor.occupied and neighbor.key not in self._boundary:
                    self._boundary[neighbor.key] = neighbor

    def release(self, block: Block) -> None:
        for row, col in block.cells or ():
            cell = self.cells.get((row, col))
            if cell is None:
                continue
            cell.occupied = False
            cell.block_id = None
            if self._is_edge(cell) or any(n.occupied for n in self.neighbors_of(cell)):
                self._boundary[cell.key] = cell

    def reset(self) -> None:
        for cell in self.cells.values():
            cell.occupied = False
            cell.block_id = None
        self._boundary = {c.key: c for c in self.edge_cells}

    def is_path_clear_to_edge(self, block: Block, direction: Direction) -> bool:
        """Walk the lane from the block's front cell to the grid edge.

        Only moves along the block's own axis are considered; anything else
        is reported as not clear.
        """
        if not block.has_grid or block.axis is None:
            return False
        direction = Direction(direction)
        if direction.axis is not block.axis:
            return False

        dr, dc = direction.grid_delta
        if block.axis is Axis.ROW:
            row = block.grid_row - 1 if dr < 0 else block.grid_row + 2
            col = block.grid_col
        else:
            row = block.grid_row
            col = block.grid_col - 1 if dc < 0 else block.grid_col + 2

        while True:
            cell = self.cells.get((row, col))
            if cell is None:
                return True
            if cell.occupied:
                return False
            row += dr
            col += dc

    def available_directions(self, block: Block) -> List[Direction]:
        """Axis directions whose lane is currently clear to the edge."""
        if block.axis is None:
            return []
        return [d for d in block.axis.directions if self.is_path_clear_to_edge(block, d)]

    def block_from_cells(
        self,
        block_id: int,
        cell_a: Cell,
        cell_b: Cell,
        direction: Optional[Direction] = None,
    ) -> Block:
        """Domino covering two adjacent cells, centered on their midpoint.

        Without a direction the block gets the first direction of its axis.
        """
        axis = Axis.ROW if cell_a.row != cell_b.row else Axis.COL
        if direction is None:
            direction = axis.directions[0]
        grid_row = min(cell_a.row, cell_b.row) if axis is Axis.ROW else cell_a.row
        grid_col = min(cell_a.col, cell_b.col) if axis is Axis.COL else cell_a.col
        cx = (cell_a.x + cell_b.x) / 2
        cy = (cell_a.y + cell_b.y) / 2
        max_dist = self.max_dist
        dist_norm = min(1.0, math.hypot(cx - self.center_x, cy - self.center_y) / max_dist) if max_dist > 0 else 0.0
        return Block(
            id=block_id,
            center_x=cx,
            center_y=cy,
            direction=direction,
            size=self.short_side,
            axis=axis,
            grid_row=grid_row,
            grid_col=grid_col,
            dist_norm=dist_norm,
            sizing=self.sizing,
        )
