"""Board, block and difficulty data models."""
import math
from dataclasses import dataclass, field, asdict
from enum import Enum, IntEnum
from typing import Dict, List, Any, Optional, Tuple


class DifficultyGrade(str, Enum):
    """Difficulty grade enumeration."""
    S = "S"  # Very Easy (0-20)
    A = "A"  # Easy (21-40)
    B = "B"  # Normal (41-60)
    C = "C"  # Hard (61-80)
    D = "D"  # Very Hard (81-100)

    @classmethod
    def from_score(cls, score: float) -> "DifficultyGrade":
        """Get grade from score."""
        if score <= 20:
            return cls.S
        elif score <= 40:
            return cls.A
        elif score <= 60:
            return cls.B
        elif score <= 80:
            return cls.C
        else:
            return cls.D


class Axis(str, Enum):
    """Domino orientation on the rotated grid."""
    ROW = "row"  # two vertically stacked cells, slides up/down
    COL = "col"  # two horizontally adjacent cells, slides left/right

    @property
    def directions(self) -> Tuple["Direction", "Direction"]:
        if self is Axis.ROW:
            return (Direction.UP, Direction.DOWN)
        return (Direction.LEFT, Direction.RIGHT)


_INV_SQRT2 = 1 / math.sqrt(2)


class Direction(IntEnum):
    """Slide-out direction. Wire codes are the integer values."""
    UP = 0
    RIGHT = 1
    DOWN = 2
    LEFT = 3

    @property
    def opposite(self) -> "Direction":
        return Direction((self.value + 2) % 4)

    @property
    def axis(self) -> Axis:
        return Axis.ROW if self in (Direction.UP, Direction.DOWN) else Axis.COL

    @property
    def grid_delta(self) -> Tuple[int, int]:
        """(row, col) step along the lane."""
        return _GRID_DELTAS[self]

    @property
    def angle(self) -> float:
        """Rotation of the block body in screen space."""
        return _ANGLES[self]

    @property
    def vector(self) -> Tuple[float, float]:
        """Unit screen-space travel vector (the grid is rotated 45 degrees)."""
        return _VECTORS[self]

    @property
    def label(self) -> str:
        return self.name.lower()


_GRID_DELTAS = {
    Direction.UP: (-1, 0),
    Direction.DOWN: (1, 0),
    Direction.LEFT: (0, -1),
    Direction.RIGHT: (0, 1),
}

_ANGLES = {
    Direction.UP: -math.pi / 4,
    Direction.RIGHT: math.pi / 4,
    Direction.DOWN: 3 * math.pi / 4,
    Direction.LEFT: -3 * math.pi / 4,
}

_VECTORS = {
    Direction.UP: (_INV_SQRT2, -_INV_SQRT2),
    Direction.RIGHT: (_INV_SQRT2, _INV_SQRT2),
    Direction.DOWN: (-_INV_SQRT2, _INV_SQRT2),
    Direction.LEFT: (-_INV_SQRT2, -_INV_SQRT2),
}


class HoleTemplate(str, Enum):
    """Where empty cells concentrate during lane-uniform assembly."""
    SPARSE = "sparse"
    RING = "ring"
    DIAGONAL_BAND = "diagonalBand"
    CENTER_HOLLOW = "centerHollow"
    TWO_LUMPS = "twoLumps"


class LayoutProfileName(str, Enum):
    """Spatial density weighting used by the dense layout."""
    UNIFORM = "uniform"
    RING = "ring"
    DIAGONAL_BAND = "diagonalBand"
    TWO_LUMPS = "twoLumps"
    CENTER_HOLLOW = "centerHollow"


class DirectionMode(str, Enum):
    """Flavour of the depth-layered direction assignment."""
    PEEL = "peel"
    SPLIT = "split"
    PINCH = "pinch"


class GeneratorStrategy(str, Enum):
    """Board strategy selected by configuration."""
    REVERSE_FILL = "reverse_fill"
    LANE_UNIFORM = "lane_uniform"
    DEPTH_LAYERED = "depth_layered"


ANIMAL_TYPES: Tuple[str, ...] = ("pig", "sheep", "dog", "fox", "panda")


@dataclass(frozen=True)
class BlockDimensions:
    """Rotated block footprint for one direction."""
    long_side: float
    short_side: float
    angle: float
    width: float   # axis-aligned bounding box
    height: float


@dataclass(frozen=True)
class BlockSizing:
    """Block sizing constants."""
    length: float = 45
    width: float = 18
    safety_margin: float = 6
    render_margin: float = 10
    hitbox_inset: float = 4
    collision_shrink: float = 0.22
    min_short_side: int = 12
    shrink_step: int = 2

    @property
    def aspect_ratio(self) -> float:
        return self.length / self.width

    def dimensions(self, direction: Direction, short_side: float) -> BlockDimensions:
        """Bounding box of a block body rotated for ``direction``."""
        long_side = short_side * self.aspect_ratio
        angle = Direction(direction).angle
        c = abs(math.cos(angle))
        s = abs(math.sin(angle))
        return BlockDimensions(
            long_side=long_side,
            short_side=short_side,
            angle=angle,
            width=c * long_side + s * short_side,
            height=s * long_side + c * short_side,
        )


@dataclass(frozen=True)
class BoardLayout:
    """Screen chrome around the playfield."""
    top_bar_height: float = 60
    bottom_bar_height: float = 110
    board_side_padding: float = 4
    board_top_offset: float = 60
    board_bottom_margin: float = 10


DEFAULT_SIZING = BlockSizing()
DEFAULT_LAYOUT = BoardLayout()


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in screen pixels."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def contains_point(self, px: float, py: float) -> bool:
        return self.x <= px <= self.right and self.y <= py <= self.bottom

    def contains_rect(self, other: "Rect") -> bool:
        return (
            other.x >= self.x and other.right <= self.right
            and other.y >= self.y and other.bottom <= self.bottom
        )

    def inset(self, dx: float, dy: Optional[float] = None) -> "Rect":
        dy = dx if dy is None else dy
        return Rect(
            x=self.x + dx,
            y=self.y + dy,
            width=max(0.0, self.width - dx * 2),
            height=max(0.0, self.height - dy * 2),
        )

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass
class Cell:
    """Lattice point of the rotated grid."""
    row: int
    col: int
    x: float
    y: float
    dist: int
    occupied: bool = False
    block_id: Optional[int] = None

    @property
    def key(self) -> Tuple[int, int]:
        return (self.row, self.col)


@dataclass
class Block:
    """A domino on the board.

    The pixel rectangle is always derived from the center and the direction;
    ``set_direction`` is the only way to change direction or size.
    """
    id: int
    center_x: float
    center_y: float
    direction: Direction
    size: float
    axis: Optional[Axis] = None
    grid_row: Optional[int] = None
    grid_col: Optional[int] = None
    type: Optional[str] = None
    depth: int = 0
    is_removed: bool = False
    visible: bool = True
    dist_norm: float = 0.0
    sizing: BlockSizing = field(default=DEFAULT_SIZING, repr=False, compare=False)

    def __post_init__(self):
        self.direction = Direction(self.direction)
        if self.axis is not None:
            self.axis = Axis(self.axis)

    @property
    def dimensions(self) -> BlockDimensions:
        return self.sizing.dimensions(self.direction, self.size)

    @property
    def width(self) -> float:
        return self.dimensions.width

    @property
    def height(self) -> float:
        return self.dimensions.height

    @property
    def x(self) -> float:
        return self.center_x - self.width / 2

    @property
    def y(self) -> float:
        return self.center_y - self.height / 2

    @property
    def rect(self) -> Rect:
        dims = self.dimensions
        return Rect(
            x=self.center_x - dims.width / 2,
            y=self.center_y - dims.height / 2,
            width=dims.width,
            height=dims.height,
        )

    @property
    def resolved_axis(self) -> Axis:
        """Declared axis, or the one implied by the direction."""
        return self.axis if self.axis is not None else self.direction.axis

    @property
    def has_grid(self) -> bool:
        return self.grid_row is not None and self.grid_col is not None

    @property
    def cells(self) -> Optional[Tuple[Tuple[int, int], Tuple[int, int]]]:
        """The two (row, col) cells covered, or None without grid coordinates."""
        if not self.has_grid:
            return None
        if self.resolved_axis is Axis.ROW:
            return ((self.grid_row, self.grid_col), (self.grid_row + 1, self.grid_col))
        return ((self.grid_row, self.grid_col), (self.grid_row, self.grid_col + 1))

    @property
    def lane_key(self) -> Optional[Tuple[Axis, int]]:
        """Row-axis blocks share a lane by column, col-axis blocks by row."""
        if not self.has_grid:
            return None
        if self.resolved_axis is Axis.ROW:
            return (Axis.ROW, self.grid_col)
        return (Axis.COL, self.grid_row)

    @property
    def is_active(self) -> bool:
        return not self.is_removed and self.visible

    def set_direction(self, direction: Direction, size: Optional[float] = None) -> None:
        """Change direction (and optionally short side) keeping the center fixed."""
        self.direction = Direction(direction)
        if size is not None:
            self.size = size

    def copy(self) -> "Block":
        return Block(
            id=self.id,
            center_x=self.center_x,
            center_y=self.center_y,
            direction=self.direction,
            size=self.size,
            axis=self.axis,
            grid_row=self.grid_row,
            grid_col=self.grid_col,
            type=self.type,
            depth=self.depth,
            is_removed=self.is_removed,
            visible=self.visible,
            dist_norm=self.dist_norm,
            sizing=self.sizing,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Wire payload (camelCase keys, direction as 0-3)."""
        rect = self.rect
        return {
            "id": self.id,
            "x": rect.x,
            "y": rect.y,
            "width": rect.width,
            "height": rect.height,
            "direction": int(self.direction),
            "axis": self.axis.value if self.axis is not None else None,
            "gridRow": self.grid_row,
            "gridCol": self.grid_col,
            "type": self.type,
            "size": self.size,
            "depth": self.depth,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], sizing: BlockSizing = DEFAULT_SIZING) -> "Block":
        """Build a block from a wire payload.

        The center comes from ``centerX``/``centerY`` when present, otherwise
        from the middle of ``x``/``y``/``width``/``height``.
        """
        direction = Direction(int(data["direction"]))
        size = float(data.get("size") or sizing.width)
        if "centerX" in data and "centerY" in data:
            cx, cy = float(data["centerX"]), float(data["centerY"])
        else:
            dims = sizing.dimensions(direction, size)
            cx = float(data["x"]) + float(data.get("width", dims.width)) / 2
            cy = float(data["y"]) + float(data.get("height", dims.height)) / 2
        return cls(
            id=int(data.get("id", 0)),
            center_x=cx,
            center_y=cy,
            direction=direction,
            size=size,
            axis=data.get("axis"),
            grid_row=data.get("gridRow"),
            grid_col=data.get("gridCol"),
            type=data.get("type"),
            depth=int(data.get("depth") or 0),
            sizing=sizing,
        )


@dataclass(frozen=True)
class DirectionMix:
    """Target share per direction. Shares sum to 1."""
    up: float = 0.25
    right: float = 0.25
    down: float = 0.25
    left: float = 0.25

    def get(self, direction: Direction) -> float:
        return getattr(self, Direction(direction).label)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


ALL_LAYOUT_PROFILES: Tuple[str, ...] = tuple(p.value for p in LayoutProfileName)


@dataclass(frozen=True)
class DifficultyParams:
    """Generation parameters for one level. Never mutated; use ``replace``."""
    phase_name: str
    block_count: int
    block_size: int = 16
    animal_types: int = 5
    depth_factor: float = 0.6
    is_relief_level: bool = False
    strategy: GeneratorStrategy = GeneratorStrategy.REVERSE_FILL

    # Acceptance gate
    target_difficulty: float = 0.0
    target_difficulty_tolerance: float = 6.0
    depth_target_range: Optional[Tuple[float, float]] = None
    removable_ratio_target: Optional[Tuple[float, float]] = None
    min_removable_ratio: float = 0.15
    max_direction_ratio: float = 0.7
    max_local_direction_ratio: Optional[float] = None
    max_line_direction_ratio: Optional[float] = None
    deadlock_prob_range: Optional[Tuple[float, float]] = None
    deadlock_estimate_runs: int = 12
    solvability_attempts: int = 6

    # Direction-mix search
    direction_mix_target: DirectionMix = DirectionMix()
    local_direction_grid: int = 3
    local_direction_weight: float = 0.2
    line_direction_weight: float = 0.2
    line_direction_min_count: int = 3
    axis_balance_weight: float = 0.25

    # Layout
    layout_profiles: Tuple[str, ...] = ALL_LAYOUT_PROFILES
    layout_profile: Optional[str] = None
    target_fill_rate: float = 0.7
    force_fill_rate: bool = False
    use_edge_entries: bool = False
    hole_rate_range: Tuple[float, float] = (0.12, 0.2)
    hole_template: Optional[str] = None
    hole_templates: Tuple[str, ...] = ()

    # Lane-uniform and depth-layered strategies
    initial_removable_ratio: float = 0.25
    lane_exit_bias: float = 0.7
    target_avg_depth: float = 2.0
    target_max_depth: int = 6
    direction_mode: DirectionMode = DirectionMode.PEEL
    core_count: int = 1
    cross_core_block_ratio: float = 0.0

    # Budgets
    max_generate_attempts: int = 6
    max_generate_time_ms: int = 3000

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["strategy"] = self.strategy.value
        data["direction_mode"] = self.direction_mode.value
        return data


@dataclass
class DepthStats:
    """Dependency depth summary of a board."""
    depths: List[int] = field(default_factory=list)
    avg_depth: float = 0.0
    max_depth: int = 0
    removable_count: int = 0
    removable_ratio: float = 0.0
    unresolved: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "avg_depth": round(self.avg_depth, 3),
            "max_depth": self.max_depth,
            "removable_count": self.removable_count,
            "removable_ratio": round(self.removable_ratio, 3),
            "unresolved": list(self.unresolved),
        }


@dataclass
class DirectionStats:
    """Directional balance of a board, globally, per sector and per lane."""
    counts: Dict[Direction, int] = field(default_factory=dict)
    ratios: Dict[Direction, float] = field(default_factory=dict)
    max_direction_ratio: float = 0.0
    max_local_direction_ratio: float = 0.25
    max_line_direction_ratio: float = 0.25

    def to_dict(self) -> Dict[str, Any]:
        return {
            "counts": {d.label: self.counts.get(d, 0) for d in Direction},
            "ratios": {d.label: round(self.ratios.get(d, 0.0), 3) for d in Direction},
            "max_direction_ratio": round(self.max_direction_ratio, 3),
            "max_local_direction_ratio": round(self.max_local_direction_ratio, 3),
            "max_line_direction_ratio": round(self.max_line_direction_ratio, 3),
        }


@dataclass
class AcceptanceVerdict:
    """Outcome of the acceptance gate."""
    ok: bool
    distance: float
    reasons: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": self.ok, "distance": round(self.distance, 2), "reasons": self.reasons}


@dataclass
class BoardEvaluation:
    """Everything measured about a candidate board."""
    depth: DepthStats
    directions: DirectionStats
    score: float
    solvable: bool
    overlap: bool
    removable_floor: int
    verdict: AcceptanceVerdict
    deadlock_probability: Optional[float] = None

    @property
    def grade(self) -> DifficultyGrade:
        return DifficultyGrade.from_score(self.score)

    @property
    def is_valid(self) -> bool:
        """Geometrically valid, solvable and above the removable floor."""
        return (
            not self.overlap
            and self.solvable
            and not self.depth.unresolved
            and self.depth.removable_count >= self.removable_floor
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "grade": self.grade.value,
            "solvable": self.solvable,
            "overlap": self.overlap,
            "valid": self.is_valid,
            "removable_floor": self.removable_floor,
            "depth": self.depth.to_dict(),
            "directions": self.directions.to_dict(),
            "verdict": self.verdict.to_dict(),
            "deadlock_probability": self.deadlock_probability,
        }


@dataclass
class Board:
    """A generated board and the geometry it was built on."""
    blocks: List[Block]
    short_side: float
    screen_width: float
    screen_height: float
    board_rect: Rect
    safe_rect: Rect
    center: Tuple[float, float]
    seed: int = 0
    layout_profile: Optional[str] = None
    hole_template: Optional[str] = None
    target_count: int = 0
    shortfall_tolerance: float = 0.0  # share of target_count that may stay unplaced
    removal_order: List[int] = field(default_factory=list)
    complete: bool = True  # False when direction assignment stopped early

    @property
    def total(self) -> int:
        return len(self.blocks)

    @property
    def min_count(self) -> int:
        return self.target_count - math.floor(self.target_count * self.shortfall_tolerance)

    @property
    def is_short(self) -> bool:
        """Fewer blocks were placed than the tolerated minimum."""
        return len(self.blocks) < self.min_count

    def to_payload(self) -> Dict[str, Any]:
        return {"blocks": [b.to_dict() for b in self.blocks], "total": self.total}


@dataclass
class GenerationResult:
    """Result of a level generation call."""
    level_number: int
    board: Board
    evaluation: Optional[BoardEvaluation]
    params: DifficultyParams
    accepted: bool
    attempts: int
    generation_time_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level_number": self.level_number,
            "level_data": self.board.to_payload(),
            "accepted": self.accepted,
            "attempts": self.attempts,
            "generation_time_ms": self.generation_time_ms,
            "evaluation": self.evaluation.to_dict() if self.evaluation else None,
            "params": self.params.to_dict(),
        }
