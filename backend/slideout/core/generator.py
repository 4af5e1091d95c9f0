"""Level generator: board strategies plus the retry/fallback loop."""
import math
import time
import logging
from typing import Dict, List, Optional, Tuple

from ..models.level import (
    Block,
    BlockSizing,
    Board,
    BoardEvaluation,
    BoardLayout,
    DifficultyParams,
    GenerationResult,
    GeneratorStrategy,
    DEFAULT_LAYOUT,
    DEFAULT_SIZING,
)
from ..models.leveling_config import get_level_params, get_seed, with_overrides
from .analyzer import DependencyGraph
from .assembler import (
    BoardAssembler,
    create_layout_profile,
    pick_hole_rate,
    resolve_hole_template,
    select_holes_by_template,
)
from .blocking import Bounds, detect_facing_deadlocks
from .deadline import Deadline
from .difficulty_assessor import DifficultyAssessor
from .directions import (
    adjust_for_removable_ratio,
    adjust_for_target_depth,
    assign_animal_types,
    assign_directions_by_depth,
    assign_directions_by_lane,
    ensure_solvable_path,
    peel_assign_directions,
    pick_core_centers,
    split_lane_directions,
)
from .grid import Grid, get_board_rect, validate_dimensions
from .rng import create_seeded_random
from .simulator import BoardView, greedy_peel
from ..utils.helpers import format_board_for_display

logger = logging.getLogger(__name__)

ATTEMPT_SEED_STEP = 131
GRID_SHORTFALL_TOLERANCE = 0.1


class BoardStrategy:
    """Builds one candidate board from parameters and a seed."""

    strategy: GeneratorStrategy

    def __init__(
        self,
        sizing: BlockSizing = DEFAULT_SIZING,
        layout: BoardLayout = DEFAULT_LAYOUT,
        solvability_attempts: int = 6,
    ):
        self.sizing = sizing
        self.layout = layout
        self.solvability_attempts = solvability_attempts
        self.assembler = BoardAssembler(sizing)

    def build(
        self,
        params: DifficultyParams,
        seed: int,
        screen_width: float,
        screen_height: float,
        deadline: Deadline,
    ) -> Board:
        raise NotImplementedError

    def rebuild(self, board: Board, params: DifficultyParams, seed: int) -> Board:
        """Re-assign directions on an existing geometry, without a deadline.

        The returned board is complete and solvable and follows this
        strategy's direction rules.
        """
        raise NotImplementedError

    def _occupied_grid(self, board: Board) -> Grid:
        grid = Grid.build(board.short_side, board.board_rect, self.sizing)
        for block in board.blocks:
            grid.occupy(block)
        return grid

    def _board(self, blocks: List[Block], grid: Grid, board_rect, screen_width, screen_height, seed, **extra) -> Board:
        return Board(
            blocks=blocks,
            short_side=grid.short_side,
            screen_width=screen_width,
            screen_height=screen_height,
            board_rect=board_rect,
            safe_rect=grid.safe_rect,
            center=(grid.center_x, grid.center_y),
            seed=seed,
            **extra,
        )


class GridDominoStrategy(BoardStrategy):
    """Center-out domino placement with holes, then lane or depth directions.

    ``strategy`` selects lane-uniform (A) or depth-layered (B) directions;
    both finish with the cycle repair pass.
    """

    def __init__(self, strategy: GeneratorStrategy = GeneratorStrategy.LANE_UNIFORM, **kwargs):
        super().__init__(**kwargs)
        self.strategy = GeneratorStrategy(strategy)

    def _fit_grid(self, params: DifficultyParams, board_rect, hole_rate: float) -> Tuple[Grid, int]:
        """Shrink the short side until the requested count fits beside the holes."""
        short_side = params.block_size
        while True:
            grid = Grid.build(short_side, board_rect, self.sizing)
            max_blocks = math.floor(len(grid) * (1 - hole_rate) / 2)
            smaller = short_side - self.sizing.shrink_step
            if params.block_count <= max_blocks or smaller < self.sizing.min_short_side:
                return grid, max_blocks
            short_side = smaller

    def build(self, params, seed, screen_width, screen_height, deadline) -> Board:
        rand = create_seeded_random(seed)
        board_rect = get_board_rect(screen_width, screen_height, self.layout)

        hole_rate = pick_hole_rate(params, rand)
        template = resolve_hole_template(params, rand)
        grid, max_blocks = self._fit_grid(params, board_rect, hole_rate)
        cells = list(grid.cells.values())
        target = max(0, min(params.block_count, max_blocks))
        holes = select_holes_by_template(cells, math.floor(len(cells) * hole_rate), template, rand)

        blocks = self.assembler.place_grid_dominoes(grid, target, holes, rand, board_rect)
        board = self._board(
            blocks, grid, board_rect, screen_width, screen_height, seed,
            hole_template=template, target_count=target,
            shortfall_tolerance=GRID_SHORTFALL_TOLERANCE,
        )
        if board.is_short:
            return board
        if len(blocks) < target:
            logger.debug("Placed %d of %d blocks, within tolerance", len(blocks), target)

        board.complete = self._assign_directions(grid, board, params, rand, seed)
        return board

    def rebuild(self, board: Board, params: DifficultyParams, seed: int) -> Board:
        """Re-assign this strategy's directions, then drop blocks nothing can free.

        Removing a block never blocks another one, so the blocks that a
        full peel reaches stay removable once the rest are gone.
        """
        grid = self._occupied_grid(board)
        if self._assign_directions(grid, board, params, create_seeded_random(seed + 1), seed):
            board.complete = True
            return board

        view = BoardView(board.blocks, (board.screen_width, board.screen_height))
        peeled = {i for layer in greedy_peel(view) for i in layer}
        dropped = [b.id for i, b in enumerate(board.blocks) if i not in peeled]
        logger.warning("Dropping %d blocks left behind a blocking cycle: %s", len(dropped), dropped[:10])
        board.blocks = [b for i, b in enumerate(board.blocks) if i in peeled]
        board.complete = True
        return board

    def _assign_directions(self, grid: Grid, board: Board, params: DifficultyParams, rand, seed: int) -> bool:
        """Lane or depth directions plus the cycle repair; True when solvable."""
        blocks = board.blocks
        center = board.center
        bounds: Bounds = (board.screen_width, board.screen_height)
        if self.strategy is GeneratorStrategy.LANE_UNIFORM:
            assign_directions_by_lane(blocks, center, params, rand)
            adjust_for_removable_ratio(grid, blocks, center, params.initial_removable_ratio)
        else:
            cores = pick_core_centers(
                params.core_count, center, grid.safe_rect.width, grid.safe_rect.height, rand
            )
            assign_directions_by_depth(blocks, center, params, rand, cores)
            split_lane_directions(blocks)
            adjust_for_target_depth(blocks, center, params, bounds)
            split_lane_directions(blocks)

        return ensure_solvable_path(
            grid, blocks, center, bounds, seed,
            attempts=self.solvability_attempts,
            lane_uniform=self.strategy is GeneratorStrategy.LANE_UNIFORM,
        )


class ReverseFillStrategy(BoardStrategy):
    """Dense weighted layout, then directions by peeling (strategy C)."""

    strategy = GeneratorStrategy.REVERSE_FILL

    def target_count(self, params: DifficultyParams, grid: Grid) -> int:
        max_possible = grid.max_possible_blocks
        if max_possible < 2:
            return 0
        fill_target = math.floor(max_possible * params.target_fill_rate)
        if params.force_fill_rate:
            return min(max_possible, fill_target)
        return min(params.block_count, max_possible, fill_target)

    def build(self, params, seed, screen_width, screen_height, deadline) -> Board:
        rand = create_seeded_random(seed)
        board_rect = get_board_rect(screen_width, screen_height, self.layout)
        grid = Grid.build(params.block_size, board_rect, self.sizing)
        profile = create_layout_profile(params, rand, grid)
        count = self.target_count(params, grid)

        blocks = []
        if count:
            blocks = self.assembler.generate_dense_layout(
                grid, count, profile, rand, params, board_rect, deadline
            )
        board = self._board(
            blocks, grid, board_rect, screen_width, screen_height, seed,
            layout_profile=profile.name, target_count=count,
        )
        if board.is_short or not blocks:
            return board

        order = peel_assign_directions(grid, blocks, params, rand, deadline)
        if order is None:
            board.complete = False
            return board
        for index, block in enumerate(order):
            block.depth = index
        board.removal_order = [b.id for b in order]
        return board

    def rebuild(self, board: Board, params: DifficultyParams, seed: int) -> Board:
        """Re-run the peel on an existing geometry without a deadline.

        A peel over any set of dominoes always finds a block with a clear
        lane, so the result is complete and solvable.
        """
        grid = self._occupied_grid(board)
        order = peel_assign_directions(grid, board.blocks, params, create_seeded_random(seed))
        if order is None:
            raise RuntimeError("Peel stalled on a complete geometry")
        for index, block in enumerate(order):
            block.depth = index
        board.removal_order = [b.id for b in order]
        board.complete = True
        return board


class LevelGenerator:
    """Generates levels, retrying until a candidate passes the acceptance gate."""

    def __init__(
        self,
        strategy: GeneratorStrategy = GeneratorStrategy.REVERSE_FILL,
        use_time_seed: bool = False,
        solvability_attempts: int = 6,
        sizing: BlockSizing = DEFAULT_SIZING,
        layout: BoardLayout = DEFAULT_LAYOUT,
    ):
        self.default_strategy = GeneratorStrategy(strategy)
        self.use_time_seed = use_time_seed
        self.solvability_attempts = solvability_attempts
        self.sizing = sizing
        self.layout = layout
        self.assessor = DifficultyAssessor(sizing)
        common = dict(sizing=sizing, layout=layout, solvability_attempts=solvability_attempts)
        self.reverse_fill = ReverseFillStrategy(**common)
        self.strategies: Dict[GeneratorStrategy, BoardStrategy] = {
            GeneratorStrategy.REVERSE_FILL: self.reverse_fill,
            GeneratorStrategy.LANE_UNIFORM: GridDominoStrategy(GeneratorStrategy.LANE_UNIFORM, **common),
            GeneratorStrategy.DEPTH_LAYERED: GridDominoStrategy(GeneratorStrategy.DEPTH_LAYERED, **common),
        }

    def generate(
        self,
        level_number: int,
        screen_width: float,
        screen_height: float,
        strategy: Optional[GeneratorStrategy] = None,
        seed: Optional[int] = None,
        params: Optional[DifficultyParams] = None,
    ) -> GenerationResult:
        """
        Generate a level for a screen size.

        Args:
            level_number: Level number (>= 1).
            screen_width: Screen width in pixels.
            screen_height: Screen height in pixels.
            strategy: Board strategy; defaults to the configured one.
            seed: Base seed; defaults to the level's seed.
            params: Parameter override; defaults to the level curve.

        Returns:
            GenerationResult. The board is never overlapping or unsolvable;
            ``accepted`` tells whether it also passed the acceptance gate.

        Raises:
            ValueError: If the level number or the screen size is invalid.
        """
        start_time = time.time()
        if isinstance(level_number, bool) or not isinstance(level_number, int) or level_number < 1:
            raise ValueError(f"level_number must be an integer >= 1, got {level_number!r}")
        validate_dimensions(screen_width, screen_height)

        strategy = GeneratorStrategy(strategy or self.default_strategy)
        params = params or get_level_params(level_number, strategy)
        base_seed = seed if seed is not None else get_seed(level_number, 0, self.use_time_seed)
        builder = self.strategies[strategy]
        bounds: Bounds = (screen_width, screen_height)
        deadline = Deadline(params.max_generate_time_ms)

        best_valid: Optional[Tuple[Board, BoardEvaluation, DifficultyParams]] = None
        best_geometry: Optional[Board] = None
        attempt_params = params
        attempts = 0

        for attempt in range(max(1, params.max_generate_attempts)):
            if attempt > 0 and deadline.expired():
                logger.debug("Level %d: time budget spent after %d attempts", level_number, attempts)
                break
            attempts += 1
            attempt_seed = base_seed + attempt * ATTEMPT_SEED_STEP
            board = builder.build(attempt_params, attempt_seed, screen_width, screen_height, deadline)

            if board.target_count == 0:
                evaluation = self.assessor.evaluate(board.blocks, bounds, attempt_params, attempt_seed)
                return self._finish(level_number, board, evaluation, attempt_params, False, attempts, start_time)

            if best_geometry is None or _geometry_rank(board) > _geometry_rank(best_geometry):
                best_geometry = board

            if board.is_short:
                smaller = attempt_params.block_size - self.sizing.shrink_step
                if smaller >= self.sizing.min_short_side:
                    logger.warning(
                        "Level %d attempt %d: placed %d of %d blocks, retrying with short side %d",
                        level_number, attempt, board.total, board.target_count, smaller,
                    )
                    attempt_params = with_overrides(attempt_params, block_size=smaller)
                continue
            if not board.complete:
                logger.debug("Level %d attempt %d: direction assignment incomplete", level_number, attempt)
                continue

            evaluation = self.assessor.evaluate(
                board.blocks, bounds, attempt_params, attempt_seed, sector_rect=board.safe_rect
            )
            logger.debug(
                "Level %d attempt %d: %d blocks, score %.1f, avg depth %.2f, removable %.2f, %s",
                level_number, attempt, board.total, evaluation.score, evaluation.depth.avg_depth,
                evaluation.depth.removable_ratio, "ok" if evaluation.verdict.ok else evaluation.verdict.reasons,
            )
            if evaluation.depth.unresolved:
                logger.warning(
                    "Level %d attempt %d rejected: %d blocks behind a blocking cycle",
                    level_number, attempt, len(evaluation.depth.unresolved),
                )
                continue
            if not evaluation.is_valid:
                continue
            if evaluation.verdict.ok:
                return self._finish(level_number, board, evaluation, attempt_params, True, attempts, start_time)
            if best_valid is None or evaluation.verdict.distance < best_valid[1].verdict.distance:
                best_valid = (board, evaluation, attempt_params)

        if best_valid is not None:
            board, evaluation, used_params = best_valid
            logger.warning(
                "Level %d: no candidate accepted in %d attempts, using closest (score %.1f, target %s)",
                level_number, attempts, evaluation.score, used_params.target_difficulty,
            )
            return self._finish(level_number, board, evaluation, used_params, False, attempts, start_time)

        if best_geometry is None:
            raise RuntimeError(f"Level {level_number}: no board was built")
        logger.warning(
            "Level %d: no valid candidate in %d attempts, rebuilding best geometry (%d blocks)",
            level_number, attempts, best_geometry.total,
        )
        board = builder.rebuild(best_geometry, attempt_params, best_geometry.seed)
        evaluation = self.assessor.evaluate(
            board.blocks, bounds, attempt_params, board.seed, sector_rect=board.safe_rect
        )
        return self._finish(level_number, board, evaluation, attempt_params, False, attempts, start_time)

    def _finish(
        self,
        level_number: int,
        board: Board,
        evaluation: BoardEvaluation,
        params: DifficultyParams,
        accepted: bool,
        attempts: int,
        start_time: float,
    ) -> GenerationResult:
        """Write final depths and animal types, then package the result."""
        bounds = (board.screen_width, board.screen_height)
        graph = DependencyGraph.build(board.blocks, bounds, self.assessor.detector)
        for node in graph.nodes.values():
            node.block.depth = node.depth if node.depth is not None else 0

        rand = create_seeded_random(board.seed + 7)
        assign_animal_types(
            board.blocks, params.animal_types, rand,
            group_by_depth=params.strategy is GeneratorStrategy.REVERSE_FILL,
        )

        facing = detect_facing_deadlocks(board.blocks)
        if facing:
            logger.warning("Level %d has %d facing pairs: %s", level_number, len(facing), facing[:3])

        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.info(
            "Generated level %d: %d blocks, score %.1f (%s), %s in %dms",
            level_number, board.total, evaluation.score, evaluation.grade.value,
            "accepted" if accepted else "fallback", elapsed_ms,
        )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("%s", format_board_for_display(board.to_payload()["blocks"]))
        return GenerationResult(
            level_number=level_number,
            board=board,
            evaluation=evaluation,
            params=params,
            accepted=accepted,
            attempts=attempts,
            generation_time_ms=elapsed_ms,
        )


def _geometry_rank(board: Board) -> Tuple[bool, int]:
    """Complete layouts first, then by block count."""
    return (not board.is_short, board.total)


# Singleton instance
_generator = None


def get_generator() -> LevelGenerator:
    """Get or create generator singleton instance."""
    global _generator
    if _generator is None:
        from ..config import get_settings

        settings = get_settings()
        _generator = LevelGenerator(
            strategy=GeneratorStrategy(settings.generator_strategy),
            use_time_seed=settings.use_time_seed,
            solvability_attempts=settings.solvability_attempts,
        )
    return _generator
