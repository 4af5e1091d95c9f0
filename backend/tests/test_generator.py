"""Tests for level generator."""
import copy
from dataclasses import replace

import pytest

from slideout.core.assembler import find_overlaps
from slideout.core.blocking import detect_facing_deadlocks, find_mixed_lanes, group_lanes
from slideout.core.deadline import Deadline
from slideout.core.generator import GridDominoStrategy, LevelGenerator, ReverseFillStrategy, get_generator
from slideout.core.simulator import has_solvable_path
from slideout.models.level import ANIMAL_TYPES, Axis, Direction, GeneratorStrategy
from slideout.models.leveling_config import get_level_params, with_overrides

SCREEN = (400, 700)


@pytest.fixture
def generator():
    """Create generator instance."""
    return LevelGenerator()


@pytest.fixture(scope="module")
def spike_result():
    """Generate the dense second level once for the module."""
    return LevelGenerator().generate(2, *SCREEN)


def assert_playable(result):
    blocks = result.board.blocks
    assert result.evaluation.solvable
    assert not result.evaluation.overlap
    assert not result.evaluation.depth.unresolved
    assert find_overlaps(blocks, 1.0) == []
    assert len({b.id for b in blocks}) == len(blocks)


class TestLevelGenerator:
    """Test cases for LevelGenerator."""

    def test_first_level(self, generator):
        """Test that the tutorial level is small, shallow and solvable."""
        result = generator.generate(1, *SCREEN)

        assert result.level_number == 1
        assert 0 < result.board.total <= 6
        assert result.attempts >= 1
        assert result.evaluation.depth.avg_depth <= 1.8
        assert_playable(result)

    def test_payload_shape(self, generator):
        """Test the levelData payload of a generated board."""
        payload = generator.generate(1, *SCREEN).board.to_payload()

        assert payload["total"] == len(payload["blocks"])
        for block in payload["blocks"]:
            assert block["width"] > 0 and block["height"] > 0
            assert block["direction"] in (0, 1, 2, 3)
            assert block["type"] in ANIMAL_TYPES
            assert block["depth"] >= 0

    def test_spike_level(self, spike_result):
        """Test that the spike level is dense, deep and solvable."""
        assert spike_result.board.total > 50
        assert 4.5 <= spike_result.evaluation.depth.avg_depth <= 7.5
        assert detect_facing_deadlocks(spike_result.board.blocks) == []
        assert_playable(spike_result)

    def test_spike_removal_order(self, spike_result):
        """Test that a peeled board records a full removal order."""
        order = spike_result.board.removal_order
        assert sorted(order) == sorted(b.id for b in spike_result.board.blocks)

    def test_spike_level_deterministic(self, spike_result):
        """Test that the spike level is reproduced exactly."""
        again = LevelGenerator().generate(2, *SCREEN)
        assert again.board.to_payload() == spike_result.board.to_payload()
        assert again.evaluation.depth.avg_depth == spike_result.evaluation.depth.avg_depth

    def test_zero_width_screen(self, generator):
        """Test that a zero-width screen yields an empty level."""
        result = generator.generate(1, 0, 700)

        assert result.board.total == 0
        assert result.board.to_payload() == {"blocks": [], "total": 0}
        assert not result.accepted

    def test_deterministic(self):
        """Test that one level and screen always give the same board."""
        first = LevelGenerator().generate(1, *SCREEN)
        second = LevelGenerator().generate(1, *SCREEN)
        assert first.board.to_payload() == second.board.to_payload()

    def test_explicit_seed(self, generator):
        """Test that an explicit seed is used as the base seed."""
        result = generator.generate(1, *SCREEN, seed=4242)
        again = generator.generate(1, *SCREEN, seed=4242)
        assert result.board.seed == again.board.seed
        assert result.board.to_payload() == again.board.to_payload()

    def test_params_override(self, generator):
        """Test that explicit parameters replace the level curve."""
        params = with_overrides(get_level_params(1), block_count=4)
        result = generator.generate(1, *SCREEN, params=params)
        assert result.board.total <= 4
        assert result.params.block_count == 4

    @pytest.mark.parametrize("strategy", [GeneratorStrategy.LANE_UNIFORM, GeneratorStrategy.DEPTH_LAYERED])
    def test_grid_strategies(self, generator, strategy):
        """Test that both grid strategies produce playable boards."""
        result = generator.generate(1, *SCREEN, strategy=strategy)

        assert result.board.total > 0
        assert_playable(result)

    @pytest.mark.parametrize("level_number", [0, -1, 1.5, True, "1"])
    def test_invalid_level(self, generator, level_number):
        """Test that invalid level numbers are rejected."""
        with pytest.raises(ValueError):
            generator.generate(level_number, *SCREEN)

    @pytest.mark.parametrize("width,height", [(-1, 700), (400, float("nan")), (400, float("inf")), ("400", 700)])
    def test_invalid_dimensions(self, generator, width, height):
        """Test that invalid screen sizes are rejected."""
        with pytest.raises(ValueError):
            generator.generate(1, width, height)

    def test_result_to_dict(self, generator):
        """Test the serialized generation result."""
        data = generator.generate(1, *SCREEN).to_dict()

        assert data["level_number"] == 1
        assert data["level_data"]["total"] == len(data["level_data"]["blocks"])
        assert data["evaluation"]["solvable"] is True
        assert data["params"]["strategy"] == "reverse_fill"

    def test_get_generator_singleton(self):
        """Test that get_generator returns a shared instance."""
        assert get_generator() is get_generator()


class TestReverseFillStrategy:
    """Test cases for the reverse-fill board strategy."""

    def test_target_count_respects_fill_rate(self):
        """Test the block count target against the grid capacity."""
        from slideout.core.grid import Grid, get_board_rect

        strategy = ReverseFillStrategy()
        params = get_level_params(2)
        grid = Grid.build(params.block_size, get_board_rect(*SCREEN), strategy.sizing)
        count = strategy.target_count(params, grid)
        assert 0 < count <= grid.max_possible_blocks

    def test_rebuild_completes_board(self, spike_result):
        """Test that rebuilding a finished geometry gives a full order."""
        strategy = ReverseFillStrategy()
        board = strategy.rebuild(copy.deepcopy(spike_result.board), spike_result.params, 99)

        assert board.complete
        assert len(board.removal_order) == board.total


def jam_longest_lane(assign):
    """Run the real assignment, then point the halves of the longest lane at each other."""
    def wrapped(grid, board, params, rand, seed):
        assign(grid, board, params, rand, seed)
        (axis, _), members = max(group_lanes(board.blocks).items(), key=lambda item: len(item[1]))
        first, second = (Direction.DOWN, Direction.UP) if axis is Axis.ROW else (Direction.RIGHT, Direction.LEFT)
        half = max(1, len(members) // 2)
        for index, block in enumerate(members):
            block.set_direction(first if index < half else second)
        return False
    return wrapped


def mark_incomplete(build):
    def wrapped(*args, **kwargs):
        board = build(*args, **kwargs)
        board.complete = False
        return board
    return wrapped


class TestGridDominoStrategy:
    """Test cases for the grid domino strategies."""

    @pytest.mark.parametrize("level_number", [1, 7, 25, 70])
    def test_lane_uniform_levels(self, generator, level_number):
        """Test that lane-uniform levels never mix directions in a lane."""
        result = generator.generate(level_number, *SCREEN, strategy=GeneratorStrategy.LANE_UNIFORM)

        assert result.board.total > 0
        assert not result.board.is_short
        assert find_mixed_lanes(result.board.blocks) == []
        assert_playable(result)

    @pytest.mark.parametrize("strategy", [GeneratorStrategy.LANE_UNIFORM, GeneratorStrategy.DEPTH_LAYERED])
    def test_fallback_keeps_strategy(self, generator, monkeypatch, strategy):
        """Test that the no-valid-candidate fallback keeps the requested strategy."""
        builder = generator.strategies[strategy]
        monkeypatch.setattr(builder, "build", mark_incomplete(builder.build))

        result = generator.generate(7, *SCREEN, strategy=strategy)

        assert not result.accepted
        assert result.params.strategy is strategy
        assert result.board.removal_order == []
        assert_playable(result)
        if strategy is GeneratorStrategy.LANE_UNIFORM:
            assert find_mixed_lanes(result.board.blocks) == []

    def test_rebuild_drops_deadlocked_blocks(self, generator, monkeypatch):
        """Test that blocks stuck in a cycle are dropped and the rest stays solvable."""
        result = generator.generate(7, *SCREEN, strategy=GeneratorStrategy.LANE_UNIFORM)
        board = copy.deepcopy(result.board)
        before = board.total
        strategy = GridDominoStrategy(GeneratorStrategy.LANE_UNIFORM)
        monkeypatch.setattr(strategy, "_assign_directions", jam_longest_lane(strategy._assign_directions))

        board = strategy.rebuild(board, result.params, board.seed)

        assert board.complete
        assert 0 < board.total < before
        assert find_mixed_lanes(board.blocks) == []
        assert has_solvable_path(board.blocks, SCREEN, seed=3)

    def test_shortfall_tolerance(self, generator):
        """Test that a board within the shortfall tolerance is not short."""
        board = generator.generate(1, *SCREEN).board
        blocks = [copy.deepcopy(board.blocks[0]) for _ in range(9)]

        within = replace(board, blocks=blocks, target_count=10, shortfall_tolerance=0.1)
        assert within.min_count == 9
        assert not within.is_short
        assert replace(within, blocks=blocks[:8]).is_short
        assert replace(within, shortfall_tolerance=0.0).is_short


class TestDeadline:
    """Test cases for Deadline."""

    def test_unbounded_never_expires(self):
        """Test that a deadline without a budget never expires."""
        assert not Deadline.unbounded().expired()
        assert not Deadline(None).expired()

    def test_spent_budget(self):
        """Test that a negative budget is already spent."""
        assert Deadline(-1).expired()

    def test_generous_budget(self):
        """Test that a long budget is not spent right away."""
        deadline = Deadline(60000)
        assert not deadline.expired()
        assert deadline.elapsed_ms() >= 0
