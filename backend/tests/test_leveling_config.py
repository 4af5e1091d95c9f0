"""Tests for the level parameter curves."""
import pytest

from slideout.models import leveling_config
from slideout.models.level import DirectionMode, GeneratorStrategy, HoleTemplate
from slideout.models.leveling_config import (
    LANE_PHASES,
    MAX_TARGET_DIFFICULTY,
    cycle_position,
    generate_level_progression,
    get_complete_level_config,
    get_lane_params,
    get_lane_phase,
    get_level_params,
    get_leveling_config,
    get_reverse_fill_params,
    get_seed,
    is_relief_level,
    with_overrides,
)


class TestSawtooth:
    """Test cases for the five-level cycle."""

    def test_cycle_positions(self):
        """Test that positions run 0-4 and wrap."""
        assert [cycle_position(n) for n in range(1, 12)] == [0, 1, 2, 3, 4, 0, 1, 2, 3, 4, 0]

    @pytest.mark.parametrize("level_number", [5, 10, 15, 100])
    def test_relief_levels(self, level_number):
        """Test that every fifth level is a relief level."""
        assert is_relief_level(level_number)
        assert not is_relief_level(level_number - 1)


class TestReverseFillCurve:
    """Test cases for the reverse-fill curve."""

    def test_tutorial_level(self):
        """Test the hand-tuned first level."""
        params = get_reverse_fill_params(1)
        assert params.phase_name == "tutorial"
        assert params.block_count == 6
        assert params.block_size == 28
        assert params.animal_types == 3
        assert params.depth_target_range == (0.0, 1.8)
        assert params.removable_ratio_target == (0.6, 1.0)
        assert params.target_difficulty == 10
        assert params.strategy is GeneratorStrategy.REVERSE_FILL

    def test_spike_level(self):
        """Test the deliberately hard second level."""
        params = get_reverse_fill_params(2)
        assert params.phase_name == "spike"
        assert params.block_count == 120
        assert params.depth_factor == 0.9
        assert params.depth_target_range == (4.5, 7.5)
        assert params.removable_ratio_target == (0.08, 0.22)
        assert params.target_fill_rate == 0.85
        assert params.force_fill_rate
        assert params.use_edge_entries

    def test_ramp_start(self):
        """Test the first ramp level."""
        params = get_reverse_fill_params(3)
        assert params.phase_name == "growth"
        assert params.block_count == 126
        assert params.depth_factor == pytest.approx(0.92)
        assert params.target_difficulty == 82
        assert params.depth_target_range == pytest.approx((3.8, 6.2))
        assert params.removable_ratio_target == pytest.approx((0.15, 0.25))
        assert params.animal_types == 4
        assert params.target_fill_rate == pytest.approx(0.83)
        assert not params.is_relief_level

    def test_relief_level_is_easier(self):
        """Test that a relief level has fewer blocks than its neighbours."""
        relief = get_reverse_fill_params(5)
        assert relief.is_relief_level
        assert relief.block_count == 120
        assert relief.block_count < get_reverse_fill_params(4).block_count
        assert relief.depth_factor >= 0.85

    @pytest.mark.parametrize("level_number", [3, 10, 53, 54, 200, 1000])
    def test_ramp_is_clamped(self, level_number):
        """Test that ramp values stay inside their bounds."""
        params = get_reverse_fill_params(level_number)
        assert 120 <= params.block_count <= 200
        assert 0.85 <= params.depth_factor <= 0.95
        assert params.target_difficulty <= MAX_TARGET_DIFFICULTY
        assert params.target_fill_rate <= 0.9
        low, high = params.removable_ratio_target
        assert 0.06 <= low < high <= 0.28

    def test_ramp_saturates(self):
        """Test that the ramp stops growing after level 53."""
        assert get_reverse_fill_params(58).block_count == get_reverse_fill_params(63).block_count
        assert get_reverse_fill_params(58).depth_target_range == get_reverse_fill_params(63).depth_target_range

    def test_animal_types_grow(self):
        """Test that a fifth animal appears from level 10."""
        assert get_reverse_fill_params(9).animal_types == 4
        assert get_reverse_fill_params(10).animal_types == 5


class TestLaneCurve:
    """Test cases for the lane curve."""

    def test_first_level(self):
        """Test the opening lane level."""
        params = get_lane_params(1)
        assert params.phase_name == "tutorial"
        assert params.block_count == 92
        assert params.initial_removable_ratio == pytest.approx(0.36)
        assert params.lane_exit_bias == pytest.approx(0.90)
        assert params.animal_types == 3
        assert params.hole_rate_range == pytest.approx((0.09, 0.12))
        assert params.hole_template == HoleTemplate.SPARSE.value
        assert params.target_avg_depth == pytest.approx(1.5)
        assert params.target_max_depth == 4
        assert params.direction_mode is DirectionMode.SPLIT
        assert params.core_count == 1

    @pytest.mark.parametrize("level_number,name", [
        (1, "tutorial"), (2, "tutorial"), (3, "warmup"), (8, "warmup"),
        (9, "growth"), (19, "challenge"), (36, "master"), (61, "legend"), (500, "legend"),
    ])
    def test_phases(self, level_number, name):
        """Test the phase boundaries."""
        phase, _ = get_lane_phase(level_number)
        assert phase.name == name
        assert get_lane_params(level_number).phase_name == name

    def test_phase_start(self):
        """Test that a phase starts right after the previous one ends."""
        _, start = get_lane_phase(5)
        assert start == 3
        _, start = get_lane_phase(70)
        assert start == 61

    def test_sawtooth_block_count(self):
        """Test the sawtooth inside the warmup phase."""
        assert get_lane_params(3).block_count == 135
        assert get_lane_params(5).block_count < get_lane_params(4).block_count

    def test_relief_uses_peel(self):
        """Test that relief levels use the peel mode."""
        assert get_lane_params(5).direction_mode is DirectionMode.PEEL
        assert get_lane_params(10).direction_mode is DirectionMode.PEEL

    @pytest.mark.parametrize("level_number", [1, 7, 20, 45, 80, 300])
    def test_lane_bounds(self, level_number):
        """Test that lane values stay inside their bounds."""
        params = get_lane_params(level_number)
        assert 80 <= params.block_count <= 220
        assert 0.10 <= params.initial_removable_ratio <= 0.45
        assert 0.15 <= params.lane_exit_bias <= 0.95
        assert params.target_avg_depth >= 1.0
        assert params.hole_template in params.hole_templates

    def test_core_count_grows(self):
        """Test that cores multiply in later levels."""
        assert get_lane_params(9).core_count == 1
        assert get_lane_params(10).core_count == 2
        assert get_lane_params(30).core_count == 3
        assert get_lane_params(30).cross_core_block_ratio == 0.1

    def test_phases_are_ordered(self):
        """Test that only the last phase is open-ended."""
        limits = [p.max_level for p in LANE_PHASES]
        assert limits[-1] is None
        assert limits[:-1] == sorted(limits[:-1])


class TestCurveDispatch:
    """Test cases for strategy dispatch and overrides."""

    def test_default_is_reverse_fill(self):
        """Test that the default strategy uses the reverse-fill curve."""
        assert get_level_params(3) == get_reverse_fill_params(3)

    def test_lane_strategies(self):
        """Test that both lane strategies use the lane curve."""
        lane = get_level_params(4, GeneratorStrategy.LANE_UNIFORM)
        depth = get_level_params(4, "depth_layered")
        assert lane.strategy is GeneratorStrategy.LANE_UNIFORM
        assert depth.strategy is GeneratorStrategy.DEPTH_LAYERED
        assert lane.block_count == depth.block_count

    def test_unknown_strategy(self):
        """Test that an unknown strategy name is rejected."""
        with pytest.raises(ValueError):
            get_level_params(1, "spiral")

    @pytest.mark.parametrize("bad", [0, -3, 1.5, True, "2", None])
    def test_invalid_level(self, bad):
        """Test that non-positive or non-integer levels are rejected."""
        with pytest.raises(ValueError):
            get_reverse_fill_params(bad)
        with pytest.raises(ValueError):
            get_lane_params(bad)

    def test_with_overrides(self):
        """Test that overrides copy instead of mutating."""
        params = get_reverse_fill_params(3)
        changed = with_overrides(params, block_count=10, animal_types=2)
        assert changed.block_count == 10
        assert changed.animal_types == 2
        assert params.block_count == 126
        assert changed.target_difficulty == params.target_difficulty


class TestSeeds:
    """Test cases for level seeds."""

    def test_fixed_seed(self):
        """Test the deterministic seed formula."""
        assert get_seed(1) == 20014
        assert get_seed(1, attempt=1) == 20111
        assert get_seed(7) == get_seed(7)

    def test_time_seed(self, monkeypatch):
        """Test that the time seed mixes in the clock."""
        monkeypatch.setattr(leveling_config.time, "time", lambda: 1234.5)
        assert get_seed(1, use_time_seed=True) == 20014 + 34500


class TestIntrospection:
    """Test cases for the config and progression views."""

    def test_leveling_config(self):
        """Test the static curve description."""
        config = get_leveling_config()
        assert config["cycle_length"] == 5
        assert config["reverse_fill"]["level_1"]["block_count"] == 6
        assert config["reverse_fill"]["level_1"]["strategy"] == "reverse_fill"
        assert len(config["lane"]["phases"]) == len(LANE_PHASES)
        assert config["lane"]["phases"][0]["name"] == "tutorial"

    def test_complete_level_config(self):
        """Test both curves resolved for one level."""
        config = get_complete_level_config(5)
        assert config["level_number"] == 5
        assert config["is_relief_level"] is True
        assert config["lane_phase"] == "warmup"
        assert config["reverse_fill"]["block_count"] == 120
        assert config["lane"]["direction_mode"] == "peel"

    def test_progression(self):
        """Test a ten-level plan."""
        plan = generate_level_progression(1, 10)
        assert [p["level_number"] for p in plan] == list(range(1, 11))
        assert [p["is_relief_level"] for p in plan].count(True) == 2
        assert plan[0]["block_count"] == 6
        assert plan[2]["target_difficulty"] == 82
