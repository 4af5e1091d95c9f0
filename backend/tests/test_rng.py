"""Tests for the seeded random stream."""
import pytest
from slideout.core.rng import SeededRandom, create_seeded_random


class TestSeededRandom:
    """Test cases for SeededRandom."""

    def test_same_seed_same_stream(self):
        """Test that two streams with one seed produce identical values."""
        a = create_seeded_random(12345)
        b = create_seeded_random(12345)
        assert [a() for _ in range(50)] == [b() for _ in range(50)]

    def test_different_seeds_differ(self):
        """Test that different seeds give different streams."""
        a = create_seeded_random(1)
        b = create_seeded_random(2)
        assert [a() for _ in range(10)] != [b() for _ in range(10)]

    def test_values_in_unit_interval(self):
        """Test that every value lies in [0, 1)."""
        rand = SeededRandom(987)
        for _ in range(2000):
            value = rand.random()
            assert 0.0 <= value < 1.0

    def test_call_matches_random(self):
        """Test that calling the instance advances the same stream."""
        a = SeededRandom(42)
        b = SeededRandom(42)
        assert a() == b.random()
        assert a.random() == b()

    def test_negative_and_large_seeds(self):
        """Test that seeds outside 32 bits are folded, not rejected."""
        assert SeededRandom(-1)() == SeededRandom(0xFFFFFFFF)()
        assert SeededRandom(2 ** 32 + 5)() == SeededRandom(5)()

    def test_index_bounds(self):
        """Test that index stays inside the sequence."""
        rand = SeededRandom(7)
        for _ in range(500):
            assert 0 <= rand.index(3) < 3

    def test_shuffle_is_permutation_in_place(self):
        """Test that shuffle permutes the list in place and returns it."""
        rand = SeededRandom(99)
        items = list(range(20))
        result = rand.shuffle(items)
        assert result is items
        assert sorted(items) == list(range(20))

    def test_shuffle_deterministic(self):
        """Test that shuffles with one seed agree."""
        assert SeededRandom(5).shuffle(list(range(30))) == SeededRandom(5).shuffle(list(range(30)))

    def test_choice_picks_member(self):
        """Test that choice returns an element of the sequence."""
        rand = SeededRandom(3)
        options = ("a", "b", "c")
        assert all(rand.choice(options) in options for _ in range(100))

    @pytest.mark.parametrize("seed", [0, 1, 10007, 2 ** 31])
    def test_rough_uniformity(self, seed):
        """Test that the mean of many draws is near one half."""
        rand = SeededRandom(seed)
        values = [rand() for _ in range(5000)]
        assert 0.45 < sum(values) / len(values) < 0.55
