"""Deterministic pseudo-random stream (mulberry32)."""
from typing import List, Sequence, TypeVar

T = TypeVar("T")

MASK32 = 0xFFFFFFFF
GOLDEN_INCREMENT = 0x6D2B79F5


def _imul(a: int, b: int) -> int:
    """32-bit integer multiply, wrapping like a C uint32."""
    return (a * b) & MASK32


class SeededRandom:
    """Seeded stream of floats in [0, 1).

    The same seed and the same sequence of calls always reproduce the same
    values. Calling the instance is equivalent to calling ``random()``.
    """

    def __init__(self, seed: int):
        self.seed = int(seed)
        self._state = ((self.seed & MASK32) + GOLDEN_INCREMENT) & MASK32

    def random(self) -> float:
        self._state = (self._state + GOLDEN_INCREMENT) & MASK32
        t = self._state
        x = _imul(t ^ (t >> 15), 1 | t)
        x ^= (x + _imul(x ^ (x >> 7), 61 | x)) & MASK32
        return ((x ^ (x >> 14)) & MASK32) / 4294967296.0

    __call__ = random

    def index(self, length: int) -> int:
        """Uniform index into a sequence of the given length."""
        return int(self.random() * length)

    def choice(self, items: Sequence[T]) -> T:
        return items[self.index(len(items))]

    def shuffle(self, items: List[T]) -> List[T]:
        """Fisher-Yates shuffle in place. Returns the same list."""
        for i in range(len(items) - 1, 0, -1):
            j = int(self.random() * (i + 1))
            items[i], items[j] = items[j], items[i]
        return items


def create_seeded_random(seed: int) -> SeededRandom:
    """Create a reproducible random stream for ``seed``."""
    return SeededRandom(seed)
