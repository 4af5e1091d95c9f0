"""Monte-Carlo solvability checks over a removed-flag overlay."""
import logging
from typing import List, Optional, Sequence

from ..models.level import Block
from .blocking import Bounds, DirectionDetector
from .rng import create_seeded_random

logger = logging.getLogger(__name__)


class BoardView:
    """Index-based simulation view over an immutable block list.

    Obstructors are resolved once; a trial only flips entries in ``removed``.
    Every block starts present regardless of its own ``is_removed`` flag.
    """

    def __init__(
        self,
        blocks: Sequence[Block],
        bounds: Bounds,
        detector: Optional[DirectionDetector] = None,
    ):
        self.blocks = list(blocks)
        self.bounds = bounds
        detector = detector or DirectionDetector()
        index_of = {id(b): i for i, b in enumerate(self.blocks)}
        working = [b.copy() for b in self.blocks]
        for b in working:
            b.is_removed = False
            b.visible = True
        working_index = {id(b): i for i, b in enumerate(working)}

        self.obstructors: List[List[int]] = []
        self.stuck_forever: List[bool] = []
        for block in working:
            found, escapes = detector.find_obstructors(block, working, bounds)
            self.obstructors.append([working_index[id(o)] for o in found])
            self.stuck_forever.append(not escapes)
        self._index_of = index_of
        self.removed = [False] * len(self.blocks)

    def __len__(self) -> int:
        return len(self.blocks)

    def reset(self) -> None:
        self.removed = [False] * len(self.blocks)

    def index_of(self, block: Block) -> int:
        return self._index_of[id(block)]

    def is_blocked(self, index: int) -> bool:
        if self.stuck_forever[index]:
            return True
        removed = self.removed
        return any(not removed[j] for j in self.obstructors[index])

    def removable(self) -> List[int]:
        """Indices of present blocks that can leave right now."""
        return [i for i in range(len(self.blocks)) if not self.removed[i] and not self.is_blocked(i)]

    def remove(self, index: int) -> None:
        self.removed[index] = True

    @property
    def remaining(self) -> int:
        return self.removed.count(False)


def run_trial(view: BoardView, seed: int) -> bool:
    """Remove random unblocked blocks until the board is empty or stuck."""
    rand = create_seeded_random(seed)
    view.reset()
    remaining = len(view)
    while remaining:
        candidates = view.removable()
        if not candidates:
            return False
        view.remove(candidates[rand.index(len(candidates))])
        remaining -= 1
    return True


def has_solvable_path(
    blocks: Sequence[Block],
    bounds: Bounds,
    seed: int,
    attempts: int = 6,
    view: Optional[BoardView] = None,
) -> bool:
    """True if any of ``attempts`` seeded random removal orders clears the board."""
    if not blocks:
        return True
    view = view or BoardView(blocks, bounds)
    for attempt in range(attempts):
        if run_trial(view, seed + attempt * 97 + 11):
            return True
    return False


def estimate_deadlock_probability(
    blocks: Sequence[Block],
    bounds: Bounds,
    seed: int,
    runs: int = 12,
    view: Optional[BoardView] = None,
) -> float:
    """Fraction of random removal orders that get stuck."""
    if not blocks or runs <= 0:
        return 0.0
    view = view or BoardView(blocks, bounds)
    stuck = sum(1 for r in range(runs) if not run_trial(view, seed + r * 97 + 11))
    return stuck / runs


def greedy_peel(view: BoardView) -> List[List[int]]:
    """Remove every unblocked block layer by layer.

    Returns the layers in order. Blocks left over (a cycle) are not included.
    """
    view.reset()
    layers = []
    while True:
        layer = view.removable()
        if not layer:
            break
        for i in layer:
            view.remove(i)
        layers.append(layer)
    return layers
