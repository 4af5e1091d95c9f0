"""Wall-clock budget shared by one generation call."""
import time
from typing import Optional


class Deadline:
    """Soft time budget.

    Expiry is a signal to stop searching and keep the best result so far,
    never an error. ``Deadline(None)`` never expires.
    """

    def __init__(self, budget_ms: Optional[float]):
        self.budget_ms = budget_ms
        self.started = time.time()

    @classmethod
    def unbounded(cls) -> "Deadline":
        return cls(None)

    def elapsed_ms(self) -> float:
        return (time.time() - self.started) * 1000

    def expired(self) -> bool:
        return self.budget_ms is not None and self.elapsed_ms() > self.budget_ms
