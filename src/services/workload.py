"""
Synthetic Workload

Stands in for business logic so traces, duration histograms and profiles have
a non-trivial shape: every round allocates a buffer and sleeps a random number
of whole milliseconds.
"""

import random
import time
from typing import Callable, Optional

from src.core.exceptions import WorkloadError

Workload = Callable[[], None]


class SyntheticWorkload:
    """
    Allocation-and-sleep loop.

    Attributes:
        iterations: Number of rounds
        allocation_bytes: Bytes allocated per round
        max_sleep_ms: Exclusive upper bound of the per-round sleep; 0 disables it
    """

    def __init__(
        self,
        iterations: int = 100,
        allocation_bytes: int = 1024 * 1024,
        max_sleep_ms: int = 10,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if iterations < 0:
            raise WorkloadError(f"iterations must be >= 0, got {iterations}")
        if allocation_bytes < 0:
            raise WorkloadError(f"allocation_bytes must be >= 0, got {allocation_bytes}")
        if max_sleep_ms < 0:
            raise WorkloadError(f"max_sleep_ms must be >= 0, got {max_sleep_ms}")

        self.iterations = iterations
        self.allocation_bytes = allocation_bytes
        self.max_sleep_ms = max_sleep_ms
        self._rng = rng or random.Random()
        self._sleep = sleep

    def __call__(self) -> None:
        for _ in range(self.iterations):
            _buffer = bytearray(self.allocation_bytes)
            if self.max_sleep_ms:
                self._sleep(self._rng.randrange(self.max_sleep_ms) / 1000)
