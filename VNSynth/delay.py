"""Circular history of past input samples."""

import numpy as np
from numpy.typing import NDArray


class DelayBuffer:
    """Fixed-capacity circular buffer addressed by backward offset from the newest sample.

    Usage:
        buffer = DelayBuffer(capacity=100_000)
        buffer.push(sample)
        newest = buffer.get(0)
        oldest = buffer.get(buffer.capacity - 1)

    Offsets outside [0, capacity) raise an IndexError instead of wrapping around.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f'{capacity=} must be at least 1 sample.')
        self.capacity = capacity
        self._buffer = np.zeros(capacity, dtype=np.float64)
        self._cursor = 0

    def __len__(self) -> int:
        return self.capacity

    def push(self, sample: float) -> None:
        """Overwrite the oldest sample and advance the cursor."""
        self._buffer[self._cursor] = sample
        self._cursor = (self._cursor + 1) % self.capacity

    def get(self, offset: int) -> float:
        """Return the sample pushed offset pushes ago.

        offset=0 returns the most recently pushed sample.
        """
        if not 0 <= offset < self.capacity:
            raise IndexError(
                f'Delay offset {offset} is outside the buffer range [0, {self.capacity}).'
            )
        return float(self._buffer[(self._cursor - 1 - offset) % self.capacity])

    __getitem__ = get

    def gather(self, offsets: NDArray[np.int64]) -> NDArray[np.float64]:
        """Vectorized get for offsets already checked against the capacity."""
        return self._buffer[(self._cursor - 1 - offsets) % self.capacity]
