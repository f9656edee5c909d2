from dataclasses import dataclass
from typing import Protocol

from numpy.typing import NDArray


@dataclass
class SignalProcessor(Protocol):
    sample_rate_hz: int

    def __call__(self, input_sig: NDArray) -> NDArray:
        raise NotImplementedError
