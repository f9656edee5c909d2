import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Self

import numpy as np
from numpy.typing import NDArray

log = logging.getLogger(__name__)

Seed = int | np.random.Generator | None


def spawn_rngs(seed: Seed, n: int) -> list[np.random.Generator]:
    """Split seed into n independent random generators."""
    if isinstance(seed, np.random.Generator):
        return seed.spawn(n)
    return [np.random.default_rng(s) for s in np.random.SeedSequence(seed).spawn(n)]


def _check_rates(density: float, sample_rate_hz: float) -> None:
    if density <= 0:
        raise ValueError(f'{density=} must be greater than 0 impulses per second.')
    if sample_rate_hz <= 0:
        raise ValueError(f'{sample_rate_hz=} must be greater than 0.')
    if density > sample_rate_hz:
        raise ValueError(
            f'{density=} exceeds {sample_rate_hz=}: there can be at most one impulse per sample.'
        )


# ----------------------------------------------------------------------------
#
# Impulse Locations
#
# ----------------------------------------------------------------------------


@dataclass(slots=True)
class OVNImpulseLocations(Iterator[int]):
    """Original Velvet Noise impulse locations.

    One impulse is placed in every grid cell of td samples, jittered uniformly within the cell.
    The sequence is infinite and strictly increasing.

    Attributes
    ----------
        density : float
            Non-zero impulses per second.
        sample_rate_hz : float
            Total samples per second.
        seed : int | np.random.Generator | None
            The seed (or generator) for the jitter.

    """

    density: float
    sample_rate_hz: float
    seed: Seed = None

    td: int = field(init=False)
    _m: int = field(init=False, default=0)
    _rng: np.random.Generator = field(init=False, repr=False)

    def __post_init__(self) -> None:
        _check_rates(self.density, self.sample_rate_hz)
        self.td = math.floor(self.sample_rate_hz / self.density)
        self._rng = np.random.default_rng(self.seed)

    def __iter__(self) -> Self:
        return self

    def __next__(self) -> int:
        value = self._m * self.td + int(self._rng.integers(self.td))
        self._m += 1
        return value


@dataclass(slots=True)
class ARNImpulseLocations(Iterator[int]):
    """Additive Random Noise impulse locations.

    Each location is the previous one plus a jittered interval.
    delta controls the spread of the interval:
        0.0 gives a perfectly periodic sequence.
        1.0 lets the interval vary over [1, 2 * td_minus_1 + 1).

    """

    density: float
    sample_rate_hz: float
    delta: float = 1.0
    seed: Seed = None

    td_minus_1: float = field(init=False)
    _m_prev: float = field(init=False, default=0.0)
    _rng: np.random.Generator = field(init=False, repr=False)

    def __post_init__(self) -> None:
        _check_rates(self.density, self.sample_rate_hz)
        if not 0.0 <= self.delta <= 1.0:
            raise ValueError(f'{self.delta=} must be in the range [0, 1].')
        self.td_minus_1 = self.sample_rate_hz / self.density - 1.0
        self._rng = np.random.default_rng(self.seed)

    def __iter__(self) -> Self:
        return self

    def __next__(self) -> int:
        value = (
            self._m_prev
            + 1.0
            + self.td_minus_1 * (1.0 - self.delta)
            + 2.0 * self.delta * self.td_minus_1 * self._rng.random()
        )
        self._m_prev = value
        return math.floor(value)


@dataclass(slots=True)
class ChunkedOVNImpulseLocations(Iterator[list[int]]):
    """Regroup an impulse location stream into consecutive windows of chunk_length samples.

    Concatenating every chunk gives back the original stream.
    If relative is True, indexes are offsets from the start of their chunk.

    """

    locations: Iterator[int]
    chunk_length: int
    relative: bool = False

    _base: int = field(init=False, default=0)
    _pending: int | None = field(init=False, default=None)

    def __post_init__(self) -> None:
        if self.chunk_length < 1:
            raise ValueError(f'{self.chunk_length=} must be at least 1 sample.')

    @classmethod
    def from_density(
        cls,
        density: float,
        sample_rate_hz: float,
        chunk_length: int,
        seed: Seed = None,
        relative: bool = False,
    ) -> Self:
        return cls(
            OVNImpulseLocations(density, sample_rate_hz, seed),
            chunk_length,
            relative=relative,
        )

    @property
    def base(self) -> int:
        """Index of the first sample of the next chunk."""
        return self._base

    def __iter__(self) -> Self:
        return self

    def __next__(self) -> list[int]:
        base = self._base
        chunk = []
        self._base += self.chunk_length

        if self._pending is not None:
            # the carried index may skip over whole chunks when chunk_length < td
            if self._pending - base >= self.chunk_length:
                return chunk
            chunk.append(self._pending)
            self._pending = None

        for index in self.locations:
            if index - base < self.chunk_length:
                chunk.append(index)
            else:
                self._pending = index
                break

        if self.relative:
            return [index - base for index in chunk]
        return chunk


# ----------------------------------------------------------------------------
#
# Impulse Signs
#
# ----------------------------------------------------------------------------


@dataclass(slots=True)
class Choice(Iterator[float]):
    """Random sequence of +1.0 / -1.0 samples.

    skew is the probability of +1.0, so the long run mean is 2 * skew - 1.

    """

    skew: float = 0.5
    seed: Seed = None

    _rng: np.random.Generator = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not 0.0 <= self.skew <= 1.0:
            raise ValueError(f'{self.skew=} is not a probability in the range [0, 1].')
        self._rng = np.random.default_rng(self.seed)

    @classmethod
    def classic(cls, seed: Seed = None) -> Self:
        return cls(0.5, seed)

    @classmethod
    def crushed(cls, skew: float, seed: Seed = None) -> Self:
        return cls(skew, seed)

    def __iter__(self) -> Self:
        return self

    def __next__(self) -> float:
        return 1.0 if self._rng.random() < self.skew else -1.0


# ----------------------------------------------------------------------------
#
# Kernels
#
# ----------------------------------------------------------------------------


@dataclass(slots=True)
class ImpulseKernel:
    """A sparse impulse response stored as (index, gain) pairs.

    All indexes not present have a gain of 0.

    """

    indexes: NDArray[np.int64] = field(
        default_factory=lambda: np.zeros(0, dtype=np.int64)
    )
    gains: NDArray[np.float64] = field(
        default_factory=lambda: np.zeros(0, dtype=np.float64)
    )

    def __post_init__(self) -> None:
        self.indexes = np.asarray(self.indexes, dtype=np.int64)
        self.gains = np.asarray(self.gains, dtype=np.float64)
        if self.indexes.shape != self.gains.shape or self.indexes.ndim != 1:
            raise ValueError(
                f'Kernel shape mismatch: {self.indexes.shape} indexes and {self.gains.shape} gains.'
            )
        if np.any(np.diff(self.indexes) <= 0):
            raise ValueError('Kernel indexes must be strictly increasing.')

    @classmethod
    def concatenate(cls, kernels: Iterable['ImpulseKernel']) -> Self:
        """Join kernels rendered over adjoining, non-overlapping ranges into one kernel."""
        kernels = list(kernels)
        if not kernels:
            return cls()
        return cls(
            np.concatenate([k.indexes for k in kernels]),
            np.concatenate([k.gains for k in kernels]),
        )

    def __len__(self) -> int:
        return len(self.indexes)

    def __iter__(self) -> Iterator[tuple[int, float]]:
        return zip(self.indexes.tolist(), self.gains.tolist())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ImpulseKernel):
            return NotImplemented
        return np.array_equal(self.indexes, other.indexes) and np.array_equal(
            self.gains, other.gains
        )

    @property
    def max_index(self) -> int:
        """The last non-zero index, or -1 for an empty kernel."""
        return int(self.indexes[-1]) if len(self) else -1

    @property
    def FIR(self) -> NDArray:
        """Return the dense finite impulse response of length max_index + 1."""
        fir = np.zeros(self.max_index + 1)
        fir[self.indexes] = self.gains
        return fir

    def check_bounds(self, capacity: int) -> None:
        """If any index cannot address a buffer of capacity samples, raise an error."""
        if len(self) and (self.indexes[0] < 0 or self.max_index >= capacity):
            raise IndexError(
                f'Kernel indexes span [{self.indexes[0]}, {self.max_index}] but must lie within [0, {capacity}).'
            )

    def convolve(self, input_sig: NDArray) -> NDArray:
        """Perform the sparse convolution of this kernel with input_sig, truncated to len(input_sig)."""
        sig_len = len(input_sig)
        output_sig = np.zeros(sig_len)
        for index, gain in self:
            if index >= sig_len:
                break
            output_sig[index:] += gain * input_sig[: sig_len - index]
        return output_sig


@dataclass(slots=True)
class VelvetNoiseKernel(Iterator[tuple[int, float]]):
    """Pair an impulse location stream with a sign stream.

    Iterating yields (index, sign) pairs forever; render truncates them to a finite ImpulseKernel.

    """

    locations: Iterator[int]
    signs: Iterator[float]

    def __iter__(self) -> Self:
        return self

    def __next__(self) -> tuple[int, float]:
        return next(self.locations), next(self.signs)

    def render(self, min_index: int, max_index: int, gain: float = 1.0) -> ImpulseKernel:
        """Return the pairs whose index lies in [min_index, max_index), each sign scaled by gain."""
        if min_index < 0 or max_index < min_index:
            raise ValueError(
                f'Invalid kernel range [{min_index}, {max_index}): expected 0 <= min_index <= max_index.'
            )
        indexes, gains = [], []
        previous = -1
        for index, sign in self:
            if index <= previous:
                raise ValueError(
                    f'Impulse locations must be strictly increasing, got {index} after {previous}.'
                )
            previous = index
            if index >= max_index:
                break
            if index >= min_index:
                indexes.append(index)
                gains.append(gain * sign)
        log.debug(
            'Rendered %d impulses in [%d, %d) with gain %.4f',
            len(indexes),
            min_index,
            max_index,
            gain,
        )
        return ImpulseKernel(
            np.array(indexes, dtype=np.int64), np.array(gains, dtype=np.float64)
        )


# ----------------------------------------------------------------------------
#
# Velvet Noise Signals
#
# ----------------------------------------------------------------------------


@dataclass(slots=True)
class VelvetNoiseSignal(Iterator[float]):
    """Audio signal generated by an impulse location stream and a sign stream.

    Yields the next sign at every impulse location, 0.0 everywhere else.

    """

    locations: Iterator[int]
    signs: Iterator[float]

    _n: int = field(init=False, default=0)
    _next_impulse: int = field(init=False)

    def __post_init__(self) -> None:
        self._next_impulse = next(self.locations)

    @classmethod
    def original(cls, density: float, sample_rate_hz: float, seed: Seed = None) -> Self:
        locations_rng, signs_rng = spawn_rngs(seed, 2)
        return cls(
            OVNImpulseLocations(density, sample_rate_hz, locations_rng),
            Choice.classic(signs_rng),
        )

    @classmethod
    def crushed_original(
        cls, density: float, sample_rate_hz: float, skew: float, seed: Seed = None
    ) -> Self:
        locations_rng, signs_rng = spawn_rngs(seed, 2)
        return cls(
            OVNImpulseLocations(density, sample_rate_hz, locations_rng),
            Choice.crushed(skew, signs_rng),
        )

    @classmethod
    def crushed_additive(
        cls,
        density: float,
        sample_rate_hz: float,
        delta: float,
        skew: float,
        seed: Seed = None,
    ) -> Self:
        locations_rng, signs_rng = spawn_rngs(seed, 2)
        return cls(
            ARNImpulseLocations(density, sample_rate_hz, delta, locations_rng),
            Choice.crushed(skew, signs_rng),
        )

    def __iter__(self) -> Self:
        return self

    def __next__(self) -> float:
        value = 0.0
        if self._n == self._next_impulse:
            self._next_impulse = next(self.locations)
            value = next(self.signs)
        self._n += 1
        return value
