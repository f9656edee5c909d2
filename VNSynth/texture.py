"""Endless sound synthesis as described in http://dafx.de/paper-archive/2018/papers/DAFx2018_paper_11.pdf

A fixed number of taps slide along a short source sample.
Taps that run off the end are replaced by new taps at the start with a random sign,
so a finite source produces an indefinitely evolving output.
"""

import logging
from dataclasses import dataclass
from typing import Iterator, Self

import numpy as np
from numpy.typing import NDArray

from VNSynth.processor import SignalProcessor
from VNSynth.utils.dsp import check_mono, check_output_range
from VNSynth.velvet_noise import (
    Choice,
    ImpulseKernel,
    OVNImpulseLocations,
    Seed,
    VelvetNoiseKernel,
    spawn_rngs,
)

log = logging.getLogger(__name__)


class TapSet:
    """Fixed-size arena of (position, gain) taps, updated in place."""

    def __init__(self, positions: NDArray, gains: NDArray):
        self.positions = np.array(positions, dtype=np.int64)
        self.gains = np.array(gains, dtype=np.float64)
        if self.positions.shape != self.gains.shape:
            raise ValueError(
                f'Got {self.positions.shape} tap positions but {self.gains.shape} tap gains.'
            )

    @classmethod
    def from_kernel(cls, kernel: ImpulseKernel) -> Self:
        return cls(kernel.indexes, kernel.gains)

    def __len__(self) -> int:
        return len(self.positions)

    def convolve(self, source: NDArray) -> float:
        """Sum source[position] * gain over every tap."""
        return float(np.dot(source[self.positions], self.gains))

    def advance(self, length: int, signs: Iterator[float]) -> int:
        """Move every tap forward by one sample.

        Taps that pass the last index of a source of length samples are restarted
        at position 0 with the next sign. Returns the number of restarted taps.
        """
        self.positions += 1
        retired = np.flatnonzero(self.positions > length - 1)
        if retired.size:
            self.positions[retired] = 0
            self.gains[retired] = [next(signs) for _ in range(retired.size)]
        return int(retired.size)


class TapDelayEngine(Iterator[float]):
    """A continuously regenerating sparse convolution over a finite source buffer.

    Yields output samples forever. The tap set is seeded by one velvet noise kernel
    rendered over the source, at a density giving num_taps taps on average.

    Parameters
    ----------
    source : NDArray
        The mono source sample.
    sample_rate_hz : int
        The sample rate of the source.
    num_taps : int
        Number of simultaneous taps, the paper suggests 32.
    gain : float
        Output gain.
    output_ceiling : float
        Output magnitude that must not be reached.
    seed : int | np.random.Generator | None
        The seed for the initial kernel and every replacement sign.

    """

    def __init__(
        self,
        source: NDArray,
        sample_rate_hz: int,
        num_taps: int = 32,
        gain: float = 0.3,
        output_ceiling: float = 1.0,
        seed: Seed = None,
    ):
        self.source = np.asarray(source, dtype=np.float64)
        check_mono(self.source)
        if len(self.source) == 0:
            raise ValueError('The source sample is empty.')
        if not 0 < num_taps <= len(self.source):
            raise ValueError(
                f'{num_taps=} must be between 1 and the source length ({len(self.source)}).'
            )
        self.sample_rate_hz = sample_rate_hz
        self.gain = gain
        self.output_ceiling = output_ceiling

        locations_rng, signs_rng, choice_rng = spawn_rngs(seed, 3)
        # num_taps / duration of the source
        density = num_taps * sample_rate_hz / len(self.source)
        initial_taps = VelvetNoiseKernel(
            OVNImpulseLocations(density, sample_rate_hz, locations_rng),
            Choice.classic(signs_rng),
        ).render(0, len(self.source))
        self.taps = TapSet.from_kernel(initial_taps)
        # used for every subsequent tap gain
        self._choice = Choice.classic(choice_rng)
        log.debug(
            'Seeded %d taps over %d source samples (density %.2f)',
            len(self.taps),
            len(self.source),
            density,
        )

    def __iter__(self) -> Self:
        return self

    def __next__(self) -> float:
        output = self.taps.convolve(self.source) * self.gain
        self.taps.advance(len(self.source), self._choice)
        return check_output_range(output, self.output_ceiling)

    def render(self, num_samples: int) -> NDArray:
        """Return the next num_samples output samples."""
        return np.fromiter(self, dtype=np.float64, count=num_samples)


@dataclass(kw_only=True, slots=True)
class EndlessTexture(SignalProcessor):
    """Render duration_seconds of endless texture from a short source sample."""

    num_taps: int = 32
    gain: float = 0.3
    duration_seconds: float = 10.0
    output_ceiling: float = 1.0
    seed: Seed = None

    def __post_init__(self) -> None:
        if self.duration_seconds < 0:
            raise ValueError(f'{self.duration_seconds=} cannot be negative.')

    @property
    def num_output_samples(self) -> int:
        return int(round(self.duration_seconds * self.sample_rate_hz))

    def __call__(self, input_sig: NDArray) -> NDArray:
        engine = TapDelayEngine(
            input_sig,
            self.sample_rate_hz,
            num_taps=self.num_taps,
            gain=self.gain,
            output_ceiling=self.output_ceiling,
            seed=self.seed,
        )
        return engine.render(self.num_output_samples)
