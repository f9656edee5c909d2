import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Self, Sequence

import numpy as np
from numpy.typing import NDArray

from VNSynth.delay import DelayBuffer
from VNSynth.processor import SignalProcessor
from VNSynth.utils.dsp import check_mono, check_output_range, db_to_linear
from VNSynth.velvet_noise import (
    Choice,
    ImpulseKernel,
    OVNImpulseLocations,
    Seed,
    VelvetNoiseKernel,
    spawn_rngs,
)

log = logging.getLogger(__name__)

# Late reverberation parameters from
# https://www.dafx.de/paper-archive/2013/papers/55.dafx2013_submission_54.pdf
REFERENCE_SAMPLE_RATE_HZ = 44100

# Stage boundaries in samples, page 5, footnote 4.
BORDER_SAMPLES = (
    4411, 5672, 7214, 9044, 11171, 13602, 16343, 19400, 22779, 26484, 30521,
    34895, 39609, 44669, 50077, 55837, 61954, 68431, 75271, 82477, 90053,
)  # fmt: skip

# Cascaded allpass filters, page 5.
ALLPASS_DELAYS = (1, 64, 140, 209, 442, 555, 630)
ALLPASS_FEEDBACK = 0.618

DELAY_BUFFER_CAPACITY = 100_000


# ----------------------------------------------------------------------------
#
# Allpass Diffusion
#
# ----------------------------------------------------------------------------


class AllpassStage:
    """Schroeder allpass as in the diagram at https://ccrma.stanford.edu/~jos/pasp/Allpass_Two_Combs.html

    b0 == aM == g, so the transfer function is (g + z^-M) / (1 + g z^-M).
    """

    def __init__(self, delay: int, feedback: float):
        if delay < 1:
            raise ValueError(f'Allpass {delay=} must be at least 1 sample.')
        if not abs(feedback) < 1.0:
            raise ValueError(
                f'Allpass {feedback=} is unstable: its magnitude must be less than 1.'
            )
        self.delay = delay
        self.g = feedback
        self._buffer = DelayBuffer(delay)

    def process(self, sample: float) -> float:
        delayed = self._buffer.get(self.delay - 1)
        feedback = sample - self.g * delayed
        self._buffer.push(feedback)
        return delayed + self.g * feedback

    @property
    def coefficients(self) -> tuple[NDArray, NDArray]:
        """The (b, a) coefficients of the equivalent IIR filter."""
        b = np.zeros(self.delay + 1)
        a = np.zeros(self.delay + 1)
        b[0], b[-1] = self.g, 1.0
        a[0], a[-1] = 1.0, self.g
        return b, a


class AllpassCascade:
    """A fixed, ordered chain of allpass stages applied in series."""

    def __init__(self, stages: Sequence[AllpassStage]):
        self.stages = list(stages)

    @classmethod
    def from_config(
        cls, delays: Sequence[int], feedbacks: Sequence[float] | float
    ) -> Self:
        if isinstance(feedbacks, (int, float)):
            feedbacks = [feedbacks] * len(delays)
        if len(delays) != len(feedbacks):
            raise ValueError(
                f'Got {len(delays)} allpass delays but {len(feedbacks)} feedback coefficients.'
            )
        return cls([AllpassStage(d, g) for d, g in zip(delays, feedbacks)])

    def __len__(self) -> int:
        return len(self.stages)

    def process(self, sample: float) -> float:
        for stage in self.stages:
            sample = stage.process(sample)
        return sample

    def __call__(self, input_sig: NDArray) -> NDArray:
        """Diffuse a whole buffer, continuing from the current state."""
        return np.fromiter(
            (self.process(x) for x in input_sig), dtype=np.float64, count=len(input_sig)
        )


# ----------------------------------------------------------------------------
#
# Late Reverb
#
# ----------------------------------------------------------------------------


@dataclass(kw_only=True, slots=True)
class LateReverb(SignalProcessor):
    """The long-tail part of an interleaved velvet noise reverb.

    Twenty velvet noise kernels with decreasing density and gain cover consecutive stages of the tail.
    They are combined into one sparse kernel read from a single delay buffer, and the
    result is diffused by a cascade of allpass filters.

    The stage boundaries and delay buffer capacity are given for 44.1 kHz,
    and are not rescaled for other sample rates.

    Attributes
    ----------
        border_samples : Sequence[int]
            The stage boundaries in samples, one more than the number of stages.
        max_density, min_density : int
            Impulse density of the first and (approximately) last stage.
        max_gain_db, min_gain_db : float
            Gain of the first and (approximately) last stage.
        first_stage_gain_boost_db : float
            Extra gain applied to the first stage only.
        allpass_delays : Sequence[int]
            Delay lengths of the diffusion cascade, in order.
        allpass_feedbacks : Sequence[float] | float
            Feedback coefficients of the diffusion cascade.
        delay_buffer_capacity : int
            Length of the shared delay buffer. Every kernel index must be below it.
        output_gain : float
            Gain applied after diffusion.
        output_ceiling : float
            Output magnitude that must not be reached.
        tail_seconds : float
            Silence appended to the input so the reverb can fade.
        seed : int | np.random.Generator | None
            The seed for the velvet noise kernels.

    """

    border_samples: Sequence[int] = BORDER_SAMPLES
    max_density: int = 100
    min_density: int = 40
    max_gain_db: float = 0.0
    min_gain_db: float = -30.0
    first_stage_gain_boost_db: float = 3.0
    allpass_delays: Sequence[int] = ALLPASS_DELAYS
    allpass_feedbacks: Sequence[float] | float = ALLPASS_FEEDBACK
    delay_buffer_capacity: int = DELAY_BUFFER_CAPACITY
    output_gain: float = 0.2
    output_ceiling: float = 1.0
    tail_seconds: float = 5.0
    seed: Seed = None

    _kernel: ImpulseKernel = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if len(self.border_samples) < 2:
            raise ValueError('At least two border samples are needed to form a stage.')
        if self.border_samples[0] < 0 or np.any(np.diff(self.border_samples) <= 0):
            raise ValueError(
                f'{self.border_samples=} must be non-negative and strictly increasing.'
            )
        if self.min_density <= 0 or self.max_density < self.min_density:
            raise ValueError(
                f'Expected 0 < min_density <= max_density, got {self.min_density} and {self.max_density}.'
            )
        if self.tail_seconds < 0:
            raise ValueError(f'{self.tail_seconds=} cannot be negative.')
        if self.sample_rate_hz != REFERENCE_SAMPLE_RATE_HZ:
            log.warning(
                'Stage boundaries are tuned for %d Hz but the sample rate is %d Hz; they will not be rescaled.',
                REFERENCE_SAMPLE_RATE_HZ,
                self.sample_rate_hz,
            )
        self._kernel = self._generate()
        self._kernel.check_bounds(self.delay_buffer_capacity)
        # validate the cascade configuration up front
        AllpassCascade.from_config(self.allpass_delays, self.allpass_feedbacks)
        log.info(
            'Late reverb with %d stages and %d impulses spanning %d samples',
            self.num_stages,
            len(self._kernel),
            self._kernel.max_index + 1,
        )

    @property
    def num_stages(self) -> int:
        return len(self.border_samples) - 1

    @property
    def kernel(self) -> ImpulseKernel:
        """The combined sparse kernel of every stage."""
        return self._kernel

    @property
    def FIR(self) -> NDArray:
        """Return the dense impulse response of the combined kernel, before diffusion."""
        return self._kernel.FIR

    def stage_density(self, stage_index: int) -> int:
        density_step = (self.max_density - self.min_density) // self.num_stages
        return self.max_density - stage_index * density_step

    def stage_gain(self, stage_index: int) -> float:
        # The paper only states that gains are calculated from the original impulse response,
        # this approximates its figure 8.
        if stage_index == 0:
            return db_to_linear(self.max_gain_db + self.first_stage_gain_boost_db)
        gain_step_db = (self.max_gain_db - self.min_gain_db) / self.num_stages
        return db_to_linear(self.max_gain_db - stage_index * gain_step_db)

    def tail_length_samples(self) -> int:
        return int(round(self.tail_seconds * self.sample_rate_hz))

    def _generate(self) -> ImpulseKernel:
        """Render one kernel per stage and combine them, since they all read the same delay buffer."""
        rngs = spawn_rngs(self.seed, 2 * self.num_stages)
        kernels = []
        for i in range(self.num_stages):
            kernel = VelvetNoiseKernel(
                OVNImpulseLocations(
                    self.stage_density(i), self.sample_rate_hz, rngs[2 * i]
                ),
                Choice.classic(rngs[2 * i + 1]),
            )
            kernels.append(
                kernel.render(
                    self.border_samples[i], self.border_samples[i + 1], self.stage_gain(i)
                )
            )
        return ImpulseKernel.concatenate(kernels)

    def stream(self, samples: Iterable[float]) -> Iterator[float]:
        """Lazily reverberate samples, followed by tail_seconds of the fading tail.

        Every call starts from an empty delay buffer and fresh allpass filters.

        """
        delay_buffer = DelayBuffer(self.delay_buffer_capacity)
        cascade = AllpassCascade.from_config(
            self.allpass_delays, self.allpass_feedbacks
        )
        indexes, gains = self._kernel.indexes, self._kernel.gains

        def padded() -> Iterator[float]:
            yield from samples
            for _ in range(self.tail_length_samples()):
                yield 0.0

        for sample in padded():
            delay_buffer.push(sample)
            output = float(np.dot(delay_buffer.gather(indexes), gains))
            output = cascade.process(output) * self.output_gain
            yield check_output_range(output, self.output_ceiling)

    def __call__(self, input_sig: NDArray) -> NDArray:
        """Reverberate a mono signal, returning len(input_sig) + tail samples."""
        input_sig = np.asarray(input_sig)
        check_mono(input_sig)
        return np.fromiter(
            self.stream(input_sig.tolist()),
            dtype=np.float64,
            count=len(input_sig) + self.tail_length_samples(),
        )
