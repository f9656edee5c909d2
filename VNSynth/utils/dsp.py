import numpy as np
from numpy.typing import NDArray


class OutputRangeError(ValueError):
    """A rendered sample reached the output ceiling."""


def to_float32(input_sig: NDArray) -> NDArray[np.float32]:
    """Return input_sig as an array of 32 bit floats."""
    return input_sig.astype(np.float32) if input_sig.dtype != np.float32 else input_sig


def peak_normalize(input_sig: NDArray) -> None:
    """Normalize input_sig in-place to [-1, 1] using the calculated peaks."""
    if (max_abs := np.max(np.abs(input_sig))) != 0.0:
        input_sig *= 1.0 / max_abs


def db_to_linear(db: float) -> float:
    """Convert a gain in decibels to a linear amplitude factor."""
    return 10.0 ** (db / 20.0)


def check_mono(input_sig: NDArray) -> None:
    """If the input signal is not a mono signal, raise an error."""
    if input_sig.ndim != 1:
        raise ValueError(
            f'Input shape invalid: Expected shape (num samples,), but got shape {input_sig.shape}.'
        )


def check_output_range(sample: float, ceiling: float = 1.0) -> float:
    """Return sample unchanged, or raise an OutputRangeError if its magnitude reaches ceiling.

    Samples are never clipped, so an upstream gain staging problem is not hidden.

    """
    if not abs(sample) < ceiling:
        raise OutputRangeError(
            f'Output sample {sample:.6f} reached the output ceiling of {ceiling}.'
        )
    return sample


def impulse_spread(impulse_indexes: NDArray) -> float:
    """Return the difference between the largest and smallest gap of consecutive impulse indexes."""
    gaps = np.diff(np.asarray(impulse_indexes, dtype=np.float64))
    if gaps.size == 0:
        return 0.0
    return float(np.max(gaps) - np.min(gaps))


def sine_sweep(
    start_freq_hz: float,
    end_freq_hz: float,
    duration_seconds: float,
    sample_rate_hz: int = 44100,
) -> NDArray:
    """Generate a sine sweep signal from start_freq_hz to end_freq_hz over duration_seconds."""
    t = np.linspace(
        0, duration_seconds, int(sample_rate_hz * duration_seconds), endpoint=False
    )
    k = np.log(end_freq_hz / start_freq_hz) / duration_seconds
    sine_sweep = np.sin(2 * np.pi * start_freq_hz * (np.exp(k * t) - 1) / k)
    return sine_sweep.astype(np.float32)
