import os

import matplotlib.pyplot as plt
import numpy as np
from numpy.typing import NDArray

from VNSynth.velvet_noise import ImpulseKernel

PLOT_DIR = './tests/plots'


def _save(title: str, plot_dir: str) -> str:
    os.makedirs(plot_dir, exist_ok=True)
    path = os.path.join(plot_dir, f'{title}.png')
    plt.savefig(path)
    plt.close()
    return path


def plot_signal(
    input_sig: NDArray, title: str = 'Signal', plot_dir: str = PLOT_DIR
) -> str:
    """Plot the time domain input signal."""
    plt.figure()
    plt.plot(input_sig)
    plt.xlabel('Samples')
    plt.ylabel('Amplitude')
    plt.title(title)
    return _save(title, plot_dir)


def plot_kernel(
    kernel: ImpulseKernel, title: str = 'Velvet Noise Kernel', plot_dir: str = PLOT_DIR
) -> str:
    """Stem plot of the non-zero impulses of a sparse kernel."""
    plt.figure(figsize=(15, 6))
    plt.stem(kernel.indexes, kernel.gains, markerfmt=' ', basefmt=' ')
    plt.xlabel('Sample index')
    plt.ylabel('Gain')
    plt.title(title)
    return _save(title, plot_dir)


def plot_spectrogram(
    spectrogram: NDArray,
    title: str = 'Spectrogram',
    plot_dir: str = PLOT_DIR,
) -> str:
    """Plot the spectrogram of the input signal."""
    plt.figure(figsize=(15, 6))
    plt.imshow(
        10 * np.log10(spectrogram + 1e-10),
        aspect='auto',
        cmap='Blues',
        origin='lower',
    )
    plt.colorbar(label='Magnitude (dB)')
    plt.xlabel('Time Frames')
    plt.ylabel('Frequency Bins')
    plt.title(title)
    return _save(title, plot_dir)
