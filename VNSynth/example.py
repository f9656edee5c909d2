import logging

import numpy as np
import scipy.io.wavfile as wavfile
from numpy.typing import NDArray

from VNSynth.reverb import LateReverb
from VNSynth.texture import EndlessTexture
from VNSynth.utils import timed
from VNSynth.utils.dsp import to_float32

log = logging.getLogger(__name__)


def read_mono(path: str) -> tuple[int, NDArray]:
    """Read a wav file as mono 32 bit floats in [-1, 1)."""
    fs, sig = wavfile.read(path)
    if np.issubdtype(sig.dtype, np.integer):
        info = np.iinfo(sig.dtype)
        sig = (sig.astype(np.float64) - (info.max + info.min + 1) / 2) / (
            (info.max - info.min + 1) / 2
        )
    if sig.ndim != 1:
        log.info('%s has %d channels, using the first one', path, sig.shape[1])
        sig = sig[:, 0]
    return fs, to_float32(sig)


@timed()
def reverberate(in_path: str, out_path: str) -> None:
    fs, sig = read_mono(in_path)
    reverb = LateReverb(sample_rate_hz=fs, seed=1)
    wavfile.write(out_path, fs, to_float32(reverb(sig)))


@timed()
def endless(in_path: str, out_path: str, duration_seconds: float = 10.0) -> None:
    fs, sig = read_mono(in_path)
    texture = EndlessTexture(sample_rate_hz=fs, duration_seconds=duration_seconds, seed=1)
    wavfile.write(out_path, fs, to_float32(texture(sig)))


def main() -> None:
    logging.basicConfig(level=logging.INFO, format='%(name)s %(levelname)s: %(message)s')
    reverberate('audio/guitar.wav', 'audio/guitar_reverb.wav')
    endless('audio/guitar.wav', 'audio/guitar_endless.wav')


if __name__ == '__main__':
    main()
