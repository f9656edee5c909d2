import os
import tempfile
from unittest import TestCase

import numpy as np
from scipy import signal

from VNSynth.reverb import LateReverb
from VNSynth.utils import dsp, plot
from VNSynth.velvet_noise import Choice, OVNImpulseLocations, VelvetNoiseKernel


class PlotTestCase(TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.plot_dir = self._tmp.name

    def tearDown(self):
        self._tmp.cleanup()

    def test_plot_signal(self):
        x = np.random.uniform(size=100)
        path = plot.plot_signal(x, plot_dir=self.plot_dir)
        self.assertTrue(os.path.isfile(path))

    def test_plot_kernel(self):
        kernel = VelvetNoiseKernel(
            OVNImpulseLocations(2000, 96000, seed=1), Choice.classic(seed=1)
        ).render(0, 4800)
        path = plot.plot_kernel(kernel, plot_dir=self.plot_dir)
        self.assertTrue(os.path.isfile(path))

    def test_plot_reverb(self):
        reverb = LateReverb(sample_rate_hz=44100, seed=1)
        path = plot.plot_kernel(
            reverb.kernel, title='Late Reverb Kernel', plot_dir=self.plot_dir
        )
        self.assertTrue(os.path.isfile(path))
        path = plot.plot_signal(
            reverb.FIR, title='Late Reverb FIR', plot_dir=self.plot_dir
        )
        self.assertTrue(os.path.isfile(path))

    def test_plot_spectrogram(self):
        fs = 16000
        sweep = dsp.sine_sweep(
            start_freq_hz=20,
            end_freq_hz=8000,
            duration_seconds=2,
            sample_rate_hz=fs,
        )
        path = plot.plot_spectrogram(
            signal.spectrogram(sweep, fs=fs)[-1],
            title='Sine Sweep Signal',
            plot_dir=self.plot_dir,
        )
        self.assertTrue(os.path.isfile(path))
