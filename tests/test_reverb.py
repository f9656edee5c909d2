from unittest import TestCase

import numpy as np
from scipy import signal

from VNSynth.reverb import (
    ALLPASS_DELAYS,
    ALLPASS_FEEDBACK,
    BORDER_SAMPLES,
    AllpassCascade,
    AllpassStage,
    LateReverb,
)
from VNSynth.utils.dsp import OutputRangeError, db_to_linear


class AllpassTestCase(TestCase):
    def test__invalid_stage(self):
        with self.assertRaises(ValueError):
            AllpassStage(0, 0.5)
        with self.assertRaises(ValueError):
            AllpassStage(10, 1.0)
        with self.assertRaises(ValueError):
            AllpassStage(10, -1.2)

    def test__stage_matches_transfer_function(self):
        input_sig = np.random.default_rng(0).uniform(-1, 1, 2000)
        for delay in (1, 2, 64):
            stage = AllpassStage(delay, ALLPASS_FEEDBACK)
            output_sig = np.array([stage.process(x) for x in input_sig])
            expected = signal.lfilter(*stage.coefficients, input_sig)
            self.assertTrue(np.allclose(output_sig, expected))

    def test__unit_energy(self):
        stage = AllpassStage(64, ALLPASS_FEEDBACK)
        impulse = np.zeros(64 * 60)
        impulse[0] = 1.0
        response = np.array([stage.process(x) for x in impulse])
        self.assertAlmostEqual(np.sum(np.square(response)), 1.0, places=6)

    def test__bounded(self):
        g = 0.95
        stage = AllpassStage(3, g)
        input_sig = np.random.default_rng(1).uniform(-1, 1, 50_000)
        output_sig = np.array([stage.process(x) for x in input_sig])
        self.assertLessEqual(np.max(np.abs(output_sig)), 1 + 2 * g)
        self.assertTrue(np.all(np.isfinite(output_sig)))

    def test__cascade(self):
        cascade = AllpassCascade.from_config(ALLPASS_DELAYS, ALLPASS_FEEDBACK)
        self.assertEqual(len(cascade), 7)
        input_sig = np.random.default_rng(2).uniform(-1, 1, 3000)
        expected = input_sig
        for delay in ALLPASS_DELAYS:
            expected = signal.lfilter(
                *AllpassStage(delay, ALLPASS_FEEDBACK).coefficients, expected
            )
        # split in two to check that state persists between calls
        output_sig = np.concatenate((cascade(input_sig[:1000]), cascade(input_sig[1000:])))
        self.assertTrue(np.allclose(output_sig, expected))

    def test__cascade_configuration(self):
        with self.assertRaises(ValueError):
            AllpassCascade.from_config((1, 64), (0.5,))
        cascade = AllpassCascade.from_config((1, 64), (0.5, -0.3))
        self.assertEqual([s.g for s in cascade.stages], [0.5, -0.3])


class LateReverbTestCase(TestCase):
    def test__kernel(self):
        reverb = LateReverb(sample_rate_hz=44100, seed=1)
        kernel = reverb.kernel
        self.assertEqual(reverb.num_stages, 20)
        self.assertTrue(np.all(kernel.indexes >= BORDER_SAMPLES[0]))
        self.assertTrue(np.all(kernel.indexes < BORDER_SAMPLES[-1]))
        self.assertTrue(np.all(np.diff(kernel.indexes) > 0))
        for i in range(reverb.num_stages):
            in_stage = (kernel.indexes >= BORDER_SAMPLES[i]) & (
                kernel.indexes < BORDER_SAMPLES[i + 1]
            )
            self.assertTrue(
                np.allclose(np.abs(kernel.gains[in_stage]), reverb.stage_gain(i))
            )
        self.assertEqual(reverb.FIR.shape, (kernel.max_index + 1,))

    def test__stage_parameters(self):
        reverb = LateReverb(sample_rate_hz=44100, seed=1)
        self.assertEqual(reverb.stage_density(0), 100)
        self.assertEqual(reverb.stage_density(19), 43)
        self.assertAlmostEqual(reverb.stage_gain(0), db_to_linear(3.0))
        self.assertAlmostEqual(reverb.stage_gain(1), db_to_linear(-1.5))
        self.assertAlmostEqual(reverb.stage_gain(19), db_to_linear(-28.5))

    def test__seed(self):
        a = LateReverb(sample_rate_hz=44100, seed=3)
        b = LateReverb(sample_rate_hz=44100, seed=3)
        c = LateReverb(sample_rate_hz=44100, seed=4)
        self.assertEqual(a.kernel, b.kernel)
        self.assertNotEqual(a.kernel, c.kernel)

    def test__reverb_matches_reference(self):
        reverb = LateReverb(sample_rate_hz=44100, tail_seconds=0.1, seed=1)
        input_sig = np.random.default_rng(0).uniform(-0.1, 0.1, 5000)
        output_sig = reverb(input_sig)
        self.assertEqual(output_sig.shape, (5000 + 4410,))

        expected = reverb.kernel.convolve(np.concatenate((input_sig, np.zeros(4410))))
        for delay in ALLPASS_DELAYS:
            expected = signal.lfilter(
                *AllpassStage(delay, ALLPASS_FEEDBACK).coefficients, expected
            )
        expected *= reverb.output_gain
        self.assertTrue(np.allclose(output_sig, expected))
        self.assertGreater(np.max(np.abs(output_sig)), 0.0)
        self.assertLess(np.max(np.abs(output_sig)), 1.0)

    def test__stream(self):
        reverb = LateReverb(sample_rate_hz=44100, tail_seconds=0.0, seed=1)
        impulse = [1.0] + [0.0] * 4999
        stream = list(reverb.stream(impulse))
        self.assertEqual(len(stream), 5000)
        # nothing arrives before the first stage
        self.assertTrue(np.all(np.array(stream[: reverb.kernel.indexes[0]]) == 0.0))
        self.assertEqual(stream, reverb(np.array(impulse)).tolist())

    def test__output_range(self):
        reverb = LateReverb(sample_rate_hz=44100, tail_seconds=0.0, output_gain=100.0, seed=1)
        with self.assertRaises(OutputRangeError):
            reverb(np.ones(6000))

    def test__capacity(self):
        with self.assertRaises(IndexError):
            LateReverb(sample_rate_hz=44100, delay_buffer_capacity=50_000, seed=1)

    def test__invalid_configuration(self):
        with self.assertRaises(ValueError):
            LateReverb(sample_rate_hz=44100, border_samples=(100,))
        with self.assertRaises(ValueError):
            LateReverb(sample_rate_hz=44100, border_samples=(100, 50, 200))
        with self.assertRaises(ValueError):
            LateReverb(sample_rate_hz=44100, min_density=0)
        with self.assertRaises(ValueError):
            LateReverb(sample_rate_hz=44100, allpass_feedbacks=1.5)
        with self.assertRaises(ValueError):
            LateReverb(sample_rate_hz=44100, tail_seconds=-1.0)
        with self.assertRaises(ValueError):
            LateReverb(sample_rate_hz=44100).__call__(np.zeros((10, 2)))

    def test__sample_rate_warning(self):
        with self.assertLogs('VNSynth.reverb', level='WARNING'):
            LateReverb(sample_rate_hz=48000, seed=1)
