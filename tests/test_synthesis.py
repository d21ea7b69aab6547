"""
Tests for impulse-response synthesis and cleanup.
"""

import math

import numpy as np
import pytest

from voxverb.aggregation import IRMatrix
from voxverb.config import OCTAVE_CENTERS, SynthConfig
from voxverb.errors import EmptyImpulseResponseError
from voxverb.synthesis import (
    apply_taper,
    cleanup,
    decay_envelope,
    diffuse,
    estimate_decay,
    find_decay_floor,
    find_silence_run,
    seed_band,
    synthesize,
    trim_trailing_zeros,
)


def _matrix(taps):
    m = IRMatrix()
    for delay, value in taps:
        m.merge(delay, {b: value for b in OCTAVE_CENTERS})
    return m


class TestEnvelope:
    """Tests for seeding, decay estimation and smoothing."""

    def test_seed_clips_and_rounds(self):
        m = _matrix([(2, 1.7), (4, 0.123456789012)])
        env = seed_band(m, 1000, 6)

        np.testing.assert_allclose(env, [0, 0, 1.0, 0, 0.12345679, 0])

    def test_decay_rate(self):
        rate, first = estimate_decay(_matrix([(100, 1.0), (200, 0.5), (400, 0.1)]), 1000, 1e-4)

        assert first == 100
        assert rate == pytest.approx(math.log(4.0) / 300.0 * 1e-4)

    def test_decay_rate_fallback_at_zero(self):
        assert estimate_decay(_matrix([(0, 1.0)]), 1000, 1e-4) == (0.1, 0)

    def test_single_tap_has_no_decay(self):
        assert estimate_decay(_matrix([(10, 1.0)]), 1000, 1e-4) == (0.0, 10)

    def test_decay_envelope(self):
        env = decay_envelope(10, 2, 0.25)

        assert env[2] == 1.0
        assert env[3] == pytest.approx(0.75 ** 3)
        assert np.all(env[6:] == 0.0)
        np.testing.assert_allclose(decay_envelope(5, 0, 0.0), 1.0)

    def test_smoothing_spreads_a_spike(self):
        """Peak falls and support widens by one sample each side per pass."""
        spike = np.zeros(201)
        spike[100] = 1.0
        prev_peak, prev_support = 1.0, 1
        for k in range(1, 51):
            buf = diffuse(spike, 0.2, k)
            peak = buf.max()
            support = int(np.count_nonzero(buf > 0))

            assert peak < prev_peak
            assert support > prev_support
            assert support == 2 * k + 1
            assert buf.sum() == pytest.approx(1.0)
            prev_peak, prev_support = peak, support

    def test_smoothing_leaves_input(self):
        spike = np.zeros(11)
        spike[5] = 1.0
        diffuse(spike, 0.2, 5)
        assert spike[5] == 1.0


class TestCleanup:
    """Tests for trimming, truncation and tapering."""

    def test_trailing_zeros_only(self):
        out = trim_trailing_zeros(np.array([0.0, 0.0, 1.0, 2.0, 0.0, 0.0]))
        np.testing.assert_array_equal(out, [0.0, 0.0, 1.0, 2.0])

    def test_trim_all_zero(self):
        assert trim_trailing_zeros(np.zeros(8)).size == 0

    def test_silence_run(self):
        x = np.array([1.0, 0.5, 0.0, 0.0, 0.0, 0.0, 1.0])
        assert find_silence_run(x, 0, 3) == 4
        assert find_silence_run(x, 0, 5) == -1

    def test_decay_floor(self):
        x = np.concatenate([np.ones(10), np.zeros(50)])
        assert find_decay_floor(x, 0, 10, 4) == 39

    def test_decay_floor_not_reached(self):
        x = np.ones(100)
        assert find_decay_floor(x, 0, 10, 4) == -1

    def test_taper(self):
        y = apply_taper(np.ones(100), 0.7, 0.05)

        np.testing.assert_allclose(y[:71], 1.0)
        assert y[71] == pytest.approx(math.exp(-0.05))
        assert np.all(np.diff(y[70:]) < 0)

    def test_keeps_leading_zeros(self):
        x = np.concatenate([np.zeros(5), [1.0, -0.5, 0.25], np.zeros(10)])
        out = cleanup(x, SynthConfig(taper=False))

        np.testing.assert_array_equal(out, x[:8])

    def test_cuts_after_silence(self):
        x = np.concatenate([[0.0, 1.0, 0.5], np.zeros(1000), [0.3], np.zeros(5)])
        out = cleanup(x, SynthConfig(taper=False))

        assert out.size == 3 + 849
        assert out[1] == 1.0

    def test_all_silent(self):
        assert cleanup(np.zeros(100)).size == 0


class TestSynthesize:
    """End-to-end synthesis from a small matrix."""

    def test_empty_matrix(self):
        with pytest.raises(EmptyImpulseResponseError):
            synthesize(IRMatrix())

    def test_render(self):
        m = _matrix([(500, 0.5), (1000, 0.2), (1500, 0.05)])
        ir = synthesize(m, SynthConfig(rng_seed=1))

        assert m.frozen
        assert ir.fs == 48000
        assert sorted(ir.bands) == OCTAVE_CENTERS
        assert all(b.size == 1501 for b in ir.bands.values())
        assert 0 < ir.combined.size <= 1501
        assert np.all(np.isfinite(ir.combined))
        assert np.any(ir.combined != 0.0)
        assert ir.duration_s == pytest.approx(ir.combined.size / 48000.0)

    def test_nothing_before_first_arrival(self):
        """The envelope is zero well before the first tap, even after smoothing."""
        ir = synthesize(_matrix([(2000, 0.5), (2600, 0.2)]), SynthConfig(rng_seed=1))

        for sig in ir.bands.values():
            assert np.all(sig[:1900] == 0.0)

    def test_deterministic_for_seed(self):
        m = _matrix([(500, 0.5), (1000, 0.2)])
        a = synthesize(m, SynthConfig(rng_seed=7))
        b = synthesize(m, SynthConfig(rng_seed=7))

        np.testing.assert_array_equal(a.combined, b.combined)
