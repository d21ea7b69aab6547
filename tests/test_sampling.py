"""
Tests for the receiver direction sweep.
"""

import numpy as np
import pytest

from voxverb.config import SimConfig
from voxverb.sampling import (
    count_directions,
    iter_directions,
    pitch_angles,
    yaw_angles,
    yaw_count,
)


class TestDensity:
    """Tests for the yaw-count heuristic."""

    def test_pole(self):
        assert yaw_count(-90.0) == 1081
        assert yaw_count(90.0) == 1081

    def test_horizon(self):
        assert yaw_count(0.0) == 37080

    def test_symmetric_and_growing_towards_horizon(self):
        counts = [yaw_count(p) for p in (-90, -60, -30, 0)]
        assert counts == sorted(counts)
        assert yaw_count(-45.0) == yaw_count(45.0)

    def test_density_scale(self):
        cfg = SimConfig(density_scale=0.01)
        assert yaw_count(90.0, cfg) == 11
        assert yaw_count(0.0, cfg) == 371


class TestAngles:
    """Tests for pitch and yaw grids."""

    def test_pitch_range(self):
        p = pitch_angles(0.1)

        assert len(p) == 1801
        assert p[0] == -90.0
        assert p[-1] == pytest.approx(90.0)

    def test_full_revolution(self):
        np.testing.assert_allclose(yaw_angles(4), [-180.0, -90.0, 0.0, 90.0])

    def test_yaw_divisor_narrows_sweep(self):
        yaws = yaw_angles(10, SimConfig(yaw_divisor=10.0))
        assert yaws[0] == -180.0
        assert yaws[-1] == pytest.approx(-180.0 + 32.4)


class TestSweep:
    """Tests for the full direction sweep."""

    def test_count(self):
        cfg = SimConfig(pitch_step_deg=90.0)
        assert count_directions(cfg) == 1081 + 37080 + 1081

    def test_rings_match_count(self):
        cfg = SimConfig(pitch_step_deg=30.0, density_scale=0.002)
        rings = list(iter_directions(cfg))

        assert len(rings) == 7
        assert sum(len(d) for _, d in rings) == count_directions(cfg)
        for pitch, dirs in rings:
            assert dirs.shape == (yaw_count(pitch, cfg), 3)
            np.testing.assert_allclose(np.linalg.norm(dirs, axis=1), 1.0)

    def test_ring_elevation(self):
        cfg = SimConfig(pitch_step_deg=30.0, density_scale=0.002)
        for pitch, dirs in iter_directions(cfg):
            np.testing.assert_allclose(dirs[:, 1], -np.sin(np.radians(pitch)), atol=1e-12)
