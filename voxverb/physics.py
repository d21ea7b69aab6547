# voxverb/physics.py
from __future__ import annotations
import math
from typing import Iterable, Optional

import numpy as np

from .bands import coefficient_factors
from .config import AbsorptionCoefficient, Medium

# -----------------------------
# Vector math helpers
# -----------------------------

def unit(v: np.ndarray) -> np.ndarray:
    v = np.asarray(v, dtype=float)
    n = np.linalg.norm(v, axis=-1, keepdims=True)
    n = np.where(n == 0, 1.0, n)
    return v / n

def reflect(dir_in: np.ndarray, n: np.ndarray) -> np.ndarray:
    # d' = d - 2(d.n)n is unchanged by the sign of n
    d = np.asarray(dir_in, dtype=float)
    n = unit(n)
    return unit(d - 2.0 * float(np.dot(d, n)) * n)

def round_half_up(x: float) -> int:
    return int(math.floor(float(x) + 0.5))

def direction_from_angles(pitch_deg, yaw_deg) -> np.ndarray:
    """
    y-up look vector for pitch/yaw in degrees (pitch -90 looks straight up).
    Accepts scalars or arrays; returns shape (..., 3).
    """
    f = np.radians(np.asarray(pitch_deg, dtype=float))
    g = -np.radians(np.asarray(yaw_deg, dtype=float))
    f, g = np.broadcast_arrays(f, g)
    return np.stack([np.sin(g) * np.cos(f), -np.sin(f), np.cos(g) * np.cos(f)], axis=-1)

# -----------------------------
# Diffuse lobe sampling
# -----------------------------

def _orthonormal_basis(n: np.ndarray):
    n = unit(n)
    if abs(n[0]) < 0.9:
        a = np.array([1.0, 0.0, 0.0], dtype=float)
    else:
        a = np.array([0.0, 1.0, 0.0], dtype=float)
    t = unit(np.cross(n, a))
    b = unit(np.cross(n, t))
    return t, b, n

def sector_sample(n: np.ndarray, azimuth_span: float, count: int, rng: np.random.Generator) -> np.ndarray:
    """
    `count` directions around normal n, uniform in cos(elevation), azimuth
    restricted to [0, azimuth_span). 2*pi is a full hemisphere, pi/2 a
    quarter sphere, pi/4 an eighth. Returns shape (count, 3).
    """
    count = int(count)
    if count <= 0:
        return np.zeros((0, 3), dtype=float)
    theta = float(azimuth_span) * rng.random(count)
    phi = np.arccos(rng.random(count))
    t, b, nn = _orthonormal_basis(n)
    local = np.stack([np.sin(phi) * np.cos(theta), np.sin(phi) * np.sin(theta), np.cos(phi)], axis=-1)
    return unit(local[:, 0:1] * t + local[:, 1:2] * b + local[:, 2:3] * nn)

# -----------------------------
# Propagation model
# -----------------------------

def attenuate_by_distance(energy: np.ndarray, medium: Medium, distance: float) -> np.ndarray:
    """energy'[b] = energy[b] * (1 - coef_b) ** distance"""
    return np.asarray(energy, dtype=float) * np.power(1.0 - medium.as_array(), float(distance))

def attenuate_by_material(energy: np.ndarray, coefficients: Iterable[AbsorptionCoefficient]) -> np.ndarray:
    """Single reflection loss; only bands listed in `coefficients` change. No clamping."""
    return np.asarray(energy, dtype=float) * coefficient_factors(coefficients)

def delay_samples(distance: float, samples_per_unit: float) -> int:
    return round_half_up(float(distance) * float(samples_per_unit))

# -----------------------------
# Target proximity
# -----------------------------

_ZERO_COMPONENT = 1e-12

def passes_through_point(origin: np.ndarray, direction: np.ndarray, point: np.ndarray, margin: float) -> bool:
    """
    True if the line origin + t*direction comes within `margin` of `point`
    for one consistent t. Per-axis t values are solved independently (axes
    with a zero direction component are skipped) and must agree within
    `margin`.

    Only the line is tested: t may be negative and solid voxels between
    `origin` and `point` do not block it, so a target behind a wall still
    counts as reached.
    """
    p = np.asarray(origin, dtype=float)
    v = np.asarray(direction, dtype=float)
    q = np.asarray(point, dtype=float)

    t_ref: Optional[float] = None
    for axis in range(3):
        if abs(v[axis]) <= _ZERO_COMPONENT:
            continue
        t = (q[axis] - p[axis]) / v[axis]
        if t_ref is None:
            t_ref = t
        elif abs(t - t_ref) > margin:
            return False

    if t_ref is None:
        return False
    on_line = p + v * t_ref
    return float(np.linalg.norm(on_line - q)) < margin

# -----------------------------
# Decay metrics
# -----------------------------

def schroeder_edc(h: np.ndarray) -> np.ndarray:
    e = np.asarray(h, dtype=np.float64)
    edc = np.cumsum((e * e)[::-1])[::-1]
    top = float(edc[0]) if edc.size else 1.0
    if top <= 0:
        top = 1.0
    return (edc / top)

def estimate_rt60_from_edc(edc: np.ndarray, fs: int):
    if edc is None or len(edc) < 10:
        return None
    db = 10.0 * np.log10(np.maximum(edc, 1e-20))
    t = np.arange(len(edc), dtype=float) / float(fs)

    def fit(lo_db, hi_db):
        i1 = int(np.abs(db - lo_db).argmin())
        i2 = int(np.abs(db - hi_db).argmin())
        if i2 <= i1:
            return None
        p = np.polyfit(t[i1:i2], db[i1:i2], 1)
        slope = float(p[0])
        if slope >= -1e-9:
            return None
        return 60.0 / (-slope)

    rt = fit(-5, -35)
    if rt is None:
        rt = fit(-10, -30)
    return rt
