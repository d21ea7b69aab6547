# voxverb/sampling.py
"""
Direction sweep for the receiver.

Pitch runs from -90 to +90 degrees in fixed steps; the number of yaw
samples at each pitch grows exponentially with the angle from the pole,
round(exp(b * theta) + C) with b = ln(K) / 90. This is a density heuristic,
not an exact equal-solid-angle partition, and is kept as-is so that sweeps
stay reproducible.
"""
from __future__ import annotations
from typing import Iterator, Optional, Tuple
import math

import numpy as np

from .config import SimConfig
from .physics import direction_from_angles


def pitch_angles(step_deg: float) -> np.ndarray:
    n = int(round(180.0 / float(step_deg))) + 1
    return -90.0 + float(step_deg) * np.arange(n, dtype=float)


def yaw_count(pitch_deg: float, cfg: Optional[SimConfig] = None) -> int:
    cfg = cfg or SimConfig()
    theta = 90.0 - abs(float(pitch_deg))
    b = math.log(cfg.density_k) / 90.0
    return int(round((math.exp(b * theta) + cfg.density_offset) * cfg.density_scale))


def yaw_angles(count: int, cfg: Optional[SimConfig] = None) -> np.ndarray:
    cfg = cfg or SimConfig()
    i = np.arange(int(count), dtype=float)
    return (i * 360.0 / float(count)) / float(cfg.yaw_divisor) - 180.0


def count_directions(cfg: Optional[SimConfig] = None) -> int:
    cfg = cfg or SimConfig()
    return int(sum(yaw_count(p, cfg) for p in pitch_angles(cfg.pitch_step_deg)))


def iter_directions(cfg: Optional[SimConfig] = None) -> Iterator[Tuple[float, np.ndarray]]:
    """Yields (pitch, directions[n, 3]) one pitch ring at a time."""
    cfg = cfg or SimConfig()
    for pitch in pitch_angles(cfg.pitch_step_deg):
        n = yaw_count(pitch, cfg)
        if n <= 0:
            continue
        yield float(pitch), direction_from_angles(pitch, yaw_angles(n, cfg))
