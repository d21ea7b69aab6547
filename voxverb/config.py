# voxverb/config.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np

# Octave centers, fixed for the whole pipeline
OCTAVE_CENTERS: List[int] = [125, 250, 500, 1000, 2000, 4000]


@dataclass(frozen=True)
class AbsorptionCoefficient:
    band: int           # Hz
    coefficient: float  # ~0..1


@dataclass(frozen=True)
class Medium:
    """Per-unit-distance absorption of the propagation medium."""
    name: str
    coefficients: Tuple[AbsorptionCoefficient, ...]

    def coef(self, band: int) -> float:
        for c in self.coefficients:
            if c.band == band:
                return c.coefficient
        raise KeyError(f"Medium '{self.name}' has no coefficient for {band} Hz")

    def as_array(self) -> np.ndarray:
        return np.array([self.coef(b) for b in OCTAVE_CENTERS], dtype=float)


def _medium(name: str, values: List[float]) -> Medium:
    return Medium(name, tuple(AbsorptionCoefficient(b, v) for b, v in zip(OCTAVE_CENTERS, values)))


AIR = _medium("air", [0.0, 0.001, 0.003, 0.005, 0.010, 0.029])
WATER = _medium("water", [0.001, 0.004, 0.015, 0.051, 0.127, 0.244])
LAVA = _medium("lava", [0.000037, 0.000147, 0.000588, 0.00236, 0.00942, 0.0377])

MEDIA: Dict[str, Medium] = {m.name: m for m in (AIR, WATER, LAVA)}


@dataclass
class SimConfig:
    # Core acoustics
    fs: int = 48000
    samples_per_unit: float = 140.16      # fs / c, one world unit == one metre
    medium: str = "air"

    # Ray state machine
    max_distance: float = 1700.0          # bound on a single cast
    max_path_length: float = 6800.0       # total path before a ray escapes
    target_margin: float = 1.0
    dissipation_threshold: float = 1e-8
    hit_decimals: int = 4
    grid_tolerance: float = 1e-6

    # Direction sampling
    pitch_step_deg: float = 0.1
    density_k: float = 36000.0
    density_offset: float = 1080.0
    density_scale: float = 1.0
    yaw_divisor: float = 1.0

    # Diffuse branching (0 disables)
    diffuse_rays: int = 0
    diffuse_max_generation: int = 1

    # Scheduling
    workers: Optional[int] = None         # None -> os.cpu_count()
    max_pending: int = 4096
    progress_interval_s: float = 0.1
    rng_seed: int = 0
    record_paths: bool = False

    def medium_obj(self) -> Medium:
        try:
            return MEDIA[str(self.medium).lower()]
        except KeyError:
            raise ValueError(f"Unknown medium '{self.medium}' (known: {sorted(MEDIA)})") from None


@dataclass
class SynthConfig:
    fs: int = 48000

    # Envelope smoothing
    diffusion_alpha: float = 0.2
    smoothing_iterations: int = 50
    noise_floor: float = 0.01
    decay_scale: float = 1e-4
    energy_decimals: int = 8

    # Band filters
    filter_order: int = 2

    # Cleanup
    silence_run: int = 850
    silence_threshold: float = 1e-7
    decay_chunk: int = 275
    decay_chunks: int = 4
    taper: bool = True
    taper_start: float = 0.7
    taper_rate: float = 0.05

    rng_seed: int = 0
