# voxverb/bands.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Tuple

import numpy as np

from .config import OCTAVE_CENTERS, AbsorptionCoefficient

NUM_BANDS = len(OCTAVE_CENTERS)
_BAND_INDEX: Dict[int, int] = {b: i for i, b in enumerate(OCTAVE_CENTERS)}


def band_index(band: int) -> int:
    try:
        return _BAND_INDEX[int(band)]
    except KeyError:
        raise KeyError(f"{band} Hz is not one of the octave bands {OCTAVE_CENTERS}") from None


# -----------------------------
# Energy vectors
# -----------------------------

def new_energy() -> np.ndarray:
    """Fresh per-band energy vector, every band at 1.0."""
    return np.ones(NUM_BANDS, dtype=float)


def energy_from_mapping(values: Mapping[int, float]) -> np.ndarray:
    """{hz: energy} -> band-ordered vector; bands not listed are 0."""
    e = np.zeros(NUM_BANDS, dtype=float)
    for band, v in values.items():
        e[band_index(band)] = float(v)
    return e


def energy_to_mapping(energy: np.ndarray) -> Dict[int, float]:
    return {b: float(v) for b, v in zip(OCTAVE_CENTERS, np.asarray(energy, float))}


def coefficient_factors(coefficients: Iterable[AbsorptionCoefficient]) -> np.ndarray:
    """
    Per-band multiplicative factor (1 - coef) for the bands listed in
    `coefficients`; unlisted (or unknown) bands keep a factor of 1.
    """
    f = np.ones(NUM_BANDS, dtype=float)
    for c in coefficients:
        i = _BAND_INDEX.get(int(c.band))
        if i is not None:
            f[i] *= 1.0 - float(c.coefficient)
    return f


def is_dissipated(energy: np.ndarray, threshold: float) -> bool:
    return bool(np.all(np.asarray(energy) <= threshold))


# -----------------------------
# Band filter table
# -----------------------------

@dataclass(frozen=True)
class FilterSpec:
    btype: str                   # "lowpass" | "highpass" | "bandpass"
    cutoff: Tuple[float, ...]    # Hz; one corner, or (low, high) for bandpass


def _filter_for(band: int) -> FilterSpec:
    if band == OCTAVE_CENTERS[0]:
        return FilterSpec("lowpass", (float(band),))
    if band == OCTAVE_CENTERS[-1]:
        return FilterSpec("highpass", (float(band),))
    return FilterSpec("bandpass", (band / 2.0, band * 2.0))


BAND_FILTERS: Dict[int, FilterSpec] = {b: _filter_for(b) for b in OCTAVE_CENTERS}
