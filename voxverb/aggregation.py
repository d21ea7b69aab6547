# voxverb/aggregation.py
from __future__ import annotations
from typing import Dict, Iterable, Iterator, Mapping, Tuple, Union
import logging
import queue

import numpy as np

from .bands import NUM_BANDS, band_index, energy_from_mapping
from .physics import round_half_up
from .tracing import Ray

logger = logging.getLogger(__name__)

EnergyLike = Union[np.ndarray, Mapping[int, float]]


class IRMatrix:
    """
    Sparse impulse response: delay (samples) -> summed per-band energy.
    Paths arriving in the same sample add incoherently.
    """
    def __init__(self):
        self._rows: Dict[int, np.ndarray] = {}
        self._frozen = False

    def merge(self, delay: float, energy: EnergyLike) -> int:
        if self._frozen:
            raise RuntimeError("IRMatrix is frozen; synthesis has already started")
        idx = round_half_up(delay)
        if isinstance(energy, Mapping):
            vec = energy_from_mapping(energy)
        else:
            vec = np.asarray(energy, dtype=float)
            if vec.shape != (NUM_BANDS,):
                raise ValueError(f"energy must have shape ({NUM_BANDS},), got {vec.shape}")
        row = self._rows.get(idx)
        if row is None:
            self._rows[idx] = vec.copy()
        else:
            row += vec
        return idx

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, idx) -> bool:
        return idx in self._rows

    def __getitem__(self, idx: int) -> np.ndarray:
        return self._rows[idx]

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._rows))

    def items(self) -> Iterator[Tuple[int, np.ndarray]]:
        for k in sorted(self._rows):
            yield k, self._rows[k]

    def energy_at(self, idx: int, band: int) -> float:
        return float(self._rows[idx][band_index(band)])

    @property
    def max_delay(self) -> int:
        if not self._rows:
            raise ValueError("IRMatrix is empty")
        return max(self._rows)

    def band_series(self, band: int) -> Tuple[np.ndarray, np.ndarray]:
        """(delays, energies) for one band, sorted by delay."""
        bi = band_index(band)
        keys = np.array(sorted(self._rows), dtype=np.int64)
        vals = np.array([self._rows[k][bi] for k in keys], dtype=float)
        return keys, vals

    def total_energy(self) -> np.ndarray:
        if not self._rows:
            return np.zeros(NUM_BANDS)
        return np.sum(list(self._rows.values()), axis=0)


def aggregate(rays: Union["queue.SimpleQueue[Ray]", Iterable[Ray]], samples_per_unit: float,
              matrix: IRMatrix | None = None) -> IRMatrix:
    """Merge every ray that reached the target into an IR matrix (drains queues)."""
    matrix = matrix if matrix is not None else IRMatrix()
    if isinstance(rays, (queue.SimpleQueue, queue.Queue)):
        def _drain():
            while True:
                try:
                    yield rays.get_nowait()
                except queue.Empty:
                    return
        source: Iterable[Ray] = _drain()
    else:
        source = rays

    merged = 0
    for ray in source:
        if not ray.hit_target:
            continue
        matrix.merge(ray.traveled * float(samples_per_unit), ray.energy)
        merged += 1
    logger.info("Aggregated %d arrivals into %d IR taps", merged, len(matrix))
    return matrix
