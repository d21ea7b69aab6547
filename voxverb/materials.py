# voxverb/materials.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Set
import json
import logging
import pathlib
import threading

from .config import OCTAVE_CENTERS, AbsorptionCoefficient

logger = logging.getLogger(__name__)


def _mk(values: List[float], centers: List[int] = OCTAVE_CENTERS) -> List[AbsorptionCoefficient]:
    return [AbsorptionCoefficient(int(f), float(a)) for f, a in zip(centers, values)]


@dataclass
class MaterialTable:
    """
    Block name -> material key -> per-band absorption coefficients.

    Built once and handed to the tracer; read concurrently by every worker,
    never mutated while a batch runs.
    """
    coefficient_sets: Dict[str, List[AbsorptionCoefficient]] = field(default_factory=dict)
    block_keys: Dict[str, str] = field(default_factory=dict)
    _missing: Set[str] = field(default_factory=set, init=False, repr=False)
    _missing_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def material_key_of(self, block_name: str) -> Optional[str]:
        return self.block_keys.get(str(block_name))

    def coefficients_of(self, key: Optional[str]) -> Optional[List[AbsorptionCoefficient]]:
        if key is None:
            return None
        return self.coefficient_sets.get(key)

    def coefficients_for_block(self, block_name: str) -> Optional[List[AbsorptionCoefficient]]:
        coeffs = self.coefficients_of(self.material_key_of(block_name))
        if coeffs is None:
            self._warn_missing(block_name)
        return coeffs

    def _warn_missing(self, block_name: str) -> None:
        with self._missing_lock:
            if block_name in self._missing:
                return
            self._missing.add(block_name)
        logger.warning("No absorption coefficients for block '%s'; skipping material loss", block_name)

    def assign(self, block_name: str, key: str) -> None:
        if key not in self.coefficient_sets:
            raise KeyError(f"Unknown material '{key}'")
        self.block_keys[str(block_name)] = key

    def materials(self) -> List[str]:
        return sorted(self.coefficient_sets)

    # -------- Construction --------

    @classmethod
    def from_dicts(cls, coefficient_sets: Mapping[str, Mapping], block_map) -> "MaterialTable":
        """
        coefficient_sets: {"stone": {"125": 0.01, "250": 0.01, ...}, ...}
        block_map: [{"block": "stone", "coefficients": "stone"}, ...] or {block: key}
        """
        sets: Dict[str, List[AbsorptionCoefficient]] = {}
        for key, per_band in coefficient_sets.items():
            sets[str(key)] = [AbsorptionCoefficient(int(f), float(v)) for f, v in per_band.items()]

        if isinstance(block_map, Mapping):
            keys = {str(b): str(k) for b, k in block_map.items()}
        else:
            keys = {str(row["block"]): str(row["coefficients"]) for row in block_map}
        return cls(sets, keys)

    @classmethod
    def from_json(cls, coefficient_path: str | pathlib.Path,
                  block_map_path: str | pathlib.Path) -> "MaterialTable":
        sets = json.loads(pathlib.Path(coefficient_path).read_text(encoding="utf-8"))
        blocks = json.loads(pathlib.Path(block_map_path).read_text(encoding="utf-8"))
        table = cls.from_dicts(sets, blocks)
        logger.info("Loaded %d absorption coefficient sets, %d block keys",
                    len(table.coefficient_sets), len(table.block_keys))
        return table

    @classmethod
    def builtin(cls) -> "MaterialTable":
        """Small seed library; values are illustrative."""
        sets: Dict[str, List[AbsorptionCoefficient]] = {}

        # --- Hard surfaces ---
        sets["concrete"] = _mk([0.01, 0.01, 0.015, 0.02, 0.02, 0.02])
        sets["brick"] = _mk([0.01, 0.01, 0.02, 0.02, 0.03, 0.04])
        sets["plaster"] = _mk([0.01, 0.015, 0.02, 0.02, 0.03, 0.04])
        sets["stone"] = _mk([0.02, 0.02, 0.03, 0.04, 0.05, 0.05])

        # --- Floors ---
        sets["wood"] = _mk([0.15, 0.11, 0.10, 0.07, 0.06, 0.07])
        sets["carpet"] = _mk([0.08, 0.24, 0.57, 0.69, 0.71, 0.73])

        # --- Soft / porous ---
        sets["acoustic_tile"] = _mk([0.40, 0.60, 0.70, 0.75, 0.80, 0.85])
        sets["wool"] = _mk([0.10, 0.30, 0.55, 0.65, 0.70, 0.70])
        sets["foliage"] = _mk([0.03, 0.06, 0.11, 0.17, 0.27, 0.31])

        # --- Glazing ---
        sets["glass"] = _mk([0.35, 0.25, 0.18, 0.12, 0.07, 0.04])

        keys = {
            "stone": "stone",
            "cobblestone": "stone",
            "concrete": "concrete",
            "bricks": "brick",
            "plaster": "plaster",
            "oak_planks": "wood",
            "carpet": "carpet",
            "white_wool": "wool",
            "oak_leaves": "foliage",
            "glass": "glass",
            "acoustic_tile": "acoustic_tile",
        }
        return cls(sets, keys)
