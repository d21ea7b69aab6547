# voxverb/__init__.py
from __future__ import annotations

# ---- Public config / constants ----
from .config import (
    OCTAVE_CENTERS,
    AbsorptionCoefficient,
    Medium,
    AIR,
    WATER,
    LAVA,
    MEDIA,
    SimConfig,
    SynthConfig,
)

# ---- Bands / energy vectors ----
from .bands import (
    NUM_BANDS,
    BAND_FILTERS,
    FilterSpec,
    band_index,
    new_energy,
    energy_from_mapping,
    energy_to_mapping,
)

# ---- Errors ----
from .errors import (
    VoxverbError,
    GeometryInvariantError,
    EmptyImpulseResponseError,
)

# ---- Physics helpers (vectors, propagation, target test, decay metrics) ----
from .physics import (
    unit,
    reflect,
    direction_from_angles,
    sector_sample,
    attenuate_by_distance,
    attenuate_by_material,
    delay_samples,
    passes_through_point,
    schroeder_edc,
    estimate_rt60_from_edc,
)

# ---- World / materials ----
from .geometry import Hit, VoxelWorld
from .materials import MaterialTable

# ---- Tracing core ----
from .interaction import (
    SurfaceType,
    Interaction,
    GeometryInteractionResolver,
)
from .tracing import Ray, RayOutcome, RayTracer
from .sampling import (
    pitch_angles,
    yaw_count,
    count_directions,
    iter_directions,
)
from .scheduler import Progress, Scheduler

# ---- IR ----
from .aggregation import IRMatrix, aggregate
from .synthesis import ImpulseResponse, synthesize
from .audio import wav_bytes, write_wav
from .pipeline import Scene, SimulationResult, simulate, render_ir

__all__ = [
    # Config
    "OCTAVE_CENTERS", "AbsorptionCoefficient", "Medium",
    "AIR", "WATER", "LAVA", "MEDIA", "SimConfig", "SynthConfig",
    # Bands
    "NUM_BANDS", "BAND_FILTERS", "FilterSpec", "band_index",
    "new_energy", "energy_from_mapping", "energy_to_mapping",
    # Errors
    "VoxverbError", "GeometryInvariantError", "EmptyImpulseResponseError",
    # Physics
    "unit", "reflect", "direction_from_angles", "sector_sample",
    "attenuate_by_distance", "attenuate_by_material", "delay_samples",
    "passes_through_point", "schroeder_edc", "estimate_rt60_from_edc",
    # World / materials
    "Hit", "VoxelWorld", "MaterialTable",
    # Tracing
    "SurfaceType", "Interaction", "GeometryInteractionResolver",
    "Ray", "RayOutcome", "RayTracer",
    "pitch_angles", "yaw_count", "count_directions", "iter_directions",
    "Progress", "Scheduler",
    # IR
    "IRMatrix", "aggregate", "ImpulseResponse", "synthesize",
    "wav_bytes", "write_wav",
    # Pipeline
    "Scene", "SimulationResult", "simulate", "render_ir",
]
