# voxverb/pipeline.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional
import logging
import pathlib
import time

import numpy as np

from .aggregation import IRMatrix, aggregate
from .audio import write_wav
from .config import SimConfig, SynthConfig
from .geometry import VoxelWorld
from .materials import MaterialTable
from .scheduler import Progress, Scheduler
from .synthesis import ImpulseResponse, synthesize
from .tracing import Ray, RayTracer

logger = logging.getLogger(__name__)


@dataclass
class Scene:
    world: VoxelWorld
    materials: MaterialTable
    receiver: np.ndarray   # rays start here (world units)
    source: np.ndarray     # rays are collected here

    def __post_init__(self):
        self.receiver = np.asarray(self.receiver, dtype=float)
        self.source = np.asarray(self.source, dtype=float)
        for name, p in (("receiver", self.receiver), ("source", self.source)):
            if p.shape != (3,):
                raise ValueError(f"{name} must be a 3-vector, got shape {p.shape}")
            if self.world.is_solid(tuple(int(np.floor(c)) for c in p)):
                logger.warning("%s %s is inside a solid voxel", name.capitalize(), tuple(p))


@dataclass
class SimulationResult:
    matrix: IRMatrix
    outcomes: Dict[str, int]
    progress: Progress
    elapsed_s: float
    paths: List[np.ndarray] = field(default_factory=list)   # only with cfg.record_paths

    @property
    def hits(self) -> int:
        return int(self.outcomes.get("hit_target", 0))


def simulate(scene: Scene, cfg: Optional[SimConfig] = None,
             on_progress: Optional[Callable[[Progress], None]] = None,
             directions: Optional[Iterable[np.ndarray]] = None) -> SimulationResult:
    """Trace the receiver sweep (or `directions`) and aggregate the arrivals at the source."""
    cfg = cfg or SimConfig()
    t0 = time.time()

    tracer = RayTracer(scene.world, scene.materials, scene.source, cfg)
    scheduler = Scheduler(tracer, scene.receiver, cfg, on_progress=on_progress)
    results = scheduler.run(directions)

    hits: List[Ray] = []
    while not results.empty():
        hits.append(results.get_nowait())
    matrix = aggregate(hits, cfg.samples_per_unit)

    paths = [np.asarray(r.path) for r in hits if r.path is not None]
    elapsed = time.time() - t0
    logger.info("Simulation finished in %.2f s", elapsed)
    return SimulationResult(matrix, scheduler.outcomes, scheduler.progress, elapsed, paths)


def render_ir(result: SimulationResult, synth: Optional[SynthConfig] = None,
              wav_path: Optional[str | pathlib.Path] = None) -> ImpulseResponse:
    ir = synthesize(result.matrix, synth)
    if wav_path is not None:
        write_wav(wav_path, ir.combined, ir.fs)
    return ir
