# voxverb/tracing.py
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
import logging
import math

import numpy as np

from .bands import is_dissipated, new_energy
from .config import SimConfig
from .errors import GeometryInvariantError
from .geometry import VoxelWorld
from .interaction import GeometryInteractionResolver, SurfaceType
from .materials import MaterialTable
from .physics import (
    unit, reflect, sector_sample,
    attenuate_by_distance, attenuate_by_material,
    delay_samples, passes_through_point,
)

logger = logging.getLogger(__name__)


class RayOutcome(Enum):
    ACTIVE = "active"
    HIT_TARGET = "hit_target"
    DISSIPATED = "dissipated"
    ESCAPED = "escaped"


@dataclass
class Ray:
    position: np.ndarray
    direction: np.ndarray
    energy: np.ndarray = field(default_factory=new_energy)
    traveled: float = 0.0
    outcome: RayOutcome = RayOutcome.ACTIVE
    generation: int = 0
    path: Optional[List[np.ndarray]] = None

    @classmethod
    def cast(cls, origin: np.ndarray, direction: np.ndarray, record_path: bool = False) -> "Ray":
        o = np.asarray(origin, dtype=float).copy()
        return cls(o, unit(direction), path=[o.copy()] if record_path else None)

    @property
    def terminal(self) -> bool:
        return self.outcome is not RayOutcome.ACTIVE

    @property
    def hit_target(self) -> bool:
        return self.outcome is RayOutcome.HIT_TARGET

    def branch(self, position: np.ndarray, direction: np.ndarray) -> "Ray":
        """Child ray; energy is copied, never shared with the parent."""
        pos = np.asarray(position, dtype=float).copy()
        return Ray(
            position=pos,
            direction=unit(direction),
            energy=self.energy.copy(),
            traveled=self.traveled,
            generation=self.generation + 1,
            path=[pos.copy()] if self.path is not None else None,
        )

    def delay_samples(self, samples_per_unit: float) -> int:
        return delay_samples(self.traveled, samples_per_unit)


# Diffuse lobe per surface type: (azimuth span, share of the base ray count)
_DIFFUSE_LOBES = {
    SurfaceType.FLAT: (2.0 * math.pi, 1),
    SurfaceType.SEAM: (math.pi / 2.0, 2),
    SurfaceType.CORNER: (math.pi / 4.0, 4),
}


class RayTracer:
    """
    Runs one ray to a terminal state:
      ACTIVE -> HIT_TARGET | DISSIPATED | ESCAPED
    The tracer holds only read-only collaborators and can be shared by
    every worker thread.
    """
    def __init__(self, world: VoxelWorld, materials: MaterialTable,
                 target: np.ndarray, cfg: Optional[SimConfig] = None):
        self.cfg = cfg or SimConfig()
        self.world = world
        self.materials = materials
        self.target = np.asarray(target, dtype=float)
        self.medium = self.cfg.medium_obj()
        self.resolver = GeometryInteractionResolver(
            world, decimals=self.cfg.hit_decimals, tol=self.cfg.grid_tolerance
        )

    def trace(self, ray: Ray, rng: Optional[np.random.Generator] = None) -> List[Ray]:
        """Advance `ray` until terminal. Returns diffuse child rays, if any were spawned."""
        cfg = self.cfg
        children: List[Ray] = []

        while ray.outcome is RayOutcome.ACTIVE:
            if is_dissipated(ray.energy, cfg.dissipation_threshold):
                ray.outcome = RayOutcome.DISSIPATED
                break

            remaining = cfg.max_path_length - ray.traveled
            if remaining <= 0.0:
                ray.outcome = RayOutcome.ESCAPED
                break
            try:
                hit = self.world.cast_ray(ray.position, ray.direction,
                                          min(cfg.max_distance, remaining))
            except Exception:
                logger.exception("World query failed at %s; ray escapes", ray.position)
                ray.outcome = RayOutcome.ESCAPED
                break

            if ray.traveled > 0 and passes_through_point(ray.position, ray.direction,
                                                         self.target, cfg.target_margin):
                ray.traveled += float(np.linalg.norm(self.target - ray.position))
                ray.outcome = RayOutcome.HIT_TARGET
                if ray.path is not None:
                    ray.path.append(self.target.copy())
                break

            if hit is None:
                ray.outcome = RayOutcome.ESCAPED
                break

            try:
                inter = self.resolver.resolve(hit)
            except GeometryInvariantError as e:
                logger.warning("Dropping ray: %s", e)
                ray.outcome = RayOutcome.ESCAPED
                break

            segment = float(np.linalg.norm(inter.point - ray.position))
            ray.energy = attenuate_by_distance(ray.energy, self.medium, segment)
            ray.traveled += segment

            for voxel in inter.voxels:
                if not self.world.is_solid(voxel):
                    continue
                coeffs = self.materials.coefficients_for_block(self.world.block_at(voxel))
                if coeffs is not None:
                    ray.energy = attenuate_by_material(ray.energy, coeffs)

            if cfg.diffuse_rays > 0 and ray.generation < cfg.diffuse_max_generation:
                children.extend(self._diffuse_children(ray, inter.point, inter.normal, inter.surface, rng))

            ray.direction = reflect(ray.direction, inter.normal)
            ray.position = inter.point
            if ray.path is not None:
                ray.path.append(inter.point.copy())

        return children

    def _diffuse_children(self, ray: Ray, point: np.ndarray, normal: np.ndarray,
                          surface: SurfaceType, rng: Optional[np.random.Generator]) -> List[Ray]:
        if rng is None:
            rng = np.random.default_rng(self.cfg.rng_seed)
        span, share = _DIFFUSE_LOBES[surface]
        dirs = sector_sample(normal, span, int(self.cfg.diffuse_rays) // share, rng)
        return [ray.branch(point, d) for d in dirs]

    def delay_samples(self, ray: Ray) -> int:
        return ray.delay_samples(self.cfg.samples_per_unit)
