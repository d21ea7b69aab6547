# voxverb/interaction.py
"""
Resolution of a raw voxel hit into what the ray actually reflects off.

A hit that lands on a voxel edge (seam) or vertex (corner) is ambiguous:
the adjoining voxels in front of the struck face may be solid too. The
reflection normal is then the average of every solid face meeting at that
point instead of whichever face the ray query happened to report.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

import numpy as np

from .errors import GeometryInvariantError
from .geometry import Hit, Voxel, VoxelWorld
from .physics import unit


class SurfaceType(Enum):
    FLAT = 1
    SEAM = 2
    CORNER = 3


_EXPECTED_VOXELS = {SurfaceType.SEAM: 2, SurfaceType.CORNER: 3}


def is_integer(value: float, tol: float = 1e-6) -> bool:
    return abs(float(value) - round(float(value))) < tol


def round_hit(point: np.ndarray, decimals: int = 4) -> np.ndarray:
    return np.round(np.asarray(point, dtype=float), int(decimals))


def classify_surface(point: np.ndarray, tol: float = 1e-6) -> SurfaceType:
    n_int = sum(1 for c in point if is_integer(c, tol))
    if n_int == 0:
        raise GeometryInvariantError(f"Hit point {tuple(point)} lies on no voxel boundary")
    return SurfaceType(n_int)


def _axis_offset(coord: float, voxel_coord: int) -> int:
    c = int(round(float(coord)))
    if c == voxel_coord:
        return -1
    if c == voxel_coord + 1:
        return 1
    return 0


def shared_voxels(hit: Hit, point: np.ndarray, tol: float = 1e-6,
                  surface: Optional[SurfaceType] = None) -> List[Voxel]:
    """
    Struck voxel followed by the voxels abutting it at a seam/corner hit.

    For the face axis the offset picks the half-space in front of the
    struck face; every other integer axis k contributes the neighbour
    voxel + o_face + o_k.
    """
    surface = surface or classify_surface(point, tol)
    voxel = tuple(int(c) for c in hit.voxel)
    voxels: List[Voxel] = [voxel]
    if surface is SurfaceType.FLAT:
        return voxels

    face_axis = int(np.argmax(np.abs(hit.face_normal)))
    offsets = [0, 0, 0]
    for a in range(3):
        if is_integer(point[a], tol):
            offsets[a] = _axis_offset(point[a], voxel[a])

    if offsets[face_axis] != 0:
        for a in range(3):
            if a == face_axis or offsets[a] == 0:
                continue
            nb = list(voxel)
            nb[face_axis] += offsets[face_axis]
            nb[a] += offsets[a]
            voxels.append(tuple(nb))

    expected = _EXPECTED_VOXELS[surface]
    if len(voxels) != expected:
        raise GeometryInvariantError(
            f"{surface.name} hit at {tuple(point)} on voxel {voxel}: "
            f"expected {expected} shared voxels, got {len(voxels)}"
        )
    return voxels


def summed_normal(hit: Hit, voxels: List[Voxel], world: VoxelWorld) -> np.ndarray:
    n = np.asarray(hit.face_normal, dtype=float).copy()
    if len(voxels) == 1:
        return unit(n)

    base = np.asarray(voxels[0])
    face_axis = int(np.argmax(np.abs(n)))
    solid_any = False
    for nb in voxels[1:]:
        if not world.is_solid(nb):
            continue
        solid_any = True
        delta = base - np.asarray(nb)
        delta[face_axis] = 0
        n = n + delta
    if not solid_any:
        # convex edge/corner: nothing else to reflect off
        return unit(np.asarray(hit.face_normal, dtype=float))
    return unit(n)


@dataclass
class Interaction:
    point: np.ndarray
    surface: SurfaceType
    voxels: List[Voxel]
    normal: np.ndarray


class GeometryInteractionResolver:
    def __init__(self, world: VoxelWorld, decimals: int = 4, tol: float = 1e-6):
        self.world = world
        self.decimals = int(decimals)
        self.tol = float(tol)

    def resolve(self, hit: Hit) -> Interaction:
        point = round_hit(hit.position, self.decimals)
        surface = classify_surface(point, self.tol)
        voxels = shared_voxels(hit, point, self.tol, surface)
        normal = summed_normal(hit, voxels, self.world)
        return Interaction(point, surface, voxels, normal)
