# voxverb/geometry.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple
import math

import numba as nb
import numpy as np
import trimesh

Voxel = Tuple[int, int, int]

AIR = "air"


@dataclass(frozen=True)
class Hit:
    position: np.ndarray      # point on the struck face
    voxel: Voxel              # struck solid voxel
    face_normal: np.ndarray   # axis-aligned unit normal of the struck face


class VoxelWorld:
    """
    Dense block grid; voxel (i, j, k) spans [i, i+1) x [j, j+1) x [k, k+1)
    in world units (y is up). Everything outside the grid is air.

    Only read during a batch, so concurrent `cast_ray` calls are safe.
    """
    def __init__(self, blocks: np.ndarray, palette: Sequence[str]):
        blocks = np.asarray(blocks)
        if blocks.ndim != 3:
            raise ValueError(f"blocks must be a 3D array, got shape {blocks.shape}")
        palette = list(palette)
        if not palette or palette[0] != AIR:
            raise ValueError("palette[0] must be 'air'")
        if blocks.size and int(blocks.max()) >= len(palette):
            raise ValueError("block id outside palette")
        self.blocks = blocks.astype(np.int16)
        self.palette = palette
        self.shape = tuple(int(s) for s in self.blocks.shape)
        # mesh-space mapping, set by from_mesh
        self.mesh_origin = np.zeros(3, dtype=float)
        self.pitch = 1.0

    # ------------ Construction ------------

    @classmethod
    def empty(cls, shape: Tuple[int, int, int]) -> "VoxelWorld":
        return cls(np.zeros(shape, dtype=np.int16), [AIR])

    @classmethod
    def shoebox(cls, size: Tuple[int, int, int], wall: str = "stone",
                floor: Optional[str] = None, ceiling: Optional[str] = None) -> "VoxelWorld":
        """Hollow room: one-voxel shell around an interior of `size` air voxels."""
        nx, ny, nz = (int(s) + 2 for s in size)
        world = cls.empty((nx, ny, nz))
        world.fill((0, 0, 0), (nx, ny, nz), wall)
        world.fill((1, 1, 1), (nx - 1, ny - 1, nz - 1), AIR)
        if floor is not None:
            world.fill((1, 0, 1), (nx - 1, 1, nz - 1), floor)
        if ceiling is not None:
            world.fill((1, ny - 1, 1), (nx - 1, ny, nz - 1), ceiling)
        return world

    @classmethod
    def from_mesh(cls, mesh: "trimesh.Trimesh", pitch: float = 1.0, block: str = "stone",
                  fill: bool = False, pad: int = 1) -> "VoxelWorld":
        """Voxelize a mesh surface (optionally filled) into a padded block grid."""
        vox = mesh.voxelized(pitch=float(pitch))
        if fill:
            vox = vox.fill()
        solid = np.asarray(vox.matrix, dtype=bool)
        solid = np.pad(solid, int(pad), mode="constant", constant_values=False)
        blocks = solid.astype(np.int16)
        world = cls(blocks, [AIR, block])
        # voxel index i has its centre at translation + i * pitch
        translation = np.asarray(vox.transform, dtype=float)[:3, 3]
        world.pitch = float(pitch)
        world.mesh_origin = translation - float(pitch) * (int(pad) + 0.5)
        return world

    def fill(self, lo: Voxel, hi: Voxel, block: str) -> None:
        """Set every voxel in [lo, hi) to `block`."""
        bid = self._block_id(block)
        self.blocks[lo[0]:hi[0], lo[1]:hi[1], lo[2]:hi[2]] = bid

    def set_block(self, voxel: Voxel, block: str) -> None:
        self.blocks[voxel] = self._block_id(block)

    def _block_id(self, block: str) -> int:
        if block not in self.palette:
            self.palette.append(block)
        return self.palette.index(block)

    def to_grid(self, mesh_point: np.ndarray) -> np.ndarray:
        """Mesh-space point -> world (grid) units."""
        return (np.asarray(mesh_point, dtype=float) - self.mesh_origin) / self.pitch

    # ------------ Queries ------------

    def in_bounds(self, voxel: Voxel) -> bool:
        return all(0 <= int(c) < s for c, s in zip(voxel, self.shape))

    def block_at(self, voxel: Voxel) -> str:
        if not self.in_bounds(voxel):
            return AIR
        return self.palette[int(self.blocks[tuple(int(c) for c in voxel)])]

    def is_solid(self, voxel: Voxel) -> bool:
        if not self.in_bounds(voxel):
            return False
        return int(self.blocks[tuple(int(c) for c in voxel)]) != 0

    def solid_count(self) -> int:
        return int(np.count_nonzero(self.blocks))

    def block_counts(self) -> Dict[str, int]:
        ids, counts = np.unique(self.blocks, return_counts=True)
        return {self.palette[int(i)]: int(c) for i, c in zip(ids, counts)}

    def solid_voxels(self) -> np.ndarray:
        return np.argwhere(self.blocks != 0)

    def cast_ray(self, origin: np.ndarray, direction: np.ndarray, max_distance: float) -> Optional[Hit]:
        """
        Nearest solid voxel along origin + t*direction for 0 <= t <= max_distance
        (voxel DDA). None if nothing is hit or the ray leaves the grid.

        The stepping runs in `_dda_cast`, compiled without the GIL, so worker
        threads casting at the same time really run in parallel.
        """
        o = np.asarray(origin, dtype=float)
        d = np.asarray(direction, dtype=float)
        norm = float(np.linalg.norm(d))
        if norm == 0.0 or max_distance <= 0.0:
            return None
        d = d / norm

        hit, i, j, k, axis, sign, t = _dda_cast(
            self.blocks, o[0], o[1], o[2], d[0], d[1], d[2], float(max_distance)
        )
        if not hit:
            return None
        n = np.zeros(3)
        n[axis] = sign
        return Hit(o + d * t, (int(i), int(j), int(k)), n)


# ------------ Compiled DDA ------------

@nb.njit(cache=True, inline="always")
def _solid(blocks, x, y, z):
    nx, ny, nz = blocks.shape
    if x < 0 or y < 0 or z < 0 or x >= nx or y >= ny or z >= nz:
        return False
    return blocks[x, y, z] != 0


@nb.njit(cache=True, nogil=True)
def _dda_cast(blocks, ox, oy, oz, dx, dy, dz, max_distance):
    """
    Amanatides-Woo walk over `blocks` from (ox, oy, oz) along the unit
    direction (dx, dy, dz).

    Returns (hit, i, j, k, axis, sign, t): the struck voxel, the axis of the
    crossed face, the sign of its normal along that axis and the distance.
    """
    o = np.array((ox, oy, oz))
    d = np.array((dx, dy, dz))
    shape = blocks.shape

    # Points on a boundary belong to the voxel the ray is heading into
    cell = np.empty(3, dtype=np.int64)
    for a in range(3):
        cell[a] = int(math.floor(o[a] + d[a] * 1e-9))

    if _solid(blocks, cell[0], cell[1], cell[2]):
        axis = 0
        for a in range(1, 3):
            if abs(d[a]) > abs(d[axis]):
                axis = a
        sign = -1.0 if d[axis] >= 0.0 else 1.0
        return True, cell[0], cell[1], cell[2], axis, sign, 0.0

    step = np.zeros(3, dtype=np.int64)
    t_max = np.full(3, np.inf)
    t_delta = np.full(3, np.inf)
    for a in range(3):
        if d[a] > 0.0:
            step[a] = 1
            t_max[a] = (cell[a] + 1 - o[a]) / d[a]
            t_delta[a] = 1.0 / d[a]
        elif d[a] < 0.0:
            step[a] = -1
            t_max[a] = (cell[a] - o[a]) / d[a]
            t_delta[a] = -1.0 / d[a]

    while True:
        axis = 0
        for a in range(1, 3):
            if t_max[a] < t_max[axis]:
                axis = a
        t = t_max[axis]
        if t > max_distance:
            break
        cell[axis] += step[axis]
        t_max[axis] += t_delta[axis]
        c = cell[axis]
        if (c >= shape[axis] and step[axis] > 0) or (c < 0 and step[axis] < 0):
            # left the grid along this axis and still moving away
            break
        if _solid(blocks, cell[0], cell[1], cell[2]):
            return True, cell[0], cell[1], cell[2], axis, -float(step[axis]), t

    return False, 0, 0, 0, 0, 0.0, 0.0
