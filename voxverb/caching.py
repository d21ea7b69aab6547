# voxverb/caching.py
from __future__ import annotations

from dataclasses import astuple
from typing import Callable, Optional, Tuple
import hashlib
import io

import numpy as np
import streamlit as st
import trimesh

from .config import SimConfig, SynthConfig
from .geometry import VoxelWorld
from .materials import MaterialTable
from .pipeline import Scene, SimulationResult, render_ir, simulate
from .scheduler import Progress
from .synthesis import ImpulseResponse


# ------------ Helpers / hashing ------------

def mesh_from_bytes(data: bytes, file_type: str) -> "trimesh.Trimesh":
    mesh = trimesh.load(io.BytesIO(data), file_type=file_type, force="mesh")
    if not isinstance(mesh, trimesh.Trimesh) or len(mesh.faces) == 0:
        raise ValueError("File contains no triangle mesh")
    return mesh


def bytes_hash(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


def world_hash(world: VoxelWorld) -> str:
    h = hashlib.sha1()
    h.update(np.ascontiguousarray(world.blocks, dtype=np.int16).tobytes())
    h.update(repr(world.shape).encode())
    h.update("\0".join(world.palette).encode())
    return h.hexdigest()


def config_key(cfg) -> tuple:
    return astuple(cfg)


# ------------ World building ------------

@st.cache_resource(show_spinner=False)
def shoebox_cached(size: Tuple[int, int, int], wall: str,
                   floor: Optional[str], ceiling: Optional[str]) -> VoxelWorld:
    return VoxelWorld.shoebox(size, wall=wall, floor=floor, ceiling=ceiling)


@st.cache_resource(show_spinner=False)
def world_from_mesh_cached(mesh_key: str, _data: bytes, file_type: str,
                           pitch: float, block: str, fill: bool) -> VoxelWorld:
    mesh = mesh_from_bytes(_data, file_type)
    return VoxelWorld.from_mesh(mesh, pitch=pitch, block=block, fill=fill)


# ------------ Main cached pipeline ------------

@st.cache_data(show_spinner=False, max_entries=8)
def simulate_cached(
    world_key: str,
    _world: VoxelWorld,
    receiver: Tuple[float, float, float],
    source: Tuple[float, float, float],
    cfg_key: tuple,
    synth_key: tuple,
    *,
    _materials: Optional[MaterialTable] = None,
    _on_progress: Optional[Callable[[Progress], None]] = None,
) -> Tuple[SimulationResult, Optional[ImpulseResponse]]:
    """
    Returns (result, ir); ir is None when no ray reached the source.
    Keyed on the world hash plus plain-tuple configs; the world, material
    table and progress callback are excluded from hashing.
    """
    cfg = SimConfig(*cfg_key)
    synth = SynthConfig(*synth_key)
    scene = Scene(_world, _materials or MaterialTable.builtin(),
                  np.asarray(receiver, float), np.asarray(source, float))

    result = simulate(scene, cfg, on_progress=_on_progress)
    ir = render_ir(result, synth) if len(result.matrix) else None
    return result, ir
