"""
Shared fixtures: small voxel worlds, material tables and fast configs.
"""

import numpy as np
import pytest

from voxverb.config import SimConfig
from voxverb.geometry import VoxelWorld
from voxverb.materials import MaterialTable


@pytest.fixture
def materials():
    return MaterialTable.builtin()


@pytest.fixture
def wall_materials():
    """One block type that absorbs 10% at 1 kHz and nothing else."""
    return MaterialTable.from_dicts({"tw": {"1000": 0.1}}, {"test_wall": "tw"})


@pytest.fixture
def corridor():
    """16 x 5 x 5 air grid with a single solid voxel at (11, 2, 2)."""
    world = VoxelWorld.empty((16, 5, 5))
    world.set_block((11, 2, 2), "test_wall")
    return world


@pytest.fixture
def room():
    """Closed 6 x 6 x 6 stone room; interior spans [1, 7) on every axis."""
    return VoxelWorld.shoebox((6, 6, 6), wall="stone")


@pytest.fixture
def room_centre():
    return np.array([4.5, 4.5, 4.5])


@pytest.fixture
def fast_cfg():
    """Coarse sweep: 7 pitch rings, a few dozen rays each."""
    return SimConfig(pitch_step_deg=30.0, density_scale=0.002, max_path_length=200.0, workers=4)
