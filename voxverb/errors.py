# voxverb/errors.py
from __future__ import annotations


class VoxverbError(Exception):
    pass


class GeometryInvariantError(VoxverbError, RuntimeError):
    """Seam/corner resolution produced an impossible set of abutting voxels."""


class EmptyImpulseResponseError(VoxverbError, ValueError):
    """No ray reached the target, so there is nothing to synthesise."""
