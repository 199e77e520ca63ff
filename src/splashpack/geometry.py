"""Convert scene objects and navmeshes into console fixed-point data."""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from .fixed import FixedMatrix, FixedVector, convert_normal, convert_position, rotation_to_fixed_matrix
from .packer import TextureImage
from .scene import NavMesh, SceneObject, Triangle, Vertex


@dataclass
class FixedVertex:
    position: FixedVector
    normal: FixedVector
    color: Tuple[int, int, int]
    uv: Tuple[int, int]  # texels inside the source texture


@dataclass
class FixedTriangle:
    vertices: Tuple[FixedVertex, FixedVertex, FixedVertex]
    texture: TextureImage | None = None


@dataclass
class FixedObject:
    name: str
    position: FixedVector
    matrix: FixedMatrix
    triangles: List[FixedTriangle] = field(default_factory=list)
    script_index: int = -1
    active: bool = True


def _to_byte(value: float, what: str) -> int:
    rounded = int(round(value))
    if 0 <= rounded <= 0xFF:
        return rounded
    warnings.warn(f"{what} {rounded} clamped to 0-255", RuntimeWarning, stacklevel=3)
    return max(0, min(0xFF, rounded))


def texel_uv(uv: Sequence[float], texture: TextureImage | None) -> Tuple[int, int]:
    """Map a 0..1 UV (bottom-left origin) to texel coordinates (top-left origin)."""
    u, v = uv
    if texture is None:
        return (0, 0)
    return (
        _to_byte(u * (texture.width - 1), "U"),
        _to_byte((1.0 - v) * (texture.height - 1), "V"),
    )


def convert_vertex(vertex: Vertex, texture: TextureImage | None, gte_scaling: float) -> FixedVertex:
    return FixedVertex(
        position=convert_position(vertex.position, gte_scaling),
        normal=convert_normal(vertex.normal),
        color=tuple(_to_byte(c, "Vertex colour") for c in vertex.color),  # type: ignore[arg-type]
        uv=texel_uv(vertex.uv, texture),
    )


def convert_triangle(tri: Triangle, gte_scaling: float) -> FixedTriangle:
    return FixedTriangle(
        vertices=tuple(convert_vertex(v, tri.texture, gte_scaling) for v in tri.vertices),  # type: ignore[arg-type]
        texture=tri.texture,
    )


def convert_object(obj: SceneObject, gte_scaling: float, script_index: int = -1) -> FixedObject:
    if len(obj.triangles) > 0xFFFF:
        raise ValueError(f"Object {obj.name} has more than 65535 triangles")
    return FixedObject(
        name=obj.name,
        position=convert_position(obj.transform.position, gte_scaling),
        matrix=rotation_to_fixed_matrix(obj.transform.rotation),
        triangles=[convert_triangle(tri, gte_scaling) for tri in obj.triangles],
        script_index=script_index,
        active=obj.active,
    )


def convert_navmesh(triangles: Sequence[Sequence[Sequence[float]]], gte_scaling: float) -> NavMesh:
    """Build a :class:`NavMesh` from world-space float triangles."""
    converted = []
    for tri in triangles:
        if len(tri) != 3:
            raise ValueError("A navmesh triangle needs exactly three vertices")
        converted.append(tuple(convert_position(v, gte_scaling) for v in tri))
    return NavMesh(triangles=converted)  # type: ignore[arg-type]
