"""Scene model handed to the exporter by the asset layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from .packer import TextureImage
from .regions import Region, Resolution, framebuffer_regions, validate_regions

Vector3 = Tuple[float, float, float]
Color = Tuple[int, int, int]
UV = Tuple[float, float]


@dataclass
class Vertex:
    position: Vector3
    normal: Vector3 = (0.0, 1.0, 0.0)
    color: Color = (128, 128, 128)
    uv: UV = (0.0, 0.0)  # 0..1, origin at the bottom-left like the authoring engine


@dataclass
class Triangle:
    vertices: Tuple[Vertex, Vertex, Vertex]
    texture: TextureImage | None = None

    def __post_init__(self) -> None:
        self.vertices = tuple(self.vertices)  # type: ignore[assignment]
        if len(self.vertices) != 3:
            raise ValueError("A triangle needs exactly three vertices")


@dataclass
class Transform:
    position: Vector3 = (0.0, 0.0, 0.0)
    rotation: Vector3 = (0.0, 0.0, 0.0)  # Euler degrees


@dataclass(frozen=True)
class LuaScript:
    name: str
    source: str

    def encode(self) -> bytes:
        return self.source.encode("utf-8")


@dataclass
class SceneObject:
    name: str
    transform: Transform = field(default_factory=Transform)
    triangles: List[Triangle] = field(default_factory=list)
    script: LuaScript | None = None
    active: bool = True


@dataclass
class NavMesh:
    """Navigation triangles, already in console integer coordinates."""

    triangles: List[Tuple[Tuple[int, int, int], Tuple[int, int, int], Tuple[int, int, int]]] = field(
        default_factory=list
    )


@dataclass
class PlayerSpawn:
    position: Vector3 = (0.0, 0.0, 0.0)
    rotation: Vector3 = (0.0, 0.0, 0.0)
    height: float = 0.0


@dataclass
class Scene:
    objects: List[SceneObject] = field(default_factory=list)
    navmeshes: List[NavMesh] = field(default_factory=list)
    scene_script: LuaScript | None = None
    player: PlayerSpawn = field(default_factory=PlayerSpawn)


@dataclass
class ExportOptions:
    """Export settings normally stored by the editor."""

    gte_scaling: float = 100.0
    resolution: Resolution = (320, 240)
    dual_buffering: bool = True
    vertical_layout: bool = True
    prohibited_areas: List[Region] = field(default_factory=list)
    version: int = 1

    def framebuffers(self) -> List[Region]:
        return framebuffer_regions(self.resolution, self.dual_buffering, self.vertical_layout)

    def prohibited_regions(self) -> List[Region]:
        return validate_regions(self.prohibited_areas, "Prohibited")


def collect_textures(objects: Sequence[SceneObject]) -> List[TextureImage]:
    """Distinct texture objects in first-use order across all objects.

    Two different textures sharing an ``image_id`` are both returned so the
    packer rejects the clash.
    """
    seen: Dict[int, TextureImage] = {}
    for obj in objects:
        for tri in obj.triangles:
            if tri.texture is not None and id(tri.texture) not in seen:
                seen[id(tri.texture)] = tri.texture
    return list(seen.values())


def collect_scripts(objects: Sequence[SceneObject], scene_script: LuaScript | None) -> List[LuaScript]:
    """Distinct scripts: object scripts in object order, then the scene script."""
    scripts: List[LuaScript] = []
    for script in [obj.script for obj in objects] + [scene_script]:
        if script is not None and script not in scripts:
            scripts.append(script)
    return scripts
