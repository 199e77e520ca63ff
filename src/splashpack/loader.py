"""Load a JSON scene description into a :class:`Scene` and :class:`ExportOptions`.

Example::

    {
      "options": {"gte_scaling": 100, "resolution": [320, 240],
                  "dual_buffering": true, "vertical_layout": true,
                  "prohibited_areas": [[960, 0, 64, 64]]},
      "scene_script": "scene.lua",
      "player": {"position": [0, 1, 0], "rotation": [0, 90, 0], "height": 1.7},
      "objects": [
        {"name": "floor", "position": [0, 0, 0], "rotation": [0, 0, 0],
         "active": true, "script": "floor.lua",
         "texture": {"path": "floor.png", "bit_depth": 8},
         "triangles": [[{"position": [0, 0, 0], "normal": [0, 1, 0],
                         "color": [128, 128, 128], "uv": [0, 0]}, ...]]}
      ],
      "navmeshes": [{"space": "world", "triangles": [[[0, 0, 0], [1, 0, 0], [0, 0, 1]]]}]
    }

Relative paths are resolved against the directory of the JSON file.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

from .errors import SceneFormatError
from .geometry import convert_navmesh
from .packer import BitDepth, TextureImage
from .regions import Region
from .scene import (
    ExportOptions,
    LuaScript,
    NavMesh,
    PlayerSpawn,
    Scene,
    SceneObject,
    Transform,
    Triangle,
    Vertex,
)
from .textures import TextureCache


def _numbers(value: Any, count: int, what: str, kind: type = float) -> Tuple:
    if not isinstance(value, (list, tuple)) or len(value) != count:
        raise SceneFormatError(f"{what} must be a list of {count} numbers")
    try:
        return tuple(kind(v) for v in value)
    except (TypeError, ValueError) as exc:
        raise SceneFormatError(f"{what} contains a non-numeric value") from exc


class SceneLoader:
    def __init__(self, base_dir: Path):
        self.base_dir = base_dir
        self.textures = TextureCache()
        self.scripts: Dict[Path, LuaScript] = {}

    def _path(self, raw: Any, what: str) -> Path:
        if not isinstance(raw, str) or not raw:
            raise SceneFormatError(f"{what} must be a path string")
        path = Path(raw)
        return path if path.is_absolute() else self.base_dir / path

    def script(self, raw: Any) -> LuaScript | None:
        if raw is None:
            return None
        path = self._path(raw, "script").resolve()
        if path not in self.scripts:
            try:
                source = path.read_text(encoding="utf-8")
            except FileNotFoundError as exc:
                raise SceneFormatError(f"Script not found: {path}") from exc
            self.scripts[path] = LuaScript(name=path.name, source=source)
        return self.scripts[path]

    def texture(self, raw: Any) -> TextureImage | None:
        if raw is None:
            return None
        if not isinstance(raw, dict):
            raise SceneFormatError("texture must be an object with 'path' and 'bit_depth'")
        try:
            bit_depth = BitDepth(int(raw.get("bit_depth", 8)))
        except ValueError as exc:
            raise SceneFormatError(f"Unsupported bit depth: {raw.get('bit_depth')}") from exc
        return self.textures.load(self._path(raw.get("path"), "texture path"), bit_depth)

    def vertex(self, raw: Any) -> Vertex:
        if not isinstance(raw, dict) or "position" not in raw:
            raise SceneFormatError("vertex must be an object with a 'position'")
        return Vertex(
            position=_numbers(raw["position"], 3, "vertex position"),
            normal=_numbers(raw.get("normal", [0, 1, 0]), 3, "vertex normal"),
            color=_numbers(raw.get("color", [128, 128, 128]), 3, "vertex color", int),
            uv=_numbers(raw.get("uv", [0, 0]), 2, "vertex uv"),
        )

    def scene_object(self, raw: Any, index: int) -> SceneObject:
        if not isinstance(raw, dict):
            raise SceneFormatError(f"objects[{index}] must be an object")
        texture = self.texture(raw.get("texture"))
        triangles: List[Triangle] = []
        for tri in raw.get("triangles", []):
            if not isinstance(tri, list) or len(tri) != 3:
                raise SceneFormatError(f"objects[{index}] triangle must list three vertices")
            triangles.append(Triangle(tuple(self.vertex(v) for v in tri), texture))  # type: ignore[arg-type]
        return SceneObject(
            name=str(raw.get("name", f"object{index}")),
            transform=Transform(
                position=_numbers(raw.get("position", [0, 0, 0]), 3, "object position"),
                rotation=_numbers(raw.get("rotation", [0, 0, 0]), 3, "object rotation"),
            ),
            triangles=triangles,
            script=self.script(raw.get("script")),
            active=bool(raw.get("active", True)),
        )

    def navmesh(self, raw: Any, gte_scaling: float) -> NavMesh:
        if not isinstance(raw, dict):
            raise SceneFormatError("navmesh must be an object with 'triangles'")
        triangles = raw.get("triangles", [])
        for tri in triangles:
            if not isinstance(tri, list) or len(tri) != 3:
                raise SceneFormatError("navmesh triangle must list three vertices")
        if raw.get("space", "fixed") == "world":
            return convert_navmesh(
                [[_numbers(v, 3, "navmesh vertex") for v in tri] for tri in triangles],
                gte_scaling,
            )
        return NavMesh(
            triangles=[
                tuple(_numbers(v, 3, "navmesh vertex", int) for v in tri)  # type: ignore[misc]
                for tri in triangles
            ]
        )


def parse_options(raw: Any) -> ExportOptions:
    if raw is None:
        return ExportOptions()
    if not isinstance(raw, dict):
        raise SceneFormatError("options must be an object")
    options = ExportOptions()
    if "gte_scaling" in raw:
        options.gte_scaling = float(raw["gte_scaling"])
    if "resolution" in raw:
        options.resolution = _numbers(raw["resolution"], 2, "resolution", int)  # type: ignore[assignment]
    options.dual_buffering = bool(raw.get("dual_buffering", options.dual_buffering))
    options.vertical_layout = bool(raw.get("vertical_layout", options.vertical_layout))
    options.prohibited_areas = [
        Region(*_numbers(area, 4, "prohibited area", int)) for area in raw.get("prohibited_areas", [])
    ]
    return options


def load_scene_data(data: Dict[str, Any], base_dir: Path) -> Tuple[Scene, ExportOptions]:
    if not isinstance(data, dict):
        raise SceneFormatError("Scene description must be a JSON object")
    options = parse_options(data.get("options"))
    loader = SceneLoader(base_dir)

    objects: Sequence[Any] = data.get("objects", [])
    player_raw = data.get("player") or {}
    scene = Scene(
        objects=[loader.scene_object(raw, idx) for idx, raw in enumerate(objects)],
        navmeshes=[loader.navmesh(raw, options.gte_scaling) for raw in data.get("navmeshes", [])],
        scene_script=loader.script(data.get("scene_script")),
        player=PlayerSpawn(
            position=_numbers(player_raw.get("position", [0, 0, 0]), 3, "player position"),
            rotation=_numbers(player_raw.get("rotation", [0, 0, 0]), 3, "player rotation"),
            height=float(player_raw.get("height", 0.0)),
        ),
    )
    return scene, options


def load_scene(path: str | Path) -> Tuple[Scene, ExportOptions]:
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise SceneFormatError(f"Scene description not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise SceneFormatError(f"Invalid JSON in {path}: {exc}") from exc
    return load_scene_data(data, path.parent)
