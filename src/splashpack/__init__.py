"""Scene packer for PlayStation-class consoles.

Packs scene textures into the 1024x512 VRAM (with CLUTs for indexed
textures) and writes meshes, navmeshes, atlases, palettes and Lua scripts
into one binary file. Use the CLI (``python -m splashpack``) or call
:func:`export_scene` with a :class:`Scene` built by your asset layer.
"""

from .errors import (
    InvalidConfiguration,
    OffsetTableMismatch,
    PackingOverflow,
    SceneFormatError,
    SplashpackError,
    TextureConversionError,
)
from .exporter import ExportReport, ExportState, SceneExporter, export_scene
from .fixed import rotation_to_fixed_matrix, world_to_fixed
from .loader import load_scene
from .packer import BitDepth, PackResult, TextureImage, VRAMPacker, pack
from .reader import read_scene, read_scene_file
from .regions import Region, framebuffer_regions
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
from .textures import TextureCache, image_to_texture, load_texture
from .vram import VRAMBuffer, VRAMColor
from .writer import ExportProgress, SceneWriter

__all__ = [
    "BitDepth",
    "ExportOptions",
    "ExportProgress",
    "ExportReport",
    "ExportState",
    "InvalidConfiguration",
    "LuaScript",
    "NavMesh",
    "OffsetTableMismatch",
    "PackResult",
    "PackingOverflow",
    "PlayerSpawn",
    "Region",
    "Scene",
    "SceneExporter",
    "SceneFormatError",
    "SceneObject",
    "SceneWriter",
    "SplashpackError",
    "TextureCache",
    "TextureConversionError",
    "TextureImage",
    "Transform",
    "Triangle",
    "VRAMBuffer",
    "VRAMColor",
    "VRAMPacker",
    "Vertex",
    "export_scene",
    "framebuffer_regions",
    "image_to_texture",
    "load_scene",
    "load_texture",
    "pack",
    "read_scene",
    "read_scene_file",
    "rotation_to_fixed_matrix",
    "world_to_fixed",
]
