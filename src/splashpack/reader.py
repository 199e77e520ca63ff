"""Read back the header and metadata tables of an exported scene file."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

from .errors import SceneFormatError
from .writer import (
    ATLAS_META,
    HEADER_STRUCT,
    MAGIC,
    NAVMESH_META,
    NAVMESH_TRIANGLE,
    OBJECT_FLAG_ACTIVE,
    OBJECT_META,
    PALETTE_META,
    PLACEHOLDER,
    SCRIPT_META,
    TRIANGLE_STRUCT,
)


@dataclass
class SceneHeader:
    version: int
    script_count: int
    object_count: int
    navmesh_count: int
    atlas_count: int
    palette_count: int
    player_position: Tuple[int, int, int]
    player_rotation: Tuple[int, int, int]
    player_height: int
    scene_script_index: int


@dataclass
class ScriptRecord:
    offset: int
    length: int


@dataclass
class ObjectRecord:
    offset: int
    position: Tuple[int, int, int]
    matrix: List[List[int]]
    triangle_count: int
    script_index: int
    flags: int

    @property
    def active(self) -> bool:
        return bool(self.flags & OBJECT_FLAG_ACTIVE)


@dataclass
class NavMeshRecord:
    offset: int
    triangle_count: int


@dataclass
class AtlasRecord:
    offset: int
    width: int
    height: int
    x: int
    y: int


@dataclass
class PaletteRecord:
    offset: int
    clut_x: int
    clut_y: int
    color_count: int


@dataclass
class SceneFile:
    data: bytes
    header: SceneHeader
    scripts: List[ScriptRecord] = field(default_factory=list)
    objects: List[ObjectRecord] = field(default_factory=list)
    navmeshes: List[NavMeshRecord] = field(default_factory=list)
    atlases: List[AtlasRecord] = field(default_factory=list)
    palettes: List[PaletteRecord] = field(default_factory=list)

    def script_source(self, index: int) -> str:
        record = self.scripts[index]
        return self.data[record.offset : record.offset + record.length].decode("utf-8")

    def object_triangles(self, index: int) -> List[tuple]:
        record = self.objects[index]
        size = TRIANGLE_STRUCT.size
        return [
            TRIANGLE_STRUCT.unpack_from(self.data, record.offset + i * size)
            for i in range(record.triangle_count)
        ]

    def navmesh_triangles(self, index: int) -> List[tuple]:
        record = self.navmeshes[index]
        size = NAVMESH_TRIANGLE.size
        return [
            NAVMESH_TRIANGLE.unpack_from(self.data, record.offset + i * size)
            for i in range(record.triangle_count)
        ]

    def atlas_words(self, index: int) -> List[int]:
        """Atlas words as stored (bottom row first)."""
        record = self.atlases[index]
        count = record.width * record.height
        return list(struct.unpack_from(f"<{count}H", self.data, record.offset))

    def palette_words(self, index: int) -> List[int]:
        record = self.palettes[index]
        return list(struct.unpack_from(f"<{record.color_count}H", self.data, record.offset))


class _Cursor:
    def __init__(self, data: bytes):
        self.data = data
        self.pos = 0

    def take(self, fmt: struct.Struct) -> tuple:
        if self.pos + fmt.size > len(self.data):
            raise SceneFormatError(f"Unexpected end of file at byte {self.pos}")
        values = fmt.unpack_from(self.data, self.pos)
        self.pos += fmt.size
        return values

    def offset(self) -> int:
        (value,) = self.take(PLACEHOLDER)
        if value < 0 or value > len(self.data):
            raise SceneFormatError(f"Data offset {value} points outside the file")
        return value


def read_scene(data: bytes) -> SceneFile:
    cursor = _Cursor(data)
    values = cursor.take(HEADER_STRUCT)
    if values[0] != MAGIC:
        raise SceneFormatError(f"Bad magic: {values[0]!r}")
    header = SceneHeader(
        version=values[1],
        script_count=values[2],
        object_count=values[3],
        navmesh_count=values[4],
        atlas_count=values[5],
        palette_count=values[6],
        player_position=tuple(values[7:10]),  # type: ignore[arg-type]
        player_rotation=tuple(values[10:13]),  # type: ignore[arg-type]
        player_height=values[13],
        scene_script_index=values[14],
    )
    scene = SceneFile(data=data, header=header)

    for _ in range(header.script_count):
        offset = cursor.offset()
        (length,) = cursor.take(SCRIPT_META)
        scene.scripts.append(ScriptRecord(offset, length))

    for _ in range(header.object_count):
        offset = cursor.offset()
        fields = cursor.take(OBJECT_META)
        matrix = [list(fields[3 + row * 3 : 6 + row * 3]) for row in range(3)]
        scene.objects.append(
            ObjectRecord(
                offset=offset,
                position=tuple(fields[0:3]),  # type: ignore[arg-type]
                matrix=matrix,
                triangle_count=fields[12],
                script_index=fields[13],
                flags=fields[14],
            )
        )

    for _ in range(header.navmesh_count):
        offset = cursor.offset()
        count, _pad = cursor.take(NAVMESH_META)
        scene.navmeshes.append(NavMeshRecord(offset, count))

    for _ in range(header.atlas_count):
        offset = cursor.offset()
        width, height, x, y = cursor.take(ATLAS_META)
        scene.atlases.append(AtlasRecord(offset, width, height, x, y))

    for _ in range(header.palette_count):
        offset = cursor.offset()
        clut_x, clut_y, count, _pad = cursor.take(PALETTE_META)
        scene.palettes.append(PaletteRecord(offset, clut_x, clut_y, count))

    return scene


def read_scene_file(path: str | Path) -> SceneFile:
    return read_scene(Path(path).read_bytes())
