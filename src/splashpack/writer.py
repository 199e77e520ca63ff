"""Binary scene writer.

Layout (all little-endian)
Section        | Contents
---------------|---------------------------------------------------------------
Header         | 32 bytes, see HEADER_STRUCT
Script meta    | per script: data offset (i32), byte length (u32)
Object meta    | per object: data offset, position (3 x i32), matrix (9 x i32),
               | triangle count (u16), script index (i16), flags (i32, bit0 active)
Navmesh meta   | per navmesh: data offset, triangle count (u16), padding (u16)
Atlas meta     | per atlas: data offset, width, height, x, y (u16 each)
Palette meta   | per CLUT: data offset, CLUT x/16, CLUT y, colour count, padding
Data           | payloads in the same order, each aligned to 4 bytes

Offsets are unknown while the metadata is written, so every record starts
with a zero placeholder whose file position is remembered. Once all payloads
are written the placeholders are overwritten with the real offsets.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, Iterator, List

from .errors import OffsetTableMismatch
from .fixed import FixedVector
from .geometry import FixedObject, FixedTriangle
from .packer import PackResult, Placement
from .scene import LuaScript, NavMesh

MAGIC = b"SP"
FORMAT_VERSION = 1

HEADER_STRUCT = struct.Struct("<2sH5H3h3hhhH")
PLACEHOLDER = struct.Struct("<i")
SCRIPT_META = struct.Struct("<I")
OBJECT_META = struct.Struct("<3i9iHhi")
NAVMESH_META = struct.Struct("<HH")
ATLAS_META = struct.Struct("<4H")
PALETTE_META = struct.Struct("<4H")
NAVMESH_TRIANGLE = struct.Struct("<9i")
TRIANGLE_STRUCT = struct.Struct("<9h3h12B6BH4H")

# Fixed order shared by all three passes.
COLLECTIONS = ("scripts", "objects", "navmeshes", "atlases", "palettes")

OBJECT_FLAG_ACTIVE = 0x1


def tpage_attr(page_x: int, page_y: int, color_mode: int, dithering: bool = True) -> int:
    """Texture page attribute word.

    bits 0-3 page X (64-word units), bit 4 page Y (256-line units),
    bits 7-8 colour mode (0: 4-bit, 1: 8-bit, 2: 16-bit), bit 9 dithering.
    """
    info = page_x & 0xF
    info |= (page_y & 0x1) << 4
    info |= (color_mode & 0x3) << 7
    if dithering:
        info |= 0x200
    return info


def align_to_four(fh: BinaryIO) -> None:
    padding = (4 - fh.tell() % 4) % 4
    if padding:
        fh.write(b"\x00" * padding)


@dataclass
class OffsetTable:
    """Placeholder positions and resolved data offsets of one collection."""

    name: str
    placeholders: List[int] = field(default_factory=list)
    offsets: List[int] = field(default_factory=list)

    def reserve(self, fh: BinaryIO) -> None:
        self.placeholders.append(fh.tell())
        fh.write(PLACEHOLDER.pack(0))

    def resolve(self, fh: BinaryIO) -> None:
        align_to_four(fh)
        self.offsets.append(fh.tell())

    def backpatch(self, fh: BinaryIO) -> None:
        if len(self.placeholders) != len(self.offsets):
            raise OffsetTableMismatch(
                f"{self.name}: {len(self.placeholders)} placeholders but "
                f"{len(self.offsets)} data blocks"
            )
        for position, offset in zip(self.placeholders, self.offsets):
            fh.seek(position)
            fh.write(PLACEHOLDER.pack(offset))


@dataclass
class ScenePayload:
    """Everything the writer needs, already packed and converted."""

    scripts: List[LuaScript]
    objects: List[FixedObject]
    navmeshes: List[NavMesh]
    packed: PackResult
    player_position: FixedVector = (0, 0, 0)
    player_rotation: FixedVector = (0, 0, 0)
    player_height: int = 0
    scene_script_index: int = -1
    version: int = FORMAT_VERSION


@dataclass(frozen=True)
class ExportProgress:
    stage: str
    index: int
    total: int


class SceneWriter:
    def __init__(self, payload: ScenePayload):
        self.payload = payload
        self.tables: Dict[str, OffsetTable] = {name: OffsetTable(name) for name in COLLECTIONS}

    def write(self, fh: BinaryIO) -> None:
        for _ in self.iter_write(fh):
            pass

    def iter_write(self, fh: BinaryIO) -> Iterator[ExportProgress]:
        """Write the scene to the seekable ``fh``, yielding per data block."""
        self._write_header(fh)
        self._write_metadata(fh)
        yield from self._write_data(fh)
        self._backpatch(fh)

    def _counts(self) -> List[int]:
        p = self.payload
        counts = [len(p.scripts), len(p.objects), len(p.navmeshes), len(p.packed.atlases), p.packed.clut_count]
        for name, count in zip(COLLECTIONS, counts):
            if count > 0xFFFF:
                raise ValueError(f"Too many {name}: {count}")
        return counts

    def _write_header(self, fh: BinaryIO) -> None:
        p = self.payload
        fh.write(
            HEADER_STRUCT.pack(
                MAGIC,
                p.version,
                *self._counts(),
                *p.player_position,
                *p.player_rotation,
                p.player_height,
                p.scene_script_index,
                0,
            )
        )

    def _write_metadata(self, fh: BinaryIO) -> None:
        p = self.payload
        for script in p.scripts:
            self.tables["scripts"].reserve(fh)
            fh.write(SCRIPT_META.pack(len(script.encode())))

        for obj in p.objects:
            self.tables["objects"].reserve(fh)
            matrix = [value for row in obj.matrix for value in row]
            flags = OBJECT_FLAG_ACTIVE if obj.active else 0
            fh.write(OBJECT_META.pack(*obj.position, *matrix, len(obj.triangles), obj.script_index, flags))

        for navmesh in p.navmeshes:
            self.tables["navmeshes"].reserve(fh)
            fh.write(NAVMESH_META.pack(len(navmesh.triangles), 0))

        for atlas in p.packed.atlases:
            self.tables["atlases"].reserve(fh)
            region = atlas.region
            fh.write(ATLAS_META.pack(region.width, region.height, region.x, region.y))

        for clut in p.packed.cluts:
            self.tables["palettes"].reserve(fh)
            fh.write(PALETTE_META.pack(clut.packing_x, clut.packing_y, len(clut.colors), 0))

    def _write_data(self, fh: BinaryIO) -> Iterator[ExportProgress]:
        p = self.payload
        blocks = [
            ("scripts", p.scripts, lambda script: fh.write(script.encode())),
            ("objects", p.objects, lambda obj: self._write_object(fh, obj)),
            ("navmeshes", p.navmeshes, lambda navmesh: self._write_navmesh(fh, navmesh)),
            ("atlases", p.packed.atlases, lambda atlas: fh.write(p.packed.vram.row_bytes(atlas.region))),
            ("palettes", p.packed.cluts, lambda clut: fh.write(struct.pack(f"<{len(clut.words)}H", *clut.words))),
        ]
        total = sum(len(items) for _, items, _ in blocks)
        index = 0
        for name, items, emit in blocks:
            table = self.tables[name]
            for item in items:
                table.resolve(fh)
                emit(item)
                yield ExportProgress(name, index, total)
                index += 1

    def _write_object(self, fh: BinaryIO, obj: FixedObject) -> None:
        for tri in obj.triangles:
            fh.write(self._pack_triangle(tri))

    def _pack_triangle(self, tri: FixedTriangle) -> bytes:
        v0, v1, v2 = tri.vertices
        placement: Placement | None = None
        if tri.texture is not None:
            placement = self.payload.packed.placements[tri.texture.image_id]

        if placement is None:
            uv_offset = (0, 0)
            expander = 1
            tpage = tpage_attr(0, 0, 0)
            clut = (0, 0)
        else:
            uv_offset = (placement.packing_x, placement.packing_y)
            expander = placement.bit_depth.texels_per_word
            tpage = tpage_attr(placement.texpage_x, placement.texpage_y, placement.bit_depth.color_mode)
            clut = (placement.clut_packing_x, placement.clut_packing_y)

        colors = []
        uvs = []
        for v in tri.vertices:
            colors.extend((*v.color, 0))
            uvs.append(v.uv[0] + uv_offset[0] * expander)
            uvs.append(v.uv[1] + uv_offset[1])
        return TRIANGLE_STRUCT.pack(
            *v0.position,
            *v1.position,
            *v2.position,
            *v0.normal,
            *colors,
            *uvs,
            0,
            tpage,
            clut[0],
            clut[1],
            0,
        )

    @staticmethod
    def _write_navmesh(fh: BinaryIO, navmesh: NavMesh) -> None:
        for tri in navmesh.triangles:
            fh.write(NAVMESH_TRIANGLE.pack(*(coord for vertex in tri for coord in vertex)))

    def _backpatch(self, fh: BinaryIO) -> None:
        end = fh.tell()
        for name in COLLECTIONS:
            self.tables[name].backpatch(fh)
        fh.seek(end)
