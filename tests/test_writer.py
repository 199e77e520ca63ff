import io
import struct

import pytest

from splashpack.errors import OffsetTableMismatch
from splashpack.exporter import SceneExporter
from splashpack.packer import BitDepth, TextureImage
from splashpack.reader import read_scene_file
from splashpack.regions import Region
from splashpack.scene import (
    ExportOptions,
    LuaScript,
    NavMesh,
    Scene,
    SceneObject,
    Transform,
    Triangle,
    Vertex,
)
from splashpack.vram import VRAMColor
from splashpack.writer import COLLECTIONS, OffsetTable, TRIANGLE_STRUCT, tpage_attr

PALETTE = [VRAMColor(31, 0, 0), VRAMColor(0, 31, 0)]


def _texture(image_id: str, depth: BitDepth, width: int = 16, height: int = 16) -> TextureImage:
    if depth is BitDepth.BPP16:
        return TextureImage(image_id, width, height, depth, [0x7FFF] * (width * height))
    palette = PALETTE if depth is BitDepth.BPP4 else list(reversed(PALETTE))
    return TextureImage(image_id, width, height, depth, [i % 2 for i in range(width * height)], palette)


def _triangle(texture: TextureImage | None, uvs=((0.0, 1.0), (1.0, 1.0), (0.0, 0.0))) -> Triangle:
    return Triangle(
        (
            Vertex((0.0, 0.0, 0.0), uv=uvs[0]),
            Vertex((1.0, 0.0, 0.0), uv=uvs[1]),
            Vertex((0.0, 0.0, 1.0), uv=uvs[2]),
        ),
        texture,
    )


def _busy_scene() -> Scene:
    t4 = _texture("t4", BitDepth.BPP4)
    t8 = _texture("t8", BitDepth.BPP8, 32, 8)
    t16 = _texture("t16", BitDepth.BPP16, 8, 8)
    odd = LuaScript("odd.lua", "a=1")
    other = LuaScript("other.lua", "print('héllo')")
    return Scene(
        objects=[
            SceneObject("a", Transform((1.0, 2.0, 3.0)), [_triangle(t4), _triangle(t8)], script=odd),
            SceneObject("b", triangles=[_triangle(t16), _triangle(None), _triangle(t8)], script=other, active=False),
        ],
        navmeshes=[NavMesh([((0, 0, 0), (100, 0, 0), (0, 0, 100))])],
        scene_script=odd,
    )


def test_tpage_attr_bits() -> None:
    assert tpage_attr(5, 1, 1) == 5 | (1 << 4) | (1 << 7) | (1 << 9)
    assert tpage_attr(15, 0, 2, dithering=False) == 15 | (2 << 7)


def test_triangle_record_is_52_bytes() -> None:
    assert TRIANGLE_STRUCT.size == 52


def test_offset_table_mismatch_is_fatal() -> None:
    fh = io.BytesIO()
    table = OffsetTable("objects")
    table.reserve(fh)
    table.reserve(fh)
    table.resolve(fh)

    with pytest.raises(OffsetTableMismatch):
        table.backpatch(fh)


def test_offset_table_backpatches_placeholders() -> None:
    fh = io.BytesIO()
    table = OffsetTable("scripts")
    table.reserve(fh)
    fh.write(b"xyz")
    table.resolve(fh)
    fh.write(b"data")
    table.backpatch(fh)

    data = fh.getvalue()
    assert table.offsets == [8]
    assert data[:4] == struct.pack("<i", 8)
    assert data[4:8] == b"xyz\x00"


def test_placeholders_hold_aligned_payload_offsets(tmp_path) -> None:
    out = tmp_path / "scene.bin"
    exporter = SceneExporter(_busy_scene())
    exporter.export(out)

    data = out.read_bytes()
    tables = exporter.writer.tables
    assert [len(tables[name].offsets) for name in COLLECTIONS] == [2, 2, 1, 1, 2]
    for name in COLLECTIONS:
        table = tables[name]
        for position, offset in zip(table.placeholders, table.offsets):
            assert struct.unpack_from("<i", data, position)[0] == offset
            assert offset % 4 == 0

    scene = read_scene_file(out)
    assert scene.script_source(0) == "a=1"
    assert scene.script_source(1) == "print('héllo')"
    assert scene.scripts[1].length == len("print('héllo')".encode("utf-8"))
    assert [o.offset for o in scene.objects] == tables["objects"].offsets
    assert scene.navmesh_triangles(0) == [(0, 0, 0, 100, 0, 0, 0, 0, 100)]


def test_payload_order_follows_collection_order(tmp_path) -> None:
    out = tmp_path / "scene.bin"
    exporter = SceneExporter(_busy_scene())
    exporter.export(out)

    tables = exporter.writer.tables
    starts = [tables[name].offsets[0] for name in COLLECTIONS]
    assert starts == sorted(starts)
    last_meta = max(p for name in COLLECTIONS for p in tables[name].placeholders)
    assert starts[0] > last_meta


def test_object_records_and_flags(tmp_path) -> None:
    out = tmp_path / "scene.bin"
    SceneExporter(_busy_scene()).export(out)

    scene = read_scene_file(out)
    a, b = scene.objects
    assert a.position == (41, -82, 123)
    assert a.matrix == [[4096, 0, 0], [0, 4096, 0], [0, 0, 4096]]
    assert (a.triangle_count, b.triangle_count) == (2, 3)
    assert (a.script_index, b.script_index) == (0, 1)
    assert a.active and not b.active
    assert scene.header.scene_script_index == 0


def test_uvs_are_offset_by_packing_position(tmp_path) -> None:
    texture = _texture("t4", BitDepth.BPP4)
    scene = Scene(objects=[SceneObject("o", triangles=[_triangle(texture)])])
    options = ExportOptions(
        resolution=(256, 240),
        dual_buffering=False,
        prohibited_areas=[Region(256, 0, 8, 240)],
    )
    out = tmp_path / "scene.bin"
    exporter = SceneExporter(scene, options)
    exporter.export(out)

    placement = exporter.packed.placements["t4"]
    assert (placement.x, placement.y) == (264, 0)
    assert (placement.texpage_x, placement.packing_x) == (4, 8)

    record = read_scene_file(out).object_triangles(0)[0]
    uvs = record[24:30]
    # 4-bit texels: four per VRAM word, so an 8-word offset moves U by 32
    assert uvs == (32, 0, 32 + 15, 0, 32, 15)
    assert record[31] == tpage_attr(4, 0, 0)
    assert (record[32], record[33]) == (placement.clut_packing_x, placement.clut_packing_y)
