import pytest

from splashpack.geometry import convert_navmesh, convert_object, texel_uv
from splashpack.packer import BitDepth, TextureImage
from splashpack.scene import SceneObject, Transform, Triangle, Vertex
from splashpack.vram import VRAMColor


def _texture(width: int = 16, height: int = 16) -> TextureImage:
    return TextureImage("t", width, height, BitDepth.BPP4, [0] * (width * height), [VRAMColor(31, 0, 0)])


def test_texel_uv_flips_v() -> None:
    texture = _texture()

    assert texel_uv((0.0, 1.0), texture) == (0, 0)
    assert texel_uv((1.0, 0.0), texture) == (15, 15)
    assert texel_uv((0.5, 0.5), texture) == (8, 8)
    assert texel_uv((0.3, 0.7), None) == (0, 0)


def test_out_of_range_bytes_are_clamped_with_a_warning() -> None:
    with pytest.warns(RuntimeWarning):
        assert texel_uv((20.0, 0.0), _texture()) == (255, 15)

    vertex = Vertex((0.0, 0.0, 0.0), color=(300, 128, -4))
    obj = SceneObject("o", triangles=[Triangle((vertex, vertex, vertex))])
    with pytest.warns(RuntimeWarning):
        fixed = convert_object(obj, 100.0)
    assert fixed.triangles[0].vertices[0].color == (255, 128, 0)


def test_convert_object() -> None:
    texture = _texture()
    a = Vertex((1.0, 2.0, 3.0), normal=(0.0, 1.0, 0.0), uv=(0.0, 1.0))
    obj = SceneObject(
        "crate",
        transform=Transform(position=(0.0, 1.0, 0.0)),
        triangles=[Triangle((a, a, a), texture)],
        active=False,
    )

    fixed = convert_object(obj, 100.0, script_index=3)

    assert fixed.name == "crate"
    assert fixed.position == (0, -41, 0)
    assert fixed.matrix == [[4096, 0, 0], [0, 4096, 0], [0, 0, 4096]]
    assert fixed.script_index == 3
    assert not fixed.active
    vertex = fixed.triangles[0].vertices[0]
    assert vertex.position == (41, -82, 123)
    assert vertex.normal == (0, -4096, 0)
    assert vertex.color == (128, 128, 128)
    assert vertex.uv == (0, 0)
    assert fixed.triangles[0].texture is texture


def test_convert_navmesh() -> None:
    navmesh = convert_navmesh([[(0, 0, 0), (2, 0, 0), (0, -1, 2)]], 100.0)

    assert navmesh.triangles == [((0, 0, 0), (82, 0, 0), (0, 41, 82))]
    with pytest.raises(ValueError):
        convert_navmesh([[(0, 0, 0), (1, 0, 0)]], 100.0)
