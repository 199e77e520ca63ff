import pytest
from PIL import Image

from splashpack.errors import TextureConversionError
from splashpack.packer import BitDepth
from splashpack.textures import TextureCache, image_to_texture, load_texture
from splashpack.vram import TRANSPARENT, VRAMColor

RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)


def _two_color_image(width: int = 4, height: int = 2) -> Image.Image:
    image = Image.new("RGBA", (width, height), RED)
    for y in range(height):
        image.putpixel((width - 1, y), BLUE)
    return image


def test_indexed_texture_from_image() -> None:
    texture = image_to_texture(_two_color_image(), 8, "two")

    assert texture.bit_depth is BitDepth.BPP8
    assert (texture.width, texture.height) == (4, 2)
    assert len(texture.palette) == 2
    red_index = texture.pixels[0]
    blue_index = texture.pixels[3]
    assert red_index != blue_index
    assert texture.palette[red_index] == VRAMColor(31, 0, 0)
    assert texture.palette[blue_index] == VRAMColor(0, 0, 31)


def test_width_is_padded_to_whole_words() -> None:
    with pytest.warns(RuntimeWarning):
        texture = image_to_texture(_two_color_image(5, 2), 4, "padded")

    assert texture.width == 8
    assert texture.vram_width == 2


def test_transparent_pixels_use_entry_zero() -> None:
    image = _two_color_image()
    image.putpixel((0, 0), (0, 0, 0, 0))

    texture = image_to_texture(image, 4, "alpha")

    assert texture.palette[0] == TRANSPARENT
    assert texture.pixels[0] == 0
    assert all(index != 0 for index in texture.pixels[1:])


def test_direct_color_texture() -> None:
    image = Image.new("RGBA", (2, 1), RED)
    image.putpixel((1, 0), (0, 0, 0, 255))

    texture = image_to_texture(image, 16, "direct")

    assert texture.palette == []
    assert texture.to_words() == [0x001F, 0x8000]


def test_oversized_texture_is_rejected() -> None:
    with pytest.raises(TextureConversionError):
        image_to_texture(Image.new("RGBA", (512, 16)), 4, "big")


def test_load_texture_errors(tmp_path) -> None:
    with pytest.raises(TextureConversionError):
        load_texture(tmp_path / "missing.png", 8)

    broken = tmp_path / "broken.png"
    broken.write_bytes(b"not a png")
    with pytest.raises(TextureConversionError):
        load_texture(broken, 8)


def test_cache_is_keyed_by_source_and_depth(tmp_path) -> None:
    path = tmp_path / "tex.png"
    _two_color_image().save(path)
    cache = TextureCache()

    first = cache.load(path, 8)
    again = cache.load(tmp_path / "." / "tex.png", 8)
    other = cache.load(path, 4)

    assert first is again
    assert other is not first
    assert len(cache) == 2
    assert first.image_id != other.image_id
    assert (path.resolve(), 8) in cache
