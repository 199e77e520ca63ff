"""Turn source images into console textures.

Indexed textures are quantised with median cut; transparent pixels (alpha
below 128) use palette entry 0, which is the transparent word 0x0000.
Widths are padded so every row fills whole VRAM words.
"""

from __future__ import annotations

import warnings
from pathlib import Path
from typing import Callable, Dict, List, Tuple

from PIL import Image

from .errors import TextureConversionError
from .packer import BitDepth, TextureImage
from .vram import TRANSPARENT, VRAMColor

MAX_TEXTURE_SIZE = 256
ALPHA_THRESHOLD = 128


def pad_to_word_width(image: Image.Image, bit_depth: BitDepth) -> Image.Image:
    multiple = bit_depth.texels_per_word
    width, height = image.size
    if width % multiple == 0:
        return image
    padded = width + multiple - width % multiple
    warnings.warn(
        f"Texture width {width} padded to {padded} for {int(bit_depth)}-bit VRAM words",
        RuntimeWarning,
        stacklevel=3,
    )
    canvas = Image.new("RGBA", (padded, height), (0, 0, 0, 0))
    canvas.paste(image, (0, 0))
    return canvas


def _quantize(rgba: Image.Image, bit_depth: BitDepth) -> Tuple[List[int], List[VRAMColor]]:
    alpha = list(rgba.getchannel("A").tobytes())
    transparent = [a < ALPHA_THRESHOLD for a in alpha]
    has_transparency = any(transparent)
    colors = bit_depth.max_colors - (1 if has_transparency else 0)

    quantized = rgba.convert("RGB").quantize(colors=colors, method=Image.Quantize.MEDIANCUT)
    raw = list(quantized.tobytes())
    flat = list(quantized.getpalette() or [])

    if has_transparency:
        indices = [0 if clear else index + 1 for index, clear in zip(raw, transparent)]
    else:
        indices = raw
    used = max(indices) + 1
    shift = 1 if has_transparency else 0
    flat += [0] * max(0, 3 * (used - shift) - len(flat))

    palette: List[VRAMColor] = [TRANSPARENT] if has_transparency else []
    for entry in range(used - shift):
        r, g, b = flat[entry * 3 : entry * 3 + 3]
        palette.append(VRAMColor.from_rgba(r, g, b))
    return indices, palette


def image_to_texture(
    image: Image.Image,
    bit_depth: BitDepth | int,
    image_id: str,
    identity: object = None,
) -> TextureImage:
    bit_depth = BitDepth(bit_depth)
    width, height = image.size
    if width > MAX_TEXTURE_SIZE or height > MAX_TEXTURE_SIZE:
        raise TextureConversionError(
            f"Texture {image_id} is {width}x{height}; the limit is "
            f"{MAX_TEXTURE_SIZE}x{MAX_TEXTURE_SIZE}"
        )
    rgba = pad_to_word_width(image.convert("RGBA"), bit_depth)
    width, height = rgba.size

    if bit_depth.is_indexed:
        indices, palette = _quantize(rgba, bit_depth)
        return TextureImage(
            image_id=image_id,
            width=width,
            height=height,
            bit_depth=bit_depth,
            pixels=indices,
            palette=palette,
            identity=identity,
        )

    data = rgba.tobytes()
    pixels = [VRAMColor.from_rgba(*data[i : i + 4]) for i in range(0, len(data), 4)]
    return TextureImage(
        image_id=image_id,
        width=width,
        height=height,
        bit_depth=bit_depth,
        pixels=pixels,
        identity=identity,
    )


def load_texture(path: str | Path, bit_depth: BitDepth | int, image_id: str | None = None) -> TextureImage:
    path = Path(path)
    bit_depth = BitDepth(bit_depth)
    try:
        with Image.open(path) as img:
            return image_to_texture(
                img,
                bit_depth,
                image_id or f"{path.name}@{int(bit_depth)}",
                identity=path.resolve(),
            )
    except FileNotFoundError as exc:
        raise TextureConversionError(f"Texture file not found: {path}") from exc
    except OSError as exc:
        raise TextureConversionError(f"Failed to read texture: {path}") from exc


class TextureCache:
    """Textures keyed by ``(source identity, bit depth)``.

    The same source used at two depths yields two textures; the same source
    at one depth is converted once and shared.
    """

    def __init__(self) -> None:
        self._entries: Dict[Tuple[object, BitDepth], TextureImage] = {}
        self._ids: set[str] = set()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Tuple[object, BitDepth | int]) -> bool:
        identity, bit_depth = key
        return (identity, BitDepth(bit_depth)) in self._entries

    def get_or_create(
        self,
        identity: object,
        bit_depth: BitDepth | int,
        factory: Callable[[str], TextureImage],
        name: str = "texture",
    ) -> TextureImage:
        key = (identity, BitDepth(bit_depth))
        if key not in self._entries:
            texture = factory(self._unique_id(f"{name}@{int(key[1])}"))
            self._entries[key] = texture
            self._ids.add(texture.image_id)
        return self._entries[key]

    def load(self, path: str | Path, bit_depth: BitDepth | int) -> TextureImage:
        path = Path(path)
        return self.get_or_create(
            path.resolve(),
            bit_depth,
            lambda image_id: load_texture(path, bit_depth, image_id),
            name=path.name,
        )

    def _unique_id(self, base: str) -> str:
        candidate = base
        suffix = 1
        while candidate in self._ids:
            suffix += 1
            candidate = f"{base}#{suffix}"
        return candidate
