"""VRAM pixel format and the 1024x512 VRAM buffer.

Reference: PlayStation GPU VRAM
- 1024 x 512 halfwords, addressed in 16-bit words (not texels).
- Pixel word: bit15 = mask/semi-transparency, bits14..10 = B, 9..5 = G, 4..0 = R.
- A word of 0x0000 is drawn as fully transparent by the GPU.
- Texture pages are 64 words wide and 256 lines tall.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence

from .regions import VRAM_HEIGHT, VRAM_WIDTH, Region

CHANNEL_MAX = 31


def _clamp_channel(value: int) -> int:
    return max(0, min(CHANNEL_MAX, int(value)))


@dataclass(frozen=True)
class VRAMColor:
    """15-bit colour plus the mask bit."""

    r: int = 0
    g: int = 0
    b: int = 0
    mask: bool = False

    def pack(self) -> int:
        r = _clamp_channel(self.r)
        g = _clamp_channel(self.g)
        b = _clamp_channel(self.b)
        return (0x8000 if self.mask else 0) | (b << 10) | (g << 5) | r

    @classmethod
    def unpack(cls, word: int) -> "VRAMColor":
        word &= 0xFFFF
        return cls(
            r=word & 0x1F,
            g=(word >> 5) & 0x1F,
            b=(word >> 10) & 0x1F,
            mask=bool(word & 0x8000),
        )

    @classmethod
    def from_rgba(cls, r: int, g: int, b: int, a: int = 255) -> "VRAMColor":
        """Convert 8-bit channels.

        Alpha below 128 maps to the transparent word. Opaque colours that
        would collapse to 0x0000 get the mask bit so they stay visible.
        """
        if a < 128:
            return cls()
        color = cls(r=r >> 3, g=g >> 3, b=b >> 3)
        if color.pack() == 0:
            return cls(mask=True)
        return color


TRANSPARENT = VRAMColor()


class VRAMBuffer:
    """Fixed 1024x512 grid of 16-bit words with a top-left origin."""

    width = VRAM_WIDTH
    height = VRAM_HEIGHT

    def __init__(self, words: Sequence[int] | None = None):
        if words is None:
            self.words: List[int] = [0] * (VRAM_WIDTH * VRAM_HEIGHT)
        else:
            if len(words) != VRAM_WIDTH * VRAM_HEIGHT:
                raise ValueError("VRAM buffer must hold exactly 1024x512 words")
            self.words = list(words)

    def _index(self, x: int, y: int) -> int:
        if not (0 <= x < VRAM_WIDTH and 0 <= y < VRAM_HEIGHT):
            raise IndexError(f"VRAM coordinate out of range: ({x}, {y})")
        return y * VRAM_WIDTH + x

    def get(self, x: int, y: int) -> int:
        return self.words[self._index(x, y)]

    def set(self, x: int, y: int, word: int) -> None:
        self.words[self._index(x, y)] = word & 0xFFFF

    def color_at(self, x: int, y: int) -> VRAMColor:
        return VRAMColor.unpack(self.get(x, y))

    def blit(self, x: int, y: int, width: int, words: Sequence[int]) -> None:
        """Copy a row-major block of ``width`` words per row to (x, y)."""
        if width <= 0 or len(words) % width:
            raise ValueError("Word count must be a multiple of the block width")
        height = len(words) // width
        if x < 0 or y < 0 or x + width > VRAM_WIDTH or y + height > VRAM_HEIGHT:
            raise IndexError(f"Block {width}x{height} at ({x}, {y}) exceeds VRAM")
        for row in range(height):
            start = (y + row) * VRAM_WIDTH + x
            self.words[start : start + width] = [w & 0xFFFF for w in words[row * width : (row + 1) * width]]

    def region_words(self, region: Region) -> List[int]:
        out: List[int] = []
        for row in range(region.y, region.bottom):
            start = row * VRAM_WIDTH + region.x
            out.extend(self.words[start : start + region.width])
        return out

    def iter_rows(self, region: Region, flip_y: bool = True) -> Iterable[List[int]]:
        rows = range(region.bottom - 1, region.y - 1, -1) if flip_y else range(region.y, region.bottom)
        for row in rows:
            start = row * VRAM_WIDTH + region.x
            yield self.words[start : start + region.width]

    def row_bytes(self, region: Region, flip_y: bool = True) -> bytes:
        """Little-endian words of ``region``; bottom-up rows when ``flip_y``."""
        data = bytearray()
        for row in self.iter_rows(region, flip_y=flip_y):
            for word in row:
                data += word.to_bytes(2, "little")
        return bytes(data)

    def to_bytes(self, flip_y: bool = True) -> bytes:
        return self.row_bytes(Region(0, 0, VRAM_WIDTH, VRAM_HEIGHT), flip_y=flip_y)

    def copy(self) -> "VRAMBuffer":
        return VRAMBuffer(self.words)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VRAMBuffer):
            return NotImplemented
        return self.words == other.words
