"""Texture packing into console VRAM.

Textures are laid out on shelves carved from the VRAM space that is not used
by framebuffers or user-declared prohibited areas. Every texture stays inside
a single texture page so its UVs fit in a byte, and indexed textures get a
colour look-up table (CLUT) that is shared inside an atlas when the palette
is bit-for-bit identical.

Reference: texture page widths in VRAM words
Depth   | Page width | Texels per word | CLUT entries
--------|------------|-----------------|-------------
4-bit   | 64         | 4               | 16
8-bit   | 128        | 2               | 256
16-bit  | 256        | 1               | -
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Iterable, Iterator, List, Sequence, Tuple

from .errors import PackingOverflow
from .regions import (
    VRAM_HEIGHT,
    VRAM_WIDTH,
    Region,
    sort_regions,
    subtract,
    subtract_all,
    validate_regions,
)
from .vram import VRAMBuffer, VRAMColor

PAGE_COLUMN = 64
PAGE_HEIGHT = 256
CLUT_ALIGN = 16


class BitDepth(IntEnum):
    BPP4 = 4
    BPP8 = 8
    BPP16 = 16

    @property
    def is_indexed(self) -> bool:
        return self is not BitDepth.BPP16

    @property
    def color_mode(self) -> int:
        return {BitDepth.BPP4: 0, BitDepth.BPP8: 1, BitDepth.BPP16: 2}[self]

    @property
    def texels_per_word(self) -> int:
        return 16 // int(self)

    @property
    def page_width(self) -> int:
        return 16 * int(self)

    @property
    def max_colors(self) -> int:
        return 1 << int(self) if self.is_indexed else 0


@dataclass(eq=False)
class TextureImage:
    """Source pixels for one texture.

    ``pixels`` holds palette indices for 4/8-bit textures and ``VRAMColor``
    values (or raw 16-bit words) for direct-colour textures, row-major with
    the top row first.
    """

    image_id: str
    width: int
    height: int
    bit_depth: BitDepth
    pixels: Sequence
    palette: List[VRAMColor] = field(default_factory=list)
    identity: object = None

    def __post_init__(self) -> None:
        self.bit_depth = BitDepth(self.bit_depth)
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Texture {self.image_id} has no area")
        if self.height > PAGE_HEIGHT or self.width > 256:
            raise ValueError(f"Texture {self.image_id} is larger than a texture page")
        if self.width % self.bit_depth.texels_per_word:
            raise ValueError(
                f"Texture {self.image_id} width {self.width} must be a multiple of "
                f"{self.bit_depth.texels_per_word} at {int(self.bit_depth)}-bit"
            )
        if len(self.pixels) != self.width * self.height:
            raise ValueError(f"Texture {self.image_id} pixel count does not match its size")
        if self.bit_depth.is_indexed:
            if not self.palette:
                raise ValueError(f"Indexed texture {self.image_id} has no palette")
            if len(self.palette) > self.bit_depth.max_colors:
                raise ValueError(
                    f"Texture {self.image_id} palette has {len(self.palette)} colours; "
                    f"{int(self.bit_depth)}-bit allows {self.bit_depth.max_colors}"
                )
            limit = len(self.palette)
            if any(not (0 <= index < limit) for index in self.pixels):
                raise ValueError(f"Texture {self.image_id} references a colour outside its palette")

    @property
    def vram_width(self) -> int:
        return self.width // self.bit_depth.texels_per_word

    def palette_words(self) -> Tuple[int, ...]:
        return tuple(color.pack() for color in self.palette)

    def to_words(self) -> List[int]:
        """Pack pixels into VRAM words (lowest bits hold the leftmost texel)."""
        if not self.bit_depth.is_indexed:
            return [p.pack() if isinstance(p, VRAMColor) else int(p) & 0xFFFF for p in self.pixels]

        per_word = self.bit_depth.texels_per_word
        bits = int(self.bit_depth)
        words: List[int] = []
        for start in range(0, len(self.pixels), per_word):
            word = 0
            for shift, index in enumerate(self.pixels[start : start + per_word]):
                word |= int(index) << (shift * bits)
            words.append(word)
        return words


@dataclass
class Clut:
    """Palette stored as a one-row strip in VRAM."""

    colors: Tuple[VRAMColor, ...]
    x: int
    y: int
    atlas_index: int

    @property
    def packing_x(self) -> int:
        return self.x // CLUT_ALIGN

    @property
    def packing_y(self) -> int:
        return self.y

    @property
    def words(self) -> Tuple[int, ...]:
        return tuple(color.pack() for color in self.colors)

    @property
    def region(self) -> Region:
        return Region(self.x, self.y, len(self.colors), 1)


@dataclass
class Placement:
    """Where one texture ended up in VRAM."""

    image_id: str
    x: int
    y: int
    width: int
    height: int
    bit_depth: BitDepth
    page_origin_x: int
    free_region_index: int
    atlas_index: int = -1
    clut: Clut | None = None

    @property
    def region(self) -> Region:
        return Region(self.x, self.y, self.width, self.height)

    @property
    def texpage_x(self) -> int:
        return self.page_origin_x // PAGE_COLUMN

    @property
    def texpage_y(self) -> int:
        return self.y // PAGE_HEIGHT

    @property
    def packing_x(self) -> int:
        return self.x - self.page_origin_x

    @property
    def packing_y(self) -> int:
        return self.y - self.texpage_y * PAGE_HEIGHT

    @property
    def clut_packing_x(self) -> int:
        return self.clut.packing_x if self.clut else 0

    @property
    def clut_packing_y(self) -> int:
        return self.clut.packing_y if self.clut else 0


@dataclass
class TextureAtlas:
    """Textures packed inside one disjoint free VRAM region."""

    index: int
    free_region: Region
    placements: List[Placement] = field(default_factory=list)
    cluts: List[Clut] = field(default_factory=list)

    @property
    def region(self) -> Region:
        left = min(p.x for p in self.placements)
        top = min(p.y for p in self.placements)
        right = max(p.x + p.width for p in self.placements)
        bottom = max(p.y + p.height for p in self.placements)
        return Region(left, top, right - left, bottom - top)

    def find_clut(self, words: Tuple[int, ...]) -> Clut | None:
        for clut in self.cluts:
            if clut.words == words:
                return clut
        return None


@dataclass
class PackResult:
    atlases: List[TextureAtlas]
    placements: Dict[str, Placement]
    vram: VRAMBuffer

    @property
    def cluts(self) -> List[Clut]:
        return [clut for atlas in self.atlases for clut in atlas.cluts]

    @property
    def clut_count(self) -> int:
        return len(self.cluts)


@dataclass(frozen=True)
class PackProgress:
    index: int
    total: int


@dataclass
class _Fragment:
    region: Region
    free_region_index: int


@dataclass
class _Shelf:
    x: int
    y: int
    width: int
    height: int
    bit_depth: BitDepth
    page_origin_x: int
    free_region_index: int
    cursor: int = 0

    @property
    def remaining(self) -> int:
        return self.width - self.cursor


class VRAMPacker:
    """Shelf-based first-fit packer over the free VRAM space."""

    def __init__(
        self,
        reserved: Iterable[Region] = (),
        prohibited: Iterable[Region] = (),
    ):
        self.reserved = validate_regions(reserved, "Reserved")
        self.prohibited = validate_regions(prohibited, "Prohibited")
        self.result: PackResult | None = None

    def free_regions(self) -> List[Region]:
        # Split at the page band so no shelf straddles two texture page rows.
        bands = [Region(0, y, VRAM_WIDTH, PAGE_HEIGHT) for y in range(0, VRAM_HEIGHT, PAGE_HEIGHT)]
        return sort_regions(subtract_all(bands, self.reserved + self.prohibited))

    def pack(self, images: Iterable[TextureImage]) -> PackResult:
        for _ in self.iter_pack(images):
            pass
        assert self.result is not None
        return self.result

    def iter_pack(self, images: Iterable[TextureImage]) -> Iterator[PackProgress]:
        """Pack ``images``, yielding one progress event per placed texture.

        The finished :class:`PackResult` is stored on ``self.result``.
        """
        images = list(images)
        by_id: Dict[str, TextureImage] = {}
        for image in images:
            if image.image_id in by_id:
                raise ValueError(f"Duplicate texture id: {image.image_id}")
            by_id[image.image_id] = image

        vram = VRAMBuffer()
        free_regions = self.free_regions()
        fragments = [_Fragment(region, idx) for idx, region in enumerate(free_regions)]
        shelves: List[_Shelf] = []
        placements: Dict[str, Placement] = {}

        order = sorted(
            range(len(images)),
            key=lambda i: (-images[i].height, -images[i].vram_width, i),
        )
        for step, idx in enumerate(order):
            image = images[idx]
            shelf = self._find_shelf(shelves, image)
            if shelf is None:
                shelf = self._open_shelf(fragments, image)
                shelves.append(shelf)

            x = shelf.x + shelf.cursor
            y = shelf.y
            vram.blit(x, y, image.vram_width, image.to_words())
            shelf.cursor += image.vram_width
            placements[image.image_id] = Placement(
                image_id=image.image_id,
                x=x,
                y=y,
                width=image.vram_width,
                height=image.height,
                bit_depth=image.bit_depth,
                page_origin_x=shelf.page_origin_x,
                free_region_index=shelf.free_region_index,
            )
            yield PackProgress(step, len(order))

        atlases = self._build_atlases(free_regions, placements)
        self._allocate_cluts(atlases, fragments, vram, by_id)
        self.result = PackResult(atlases=atlases, placements=placements, vram=vram)

    @staticmethod
    def _find_shelf(shelves: Sequence[_Shelf], image: TextureImage) -> _Shelf | None:
        for shelf in shelves:
            if (
                shelf.bit_depth == image.bit_depth
                and shelf.remaining >= image.vram_width
                and shelf.height >= image.height
            ):
                return shelf
        return None

    @staticmethod
    def _open_shelf(fragments: List[_Fragment], image: TextureImage) -> _Shelf:
        for frag in sorted(fragments, key=lambda f: (f.region.y, f.region.x)):
            region = frag.region
            if region.height < image.height:
                continue
            for x in _shelf_origins(region):
                page_origin_x = x // PAGE_COLUMN * PAGE_COLUMN
                right = min(region.right, page_origin_x + image.bit_depth.page_width)
                width = right - x
                if width < image.vram_width:
                    continue
                _carve(fragments, frag, Region(x, region.y, width, image.height))
                return _Shelf(
                    x=x,
                    y=region.y,
                    width=width,
                    height=image.height,
                    bit_depth=image.bit_depth,
                    page_origin_x=page_origin_x,
                    free_region_index=frag.free_region_index,
                )
        raise PackingOverflow(
            f"No free VRAM space for texture {image.image_id} "
            f"({image.vram_width}x{image.height} words, {int(image.bit_depth)}-bit)"
        )

    @staticmethod
    def _build_atlases(
        free_regions: Sequence[Region], placements: Dict[str, Placement]
    ) -> List[TextureAtlas]:
        grouped: Dict[int, List[Placement]] = {}
        for placement in placements.values():
            grouped.setdefault(placement.free_region_index, []).append(placement)

        atlases: List[TextureAtlas] = []
        for region_index in sorted(grouped):
            atlas = TextureAtlas(index=len(atlases), free_region=free_regions[region_index])
            for placement in grouped[region_index]:
                placement.atlas_index = atlas.index
                atlas.placements.append(placement)
            atlases.append(atlas)
        return atlases

    def _allocate_cluts(
        self,
        atlases: Sequence[TextureAtlas],
        fragments: List[_Fragment],
        vram: VRAMBuffer,
        images: Dict[str, TextureImage],
    ) -> None:
        for atlas in atlases:
            region_index = atlas.placements[0].free_region_index
            for placement in atlas.placements:
                image = images[placement.image_id]
                if not image.bit_depth.is_indexed:
                    continue
                words = image.palette_words()
                clut = atlas.find_clut(words)
                if clut is None:
                    x, y = self._claim_clut_slot(fragments, region_index, len(words), image)
                    vram.blit(x, y, len(words), list(words))
                    clut = Clut(colors=tuple(image.palette), x=x, y=y, atlas_index=atlas.index)
                    atlas.cluts.append(clut)
                placement.clut = clut

    @staticmethod
    def _claim_clut_slot(
        fragments: List[_Fragment], region_index: int, width: int, image: TextureImage
    ) -> Tuple[int, int]:
        ordered = sorted(
            fragments,
            key=lambda f: (f.free_region_index != region_index, f.region.y, f.region.x),
        )
        for frag in ordered:
            x = -(-frag.region.x // CLUT_ALIGN) * CLUT_ALIGN
            if x + width > frag.region.right:
                continue
            _carve(fragments, frag, Region(x, frag.region.y, width, 1))
            return x, frag.region.y
        raise PackingOverflow(
            f"No free VRAM space for the {width}-colour palette of texture {image.image_id}"
        )


def _carve(fragments: List[_Fragment], frag: _Fragment, used: Region) -> None:
    position = fragments.index(frag)
    pieces = [_Fragment(piece, frag.free_region_index) for piece in subtract(frag.region, used)]
    fragments[position : position + 1] = pieces


def _shelf_origins(region: Region) -> Iterator[int]:
    # The fragment start, then the next page column when the start sits close
    # to the end of its page.
    yield region.x
    column = -(-region.x // PAGE_COLUMN) * PAGE_COLUMN
    if column != region.x and column < region.right:
        yield column


def pack(
    images: Iterable[TextureImage],
    reserved: Iterable[Region] = (),
    prohibited: Iterable[Region] = (),
) -> PackResult:
    return VRAMPacker(reserved, prohibited).pack(images)
