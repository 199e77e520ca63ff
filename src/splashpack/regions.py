"""Integer rectangles for VRAM, framebuffers, prohibited zones and textures."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from .errors import InvalidConfiguration

VRAM_WIDTH = 1024
VRAM_HEIGHT = 512

Resolution = Tuple[int, int]

# Display modes offered by the console GPU (interlaced modes use 480 lines).
RESOLUTIONS: List[Resolution] = [
    (256, 240),
    (256, 480),
    (320, 240),
    (320, 480),
    (368, 240),
    (368, 480),
    (512, 240),
    (512, 480),
    (640, 240),
    (640, 480),
]

# Second buffer row in the vertical layout; keeps buffer B on its own texture page band.
VERTICAL_BUFFER_Y = 256


@dataclass(frozen=True)
class Region:
    """Axis-aligned rectangle ``{x, y, width, height}`` in VRAM words."""

    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return max(0, self.width) * max(0, self.height)

    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def intersection(self, other: "Region") -> "Region | None":
        left = max(self.x, other.x)
        top = max(self.y, other.y)
        right = min(self.right, other.right)
        bottom = min(self.bottom, other.bottom)
        if right <= left or bottom <= top:
            return None
        return Region(left, top, right - left, bottom - top)

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.width, self.height)


VRAM_REGION = Region(0, 0, VRAM_WIDTH, VRAM_HEIGHT)


def overlaps(a: Region, b: Region) -> bool:
    return a.intersection(b) is not None


def contains(outer: Region, inner: Region) -> bool:
    return (
        inner.x >= outer.x
        and inner.y >= outer.y
        and inner.right <= outer.right
        and inner.bottom <= outer.bottom
    )


def subtract(free: Region, blocker: Region) -> List[Region]:
    """Split ``free`` around ``blocker``.

    Produces up to four disjoint fragments: full-width bands above and below
    the intersection, then the pieces left and right of it. Zero-area
    fragments are dropped.
    """
    cut = free.intersection(blocker)
    if cut is None:
        return [free]
    fragments = [
        Region(free.x, free.y, free.width, cut.y - free.y),
        Region(free.x, cut.bottom, free.width, free.bottom - cut.bottom),
        Region(free.x, cut.y, cut.x - free.x, cut.height),
        Region(cut.right, cut.y, free.right - cut.right, cut.height),
    ]
    return [frag for frag in fragments if not frag.is_empty()]


def subtract_all(frees: Iterable[Region], blockers: Sequence[Region]) -> List[Region]:
    current = list(frees)
    for blocker in blockers:
        nxt: List[Region] = []
        for free in current:
            nxt.extend(subtract(free, blocker))
        current = nxt
    return current


def sort_regions(regions: Iterable[Region]) -> List[Region]:
    return sorted(regions, key=lambda r: (r.y, r.x))


def validate_regions(regions: Iterable[Region], kind: str) -> List[Region]:
    checked: List[Region] = []
    for region in regions:
        if region.is_empty():
            raise InvalidConfiguration(f"{kind} region has no area: {region.as_tuple()}")
        if region.x < 0 or region.y < 0 or not contains(VRAM_REGION, region):
            raise InvalidConfiguration(
                f"{kind} region {region.as_tuple()} lies outside VRAM ({VRAM_WIDTH}x{VRAM_HEIGHT})"
            )
        checked.append(region)
    return checked


def can_dual_buffer(resolution: Resolution, vertical_layout: bool) -> bool:
    width, height = resolution
    if vertical_layout:
        return height * 2 <= VRAM_HEIGHT and width <= VRAM_WIDTH
    return width * 2 <= VRAM_WIDTH and height <= VRAM_HEIGHT


def framebuffer_regions(
    resolution: Resolution,
    dual_buffering: bool = True,
    vertical_layout: bool = True,
) -> List[Region]:
    """Return the framebuffer regions reserved for display output.

    Buffer A always sits at the VRAM origin. With dual buffering, buffer B
    goes below it (vertical layout, starting at line 256) or to its right.
    """
    width, height = resolution
    if width <= 0 or height <= 0:
        raise InvalidConfiguration(f"Invalid resolution: {width}x{height}")
    if width > VRAM_WIDTH or height > VRAM_HEIGHT:
        raise InvalidConfiguration(f"Resolution {width}x{height} does not fit in VRAM")

    buffers = [Region(0, 0, width, height)]
    if not dual_buffering:
        return buffers

    if not can_dual_buffer(resolution, vertical_layout):
        layout = "vertical" if vertical_layout else "horizontal"
        raise InvalidConfiguration(
            f"Dual buffering with a {layout} layout is not possible at {width}x{height}"
        )
    if vertical_layout:
        buffers.append(Region(0, VERTICAL_BUFFER_Y, width, height))
    else:
        buffers.append(Region(width, 0, width, height))
    return buffers
