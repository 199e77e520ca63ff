"""Command line interface for splashpack."""

from __future__ import annotations

import argparse
import sys
import warnings
from pathlib import Path
from typing import List

from .errors import SplashpackError
from .exporter import export_scene
from .loader import load_scene
from .packer import VRAMPacker
from .reader import read_scene_file
from .regions import RESOLUTIONS, can_dual_buffer
from .scene import collect_textures
from .writer import ExportProgress


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="splashpack",
        description=(
            "Pack scene textures into console VRAM and write the binary scene file.\n"
            "Scenes are described by a JSON file; see splashpack.loader for the format."
        ),
        formatter_class=argparse.RawTextHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    export = sub.add_parser("export", help="Write the binary scene file")
    export.add_argument("scene", type=Path, help="Scene description (.json)")
    export.add_argument("-o", "--output", required=True, type=Path, help="Output .bin path")
    export.add_argument("-f", "--force", action="store_true", help="Overwrite an existing output file")
    export.add_argument("-q", "--quiet", action="store_true", help="Do not print progress")

    vram = sub.add_parser("vram", help="Pack textures only and dump the raw 1024x512 VRAM image")
    vram.add_argument("scene", type=Path, help="Scene description (.json)")
    vram.add_argument("-o", "--output", required=True, type=Path, help="Output .bin path")
    vram.add_argument("-f", "--force", action="store_true", help="Overwrite an existing output file")
    vram.add_argument(
        "--top-down",
        action="store_true",
        help="Write rows top to bottom instead of the console's bottom-up order",
    )

    inspect = sub.add_parser("inspect", help="Print the header and tables of an exported file")
    inspect.add_argument("file", type=Path, help="Exported scene file")

    sub.add_parser("resolutions", help="List display resolutions and dual-buffer layouts")
    return parser


def _check_output(path: Path, force: bool) -> None:
    if path.exists() and not force:
        raise SplashpackError(f"Output file already exists (use --force to overwrite): {path}")


def _print_progress(event: ExportProgress) -> None:
    if event.index + 1 == event.total:
        print(f"{event.stage}: {event.total}/{event.total}")


def run_export(args: argparse.Namespace) -> None:
    _check_output(args.output, args.force)
    scene, options = load_scene(args.scene)
    report = export_scene(scene, args.output, options, progress=None if args.quiet else _print_progress)
    if not args.quiet:
        print(
            f"objects={report.object_count} triangles={report.triangle_count} "
            f"navmeshes={report.navmesh_count} scripts={report.script_count} "
            f"atlases={report.atlas_count} palettes={report.palette_count}"
        )
    print(f"wrote {report.output} ({report.size} bytes)")


def run_vram(args: argparse.Namespace) -> None:
    _check_output(args.output, args.force)
    scene, options = load_scene(args.scene)
    packer = VRAMPacker(options.framebuffers(), options.prohibited_regions())
    result = packer.pack(collect_textures(scene.objects))
    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_bytes(result.vram.to_bytes(flip_y=not args.top_down))
    for atlas in result.atlases:
        region = atlas.region
        print(
            f"atlas {atlas.index}: {region.width}x{region.height} at ({region.x}, {region.y}), "
            f"{len(atlas.placements)} textures, {len(atlas.cluts)} palettes"
        )
    print(f"wrote {args.output}")


def run_inspect(args: argparse.Namespace) -> None:
    scene = read_scene_file(args.file)
    h = scene.header
    print(f"version {h.version}")
    print(
        f"scripts={h.script_count} objects={h.object_count} navmeshes={h.navmesh_count} "
        f"atlases={h.atlas_count} palettes={h.palette_count}"
    )
    print(f"player position={h.player_position} rotation={h.player_rotation} height={h.player_height}")
    print(f"scene script index={h.scene_script_index}")
    for idx, record in enumerate(scene.scripts):
        print(f"script {idx}: offset=0x{record.offset:X} length={record.length}")
    for idx, obj in enumerate(scene.objects):
        print(
            f"object {idx}: offset=0x{obj.offset:X} position={obj.position} "
            f"triangles={obj.triangle_count} script={obj.script_index} active={obj.active}"
        )
    for idx, nav in enumerate(scene.navmeshes):
        print(f"navmesh {idx}: offset=0x{nav.offset:X} triangles={nav.triangle_count}")
    for idx, atlas in enumerate(scene.atlases):
        print(f"atlas {idx}: offset=0x{atlas.offset:X} {atlas.width}x{atlas.height} at ({atlas.x}, {atlas.y})")
    for idx, pal in enumerate(scene.palettes):
        print(f"palette {idx}: offset=0x{pal.offset:X} clut=({pal.clut_x}, {pal.clut_y}) colors={pal.color_count}")


def run_resolutions(_args: argparse.Namespace) -> None:
    for width, height in RESOLUTIONS:
        layouts: List[str] = []
        if can_dual_buffer((width, height), vertical_layout=True):
            layouts.append("vertical")
        if can_dual_buffer((width, height), vertical_layout=False):
            layouts.append("horizontal")
        print(f"{width}x{height}: dual buffering {', '.join(layouts) if layouts else 'not available'}")


COMMANDS = {
    "export": run_export,
    "vram": run_vram,
    "inspect": run_inspect,
    "resolutions": run_resolutions,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        try:
            COMMANDS[args.command](args)
            status = 0
        except (SplashpackError, ValueError, OSError) as exc:
            print(exc, file=sys.stderr)
            status = 1
    for warning in caught:
        print(f"Warning: {warning.message}", file=sys.stderr)
    return status


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
