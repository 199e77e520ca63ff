"""Scene export: pack textures, convert geometry, write the file."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, List

from .fixed import convert_euler, convert_position, position_to_fixed
from .geometry import FixedObject, convert_object
from .packer import PackResult, VRAMPacker
from .scene import ExportOptions, LuaScript, Scene, collect_scripts, collect_textures
from .writer import ExportProgress, ScenePayload, SceneWriter


class ExportState(Enum):
    IDLE = "idle"
    PACKING = "packing"
    GEOMETRY_CONVERSION = "geometry"
    SERIALIZING = "serializing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ExportReport:
    output: Path
    script_count: int
    object_count: int
    navmesh_count: int
    atlas_count: int
    palette_count: int
    triangle_count: int
    size: int


class SceneExporter:
    """Runs one export. Create a new exporter for every attempt."""

    def __init__(self, scene: Scene, options: ExportOptions | None = None):
        self.scene = scene
        self.options = options or ExportOptions()
        self.state = ExportState.IDLE
        self.packed: PackResult | None = None
        self.objects: List[FixedObject] = []
        self.scripts: List[LuaScript] = []
        self.writer: SceneWriter | None = None
        self.output_opened = False

    def iter_export(self, output: str | Path) -> Iterator[ExportProgress]:
        if self.state is not ExportState.IDLE:
            raise RuntimeError(f"Exporter already used (state: {self.state.value})")
        output = Path(output)
        try:
            yield from self._pack()
            yield from self._convert()
            yield from self._serialize(output)
        except BaseException:
            self.state = ExportState.FAILED
            raise
        self.state = ExportState.DONE

    def export(
        self,
        output: str | Path,
        progress: Callable[[ExportProgress], None] | None = None,
    ) -> ExportReport:
        for event in self.iter_export(output):
            if progress is not None:
                progress(event)
        return self.report(Path(output))

    def report(self, output: Path) -> ExportReport:
        assert self.packed is not None
        return ExportReport(
            output=output,
            script_count=len(self.scripts),
            object_count=len(self.objects),
            navmesh_count=len(self.scene.navmeshes),
            atlas_count=len(self.packed.atlases),
            palette_count=self.packed.clut_count,
            triangle_count=sum(len(obj.triangles) for obj in self.objects),
            size=output.stat().st_size,
        )

    def _pack(self) -> Iterator[ExportProgress]:
        self.state = ExportState.PACKING
        packer = VRAMPacker(self.options.framebuffers(), self.options.prohibited_regions())
        for event in packer.iter_pack(collect_textures(self.scene.objects)):
            yield ExportProgress("packing", event.index, event.total)
        self.packed = packer.result

    def _convert(self) -> Iterator[ExportProgress]:
        self.state = ExportState.GEOMETRY_CONVERSION
        self.scripts = collect_scripts(self.scene.objects, self.scene.scene_script)
        total = len(self.scene.objects)
        for index, obj in enumerate(self.scene.objects):
            script_index = self.scripts.index(obj.script) if obj.script is not None else -1
            self.objects.append(convert_object(obj, self.options.gte_scaling, script_index))
            yield ExportProgress("geometry", index, total)

    def _payload(self) -> ScenePayload:
        assert self.packed is not None
        scene = self.scene
        scaling = self.options.gte_scaling
        scene_script_index = -1
        if scene.scene_script is not None:
            scene_script_index = self.scripts.index(scene.scene_script)
        return ScenePayload(
            scripts=self.scripts,
            objects=self.objects,
            navmeshes=scene.navmeshes,
            packed=self.packed,
            player_position=convert_position(scene.player.position, scaling),
            player_rotation=convert_euler(scene.player.rotation, mirror_y=False),
            player_height=position_to_fixed(scene.player.height, scaling),
            scene_script_index=scene_script_index,
            version=self.options.version,
        )

    def _serialize(self, output: Path) -> Iterator[ExportProgress]:
        self.state = ExportState.SERIALIZING
        self.writer = SceneWriter(self._payload())
        output.parent.mkdir(parents=True, exist_ok=True)
        with output.open("wb") as fh:
            self.output_opened = True
            yield from self.writer.iter_write(fh)


def export_scene(
    scene: Scene,
    output: str | Path,
    options: ExportOptions | None = None,
    progress: Callable[[ExportProgress], None] | None = None,
) -> ExportReport:
    """Export ``scene`` to ``output``, removing a half-written file on failure."""
    output = Path(output)
    exporter = SceneExporter(scene, options)
    try:
        return exporter.export(output, progress=progress)
    except BaseException:
        if exporter.output_opened and output.exists():
            output.unlink()
        raise
