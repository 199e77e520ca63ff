import json

import pytest
from PIL import Image

from splashpack.cli import main
from splashpack.errors import OffsetTableMismatch, SceneFormatError
from splashpack.loader import load_scene, load_scene_data
from splashpack.packer import BitDepth
from splashpack.regions import Region
from splashpack.writer import SceneWriter


def _vertex(x: float, z: float, u: float, v: float) -> dict:
    return {"position": [x, 0, z], "normal": [0, 1, 0], "color": [128, 128, 128], "uv": [u, v]}


def _write_scene(tmp_path, **overrides) -> str:
    Image.new("RGBA", (16, 16), (200, 40, 40, 255)).save(tmp_path / "floor.png")
    (tmp_path / "floor.lua").write_text("function onLoad(self) end\n", encoding="utf-8")
    data = {
        "options": {"gte_scaling": 100, "resolution": [320, 240], "prohibited_areas": [[960, 0, 64, 64]]},
        "player": {"position": [0, 1, 0], "rotation": [0, 0, 0], "height": 1.7},
        "objects": [
            {
                "name": "floor",
                "script": "floor.lua",
                "texture": {"path": "floor.png", "bit_depth": 8},
                "triangles": [
                    [_vertex(0, 0, 0, 0), _vertex(1, 0, 1, 0), _vertex(1, 1, 1, 1)],
                    [_vertex(0, 0, 0, 0), _vertex(1, 1, 1, 1), _vertex(0, 1, 0, 1)],
                ],
            }
        ],
        "navmeshes": [{"space": "world", "triangles": [[[0, 0, 0], [1, 0, 0], [0, 0, 1]]]}],
    }
    data.update(overrides)
    path = tmp_path / "scene.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def test_load_scene(tmp_path) -> None:
    scene, options = load_scene(_write_scene(tmp_path))

    assert options.gte_scaling == 100.0
    assert options.prohibited_areas == [Region(960, 0, 64, 64)]
    assert len(scene.objects) == 1
    floor = scene.objects[0]
    assert floor.script is not None and floor.script.name == "floor.lua"
    assert len(floor.triangles) == 2
    texture = floor.triangles[0].texture
    assert texture is not None and texture.bit_depth is BitDepth.BPP8
    assert floor.triangles[1].texture is texture
    assert scene.navmeshes[0].triangles == [((0, 0, 0), (41, 0, 0), (0, 0, 41))]
    assert scene.player.height == 1.7


def test_load_scene_reports_bad_input(tmp_path) -> None:
    with pytest.raises(SceneFormatError):
        load_scene(tmp_path / "missing.json")

    bad = tmp_path / "bad.json"
    bad.write_text("{", encoding="utf-8")
    with pytest.raises(SceneFormatError):
        load_scene(bad)

    with pytest.raises(SceneFormatError):
        load_scene_data({"objects": [{"triangles": [[{"position": [0, 0]}] * 3]}]}, tmp_path)

    with pytest.raises(SceneFormatError):
        load_scene_data({"objects": [{"texture": {"path": "x.png", "bit_depth": 2}}]}, tmp_path)


def test_cli_export_and_inspect(tmp_path, capsys) -> None:
    scene = _write_scene(tmp_path)
    out = tmp_path / "scene.bin"

    assert main(["export", scene, "-o", str(out), "-q"]) == 0
    assert out.exists()
    assert "wrote" in capsys.readouterr().out

    assert main(["inspect", str(out)]) == 0
    report = capsys.readouterr().out
    assert "scripts=1 objects=1 navmeshes=1 atlases=1 palettes=1" in report
    assert "triangles=2" in report


def test_cli_refuses_to_overwrite(tmp_path, capsys) -> None:
    scene = _write_scene(tmp_path)
    out = tmp_path / "scene.bin"
    out.write_bytes(b"keep")

    assert main(["export", scene, "-o", str(out)]) == 1
    assert "--force" in capsys.readouterr().err
    assert out.read_bytes() == b"keep"

    assert main(["export", scene, "-o", str(out), "-f", "-q"]) == 0
    assert out.read_bytes()[:2] == b"SP"


def test_cli_reports_overflow(tmp_path, capsys) -> None:
    scene = _write_scene(tmp_path, options={"prohibited_areas": [[0, 0, 1024, 512]]})
    out = tmp_path / "scene.bin"

    assert main(["export", scene, "-o", str(out)]) == 1
    assert "No free VRAM space" in capsys.readouterr().err
    assert not out.exists()


def test_cli_removes_a_half_written_file(tmp_path, capsys, monkeypatch) -> None:
    scene = _write_scene(tmp_path)
    out = tmp_path / "scene.bin"

    def fail(self, fh) -> None:
        raise OffsetTableMismatch("objects: 1 placeholders but 0 data blocks")

    monkeypatch.setattr(SceneWriter, "_backpatch", fail)

    assert main(["export", scene, "-o", str(out), "-q"]) == 1
    assert "placeholders" in capsys.readouterr().err
    assert not out.exists()


def test_cli_vram_dump(tmp_path, capsys) -> None:
    scene = _write_scene(tmp_path)
    out = tmp_path / "vram.bin"

    assert main(["vram", scene, "-o", str(out)]) == 0
    assert out.stat().st_size == 1024 * 512 * 2
    assert "atlas 0: 8x16 at (320, 0)" in capsys.readouterr().out


def test_cli_resolutions(capsys) -> None:
    assert main(["resolutions"]) == 0
    out = capsys.readouterr().out
    assert "320x240: dual buffering vertical, horizontal" in out
    assert "640x480: dual buffering not available" in out
