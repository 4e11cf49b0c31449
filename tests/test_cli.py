import os
import subprocess
import sys
from pathlib import Path

import numpy as np
import PIL.Image
import pytest

import render


def test_parser_defaults_match_default_parameters():
    opt = render.build_parser().parse_args([])
    params = render.parameters_from_args(opt)
    assert params == render.default_parameters()
    assert opt.output == "mandelbrot.png"
    assert opt.workers is None


def test_main_writes_image(tmp_path):
    output = tmp_path / "small.png"
    path = render.render_image(["--width", "24", "--height", "16", "--workers", "2", "--output", str(output)])
    assert path == output
    with PIL.Image.open(output) as image:
        assert image.size == (24, 16)
        pixels = np.asarray(image.convert("RGBA"))
    assert np.all(pixels[..., 3] == 255)


def test_main_without_output_uses_default_path(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    render.main(["--width", "8", "--height", "8"])
    assert (tmp_path / "mandelbrot.png").exists()


def test_main_verbose_prints_progress(tmp_path, capsys):
    render.main(["--width", "8", "--height", "4", "-v", "--output", str(tmp_path / "v.png")])
    out = capsys.readouterr().out
    assert "row 4 out of 4" in out
    assert "Saved" in out


@pytest.mark.parametrize(
    "args",
    [
        ["--width", "0"],
        ["--x-min", "1", "--x-max", "-1"],
        ["--samples", "0"],
        ["--workers", "0"],
    ],
)
def test_main_exits_nonzero_on_invalid_parameters(tmp_path, capsys, args):
    output = tmp_path / "never.png"
    with pytest.raises(SystemExit) as excinfo:
        render.main([*args, "--output", str(output)])
    assert excinfo.value.code == 1
    assert "invalid parameters" in capsys.readouterr().err
    assert not output.exists()


def test_main_exits_nonzero_on_persistence_failure(tmp_path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        render.main(["--width", "4", "--height", "4", "--output", str(tmp_path / "frame.jpg")])
    assert excinfo.value.code == 1
    assert "lossless" in capsys.readouterr().err


def test_main_returns_none(tmp_path):
    assert render.main(["--width", "4", "--height", "4", "--output", str(tmp_path / "m.png")]) is None


ROOT = Path(__file__).resolve().parent.parent
# Same call the installed console script makes.
CONSOLE_SCRIPT = "import sys, render; sys.exit(render.main())"


def _run_console_script(cwd, *args):
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(ROOT), env.get("PYTHONPATH")]))
    return subprocess.run(
        [sys.executable, "-c", CONSOLE_SCRIPT, *args],
        cwd=str(cwd),
        env=env,
        capture_output=True,
        text=True,
        timeout=600,
    )


def test_console_script_exit_status_on_success(tmp_path):
    result = _run_console_script(tmp_path, "--width", "8", "--height", "8", "--output", "ok.png")
    assert result.returncode == 0, result.stderr
    assert (tmp_path / "ok.png").exists()
    assert "ok.png" not in result.stderr


def test_console_script_exit_status_on_invalid_parameters(tmp_path):
    result = _run_console_script(tmp_path, "--width", "0", "--output", "bad.png")
    assert result.returncode == 1
    assert "invalid parameters" in result.stderr
    assert not (tmp_path / "bad.png").exists()
