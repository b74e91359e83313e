from __future__ import annotations

import pytest
from PIL import Image

import texture_cli

EXPECTED_SCENARIO = (
    "-- bb --seed 42 --blending 0 --steps dirt:0..127 grass:128..255\n"
    'local mod={};mod.width=2;mod.height=2;mod.map={[1]="dirt",[2]="grass"};'
    "mod.grid={{1,2,},{2,1,},};return mod"
)


def _write_image(path, rows):
    img = Image.new("L", (len(rows[0]), len(rows)))
    for y, row in enumerate(rows):
        for x, value in enumerate(row):
            img.putpixel((x, y), value)
    img.save(path)
    return path


def _run(image, output, *extra):
    texture_cli.main(
        ["lua", "texture", "-s", "dirt:0..127", "grass:128..255", "-i", str(image), "-o", str(output), *extra]
    )


def test_texture_command_writes_lua_module(tmp_path, capsys):
    image = _write_image(tmp_path / "map.png", [[0, 128], [255, 64]])
    output = tmp_path / "texture.lua"

    _run(image, output, "--seed", "42")

    assert output.read_text(encoding="utf-8") == EXPECTED_SCENARIO
    assert "Saved lua texture 2x2 with 2 steps" in capsys.readouterr().out


def test_texture_command_creates_output_directories(tmp_path):
    image = _write_image(tmp_path / "map.png", [[0, 128], [255, 64]])
    output = tmp_path / "nested" / "out" / "texture.lua"

    _run(image, output, "-x", "42")

    assert output.read_text(encoding="utf-8") == EXPECTED_SCENARIO


def test_texture_command_is_reproducible_with_blending(tmp_path):
    image = _write_image(tmp_path / "map.png", [[(x * 17 + y * 5) % 256 for x in range(12)] for y in range(8)])
    first = tmp_path / "first.lua"
    second = tmp_path / "second.lua"

    _run(image, first, "-b", "40", "-x", "7")
    _run(image, second, "--blending", "40", "--seed", "7")

    text = first.read_text(encoding="utf-8")
    assert text == second.read_text(encoding="utf-8")
    assert text.startswith("-- bb --seed 7 --blending 40 --steps dirt:0..127 grass:128..255\n")
    assert "mod.width=12;mod.height=8;" in text


def test_texture_command_generates_seed_for_zero(tmp_path):
    image = _write_image(tmp_path / "map.png", [[0, 255]])
    output = tmp_path / "texture.lua"

    _run(image, output, "--seed", "0")

    header = output.read_text(encoding="utf-8").splitlines()[0]
    seed = int(header.split("--seed ")[1].split()[0])
    assert seed != 0


def test_blending_above_hundred_fails(tmp_path, capsys):
    image = _write_image(tmp_path / "map.png", [[0]])
    output = tmp_path / "texture.lua"

    with pytest.raises(SystemExit) as excinfo:
        _run(image, output, "-b", "101")

    assert excinfo.value.code == 1
    assert "blending factor '101' not in (0..100) range" in capsys.readouterr().err
    assert not output.exists()


@pytest.mark.parametrize(
    "extra",
    [
        ("-b", "256"),
        ("-b", "ten"),
        ("-x", "-1"),
        ("-x", str(2**64)),
    ],
)
def test_numeric_arguments_must_fit_their_width(tmp_path, extra):
    image = _write_image(tmp_path / "map.png", [[0]])

    with pytest.raises(SystemExit) as excinfo:
        _run(image, tmp_path / "texture.lua", *extra)

    assert excinfo.value.code == 2


def test_partial_range_fails_without_output(tmp_path, capsys):
    image = _write_image(tmp_path / "map.png", [[0]])
    output = tmp_path / "texture.lua"

    with pytest.raises(SystemExit) as excinfo:
        texture_cli.main(
            ["lua", "texture", "-s", "dirt:0..100", "grass:150..255", "-i", str(image), "-o", str(output)]
        )

    assert excinfo.value.code == 1
    assert "steps don't cover full range" in capsys.readouterr().err
    assert not output.exists()


def test_malformed_step_fails(tmp_path, capsys):
    image = _write_image(tmp_path / "map.png", [[0]])

    with pytest.raises(SystemExit) as excinfo:
        texture_cli.main(["lua", "texture", "-s", "dirt=0..255", "-i", str(image), "-o", str(tmp_path / "t.lua")])

    assert excinfo.value.code == 1
    assert "malformed step description 'dirt=0..255'" in capsys.readouterr().err


def test_missing_image_fails_without_output(tmp_path, capsys):
    output = tmp_path / "texture.lua"

    with pytest.raises(SystemExit) as excinfo:
        _run(tmp_path / "missing.png", output)

    assert excinfo.value.code == 1
    assert capsys.readouterr().err.startswith("bb: error:")
    assert not output.exists()


def test_subcommand_is_required():
    with pytest.raises(SystemExit) as excinfo:
        texture_cli.main([])

    assert excinfo.value.code == 2


def test_version(capsys):
    with pytest.raises(SystemExit) as excinfo:
        texture_cli.main(["--version"])

    assert excinfo.value.code == 0
    assert "bb 0.0.1" in capsys.readouterr().out
