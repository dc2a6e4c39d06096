import pytest
import sdflisp.cli as cli

SCENE = """#|start-interactive-values
  radius = 0.75 [0.1:2:0.01]
  view.x = 0.5
end-interactive-values|#
(sphere #<0 0 0> :radius)
"""


@pytest.fixture
def scene_file(tmp_path):
    path = tmp_path / "scene.sdf"
    path.write_text(SCENE)
    return path

def test_compile_to_file(scene_file, tmp_path, capsys):
    out = tmp_path / "scene.wgsl"
    assert cli.main(['compile', str(scene_file), '-o', str(out)]) == 0
    shader = out.read_text()
    assert "fn map(p: vec3<f32>) -> vec4<f32> {" in shader
    assert "@fragment" in shader
    assert "  values: array<vec4<f32>, 4>," in shader
    err = capsys.readouterr().err
    assert f"INFO: Wrote shader to '{out}'." in err
    assert "INFO: Uniform 'radius' at offset 0 = 0.75" in err
    assert "INFO: Default view: {'x': 0.5}" in err

def test_compile_to_stdout(scene_file, capsys):
    assert cli.main(['compile', str(scene_file)]) == 0
    assert "fn fs_main(" in capsys.readouterr().out

def test_print_ir(scene_file, capsys):
    cli.main(['compile', str(scene_file), '--print-ir'])
    err = capsys.readouterr().err
    assert "Evaluated:" in err
    assert "(placeholder (shape ellipsoid #<0 0 0> (as-vector :radius)))" in err

def test_compile_errors(tmp_path, capsys):
    path = tmp_path / "bad.sdf"
    path.write_text("(sphere #<0 0 0> nope)")
    assert cli.main(['compile', str(path)]) == 1
    captured = capsys.readouterr()
    assert "ERROR: Failed to compile 'bad.sdf':" in captured.err
    assert "Error: Unknown identifier 'nope' (line 1, column 18)" in captured.err
    assert captured.out == ""

def test_missing_file(tmp_path, capsys):
    assert cli.main(['compile', str(tmp_path / "missing.sdf")]) == 1
    assert "ERROR: File not found" in capsys.readouterr().err

def test_watch_requires_watchdog(scene_file, monkeypatch, capsys):
    monkeypatch.setattr(cli, 'WATCHDOG_AVAILABLE', False)
    assert cli.main(['compile', str(scene_file), '--watch']) == 0
    assert "ERROR: --watch requires `watchdog`" in capsys.readouterr().err

def test_requires_command():
    with pytest.raises(SystemExit):
        cli.main([])
