import pytest
import sdflisp.shader as shader_module
from sdflisp import generate_shader, make_shader, GeneratedShader, ShaderDiagnostics, Diagnostic
from sdflisp.loader import get_wgsl_source, get_shape_definitions, get_shape_params


def compile_scene(text: str) -> str:
    result = generate_shader(text)
    assert isinstance(result, GeneratedShader), result.format()
    return make_shader(get_wgsl_source('shader'), result.shader, result.uniform_slot_count)


def test_generate_sphere():
    result = generate_shader("(sphere #<0 0 0> 1)")
    assert isinstance(result, GeneratedShader)
    assert "fn sdfEllipsoid(" in result.shader
    assert "fn sdfBox(" not in result.shader
    assert "fn map(p: vec3<f32>) -> vec4<f32> {" in result.shader
    assert "  res = sdfEllipsoid(p, vec3<f32>(0.0), vec3<f32>(1.0));" in result.shader
    assert result.uniform_names == []
    assert result.uniform_slot_count == 0
    assert result.evaluated == ["#shape<ellipsoid: #<0 0 0> #<1 1 1>>"]

def test_definitions_are_skipped():
    result = generate_shader("(define r 2)\n(sphere #<0 0 0> r)")
    assert result.evaluated == ["#shape<ellipsoid: #<0 0 0> #<2 2 2>>"]

def test_last_shape_wins():
    result = generate_shader("(sphere #<0 0 0> 1)\n(box #<0 0 0> 1)")
    body = result.shader.split("fn map(")[1]
    assert body.index("res = sdfEllipsoid(") < body.index("res = sdfBox(")

def test_library_precedes_map():
    result = generate_shader("(sphere #<0 0 0> 1)")
    assert result.shader.index("fn hsl2rgb(") < result.shader.index("fn map(")

def test_helper_functions_follow_map():
    result = generate_shader("(sphere #<0 0 0> (smoothcase :x ((0 1) 1) ((2 3) 2)))")
    assert result.shader.index("fn map(") < result.shader.index("fn smoothcase_1(")

def test_uniform_offsets():
    result = generate_shader("(sphere :(vec c) :r)")
    assert result.uniform_names == ['c.x', 'c.y', 'c.z', 'r']
    assert result.uniform_offsets == [0, 1, 2, 4]
    assert result.uniform_slot_count == 5
    assert "sdfEllipsoid(p, uniforms.values[0].xyz, vec3<f32>(uniforms.values[1][0]))" in result.shader
    assert "{%" not in result.shader

def test_log_callback():
    lines = []
    generate_shader("(sphere #<0 0 0> 1)", log=lines.append)
    assert lines[0].startswith("Generate:")

def test_parse_error():
    result = generate_shader("(sphere #<0 0 0> 1")
    assert isinstance(result, ShaderDiagnostics)
    assert result.errors[0].message == "Unterminated list"
    assert result.format() == "Error: Unterminated list (line 1, column 1)"

def test_evaluation_errors_are_collected():
    text = "(sphere #<0 0 0> 1)\n(+ 1 nope)\n(- other)"
    result = generate_shader(text)
    assert isinstance(result, ShaderDiagnostics)
    assert [e.message for e in result.errors] == [
        "Unknown identifier 'nope'",
        "Unknown identifier 'other'",
    ]
    assert result.errors[0].location(text) == (2, 6)
    assert result.format().split("\n")[1] == "Error: Unknown identifier 'other' (line 3, column 4)"

def test_generator_error():
    result = generate_shader("(if :x 1)")
    assert isinstance(result, ShaderDiagnostics)
    assert result.errors[0].message == "if without an else branch cannot produce a value"
    assert "Generator log:" in result.format()

def test_values_cannot_be_drawn():
    result = generate_shader("#<1 2 3>")
    assert isinstance(result, ShaderDiagnostics)
    assert result.errors[0].message == "Cannot use #<1 2 3> in map function"

def test_too_many_uniforms(monkeypatch):
    monkeypatch.setattr(shader_module, 'MAX_UNIFORM_VALUES', 2)
    result = generate_shader("(sphere #<0 0 0> (+ :a :b :c))")
    assert isinstance(result, ShaderDiagnostics)
    assert result.errors[0].message == "Too many uniform values (3), at most 2 fit"

def test_diagnostic_location():
    assert Diagnostic("x", 0, 1).location("abc") == (1, 1)
    assert Diagnostic("x", 5, 1).location("ab\ncdef") == (2, 3)
    assert Diagnostic("x").location("abc") is None

def test_make_shader_uniform_array():
    result = generate_shader("(sphere #<0 0 0> :r)")
    shader = make_shader(get_wgsl_source('shader'), result.shader, 5)
    assert "  values: array<vec4<f32>, 4>," in shader
    assert "//MAP-FUNCTION//" not in shader
    assert "//UNIFORM-VALUES//" not in shader

def test_make_shader_without_uniforms():
    shader = compile_scene("(sphere #<0 0 0> 1)")
    assert "values:" not in shader
    assert "fn fs_main(" in shader

def test_make_shader_default_scene():
    shader = make_shader(get_wgsl_source('shader'), "", 0)
    assert get_wgsl_source('placeholder').strip() in shader


# --- Library ---

def test_shape_params():
    assert get_shape_params('sdfTorus') == [
        ('p', 'vec3<f32>'), ('center', 'vec3<f32>'), ('major', 'f32'), ('minor', 'f32'),
    ]

def test_shape_definitions_order():
    code = get_shape_definitions(frozenset(['sdfBox', 'sdfEllipsoid']))
    assert code.index("fn sdfEllipsoid(") < code.index("fn sdfBox(")

def test_unknown_shape_definition():
    with pytest.raises(KeyError):
        get_shape_definitions(frozenset(['sdfBlob']))


# --- Validation ---

def test_examples_compile(examples_dir):
    scenes = sorted(examples_dir.glob("*.sdf"))
    assert scenes
    for scene in scenes:
        compile_scene(scene.read_text())

def test_examples_are_valid_wgsl(examples_dir, validate_wgsl):
    for scene in sorted(examples_dir.glob("*.sdf")):
        validate_wgsl(compile_scene(scene.read_text()))

def test_operations_are_valid_wgsl(validate_wgsl):
    source = """
    (define ball (lambda (r) (color (vec r 0 0) (sphere #<0 0 0> r))))
    (union :k
      (difference 0.1 (box #<0 0 0> 1) (color #<1 0 0> (sphere #<0 0.5 0> 0.7)))
      (lerp :t (torus #<0 1 0> 1 0.2) (capsule #<0 0 0> #<0 2 0> 0.3))
      (round :r (scale :s (octahedron #<2 0 0> 1)))
      (rotate :(vec axis) :a (cylinder #<0 0 0> 0.5 1))
      (rotate #<0 1 0> :a (plane #<0 1 0> 2))
      (reflect #<1 0 0> (translate #<1 0 0> (ball :b)))
      (if (< :c 0.5) (ball 0.5) (box #<0 0 0> (smoothcase :c ((0 1) 0.2) ((2 3) #<0.5 0.2 0.1>)))))
    """
    validate_wgsl(compile_scene(source))
