import pytest
from sdflisp import GenerateContext, DslGeneratorError


def test_get_name(ctx):
    assert ctx.get_name('lambda') == 'lambda_1'
    assert ctx.get_name('lambda') == 'lambda_2'
    assert ctx.get_name('smoothcase') == 'smoothcase_1'

def test_get_name_not_unique(ctx):
    assert ctx.get_name('helper', unique=False) == 'helper'
    assert ctx.get_name('helper', unique=False) == 'helper_1'

def test_add_and_lookup_function(ctx):
    fn = ctx.add_function('f_1', ["fn f_1() -> f32 {", "  return 1.0;", "}"], 'float', digest='abc')
    assert fn.code == "fn f_1() -> f32 {\n  return 1.0;\n}"
    assert ctx.lookup_function('abc') is fn
    assert ctx.lookup_function('def') is None

def test_log_lines_and_callback():
    seen = []
    ctx = GenerateContext(log=seen.append)
    ctx.log("Generate:", 1, "x")
    assert ctx.log_lines == ["Generate: 1 x"]
    assert seen == ["Generate: 1 x"]

def test_uniform_code(ctx):
    assert ctx.get_uniform_code('k') == "{%k%}"
    assert ctx.get_uniform_code('k') == "{%k%}"
    assert ctx.uniforms == ['k']

def test_unknown_uniform():
    ctx = GenerateContext(uniforms=['k'])
    assert ctx.get_uniform_code('k', fail_for_unknown=True) == "{%k%}"
    with pytest.raises(DslGeneratorError):
        ctx.get_uniform_code('other', fail_for_unknown=True)

def test_uniform_layout(ctx):
    for name in ['b', 'view.y', 'a', 'view.x', 'view.z']:
        ctx.get_uniform_code(name)
    assert ctx.uniforms == ['view.x', 'view.y', 'view.z', 'a', 'b']
    assert ctx.offsets == [0, 1, 2, 4, 5]
    assert ctx.uniform_slot_count == 6

def test_uniform_layout_several_vectors(ctx):
    for name in ['s', 'b.x', 'a.y', 'a.z']:
        ctx.get_uniform_code(name)
    assert ctx.uniforms == ['a.y', 'a.z', 'b.x', 's']
    assert ctx.offsets == [1, 2, 4, 8]

def test_no_uniforms(ctx):
    assert ctx.offsets == []
    assert ctx.uniform_slot_count == 0

def test_apply_uniforms(ctx):
    for name in ['view.x', 'view.y', 'view.z', 'a']:
        ctx.get_uniform_code(name)
    lines = [
        "  let v = vec3<f32>({%view.x%}, {%view.y%}, {%view.z%});",
        "  res = {%a%} + {%view.y%};",
    ]
    ctx.apply_uniforms(lines)
    assert lines == [
        "  let v = uniforms.values[0].xyz;",
        "  res = uniforms.values[1][0] + uniforms.values[0].y;",
    ]

def test_apply_uniforms_mixed_vector(ctx):
    for name in ['a.x', 'b.y', 'a.z']:
        ctx.get_uniform_code(name)
    lines = ["vec3<f32>({%a.x%}, {%b.y%}, {%a.z%})"]
    ctx.apply_uniforms(lines)
    assert lines == ["vec3<f32>(uniforms.values[0].x, uniforms.values[1].y, uniforms.values[0].z)"]

def test_recursive_lambda_guard(ctx):
    lam = object()
    ctx.begin_lambda(lam, ['float'])
    with pytest.raises(DslGeneratorError, match="Recursive"):
        ctx.begin_lambda(lam, ['float'])
    ctx.end_lambda(lam, ['float'])
    ctx.begin_lambda(lam, ['float'])
