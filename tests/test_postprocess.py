import pytest
from sdflisp import generate_shader, GeneratedShader, DslGeneratorError
from sdflisp.postprocess import bracketize, post_process


def block(*lines):
    return "\n".join(lines)


def test_bracketize_nests_scopes():
    lines = [
        "{",
        "  var k: f32 = 1.0;",
        "  if (k > 0.0) {",
        "    res = 1.0;",
        "  } else {",
        "    res = 2.0;",
        "  }",
        "}",
    ]
    assert bracketize(lines) == [
        "{",
        [
            "  var k: f32 = 1.0;",
            "  if (k > 0.0) {",
            ["    res = 1.0;"],
            "  } else {",
            ["    res = 2.0;"],
            "  }",
        ],
        "}",
    ]

def test_bracketize_mismatched():
    with pytest.raises(DslGeneratorError):
        bracketize(["}"])
    with pytest.raises(DslGeneratorError):
        bracketize(["{", "  res = 1.0;"])

def test_repeated_call_is_hoisted():
    code = block(
        "{",
        "  col = vec3<f32>(sin({%a%}), 0.0, 0.0);",
        "  res = sdfBox(p, vec3<f32>(0.0), vec3<f32>(sin({%a%})));",
        "}",
    )
    assert post_process(code) == block(
        "{",
        "  let tmp_sin_1 = sin({%a%});",
        "  col = vec3<f32>(tmp_sin_1, 0.0, 0.0);",
        "  res = sdfBox(p, vec3<f32>(0.0), vec3<f32>(tmp_sin_1));",
        "}",
    )

def test_single_use_is_kept():
    code = block("{", "  res = abs(sin({%a%}));", "}")
    assert post_process(code) == code

def test_assigned_variables_are_not_hoisted():
    code = block(
        "{",
        "  res = abs(res);",
        "  col = vec3<f32>(abs(res));",
        "}",
    )
    assert post_process(code) == code

def test_shape_calls_are_not_hoisted():
    code = block(
        "{",
        "  var a = sdfBox(q, vec3<f32>(1.0));",
        "  var b = sdfBox(q, vec3<f32>(1.0));",
        "}",
    )
    assert post_process(code) == code

def test_parenthesized_groups_reuse_hoisted_names():
    code = block("{", "  res = (sin({%a%}) * 2.0) + (sin({%a%}) * 2.0);", "}")
    assert post_process(code) == block(
        "{",
        "  let tmp_sin_1 = sin({%a%});",
        "  let tmp_exp_2 = tmp_sin_1 * 2.0;",
        "  res = tmp_exp_2 + tmp_exp_2;",
        "}",
    )

def test_hoisting_stays_in_inner_scope():
    code = block(
        "{",
        "  var p = p - vec3<f32>(1.0);",
        "  {",
        "    res = min(cos({%t%}), cos({%t%}));",
        "  }",
        "}",
    )
    assert post_process(code) == block(
        "{",
        "  var p = p - vec3<f32>(1.0);",
        "  {",
        "    let tmp_cos_1 = cos({%t%});",
        "    res = min(tmp_cos_1, tmp_cos_1);",
        "  }",
        "}",
    )

def test_shader_blocks_are_post_processed():
    result = generate_shader("(color (vec (sin :a) (sin :a) 0) (sphere #<0 0 0> 1))")
    assert isinstance(result, GeneratedShader), result.format()
    assert "let tmp_sin_1 = sin(uniforms.values[0][0]);" in result.shader
    assert "col = vec3<f32>(tmp_sin_1, tmp_sin_1, 0.0);" in result.shader
