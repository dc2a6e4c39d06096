import hashlib
from .dsl import (
    Generated, DslGeneratorError, Shape,
    make_generated, is_deferred, is_error, is_identifier, is_list,
)
from .env import Env
from .evaluate import evaluate
from .generate import (
    generate, generate_operand, coerce, has_vectors, has_voids, indent, is_const_number,
    is_const_vector,
)
from .printer import print_expr


def generate_if(expr, env, ctx) -> Generated:
    items = expr.value
    if len(items) not in (3, 4):
        raise DslGeneratorError("if should have two or three arguments")
    test = generate_operand(items[1], env, ctx)
    if test.type == 'vec' or test.type == 'void':
        raise DslGeneratorError(f"if test must be a number, found {print_expr(items[1])}", items[1].offset, items[1].length)
    branches = [generate(el, env, ctx) for el in items[2:]]
    condition = f"{test.code} != 0.0"

    if has_voids(branches):
        lines = [f"if ({condition}) {{"]
        for i, branch in enumerate(branches):
            if branch.type == 'void':
                lines.extend(indent(branch.code, strip=True))
            elif branch.type in ('sdf', 'float'):
                lines.append(f"  res = {branch.code};")
            else:
                raise DslGeneratorError("Incompatible types in if branches")
            lines.append("} else {" if i == 0 and len(branches) > 1 else "}")
        return Generated("\n".join(lines), 'void')

    if len(branches) == 1:
        raise DslGeneratorError("if without an else branch cannot produce a value")
    then, otherwise = branches
    if has_vectors(branches):
        then, otherwise = coerce(then, 'vec'), coerce(otherwise, 'vec')
    elif then.type != otherwise.type:
        then, otherwise = coerce(then, 'float'), coerce(otherwise, 'float')
    return Generated(f"select({otherwise.code}, {then.code}, {condition})", then.type)


def generate_shape_form(expr, env, ctx) -> Generated:
    items = expr.value
    if len(items) < 2 or not is_identifier(items[1]):
        raise DslGeneratorError("shape must have an identifier as the first argument")
    from .shape_generators import generate_shape
    return generate_shape(Shape(items[1].value, items[2:]), env, ctx)


def generate_let(expr, env, ctx) -> Generated:
    """Binds the let values in a child frame and generates the body inline."""
    items = expr.value
    if len(items) < 3 or not is_list(items[1]):
        raise DslGeneratorError("let must have a binding list and a body")
    frame = Env(env)
    for binding in items[1].value:
        if binding.type != 'list' or len(binding.value) != 2 or not is_identifier(binding.value[0]):
            raise DslGeneratorError("let init list elements must be a list of 2", binding.offset, binding.length)
        value = evaluate(binding.value[1], env)
        if is_error(value):
            raise DslGeneratorError(value.value, value.offset, value.length)
        if is_deferred(value):
            generated = generate(value, env, ctx)
            value = make_generated(generated.code, generated.type, value.offset, value.length)
        frame.define(binding.value[0].value, value)
    return _generate_body(items[2:], frame, ctx)


def generate_begin(expr, env, ctx) -> Generated:
    items = expr.value
    if len(items) < 2:
        raise DslGeneratorError("begin must have at least one argument")
    return _generate_body(items[1:], env, ctx)


def _generate_body(forms, env, ctx) -> Generated:
    for form in forms[:-1]:
        result = evaluate(form, env)
        if is_error(result):
            raise DslGeneratorError(result.value, result.offset, result.length)
    return generate(forms[-1], env, ctx)


# --- smoothcase ---

def _generate_cases(items, env, ctx):
    cases = []
    for case in items[2:]:
        if case.type != 'list' or len(case.value) != 2:
            raise DslGeneratorError("smoothcase case item must be a list of length 2", case.offset, case.length)
        head = case.value[0]
        if head.type != 'list' or len(head.value) not in (1, 2):
            raise DslGeneratorError("smoothcase case item head must be a list of length 1 or 2", case.offset, case.length)
        low = generate_operand(head.value[0], env, ctx)
        high = low if len(head.value) == 1 else generate_operand(head.value[1], env, ctx)
        body = generate_operand(case.value[1], env, ctx)
        for part in (low, high, body):
            if part.type == 'void':
                raise DslGeneratorError("smoothcase cases must be values", case.offset, case.length)
        cases.append((low, high, body))
    return cases


def _is_const(value: Generated) -> bool:
    return is_const_number(value) or is_const_vector(value)


def _smoothcase_table(value, cases, target, ctx) -> Generated:
    """Emits a lookup-table function for a smoothcase whose cases are all constant."""
    count = len(cases)
    if target == 'vec':
        lines = [
            "fn {name}(value: vec3<f32>) -> vec3<f32> {",
            f"  var cases = array<vec3<f32>, {count * 3}>(",
        ]
        lines.extend(f"    {low.code}, {high.code}, {body.code}," for low, high, body in cases)
        lines.extend([
            "  );",
            "  var res = cases[2];",
            f"  for (var i = 1; i < {count}; i++) {{",
            "    let prev_high = cases[i * 3 - 2];",
            "    let prev_body = cases[i * 3 - 1];",
            "    let low = cases[i * 3];",
            "    let body = cases[i * 3 + 2];",
        ])
    else:
        lines = [
            "fn {name}(value: f32) -> f32 {",
            f"  var cases = array<vec3<f32>, {count}>(",
        ]
        lines.extend(f"    vec3<f32>({low.code}, {high.code}, {body.code})," for low, high, body in cases)
        lines.extend([
            "  );",
            "  var res = cases[0].z;",
            f"  for (var i = 1; i < {count}; i++) {{",
            "    let prev_high = cases[i - 1].y;",
            "    let prev_body = cases[i - 1].z;",
            "    let low = cases[i].x;",
            "    let body = cases[i].z;",
        ])
    lines.extend([
        "    res = select(res,",
        "                 select(body, mix(prev_body, body, smoothstep(prev_high, low, value)), value < low),",
        "                 value > prev_high);",
        "  }",
        "  return res;",
        "}",
    ])

    digest = hashlib.sha1("\n".join(lines).encode('utf-8')).hexdigest()
    fn = ctx.lookup_function(digest)
    if fn is None:
        name = ctx.get_name('smoothcase')
        fn = ctx.add_function(name, [line.replace("{name}", name) for line in lines], target, digest)
    return Generated(f"{fn.name}({value.code})", target)


def _smoothcase_inline(value, cases, target) -> Generated:
    v = value.code

    def in_case(i):
        low, high, body = cases[i]
        if i == len(cases) - 1:
            return body.code
        return f"select({above(i + 1)}, {body.code}, {v} <= {high.code})"

    def above(i):
        _, prev_high, prev_body = cases[i - 1]
        low, _, body = cases[i]
        blend = f"mix({prev_body.code}, {body.code}, smoothstep({prev_high.code}, {low.code}, {v}))"
        return f"select({in_case(i)}, {blend}, {v} < {low.code})"

    return Generated(in_case(0), target)


def generate_smoothcase(expr, env, ctx) -> Generated:
    items = expr.value
    if len(items) < 3:
        raise DslGeneratorError("smoothcase must have at least 2 arguments")
    value = generate_operand(items[1], env, ctx)
    if value.type == 'void':
        raise DslGeneratorError(f"Cannot evaluate smoothcase for {print_expr(items[1])}", items[1].offset, items[1].length)
    cases = _generate_cases(items, env, ctx)

    parts = [value] + [part for case in cases for part in case]
    target = 'vec' if has_vectors(parts) else 'float'
    value = coerce(value, target)
    cases = [tuple(coerce(part, target) for part in case) for case in cases]

    if all(_is_const(part) for case in cases for part in case):
        return _smoothcase_table(value, cases, target, ctx)
    return _smoothcase_inline(value, cases, target)


SPECIAL_GENERATORS = {
    'if': generate_if,
    'shape': generate_shape_form,
    'smoothcase': generate_smoothcase,
    'let': generate_let,
    'begin': generate_begin,
}


def generate_special(expr, env, ctx) -> Generated:
    """Lowers a special form; forms without their own lowering are evaluated first."""
    name = expr.value[0].value
    generator = SPECIAL_GENERATORS.get(name)
    if generator is not None:
        return generator(expr, env, ctx)
    value = evaluate(expr, env)
    if value.type == 'list':
        raise DslGeneratorError(f"Special form {name} cannot be used in a shader")
    return generate(value, env, ctx)
