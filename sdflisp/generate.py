import re
from .dsl import (
    Expression, Generated, DslGeneratorError,
    make_generated, is_deferred, is_error, is_identifier, is_special,
)
from .env import Env
from .evaluate import evaluate, apply_lambda, expand_macro
from .printer import print_expr
from .utils import wgsl_float, wgsl_vector

WGSL_TYPES = {
    'float': 'f32',
    'sdf': 'f32',
    'vec': 'vec3<f32>',
}

CONST_VECTOR_RE = re.compile(r"^vec3<f32>\(([^)]*)\)$")
CHANGES_COLOR_RE = re.compile(r"\bcol\s*=(?!=)")


def coerce(value: Generated, type: str) -> Generated:
    """Converts a generated value to another generated type."""
    if value.type == type:
        return value
    if type in ('float', 'sdf') and value.type in ('float', 'sdf'):
        return Generated(value.code, type)
    if type == 'vec' and value.type in ('float', 'sdf'):
        return Generated(f"vec3<f32>({value.code})", 'vec')
    if type == 'void' and value.type in ('float', 'sdf'):
        return Generated(f"{{\n  res = {value.code};\n}}", 'void')
    raise DslGeneratorError(f"Cannot coerce from {value.type} to {type}")

def has_vectors(args) -> bool:
    return any(arg.type == 'vec' for arg in args)

def has_voids(args) -> bool:
    return any(arg.type == 'void' for arg in args)

def indent(code: str, pad: str = "  ", strip: bool = False) -> list:
    """
    Splits generated code into lines for nesting in a block.

    With `strip`, a code block wrapped in `{` `}` has its braces removed
    instead, so its statements join the enclosing scope.
    """
    lines = code.split("\n")
    if strip and len(lines) >= 2 and lines[0] == "{" and lines[-1] == "}":
        return lines[1:-1]
    return [pad + line for line in lines]

def is_const_number(value: Generated) -> bool:
    if value.type != 'float':
        return False
    try:
        float(value.code)
    except ValueError:
        return False
    return True

def parse_const_vector(code: str):
    """Returns the three components of a literal vec3<f32>, or None."""
    m = CONST_VECTOR_RE.match(code)
    if not m:
        return None
    try:
        parts = [float(part) for part in m.group(1).split(",")]
    except ValueError:
        return None
    if len(parts) == 1:
        return parts * 3
    if len(parts) == 3:
        return parts
    return None

def is_const_vector(value: Generated) -> bool:
    return value.type == 'vec' and parse_const_vector(value.code) is not None

def changes_color(value: Generated) -> bool:
    """True if a void block assigns the color variable."""
    return value.type == 'void' and CHANGES_COLOR_RE.search(value.code) is not None

def make_shape_name(identifier: str) -> str:
    """Maps a shape type like `rounded-cone` to its WGSL function `sdfRoundedCone`."""
    return "sdf" + "".join(part[:1].upper() + part[1:] for part in identifier.split("-"))


def generate(expr: Expression, env: Env, ctx=None) -> Generated:
    """
    Lowers an evaluated expression to a WGSL fragment.

    Raises DslGeneratorError carrying the span of the innermost expression
    that could not be generated.
    """
    if ctx is None:
        from .context import GenerateContext
        ctx = GenerateContext()

    ctx.log("Generate:", print_expr(expr))
    try:
        value = _generate(expr, env, ctx)
    except DslGeneratorError as e:
        if e.offset is None:
            e.offset, e.length = expr.offset, expr.length
        raise
    ctx.log(print_expr(expr), "->", value.code)
    return value


def _generate(expr, env, ctx) -> Generated:
    if expr.type == 'number':
        return Generated(wgsl_float(expr.value), 'float')
    if expr.type == 'vector':
        return Generated(wgsl_vector(expr.value), 'vec')
    if expr.type == 'generated':
        return expr.value
    if expr.type == 'list':
        return _generate_list(expr, env, ctx)
    if expr.type == 'shape':
        from .shape_generators import generate_shape
        return generate_shape(expr.value, env, ctx)
    if expr.type == 'placeholder':
        return _generate_placeholder(expr, env, ctx)
    if expr.type == 'identifier':
        value = evaluate(expr, env)
        if is_identifier(value):
            raise DslGeneratorError(f"Cannot generate identifier {value.value}")
        return generate(value, env, ctx)
    if expr.type == 'error':
        raise DslGeneratorError(expr.value, expr.offset, expr.length)
    raise DslGeneratorError(f"Cannot generate {expr.type} {print_expr(expr)}")


def _generate_placeholder(expr, env, ctx) -> Generated:
    retained = expr.value
    if not is_identifier(retained):
        return generate(retained, env, ctx)
    name = retained.value
    if name == 'pos':
        return Generated("p", 'vec')
    if name == 'col':
        return Generated("col", 'vec')
    return Generated(ctx.get_uniform_code(name), 'float')


def generate_operand(expr, env, ctx) -> Generated:
    """Evaluates an argument as far as possible before generating it."""
    value = evaluate(expr, env)
    if is_error(value):
        raise DslGeneratorError(value.value, value.offset, value.length)
    return generate(value, env, ctx)


def _generate_list(expr, env, ctx) -> Generated:
    items = expr.value
    head = items[0]
    if is_identifier(head) and is_special(head.value):
        from .generate_special import generate_special
        return generate_special(expr, env, ctx)

    fn = evaluate(head, env)
    if fn.type == 'macro':
        return generate(expand_macro(fn, items[1:], expr), env, ctx)
    if fn.type == 'lambda':
        args = [evaluate(el, env) for el in items[1:]]
        for arg in args:
            if is_error(arg):
                raise DslGeneratorError(arg.value, arg.offset, arg.length)
        if not any(is_deferred(arg) for arg in args):
            return generate(apply_lambda(fn, args, expr), env, ctx)
        return generate_lambda_call(fn.value, [generate(arg, env, ctx) for arg in args], ctx)
    if fn.type == 'internal':
        internal = fn.value
        if internal.generate is None:
            raise DslGeneratorError(f"Internal procedure {internal.name} cannot be used in a shader")
        args = [generate_operand(el, env, ctx) for el in items[1:]]
        return internal.generate(args)
    if is_error(fn):
        raise DslGeneratorError(fn.value, fn.offset, fn.length)
    raise DslGeneratorError(f"{print_expr(fn)} is not callable", head.offset, head.length)


def generate_lambda_call(lam, args, ctx) -> Generated:
    """Calls a lambda through a helper function generated once per argument type signature."""
    if len(args) != len(lam.symbols):
        raise DslGeneratorError(f"lambda expected {len(lam.symbols)} args, got {len(args)}")
    for arg in args:
        if arg.type == 'void':
            raise DslGeneratorError("cannot pass a shape block as a lambda argument")
    signature = [arg.type for arg in args]
    fn = ctx.lookup_lambda(lam, signature)
    if fn is None:
        fn = _generate_lambda_function(lam, signature, ctx)

    call_args = ", ".join(["p", "col"] + [arg.code for arg in args])
    if fn.type == 'void':
        return Generated(
            "\n".join([
                "{",
                f"  res4 = {fn.name}({call_args});",
                "  col = res4.rgb;",
                "  res = res4.w;",
                "}",
            ]),
            'void',
        )
    return Generated(f"{fn.name}({call_args})", fn.type)


def _generate_lambda_function(lam, signature, ctx):
    ctx.begin_lambda(lam, signature)
    try:
        frame = Env(lam.closure)
        params = []
        for i, (symbol, type) in enumerate(zip(lam.symbols, signature)):
            frame.define(symbol, make_generated(f"arg{i}", type))
            params.append(f"arg{i}: {WGSL_TYPES[type]}")
        body = generate_operand(lam.body, frame, ctx)
    finally:
        ctx.end_lambda(lam, signature)

    name = ctx.get_name('lambda')
    if body.type == 'void':
        signature_code = ", ".join(["p: vec3<f32>", "col_in: vec3<f32>"] + params)
        lines = [
            f"fn {name}({signature_code}) -> vec4<f32> {{",
            "  var col = col_in;",
            "  var res: f32 = 1e5;",
            "  var res4: vec4<f32>;",
            "  var k: f32 = 0.0;",
            *indent(body.code),
            "  return vec4<f32>(col, res);",
            "}",
        ]
    else:
        signature_code = ", ".join(["p: vec3<f32>", "col: vec3<f32>"] + params)
        lines = [
            f"fn {name}({signature_code}) -> {WGSL_TYPES[body.type]} {{",
            "  var k: f32 = 0.0;",
            f"  return {body.code};",
            "}",
        ]
    fn = ctx.add_function(name, lines, body.type)
    ctx.remember_lambda(lam, signature, fn)
    ctx.log("Generated helper", name, "for", ", ".join(signature) or "no args")
    return fn
