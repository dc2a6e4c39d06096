from .dsl import Generated, DslGeneratorError
from .generate import (
    generate, coerce, indent, changes_color, is_const_number, is_const_vector,
    parse_const_vector, make_shape_name,
)
from .loader import has_shape_fn, get_shape_params
from .printer import print_expr
from .rotate import generate_const_rotation_matrix, generate_const_axis_rotation_matrix

# WGSL parameter types of the shape functions, as generated types
PARAM_TYPES = {
    'f32': 'float',
    'vec3<f32>': 'vec',
}


def _assert_arity(shape, arity):
    if isinstance(arity, int):
        if len(shape.args) != arity:
            raise DslGeneratorError(f"{shape.type} must have exactly {arity} arguments, found {len(shape.args)}")
        return
    low, high = arity
    if len(shape.args) < low:
        raise DslGeneratorError(f"{shape.type} must have at least {low} arguments, found {len(shape.args)}")
    if len(shape.args) > high:
        raise DslGeneratorError(f"{shape.type} must have at most {high} arguments, found {len(shape.args)}")

def _require(value, type, message, arg):
    try:
        return coerce(value, type)
    except DslGeneratorError:
        raise DslGeneratorError(f"{message}, found {print_expr(arg)}", arg.offset, arg.length) from None

def _emit_target(lines, target, shape, arg, pad="  "):
    """Appends a transformed target: distances become a `res` assignment, blocks are nested."""
    if target.type in ('sdf', 'float'):
        code = target.code.replace("\n", "\n" + pad)
        lines.append(f"{pad}res = {code};")
    elif target.type == 'void':
        lines.extend(indent(target.code, pad))
    else:
        raise DslGeneratorError(f"cannot {shape.type} {print_expr(arg)}", arg.offset, arg.length)

def _block(lines) -> Generated:
    return Generated("\n".join(lines + ["}"]), 'void')


def generate_primitive(shape, env, ctx) -> Generated:
    name = make_shape_name(shape.type)
    if not has_shape_fn(name):
        raise DslGeneratorError(f"Unknown shape '{shape.type}'")
    params = get_shape_params(name)[1:]
    if len(params) != len(shape.args):
        raise DslGeneratorError(f"{shape.type} must have exactly {len(params)} arguments, found {len(shape.args)}")
    codes = []
    for (param, wgsl_type), arg in zip(params, shape.args):
        value = generate(arg, env, ctx)
        codes.append(_require(value, PARAM_TYPES[wgsl_type], f"{shape.type} {param} must be a {wgsl_type}", arg).code)
    ctx.dependencies.add(name)
    return Generated(f"{name}(p, {', '.join(codes)})", 'sdf')


def generate_smooth(shape, env, ctx) -> Generated:
    _assert_arity(shape, 2)
    k = _require(generate(shape.args[0], env, ctx), 'float', "smoothing factor must be a number", shape.args[0])
    lines = ["{", f"  var k: f32 = {k.code};"]
    _emit_target(lines, generate(shape.args[1], env, ctx), shape, shape.args[1])
    return _block(lines)


def generate_union_or_intersect(shape, env, ctx) -> Generated:
    union = shape.type == 'union'
    op = 'sdfUnion' if union else 'sdfIntersection'
    args = [generate(arg, env, ctx) for arg in shape.args]
    arg_exprs = list(shape.args)
    lines = ["{"]
    zero_k = False
    if args and args[0].type == 'float':
        k = args.pop(0)
        arg_exprs.pop(0)
        if is_const_number(k) and float(k.code) == 0 and not any(changes_color(arg) for arg in args):
            zero_k = True
            op = 'min' if union else 'max'
        else:
            lines.append(f"  var k: f32 = {k.code};")
    if not args:
        return Generated("1e5", 'sdf')
    if len(args) == 1 and args[0].type in ('sdf', 'float', 'void'):
        return args[0]
    if not zero_k:
        ctx.dependencies.add(op)
        lines.append("  var outer_col = col;")

    have_tmp = False
    for i, (arg, arg_expr) in enumerate(zip(args, arg_exprs)):
        if arg.type in ('sdf', 'float'):
            if i == 0:
                lines.append(f"  res = {arg.code};")
            elif zero_k:
                lines.append(f"  res = {op}(res, {arg.code});")
            else:
                lines.append(f"  res4 = {op}(k, res, {arg.code}, col, outer_col); col = res4.rgb; res = res4.w;")
        elif arg.type == 'void':
            if i == 0:
                lines.extend(indent(arg.code))
                continue
            prefix = "" if have_tmp else "var "
            lines.append(f"  {prefix}tmp_res = res;")
            if not zero_k:
                lines.append(f"  {prefix}tmp_col = col;")
                lines.append("  col = outer_col;")
            have_tmp = True
            lines.extend(indent(arg.code))
            if zero_k:
                lines.append(f"  res = {op}(tmp_res, res);")
            else:
                lines.append(f"  res4 = {op}(k, tmp_res, res, tmp_col, col); col = res4.rgb; res = res4.w;")
        else:
            kind = "a union" if union else "an intersection"
            raise DslGeneratorError(f"cannot take {kind} of {print_expr(arg_expr)}", arg_expr.offset, arg_expr.length)
    return _block(lines)


def generate_difference(shape, env, ctx) -> Generated:
    _assert_arity(shape, (2, 3))
    ctx.dependencies.add('sdfDifference')
    args = [generate(arg, env, ctx) for arg in shape.args]
    arg_exprs = list(shape.args)
    k = "k"
    if len(args) == 3:
        k = _require(args.pop(0), 'float', "difference smoothing factor must be a number", arg_exprs.pop(0)).code
    left, right = args
    for value, arg in zip(args, arg_exprs):
        if value.type not in ('sdf', 'float', 'void'):
            raise DslGeneratorError(f"cannot take difference of {print_expr(arg)}", arg.offset, arg.length)

    if left.type != 'void' and right.type != 'void':
        return Generated(f"sdfDifference({k},\n    {left.code},\n    {right.code})", 'sdf')

    lines = ["{"]
    if k != "k":
        lines.append(f"  var k: f32 = {k};")
    if left.type == 'void':
        lines.extend(indent(left.code))
        lines.append("  var left_res = res;")
    else:
        lines.append(f"  var left_res = {left.code};")
    restore_col = changes_color(right)
    if restore_col:
        lines.append("  var left_col = col;")
    if right.type == 'void':
        lines.extend(indent(right.code))
        lines.append("  var right_res = res;")
    else:
        lines.append(f"  var right_res = {right.code};")
    if restore_col:
        lines.append("  col = left_col;")
    lines.append("  res = sdfDifference(k, left_res, right_res);")
    return _block(lines)


def generate_lerp(shape, env, ctx) -> Generated:
    _assert_arity(shape, 3)
    args = [generate(arg, env, ctx) for arg in shape.args]
    t = _require(args[0], 'float', "lerp interpolation factor must be a number", shape.args[0]).code
    left, right = args[1], args[2]
    for value, arg in zip((left, right), shape.args[1:]):
        if value.type not in ('sdf', 'float', 'void'):
            raise DslGeneratorError(
                f"cannot take linear interpolation of {print_expr(shape.args[1])} and {print_expr(shape.args[2])}",
                arg.offset, arg.length,
            )
    if left.type != 'void' and right.type != 'void':
        return Generated(f"mix({left.code},\n    {right.code},\n    saturate({t}))", 'sdf')

    have_color = changes_color(left) or changes_color(right)
    lines = ["{"]
    if have_color:
        lines.append("  var outer_col = col;")
    for value, var_name in ((left, "left_res"), (right, "right_res")):
        if value.type == 'void':
            lines.extend(indent(value.code))
            lines.append(f"  var {var_name} = res;")
        else:
            lines.append(f"  var {var_name} = {value.code};")
        if have_color and var_name == "left_res":
            lines.append("  var left_col = col;")
            lines.append("  col = outer_col;")
    lines.append(f"  res = mix(left_res, right_res, saturate({t}));")
    if have_color:
        lines.append(f"  col = mix(left_col, col, saturate({t}));")
    return _block(lines)


def generate_round(shape, env, ctx) -> Generated:
    _assert_arity(shape, 2)
    radius = _require(generate(shape.args[0], env, ctx), 'float', "rounding radius must be a number", shape.args[0])
    target = generate(shape.args[1], env, ctx)
    if is_const_number(radius) and float(radius.code) == 0:
        return target
    if target.type in ('sdf', 'float'):
        return Generated(f"({target.code} - {radius.code})", 'sdf')
    if target.type != 'void':
        raise DslGeneratorError(f"cannot round {print_expr(shape.args[1])}", shape.args[1].offset, shape.args[1].length)
    lines = ["{"]
    lines.extend(indent(target.code))
    lines.append(f"  res -= {radius.code};")
    return _block(lines)


def generate_scale(shape, env, ctx) -> Generated:
    _assert_arity(shape, 2)
    factor = _require(generate(shape.args[0], env, ctx), 'float', "scale factor must be a number", shape.args[0])
    target = generate(shape.args[1], env, ctx)
    if is_const_number(factor):
        if float(factor.code) == 0:
            return Generated("1e5", 'sdf')
        lines = ["{", f"  var p = p / {factor.code};"]
        if target.type == 'void':
            lines.extend(indent(target.code))
            lines.append(f"  res *= {factor.code};")
        else:
            _emit_target(lines, coerce_distance(target, shape, f"{factor.code} * "), shape, shape.args[1])
        return _block(lines)

    lines = [
        "{",
        f"  var scale: f32 = {factor.code};",
        "  if (scale == 0.0) {",
        "    res = 1e5;",
        "  } else {",
        "    var p = p / scale;",
    ]
    if target.type == 'void':
        lines.extend(indent(target.code, "    "))
        lines.append("    res *= scale;")
    else:
        _emit_target(lines, coerce_distance(target, shape, "scale * "), shape, shape.args[1], "    ")
    lines.append("  }")
    return _block(lines)


def coerce_distance(target, shape, prefix):
    """Prefixes a distance expression, passing other types through for `_emit_target` to reject."""
    if target.type in ('sdf', 'float'):
        return Generated(f"{prefix}{target.code}", 'sdf')
    return target


def generate_translate(shape, env, ctx) -> Generated:
    _assert_arity(shape, 2)
    offset = _require(generate(shape.args[0], env, ctx), 'vec', "translation must be a vector", shape.args[0])
    lines = ["{", f"  var p = p - {offset.code};"]
    _emit_target(lines, generate(shape.args[1], env, ctx), shape, shape.args[1])
    return _block(lines)


def generate_rotate(shape, env, ctx) -> Generated:
    _assert_arity(shape, 3)
    axis = _require(generate(shape.args[0], env, ctx), 'vec', "rotation axis must be a vector", shape.args[0])
    angle = _require(generate(shape.args[1], env, ctx), 'float', "rotation angle must be a number", shape.args[1])
    lines = ["{"]
    if is_const_vector(axis) and is_const_number(angle):
        lines.extend(generate_const_rotation_matrix(parse_const_vector(axis.code), float(angle.code)))
        lines.append("  var p = rot * p;")
    elif is_const_vector(axis):
        lines.extend(generate_const_axis_rotation_matrix(parse_const_vector(axis.code), angle.code))
        lines.append("  var p = rot * p;")
    else:
        ctx.dependencies.add('sdfRotate')
        lines.append(f"  var p = sdfRotate(p, {axis.code}, {angle.code});")
    _emit_target(lines, generate(shape.args[2], env, ctx), shape, shape.args[2])
    return _block(lines)


def generate_reflect(shape, env, ctx) -> Generated:
    _assert_arity(shape, 2)
    axes = _require(generate(shape.args[0], env, ctx), 'vec', "reflection must be a vector", shape.args[0])
    lines = ["{", f"  var p = select(p, abs(p), {axes.code} > vec3<f32>(0.0));"]
    _emit_target(lines, generate(shape.args[1], env, ctx), shape, shape.args[1])
    return _block(lines)


def generate_color(shape, env, ctx) -> Generated:
    _assert_arity(shape, 2)
    color = _require(generate(shape.args[0], env, ctx), 'vec', "color must be a vector", shape.args[0])
    lines = ["{", f"  col = {color.code};"]
    _emit_target(lines, generate(shape.args[1], env, ctx), shape, shape.args[1])
    return _block(lines)


def generate_hide(shape, env, ctx) -> Generated:
    return Generated("1e5", 'sdf')


SHAPE_GENERATORS = {
    'smooth': generate_smooth,
    'union': generate_union_or_intersect,
    'intersect': generate_union_or_intersect,
    'difference': generate_difference,
    'lerp': generate_lerp,
    'round': generate_round,
    'scale': generate_scale,
    'translate': generate_translate,
    'rotate': generate_rotate,
    'reflect': generate_reflect,
    'color': generate_color,
    'hide': generate_hide,
}


def generate_shape(shape, env, ctx) -> Generated:
    """Lowers a shape: combinators have their own generators, anything else is a primitive."""
    generator = SHAPE_GENERATORS.get(shape.type, generate_primitive)
    return generator(shape, env, ctx)
