import math
import operator
from functools import reduce
from itertools import count, product
import numpy as np
from .dsl import (
    Expression, Internal, Macro, Generated, DslEvalError, DslGeneratorError,
    EMPTY_LIST, make_identifier, make_list, make_number, make_vector,
)
from .env import Env
from .generate import coerce
from .reader import read_one
from .utils import to_native, from_native, as_vector, _mix, _smoothstep

# --- Argument checks ---

def _require_arity(name, arity, args):
    if len(args) != arity:
        raise DslEvalError(f"{name} requires {arity} args, called with {len(args)}")

def _require_min_arity(name, arity, args):
    if len(args) < arity:
        raise DslEvalError(f"{name} requires at least {arity} args, called with {len(args)}")

def _require_values(name, args):
    values = []
    for arg in args:
        if arg.type not in ('number', 'vector'):
            from .printer import print_expr
            raise DslEvalError(f"{name} requires arguments to be numbers or vectors, found {print_expr(arg)}")
        values.append(to_native(arg))
    return values

def _require_vector(name, pos, arg):
    if arg.type != 'vector':
        raise DslEvalError(f"{name} requires arg {pos} to be a vector")
    return arg.value

def _require_number(name, pos, arg):
    if arg.type != 'number':
        raise DslEvalError(f"{name} requires arg {pos} to be a number")
    return arg.value

def _gen_arity(name, arity, args):
    if len(args) != arity:
        raise DslGeneratorError(f"{name} requires {arity} args, called with {len(args)}")

def _gen_values(name, args):
    for arg in args:
        if arg.type == 'void':
            raise DslGeneratorError(f"{name} cannot take a shape argument")

def _gen_vector(name, arg):
    if arg.type != 'vec':
        raise DslGeneratorError(f"{name} requires a vector argument, found {arg.type}")
    return arg

def _value_type(args):
    return 'vec' if any(arg.type == 'vec' for arg in args) else 'float'

# --- Arithmetic ---

def _add(args):
    return from_native(reduce(np.add, _require_values('+', args), 0.0))

def _mul(args):
    return from_native(reduce(np.multiply, _require_values('*', args), 1.0))

def _sub(args):
    values = _require_values('-', args)
    if not values:
        return make_number(0)
    if len(values) == 1:
        return from_native(np.negative(values[0]))
    return from_native(reduce(np.subtract, values[1:], values[0]))

def _div(args):
    values = _require_values('/', args)
    if not values:
        return make_number(1)
    if len(values) == 1:
        values = [1.0] + values
    for divisor in values[1:]:
        if np.any(np.asarray(divisor) == 0):
            raise DslEvalError("division by zero")
    return from_native(reduce(np.divide, values[1:], values[0]))

def _arithmetic_generator(op, identity):
    def generate(args):
        _gen_values(op, args)
        if not args:
            return Generated(identity, 'float')
        result_type = _value_type(args)
        if len(args) == 1:
            code = args[0].code
            if op == '-':
                return Generated(f"(-{code})", result_type)
            if op == '/':
                return Generated(f"(1.0 / {code})", result_type)
            return Generated(code, result_type)
        return Generated("(" + f" {op} ".join(arg.code for arg in args) + ")", result_type)
    return generate

def _min_max(name, fn):
    def impl(args):
        values = _require_values(name, args)
        if not values:
            return make_number(0)
        return from_native(reduce(fn, values))

    def generate(args):
        _gen_values(name, args)
        if not args:
            return Generated("0.0", 'float')
        result_type = _value_type(args)
        codes = [coerce(arg, result_type).code for arg in args]
        code = codes[-1]
        for c in reversed(codes[:-1]):
            code = f"{name}({c}, {code})"
        return Generated(code, result_type)

    return Internal(name, impl, generate)

# --- Functions of one value ---

def _fn_of_one(name, fn, wgsl_name=None):
    wgsl_name = wgsl_name or name

    def impl(args):
        _require_arity(name, 1, args)
        value = _require_values(name, args)[0]
        with np.errstate(all='ignore'):
            return from_native(fn(value))

    def generate(args):
        _gen_arity(name, 1, args)
        _gen_values(name, args)
        return Generated(f"{wgsl_name}({args[0].code})", _value_type(args))

    return Internal(name, impl, generate)

def _fn_of_many(name, arity, fn):
    """A componentwise builtin whose arguments are all coerced to a common type."""
    def impl(args):
        _require_arity(name, arity, args)
        values = _require_values(name, args)
        with np.errstate(all='ignore'):
            return from_native(fn(*values))

    def generate(args):
        _gen_arity(name, arity, args)
        _gen_values(name, args)
        result_type = _value_type(args)
        codes = ", ".join(coerce(arg, result_type).code for arg in args)
        return Generated(f"{name}({codes})", result_type)

    return Internal(name, impl, generate)

# --- Vectors ---

def _dot(args):
    _require_arity('dot', 2, args)
    return make_number(np.dot(_require_vector('dot', 0, args[0]), _require_vector('dot', 1, args[1])))

def _cross(args):
    _require_arity('cross', 2, args)
    return make_vector(np.cross(_require_vector('cross', 0, args[0]), _require_vector('cross', 1, args[1])))

def _length(args):
    _require_arity('length', 1, args)
    return make_number(np.linalg.norm(as_vector(_require_values('length', args)[0])))

def _normalize(args):
    _require_arity('normalize', 1, args)
    vec = _require_vector('normalize', 0, args[0])
    norm = np.linalg.norm(vec)
    if norm == 0:
        raise DslEvalError("cannot normalize a zero length vector")
    return make_vector(vec / norm)

_gensym_counter = count(1)

def _gensym(args):
    # `%` cannot appear in identifiers read from source
    if len(args) > 1:
        raise DslEvalError(f"gensym requires at most 1 args, called with {len(args)}")
    prefix = 'g'
    if args:
        if args[0].type != 'identifier':
            raise DslEvalError("gensym requires arg 1 to be an identifier")
        prefix = args[0].value
    return make_identifier(f"%{prefix}{next(_gensym_counter)}")

def _vec(args):
    _require_arity('vec', 3, args)
    return make_vector(*[_require_number('vec', i, arg) for i, arg in enumerate(args)])

def _as_vector(args):
    _require_arity('as-vector', 1, args)
    return make_vector(as_vector(_require_values('as-vector', args)[0]))

def _gen_call(name, wgsl_name, arity, result_type):
    def generate(args):
        _gen_arity(name, arity, args)
        for arg in args:
            _gen_vector(name, arg)
        return Generated(f"{wgsl_name}({', '.join(arg.code for arg in args)})", result_type)
    return generate

def _gen_vec(args):
    _gen_arity('vec', 3, args)
    codes = []
    for arg in args:
        if arg.type not in ('float', 'sdf'):
            raise DslGeneratorError(f"vec requires number arguments, found {arg.type}")
        codes.append(arg.code)
    return Generated(f"vec3<f32>({', '.join(codes)})", 'vec')

def _gen_as_vector(args):
    _gen_arity('as-vector', 1, args)
    return coerce(args[0], 'vec')

def _gen_length(args):
    _gen_arity('length', 1, args)
    _gen_values('length', args)
    return Generated(f"length({args[0].code})", 'float')

def _getter(axis):
    name = f"get-{axis}"
    index = 'xyz'.index(axis)

    def impl(args):
        _require_arity(name, 1, args)
        return make_number(_require_vector(name, 0, args[0])[index])

    def generate(args):
        _gen_arity(name, 1, args)
        return Generated(f"{_gen_vector(name, args[0]).code}.{axis}", 'float')

    return Internal(name, impl, generate)

def _swizzle(name):
    indices = ['xyz'.index(ch) for ch in name]

    def impl(args):
        _require_arity(name, 1, args)
        return make_vector(_require_vector(name, 0, args[0])[indices])

    def generate(args):
        _gen_arity(name, 1, args)
        return Generated(f"{_gen_vector(name, args[0]).code}.{name}", 'vec')

    return Internal(name, impl, generate)

# --- Interpolation ---

def _gen_mix(args):
    _gen_arity('mix', 3, args)
    _gen_values('mix', args)
    result_type = _value_type(args)
    a, b = coerce(args[0], result_type), coerce(args[1], result_type)
    t = args[2] if args[2].type == 'vec' else coerce(args[2], 'float')
    return Generated(f"mix({a.code}, {b.code}, {t.code})", result_type)

def _mix_values(args):
    _require_arity('mix', 3, args)
    return from_native(_mix(*_require_values('mix', args)))

def _step(edge, x):
    return np.where(np.asarray(x) >= edge, 1.0, 0.0)

# --- Comparisons ---

WGSL_COMPARISONS = {'<': '<', '<=': '<=', '>': '>', '>=': '>=', 'eq': '==', 'neq': '!='}

def _comparison(name, op):
    wgsl_op = WGSL_COMPARISONS[name]

    def impl(args):
        _require_min_arity(name, 2, args)
        values = _require_values(name, args)
        if any(np.ndim(v) for v in values):
            vecs = [as_vector(v) for v in values]
            result = np.ones(3)
            for a, b in zip(vecs, vecs[1:]):
                result = result * op(a, b)
            return make_vector(result)
        return make_number(1 if all(op(a, b) for a, b in zip(values, values[1:])) else 0)

    def generate(args):
        if len(args) < 2:
            raise DslGeneratorError(f"{name} requires at least 2 args, called with {len(args)}")
        _gen_values(name, args)
        result_type = _value_type(args)
        codes = [coerce(arg, result_type).code for arg in args]
        if result_type == 'vec':
            zero, one = "vec3<f32>(0.0)", "vec3<f32>(1.0)"
        else:
            zero, one = "0.0", "1.0"
        terms = [f"select({zero}, {one}, {a} {wgsl_op} {b})" for a, b in zip(codes, codes[1:])]
        if len(terms) == 1:
            return Generated(terms[0], result_type)
        return Generated("(" + " * ".join(terms) + ")", result_type)

    return Internal(name, impl, generate)


BUILTINS = [
    Internal('list', lambda args: make_list(args) if args else EMPTY_LIST),
    Internal('gensym', _gensym),
    Internal('+', _add, _arithmetic_generator('+', '0.0')),
    Internal('-', _sub, _arithmetic_generator('-', '0.0')),
    Internal('*', _mul, _arithmetic_generator('*', '1.0')),
    Internal('/', _div, _arithmetic_generator('/', '1.0')),
    _min_max('min', np.minimum),
    _min_max('max', np.maximum),
    Internal('dot', _dot, _gen_call('dot', 'dot', 2, 'float')),
    Internal('cross', _cross, _gen_call('cross', 'cross', 2, 'vec')),
    Internal('length', _length, _gen_length),
    Internal('normalize', _normalize, _gen_call('normalize', 'normalize', 1, 'vec')),
    _fn_of_one('abs', np.abs),
    _fn_of_one('floor', np.floor),
    _fn_of_one('ceil', np.ceil),
    _fn_of_one('sqrt', np.sqrt),
    _fn_of_one('sin', np.sin),
    _fn_of_one('cos', np.cos),
    _fn_of_one('tan', np.tan),
    _fn_of_one('asin', np.arcsin),
    _fn_of_one('acos', np.arccos),
    _fn_of_one('atan', np.arctan),
    _fn_of_one('radians', np.radians),
    _fn_of_one('degrees', np.degrees),
    _fn_of_one('fract', lambda x: x - np.floor(x)),
    _fn_of_one('sign', np.sign),
    _fn_of_one('exp', np.exp),
    _fn_of_one('log', np.log),
    _fn_of_one('saturate', lambda x: np.clip(x, 0.0, 1.0)),
    _fn_of_many('pow', 2, np.power),
    _fn_of_many('atan2', 2, np.arctan2),
    _fn_of_many('clamp', 3, lambda x, lo, hi: np.clip(x, lo, hi)),
    _fn_of_many('smoothstep', 3, _smoothstep),
    _fn_of_many('step', 2, _step),
    Internal('mix', _mix_values, _gen_mix),
    Internal('vec', _vec, _gen_vec),
    Internal('as-vector', _as_vector, _gen_as_vector),
    _getter('x'),
    _getter('y'),
    _getter('z'),
    _comparison('<', operator.lt),
    _comparison('<=', operator.le),
    _comparison('>', operator.gt),
    _comparison('>=', operator.ge),
    _comparison('eq', operator.eq),
    _comparison('neq', operator.ne),
] + [_swizzle(''.join(axes)) for axes in product('xyz', repeat=3)]

CONSTANTS = {
    't': 1.0,
    'pi': math.pi,
}

# Macros are written in the language itself: (name, parameters, body).
MACROS = [
    ('and', ['first', '...rest'],
     "(if rest (let ((tmp (gensym 'and))) `(let ((,tmp ,first)) (if ,tmp (and ,@rest) ,tmp))) first)"),
    ('or', ['first', '...rest'],
     "(if rest (let ((tmp (gensym 'or))) `(let ((,tmp ,first)) (if ,tmp ,tmp (or ,@rest)))) first)"),
    ('splat', ['a'], "`(let ((val ,a)) (vec val val val))"),
    ('min-vec', ['a'], "`(let ((v ,a)) (min (get-x v) (get-y v) (get-z v)))"),
    ('max-vec', ['a'], "`(let ((v ,a)) (max (get-x v) (get-y v) (get-z v)))"),
    # primitives
    ('sphere', ['center', 'radius'], "`(shape ellipsoid ,center (as-vector ,radius))"),
    ('ellipsoid', ['center', 'radii'], "`(shape ellipsoid ,center (as-vector ,radii))"),
    ('box', ['center', 'size'], "`(shape box ,center (as-vector ,size))"),
    ('torus', ['center', 'major', 'minor'], "`(shape torus ,center ,major ,minor)"),
    ('cylinder', ['center', 'radius', 'height'], "`(shape cylinder ,center ,radius ,height)"),
    ('capsule', ['from', 'to', 'radius'], "`(shape capsule ,from ,to ,radius)"),
    ('plane', ['normal', 'offset'], "`(shape plane (normalize ,normal) ,offset)"),
    ('octahedron', ['center', 'size'], "`(shape octahedron ,center ,size)"),
    # combinators
    ('union', ['...shapes'], "`(shape union ,@shapes)"),
    ('intersect', ['...shapes'], "`(shape intersect ,@shapes)"),
    ('difference', ['...args'], "`(shape difference ,@args)"),
    ('smooth', ['k', '...shapes'], "`(shape smooth ,k (shape union ,@shapes))"),
    ('lerp', ['t', 'a', 'b'], "`(shape lerp ,t ,a ,b)"),
    ('round', ['radius', '...shapes'], "`(shape round ,radius (shape union ,@shapes))"),
    ('scale', ['factor', '...shapes'], "`(shape scale ,factor (shape union ,@shapes))"),
    ('translate', ['offset', '...shapes'], "`(shape translate ,offset (shape union ,@shapes))"),
    ('rotate', ['axis', 'angle', '...shapes'], "`(shape rotate ,axis ,angle (shape union ,@shapes))"),
    ('reflect', ['axes', '...shapes'], "`(shape reflect ,axes (shape union ,@shapes))"),
    ('color', ['col', '...shapes'], "`(shape color ,col (shape union ,@shapes))"),
    ('hide', ['...shapes'], "`(shape hide ,@shapes)"),
]


def add_builtins(env: Env):
    """Installs the builtin procedures, constants and macros into `env`."""
    for internal in BUILTINS:
        env.define(internal.name, Expression('internal', internal))
    for name, value in CONSTANTS.items():
        env.define(name, make_number(value))
    for name, symbols, body in MACROS:
        env.define(name, Expression('macro', Macro(name, symbols, read_one(body), env)))
    return env


def make_root_env() -> Env:
    """A builtin frame that refuses redefinition, with a user frame on top."""
    root = add_builtins(Env(allow_redefine=False))
    return Env(root)
