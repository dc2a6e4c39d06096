import math
import numpy as np

SPECIAL_FORMS = frozenset([
    'if', 'define', 'set!', 'lambda', 'let', 'begin', 'quote',
    'quasi-quote', 'shape', 'placeholder', 'smoothcase',
])

GENERATED_TYPES = ('float', 'vec', 'sdf', 'void')


class DslError(Exception):
    """Base class for errors that carry a source span."""
    def __init__(self, message: str, offset: int = None, length: int = None):
        super().__init__(message)
        self.message = message
        self.offset = offset
        self.length = length

    def __str__(self):
        return self.message


class DslParseError(DslError):
    """Raised by the reader for malformed source text."""


class DslEvalError(DslError):
    """Raised by builtin implementations, turned into error values by the evaluator."""


class DslGeneratorError(DslError):
    """Raised by the code generator."""


class Expression:
    """
    A node of the expression tree.

    `type` selects how `value` is interpreted:
      null        -> [] (the empty list)
      list        -> list of Expression
      identifier  -> str
      number      -> float
      vector      -> numpy array of 3 floats
      shape       -> Shape
      lambda      -> Lambda
      macro       -> Macro
      internal    -> Internal
      placeholder -> the retained Expression
      error       -> message str
      generated   -> Generated
    """
    def __init__(self, type: str, value, offset: int = None, length: int = None):
        self.type = type
        self.value = value
        self.offset = offset
        self.length = length

    def __repr__(self):
        from .printer import print_expr
        return f"Expression({self.type}, {print_expr(self)})"


class Shape:
    def __init__(self, type: str, args: list):
        self.type = type
        self.args = args


class Lambda:
    def __init__(self, symbols: list, body: Expression, closure):
        self.symbols = symbols
        self.body = body
        self.closure = closure


class Macro:
    def __init__(self, name: str, symbols: list, body: Expression, closure):
        self.name = name
        self.symbols = symbols
        self.body = body
        self.closure = closure


class Internal:
    """A builtin procedure: a numeric implementation plus an optional WGSL generator."""
    def __init__(self, name: str, impl, generate=None):
        self.name = name
        self.impl = impl
        self.generate = generate


class Generated:
    """A fragment of generated WGSL and its type (float, vec, sdf or void)."""
    def __init__(self, code: str, type: str):
        if type not in GENERATED_TYPES:
            raise ValueError(f"Unknown generated type '{type}'")
        self.code = code
        self.type = type

    def __repr__(self):
        return f"Generated({self.type}: {self.code!r})"


EMPTY_LIST = Expression('null', [])

# --- Constructors ---

def make_number(value, offset=None, length=None) -> Expression:
    return Expression('number', float(value), offset, length)

def make_vector(x, y=None, z=None, offset=None, length=None) -> Expression:
    if y is None and z is None:
        value = np.array(x, dtype=float).reshape(3)
    else:
        value = np.array([x, y, z], dtype=float)
    return Expression('vector', value, offset, length)

def make_identifier(name: str, offset=None, length=None) -> Expression:
    return Expression('identifier', name, offset, length)

def make_list(items, offset=None, length=None) -> Expression:
    items = list(items)
    if not items:
        if offset is None:
            return EMPTY_LIST
        return Expression('null', [], offset, length)
    return Expression('list', items, offset, length)

def make_id_list(name: str, items, offset=None, length=None) -> Expression:
    return Expression('list', [make_identifier(name)] + list(items), offset, length)

def make_placeholder(retained: Expression, offset=None, length=None) -> Expression:
    if offset is None:
        offset, length = retained.offset, retained.length
    return Expression('placeholder', retained, offset, length)

def make_error(message: str, offset=None, length=None) -> Expression:
    return Expression('error', message, offset, length)

def make_generated(code: str, type: str, offset=None, length=None) -> Expression:
    return Expression('generated', Generated(code, type), offset, length)

def make_shape(type: str, args, offset=None, length=None) -> Expression:
    return Expression('shape', Shape(type, list(args)), offset, length)

# --- Predicates ---

def is_list(expr: Expression) -> bool:
    return expr.type in ('null', 'list')

def is_identifier(expr: Expression) -> bool:
    return expr.type == 'identifier'

def is_error(expr: Expression) -> bool:
    return expr.type == 'error'

def is_vector(expr: Expression) -> bool:
    return expr.type == 'vector'

def is_value(expr: Expression) -> bool:
    return expr.type in ('number', 'vector')

def is_placeholder(expr: Expression) -> bool:
    return expr.type == 'placeholder'

def is_placeholder_var(expr: Expression) -> bool:
    return expr.type == 'placeholder' and is_identifier(expr.value)

def is_generated(expr: Expression) -> bool:
    return expr.type == 'generated'

def is_deferred(expr: Expression) -> bool:
    """True for values whose evaluation has to wait for code generation."""
    return is_placeholder(expr) or is_generated(expr)

def is_truthy(expr: Expression) -> bool:
    return expr.type != 'null' and not (expr.type == 'number' and expr.value == 0)

def is_special(name: str) -> bool:
    return name in SPECIAL_FORMS

def is_vector_name(name: str) -> bool:
    """Uniform names like `view.x` are components of a vector uniform."""
    return len(name) > 2 and name[-2] == '.' and name[-1] in 'xyz'

def get_id_list(expr: Expression):
    """Returns the head identifier of a list, or None."""
    if expr.type == 'list' and expr.value and is_identifier(expr.value[0]):
        return expr.value[0].value
    return None

def is_id_list(expr: Expression, name: str) -> bool:
    return get_id_list(expr) == name

def has_placeholder(expr: Expression) -> bool:
    if expr.type == 'placeholder':
        return True
    if expr.type == 'list':
        return any(has_placeholder(el) for el in expr.value)
    if expr.type == 'shape':
        return any(has_placeholder(el) for el in expr.value.args)
    return False

def exprs_equal(a: Expression, b: Expression) -> bool:
    """Structural equality, ignoring source spans."""
    if a.type != b.type:
        return False
    if a.type == 'null':
        return True
    if a.type == 'list':
        return len(a.value) == len(b.value) and all(
            exprs_equal(x, y) for x, y in zip(a.value, b.value)
        )
    if a.type == 'vector':
        return bool(np.array_equal(a.value, b.value))
    if a.type == 'placeholder':
        return exprs_equal(a.value, b.value)
    if a.type == 'shape':
        return a.value.type == b.value.type and len(a.value.args) == len(b.value.args) and all(
            exprs_equal(x, y) for x, y in zip(a.value.args, b.value.args)
        )
    if a.type == 'generated':
        return a.value.code == b.value.code and a.value.type == b.value.type
    if a.type in ('lambda', 'macro', 'internal'):
        return a.value is b.value
    return a.value == b.value

def format_number(value: float) -> str:
    """Shortest source form of a number: integral values print without a fraction."""
    value = float(value)
    if math.isfinite(value) and value == int(value) and abs(value) < 1e21:
        return str(int(value))
    return repr(value)
