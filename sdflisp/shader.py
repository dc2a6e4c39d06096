from .builtins import make_root_env
from .context import GenerateContext
from .dsl import Generated, DslParseError, DslGeneratorError
from .evaluate import evaluate
from .generate import generate, indent
from .loader import get_shape_definitions, get_library_code, get_wgsl_source
from .postprocess import post_process
from .printer import print_expr
from .reader import read

MAP_CODE_MARKER = "//MAP-CODE//"
MAP_FUNCTION_MARKER = "//MAP-FUNCTION//"
UNIFORM_VALUES_MARKER = "//UNIFORM-VALUES//"

# Size limit of a WebGPU uniform buffer, in floats
MAX_UNIFORM_VALUES = 16384


class Diagnostic:
    """A problem in the source text, located by character offset and length."""
    def __init__(self, message: str, offset: int = None, length: int = None):
        self.message = message
        self.offset = offset
        self.length = length

    def location(self, text: str):
        """Returns the 1-based (line, column) of the diagnostic in `text`, or None."""
        if self.offset is None or text is None:
            return None
        line = text.count("\n", 0, self.offset) + 1
        column = self.offset - (text.rfind("\n", 0, self.offset) + 1) + 1
        return line, column

    def __repr__(self):
        return f"Diagnostic({self.message!r}, offset={self.offset}, length={self.length})"


class GeneratedShader:
    def __init__(self, shader: str, uniform_names: list, uniform_offsets: list,
                 uniform_slot_count: int, evaluated: list = None, log: list = None):
        self.shader = shader
        self.uniform_names = uniform_names
        self.uniform_offsets = uniform_offsets
        self.uniform_slot_count = uniform_slot_count
        self.evaluated = evaluated or []
        self.log = log or []


class ShaderDiagnostics:
    def __init__(self, errors: list, log: list = None, text: str = None, evaluated: list = None):
        self.errors = errors
        self.log = log or []
        self.text = text
        self.evaluated = evaluated or []

    def format(self) -> str:
        lines = []
        for error in self.errors:
            location = error.location(self.text)
            if location:
                lines.append(f"Error: {error.message} (line {location[0]}, column {location[1]})")
            else:
                lines.append(f"Error: {error.message}")
        if self.log:
            lines.append("")
            lines.append("Generator log:")
            lines.extend(self.log)
        return "\n".join(lines)


def collect_errors(expr) -> list:
    """Returns every error value reachable in an evaluated expression."""
    if expr.type == 'error':
        return [expr]
    if expr.type == 'list':
        return [error for el in expr.value for error in collect_errors(el)]
    if expr.type == 'placeholder':
        return collect_errors(expr.value)
    if expr.type == 'shape':
        return [error for el in expr.value.args for error in collect_errors(el)]
    return []


def generate_shader(text: str, log=None):
    """
    Compiles scene source text to the WGSL map function and its dependencies.

    Returns a GeneratedShader, or ShaderDiagnostics listing every parse,
    evaluation and generation error found.
    """
    try:
        parsed = read(text)
    except DslParseError as e:
        return ShaderDiagnostics([Diagnostic(e.message, e.offset, e.length)], text=text)

    env = make_root_env()
    results = [evaluate(expr, env) for expr in parsed]
    results = [expr for expr in results if expr.type != 'null']
    evaluated = [print_expr(expr) for expr in results]

    errors = []
    ctx = GenerateContext(log=log)
    body = []
    for expr in results:
        found = collect_errors(expr)
        if found:
            errors.extend(Diagnostic(e.value, e.offset, e.length) for e in found)
            continue
        try:
            value = generate(expr, env, ctx)
            if value.type == 'void':
                value = Generated(post_process(value.code), value.type)
        except DslGeneratorError as e:
            errors.append(Diagnostic(e.message, e.offset, e.length))
            continue
        if value.type in ('sdf', 'float'):
            body.append(f"  res = {value.code};")
        elif value.type == 'void':
            body.extend(indent(value.code))
        else:
            errors.append(Diagnostic(f"Cannot use {print_expr(expr)} in map function", expr.offset, expr.length))

    if not errors and ctx.uniform_slot_count > MAX_UNIFORM_VALUES:
        errors.append(Diagnostic(f"Too many uniform values ({ctx.uniform_slot_count}), at most {MAX_UNIFORM_VALUES} fit"))
    if errors:
        return ShaderDiagnostics(errors, ctx.log_lines, text, evaluated)

    wgsl = []
    dependencies = get_shape_definitions(frozenset(ctx.dependencies))
    if dependencies:
        wgsl.extend([dependencies, ""])
    wgsl.extend([get_library_code(), ""])
    prefix, suffix = get_wgsl_source('map').split(MAP_CODE_MARKER)
    wgsl.append(prefix.rstrip("\n"))
    wgsl.extend(body)
    wgsl.append(suffix.strip("\n"))
    for fn in ctx.functions:
        wgsl.extend(["", fn.code])
    ctx.apply_uniforms(wgsl)

    return GeneratedShader(
        shader="\n".join(wgsl),
        uniform_names=ctx.uniforms,
        uniform_offsets=ctx.offsets,
        uniform_slot_count=ctx.uniform_slot_count,
        evaluated=evaluated,
        log=ctx.log_lines,
    )


def make_shader(template: str, generated: str, value_count: int) -> str:
    """
    Fills the outer shader template with the map function and the uniform
    value array. An empty `generated` renders the default scene.
    """
    if value_count > 0:
        size = ((value_count + 15) & ~15) // 4
        values = f"  values: array<vec4<f32>, {size}>,"
    else:
        values = ""
    if not generated:
        generated = get_library_code() + "\n\n" + get_wgsl_source('placeholder')
    return template.replace(UNIFORM_VALUES_MARKER, values).replace(MAP_FUNCTION_MARKER, generated)
