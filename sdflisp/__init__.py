from .dsl import (
    Expression, Shape, Lambda, Macro, Internal, Generated,
    DslError, DslParseError, DslEvalError, DslGeneratorError,
)
from .reader import read, read_one, tokenize, parse
from .printer import print_expr
from .env import Env
from .evaluate import evaluate
from .builtins import add_builtins, make_root_env
from .context import GenerateContext
from .generate import generate, coerce
from .postprocess import post_process
from .shader import (
    generate_shader, make_shader, collect_errors,
    GeneratedShader, ShaderDiagnostics, Diagnostic,
)
from .uniforms import (
    Uniform, default_uniform, find_uniform_values,
    read_default_uniform_values, extract_view_parameters,
)
