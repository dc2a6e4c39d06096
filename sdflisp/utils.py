import math
import numpy as np
from .dsl import Expression, DslEvalError, DslGeneratorError, make_number, make_vector


def _smoothstep(edge0, edge1, x):
    """NumPy implementation of WGSL smoothstep."""
    t = np.clip((x - edge0) / (edge1 - edge0), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)

def _mix(a, b, t):
    """Linear interpolation with the factor clamped to [0, 1]."""
    t = np.clip(t, 0.0, 1.0)
    return a * (1.0 - t) + b * t

def to_native(expr: Expression):
    """Returns a float for a number expression or a numpy array for a vector."""
    if expr.type == 'number':
        return float(expr.value)
    if expr.type == 'vector':
        return expr.value
    raise DslEvalError(f"expected a number or vector, found {expr.type}")

def from_native(value, offset=None, length=None) -> Expression:
    """Wraps a float or a 3-element array back into an expression."""
    if np.ndim(value) == 0:
        value = float(value)
        if not math.isfinite(value):
            raise DslEvalError("result is not a finite number")
        return make_number(value, offset, length)
    value = np.asarray(value, dtype=float)
    if not np.all(np.isfinite(value)):
        raise DslEvalError("result is not a finite vector")
    return make_vector(value, offset=offset, length=length)

def as_vector(value) -> np.ndarray:
    """Broadcasts a float to a 3-vector, passing vectors through."""
    if np.ndim(value) == 0:
        return np.full(3, float(value))
    return np.asarray(value, dtype=float)

def wgsl_float(val) -> str:
    """Formats a Python number as a WGSL f32 literal."""
    val = float(val)
    if not math.isfinite(val):
        raise DslGeneratorError(f"Cannot generate non-finite number {val}")
    if val == 0:
        return "0.0"
    return f"{val}"

def wgsl_vector(val) -> str:
    components = [wgsl_float(v) for v in np.asarray(val, dtype=float).reshape(3)]
    if components[0] == components[1] == components[2]:
        return f"vec3<f32>({components[0]})"
    return f"vec3<f32>({components[0]}, {components[1]}, {components[2]})"
