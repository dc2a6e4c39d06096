import numpy as np
from .dsl import DslGeneratorError
from .utils import wgsl_float


def _unit_axis(axis) -> np.ndarray:
    axis = np.asarray(axis, dtype=float)
    length = np.linalg.norm(axis)
    if length == 0:
        raise DslGeneratorError("rotation axis must not be a zero vector")
    return axis / length

def _cross_matrix(u) -> np.ndarray:
    return np.array([
        [0.0, -u[2], u[1]],
        [u[2], 0.0, -u[0]],
        [-u[1], u[0], 0.0],
    ])

def _f(value: float) -> str:
    return wgsl_float(round(float(value), 4))

def rotation_matrix(axis, angle: float) -> np.ndarray:
    """Rodrigues rotation matrix for a rotation of `angle` radians about `axis`."""
    u = _unit_axis(axis)
    c, s = np.cos(angle), np.sin(angle)
    return c * np.eye(3) + s * _cross_matrix(u) + (1.0 - c) * np.outer(u, u)


def generate_const_rotation_matrix(axis, angle: float) -> list:
    """A `rot` matrix computed at compile time. WGSL matrices are built from columns."""
    rot = rotation_matrix(axis, angle)
    columns = [
        f"vec3<f32>({_f(rot[0, j])}, {_f(rot[1, j])}, {_f(rot[2, j])})"
        for j in range(3)
    ]
    return [
        "  let rot = mat3x3<f32>(",
        f"    {columns[0]},",
        f"    {columns[1]},",
        f"    {columns[2]});",
    ]


def _scaled(name: str, factor: float) -> str:
    factor = round(float(factor), 4)
    if abs(factor) < 1e-10:
        return "0.0"
    if abs(factor - 1.0) < 1e-10:
        return name
    return f"{name} * {wgsl_float(factor)}"

def _combine(op: str, a: str, b: str) -> str:
    if op == '+' and a == 'ic' and b == 'c':
        return "1.0"
    if a == "0.0" and b == "0.0":
        return "0.0"
    if a == "0.0":
        return b if op == '+' else f"-{b}"
    if b == "0.0":
        return a
    return f"{a} {op} {b}"


def generate_const_axis_rotation_matrix(axis, angle_code: str) -> list:
    """A `rot` matrix for a fixed axis whose angle is only known at run time."""
    u = _unit_axis(axis)
    k = _cross_matrix(u)

    def term(i, j):
        outer = _scaled('ic', u[i] * u[j])
        if i == j:
            return _combine('+', outer, 'c')
        if k[i, j] >= 0:
            return _combine('+', outer, _scaled('s', k[i, j]))
        return _combine('-', outer, _scaled('s', -k[i, j]))

    columns = [f"vec3<f32>({term(0, j)}, {term(1, j)}, {term(2, j)})" for j in range(3)]
    return [
        f"  let c = cos({angle_code});",
        f"  let s = sin({angle_code});",
        "  let ic = 1.0 - c;",
        "  let rot = mat3x3<f32>(",
        f"    {columns[0]},",
        f"    {columns[1]},",
        f"    {columns[2]});",
    ]
