import re
import math

START_RE = re.compile(r"\s*#\|\s*start-interactive-values\b\s*")
END_RE = re.compile(r"\s*\bend-interactive-values\s*\|#\s*")
VALUE_LINE_RE = re.compile(r"^\s*([^\s]+)\s*=\s*([^\s\[]+)\s*(\[([^\]]+)\])?")


class Uniform:
    """An adjustable scene value with the range and step used to edit it."""
    def __init__(self, value: float, min_val: float = 0.0, max_val: float = 1.0,
                 step: float = 0.01, logarithmic: bool = False):
        self.value = value
        self.min_val = min_val
        self.max_val = max_val
        self.step = step
        self.logarithmic = logarithmic

    def __eq__(self, other):
        if not isinstance(other, Uniform):
            return NotImplemented
        return (self.value, self.min_val, self.max_val, self.step, self.logarithmic) == \
            (other.value, other.min_val, other.max_val, other.step, other.logarithmic)

    def __repr__(self):
        return f"Uniform({self.value}, [{self.min_val}:{self.max_val}:{self.step}])"


# (min, max, step) ranges. The magnitude ranges are tried in order for other names
PRESETS = {
    'k': (0.0, 0.2, 0.001),
    'theta': (-180.0, 180.0, 1.0),
    'one': (0.0, 1.0, 0.01),
    'two': (0.0, 2.0, 0.01),
    'five': (0.0, 5.0, 0.01),
    'ten': (0.0, 10.0, 0.1),
    'twenty': (0.0, 20.0, 0.1),
    'fifty': (0.0, 50.0, 0.1),
    'hundred': (0.0, 100.0, 1.0),
    'pm_one': (-1.0, 1.0, 0.01),
    'pm_two': (-2.0, 2.0, 0.01),
    'pm_five': (-5.0, 5.0, 0.01),
    'pm_ten': (-10.0, 10.0, 0.1),
    'pm_twenty': (-20.0, 20.0, 0.1),
    'pm_fifty': (-50.0, 50.0, 0.1),
    'pm_hundred': (-100.0, 100.0, 1.0),
}

ANGLE_NAMES = ('theta', 'alpha', 'beta', 'phi')


def _make_uniform(preset, value: float) -> Uniform:
    min_val, max_val, step = preset
    if value == 0 and not min_val <= 0 <= max_val:
        value = (min_val + max_val) / 2
    return Uniform(value, min_val, max_val, step)

def default_uniform(name: str, value: float = 0.0) -> Uniform:
    """Picks an editing range for a value from its name, else from its magnitude."""
    if name == 'k':
        return _make_uniform(PRESETS['k'], value)
    if name in ANGLE_NAMES:
        return _make_uniform(PRESETS['theta'], value)
    if name.startswith('rgb-'):
        return _make_uniform(PRESETS['one'], value)
    for preset_name, preset in PRESETS.items():
        if preset_name in ('k', 'theta'):
            continue
        if preset[0] <= value <= preset[1]:
            return _make_uniform(preset, value)
    return Uniform(0.0)


def find_uniform_values(text: str):
    """Returns the (start, end) span of the interactive values block, or (-1, -1)."""
    start = START_RE.search(text)
    end = END_RE.search(text)
    if not start or not end:
        return -1, -1
    return start.start(), end.end()


def _to_float(text: str):
    try:
        value = float(text)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def read_default_uniform_values(text: str, values: dict = None) -> dict:
    """
    Parses `name = value [min:max:step]` lines in the interactive values block.

    Names already present in `values` keep their current setting.
    """
    updated = dict(values or {})
    start, end = find_uniform_values(text)
    if start < 0:
        return updated

    for line in text[start:end].split("\n"):
        m = VALUE_LINE_RE.match(line)
        if not m:
            continue
        name = m.group(1)
        if name in updated:
            continue
        value = _to_float(m.group(2))
        if value is None:
            continue
        if m.group(3):
            parts = [_to_float(part) for part in m.group(4).split(":")]
            if len(parts) == 3 and all(part is not None for part in parts):
                updated[name] = Uniform(value, parts[0], parts[1], parts[2])
                continue
        updated[name] = default_uniform(name, value)
    return updated


def extract_view_parameters(values: dict):
    """Removes `view.x/y/z` from `values`, returning them as a camera view dict (or None)."""
    keys = [f"view.{axis}" for axis in 'xyz']
    if not any(key in values for key in keys):
        return None
    view = {}
    for axis, key in zip('xyz', keys):
        uniform = values.pop(key, None)
        if uniform is not None:
            view[axis] = uniform.value
    return view


def format_uniform_values(values: dict) -> str:
    """Writes values back out as an interactive values block."""
    lines = ["#|start-interactive-values"]
    for name, uniform in values.items():
        lines.append(f"  {name} = {uniform.value} [{uniform.min_val}:{uniform.max_val}:{uniform.step}]")
    lines.append("end-interactive-values|#")
    return "\n".join(lines)
