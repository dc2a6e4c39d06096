import re
import sys
from pathlib import Path
from functools import lru_cache

WGSL_DIR = Path(__file__).parent / 'wgsl'

# All loaded WGSL file contents, mapping stem -> full text
WGSL_SOURCES = {}

# Functions defined in shapes.wgsl, mapping name -> code, in file order
SHAPE_FUNCTIONS = {}

# Library files concatenated ahead of the map function, in dependency order.
WGSL_ORDER = [
    'util',    # Standalone helpers, used by the raymarcher
    'noise',   # Hashes and value noise
    'colors',  # Color space conversions
]

FUNCTION_RE = re.compile(r"^fn\s+(\w+)\s*\(([^)]*)\)", re.MULTILINE)


def parse_wgsl_functions(content: str) -> dict:
    """Splits WGSL source into a dictionary of top-level functions, name -> code."""
    matches = list(FUNCTION_RE.finditer(content))
    functions = {}
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(content)
        functions[match.group(1)] = content[match.start():end].strip()
    return functions

def load_all_wgsl():
    """Finds and loads all .wgsl files in the package directory."""
    if WGSL_SOURCES:
        return

    if not WGSL_DIR.exists():
        print(f"WARNING: WGSL library directory not found: {WGSL_DIR}", file=sys.stderr)
        return

    for wgsl_file in sorted(WGSL_DIR.glob('*.wgsl')):
        with open(wgsl_file, 'r') as f:
            WGSL_SOURCES[wgsl_file.stem] = f.read()
    SHAPE_FUNCTIONS.update(parse_wgsl_functions(WGSL_SOURCES.get('shapes', '')))

def get_wgsl_source(stem: str) -> str:
    """Returns the whole text of a library file such as 'map' or 'shader'."""
    load_all_wgsl()
    return WGSL_SOURCES[stem]

def has_shape_fn(name: str) -> bool:
    load_all_wgsl()
    return name in SHAPE_FUNCTIONS

def get_shape_fn(name: str) -> str:
    load_all_wgsl()
    if name not in SHAPE_FUNCTIONS:
        raise KeyError(f"No function defined for {name}")
    return SHAPE_FUNCTIONS[name]

def get_shape_params(name: str) -> list:
    """Returns the (name, WGSL type) pairs of a shape function's parameters."""
    match = FUNCTION_RE.match(get_shape_fn(name))
    params = []
    for param in match.group(2).split(","):
        if param.strip():
            param_name, param_type = param.split(":")
            params.append((param_name.strip(), param_type.strip()))
    return params

@lru_cache(maxsize=None)
def get_shape_definitions(required_names: frozenset) -> str:
    """
    Given a set of required shape function names, returns a single string
    containing their definitions in the order they appear in shapes.wgsl.
    """
    load_all_wgsl()
    for name in required_names:
        get_shape_fn(name)
    return "\n\n".join(
        code for name, code in SHAPE_FUNCTIONS.items() if name in required_names
    )

@lru_cache(maxsize=None)
def get_library_code() -> str:
    """Returns the utility, noise and color libraries concatenated in WGSL_ORDER."""
    load_all_wgsl()
    return "\n\n".join(WGSL_SOURCES[stem].strip() for stem in WGSL_ORDER if stem in WGSL_SOURCES)
