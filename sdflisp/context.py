import re
from .dsl import DslGeneratorError, is_vector_name

VECTOR_UNIFORM_RE = re.compile(r"vec3<f32>\(\s*\{%([^%]+)%\},\s*\{%([^%]+)%\},\s*\{%([^%]+)%\}\s*\)")
UNIFORM_TOKEN_RE = re.compile(r"\{%([^%]+)%\}")


class UniformInfo:
    def __init__(self, name: str):
        self.name = name
        self.is_vector = is_vector_name(name)
        self.offset = None

    @property
    def vector_name(self) -> str:
        return self.name[:self.name.rindex('.')]

    @property
    def axis(self) -> str:
        return self.name[-1]


class HelperFunction:
    """A named WGSL function emitted after the map function."""
    def __init__(self, name: str, code: str, type: str, digest: str = None):
        self.name = name
        self.code = code
        self.type = type
        self.digest = digest


class GenerateContext:
    """Manages the state of one compilation: dependencies, helper functions and uniforms."""
    def __init__(self, log=None, uniforms=()):
        self.log_lines = []
        self._log = log
        self.dependencies = set()
        self.functions = []
        self.lambdas = {}
        self._lambdas_in_progress = set()
        self._name_counters = {}
        self._uniforms = [UniformInfo(name) for name in uniforms]
        self._have_offsets = False

    def log(self, *parts):
        line = " ".join(str(part) for part in parts)
        self.log_lines.append(line)
        if self._log is not None:
            self._log(line)

    # --- Helper functions ---

    def get_name(self, base: str, unique: bool = True) -> str:
        """Returns a function name not used before in this compilation."""
        count = self._name_counters.get(base, 0)
        self._name_counters[base] = count + 1
        if not unique and count == 0:
            return base
        return f"{base}_{count + 1}" if unique else f"{base}_{count}"

    def lookup_function(self, digest: str):
        for fn in self.functions:
            if fn.digest is not None and fn.digest == digest:
                return fn
        return None

    def add_function(self, name: str, lines, type: str, digest: str = None) -> HelperFunction:
        fn = HelperFunction(name, "\n".join(lines), type, digest)
        self.functions.append(fn)
        return fn

    # --- Lambda memoization ---

    def lookup_lambda(self, lam, signature):
        entry = self.lambdas.get((id(lam), tuple(signature)))
        if entry is None:
            return None
        return entry[1]

    def begin_lambda(self, lam, signature):
        key = (id(lam), tuple(signature))
        if key in self._lambdas_in_progress:
            raise DslGeneratorError("Recursive lambdas cannot be generated")
        self._lambdas_in_progress.add(key)

    def end_lambda(self, lam, signature):
        self._lambdas_in_progress.discard((id(lam), tuple(signature)))

    def remember_lambda(self, lam, signature, fn: HelperFunction):
        # the lambda is stored so its id is not reused during this compilation
        self.lambdas[(id(lam), tuple(signature))] = (lam, fn)

    # --- Uniforms ---

    @property
    def uniforms(self) -> list:
        if not self._have_offsets:
            self.calculate_offsets()
        return [u.name for u in self._uniforms]

    @property
    def offsets(self) -> list:
        if not self._have_offsets:
            self.calculate_offsets()
        return [
            u.offset * 4 + 'xyz'.index(u.axis) if u.is_vector else u.offset
            for u in self._uniforms
        ]

    @property
    def uniform_slot_count(self) -> int:
        offsets = self.offsets
        return max(offsets) + 1 if offsets else 0

    def get_uniform_code(self, name: str, fail_for_unknown: bool = False) -> str:
        """Registers `name` on first use and returns a token substituted by `apply_uniforms`."""
        if not any(u.name == name for u in self._uniforms):
            if fail_for_unknown:
                raise DslGeneratorError(f"Unknown uniform value {name}")
            self._uniforms.append(UniformInfo(name))
            self._have_offsets = False
        return f"{{%{name}%}}"

    def calculate_offsets(self):
        """
        Lays out uniforms in a buffer of vec4 slots.

        Vector components come first, sorted by name, one vec4 slot per
        vector. Scalars follow in name order, one float each, starting right
        after the vector slots.
        """
        vectors = sorted((u for u in self._uniforms if u.is_vector), key=lambda u: u.name)
        scalars = sorted((u for u in self._uniforms if not u.is_vector), key=lambda u: u.name)
        self._uniforms = vectors + scalars

        groups = {}
        for u in vectors:
            u.offset = groups.setdefault(u.vector_name, len(groups))
        offset = len(groups) * 4
        for u in scalars:
            u.offset = offset
            offset += 1
        self._have_offsets = True

    def _find(self, name):
        for u in self._uniforms:
            if u.name == name:
                return u
        return None

    def _replace_vector(self, match):
        names = match.groups()
        if not all(is_vector_name(n) for n in names):
            return match.group(0)
        if len({n[:n.rindex('.')] for n in names}) != 1:
            return match.group(0)
        uniform = self._find(names[0])
        if uniform is None:
            return match.group(0)
        swizzle = "".join(n[-1] for n in names)
        return f"uniforms.values[{uniform.offset}].{swizzle}"

    def _replace_token(self, match):
        uniform = self._find(match.group(1))
        if uniform is None:
            return match.group(0)
        if uniform.is_vector:
            return f"uniforms.values[{uniform.offset}].{uniform.axis}"
        return f"uniforms.values[{uniform.offset // 4}][{uniform.offset % 4}]"

    def apply_uniforms(self, lines: list) -> list:
        """Substitutes uniform tokens in place with indexes into the uniform buffer."""
        if not self._have_offsets:
            self.calculate_offsets()
        for i, line in enumerate(lines):
            line = VECTOR_UNIFORM_RE.sub(self._replace_vector, line)
            lines[i] = UNIFORM_TOKEN_RE.sub(self._replace_token, line)
        return lines
