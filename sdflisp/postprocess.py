import re
from collections import Counter
from itertools import count
from .dsl import DslGeneratorError

CALL_HEAD_RE = re.compile(r"^[A-Za-z_]\w*(<[\w<>]+>)?$")
HAS_CALL_RE = re.compile(r"\w\(")
NAME_RE = re.compile(r"[A-Za-z_]\w*")
ASSIGNED_RE = re.compile(r"\b([A-Za-z_]\w*)\s*[-+*/]?=(?!=)")
DECLARED_RE = re.compile(r"\b(?:var|let)\s+([A-Za-z_]\w*)")


def bracketize(lines: list) -> list:
    """
    Nests generated lines by scope. A line ending in `{` opens a nested list,
    a line starting with `}` closes it; both stay in the enclosing list.
    """
    root = []
    stack = [root]
    for line in lines:
        stripped = line.strip()
        if stripped.startswith('}'):
            if len(stack) == 1:
                raise DslGeneratorError("Mismatched brackets in generated code, overclosed")
            stack.pop()
        stack[-1].append(line)
        if stripped.endswith('{'):
            block = []
            stack[-1].append(block)
            stack.append(block)
    if len(stack) != 1:
        raise DslGeneratorError("Mismatched brackets in generated code, underclosed")
    return root


def _assigned_names(children, names=None) -> set:
    names = set() if names is None else names
    for child in children:
        if isinstance(child, list):
            _assigned_names(child, names)
        else:
            names.update(ASSIGNED_RE.findall(child))
            names.update(DECLARED_RE.findall(child))
    return names

def _sub_expressions(line: str):
    """Yields the balanced calls and parenthesized groups of one line."""
    starts = []
    for i, ch in enumerate(line):
        if ch == '(':
            starts.append(i)
        elif ch == ')' and starts:
            open_at = starts.pop()
            start = open_at
            while start > 0 and line[start - 1] not in "( ,":
                start -= 1
            head = line[start:open_at]
            if not head or CALL_HEAD_RE.match(head):
                yield line[start:i + 1]

def _eligible(candidate: str, assigned: set) -> bool:
    if candidate.startswith('sdf'):
        return False
    if not HAS_CALL_RE.search(candidate) and 'tmp_' not in candidate:
        return False
    return not any(name in assigned for name in NAME_RE.findall(candidate))

def _var_name(candidate: str, number: int) -> str:
    if candidate.startswith('('):
        return f"tmp_exp_{number}"
    head = NAME_RE.match(candidate).group(0)
    if head.startswith('vec'):
        head = 'vec'
    return f"tmp_{head}_{number}"

def _replace(line: str, candidate: str, name: str) -> str:
    return re.sub(r"(?<![\w.>])" + re.escape(candidate), name, line)


def _process(children: list, numbers) -> list:
    assigned = _assigned_names(children)
    pad = next(
        (c[:len(c) - len(c.lstrip())] for c in children if isinstance(c, str) and c.strip()),
        "",
    )
    lets = []
    while True:
        counts = Counter(
            sub for child in children if isinstance(child, str) for sub in _sub_expressions(child)
        )
        candidates = [sub for sub, n in counts.items() if n > 1 and _eligible(sub, assigned)]
        if not candidates:
            break
        # shortest first, so longer expressions reuse the names of their parts
        candidate = min(candidates, key=lambda sub: (len(sub), -counts[sub], sub))
        name = _var_name(candidate, next(numbers))
        value = candidate[1:-1] if candidate.startswith('(') else candidate
        lets.append(f"{pad}let {name} = {value};")
        children = [
            _replace(child, candidate, name) if isinstance(child, str) else child
            for child in children
        ]

    lines = lets
    for child in children:
        if isinstance(child, list):
            lines.extend(_process(child, numbers))
        else:
            lines.append(child)
    return lines


def post_process(code: str) -> str:
    """
    Hoists repeated sub-expressions of a generated block into `let`
    declarations at the top of the scope they repeat in.

    Only sub-expressions that call a function, other than the `sdf*` shape
    functions, are hoisted, and only when they read no variable assigned or
    declared anywhere in that scope.
    """
    return "\n".join(_process(bracketize(code.split("\n")), count(1)))
