from .dsl import (
    Expression, Lambda, EMPTY_LIST,
    make_error, make_id_list, make_identifier, make_list, make_placeholder,
    make_shape, is_deferred, is_error, is_id_list, is_identifier, is_list, is_truthy,
    is_value, is_vector,
)
from .env import Env
from .evaluate import evaluate, flatten_placeholder
from .printer import print_expr
from .utils import _mix, _smoothstep, as_vector, from_native


def _error(message: str, expr: Expression) -> Expression:
    return make_error(message, expr.offset, expr.length)


def evaluate_if(expr, env):
    items = expr.value
    if len(items) not in (3, 4):
        return _error("if should have two or three arguments", expr)
    test = evaluate(items[1], env)
    if is_error(test):
        return test
    if is_deferred(test):
        return make_placeholder(make_list([items[0], test] + items[2:]), expr.offset, expr.length)
    if is_truthy(test):
        return evaluate(items[2], env)
    if len(items) == 4:
        return evaluate(items[3], env)
    return EMPTY_LIST


def evaluate_define(expr, env):
    items = expr.value
    proc = items[0].value
    if len(items) not in (3, 4):
        return _error(f"{proc} must have two or three arguments, not {len(items) - 1}", expr)
    if not is_identifier(items[1]):
        return _error(f"first argument for {proc} must be an identifier", expr)
    if len(items) == 4:
        # (define name (args...) body) is (define name (lambda (args...) body))
        value = evaluate(make_id_list('lambda', items[2:], expr.offset, expr.length), env)
    else:
        value = evaluate(items[2], env)
    if proc == 'set!':
        failure = env.set(items[1].value, value)
    else:
        failure = env.define(items[1].value, value)
    if failure is not None:
        return _error(failure.value, expr)
    return EMPTY_LIST


def evaluate_lambda(expr, env):
    items = expr.value
    if len(items) < 3:
        return _error(f"lambda must have at least two arguments, not {len(items) - 1}", expr)
    if not is_list(items[1]):
        return _error("First argument to lambda must be a list", expr)
    symbols = items[1].value
    if not all(is_identifier(el) for el in symbols):
        return _error("First argument to lambda must be a list of symbols", expr)
    if len(items) == 3:
        body = items[2]
    else:
        body = make_id_list('begin', items[2:])
    return Expression(
        'lambda', Lambda([el.value for el in symbols], body, env), expr.offset, expr.length
    )


def evaluate_let(expr, env):
    items = expr.value
    if len(items) < 3:
        return _error(f"let must have at least 2 arguments, not {len(items) - 1}", expr)
    if not is_list(items[1]):
        return _error("First argument to let must be a list", items[1])
    symbols, values = [], []
    for binding in items[1].value:
        if binding.type != 'list' or len(binding.value) != 2:
            return _error("let init list elements must be a list of 2", binding)
        symbols.append(binding.value[0])
        values.append(binding.value[1])
    let_lambda = make_id_list('lambda', [make_list(symbols)] + items[2:], expr.offset, expr.length)
    return evaluate(make_list([let_lambda] + values, expr.offset, expr.length), env)


def evaluate_begin(expr, env):
    result = EMPTY_LIST
    for el in expr.value[1:]:
        result = evaluate(el, env)
    return result


def evaluate_quote(expr, env):
    items = expr.value
    if len(items) != 2:
        return _error(f"quote must have 1 argument, not {len(items) - 1}", expr)
    return items[1]


def _unquote(el, env, splicing):
    op = 'unquote-splicing' if splicing else 'unquote'
    if len(el.value) != 2:
        return _error(f"{op} must have 1 argument, not {len(el.value) - 1}", el)
    result = evaluate(el.value[1], env)
    if not splicing or is_error(result):
        return result
    if not is_list(result):
        return _error(f"unquote-splicing can only splice a list, found {print_expr(result)}", el)
    return list(result.value)


def _quasi_quote(el, env):
    """Rebuilds a quasi-quoted template. Returns an expression, or a list of them when splicing."""
    if el.type != 'list':
        return el
    head = el.value[0]
    if is_identifier(head) and head.value == 'unquote':
        return _unquote(el, env, False)
    if is_identifier(head) and head.value == 'unquote-splicing':
        return _unquote(el, env, True)
    items = []
    for item in el.value:
        rebuilt = _quasi_quote(item, env)
        if isinstance(rebuilt, list):
            items.extend(rebuilt)
        elif is_error(rebuilt) and is_id_list(item, 'unquote-splicing'):
            return rebuilt
        else:
            items.append(rebuilt)
    return make_list(items)


def evaluate_quasi_quote(expr, env):
    items = expr.value
    if len(items) != 2:
        return _error(f"quasi-quote must have 1 argument, not {len(items) - 1}", expr)
    result = _quasi_quote(items[1], env)
    if isinstance(result, list):
        return _error("unquote-splicing is not valid outside of a list", expr)
    return result


def evaluate_shape(expr, env):
    items = expr.value
    if len(items) < 2 or not is_identifier(items[1]):
        return _error("shape must have an identifier as the first argument", expr)
    args = [evaluate(el, env) for el in items[2:]]
    for arg in args:
        if is_error(arg):
            return arg
    if any(is_deferred(arg) for arg in args):
        return make_placeholder(
            make_id_list('shape', [items[1]] + [flatten_placeholder(arg) for arg in args]),
            expr.offset, expr.length,
        )
    return make_shape(items[1].value, args, expr.offset, expr.length)


def evaluate_placeholder(expr, env):
    items = expr.value
    if len(items) != 2:
        return _error("placeholder must have a single argument", expr)
    arg = items[1]
    if is_identifier(arg):
        return make_placeholder(arg, expr.offset, expr.length)
    if arg.type == 'list' and len(arg.value) == 2 and is_identifier(arg.value[0]) \
            and arg.value[0].value == 'vec' and is_identifier(arg.value[1]):
        name = arg.value[1].value
        components = [
            make_placeholder(make_identifier(f"{name}.{axis}", arg.offset, arg.length))
            for axis in 'xyz'
        ]
        return make_placeholder(make_id_list('vec', components), expr.offset, expr.length)
    return _error(f"{print_expr(arg)} is not a valid placeholder arg", arg)


# --- smoothcase ---

def _check_smoothcase_structure(cases):
    for case in cases:
        if case.type != 'list':
            return _error("smoothcase case argument must be a list", case)
        if len(case.value) != 2:
            return _error(f"smoothcase case argument must be a list of length 2, not {len(case.value)}", case)
        head = case.value[0]
        if head.type != 'list' or len(head.value) not in (1, 2):
            return _error("smoothcase case argument head must be a list of length 1 or 2", head)
    return None


def smoothcase_number(value: float, cases: list, exprs: list) -> Expression:
    """
    Solves a scalar smoothcase. `cases` holds (low, high, body) triples.

    Inside a case range the body is returned; in the gap between two ranges
    the neighbouring bodies are blended with a Hermite smoothstep; outside
    all ranges the nearest body wins.
    """
    prev_high = prev_body = None
    for (low, high, body), case_expr in zip(cases, exprs):
        if low > value:
            if prev_body is None:
                return from_native(body, case_expr.offset, case_expr.length)
            blended = _mix(prev_body, body, _smoothstep(prev_high, low, value))
            return from_native(blended, case_expr.offset, case_expr.length)
        if value <= high:
            return from_native(body, case_expr.offset, case_expr.length)
        prev_high, prev_body = high, body
    last = exprs[-1]
    return from_native(prev_body, last.offset, last.length)


def _check_case_order(cases, exprs):
    prev = None
    for (low, high, _), case_expr in zip(cases, exprs):
        if low > high:
            return _error("smoothcase case argument head values must be ordered low to high", case_expr)
        if prev is not None and (low, high) < prev:
            return _error("smoothcase cases must be ordered from low to high", case_expr)
        prev = (low, high)
    return None


def evaluate_smoothcase(expr, env):
    items = expr.value
    if len(items) < 3:
        return _error("smoothcase must have at least 2 arguments", expr)
    case_exprs = items[2:]
    failure = _check_smoothcase_structure(case_exprs)
    if failure is not None:
        return failure

    value = evaluate(items[1], env)
    heads, bodies = [], []
    for case in case_exprs:
        heads.append([evaluate(el, env) for el in case.value[0].value])
        bodies.append(evaluate(case.value[1], env))

    parts = [value] + [el for head in heads for el in head] + bodies
    if any(is_deferred(el) for el in parts):
        cases = [
            make_list([
                make_list([flatten_placeholder(el) for el in head]),
                flatten_placeholder(body),
            ])
            for head, body in zip(heads, bodies)
        ]
        return make_placeholder(make_list([items[0], value] + cases), expr.offset, expr.length)

    for el in parts:
        if is_error(el):
            return el
    if not is_value(value):
        return _error("smoothcase first argument must evaluate to a value type", items[1])
    for head, body, case in zip(heads, bodies, case_exprs):
        if not all(is_value(el) for el in head) or not is_value(body):
            return _error("smoothcase cases must be value items", case)

    if any(is_vector(el) for el in parts):
        triples = []
        for head, body in zip(heads, bodies):
            low = as_vector(head[0].value)
            high = as_vector(head[-1].value)
            triples.append((low, high, as_vector(body.value)))
        target = as_vector(value.value)
        components = []
        for axis in range(3):
            axis_cases = [(low[axis], high[axis], body[axis]) for low, high, body in triples]
            failure = _check_case_order(axis_cases, case_exprs)
            if failure is not None:
                return failure
            components.append(smoothcase_number(target[axis], axis_cases, case_exprs).value)
        return from_native(components, expr.offset, expr.length)

    cases = [(head[0].value, head[-1].value, body.value) for head, body in zip(heads, bodies)]
    failure = _check_case_order(cases, case_exprs)
    if failure is not None:
        return failure
    return smoothcase_number(value.value, cases, case_exprs)


SPECIAL_EVALUATORS = {
    'if': evaluate_if,
    'define': evaluate_define,
    'set!': evaluate_define,
    'lambda': evaluate_lambda,
    'let': evaluate_let,
    'begin': evaluate_begin,
    'quote': evaluate_quote,
    'quasi-quote': evaluate_quasi_quote,
    'shape': evaluate_shape,
    'placeholder': evaluate_placeholder,
    'smoothcase': evaluate_smoothcase,
}


def evaluate_special(expr: Expression, env: Env) -> Expression:
    proc = expr.value[0].value
    evaluator = SPECIAL_EVALUATORS.get(proc)
    if evaluator is None:
        return _error(f"Unexpected special form: {proc}", expr)
    return evaluator(expr, env)
