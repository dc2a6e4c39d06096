from .dsl import (
    Expression, DslEvalError, EMPTY_LIST,
    make_error, make_identifier, make_id_list, make_list, make_placeholder,
    is_deferred, is_error, is_id_list, is_identifier, is_placeholder,
    is_placeholder_var, is_special,
)
from .env import Env
from .printer import print_expr

# Builtin failures that are reported as error values.
EVAL_FAILURES = (DslEvalError, ArithmeticError, ValueError, TypeError)


def flatten_placeholder(expr: Expression) -> Expression:
    """Unwraps a placeholder around a compound expression so it can be nested in another."""
    if is_placeholder(expr) and not is_placeholder_var(expr):
        return expr.value
    return expr


def get_unresolved(expr: Expression) -> dict:
    """Collects the identifiers still referenced by a retained expression."""
    symbols = {}

    def visit(el):
        if el.type == 'list':
            for item in el.value:
                visit(item)
        elif el.type == 'identifier':
            symbols.setdefault(el.value, el)

    visit(expr)
    return symbols


def evaluate(expr: Expression, env: Env) -> Expression:
    """
    Reduces an expression as far as the environment allows.

    Never raises for problems in the program itself: those are returned as
    `error` expressions embedded in the result. Anything depending on a
    placeholder comes back as a placeholder wrapping the residual expression.
    """
    if expr.type == 'list':
        return _evaluate_list(expr, env)
    if expr.type == 'identifier':
        value = env.get(expr.value)
        if value is None:
            return make_error(f"Unknown identifier '{expr.value}'", expr.offset, expr.length)
        return value
    return expr


def _evaluate_list(expr: Expression, env: Env) -> Expression:
    items = expr.value
    head = items[0]
    if is_identifier(head) and is_special(head.value):
        from .special_forms import evaluate_special
        return evaluate_special(expr, env)

    fn = evaluate(head, env)
    if fn.type == 'lambda':
        args = [evaluate(el, env) for el in items[1:]]
        return apply_lambda(fn, args, expr)
    if fn.type == 'macro':
        expansion = expand_macro(fn, items[1:], expr)
        return evaluate(expansion, env)
    if fn.type == 'internal':
        return _apply_internal(fn.value, items[1:], expr, env)
    if is_error(fn):
        return fn
    if is_deferred(fn):
        args = [flatten_placeholder(evaluate(el, env)) for el in items[1:]]
        return make_placeholder(make_list([flatten_placeholder(fn)] + args), expr.offset, expr.length)
    return make_error(f"{print_expr(fn)} is not callable", head.offset, head.length)


def _apply_internal(internal, arg_exprs, expr, env):
    args = [evaluate(el, env) for el in arg_exprs]
    for arg in args:
        if is_error(arg):
            return arg
    if any(is_deferred(arg) for arg in args):
        return make_placeholder(
            make_id_list(internal.name, [flatten_placeholder(arg) for arg in args]),
            expr.offset, expr.length,
        )
    try:
        return internal.impl(args)
    except DslEvalError as e:
        if e.offset is not None:
            return make_error(e.message, e.offset, e.length)
        return make_error(e.message, expr.offset, expr.length)
    except EVAL_FAILURES as e:
        return make_error(f"{internal.name}: {e}", expr.offset, expr.length)


def apply_lambda(fn: Expression, args: list, expr: Expression) -> Expression:
    """Calls a lambda with evaluated arguments, recapturing parameters a deferred result still needs."""
    lam = fn.value
    if len(args) != len(lam.symbols):
        return make_error(
            f"lambda expected {len(lam.symbols)} args, got {len(args)}",
            expr.offset, expr.length,
        )
    frame = Env(lam.closure)
    for symbol, arg in zip(lam.symbols, args):
        frame.define(symbol, arg)
    result = evaluate(lam.body, frame)
    if not is_placeholder(result) or not lam.symbols:
        return result

    retained = result.value
    unresolved = get_unresolved(retained)
    if is_id_list(retained, 'let'):
        # names bound by the retained let are not free in it
        for binding in retained.value[1].value:
            unresolved.pop(binding.value[0].value, None)
    recapture = [s for s in lam.symbols if s in unresolved]
    if not recapture:
        return result

    bindings = [
        make_list([
            make_identifier(s, unresolved[s].offset, unresolved[s].length),
            frame.get(s),
        ])
        for s in recapture
    ]
    return make_placeholder(
        make_id_list('let', [make_list(bindings), retained]),
        result.offset, result.length,
    )


def expand_macro(fn: Expression, arg_exprs: list, expr: Expression) -> Expression:
    """Binds unevaluated arguments to the macro parameters and evaluates the body to an expansion."""
    macro = fn.value
    args = list(arg_exprs)
    symbols = macro.symbols
    if symbols and symbols[-1].startswith('...'):
        required = len(symbols) - 1
        if len(args) < required:
            return make_error(
                f"{macro.name} expected at least {required} args, got {len(args)}",
                expr.offset, expr.length,
            )
        tail = args[required:]
        args = args[:required] + [make_list(tail) if tail else EMPTY_LIST]
    elif len(args) != len(symbols):
        return make_error(
            f"{macro.name} expected {len(symbols)} args, got {len(args)}",
            expr.offset, expr.length,
        )
    frame = Env(macro.closure)
    for symbol, arg in zip(symbols, args):
        frame.define(symbol[3:] if symbol.startswith('...') else symbol, arg)
    return evaluate(macro.body, frame)
