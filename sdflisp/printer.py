from .dsl import Expression, format_number, is_identifier

SUGAR_PREFIXES = {
    'quote': "'",
    'quasi-quote': '`',
    'unquote': ',',
    'unquote-splicing': ',@',
    'placeholder': ':',
}


def _print_list(items: list, sugar: bool) -> str:
    if sugar and len(items) == 2 and is_identifier(items[0]) and items[0].value in SUGAR_PREFIXES:
        return SUGAR_PREFIXES[items[0].value] + print_expr(items[1], sugar)
    return "(" + " ".join(print_expr(el, sugar) for el in items) + ")"


def print_expr(expr: Expression, sugar: bool = True) -> str:
    """
    Renders an expression back to source form.

    With `sugar`, quote/quasi-quote/unquote/placeholder lists print using
    their reader-macro shorthand, so the output reads back to an equal tree.
    """
    t = expr.type
    if t == 'null':
        return "()"
    if t == 'list':
        return _print_list(expr.value, sugar)
    if t == 'identifier':
        return expr.value
    if t == 'number':
        return format_number(expr.value)
    if t == 'vector':
        return "#<" + " ".join(format_number(v) for v in expr.value) + ">"
    if t == 'shape':
        shape = expr.value
        args = " ".join(print_expr(el, sugar) for el in shape.args)
        return f"#shape<{shape.type}: {args}>"
    if t == 'lambda':
        return f"#lambda<{' '.join(expr.value.symbols)}>"
    if t == 'macro':
        return f"#macro<{expr.value.name}>"
    if t == 'internal':
        return f"#internal<{expr.value.name}>"
    if t == 'error':
        return f"#error<{expr.value}>"
    if t == 'generated':
        return f"#generated<{expr.value.type}: {expr.value.code}>"
    if t == 'placeholder':
        retained = expr.value
        if sugar and is_identifier(retained):
            return ":" + retained.value
        return f"(placeholder {print_expr(retained, sugar)})"
    raise ValueError(f"Cannot print expression of type '{t}'")
