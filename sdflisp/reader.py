import re
from .dsl import (
    Expression, DslParseError, make_identifier, make_number, make_list,
)

IDENTIFIER_RE = re.compile(r"^(\.\.\.)?[a-zA-Z0-9_+\-*/<>=!?.]+$")
NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")

# Characters that end an atom.
ATOM_END = set("();")

READER_MACROS = {
    "'": 'quote',
    '`': 'quasi-quote',
    ',': 'unquote',
    ',@': 'unquote-splicing',
    ':': 'placeholder',
}


class Token:
    def __init__(self, type: str, value, offset: int, length: int):
        self.type = type
        self.value = value
        self.offset = offset
        self.length = length

    def __repr__(self):
        return f"Token({self.type}, {self.value!r}, {self.offset})"


def _skip_block_comment(text: str, pos: int) -> int:
    """Returns the position after a (possibly nested) `#| ... |#` comment."""
    start = pos
    depth = 0
    while pos < len(text):
        if text.startswith('#|', pos):
            depth += 1
            pos += 2
        elif text.startswith('|#', pos):
            depth -= 1
            pos += 2
            if depth == 0:
                return pos
        else:
            pos += 1
    raise DslParseError("Unterminated block comment", start, 2)


def _atom_token(atom: str, offset: int) -> Token:
    if NUMBER_RE.match(atom):
        return Token('number', float(atom), offset, len(atom))
    if atom[0].isdigit():
        raise DslParseError(f"Invalid number '{atom}'", offset, len(atom))
    if IDENTIFIER_RE.match(atom):
        return Token('identifier', atom, offset, len(atom))
    raise DslParseError(f"Invalid identifier '{atom}'", offset, len(atom))


def tokenize(text: str) -> list:
    """Splits source text into punctuation, identifier and number tokens."""
    tokens = []
    pos = 0
    while pos < len(text):
        ch = text[pos]
        if ch.isspace():
            pos += 1
        elif ch == ';':
            end = text.find('\n', pos)
            pos = len(text) if end < 0 else end + 1
        elif ch in '()\'`:':
            tokens.append(Token('punctuation', ch, pos, 1))
            pos += 1
        elif ch == ',':
            if text.startswith(',@', pos):
                tokens.append(Token('punctuation', ',@', pos, 2))
                pos += 2
            else:
                tokens.append(Token('punctuation', ',', pos, 1))
                pos += 1
        elif ch == '#':
            if text.startswith('#|', pos):
                pos = _skip_block_comment(text, pos)
            elif text.startswith('#<', pos):
                end = text.find('>', pos)
                if end < 0:
                    raise DslParseError("Unterminated vector literal", pos, 2)
                try:
                    inner = tokenize(text[pos + 2:end])
                except DslParseError as e:
                    raise DslParseError(
                        f"Error parsing vector '{text[pos:end + 1]}': {e.message}",
                        pos, end + 1 - pos,
                    ) from e
                tokens.append(Token('punctuation', '(', pos, 2))
                tokens.append(Token('identifier', 'vec', pos, 2))
                for tok in inner:
                    tok.offset += pos + 2
                    tokens.append(tok)
                tokens.append(Token('punctuation', ')', end, 1))
                pos = end + 1
            else:
                raise DslParseError(f"Unexpected reader sequence '{text[pos:pos + 2]}'", pos, 2)
        else:
            start = pos
            while pos < len(text) and not text[pos].isspace() and text[pos] not in ATOM_END:
                pos += 1
            tokens.append(_atom_token(text[start:pos], start))
    return tokens


def _span(first: Token, last_end: int):
    return first.offset, last_end - first.offset


def _end_of(expr: Expression) -> int:
    return expr.offset + expr.length


def parse(tokens: list) -> list:
    """Builds expressions from a token stream, desugaring reader macros."""
    pos = 0

    def parse_one() -> Expression:
        nonlocal pos
        tok = tokens[pos]
        pos += 1
        if tok.type == 'number':
            return make_number(tok.value, tok.offset, tok.length)
        if tok.type == 'identifier':
            return make_identifier(tok.value, tok.offset, tok.length)
        if tok.value == '(':
            items = []
            while True:
                if pos >= len(tokens):
                    raise DslParseError("Unterminated list", tok.offset, tok.length)
                if tokens[pos].type == 'punctuation' and tokens[pos].value == ')':
                    close = tokens[pos]
                    pos += 1
                    offset, length = _span(tok, close.offset + close.length)
                    return make_list(items, offset, length)
                items.append(parse_one())
        if tok.value == ')':
            raise DslParseError("Unexpected ')'", tok.offset, tok.length)
        name = READER_MACROS[tok.value]
        if pos >= len(tokens) or (tokens[pos].type == 'punctuation' and tokens[pos].value == ')'):
            raise DslParseError(f"Expected an expression after '{tok.value}'", tok.offset, tok.length)
        inner = parse_one()
        offset, length = _span(tok, _end_of(inner))
        return make_list(
            [make_identifier(name, tok.offset, tok.length), inner], offset, length
        )

    result = []
    while pos < len(tokens):
        result.append(parse_one())
    return result


def read(text: str) -> list:
    """Reads every top-level expression in `text`."""
    return parse(tokenize(text))


def read_one(text: str) -> Expression:
    parsed = read(text)
    if len(parsed) != 1:
        raise DslParseError(f"Expected exactly one expression, found {len(parsed)}", 0, len(text))
    return parsed[0]
