"""
Named placeholder parsing with a single-pass tokenizer.

SQL text is scanned once and split into tokens:

    SQL → Tokenize → Sql(tokens, param_names) → render(marker) → driver SQL
           (once)       (immutable, shared)      (per execution)

Two placeholder syntaxes are recognized, `:name` and `{name}`. Quoted
literals, quoted identifiers and comments are copied through untouched, and
the PostgreSQL cast operator `::` is never mistaken for a placeholder.
"""
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum, auto

__all__ = [
    'Sql',
    'Token',
    'TokenType',
    'tokenize_sql',
]


class TokenType(Enum):
    """Token types identified during SQL parsing."""
    SQL_TEXT = auto()
    STRING_LITERAL = auto()     # '...', "..." or $tag$...$tag$
    COMMENT = auto()            # -- ... or /* ... */
    CAST = auto()               # ::
    NAMED_PH = auto()           # :name or {name}


@dataclass(frozen=True, slots=True)
class Token:
    """Token from SQL parsing."""
    type: TokenType
    text: str
    name: str | None = None


# Master tokenization pattern - captures all token types in one scan
_TOKENIZE = re.compile(r"""
    (?P<string>'(?:[^']|'')*'|"(?:[^"]|"")*"|\$(?P<tag>(?:[A-Za-z_]\w*)?)\$.*?\$(?P=tag)\$)
    |(?P<comment>--[^\n]*|/\*.*?\*/)
    |(?P<cast>::)
    |:(?P<colon_name>[A-Za-z_]\w*)
    |\{(?P<brace_name>[A-Za-z_]\w*)\}
""", re.VERBOSE | re.DOTALL)


def tokenize_sql(sql: str) -> list[Token]:
    """Parse SQL into tokens in a single pass.

    >>> [t.type.name for t in tokenize_sql("SELECT ':x' FROM t WHERE id = :id")]
    ['SQL_TEXT', 'STRING_LITERAL', 'SQL_TEXT', 'NAMED_PH']
    >>> [t.name for t in tokenize_sql('VALUES({a}, :b)') if t.name]
    ['a', 'b']
    """
    tokens = []
    last_end = 0

    for match in _TOKENIZE.finditer(sql):
        start, end = match.span()

        if start > last_end:
            tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:start]))

        if match.group('string'):
            tokens.append(Token(TokenType.STRING_LITERAL, match.group(0)))
        elif match.group('comment'):
            tokens.append(Token(TokenType.COMMENT, match.group(0)))
        elif match.group('cast'):
            tokens.append(Token(TokenType.CAST, match.group(0)))
        else:
            name = match.group('colon_name') or match.group('brace_name')
            tokens.append(Token(TokenType.NAMED_PH, match.group(0), name))
        last_end = end

    if last_end < len(sql):
        tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:]))

    return tokens


@dataclass(frozen=True)
class Sql:
    """Parsed SQL template.

    `param_names` holds one entry per placeholder occurrence, in the order
    they appear in the text; a name used twice appears twice.

    >>> sql = Sql.of('UPDATE t SET a = :a, b = {b} WHERE a <> :a')
    >>> sql.param_names
    ('a', 'b', 'a')
    >>> sql.names
    ('a', 'b')
    >>> sql.render()
    'UPDATE t SET a = ?, b = ? WHERE a <> ?'
    """
    text: str
    tokens: tuple[Token, ...] = field(repr=False)
    param_names: tuple[str, ...] = field(repr=False)

    @classmethod
    def of(cls, text: str) -> 'Sql':
        if not isinstance(text, str):
            raise TypeError(f'SQL text must be a string, got {type(text).__name__}')
        tokens = tuple(tokenize_sql(text))
        names = tuple(t.name for t in tokens if t.type == TokenType.NAMED_PH)
        return cls(text, tokens, names)

    @property
    def names(self) -> tuple[str, ...]:
        """Distinct placeholder names in first-occurrence order."""
        return tuple(dict.fromkeys(self.param_names))

    def render(self, marker: str = '?', escape_percent: bool = False,
               expansions: Mapping[str, int] | None = None) -> str:
        """Replace every placeholder with the driver's positional marker.

        Parameters
            marker: Positional marker of the target driver ('?' or '%s')
            escape_percent: Double literal '%' signs (format paramstyle)
            expansions: Name -> marker count for multi-value parameters

        >>> Sql.of("SELECT * FROM t WHERE id IN (:ids) AND s LIKE 'a%'").render(
        ...     '%s', escape_percent=True, expansions={'ids': 3})
        "SELECT * FROM t WHERE id IN (%s, %s, %s) AND s LIKE 'a%%'"
        """
        expansions = expansions or {}
        parts = []
        for token in self.tokens:
            if token.type == TokenType.NAMED_PH:
                count = expansions.get(token.name, 1)
                parts.append(', '.join([marker] * count))
            elif escape_percent:
                parts.append(token.text.replace('%', '%%'))
            else:
                parts.append(token.text)
        return ''.join(parts)

    def __str__(self) -> str:
        return self.render()
