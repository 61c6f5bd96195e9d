"""
SQL text helpers: placeholder tokenizer, parameter table and quoting.

The tokenizer recognizes the placeholder forms SQLite accepts (`?`, `?NNN`,
`:name`, `@name`, `$name`) and skips string literals, quoted identifiers and
comments so that placeholder-like text inside them is left alone.
"""
import logging
import re
import sqlite3
from dataclasses import dataclass
from enum import Enum, auto

logger = logging.getLogger(__name__)

__all__ = [
    'BIND_PREFIXES',
    'ParsedQuery',
    'Token',
    'TokenType',
    'parse_parameters',
    'leading_keyword',
    'split_statements',
    'tokenize',
    'zero_row_query',
]

BIND_PREFIXES = (':', '$', '@')

MAX_VARIABLE_NUMBER = 32766


class TokenType(Enum):
    """Token types identified during SQL parsing."""
    SQL_TEXT = auto()
    STRING_LITERAL = auto()
    IDENTIFIER = auto()         # "x", [x], `x`
    COMMENT = auto()
    POSITIONAL_PH = auto()      # ?
    NUMBERED_PH = auto()        # ?NNN
    NAMED_PH = auto()           # :name, @name, $name


@dataclass(slots=True)
class Token:
    """Token from SQL parsing."""
    type: TokenType
    text: str
    start: int
    end: int


@dataclass(slots=True)
class ParsedQuery:
    """Query rewritten to numbered placeholders.

    `names[i - 1]` is the raw name (with prefix) of slot `i`, or None for a
    slot that is anonymous or never referenced.
    """
    sql: str
    names: list[str | None]

    @property
    def parameter_count(self) -> int:
        return len(self.names)


_TOKENIZE = re.compile(r"""
    (?P<string>'(?:[^']|'')*')
    |(?P<identifier>"(?:[^"]|"")*"|\[[^\]]*\]|`(?:[^`]|``)*`)
    |(?P<comment>--[^\n]*|/\*.*?(?:\*/|\Z))
    |(?P<numbered>\?(?P<number>\d+))
    |(?P<qmark>\?)
    |(?P<named>(?<![\w$])[:@$](?P<pname>[\w$]+))
""", re.VERBOSE | re.DOTALL)

_KEYWORD = re.compile(r'[\s(]*([A-Za-z]+)')
_WORD = re.compile(r'[A-Za-z_]\w*|[()]')

_DML_VERBS = frozenset({'INSERT', 'UPDATE', 'DELETE', 'REPLACE'})
_VERBS = _DML_VERBS | {'SELECT', 'VALUES'}


def tokenize(sql: str) -> list[Token]:
    """Tokenize SQL in a single pass.

    Text between recognized tokens is emitted as SQL_TEXT so that joining
    the token texts reproduces the input exactly.
    """
    tokens: list[Token] = []
    last_end = 0

    for match in _TOKENIZE.finditer(sql):
        start, end = match.span()

        if start > last_end:
            tokens.append(Token(
                type=TokenType.SQL_TEXT,
                text=sql[last_end:start],
                start=last_end,
                end=start
            ))

        if match.group('string') is not None:
            ttype = TokenType.STRING_LITERAL
        elif match.group('identifier') is not None:
            ttype = TokenType.IDENTIFIER
        elif match.group('comment') is not None:
            ttype = TokenType.COMMENT
        elif match.group('numbered') is not None:
            ttype = TokenType.NUMBERED_PH
        elif match.group('qmark') is not None:
            ttype = TokenType.POSITIONAL_PH
        elif match.group('named') is not None:
            ttype = TokenType.NAMED_PH
        else:
            continue

        tokens.append(Token(type=ttype, text=match.group(0), start=start, end=end))
        last_end = end

    if last_end < len(sql):
        tokens.append(Token(
            type=TokenType.SQL_TEXT,
            text=sql[last_end:],
            start=last_end,
            end=len(sql)
        ))

    return tokens


def parse_parameters(sql: str) -> ParsedQuery:
    """Assign slot indices to every placeholder and rewrite them as `?NNN`.

    Index assignment follows SQLite:
    - `?NNN` takes index NNN
    - `?` takes one more than the largest index assigned so far
    - a named parameter reuses the index of an earlier identical name,
      otherwise it takes one more than the largest index so far

    >>> parsed = parse_parameters('select :a, ?, :a, ?5')
    >>> parsed.sql
    'select ?1, ?2, ?1, ?5'
    >>> parsed.names
    [':a', None, None, None, None]
    """
    names: dict[int, str] = {}
    by_name: dict[str, int] = {}
    highest = 0
    parts: list[str] = []

    for token in tokenize(sql):
        if token.type == TokenType.NUMBERED_PH:
            index = int(token.text[1:])
            if not 1 <= index <= MAX_VARIABLE_NUMBER:
                # left for the engine to reject with its own message
                parts.append(token.text)
                continue
        elif token.type == TokenType.POSITIONAL_PH:
            index = highest + 1
        elif token.type == TokenType.NAMED_PH:
            index = by_name.get(token.text)
            if index is None:
                index = highest + 1
                by_name[token.text] = index
                names[index] = token.text
        else:
            parts.append(token.text)
            continue

        highest = max(highest, index)
        parts.append(f'?{index}')

    rewritten = ''.join(parts)
    if highest:
        logger.debug(f'Rewrote {highest} parameter slot(s): {rewritten}')
    return ParsedQuery(rewritten, [names.get(i) for i in range(1, highest + 1)])


def split_statements(script: str) -> list[str]:
    """Split a script into complete statements.

    Splits at top-level semicolons and relies on `sqlite3.complete_statement`
    so that trigger bodies (`BEGIN ... END;`) stay whole. Empty statements and
    comment-only trailers are dropped.
    """
    statements: list[str] = []
    buffer: list[str] = []

    for token in tokenize(script):
        if token.type != TokenType.SQL_TEXT or ';' not in token.text:
            buffer.append(token.text)
            continue
        pieces = token.text.split(';')
        for piece in pieces[:-1]:
            buffer.append(piece + ';')
            candidate = ''.join(buffer)
            if sqlite3.complete_statement(candidate):
                if _has_content(candidate):
                    statements.append(candidate.strip())
                buffer = []
        buffer.append(pieces[-1])

    remainder = ''.join(buffer)
    if _has_content(remainder):
        statements.append(remainder.strip())
    return statements


def _has_content(sql: str) -> bool:
    """True when `sql` holds something besides whitespace, comments and `;`."""
    for token in tokenize(sql):
        if token.type == TokenType.COMMENT:
            continue
        if token.type == TokenType.SQL_TEXT and not token.text.replace(';', '').strip():
            continue
        return True
    return False


def leading_keyword(sql: str) -> str:
    """First keyword of a statement, upper-cased, skipping comments.

    >>> leading_keyword('-- note\\n  select 1')
    'SELECT'
    """
    for token in tokenize(sql):
        if token.type == TokenType.COMMENT:
            continue
        if token.type == TokenType.SQL_TEXT:
            match = _KEYWORD.match(token.text)
            if match:
                return match.group(1).upper()
            if token.text.strip(' \t\r\n('):
                return ''
            continue
        return ''
    return ''


def zero_row_query(sql: str) -> str | None:
    """Rewrite a query so that it compiles but produces no rows.

    Appends `LIMIT 0` to a SELECT, VALUES or WITH ... SELECT statement. SQLite
    jumps past the whole program on a constant zero limit, so the result
    columns are known without evaluating anything. Returns None when the
    statement is not a plain query or already carries a top-level LIMIT.

    >>> zero_row_query('SELECT a FROM t ORDER BY a; -- done')
    'SELECT a FROM t ORDER BY a\\nLIMIT 0'
    >>> zero_row_query('SELECT a FROM t LIMIT 5') is None
    True
    >>> zero_row_query('WITH c AS (SELECT 1) DELETE FROM t') is None
    True
    """
    if leading_keyword(sql) not in {'SELECT', 'VALUES', 'WITH'}:
        return None

    tokens = tokenize(sql)
    depth = 0
    verb = None
    for token in tokens:
        if token.type != TokenType.SQL_TEXT:
            continue
        for word in _WORD.findall(token.text):
            if word == '(':
                depth += 1
            elif word == ')':
                depth -= 1
            elif depth == 0:
                upper = word.upper()
                if upper == 'LIMIT':
                    return None
                if verb is None and upper in _VERBS:
                    verb = upper
    if verb in _DML_VERBS:
        return None

    while tokens:
        last = tokens[-1]
        if last.type == TokenType.COMMENT:
            tokens.pop()
            continue
        if last.type == TokenType.SQL_TEXT:
            text = last.text.rstrip(' \t\r\n;')
            if not text:
                tokens.pop()
                continue
            tokens[-1] = Token(last.type, text, last.start, last.start + len(text))
        break

    return ''.join(token.text for token in tokens) + '\nLIMIT 0'
