# conf_lexer.py
# Tokenizer for the hexconf configuration language.
#
# =============================================================================
#  LEXICAL STRUCTURE
# =============================================================================
#
#   0x1F / 0X1f          NUMBER      text is the hex digits, prefix dropped
#   name_1               IDENTIFIER  [A-Za-z][A-Za-z0-9_]*
#   global               GLOBAL
#   true / false         STRING      booleans are decided by value in the parser
#   "anything"           STRING      verbatim, no escapes, may run to end of input
#   { } [ ] ( ) # = ?    one token per character
#   anything else        INVALID     one character, rejected later by the parser
#
# The tokenizer never raises. Malformed input surfaces as INVALID tokens and
# the grammar rule that tries to consume one reports it with a location.
# =============================================================================

import re
from typing import Iterator, NamedTuple

# ---------------------------------------------------------------------------
# TOKEN KINDS
# ---------------------------------------------------------------------------
NUMBER     = "NUMBER"
STRING     = "STRING"
IDENTIFIER = "IDENTIFIER"
LBRACE     = "LBRACE"
RBRACE     = "RBRACE"
LBRACKET   = "LBRACKET"
RBRACKET   = "RBRACKET"
LPAREN     = "LPAREN"
RPAREN     = "RPAREN"
HASH       = "HASH"
EQUALS     = "EQUALS"
QUESTION   = "QUESTION"
GLOBAL     = "GLOBAL"
END        = "END"
INVALID    = "INVALID"

_PUNCTUATION = {
    "{": LBRACE,
    "}": RBRACE,
    "[": LBRACKET,
    "]": RBRACKET,
    "(": LPAREN,
    ")": RPAREN,
    "#": HASH,
    "=": EQUALS,
    "?": QUESTION,
}

_KEYWORDS = {
    "global": GLOBAL,
    "true": STRING,
    "false": STRING,
}

# ---------------------------------------------------------------------------
# REGEX BLUEPRINT
# ---------------------------------------------------------------------------
# One alternation with named groups, matched anchored at the current offset.
# INVALID is last and matches any single character, so a match always exists.
_TOKEN_RE = re.compile(
    r"(?P<WHITESPACE>[ \t\n\r\f\v]+)|"
    r"(?P<NUMBER>0[xX][0-9a-fA-F]*)|"
    r"(?P<IDENTIFIER>[A-Za-z][A-Za-z0-9_]*)|"
    r'(?P<STRING>"[^"]*"?)|'
    r"(?P<PUNCT>[{}\[\]()#=?])|"
    r"(?P<INVALID>.)",
    re.DOTALL,
)

# ---------------------------------------------------------------------------
# TOKEN RECORD
# ---------------------------------------------------------------------------
class Token(NamedTuple):
    """Immutable token record: (kind, text, line, column), 1-based location."""
    kind: str
    text: str
    line: int
    column: int

# ---------------------------------------------------------------------------
# TOKENIZER
# ---------------------------------------------------------------------------
class Tokenizer:
    """
    Pull-style scanner producing one token per next_token() call.

    Once the input is exhausted every further call returns END at the final
    position, so the parser may peek at END as often as it likes.
    """
    def __init__(self, text: str):
        self._text = text
        self._pos = 0
        self._line = 1
        self._column = 1

    def _advance(self, consumed: str) -> None:
        newlines = consumed.count("\n")
        if newlines:
            self._line += newlines
            self._column = len(consumed) - consumed.rfind("\n")
        else:
            self._column += len(consumed)
        self._pos += len(consumed)

    def next_token(self) -> Token:
        while self._pos < len(self._text):
            m = _TOKEN_RE.match(self._text, self._pos)
            kind = m.lastgroup
            value = m.group()
            line, column = self._line, self._column
            self._advance(value)

            if kind == "WHITESPACE":
                continue
            if kind == "NUMBER":
                return Token(NUMBER, value[2:], line, column)
            if kind == "IDENTIFIER":
                return Token(_KEYWORDS.get(value, IDENTIFIER), value, line, column)
            if kind == "STRING":
                body = value[1:-1] if len(value) > 1 and value.endswith('"') else value[1:]
                return Token(STRING, body, line, column)
            if kind == "PUNCT":
                return Token(_PUNCTUATION[value], value, line, column)
            return Token(INVALID, value, line, column)

        return Token(END, "", self._line, self._column)


def lex(text: str) -> Iterator[Token]:
    """
    Lazily yield every token of text, ending with exactly one END token.
    """
    tokenizer = Tokenizer(text)
    while True:
        tok = tokenizer.next_token()
        yield tok
        if tok.kind == END:
            return
