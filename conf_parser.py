# conf_parser.py
# Recursive-descent parser and command-line front end for hexconf.
#
# =============================================================================
#  GRAMMAR
# =============================================================================
#
#   program    := (globalDecl | assignment | bareBlock)* END
#   globalDecl := GLOBAL IDENT EQUALS value
#   assignment := IDENT EQUALS value
#   bareBlock  := object
#   value      := NUMBER | STRING | array | constRef | object
#   array      := HASH LPAREN value* RPAREN
#   constRef   := QUESTION LBRACKET IDENT RBRACKET
#   object     := LBRACE (IDENT EQUALS value)* RBRACE
#
# LL(1): every decision is made on the single lookahead token. The first
# mismatch raises and nothing is recovered.
#
# Constants live in a per-parse table. A reference resolves to the node that
# is in the table at the moment the reference is read, so constants must be
# declared before use. Resolved nodes are shared between every reference
# site; nodes are frozen, so sharing needs no copy.
# =============================================================================

import argparse
import contextlib
import logging
import os
import stat
import sys
import tempfile
from typing import Dict, Iterator, List, Tuple

from conf_errors import (
    ConfigError,
    InvalidNumberError,
    NestingTooDeepError,
    NumericOverflowError,
    UnexpectedTokenError,
    UnknownConstantError,
)
from conf_lexer import (
    END,
    EQUALS,
    GLOBAL,
    HASH,
    IDENTIFIER,
    LBRACE,
    LBRACKET,
    LPAREN,
    NUMBER,
    QUESTION,
    RBRACE,
    RBRACKET,
    RPAREN,
    STRING,
    Token,
    lex,
)
from conf_nodes import (
    BooleanNode,
    MappingNode,
    Node,
    NumberNode,
    SequenceNode,
    TextNode,
    to_json,
)

log = logging.getLogger("hexconf.parser")

# ---------------------------------------------------------------------------
# CONSTANTS AND TUNABLES
# ---------------------------------------------------------------------------
DEPTH_LIMIT_DEFAULT = 128         # nested arrays/objects allowed below one entry
UNNAMED_KEY         = "unnamed"   # root key for top-level bare blocks
INT64_MAX           = 2**63 - 1


def max_depth_ceiling() -> int:
    """
    Largest nesting limit the interpreter stack can honor. Each level costs
    two parser frames and one serializer frame.
    """
    return max(0, (sys.getrecursionlimit() - 200) // 3)

# ---------------------------------------------------------------------------
# LOOKAHEAD RING
# ---------------------------------------------------------------------------
class LookAhead:
    """
    One-slot pushback iterator over the token stream.

    lex() ends with a single END token and no grammar rule consumes END, so
    the parser never calls next() on the exhausted generator.
    """
    def __init__(self, iterable: Iterator[Token]):
        self._iter = iter(iterable)
        self._buf: List[Token] = []

    def __iter__(self):
        return self

    def __next__(self) -> Token:
        if self._buf:
            return self._buf.pop()
        return next(self._iter)

    def peek(self) -> Token:
        if not self._buf:
            self._buf.append(next(self._iter))
        return self._buf[-1]

# ---------------------------------------------------------------------------
# CONSTANT TABLE
# ---------------------------------------------------------------------------
class ConstantTable:
    """
    Names declared with `global`, mapped to their already-built nodes.

    Entries are only ever added. Declaring the same name again replaces the
    entry for references read afterwards; nodes resolved earlier keep the
    instance they were given.
    """
    def __init__(self):
        self._nodes: Dict[str, Node] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def publish(self, name: str, node: Node) -> None:
        self._nodes[name] = node

    def resolve(self, ref: Token) -> Node:
        try:
            return self._nodes[ref.text]
        except KeyError:
            raise UnknownConstantError(ref.text, ref.line, ref.column) from None

# ---------------------------------------------------------------------------
# PARSER UTILITY
# ---------------------------------------------------------------------------
def _expect(tokens: LookAhead, expected_kind: str) -> Token:
    """
    Consume the lookahead token if it has the expected kind, else raise with
    both kinds and the location of the offending token.
    """
    tok = tokens.peek()
    if tok.kind != expected_kind:
        raise UnexpectedTokenError(expected_kind, tok.kind, tok.text, tok.line, tok.column)
    return next(tokens)


def _decode_number(tok: Token) -> int:
    if not tok.text:
        raise InvalidNumberError(tok.line, tok.column)
    value = int(tok.text, 16)
    if value > INT64_MAX:
        raise NumericOverflowError(tok.text, tok.line, tok.column)
    return value


def _check_depth(tok: Token, depth: int, max_depth: int) -> None:
    if depth > max_depth:
        raise NestingTooDeepError(max_depth, tok.line, tok.column)

# ---------------------------------------------------------------------------
# CORE VALUE PARSER
# ---------------------------------------------------------------------------
def _parse_value(tokens: LookAhead, constants: ConstantTable, depth: int, max_depth: int) -> Node:
    """
    Dispatch on the lookahead kind. STRING tokens spelling exactly true or
    false become booleans whether they were quoted or bare.
    """
    tok = tokens.peek()
    kind = tok.kind

    if kind == NUMBER:
        next(tokens)
        return NumberNode(_decode_number(tok))
    if kind == STRING:
        next(tokens)
        if tok.text in ("true", "false"):
            return BooleanNode(tok.text == "true")
        return TextNode(tok.text)
    if kind == HASH:
        return _parse_array(tokens, constants, depth + 1, max_depth)
    if kind == QUESTION:
        return _parse_const_ref(tokens, constants)
    if kind == LBRACE:
        return _parse_object(tokens, constants, depth + 1, max_depth)

    raise UnexpectedTokenError("value", kind, tok.text, tok.line, tok.column)

# ---------------------------------------------------------------------------
# ARRAY PARSER
# ---------------------------------------------------------------------------
def _parse_array(tokens: LookAhead, constants: ConstantTable, depth: int, max_depth: int) -> SequenceNode:
    opening = _expect(tokens, HASH)
    _check_depth(opening, depth, max_depth)
    _expect(tokens, LPAREN)

    items: List[Node] = []
    while tokens.peek().kind not in (RPAREN, END):
        items.append(_parse_value(tokens, constants, depth, max_depth))
    _expect(tokens, RPAREN)
    return SequenceNode(items)

# ---------------------------------------------------------------------------
# OBJECT PARSER
# ---------------------------------------------------------------------------
def _parse_object(tokens: LookAhead, constants: ConstantTable, depth: int, max_depth: int) -> MappingNode:
    """
    Parse `{ key = value ... }`. A repeated key replaces the earlier value.
    """
    opening = _expect(tokens, LBRACE)
    _check_depth(opening, depth, max_depth)

    entries: Dict[str, Node] = {}
    while tokens.peek().kind not in (RBRACE, END):
        key = _expect(tokens, IDENTIFIER).text
        _expect(tokens, EQUALS)
        entries[key] = _parse_value(tokens, constants, depth, max_depth)
    _expect(tokens, RBRACE)
    return MappingNode(entries)


def _parse_const_ref(tokens: LookAhead, constants: ConstantTable) -> Node:
    _expect(tokens, QUESTION)
    _expect(tokens, LBRACKET)
    name = _expect(tokens, IDENTIFIER)
    _expect(tokens, RBRACKET)
    return constants.resolve(name)

# ---------------------------------------------------------------------------
# PUBLIC API
# ---------------------------------------------------------------------------
def parse(text: str, *, max_depth: int = DEPTH_LIMIT_DEFAULT) -> MappingNode:
    """
    Parse a whole document into its root mapping.

    `global` declarations fill the constant table and never appear in the
    result. Assignments land under their name, bare blocks under
    UNNAMED_KEY; later entries overwrite earlier ones with the same key.
    ValueError is raised for a max_depth the interpreter stack cannot honor.
    """
    if not 0 <= max_depth <= max_depth_ceiling():
        raise ValueError(f"max_depth must be between 0 and {max_depth_ceiling()}, got {max_depth}")
    tokens = LookAhead(lex(text))
    constants = ConstantTable()
    root: Dict[str, Node] = {}

    while True:
        tok = tokens.peek()
        if tok.kind == END:
            break
        if tok.kind == GLOBAL:
            next(tokens)
            name = _expect(tokens, IDENTIFIER).text
            _expect(tokens, EQUALS)
            constants.publish(name, _parse_value(tokens, constants, 0, max_depth))
            log.debug("published constant %s (line %d)", name, tok.line)
        elif tok.kind == IDENTIFIER:
            next(tokens)
            _expect(tokens, EQUALS)
            root[tok.text] = _parse_value(tokens, constants, 0, max_depth)
            log.debug("assigned %s (line %d)", tok.text, tok.line)
        elif tok.kind == LBRACE:
            if UNNAMED_KEY in root:
                log.debug("bare block at line %d replaces earlier %r entry", tok.line, UNNAMED_KEY)
            root[UNNAMED_KEY] = _parse_object(tokens, constants, 1, max_depth)
        else:
            raise UnexpectedTokenError(
                "GLOBAL, IDENTIFIER or LBRACE", tok.kind, tok.text, tok.line, tok.column
            )

    return MappingNode(root)


def translate(text: str, *, max_depth: int = DEPTH_LIMIT_DEFAULT) -> str:
    """
    Translate hexconf source to JSON text. Raises ConfigError on the first
    problem; no partial result is ever returned.
    """
    return to_json(parse(text, max_depth=max_depth))

# ---------------------------------------------------------------------------
# BUILT-IN SCENARIOS
# ---------------------------------------------------------------------------
SELF_TEST_CASES: List[Tuple[str, str, str]] = [
    (
        "hex number",
        "port = 0x1A",
        '{\n  "port": 26\n}',
    ),
    (
        "array",
        "ports = #( 0x01 0x02 0x03 )",
        '{\n  "ports": [1, 2, 3]\n}',
    ),
    (
        "constant",
        "global MAX_SIZE = 0x100\nsize = ?[MAX_SIZE]",
        '{\n  "size": 256\n}',
    ),
    (
        "object",
        "config = { timeout = 0x1E enabled = true }",
        '{\n  "config": {\n    "enabled": true,\n    "timeout": 30\n  }\n}',
    ),
    (
        "constant inside object",
        'global PORT = 0x50\nserver = { port = ?[PORT] hosts = #( "host1" "host2" ) }',
        '{\n  "server": {\n    "hosts": ["host1", "host2"],\n    "port": 80\n  }\n}',
    ),
    (
        "nested objects",
        'app = { database = { host = "localhost" port = 0x2276 } }',
        '{\n  "app": {\n    "database": {\n      "host": "localhost",\n      "port": 8822\n    }\n  }\n}',
    ),
    (
        "mixed types",
        'settings = { numbers = #( 0x01 0x02 ) strings = #( "a" "b" ) flag = true }',
        '{\n  "settings": {\n    "flag": true,\n    "numbers": [1, 2],\n    "strings": ["a", "b"]\n  }\n}',
    ),
    (
        "several constants",
        "global WIDTH = 0x500\nglobal HEIGHT = 0x300\n"
        "dimensions = { width = ?[WIDTH] height = ?[HEIGHT] }",
        '{\n  "dimensions": {\n    "height": 768,\n    "width": 1280\n  }\n}',
    ),
]


def _run_self_test(max_depth: int) -> int:
    failures = 0
    for number, (name, source, expected) in enumerate(SELF_TEST_CASES, 1):
        try:
            got = translate(source, max_depth=max_depth)
        except ConfigError as exc:
            failures += 1
            print(f"FAIL {number} {name}: {type(exc).__name__}: {exc}")
            continue
        if got == expected:
            print(f"PASS {number} {name}")
        else:
            failures += 1
            print(f"FAIL {number} {name}: output differs\n{got}")
    passed = len(SELF_TEST_CASES) - failures
    print(f"{passed}/{len(SELF_TEST_CASES)} scenarios passed")
    return 0 if failures == 0 else 1

# ---------------------------------------------------------------------------
# FILE HELPERS
# ---------------------------------------------------------------------------
def _write_atomic(path: str, text: str) -> None:
    """
    Write text next to path and move it into place, so the target either
    holds the full output or is left untouched. The result keeps the mode of
    an existing target, or gets the umask default for a new one.
    """
    try:
        mode = stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        mode = 0o666 & ~umask

    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp = tempfile.mkstemp(dir=directory, prefix=".hexconf-", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", errors="surrogateescape") as fh:
            fh.write(text)
        os.chmod(tmp, mode)
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp)
        raise

# ---------------------------------------------------------------------------
# CLI ENTRYPOINT
# ---------------------------------------------------------------------------
def _depth_limit(value: str) -> int:
    try:
        limit = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: '{value}'") from None
    if not 0 <= limit <= max_depth_ceiling():
        raise argparse.ArgumentTypeError(f"must be between 0 and {max_depth_ceiling()}, got {limit}")
    return limit


def _cli(argv: List[str]) -> int:
    """
    Command-line interface. Exit 0 on success, 1 on any read, write or
    translation failure, 2 on bad arguments.
    """
    ap = argparse.ArgumentParser(prog="hexconf", description="Translate hexconf configuration to JSON")
    ap.add_argument("--input", metavar="PATH", help="hexconf source file")
    ap.add_argument("--output", metavar="PATH", help="JSON file to write")
    ap.add_argument("--test", action="store_true", help="run the built-in scenarios and exit")
    ap.add_argument("--debug", action="store_true", help="dump the token stream of --input and exit")
    ap.add_argument("--max-depth", type=_depth_limit, default=DEPTH_LIMIT_DEFAULT,
                    help=f"nesting limit, 0 to {max_depth_ceiling()} (default {DEPTH_LIMIT_DEFAULT})")
    ap.add_argument("-v", "--verbose", action="store_true", help="log progress to stderr")
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    cli_log = logging.getLogger("hexconf.cli")

    if args.test:
        return _run_self_test(args.max_depth)
    if not args.input:
        ap.error("--input is required unless --test is given")
    if not args.debug and not args.output:
        ap.error("--output is required with --input")

    try:
        with open(args.input, "r", encoding="utf-8", errors="surrogateescape") as fh:
            data = fh.read()
    except OSError as exc:
        print(f"error: cannot read {args.input}: {exc}", file=sys.stderr)
        return 1
    cli_log.debug("read %d characters from %s", len(data), args.input)

    if args.debug:
        for tok in lex(data):
            print(tok)
        return 0

    try:
        result = translate(data, max_depth=args.max_depth)
    except ConfigError as exc:
        print(f"{type(exc).__name__}: {args.input}: {exc}", file=sys.stderr)
        return 1

    try:
        _write_atomic(args.output, result)
    except OSError as exc:
        print(f"error: cannot write {args.output}: {exc}", file=sys.stderr)
        return 1
    cli_log.debug("wrote %d characters to %s", len(result), args.output)

    print(f"Translated {args.input} -> {args.output}")
    return 0


def main() -> int:
    return _cli(sys.argv[1:])

# ---------------------------------------------------------------------------
# MAIN GUARD
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    sys.exit(main())
