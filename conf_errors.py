# conf_errors.py
# Error hierarchy for the hexconf translator.
#
# Every failure is fatal to the current parse. The parser raises the first
# error it meets and the CLI reports it; nothing below ever resumes.


class ConfigError(SyntaxError):
    """
    Base class for every translation failure.

    Carries a 1-based source location. Subclasses SyntaxError so callers
    catching the builtin keep working.
    """
    def __init__(self, detail: str, line: int, column: int):
        self.detail = detail
        self.line = line
        self.column = column
        super().__init__(f"line {line}, column {column}: {detail}")


class UnexpectedTokenError(ConfigError):
    """Current token does not match what the grammar rule requires."""
    def __init__(self, expected: str, actual: str, text: str, line: int, column: int):
        self.expected = expected
        self.actual = actual
        self.token_text = text
        shown = f" '{text}'" if text else ""
        super().__init__(f"expected {expected}, got {actual}{shown}", line, column)


class UnknownConstantError(ConfigError):
    def __init__(self, name: str, line: int, column: int):
        self.name = name
        super().__init__(f"unknown constant '{name}'", line, column)


class NumericOverflowError(ConfigError):
    def __init__(self, digits: str, line: int, column: int):
        self.digits = digits
        super().__init__(f"hex literal 0x{digits} exceeds signed 64-bit range", line, column)


class InvalidNumberError(ConfigError):
    def __init__(self, line: int, column: int):
        super().__init__("hex literal 0x has no digits", line, column)


class NestingTooDeepError(ConfigError):
    def __init__(self, limit: int, line: int, column: int):
        self.limit = limit
        super().__init__(f"nesting depth limit {limit} exceeded", line, column)
