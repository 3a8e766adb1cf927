"""
Error handling for Oris
Error taxonomy with source positions, line/column translation and display
"""

from typing import Any, Optional, Tuple, Union

from values import render


# ============================================================================
# POSITION TRANSLATION
# ============================================================================

def line_column(source: Union[bytes, str], pos: int) -> Tuple[int, int]:
    """
    Translate a byte offset into a zero-based (line, column) pair.

    The column counts characters between the start of the line and `pos`.
    `source` must be the exact text the offset was computed against.
    """
    data = source.encode("utf-8") if isinstance(source, str) else source
    pos = max(0, min(pos, len(data)))
    line = data.count(b"\n", 0, pos)
    line_start = data.rfind(b"\n", 0, pos) + 1
    column = len(data[line_start:pos].decode("utf-8", errors="replace"))
    return line, column


def get_context_lines(source_text: str, line_num: int, col_num: int, context_lines: int = 1) -> str:
    """Get context lines around the error, with a caret under the error column"""
    lines = source_text.split('\n')
    start_line = max(0, line_num - context_lines - 1)
    end_line = min(len(lines), line_num + context_lines)

    context_parts = []
    for i in range(start_line, end_line):
        line_prefix = f"{i+1:4d} | "
        context_parts.append(f"{line_prefix}{lines[i]}")
        if i == line_num - 1:  # Error line
            context_parts.append(f"{'':4} | {' ' * (col_num - 1)}^")

    return '\n'.join(context_parts)


# ============================================================================
# ERROR CLASSES
# ============================================================================

class OrisError(Exception):
    """Base class for every error raised while running Oris source"""

    def __init__(self, message: str, pos: Optional[int] = None):
        self.message = message
        self.pos = pos
        super().__init__(message)

    def line_column(self, source: Union[bytes, str]) -> Tuple[int, int]:
        return line_column(source, self.pos or 0)


class OrisLexError(OrisError):
    """Lexical error: the source bytes do not form a token"""

    def __init__(self, kind: str, message: str, pos: int):
        self.kind = kind
        super().__init__(message, pos)

    @classmethod
    def quote(cls, pos: int) -> "OrisLexError":
        return cls("quote", "missing right quote for string literal", pos)

    @classmethod
    def overflow(cls, pos: int) -> "OrisLexError":
        return cls("overflow", "integer literal is too large", pos)

    @classmethod
    def bad_digit(cls, char: str, pos: int) -> "OrisLexError":
        return cls("bad_digit", f"bad digit `{char}` in integer literal", pos)

    @classmethod
    def unexpected(cls, byte: int, pos: int) -> "OrisLexError":
        return cls("unexpected", f"unexpected byte ({chr(byte)}){byte:#04x}", pos)


class OrisParseError(OrisError):
    """Syntax error: a token (or the end of input) where something else was expected"""

    def __init__(self, expected: str, found: Optional[Any], pos: int):
        self.expected = expected
        self.found = found
        if found is None:
            message = f"miss {expected}"
        else:
            message = f"expect {expected}, found {found}"
        super().__init__(message, pos)

    @classmethod
    def miss(cls, expected: str, pos: int) -> "OrisParseError":
        return cls(expected, None, pos)

    @classmethod
    def mismatch(cls, expected: str, found: Any, pos: int) -> "OrisParseError":
        return cls(expected, found, pos)


class OrisRuntimeError(OrisError):
    """Base class for errors raised while evaluating well-formed source"""


class UndefinedError(OrisRuntimeError):
    def __init__(self, name: str, pos: Optional[int], suggestion: Optional[str] = None):
        self.name = name
        self.suggestion = suggestion
        super().__init__(f"undefined identifier: {name}", pos)


class UnaryError(OrisRuntimeError):
    def __init__(self, op: str, operand, pos: Optional[int]):
        self.op = op
        self.operand = operand
        super().__init__(f"invalid unary operator {op} for {render(operand)}", pos)


class BinaryError(OrisRuntimeError):
    def __init__(self, left, op: str, right, pos: Optional[int]):
        self.left = left
        self.op = op
        self.right = right
        super().__init__(
            f"invalid binary operator {op} between {render(left)} and {render(right)}", pos)


class IndexingError(OrisRuntimeError):
    def __init__(self, base, subscript, pos: Optional[int]):
        self.base = base
        self.subscript = subscript
        super().__init__(f"index {render(base)} with {render(subscript)}", pos)


class CallError(OrisRuntimeError):
    def __init__(self, target, pos: Optional[int]):
        self.target = target
        super().__init__(f"{render(target)} is not callable", pos)


class ArgCountError(OrisRuntimeError):
    def __init__(self, expected: int, supplied: int, pos: Optional[int]):
        self.expected = expected
        self.supplied = supplied
        super().__init__(f"accept arg x {expected}, but got {supplied}", pos)


class ArgTypeError(OrisRuntimeError):
    def __init__(self, expected: str, supplied, pos: Optional[int]):
        self.expected = expected
        self.supplied = supplied
        super().__init__(f"accept arg of type {expected}, but got {render(supplied)}", pos)


class ArgValueError(OrisRuntimeError):
    pass


class AssertEqError(OrisRuntimeError):
    def __init__(self, left, right, pos: Optional[int]):
        self.left = left
        self.right = right
        super().__init__(
            f"assert_eq failed\n left: {render(left)}\nright: {render(right)}", pos)


class ArithError(OrisRuntimeError):
    """Integer overflow or division by zero"""


# ============================================================================
# DISPLAY
# ============================================================================

def generate_suggestions(error: OrisError) -> list:
    """Generate helpful hints based on the error"""
    suggestions = []

    if isinstance(error, UndefinedError):
        if error.suggestion:
            suggestions.append(f"did you mean `{error.suggestion}`?")
        else:
            suggestions.append("bind it first with `let`")

    if isinstance(error, OrisParseError) and error.expected == "RightBrace" and error.found is None:
        suggestions.append("a block or map literal is not closed")

    if isinstance(error, OrisLexError) and error.kind == "quote":
        suggestions.append("string literals end at the next `\"` and have no escapes")

    if isinstance(error, ArithError):
        suggestions.append("Oris integers are 32-bit signed")

    return suggestions


def format_error(error: OrisError, source: Union[bytes, str], filename: str = "<input>") -> str:
    """
    Format an error for display:

        script.oris:2:9: error: undefined identifier: y
           2 | let x = y;
             |         ^
          hint: ...
    """
    if isinstance(source, bytes):
        text = source.decode("utf-8", errors="replace")
    else:
        text = source

    if error.pos is None:
        return f"{filename}: error: {error.message}"

    line, column = error.line_column(source)
    parts = [f"{filename}:{line + 1}:{column + 1}: error: {error.message}"]
    parts.append(get_context_lines(text, line + 1, column + 1, context_lines=0))
    for suggestion in generate_suggestions(error):
        parts.append(f"  hint: {suggestion}")
    return '\n'.join(parts)
