"""
6502 Assembly Language Lexer
============================

This module splits one source line into its fields and tokenizes the
operand field into a stream of tokens for the expression evaluator and
operand parser.

Line Format
-----------
    [label[:]] [operation] [;comment]

- A label starts in the first column. An indented name is also a label when
  it is followed by `:`, `=` or `.equ`.
- The operation is a pseudo-op (`.org`, `.byte`, `=` ...) or a mnemonic.
  Keywords are case-insensitive; symbol names are case-sensitive.
- A `;` outside a quoted string starts a comment that runs to end of line.

Token Types
-----------
- IDENTIFIER: Symbol names (and the `x`/`y`/`a` register names)
- NUMBER: Decimal, hex ($FF), binary (%1010), octal (@177)
- STRING: '...' or "..." (no escape processing)
- Operators: + - * / % < > <= >= = <> ><
- Delimiters: , # ( )

Number Formats
--------------
| Format      | Prefix | Example | Value |
|-------------|--------|---------|-------|
| Decimal     | (none) | 123     | 123   |
| Hexadecimal | $      | $7F     | 127   |
| Binary      | %      | %1010   | 10    |
| Octal       | @      | @177    | 127   |

Example
-------
>>> from asm65.assembler.lexer import Lexer
>>> lexer = Lexer("start  lda #$41  ; load 'A'", "example.s")
>>> line = lexer.split()
>>> line.label, line.operation, line.operand, line.comment
('start', 'lda', '#$41', "load 'A'")
>>> [t.type.name for t in lexer.tokenize()]
['HASH', 'NUMBER', 'EOF']
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, Optional
import re
import string

from asm65.errors import LexError, SourceLocation


# =============================================================================
# Token Type Enumeration
# =============================================================================

class TokenType(Enum):
    """Token types for the operand field."""

    EOF = auto()

    # Values
    IDENTIFIER = auto()
    NUMBER = auto()
    STRING = auto()

    # Arithmetic operators
    PLUS = auto()        # +
    MINUS = auto()       # - (subtract or negate)
    STAR = auto()        # * (multiply or current PC)
    SLASH = auto()       # /
    PERCENT = auto()     # %

    # Relational operators (also unary low/high byte for < and >)
    LT = auto()          # <
    GT = auto()          # >
    LE = auto()          # <=
    GE = auto()          # >=
    EQ = auto()          # =
    NE = auto()          # <> or ><

    # Delimiters
    COMMA = auto()       # ,
    HASH = auto()        # # (immediate mode indicator)
    LPAREN = auto()      # (
    RPAREN = auto()      # )


# Tokens after which `%` is the modulo operator rather than a binary prefix
_VALUE_TOKENS = frozenset({
    TokenType.IDENTIFIER,
    TokenType.NUMBER,
    TokenType.STRING,
    TokenType.RPAREN,
})


# =============================================================================
# Token Data Class
# =============================================================================

@dataclass(frozen=True)
class Token:
    """
    A single token from the operand field.

    Attributes:
        type: The TokenType classification
        value: The token value (str for identifiers/strings, int for numbers)
        line: Line number in source (1-indexed)
        column: Column number in source (1-indexed)
        filename: Name of the source file
    """
    type: TokenType
    value: str | int | None
    line: int
    column: int
    filename: str

    def __repr__(self) -> str:
        if self.value is not None:
            if isinstance(self.value, int):
                return f"Token({self.type.name}, ${self.value:X}, {self.line}:{self.column})"
            return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"
        return f"Token({self.type.name}, {self.line}:{self.column})"

    @property
    def location(self) -> SourceLocation:
        """Return a SourceLocation for error reporting."""
        return SourceLocation(self.filename, self.line, self.column)


# =============================================================================
# Split Source Line
# =============================================================================

@dataclass(frozen=True)
class SourceLine:
    """
    One source line split into its fields.

    Columns are 1-indexed and 0 when the field is absent.
    """
    text: str
    filename: str
    line: int
    label: Optional[str] = None
    label_column: int = 0
    operation: Optional[str] = None
    operation_column: int = 0
    operand: str = ""
    operand_column: int = 0
    comment: Optional[str] = None

    @property
    def op(self) -> Optional[str]:
        """The operation keyword, lowercased."""
        return self.operation.lower() if self.operation else None

    @property
    def is_blank(self) -> bool:
        """True for lines with nothing but whitespace."""
        return self.label is None and self.operation is None and self.comment is None

    @property
    def is_comment_only(self) -> bool:
        """True for lines holding only a comment."""
        return self.label is None and self.operation is None and self.comment is not None

    @property
    def location(self) -> SourceLocation:
        return SourceLocation(self.filename, self.line, self.operation_column or 1)


# Recognizes conditional directives on lines that are not otherwise lexed
_CONDITIONAL_RE = re.compile(
    r"^(?:(?P<label>[A-Za-z_]\w*):?|\s+(?:(?P<indented>[A-Za-z_]\w*):)?)?"
    r"\s*(?P<op>\.(?:if|else|endif))(?![\w.])",
    re.IGNORECASE,
)


# =============================================================================
# Lexer Implementation
# =============================================================================

class Lexer:
    """
    Splits and tokenizes one line of 6502 assembly source.

    Usage:
        lexer = Lexer(text, filename, line_number)
        line = lexer.split()
        tokens = list(lexer.tokenize())

    Attributes:
        text: The source line (without line terminator)
        filename: Name of the source file (for error reporting)
        line_number: Line number of this line in its file
    """

    IDENT_START = string.ascii_letters + "_"
    IDENT_CHARS = string.ascii_letters + string.digits + "_"

    SINGLE_CHAR_TOKENS = {
        "+": TokenType.PLUS,
        "-": TokenType.MINUS,
        "*": TokenType.STAR,
        "/": TokenType.SLASH,
        "=": TokenType.EQ,
        ",": TokenType.COMMA,
        "#": TokenType.HASH,
        "(": TokenType.LPAREN,
        ")": TokenType.RPAREN,
    }

    QUOTES = "'\""

    def __init__(self, text: str, filename: str = "<input>", line_number: int = 1):
        self.text = text.rstrip("\r\n")
        self.filename = filename
        self.line_number = line_number
        self._split: Optional[SourceLine] = None

    # =========================================================================
    # Line Splitting
    # =========================================================================

    def split(self) -> SourceLine:
        """
        Split the line into label, operation, operand and comment.

        Raises:
            LexError: On an unterminated string or a malformed label/operation
        """
        if self._split is not None:
            return self._split

        code_end, comment = self._find_comment()
        code = self.text[:code_end]

        label = None
        label_column = 0
        pos = 0

        if code and code[0] not in " \t":
            if code[0] != ".":
                end = self._scan_name(code, 0)
                if end == 0:
                    raise self._error(f"invalid label starting with '{code[0]}'", 1)
                label, label_column = code[:end], 1
                pos = end + 1 if code[end:end + 1] == ":" else end
        else:
            start = self._skip_blanks(code, 0)
            end = self._scan_name(code, start)
            if end > start:
                rest = code[end:]
                after = rest.lstrip(" \t")
                if rest.startswith(":"):
                    label, label_column = code[start:end], start + 1
                    pos = end + 1
                elif after.startswith("=") or self._starts_with_keyword(after, ".equ"):
                    label, label_column = code[start:end], start + 1
                    pos = end

        operation = None
        operation_column = 0
        operand = ""
        operand_column = 0

        pos = self._skip_blanks(code, pos)
        if pos < len(code):
            if code[pos] == "=":
                op_end = pos + 1
            else:
                op_end = pos + 1 if code[pos] == "." else pos
                op_end = self._scan_name(code, op_end)
                if op_end == pos or (code[pos] == "." and op_end == pos + 1):
                    raise self._error(f"invalid operation starting with '{code[pos]}'", pos + 1)
            operation = code[pos:op_end]
            operation_column = pos + 1

            operand_start = self._skip_blanks(code, op_end)
            operand = code[operand_start:].rstrip(" \t")
            if operand:
                operand_column = operand_start + 1

        self._split = SourceLine(
            text=self.text,
            filename=self.filename,
            line=self.line_number,
            label=label,
            label_column=label_column,
            operation=operation,
            operation_column=operation_column,
            operand=operand,
            operand_column=operand_column,
            comment=comment,
        )
        return self._split

    def conditional_directive(self) -> Optional[str]:
        """
        Return `.if`, `.else` or `.endif` if this line holds one.

        Used for lines inside a false conditional block, which are not
        otherwise lexed: only nesting needs to be tracked there.
        """
        match = _CONDITIONAL_RE.match(self.text)
        return match.group("op").lower() if match else None

    def conditional_label(self) -> Optional[str]:
        """Return the label written in front of `.if`/`.else`/`.endif`, if any."""
        match = _CONDITIONAL_RE.match(self.text)
        if not match:
            return None
        return match.group("label") or match.group("indented")

    def _find_comment(self) -> tuple[int, Optional[str]]:
        """Locate a `;` outside quotes; return (code_end, comment_text)."""
        quote = None
        quote_column = 0
        for i, char in enumerate(self.text):
            if quote:
                if char == quote:
                    quote = None
            elif char in self.QUOTES:
                quote = char
                quote_column = i + 1
            elif char == ";":
                return i, self.text[i + 1:].strip()

        if quote:
            raise self._error("unterminated string literal", quote_column)
        return len(self.text), None

    def _scan_name(self, text: str, start: int) -> int:
        """Return the end index of an identifier starting at `start`."""
        pos = start
        if pos < len(text) and text[pos] in self.IDENT_START:
            pos += 1
            while pos < len(text) and text[pos] in self.IDENT_CHARS:
                pos += 1
        return pos

    @staticmethod
    def _skip_blanks(text: str, pos: int) -> int:
        while pos < len(text) and text[pos] in " \t":
            pos += 1
        return pos

    @staticmethod
    def _starts_with_keyword(text: str, keyword: str) -> bool:
        if not text.lower().startswith(keyword):
            return False
        return len(text) == len(keyword) or text[len(keyword)] in " \t"

    # =========================================================================
    # Operand Tokenizing
    # =========================================================================

    def tokenize(self) -> Iterator[Token]:
        """
        Generate tokens for the operand field.

        Yields:
            Token objects, always terminated by an EOF token

        Raises:
            LexError: If an invalid token is encountered
        """
        line = self.split()
        text = line.operand
        offset = line.operand_column - 1 if line.operand_column else len(self.text)

        pos = 0
        previous: Optional[TokenType] = None
        while pos < len(text):
            char = text[pos]
            if char in " \t":
                pos += 1
                continue

            column = offset + pos + 1
            token, pos = self._scan_token(text, pos, column, previous)
            previous = token.type
            yield token

        yield self._make_token(TokenType.EOF, None, offset + len(text) + 1)

    def _scan_token(
        self,
        text: str,
        pos: int,
        column: int,
        previous: Optional[TokenType],
    ) -> tuple[Token, int]:
        """Scan one token starting at `pos`; return it with the next position."""
        char = text[pos]
        next_char = text[pos + 1] if pos + 1 < len(text) else ""

        if char in self.IDENT_START:
            end = self._scan_name(text, pos)
            return self._make_token(TokenType.IDENTIFIER, text[pos:end], column), end

        if char.isdigit():
            return self._scan_number(text, pos, pos, 10, string.digits, column)

        if char == "$":
            return self._scan_number(text, pos + 1, pos, 16, string.hexdigits, column)

        if char == "%" and next_char and next_char in "01" and previous not in _VALUE_TOKENS:
            return self._scan_number(text, pos + 1, pos, 2, "01", column)

        if char == "%":
            return self._make_token(TokenType.PERCENT, "%", column), pos + 1

        if char == "@":
            return self._scan_number(text, pos + 1, pos, 8, "01234567", column)

        if char in self.QUOTES:
            end = text.find(char, pos + 1)
            if end == -1:
                raise self._error("unterminated string literal", column)
            return self._make_token(TokenType.STRING, text[pos + 1:end], column), end + 1

        if char == "<":
            if next_char == "=":
                return self._make_token(TokenType.LE, "<=", column), pos + 2
            if next_char == ">":
                return self._make_token(TokenType.NE, "<>", column), pos + 2
            return self._make_token(TokenType.LT, "<", column), pos + 1

        if char == ">":
            if next_char == "=":
                return self._make_token(TokenType.GE, ">=", column), pos + 2
            if next_char == "<":
                return self._make_token(TokenType.NE, "><", column), pos + 2
            return self._make_token(TokenType.GT, ">", column), pos + 1

        if char in self.SINGLE_CHAR_TOKENS:
            return self._make_token(self.SINGLE_CHAR_TOKENS[char], char, column), pos + 1

        raise self._error(f"unexpected character '{char}'", column)

    def _scan_number(
        self,
        text: str,
        digits_start: int,
        token_start: int,
        base: int,
        digits: str,
        column: int,
    ) -> tuple[Token, int]:
        """Scan the digits of a numeric literal in the given base."""
        end = digits_start
        while end < len(text) and text[end] in digits:
            end += 1

        if end == digits_start:
            names = {16: "hexadecimal", 2: "binary", 8: "octal", 10: "decimal"}
            raise self._error(f"expected {names[base]} digits", column)

        if end < len(text) and text[end] in self.IDENT_CHARS:
            raise self._error(f"invalid digit '{text[end]}' in numeric literal", column)

        value = int(text[digits_start:end], base)
        if value > 0xFFFF:
            raise self._error(f"numeric literal '{text[token_start:end]}' exceeds 16 bits", column)

        return self._make_token(TokenType.NUMBER, value, column), end

    # =========================================================================
    # Helpers
    # =========================================================================

    def _make_token(self, token_type: TokenType, value: str | int | None, column: int) -> Token:
        return Token(
            type=token_type,
            value=value,
            line=self.line_number,
            column=column,
            filename=self.filename,
        )

    def _error(self, message: str, column: int) -> LexError:
        location = SourceLocation(self.filename, self.line_number, column)
        return LexError(message, location, source_line=self.text)


def tokenize_operand(text: str, filename: str = "<input>", line_number: int = 1) -> list[Token]:
    """
    Tokenize a bare operand/expression string.

    Convenience wrapper used by tests and by the `-D` option parser: the
    text is placed after a dummy operation so that it lands in the operand
    field.
    """
    lexer = Lexer(f" .x {text}", filename, line_number)
    return list(lexer.tokenize())
