"""
asm65 Error Hierarchy
=====================

This module defines the exception hierarchy for the whole package.
All exceptions inherit from Asm65Error, allowing callers to catch every
assembler-related error with a single except clause if desired.

Exception Hierarchy
-------------------
Asm65Error (base)
└── AssemblerError (assembly engine)
    ├── AssemblySyntaxError - malformed statement or operand
    │   └── LexError - malformed token (e.g. unterminated string)
    ├── ExpressionError - malformed or unevaluable expression
    ├── DirectiveError - bad pseudo-op arguments
    ├── UndefinedSymbolError - reference to an undefined symbol
    ├── DuplicateSymbolError - symbol defined twice
    ├── AddressingModeError - operand form not supported by the mnemonic
    ├── BranchRangeError - relative branch target too far
    ├── ConditionalError - unbalanced .if/.else/.endif
    │   ├── UnmatchedElseError
    │   ├── UnmatchedEndifError
    │   └── UnclosedIfError
    ├── AssertionFailedError - .assert evaluated to zero (non-fatal)
    ├── PhaseError - a label moved between pass 1 and pass 2
    └── IncludeError - source/binary file problems
        ├── SourceFileNotFoundError
        ├── SourceReadError
        └── IncludeDepthError - include loop or depth limit exceeded

Error messages follow this format:
    filename:line:column: error: description
        source_line_text
            ^ (pointer to error location)
    hint: suggestion for fixing (when available)
"""

from dataclasses import dataclass
from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class Asm65Error(Exception):
    """
    Base exception for all asm65 errors.

        try:
            assembler.assemble_file("program.s")
        except Asm65Error as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    A location in source code for error reporting.

    Attributes:
        filename: Name of the source file (or "<input>" for string input)
        line: Line number (1-indexed)
        column: Column number (1-indexed, 0 when unknown)
    """
    filename: str
    line: int
    column: int = 0

    def __str__(self) -> str:
        if self.column > 0:
            return f"{self.filename}:{self.line}:{self.column}"
        return f"{self.filename}:{self.line}"


# =============================================================================
# Assembler Exceptions
# =============================================================================

class AssemblerError(Asm65Error):
    """
    Base exception for all assembly errors.

    Attributes:
        message: The error description
        location: Where in the source the error occurred (optional)
        hint: A suggestion for fixing the error (optional)
        source_line: The source text at the error location (optional)
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        super().__init__(self._format_message())

    def locate(self, location: SourceLocation, source_line: Optional[str] = None) -> None:
        """
        Attach a location to an error raised without one.

        The pass driver calls this for errors raised deep inside helpers
        that only know about tokens or values, not about source lines.
        """
        if self.location is None:
            self.location = location
        if self.source_line is None:
            self.source_line = source_line
        self.args = (self._format_message(),)

    def _format_message(self) -> str:
        """
        Format the error message with location, source context, and hint.

        Example output:
            hello.s:15:9: error: undefined symbol 'prnt'
                jsr prnt
                    ^
            hint: did you mean 'print'?
        """
        parts = []

        if self.location:
            parts.append(f"{self.location}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        if self.source_line is not None and self.location is not None:
            parts.append(f"    {self.source_line}")
            if self.location.column > 0:
                padding = " " * (4 + self.location.column - 1)
                parts.append(f"{padding}^")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)

    def __str__(self) -> str:
        return self._format_message()


class AssemblySyntaxError(AssemblerError):
    """
    Syntax error in assembly source code.

    Raised for malformed statements: unknown mnemonics, stray tokens
    after an operand, labels on lines that cannot carry one.
    """
    pass


class LexError(AssemblySyntaxError):
    """
    Malformed token.

    Examples:
        - Unterminated string literal
        - Invalid character in operand
        - Numeric literal wider than 16 bits
    """
    pass


class ExpressionError(AssemblerError):
    """
    Error parsing or evaluating an expression.

    Typical causes are a missing operand, an unbalanced parenthesis,
    division by zero, or a value that does not fit its destination.
    """
    pass


class DirectiveError(AssemblerError):
    """
    Error in a pseudo-op.

    Examples:
        - `=` without a label
        - `.ds` without a count
        - `.inc` without a quoted filename
    """
    pass


class UndefinedSymbolError(AssemblerError):
    """
    Reference to an undefined symbol.

    Raised when a symbol is not defined at all, or when it is only defined
    further down the source and the context (`.if`, `.org`, `=`, `.equ`)
    forbids forward references.
    """

    def __init__(
        self,
        symbol: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
        similar_symbols: Optional[list[str]] = None,
        forward: bool = False,
    ):
        self.symbol = symbol
        self.similar_symbols = similar_symbols or []
        self.forward = forward

        if not hint and forward:
            hint = "forward references are not allowed in .if, .org, = or .equ"
        if not hint and self.similar_symbols:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_symbols[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(
            f"undefined symbol '{symbol}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class DuplicateSymbolError(AssemblerError):
    """
    Symbol defined more than once.

    Label redefinition is always an error, never a warning.
    """

    def __init__(
        self,
        symbol: str,
        location: Optional[SourceLocation] = None,
        original_location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.symbol = symbol
        self.original_location = original_location

        hint = None
        if original_location:
            hint = f"'{symbol}' was first defined at {original_location}"

        super().__init__(
            f"duplicate symbol '{symbol}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class AddressingModeError(AssemblerError):
    """
    Invalid addressing mode for an instruction.

    Example:
        sta #$41   ; STA has no immediate form
    """

    def __init__(
        self,
        mnemonic: str,
        mode: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
        valid_modes: Optional[list[str]] = None,
    ):
        self.mnemonic = mnemonic
        self.mode = mode
        self.valid_modes = valid_modes or []

        hint = None
        if self.valid_modes:
            modes_str = ", ".join(self.valid_modes)
            hint = f"{mnemonic} supports: {modes_str}"

        super().__init__(
            f"'{mnemonic}' does not support {mode} addressing",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class BranchRangeError(AssemblerError):
    """
    Branch target out of range.

    6502 branches use a signed 8-bit displacement measured from the
    instruction that follows the branch (-128 to +127 bytes).
    """

    def __init__(
        self,
        target: int,
        offset: int,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.target = target
        self.offset = offset

        hint = (
            f"branch offset is {offset}, but range is -128 to +127; "
            "invert the condition and use jmp"
        )

        super().__init__(
            f"branch target ${target:04X} is out of range",
            location=location,
            hint=hint,
            source_line=source_line,
        )


# =============================================================================
# Conditional Assembly Exceptions
# =============================================================================

class ConditionalError(AssemblerError):
    """Unbalanced conditional assembly directives."""
    pass


class UnmatchedElseError(ConditionalError):
    """`.else` without an open `.if`, or a second `.else` for the same `.if`."""
    pass


class UnmatchedEndifError(ConditionalError):
    """`.endif` without an open `.if`."""
    pass


class UnclosedIfError(ConditionalError):
    """A file ended while one of its `.if` blocks was still open."""
    pass


# =============================================================================
# Pass Consistency Exceptions
# =============================================================================

class AssertionFailedError(AssemblerError):
    """
    An `.assert` expression evaluated to zero in pass 2.

    This is the only non-fatal error: it is collected and assembly
    continues, but the run as a whole is reported as failed.
    """
    pass


class PhaseError(AssemblerError):
    """
    A symbol has a different value in pass 2 than in pass 1.

    Every address computed after the shift is wrong, so this is fatal.
    """

    def __init__(
        self,
        symbol: str,
        pass1_value: Optional[int],
        pass2_value: int,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.symbol = symbol
        self.pass1_value = pass1_value
        self.pass2_value = pass2_value

        if pass1_value is None:
            message = (
                f"'{symbol}' undefined in pass 1, "
                f"defined as ${pass2_value:04X} in pass 2"
            )
        else:
            message = (
                f"'{symbol}' is ${pass1_value:04X} in pass 1, "
                f"${pass2_value:04X} in pass 2"
            )

        super().__init__(
            message,
            location=location,
            hint="an instruction or directive above changed size between passes",
            source_line=source_line,
        )


# =============================================================================
# File Inclusion Exceptions
# =============================================================================

class IncludeError(AssemblerError):
    """
    Error reading an included source or binary file.

    Attributes:
        included_filename: The filename as written in the source
        reason: Short explanation
        search_paths: Directories that were searched
    """

    def __init__(
        self,
        filename: str,
        reason: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
        search_paths: Optional[list[str]] = None,
    ):
        self.included_filename = filename
        self.reason = reason
        self.search_paths = search_paths or []

        hint = None
        if self.search_paths:
            paths_str = ", ".join(self.search_paths)
            hint = f"searched in: {paths_str}"

        super().__init__(
            f"cannot read '{filename}': {reason}",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class SourceFileNotFoundError(IncludeError):
    """The referenced file does not exist in any search location."""
    pass


class SourceReadError(IncludeError):
    """The referenced file exists but could not be read or decoded."""
    pass


class IncludeDepthError(IncludeError):
    """A file includes itself, directly or indirectly, or nesting is too deep."""
    pass


# =============================================================================
# Error Collection for Non-Fatal Diagnostics
# =============================================================================

class ErrorCollector:
    """
    Collects non-fatal errors for batch reporting.

    The pass driver uses this for failed assertions, which do not stop
    assembly but must still fail the run. There is no limit on how many
    are collected.

        collector = ErrorCollector()
        collector.add(AssertionFailedError(...))
        if collector.has_errors():
            print(collector.report())
    """

    def __init__(self):
        self.errors: list[AssemblerError] = []

    def add(self, error: AssemblerError) -> None:
        """Add an error to the collection."""
        self.errors.append(error)

    def has_errors(self) -> bool:
        """Return True if any errors have been collected."""
        return len(self.errors) > 0

    def error_count(self) -> int:
        """Return the number of collected errors."""
        return len(self.errors)

    def report(self) -> str:
        """Format all errors for display."""
        lines = []

        for error in self.errors:
            lines.append(str(error))
            lines.append("")

        error_word = "error" if len(self.errors) == 1 else "errors"
        lines.append(f"{len(self.errors)} {error_word}")

        return "\n".join(lines)

    def clear(self) -> None:
        """Clear all collected errors."""
        self.errors.clear()
