"""
asm65 - Two-Pass Cross-Assembler for the MOS 6502
=================================================

This package translates 6502 assembly source into raw machine-code bytes,
plus a symbol file and an optional debug-record file for an emulator's
debugger. It has no macros and no relocatable linking: one source tree in,
one object stream out.

Main Components
---------------
- **assembler**: the assembly engine (lexer, expressions, symbol table,
  conditional assembly, two-pass driver, debug records)
- **cpu**: static 6502 instruction set data
- **cli**: the `asm65` command-line tool

Quick Start
-----------
Assemble a program:
    >>> from asm65 import Assembler
    >>> asm = Assembler()
    >>> code = asm.assemble_file("hello.s")
    >>> asm.write_binary("hello.bin")

Or use the command-line tool:
    $ asm65 hello.s -o hello.bin -g hello.dbg
"""

__version__ = "0.1.0"

# =============================================================================
# Public API Exports
# =============================================================================

from asm65.assembler import Assembler, assemble, assemble_file
from asm65.errors import (
    Asm65Error,
    AssemblerError,
    AssemblySyntaxError,
    LexError,
    ExpressionError,
    DirectiveError,
    UndefinedSymbolError,
    DuplicateSymbolError,
    AddressingModeError,
    BranchRangeError,
    ConditionalError,
    UnmatchedElseError,
    UnmatchedEndifError,
    UnclosedIfError,
    AssertionFailedError,
    PhaseError,
    IncludeError,
    SourceFileNotFoundError,
    SourceReadError,
    IncludeDepthError,
    SourceLocation,
)

__all__ = [
    "__version__",
    # Assembler
    "Assembler",
    "assemble",
    "assemble_file",
    # Errors
    "Asm65Error",
    "AssemblerError",
    "AssemblySyntaxError",
    "LexError",
    "ExpressionError",
    "DirectiveError",
    "UndefinedSymbolError",
    "DuplicateSymbolError",
    "AddressingModeError",
    "BranchRangeError",
    "ConditionalError",
    "UnmatchedElseError",
    "UnmatchedEndifError",
    "UnclosedIfError",
    "AssertionFailedError",
    "PhaseError",
    "IncludeError",
    "SourceFileNotFoundError",
    "SourceReadError",
    "IncludeDepthError",
    "SourceLocation",
]
