"""
6502 Assembler
==============

This package provides a two-pass cross-assembler for the MOS 6502. It turns
source text into raw machine-code bytes, a symbol file and an optional
debug-record file.

Main Components
---------------
- **Assembler**: Main assembler class that configures and runs assembly
- **Lexer**: Splits source lines into fields and tokenizes operands
- **ExpressionEvaluator**: Parses and evaluates 16-bit expressions
- **SymbolTable**: Labels and `=`/`.equ` symbols across both passes
- **ConditionalStack**: `.if`/`.else`/`.endif` nesting and decisions
- **CodeGenerator**: The two-pass driver that sizes and emits code
- **DebugTemplate**: Expands `.dbg` templates for each label

Assembly Process
----------------
1. **Pass 1**: walk all lines (following includes), size every
   instruction and directive from its syntax, record symbols, decide
   every `.if`.
2. **Pass 2**: walk the same lines again, replay the `.if` decisions,
   check that no symbol moved, emit bytes and debug records, check
   assertions.

Example Usage
-------------
>>> from asm65.assembler import Assembler
>>> asm = Assembler()
>>> asm.assemble_string('''
...         .org $8000
... start   lda #$41    ; load 'A'
...         jmp start
... ''')
b'\\xa9AL\\x00\\x80'
"""

from asm65.assembler.assembler import Assembler, assemble, assemble_file
from asm65.assembler.lexer import Lexer, SourceLine, Token, TokenType
from asm65.assembler.expressions import ExpressionEvaluator, evaluate_expression
from asm65.assembler.symbols import Pass, Symbol, SymbolOrigin, SymbolTable
from asm65.assembler.conditionals import ConditionalStack
from asm65.assembler.codegen import AssemblyState, CodeGenerator, DebugRecord
from asm65.assembler.debugfmt import DebugTemplate
from asm65.assembler.sources import (
    FileSystemResolver,
    MemoryResolver,
    SourceResolver,
)

__all__ = [
    # Main class and functions
    "Assembler",
    "assemble",
    "assemble_file",
    # Lexer
    "Lexer",
    "SourceLine",
    "Token",
    "TokenType",
    # Expressions
    "ExpressionEvaluator",
    "evaluate_expression",
    # Symbols
    "Pass",
    "Symbol",
    "SymbolOrigin",
    "SymbolTable",
    # Conditional assembly
    "ConditionalStack",
    # Code generator
    "AssemblyState",
    "CodeGenerator",
    "DebugRecord",
    "DebugTemplate",
    # File access
    "FileSystemResolver",
    "MemoryResolver",
    "SourceResolver",
]
