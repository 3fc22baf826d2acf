"""
6502 Code Generator
===================

This module drives the two-pass assembly of 6502 source text.

Pass 1 (Symbol Collection)
--------------------------
- Walk every line, following `.inc` files as they are reached
- Compute the size of each instruction and data directive from its syntax
- Record label addresses and `=`/`.equ` values in the symbol table
- Decide every `.if` and remember the decision

Pass 2 (Code Generation)
------------------------
- Walk the same lines again, replaying the `.if` decisions
- Re-define each symbol and check it has not moved (phase error)
- Evaluate operands, emit bytes while output is on
- Check `.assert` expressions and write debug records

Outputs
-------
- Raw object bytes, in program order
- Debug lines, one per label while a `.dbg` template is active
- Symbol table file listing the `=`/`.equ` symbols

Pseudo-ops
----------
| Directive          | Effect                                           |
|--------------------|--------------------------------------------------|
| .org v             | set the program counter                          |
| name = v, .equ     | define a symbol                                  |
| .byte v,"str",...  | bytes (strings give one byte per character)      |
| .word v,...        | little-endian words                              |
| .ds n[,fill]       | n copies of fill (default 0)                     |
| .bin/.incbin "f"   | contents of a binary file                        |
| .inc/.fil "f"      | assemble another source file here                |
| .lib "f"           | like .inc, but at most once per pass             |
| .if/.else/.endif   | conditional assembly                             |
| .on/.off           | resume/suspend output (PC still advances)        |
| .assert v          | report an error in pass 2 if v is zero           |
| .dbg ["template"]  | set or clear the debug record template           |

A CodeGenerator holds all state of one run and is not safe for concurrent
use from several threads.
"""

from dataclasses import dataclass
from enum import Enum, auto
import logging
from pathlib import Path
from typing import Optional

from asm65.errors import (
    AssemblerError,
    AssemblySyntaxError,
    AssertionFailedError,
    DirectiveError,
    ErrorCollector,
    SourceLocation,
)
from asm65.assembler.lexer import Lexer, SourceLine, Token, TokenType
from asm65.assembler.expressions import ExpressionEvaluator
from asm65.assembler.symbols import Pass, Symbol, SymbolOrigin, SymbolTable
from asm65.assembler.conditionals import ConditionalStack
from asm65.assembler.parser import (
    ParsedAddressingMode,
    parse_filename,
    parse_operand,
    split_arguments,
)
from asm65.assembler.encoder import (
    byte_directive_size,
    encode_bytes,
    encode_fill,
    encode_instruction,
    encode_words,
    resolve_mode,
    word_directive_size,
)
from asm65.assembler.debugfmt import CommentAggregator, DebugTemplate
from asm65.assembler.sources import (
    DEFAULT_MAX_INCLUDE_DEPTH,
    FileSystemResolver,
    SourceFrame,
    SourceResolver,
    SourceStack,
)
from asm65.cpu import is_valid_instruction


logger = logging.getLogger(__name__)


# =============================================================================
# Data Classes
# =============================================================================

class AssemblyState(Enum):
    """Lifecycle of one assembly run."""
    READY = auto()
    PASS1 = auto()
    PASS2 = auto()
    DONE = auto()
    FAILED = auto()


@dataclass
class DebugRecord:
    """
    A label reported to the debug file.

    Attributes:
        name: Label name
        value: Label address
        comment: Aggregated comment text
        text: The expanded template line
        location: Where the label was defined
    """
    name: str
    value: int
    comment: str
    text: str
    location: SourceLocation


# Directive names (lowercase, including the dot)
CONDITIONAL_DIRECTIVES = frozenset({".if", ".else", ".endif"})
ASSIGNMENT_DIRECTIVES = frozenset({"=", ".equ"})
INCLUDE_DIRECTIVES = frozenset({".inc", ".fil", ".lib"})
BINARY_DIRECTIVES = frozenset({".bin", ".incbin"})

_ADDRESS_FORMS = frozenset({
    ParsedAddressingMode.ADDRESS,
    ParsedAddressingMode.ADDRESS_X,
    ParsedAddressingMode.ADDRESS_Y,
})


# =============================================================================
# Code Generator
# =============================================================================

class CodeGenerator:
    """
    Assembles 6502 source text into object code.

    The code generator maintains:
    - Symbol table with all labels and assignments
    - Program counter and output mode
    - Conditional stack and include stack
    - Output code buffer and debug records
    - Error collection for failed assertions

    Usage:
        codegen = CodeGenerator()
        codegen.define_symbol("DEBUG", 1)
        code = codegen.generate(source, "main.s")
        codegen.write_binary("main.bin")
    """

    def __init__(
        self,
        resolver: Optional[SourceResolver] = None,
        max_include_depth: int = DEFAULT_MAX_INCLUDE_DEPTH,
    ):
        """
        Initialize the code generator.

        Args:
            resolver: Locates and reads included files; defaults to the
                      filesystem with no extra include paths
            max_include_depth: Maximum nesting of included source files
        """
        self._resolver = resolver or FileSystemResolver()
        self._predefined: dict[str, int] = {}

        self._symbols = SymbolTable()
        self._evaluator = ExpressionEvaluator(self._symbols, self._require_pc)
        self._conditionals = ConditionalStack()
        self._sources = SourceStack(max_include_depth)
        self._comments = CommentAggregator()
        self._errors = ErrorCollector()

        self._pass = Pass.PASS1
        self._state = AssemblyState.READY
        self._pc: Optional[int] = None
        self._origin: Optional[int] = None
        self._output_on = True
        self._template: Optional[DebugTemplate] = None
        self._included: set[str] = set()

        self._code = bytearray()
        self._debug_records: list[DebugRecord] = []

    # =========================================================================
    # Public Interface
    # =========================================================================

    def define_symbol(self, name: str, value: int) -> None:
        """
        Pre-define a symbol (e.g., from command line -D option).

        Predefined symbols exist before the first line of each pass and
        conflict with any definition of the same name in the source.
        """
        self._predefined[name] = value & 0xFFFF

    def generate(self, source: str, filename: str = "<input>") -> bytes:
        """
        Assemble source text.

        This is the main entry point for code generation.

        Args:
            source: The main source text
            filename: Name used in messages and for resolving includes

        Returns:
            Generated object code as bytes

        Raises:
            AssemblerError: On the first fatal error (failed assertions
                            are collected instead; check has_errors())
        """
        self._reset()
        lines = source.splitlines()

        try:
            self._state = AssemblyState.PASS1
            self._run_pass(Pass.PASS1, lines, filename)
            self._state = AssemblyState.PASS2
            self._run_pass(Pass.PASS2, lines, filename)
        except AssemblerError:
            self._state = AssemblyState.FAILED
            raise

        self._state = AssemblyState.DONE
        logger.info(
            f"assembled {len(self._code)} bytes, {len(self._symbols)} symbols, "
            f"{self._errors.error_count()} errors"
        )
        return bytes(self._code)

    @property
    def state(self) -> AssemblyState:
        return self._state

    def get_code(self) -> bytes:
        """Return the generated object code."""
        return bytes(self._code)

    def get_origin(self) -> int:
        """Return the address of the first `.org` (0 if there was none)."""
        return self._origin if self._origin is not None else 0

    def get_symbols(self) -> dict[str, int]:
        """Return a dictionary of symbol names to values."""
        return self._symbols.as_dict()

    def get_assignments(self) -> list[Symbol]:
        """Return the `=`/`.equ` symbols sorted by name."""
        return self._symbols.assignments()

    def get_debug_records(self) -> list[DebugRecord]:
        return list(self._debug_records)

    def get_debug_lines(self) -> list[str]:
        """Return the expanded debug lines in emission order."""
        return [record.text for record in self._debug_records]

    def has_errors(self) -> bool:
        """Check if any assertion failed during assembly."""
        return self._errors.has_errors()

    def error_count(self) -> int:
        return self._errors.error_count()

    def get_error_report(self) -> str:
        """Get formatted error report."""
        return self._errors.report()

    # =========================================================================
    # Output File Writing
    # =========================================================================

    def write_binary(self, filepath: str | Path) -> None:
        """Write the raw object bytes."""
        Path(filepath).write_bytes(self.get_code())

    def write_symbols(self, filepath: str | Path) -> None:
        """
        Write symbol table file.

        Format: name $VVVV (one `=`/`.equ` symbol per line, sorted by name)
        """
        with open(filepath, "w") as f:
            f.write("# Symbol table\n")
            f.write("# Generated by asm65\n")
            for sym in self.get_assignments():
                f.write(f"{sym.name} ${sym.value:04X}\n")

    def write_debug(self, filepath: str | Path) -> None:
        """Write the debug file: one expanded template line per label."""
        with open(filepath, "w") as f:
            for line in self.get_debug_lines():
                f.write(f"{line}\n")

    # =========================================================================
    # Pass Driver
    # =========================================================================

    def _reset(self) -> None:
        """Reset state for a fresh assembly."""
        self._symbols = SymbolTable()
        self._evaluator = ExpressionEvaluator(self._symbols, self._require_pc)
        self._conditionals = ConditionalStack()
        self._errors.clear()
        for name, value in self._predefined.items():
            self._symbols.predefine(name, value)
        self._state = AssemblyState.READY

    def _run_pass(self, pass_: Pass, lines: list[str], filename: str) -> None:
        """Walk the main source and every file it includes once."""
        logger.info(f"pass {pass_.value}: {filename}")

        self._pass = pass_
        self._symbols.begin_pass(pass_)
        self._conditionals.begin_pass(replay=pass_ is Pass.PASS2)
        self._pc = None
        self._origin = None
        self._output_on = True
        self._template = None
        self._included.clear()
        self._comments.clear()
        self._code.clear()
        self._debug_records.clear()

        identity = filename if filename.startswith("<") else self._resolver.identity(filename)
        self._sources.clear()
        self._sources.push(SourceFrame(filename, identity, lines))

        while self._sources:
            frame = self._sources.top
            if frame.exhausted:
                self._conditionals.check_closed(frame.cond_floor, frame.end_location)
                self._sources.pop()
                continue

            line_number, text = frame.next_line()
            self._process_line(frame, line_number, text)

    def _process_line(self, frame: SourceFrame, line_number: int, text: str) -> None:
        """Process one line; errors get this line's location attached."""
        lexer = Lexer(text, frame.filename, line_number)
        try:
            if self._conditionals.live:
                self._process_live_line(lexer, frame)
            else:
                self._process_skipped_line(lexer, frame)
        except AssemblerError as e:
            e.locate(SourceLocation(frame.filename, line_number), text)
            raise

    def _process_skipped_line(self, lexer: Lexer, frame: SourceFrame) -> None:
        """Track conditional nesting inside a false block; nothing else."""
        self._comments.clear()
        directive = lexer.conditional_directive()
        location = SourceLocation(frame.filename, lexer.line_number)
        if directive and lexer.conditional_label():
            raise DirectiveError(f"label not allowed on {directive}", location)

        if directive == ".if":
            self._conditionals.push_if(None, location)
        elif directive == ".else":
            self._conditionals.flip_else(location, frame.cond_floor)
        elif directive == ".endif":
            self._conditionals.pop_endif(location, frame.cond_floor)

    def _process_live_line(self, lexer: Lexer, frame: SourceFrame) -> None:
        line = lexer.split()

        if line.is_comment_only:
            self._comments.add(line.comment)
            return
        if line.is_blank:
            self._comments.clear()
            return

        op = line.op
        if op in CONDITIONAL_DIRECTIVES:
            self._comments.clear()
            self._conditional(op, line, lexer, frame)
            return

        tokens = list(lexer.tokenize())

        if op in ASSIGNMENT_DIRECTIVES:
            self._assignment(line, tokens)
        else:
            if line.label:
                self._define_label(line)
            if op is None:
                pass
            elif op.startswith("."):
                self._directive(op, line, tokens, frame)
            else:
                self._instruction(line, tokens)

        self._comments.clear()

    # =========================================================================
    # Program Counter and Output
    # =========================================================================

    def _require_pc(self) -> int:
        """Return the program counter, or fail if no `.org` has been seen."""
        if self._pc is None:
            raise AssemblerError(
                "program counter was never set",
                hint="add .org before the first label, instruction or data",
            )
        return self._pc

    def _advance(self, size: int) -> None:
        self._pc = (self._require_pc() + size) & 0xFFFF

    def _emit(self, data: bytes) -> None:
        """Append bytes to the output in pass 2 while output is on."""
        if self._pass is Pass.PASS2 and self._output_on:
            self._code.extend(data)

    def _evaluate(self, tokens: list[Token], line: SourceLine, allow_forward: bool = True) -> int:
        return self._evaluator.evaluate(tokens, line.location, allow_forward)

    # =========================================================================
    # Symbols
    # =========================================================================

    def _define_label(self, line: SourceLine) -> None:
        """Define a label at the current PC and emit its debug record."""
        location = SourceLocation(line.filename, line.line, line.label_column)
        value = self._require_pc()
        self._symbols.define(line.label, value, SymbolOrigin.LABEL, location)

        if self._pass is Pass.PASS2 and self._template is not None:
            comment = self._comments.take(line.comment)
            text = self._template.expand(line.label, value, comment)
            self._debug_records.append(DebugRecord(line.label, value, comment, text, location))

    def _assignment(self, line: SourceLine, tokens: list[Token]) -> None:
        """Handle `name = value` and `name .equ value`."""
        if not line.label:
            raise DirectiveError(
                f"missing label for '{line.operation}'",
                line.location,
                hint="write: name = value",
            )
        value = self._evaluate(tokens, line, allow_forward=False)
        location = SourceLocation(line.filename, line.line, line.label_column)
        self._symbols.define(line.label, value, SymbolOrigin.ASSIGNMENT, location)

    # =========================================================================
    # Conditional Assembly
    # =========================================================================

    def _conditional(self, op: str, line: SourceLine, lexer: Lexer, frame: SourceFrame) -> None:
        location = line.location
        if line.label:
            raise DirectiveError(f"label not allowed on {op}", location)

        if op == ".if":
            condition = None
            if self._pass is Pass.PASS1:
                tokens = list(lexer.tokenize())
                condition = self._evaluate(tokens, line, allow_forward=False) != 0
            self._conditionals.push_if(condition, location)
            return

        if line.operand:
            raise DirectiveError(f"{op} takes no operand", location)
        if op == ".else":
            self._conditionals.flip_else(location, frame.cond_floor)
        else:
            self._conditionals.pop_endif(location, frame.cond_floor)

    # =========================================================================
    # Instructions
    # =========================================================================

    def _instruction(self, line: SourceLine, tokens: list[Token]) -> None:
        """Size an instruction in pass 1; encode and emit it in pass 2."""
        mnemonic = line.operation.upper()
        location = line.location
        if not is_valid_instruction(mnemonic):
            raise AssemblySyntaxError(f"unknown instruction '{line.operation}'", location)

        operand = parse_operand(tokens, mnemonic, location)
        pc = self._require_pc()

        node = None
        zero_page = False
        if operand.tokens:
            node = self._evaluator.parse(operand.tokens, location)
            if operand.mode in _ADDRESS_FORMS and self._evaluator.all_defined_in_pass(node):
                zero_page = self._evaluator.evaluate_node(node) < 0x100

        mode, info = resolve_mode(mnemonic, operand.mode, zero_page, location)

        if self._pass is Pass.PASS2:
            value = self._evaluator.evaluate_node(node) if node is not None else 0
            self._emit(encode_instruction(info, mode, value, pc, location))

        self._advance(info.size)

    # =========================================================================
    # Directives
    # =========================================================================

    def _directive(self, op: str, line: SourceLine, tokens: list[Token], frame: SourceFrame) -> None:
        location = line.location

        if op == ".org":
            args = self._arguments(op, tokens, location, 1, 1)
            self._pc = self._evaluate(args[0], line, allow_forward=False)
            if self._origin is None:
                self._origin = self._pc
            logger.debug(f"{location}: .org ${self._pc:04X}")

        elif op == ".byte":
            args = self._arguments(op, tokens, location, 1)
            self._require_pc()
            if self._pass is Pass.PASS2:
                self._emit(encode_bytes(args, lambda arg: self._evaluate(arg, line)))
            self._advance(byte_directive_size(args))

        elif op == ".word":
            args = self._arguments(op, tokens, location, 1)
            self._require_pc()
            if self._pass is Pass.PASS2:
                self._emit(encode_words(args, lambda arg: self._evaluate(arg, line)))
            self._advance(word_directive_size(args))

        elif op == ".ds":
            args = self._arguments(op, tokens, location, 1, 2)
            self._require_pc()
            count = self._evaluate(args[0], line, allow_forward=False)
            if self._pass is Pass.PASS2:
                fill = self._evaluate(args[1], line) if len(args) > 1 else 0
                self._emit(encode_fill(count, fill))
            self._advance(count)

        elif op in BINARY_DIRECTIVES:
            filename = parse_filename(tokens, op, location)
            self._require_pc()
            path = self._resolver.resolve(filename, frame.filename)
            data = self._resolver.read_binary(path)
            self._emit(data)
            self._advance(len(data))

        elif op in INCLUDE_DIRECTIVES:
            self._include(op, tokens, location, frame)

        elif op in (".on", ".off"):
            self._arguments(op, tokens, location, 0, 0)
            self._output_on = op == ".on"

        elif op == ".assert":
            if self._pass is Pass.PASS2:
                self._check_assertion(line, tokens)

        elif op == ".dbg":
            self._set_template(tokens, location)

        else:
            raise DirectiveError(f"unknown directive '{line.operation}'", location)

    def _arguments(
        self,
        op: str,
        tokens: list[Token],
        location: SourceLocation,
        minimum: int,
        maximum: Optional[int] = None,
    ) -> list[list[Token]]:
        """Split directive arguments and check their count."""
        args = split_arguments(tokens, location)
        if len(args) < minimum or (maximum is not None and len(args) > maximum):
            if maximum == 0:
                expected = "no arguments"
            elif maximum == minimum:
                expected = f"{minimum} argument" + ("s" if minimum != 1 else "")
            elif maximum is None:
                expected = f"at least {minimum} argument" + ("s" if minimum != 1 else "")
            else:
                expected = f"{minimum} to {maximum} arguments"
            raise DirectiveError(f"{op} takes {expected}, got {len(args)}", location)
        return args

    def _include(self, op: str, tokens: list[Token], location: SourceLocation,
                 frame: SourceFrame) -> None:
        """Push an included source file onto the work-stack."""
        filename = parse_filename(tokens, op, location)
        path = self._resolver.resolve(filename, frame.filename)
        identity = self._resolver.identity(path)

        if op == ".lib" and identity in self._included:
            logger.debug(f"{location}: {filename} already included, skipping")
            return

        lines = self._resolver.read_text(path)
        self._sources.push(
            SourceFrame(path, identity, lines, cond_floor=self._conditionals.depth),
            location,
        )
        self._included.add(identity)

    def _check_assertion(self, line: SourceLine, tokens: list[Token]) -> None:
        """Evaluate `.assert`; a zero result is recorded, not raised."""
        if self._evaluate(tokens, line) != 0:
            return
        error = AssertionFailedError(
            f"assertion failed: {line.operand}",
            line.location,
            source_line=line.text,
        )
        logger.warning(f"{line.location}: assertion failed: {line.operand}")
        self._errors.add(error)

    def _set_template(self, tokens: list[Token], location: SourceLocation) -> None:
        body = [tok for tok in tokens if tok.type is not TokenType.EOF]
        if not body:
            self._template = None
            return
        if len(body) != 1 or body[0].type is not TokenType.STRING:
            raise DirectiveError(
                ".dbg requires a quoted template",
                location,
                hint='.dbg "P:{V}:{L}:{C}"',
            )
        self._template = DebugTemplate.parse(body[0].value, location) if body[0].value else None
