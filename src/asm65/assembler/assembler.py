"""
6502 Assembler - Main Interface
===============================

This module provides the main Assembler class, which is the primary interface
for assembling 6502 source code. It configures the code generator (include
paths, predefined symbols, file resolver) and writes the output files.

Example Usage
-------------
>>> from asm65.assembler import Assembler
>>>
>>> asm = Assembler()
>>> asm.assemble_string('''
...         .org $8000
... start   lda #'H'
...         jsr print
...         rts
... print   rts
... ''')
>>> code = asm.get_code()
>>> asm.write_binary("hello.bin")

Command-Line Usage
------------------
The assembler can also be invoked from the command line:

    $ asm65 hello.s -o hello.bin -s hello.sym -g hello.dbg

Options:
    -o, --output FILE      Output object file
    -s, --symbols FILE     Generate symbol file
    -g, --debug FILE       Generate debug file
    -I, --include PATH     Add include search path
    -D, --define SYM=VAL   Pre-define symbol
    --max-include-depth N  Limit include nesting
    -v, --verbose          Verbose output
"""

from pathlib import Path
from typing import Optional

from asm65.assembler.codegen import CodeGenerator, DebugRecord
from asm65.assembler.sources import (
    DEFAULT_MAX_INCLUDE_DEPTH,
    FileSystemResolver,
    SourceResolver,
)
from asm65.assembler.symbols import Symbol
from asm65.errors import SourceFileNotFoundError, SourceReadError


class Assembler:
    """
    Main 6502 assembler class.

    The assembler supports:
    - The documented NMOS 6502 instruction set and addressing modes
    - Labels, `=`/`.equ` symbols and forward references
    - Include files (`.inc`, `.lib`, `.fil`) and binary files (`.bin`)
    - Conditional assembly (`.if`/`.else`/`.endif`)
    - Assertions and templated debug records
    - Raw binary, symbol and debug output files

    An Assembler is not safe for concurrent use from several threads.

    Attributes:
        verbose: If True, print progress messages
    """

    def __init__(
        self,
        verbose: bool = False,
        include_paths: list[str | Path] | None = None,
        defines: dict[str, int] | None = None,
        max_include_depth: int = DEFAULT_MAX_INCLUDE_DEPTH,
        resolver: Optional[SourceResolver] = None,
    ):
        """
        Initialize the assembler.

        Args:
            verbose: Enable verbose output
            include_paths: Directories to search for included files
            defines: Dictionary of pre-defined symbols
            max_include_depth: Maximum nesting of included source files
            resolver: File resolver to use instead of the filesystem;
                      include_paths is ignored when this is given
        """
        self._verbose = verbose
        self._include_paths = [Path(p) for p in (include_paths or [])]
        self._source_file: Optional[Path] = None

        if resolver is None:
            for path in self._include_paths:
                if not path.is_dir() and self._verbose:
                    print(f"Warning: include path '{path}' is not a directory")
            resolver = FileSystemResolver(self._include_paths)

        self._codegen = CodeGenerator(resolver=resolver, max_include_depth=max_include_depth)

        if defines:
            for name, value in defines.items():
                self.define_symbol(name, value)

    # =========================================================================
    # Configuration
    # =========================================================================

    def define_symbol(self, name: str, value: int) -> None:
        """
        Pre-define a symbol (like -D on command line).

        Args:
            name: Symbol name
            value: Symbol value
        """
        self._codegen.define_symbol(name, value)

    # =========================================================================
    # Assembly Methods
    # =========================================================================

    def assemble_string(self, source: str, filename: str = "<input>") -> bytes:
        """
        Assemble source code from a string.

        Args:
            source: Assembly source code
            filename: Filename for error messages and relative includes

        Returns:
            Generated object code as bytes

        Raises:
            AssemblerError: If assembly fails
        """
        if self._verbose:
            print(f"Assembling {filename}...")

        code = self._codegen.generate(source, filename)

        if self._verbose:
            print(f"Generated {len(code)} bytes of code")
            if self.has_errors():
                print(f"{self._codegen.error_count()} assertion(s) failed")

        return code

    def assemble_file(self, filepath: str | Path) -> bytes:
        """
        Assemble source code from a file.

        Args:
            filepath: Path to assembly source file

        Returns:
            Generated object code as bytes

        Raises:
            AssemblerError: If assembly fails or the file cannot be read
        """
        filepath = Path(filepath)
        self._source_file = filepath

        try:
            source = filepath.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise SourceFileNotFoundError(str(filepath), "file not found")
        except UnicodeDecodeError as e:
            raise SourceReadError(str(filepath), f"not valid UTF-8 text ({e.reason})")
        except OSError as e:
            raise SourceReadError(str(filepath), e.strerror or str(e))

        return self.assemble_string(source, str(filepath))

    # =========================================================================
    # Output Methods
    # =========================================================================

    def get_code(self) -> bytes:
        """Get the generated object code."""
        return self._codegen.get_code()

    def get_origin(self) -> int:
        """Get the origin address (first .org value)."""
        return self._codegen.get_origin()

    def get_symbols(self) -> dict[str, int]:
        """
        Get the symbol table.

        Returns:
            Dictionary mapping symbol names to values
        """
        return self._codegen.get_symbols()

    def get_assignments(self) -> list[Symbol]:
        """Get the `=`/`.equ` symbols, sorted by name."""
        return self._codegen.get_assignments()

    def get_debug_lines(self) -> list[str]:
        """Get the expanded debug records, one string per label."""
        return self._codegen.get_debug_lines()

    def get_debug_records(self) -> list[DebugRecord]:
        return self._codegen.get_debug_records()

    def write_binary(self, filepath: str | Path) -> None:
        """
        Write raw binary output.

        Args:
            filepath: Output file path
        """
        self._codegen.write_binary(filepath)

        if self._verbose:
            print(f"Wrote {len(self.get_code())} bytes to {filepath}")

    def write_symbols(self, filepath: str | Path) -> None:
        """
        Write symbol table file.

        Args:
            filepath: Output file path
        """
        self._codegen.write_symbols(filepath)

        if self._verbose:
            print(f"Wrote symbols to {filepath}")

    def write_debug(self, filepath: str | Path) -> None:
        """
        Write debug record file.

        Args:
            filepath: Output file path
        """
        self._codegen.write_debug(filepath)

        if self._verbose:
            print(f"Wrote {len(self.get_debug_lines())} debug records to {filepath}")

    # =========================================================================
    # Error Handling
    # =========================================================================

    def has_errors(self) -> bool:
        """
        Check if assembly produced errors (failed assertions).

        Returns:
            True if errors occurred
        """
        return self._codegen.has_errors()

    def get_error_report(self) -> str:
        """
        Get formatted error report.

        Returns:
            Error report string
        """
        return self._codegen.get_error_report()


# =============================================================================
# Convenience Functions
# =============================================================================

def assemble(source: str, filename: str = "<input>") -> bytes:
    """
    Convenience function to assemble source code.

    Args:
        source: Assembly source code
        filename: Virtual filename for errors

    Returns:
        Generated object code

    Raises:
        AssemblerError: If assembly fails
    """
    asm = Assembler()
    return asm.assemble_string(source, filename)


def assemble_file(filepath: str | Path) -> bytes:
    """
    Convenience function to assemble a file.

    Args:
        filepath: Path to source file

    Returns:
        Generated object code

    Raises:
        AssemblerError: If assembly fails
    """
    asm = Assembler()
    return asm.assemble_file(filepath)
