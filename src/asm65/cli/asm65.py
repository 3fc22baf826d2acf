"""
asm65 - 6502 Assembler Command-Line Interface
=============================================

This module implements the command-line interface for the 6502 assembler.

Usage Examples
--------------
Basic assembly:
    $ asm65 hello.s

With output file:
    $ asm65 hello.s -o hello.bin

Generate all output files:
    $ asm65 hello.s -o hello.bin -s hello.sym -g hello.dbg

With include path and defines:
    $ asm65 -I ./include -D DEBUG=1 -D FAST program.s

Verbose mode:
    $ asm65 -v hello.s
"""

import logging
import re
import sys
from pathlib import Path
from typing import Optional

import click

from asm65 import __version__
from asm65.assembler import Assembler
from asm65.assembler.expressions import evaluate_expression
from asm65.assembler.sources import DEFAULT_MAX_INCLUDE_DEPTH
from asm65.cli.errors import ExitCode, handle_cli_exception
from asm65.errors import AssemblerError


_SYMBOL_NAME_RE = re.compile(r"^[A-Za-z_]\w*$")


def _parse_defines(ctx: click.Context, param: click.Parameter, values: tuple[str, ...]) -> dict[str, int]:
    """
    Parse -D options.

    NAME=VALUE takes VALUE as an expression ($hex, %binary, @octal, decimal;
    0x prefixes are also accepted). NAME alone means 1.
    """
    defines: dict[str, int] = {}
    for defn in values:
        name, sep, value_str = defn.partition("=")
        name = name.strip()
        if not _SYMBOL_NAME_RE.match(name):
            raise click.BadParameter(f"invalid symbol name in '{defn}'", ctx, param)

        if not sep:
            defines[name] = 1
            continue

        value_str = value_str.strip()
        if value_str.lower().startswith("0x"):
            value_str = "$" + value_str[2:]
        try:
            defines[name] = evaluate_expression(value_str)
        except AssemblerError as e:
            raise click.BadParameter(f"invalid value in '{defn}': {e.message}", ctx, param)
    return defines


def _setup_logging(verbose: bool) -> None:
    """Show the assembler's debug log in verbose mode."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s: %(message)s")
        logging.getLogger("asm65").setLevel(logging.DEBUG)


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output object file (default: input.bin)",
)
@click.option(
    "-s", "--symbols",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Generate symbol file (= and .equ symbols)",
)
@click.option(
    "-g", "--debug",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Generate debug file (one line per label while .dbg is active)",
)
@click.option(
    "-I", "--include",
    multiple=True,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Add include search path (can be repeated)",
)
@click.option(
    "-D", "--define",
    multiple=True,
    callback=_parse_defines,
    help="Define symbol (format: NAME=VALUE, or NAME for 1)",
)
@click.option(
    "--max-include-depth",
    type=click.IntRange(min=0),
    default=DEFAULT_MAX_INCLUDE_DEPTH,
    show_default=True,
    help="Maximum nesting of included source files",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="asm65")
def main(
    input_file: Path,
    output: Optional[Path],
    symbols: Optional[Path],
    debug: Optional[Path],
    include: tuple[Path, ...],
    define: dict[str, int],
    max_include_depth: int,
    verbose: bool,
) -> None:
    """
    Assemble 6502 source code.

    INPUT_FILE is the assembly source file to assemble.

    The object file holds the raw bytes emitted while output is on, in
    program order. A failed .assert still writes the outputs but makes
    the exit status 1.

    \b
    Examples:
        asm65 hello.s                # Outputs hello.bin
        asm65 hello.s -o out.bin     # Specify output file
        asm65 -I inc/ hello.s        # Add include path
        asm65 -D DEBUG=1 hello.s     # Define symbol
    """
    _setup_logging(verbose)
    output_file = output if output is not None else input_file.with_suffix(".bin")

    try:
        asm = Assembler(
            verbose=verbose,
            include_paths=list(include),
            defines=define,
            max_include_depth=max_include_depth,
        )

        asm.assemble_file(input_file)

        asm.write_binary(output_file)
        if symbols:
            asm.write_symbols(symbols)
        if debug:
            asm.write_debug(debug)

        if asm.has_errors():
            click.echo(asm.get_error_report(), err=True)
            sys.exit(ExitCode.BUILD_ERROR)

        if verbose:
            code = asm.get_code()
            click.echo(f"Assembly complete: {len(code)} bytes at ${asm.get_origin():04X}")
            click.echo(f"Defined {len(asm.get_symbols())} symbols")

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Assembly")


if __name__ == "__main__":
    main()
