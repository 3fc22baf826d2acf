"""
6502 Operand Parser
===================

Classifies an instruction's operand tokens into an addressing-mode form and
isolates the expression tokens inside it. Classification looks only at the
shape of the operand, never at symbol values, so an instruction's form is
the same in both passes.

Addressing Mode Detection
-------------------------
| Syntax      | Form             | Example        |
|-------------|------------------|----------------|
| (none)      | Implied          | rts, asl       |
| a           | Implied (accum.) | asl a          |
| #value      | Immediate        | lda #$41       |
| value       | Address          | lda $40        |
| value,x     | Address,X        | lda table,x    |
| value,y     | Address,Y        | ldx $40,y      |
| (value)     | Indirect         | jmp ($fffc)    |
| (value,x)   | Indexed indirect | lda ($40,x)    |
| (value),y   | Indirect indexed | lda ($40),y    |
| value       | Relative         | bne loop       |

The address forms are resolved to zero page or absolute by the encoder.
`(value)` is only the indirect form for `jmp`; for other mnemonics the
parentheses just group the expression.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional

from asm65.errors import AssemblySyntaxError, DirectiveError, SourceLocation
from asm65.assembler.lexer import Token, TokenType
from asm65.cpu import ACCUMULATOR_INSTRUCTIONS, is_branch_instruction


# =============================================================================
# Addressing Mode for Parser (includes ambiguous cases)
# =============================================================================

class ParsedAddressingMode(Enum):
    """
    Addressing modes as determined from operand syntax.

    The ADDRESS forms are resolved to zero page or absolute during
    encoding.
    """
    IMPLIED = auto()            # no operand, or accumulator `a`
    IMMEDIATE = auto()          # #value
    ADDRESS = auto()            # value
    ADDRESS_X = auto()          # value,x
    ADDRESS_Y = auto()          # value,y
    INDIRECT = auto()           # (value), jmp only
    INDEXED_INDIRECT = auto()   # (value,x)
    INDIRECT_INDEXED = auto()   # (value),y
    RELATIVE = auto()           # branch target


@dataclass
class Operand:
    """
    Instruction operand with its syntactic addressing form.

    Attributes:
        mode: The addressing form
        tokens: Expression tokens for the operand value (empty for implied)
    """
    mode: ParsedAddressingMode
    tokens: list[Token] = field(default_factory=list)


# =============================================================================
# Operand Parsing
# =============================================================================

def parse_operand(
    tokens: list[Token],
    mnemonic: str,
    location: Optional[SourceLocation] = None,
) -> Operand:
    """
    Classify an instruction operand.

    Args:
        tokens: Operand tokens (a trailing EOF token is ignored)
        mnemonic: Instruction mnemonic (any case)
        location: Location of the instruction, for errors

    Raises:
        AssemblySyntaxError: If the operand shape is not a 6502 form
    """
    body = _strip_eof(tokens)
    mnemonic = mnemonic.upper()

    if not body:
        return Operand(ParsedAddressingMode.IMPLIED)

    if (
        mnemonic in ACCUMULATOR_INSTRUCTIONS and len(body) == 1 and
        _is_register(body[0], "a")
    ):
        return Operand(ParsedAddressingMode.IMPLIED)

    if body[0].type is TokenType.HASH:
        _reject_index(body[1:], "immediate")
        return Operand(ParsedAddressingMode.IMMEDIATE, body[1:])

    if is_branch_instruction(mnemonic):
        _reject_index(body, "branch")
        return Operand(ParsedAddressingMode.RELATIVE, body)

    parts = split_arguments(body, location)
    if len(parts) > 2:
        raise AssemblySyntaxError("too many ',' in operand", parts[2][0].location)

    if len(parts) == 2:
        base, index = parts
        register = _index_register(index)
        if register == "y" and _is_wrapped(base):
            return Operand(ParsedAddressingMode.INDIRECT_INDEXED, base[1:-1])
        if register == "x":
            return Operand(ParsedAddressingMode.ADDRESS_X, base)
        return Operand(ParsedAddressingMode.ADDRESS_Y, base)

    if _is_wrapped(body):
        inner = body[1:-1]
        inner_parts = split_arguments(inner, body[0].location) if inner else [inner]
        if len(inner_parts) == 2:
            if _index_register(inner_parts[1]) != "x":
                raise AssemblySyntaxError(
                    "only ',x' is allowed inside parentheses",
                    inner_parts[1][0].location,
                    hint="use (value),y for indirect indexed",
                )
            return Operand(ParsedAddressingMode.INDEXED_INDIRECT, inner_parts[0])
        if len(inner_parts) > 2:
            raise AssemblySyntaxError("too many ',' in operand", inner_parts[2][0].location)
        if mnemonic == "JMP":
            return Operand(ParsedAddressingMode.INDIRECT, inner)

    return Operand(ParsedAddressingMode.ADDRESS, body)


def split_arguments(
    tokens: list[Token],
    location: Optional[SourceLocation] = None,
) -> list[list[Token]]:
    """
    Split tokens at top-level commas.

    Raises:
        AssemblySyntaxError: If an argument is empty (`1,,2` or a trailing
                             comma)
    """
    args: list[list[Token]] = []
    current_arg: list[Token] = []
    last_comma: Optional[Token] = None
    paren_depth = 0

    for tok in _strip_eof(tokens):
        if tok.type is TokenType.COMMA and paren_depth == 0:
            if not current_arg:
                raise AssemblySyntaxError("missing argument before ','", tok.location)
            args.append(current_arg)
            current_arg = []
            last_comma = tok
            continue

        if tok.type is TokenType.LPAREN:
            paren_depth += 1
        elif tok.type is TokenType.RPAREN:
            paren_depth -= 1

        current_arg.append(tok)

    if current_arg:
        args.append(current_arg)
    elif args:
        raise AssemblySyntaxError("missing argument after ','", last_comma.location)

    return args


def parse_filename(tokens: list[Token], directive: str,
                   location: Optional[SourceLocation] = None) -> str:
    """
    Return the quoted filename argument of a file directive.

    Raises:
        DirectiveError: If the argument is not a single quoted string
    """
    body = _strip_eof(tokens)
    if len(body) != 1 or body[0].type is not TokenType.STRING or not body[0].value:
        raise DirectiveError(
            f"{directive} requires a quoted filename",
            body[0].location if body else location,
            hint=f'{directive} "file.s"',
        )
    return body[0].value


# =============================================================================
# Helpers
# =============================================================================

def _strip_eof(tokens: list[Token]) -> list[Token]:
    if tokens and tokens[-1].type is TokenType.EOF:
        return tokens[:-1]
    return list(tokens)


def _is_register(tok: Token, name: str) -> bool:
    return tok.type is TokenType.IDENTIFIER and tok.value.lower() == name


def _index_register(tokens: list[Token]) -> str:
    """Return 'x' or 'y' for an index part, else raise."""
    if len(tokens) == 1 and tokens[0].type is TokenType.IDENTIFIER:
        register = tokens[0].value.lower()
        if register in ("x", "y"):
            return register
    raise AssemblySyntaxError(
        "expected 'x' or 'y' after ','",
        tokens[0].location,
    )


def _is_wrapped(tokens: list[Token]) -> bool:
    """True if the first '(' is closed by the last token."""
    if len(tokens) < 2 or tokens[0].type is not TokenType.LPAREN:
        return False
    depth = 0
    for i, tok in enumerate(tokens):
        if tok.type is TokenType.LPAREN:
            depth += 1
        elif tok.type is TokenType.RPAREN:
            depth -= 1
            if depth == 0:
                return i == len(tokens) - 1
    return False


def _reject_index(tokens: list[Token], form: str) -> None:
    for tok in tokens:
        if tok.type is TokenType.COMMA:
            raise AssemblySyntaxError(f"unexpected ',' in {form} operand", tok.location)
