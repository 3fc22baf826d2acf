"""
Instruction and Data Encoding
=============================

Turns parsed instructions and data directives into sizes and bytes.

Sizes depend only on syntax: the mnemonic, the operand form and whether
the operand is made purely of symbols already defined earlier in the
current pass. A forward reference therefore never changes an
instruction's length between passes.

Zero Page Selection
-------------------
An address operand uses zero page when:

1. every symbol it references is already defined in this pass,
2. its value is below $100, and
3. the mnemonic has the zero-page form.

Otherwise the absolute form is used. Mnemonics that only have the
zero-page form (`stx v,y`, `sty v,x`) always use it; the value is then
range-checked in pass 2.
"""

from typing import Callable, Optional

from asm65.errors import (
    AddressingModeError,
    BranchRangeError,
    ExpressionError,
    SourceLocation,
)
from asm65.assembler.lexer import Token, TokenType
from asm65.assembler.parser import ParsedAddressingMode
from asm65.cpu import (
    AddressingMode,
    InstructionInfo,
    ZERO_PAGE_TO_ABSOLUTE,
    get_instruction_info,
    get_valid_modes,
)


# Parsed forms with a single fixed CPU mode
_FIXED_MODES = {
    ParsedAddressingMode.IMPLIED: AddressingMode.IMPLIED,
    ParsedAddressingMode.IMMEDIATE: AddressingMode.IMMEDIATE,
    ParsedAddressingMode.INDIRECT: AddressingMode.INDIRECT,
    ParsedAddressingMode.INDEXED_INDIRECT: AddressingMode.INDEXED_INDIRECT,
    ParsedAddressingMode.INDIRECT_INDEXED: AddressingMode.INDIRECT_INDEXED,
    ParsedAddressingMode.RELATIVE: AddressingMode.RELATIVE,
}

# Address forms -> their zero-page CPU mode
_ADDRESS_MODES = {
    ParsedAddressingMode.ADDRESS: AddressingMode.ZERO_PAGE,
    ParsedAddressingMode.ADDRESS_X: AddressingMode.ZERO_PAGE_X,
    ParsedAddressingMode.ADDRESS_Y: AddressingMode.ZERO_PAGE_Y,
}


# =============================================================================
# Instruction Encoding
# =============================================================================

def resolve_mode(
    mnemonic: str,
    parsed_mode: ParsedAddressingMode,
    zero_page: bool = False,
    location: Optional[SourceLocation] = None,
) -> tuple[AddressingMode, InstructionInfo]:
    """
    Pick the CPU addressing mode for an instruction.

    Args:
        mnemonic: Instruction mnemonic (any case)
        parsed_mode: Form determined by the operand parser
        zero_page: True if the operand qualifies for zero page
        location: Source location for errors

    Returns:
        (mode, instruction info)

    Raises:
        AddressingModeError: If the mnemonic has no matching form
    """
    mnemonic = mnemonic.upper()

    if parsed_mode in _ADDRESS_MODES:
        zp_mode = _ADDRESS_MODES[parsed_mode]
        abs_mode = ZERO_PAGE_TO_ABSOLUTE[zp_mode]
        zp_info = get_instruction_info(mnemonic, zp_mode)
        abs_info = get_instruction_info(mnemonic, abs_mode)
        if zp_info is not None and (zero_page or abs_info is None):
            return zp_mode, zp_info
        if abs_info is not None:
            return abs_mode, abs_info
        mode = abs_mode
    else:
        mode = _FIXED_MODES[parsed_mode]
        info = get_instruction_info(mnemonic, mode)
        if info is not None:
            return mode, info

    raise AddressingModeError(
        mnemonic,
        str(mode),
        location=location,
        valid_modes=[str(m) for m in get_valid_modes(mnemonic)],
    )


def encode_instruction(
    info: InstructionInfo,
    mode: AddressingMode,
    value: int,
    pc: int,
    location: Optional[SourceLocation] = None,
) -> bytes:
    """
    Produce the bytes of one instruction.

    Args:
        info: Opcode and size from `resolve_mode`
        mode: The resolved addressing mode
        value: Operand value (ignored for implied)
        pc: Address of the instruction's opcode byte
        location: Source location for errors

    Raises:
        BranchRangeError: If a branch target is more than -128/+127 away
        ExpressionError: If a byte operand does not fit in 8 bits
    """
    if info.operand_size == 0:
        return bytes([info.opcode])

    if mode is AddressingMode.RELATIVE:
        return bytes([info.opcode, branch_offset(value, pc, location)])

    if info.operand_size == 1:
        return bytes([info.opcode, check_byte(value, location)])

    return bytes([info.opcode, value & 0xFF, (value >> 8) & 0xFF])


def branch_offset(target: int, pc: int, location: Optional[SourceLocation] = None) -> int:
    """
    Return the displacement byte for a branch at `pc` to `target`.

    The displacement is measured from the instruction after the branch and
    wraps around the 64K address space.
    """
    offset = ((target - pc - 2 + 0x8000) & 0xFFFF) - 0x8000
    if not -128 <= offset <= 127:
        raise BranchRangeError(target, offset, location=location)
    return offset & 0xFF


def check_byte(value: int, location: Optional[SourceLocation] = None) -> int:
    """
    Ensure a value fits in a byte; $FF00-$FFFF count as negative bytes.

    Returns:
        The low 8 bits of the value
    """
    value &= 0xFFFF
    if 0xFF < value < 0xFF00:
        raise ExpressionError(f"value ${value:04X} does not fit in a byte", location)
    return value & 0xFF


# =============================================================================
# Data Directives
# =============================================================================

def string_argument(arg: list[Token]) -> Optional[str]:
    """Return the text if a `.byte` argument is a lone string, else None."""
    if len(arg) == 1 and arg[0].type is TokenType.STRING:
        return arg[0].value
    return None


def string_bytes(text: str) -> bytes:
    """Bytes stored for a `.byte` string: its UTF-8 encoding."""
    return text.encode("utf-8")


def byte_directive_size(args: list[list[Token]]) -> int:
    """Size of `.byte`: one byte per expression, the encoded length of each string."""
    size = 0
    for arg in args:
        text = string_argument(arg)
        size += len(string_bytes(text)) if text is not None else 1
    return size


def word_directive_size(args: list[list[Token]]) -> int:
    """Size of `.word`: two bytes per expression."""
    return 2 * len(args)


def encode_bytes(args: list[list[Token]], evaluate: Callable[[list[Token]], int]) -> bytes:
    """Encode `.byte` arguments; expressions contribute their low byte."""
    data = bytearray()
    for arg in args:
        text = string_argument(arg)
        if text is not None:
            data.extend(string_bytes(text))
        else:
            data.append(evaluate(arg) & 0xFF)
    return bytes(data)


def encode_words(args: list[list[Token]], evaluate: Callable[[list[Token]], int]) -> bytes:
    """Encode `.word` arguments, little-endian."""
    data = bytearray()
    for arg in args:
        value = evaluate(arg)
        data.append(value & 0xFF)
        data.append((value >> 8) & 0xFF)
    return bytes(data)


def encode_fill(count: int, fill: int) -> bytes:
    """Encode `.ds`: `count` copies of the low byte of `fill`."""
    return bytes([fill & 0xFF]) * count
