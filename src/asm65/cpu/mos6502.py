"""
MOS 6502 Instruction Set Definition
===================================

This module defines the documented NMOS 6502 instruction set: every
mnemonic, the addressing modes it accepts, and the opcode byte and total
instruction size for each combination. The 6502 is little-endian; 16-bit
operands are stored low byte first.

Addressing Modes
----------------
| Mode             | Syntax     | Size | Example       |
|------------------|------------|------|---------------|
| Implied          | (none)     | 1    | clc, asl      |
| Immediate        | #v         | 2    | lda #$41      |
| Zero page        | v          | 2    | lda $40       |
| Zero page,X      | v,x        | 2    | lda $40,x     |
| Zero page,Y      | v,y        | 2    | ldx $40,y     |
| Absolute         | v          | 3    | lda $1234     |
| Absolute,X       | v,x        | 3    | lda $1234,x   |
| Absolute,Y       | v,y        | 3    | lda $1234,y   |
| Indirect         | (v)        | 3    | jmp ($fffc)   |
| Indexed indirect | (v,x)      | 2    | lda ($40,x)   |
| Indirect indexed | (v),y      | 2    | lda ($40),y   |
| Relative         | v          | 2    | bne loop      |

Accumulator forms (`asl a`) are folded into IMPLIED: they share the
one-byte encoding and carry no operand.

Reference
---------
- MOS MCS6500 Microcomputer Family Programming Manual (1976)
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


# =============================================================================
# Addressing Mode Enumeration
# =============================================================================

class AddressingMode(Enum):
    """6502 addressing modes."""
    IMPLIED = auto()
    IMMEDIATE = auto()
    ZERO_PAGE = auto()
    ZERO_PAGE_X = auto()
    ZERO_PAGE_Y = auto()
    ABSOLUTE = auto()
    ABSOLUTE_X = auto()
    ABSOLUTE_Y = auto()
    INDIRECT = auto()
    INDEXED_INDIRECT = auto()   # (zp,x)
    INDIRECT_INDEXED = auto()   # (zp),y
    RELATIVE = auto()

    def __str__(self) -> str:
        """Return human-readable name for error messages."""
        return {
            AddressingMode.IMPLIED: "implied",
            AddressingMode.IMMEDIATE: "immediate",
            AddressingMode.ZERO_PAGE: "zero page",
            AddressingMode.ZERO_PAGE_X: "zero page,x",
            AddressingMode.ZERO_PAGE_Y: "zero page,y",
            AddressingMode.ABSOLUTE: "absolute",
            AddressingMode.ABSOLUTE_X: "absolute,x",
            AddressingMode.ABSOLUTE_Y: "absolute,y",
            AddressingMode.INDIRECT: "indirect",
            AddressingMode.INDEXED_INDIRECT: "(zero page,x)",
            AddressingMode.INDIRECT_INDEXED: "(zero page),y",
            AddressingMode.RELATIVE: "relative",
        }[self]


# Total instruction size (opcode + operand) for each mode
MODE_SIZES: dict[AddressingMode, int] = {
    AddressingMode.IMPLIED: 1,
    AddressingMode.IMMEDIATE: 2,
    AddressingMode.ZERO_PAGE: 2,
    AddressingMode.ZERO_PAGE_X: 2,
    AddressingMode.ZERO_PAGE_Y: 2,
    AddressingMode.ABSOLUTE: 3,
    AddressingMode.ABSOLUTE_X: 3,
    AddressingMode.ABSOLUTE_Y: 3,
    AddressingMode.INDIRECT: 3,
    AddressingMode.INDEXED_INDIRECT: 2,
    AddressingMode.INDIRECT_INDEXED: 2,
    AddressingMode.RELATIVE: 2,
}


# =============================================================================
# Instruction Information
# =============================================================================

@dataclass(frozen=True)
class InstructionInfo:
    """
    Encoding of one (mnemonic, addressing mode) combination.

    Attributes:
        opcode: The opcode byte
        size: Total instruction size in bytes (including operand)
        operand_size: Size of operand in bytes (0, 1, or 2)
    """
    opcode: int
    size: int
    operand_size: int

    def __repr__(self) -> str:
        return f"InstructionInfo(opcode=${self.opcode:02X}, size={self.size})"


# =============================================================================
# Opcode Table
# =============================================================================
# Compact form: mnemonic -> {mode: opcode}. OPCODE_TABLE below expands it
# into (mnemonic, mode) -> InstructionInfo.
# =============================================================================

_M = AddressingMode

_OPCODES: dict[str, dict[AddressingMode, int]] = {
    # Load / store
    "LDA": {_M.IMMEDIATE: 0xA9, _M.ZERO_PAGE: 0xA5, _M.ZERO_PAGE_X: 0xB5,
            _M.ABSOLUTE: 0xAD, _M.ABSOLUTE_X: 0xBD, _M.ABSOLUTE_Y: 0xB9,
            _M.INDEXED_INDIRECT: 0xA1, _M.INDIRECT_INDEXED: 0xB1},
    "LDX": {_M.IMMEDIATE: 0xA2, _M.ZERO_PAGE: 0xA6, _M.ZERO_PAGE_Y: 0xB6,
            _M.ABSOLUTE: 0xAE, _M.ABSOLUTE_Y: 0xBE},
    "LDY": {_M.IMMEDIATE: 0xA0, _M.ZERO_PAGE: 0xA4, _M.ZERO_PAGE_X: 0xB4,
            _M.ABSOLUTE: 0xAC, _M.ABSOLUTE_X: 0xBC},
    "STA": {_M.ZERO_PAGE: 0x85, _M.ZERO_PAGE_X: 0x95, _M.ABSOLUTE: 0x8D,
            _M.ABSOLUTE_X: 0x9D, _M.ABSOLUTE_Y: 0x99,
            _M.INDEXED_INDIRECT: 0x81, _M.INDIRECT_INDEXED: 0x91},
    "STX": {_M.ZERO_PAGE: 0x86, _M.ZERO_PAGE_Y: 0x96, _M.ABSOLUTE: 0x8E},
    "STY": {_M.ZERO_PAGE: 0x84, _M.ZERO_PAGE_X: 0x94, _M.ABSOLUTE: 0x8C},

    # Arithmetic and logic
    "ADC": {_M.IMMEDIATE: 0x69, _M.ZERO_PAGE: 0x65, _M.ZERO_PAGE_X: 0x75,
            _M.ABSOLUTE: 0x6D, _M.ABSOLUTE_X: 0x7D, _M.ABSOLUTE_Y: 0x79,
            _M.INDEXED_INDIRECT: 0x61, _M.INDIRECT_INDEXED: 0x71},
    "SBC": {_M.IMMEDIATE: 0xE9, _M.ZERO_PAGE: 0xE5, _M.ZERO_PAGE_X: 0xF5,
            _M.ABSOLUTE: 0xED, _M.ABSOLUTE_X: 0xFD, _M.ABSOLUTE_Y: 0xF9,
            _M.INDEXED_INDIRECT: 0xE1, _M.INDIRECT_INDEXED: 0xF1},
    "AND": {_M.IMMEDIATE: 0x29, _M.ZERO_PAGE: 0x25, _M.ZERO_PAGE_X: 0x35,
            _M.ABSOLUTE: 0x2D, _M.ABSOLUTE_X: 0x3D, _M.ABSOLUTE_Y: 0x39,
            _M.INDEXED_INDIRECT: 0x21, _M.INDIRECT_INDEXED: 0x31},
    "ORA": {_M.IMMEDIATE: 0x09, _M.ZERO_PAGE: 0x05, _M.ZERO_PAGE_X: 0x15,
            _M.ABSOLUTE: 0x0D, _M.ABSOLUTE_X: 0x1D, _M.ABSOLUTE_Y: 0x19,
            _M.INDEXED_INDIRECT: 0x01, _M.INDIRECT_INDEXED: 0x11},
    "EOR": {_M.IMMEDIATE: 0x49, _M.ZERO_PAGE: 0x45, _M.ZERO_PAGE_X: 0x55,
            _M.ABSOLUTE: 0x4D, _M.ABSOLUTE_X: 0x5D, _M.ABSOLUTE_Y: 0x59,
            _M.INDEXED_INDIRECT: 0x41, _M.INDIRECT_INDEXED: 0x51},
    "CMP": {_M.IMMEDIATE: 0xC9, _M.ZERO_PAGE: 0xC5, _M.ZERO_PAGE_X: 0xD5,
            _M.ABSOLUTE: 0xCD, _M.ABSOLUTE_X: 0xDD, _M.ABSOLUTE_Y: 0xD9,
            _M.INDEXED_INDIRECT: 0xC1, _M.INDIRECT_INDEXED: 0xD1},
    "CPX": {_M.IMMEDIATE: 0xE0, _M.ZERO_PAGE: 0xE4, _M.ABSOLUTE: 0xEC},
    "CPY": {_M.IMMEDIATE: 0xC0, _M.ZERO_PAGE: 0xC4, _M.ABSOLUTE: 0xCC},
    "BIT": {_M.ZERO_PAGE: 0x24, _M.ABSOLUTE: 0x2C},

    # Read-modify-write
    "ASL": {_M.IMPLIED: 0x0A, _M.ZERO_PAGE: 0x06, _M.ZERO_PAGE_X: 0x16,
            _M.ABSOLUTE: 0x0E, _M.ABSOLUTE_X: 0x1E},
    "LSR": {_M.IMPLIED: 0x4A, _M.ZERO_PAGE: 0x46, _M.ZERO_PAGE_X: 0x56,
            _M.ABSOLUTE: 0x4E, _M.ABSOLUTE_X: 0x5E},
    "ROL": {_M.IMPLIED: 0x2A, _M.ZERO_PAGE: 0x26, _M.ZERO_PAGE_X: 0x36,
            _M.ABSOLUTE: 0x2E, _M.ABSOLUTE_X: 0x3E},
    "ROR": {_M.IMPLIED: 0x6A, _M.ZERO_PAGE: 0x66, _M.ZERO_PAGE_X: 0x76,
            _M.ABSOLUTE: 0x6E, _M.ABSOLUTE_X: 0x7E},
    "INC": {_M.ZERO_PAGE: 0xE6, _M.ZERO_PAGE_X: 0xF6, _M.ABSOLUTE: 0xEE,
            _M.ABSOLUTE_X: 0xFE},
    "DEC": {_M.ZERO_PAGE: 0xC6, _M.ZERO_PAGE_X: 0xD6, _M.ABSOLUTE: 0xCE,
            _M.ABSOLUTE_X: 0xDE},

    # Jumps and subroutines
    "JMP": {_M.ABSOLUTE: 0x4C, _M.INDIRECT: 0x6C},
    "JSR": {_M.ABSOLUTE: 0x20},
    "RTS": {_M.IMPLIED: 0x60},
    "RTI": {_M.IMPLIED: 0x40},
    "BRK": {_M.IMPLIED: 0x00},

    # Branches
    "BPL": {_M.RELATIVE: 0x10},
    "BMI": {_M.RELATIVE: 0x30},
    "BVC": {_M.RELATIVE: 0x50},
    "BVS": {_M.RELATIVE: 0x70},
    "BCC": {_M.RELATIVE: 0x90},
    "BCS": {_M.RELATIVE: 0xB0},
    "BNE": {_M.RELATIVE: 0xD0},
    "BEQ": {_M.RELATIVE: 0xF0},

    # Register transfers, increments, stack
    "TAX": {_M.IMPLIED: 0xAA},
    "TXA": {_M.IMPLIED: 0x8A},
    "TAY": {_M.IMPLIED: 0xA8},
    "TYA": {_M.IMPLIED: 0x98},
    "TSX": {_M.IMPLIED: 0xBA},
    "TXS": {_M.IMPLIED: 0x9A},
    "INX": {_M.IMPLIED: 0xE8},
    "INY": {_M.IMPLIED: 0xC8},
    "DEX": {_M.IMPLIED: 0xCA},
    "DEY": {_M.IMPLIED: 0x88},
    "PHA": {_M.IMPLIED: 0x48},
    "PLA": {_M.IMPLIED: 0x68},
    "PHP": {_M.IMPLIED: 0x08},
    "PLP": {_M.IMPLIED: 0x28},

    # Flags
    "CLC": {_M.IMPLIED: 0x18},
    "SEC": {_M.IMPLIED: 0x38},
    "CLI": {_M.IMPLIED: 0x58},
    "SEI": {_M.IMPLIED: 0x78},
    "CLV": {_M.IMPLIED: 0xB8},
    "CLD": {_M.IMPLIED: 0xD8},
    "SED": {_M.IMPLIED: 0xF8},

    "NOP": {_M.IMPLIED: 0xEA},
}

OPCODE_TABLE: dict[tuple[str, AddressingMode], InstructionInfo] = {
    (mnemonic, mode): InstructionInfo(
        opcode=opcode,
        size=MODE_SIZES[mode],
        operand_size=MODE_SIZES[mode] - 1,
    )
    for mnemonic, modes in _OPCODES.items()
    for mode, opcode in modes.items()
}


# =============================================================================
# Instruction Categories
# =============================================================================

MNEMONICS: frozenset[str] = frozenset(_OPCODES)

BRANCH_INSTRUCTIONS: frozenset[str] = frozenset(
    mnemonic for mnemonic, modes in _OPCODES.items()
    if AddressingMode.RELATIVE in modes
)

# Instructions whose implied form is the accumulator form (`asl a`)
ACCUMULATOR_INSTRUCTIONS: frozenset[str] = frozenset({"ASL", "LSR", "ROL", "ROR"})

# Zero-page form -> the absolute form used when zero page is not possible
ZERO_PAGE_TO_ABSOLUTE: dict[AddressingMode, AddressingMode] = {
    AddressingMode.ZERO_PAGE: AddressingMode.ABSOLUTE,
    AddressingMode.ZERO_PAGE_X: AddressingMode.ABSOLUTE_X,
    AddressingMode.ZERO_PAGE_Y: AddressingMode.ABSOLUTE_Y,
}


# =============================================================================
# Lookup Functions
# =============================================================================

def get_instruction_info(
    mnemonic: str,
    mode: AddressingMode
) -> Optional[InstructionInfo]:
    """
    Look up instruction information by mnemonic and addressing mode.

    Returns:
        InstructionInfo if found, None if the combination is invalid
    """
    return OPCODE_TABLE.get((mnemonic.upper(), mode))


def get_valid_modes(mnemonic: str) -> list[AddressingMode]:
    """Get all valid addressing modes for an instruction."""
    return list(_OPCODES.get(mnemonic.upper(), {}))


def is_valid_instruction(mnemonic: str) -> bool:
    """Check if a mnemonic is a 6502 instruction."""
    return mnemonic.upper() in MNEMONICS


def is_branch_instruction(mnemonic: str) -> bool:
    """Check if an instruction is a relative branch."""
    return mnemonic.upper() in BRANCH_INSTRUCTIONS
