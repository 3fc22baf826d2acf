"""
asm65 CPU Package
=================

Static MOS 6502 instruction set data used by the assembler: addressing
modes, the (mnemonic, mode) -> opcode table, and lookup helpers.

Usage:
    from asm65.cpu import (
        AddressingMode,
        InstructionInfo,
        OPCODE_TABLE,
        get_instruction_info,
    )
"""

from asm65.cpu.mos6502 import (
    # Core types
    AddressingMode,
    InstructionInfo,
    MODE_SIZES,
    # Master instruction database
    OPCODE_TABLE,
    # Instruction set reference lists
    MNEMONICS,
    BRANCH_INSTRUCTIONS,
    ACCUMULATOR_INSTRUCTIONS,
    ZERO_PAGE_TO_ABSOLUTE,
    # Lookup functions
    get_instruction_info,
    get_valid_modes,
    is_valid_instruction,
    is_branch_instruction,
)

__all__ = [
    # Core types
    "AddressingMode",
    "InstructionInfo",
    "MODE_SIZES",
    # Master instruction database
    "OPCODE_TABLE",
    # Instruction set reference lists
    "MNEMONICS",
    "BRANCH_INSTRUCTIONS",
    "ACCUMULATOR_INSTRUCTIONS",
    "ZERO_PAGE_TO_ABSOLUTE",
    # Lookup functions
    "get_instruction_info",
    "get_valid_modes",
    "is_valid_instruction",
    "is_branch_instruction",
]
