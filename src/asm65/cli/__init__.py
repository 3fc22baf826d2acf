"""
asm65 Command-Line Interface
============================

- **asm65**: the 6502 assembler, a Click-based CLI application.
"""

__all__ = ["asm65"]
