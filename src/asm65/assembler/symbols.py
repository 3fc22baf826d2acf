"""
Symbol Table
============

Maps case-sensitive symbol names to 16-bit values for one assembly run.

Symbols accumulate across both passes and are never removed. Pass 1
inserts them; pass 2 re-defines each one as its line is reached and checks
that the value has not moved (a moved label is a phase error).

A symbol counts as *defined in the current pass* once its defining line
has been processed in that pass. Contexts that forbid forward references
(`.if`, `.org`, `=`, `.equ`) only accept such symbols; the encoder also
uses this to pick zero-page operands from backward information alone.
"""

from dataclasses import dataclass
from enum import Enum, auto
import logging
from typing import Iterator, Optional

from asm65.errors import (
    DuplicateSymbolError,
    PhaseError,
    SourceLocation,
    UndefinedSymbolError,
)


logger = logging.getLogger(__name__)


class Pass(Enum):
    """The two traversals of the source."""
    PASS1 = 1
    PASS2 = 2


class SymbolOrigin(Enum):
    """How a symbol received its value."""
    LABEL = auto()        # current PC at a label
    ASSIGNMENT = auto()   # `=` or `.equ`
    PREDEFINED = auto()   # -D on the command line


@dataclass
class Symbol:
    """
    Symbol table entry.

    Attributes:
        name: Symbol name (case-sensitive)
        value: 16-bit value
        origin: How the value was assigned
        location: Where the symbol was defined
    """
    name: str
    value: int
    origin: SymbolOrigin
    location: SourceLocation

    @property
    def is_label(self) -> bool:
        return self.origin is SymbolOrigin.LABEL

    def __str__(self) -> str:
        return f"{self.name} ${self.value:04X}"


PREDEFINED_LOCATION = SourceLocation("<predefined>", 0, 0)


class SymbolTable:
    """
    Symbol table shared by both passes.

    Usage:
        table = SymbolTable()
        table.begin_pass(Pass.PASS1)
        table.define("start", 0x8000, SymbolOrigin.LABEL, location)
        table.lookup("start")   # 0x8000
    """

    def __init__(self):
        self._symbols: dict[str, Symbol] = {}
        self._defined_this_pass: set[str] = set()
        self._pass = Pass.PASS1

    @property
    def current_pass(self) -> Pass:
        return self._pass

    def begin_pass(self, pass_: Pass) -> None:
        """Start a traversal; no source symbol counts as defined yet."""
        self._pass = pass_
        self._defined_this_pass = {
            name for name, sym in self._symbols.items()
            if sym.origin is SymbolOrigin.PREDEFINED
        }

    def predefine(self, name: str, value: int) -> None:
        """Add a command-line symbol, visible from the first line of both passes."""
        self._symbols[name] = Symbol(name, value & 0xFFFF, SymbolOrigin.PREDEFINED,
                                     PREDEFINED_LOCATION)
        self._defined_this_pass.add(name)

    def define(
        self,
        name: str,
        value: int,
        origin: SymbolOrigin,
        location: Optional[SourceLocation] = None,
    ) -> Symbol:
        """
        Define a symbol in the current pass.

        Raises:
            DuplicateSymbolError: If the name was already defined in this pass
            PhaseError: If pass 2 computes a different value than pass 1
        """
        value &= 0xFFFF
        location = location or PREDEFINED_LOCATION
        existing = self._symbols.get(name)

        if name in self._defined_this_pass:
            raise DuplicateSymbolError(
                name,
                location=location,
                original_location=existing.location if existing else None,
            )

        if self._pass is Pass.PASS2:
            if existing is None:
                raise PhaseError(name, None, value, location=location)
            if existing.value != value:
                raise PhaseError(name, existing.value, value, location=location)
            self._defined_this_pass.add(name)
            return existing

        symbol = Symbol(name, value, origin, location)
        self._symbols[name] = symbol
        self._defined_this_pass.add(name)
        logger.debug(f"defined {symbol}")
        return symbol

    def lookup(
        self,
        name: str,
        location: Optional[SourceLocation] = None,
        allow_forward: bool = True,
    ) -> int:
        """
        Return the value of a symbol.

        Args:
            name: Symbol name (case-sensitive)
            location: Source location for error reporting
            allow_forward: If False, only symbols already defined in the
                           current pass are accepted

        Raises:
            UndefinedSymbolError: If the symbol is unknown, or is a forward
                                  reference where those are forbidden
        """
        symbol = self._symbols.get(name)
        if symbol is None:
            raise UndefinedSymbolError(
                name,
                location=location,
                similar_symbols=self._find_similar_symbols(name),
            )
        if not allow_forward and name not in self._defined_this_pass:
            raise UndefinedSymbolError(name, location=location, forward=True)
        return symbol.value

    def is_defined_in_pass(self, name: str) -> bool:
        """True if the symbol's defining line has been processed in this pass."""
        return name in self._defined_this_pass

    def get(self, name: str) -> Optional[Symbol]:
        return self._symbols.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._symbols

    def __iter__(self) -> Iterator[Symbol]:
        return iter(self._symbols.values())

    def __len__(self) -> int:
        return len(self._symbols)

    def as_dict(self) -> dict[str, int]:
        """Return a dictionary of symbol names to values."""
        return {name: sym.value for name, sym in self._symbols.items()}

    def assignments(self) -> list[Symbol]:
        """Return the `=`/`.equ` symbols, sorted by name."""
        return sorted(
            (sym for sym in self._symbols.values()
             if sym.origin is SymbolOrigin.ASSIGNMENT),
            key=lambda sym: sym.name,
        )

    # =========================================================================
    # Suggestions
    # =========================================================================

    def _find_similar_symbols(self, name: str) -> list[str]:
        """Find symbols with similar names for error hints."""
        name_lower = name.lower()
        similar = []

        for sym in self._symbols:
            sym_lower = sym.lower()
            if (
                sym_lower == name_lower or
                abs(len(sym) - len(name)) <= 1 and
                _edit_distance(name_lower, sym_lower) <= 2
            ):
                similar.append(sym)

        return similar[:3]


def _edit_distance(s1: str, s2: str) -> int:
    """Calculate Levenshtein edit distance between two strings."""
    if len(s1) < len(s2):
        s1, s2 = s2, s1

    distances = range(len(s2) + 1)
    for i, c1 in enumerate(s1):
        new_distances = [i + 1]
        for j, c2 in enumerate(s2):
            if c1 == c2:
                new_distances.append(distances[j])
            else:
                new_distances.append(1 + min((
                    distances[j],
                    distances[j + 1],
                    new_distances[-1]
                )))
        distances = new_distances

    return distances[-1]
