"""
Conditional Assembly
====================

Tracks nested `.if` / `.else` / `.endif` blocks and decides whether the
current line is live (assembled) or skipped.

Each `.if` is decided once, in pass 1, and the decision is appended to a
list in source order. Pass 2 replays that list by position instead of
re-evaluating, so both passes skip exactly the same lines.

An `.if` met inside a skipped region still consumes a decision slot
(recorded as False without evaluating its expression), which keeps the
replay index aligned whatever the enclosing conditions are.
"""

from dataclasses import dataclass
from typing import Optional

from asm65.errors import (
    SourceLocation,
    UnclosedIfError,
    UnmatchedElseError,
    UnmatchedEndifError,
)


@dataclass
class ConditionalFrame:
    """
    One open `.if` block.

    Attributes:
        condition: The block's own condition (flipped by `.else`)
        else_seen: True once `.else` has been processed
        parent_live: Liveness of the enclosing block when `.if` was met
        location: Where the `.if` appeared, for unclosed-block errors
    """
    condition: bool
    else_seen: bool
    parent_live: bool
    location: Optional[SourceLocation] = None

    @property
    def live(self) -> bool:
        return self.parent_live and self.condition


class ConditionalStack:
    """
    Stack of open conditional blocks plus the recorded pass-1 decisions.

    Usage:
        cond = ConditionalStack()
        cond.begin_pass(replay=False)
        if cond.live:
            value = evaluate(...)
        cond.push_if(value != 0, location)
        ...
        cond.pop_endif(location)
    """

    def __init__(self):
        self._frames: list[ConditionalFrame] = []
        self._decisions: list[bool] = []
        self._replay = False
        self._next_decision = 0

    def begin_pass(self, replay: bool) -> None:
        """
        Reset the stack for a new pass.

        Args:
            replay: False to record decisions (pass 1), True to replay them
        """
        self._frames.clear()
        self._replay = replay
        self._next_decision = 0
        if not replay:
            self._decisions.clear()

    @property
    def live(self) -> bool:
        """True if the current line should be assembled."""
        return not self._frames or self._frames[-1].live

    @property
    def depth(self) -> int:
        return len(self._frames)

    def push_if(self, condition: Optional[bool], location: Optional[SourceLocation] = None) -> bool:
        """
        Open a block.

        In pass 1, `condition` is the evaluated result (None when the line
        is not live and the expression was not evaluated). In pass 2 the
        argument is ignored and the recorded decision is used.

        Returns:
            The liveness of the new block
        """
        parent_live = self.live
        if self._replay:
            decision = self._decisions[self._next_decision]
        else:
            decision = bool(condition) and parent_live
            self._decisions.append(decision)
        self._next_decision += 1

        self._frames.append(ConditionalFrame(decision, False, parent_live, location))
        return self.live

    def flip_else(self, location: Optional[SourceLocation] = None, floor: int = 0) -> None:
        """
        Handle `.else` for the innermost block.

        Args:
            location: Source location for errors
            floor: Stack depth when the current file was entered; blocks
                   below it belong to an including file

        Raises:
            UnmatchedElseError: No open block in this file, or `.else`
                                already seen for it
        """
        if len(self._frames) <= floor:
            raise UnmatchedElseError(".else without .if", location)
        frame = self._frames[-1]
        if frame.else_seen:
            raise UnmatchedElseError(
                "second .else for the same .if",
                location,
                hint=f"the .if is at {frame.location}" if frame.location else None,
            )
        frame.condition = not frame.condition
        frame.else_seen = True

    def pop_endif(self, location: Optional[SourceLocation] = None, floor: int = 0) -> None:
        """
        Handle `.endif`.

        Raises:
            UnmatchedEndifError: No open block in this file
        """
        if len(self._frames) <= floor:
            raise UnmatchedEndifError(".endif without .if", location)
        self._frames.pop()

    def check_closed(self, floor: int = 0, location: Optional[SourceLocation] = None) -> None:
        """
        Verify that a file closed every block it opened.

        Raises:
            UnclosedIfError: A block opened in this file is still open
        """
        if len(self._frames) > floor:
            frame = self._frames[-1]
            raise UnclosedIfError(
                ".if without matching .endif",
                frame.location or location,
            )
