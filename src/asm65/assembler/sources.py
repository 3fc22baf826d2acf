"""
Source Files and Includes
=========================

File access for the assembler and the include work-stack.

The assembler never opens files itself. A `SourceResolver` turns a
filename written in the source into a path, and reads text (for
`.inc`/`.lib`/`.fil`) or raw bytes (for `.bin`/`.incbin`). The default
`FileSystemResolver` searches, in order:

1. the directory of the including file,
2. each configured include path,
3. the current working directory.

Backslashes in filenames are treated as `/`.

Nested includes are tracked on an explicit `SourceStack` of frames rather
than by recursion, so the nesting limit and include loops are checked in
one place.
"""

from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Optional

from asm65.errors import (
    IncludeDepthError,
    SourceFileNotFoundError,
    SourceLocation,
    SourceReadError,
)


logger = logging.getLogger(__name__)

DEFAULT_MAX_INCLUDE_DEPTH = 16


def normalize_filename(filename: str) -> str:
    """Treat `\\` and `/` as the same separator."""
    return filename.replace("\\", "/")


# =============================================================================
# Resolvers
# =============================================================================

class SourceResolver:
    """
    Interface for locating and reading files referenced from source.

    Subclasses implement `resolve`, `read_text` and `read_binary`. Errors
    are raised without a location; the pass driver attaches it.
    """

    def resolve(self, filename: str, including_file: Optional[str] = None) -> str:
        """
        Map a filename from the source to the path used for reading.

        Raises:
            SourceFileNotFoundError: If the file cannot be found
        """
        raise NotImplementedError

    def identity(self, path: str) -> str:
        """Return a key that is equal for two paths naming the same file."""
        return path

    def read_text(self, path: str) -> list[str]:
        """Return the lines of a source file, without line terminators."""
        raise NotImplementedError

    def read_binary(self, path: str) -> bytes:
        """Return the raw contents of a binary file."""
        raise NotImplementedError


class FileSystemResolver(SourceResolver):
    """
    Resolves files on disk.

    Files are read on every request; nothing is cached between passes.
    """

    def __init__(self, include_paths: Optional[list[str | Path]] = None):
        self.include_paths = [Path(p) for p in (include_paths or [])]

    def resolve(self, filename: str, including_file: Optional[str] = None) -> str:
        name = normalize_filename(filename)
        candidates = []

        if including_file and not including_file.startswith("<"):
            candidates.append(Path(including_file).parent / name)
        candidates.extend(path / name for path in self.include_paths)
        candidates.append(Path(name))

        for candidate in candidates:
            if candidate.is_file():
                logger.debug(f"resolved '{filename}' to {candidate}")
                return str(candidate)

        raise SourceFileNotFoundError(
            filename,
            "file not found",
            search_paths=[str(c.parent) for c in candidates],
        )

    def identity(self, path: str) -> str:
        return str(Path(path).resolve())

    def read_text(self, path: str) -> list[str]:
        try:
            return Path(path).read_text(encoding="utf-8").splitlines()
        except UnicodeDecodeError as e:
            raise SourceReadError(path, f"not valid UTF-8 text ({e.reason})")
        except OSError as e:
            raise SourceReadError(path, e.strerror or str(e))

    def read_binary(self, path: str) -> bytes:
        try:
            return Path(path).read_bytes()
        except OSError as e:
            raise SourceReadError(path, e.strerror or str(e))


class MemoryResolver(SourceResolver):
    """
    Resolves files from an in-memory mapping of name to contents.

    Useful for embedding the assembler and for tests. Text files are
    given as `str`, binary files as `bytes`.

        resolver = MemoryResolver({"defs.s": "WIDTH = 40", "font.bin": b"\\x00" * 8})
    """

    def __init__(self, files: dict[str, str | bytes]):
        self.files = {normalize_filename(name): data for name, data in files.items()}

    def resolve(self, filename: str, including_file: Optional[str] = None) -> str:
        name = normalize_filename(filename)
        if name not in self.files:
            raise SourceFileNotFoundError(filename, "file not found")
        return name

    def read_text(self, path: str) -> list[str]:
        data = self.files[path]
        if isinstance(data, bytes):
            data = data.decode("utf-8", errors="replace")
        return data.splitlines()

    def read_binary(self, path: str) -> bytes:
        data = self.files[path]
        if isinstance(data, str):
            return data.encode("utf-8")
        return data


# =============================================================================
# Include Work-Stack
# =============================================================================

@dataclass
class SourceFrame:
    """
    One file being read.

    Attributes:
        filename: Path used in messages and for resolving nested includes
        identity: Resolver key used for loop detection and `.lib`
        lines: The file's lines
        cond_floor: Conditional stack depth when the file was entered
        next_index: Index of the next line to read
    """
    filename: str
    identity: str
    lines: list[str] = field(default_factory=list)
    cond_floor: int = 0
    next_index: int = 0

    @property
    def exhausted(self) -> bool:
        return self.next_index >= len(self.lines)

    def next_line(self) -> tuple[int, str]:
        """Return (line number, text) and advance."""
        text = self.lines[self.next_index]
        self.next_index += 1
        return self.next_index, text

    @property
    def end_location(self) -> SourceLocation:
        return SourceLocation(self.filename, max(len(self.lines), 1))


class SourceStack:
    """
    Stack of open source files.

    The bottom frame is the main source; each include pushes a frame.

    Raises IncludeDepthError when more than `max_depth` includes are
    nested or when a file is included while it is already open.
    """

    def __init__(self, max_depth: int = DEFAULT_MAX_INCLUDE_DEPTH):
        self.max_depth = max_depth
        self._frames: list[SourceFrame] = []

    def push(self, frame: SourceFrame, location: Optional[SourceLocation] = None) -> None:
        if any(open_frame.identity == frame.identity for open_frame in self._frames):
            raise IncludeDepthError(
                frame.filename,
                "include loop (file is already being assembled)",
                location,
            )
        if len(self._frames) > self.max_depth:
            raise IncludeDepthError(
                frame.filename,
                f"includes nested more than {self.max_depth} deep",
                location,
            )
        self._frames.append(frame)
        logger.debug(f"entering {frame.filename} (depth {self.depth})")

    def pop(self) -> SourceFrame:
        frame = self._frames.pop()
        logger.debug(f"leaving {frame.filename}")
        return frame

    @property
    def top(self) -> SourceFrame:
        return self._frames[-1]

    @property
    def depth(self) -> int:
        """Number of nested includes (0 while in the main source)."""
        return max(len(self._frames) - 1, 0)

    def __len__(self) -> int:
        return len(self._frames)

    def __bool__(self) -> bool:
        return bool(self._frames)

    def clear(self) -> None:
        self._frames.clear()
