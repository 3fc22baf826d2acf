# =============================================================================
# test_sources.py - Source Resolver and Include Stack Tests
# =============================================================================
# Tests for locating included files and for the include work-stack.
#
# Test coverage includes:
#   - Search order of the filesystem resolver
#   - Path normalization
#   - Read errors
#   - Loop and depth detection on the include stack
# =============================================================================

import pytest

from asm65.assembler.sources import (
    FileSystemResolver,
    MemoryResolver,
    SourceFrame,
    SourceStack,
    normalize_filename,
)
from asm65.errors import IncludeDepthError, SourceFileNotFoundError, SourceReadError


# =============================================================================
# Resolver Tests
# =============================================================================

class TestFileSystemResolver:
    """Test filesystem lookup."""

    def test_including_directory_first(self, tmp_path):
        """A file next to the includer wins over the include paths."""
        (tmp_path / "a").mkdir()
        (tmp_path / "b").mkdir()
        (tmp_path / "a" / "defs.s").write_text("A = 1")
        (tmp_path / "b" / "defs.s").write_text("B = 1")
        resolver = FileSystemResolver([tmp_path / "b"])

        path = resolver.resolve("defs.s", str(tmp_path / "a" / "main.s"))
        assert resolver.read_text(path) == ["A = 1"]

    def test_include_paths_in_order(self, tmp_path):
        """Include paths are searched in the order given."""
        (tmp_path / "first").mkdir()
        (tmp_path / "second").mkdir()
        (tmp_path / "first" / "x.s").write_text("first")
        (tmp_path / "second" / "x.s").write_text("second")
        resolver = FileSystemResolver([tmp_path / "first", tmp_path / "second"])

        assert resolver.read_text(resolver.resolve("x.s")) == ["first"]

    def test_not_found(self, tmp_path):
        """A missing file lists the searched directories."""
        resolver = FileSystemResolver([tmp_path])
        with pytest.raises(SourceFileNotFoundError) as exc_info:
            resolver.resolve("missing.s")
        assert str(tmp_path) in exc_info.value.search_paths

    def test_identity_is_absolute(self, tmp_path):
        """Two spellings of one file share an identity."""
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "f.s").write_text("")
        resolver = FileSystemResolver()
        assert resolver.identity(str(tmp_path / "sub" / "f.s")) == resolver.identity(
            str(tmp_path / "sub" / ".." / "sub" / "f.s")
        )

    def test_binary(self, tmp_path):
        """Binary files are read as bytes."""
        (tmp_path / "data.bin").write_bytes(b"\x00\xff")
        resolver = FileSystemResolver([tmp_path])
        assert resolver.read_binary(resolver.resolve("data.bin")) == b"\x00\xff"

    def test_invalid_text(self, tmp_path):
        """Source files must be UTF-8."""
        (tmp_path / "bad.s").write_bytes(b"\xff\xfe\x00")
        resolver = FileSystemResolver([tmp_path])
        with pytest.raises(SourceReadError):
            resolver.read_text(resolver.resolve("bad.s"))

    def test_normalize(self):
        """Backslashes become slashes."""
        assert normalize_filename(r"lib\io\screen.s") == "lib/io/screen.s"


class TestMemoryResolver:
    """Test the in-memory resolver."""

    def test_text_and_binary(self):
        """str entries are text, bytes entries are binary."""
        resolver = MemoryResolver({"a.s": "x = 1\ny = 2", "b.bin": b"\x01"})
        assert resolver.read_text(resolver.resolve("a.s")) == ["x = 1", "y = 2"]
        assert resolver.read_binary(resolver.resolve("b.bin")) == b"\x01"

    def test_missing(self):
        """Unknown names raise SourceFileNotFoundError."""
        with pytest.raises(SourceFileNotFoundError):
            MemoryResolver({}).resolve("nope.s")


# =============================================================================
# Include Stack Tests
# =============================================================================

class TestSourceStack:
    """Test the include work-stack."""

    def test_frames_read_lines(self):
        """Frames hand out numbered lines."""
        frame = SourceFrame("main.s", "main.s", ["one", "two"])
        assert frame.next_line() == (1, "one")
        assert frame.next_line() == (2, "two")
        assert frame.exhausted

    def test_depth(self):
        """Depth counts includes, not the main file."""
        stack = SourceStack(max_depth=4)
        stack.push(SourceFrame("main.s", "main.s"))
        assert stack.depth == 0
        stack.push(SourceFrame("a.s", "a.s"))
        assert stack.depth == 1
        assert stack.top.filename == "a.s"
        stack.pop()
        assert stack.depth == 0

    def test_loop(self):
        """Pushing an open file is an include loop."""
        stack = SourceStack()
        stack.push(SourceFrame("main.s", "main.s"))
        stack.push(SourceFrame("a.s", "a.s"))
        with pytest.raises(IncludeDepthError, match="loop"):
            stack.push(SourceFrame("./a.s", "a.s"))

    def test_reinclude_after_pop(self):
        """A closed file may be included again."""
        stack = SourceStack()
        stack.push(SourceFrame("main.s", "main.s"))
        stack.push(SourceFrame("a.s", "a.s"))
        stack.pop()
        stack.push(SourceFrame("a.s", "a.s"))
        assert len(stack) == 2

    def test_depth_limit(self):
        """More than max_depth nested includes is an error."""
        stack = SourceStack(max_depth=1)
        stack.push(SourceFrame("main.s", "main.s"))
        stack.push(SourceFrame("a.s", "a.s"))
        with pytest.raises(IncludeDepthError, match="nested more than 1 deep"):
            stack.push(SourceFrame("b.s", "b.s"))
