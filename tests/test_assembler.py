# =============================================================================
# test_assembler.py - Full Assembler Integration Tests
# =============================================================================
# End-to-end integration tests for the 6502 assembler.
# These tests verify the full pipeline from source text to object bytes,
# symbol tables and debug records.
#
# Source listings put labels in column 1 and indent everything else, as
# the line format requires.
#
# Test coverage includes:
#   - Instruction encoding for every addressing form
#   - Forward references and zero-page selection
#   - Data directives, output mode and the program counter
#   - Conditional assembly across both passes
#   - Include and binary files, loops and depth limits
#   - Assertions, phase errors and error locations
#   - Debug records and output files
# =============================================================================

import pytest

from asm65.assembler import Assembler, AssemblyState, CodeGenerator, MemoryResolver
from asm65.errors import (
    AddressingModeError,
    AssemblerError,
    AssemblySyntaxError,
    BranchRangeError,
    DirectiveError,
    DuplicateSymbolError,
    ExpressionError,
    IncludeDepthError,
    PhaseError,
    SourceFileNotFoundError,
    UnclosedIfError,
    UndefinedSymbolError,
    UnmatchedElseError,
    UnmatchedEndifError,
)


# =============================================================================
# Helper Functions
# =============================================================================

def assemble(source: str, **kwargs) -> bytes:
    """Assemble a source string and return the object bytes."""
    return Assembler(**kwargs).assemble_string(source)


def assembler_for(source: str, **kwargs) -> Assembler:
    """Assemble a source string and return the Assembler for inspection."""
    asm = Assembler(**kwargs)
    asm.assemble_string(source)
    return asm


class GrowingResolver(MemoryResolver):
    """Returns a longer binary file on every read."""

    def __init__(self):
        super().__init__({"data.bin": b""})
        self.reads = 0

    def read_binary(self, path: str) -> bytes:
        self.reads += 1
        return b"\x00" * self.reads


# =============================================================================
# Full Assembly Pipeline Tests
# =============================================================================

class TestFullPipeline:
    """Test the complete assembly pipeline from source to bytes."""

    def test_minimal_program(self):
        """Assemble a minimal program."""
        source = """
            .org $8000
            rts
        """
        assert assemble(source) == b"\x60"

    def test_program_with_labels(self):
        """Labels resolve in both directions."""
        source = """
            .org $8000
start       lda #$41
            jmp start
        """
        assert assemble(source) == b"\xa9\x41\x4c\x00\x80"

    def test_empty_source(self):
        """An empty source produces no bytes."""
        assert assemble("") == b""

    def test_convenience_function(self):
        """The module-level assemble() helper."""
        from asm65 import assemble as assemble_source
        assert assemble_source("    .org 0\n    nop") == b"\xea"

    def test_origin(self):
        """get_origin() returns the first .org."""
        asm = assembler_for("""
            .org $C000
            nop
            .org $D000
            nop
        """)
        assert asm.get_origin() == 0xC000

    def test_output_in_program_order(self):
        """.org changes are positional, not seeks."""
        source = """
            .org $8000
            .byte 1
            .org $4000
            .byte 2
        """
        assert assemble(source) == b"\x01\x02"

    def test_program_counter_wraps(self):
        """The program counter wraps from $FFFF to 0."""
        asm = assembler_for("""
            .org $FFFF
            nop
wrapped     nop
        """)
        assert asm.get_code() == b"\xea\xea"
        assert asm.get_symbols()["wrapped"] == 0

    def test_keywords_case_insensitive(self):
        """Mnemonics and directives in any case."""
        source = """
            .ORG $8000
            LDA #1
            Rts
        """
        assert assemble(source) == b"\xa9\x01\x60"


# =============================================================================
# Instruction Encoding Tests
# =============================================================================

class TestInstructions:
    """Test every addressing form end to end."""

    def test_all_addressing_forms(self):
        """One instruction per form."""
        source = """
            .org $0200
            lda #1
            sta $10
            sta $1234
            lda $10,x
            ldx $10,y
            lda $1234,y
            lda ($20,x)
            lda ($20),y
            jmp ($1234)
            asl
            asl a
            rts
        """
        assert assemble(source) == bytes([
            0xA9, 0x01,
            0x85, 0x10,
            0x8D, 0x34, 0x12,
            0xB5, 0x10,
            0xB6, 0x10,
            0xB9, 0x34, 0x12,
            0xA1, 0x20,
            0xB1, 0x20,
            0x6C, 0x34, 0x12,
            0x0A,
            0x0A,
            0x60,
        ])

    def test_backward_branch(self):
        """bne to an earlier label."""
        source = """
            .org $8000
loop        dex
            bne loop
        """
        assert assemble(source) == b"\xca\xd0\xfd"

    def test_forward_branch(self):
        """beq to a later label."""
        source = """
            .org $8000
            beq done
            nop
done        rts
        """
        assert assemble(source) == b"\xf0\x01\xea\x60"

    def test_branch_out_of_range(self):
        """Branches beyond +127 fail."""
        source = """
            .org 0
            bne far
            .ds 200
far         nop
        """
        with pytest.raises(BranchRangeError):
            assemble(source)

    def test_character_immediate(self):
        """lda #'3' loads $33."""
        assert assemble("    .org 0\n    lda #'3'") == b"\xa9\x33"

    def test_low_high_immediate(self):
        """#<v and #>v select bytes."""
        source = """
            .org $8000
            lda #<table
            ldx #>table
table       .byte 0
        """
        assert assemble(source) == b"\xa9\x04\xa2\x80\x00"

    def test_grouped_operand_is_not_indirect(self):
        """(v) only means indirect for jmp."""
        source = """
base        = $10
            .org 0
            lda (base+1)
        """
        assert assemble(source) == b"\xa5\x11"

    def test_immediate_too_large(self):
        """Immediate values must fit in a byte."""
        with pytest.raises(ExpressionError):
            assemble("    .org 0\n    lda #$100")

    def test_negative_immediate(self):
        """lda #-1 is $FF."""
        assert assemble("    .org 0\n    lda #-1") == b"\xa9\xff"

    def test_unknown_instruction(self):
        """Unknown mnemonics are syntax errors."""
        with pytest.raises(AssemblySyntaxError, match="unknown instruction"):
            assemble("    .org 0\n    bogus")

    def test_invalid_addressing_mode(self):
        """sta #1 does not exist."""
        with pytest.raises(AddressingModeError):
            assemble("    .org 0\n    sta #1")


# =============================================================================
# Forward Reference and Zero Page Tests
# =============================================================================

class TestForwardReferences:
    """Test operand sizing with forward references."""

    def test_backward_small_symbol_uses_zero_page(self):
        """A symbol defined earlier below $100 selects zero page."""
        source = """
zp          = $10
            .org $8000
            lda zp
        """
        assert assemble(source) == b"\xa5\x10"

    def test_forward_small_symbol_uses_absolute(self):
        """A later symbol selects absolute even if it is small."""
        source = """
            .org $8000
            jmp later
            lda value
later       rts
value       = $10
        """
        assert assemble(source) == b"\x4c\x06\x80\xad\x10\x00\x60"

    def test_zero_page_only_form_with_forward_reference(self):
        """stx v,y has no absolute form."""
        source = """
            .org 0
            stx buf,y
buf         = $20
        """
        assert assemble(source) == b"\x96\x20"

    def test_forward_word(self):
        """.word may refer ahead."""
        source = """
            .org $8000
            .word end
end
        """
        assert assemble(source) == b"\x02\x80"

    def test_label_addresses_stable_between_passes(self):
        """Symbols after forward references keep their address."""
        asm = assembler_for("""
            .org $8000
            lda later
            lda later,x
            jsr later
later       rts
        """)
        assert asm.get_symbols()["later"] == 0x8009

    def test_undefined_symbol(self):
        """A symbol never defined fails in pass 2."""
        with pytest.raises(UndefinedSymbolError) as exc_info:
            assemble("    .org 0\n    jsr nowhere")
        assert exc_info.value.location.line == 2

    def test_forward_reference_in_org(self):
        """.org cannot use a later symbol."""
        source = """
            .org start
start       = $8000
        """
        with pytest.raises(UndefinedSymbolError):
            assemble(source)

    def test_forward_reference_in_assignment(self):
        """= cannot use a later symbol."""
        source = """
a           = b
b           = 1
        """
        with pytest.raises(UndefinedSymbolError):
            assemble(source)

    def test_forward_reference_in_ds_count(self):
        """.ds count cannot use a later symbol."""
        source = """
            .org 0
            .ds size
size        = 2
        """
        with pytest.raises(UndefinedSymbolError):
            assemble(source)


# =============================================================================
# Symbol Tests
# =============================================================================

class TestSymbols:
    """Test labels and assignments."""

    def test_assignment_forms(self):
        """= and .equ both define symbols."""
        asm = assembler_for("""
one         = 1
two         .equ 2
three=3
            four = 4
        """)
        symbols = asm.get_symbols()
        assert symbols["one"] == 1
        assert symbols["two"] == 2
        assert symbols["three"] == 3
        assert symbols["four"] == 4

    def test_assignment_uses_pc(self):
        """* in an assignment is the current PC."""
        asm = assembler_for("""
            .org $8000
            nop
here        = *
        """)
        assert asm.get_symbols()["here"] == 0x8001

    def test_label_on_org_line(self):
        """A label takes the PC before the line's operation."""
        asm = assembler_for("""
            .org $8000
here        .org $9000
there       nop
        """)
        assert asm.get_symbols()["here"] == 0x8000
        assert asm.get_symbols()["there"] == 0x9000

    def test_colon_label(self):
        """Labels may end with a colon, even when indented."""
        asm = assembler_for("""
            .org $8000
first:      nop
    second: nop
        """)
        assert asm.get_symbols()["first"] == 0x8000
        assert asm.get_symbols()["second"] == 0x8001

    def test_duplicate_label(self):
        """Labels cannot be redefined."""
        source = """
            .org 0
dup         nop
dup         nop
        """
        with pytest.raises(DuplicateSymbolError):
            assemble(source)

    def test_label_before_org(self):
        """A label needs the program counter."""
        with pytest.raises(AssemblerError, match="program counter was never set"):
            assemble("start nop")

    def test_star_before_org(self):
        """* needs the program counter."""
        with pytest.raises(AssemblerError, match="program counter was never set"):
            assemble("here = *")

    def test_assignment_without_label(self):
        """= needs a name."""
        with pytest.raises(DirectiveError, match="missing label"):
            assemble("    = 5")

    def test_predefined_symbol(self):
        """defines= behaves like an earlier assignment."""
        source = """
            .org 0
            .if DEBUG
            .byte 1
            .endif
        """
        assert assemble(source, defines={"DEBUG": 1}) == b"\x01"

    def test_predefined_collides(self):
        """A source definition of a predefined name is a duplicate."""
        with pytest.raises(DuplicateSymbolError):
            assemble("DEBUG = 0", defines={"DEBUG": 1})

    def test_assignments_listed(self):
        """get_assignments() lists =/.equ symbols only."""
        asm = assembler_for("""
zeta        = 2
alpha       = 1
            .org 0
label       nop
        """, defines={"X": 5})
        assert [sym.name for sym in asm.get_assignments()] == ["alpha", "zeta"]


# =============================================================================
# Data Directive Tests
# =============================================================================

class TestDataDirectives:
    """Test .byte, .word, .ds, .on and .off."""

    def test_byte_values_and_strings(self):
        """Strings give one byte per character."""
        source = """
            .org 0
            .byte "Hi", 0, 'x', $1234
        """
        assert assemble(source) == b"Hi\x00x\x34"

    def test_word(self):
        """Little-endian words."""
        assert assemble("    .org 0\n    .word $1234, 1") == b"\x34\x12\x01\x00"

    def test_ds_with_fill(self):
        """.ds 3,4 emits three 4s."""
        assert assemble("    .org 0\n    .ds 3, 4") == bytes([4, 4, 4])

    def test_ds_default_fill(self):
        """.ds 2 emits two zeros."""
        assert assemble("    .org 0\n    .ds 2") == bytes([0, 0])

    def test_ds_advances_pc(self):
        """Labels after .ds account for its size."""
        asm = assembler_for("""
            .org $8000
            .ds 10
after       nop
        """)
        assert asm.get_symbols()["after"] == 0x800A

    def test_output_off(self):
        """.off suppresses bytes but the PC still advances."""
        asm = assembler_for("""
            .org $8000
            .off
            .ds 5
            .on
here        .byte 1
        """)
        assert asm.get_code() == b"\x01"
        assert asm.get_symbols()["here"] == 0x8005

    def test_byte_needs_argument(self):
        """.byte without arguments is an error."""
        with pytest.raises(DirectiveError):
            assemble("    .org 0\n    .byte")

    def test_on_takes_no_argument(self):
        """.on 1 is an error."""
        with pytest.raises(DirectiveError):
            assemble("    .org 0\n    .on 1")

    def test_unknown_directive(self):
        """Unknown pseudo-ops are rejected."""
        with pytest.raises(DirectiveError, match="unknown directive"):
            assemble("    .org 0\n    .blah 1")

    def test_empty_argument(self):
        """.byte 1,,2 is a syntax error."""
        with pytest.raises(AssemblySyntaxError):
            assemble("    .org 0\n    .byte 1,,2")


# =============================================================================
# Conditional Assembly Tests
# =============================================================================

class TestConditionals:
    """Test .if/.else/.endif."""

    def test_if_false_takes_else(self):
        """.if 0 assembles the .else branch."""
        source = """
            .org 0
            .if 0
            .byte 1
            .else
            .byte 2
            .endif
        """
        assert assemble(source) == b"\x02"

    def test_if_true_takes_then(self):
        """.if 1 assembles the .if branch."""
        source = """
            .org 0
            .if 1
            .byte 1
            .else
            .byte 2
            .endif
        """
        assert assemble(source) == b"\x01"

    def test_nested(self):
        """Nested blocks."""
        source = """
            .org 0
            .if 1
            .if 0
            .byte 1
            .else
            .byte 2
            .endif
            .byte 3
            .endif
        """
        assert assemble(source) == b"\x02\x03"

    def test_skipped_lines_not_assembled(self):
        """Dead lines may hold anything, even undefined symbols."""
        source = """
            .org 0
            .if 0
            .if nowhere
            bogus instruction
            .endif
label       .byte "unterminated
            .endif
            .byte 9
        """
        assert assemble(source) == b"\x09"

    def test_dead_labels_not_defined(self):
        """Labels in a false block are not defined."""
        asm = assembler_for("""
            .org 0
            .if 0
skipped     nop
            .endif
        """)
        assert "skipped" not in asm.get_symbols()

    def test_forward_reference_in_if(self):
        """.if cannot use a later symbol."""
        source = """
            .if LATER
            .endif
LATER       = 1
        """
        with pytest.raises(UndefinedSymbolError):
            assemble(source)

    def test_unclosed_if(self):
        """A file must close its blocks."""
        source = """
            .org 0
            .if 1
            nop
        """
        with pytest.raises(UnclosedIfError) as exc_info:
            assemble(source)
        assert exc_info.value.location.line == 3

    def test_endif_without_if(self):
        """Stray .endif."""
        with pytest.raises(UnmatchedEndifError):
            assemble("    .endif")

    def test_else_without_if(self):
        """Stray .else."""
        with pytest.raises(UnmatchedElseError):
            assemble("    .else")

    def test_second_else(self):
        """Two .else for one .if."""
        source = """
            .if 1
            .else
            .else
            .endif
        """
        with pytest.raises(UnmatchedElseError):
            assemble(source)

    def test_label_on_if(self):
        """Conditionals cannot carry labels."""
        source = """
here        .if 1
            .endif
        """
        with pytest.raises(DirectiveError):
            assemble(source)

    def test_label_on_conditional_in_skipped_block(self):
        """Labels on .if/.else/.endif are rejected inside false blocks too."""
        source = """
            .if 0
            .if 1
inner       .endif
            .endif
        """
        with pytest.raises(DirectiveError, match="label not allowed on .endif"):
            assemble(source)

    def test_indented_label_on_conditional_in_skipped_block(self):
        """An indented `name:` before .else is a label as well."""
        source = """
            .if 0
            .if 1
    other:  .else
            .endif
            .endif
        """
        with pytest.raises(DirectiveError, match="label not allowed on .else"):
            assemble(source)

    def test_endif_takes_no_operand(self):
        """.endif 1 is rejected."""
        source = """
            .if 1
            .endif 1
        """
        with pytest.raises(DirectiveError):
            assemble(source)

    def test_relational_condition(self):
        """Comparisons drive conditions."""
        source = """
VERSION     = 3
            .org 0
            .if VERSION >= 2
            .byte 1
            .endif
            .if VERSION <> 3
            .byte 2
            .endif
        """
        assert assemble(source) == b"\x01"


# =============================================================================
# Include File Tests
# =============================================================================

class TestIncludes:
    """Test .inc/.lib/.fil and .bin/.incbin."""

    def test_include(self):
        """Included symbols are visible after the .inc line."""
        resolver = MemoryResolver({"defs.s": "WIDTH = 40\n"})
        source = """
            .inc "defs.s"
            .org 0
            .byte WIDTH
        """
        assert assemble(source, resolver=resolver) == b"\x28"

    def test_fil_alias(self):
        """.fil is the same as .inc."""
        resolver = MemoryResolver({"code.s": "    nop"})
        source = """
            .org 0
            .fil "code.s"
        """
        assert assemble(source, resolver=resolver) == b"\xea"

    def test_include_twice_duplicates(self):
        """.inc does not guard against double inclusion."""
        resolver = MemoryResolver({"defs.s": "WIDTH = 40"})
        source = """
            .inc "defs.s"
            .inc "defs.s"
        """
        with pytest.raises(DuplicateSymbolError):
            assemble(source, resolver=resolver)

    def test_lib_once_per_pass(self):
        """.lib skips a file already included."""
        resolver = MemoryResolver({"defs.s": "WIDTH = 40"})
        asm = assembler_for("""
            .lib "defs.s"
            .lib "defs.s"
        """, resolver=resolver)
        assert asm.get_symbols()["WIDTH"] == 40

    def test_lib_after_inc(self):
        """.lib also skips a file brought in by .inc."""
        resolver = MemoryResolver({"defs.s": "WIDTH = 40"})
        asm = assembler_for("""
            .inc "defs.s"
            .lib "defs.s"
        """, resolver=resolver)
        assert asm.get_symbols()["WIDTH"] == 40

    def test_nested_include(self):
        """Includes may include other files."""
        resolver = MemoryResolver({
            "a.s": '    .inc "b.s"\n    .byte 1',
            "b.s": "    .byte 2",
        })
        source = """
            .org 0
            .inc "a.s"
            .byte 3
        """
        assert assemble(source, resolver=resolver) == b"\x02\x01\x03"

    def test_include_loop(self):
        """A file including itself indirectly is an error."""
        resolver = MemoryResolver({
            "a.s": '    .inc "b.s"',
            "b.s": '    .inc "a.s"',
        })
        with pytest.raises(IncludeDepthError, match="loop"):
            assemble('    .inc "a.s"', resolver=resolver)

    def test_include_depth_limit(self):
        """Nesting beyond the limit is an error."""
        resolver = MemoryResolver({
            "a.s": '    .inc "b.s"',
            "b.s": '    .inc "c.s"',
            "c.s": "X = 1",
        })
        with pytest.raises(IncludeDepthError):
            assemble('    .inc "a.s"', resolver=resolver, max_include_depth=2)
        asm = assembler_for('    .inc "a.s"', resolver=resolver, max_include_depth=3)
        assert asm.get_symbols()["X"] == 1

    def test_include_not_found(self):
        """Missing files are reported at the .inc line."""
        with pytest.raises(SourceFileNotFoundError) as exc_info:
            assemble('\n    .inc "missing.s"', resolver=MemoryResolver({}))
        assert exc_info.value.location.line == 2

    def test_include_needs_quoted_name(self):
        """.inc takes a string."""
        with pytest.raises(DirectiveError):
            assemble("    .inc defs", resolver=MemoryResolver({}))

    def test_error_location_in_included_file(self):
        """Errors name the included file and its line."""
        resolver = MemoryResolver({"bad.s": "\n    bogus"})
        with pytest.raises(AssemblySyntaxError) as exc_info:
            assemble('    .org 0\n    .inc "bad.s"', resolver=resolver)
        assert exc_info.value.location.filename == "bad.s"
        assert exc_info.value.location.line == 2

    def test_unclosed_if_in_include(self):
        """An included file must close its own blocks."""
        resolver = MemoryResolver({"inc.s": "    .if 1"})
        with pytest.raises(UnclosedIfError) as exc_info:
            assemble('    .inc "inc.s"\n    .endif', resolver=resolver)
        assert exc_info.value.location.filename == "inc.s"

    def test_include_cannot_close_outer_if(self):
        """An included file cannot close its includer's block."""
        resolver = MemoryResolver({"inc.s": "    .endif"})
        with pytest.raises(UnmatchedEndifError):
            assemble('    .if 1\n    .inc "inc.s"', resolver=resolver)

    def test_include_in_dead_block(self):
        """Includes inside a false block are not read."""
        source = """
            .org 0
            .if 0
            .inc "missing.s"
            .endif
            .byte 1
        """
        assert assemble(source, resolver=MemoryResolver({})) == b"\x01"

    def test_binary(self):
        """.bin copies bytes and advances the PC."""
        resolver = MemoryResolver({"font.bin": b"\x01\x02\x03"})
        asm = assembler_for("""
            .org $8000
            .bin "font.bin"
after       .incbin "font.bin"
        """, resolver=resolver)
        assert asm.get_code() == b"\x01\x02\x03" * 2
        assert asm.get_symbols()["after"] == 0x8003

    def test_backslash_separator(self):
        """Backslashes in filenames act as slashes."""
        resolver = MemoryResolver({"sub/defs.s": "V = 7"})
        asm = assembler_for(r'    .inc "sub\defs.s"', resolver=resolver)
        assert asm.get_symbols()["V"] == 7

    def test_filesystem_include_paths(self, tmp_path):
        """Files are found next to the includer, then on include paths."""
        (tmp_path / "src").mkdir()
        (tmp_path / "inc").mkdir()
        (tmp_path / "inc" / "defs.s").write_text("WIDTH = 40\n")
        (tmp_path / "src" / "local.s").write_text("HEIGHT = 4\n")
        main = tmp_path / "src" / "main.s"
        main.write_text(
            '        .inc "defs.s"\n'
            '        .inc "local.s"\n'
            "        .org 0\n"
            "        .byte WIDTH, HEIGHT\n"
        )

        asm = Assembler(include_paths=[tmp_path / "inc"])
        assert asm.assemble_file(main) == b"\x28\x04"

    def test_filesystem_not_found_lists_paths(self, tmp_path):
        """The error hint names the searched directories."""
        main = tmp_path / "main.s"
        main.write_text('        .inc "nowhere.s"\n')
        with pytest.raises(SourceFileNotFoundError) as exc_info:
            Assembler().assemble_file(main)
        assert exc_info.value.search_paths
        assert "searched in" in str(exc_info.value)

    def test_main_file_missing(self, tmp_path):
        """assemble_file reports a missing main file."""
        with pytest.raises(SourceFileNotFoundError):
            Assembler().assemble_file(tmp_path / "absent.s")


# =============================================================================
# Assertion and Phase Error Tests
# =============================================================================

class TestAssertionsAndPhases:
    """Test .assert and pass consistency."""

    def test_assert_passes(self):
        """A true assertion leaves no error."""
        asm = assembler_for("""
            .org $8000
start       nop
            .assert * = (start + 1)
        """)
        assert not asm.has_errors()

    def test_assert_failure_is_collected(self):
        """A false assertion is reported and assembly continues."""
        asm = assembler_for("""
            .org 0
            .assert 1 = 2
            .byte 5
        """)
        assert asm.has_errors()
        assert asm.get_code() == b"\x05"
        assert "assertion failed: 1 = 2" in asm.get_error_report()

    def test_assert_forward_reference(self):
        """Assertions may refer to later symbols."""
        asm = assembler_for("""
            .org 0
            .assert (end - start) = 2
start       .word 0
end
        """)
        assert not asm.has_errors()

    def test_several_assertions_reported(self):
        """Every failed assertion is collected."""
        asm = assembler_for("""
            .assert 0
            .assert 0
        """)
        assert "2 errors" in asm.get_error_report()

    def test_many_failed_assertions_do_not_stop_assembly(self):
        """Assembly runs to the end however many assertions fail."""
        source = "            .org 0\n"
        source += "            .assert 0\n" * 150
        source += "            .byte 7\n"
        asm = assembler_for(source)

        assert asm.get_code() == b"\x07"
        assert "150 errors" in asm.get_error_report()

    def test_phase_error(self):
        """A label that moves between passes is fatal."""
        source = """
            .org $8000
            .bin "data.bin"
after       nop
        """
        with pytest.raises(PhaseError) as exc_info:
            assemble(source, resolver=GrowingResolver())
        assert exc_info.value.pass1_value == 0x8001
        assert exc_info.value.pass2_value == 0x8002

    def test_state_transitions(self):
        """The code generator ends DONE or FAILED."""
        codegen = CodeGenerator()
        assert codegen.state is AssemblyState.READY
        codegen.generate("    .org 0\n    nop")
        assert codegen.state is AssemblyState.DONE

        with pytest.raises(AssemblerError):
            codegen.generate("    .org 0\n    bogus")
        assert codegen.state is AssemblyState.FAILED

    def test_rerun_is_independent(self):
        """A second run starts from an empty symbol table."""
        codegen = CodeGenerator()
        codegen.generate("x = 1")
        codegen.generate("x = 2")
        assert codegen.get_symbols() == {"x": 2}


# =============================================================================
# Error Reporting Tests
# =============================================================================

class TestErrorReporting:
    """Test error locations and formatting."""

    def test_error_has_line_number(self):
        """Errors carry the line they occurred on."""
        with pytest.raises(ExpressionError) as exc_info:
            assemble("    .org 0\n    nop\n    lda #$100")
        assert exc_info.value.location.line == 3

    def test_error_message_format(self):
        """file:line:column: error: message, then the source line."""
        with pytest.raises(AssemblerError) as exc_info:
            Assembler().assemble_string("    .org 0\n    bogus", "prog.s")
        message = str(exc_info.value)
        assert message.startswith("prog.s:2:5: error: unknown instruction 'bogus'")
        assert "    bogus" in message.splitlines()[1]


# =============================================================================
# Debug Record Tests
# =============================================================================

class TestDebugRecords:
    """Test .dbg and the debug file."""

    def test_documented_example(self):
        """Inline and preceding comments feed {C}."""
        asm = assembler_for("""
            .org $8000
            .dbg "P:{V-8000}:{L}:{C}"
foo         nop         ; description of foo
            nop
; description of...
; bar!
bar         rts
        """)
        assert asm.get_debug_lines() == [
            "P:0:foo:description of foo",
            "P:2:bar:description of... bar!",
        ]

    def test_no_template_no_records(self):
        """Without .dbg nothing is recorded."""
        asm = assembler_for("""
            .org 0
a           nop
        """)
        assert asm.get_debug_lines() == []

    def test_clearing_template(self):
        """.dbg with no argument stops recording."""
        asm = assembler_for("""
            .org 0
            .dbg "{L}"
one         nop
            .dbg
two         nop
        """)
        assert asm.get_debug_lines() == ["one"]

    def test_blank_line_breaks_comment_block(self):
        """Only comment lines directly above the label count."""
        asm = assembler_for("""
            .org 0
            .dbg "{L}:{C}"
; far away

; close
here        nop
        """)
        assert asm.get_debug_lines() == ["here:close"]

    def test_assignments_not_recorded(self):
        """Only labels produce records."""
        asm = assembler_for("""
            .org 0
            .dbg "{L}"
value       = 5
lab         nop
        """)
        assert asm.get_debug_lines() == ["lab"]

    def test_record_fields(self):
        """Records keep name, value and comment."""
        asm = assembler_for("""
            .org $1234
            .dbg "{L}"
entry       rts         ; returns
        """)
        record = asm.get_debug_records()[0]
        assert (record.name, record.value, record.comment) == ("entry", 0x1234, "returns")

    def test_template_must_be_string(self):
        """.dbg takes a quoted template."""
        with pytest.raises(DirectiveError):
            assemble("    .dbg 5")


# =============================================================================
# Output File Tests
# =============================================================================

class TestOutputFiles:
    """Test writing object, symbol and debug files."""

    SOURCE = """
WIDTH       = 40
BASE        .equ $C000
            .org $8000
            .dbg "{L}={V}"
start       lda #WIDTH
            rts
"""

    def test_write_binary(self, tmp_path):
        """The object file holds the raw bytes."""
        asm = assembler_for(self.SOURCE)
        out = tmp_path / "out.bin"
        asm.write_binary(out)
        assert out.read_bytes() == b"\xa9\x28\x60"

    def test_write_symbols(self, tmp_path):
        """The symbol file lists =/.equ symbols sorted by name."""
        asm = assembler_for(self.SOURCE)
        out = tmp_path / "out.sym"
        asm.write_symbols(out)
        lines = out.read_text().splitlines()
        assert lines[0].startswith("#")
        assert [line for line in lines if not line.startswith("#")] == [
            "BASE $C000",
            "WIDTH $0028",
        ]

    def test_write_debug(self, tmp_path):
        """The debug file holds one line per record."""
        asm = assembler_for(self.SOURCE)
        out = tmp_path / "out.dbg"
        asm.write_debug(out)
        assert out.read_text() == "start=8000\n"

    def test_verbose_progress(self, capsys):
        """Verbose mode prints progress."""
        asm = Assembler(verbose=True)
        asm.assemble_string("    .org 0\n    nop")
        assert "Generated 1 bytes" in capsys.readouterr().out
