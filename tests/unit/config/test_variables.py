"""
Unit tests for build descriptor variables.
"""

import pytest

from depforge.config.variables import (
    DescriptorError,
    VariableStore,
    parse_assignment,
    parse_makeflags,
    read_descriptor,
)


class TestParsing:
    """Test assignment and MAKEFLAGS parsing."""

    def test_parse_assignment(self):
        """Test recognized assignments."""
        assert parse_assignment("MODULE = foo.dll") == ("MODULE", "foo.dll")
        assert parse_assignment("C_SRCS=a.c b.c") == ("C_SRCS", "a.c b.c")
        assert parse_assignment("EMPTY =") == ("EMPTY", "")

    def test_parse_non_assignment(self):
        """Test rules and other lines are not assignments."""
        assert parse_assignment("all: foo") is None
        assert parse_assignment("= value") is None
        assert parse_assignment("-include deps") is None

    def test_parse_makeflags(self):
        """Test assignments are extracted from MAKEFLAGS with escapes."""
        flags = parse_makeflags("-j4 -- CC=gcc CFLAGS=-O2\\ -g")

        assert flags == {"CC": "gcc", "CFLAGS": "-O2 -g"}

    def test_parse_empty_makeflags(self):
        """Test empty MAKEFLAGS."""
        assert parse_makeflags("") == {}


class TestReadDescriptor:
    """Test reading build descriptors."""

    @pytest.fixture
    def descriptor(self, tmp_path):
        """Create a descriptor with commands, comments and a dependency section."""
        path = tmp_path / "Makefile.in"
        path.write_text(
            "# comment\n"
            "MODULE    = foo.dll\n"
            "C_SRCS    = \\\n"
            "\ta.c \\\n"
            "\tb.c\n"
            "IMPORTS   = user32\n"
            "\n"
            "all: foo.dll\n"
            "\tIMPORTS = not an assignment\n"
            "IMPORTS   = kernel32\n"
            "### Dependencies\n"
            "MODULE = ignored.dll\n"
        )
        return path

    def test_read_assignments(self, descriptor):
        """Test assignments before the dependency separator."""
        variables = read_descriptor(descriptor)

        assert variables["MODULE"] == "foo.dll"
        assert variables["C_SRCS"].split() == ["a.c", "b.c"]

    def test_later_assignment_wins(self, descriptor):
        """Test reassignment replaces the value and commands are skipped."""
        assert read_descriptor(descriptor)["IMPORTS"] == "kernel32"

    def test_missing_descriptor(self, tmp_path):
        """Test a missing descriptor raises DescriptorError with its path."""
        path = tmp_path / "Makefile.in"

        with pytest.raises(DescriptorError) as exc_info:
            read_descriptor(path)

        assert exc_info.value.filename == str(path)


class TestVariableStore:
    """Test variable lookup and expansion."""

    def test_lookup_order(self):
        """Test overrides, then own variables, then the parent scope."""
        top = VariableStore({"A": "top", "B": "top", "C": "top"}, overrides={"A": "cmdline"})
        store = VariableStore({"A": "unit", "B": "unit"}, parent=top)

        assert store.get("A") == "cmdline"
        assert store.get("B") == "unit"
        assert store.get("C") == "top"
        assert store.get("D") is None

    def test_expand_references(self):
        """Test nested references are expanded."""
        store = VariableStore({"A": "$(B) x", "B": "$(C)", "C": "c"})

        assert store.get_expanded("A") == "c x"

    def test_undefined_reference_is_empty(self):
        """Test references to undefined variables expand to nothing."""
        assert VariableStore({"A": "a$(MISSING)b"}).get_expanded("A") == "ab"

    def test_shell_references_kept(self):
        """Test ${NAME} and $$ are left alone."""
        store = VariableStore({"A": "${HOME} $$PATH"})

        assert store.get_expanded("A") == "${HOME} $$PATH"

    @pytest.mark.parametrize("value", ["$(A", "${A", "$A"])
    def test_syntax_errors(self, value):
        """Test malformed references."""
        with pytest.raises(DescriptorError, match="syntax error"):
            VariableStore({"V": value}).get_expanded("V")

    def test_pattern_replacement_not_supported(self):
        """Test $(VAR:a=b) references are rejected."""
        store = VariableStore({"SRCS": "a.c", "OBJS": "$(SRCS:.c=.o)"})

        with pytest.raises(DescriptorError, match="pattern replacement"):
            store.get_expanded("OBJS")

    def test_recursive_expansion(self):
        """Test self-referencing variables don't loop forever."""
        with pytest.raises(DescriptorError, match="recursive"):
            VariableStore({"A": "$(A) b"}).get_expanded("A")

    def test_blank_value_is_undefined(self):
        """Test whitespace-only values."""
        store = VariableStore({"A": "   ", "B": "$(EMPTY)"})

        assert store.get_expanded("A") is None
        assert store.get_expanded("B") is None
        assert store.get_list("A") == []

    def test_get_list(self):
        """Test whitespace splitting."""
        store = VariableStore({"C_SRCS": "  a.c\tb.c   c.c "})

        assert store.get_list("C_SRCS") == ["a.c", "b.c", "c.c"]

    def test_file_local_list(self):
        """Test per-file variables with non-alphanumerics mapped to '_'."""
        store = VariableStore({"foo_spec_IMPORTS": "kernel32 user32"})

        assert store.get_file_local_list("foo.spec", "IMPORTS") == ["kernel32", "user32"]

    def test_set_replaces(self):
        """Test set() defines a variable in the scope."""
        store = VariableStore({"srcdir": "."})
        store.set("srcdir", "../src")

        assert store.get_expanded("srcdir") == "../src"

    def test_from_descriptor(self, tmp_path):
        """Test creating a scope from a descriptor file."""
        path = tmp_path / "Makefile"
        path.write_text("SUBDIRS = dlls/foo po\n")

        store = VariableStore.from_descriptor(path, overrides={"EXEEXT": ".exe"})

        assert store.get_list("SUBDIRS") == ["dlls/foo", "po"]
        assert store.get("EXEEXT") == ".exe"
