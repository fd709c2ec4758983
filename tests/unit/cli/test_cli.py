"""Tests for the depforge command line."""

import json
import signal
from unittest.mock import patch

import pytest

from depforge.cli import VERSION, main


def write_tree(root, files):
    """Create files (relative path -> content) under root."""
    for rel, text in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)


@pytest.fixture(autouse=True)
def no_makeflags(monkeypatch):
    """Keep the caller's MAKEFLAGS out of the tests."""
    monkeypatch.delenv("MAKEFLAGS", raising=False)


@pytest.fixture
def build_tree(tmp_path, monkeypatch):
    """In-tree build with one module and a translations directory."""
    write_tree(tmp_path, {
        "Makefile": "srcdir = .\nSUBDIRS = dlls/foo po\n",
        "include/windef.h": "",
        "dlls/foo/Makefile.in": "MODULE = foo.dll\nC_SRCS = foo.c\n",
        "dlls/foo/foo.c": '#include "windef.h"\n',
        "po/Makefile.in": "PO_SRCS = fr.po\n",
        "po/fr.po": "",
    })
    monkeypatch.chdir(tmp_path)
    return tmp_path


def run(argv):
    """Run main() and return its exit code."""
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


class TestGenerate:
    """Tests for dependency generation from the command line."""

    def test_writes_model(self, build_tree):
        """Test a successful run writes depends.json and LINGUAS."""
        assert run([]) == 0

        model = json.loads((build_tree / "depends.json").read_text())
        assert [unit["obj_dir"] for unit in model["units"]] == [None, "dlls/foo", "po"]
        assert model["units"][1]["sources"][0]["dependencies"] == ["include/windef.h"]
        assert (build_tree / "po" / "LINGUAS").exists()

    def test_descriptor_and_output_options(self, build_tree):
        """Test -f and -o."""
        (build_tree / "Makefile").rename(build_tree / "Top.mk")

        assert run(["-f", "Top.mk", "-o", "out/model.json"]) == 0
        assert (build_tree / "out" / "model.json").exists()
        assert not (build_tree / "depends.json").exists()

    def test_variable_override(self, build_tree):
        """Test NAME=value arguments override descriptor variables."""
        assert run(["SUBDIRS=po"]) == 0

        model = json.loads((build_tree / "depends.json").read_text())
        assert [unit["obj_dir"] for unit in model["units"]] == [None, "po"]

    def test_makeflags_override(self, build_tree, monkeypatch):
        """Test assignments passed through MAKEFLAGS."""
        monkeypatch.setenv("MAKEFLAGS", "-j4 -- SUBDIRS=dlls/foo")

        assert run([]) == 0

        model = json.loads((build_tree / "depends.json").read_text())
        assert [unit["obj_dir"] for unit in model["units"]] == [None, "dlls/foo"]

    def test_directory_arguments_rejected(self, build_tree, capsys):
        """Test non-assignment arguments are errors."""
        assert run(["dlls/foo"]) == 1

        assert "Directory arguments not supported in this mode: dlls/foo" in capsys.readouterr().err

    def test_resolution_error(self, build_tree, capsys):
        """Test fatal errors print a diagnostic and exit 1."""
        (build_tree / "dlls/foo/foo.c").write_text('#include "missing.h"\n')

        assert run([]) == 1

        err = capsys.readouterr().err
        assert "dlls/foo/foo.c:1: error: missing.h: No such file or directory" in err
        assert not (build_tree / "depends.json").exists()

    def test_missing_descriptor(self, tmp_path, monkeypatch, capsys):
        """Test running outside a build tree."""
        monkeypatch.chdir(tmp_path)

        assert run([]) == 1
        assert "Makefile: error: open:" in capsys.readouterr().err

    def test_keyboard_interrupt(self, build_tree, capsys):
        """Test interruption exits with 130."""
        with patch("depforge.cli.DependencyGenerator") as generator_class:
            generator_class.return_value.generate.side_effect = KeyboardInterrupt
            assert run([]) == 130

        assert "Interrupted" in capsys.readouterr().err

    def test_unexpected_error(self, build_tree, capsys):
        """Test unexpected exceptions exit 1 with their type."""
        with patch("depforge.cli.DependencyGenerator") as generator_class:
            generator_class.return_value.generate.side_effect = RuntimeError("boom")
            assert run([]) == 1

        assert "RuntimeError: boom" in capsys.readouterr().err

    def test_signal_handlers_restored(self, build_tree):
        """Test cleanup handlers are removed after the run."""
        before = signal.getsignal(signal.SIGTERM)

        run([])

        assert signal.getsignal(signal.SIGTERM) is before

    def test_verbose(self, build_tree, capsys):
        """Test verbose mode prints the version and a summary."""
        assert run(["-v"]) == 0

        out = capsys.readouterr().out
        assert f"depforge v{VERSION}" in out
        assert "Resolved 3 units" in out


class TestRelativePath:
    """Tests for the -R mode."""

    def test_relative_path(self, capsys):
        assert run(["-R", "dlls/foo", "dlls/bar"]) == 0
        assert capsys.readouterr().out == "../bar\n"

    def test_same_directory(self, capsys):
        assert run(["-R", "dlls/foo", "dlls/foo"]) == 0
        assert capsys.readouterr().out == ".\n"


def test_version(capsys):
    """Test --version."""
    assert run(["--version"]) == 0
    assert f"depforge {VERSION}" in capsys.readouterr().out
