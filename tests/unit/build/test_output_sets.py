"""Tests for output-set classification."""

import pytest

from depforge.build.build_unit import BuildUnit
from depforge.build.generated_sources import GeneratedSourceExpander
from depforge.build.include_resolver import IncludeResolver
from depforge.build.orchestrator import DependencyGenerator
from depforge.build.output_sets import OutputClassifier
from depforge.build.source_registry import SourceRegistry
from depforge.config import ProjectSettings, VariableStore
from depforge.errors import DepforgeError


def write_tree(root, files):
    """Create files (relative path -> content) under root."""
    for rel, text in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)


def process(root, obj_dir, variables, top_variables=None):
    """Run the full per-unit pipeline and return the unit."""
    top = VariableStore(dict(top_variables or {}, srcdir=str(root)))
    settings = ProjectSettings.from_variables(top)
    unit = BuildUnit.from_variables(obj_dir, VariableStore(variables, parent=top), settings)
    registry = SourceRegistry()
    resolver = IncludeResolver(registry, settings, [unit])
    expander = GeneratedSourceExpander(registry, resolver, settings)
    DependencyGenerator().process_unit(unit, resolver, expander, OutputClassifier(settings))
    return unit


@pytest.fixture
def root(tmp_path):
    """Source tree with a few global headers."""
    path = tmp_path / "src"
    write_tree(path, {
        "include/windef.h": "",
        "include/rpc.h": "",
        "include/rpcndr.h": "",
        "include/objbase.h": "",
        "include/rpcproxy.h": "",
        "include/wine/test.h": "",
    })
    return path


class TestObjectFiles:
    """Test object classification per target configuration."""

    def test_native_module(self, root):
        """Test a plain module without cross compilation."""
        write_tree(root, {"dlls/foo/foo.c": '#include "windef.h"\n'})

        outputs = process(root, "dlls/foo", {"MODULE": "foo.dll", "C_SRCS": "foo.c"}).outputs

        assert outputs.object_files == ["foo.o"]
        assert outputs.crossobj_files == []
        assert outputs.clean_files == ["foo.o"]
        assert outputs.dependencies == [f"{root}/include/windef.h"]

    def test_cross_module(self, root):
        """Test PE modules build cross objects only."""
        write_tree(root, {"dlls/foo/foo.c": ""})

        unit = process(
            root,
            "dlls/foo",
            {"MODULE": "foo.dll", "C_SRCS": "foo.c"},
            {"CROSSTARGET": "x86_64-w64-mingw32"},
        )

        assert unit.is_cross
        assert unit.outputs.object_files == []
        assert unit.outputs.crossobj_files == ["foo.cross.o"]

    def test_unix_source(self, root):
        """Test Unix sources produce Unix objects even in cross builds."""
        write_tree(root, {
            "dlls/foo/foo.c": "",
            "dlls/foo/unix.c": "#pragma makedep unix\n",
        })

        unit = process(
            root,
            "dlls/foo",
            {"MODULE": "foo.dll", "C_SRCS": "foo.c unix.c"},
            {"CROSSTARGET": "x86_64-w64-mingw32"},
        )

        assert unit.outputs.unixobj_files == ["unix.o"]
        assert unit.outputs.crossobj_files == ["foo.cross.o"]
        assert unit.unixlib == "foo.so"

    def test_import_library_source(self, root):
        """Test implib sources are kept out of the module objects."""
        write_tree(root, {
            "dlls/foo/foo.c": "",
            "dlls/foo/stub.c": "#pragma makedep implib\n",
        })

        outputs = process(
            root, "dlls/foo", {"MODULE": "foo.dll", "IMPORTLIB": "foo", "C_SRCS": "foo.c stub.c"}
        ).outputs

        assert outputs.object_files == ["foo.o"]
        assert outputs.implib_objs == ["stub.o"]
        assert "stub.o" in outputs.clean_files

    def test_test_directory(self, root):
        """Test test sources produce result files, the test list doesn't."""
        write_tree(root, {"dlls/foo/tests/foo.c": '#include "wine/test.h"\n'})

        outputs = process(root, "dlls/foo/tests", {"TESTDLL": "foo.dll", "C_SRCS": "foo.c"}).outputs

        assert outputs.object_files == ["foo.o", "testlist.o"]
        assert outputs.ok_files == ["foo.ok"]
        assert "testlist.c" not in outputs.clean_files

    def test_test_helper_dll(self, root):
        """Test a .c source with a sibling .spec is built into a helper dll."""
        write_tree(root, {
            "dlls/foo/tests/foo.c": "",
            "dlls/foo/tests/helper.c": "",
            "dlls/foo/tests/helper.spec": "",
        })

        outputs = process(
            root,
            "dlls/foo/tests",
            {"TESTDLL": "foo.dll", "SOURCES": "foo.c helper.c helper.spec"},
        ).outputs

        assert outputs.object_files == ["foo.o", "testlist.o"]
        assert outputs.ok_files == ["foo.ok"]
        assert "helper.o" in outputs.clean_files
        assert "helper.dll.so" in outputs.clean_files
        assert outputs.res_files == ["helper.res"]


class TestOtherOutputs:
    """Test resource, interface, font, translation and template outputs."""

    def test_translated_resource(self, root):
        """Test resource scripts with translations."""
        write_tree(root, {"dlls/foo/foo.rc": "#pragma makedep po\n"})

        outputs = process(root, "dlls/foo", {"MODULE": "foo.dll", "RC_SRCS": "foo.rc"}).outputs

        assert outputs.res_files == ["foo.res"]
        assert outputs.pot_files == ["foo.pot"]
        assert outputs.clean_files == ["foo.res", "foo.pot"]

    def test_message_file(self, root):
        """Test message compiler sources."""
        write_tree(root, {"dlls/foo/msg.mc": ""})

        outputs = process(root, "dlls/foo", {"MODULE": "foo.dll", "MC_SRCS": "msg.mc"}).outputs

        assert outputs.res_files == ["msg.res"]
        assert outputs.pot_files == ["msg.pot"]

    def test_interface_with_proxy(self, root):
        """Test interface outputs produced by generated sources are not duplicated."""
        write_tree(root, {"dlls/foo/iface.idl": "#pragma makedep header proxy\n"})

        outputs = process(root, "dlls/foo", {"MODULE": "foo.dll", "IDL_SRCS": "iface.idl"}).outputs

        assert outputs.dlldata_files == ["iface.idl"]
        assert outputs.object_files == ["dlldata.o", "iface_p.o"]
        assert outputs.all_targets == ["iface.h"]
        assert "iface_p.c" in outputs.clean_files
        assert "dlldata.c" in outputs.clean_files

    def test_interface_typelib_outputs(self, root):
        """Test generated resources are cleaned through their own sources."""
        write_tree(root, {"dlls/foo/lib.idl": "#pragma makedep typelib\n"})

        outputs = process(root, "dlls/foo", {"MODULE": "foo.dll", "IDL_SRCS": "lib.idl"}).outputs

        assert outputs.res_files == ["lib_l.res"]
        assert outputs.clean_files.count("lib_l.res") == 1

    def test_fonts(self, root):
        """Test bitmap fonts declared in a font definition."""
        write_tree(root, {
            "fonts/tahoma.sfd": 'UComments: "#pragma makedep font tahoma.fon -h 12"\n'
        })

        outputs = process(root, "fonts", {"FONT_SRCS": "tahoma.sfd"}).outputs

        assert outputs.font_files == ["tahoma.fon"]
        assert outputs.all_targets == ["tahoma.fon"]

    def test_translations(self, root):
        """Test .po sources build message catalogs."""
        write_tree(root, {"po/fr.po": ""})

        outputs = process(root, "po", {"PO_SRCS": "fr.po"}).outputs

        assert outputs.all_targets == ["fr.mo"]

    def test_man_page_template(self, root):
        """Test manual page templates."""
        write_tree(root, {"loader/wine.man.in": '.TH WINE 1 "2024"\n'})

        outputs = process(root, "loader", {"MANPAGES": "wine.man.in"}).outputs

        assert outputs.man_pages == [("wine.man", "1")]
        assert outputs.in_files == ["wine.man"]
        assert outputs.all_targets == ["wine.man"]

    def test_grammar_header_cleaned(self, root):
        """Test the parser header is cleaned when something includes it."""
        write_tree(root, {
            "tools/gen/lexer.c": '#include "parser.tab.h"\n',
            "tools/gen/parser.y": "",
        })

        outputs = process(
            root, "tools/gen", {"C_SRCS": "lexer.c", "BISON_SRCS": "parser.y"}
        ).outputs

        assert "parser.tab.h" in outputs.clean_files
        assert outputs.object_files == ["lexer.o", "parser.tab.o"]
        assert outputs.dependencies == ["tools/gen/parser.tab.h"]

    def test_extra_targets(self, root):
        """Test extra targets are cleaned when depended on, built otherwise."""
        write_tree(root, {"dlls/foo/foo.c": '#include "gen.h"\n'})

        outputs = process(
            root,
            "dlls/foo",
            {"MODULE": "foo.dll", "C_SRCS": "foo.c", "EXTRA_TARGETS": "gen.h other.txt"},
        ).outputs

        assert "gen.h" in outputs.clean_files
        assert "gen.h" not in outputs.all_targets
        assert outputs.all_targets == ["other.txt"]
        assert outputs.clean_files[-1] == "other.txt"

    def test_source_without_extension(self, root):
        """Test sources must have an extension."""
        write_tree(root, {"tools/README": ""})

        with pytest.raises(DepforgeError, match="unsupported file type README"):
            process(root, "tools", {"SOURCES": "README"})
