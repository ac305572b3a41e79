"""Tests for the tree-sitter Java structural parser.

Tests cover:
- Package and primary class detection
- Signature normalization (generics, qualifiers, varargs, arrays, annotations)
- Member flattening (nested, secondary top-level, enum, record, interface)
- Fingerprint stability under formatting and comments
- Line ranges
- Failure and no-type files
- Duplicate signature disambiguation
"""

from __future__ import annotations

import pytest

from diffcov.config.models import SignatureConfig
from diffcov.parsing import (
    JavaParser,
    ParseFailure,
    StructuralUnit,
    normalize_type,
    package_from_path,
    qualified_name_from_path,
)

FOO_PATH = "src/main/java/pkg/Foo.java"


def _parse(source: str, path: str = FOO_PATH, **signature: bool) -> StructuralUnit:
    parser = JavaParser(signature=SignatureConfig(**signature))
    unit = parser.parse(source, path)
    assert isinstance(unit, StructuralUnit), unit
    return unit


def _signatures(unit: StructuralUnit) -> list[str]:
    return [m.signature for m in unit.methods]


# ============================================================================
# Tests: Type normalization
# ============================================================================


class TestNormalizeType:
    """Tests for normalize_type."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("int", "int"),
            ("String", "String"),
            ("java.lang.String", "String"),
            ("List<String>", "List"),
            ("java.util.Map<String, java.util.List<Integer>>", "Map"),
            ("int[]", "int[]"),
            ("String [ ]", "String[]"),
            ("@Nullable String", "String"),
            ("Map.Entry<K, V>", "Entry"),
        ],
    )
    def test_erases_generics_and_qualifiers(self, text: str, expected: str) -> None:
        assert normalize_type(text) == expected

    def test_keeps_generics_when_asked(self) -> None:
        assert normalize_type("List< java.lang.String >", erase_generics=False) == "List<String>"


class TestPackageFromPath:
    """Tests for package_from_path and qualified_name_from_path."""

    ROOTS = ("src/main/java/", "src/test/java/", "src/")

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("src/main/java/com/acme/Foo.java", "com.acme"),
            ("module/src/main/java/com/acme/Foo.java", "com.acme"),
            ("src/test/java/com/acme/FooTest.java", "com.acme"),
            ("src/com/acme/Foo.java", "com.acme"),
            ("src/main/java/Foo.java", ""),
            ("lib/Foo.java", ""),
        ],
    )
    def test_package(self, path: str, expected: str) -> None:
        assert package_from_path(path, self.ROOTS) == expected

    def test_qualified_name(self) -> None:
        assert qualified_name_from_path(FOO_PATH, self.ROOTS) == "pkg.Foo"


# ============================================================================
# Tests: Units
# ============================================================================


class TestUnit:
    """Package, class and file-level attributes."""

    def test_declared_package(self) -> None:
        unit = _parse("package com.acme.core;\n\npublic class Foo {}\n")
        assert unit.package == "com.acme.core"
        assert unit.class_name == "Foo"
        assert unit.qualified_name == "com.acme.core.Foo"

    def test_package_from_path_when_undeclared(self) -> None:
        unit = _parse("public class Foo {}\n")
        assert unit.package == "pkg"
        assert unit.qualified_name == "pkg.Foo"

    def test_primary_class_matches_file_stem(self) -> None:
        source = "package pkg;\nclass Helper {}\npublic class Foo {}\n"
        assert _parse(source).class_name == "Foo"

    def test_first_type_when_no_stem_match(self) -> None:
        source = "package pkg;\nclass Alpha {}\nclass Beta {}\n"
        assert _parse(source).class_name == "Alpha"

    @pytest.mark.parametrize("keyword", ["interface", "enum", "record", "@interface"])
    def test_other_type_kinds(self, keyword: str) -> None:
        header = "Foo()" if keyword == "record" else "Foo"
        unit = _parse(f"package pkg;\npublic {keyword} {header} {{}}\n")
        assert unit.class_name == "Foo"

    def test_line_count_and_content_id(self) -> None:
        source = "package pkg;\n\nclass Foo {\n}\n"
        unit = _parse(source)
        assert unit.line_count == 4
        assert unit.content_id == _parse(source).content_id
        assert unit.content_id != _parse(source + "\n").content_id

    def test_package_info_has_no_class(self) -> None:
        unit = _parse("/** Docs. */\npackage pkg;\n", path="src/main/java/pkg/package-info.java")
        assert unit.class_name is None
        assert unit.qualified_name is None
        assert unit.methods == ()


# ============================================================================
# Tests: Signatures
# ============================================================================


class TestSignatures:
    """Method identity keys."""

    def test_methods_and_constructors(self) -> None:
        source = """package pkg;
public class Foo {
    private int x;
    public Foo(int x) { this.x = x; }
    int bar(int a, String b) { return a; }
    static void baz() {}
}
"""
        assert _signatures(_parse(source)) == ["Foo(int)", "bar(int,String)", "baz()"]

    def test_generic_and_qualified_parameters(self) -> None:
        source = """package pkg;
class Foo {
    void put(java.util.Map<String, java.util.List<Integer>> m, List<? extends Number> n) {}
}
"""
        assert _signatures(_parse(source)) == ["put(Map,List)"]

    def test_generics_kept_when_configured(self) -> None:
        source = "package pkg;\nclass Foo {\n    void put(List<String> items) {}\n}\n"
        assert _signatures(_parse(source, erase_generics=False)) == ["put(List<String>)"]

    def test_varargs_and_arrays(self) -> None:
        source = """package pkg;
class Foo {
    void log(String fmt, Object... args) {}
    void sum(int values[]) {}
    void grid(int[][] cells) {}
}
"""
        assert _signatures(_parse(source)) == [
            "log(String,Object[])",
            "sum(int[])",
            "grid(int[][])",
        ]

    def test_parameter_annotations_and_modifiers_ignored(self) -> None:
        source = """package pkg;
class Foo {
    void run(@Deprecated final String name, final int count) {}
}
"""
        assert _signatures(_parse(source)) == ["run(String,int)"]

    def test_return_type_excluded_by_default(self) -> None:
        source = (
            "package pkg;\nclass Foo {\n    java.util.List<String> names() { return null; }\n}\n"
        )
        unit = _parse(source)
        assert _signatures(unit) == ["names()"]
        assert unit.methods[0].return_type == "List"

    def test_return_type_included_when_configured(self) -> None:
        source = "package pkg;\nclass Foo {\n    int size() { return 0; }\n    Foo() {}\n}\n"
        assert _signatures(_parse(source, include_return_type=True)) == ["size():int", "Foo()"]

    def test_signature_stable_under_formatting(self) -> None:
        compact = "package pkg;\nclass Foo {\n    void f(java.util.List<String> a,int b){}\n}\n"
        spread = """package pkg;
class Foo {
    void f(
        List< String >   a,
        int    b
    ) {
    }
}
"""
        assert _signatures(_parse(compact)) == _signatures(_parse(spread))


# ============================================================================
# Tests: Member flattening
# ============================================================================


class TestMembers:
    """Nested and secondary types."""

    def test_nested_types_are_prefixed(self) -> None:
        source = """package pkg;
public class Foo {
    void top() {}
    static class Inner {
        void run() {}
        class Deep {
            void go(int x) {}
        }
    }
}
"""
        assert _signatures(_parse(source)) == ["top()", "Inner.run()", "Inner.Deep.go(int)"]

    def test_secondary_top_level_type_is_prefixed(self) -> None:
        source = """package pkg;
public class Foo {
    void a() {}
}
class Helper {
    void help() {}
}
"""
        assert _signatures(_parse(source)) == ["a()", "Helper.help()"]

    def test_anonymous_and_local_classes_belong_to_method(self) -> None:
        source = """package pkg;
class Foo {
    Runnable make() {
        class Local { void inner() {} }
        return new Runnable() {
            public void run() {}
        };
    }
}
"""
        assert _signatures(_parse(source)) == ["make()"]

    def test_enum_methods(self) -> None:
        source = """package pkg;
public enum Foo {
    RED, GREEN;
    Foo() {}
    String label() { return name(); }
}
"""
        assert _signatures(_parse(source)) == ["Foo()", "label()"]

    def test_initializer_blocks(self) -> None:
        source = """package pkg;
public class Foo {
    static int x;
    static {
        x = 1;
    }
    int y;
    {
        y = 2;
    }
    static { x++; }
    int get() { return y; }
}
"""
        unit = _parse(source)

        assert _signatures(unit) == ["<clinit>()", "<init>()", "<clinit>()#2", "get()"]
        assert (unit.methods[0].start_line, unit.methods[0].end_line) == (4, 6)
        assert unit.methods[1].return_type is None

    def test_enum_constant_bodies(self) -> None:
        source = """package pkg;
public enum Foo {
    A {
        int f() { return 1; }
    },
    B(2),
    C;
    Foo() {}
    Foo(int n) {}
    int f() { return 0; }
}
"""
        unit = _parse(source)

        assert _signatures(unit) == ["A.f()", "Foo()", "Foo(int)", "f()"]
        assert unit.methods[0].start_line == 4

    def test_record_compact_constructor(self) -> None:
        source = """package pkg;
public record Foo(int x, java.util.List<String> tags) {
    public Foo {
        if (x < 0) throw new IllegalArgumentException();
    }
    int twice() { return x * 2; }
}
"""
        assert _signatures(_parse(source)) == ["Foo(int,List)", "twice()"]

    def test_interface_methods(self) -> None:
        source = """package pkg;
public interface Foo {
    void plain(int a);
    default int withBody() { return 1; }
}
"""
        assert _signatures(_parse(source)) == ["plain(int)", "withBody()"]


# ============================================================================
# Tests: Fingerprints and lines
# ============================================================================


class TestFingerprint:
    """Content fingerprints and line ranges."""

    BASE = """package pkg;
class Foo {
    int bar(int a) {
        return a + 1;
    }
}
"""

    def _bar(self, source: str) -> tuple[str, int, int]:
        method = _parse(source).methods[0]
        return method.fingerprint, method.start_line, method.end_line

    def test_line_range(self) -> None:
        _, start, end = self._bar(self.BASE)
        assert (start, end) == (3, 5)

    def test_stable_under_shift(self) -> None:
        shifted = self.BASE.replace("class Foo {\n", "class Foo {\n\n\n\n")
        fp, start, end = self._bar(shifted)
        assert fp == self._bar(self.BASE)[0]
        assert (start, end) == (6, 8)

    def test_stable_under_comments_and_whitespace(self) -> None:
        noisy = """package pkg;
class Foo {
    // explains bar
    int bar(int a) {
        /* inline */ return a   +   1; // trailing
    }
}
"""
        assert self._bar(noisy)[0] == self._bar(self.BASE)[0]

    def test_changes_with_body(self) -> None:
        changed = self.BASE.replace("a + 1", "a + 2")
        assert self._bar(changed)[0] != self._bar(self.BASE)[0]

    def test_changes_with_modifiers(self) -> None:
        changed = self.BASE.replace("    int bar", "    public int bar")
        assert self._bar(changed)[0] != self._bar(self.BASE)[0]

    def test_javadoc_does_not_move_start(self) -> None:
        documented = self.BASE.replace("    int bar", "    /** Docs. */\n    int bar")
        fp, start, _ = self._bar(documented)
        assert start == 4
        assert fp == self._bar(self.BASE)[0]


# ============================================================================
# Tests: Failures and ambiguity
# ============================================================================


class TestFailures:
    """Syntax errors and duplicate signatures."""

    def test_syntax_error_yields_parse_failure(self) -> None:
        parser = JavaParser()
        result = parser.parse("package pkg;\nclass Foo {\n    void f( {\n}\n", FOO_PATH)

        assert isinstance(result, ParseFailure)
        assert result.path == FOO_PATH
        assert result.qualified_name_hint == "pkg.Foo"
        assert "syntax error" in result.reason

    def test_duplicate_signatures_are_suffixed(self) -> None:
        source = """package pkg;
class Foo {
    void f(List<String> a) {}
    void f(List<Integer> a) {}
    void f(List<Long> a) {}
}
"""
        assert _signatures(_parse(source)) == ["f(List)", "f(List)#2", "f(List)#3"]

    def test_parser_is_reusable(self) -> None:
        parser = JavaParser()
        first = parser.parse("package pkg;\nclass Foo { void a() {} }\n", FOO_PATH)
        second = parser.parse("package pkg;\nclass Foo { void b() {} }\n", FOO_PATH)
        assert isinstance(first, StructuralUnit)
        assert isinstance(second, StructuralUnit)
        assert _signatures(first) == ["a()"]
        assert _signatures(second) == ["b()"]
