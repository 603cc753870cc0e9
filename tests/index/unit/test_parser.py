"""Tests for tree-sitter class discovery."""

from pathlib import Path

import pytest

from classmap.index.parser import ClassDeclarationParser


@pytest.fixture(scope="module")
def parser() -> ClassDeclarationParser:
    return ClassDeclarationParser()


class TestModuleLevelClasses:
    """Which class statements count as module level."""

    def test_plain_classes_in_order(self, parser: ClassDeclarationParser) -> None:
        source = b"class Invoice:\n    pass\n\n\nclass InvoiceLine(Invoice):\n    pass\n"

        result = parser.parse(source)

        assert result.classes == ["Invoice", "InvoiceLine"]
        assert result.error_count == 0

    def test_decorated_and_conditional_classes_count(
        self, parser: ClassDeclarationParser
    ) -> None:
        source = b"""
import dataclasses

@dataclasses.dataclass
class Point:
    x: int

try:
    from fast import Engine
except ImportError:
    class Engine:
        pass

if True:
    class Flagged:
        pass
"""
        result = parser.parse(source)

        assert result.classes == ["Point", "Engine", "Flagged"]

    def test_nested_and_function_local_classes_ignored(
        self, parser: ClassDeclarationParser
    ) -> None:
        source = b"""
class Outer:
    class Inner:
        pass

def factory():
    class Local:
        pass
    return Local

handler = lambda: None
"""
        result = parser.parse(source)

        assert result.classes == ["Outer"]

    def test_redefinition_reported_once(self, parser: ClassDeclarationParser) -> None:
        source = b"class A:\n    pass\n\nclass A:\n    pass\n"

        assert parser.parse(source).classes == ["A"]

    def test_no_classes(self, parser: ClassDeclarationParser) -> None:
        assert parser.parse(b"VALUE = 1\n").classes == []


class TestBrokenSources:
    """Static parsing never refuses a file."""

    def test_runtime_invalid_file_still_yields_class(self, parser: ClassDeclarationParser) -> None:
        # 'break' outside a loop only fails at compile time.
        result = parser.parse(b"class B:\n    pass\n\nbreak\n")

        assert result.classes == ["B"]

    def test_syntax_errors_are_counted(self, parser: ClassDeclarationParser) -> None:
        result = parser.parse(b"class Good:\n    pass\n\ndef broken(:\n")

        assert "Good" in result.classes
        assert result.error_count > 0

    def test_parse_file_reads_bytes(self, parser: ClassDeclarationParser, tmp_path: Path) -> None:
        path = tmp_path / "mod.py"
        path.write_text("class Café:\n    pass\n", encoding="utf-8")

        assert parser.parse_file(path).classes == ["Café"]


class TestAwkwardSources:
    """Valid files that are unusual in shape or encoding."""

    def test_deeply_nested_expression(self, parser: ClassDeclarationParser) -> None:
        total = " + ".join(["1"] * 5000)
        source = f"class Table:\n    pass\n\n\nTOTAL = {total}\n".encode()

        result = parser.parse(source)

        assert result.classes == ["Table"]
        assert result.error_count == 0

    def test_classes_inside_module_level_loops_count(
        self, parser: ClassDeclarationParser
    ) -> None:
        source = b"for _ in range(1):\n    class Looped:\n        pass\n"

        assert parser.parse(source).classes == ["Looped"]

    def test_declared_latin1_encoding(self, parser: ClassDeclarationParser, tmp_path: Path) -> None:
        path = tmp_path / "legacy.py"
        path.write_bytes("# -*- coding: latin-1 -*-\nclass Café:\n    pass\n".encode("latin-1"))

        assert parser.parse_file(path).classes == ["Café"]

    def test_undecodable_bytes_do_not_raise(self, parser: ClassDeclarationParser) -> None:
        result = parser.parse(b"class Fine:\n    pass\n\nNAME = '\xff\xfe'\n")

        assert result.classes == ["Fine"]
