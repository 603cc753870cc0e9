"""Tree-sitter parsing for class discovery.

Finds the classes a Python file declares without executing it. Tree-sitter
is error tolerant: a file the interpreter refuses to compile still yields
its class names, and the isolated validator later excludes it with the
interpreter's own diagnostic.

Only module-level classes count. That includes classes nested in top-level
``if``/``try``/``with``/loop blocks and decorated classes, but not classes
defined inside functions or other classes.
"""

from __future__ import annotations

import io
import tokenize
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# Statements whose bodies are still module level. Nothing else is descended
# into, so expression depth never matters.
_CONTAINER_NODE_TYPES = frozenset(
    {
        "module",
        "block",
        "ERROR",
        "decorated_definition",
        "if_statement",
        "elif_clause",
        "else_clause",
        "try_statement",
        "except_clause",
        "except_group_clause",
        "finally_clause",
        "with_statement",
        "for_statement",
        "while_statement",
        "match_statement",
        "case_clause",
    }
)


@dataclass
class ParseResult:
    """Result of parsing a file."""

    classes: list[str]
    error_count: int


def _as_utf8(content: bytes) -> bytes:
    """Source re-encoded from its declared (PEP 263) encoding to UTF-8."""
    try:
        encoding, _ = tokenize.detect_encoding(io.BytesIO(content).readline)
    except SyntaxError:
        encoding = "utf-8"
    return content.decode(encoding, errors="replace").encode("utf-8")


@dataclass
class ClassDeclarationParser:
    """
    Tree-sitter parser extracting module-level class names.

    Usage::

        parser = ClassDeclarationParser()
        result = parser.parse(Path("src/acme/billing.py").read_bytes())
        result.classes  # ["Invoice", "InvoiceLine"]
    """

    _parser: Any = field(default=None, repr=False)

    def __post_init__(self) -> None:
        """Initialize the parser."""
        try:
            import tree_sitter
            import tree_sitter_python
        except ImportError as e:
            raise ImportError(
                "tree-sitter and tree-sitter-python are required. "
                "Install with: pip install tree-sitter tree-sitter-python"
            ) from e

        self._parser = tree_sitter.Parser()
        self._parser.language = tree_sitter.Language(tree_sitter_python.language())

    def parse(self, content: bytes) -> ParseResult:
        """Parse Python source and collect module-level class declarations.

        ``error_count`` is the number of statements tree-sitter had to
        recover from.
        """
        tree = self._parser.parse(_as_utf8(content))

        classes: list[str] = []
        seen: set[str] = set()
        error_count = 0

        stack = [tree.root_node]
        while stack:
            node = stack.pop()
            if node.type == "class_definition":
                name_node = node.child_by_field_name("name")
                if name_node is not None and name_node.text:
                    name = name_node.text.decode("utf-8", errors="replace")
                    if name not in seen:
                        seen.add(name)
                        classes.append(name)
                continue

            if node.type == "ERROR" or node.is_missing:
                error_count += 1
            elif node.has_error and node.type not in _CONTAINER_NODE_TYPES:
                error_count += 1

            if node.type in _CONTAINER_NODE_TYPES:
                stack.extend(reversed(node.children))

        return ParseResult(classes=classes, error_count=error_count)

    def parse_file(self, path: Path) -> ParseResult:
        return self.parse(path.read_bytes())
