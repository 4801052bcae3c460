"""Regex-based extraction of imports and declarations from Solidity sources.

This is deliberately not a parser. Matches are line-anchored, so an import
statement at the start of a line inside a block comment is still reported,
while indented or ``//``-commented imports are not.
"""

from __future__ import annotations

import re
from typing import Protocol

IMPORT_RE = re.compile(
    r"""^import\s*(?:(?:\*\s*as\s+[A-Za-z0-9$_]+|\{[^}]*\})\s*from\s*)?(['"])(.+?)\1(?:\s+as\s+[A-Za-z0-9$_]+)?\s*;[ \t]*(?:\r?\n)?""",
    re.MULTILINE,
)

DECLARATION_RE = re.compile(
    r"^(?:abstract\s+)?(?:contract|interface|library)\s+([A-Za-z0-9$_]+)",
    re.MULTILINE,
)


class SourceScanner(Protocol):
    """Extracts the structure the build needs from raw source text."""

    def imports(self, text: str) -> list[str]: ...

    def declarations(self, text: str) -> list[str]: ...

    def strip_imports(self, text: str) -> str: ...


class RegexScanner:
    def imports(self, text: str) -> list[str]:
        """Return import paths in the order they appear."""
        return [match.group(2) for match in IMPORT_RE.finditer(text)]

    def declarations(self, text: str) -> list[str]:
        """Return contract, interface, and library names declared at line start."""
        return [match.group(1) for match in DECLARATION_RE.finditer(text)]

    def strip_imports(self, text: str) -> str:
        return IMPORT_RE.sub("", text)
