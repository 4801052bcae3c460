"""Typed exception hierarchy for solbuild."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from solbuild.models import Diagnostic


class SolbuildError(Exception):
    """Base exception for all solbuild errors."""


class ConfigurationError(SolbuildError):
    """Invalid or unreadable build configuration."""


class SourceReadError(SolbuildError):
    """A source file could not be read from disk."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        super().__init__(f"Cannot read {path}: {reason}")


class UnresolvedImportError(SolbuildError):
    """An import could not be located through any search path."""

    def __init__(self, import_path: str, attempted: Sequence[str], importer: str | None = None) -> None:
        self.import_path = import_path
        self.attempted = list(attempted)
        self.importer = importer
        where = f" (imported by {importer})" if importer else ""
        tried = "\n".join(f"  - {location}" for location in self.attempted)
        super().__init__(f"Missing source for import {import_path!r}{where}. Looked in:\n{tried}")


class ImportCycleError(SolbuildError):
    """Two or more files import each other."""

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = list(cycle)
        super().__init__(f"Import cycle detected: {' -> '.join(self.cycle)}")


class CompilerInvocationError(SolbuildError):
    """The compiler binary or library could not be run."""

    def __init__(self, backend: str, reason: str) -> None:
        self.backend = backend
        super().__init__(f"Compiler '{backend}' failed to run: {reason}")


class CompilationError(SolbuildError):
    """The compiler ran and reported at least one error-severity diagnostic."""

    def __init__(self, diagnostics: Sequence["Diagnostic"], hint: str | None = None) -> None:
        self.diagnostics = list(diagnostics)
        self.hint = hint
        errors = [d for d in self.diagnostics if d.is_error]
        message = f"Compiler errors! ({len(errors)} error(s), {len(self.diagnostics) - len(errors)} warning(s))"
        if hint:
            message = f"{message}\n{hint}"
        super().__init__(message)
