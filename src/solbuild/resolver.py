"""Recursive import resolution for source files."""

from __future__ import annotations

import posixpath

from solbuild.errors import ImportCycleError, UnresolvedImportError
from solbuild.file_store import FileStore
from solbuild.locator import SourceLocator
from solbuild.log import get_logger
from solbuild.scanner import SourceScanner

logger = get_logger("resolver")


def import_key(importer: str, reference: str) -> str:
    """Return the path the compiler will request for ``reference`` imported from ``importer``.

    Non-relative references are used verbatim. Relative ones are joined with
    the importer's directory, keeping a leading ``./`` when the importer was
    spelled with one, so the key matches what the compiler's import callback
    asks for.
    """
    if not reference.startswith("."):
        return reference
    directory = posixpath.dirname(importer)
    joined = posixpath.normpath(posixpath.join(directory, reference))
    if directory.startswith(".") and not joined.startswith("."):
        joined = f"./{joined}"
    return joined


class DependencyResolver:
    """Computes the ordered, de-duplicated transitive imports of a file.

    Results are memoized for the lifetime of the resolver, which is one run.
    Callers always receive a copy.
    """

    def __init__(self, store: FileStore, locator: SourceLocator, scanner: SourceScanner):
        self.store = store
        self.locator = locator
        self.scanner = scanner
        self._deps: dict[str, list[str]] = {}
        self._visiting: list[str] = []

    def resolve(self, path: str) -> list[str]:
        """Return every file ``path`` transitively imports, dependencies first.

        Raises:
            UnresolvedImportError: An import cannot be found on disk.
            ImportCycleError: ``path`` reaches itself through its imports.
        """
        cached = self._deps.get(path)
        if cached is not None:
            return list(cached)

        if path in self._visiting:
            start = self._visiting.index(path)
            raise ImportCycleError([*self._visiting[start:], path])

        self._visiting.append(path)
        try:
            found: list[str] = []
            for reference in self.scanner.imports(self.store.get(path) or ""):
                dependency = import_key(path, reference)
                if dependency not in self.store:
                    try:
                        self.locator.locate(dependency)
                    except UnresolvedImportError as exc:
                        raise UnresolvedImportError(dependency, exc.attempted, importer=path) from exc
                found.extend(self.resolve(dependency))
                found.append(dependency)
        finally:
            self._visiting.pop()

        deps = list(dict.fromkeys(found))
        self._deps[path] = deps
        return list(deps)

    def closure(self, path: str) -> list[str]:
        """Return the dependencies of ``path`` followed by ``path`` itself."""
        return [*self.resolve(path), path]
