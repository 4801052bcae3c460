"""Locate imported source files on disk.

Search order for an import path is fixed:

1. ``<base>/<path>``
2. ``<base>/contracts/<path>``
3. ``<base>/src/<path>``
4. the package search path (``node_modules`` by default)
5. the library registry built from ``lib/**/src/*.sol``

The base directory is the nearest ancestor of the working directory that
holds the project manifest (``package.json``), or the working directory
itself when there is none.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

from solbuild.errors import SourceReadError, UnresolvedImportError
from solbuild.file_store import FileStore
from solbuild.log import get_logger

logger = get_logger("locator")

PackageLookup = Callable[[str, Path], "Path | None"]


def resolve_base_dir(start: Path, manifest: str = "package.json") -> Path:
    """Return the nearest directory at or above ``start`` containing ``manifest``."""
    start = Path(start).resolve()
    for directory in (start, *start.parents):
        if (directory / manifest).is_file():
            return directory
    return start


def node_package_lookup(specifier: str, base_dir: Path) -> Path | None:
    """Find ``specifier`` in the nearest ``node_modules`` directory at or above ``base_dir``."""
    if specifier.startswith("."):
        return None
    for directory in (base_dir, *base_dir.parents):
        candidate = directory / "node_modules" / specifier
        if candidate.is_file():
            return candidate
    return None


class LibraryRegistry:
    """Maps dapp-style library imports to files under ``lib/``.

    Libraries are imported as ``"<lib>/<file>"`` or, for ``index.sol``, just
    ``"<lib>"``. Because libraries are usually git submodules, the same one
    can be vendored at several depths (``lib/ds-token/lib/ds-auth/...``); the
    shortest path wins.
    """

    def __init__(self, base_dir: Path, lib_dir: str = "lib", extension: str = ".sol"):
        self.base_dir = Path(base_dir)
        self.root = self.base_dir / lib_dir
        self.extension = extension
        self._libs: dict[str, Path] | None = None

    @property
    def libraries(self) -> dict[str, Path]:
        if self._libs is None:
            self._libs = self._scan()
        return self._libs

    def get(self, name: str) -> Path | None:
        return self.libraries.get(name)

    def _scan(self) -> dict[str, Path]:
        libs: dict[str, Path] = {}
        if not self.root.is_dir():
            return libs

        logger.debug("collecting lib contracts using glob pattern -> %s/**/src/*%s", self.root, self.extension)
        index_name = f"index{self.extension}"
        for path in sorted(self.root.glob(f"**/src/*{self.extension}")):
            parts = path.relative_to(self.base_dir).parts
            library, filename = parts[-3], parts[-1]
            name = library if filename == index_name else f"{library}/{filename}"
            current = libs.get(name)
            if current is None or len(parts) < len(current.relative_to(self.base_dir).parts):
                libs[name] = path

        for name, path in libs.items():
            logger.debug("mapped %s -> %s", name, path)
        return libs


class SourceLocator:
    """Loads import targets into the file store under their import spelling."""

    def __init__(
        self,
        store: FileStore,
        base_dir: Path,
        registry: LibraryRegistry,
        package_lookup: PackageLookup = node_package_lookup,
    ):
        self.store = store
        self.base_dir = Path(base_dir)
        self.registry = registry
        self.package_lookup = package_lookup

    def locate(self, import_path: str) -> str:
        """Return the content for ``import_path``, loading it as a dependency if needed.

        Raises:
            UnresolvedImportError: When no search location holds the file.
        """
        loaded = self.store.get(import_path)
        if loaded is not None:
            return loaded

        logger.debug("resolving import -> %s", import_path)
        attempted: list[str] = []
        for label, candidate in (
            ("dir", self.base_dir / import_path),
            ("contracts", self.base_dir / "contracts" / import_path),
            ("src", self.base_dir / "src" / import_path),
        ):
            attempted.append(f"{label}: {candidate}")
            if candidate.is_file():
                return self._load(import_path, candidate)

        package = self.package_lookup(import_path, self.base_dir)
        attempted.append(f"packages: {package or self.base_dir / 'node_modules' / import_path}")
        if package is not None and package.is_file():
            return self._load(import_path, package)

        attempted.append(f"libs: {self.registry.root}")
        library = self.registry.get(import_path)
        if library is not None:
            return self._load(import_path, library)

        raise UnresolvedImportError(import_path, attempted)

    def _load(self, import_path: str, disk_path: Path) -> str:
        self.store.load_all([import_path], dependency=True, blocking=True, paths={import_path: disk_path})
        return self.store.content(import_path)

    def import_callback(self, import_path: str) -> dict[str, str]:
        """Adapter for compilers that resolve imports on demand."""
        try:
            return {"contents": self.locate(import_path)}
        except (UnresolvedImportError, SourceReadError) as exc:
            return {"error": str(exc)}
