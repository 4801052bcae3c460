"""Per-run build state."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from solbuild.config import BuildOptions
from solbuild.file_store import FileStore
from solbuild.locator import LibraryRegistry, PackageLookup, SourceLocator, node_package_lookup, resolve_base_dir
from solbuild.remapping import RemapTable
from solbuild.resolver import DependencyResolver
from solbuild.scanner import RegexScanner, SourceScanner


@dataclass
class BuildContext:
    """Everything one run mutates: file pools, dependency memo, and aliases.

    A context is never shared between runs; the engine builds a new one each
    time so two runs cannot corrupt each other's caches.
    """

    options: BuildOptions
    root: Path
    base_dir: Path
    targets: list[str]
    store: FileStore
    locator: SourceLocator
    resolver: DependencyResolver
    scanner: SourceScanner
    remappings: RemapTable = field(default_factory=RemapTable)

    @classmethod
    def create(
        cls,
        options: BuildOptions,
        targets: Sequence[str],
        root: Path | None = None,
        package_lookup: PackageLookup = node_package_lookup,
        scanner: SourceScanner | None = None,
    ) -> "BuildContext":
        root = Path(root) if root is not None else Path.cwd()
        base_dir = resolve_base_dir(root, options.manifest_name)
        scanner = scanner or RegexScanner()
        store = FileStore(root, constants=options.constants)
        registry = LibraryRegistry(base_dir, lib_dir=options.lib_dir, extension=options.source_extension)
        locator = SourceLocator(store, base_dir, registry, package_lookup=package_lookup)
        resolver = DependencyResolver(store, locator, scanner)
        return cls(
            options=options,
            root=root,
            base_dir=base_dir,
            targets=list(dict.fromkeys(targets)),
            store=store,
            locator=locator,
            resolver=resolver,
            scanner=scanner,
        )

    def resolve_path(self, path: Path) -> Path:
        """Anchor a configured output path at the working directory."""
        return path if path.is_absolute() else self.root / path
