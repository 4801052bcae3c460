"""Alias table for files reachable under more than one import spelling."""

from __future__ import annotations

from typing import Iterator


class RemapTable:
    """Maps alias paths to the canonical path registered in the compiler request.

    Every lookup is a single hop: when the canonical choice for a file
    changes, existing entries are rewritten in place to the new canonical.
    """

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    def __contains__(self, alias: object) -> bool:
        return alias in self._entries

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self._entries.items())

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, alias: str, canonical: str) -> None:
        if alias != canonical:
            self._entries[alias] = canonical

    def rehome(self, old: str, new: str) -> None:
        """Make ``new`` canonical in place of ``old``."""
        self._entries.pop(new, None)
        for alias, canonical in self._entries.items():
            if canonical == old:
                self._entries[alias] = new
        self.add(old, new)

    def get(self, alias: str) -> str | None:
        return self._entries.get(alias)

    def canonical(self, path: str) -> str:
        return self._entries.get(path, path)

    def targets(self) -> set[str]:
        return set(self._entries.values())

    def as_settings(self) -> list[str]:
        """Render entries in the compiler's ``alias=canonical`` form."""
        return [f"{alias}={canonical}" for alias, canonical in self._entries.items()]
