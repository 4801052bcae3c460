"""In-memory pools of source text for one build run."""

from __future__ import annotations

import re
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, Mapping

from Crypto.Hash import keccak

from solbuild.errors import SourceReadError
from solbuild.log import get_logger

logger = get_logger("file_store")


def keccak256(text: str) -> str:
    """Return the 0x-prefixed keccak256 digest of ``text`` encoded as UTF-8."""
    digest = keccak.new(digest_bits=256)
    digest.update(text.encode("utf-8"))
    return "0x" + digest.hexdigest()


def apply_constants(text: str, constants: Mapping[str, object]) -> str:
    """Rewrite ``constant NAME = ...;`` declarations with configured values."""
    out = text
    for name, value in constants.items():
        rule = re.compile(rf"constant {re.escape(name)} = (.*);", re.MULTILINE)
        replacement = f"constant {name} = {value};"
        out = rule.sub(lambda _match: replacement, out)
    return out


class FileStore:
    """Single owner of "what is the current content of path P" for a run.

    Files live in exactly one of two pools: ``primary`` for requested targets
    and ``dependency`` for everything pulled in through imports. Keys are the
    path spellings used in imports and in the compiler request; ``file_map``
    records which file on disk backs each key.
    """

    def __init__(self, root: Path, constants: Mapping[str, object] | None = None, max_workers: int = 8):
        self.root = Path(root)
        self.constants = dict(constants or {})
        self.max_workers = max_workers
        self.primary: dict[str, str] = {}
        self.dependency: dict[str, str] = {}
        self.file_map: dict[str, Path] = {}
        self._fingerprints: dict[str, str] = {}

    def __contains__(self, key: object) -> bool:
        return key in self.primary or key in self.dependency

    def load(self, key: str, disk_path: Path | None = None, *, dependency: bool = False) -> str:
        """Read ``key`` from disk (blocking) unless it is already loaded."""
        if key in self:
            return self.content(key)

        _, path, text = self._read(key, disk_path)
        pool = self.dependency if dependency else self.primary
        pool[key] = text
        self.file_map[key] = path
        return text

    def load_all(
        self,
        keys: Iterable[str],
        *,
        dependency: bool = False,
        blocking: bool = False,
        paths: Mapping[str, Path] | None = None,
    ) -> None:
        """Load a batch of files.

        With ``blocking=False`` the reads run on a thread pool and are joined
        before returning. ``blocking=True`` reads inline and is the mode used
        while resolving imports, where the caller must not be suspended.
        ``paths`` gives the disk location for keys that are not relative to
        the store root.
        """
        paths = paths or {}
        pending = [key for key in dict.fromkeys(keys) if key not in self]
        if blocking or len(pending) < 2:
            for key in pending:
                self.load(key, paths.get(key), dependency=dependency)
            return

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = [pool.submit(self._read, key, paths.get(key)) for key in pending]
            results = [future.result() for future in futures]

        target = self.dependency if dependency else self.primary
        for key, path, text in results:
            target[key] = text
            self.file_map[key] = path

    def content(self, key: str) -> str:
        if key in self.primary:
            return self.primary[key]
        return self.dependency[key]

    def get(self, key: str) -> str | None:
        if key in self:
            return self.content(key)
        return None

    def fingerprint(self, key: str) -> str:
        cached = self._fingerprints.get(key)
        if cached is None:
            cached = keccak256(self.content(key))
            self._fingerprints[key] = cached
        return cached

    def demote(self, key: str) -> None:
        """Move a primary target into the dependency pool."""
        if key in self.primary:
            self.dependency[key] = self.primary.pop(key)

    def primary_keys(self) -> list[str]:
        return list(self.primary)

    def _read(self, key: str, disk_path: Path | None = None) -> tuple[str, Path, str]:
        path = Path(disk_path) if disk_path is not None else self.root / key
        logger.debug("loading file -> %s", key)
        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise SourceReadError(key, str(exc)) from exc
        return key, path.resolve(), apply_constants(raw, self.constants)
