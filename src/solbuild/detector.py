"""Decide which requested targets need recompiling."""

from __future__ import annotations

from solbuild.artifacts import ArtifactStore
from solbuild.context import BuildContext
from solbuild.log import get_logger
from solbuild.models import ChangeReport, CompilerInput

logger = get_logger("detector")


class ChangeDetector:
    """Compares fresh fingerprints against the last recorded artifacts.

    Only the first contract declared in a file is checked: every contract in
    a file shares the same imports, compiler version, and file hash.
    """

    def __init__(self, ctx: BuildContext, artifacts: ArtifactStore):
        self.ctx = ctx
        self.artifacts = artifacts

    def classify(self, request: CompilerInput, compiler_version: str) -> ChangeReport:
        """Split primary targets into dirty and unchanged, demoting the unchanged ones.

        ``request`` must be the assembled, unpruned request so every file in
        every closure has a fresh fingerprint.
        """
        report = ChangeReport()
        for target in self.ctx.store.primary_keys():
            if self.is_unchanged(target, request, compiler_version):
                report.unchanged.append(target)
            else:
                report.dirty.append(target)

        for target in report.unchanged:
            logger.info("skipping %s... contract and dependencies unchanged", target)
            # still needed as import content for dirty targets
            self.ctx.store.demote(target)
        return report

    def is_unchanged(self, target: str, request: CompilerInput, compiler_version: str) -> bool:
        names = self.ctx.scanner.declarations(self.ctx.store.content(target))
        if not names:
            return False

        artifact = self.artifacts.read(names[0])
        if artifact is None:
            return False
        if not artifact.compiler.version or artifact.compiler.version != compiler_version:
            logger.debug("%s was built with %r, now %r", target, artifact.compiler.version, compiler_version)
            return False

        closure = self._canonical_closure(target, request)
        if len(artifact.sources) != len(closure):
            return False

        for key in closure:
            recorded = artifact.sources.get(key)
            entry = request.sources.get(key)
            if recorded is None or entry is None or recorded.keccak256 != entry.keccak256:
                logger.debug("%s changed (via %s)", target, key)
                return False
        return True

    def _canonical_closure(self, target: str, request: CompilerInput) -> list[str]:
        keys = []
        for path in self.ctx.resolver.closure(target):
            keys.append(path if path in request.sources else self.ctx.remappings.canonical(path))
        return list(dict.fromkeys(keys))
