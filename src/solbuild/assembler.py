"""Build and prune the standard-JSON compiler request."""

from __future__ import annotations

from typing import Iterable

from solbuild.context import BuildContext
from solbuild.log import get_logger
from solbuild.models import (
    CompilerInput,
    CompilerSettings,
    MetadataSettings,
    OptimizerSettings,
    SourceEntry,
)

logger = get_logger("assembler")


def assemble_request(ctx: BuildContext) -> CompilerInput:
    """Register every primary target and its full import closure.

    A file reached under a second spelling (same file on disk) is not added
    twice; the second spelling becomes a remapping to the canonical key.
    Requested targets are preferred as canonical keys, then non-relative
    spellings over ``./``-style ones.
    """
    options = ctx.options
    request = CompilerInput(
        settings=CompilerSettings(
            optimizer=OptimizerSettings(enabled=options.optimizer_enabled, runs=options.optimizer_runs),
            metadata=MetadataSettings(use_literal_content=options.use_literal_content),
            output_selection={"*": {"*": list(options.output_selection)}},
        )
    )
    identities: dict[str, str] = {}

    for target in ctx.store.primary_keys():
        _register(ctx, request, identities, target)
        for dependency in ctx.resolver.resolve(target):
            _register(ctx, request, identities, dependency)

    # urls only exist to detect aliases; literal content makes them redundant
    if options.use_literal_content:
        for entry in request.sources.values():
            entry.urls = None

    request.settings.remappings = ctx.remappings.as_settings()
    return request


def prune_request(ctx: BuildContext, request: CompilerInput, dirty: Iterable[str]) -> CompilerInput:
    """Drop sources and remappings no dirty target needs."""
    needed: set[str] = set()
    for target in dirty:
        needed.update(ctx.resolver.closure(target))

    remaps = [(alias, canonical) for alias, canonical in ctx.remappings if alias in needed]
    request.settings.remappings = [f"{alias}={canonical}" for alias, canonical in remaps]
    remap_targets = {canonical for _, canonical in remaps}

    for key in list(request.sources):
        if key not in needed and key not in remap_targets:
            logger.debug("pruning %s from compiler request", key)
            del request.sources[key]
    return request


def _register(ctx: BuildContext, request: CompilerInput, identities: dict[str, str], path: str) -> None:
    if path in request.sources or path in ctx.remappings:
        return

    url = ctx.store.file_map[path].as_uri()
    existing = identities.get(url)
    if existing is None:
        request.sources[path] = SourceEntry(
            keccak256=ctx.store.fingerprint(path),
            content=ctx.store.content(path),
            urls=[url],
        )
        identities[url] = path
        return

    if _rank(ctx, path) > _rank(ctx, existing):
        request.sources[path] = request.sources.pop(existing)
        ctx.remappings.rehome(existing, path)
        identities[url] = path
    else:
        ctx.remappings.add(path, existing)


def _rank(ctx: BuildContext, path: str) -> tuple[bool, bool]:
    return path in ctx.targets, not path.startswith(".")
