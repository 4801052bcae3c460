"""Turn a compiler response into artifacts and flattened sources."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Sequence

from solbuild.artifacts import ArtifactStore
from solbuild.context import BuildContext
from solbuild.log import get_logger
from solbuild.models import (
    BuildArtifact,
    CompilerInfo,
    CompilerInput,
    CompilerOutput,
    SourceRecord,
)

logger = get_logger("output")

_SOURCE_NOISE = ("ast", "legacyAST")


def selected_fields(
    output_selection: Mapping[str, Mapping[str, Sequence[str]]],
    source: str,
    contract_name: str,
    keep_metadata: bool = False,
) -> list[str]:
    """Collect the output fields requested for one contract.

    ``outputSelection["*"]["*"]`` and the file-level ``outputSelection["*"][""]``
    apply to every contract; ``outputSelection[source][contract_name]`` adds to
    them. ``metadata`` from the wildcards is dropped unless ``keep_metadata``.
    """
    wildcard = output_selection.get("*", {})
    fields = [*wildcard.get("*", []), *wildcard.get("", [])]
    if not keep_metadata:
        fields = [field for field in fields if field != "metadata"]
    fields.extend(output_selection.get(source, {}).get(contract_name, []))
    return fields


def filter_compiler_output(
    output_selection: Mapping[str, Mapping[str, Sequence[str]]],
    source: str,
    contract_name: str,
    output: Mapping[str, Any],
    keep_metadata: bool = False,
) -> dict[str, Any]:
    """Keep only the requested fields of one contract's compiler output.

    Some compiler builds ignore ``outputSelection`` and return assembly,
    opcodes, and other bulky fields; those must not reach the artifacts.
    """
    fields = selected_fields(output_selection, source, contract_name, keep_metadata)
    if "*" in fields:
        return dict(output)
    return _filter_object(output, set(fields), "")


def _filter_object(obj: Mapping[str, Any], fields: set[str], prefix: str) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in obj.items():
        selector = f"{prefix}.{key}" if prefix else key
        if not any(field == selector or field.startswith(f"{selector}.") for field in fields):
            continue
        if selector in fields or f"{selector}.*" in fields or not isinstance(value, Mapping):
            result[key] = value
        else:
            result[key] = _filter_object(value, fields, selector)
    return result


def trim_standard_output(response: CompilerOutput) -> dict[str, Any]:
    """Return the response without syntax trees, assembly dumps, and opcodes."""
    payload = response.model_dump(mode="json", by_alias=True)
    for source in payload.get("sources", {}).values():
        for key in _SOURCE_NOISE:
            source.pop(key, None)
    for contracts in payload.get("contracts", {}).values():
        for contract in contracts.values():
            evm = contract.get("evm")
            if not isinstance(evm, dict):
                continue
            evm.pop("assembly", None)
            evm.pop("legacyAssembly", None)
            for section in ("bytecode", "deployedBytecode"):
                if isinstance(evm.get(section), dict):
                    evm[section].pop("opcodes", None)
    return payload


class OutputProcessor:
    def __init__(self, ctx: BuildContext, artifacts: ArtifactStore):
        self.ctx = ctx
        self.artifacts = artifacts
        self._flattened: dict[Path, str] = {}

    def process(
        self,
        response: CompilerOutput,
        request: CompilerInput,
        compiler_name: str,
        compiler_version: str,
    ) -> tuple[list[Path], list[Path]]:
        """Write artifacts and flattened files for every compiled target."""
        written: list[Path] = []
        flattened: list[Path] = []
        for target in self.ctx.store.primary_keys():
            written.extend(self.write_artifacts(target, response, request, compiler_name, compiler_version))
            flattened.append(self.write_flattened(target))
        return written, flattened

    def source_manifest(
        self, target: str, response: CompilerOutput, request: CompilerInput
    ) -> dict[str, SourceRecord]:
        """Map every file in ``target``'s closure to its hash, location, and compiler id."""
        keys: list[str] = []
        for path in self.ctx.resolver.closure(target):
            key = path if path in response.sources else self.ctx.remappings.get(path)
            if key is not None and key in response.sources:
                keys.append(key)
        keys = sorted(dict.fromkeys(keys), key=lambda key: response.sources[key].get("id", 0))

        manifest: dict[str, SourceRecord] = {}
        for key in keys:
            extra = {name: value for name, value in response.sources[key].items() if name not in _SOURCE_NOISE}
            entry = request.sources.get(key)
            disk_path = self.ctx.store.file_map.get(key)
            manifest[key] = SourceRecord.model_validate(
                {
                    **extra,
                    "keccak256": entry.keccak256 if entry else self.ctx.store.fingerprint(key),
                    "file": str(disk_path) if disk_path else None,
                }
            )
        return manifest

    def write_artifacts(
        self,
        target: str,
        response: CompilerOutput,
        request: CompilerInput,
        compiler_name: str,
        compiler_version: str,
    ) -> list[Path]:
        key = target if target in response.contracts else self.ctx.remappings.canonical(target)
        contracts = response.contracts.get(key, {})
        if not contracts:
            logger.warning("compiler returned no contracts for %s", target)
            return []

        sources = self.source_manifest(target, response, request)
        entry = request.sources.get(key)
        compiler = CompilerInfo(
            name=compiler_name,
            keccak256=entry.keccak256 if entry else self.ctx.store.fingerprint(target),
            version=compiler_version,
            settings=request.settings,
        )
        updated_at = datetime.now(timezone.utc)
        selection = request.settings.output_selection

        paths = []
        for contract_name, output in contracts.items():
            artifact = BuildArtifact(
                contract_name=contract_name,
                source=target,
                compiler_output=filter_compiler_output(
                    selection, key, contract_name, output, keep_metadata=self.ctx.options.keep_metadata
                ),
                sources=sources,
                compiler=compiler,
                updated_at=updated_at,
            )
            paths.append(self.artifacts.write(artifact))
        return paths

    def flatten(self, target: str) -> str:
        """Concatenate ``target``'s closure, dependencies first, with imports removed."""
        closure = self.ctx.resolver.closure(target)
        mode = self.ctx.options.insert_file_names
        annotate = mode == "all" or (mode == "imports" and len(closure) > 1)

        parts: list[str] = []
        for key in dict.fromkeys(self.ctx.remappings.canonical(path) for path in closure):
            body = self.ctx.scanner.strip_imports(self.ctx.store.content(key))
            if annotate:
                parts.append(f"/* file: {key} */\n{body}\n/* eof ({key}) */\n")
            else:
                parts.append(f"{body}\n")
        return "".join(parts)

    def flattened_path(self, target: str) -> Path:
        name = Path(target).name.removesuffix(self.ctx.options.source_extension)
        return self.ctx.resolve_path(self.ctx.options.flattened_dir) / f"{name}_all{self.ctx.options.source_extension}"

    def write_flattened(self, target: str) -> Path:
        path = self.flattened_path(target)
        previous = self._flattened.get(path)
        if previous is not None and previous != target:
            logger.warning("%s overwrites flattened output of %s at %s", target, previous, path)
        self._flattened[path] = target
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.flatten(target), encoding="utf-8")
        return path

    def write_standard_output(self, response: CompilerOutput, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(trim_standard_output(response), indent=2), encoding="utf-8")
        return path
