"""Pydantic models shared across request assembly, compilation, and artifact persistence."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_OUTPUT_SELECTION = [
    "metadata",
    "evm.bytecode.object",
    "evm.bytecode.sourceMap",
    "abi",
    "evm.methodIdentifiers",
    "evm.deployedBytecode.object",
    "evm.deployedBytecode.sourceMap",
]


class WireModel(BaseModel):
    """Base for documents exchanged with the compiler or written to disk."""

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SourceEntry(WireModel):
    """One source unit in a compiler request."""

    keccak256: str
    content: str
    urls: list[str] | None = None


class OptimizerSettings(WireModel):
    enabled: bool = True
    runs: int = 200


class MetadataSettings(WireModel):
    use_literal_content: bool = Field(default=True, alias="useLiteralContent")


class CompilerSettings(WireModel):
    remappings: list[str] = Field(default_factory=list)
    optimizer: OptimizerSettings = Field(default_factory=OptimizerSettings)
    metadata: MetadataSettings = Field(default_factory=MetadataSettings)
    output_selection: dict[str, dict[str, list[str]]] = Field(
        default_factory=lambda: {"*": {"*": list(DEFAULT_OUTPUT_SELECTION)}},
        alias="outputSelection",
    )


class CompilerInput(WireModel):
    """Standard-JSON request document handed to the compiler."""

    language: str = "Solidity"
    sources: dict[str, SourceEntry] = Field(default_factory=dict)
    settings: CompilerSettings = Field(default_factory=CompilerSettings)


class Diagnostic(BaseModel):
    """A compiler error or warning."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    severity: str = "error"
    type: str = ""
    message: str = ""
    formatted_message: str = Field(default="", alias="formattedMessage")

    @property
    def is_error(self) -> bool:
        return self.severity == "error"

    def render(self) -> str:
        return f"{self.severity.upper()}: {self.formatted_message or self.message}"


class CompilerOutput(BaseModel):
    """Standard-JSON response document returned by the compiler."""

    model_config = ConfigDict(extra="allow")

    errors: list[Diagnostic] = Field(default_factory=list)
    sources: dict[str, dict[str, Any]] = Field(default_factory=dict)
    contracts: dict[str, dict[str, dict[str, Any]]] = Field(default_factory=dict)


class SourceRecord(WireModel):
    """A source file recorded in an artifact's dependency manifest."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    keccak256: str
    file: str | None = None
    id: int | None = None


class CompilerInfo(WireModel):
    name: str
    keccak256: str
    version: str
    settings: CompilerSettings


class BuildArtifact(WireModel):
    """Persisted build record for one contract, interface, or library."""

    contract_name: str = Field(alias="contractName")
    source: str
    compiler_output: dict[str, Any] = Field(alias="compilerOutput")
    sources: dict[str, SourceRecord]
    compiler: CompilerInfo
    updated_at: datetime | None = Field(default=None, alias="updatedAt")


class ChangeReport(BaseModel):
    dirty: list[str] = Field(default_factory=list)
    unchanged: list[str] = Field(default_factory=list)


class BuildOutcome(BaseModel):
    """Result of one engine run: compiled, nothing to do, or failed."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    status: Literal["compiled", "nothing_to_do", "failed"]
    compiled: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    artifacts: list[Path] = Field(default_factory=list)
    flattened: list[Path] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)
    reason: str = ""
    error: Exception | None = None

    @classmethod
    def nothing_to_do(cls, reason: str, skipped: list[str] | None = None) -> "BuildOutcome":
        return cls(status="nothing_to_do", reason=reason, skipped=skipped or [])

    @classmethod
    def failed(cls, error: Exception, diagnostics: list[Diagnostic] | None = None) -> "BuildOutcome":
        return cls(status="failed", reason=str(error), error=error, diagnostics=diagnostics or [])

    @property
    def ok(self) -> bool:
        return self.status != "failed"
