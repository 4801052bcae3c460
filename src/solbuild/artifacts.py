"""File-based persistence of per-contract build artifacts."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from solbuild.log import get_logger
from solbuild.models import BuildArtifact

logger = get_logger("artifacts")


class ArtifactStore:
    """Reads and writes ``<ContractName>.json`` files in one directory."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def path_for(self, contract_name: str) -> Path:
        return self.directory / f"{contract_name}.json"

    def read(self, contract_name: str) -> BuildArtifact | None:
        """Load the artifact for ``contract_name``.

        Returns:
            The stored artifact, or ``None`` when it is missing or corrupt.
        """
        path = self.path_for(contract_name)
        if not path.is_file():
            return None
        try:
            return BuildArtifact.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError):
            logger.warning("Corrupt artifact for %s, treating it as missing", contract_name)
            return None

    def write(self, artifact: BuildArtifact) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(artifact.contract_name)
        path.write_text(json.dumps(artifact.to_wire(), indent=2, ensure_ascii=False), encoding="utf-8")
        return path
