"""Build options loaded from ``solbuild.toml`` and overridden by CLI flags.

Reads ``[tool.solbuild]`` from ``solbuild.toml`` in the project root. A
missing file or missing section means every default applies.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Literal, Mapping

from pydantic import BaseModel, Field, ValidationError

from solbuild.errors import ConfigurationError
from solbuild.log import get_logger
from solbuild.models import DEFAULT_OUTPUT_SELECTION

logger = get_logger("config")

CONFIG_FILENAME = "solbuild.toml"
STANDARD_INPUT_FILENAME = "solcStandardInput.json"
STANDARD_OUTPUT_FILENAME = "solcStandardOutput.json"


class BuildOptions(BaseModel):
    """Settings for one build."""

    artifacts_dir: Path = Path("build/artifacts")
    flattened_dir: Path = Path("build/flattened")
    solc_version: str | None = None
    insert_file_names: Literal["none", "imports", "all"] = "none"
    optimizer_enabled: bool = True
    optimizer_runs: int = Field(default=200, ge=1)
    output_selection: list[str] = Field(default_factory=lambda: list(DEFAULT_OUTPUT_SELECTION))
    use_literal_content: bool = True
    keep_metadata: bool = False
    constants: dict[str, str | int | float] = Field(default_factory=dict)
    manifest_name: str = "package.json"
    lib_dir: str = "lib"
    source_extension: str = ".sol"


_KNOWN_KEYS = set(BuildOptions.model_fields)


def load_options(project_root: Path | None = None, overrides: Mapping[str, Any] | None = None) -> BuildOptions:
    """Load build options for ``project_root``.

    Merge order (later wins): model defaults, ``[tool.solbuild]``, then any
    non-``None`` value in ``overrides``.

    Raises:
        ConfigurationError: On TOML parse errors or invalid values.
    """
    if project_root is None:
        project_root = Path.cwd()

    merged: dict[str, Any] = {}
    section = _read_tool_section(project_root / CONFIG_FILENAME)
    if section is not None:
        for key in section:
            if key not in _KNOWN_KEYS:
                logger.warning("Unknown key in [tool.solbuild]: %r", key)
        merged.update({key: value for key, value in section.items() if key in _KNOWN_KEYS})

    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if key == "constants":
            merged["constants"] = {**merged.get("constants", {}), **value}
        else:
            merged[key] = value

    try:
        return BuildOptions.model_validate(merged)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid solbuild configuration: {exc}") from exc


def parse_constant(raw: str) -> tuple[str, str]:
    """Split a ``NAME=VALUE`` command-line constant."""
    name, sep, value = raw.partition("=")
    if not sep or not name.strip():
        raise ConfigurationError(f"Constant must look like NAME=VALUE, got {raw!r}")
    return name.strip(), value.strip()


def _read_tool_section(toml_path: Path) -> dict[str, Any] | None:
    """Read ``[tool.solbuild]`` from *toml_path*, or ``None`` if absent."""
    if not toml_path.is_file():
        return None
    try:
        with toml_path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"Failed to parse {toml_path}: {exc}") from exc
    tool = data.get("tool")
    if not isinstance(tool, dict):
        return None
    section = tool.get("solbuild")
    if not isinstance(section, dict):
        return None
    return section
