"""Compiler backends speaking the solc standard-JSON protocol.

Two interchangeable backends exist: ``NativeSolc`` runs a ``solc`` found on
``PATH``; ``SolcxCompiler`` installs the requested version on demand with
py-solc-x and runs the managed binary. ``select_compiler`` picks native solc
when it is installed and matches the requested version.
"""

from __future__ import annotations

import json
import re
import subprocess
from pathlib import Path
from typing import Callable, Protocol, Sequence

from pydantic import ValidationError

from solbuild.errors import CompilationError, CompilerInvocationError
from solbuild.log import get_logger
from solbuild.models import CompilerInput, CompilerOutput, Diagnostic

logger = get_logger("compiler")

VERSION_RE = re.compile(r"\d+\.\d+\.\d+\+commit\.[0-9a-f]{8}")
SEMVER_RE = re.compile(r"\d+\.\d+\.\d+")

ImportCallback = Callable[[str], dict[str, str]]


class Compiler(Protocol):
    name: str

    def version(self) -> str: ...

    def compile(self, request: CompilerInput, import_callback: ImportCallback | None = None) -> CompilerOutput: ...


def normalize_version(version: str) -> str:
    """Strip the leading ``v`` from a version such as ``v0.8.19+commit.7dd6d404``."""
    version = version.strip()
    return version[1:] if version.startswith("v") else version


def parse_version(text: str) -> str | None:
    """Extract ``X.Y.Z+commit.XXXXXXXX`` from compiler version output."""
    match = VERSION_RE.search(text)
    return match.group(0) if match else None


def run_cmd(cmd: Sequence[str], backend: str, stdin: str | None = None) -> str:
    """Run a compiler command and return stdout, raising on failure to start or non-zero exit."""
    try:
        proc = subprocess.run(list(cmd), input=stdin, capture_output=True, text=True, check=False)
    except OSError as exc:
        raise CompilerInvocationError(backend, str(exc)) from exc
    if proc.returncode != 0 and not proc.stdout.strip():
        raise CompilerInvocationError(backend, f"{' '.join(cmd)}: {proc.stderr.strip()}")
    return proc.stdout


def run_standard_json(executable: str | Path, request: CompilerInput, backend: str) -> CompilerOutput:
    stdout = run_cmd([str(executable), "--standard-json"], backend, stdin=json.dumps(request.to_wire()))
    try:
        return CompilerOutput.model_validate_json(stdout)
    except ValidationError as exc:
        raise CompilerInvocationError(backend, f"unreadable standard-json output: {exc}") from exc


def check_diagnostics(diagnostics: Sequence[Diagnostic], backend: str, version: str) -> None:
    """Report compiler diagnostics and raise when any of them is an error."""
    if not diagnostics:
        return

    has_error = False
    for diagnostic in diagnostics:
        if diagnostic.is_error:
            has_error = True
            logger.error("%s", diagnostic.render())
        else:
            logger.warning("%s", diagnostic.render())

    if not has_error:
        return

    hint = None
    if any(d.type == "ParserError" for d in diagnostics):
        hint = (
            f'Is {backend} "{version}" the correct version needed for your contracts? '
            "A ParserError occurred, which is raised before the 'pragma' directive is checked. "
            "You may need a more up-to-date compiler."
        )
    raise CompilationError(diagnostics, hint=hint)


class NativeSolc:
    """``solc`` binary found on ``PATH``.

    Binary backends receive every needed source inside the request, so the
    import callback is not consulted.
    """

    name = "solc"

    def __init__(self, executable: str = "solc"):
        self.executable = executable
        self._version: str | None = None

    def version(self) -> str:
        if self._version is None:
            output = run_cmd([self.executable, "--version"], self.name)
            found = parse_version(output)
            if found is None:
                raise CompilerInvocationError(self.name, f"cannot read version from {output.strip()!r}")
            self._version = found
        return self._version

    def compile(self, request: CompilerInput, import_callback: ImportCallback | None = None) -> CompilerOutput:
        logger.info("compiling contracts using native solc")
        return run_standard_json(self.executable, request, self.name)


class SolcxCompiler:
    """solc managed by py-solc-x, installed on first use when missing."""

    name = "solcx"

    def __init__(self, requested: str | None = None):
        self.requested = requested
        self._executable: Path | None = None
        self._version: str | None = None

    def executable(self) -> Path:
        if self._executable is None:
            import solcx
            from solcx.exceptions import DownloadError, SolcInstallationError, SolcNotInstalled

            wanted = self._semver()
            try:
                if wanted is None:
                    try:
                        self._executable = Path(solcx.get_executable())
                    except SolcNotInstalled:
                        logger.info("no managed solc found, installing latest")
                        solcx.install_solc()
                        self._executable = Path(solcx.get_executable())
                else:
                    installed = {str(v) for v in solcx.get_installed_solc_versions()}
                    if wanted not in installed:
                        logger.info("setting solc version %s", wanted)
                        solcx.install_solc(wanted)
                    self._executable = Path(solcx.get_executable(wanted))
            except (DownloadError, SolcInstallationError, SolcNotInstalled, ValueError, OSError) as exc:
                raise CompilerInvocationError(self.name, str(exc)) from exc
        return self._executable

    def version(self) -> str:
        if self._version is None:
            output = run_cmd([str(self.executable()), "--version"], self.name)
            found = parse_version(output)
            if found is None:
                raise CompilerInvocationError(self.name, f"cannot read version from {output.strip()!r}")
            self._version = found
        return self._version

    def compile(self, request: CompilerInput, import_callback: ImportCallback | None = None) -> CompilerOutput:
        logger.info("compiling contracts using solc %s", self.version())
        return run_standard_json(self.executable(), request, self.name)

    def _semver(self) -> str | None:
        if not self.requested:
            return None
        match = SEMVER_RE.search(self.requested)
        if match is None:
            raise CompilerInvocationError(self.name, f"unrecognised solc version {self.requested!r}")
        return match.group(0)


def native_solc_matches(requested: str | None, executable: str = "solc") -> bool:
    """Return ``True`` when a native solc is installed and satisfies ``requested``."""
    try:
        output = run_cmd([executable, "--version"], "solc")
    except CompilerInvocationError:
        return False

    if not requested:
        return True

    found = parse_version(output)
    if found is None:
        return False

    wanted = normalize_version(requested)
    if found == wanted or found.split("+")[0] == wanted:
        return True

    logger.info("native solc found, but wrong version... need version %s, using solcx", wanted)
    return False


def select_compiler(requested: str | None = None, executable: str = "solc") -> Compiler:
    if native_solc_matches(requested, executable):
        return NativeSolc(executable)
    return SolcxCompiler(requested)
