"""Typer-based CLI for incremental Solidity builds."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer

from solbuild.compiler import native_solc_matches, normalize_version, parse_version, run_cmd
from solbuild.config import CONFIG_FILENAME, load_options, parse_constant
from solbuild.engine import BuildEngine
from solbuild.errors import CompilerInvocationError, SolbuildError
from solbuild.locator import resolve_base_dir
from solbuild.log import configure_logging

app = typer.Typer(add_completion=False, help="solbuild: incremental Solidity builds with artifacts and flattened sources")


def _echo_step(step: int, total: int, message: str) -> None:
    """Print a normalized progress step line."""
    typer.echo(f"[{step}/{total}] {message}")


def _build_overrides(
    *,
    artifacts_dir: Path | None,
    flattened_dir: Path | None,
    solc_version: str | None,
    insert_file_names: str | None,
    optimizer_runs: int | None,
    no_optimizer: bool,
    constants: list[str] | None,
) -> dict[str, Any]:
    """Translate CLI flags into ``BuildOptions`` overrides; ``None`` keeps the configured value."""
    return {
        "artifacts_dir": artifacts_dir,
        "flattened_dir": flattened_dir,
        "solc_version": solc_version,
        "insert_file_names": insert_file_names,
        "optimizer_runs": optimizer_runs,
        "optimizer_enabled": False if no_optimizer else None,
        "constants": dict(parse_constant(raw) for raw in constants) if constants else None,
    }


@app.command("build")
def build(
    files: list[str] = typer.Argument(..., help="Solidity files to compile, relative to the working directory"),
    artifacts_dir: Path | None = typer.Option(None, "--artifacts-dir", help="Directory for <Contract>.json artifacts"),
    flattened_dir: Path | None = typer.Option(
        None, "--flattened-dir", help="Directory for *_all.sol files and standard-json dumps"
    ),
    solc_version: str | None = typer.Option(None, "--solc-version", help="Compiler version, e.g. v0.8.19+commit.7dd6d404"),
    insert_file_names: str | None = typer.Option(
        None, "--insert-file-names", help="Annotate flattened files: none, imports, or all"
    ),
    optimizer_runs: int | None = typer.Option(None, "--optimizer-runs", help="Optimizer runs"),
    no_optimizer: bool = typer.Option(False, "--no-optimizer", help="Disable the optimizer"),
    constants: list[str] | None = typer.Option(
        None, "--constant", help="Rewrite `constant NAME = ...;` declarations (NAME=VALUE, repeatable)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log file loading and import resolution"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log warnings and errors"),
    log_file: Path | None = typer.Option(None, "--log-file", help="Also write debug logs to this file"),
) -> None:
    """Compile changed files and write artifacts plus flattened sources."""
    configure_logging(verbose=verbose, quiet=quiet, log_file=log_file)

    _echo_step(1, 3, "Loading configuration")
    try:
        options = load_options(
            resolve_base_dir(Path.cwd()),
            _build_overrides(
                artifacts_dir=artifacts_dir,
                flattened_dir=flattened_dir,
                solc_version=solc_version,
                insert_file_names=insert_file_names,
                optimizer_runs=optimizer_runs,
                no_optimizer=no_optimizer,
                constants=constants,
            ),
        )
    except SolbuildError as exc:
        raise typer.BadParameter(str(exc)) from exc

    _echo_step(2, 3, f"Building {len(files)} file(s)")
    outcome = BuildEngine(options, files).run()

    _echo_step(3, 3, "Summarizing")
    if outcome.status == "failed":
        typer.echo(f"Build failed: {outcome.reason}", err=True)
        raise typer.Exit(code=1)
    if outcome.status == "nothing_to_do":
        typer.echo(f"Nothing to do. {outcome.reason} skipped={len(outcome.skipped)}")
        return
    typer.echo(
        "Build complete. "
        f"compiled={len(outcome.compiled)} skipped={len(outcome.skipped)} "
        f"artifacts={len(outcome.artifacts)} flattened={len(outcome.flattened)}"
    )


@app.command("doctor")
def doctor(
    solc_version: str | None = typer.Option(None, "--solc-version", help="Version to check against"),
) -> None:
    """Print local environment diagnostics used by the build."""
    base_dir = resolve_base_dir(Path.cwd())
    try:
        options = load_options(base_dir, {"solc_version": solc_version})
    except SolbuildError as exc:
        raise typer.BadParameter(str(exc)) from exc

    typer.echo(f"Base dir: {base_dir}")
    typer.echo(f"Config file: {(base_dir / CONFIG_FILENAME).exists()} ({base_dir / CONFIG_FILENAME})")
    try:
        native = parse_version(run_cmd(["solc", "--version"], "solc"))
    except CompilerInvocationError:
        native = None
    typer.echo(f"Native solc: {native or 'not found'}")
    requested = normalize_version(options.solc_version) if options.solc_version else "any"
    typer.echo(f"Requested version: {requested}")
    backend = "solc" if native_solc_matches(options.solc_version) else "solcx"
    typer.echo(f"Selected backend: {backend}")


if __name__ == "__main__":
    app()
