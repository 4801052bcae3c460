"""Run one incremental build from requested files to written artifacts."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Sequence

from solbuild.artifacts import ArtifactStore
from solbuild.assembler import assemble_request, prune_request
from solbuild.compiler import Compiler, check_diagnostics, select_compiler
from solbuild.config import STANDARD_INPUT_FILENAME, STANDARD_OUTPUT_FILENAME, BuildOptions
from solbuild.context import BuildContext
from solbuild.detector import ChangeDetector
from solbuild.errors import CompilationError, SolbuildError
from solbuild.locator import PackageLookup, node_package_lookup
from solbuild.log import get_logger
from solbuild.models import BuildOutcome
from solbuild.output import OutputProcessor
from solbuild.scanner import SourceScanner

logger = get_logger("engine")


class BuildEngine:
    """Compiles only the requested files whose sources or imports changed.

    The engine holds configuration only. Every ``run`` builds a fresh
    ``BuildContext``, so repeated runs on one engine never share caches.
    """

    def __init__(
        self,
        options: BuildOptions,
        targets: Sequence[str],
        compiler: Compiler | None = None,
        root: Path | None = None,
        package_lookup: PackageLookup = node_package_lookup,
        scanner: SourceScanner | None = None,
    ):
        self.options = options
        self.targets = list(targets)
        self.compiler = compiler
        self.root = root
        self.package_lookup = package_lookup
        self.scanner = scanner

    def run(self) -> BuildOutcome:
        if not self.targets:
            logger.info("No files to compile")
            return BuildOutcome.nothing_to_do("No files to compile")
        try:
            return self._run()
        except CompilationError as exc:
            if exc.hint:
                logger.error("%s", exc.hint)
            return BuildOutcome.failed(exc, exc.diagnostics)
        except SolbuildError as exc:
            logger.error("%s", exc)
            return BuildOutcome.failed(exc)

    def _run(self) -> BuildOutcome:
        ctx = BuildContext.create(
            self.options,
            self.targets,
            root=self.root,
            package_lookup=self.package_lookup,
            scanner=self.scanner,
        )
        ctx.store.load_all(ctx.targets)

        request = assemble_request(ctx)

        logger.info("calculating contract hashes...")
        compiler = self.compiler or select_compiler(self.options.solc_version)
        version = compiler.version()
        artifacts = ArtifactStore(ctx.resolve_path(self.options.artifacts_dir))
        report = ChangeDetector(ctx, artifacts).classify(request, version)
        if not report.dirty:
            return BuildOutcome.nothing_to_do("All contracts and dependencies unchanged", skipped=report.unchanged)

        prune_request(ctx, request, report.dirty)
        flattened_dir = ctx.resolve_path(self.options.flattened_dir)
        flattened_dir.mkdir(parents=True, exist_ok=True)
        (flattened_dir / STANDARD_INPUT_FILENAME).write_text(
            json.dumps(request.to_wire(), indent=2), encoding="utf-8"
        )

        logger.info("compiling contracts...\n\n%s\n", "\n".join(report.dirty))
        response = compiler.compile(request, ctx.locator.import_callback)
        check_diagnostics(response.errors, compiler.name, version)

        logger.info("saving output...")
        processor = OutputProcessor(ctx, artifacts)
        written, flattened = processor.process(response, request, compiler.name, version)
        processor.write_standard_output(response, flattened_dir / STANDARD_OUTPUT_FILENAME)

        return BuildOutcome(
            status="compiled",
            compiled=report.dirty,
            skipped=report.unchanged,
            artifacts=written,
            flattened=flattened,
            diagnostics=response.errors,
        )
