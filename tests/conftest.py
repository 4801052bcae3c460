from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Callable

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from solbuild.config import BuildOptions
from solbuild.context import BuildContext
from solbuild.models import CompilerInput, CompilerOutput
from solbuild.scanner import RegexScanner

ROOT_SOL = """pragma solidity ^0.8.0;

import "./Lib.sol";

contract Root {
    function value() public pure returns (uint256) {
        return Lib.one();
    }
}
"""

LIB_SOL = """pragma solidity ^0.8.0;

library Lib {
    function one() internal pure returns (uint256) {
        return 1;
    }
}
"""


class FakeSolc:
    """In-process stand-in for ``solc --standard-json``.

    Assigns source ids in sorted key order like solc does and returns more
    output fields than were requested, the way buggy compiler builds do.
    """

    name = "solc"

    def __init__(self, version: str = "0.8.19+commit.7dd6d404"):
        self._version = version
        self.errors: list[dict[str, str]] = []
        self.calls: list[CompilerInput] = []

    def version(self) -> str:
        return self._version

    def compile(self, request: CompilerInput, import_callback=None) -> CompilerOutput:
        self.calls.append(request.model_copy(deep=True))
        scanner = RegexScanner()
        sources: dict[str, dict] = {}
        contracts: dict[str, dict] = {}
        for index, key in enumerate(sorted(request.sources)):
            sources[key] = {"id": index, "ast": {"nodeType": "SourceUnit"}}
            for name in scanner.declarations(request.sources[key].content):
                contracts.setdefault(key, {})[name] = {
                    "abi": [{"type": "function", "name": "value"}],
                    "metadata": '{"compiler":{}}',
                    "evm": {
                        "assembly": "PUSH1 0x80",
                        "legacyAssembly": {".code": []},
                        "bytecode": {"object": f"60{index:02x}", "sourceMap": "1:2:0", "opcodes": "PUSH1 0x80"},
                        "deployedBytecode": {"object": "6080", "sourceMap": "1:2:0", "opcodes": "PUSH1 0x80"},
                        "methodIdentifiers": {"value()": "3fa4f245"},
                    },
                }
        return CompilerOutput.model_validate({"errors": self.errors, "sources": sources, "contracts": contracts})


@pytest.fixture(autouse=True)
def reset_solbuild_logger():
    yield
    logger = logging.getLogger("solbuild")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def fake_solc() -> FakeSolc:
    return FakeSolc()


@pytest.fixture
def project(tmp_path) -> Callable[[dict[str, str]], Path]:
    """Write files under a fresh project root marked by ``package.json``."""
    (tmp_path / "package.json").write_text("{}", encoding="utf-8")

    def write(files: dict[str, str]) -> Path:
        for relative, content in files.items():
            path = tmp_path / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return tmp_path

    return write


@pytest.fixture
def root_and_lib(project) -> Path:
    return project({"contracts/Root.sol": ROOT_SOL, "contracts/Lib.sol": LIB_SOL})


@pytest.fixture
def options() -> BuildOptions:
    return BuildOptions()


@pytest.fixture
def make_context(tmp_path, options) -> Callable[..., BuildContext]:
    def make(targets: list[str], **kwargs) -> BuildContext:
        ctx = BuildContext.create(kwargs.pop("build_options", options), targets, root=tmp_path, **kwargs)
        ctx.store.load_all(ctx.targets)
        return ctx

    return make
