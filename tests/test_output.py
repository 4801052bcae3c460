from __future__ import annotations

import pytest

from solbuild.artifacts import ArtifactStore
from solbuild.assembler import assemble_request
from solbuild.config import BuildOptions
from solbuild.models import CompilerOutput
from solbuild.output import OutputProcessor, filter_compiler_output, trim_standard_output

CONTRACT_OUTPUT = {
    "abi": [{"type": "function"}],
    "metadata": "{}",
    "evm": {
        "assembly": "PUSH1",
        "bytecode": {"object": "6080", "sourceMap": "1:2:0", "opcodes": "PUSH1"},
        "deployedBytecode": {"object": "6081", "sourceMap": "3:4:0"},
        "methodIdentifiers": {"value()": "3fa4f245"},
    },
}


def test_filter_compiler_output_given_abi_only_selection_when_filtered_then_everything_else_is_dropped() -> None:
    # Given
    selection = {"*": {"*": ["abi"]}}

    # When
    out = filter_compiler_output(selection, "A.sol", "A", CONTRACT_OUTPUT)

    # Then
    assert out == {"abi": [{"type": "function"}]}


def test_filter_compiler_output_given_nested_fields_when_filtered_then_only_selected_leaves_survive() -> None:
    # Given
    selection = {"*": {"*": ["evm.bytecode.object", "evm.deployedBytecode.sourceMap"]}}

    # When
    out = filter_compiler_output(selection, "A.sol", "A", CONTRACT_OUTPUT)

    # Then
    assert out == {"evm": {"bytecode": {"object": "6080"}, "deployedBytecode": {"sourceMap": "3:4:0"}}}


@pytest.mark.parametrize(
    ("fields", "expected_keys"),
    [
        (["*"], {"abi", "metadata", "evm"}),
        (["evm.*"], {"evm"}),
    ],
)
def test_filter_compiler_output_given_wildcards_when_filtered_then_whole_subtrees_are_kept(fields, expected_keys) -> None:
    # Given
    selection = {"*": {"*": fields}}

    # When
    out = filter_compiler_output(selection, "A.sol", "A", CONTRACT_OUTPUT, keep_metadata=True)

    # Then
    assert set(out) == expected_keys
    assert out["evm"] == CONTRACT_OUTPUT["evm"]


def test_filter_compiler_output_given_metadata_requested_when_not_kept_then_metadata_is_dropped() -> None:
    # Given
    selection = {"*": {"*": ["metadata", "abi"]}, "A.sol": {"A": ["evm.methodIdentifiers"]}}

    # When
    dropped = filter_compiler_output(selection, "A.sol", "A", CONTRACT_OUTPUT)
    kept = filter_compiler_output(selection, "A.sol", "A", CONTRACT_OUTPUT, keep_metadata=True)

    # Then
    assert set(dropped) == {"abi", "evm"}
    assert dropped["evm"] == {"methodIdentifiers": {"value()": "3fa4f245"}}
    assert "metadata" in kept


def test_trim_standard_output_given_noisy_response_when_trimmed_then_ast_assembly_and_opcodes_are_removed() -> None:
    # Given
    response = CompilerOutput.model_validate(
        {
            "sources": {"A.sol": {"id": 0, "ast": {}, "legacyAST": {}}},
            "contracts": {"A.sol": {"A": CONTRACT_OUTPUT}},
        }
    )

    # When
    payload = trim_standard_output(response)

    # Then
    assert payload["sources"]["A.sol"] == {"id": 0}
    evm = payload["contracts"]["A.sol"]["A"]["evm"]
    assert "assembly" not in evm
    assert "opcodes" not in evm["bytecode"]
    assert CONTRACT_OUTPUT["evm"]["bytecode"]["opcodes"] == "PUSH1"


@pytest.mark.parametrize(
    ("mode", "annotated"),
    [("none", False), ("imports", True), ("all", True)],
)
def test_flatten_given_annotation_mode_when_flattened_then_dependencies_precede_target(
    root_and_lib, make_context, tmp_path, mode, annotated
) -> None:
    # Given
    ctx = make_context(["contracts/Root.sol"], build_options=BuildOptions(insert_file_names=mode))
    processor = OutputProcessor(ctx, ArtifactStore(tmp_path / "artifacts"))

    # When
    text = processor.flatten("contracts/Root.sol")

    # Then
    assert text.index("library Lib") < text.index("contract Root")
    assert "import" not in text
    assert ("/* file: contracts/Lib.sol */" in text) is annotated
    assert ("/* eof (contracts/Root.sol) */" in text) is annotated


def test_flatten_given_imports_mode_and_no_imports_when_flattened_then_no_annotation(
    project, make_context, tmp_path
) -> None:
    # Given
    project({"contracts/Solo.sol": "contract Solo {}\n"})
    ctx = make_context(["contracts/Solo.sol"], build_options=BuildOptions(insert_file_names="imports"))
    processor = OutputProcessor(ctx, ArtifactStore(tmp_path / "artifacts"))

    # When
    text = processor.flatten("contracts/Solo.sol")

    # Then
    assert text == "contract Solo {}\n\n"
    assert processor.flattened_path("contracts/Solo.sol") == tmp_path / "build" / "flattened" / "Solo_all.sol"


def test_process_given_compiled_response_when_processed_then_artifacts_record_closure_sorted_by_id(
    root_and_lib, make_context, fake_solc, tmp_path
) -> None:
    # Given
    ctx = make_context(["contracts/Root.sol"])
    request = assemble_request(ctx)
    response = fake_solc.compile(request)
    artifacts = ArtifactStore(tmp_path / "artifacts")

    # When
    written, flattened = OutputProcessor(ctx, artifacts).process(response, request, "solc", fake_solc.version())

    # Then
    assert written == [artifacts.path_for("Root")]
    assert flattened == [tmp_path / "build" / "flattened" / "Root_all.sol"]
    artifact = artifacts.read("Root")
    assert list(artifact.sources) == ["contracts/Lib.sol", "contracts/Root.sol"]
    assert artifact.sources["contracts/Lib.sol"].keccak256 == request.sources["contracts/Lib.sol"].keccak256
    assert artifact.sources["contracts/Root.sol"].file == str((tmp_path / "contracts" / "Root.sol").resolve())
    assert "metadata" not in artifact.compiler_output
    assert "assembly" not in artifact.compiler_output["evm"]
    assert artifact.compiler.version == "0.8.19+commit.7dd6d404"


def test_write_artifacts_given_target_without_contracts_when_written_then_warning_and_no_files(
    project, make_context, fake_solc, tmp_path, caplog
) -> None:
    # Given
    project({"contracts/Free.sol": "function helper() pure returns (uint) { return 1; }\n"})
    ctx = make_context(["contracts/Free.sol"])
    request = assemble_request(ctx)
    response = fake_solc.compile(request)

    # When
    paths = OutputProcessor(ctx, ArtifactStore(tmp_path / "artifacts")).write_artifacts(
        "contracts/Free.sol", response, request, "solc", fake_solc.version()
    )

    # Then
    assert paths == []
    assert "no contracts for contracts/Free.sol" in caplog.text


def test_process_given_targets_sharing_a_basename_when_flattened_then_overwrite_is_reported(
    project, make_context, fake_solc, tmp_path, caplog
) -> None:
    # Given
    project({"a/Token.sol": "contract TokenA {}\n", "b/Token.sol": "contract TokenB {}\n"})
    ctx = make_context(["a/Token.sol", "b/Token.sol"])
    request = assemble_request(ctx)
    response = fake_solc.compile(request)

    # When
    _, flattened = OutputProcessor(ctx, ArtifactStore(tmp_path / "artifacts")).process(
        response, request, "solc", fake_solc.version()
    )

    # Then
    assert flattened[0] == flattened[1]
    assert "b/Token.sol overwrites flattened output of a/Token.sol" in caplog.text
