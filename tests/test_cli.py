from collections.abc import Callable
from dataclasses import FrozenInstanceError
from pathlib import Path

import pytest

import nkgen


def _assert_config_code(exc_info: pytest.ExceptionInfo[Exception], code: str) -> None:
    err = exc_info.value
    assert getattr(err, "code") == code
    assert getattr(err, "code") in nkgen.VALID_ERROR_CODES


def test_import_nkgen_module_smoke() -> None:
    assert callable(nkgen.main)


def test_parse_args_generate_positionals_and_defaults() -> None:
    args = nkgen.parse_args(["generate", "Main", "in.xml", "out.h", "out.c"])

    assert args.command == "generate"
    assert args.module_name == "Main"
    assert args.input_path == Path("in.xml")
    assert args.header_path == Path("out.h")
    assert args.source_path == Path("out.c")
    assert args.max_output_bytes is None
    assert args.print_tree is False


def test_parse_args_generate_options() -> None:
    args = nkgen.parse_args(
        ["generate", "Main", "in.xml", "out.h", "out.c", "--max-output-bytes", "4096", "--print-tree"]
    )

    assert args.max_output_bytes == 4096
    assert args.print_tree is True


@pytest.mark.parametrize(
    "argv",
    [
        [],
        ["generate", "Main", "in.xml", "out.h"],
        ["generate", "Main", "in.xml", "out.h", "out.c", "--max-output-bytes", "many"],
        ["info"],
        ["frobnicate"],
    ],
)
def test_parse_args_usage_errors_exit_with_code_2(argv: list[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        nkgen.parse_args(argv)

    assert exc_info.value.code == 2


def test_config_error_rejects_unknown_code() -> None:
    with pytest.raises(ValueError, match="Unknown config error code"):
        nkgen.ConfigError("NOPE", "message")


def test_validate_config_returns_frozen_generate_config(
    make_args: Callable[..., object], existing_paths: dict[str, Path]
) -> None:
    config = nkgen.validate_config(make_args(max_output_bytes=1024, print_tree=True))

    assert isinstance(config, nkgen.GenerateConfig)
    assert config.module_name == "Main"
    assert config.input_path == existing_paths["input"]
    assert config.header_path == existing_paths["header"]
    assert config.source_path == existing_paths["source"]
    assert config.max_output_bytes == 1024
    assert config.print_tree is True
    with pytest.raises(FrozenInstanceError):
        config.module_name = "Other"  # type: ignore[misc]


@pytest.mark.parametrize("module_name", ["", "9Lives", "Main-Window", "int", "my window"])
def test_validate_config_rejects_non_identifier_module_names(
    make_args: Callable[..., object], module_name: str
) -> None:
    with pytest.raises(nkgen.ConfigError) as exc_info:
        nkgen.validate_config(make_args(module_name=module_name))

    _assert_config_code(exc_info, "INVALID_MODULE_NAME")


def test_validate_config_rejects_missing_input(
    make_args: Callable[..., object], tmp_path: Path
) -> None:
    with pytest.raises(nkgen.ConfigError) as exc_info:
        nkgen.validate_config(make_args(input_path=tmp_path / "missing.xml"))

    _assert_config_code(exc_info, "PATH_NOT_FOUND")
    assert exc_info.value.suggestion


def test_validate_config_rejects_header_and_source_collision(
    make_args: Callable[..., object], existing_paths: dict[str, Path]
) -> None:
    with pytest.raises(nkgen.ConfigError) as exc_info:
        nkgen.validate_config(
            make_args(source_path=existing_paths["header"])
        )

    _assert_config_code(exc_info, "OUTPUT_COLLISION")


@pytest.mark.parametrize("limit", [0, -5])
def test_validate_config_rejects_non_positive_limit(
    make_args: Callable[..., object], limit: int
) -> None:
    with pytest.raises(nkgen.ConfigError) as exc_info:
        nkgen.validate_config(make_args(max_output_bytes=limit))

    _assert_config_code(exc_info, "INVALID_LIMIT")


def test_build_config_list_classes_returns_discovery_config() -> None:
    config = nkgen.build_config(["list-classes", "--filter", "panel"])

    assert config == nkgen.DiscoveryConfig(
        command="list-classes", filter_text="panel", class_name=None
    )


def test_build_config_info_known_class() -> None:
    config = nkgen.build_config(["info", "Button"])

    assert isinstance(config, nkgen.DiscoveryConfig)
    assert config.command == "info"
    assert config.class_name == "Button"


def test_build_config_info_unknown_class_raises_config_error() -> None:
    with pytest.raises(nkgen.ConfigError) as exc_info:
        nkgen.build_config(["info", "Frobnicator"])

    _assert_config_code(exc_info, "UNKNOWN_CLASS_NAME")
    assert "list-classes" in (exc_info.value.suggestion or "")


def test_main_reports_config_error_and_exits_1(
    capsys: pytest.CaptureFixture[str], tmp_path: Path
) -> None:
    with pytest.raises(SystemExit) as exc_info:
        nkgen.main(
            ["generate", "Main", str(tmp_path / "missing.xml"), "a.h", "a.c"]
        )

    assert exc_info.value.code == 1
    err = capsys.readouterr().err
    assert "Config error [PATH_NOT_FOUND]" in err
    assert "Hint:" in err
