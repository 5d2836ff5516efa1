import argparse
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

GENERATOR_DIR = Path(__file__).resolve().parent.parent
if str(GENERATOR_DIR) not in sys.path:
    sys.path.insert(0, str(GENERATOR_DIR))

import nkgen  # noqa: E402


@pytest.fixture
def existing_paths(tmp_path: Path) -> dict[str, Path]:
    markup = tmp_path / "main.xml"
    markup.write_text('<Window Title="Hi" />\n', encoding="utf-8")

    output_dir = tmp_path / "out"
    return {
        "input": markup,
        "header": output_dir / "main.xml.h",
        "source": output_dir / "main.xml.c",
    }


@pytest.fixture
def make_args(existing_paths: dict[str, Path]) -> Callable[..., argparse.Namespace]:
    def _make_args(**overrides: object) -> argparse.Namespace:
        base_args: dict[str, object] = {
            "command": "generate",
            "module_name": "Main",
            "input_path": existing_paths["input"],
            "header_path": existing_paths["header"],
            "source_path": existing_paths["source"],
            "max_output_bytes": None,
            "print_tree": False,
        }
        base_args.update(overrides)
        return argparse.Namespace(**base_args)

    return _make_args


@pytest.fixture
def make_tree() -> Callable[..., nkgen.Node]:
    def _make_tree(markup: str, context: nkgen.GenerationContext | None = None) -> nkgen.Node:
        if context is None:
            context = nkgen.GenerationContext(module_name="Test")
        return nkgen.build_tree(nkgen.parse_markup(markup), context)

    return _make_tree


@pytest.fixture
def generate() -> Callable[..., nkgen.GenerationResult]:
    def _generate(
        markup: str,
        module_name: str = "Test",
        max_output_bytes: int | None = None,
    ) -> nkgen.GenerationResult:
        context = nkgen.GenerationContext(
            module_name=module_name, max_output_bytes=max_output_bytes
        )
        tree = nkgen.build_tree(nkgen.parse_markup(markup), context)
        return nkgen.generate_module(
            tree, context, f"{module_name.lower()}.xml.h", f"{module_name.lower()}.xml.c"
        )

    return _generate


@pytest.fixture
def sample_markup_path() -> Path:
    return GENERATOR_DIR / "tests" / "fixtures" / "main_window.xml"
