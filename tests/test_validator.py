from collections.abc import Callable

import pytest

import nkgen

MakeTree = Callable[..., nkgen.Node]


def _codes(errors: list[nkgen.ValidationError]) -> list[str]:
    return [error.code for error in errors]


def test_valid_document_has_no_errors(make_tree: MakeTree, sample_markup_path) -> None:
    context = nkgen.GenerationContext(module_name="Main")
    tree = nkgen.build_tree(nkgen.load_markup(sample_markup_path), context)

    assert nkgen.validate_tree(tree) == []


def test_unknown_root_class_is_reported(make_tree: MakeTree) -> None:
    errors = nkgen.validate_tree(make_tree("<Frobnicator/>"))

    assert len(errors) == 1
    assert errors[0].code == "UNKNOWN_CLASS"
    assert errors[0].class_name == "Frobnicator"
    assert errors[0].path == "super"


def test_unknown_class_children_are_still_checked(make_tree: MakeTree) -> None:
    errors = nkgen.validate_tree(
        make_tree('<Window><Frobnicator><Button Colour="Red"/></Frobnicator></Window>')
    )

    assert _codes(errors) == ["UNKNOWN_CLASS", "UNKNOWN_PROPERTY"]
    assert errors[1].path == "super/child1/child2"
    assert errors[1].property_name == "Colour"


def test_unknown_property_reports_every_occurrence(make_tree: MakeTree) -> None:
    errors = nkgen.validate_tree(
        make_tree('<Window Colour="Red"><Button Size="3" Click="OnOk"/></Window>')
    )

    assert _codes(errors) == ["UNKNOWN_PROPERTY", "UNKNOWN_PROPERTY"]
    assert [e.property_name for e in errors] == ["Colour", "Size"]


def test_inherited_property_is_accepted(make_tree: MakeTree) -> None:
    tree = make_tree('<Window><Button Width="80" DockPanel.Dock="Top"/></Window>')

    assert nkgen.validate_tree(tree) == []


def test_non_root_capable_root_is_invalid(make_tree: MakeTree) -> None:
    errors = nkgen.validate_tree(make_tree('<Button Text="x"/>'))

    assert _codes(errors) == ["INVALID_ROOT"]


def test_window_nested_inside_view_is_invalid(make_tree: MakeTree) -> None:
    errors = nkgen.validate_tree(make_tree("<View><Window/></View>"))

    assert _codes(errors) == ["INVALID_NESTING"]
    assert errors[0].path == "super/child1"


def test_window_with_two_children_is_reported(make_tree: MakeTree) -> None:
    errors = nkgen.validate_tree(make_tree("<Window><Button/><Button/></Window>"))

    assert _codes(errors) == ["TOO_MANY_CHILDREN"]


def test_view_root_may_hold_many_children(make_tree: MakeTree) -> None:
    assert nkgen.validate_tree(make_tree("<View><Button/><Button/></View>")) == []


@pytest.mark.parametrize("name", ["9lives", "my-button", "int", ""])
def test_invalid_explicit_name_is_reported(make_tree: MakeTree, name: str) -> None:
    errors = nkgen.validate_tree(make_tree(f'<Window><Button Name="{name}"/></Window>'))

    assert _codes(errors) == ["INVALID_IDENTIFIER"]


def test_invalid_callback_symbol_is_reported(make_tree: MakeTree) -> None:
    errors = nkgen.validate_tree(make_tree('<Window><Button Click="on click"/></Window>'))

    assert _codes(errors) == ["INVALID_IDENTIFIER"]
    assert errors[0].property_name == "Click"


def test_duplicate_names_are_reported(make_tree: MakeTree) -> None:
    errors = nkgen.validate_tree(
        make_tree('<View><Button Name="Ok"/><Button Name="Ok"/></View>')
    )

    assert _codes(errors) == ["DUPLICATE_NAME"]
    assert errors[0].path == "super/Ok"


def test_explicit_name_colliding_with_synthesized_name(make_tree: MakeTree) -> None:
    errors = nkgen.validate_tree(
        make_tree('<View><Button/><Button Name="child1"/></View>')
    )

    assert _codes(errors) == ["DUPLICATE_NAME"]


def test_validation_error_rejects_unknown_code() -> None:
    with pytest.raises(ValueError, match="Unknown validation error code"):
        nkgen.ValidationError(code="BAD", class_name="X", path="super", message="m")


def test_generate_module_raises_with_all_errors(make_tree: MakeTree) -> None:
    context = nkgen.GenerationContext(module_name="Test")
    tree = make_tree('<Frobnicator><Button Colour="Red"/></Frobnicator>', context)

    with pytest.raises(nkgen.ValidationFailedError) as exc_info:
        nkgen.generate_module(tree, context, "test.xml.h", "test.xml.c")

    assert [e.code for e in exc_info.value.errors] == ["UNKNOWN_CLASS", "UNKNOWN_PROPERTY"]


def test_callback_reused_with_different_signature_is_reported(make_tree: MakeTree) -> None:
    errors = nkgen.validate_tree(
        make_tree('<View PointerDown="OnTap"><Button Name="B" Click="OnTap"/></View>')
    )

    assert _codes(errors) == ["CONFLICTING_CALLBACK"]
    assert errors[0].path == "super/B"
    assert errors[0].property_name == "Click"


def test_callback_reused_with_same_signature_is_accepted(make_tree: MakeTree) -> None:
    tree = make_tree(
        '<View PointerDown="OnTouch" PointerUp="OnTouch">'
        '<Button Click="OnClick"/><Button Click="OnClick"/></View>'
    )

    assert nkgen.validate_tree(tree) == []


@pytest.mark.parametrize("symbol", ["Test_Create", "Test_Destroy", "Test_t"])
def test_callback_named_like_generated_symbol_is_reported(
    make_tree: MakeTree, symbol: str
) -> None:
    tree = make_tree(f'<Window><Button Click="{symbol}"/></Window>')

    errors = nkgen.validate_tree(tree, module_name="Test")

    assert _codes(errors) == ["RESERVED_NAME"]
    assert nkgen.validate_tree(tree, module_name="Other") == []


def test_generate_module_rejects_conflicting_callbacks(make_tree: MakeTree) -> None:
    context = nkgen.GenerationContext(module_name="Test")
    tree = make_tree('<View PointerDown="OnTap"><Button Click="OnTap"/></View>', context)

    with pytest.raises(nkgen.ValidationFailedError) as exc_info:
        nkgen.generate_module(tree, context, "test.xml.h", "test.xml.c")

    assert [e.code for e in exc_info.value.errors] == ["CONFLICTING_CALLBACK"]


def test_generate_module_rejects_callback_named_create(make_tree: MakeTree) -> None:
    context = nkgen.GenerationContext(module_name="Test")
    tree = make_tree('<Window><Button Click="Test_Create"/></Window>', context)

    with pytest.raises(nkgen.ValidationFailedError) as exc_info:
        nkgen.generate_module(tree, context, "test.xml.h", "test.xml.c")

    assert [e.code for e in exc_info.value.errors] == ["RESERVED_NAME"]
