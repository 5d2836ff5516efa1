"""NanoKit markup code generator.

Translates a XAML-like markup document (tags = widget classes, attributes =
properties, nesting = containment) into a C header and source file for the
NanoKit UI toolkit: one struct field per widget, a generated Create/Destroy
pair, and forward declarations for every referenced callback.

Usage:
    python nkgen.py generate MainWindow ui/main.xml out/main.xml.h out/main.xml.c
    python nkgen.py list-classes
    python nkgen.py info Button
"""

import argparse
import math
import os
import re
import sys
import tempfile
import xml.etree.ElementTree as ET
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import NamedTuple


# ===--- CLI config contracts ---=== #


@dataclass(frozen=True)
class GenerateConfig:
    module_name: str
    input_path: Path
    header_path: Path
    source_path: Path
    max_output_bytes: int | None = None
    print_tree: bool = False


@dataclass(frozen=True)
class DiscoveryConfig:
    command: str
    filter_text: str | None
    class_name: str | None


VALID_ERROR_CODES = {
    "INVALID_MODULE_NAME",
    "PATH_NOT_FOUND",
    "OUTPUT_COLLISION",
    "INVALID_LIMIT",
    "UNKNOWN_CLASS_NAME",
}
_C_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

C_KEYWORDS = frozenset(
    {
        "auto", "bool", "break", "case", "char", "const", "continue",
        "default", "do", "double", "else", "enum", "extern", "false",
        "float", "for", "goto", "if", "inline", "int", "long", "register",
        "restrict", "return", "short", "signed", "sizeof", "static",
        "struct", "switch", "true", "typedef", "union", "unsigned", "void",
        "volatile", "while", "_Bool", "_Complex", "_Imaginary",
    }
)  # fmt: skip


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


def is_c_identifier(name: str) -> bool:
    return bool(_C_IDENTIFIER_RE.match(name)) and name not in C_KEYWORDS


def validate_module_name(name: str) -> str:
    if is_c_identifier(name):
        return name
    raise ConfigError(
        "INVALID_MODULE_NAME",
        f"Invalid module name: {name}",
        "Module names must be C identifiers (for example MainWindow).",
    )


def validate_path_exists(
    path: Path | None, flag: str, suggestion: str | None = None
) -> Path:
    if path is None:
        raise ConfigError(
            "PATH_NOT_FOUND",
            f"{flag} is required: no path provided.",
            suggestion or f"Pass the path explicitly as {flag}.",
        )
    if path.exists():
        return path
    raise ConfigError(
        "PATH_NOT_FOUND",
        f"Path for {flag} does not exist: {path}",
        suggestion or "Provide an existing path for this argument.",
    )


def validate_output_limit(limit: int | None) -> int | None:
    if limit is None or limit > 0:
        return limit
    raise ConfigError(
        "INVALID_LIMIT",
        f"--max-output-bytes must be positive, got {limit}",
        "Omit --max-output-bytes to let output grow without a cap.",
    )


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nkgen", description="Generate NanoKit C code from markup"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser(
        "generate", help="Generate a header and source file from a markup document"
    )
    generate.add_argument("module_name")
    generate.add_argument("input_path", type=Path)
    generate.add_argument("header_path", type=Path)
    generate.add_argument("source_path", type=Path)
    generate.add_argument("--max-output-bytes", type=int, default=None)
    generate.add_argument("--print-tree", action="store_true", default=False)

    list_classes = subparsers.add_parser(
        "list-classes", help="List the classes known to the schema"
    )
    list_classes.add_argument("--filter", type=str, default=None)

    info = subparsers.add_parser("info", help="Show the properties of one class")
    info.add_argument("class_name")

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    return parser.parse_args(argv)


def validate_config(
    args: argparse.Namespace, registry: "SchemaRegistry | None" = None
) -> GenerateConfig | DiscoveryConfig:
    registry = DEFAULT_REGISTRY if registry is None else registry

    if args.command == "list-classes":
        return DiscoveryConfig(
            command="list-classes", filter_text=args.filter, class_name=None
        )

    if args.command == "info":
        if not registry.has_class(args.class_name):
            raise ConfigError(
                "UNKNOWN_CLASS_NAME",
                f"Unknown class: {args.class_name}",
                "Run 'nkgen list-classes' to see the supported classes.",
            )
        return DiscoveryConfig(
            command="info", filter_text=None, class_name=args.class_name
        )

    module_name = validate_module_name(args.module_name)
    input_path = validate_path_exists(
        args.input_path,
        "<input>",
        "Pass the markup document to translate, for example ui/main.xml.",
    )
    if Path(args.header_path).resolve() == Path(args.source_path).resolve():
        raise ConfigError(
            "OUTPUT_COLLISION",
            f"Header and source outputs point at the same file: {args.header_path}",
            "Use distinct paths, for example main.xml.h and main.xml.c.",
        )
    max_output_bytes = validate_output_limit(args.max_output_bytes)

    return GenerateConfig(
        module_name=module_name,
        input_path=input_path,
        header_path=args.header_path,
        source_path=args.source_path,
        max_output_bytes=max_output_bytes,
        print_tree=bool(args.print_tree),
    )


def build_config(argv: list[str] | None = None) -> GenerateConfig | DiscoveryConfig:
    return validate_config(parse_args(argv))


# ===--- Constants ---=== #

VALUE_STRING = "String"
VALUE_FLOAT = "Float"
VALUE_THICKNESS = "Thickness"
VALUE_COLOR = "Color"
VALUE_BOOLEAN = "Boolean"
VALUE_DOCK_POSITION = "DockPosition"
VALUE_STACK_ORIENTATION = "StackOrientation"
VALUE_GENERIC_CALLBACK = "GenericCallback"
VALUE_BUTTON_CALLBACK = "ButtonCallback"

VALUE_TYPES = frozenset(
    {
        VALUE_STRING,
        VALUE_FLOAT,
        VALUE_THICKNESS,
        VALUE_COLOR,
        VALUE_BOOLEAN,
        VALUE_DOCK_POSITION,
        VALUE_STACK_ORIENTATION,
        VALUE_GENERIC_CALLBACK,
        VALUE_BUTTON_CALLBACK,
    }
)
CALLBACK_VALUE_TYPES = frozenset({VALUE_GENERIC_CALLBACK, VALUE_BUTTON_CALLBACK})

# Parameter list of the forward declaration emitted for each callback kind.
CALLBACK_PARAMETERS = {
    VALUE_BUTTON_CALLBACK: "nkButton_t *button",
    VALUE_GENERIC_CALLBACK: "void",
}

COLOR_CONSTANTS = {
    "Black": "NK_COLOR_BLACK",
    "White": "NK_COLOR_WHITE",
    "Red": "NK_COLOR_RED",
    "Green": "NK_COLOR_GREEN",
    "Blue": "NK_COLOR_BLUE",
    "Yellow": "NK_COLOR_YELLOW",
    "Cyan": "NK_COLOR_CYAN",
    "Orange": "NK_COLOR_ORANGE",
    "Magenta": "NK_COLOR_MAGENTA",
    "Gray": "NK_COLOR_GRAY",
    "LightGray": "NK_COLOR_LIGHT_GRAY",
    "DarkGray": "NK_COLOR_DARK_GRAY",
}
COLOR_FALLBACK = "NK_COLOR_TRANSPARENT"

DOCK_POSITION_CONSTANTS = {
    "Left": "NK_DOCK_LEFT",
    "Right": "NK_DOCK_RIGHT",
    "Top": "NK_DOCK_TOP",
    "Bottom": "NK_DOCK_BOTTOM",
}
DOCK_POSITION_DEFAULT = "Left"

STACK_ORIENTATION_CONSTANTS = {
    "Horizontal": "NK_ORIENTATION_HORIZONTAL",
    "Vertical": "NK_ORIENTATION_VERTICAL",
}
STACK_ORIENTATION_DEFAULT = "Horizontal"

FLOAT_FALLBACK = "0.0f"
THICKNESS_TYPE = "nkThickness_t"

ROOT_INSTANCE_NAME = "super"
NAME_ATTRIBUTE = "Name"
CONTENT_PROPERTY = "Content"
VIEW_CLASS = "View"
ADD_CHILD_FUNCTION = "nkView_AddChild"
TOOLKIT_INCLUDE = "nanowin.h"


# ===--- Errors ---=== #


class SchemaError(ValueError):
    """Raised when a class catalogue is internally inconsistent."""


class MalformedDocumentError(Exception):
    """Raised when the markup cannot be parsed into exactly one root element."""


class UnknownClassError(LookupError):
    def __init__(self, class_name: str):
        super().__init__(f"Unknown class '{class_name}'")
        self.class_name = class_name


class UnknownPropertyError(LookupError):
    def __init__(self, class_name: str, property_name: str):
        super().__init__(f"Unknown property '{property_name}' for class '{class_name}'")
        self.class_name = class_name
        self.property_name = property_name


class BufferOverflowError(RuntimeError):
    def __init__(self, limit: int, attempted: int):
        super().__init__(
            f"Generated output needs {attempted} bytes, above the {limit} byte cap"
        )
        self.limit = limit
        self.attempted = attempted


VALID_VALIDATION_CODES = {
    "UNKNOWN_CLASS",
    "UNKNOWN_PROPERTY",
    "INVALID_ROOT",
    "INVALID_NESTING",
    "TOO_MANY_CHILDREN",
    "INVALID_IDENTIFIER",
    "DUPLICATE_NAME",
    "CONFLICTING_CALLBACK",
    "RESERVED_NAME",
}


@dataclass(frozen=True)
class ValidationError:
    """One schema defect found in a markup tree.

    Attributes:
        code: One of VALID_VALIDATION_CODES.
        class_name: Markup class of the offending node.
        path: Instance-name path of the offending node, e.g. "super/child1".
        message: Human-readable description.
        property_name: Offending property key, when the defect is a property.
    """

    code: str
    class_name: str
    path: str
    message: str
    property_name: str | None = None

    def __post_init__(self) -> None:
        if self.code not in VALID_VALIDATION_CODES:
            raise ValueError(f"Unknown validation error code: {self.code}")


class ValidationFailedError(Exception):
    def __init__(self, errors: list[ValidationError]):
        super().__init__(f"{len(errors)} validation error(s)")
        self.errors = tuple(errors)


@dataclass(frozen=True)
class ValueEncodingWarning:
    """A markup value that did not match its value type; a fallback was emitted."""

    path: str
    property_name: str
    value_type: str
    raw_value: str
    fallback: str
    reason: str

    def __str__(self) -> str:
        return (
            f"{self.path}: {self.property_name}={self.raw_value!r} {self.reason}; "
            f"emitted {self.fallback}"
        )


# ===--- Schema registry ---=== #


@dataclass(frozen=True)
class PropertyEntry:
    markup_name: str
    code_field_name: str
    value_type: str

    def __post_init__(self) -> None:
        if self.value_type not in VALUE_TYPES:
            raise SchemaError(
                f"Property '{self.markup_name}' has unknown value type "
                f"'{self.value_type}'"
            )


@dataclass(frozen=True)
class ClassEntry:
    """Schema definition for one markup class.

    Attributes:
        markup_name: Tag used in markup, e.g. "Button".
        code_type_name: Generated C type, e.g. "nkButton_t".
        constructor_name: C function that initializes storage of this type.
        properties: Own properties, in definition order.
        superclass: Markup name of the parent class, or None.
        super_field: Struct member embedding the superclass storage. Required
            when superclass is set.
        root_capable: True when the class may be the document root.
        constructor_params: (markup_name, default_raw) pairs passed
            positionally to the constructor when the class is the root.
        content_setter: C function attaching the single content child, for
            classes that hold exactly one child.
    """

    markup_name: str
    code_type_name: str
    constructor_name: str
    properties: tuple[PropertyEntry, ...]
    superclass: str | None = None
    super_field: str | None = None
    root_capable: bool = False
    constructor_params: tuple[tuple[str, str], ...] = ()
    content_setter: str | None = None


@dataclass(frozen=True)
class ResolvedProperty:
    """A property looked up through a class's flattened property table.

    Attributes:
        markup_name: Attribute name in markup.
        code_field_name: C struct field written by assignments.
        value_type: One of VALUE_TYPES.
        owner_class: Class that defines the property.
        owner_path: super_field chain from the looked-up class down to the
            owner. Empty for own properties.
    """

    markup_name: str
    code_field_name: str
    value_type: str
    owner_class: str
    owner_path: tuple[str, ...] = ()

    @property
    def is_inherited(self) -> bool:
        return bool(self.owner_path)

    @property
    def is_callback(self) -> bool:
        return self.value_type in CALLBACK_VALUE_TYPES


class SchemaRegistry:
    """Immutable catalogue of markup classes with flattened inheritance.

    Every consistency check runs in the constructor, so a registry that exists
    is well-formed: class names are unique, property markup names are unique
    within a class, superclasses exist and form no cycle, and root constructor
    parameters name real properties. Each class gets a precomputed property
    table holding its own properties first, then every ancestor property it
    does not shadow.
    """

    def __init__(self, classes: tuple[ClassEntry, ...]):
        self._classes: dict[str, ClassEntry] = {}
        for entry in classes:
            if entry.markup_name in self._classes:
                raise SchemaError(f"Duplicate class '{entry.markup_name}'")
            _check_unique_properties(entry)
            self._classes[entry.markup_name] = entry

        for entry in classes:
            if entry.superclass is None:
                continue
            if entry.superclass not in self._classes:
                raise SchemaError(
                    f"Class '{entry.markup_name}' extends unknown class "
                    f"'{entry.superclass}'"
                )
            if not entry.super_field:
                raise SchemaError(
                    f"Class '{entry.markup_name}' extends '{entry.superclass}' "
                    "without a super_field"
                )

        self._ancestry = {name: self._walk_ancestry(name) for name in self._classes}
        self._tables = {name: self._flatten(name) for name in self._classes}

        for entry in classes:
            for param, _default in entry.constructor_params:
                if param not in self._tables[entry.markup_name]:
                    raise SchemaError(
                        f"Constructor parameter '{param}' of '{entry.markup_name}' "
                        "is not a property of the class"
                    )

    def _walk_ancestry(self, class_name: str) -> tuple[tuple[str, tuple[str, ...]], ...]:
        chain: list[tuple[str, tuple[str, ...]]] = []
        seen: set[str] = set()
        path: tuple[str, ...] = ()
        current = self._classes[class_name]
        while True:
            if current.markup_name in seen:
                raise SchemaError(f"Superclass cycle through '{current.markup_name}'")
            seen.add(current.markup_name)
            chain.append((current.markup_name, path))
            if current.superclass is None:
                return tuple(chain)
            path = path + (current.super_field,)
            current = self._classes[current.superclass]

    def _flatten(self, class_name: str) -> dict[str, ResolvedProperty]:
        # Covers every ancestor, not only the direct superclass. For a
        # two-level catalogue this equals a one-hop lookup.
        table: dict[str, ResolvedProperty] = {}
        for owner, path in self._ancestry[class_name]:
            for prop in self._classes[owner].properties:
                if prop.markup_name in table:
                    continue
                table[prop.markup_name] = ResolvedProperty(
                    markup_name=prop.markup_name,
                    code_field_name=prop.code_field_name,
                    value_type=prop.value_type,
                    owner_class=owner,
                    owner_path=path,
                )
        return table

    def has_class(self, class_name: str) -> bool:
        return class_name in self._classes

    def get_class(self, class_name: str) -> ClassEntry:
        entry = self._classes.get(class_name)
        if entry is None:
            raise UnknownClassError(class_name)
        return entry

    def classes(self) -> tuple[ClassEntry, ...]:
        return tuple(self._classes.values())

    def lookup_property(
        self, class_name: str, property_name: str
    ) -> ResolvedProperty | None:
        if class_name not in self._tables:
            raise UnknownClassError(class_name)
        return self._tables[class_name].get(property_name)

    def properties_of(self, class_name: str) -> tuple[ResolvedProperty, ...]:
        if class_name not in self._tables:
            raise UnknownClassError(class_name)
        return tuple(self._tables[class_name].values())

    def ancestor_path(self, class_name: str, ancestor: str) -> tuple[str, ...] | None:
        """Return the super_field chain from class_name to ancestor.

        Returns an empty tuple when class_name is ancestor, and None when
        ancestor is not in the class's ancestry.
        """
        if class_name not in self._ancestry:
            raise UnknownClassError(class_name)
        for name, path in self._ancestry[class_name]:
            if name == ancestor:
                return path
        return None

    def is_subclass(self, class_name: str, ancestor: str) -> bool:
        return self.ancestor_path(class_name, ancestor) is not None


def _check_unique_properties(entry: ClassEntry) -> None:
    seen: set[str] = set()
    for prop in entry.properties:
        if prop.markup_name in seen:
            raise SchemaError(
                f"Class '{entry.markup_name}' defines property "
                f"'{prop.markup_name}' more than once"
            )
        seen.add(prop.markup_name)


CLASS_DEFINITIONS: tuple[ClassEntry, ...] = (
    ClassEntry(
        markup_name="Window",
        code_type_name="nkWindow_t",
        constructor_name="nkWindow_Create",
        properties=(
            PropertyEntry("Title", "title", VALUE_STRING),
            PropertyEntry("Width", "width", VALUE_FLOAT),
            PropertyEntry("Height", "height", VALUE_FLOAT),
            PropertyEntry("Background", "background", VALUE_COLOR),
        ),
        root_capable=True,
        constructor_params=(("Title", ""), ("Width", "800"), ("Height", "600")),
        content_setter="nkWindow_SetContent",
    ),
    ClassEntry(
        markup_name="View",
        code_type_name="nkView_t",
        constructor_name="nkView_Create",
        properties=(
            PropertyEntry("Width", "sizeRequest.width", VALUE_FLOAT),
            PropertyEntry("Height", "sizeRequest.height", VALUE_FLOAT),
            PropertyEntry("Margin", "margin", VALUE_THICKNESS),
            PropertyEntry("Padding", "padding", VALUE_THICKNESS),
            PropertyEntry("BackgroundColor", "backgroundColor", VALUE_COLOR),
            PropertyEntry("DockPanel.Dock", "dockPosition", VALUE_DOCK_POSITION),
            PropertyEntry("Visible", "visible", VALUE_BOOLEAN),
            PropertyEntry("PointerDown", "onPointerDown", VALUE_GENERIC_CALLBACK),
            PropertyEntry("PointerUp", "onPointerUp", VALUE_GENERIC_CALLBACK),
            PropertyEntry("PointerMove", "onPointerMove", VALUE_GENERIC_CALLBACK),
        ),
        root_capable=True,
    ),
    ClassEntry(
        markup_name="DockPanel",
        code_type_name="nkDockView_t",
        constructor_name="nkDockView_Create",
        properties=(PropertyEntry("LastChildFill", "lastChildFill", VALUE_BOOLEAN),),
        superclass="View",
        super_field="view",
    ),
    ClassEntry(
        markup_name="StackPanel",
        code_type_name="nkStackView_t",
        constructor_name="nkStackView_Create",
        properties=(
            PropertyEntry("Orientation", "orientation", VALUE_STACK_ORIENTATION),
            PropertyEntry("Spacing", "spacing", VALUE_FLOAT),
        ),
        superclass="View",
        super_field="view",
    ),
    ClassEntry(
        markup_name="ScrollViewer",
        code_type_name="nkScrollView_t",
        constructor_name="nkScrollView_Create",
        properties=(
            PropertyEntry("HorizontalScroll", "horizontalScroll", VALUE_BOOLEAN),
            PropertyEntry("VerticalScroll", "verticalScroll", VALUE_BOOLEAN),
        ),
        superclass="View",
        super_field="view",
    ),
    ClassEntry(
        markup_name="Button",
        code_type_name="nkButton_t",
        constructor_name="nkButton_Create",
        properties=(
            PropertyEntry("Text", "text", VALUE_STRING),
            PropertyEntry("Content", "text", VALUE_STRING),
            PropertyEntry("Foreground", "foreground", VALUE_COLOR),
            PropertyEntry("Background", "background", VALUE_COLOR),
            PropertyEntry("Click", "onClick", VALUE_BUTTON_CALLBACK),
        ),
        superclass="View",
        super_field="view",
    ),
)


def build_registry(
    definitions: tuple[ClassEntry, ...] = CLASS_DEFINITIONS,
) -> SchemaRegistry:
    return SchemaRegistry(definitions)


DEFAULT_REGISTRY = build_registry()


# ===--- Generation context ---=== #


class OutputBuffer:
    """Line buffer for one generated artifact.

    Grows to fit its content. When max_bytes is set, a write that would push
    the UTF-8 size of the joined text past the cap raises BufferOverflowError
    instead of truncating.
    """

    def __init__(self, max_bytes: int | None = None):
        self.max_bytes = max_bytes
        self._lines: list[str] = []
        self._size = 0

    def write(self, line: str = "") -> None:
        size = self._size + len(line.encode("utf-8")) + 1
        if self.max_bytes is not None and size > self.max_bytes:
            raise BufferOverflowError(self.max_bytes, size)
        self._lines.append(line)
        self._size = size

    def extend(self, lines: list[str]) -> None:
        for line in lines:
            self.write(line)

    @property
    def size(self) -> int:
        return self._size

    def getvalue(self) -> str:
        if not self._lines:
            return ""
        return "\n".join(self._lines) + "\n"


@dataclass
class GenerationContext:
    """Mutable state of a single generation invocation.

    Owns the instance-name counter, the collected value-encoding warnings and
    the output-size cap applied to every buffer it hands out. A context is
    created per invocation and never reused, so repeated or parallel runs
    cannot observe each other's counters or output.
    """

    module_name: str
    max_output_bytes: int | None = None
    warnings: list[ValueEncodingWarning] = field(default_factory=list)
    name_counter: int = 0

    @property
    def module_upper(self) -> str:
        return self.module_name.upper()

    def next_child_name(self) -> str:
        self.name_counter += 1
        return f"child{self.name_counter}"

    def new_buffer(self) -> OutputBuffer:
        return OutputBuffer(self.max_output_bytes)

    def warn(self, warning: ValueEncodingWarning) -> None:
        self.warnings.append(warning)


# ===--- Tree builder ---=== #


@dataclass(eq=False)
class Node:
    class_name: str
    instance_name: str
    properties: list[tuple[str, str]] = field(default_factory=list)
    parent: "Node | None" = field(default=None, repr=False)
    children: list["Node"] = field(default_factory=list, repr=False)

    @property
    def is_root(self) -> bool:
        return self.parent is None

    @property
    def path(self) -> str:
        names: list[str] = []
        node: Node | None = self
        while node is not None:
            names.append(node.instance_name)
            node = node.parent
        return "/".join(reversed(names))

    def property_value(self, key: str) -> str | None:
        """Return the last raw value given for key, or None."""
        value = None
        for prop_key, raw in self.properties:
            if prop_key == key:
                value = raw
        return value


def _local_name(name: str) -> str:
    if name.startswith("{"):
        return name.rsplit("}", 1)[1]
    return name


def _direct_text(element: ET.Element) -> str:
    parts = [element.text or ""]
    parts.extend(child.tail or "" for child in element)
    return "".join(parts).strip()


def parse_markup(text: str | bytes) -> ET.Element:
    try:
        return ET.fromstring(text)
    except ET.ParseError as err:
        raise MalformedDocumentError(f"Could not parse markup: {err}") from err


def load_markup(path: Path) -> ET.Element:
    return parse_markup(Path(path).read_bytes())


def _make_node(
    element: ET.Element, parent: Node | None, context: GenerationContext
) -> Node:
    explicit_name: str | None = None
    properties: list[tuple[str, str]] = []
    for key, value in element.attrib.items():
        key = _local_name(key)
        if key == NAME_ATTRIBUTE:
            explicit_name = value
        else:
            properties.append((key, value))

    text = _direct_text(element)
    if text:
        properties.append((CONTENT_PROPERTY, text))

    if parent is None:
        instance_name = ROOT_INSTANCE_NAME
    elif explicit_name is not None:
        instance_name = explicit_name
    else:
        instance_name = context.next_child_name()

    return Node(
        class_name=_local_name(element.tag),
        instance_name=instance_name,
        properties=properties,
        parent=parent,
    )


def build_tree(element: ET.Element, context: GenerationContext) -> Node:
    """Convert a parsed markup element into a Node tree.

    Visits elements in pre-order with an explicit stack, so default names
    are handed out in document order and document depth never grows the call
    stack. The root is always named "super"; unnamed descendants draw
    "child1", "child2", ... from the context's counter.

    Args:
        element: Root element of the parsed markup document.
        context: Invocation state owning the name counter.

    Returns:
        The root Node, with children linked in document order.
    """
    root: Node | None = None
    stack: list[tuple[ET.Element, Node | None]] = [(element, None)]
    while stack:
        source, parent = stack.pop()
        node = _make_node(source, parent, context)
        if parent is None:
            root = node
        else:
            parent.children.append(node)
        for child in reversed(list(source)):
            stack.append((child, node))
    assert root is not None
    return root


def iter_preorder(tree: Node) -> Iterator[Node]:
    stack = [tree]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def format_tree(tree: Node) -> list[str]:
    """Render the tree as indented lines, one block per node."""
    lines: list[str] = []
    stack: list[tuple[Node, int]] = [(tree, 0)]
    while stack:
        node, depth = stack.pop()
        indent = "  " * depth
        lines.append(f"{indent}Node: {node.class_name}")
        lines.append(f"{indent}  Instance Name: {node.instance_name}")
        for key, raw in node.properties:
            lines.append(f"{indent}  Property: {key} = {raw}")
        stack.extend((child, depth + 1) for child in reversed(node.children))
    return lines


# ===--- Validator ---=== #


def _node_error(node: Node, code: str, message: str, prop: str | None = None):
    return ValidationError(
        code=code,
        class_name=node.class_name,
        path=node.path,
        message=message,
        property_name=prop,
    )


def generated_symbols(module_name: str) -> frozenset[str]:
    return frozenset(
        {f"{module_name}_t", f"{module_name}_Create", f"{module_name}_Destroy"}
    )


def _validate_callback(
    node: Node,
    key: str,
    raw: str,
    resolved: ResolvedProperty,
    callbacks: dict[str, str],
    reserved: frozenset[str],
) -> list[ValidationError]:
    symbol = raw.strip()
    if not is_c_identifier(symbol):
        return [
            _node_error(
                node,
                "INVALID_IDENTIFIER",
                f"Callback '{raw}' for '{key}' is not a valid C identifier",
                key,
            )
        ]
    if symbol in reserved:
        return [
            _node_error(
                node,
                "RESERVED_NAME",
                f"Callback '{symbol}' for '{key}' collides with a generated symbol",
                key,
            )
        ]
    # One symbol gets one prototype, so every use must share a signature.
    first_kind = callbacks.setdefault(symbol, resolved.value_type)
    if first_kind != resolved.value_type:
        return [
            _node_error(
                node,
                "CONFLICTING_CALLBACK",
                f"Callback '{symbol}' for '{key}' is a {resolved.value_type} "
                f"but was already used as a {first_kind}",
                key,
            )
        ]
    return []


def _validate_node(
    node: Node,
    registry: SchemaRegistry,
    seen_names: set[str],
    callbacks: dict[str, str],
    reserved: frozenset[str],
) -> list[ValidationError]:
    errors: list[ValidationError] = []

    if not node.is_root and not is_c_identifier(node.instance_name):
        errors.append(
            _node_error(
                node,
                "INVALID_IDENTIFIER",
                f"Name '{node.instance_name}' is not a valid C identifier",
            )
        )
    if node.instance_name in seen_names:
        errors.append(
            _node_error(
                node,
                "DUPLICATE_NAME",
                f"Name '{node.instance_name}' is already used by another node",
            )
        )
    seen_names.add(node.instance_name)

    if not registry.has_class(node.class_name):
        errors.append(
            _node_error(node, "UNKNOWN_CLASS", f"Unknown class '{node.class_name}'")
        )
        return errors

    entry = registry.get_class(node.class_name)
    if node.is_root and not entry.root_capable:
        errors.append(
            _node_error(
                node,
                "INVALID_ROOT",
                f"Class '{node.class_name}' cannot be the document root",
            )
        )
    if not node.is_root and not registry.is_subclass(node.class_name, VIEW_CLASS):
        errors.append(
            _node_error(
                node,
                "INVALID_NESTING",
                f"Class '{node.class_name}' cannot be nested inside another element",
            )
        )
    if entry.content_setter is not None and len(node.children) > 1:
        errors.append(
            _node_error(
                node,
                "TOO_MANY_CHILDREN",
                f"Class '{node.class_name}' holds a single child, "
                f"found {len(node.children)}",
            )
        )

    for key, raw in node.properties:
        resolved = registry.lookup_property(node.class_name, key)
        if resolved is None:
            errors.append(
                _node_error(
                    node,
                    "UNKNOWN_PROPERTY",
                    f"Unknown property '{key}' for class '{node.class_name}'",
                    key,
                )
            )
        elif resolved.is_callback:
            errors.extend(_validate_callback(node, key, raw, resolved, callbacks, reserved))

    return errors


def validate_tree(
    tree: Node,
    registry: SchemaRegistry | None = None,
    module_name: str | None = None,
) -> list[ValidationError]:
    """Check every node of the tree against the schema.

    Walks the whole tree in pre-order and never stops at the first defect:
    an unknown class skips that node's property checks but its children are
    still visited, so one call reports every problem in the document.

    Args:
        tree: Root node from build_tree.
        registry: Schema to validate against. Defaults to DEFAULT_REGISTRY.
        module_name: Generated module name. When given, callbacks may not
            reuse the names of the generated functions or struct type.

    Returns:
        ValidationError records in pre-order. Empty when the tree is valid.
    """
    registry = DEFAULT_REGISTRY if registry is None else registry
    errors: list[ValidationError] = []
    seen_names: set[str] = set()
    callbacks: dict[str, str] = {}
    reserved = generated_symbols(module_name) if module_name else frozenset()
    for node in iter_preorder(tree):
        errors.extend(_validate_node(node, registry, seen_names, callbacks, reserved))
    return errors


# ===--- Translator ---=== #


class EncodedValue(NamedTuple):
    literal: str
    warning: str | None = None


_C_STRING_ESCAPES = {
    ord("\\"): "\\\\",
    ord('"'): '\\"',
    ord("\n"): "\\n",
    ord("\r"): "\\r",
    ord("\t"): "\\t",
}


def escape_c_string(text: str) -> str:
    """Return text as a C string literal, quotes included.

    Non-printable and non-ASCII bytes of the UTF-8 encoding are written as
    three-digit octal escapes, which cannot swallow a following digit.
    """
    out: list[str] = []
    for byte in text.encode("utf-8"):
        if byte in _C_STRING_ESCAPES:
            out.append(_C_STRING_ESCAPES[byte])
        elif 0x20 <= byte < 0x7F:
            out.append(chr(byte))
        else:
            out.append(f"\\{byte:03o}")
    return '"' + "".join(out) + '"'


def _format_float(value: float) -> str:
    return f"{value!r}f"


def _format_thickness(left: float, top: float, right: float, bottom: float) -> str:
    return (
        f"({THICKNESS_TYPE}){{ .left = {_format_float(left)}, "
        f".top = {_format_float(top)}, .right = {_format_float(right)}, "
        f".bottom = {_format_float(bottom)} }}"
    )


_THICKNESS_SEPARATOR_RE = re.compile(r"[\s,]+")
_NUMBER_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")


def _parse_number(text: str) -> float | None:
    """Parse a decimal number as markup writes it, or return None.

    Spellings float() accepts but C does not (1_000, nan, inf, 0x10) are
    rejected, as are values that overflow to infinity.
    """
    text = text.strip()
    if not _NUMBER_RE.match(text):
        return None
    value = float(text)
    if not math.isfinite(value):
        return None
    return value


def encode_string(raw: str) -> EncodedValue:
    return EncodedValue(escape_c_string(raw))


def encode_float(raw: str) -> EncodedValue:
    value = _parse_number(raw)
    if value is None:
        return EncodedValue(FLOAT_FALLBACK, "is not a decimal number")
    return EncodedValue(_format_float(value))


def encode_thickness(raw: str) -> EncodedValue:
    """Encode "u", "h,v" or "l,t,r,b" as an nkThickness_t compound literal."""
    parts = [part for part in _THICKNESS_SEPARATOR_RE.split(raw.strip()) if part]
    parsed = [_parse_number(part) for part in parts]
    values = [value for value in parsed if value is not None]
    if len(values) != len(parsed):
        values = []

    if len(values) == 1:
        left = top = right = bottom = values[0]
    elif len(values) == 2:
        left = right = values[0]
        top = bottom = values[1]
    elif len(values) == 4:
        left, top, right, bottom = values
    else:
        return EncodedValue(
            _format_thickness(0.0, 0.0, 0.0, 0.0),
            "is not a thickness (expected 1, 2 or 4 numbers)",
        )
    return EncodedValue(_format_thickness(left, top, right, bottom))


def encode_color(raw: str) -> EncodedValue:
    constant = COLOR_CONSTANTS.get(raw)
    if constant is None:
        return EncodedValue(COLOR_FALLBACK, "is not a known color")
    return EncodedValue(constant)


def encode_boolean(raw: str) -> EncodedValue:
    token = raw.strip().lower()
    if token in ("true", "false"):
        return EncodedValue(token)
    return EncodedValue("false", "is not true or false")


def encode_dock_position(raw: str) -> EncodedValue:
    constant = DOCK_POSITION_CONSTANTS.get(raw)
    if constant is None:
        return EncodedValue(
            DOCK_POSITION_CONSTANTS[DOCK_POSITION_DEFAULT], "is not a dock position"
        )
    return EncodedValue(constant)


def encode_stack_orientation(raw: str) -> EncodedValue:
    constant = STACK_ORIENTATION_CONSTANTS.get(raw)
    if constant is None:
        return EncodedValue(
            STACK_ORIENTATION_CONSTANTS[STACK_ORIENTATION_DEFAULT],
            "is not a stack orientation",
        )
    return EncodedValue(constant)


def encode_callback(raw: str) -> EncodedValue:
    return EncodedValue(raw.strip())


_VALUE_ENCODERS: dict[str, Callable[[str], EncodedValue]] = {
    VALUE_STRING: encode_string,
    VALUE_FLOAT: encode_float,
    VALUE_THICKNESS: encode_thickness,
    VALUE_COLOR: encode_color,
    VALUE_BOOLEAN: encode_boolean,
    VALUE_DOCK_POSITION: encode_dock_position,
    VALUE_STACK_ORIENTATION: encode_stack_orientation,
    VALUE_GENERIC_CALLBACK: encode_callback,
    VALUE_BUTTON_CALLBACK: encode_callback,
}

_ENUM_TABLES = {
    VALUE_COLOR: COLOR_CONSTANTS,
    VALUE_DOCK_POSITION: DOCK_POSITION_CONSTANTS,
    VALUE_STACK_ORIENTATION: STACK_ORIENTATION_CONSTANTS,
}


def decode_enum_literal(value_type: str, literal: str) -> str | None:
    """Map an emitted enum constant back to its markup spelling.

    Returns None for constants outside the table, such as the transparent
    color fallback.

    Raises:
        ValueError: If value_type is not an enumerated value type.
    """
    table = _ENUM_TABLES.get(value_type)
    if table is None:
        raise ValueError(f"{value_type} is not an enumerated value type")
    for markup_name, constant in table.items():
        if constant == literal:
            return markup_name
    return None


class Translator:
    """Name resolution and value encoding used by the code emitters.

    Holds no state besides the registry it reads, so one instance can serve
    any number of invocations.
    """

    def __init__(self, registry: SchemaRegistry | None = None):
        self.registry = DEFAULT_REGISTRY if registry is None else registry

    def resolve_class(self, class_name: str) -> ClassEntry:
        return self.registry.get_class(class_name)

    def resolve_property(self, class_name: str, property_name: str) -> ResolvedProperty:
        resolved = self.registry.lookup_property(class_name, property_name)
        if resolved is None:
            raise UnknownPropertyError(class_name, property_name)
        return resolved

    def upcast_path(self, class_name: str, ancestor: str = VIEW_CLASS) -> tuple[str, ...]:
        path = self.registry.ancestor_path(class_name, ancestor)
        if path is None:
            raise ValueError(f"Class '{class_name}' does not derive from '{ancestor}'")
        return path

    def encode_value(self, value_type: str, raw: str) -> EncodedValue:
        encoder = _VALUE_ENCODERS.get(value_type)
        if encoder is None:
            raise ValueError(f"Unknown value type: {value_type}")
        return encoder(raw)


# ===--- Code emitters ---=== #

_BANNER_BORDER = "/***************************************************************"
_BANNER_FOOTER = "***************************************************************/"


def format_banner(kind: str, filename: str, module_name: str) -> list[str]:
    return [
        _BANNER_BORDER,
        "**",
        f"** NanoKit Generated {kind} File",
        "**",
        f"** File         :  {filename}",
        f"** Module       :  {module_name}",
        "**",
        _BANNER_FOOTER,
    ]


def collect_callbacks(tree: Node, translator: Translator) -> list[tuple[str, str]]:
    """Return (symbol, value_type) for every callback property, in pre-order."""
    callbacks: list[tuple[str, str]] = []
    for node in iter_preorder(tree):
        for key, raw in node.properties:
            resolved = translator.resolve_property(node.class_name, key)
            if resolved.is_callback:
                symbol = translator.encode_value(resolved.value_type, raw).literal
                callbacks.append((symbol, resolved.value_type))
    return callbacks


def emit_header(
    tree: Node,
    translator: Translator,
    context: GenerationContext,
    header_filename: str,
) -> str:
    """Render the module header for a validated tree.

    Layout:
        <banner>
        #ifndef / #define {MODULE}_XML_H
        #include <stdbool.h>, <nanowin.h>
        typedef struct { <root type> super; <one field per node> } {Module}_t;
        {Module}_Create / {Module}_Destroy declarations
        one forward declaration per callback property
        #endif

    Args:
        tree: Validated root node.
        translator: Resolves class types and callback symbols.
        context: Invocation state providing the module name and buffer cap.
        header_filename: File name shown in the banner.

    Returns:
        Header text with a trailing newline.

    Raises:
        BufferOverflowError: If the text exceeds context.max_output_bytes.
    """
    module = context.module_name
    struct_name = f"{module}_t"
    guard = f"{context.module_upper}_XML_H"

    buffer = context.new_buffer()
    buffer.extend(format_banner("Header", header_filename, module))
    buffer.write()
    buffer.write(f"#ifndef {guard}")
    buffer.write(f"#define {guard}")
    buffer.write()
    buffer.write("#include <stdbool.h>")
    buffer.write(f"#include <{TOOLKIT_INCLUDE}>")
    buffer.write()
    buffer.write("typedef struct")
    buffer.write("{")
    for node in iter_preorder(tree):
        entry = translator.resolve_class(node.class_name)
        buffer.write(f"    {entry.code_type_name} {node.instance_name};")
    buffer.write(f"}} {struct_name};")
    buffer.write()
    buffer.write("/* Module Functions - Implementations Generated from XML */")
    buffer.write(f"bool {module}_Create({struct_name} *instance);")
    buffer.write(f"void {module}_Destroy({struct_name} *instance);")

    callbacks = collect_callbacks(tree, translator)
    if callbacks:
        buffer.write()
        buffer.write("/* Callback Functions - Implemented in User Code */")
        for symbol, value_type in callbacks:
            buffer.write(f"void {symbol}({CALLBACK_PARAMETERS[value_type]});")

    buffer.write()
    buffer.write(f"#endif /* {guard} */")
    return buffer.getvalue()


def _encode_property(
    node: Node,
    resolved: ResolvedProperty,
    raw: str,
    translator: Translator,
    context: GenerationContext,
) -> str:
    encoded = translator.encode_value(resolved.value_type, raw)
    if encoded.warning is not None:
        context.warn(
            ValueEncodingWarning(
                path=node.path,
                property_name=resolved.markup_name,
                value_type=resolved.value_type,
                raw_value=raw,
                fallback=encoded.literal,
                reason=encoded.warning,
            )
        )
    return encoded.literal


def _view_reference(node: Node, translator: Translator) -> str:
    path = translator.upcast_path(node.class_name, VIEW_CLASS)
    return "&" + ".".join((f"instance->{node.instance_name}", *path))


def _emit_construction(
    buffer: OutputBuffer,
    node: Node,
    translator: Translator,
    context: GenerationContext,
) -> None:
    entry = translator.resolve_class(node.class_name)
    args = [f"&instance->{node.instance_name}"]
    consumed: set[str] = set()
    if node.is_root:
        for markup_name, default in entry.constructor_params:
            resolved = translator.resolve_property(node.class_name, markup_name)
            raw = node.property_value(markup_name)
            if raw is None:
                raw = default
            args.append(_encode_property(node, resolved, raw, translator, context))
            consumed.add(markup_name)

    buffer.write(f"    /* {node.instance_name} : {node.class_name} */")
    buffer.write(f"    if (!{entry.constructor_name}({', '.join(args)}))")
    buffer.write("    {")
    buffer.write("        return false;")
    buffer.write("    }")

    for key, raw in node.properties:
        if key in consumed:
            continue
        resolved = translator.resolve_property(node.class_name, key)
        literal = _encode_property(node, resolved, raw, translator, context)
        target = ".".join(
            (f"instance->{node.instance_name}", *resolved.owner_path, resolved.code_field_name)
        )
        buffer.write(f"    {target} = {literal};")
    buffer.write()


def _emit_linkage(buffer: OutputBuffer, node: Node, translator: Translator) -> None:
    if not node.children:
        return
    entry = translator.resolve_class(node.class_name)
    if node.is_root and entry.content_setter is not None:
        content = _view_reference(node.children[0], translator)
        buffer.write(
            f"    {entry.content_setter}(&instance->{node.instance_name}, {content});"
        )
        return
    parent_ref = _view_reference(node, translator)
    for child in node.children:
        child_ref = _view_reference(child, translator)
        buffer.write(f"    {ADD_CHILD_FUNCTION}({parent_ref}, {child_ref});")


def emit_source(
    tree: Node,
    translator: Translator,
    context: GenerationContext,
    header_filename: str,
    source_filename: str,
) -> str:
    """Render the module source for a validated tree.

    {Module}_Create constructs nodes in pre-order. Each node gets a guarded
    constructor call followed by one assignment per property in document
    order. The root passes its class's constructor parameters positionally
    and skips re-assigning them. Once every child of a node has been built,
    its linkage is emitted: the root's content setter for its single child,
    or nkView_AddChild per child otherwise. {Module}_Destroy is an empty
    body matching the declared signature.

    Value-encoding fallbacks are recorded on context.warnings.

    Args:
        tree: Validated root node.
        translator: Resolves names and encodes values.
        context: Invocation state providing the module name, buffer cap and
            warning sink.
        header_filename: Header included by the source.
        source_filename: File name shown in the banner.

    Returns:
        Source text with a trailing newline.

    Raises:
        BufferOverflowError: If the text exceeds context.max_output_bytes.
    """
    module = context.module_name
    struct_name = f"{module}_t"

    buffer = context.new_buffer()
    buffer.extend(format_banner("Source", source_filename, module))
    buffer.write()
    buffer.write(f'#include "{header_filename}"')
    buffer.write()
    buffer.write(f"bool {module}_Create({struct_name} *instance)")
    buffer.write("{")

    stack: list[tuple[Node, bool]] = [(tree, False)]
    while stack:
        node, children_built = stack.pop()
        if children_built:
            _emit_linkage(buffer, node, translator)
            continue
        _emit_construction(buffer, node, translator, context)
        stack.append((node, True))
        stack.extend((child, False) for child in reversed(node.children))

    buffer.write()
    buffer.write("    return true;")
    buffer.write("}")
    buffer.write()
    buffer.write(f"void {module}_Destroy({struct_name} *instance)")
    buffer.write("{")
    buffer.write("    (void)instance;")
    buffer.write("}")
    return buffer.getvalue()


# ===--- Writer ---=== #


@dataclass(frozen=True)
class FileWriteResult:
    """Result of writing a single generated file.

    Attributes:
        filename: Filename written, e.g. "main.xml.h".
        path: Absolute path of the written file.
        line_count: Number of newline characters in the written content.
        byte_count: Number of bytes written (UTF-8 encoded).
    """

    filename: str
    path: Path
    line_count: int
    byte_count: int


def _reserve_backup(target: Path) -> Path:
    fd, name = tempfile.mkstemp(
        dir=target.parent, prefix=f".{target.name}.", suffix=".bak"
    )
    os.close(fd)
    return Path(name)


def _restore_targets(replaced: list[tuple[Path, Path | None]]) -> None:
    for target, backup in reversed(replaced):
        if backup is not None:
            os.replace(backup, target)
        elif target.exists():
            os.unlink(target)


def write_artifacts(artifacts: list[tuple[Path, str]]) -> tuple[FileWriteResult, ...]:
    """Write every artifact or none of them.

    Each content string is first written to a temporary file beside its
    target. Only when all temporaries are complete are they moved into place
    with os.replace. An existing target is first moved aside to a backup. If
    any move fails, targets already replaced are restored from their backups
    (or removed when they did not exist before), so a failure never leaves a
    mix of old and new files. Temporaries and backups are removed either way.

    Args:
        artifacts: (target path, content) pairs, written in order.

    Returns:
        One FileWriteResult per artifact, in input order.

    Raises:
        OSError: Propagated from directory creation, writing or replacing.
    """
    staged: list[tuple[Path, Path, str]] = []
    backups: list[Path] = []
    replaced: list[tuple[Path, Path | None]] = []
    try:
        for target, content in artifacts:
            target = Path(target)
            target.parent.mkdir(parents=True, exist_ok=True)
            handle = tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                newline="\n",
                dir=target.parent,
                prefix=f".{target.name}.",
                suffix=".tmp",
                delete=False,
            )
            staged.append((Path(handle.name), target, content))
            with handle:
                handle.write(content)
        for temp_path, target, _content in staged:
            backup: Path | None = None
            if target.exists():
                backup = _reserve_backup(target)
                backups.append(backup)
                os.replace(target, backup)
            replaced.append((target, backup))
            os.replace(temp_path, target)
    except BaseException:
        _restore_targets(replaced)
        raise
    finally:
        leftovers = [temp_path for temp_path, _target, _content in staged] + backups
        for leftover in leftovers:
            if leftover.exists():
                try:
                    os.unlink(leftover)
                except OSError:
                    pass

    return tuple(
        FileWriteResult(
            filename=target.name,
            path=target.resolve(),
            line_count=content.count("\n"),
            byte_count=len(content.encode("utf-8")),
        )
        for _temp_path, target, content in staged
    )


# ===--- Pipeline ---=== #


@dataclass(frozen=True)
class GenerationResult:
    """Everything one generation invocation produced, before writing.

    Attributes:
        tree: The validated node tree.
        header_text: Complete header artifact.
        source_text: Complete source artifact.
        callbacks: (symbol, value_type) pairs declared in the header.
        warnings: Value-encoding fallbacks recorded while emitting.
    """

    tree: Node
    header_text: str
    source_text: str
    callbacks: tuple[tuple[str, str], ...]
    warnings: tuple[ValueEncodingWarning, ...]


def generate_module(
    tree: Node,
    context: GenerationContext,
    header_filename: str,
    source_filename: str,
    registry: SchemaRegistry | None = None,
) -> GenerationResult:
    """Validate a tree and render both artifacts.

    Raises:
        ValidationFailedError: If validate_tree reports any error. Nothing is
            emitted in that case.
        BufferOverflowError: If an artifact exceeds the context's cap.
    """
    registry = DEFAULT_REGISTRY if registry is None else registry
    errors = validate_tree(tree, registry, context.module_name)
    if errors:
        raise ValidationFailedError(errors)

    translator = Translator(registry)
    header_text = emit_header(tree, translator, context, header_filename)
    source_text = emit_source(
        tree, translator, context, header_filename, source_filename
    )
    return GenerationResult(
        tree=tree,
        header_text=header_text,
        source_text=source_text,
        callbacks=tuple(collect_callbacks(tree, translator)),
        warnings=tuple(context.warnings),
    )


def run_generate(config: GenerateConfig) -> "GenerationSummary":
    """Execute the complete generation pipeline for a GenerateConfig.

    Stages: load markup -> build tree -> validate -> emit header -> emit
    source -> write both files. No file is written unless every earlier stage
    succeeds.

    Args:
        config: Validated GenerateConfig from build_config.

    Returns:
        GenerationSummary describing the run.

    Raises:
        OSError: Input not readable or output not writable.
        MalformedDocumentError: Markup could not be parsed.
        ValidationFailedError: The tree does not match the schema.
        BufferOverflowError: An artifact exceeds --max-output-bytes.
    """
    print(f"Parsing: {config.input_path}")
    element = load_markup(config.input_path)

    context = GenerationContext(
        module_name=config.module_name, max_output_bytes=config.max_output_bytes
    )
    tree = build_tree(element, context)
    node_count = sum(1 for _ in iter_preorder(tree))
    print(f"  Tree: {node_count} nodes, root {tree.class_name}")
    if config.print_tree:
        for line in format_tree(tree):
            print(f"    {line}")

    result = generate_module(
        tree, context, config.header_path.name, config.source_path.name
    )
    print(f"  Emitted: {len(result.callbacks)} callbacks, {len(result.warnings)} warnings")

    files = write_artifacts(
        [
            (config.header_path, result.header_text),
            (config.source_path, result.source_text),
        ]
    )
    print(f"  Written: {len(files)} files")

    for warning in result.warnings:
        print(f"Warning: {warning}", file=sys.stderr)

    summary = build_generation_summary(config, result, files)
    print_generation_summary(summary)
    return summary


# ===--- Summary report ---=== #


@dataclass(frozen=True)
class GenerationSummary:
    """Immutable data for the post-generation console report.

    Attributes:
        module_name: Generated module name.
        source_label: Input markup path as given on the command line.
        root_class: Markup class of the root node.
        field_count: Struct fields besides super (one per non-root node).
        callback_count: Forward declarations emitted.
        warning_count: Value-encoding fallbacks.
        files: Write results, header first.
    """

    module_name: str
    source_label: str
    root_class: str
    field_count: int
    callback_count: int
    warning_count: int
    files: tuple[FileWriteResult, ...]


def build_generation_summary(
    config: GenerateConfig,
    result: GenerationResult,
    files: tuple[FileWriteResult, ...],
) -> GenerationSummary:
    node_count = sum(1 for _ in iter_preorder(result.tree))
    return GenerationSummary(
        module_name=config.module_name,
        source_label=str(config.input_path),
        root_class=result.tree.class_name,
        field_count=node_count - 1,
        callback_count=len(result.callbacks),
        warning_count=len(result.warnings),
        files=files,
    )


def format_generation_summary(summary: GenerationSummary) -> str:
    """Render a GenerationSummary as a multi-line console string.

    Returns a string with exactly one trailing newline.
    """
    lines: list[str] = [
        f"Module {summary.module_name} generated:",
        "",
        f"  Source:     {summary.source_label}",
        f"  Root:       {summary.root_class}",
        f"  Fields:     {summary.field_count} (+ super)",
        f"  Callbacks:  {summary.callback_count}",
        f"  Warnings:   {summary.warning_count}",
        "",
        "  Files written:",
    ]
    for file_result in summary.files:
        line_str = f"{file_result.line_count:>6,} lines"
        lines.append(f"    {file_result.filename:<28} {line_str}")

    total_lines = sum(f.line_count for f in summary.files)
    lines.append("")
    lines.append(f"  Total: {total_lines:,} lines across {len(summary.files)} files")
    lines.append("")
    return "\n".join(lines)


def print_generation_summary(summary: GenerationSummary) -> None:
    print(format_generation_summary(summary), end="")


# ===--- Discovery commands ---=== #


def filter_classes_by_text(
    classes: tuple[ClassEntry, ...], filter_text: str
) -> tuple[ClassEntry, ...]:
    needle = filter_text.lower()
    return tuple(
        entry
        for entry in classes
        if needle in entry.markup_name.lower() or needle in entry.code_type_name.lower()
    )


def format_classes_table(
    registry: SchemaRegistry, filter_text: str | None = None
) -> str:
    """Render the schema catalogue as an aligned table.

    Columns: markup class, C type, superclass, root capability and the number
    of properties after flattening inheritance.
    """
    classes = registry.classes()
    if filter_text is not None:
        classes = filter_classes_by_text(classes, filter_text)

    lines = [f"NanoKit classes ({len(classes)}):", ""]
    if not classes:
        lines.append(f"  No classes match '{filter_text}'.")
        lines.append("")
        return "\n".join(lines)

    lines.append(f"  {'Class':<14}{'C type':<17}{'Super':<8}{'Root':<6}Properties")
    for entry in classes:
        lines.append(
            f"  {entry.markup_name:<14}{entry.code_type_name:<17}"
            f"{entry.superclass or '-':<8}{'yes' if entry.root_capable else 'no':<6}"
            f"{len(registry.properties_of(entry.markup_name))}"
        )
    lines.append("")
    return "\n".join(lines)


def format_class_detail(registry: SchemaRegistry, class_name: str) -> str:
    entry = registry.get_class(class_name)
    lines = [
        f"{entry.markup_name} ({entry.code_type_name})",
        "",
        f"  Constructor:  {entry.constructor_name}",
    ]
    if entry.superclass is not None:
        lines.append(f"  Superclass:   {entry.superclass} (via .{entry.super_field})")
    else:
        lines.append("  Superclass:   -")
    lines.append(f"  Root:         {'yes' if entry.root_capable else 'no'}")
    if entry.constructor_params:
        params = ", ".join(name for name, _default in entry.constructor_params)
        lines.append(f"  Root params:  {params}")
    if entry.content_setter is not None:
        lines.append(f"  Content:      {entry.content_setter} (single child)")

    lines.append("")
    lines.append("  Properties:")
    for resolved in registry.properties_of(class_name):
        target = ".".join((*resolved.owner_path, resolved.code_field_name))
        row = f"    {resolved.markup_name:<18}{resolved.value_type:<18}{target}"
        if resolved.is_inherited:
            row += f"  (inherited from {resolved.owner_class})"
        lines.append(row)
    lines.append("")
    return "\n".join(lines)


def run_discovery(config: DiscoveryConfig, registry: SchemaRegistry | None = None) -> None:
    registry = DEFAULT_REGISTRY if registry is None else registry
    if config.command == "list-classes":
        print(format_classes_table(registry, config.filter_text), end="")
    elif config.command == "info":
        assert config.class_name is not None  # validate_config guarantees this
        print(format_class_detail(registry, config.class_name), end="")


# ===--- Main ---=== #


def main(argv: list[str] | None = None) -> None:
    try:
        config = build_config(argv)
    except ConfigError as err:
        print(f"Config error [{err.code}]: {err.message}", file=sys.stderr)
        if err.suggestion:
            print(f"Hint: {err.suggestion}", file=sys.stderr)
        raise SystemExit(1) from err

    if isinstance(config, DiscoveryConfig):
        run_discovery(config)
        return

    try:
        run_generate(config)
    except (OSError, MalformedDocumentError) as err:
        print(f"Error: {err}", file=sys.stderr)
        raise SystemExit(1) from err
    except ValidationFailedError as err:
        for error in err.errors:
            print(
                f"Validation error [{error.code}] at {error.path}: {error.message}",
                file=sys.stderr,
            )
        print(
            f"Aborted: {len(err.errors)} validation error(s), no files written.",
            file=sys.stderr,
        )
        raise SystemExit(1) from err
    except BufferOverflowError as err:
        print(f"Error: {err}", file=sys.stderr)
        raise SystemExit(1) from err
    except (LookupError, RuntimeError, ValueError) as err:
        print(f"Internal error: {err}", file=sys.stderr)
        raise SystemExit(1) from err


if __name__ == "__main__":
    main()
