"""Argument validation against a tool's parameter schema.

Validation is pure: it never touches the filesystem or network. Checks run in
this order for every object node:

1. required fields are present
2. present fields have the declared type (arrays element-wise)
3. ``minItems`` / ``minLength`` / ``minimum`` constraints

Fields the schema does not declare are passed through untouched.
"""

from collections.abc import Mapping
from typing import Any

from chat_cli.tools.errors import ToolValidationError
from chat_cli.tools.types import ParameterSchema, SchemaType, ToolDefinition, ValidatedArguments

_JSON_TYPE_MAP = {
    "string": SchemaType.STRING,
    "number": SchemaType.NUMBER,
    "integer": SchemaType.NUMBER,
    "boolean": SchemaType.BOOLEAN,
    "array": SchemaType.ARRAY,
    "object": SchemaType.OBJECT,
}


def validate_arguments(definition: ToolDefinition, raw_arguments: Any) -> ValidatedArguments:
    """Check ``raw_arguments`` against ``definition.parameters``.

    Args:
        definition: Tool whose schema to apply.
        raw_arguments: Arguments as produced by the model.

    Returns:
        ValidatedArguments with top-level defaults filled in.

    Raises:
        ToolValidationError: On the first violation found.
    """
    if raw_arguments is None:
        raw_arguments = {}
    if not isinstance(raw_arguments, Mapping):
        raise ToolValidationError("", "arguments must be an object")

    schema = definition.parameters
    _check_required(schema, raw_arguments, prefix="")
    declared = [
        (schema.properties[name], value, name)
        for name, value in raw_arguments.items()
        if name in schema.properties
    ]
    for child, value, name in declared:
        _check_type(child, value, name)
    for child, value, name in declared:
        _check_constraints(child, value, name)

    values = dict(raw_arguments)
    for name, child in schema.properties.items():
        if name not in values and child.default is not None:
            values[name] = child.default
    return ValidatedArguments(tool_name=definition.name, values=values)


def _check_required(schema: ParameterSchema, obj: Mapping[str, Any], prefix: str) -> None:
    for name in schema.required:
        if name not in obj or obj[name] is None:
            raise ToolValidationError(f"{prefix}{name}", "required field is missing")


def _check_type(schema: ParameterSchema, value: Any, path: str) -> None:
    # Explicit nulls for optional fields are treated as omitted.
    if value is None or schema.type is None:
        return

    if schema.type is SchemaType.STRING:
        if not isinstance(value, str):
            raise ToolValidationError(path, f"expected string, got {_type_name(value)}")

    elif schema.type is SchemaType.NUMBER:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ToolValidationError(path, f"expected number, got {_type_name(value)}")

    elif schema.type is SchemaType.BOOLEAN:
        if not isinstance(value, bool):
            raise ToolValidationError(path, f"expected boolean, got {_type_name(value)}")

    elif schema.type is SchemaType.ARRAY:
        if not isinstance(value, list):
            raise ToolValidationError(path, f"expected array, got {_type_name(value)}")
        if schema.items is not None:
            for index, element in enumerate(value):
                if element is None and schema.items.type is not None:
                    raise ToolValidationError(f"{path}[{index}]", "null element")
                _check_type(schema.items, element, f"{path}[{index}]")

    elif schema.type is SchemaType.OBJECT:
        if not isinstance(value, Mapping):
            raise ToolValidationError(path, f"expected object, got {_type_name(value)}")
        _check_required(schema, value, prefix=f"{path}.")
        for name, child_value in value.items():
            child = schema.properties.get(name)
            if child is not None:
                _check_type(child, child_value, f"{path}.{name}")


def _check_constraints(schema: ParameterSchema, value: Any, path: str) -> None:
    """Length, bound and enum checks; runs only after every type check passed."""
    if value is None or schema.type is None:
        return

    if schema.type is SchemaType.STRING:
        if schema.min_length is not None and len(value) < schema.min_length:
            raise ToolValidationError(path, f"must be at least {schema.min_length} characters")

    elif schema.type is SchemaType.NUMBER:
        if schema.minimum is not None and value < schema.minimum:
            raise ToolValidationError(path, f"must be >= {_format_number(schema.minimum)}")

    elif schema.type is SchemaType.ARRAY:
        if schema.items is not None:
            for index, element in enumerate(value):
                _check_constraints(schema.items, element, f"{path}[{index}]")
        if schema.min_items is not None and len(value) < schema.min_items:
            raise ToolValidationError(path, f"must contain at least {schema.min_items} item(s)")

    elif schema.type is SchemaType.OBJECT:
        for name, child_value in value.items():
            child = schema.properties.get(name)
            if child is not None:
                _check_constraints(child, child_value, f"{path}.{name}")

    if schema.enum is not None and value not in schema.enum:
        raise ToolValidationError(path, f"must be one of {list(schema.enum)}")


def _type_name(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def from_json_schema(node: Mapping[str, Any] | None) -> ParameterSchema:
    """Convert a JSON Schema fragment (as remote servers declare) to a ParameterSchema.

    Lower-case JSON Schema types are mapped to the upper-case set; ``integer``
    becomes NUMBER. Unions with ``null`` collapse to the non-null member.
    Anything else (``anyOf``, unknown types) becomes an untyped node.
    """
    if not node:
        return ParameterSchema()

    declared = node.get("type")
    if isinstance(declared, list):
        non_null = [t for t in declared if t != "null"]
        declared = non_null[0] if len(non_null) == 1 else None
    schema_type = _JSON_TYPE_MAP.get(declared) if isinstance(declared, str) else None

    properties = node.get("properties") or {}
    items = node.get("items")
    enum = node.get("enum")
    return ParameterSchema(
        type=schema_type,
        description=node.get("description"),
        properties={
            name: from_json_schema(child)
            for name, child in properties.items()
            if isinstance(child, Mapping)
        },
        required=tuple(node.get("required") or ()),
        items=from_json_schema(items) if isinstance(items, Mapping) else None,
        default=node.get("default"),
        enum=tuple(enum) if isinstance(enum, list) else None,
        minimum=node.get("minimum"),
        min_items=node.get("minItems"),
        min_length=node.get("minLength"),
    )


def object_schema(
    properties: dict[str, ParameterSchema], required: list[str] | None = None
) -> ParameterSchema:
    """Root OBJECT schema helper for built-in tool definitions."""
    return ParameterSchema(
        type=SchemaType.OBJECT, properties=properties, required=tuple(required or ())
    )


def string(description: str, **extra: Any) -> ParameterSchema:
    return ParameterSchema(type=SchemaType.STRING, description=description, **extra)


def number(description: str, **extra: Any) -> ParameterSchema:
    return ParameterSchema(type=SchemaType.NUMBER, description=description, **extra)


def boolean(description: str, **extra: Any) -> ParameterSchema:
    return ParameterSchema(type=SchemaType.BOOLEAN, description=description, **extra)


def string_array(description: str, **extra: Any) -> ParameterSchema:
    return ParameterSchema(
        type=SchemaType.ARRAY,
        description=description,
        items=ParameterSchema(type=SchemaType.STRING),
        **extra,
    )
