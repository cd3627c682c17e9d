"""Apply caller attributes and deltas to a blank resource model.

Only attributes present in the input touch the model: anything absent stays
``UNCHANGED``. Clearing a single-valued attribute is requested with an empty
replace list and reaches the delta mapper as ``None``; each mapper turns that
into its field's explicit empty value.

Names missing from the schema raise ``KeyError``: input is expected to be
validated upstream, so this is a programming error rather than bad data.
"""
from __future__ import annotations
from typing import TYPE_CHECKING, Any, Iterable, List, TypeVar

from .framework import Attribute, AttributeDelta
from .rest.exceptions import InvalidAttributeValueError

if TYPE_CHECKING:
    from .schema import AttributeDefinition, SchemaDefinition

M = TypeVar("M")


def _lookup(schema: "SchemaDefinition", name: str) -> "AttributeDefinition":
    definition = schema.get(name)
    if definition is None:
        raise KeyError(f"Attribute '{name}' is not defined for {schema.object_class}")
    return definition


def _to_resource(schema: "SchemaDefinition", definition: "AttributeDefinition", value: Any) -> Any:
    """Coerce one caller value, reporting failures against the attribute."""
    try:
        return definition.type.to_resource(value)
    except InvalidAttributeValueError as e:
        raise InvalidAttributeValueError(
            f"Attribute '{definition.name}': {e.message}",
            object_class=schema.object_class,
            identifier=definition.name,
        ) from e


def _convert_all(schema: "SchemaDefinition", definition: "AttributeDefinition",
                 values: Iterable[Any]) -> List[Any]:
    return [_to_resource(schema, definition, v) for v in values]


def _check_required(schema: "SchemaDefinition", definition: "AttributeDefinition", value: Any) -> None:
    if definition.is_required and (value is None or value == ""):
        raise InvalidAttributeValueError(
            f"Attribute '{definition.name}' is required",
            object_class=schema.object_class,
            identifier=definition.name,
        )


def apply_create(schema: "SchemaDefinition", attributes: Iterable[Attribute], model: M) -> M:
    """Map the caller's create attributes onto ``model``.

    Raises:
        KeyError: Attribute not in the schema
        InvalidAttributeValueError: Attribute not creatable, required
            attribute without value, or value of the wrong type
    """
    for attr in attributes:
        definition = _lookup(schema, attr.name)
        if not definition.is_creatable:
            raise InvalidAttributeValueError(
                f"Attribute '{attr.name}' cannot be set on create",
                object_class=schema.object_class,
                identifier=attr.name,
            )

        if definition.multiple:
            definition.create_mapper(_convert_all(schema, definition, attr.values), model)
            continue

        try:
            raw = attr.single_value()
        except ValueError as e:
            raise InvalidAttributeValueError(str(e), object_class=schema.object_class,
                                             identifier=attr.name) from e
        value = _to_resource(schema, definition, raw)
        _check_required(schema, definition, value)
        definition.create_mapper(value, model)

    return model


def apply_delta(schema: "SchemaDefinition", deltas: Iterable[AttributeDelta], model: M) -> M:
    """Map the caller's update deltas onto ``model``.

    Single-valued entries only accept ``values_to_replace``. Multi-valued
    entries route replace / add / remove lists to their own mapper; empty
    add/remove lists and fully absent operands are no-ops.

    Raises:
        KeyError: Attribute not in the schema
        InvalidAttributeValueError: Attribute not updateable, required
            attribute cleared, or value of the wrong type
    """
    for delta in deltas:
        definition = _lookup(schema, delta.name)
        if not definition.is_updateable or definition.delta_mapper is None:
            raise InvalidAttributeValueError(
                f"Attribute '{delta.name}' cannot be updated",
                object_class=schema.object_class,
                identifier=delta.name,
            )

        if definition.multiple:
            _apply_multiple(schema, definition, delta, model)
        else:
            _apply_single(schema, definition, delta, model)

    return model


def _apply_single(schema: "SchemaDefinition", definition: "AttributeDefinition",
                  delta: AttributeDelta, model: Any) -> None:
    if delta.values_to_add or delta.values_to_remove:
        raise InvalidAttributeValueError(
            f"Attribute '{delta.name}' is single-valued, add/remove is not supported",
            object_class=schema.object_class,
            identifier=delta.name,
        )
    if delta.values_to_replace is None:
        return

    if len(delta.values_to_replace) == 0:
        if definition.is_required:
            raise InvalidAttributeValueError(
                f"Attribute '{delta.name}' is required and cannot be cleared",
                object_class=schema.object_class,
                identifier=delta.name,
            )
        # Clear: the mapper writes the field's explicit empty value
        definition.delta_mapper(None, model)
        return

    if len(delta.values_to_replace) > 1:
        raise InvalidAttributeValueError(
            f"Attribute '{delta.name}' must be single-valued",
            object_class=schema.object_class,
            identifier=delta.name,
        )
    value = _to_resource(schema, definition, delta.values_to_replace[0])
    _check_required(schema, definition, value)
    definition.delta_mapper(value, model)


def _apply_multiple(schema: "SchemaDefinition", definition: "AttributeDefinition",
                    delta: AttributeDelta, model: Any) -> None:
    if delta.values_to_replace is not None:
        definition.delta_mapper(_convert_all(schema, definition, delta.values_to_replace), model)
    if delta.values_to_add:
        definition.add_mapper(_convert_all(schema, definition, delta.values_to_add), model)
    if delta.values_to_remove:
        definition.remove_mapper(_convert_all(schema, definition, delta.values_to_remove), model)
