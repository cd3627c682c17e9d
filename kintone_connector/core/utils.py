"""Helpers shared by the connector and the object handlers."""
from __future__ import annotations
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any, List, Optional

from .framework import OperationOptions
from .rest.exceptions import InvalidAttributeValueError

if TYPE_CHECKING:
    from .schema import SchemaDefinition


def resolve_page_size(options: Optional[OperationOptions], default_size: int) -> int:
    if options is not None and options.page_size is not None:
        return options.page_size
    return default_size


def resolve_page_offset(options: Optional[OperationOptions]) -> int:
    """Return the caller's 1-based page offset, 0 meaning "all data"."""
    if options is not None and options.paged_results_offset is not None:
        return options.paged_results_offset
    return 0


def should_allow_partial_attribute_values(options: Optional[OperationOptions]) -> bool:
    return bool(options is not None and options.allow_partial_attribute_values)


def should_return_default_attributes(options: Optional[OperationOptions]) -> bool:
    return bool(options is not None and options.return_default_attributes)


def create_full_attributes_to_get(schema: "SchemaDefinition",
                                  options: Optional[OperationOptions]) -> List[str]:
    """Resolve which attributes a search returns.

    * no ``attributes_to_get``: every attribute returned by default
    * ``attributes_to_get`` with ``return_default_attributes``: the union
    * ``attributes_to_get`` alone: exactly those

    Returns:
        Attribute names, defaults first, without duplicates
    """
    attributes_to_get: List[str] = []

    requested = options.attributes_to_get if options is not None else None
    if requested is None or should_return_default_attributes(options):
        attributes_to_get.extend(d.name for d in schema.returned_by_default())

    for name in requested or []:
        definition = schema.get(name)
        if definition is None:
            raise InvalidAttributeValueError(
                f"Unknown attribute '{name}' requested for {schema.object_class}",
                object_class=schema.object_class,
                identifier=name,
            )
        if definition.name not in attributes_to_get:
            attributes_to_get.append(definition.name)

    return attributes_to_get


# ─────────────────────────────────────────────────────────────────────────────
# Value helpers
# ─────────────────────────────────────────────────────────────────────────────
def to_date_string(value: Any) -> str:
    """Normalize a caller date (``date`` or ``YYYY-MM-DD`` string)."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    try:
        return date.fromisoformat(str(value)).isoformat()
    except ValueError as e:
        raise InvalidAttributeValueError(f"Invalid date value: {value!r}") from e


def parse_instant(value: Optional[str]) -> Optional[datetime]:
    """Parse kintone timestamps such as ``2021-01-02T03:04:05Z``."""
    if not value:
        return None
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_instant(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
