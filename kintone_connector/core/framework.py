"""Caller-facing data types shared by every object type.

These mirror what a generic identity-management caller hands to the connector:
identity references (``Uid`` / ``Name``), attribute sets for create, attribute
deltas for update, the objects returned by search and the operation options.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

# Object classes
USER = "user"
ORGANIZATION = "organization"
GROUP = "group"

# Special attribute names
UID = "__UID__"
NAME = "__NAME__"
ENABLE = "__ENABLE__"
PASSWORD = "__PASSWORD__"


class GuardedString:
    """Secret string that never shows up in reprs or logs."""

    __slots__ = ("_secret",)

    def __init__(self, secret: str):
        self._secret = secret

    def reveal(self) -> str:
        return self._secret

    def access(self, accessor: Callable[[str], Any]) -> Any:
        """Hand the clear text to ``accessor`` and return its result."""
        return accessor(self._secret)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GuardedString):
            return NotImplemented
        return self._secret == other._secret

    def __hash__(self) -> int:
        return hash(self._secret)

    def __repr__(self) -> str:
        return "GuardedString(***)"


@dataclass(frozen=True)
class Name:
    """Mutable, case-sensitive name (the kintone ``code``)."""
    value: str


@dataclass(frozen=True)
class Uid:
    """Stable identifier, optionally carrying the name it was last known by.

    Attributes:
        value: System-generated id
        name_hint: Current code, when known. A Uid without a hint must be
            resolved before any code-keyed call.
    """
    value: str
    name_hint: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self.name_hint is not None

    def with_name(self, name: str) -> "Uid":
        return Uid(self.value, name)


@dataclass(frozen=True)
class Attribute:
    """A caller attribute: a name and zero or more values.

    ``complete`` is False when values were intentionally not fetched
    (partial attribute values).
    """
    name: str
    values: List[Any] = field(default_factory=list)
    complete: bool = True

    @classmethod
    def of(cls, name: str, *values: Any) -> "Attribute":
        return cls(name, list(values))

    def single_value(self) -> Any:
        if not self.values:
            return None
        if len(self.values) > 1:
            raise ValueError(f"Attribute '{self.name}' must be single-valued, got {len(self.values)} values")
        return self.values[0]


@dataclass(frozen=True)
class AttributeDelta:
    """A change request for one attribute.

    ``values_to_replace`` is used for single-valued attributes (an empty list
    means "clear") and for full-set replacement of multi-valued ones.
    ``values_to_add`` / ``values_to_remove`` only apply to multi-valued ones.
    ``None`` always means "operand not supplied".
    """
    name: str
    values_to_replace: Optional[List[Any]] = None
    values_to_add: Optional[List[Any]] = None
    values_to_remove: Optional[List[Any]] = None

    @classmethod
    def replace(cls, name: str, *values: Any) -> "AttributeDelta":
        return cls(name, values_to_replace=list(values))

    @classmethod
    def clear(cls, name: str) -> "AttributeDelta":
        return cls(name, values_to_replace=[])

    @classmethod
    def add_remove(cls, name: str, add: Optional[Iterable[Any]] = None,
                   remove: Optional[Iterable[Any]] = None) -> "AttributeDelta":
        return cls(
            name,
            values_to_add=list(add) if add is not None else None,
            values_to_remove=list(remove) if remove is not None else None,
        )


@dataclass
class ConnectorObject:
    """An object returned to the caller by search."""
    object_class: str
    uid: Uid
    name: Name
    attributes: Dict[str, Attribute] = field(default_factory=dict)

    def get(self, name: str) -> Optional[Attribute]:
        return self.attributes.get(name)

    def value(self, name: str) -> Any:
        attr = self.attributes.get(name)
        return attr.single_value() if attr else None


@dataclass(frozen=True)
class OperationOptions:
    """Options the caller may pass to search and update.

    ``paged_results_offset`` is 1-based; ``None`` or 0 requests all data.
    """
    page_size: Optional[int] = None
    paged_results_offset: Optional[int] = None
    return_default_attributes: Optional[bool] = None
    attributes_to_get: Optional[List[str]] = None
    allow_partial_attribute_values: Optional[bool] = None


@dataclass(frozen=True)
class SearchResult:
    """End-of-search summary for paged searches."""
    paged_results_cookie: Optional[str] = None
    remaining_paged_results: int = -1


class CollectingResultsHandler:
    """Results handler that keeps every object it receives.

    Also accepts the end-of-search ``SearchResult`` of paged searches.

    Args:
        limit: Stop the search after this many objects
    """

    def __init__(self, limit: Optional[int] = None):
        self.limit = limit
        self.objects: List[ConnectorObject] = []
        self.search_result: Optional[SearchResult] = None

    def __call__(self, obj: ConnectorObject) -> bool:
        self.objects.append(obj)
        return self.limit is None or len(self.objects) < self.limit

    def handle_result(self, result: SearchResult) -> None:
        self.search_result = result
