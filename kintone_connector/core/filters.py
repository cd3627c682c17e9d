"""Search filter translation.

kintone can look objects up by id or by code and nothing else, so the only
supported filter is an equality on ``__UID__`` or ``__NAME__``.
"""
from __future__ import annotations
import enum
from dataclasses import dataclass
from typing import Any, Optional, Union

from .framework import NAME, UID, Name, Uid
from .rest.exceptions import InvalidAttributeValueError


@dataclass(frozen=True)
class EqualsFilter:
    attribute: str
    value: Any
    negated: bool = False


class FilterType(enum.Enum):
    BY_UID = "uid"
    BY_NAME = "name"


@dataclass(frozen=True)
class ResourceFilter:
    type: FilterType
    value: Union[Uid, Name]

    @property
    def is_by_uid(self) -> bool:
        return self.type is FilterType.BY_UID

    @property
    def is_by_name(self) -> bool:
        return self.type is FilterType.BY_NAME


def translate(query: Optional[EqualsFilter], object_class: Optional[str] = None) -> Optional[ResourceFilter]:
    """Translate a caller filter. ``None`` stands for a full scan.

    Raises:
        InvalidAttributeValueError: Negated filter or any other attribute
    """
    if query is None:
        return None

    if query.negated:
        raise InvalidAttributeValueError(
            "NOT filters are not supported", object_class=object_class,
        )

    if query.attribute == UID:
        value = query.value if isinstance(query.value, Uid) else Uid(str(query.value))
        return ResourceFilter(FilterType.BY_UID, value)
    if query.attribute == NAME:
        value = query.value if isinstance(query.value, Name) else Name(str(query.value))
        return ResourceFilter(FilterType.BY_NAME, value)

    raise InvalidAttributeValueError(
        f"Searching by '{query.attribute}' is not supported, use {UID} or {NAME}",
        object_class=object_class,
    )
