"""Three-state resource-model fields.

A field of a resource model is either

* ``UNCHANGED`` - not involved in this operation, never sent,
* ``CLEARED``   - the caller asked for the value to be removed; sent as the
  type's explicit empty value (``""`` for scalars, ``[]`` for lists),
* ``assigned(v)`` - set to ``v``.

kintone treats an empty string as "remove value", so the distinction between
the first two must survive every layer down to the JSON payload.
"""
from __future__ import annotations
import enum
from dataclasses import dataclass, fields as dataclass_fields
from typing import Any, Callable, ClassVar, Dict, FrozenSet, Optional


class FieldState(enum.Enum):
    UNCHANGED = "unchanged"
    CLEARED = "cleared"
    SET = "set"


@dataclass(frozen=True)
class FieldValue:
    state: FieldState
    value: Any = None

    @property
    def is_unchanged(self) -> bool:
        return self.state is FieldState.UNCHANGED

    @property
    def is_cleared(self) -> bool:
        return self.state is FieldState.CLEARED

    @property
    def is_set(self) -> bool:
        return self.state is FieldState.SET

    def get(self, default: Any = None) -> Any:
        """Return the assigned value, or ``default`` when unchanged/cleared."""
        return self.value if self.state is FieldState.SET else default


UNCHANGED = FieldValue(FieldState.UNCHANGED)
CLEARED = FieldValue(FieldState.CLEARED)


def assigned(value: Any) -> FieldValue:
    if value is None:
        raise ValueError("assigned() needs a value; use CLEARED or UNCHANGED instead")
    return FieldValue(FieldState.SET, value)


def clear_if_empty(value: Any) -> FieldValue:
    """Map a caller value to a field value, treating None and "" as a clear."""
    if value is None or value == "":
        return CLEARED
    return assigned(value)


class ResourceModel:
    """Base for the per-object-type dataclasses.

    Subclasses are dataclasses whose persisted fields hold ``FieldValue`` and
    declare:

    * ``JSON_KEYS``: attribute name -> JSON key, for every persisted field
    * ``KEY_FIELDS``: fields that identify the record rather than describe it
      (id, code, timestamps); they never count as an attribute change
    * ``LIST_FIELDS``: fields whose explicit empty value is ``[]``
    """

    JSON_KEYS: ClassVar[Dict[str, str]] = {}
    KEY_FIELDS: ClassVar[FrozenSet[str]] = frozenset({"id", "code"})
    LIST_FIELDS: ClassVar[FrozenSet[str]] = frozenset()

    def has_attributes_change(self) -> bool:
        return any(
            not getattr(self, attr).is_unchanged
            for attr in self.JSON_KEYS
            if attr not in self.KEY_FIELDS
        )

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the kintone JSON record, omitting unchanged fields."""
        payload: Dict[str, Any] = {}
        for attr, key in self.JSON_KEYS.items():
            current: FieldValue = getattr(self, attr)
            if current.is_unchanged:
                continue
            if current.is_cleared:
                payload[key] = [] if attr in self.LIST_FIELDS else ""
            else:
                payload[key] = current.value
        return payload

    @classmethod
    def from_payload(cls, data: Optional[Dict[str, Any]]):
        """Build a model from a kintone JSON record.

        Keys missing from the record stay UNCHANGED; ``null`` values too.
        Unknown keys are ignored.
        """
        model = cls()
        data = data or {}
        for attr, key in cls.JSON_KEYS.items():
            if key in data and data[key] is not None:
                setattr(model, attr, FieldValue(FieldState.SET, data[key]))
        return model

    def value_of(self, attr: str) -> Any:
        return getattr(self, attr).get()

    def changed_fields(self) -> FrozenSet[str]:
        """Names of every persisted field that is not UNCHANGED."""
        names = {f.name for f in dataclass_fields(self)}  # type: ignore[arg-type]
        return frozenset(
            attr for attr in self.JSON_KEYS
            if attr in names and not getattr(self, attr).is_unchanged
        )


# ─────────────────────────────────────────────────────────────────────────────
# Mapper / accessor factories for schema declarations
# ─────────────────────────────────────────────────────────────────────────────
def set_field(attr: str) -> Callable[[Any, Any], None]:
    """Mapper writing ``attr``; ``None`` or ``""`` becomes an explicit clear."""
    def mapper(value: Any, model: Any) -> None:
        setattr(model, attr, clear_if_empty(value))
    return mapper


def set_required_field(attr: str) -> Callable[[Any, Any], None]:
    """Mapper for required fields; the applier never hands it ``None``."""
    def mapper(value: Any, model: Any) -> None:
        setattr(model, attr, assigned(value))
    return mapper


def read_field(attr: str) -> Callable[[Any], Any]:
    def accessor(model: Any) -> Any:
        return getattr(model, attr).get()
    return accessor
