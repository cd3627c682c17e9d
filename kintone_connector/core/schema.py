"""Declarative attribute registry, one per object type.

A ``SchemaDefinition`` maps caller attribute names to resource-model fields.
Each entry is an ``AttributeDefinition`` holding explicit mapping functions:

* ``create_mapper(value, model)``  - attribute set -> model, on create
* ``delta_mapper(value, model)``   - replace/clear delta -> model, on update
  (for multi-valued entries: full-set replacement)
* ``add_mapper`` / ``remove_mapper`` - multi-valued add/remove deltas
* ``read_accessor(model)``         - model -> caller value, no I/O
* ``fetcher(model)``               - remote fetch for association values

Reads are two-phase: ``plan_read`` decides which entries are evaluated locally,
which need a remote fetch and which are returned incomplete; only
``to_connector_object`` executes fetches. Listing entries never calls a
fetcher.

Usage:
    builder = SchemaDefinitionBuilder(GROUP, GroupModel)
    builder.add_uid("groupId", AttributeType.STRING_CASE_IGNORE,
                    read_accessor=lambda m: m.value_of("id"), fetch_field="id")
    ...
    schema = builder.build()
"""
from __future__ import annotations
import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple, Type

from .framework import NAME, UID, Attribute, AttributeDelta, ConnectorObject, GuardedString, Name, Uid
from .rest.exceptions import InvalidAttributeValueError
from . import applier, utils

logger = logging.getLogger(__name__)

Mapper = Callable[[Any, Any], None]
ReadAccessor = Callable[[Any], Any]
Fetcher = Callable[[Any], List[Any]]


class AttributeType(enum.Enum):
    """Caller-side value types and their coercion to/from the resource."""
    STRING = "string"
    STRING_CASE_IGNORE = "string_case_ignore"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    DATE_STRING = "date_string"
    DATETIME = "datetime"
    GUARDED_STRING = "guarded_string"

    def to_resource(self, value: Any) -> Any:
        """Coerce a caller value for a mapper. ``None`` passes through."""
        if value is None:
            return None
        if self in (AttributeType.STRING, AttributeType.STRING_CASE_IGNORE):
            return value if isinstance(value, str) else str(value)
        if self is AttributeType.BOOLEAN:
            if isinstance(value, bool):
                return value
            if isinstance(value, str) and value.lower() in ("true", "false"):
                return value.lower() == "true"
            raise InvalidAttributeValueError(f"Expected a boolean, got {value!r}")
        if self is AttributeType.INTEGER:
            if isinstance(value, bool):
                raise InvalidAttributeValueError(f"Expected an integer, got {value!r}")
            try:
                return int(value)
            except (TypeError, ValueError) as e:
                raise InvalidAttributeValueError(f"Expected an integer, got {value!r}") from e
        if self is AttributeType.DATE_STRING:
            return utils.to_date_string(value)
        if self is AttributeType.DATETIME:
            if not isinstance(value, datetime):
                raise InvalidAttributeValueError(f"Expected a datetime, got {value!r}")
            return utils.format_instant(value)
        # GUARDED_STRING
        if isinstance(value, GuardedString):
            return value
        if isinstance(value, str):
            return GuardedString(value)
        raise InvalidAttributeValueError("Expected a guarded string")

    def to_caller(self, value: Any) -> Any:
        """Coerce a resource value for the caller. Empty values become ``None``."""
        if value is None or value == "":
            return None
        if self in (AttributeType.STRING, AttributeType.STRING_CASE_IGNORE):
            return str(value)
        if self is AttributeType.BOOLEAN:
            if isinstance(value, str):
                return value.lower() == "true"
            return bool(value)
        if self is AttributeType.INTEGER:
            return int(value)
        if self is AttributeType.DATE_STRING:
            return str(value)
        if self is AttributeType.DATETIME:
            return value if isinstance(value, datetime) else utils.parse_instant(value)
        return value


class Flag(enum.Enum):
    REQUIRED = "required"
    NOT_CREATABLE = "not_creatable"
    NOT_UPDATEABLE = "not_updateable"
    NOT_READABLE = "not_readable"
    NOT_RETURNED_BY_DEFAULT = "not_returned_by_default"


REQUIRED = Flag.REQUIRED
NOT_CREATABLE = Flag.NOT_CREATABLE
NOT_UPDATEABLE = Flag.NOT_UPDATEABLE
NOT_READABLE = Flag.NOT_READABLE
NOT_RETURNED_BY_DEFAULT = Flag.NOT_RETURNED_BY_DEFAULT


@dataclass(frozen=True)
class AttributeDefinition:
    name: str
    native_name: str
    type: AttributeType
    multiple: bool = False
    create_mapper: Optional[Mapper] = None
    delta_mapper: Optional[Mapper] = None
    add_mapper: Optional[Mapper] = None
    remove_mapper: Optional[Mapper] = None
    read_accessor: Optional[ReadAccessor] = None
    fetcher: Optional[Fetcher] = None
    fetch_field: str = ""
    flags: FrozenSet[Flag] = frozenset()

    @property
    def is_required(self) -> bool:
        return Flag.REQUIRED in self.flags

    @property
    def is_creatable(self) -> bool:
        return Flag.NOT_CREATABLE not in self.flags and self.create_mapper is not None

    @property
    def is_updateable(self) -> bool:
        return Flag.NOT_UPDATEABLE not in self.flags

    @property
    def is_readable(self) -> bool:
        return (Flag.NOT_READABLE not in self.flags
                and (self.read_accessor is not None or self.fetcher is not None))

    @property
    def is_returned_by_default(self) -> bool:
        return Flag.NOT_RETURNED_BY_DEFAULT not in self.flags

    @property
    def is_remote(self) -> bool:
        """Whether reading this attribute costs a remote call."""
        return self.fetcher is not None


@dataclass(frozen=True)
class AttributeInfo:
    """Introspection view of one attribute, as reported by ``schema``."""
    name: str
    native_name: str
    fetch_field: str
    type: str
    multiple: bool
    required: bool
    creatable: bool
    updateable: bool
    readable: bool
    returned_by_default: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "nativeName": self.native_name,
            "fetchField": self.fetch_field,
            "type": self.type,
            "multiValued": self.multiple,
            "required": self.required,
            "creatable": self.creatable,
            "updateable": self.updateable,
            "readable": self.readable,
            "returnedByDefault": self.returned_by_default,
        }


@dataclass(frozen=True)
class ReadPlan:
    """Outcome of projection planning for one search.

    Attributes:
        local: Entries read from the fetched record
        remote: Entries whose values need a remote fetch per object
        incomplete: Entries returned empty and flagged incomplete
    """
    local: Tuple[AttributeDefinition, ...] = ()
    remote: Tuple[AttributeDefinition, ...] = ()
    incomplete: Tuple[AttributeDefinition, ...] = ()


class SchemaDefinition:
    """Immutable attribute registry for one object class."""

    def __init__(self, object_class: str, model_type: Type, definitions: Iterable[AttributeDefinition]):
        self.object_class = object_class
        self.model_type = model_type
        self._definitions: Tuple[AttributeDefinition, ...] = tuple(definitions)
        self._by_name: Dict[str, AttributeDefinition] = {d.name: d for d in self._definitions}

    def __iter__(self):
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def get(self, name: str) -> Optional[AttributeDefinition]:
        return self._by_name.get(name)

    def __getitem__(self, name: str) -> AttributeDefinition:
        return self._by_name[name]

    @property
    def uid(self) -> AttributeDefinition:
        return self._by_name[UID]

    @property
    def name(self) -> AttributeDefinition:
        return self._by_name[NAME]

    def attributes(self) -> List[AttributeDefinition]:
        return list(self._definitions)

    def returned_by_default(self) -> List[AttributeDefinition]:
        return [d for d in self._definitions if d.is_returned_by_default]

    def describe(self) -> List[AttributeInfo]:
        return [
            AttributeInfo(
                name=d.name,
                native_name=d.native_name,
                fetch_field=d.fetch_field,
                type=d.type.value,
                multiple=d.multiple,
                required=d.is_required,
                creatable=d.is_creatable,
                updateable=d.is_updateable,
                readable=d.is_readable,
                returned_by_default=d.is_returned_by_default,
            )
            for d in self._definitions
        ]

    # ─────────────────────────────────────────────────────────────────────────
    # Write path
    # ─────────────────────────────────────────────────────────────────────────
    def apply(self, attributes: Iterable[Attribute], model: Any):
        return applier.apply_create(self, attributes, model)

    def apply_delta(self, deltas: Iterable[AttributeDelta], model: Any):
        return applier.apply_delta(self, deltas, model)

    # ─────────────────────────────────────────────────────────────────────────
    # Read path
    # ─────────────────────────────────────────────────────────────────────────
    def plan_read(self, attributes_to_get: Iterable[str], allow_partial: bool = False) -> ReadPlan:
        """Decide how each requested attribute is produced, without any I/O."""
        local: List[AttributeDefinition] = []
        remote: List[AttributeDefinition] = []
        incomplete: List[AttributeDefinition] = []

        for name in attributes_to_get:
            definition = self._by_name.get(name)
            if definition is None or not definition.is_readable:
                continue
            if definition.is_remote:
                if allow_partial:
                    incomplete.append(definition)
                else:
                    remote.append(definition)
            else:
                local.append(definition)

        if incomplete:
            logger.debug("Association fetch skipped for %s (partial attribute values allowed)",
                         [d.name for d in incomplete])
        return ReadPlan(tuple(local), tuple(remote), tuple(incomplete))

    def to_connector_object(self, model: Any, plan: ReadPlan) -> ConnectorObject:
        """Convert a fetched record, executing the remote fetches the plan asks for."""
        uid_value = self.uid.read_accessor(model)
        name_value = self.name.read_accessor(model)
        obj = ConnectorObject(
            object_class=self.object_class,
            uid=Uid(str(uid_value), name_value),
            name=Name(name_value),
        )

        for definition in plan.local:
            if definition.name in (UID, NAME):
                continue
            value = definition.read_accessor(model)
            if definition.multiple:
                values = [definition.type.to_caller(v) for v in (value or [])]
                obj.attributes[definition.name] = Attribute(definition.name, values)
            else:
                converted = definition.type.to_caller(value)
                if converted is not None:
                    obj.attributes[definition.name] = Attribute(definition.name, [converted])

        for definition in plan.remote:
            values = [definition.type.to_caller(v) for v in definition.fetcher(model)]
            obj.attributes[definition.name] = Attribute(definition.name, values)

        for definition in plan.incomplete:
            obj.attributes[definition.name] = Attribute(definition.name, [], complete=False)

        return obj


class SchemaDefinitionBuilder:
    """Append-only builder for ``SchemaDefinition``."""

    def __init__(self, object_class: str, model_type: Type):
        self.object_class = object_class
        self.model_type = model_type
        self._definitions: List[AttributeDefinition] = []

    def _append(self, definition: AttributeDefinition) -> "SchemaDefinitionBuilder":
        if any(d.name == definition.name for d in self._definitions):
            raise ValueError(f"Attribute '{definition.name}' already registered for {self.object_class}")
        self._definitions.append(definition)
        return self

    def add_uid(
        self,
        native_name: str,
        type: AttributeType,
        read_accessor: ReadAccessor,
        fetch_field: Optional[str] = None,
        flags: Iterable[Flag] = (),
    ) -> "SchemaDefinitionBuilder":
        """Register the stable identifier. Never creatable or updateable."""
        return self._append(AttributeDefinition(
            name=UID,
            native_name=native_name,
            type=type,
            read_accessor=read_accessor,
            fetch_field=fetch_field or native_name,
            flags=frozenset(flags) | {NOT_CREATABLE, NOT_UPDATEABLE},
        ))

    def add_name(
        self,
        native_name: str,
        type: AttributeType,
        create_mapper: Mapper,
        delta_mapper: Optional[Mapper],
        read_accessor: ReadAccessor,
        fetch_field: Optional[str] = None,
        flags: Iterable[Flag] = (),
    ) -> "SchemaDefinitionBuilder":
        """Register the mutable name. Always required.

        ``delta_mapper`` receives the rename target; pass ``None`` together
        with ``NOT_UPDATEABLE`` for types that cannot be renamed.
        """
        return self._append(AttributeDefinition(
            name=NAME,
            native_name=native_name,
            type=type,
            create_mapper=create_mapper,
            delta_mapper=delta_mapper,
            read_accessor=read_accessor,
            fetch_field=fetch_field or native_name,
            flags=frozenset(flags) | {REQUIRED},
        ))

    def add(
        self,
        name: str,
        type: AttributeType,
        create_mapper: Optional[Mapper],
        read_accessor: Optional[ReadAccessor],
        fetch_field: Optional[str] = None,
        flags: Iterable[Flag] = (),
        delta_mapper: Optional[Mapper] = None,
    ) -> "SchemaDefinitionBuilder":
        """Register a single-valued attribute.

        The create mapper doubles as delta mapper unless one is given.
        """
        return self._append(AttributeDefinition(
            name=name,
            native_name=name,
            type=type,
            create_mapper=create_mapper,
            delta_mapper=delta_mapper or create_mapper,
            read_accessor=read_accessor,
            fetch_field=fetch_field or name,
            flags=frozenset(flags),
        ))

    def add_as_multiple(
        self,
        name: str,
        type: AttributeType,
        create_mapper: Mapper,
        add_mapper: Mapper,
        remove_mapper: Mapper,
        fetcher: Optional[Fetcher] = None,
        read_accessor: Optional[ReadAccessor] = None,
        fetch_field: Optional[str] = None,
        flags: Iterable[Flag] = (),
    ) -> "SchemaDefinitionBuilder":
        """Register a multi-valued attribute.

        Associations pass a ``fetcher``; it is only invoked on reads that
        request the attribute.
        """
        return self._append(AttributeDefinition(
            name=name,
            native_name=name,
            type=type,
            multiple=True,
            create_mapper=create_mapper,
            delta_mapper=create_mapper,
            add_mapper=add_mapper,
            remove_mapper=remove_mapper,
            read_accessor=read_accessor,
            fetcher=fetcher,
            fetch_field=fetch_field or name,
            flags=frozenset(flags),
        ))

    def build(self) -> SchemaDefinition:
        names = {d.name for d in self._definitions}
        if UID not in names or NAME not in names:
            raise ValueError(f"Schema for {self.object_class} needs both a uid and a name attribute")
        logger.debug("Built %s schema with %d attributes", self.object_class, len(self._definitions))
        return SchemaDefinition(self.object_class, self.model_type, self._definitions)
