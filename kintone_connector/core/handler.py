"""Base class for the per-object-type operation handlers."""
from __future__ import annotations
import abc
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Tuple

from .framework import Attribute, AttributeDelta, ConnectorObject, Name, OperationOptions, Uid
from .schema import ReadPlan, SchemaDefinition

# handler(obj) -> False to stop the search
ResultsHandler = Callable[[ConnectorObject], bool]


@dataclass(frozen=True)
class QueryContext:
    """Everything a handler needs to run one search.

    Attributes:
        options: Caller options, as received
        attributes_to_get: Names of the attributes to return
        plan: Projection plan built from ``attributes_to_get``
        page_size: Resolved page size
        page_offset: 1-based caller page, 0 for a full scan
    """
    options: Optional[OperationOptions]
    attributes_to_get: Tuple[str, ...]
    plan: ReadPlan
    page_size: int
    page_offset: int


class ObjectHandler(abc.ABC):
    """Operations for one object class.

    Subclasses build their schema once in ``__init__`` and implement the
    create / update / delete / read entry points against the kintone client.
    """

    object_class: str = ""

    def __init__(self, config: Any, client: Any):
        self.config = config
        self.client = client
        self.schema: SchemaDefinition = self.build_schema()

    @abc.abstractmethod
    def build_schema(self) -> SchemaDefinition:
        ...

    @abc.abstractmethod
    def create(self, attributes: Iterable[Attribute]) -> Uid:
        ...

    @abc.abstractmethod
    def update_delta(self, uid: Uid, deltas: Iterable[AttributeDelta],
                     options: Optional[OperationOptions] = None) -> None:
        ...

    @abc.abstractmethod
    def delete(self, uid: Uid, options: Optional[OperationOptions] = None) -> None:
        ...

    @abc.abstractmethod
    def get_by_uid(self, uid: Uid, handler: ResultsHandler, ctx: QueryContext) -> int:
        ...

    @abc.abstractmethod
    def get_by_name(self, name: Name, handler: ResultsHandler, ctx: QueryContext) -> int:
        ...

    @abc.abstractmethod
    def get_all(self, handler: ResultsHandler, ctx: QueryContext) -> int:
        ...

    def to_connector_object(self, model: Any, ctx: QueryContext) -> ConnectorObject:
        return self.schema.to_connector_object(model, ctx.plan)

    def _handle_one(self, model: Any, handler: ResultsHandler, ctx: QueryContext) -> int:
        if model is None:
            return 0
        handler(self.to_connector_object(model, ctx))
        return 1
