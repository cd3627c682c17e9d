"""kintone group operations."""
from __future__ import annotations
import logging
from typing import Iterable, Optional

from ..fields import assigned, read_field, set_field, set_required_field
from ..framework import GROUP, Attribute, AttributeDelta, Name, OperationOptions, Uid
from ..handler import ObjectHandler, QueryContext, ResultsHandler
from ..schema import (
    NOT_READABLE,
    NOT_RETURNED_BY_DEFAULT,
    NOT_UPDATEABLE,
    REQUIRED,
    AttributeType,
    SchemaDefinition,
    SchemaDefinitionBuilder,
)
from .models import GroupModel

logger = logging.getLogger(__name__)


def _set_rename_target(value, model: GroupModel) -> None:
    model.new_code = value


class GroupHandler(ObjectHandler):
    """Create, update, delete and search kintone groups."""

    object_class = GROUP

    def build_schema(self) -> SchemaDefinition:
        sb = SchemaDefinitionBuilder(GROUP, GroupModel)

        sb.add_uid("groupId", AttributeType.STRING_CASE_IGNORE, read_field("id"), fetch_field="id")
        sb.add_name("code", AttributeType.STRING_CASE_IGNORE,
                    create_mapper=set_required_field("code"),
                    delta_mapper=_set_rename_target,
                    read_accessor=read_field("code"))

        # Static or dynamic; fixed at creation and never returned by the API
        sb.add("type", AttributeType.STRING, set_required_field("type"), None,
               flags=(REQUIRED, NOT_UPDATEABLE, NOT_READABLE, NOT_RETURNED_BY_DEFAULT))
        sb.add("name", AttributeType.STRING, set_required_field("name"), read_field("name"), flags=(REQUIRED,))
        sb.add("description", AttributeType.STRING, set_field("description"), read_field("description"))

        logger.debug("The constructed group schema")
        return sb.build()

    def create(self, attributes: Iterable[Attribute]) -> Uid:
        mapped = self.schema.apply(attributes, GroupModel())
        return self.client.create_group(mapped)

    def update_delta(self, uid: Uid, deltas: Iterable[AttributeDelta],
                     options: Optional[OperationOptions] = None) -> None:
        dest = self.schema.apply_delta(deltas, GroupModel())

        resolved = self.client.resolve_group_code(uid)

        if dest.has_attributes_change():
            dest.code = assigned(resolved.name_hint)
            self.client.update_group(resolved, dest)

        if dest.has_code_change():
            self.client.rename_group(resolved, dest.new_code)

    def delete(self, uid: Uid, options: Optional[OperationOptions] = None) -> None:
        self.client.delete_group(uid)

    def get_by_uid(self, uid: Uid, handler: ResultsHandler, ctx: QueryContext) -> int:
        return self._handle_one(self.client.get_group(uid), handler, ctx)

    def get_by_name(self, name: Name, handler: ResultsHandler, ctx: QueryContext) -> int:
        return self._handle_one(self.client.get_group_by_name(name), handler, ctx)

    def get_all(self, handler: ResultsHandler, ctx: QueryContext) -> int:
        return self.client.get_groups(
            lambda group: handler(self.to_connector_object(group, ctx)),
            ctx.page_size, ctx.page_offset,
        )
