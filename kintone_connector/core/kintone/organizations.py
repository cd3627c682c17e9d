"""kintone organization operations."""
from __future__ import annotations
import logging
from typing import Iterable, Optional

from ..fields import assigned, read_field, set_field, set_required_field
from ..framework import ORGANIZATION, Attribute, AttributeDelta, Name, OperationOptions, Uid
from ..handler import ObjectHandler, QueryContext, ResultsHandler
from ..schema import REQUIRED, AttributeType, SchemaDefinition, SchemaDefinitionBuilder
from .models import OrganizationModel

logger = logging.getLogger(__name__)


def _set_rename_target(value, model: OrganizationModel) -> None:
    model.new_code = value


class OrganizationHandler(ObjectHandler):
    """Create, update, delete and search kintone organizations."""

    object_class = ORGANIZATION

    def build_schema(self) -> SchemaDefinition:
        sb = SchemaDefinitionBuilder(ORGANIZATION, OrganizationModel)

        sb.add_uid("organizationId", AttributeType.STRING_CASE_IGNORE, read_field("id"), fetch_field="id")
        sb.add_name("code", AttributeType.STRING_CASE_IGNORE,
                    create_mapper=set_required_field("code"),
                    delta_mapper=_set_rename_target,
                    read_accessor=read_field("code"))

        sb.add("name", AttributeType.STRING, set_required_field("name"), read_field("name"), flags=(REQUIRED,))
        sb.add("localName", AttributeType.STRING, set_field("local_name"), read_field("local_name"))
        sb.add("localNameLocale", AttributeType.STRING, set_field("local_name_locale"),
               read_field("local_name_locale"))
        sb.add("parentCode", AttributeType.STRING, set_field("parent_code"), read_field("parent_code"))
        sb.add("description", AttributeType.STRING, set_field("description"), read_field("description"))

        logger.debug("The constructed organization schema")
        return sb.build()

    def create(self, attributes: Iterable[Attribute]) -> Uid:
        mapped = self.schema.apply(attributes, OrganizationModel())
        return self.client.create_organization(mapped)

    def update_delta(self, uid: Uid, deltas: Iterable[AttributeDelta],
                     options: Optional[OperationOptions] = None) -> None:
        dest = self.schema.apply_delta(deltas, OrganizationModel())

        resolved = self.client.resolve_organization_code(uid)

        if dest.has_attributes_change():
            dest.code = assigned(resolved.name_hint)
            self.client.update_organization(resolved, dest)

        if dest.has_code_change():
            self.client.rename_organization(resolved, dest.new_code)

    def delete(self, uid: Uid, options: Optional[OperationOptions] = None) -> None:
        self.client.delete_organization(uid)

    def get_by_uid(self, uid: Uid, handler: ResultsHandler, ctx: QueryContext) -> int:
        return self._handle_one(self.client.get_organization(uid), handler, ctx)

    def get_by_name(self, name: Name, handler: ResultsHandler, ctx: QueryContext) -> int:
        return self._handle_one(self.client.get_organization_by_name(name), handler, ctx)

    def get_all(self, handler: ResultsHandler, ctx: QueryContext) -> int:
        return self.client.get_organizations(
            lambda org: handler(self.to_connector_object(org, ctx)),
            ctx.page_size, ctx.page_offset,
        )
