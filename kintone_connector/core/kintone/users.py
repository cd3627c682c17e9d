"""kintone user operations."""
from __future__ import annotations
import logging
from typing import Iterable, List, Optional, Set

from ..associations import apply_association_delta
from ..fields import assigned, read_field, set_field, set_required_field
from ..framework import ENABLE, PASSWORD, USER, Attribute, AttributeDelta, Name, OperationOptions, Uid
from ..handler import ObjectHandler, QueryContext, ResultsHandler
from ..schema import (
    NOT_CREATABLE,
    NOT_READABLE,
    NOT_RETURNED_BY_DEFAULT,
    NOT_UPDATEABLE,
    REQUIRED,
    AttributeType,
    SchemaDefinition,
    SchemaDefinitionBuilder,
)
from .models import UserModel

logger = logging.getLogger(__name__)

CUSTOM_ITEM_PREFIX = "customItem."
EVERYONE_GROUP = "everyone"

# Plain string attributes: caller name -> model field
_STRING_ATTRIBUTES = (
    ("surName", "sur_name"),
    ("givenName", "given_name"),
    ("surNameReading", "sur_name_reading"),
    ("givenNameReading", "given_name_reading"),
    ("localName", "local_name"),
    ("localNameLocale", "local_name_locale"),
    ("timezone", "timezone"),
    ("locale", "locale"),
    ("description", "description"),
    ("phone", "phone"),
    ("mobilePhone", "mobile_phone"),
    ("extensionNumber", "extension_number"),
    ("email", "email"),
    ("callto", "callto"),
    ("url", "url"),
    ("employeeNumber", "employee_number"),
)


def _set_password(value, model: UserModel) -> None:
    model.password = value.access(assigned)


def _set_rename_target(value, model) -> None:
    model.new_code = value


def _association_mappers(kind: str):
    def replace(values: List[str], model: UserModel) -> None:
        setattr(model, f"{kind}_to_replace", values)

    def add(values: List[str], model: UserModel) -> None:
        setattr(model, f"{kind}_to_add", values)

    def remove(values: List[str], model: UserModel) -> None:
        setattr(model, f"{kind}_to_remove", values)

    return replace, add, remove


def _custom_item_mapper(code: str):
    def mapper(value, model: UserModel) -> None:
        model.set_custom_item(code, value)
    return mapper


def _custom_item_reader(code: str):
    def accessor(model: UserModel):
        return model.get_custom_item(code)
    return accessor


def exclude(codes: Iterable[str], ignored: Set[str]) -> List[str]:
    return [c for c in codes if c not in ignored]


class UserHandler(ObjectHandler):
    """Create, update, delete and search kintone users.

    Memberships (services, organizations, groups) are only written through
    their own endpoints, after the user record itself and before a rename.
    """

    object_class = USER

    def build_schema(self) -> SchemaDefinition:
        sb = SchemaDefinitionBuilder(USER, UserModel)

        # __UID__: generated, immutable
        sb.add_uid("userId", AttributeType.STRING_CASE_IGNORE, read_field("id"), fetch_field="id")

        # __NAME__: unique, case-sensitive, renameable
        sb.add_name("code", AttributeType.STRING,
                    create_mapper=set_required_field("code"),
                    delta_mapper=_set_rename_target,
                    read_accessor=read_field("code"))

        sb.add(ENABLE, AttributeType.BOOLEAN, set_field("valid"), read_field("valid"), fetch_field="valid")
        sb.add(PASSWORD, AttributeType.GUARDED_STRING, _set_password, None,
               flags=(REQUIRED, NOT_READABLE, NOT_RETURNED_BY_DEFAULT))

        # Display name is required
        sb.add("name", AttributeType.STRING, set_required_field("name"), read_field("name"), flags=(REQUIRED,))
        for attr_name, field_name in _STRING_ATTRIBUTES:
            sb.add(attr_name, AttributeType.STRING, set_field(field_name), read_field(field_name))

        sb.add("birthDate", AttributeType.DATE_STRING, set_field("birth_date"), read_field("birth_date"))
        sb.add("joinDate", AttributeType.DATE_STRING, set_field("join_date"), read_field("join_date"))
        # An empty string removes the sort order
        sb.add("sortOrder", AttributeType.INTEGER, set_field("sort_order"), read_field("sort_order"))

        for code in self.config.user_attributes_schema:
            sb.add(f"{CUSTOM_ITEM_PREFIX}{code}", AttributeType.STRING,
                   _custom_item_mapper(code), _custom_item_reader(code),
                   fetch_field="customItemValues")

        # Associations
        sb.add_as_multiple("services", AttributeType.STRING, *_association_mappers("services"),
                           fetcher=self._read_services, flags=(NOT_RETURNED_BY_DEFAULT,))
        sb.add_as_multiple("organizations", AttributeType.STRING, *_association_mappers("organizations"),
                           fetcher=self._read_organizations, flags=(NOT_RETURNED_BY_DEFAULT,))
        sb.add_as_multiple("groups", AttributeType.STRING, *_association_mappers("groups"),
                           fetcher=self._read_groups, flags=(NOT_RETURNED_BY_DEFAULT,))

        # Metadata (read-only)
        sb.add("ctime", AttributeType.DATETIME, None, read_field("ctime"),
               flags=(NOT_CREATABLE, NOT_UPDATEABLE))
        sb.add("mtime", AttributeType.DATETIME, None, read_field("mtime"),
               flags=(NOT_CREATABLE, NOT_UPDATEABLE))

        logger.debug("The constructed user schema")
        return sb.build()

    # ─────────────────────────────────────────────────────────────────────────
    # Associations
    # ─────────────────────────────────────────────────────────────────────────
    def _hidden_codes(self, kind: str) -> Set[str]:
        """Codes of ``kind`` that reads never return."""
        if kind == "services":
            return self.config.ignore_service_set
        if kind == "organizations":
            return self.config.ignore_organization_set
        return self.config.ignore_group_set | {EVERYONE_GROUP}

    def _read_services(self, model: UserModel) -> List[str]:
        codes = self.client.get_services_for_user(model.value_of("code"))
        return exclude(codes, self._hidden_codes("services"))

    def _read_organizations(self, model: UserModel) -> List[str]:
        codes = self.client.get_organizations_for_user(model.value_of("code"))
        return exclude(codes, self._hidden_codes("organizations"))

    def _read_groups(self, model: UserModel) -> List[str]:
        codes = self.client.get_groups_for_user(model.value_of("code"))
        return exclude(codes, self._hidden_codes("groups"))

    def _association_io(self, uid: Uid):
        """Unfiltered read / write pairs used on the write path."""
        code = uid.name_hint
        return {
            "services": (lambda: self.client.get_services_for_user(code),
                         lambda values: self.client.update_services_for_user(uid, values)),
            "organizations": (lambda: self.client.get_organizations_for_user(code),
                              lambda values: self.client.update_organizations_for_user(uid, values)),
            "groups": (lambda: self.client.get_groups_for_user(code),
                       lambda values: self.client.update_groups_for_user(uid, values)),
        }

    def _write_associations(self, uid: Uid, model: UserModel, keep_hidden: bool) -> None:
        io = self._association_io(uid)
        for kind in UserModel.ASSOCIATIONS:
            fetch_current, write = io[kind]
            hidden = self._hidden_codes(kind) if keep_hidden else None
            apply_association_delta(model.association_delta(kind), fetch_current, write, hidden)

    # ─────────────────────────────────────────────────────────────────────────
    # Operations
    # ─────────────────────────────────────────────────────────────────────────
    def create(self, attributes: Iterable[Attribute]) -> Uid:
        mapped = self.schema.apply(attributes, UserModel())

        new_uid = self.client.create_user(mapped)
        self._write_associations(new_uid, mapped, keep_hidden=False)
        return new_uid

    def update_delta(self, uid: Uid, deltas: Iterable[AttributeDelta],
                     options: Optional[OperationOptions] = None) -> None:
        dest = self.schema.apply_delta(deltas, UserModel())

        resolved = self.client.resolve_user_code(uid)

        if dest.has_attributes_change():
            # The record is addressed by its current code
            dest.code = assigned(resolved.name_hint)
            self.client.update_user(resolved, dest)

        self._write_associations(resolved, dest, keep_hidden=True)

        # Rename last: it invalidates the code used by the calls above
        if dest.has_code_change():
            self.client.rename_user(resolved, dest.new_code)

    def delete(self, uid: Uid, options: Optional[OperationOptions] = None) -> None:
        self.client.delete_user(uid)

    def get_by_uid(self, uid: Uid, handler: ResultsHandler, ctx: QueryContext) -> int:
        return self._handle_one(self.client.get_user(uid), handler, ctx)

    def get_by_name(self, name: Name, handler: ResultsHandler, ctx: QueryContext) -> int:
        return self._handle_one(self.client.get_user_by_name(name), handler, ctx)

    def get_all(self, handler: ResultsHandler, ctx: QueryContext) -> int:
        return self.client.get_users(
            lambda user: handler(self.to_connector_object(user, ctx)),
            ctx.page_size, ctx.page_offset,
        )
