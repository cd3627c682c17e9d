"""kintone resource models.

Persisted fields hold a three-state ``FieldValue``. Side-channel fields
(``new_code``, ``*_to_add`` / ``*_to_remove`` / ``*_to_replace``) record an
update delta and are never serialized.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import ClassVar, Dict, FrozenSet, List, Optional

from ..associations import AssociationDelta
from ..fields import UNCHANGED, FieldValue, ResourceModel, assigned


@dataclass
class _Renameable(ResourceModel):
    new_code: Optional[str] = None

    def has_code_change(self) -> bool:
        return self.new_code is not None


@dataclass
class UserModel(_Renameable):
    id: FieldValue = UNCHANGED
    code: FieldValue = UNCHANGED
    ctime: FieldValue = UNCHANGED
    mtime: FieldValue = UNCHANGED
    valid: FieldValue = UNCHANGED
    password: FieldValue = UNCHANGED
    name: FieldValue = UNCHANGED
    sur_name: FieldValue = UNCHANGED
    given_name: FieldValue = UNCHANGED
    sur_name_reading: FieldValue = UNCHANGED
    given_name_reading: FieldValue = UNCHANGED
    local_name: FieldValue = UNCHANGED
    local_name_locale: FieldValue = UNCHANGED
    timezone: FieldValue = UNCHANGED
    locale: FieldValue = UNCHANGED
    description: FieldValue = UNCHANGED
    phone: FieldValue = UNCHANGED
    mobile_phone: FieldValue = UNCHANGED
    extension_number: FieldValue = UNCHANGED
    email: FieldValue = UNCHANGED
    callto: FieldValue = UNCHANGED
    url: FieldValue = UNCHANGED
    employee_number: FieldValue = UNCHANGED
    birth_date: FieldValue = UNCHANGED
    join_date: FieldValue = UNCHANGED
    primary_organization: FieldValue = UNCHANGED
    sort_order: FieldValue = UNCHANGED
    custom_item_values: FieldValue = UNCHANGED

    services_to_add: Optional[List[str]] = None
    services_to_remove: Optional[List[str]] = None
    services_to_replace: Optional[List[str]] = None
    organizations_to_add: Optional[List[str]] = None
    organizations_to_remove: Optional[List[str]] = None
    organizations_to_replace: Optional[List[str]] = None
    groups_to_add: Optional[List[str]] = None
    groups_to_remove: Optional[List[str]] = None
    groups_to_replace: Optional[List[str]] = None

    JSON_KEYS: ClassVar[Dict[str, str]] = {
        "id": "id",
        "code": "code",
        "ctime": "ctime",
        "mtime": "mtime",
        "valid": "valid",
        "password": "password",
        "name": "name",
        "sur_name": "surName",
        "given_name": "givenName",
        "sur_name_reading": "surNameReading",
        "given_name_reading": "givenNameReading",
        "local_name": "localName",
        "local_name_locale": "localNameLocale",
        "timezone": "timezone",
        "locale": "locale",
        "description": "description",
        "phone": "phone",
        "mobile_phone": "mobilePhone",
        "extension_number": "extensionNumber",
        "email": "email",
        "callto": "callto",
        "url": "url",
        "employee_number": "employeeNumber",
        "birth_date": "birthDate",
        "join_date": "joinDate",
        "primary_organization": "primaryOrganization",
        "sort_order": "sortOrder",
        "custom_item_values": "customItemValues",
    }
    KEY_FIELDS: ClassVar[FrozenSet[str]] = frozenset({"id", "code", "ctime", "mtime"})
    LIST_FIELDS: ClassVar[FrozenSet[str]] = frozenset({"custom_item_values"})

    ASSOCIATIONS: ClassVar[tuple] = ("services", "organizations", "groups")

    # Custom items
    def set_custom_item(self, code: str, value: Optional[str]) -> None:
        """Set one custom item; ``None`` or ``""`` clears it."""
        items = [i for i in self.custom_item_values.get([]) if i.get("code") != code]
        items.append({"code": code, "value": value or ""})
        self.custom_item_values = assigned(items)

    def get_custom_item(self, code: str) -> Optional[str]:
        for item in self.custom_item_values.get([]):
            if item.get("code") == code:
                return item.get("value")
        return None

    # Associations
    def association_delta(self, kind: str) -> AssociationDelta:
        return AssociationDelta(
            add=getattr(self, f"{kind}_to_add"),
            remove=getattr(self, f"{kind}_to_remove"),
            replace=getattr(self, f"{kind}_to_replace"),
        )


@dataclass
class OrganizationModel(_Renameable):
    id: FieldValue = UNCHANGED
    code: FieldValue = UNCHANGED
    name: FieldValue = UNCHANGED
    local_name: FieldValue = UNCHANGED
    local_name_locale: FieldValue = UNCHANGED
    parent_code: FieldValue = UNCHANGED
    description: FieldValue = UNCHANGED

    JSON_KEYS: ClassVar[Dict[str, str]] = {
        "id": "id",
        "code": "code",
        "name": "name",
        "local_name": "localName",
        "local_name_locale": "localNameLocale",
        "parent_code": "parentCode",
        "description": "description",
    }


@dataclass
class GroupModel(_Renameable):
    id: FieldValue = UNCHANGED
    code: FieldValue = UNCHANGED
    type: FieldValue = UNCHANGED
    name: FieldValue = UNCHANGED
    description: FieldValue = UNCHANGED

    JSON_KEYS: ClassVar[Dict[str, str]] = {
        "id": "id",
        "code": "code",
        "type": "type",
        "name": "name",
        "description": "description",
    }