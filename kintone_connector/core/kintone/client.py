"""kintone REST API client.

Every object type follows the same envelope convention:

* ``GET  /v1/<plural>.json?ids=<id>`` or ``?codes=<code>`` - exactly one record
* ``GET  /v1/<plural>.json?offset=<n>&size=<n>``           - one page
* ``POST /v1/<plural>.json``        ``{"<plural>": [record]}``
* ``PUT  /v1/<plural>.json``        ``{"<plural>": [record]}`` keyed by ``code``
* ``PUT  /v1/<plural>/codes.json``  ``{"codes": [{"currentCode", "newCode"}]}``
* ``DELETE /v1/<plural>.json``      ``{"codes": [code]}``

The generic helpers implement these once; the public per-type methods only
name the endpoint and the model.
"""
from __future__ import annotations
import base64
import logging
from typing import Any, Callable, Dict, List, Optional, Type
from urllib.parse import quote

import requests

from ..fields import ResourceModel
from ..framework import GROUP, ORGANIZATION, USER, Name, Uid
from ..pagination import QueryHandler
from ..rest.client import RESTClient, response_body
from ..rest.errors import ErrorClassifier
from ..rest.exceptions import AuthenticationError, ConnectorIOError, ProtocolViolationError
from .errors import KintoneErrorClassifier
from .models import GroupModel, OrganizationModel, UserModel

logger = logging.getLogger(__name__)

AUTH_HEADER = "X-Cybozu-Authorization"


def build_session(config) -> requests.Session:
    """Create the pooled session carrying kintone auth and proxy settings.

    Args:
        config: ``ConnectorConfig``

    Returns:
        Session with ``X-Cybozu-Authorization`` and ``Accept`` headers set
    """
    session = requests.Session()
    credential = config.password.access(lambda secret: f"{config.login_name}:{secret}")
    session.headers.update({
        "Accept": "application/json",
        AUTH_HEADER: base64.b64encode(credential.encode("utf-8")).decode("ascii"),
    })

    if config.http_proxy_host:
        netloc = f"{config.http_proxy_host}:{config.http_proxy_port}"
        if config.http_proxy_user and config.http_proxy_password is not None:
            user = quote(config.http_proxy_user, safe="")
            secret = config.http_proxy_password.access(lambda s: quote(s, safe=""))
            netloc = f"{user}:{secret}@{netloc}"
        proxy = f"http://{netloc}"
        session.proxies.update({"http": proxy, "https": proxy})
        # Environment proxies must not override the configured one
        session.trust_env = False

    return session


class KintoneClient(RESTClient):
    """kintone user / organization / group API.

    Usage:
        client = KintoneClient(config)
        client.test()
        uid = client.create_user(model)
    """

    def __init__(self, config, session: Optional[requests.Session] = None,
                 error_handler: Optional[ErrorClassifier] = None):
        """Initialize the client.

        Args:
            config: ``ConnectorConfig``
            session: Pre-built session (defaults to ``build_session(config)``)
            error_handler: Classifier (defaults to the kintone classifier
                extended with ``config.error_phrases_file``)
        """
        super().__init__(
            config.instance_name,
            session=session if session is not None else build_session(config),
            error_handler=error_handler or KintoneErrorClassifier.with_extra_phrases(config.error_phrases_file),
            start_offset=0,
            timeout=config.timeout,
        )
        self.config = config
        base = config.base_url

        self.test_endpoint = f"{base}/v1/users.json"
        self.user_endpoint = f"{base}/v1/users.json"
        self.user_rename_endpoint = f"{base}/v1/users/codes.json"
        self.user_services_endpoint = f"{base}/v1/users/services.json"
        self.user_organizations_endpoint = f"{base}/v1/user/organizations.json"
        self.user_organizations_update_endpoint = f"{base}/v1/userOrganizations.json"
        self.user_groups_endpoint = f"{base}/v1/user/groups.json"
        self.organization_endpoint = f"{base}/v1/organizations.json"
        self.organization_rename_endpoint = f"{base}/v1/organizations/codes.json"
        self.group_endpoint = f"{base}/v1/groups.json"
        self.group_rename_endpoint = f"{base}/v1/groups/codes.json"

    def test(self) -> None:
        """Check that the API is reachable with our credentials.

        Raises:
            AuthenticationError: Non-200 response or connection failure
        """
        try:
            resp = self.session.get(self.test_endpoint, params={"size": "1"}, timeout=self.timeout)
        except requests.RequestException as e:
            raise AuthenticationError(f"Cannot connect to {self.instance_name} REST API: {e}") from e

        if resp.status_code != 200:
            body = response_body(resp)
            raise AuthenticationError(
                f"Failed {self.instance_name} test response. statusCode: {resp.status_code}, body: {body}",
                status_code=resp.status_code,
                body=body,
            )
        logger.info("%s connector's connection test is OK", self.instance_name)

    # ─────────────────────────────────────────────────────────────────────────
    # Generic helpers
    # ─────────────────────────────────────────────────────────────────────────
    def _read_ok(self, resp: requests.Response, object_class: str, what: str) -> Dict[str, Any]:
        if not self.error_handler.is_ok(resp):
            raise ConnectorIOError(
                f"Failed to get {self.instance_name} {object_class} {what}, "
                f"statusCode: {resp.status_code}, response: {response_body(resp)}",
                object_class=object_class, identifier=what,
                status_code=resp.status_code, body=response_body(resp),
            )
        return self.read_json(resp)

    def _create(self, object_class: str, endpoint: str, plural: str,
                model_type: Type[ResourceModel], model: ResourceModel) -> Uid:
        code = model.value_of("code")
        self.call_create(object_class, endpoint, {plural: [model.to_payload()]}, code)

        # The generated id is only known after fetching the created record
        created = self._get_one(object_class, endpoint, plural, model_type, "codes", code)
        return Uid(str(created.value_of("id")), code)

    def _get_one(self, object_class: str, endpoint: str, plural: str,
                 model_type: Type[ResourceModel], key: str, value: str):
        resp = self.get(endpoint, {key: value})
        data = self._read_ok(resp, object_class, value)
        records = data.get(plural)
        if not isinstance(records, list) or len(records) != 1:
            count = len(records) if isinstance(records, list) else 0
            raise ProtocolViolationError(
                f"Cannot find {self.instance_name} {object_class} {value}: expected 1 record, got {count}",
                object_class=object_class, identifier=value,
                status_code=resp.status_code, body=response_body(resp),
            )
        return model_type.from_payload(records[0])

    def _update(self, object_class: str, endpoint: str, plural: str, uid: Uid, model: ResourceModel) -> None:
        self.call_update(object_class, endpoint, uid, {plural: [model.to_payload()]})

    def _rename(self, object_class: str, endpoint: str, uid: Uid, new_code: str) -> None:
        body = {"codes": [{"currentCode": uid.name_hint, "newCode": new_code}]}
        self.call_update(object_class, endpoint, uid, body)

    def _delete(self, object_class: str, endpoint: str, uid: Uid, resolve: Callable[[Uid], Uid]) -> None:
        resolved = resolve(uid)
        self.call_delete(object_class, endpoint, resolved, {"codes": [resolved.name_hint]})

    def _resolve(self, uid: Uid, getter: Callable[[Uid], ResourceModel]) -> Uid:
        if uid.is_resolved:
            return uid
        return uid.with_name(getter(uid).value_of("code"))

    def _page_fetcher(self, object_class: str, endpoint: str, plural: str,
                      model_type: Type[ResourceModel]):
        def fetch_page(start: int, size: int) -> List[ResourceModel]:
            resp = self.get(endpoint, {"offset": str(start), "size": str(size)})
            data = self._read_ok(resp, object_class, f"page offset={start}")
            return [model_type.from_payload(r) for r in data.get(plural) or []]
        return fetch_page

    def _list(self, object_class: str, endpoint: str, plural: str, model_type: Type[ResourceModel],
              handler: QueryHandler, page_size: int, page_offset: int) -> int:
        return self.get_all(handler, page_size, page_offset,
                            self._page_fetcher(object_class, endpoint, plural, model_type))

    # ─────────────────────────────────────────────────────────────────────────
    # User
    # ─────────────────────────────────────────────────────────────────────────
    def create_user(self, model: UserModel) -> Uid:
        return self._create(USER, self.user_endpoint, "users", UserModel, model)

    def get_user(self, uid: Uid) -> UserModel:
        return self._get_one(USER, self.user_endpoint, "users", UserModel, "ids", uid.value)

    def get_user_by_name(self, name: Name) -> UserModel:
        return self._get_one(USER, self.user_endpoint, "users", UserModel, "codes", name.value)

    def update_user(self, uid: Uid, model: UserModel) -> None:
        self._update(USER, self.user_endpoint, "users", uid, model)

    def rename_user(self, uid: Uid, new_code: str) -> None:
        self._rename(USER, self.user_rename_endpoint, uid, new_code)

    def delete_user(self, uid: Uid) -> None:
        self._delete(USER, self.user_endpoint, uid, self.resolve_user_code)

    def resolve_user_code(self, uid: Uid) -> Uid:
        return self._resolve(uid, self.get_user)

    def get_users(self, handler: QueryHandler, page_size: int, page_offset: int) -> int:
        return self._list(USER, self.user_endpoint, "users", UserModel, handler, page_size, page_offset)

    # User-Service
    def get_services_for_user(self, code: str) -> List[str]:
        resp = self.get(self.user_services_endpoint, {"codes": code})
        data = self._read_ok(resp, USER, f"{code} services")
        for user in data.get("users") or []:
            if user.get("code") == code:
                return list(user.get("services") or [])
        return []

    def update_services_for_user(self, uid: Uid, services: List[str]) -> None:
        body = {"users": [{"code": uid.name_hint, "services": list(services)}]}
        self.call_update(USER, self.user_services_endpoint, uid, body)

    # User-Organization
    def get_organizations_for_user(self, code: str) -> List[str]:
        """Return ``org`` or ``org<delimiter>title`` codes of a user."""
        resp = self.get(self.user_organizations_endpoint, {"code": code})
        data = self._read_ok(resp, USER, f"{code} organizations")
        delimiter = self.config.organization_title_delimiter

        result = []
        for entry in data.get("organizationTitles") or []:
            org_code = (entry.get("organization") or {}).get("code")
            title = entry.get("title")
            if title:
                result.append(f"{org_code}{delimiter}{title.get('code')}")
            else:
                result.append(org_code)
        return result

    def update_organizations_for_user(self, uid: Uid, organizations: List[str]) -> None:
        delimiter = self.config.organization_title_delimiter

        entries = []
        for value in organizations:
            if delimiter in value:
                org_code, title_code = value.split(delimiter, 1)
            else:
                org_code, title_code = value, None
            entries.append({"orgCode": org_code, "titleCode": title_code})

        body = {"userOrganizations": [{"code": uid.name_hint, "organizations": entries}]}
        self.call_update(USER, self.user_organizations_update_endpoint, uid, body)

    # User-Group
    def get_groups_for_user(self, code: str) -> List[str]:
        resp = self.get(self.user_groups_endpoint, {"code": code})
        data = self._read_ok(resp, USER, f"{code} groups")
        return [g.get("code") for g in data.get("groups") or []]

    def update_groups_for_user(self, uid: Uid, groups: List[str]) -> None:
        body = {"code": uid.name_hint, "groups": list(groups)}
        self.call_update(USER, self.user_groups_endpoint, uid, body)

    # ─────────────────────────────────────────────────────────────────────────
    # Organization
    # ─────────────────────────────────────────────────────────────────────────
    def create_organization(self, model: OrganizationModel) -> Uid:
        return self._create(ORGANIZATION, self.organization_endpoint, "organizations", OrganizationModel, model)

    def get_organization(self, uid: Uid) -> OrganizationModel:
        return self._get_one(ORGANIZATION, self.organization_endpoint, "organizations",
                             OrganizationModel, "ids", uid.value)

    def get_organization_by_name(self, name: Name) -> OrganizationModel:
        return self._get_one(ORGANIZATION, self.organization_endpoint, "organizations",
                             OrganizationModel, "codes", name.value)

    def update_organization(self, uid: Uid, model: OrganizationModel) -> None:
        self._update(ORGANIZATION, self.organization_endpoint, "organizations", uid, model)

    def rename_organization(self, uid: Uid, new_code: str) -> None:
        self._rename(ORGANIZATION, self.organization_rename_endpoint, uid, new_code)

    def delete_organization(self, uid: Uid) -> None:
        self._delete(ORGANIZATION, self.organization_endpoint, uid, self.resolve_organization_code)

    def resolve_organization_code(self, uid: Uid) -> Uid:
        return self._resolve(uid, self.get_organization)

    def get_organizations(self, handler: QueryHandler, page_size: int, page_offset: int) -> int:
        return self._list(ORGANIZATION, self.organization_endpoint, "organizations", OrganizationModel,
                          handler, page_size, page_offset)

    # ─────────────────────────────────────────────────────────────────────────
    # Group
    # ─────────────────────────────────────────────────────────────────────────
    def create_group(self, model: GroupModel) -> Uid:
        return self._create(GROUP, self.group_endpoint, "groups", GroupModel, model)

    def get_group(self, uid: Uid) -> GroupModel:
        return self._get_one(GROUP, self.group_endpoint, "groups", GroupModel, "ids", uid.value)

    def get_group_by_name(self, name: Name) -> GroupModel:
        return self._get_one(GROUP, self.group_endpoint, "groups", GroupModel, "codes", name.value)

    def update_group(self, uid: Uid, model: GroupModel) -> None:
        self._update(GROUP, self.group_endpoint, "groups", uid, model)

    def rename_group(self, uid: Uid, new_code: str) -> None:
        self._rename(GROUP, self.group_rename_endpoint, uid, new_code)

    def delete_group(self, uid: Uid) -> None:
        self._delete(GROUP, self.group_endpoint, uid, self.resolve_group_code)

    def resolve_group_code(self, uid: Uid) -> Uid:
        return self._resolve(uid, self.get_group)

    def get_groups(self, handler: QueryHandler, page_size: int, page_offset: int) -> int:
        return self._list(GROUP, self.group_endpoint, "groups", GroupModel, handler, page_size, page_offset)
