"""kintone connector entry points.

``KintoneConnector`` is what an identity-management caller drives: it owns the
HTTP session, builds the per-object-type handlers and runs create / update /
delete / search through them. Every failure leaves through ``_boundary``,
which logs it once and guarantees the caller only ever sees a
``ConnectorError``.
"""
from __future__ import annotations
import contextlib
import logging
from typing import Dict, Iterable, Iterator, Optional

from .filters import EqualsFilter, translate
from .framework import (
    GROUP,
    ORGANIZATION,
    USER,
    Attribute,
    AttributeDelta,
    OperationOptions,
    SearchResult,
    Uid,
)
from .handler import ObjectHandler, QueryContext, ResultsHandler
from .kintone.client import KintoneClient
from .kintone.groups import GroupHandler
from .kintone.organizations import OrganizationHandler
from .kintone.users import UserHandler
from .rest.exceptions import (
    AlreadyExistsError,
    ConnectorError,
    ConnectorIOError,
    InvalidAttributeValueError,
    UnknownUidError,
)
from .schema import SchemaDefinition
from . import utils

logger = logging.getLogger(__name__)

HANDLER_TYPES = {
    USER: UserHandler,
    ORGANIZATION: OrganizationHandler,
    GROUP: GroupHandler,
}


class KintoneConnector:
    """Identity-provisioning connector for kintone users, organizations and groups.

    Usage:
        connector = KintoneConnector(load_settings())
        uid = connector.create("group", [Attribute.of("__NAME__", "sales"),
                                         Attribute.of("name", "Sales")])
        connector.update_delta("group", uid, [AttributeDelta.replace("description", "EMEA")])
    """

    def __init__(self, config, client: Optional[KintoneClient] = None):
        """Validate the configuration and check the API is reachable.

        Args:
            config: ``ConnectorConfig``
            client: Pre-built client; a new one is created from ``config`` if omitted

        Raises:
            ConfigurationError: Invalid configuration
            AuthenticationError: Connection test failed
        """
        self.config = config
        self.instance_name = config.instance_name
        self.client: Optional[KintoneClient] = client
        self._handlers: Optional[Dict[str, ObjectHandler]] = None

        with self._boundary("initialize"):
            config.validate()
            self._authenticate_resource()

        logger.debug("Connector %s successfully initialized", self.instance_name)

    def _authenticate_resource(self) -> None:
        if self.client is None:
            self.client = KintoneClient(self.config)
        # Verify we can access the kintone API
        self.client.test()

    # ─────────────────────────────────────────────────────────────────────────
    # Error boundary
    # ─────────────────────────────────────────────────────────────────────────
    @contextlib.contextmanager
    def _boundary(self, action: str, object_class: Optional[str] = None,
                  uid: Optional[Uid] = None) -> Iterator[None]:
        try:
            yield
        except AlreadyExistsError:
            logger.warning("Detected the object already exists (%s %s)", action, object_class, exc_info=True)
            raise
        except UnknownUidError:
            logger.warning("Not found object when %s. objectClass: %s, uid: %s",
                           action, object_class, uid.value if uid else None)
            raise
        except ConnectorError:
            # Logged here because callers may not keep the full stack trace
            logger.error("Detected %s connector error during %s", self.instance_name, action, exc_info=True)
            raise
        except Exception as e:
            logger.error("Detected %s connector unexpected error during %s", self.instance_name, action,
                         exc_info=True)
            raise ConnectorIOError(f"{self.instance_name} {action} failed: {e}",
                                   object_class=object_class) from e

    # ─────────────────────────────────────────────────────────────────────────
    # Schema
    # ─────────────────────────────────────────────────────────────────────────
    def schema(self) -> Dict[str, SchemaDefinition]:
        """(Re)build every handler from the live configuration."""
        with self._boundary("schema"):
            self._handlers = {
                object_class: handler_type(self.config, self.client)
                for object_class, handler_type in HANDLER_TYPES.items()
            }
            return {oc: handler.schema for oc, handler in self._handlers.items()}

    def _handler(self, object_class: Optional[str]) -> ObjectHandler:
        if object_class is None:
            raise InvalidAttributeValueError("ObjectClass value not provided")

        # Load the handlers if they're not loaded yet
        if self._handlers is None:
            self.schema()

        handler = self._handlers.get(object_class)
        if handler is None:
            raise InvalidAttributeValueError(f"Unsupported object class {object_class}")
        return handler

    def _check_names(self, schema: SchemaDefinition, names: Iterable[str]) -> None:
        unknown = sorted(n for n in names if schema.get(n) is None)
        if unknown:
            raise InvalidAttributeValueError(
                f"Unknown attribute(s) for {schema.object_class}: {', '.join(unknown)}",
                object_class=schema.object_class,
            )

    # ─────────────────────────────────────────────────────────────────────────
    # Operations
    # ─────────────────────────────────────────────────────────────────────────
    def create(self, object_class: str, attributes: Iterable[Attribute],
               options: Optional[OperationOptions] = None) -> Uid:
        attributes = list(attributes or [])
        if not attributes:
            raise InvalidAttributeValueError("Attributes not provided or empty", object_class=object_class)

        with self._boundary("creating", object_class):
            handler = self._handler(object_class)
            self._check_names(handler.schema, (a.name for a in attributes))
            return handler.create(attributes)

    def update_delta(self, object_class: str, uid: Uid, modifications: Iterable[AttributeDelta],
                     options: Optional[OperationOptions] = None) -> None:
        if uid is None:
            raise InvalidAttributeValueError("uid not provided", object_class=object_class)
        modifications = list(modifications or [])

        with self._boundary("updating", object_class, uid):
            handler = self._handler(object_class)
            self._check_names(handler.schema, (d.name for d in modifications))
            handler.update_delta(uid, modifications, options)

    def delete(self, object_class: str, uid: Uid, options: Optional[OperationOptions] = None) -> None:
        if uid is None:
            raise InvalidAttributeValueError("uid not provided", object_class=object_class)

        with self._boundary("deleting", object_class, uid):
            self._handler(object_class).delete(uid, options)

    def execute_query(self, object_class: str, query: Optional[EqualsFilter], results_handler: ResultsHandler,
                      options: Optional[OperationOptions] = None) -> Optional[SearchResult]:
        """Search objects and hand each one to ``results_handler``.

        Args:
            object_class: user, organization or group
            query: ``None`` for all objects, or an equality on ``__UID__`` / ``__NAME__``
            results_handler: Called per object; returning False stops the search
            options: Paging and attribute selection

        Returns:
            ``SearchResult`` for explicit-page searches (also passed to
            ``results_handler.handle_result`` when the handler has one), else None
        """
        with self._boundary("searching", object_class):
            handler = self._handler(object_class)
            schema = handler.schema

            page_size = utils.resolve_page_size(options, self.config.default_query_page_size)
            page_offset = utils.resolve_page_offset(options)

            attributes_to_get = tuple(utils.create_full_attributes_to_get(schema, options))
            allow_partial = utils.should_allow_partial_attribute_values(options)
            ctx = QueryContext(
                options=options,
                attributes_to_get=attributes_to_get,
                plan=schema.plan_read(attributes_to_get, allow_partial),
                page_size=page_size,
                page_offset=page_offset,
            )

            resource_filter = translate(query, object_class)
            if resource_filter is None:
                total = handler.get_all(results_handler, ctx)
            elif resource_filter.is_by_uid:
                total = handler.get_by_uid(resource_filter.value, results_handler, ctx)
            else:
                total = handler.get_by_name(resource_filter.value, results_handler, ctx)

            if page_offset < 1:
                return None

            result = SearchResult(None, total - page_size * page_offset)
            handle_result = getattr(results_handler, "handle_result", None)
            if callable(handle_result):
                handle_result(result)
            return result

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────
    def test(self) -> None:
        """Drop the current session and reconnect with a fresh one."""
        with self._boundary("testing"):
            self.dispose()
            self._authenticate_resource()

    def dispose(self) -> None:
        if self.client is not None:
            self.client.close()
        self.client = None
        self._handlers = None
