#!/usr/bin/env python3
"""Command-line front end for the kintone connector.

Examples:
    kintone-connector --config kintone.yaml test
    kintone-connector schema --object-class user
    kintone-connector search user --name alice --attributes groups,organizations
    kintone-connector create group --attr __NAME__=sales --attr name=Sales --attr type=static
    kintone-connector update user --uid 12 --add groups=sales --remove groups=legacy
    kintone-connector delete group --uid 3
"""
from __future__ import annotations
import argparse
import json
import logging
import sys
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Sequence

from .config import load_settings
from .core.connector import KintoneConnector
from .core.filters import EqualsFilter
from .core.framework import (
    NAME,
    UID,
    Attribute,
    AttributeDelta,
    CollectingResultsHandler,
    ConnectorObject,
    OperationOptions,
    Uid,
)
from .core.rest.exceptions import ConnectorError

OBJECT_CLASSES = ("user", "organization", "group")

logger = logging.getLogger("kintone_connector.cli")


def _pairs(values: Optional[Sequence[str]], option: str) -> "OrderedDict[str, List[str]]":
    """Parse repeated ``name=value`` options, grouping values per name."""
    grouped: "OrderedDict[str, List[str]]" = OrderedDict()
    for item in values or []:
        if "=" not in item:
            raise argparse.ArgumentTypeError(f"{option} expects name=value, got '{item}'")
        name, value = item.split("=", 1)
        grouped.setdefault(name, []).append(value)
    return grouped


def _split(value: Optional[str]) -> Optional[List[str]]:
    if value is None:
        return None
    return [v.strip() for v in value.split(",") if v.strip()]


def _object_to_dict(obj: ConnectorObject) -> Dict[str, Any]:
    attributes = {}
    for name, attr in obj.attributes.items():
        attributes[name] = attr.values if attr.complete else {"values": attr.values, "complete": False}
    return {
        "objectClass": obj.object_class,
        "uid": obj.uid.value,
        "name": obj.name.value,
        "attributes": attributes,
    }


def _print_json(data: Any) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def _target_uid(args: argparse.Namespace) -> Uid:
    return Uid(args.uid, args.name)


# ─────────────────────────────────────────────────────────────────────────────
# Commands
# ─────────────────────────────────────────────────────────────────────────────
def cmd_test(connector: KintoneConnector, args: argparse.Namespace) -> None:
    connector.test()
    _print_json({"status": "ok"})


def cmd_schema(connector: KintoneConnector, args: argparse.Namespace) -> None:
    schemas = connector.schema()
    selected = [args.object_class] if args.object_class else list(schemas)
    _print_json({oc: [info.to_dict() for info in schemas[oc].describe()] for oc in selected})


def cmd_search(connector: KintoneConnector, args: argparse.Namespace) -> None:
    query = None
    if args.uid:
        query = EqualsFilter(UID, Uid(args.uid))
    elif args.name:
        query = EqualsFilter(NAME, args.name)

    options = OperationOptions(
        page_size=args.page_size,
        paged_results_offset=args.page_offset,
        return_default_attributes=args.return_default or None,
        attributes_to_get=_split(args.attributes),
        allow_partial_attribute_values=args.allow_partial or None,
    )
    results = CollectingResultsHandler(limit=args.limit)
    connector.execute_query(args.object_class, query, results, options)

    output: Dict[str, Any] = {"results": [_object_to_dict(o) for o in results.objects]}
    if results.search_result is not None:
        output["remainingPagedResults"] = results.search_result.remaining_paged_results
    _print_json(output)


def cmd_create(connector: KintoneConnector, args: argparse.Namespace) -> None:
    attributes = [Attribute(name, values) for name, values in _pairs(args.attr, "--attr").items()]
    uid = connector.create(args.object_class, attributes)
    _print_json({"uid": uid.value, "name": uid.name_hint})


def cmd_update(connector: KintoneConnector, args: argparse.Namespace) -> None:
    deltas: List[AttributeDelta] = []
    for name, values in _pairs(args.set, "--set").items():
        deltas.append(AttributeDelta(name, values_to_replace=values))
    for name in args.clear or []:
        deltas.append(AttributeDelta.clear(name))

    added = _pairs(args.add, "--add")
    removed = _pairs(args.remove, "--remove")
    for name in list(OrderedDict.fromkeys(list(added) + list(removed))):
        deltas.append(AttributeDelta.add_remove(name, added.get(name), removed.get(name)))

    if not deltas:
        raise argparse.ArgumentTypeError("Nothing to update: use --set, --clear, --add or --remove")

    connector.update_delta(args.object_class, _target_uid(args), deltas)
    _print_json({"status": "updated", "uid": args.uid})


def cmd_delete(connector: KintoneConnector, args: argparse.Namespace) -> None:
    connector.delete(args.object_class, _target_uid(args))
    _print_json({"status": "deleted", "uid": args.uid})


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="kintone identity-provisioning connector")
    parser.add_argument("--config", help="YAML configuration file (default: $KINTONE_CONFIG_FILE)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="cmd")

    st = sub.add_parser("test", help="Check connectivity and credentials")
    st.set_defaults(func=cmd_test)

    ss = sub.add_parser("schema", help="Print attribute definitions")
    ss.add_argument("--object-class", choices=OBJECT_CLASSES)
    ss.set_defaults(func=cmd_schema)

    sq = sub.add_parser("search", help="Search objects")
    sq.add_argument("object_class", choices=OBJECT_CLASSES)
    target = sq.add_mutually_exclusive_group()
    target.add_argument("--uid", help="Search by id")
    target.add_argument("--name", help="Search by code")
    sq.add_argument("--page-size", type=int)
    sq.add_argument("--page-offset", type=int, help="1-based page; omit for all data")
    sq.add_argument("--attributes", help="Comma separated attributes to get")
    sq.add_argument("--return-default", action="store_true", help="Add default attributes to --attributes")
    sq.add_argument("--allow-partial", action="store_true", help="Skip association fetches")
    sq.add_argument("--limit", type=int, help="Stop after this many results")
    sq.set_defaults(func=cmd_search)

    sc = sub.add_parser("create", help="Create an object")
    sc.add_argument("object_class", choices=OBJECT_CLASSES)
    sc.add_argument("--attr", action="append", required=True, metavar="NAME=VALUE",
                    help="Attribute value; repeat for multi-valued attributes")
    sc.set_defaults(func=cmd_create)

    su = sub.add_parser("update", help="Update an object")
    su.add_argument("object_class", choices=OBJECT_CLASSES)
    su.add_argument("--uid", required=True)
    su.add_argument("--name", help="Current code, saves a lookup")
    su.add_argument("--set", action="append", metavar="NAME=VALUE")
    su.add_argument("--clear", action="append", metavar="NAME")
    su.add_argument("--add", action="append", metavar="NAME=VALUE")
    su.add_argument("--remove", action="append", metavar="NAME=VALUE")
    su.set_defaults(func=cmd_update)

    sd = sub.add_parser("delete", help="Delete an object")
    sd.add_argument("object_class", choices=OBJECT_CLASSES)
    sd.add_argument("--uid", required=True)
    sd.add_argument("--name", help="Current code, saves a lookup")
    sd.set_defaults(func=cmd_delete)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Command-line entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.cmd:
        parser.print_help()
        return 0

    try:
        connector = KintoneConnector(load_settings(args.config))
        try:
            logger.debug("Running %s command", args.cmd)
            args.func(connector, args)
        finally:
            connector.dispose()
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))
    except ConnectorError as e:
        print(f"[kintone-connector] {type(e).__name__}: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
