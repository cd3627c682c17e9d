"""Read-modify-write reconciliation of set-valued relations.

kintone only accepts the complete membership list of a user, so add/remove
deltas are merged into the current remote set before writing it back:

    result = (current ∪ add) \\ remove

Current ordering is kept, new elements follow in the caller's order, and an
element both added and removed ends up removed.

A full-set replace on update keeps the current members the caller cannot
see (ignored codes, the built-in ``everyone`` group) ahead of the new list.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Callable, Collection, Iterable, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssociationDelta:
    """Pending change to one relation.

    ``replace`` is a full-set value (create, or a replace delta). ``None``
    means "operand not supplied".
    """
    add: Optional[List[str]] = None
    remove: Optional[List[str]] = None
    replace: Optional[List[str]] = None

    @property
    def is_empty(self) -> bool:
        return self.add is None and self.remove is None and self.replace is None


def reconcile(current: Iterable[str], add: Optional[Iterable[str]] = None,
              remove: Optional[Iterable[str]] = None) -> List[str]:
    """Merge ``add`` into ``current`` then drop ``remove``."""
    removed = set(remove or [])

    result: List[str] = []
    seen = set()
    for code in list(current) + list(add or []):
        if code in seen:
            continue
        seen.add(code)
        if code not in removed:
            result.append(code)
    return result


def apply_association_delta(
    delta: AssociationDelta,
    fetch_current: Callable[[], Iterable[str]],
    write: Callable[[List[str]], None],
    hidden: Optional[Collection[str]] = None,
) -> Optional[List[str]]:
    """Bring one relation in line with ``delta``.

    Args:
        delta: Pending change
        fetch_current: Reads the current, unfiltered membership
        write: Pushes the complete membership list
        hidden: Codes never shown to the caller. A replace delta keeps the
            current members among them, which costs a read; leave empty on
            create, where a replace is written as given

    Returns:
        The list written, or None when nothing was requested
    """
    if delta.is_empty:
        return None

    if delta.replace is None:
        base = list(fetch_current())
    elif hidden:
        kept = [code for code in fetch_current() if code in hidden]
        base = kept + list(delta.replace)
    else:
        base = list(delta.replace)

    result = reconcile(base, delta.add, delta.remove)
    logger.debug("Writing %d association value(s)", len(result))
    write(result)
    return result
