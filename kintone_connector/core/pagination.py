"""Paginated query façade.

Two modes, selected by the caller's page offset:

* full scan (offset ``None`` or < 1): fetch pages of ``page_size`` starting at
  the backend's start cursor until an empty or short page comes back, and
  return the total number of elements handed to the handler;
* explicit page (offset >= 1): translate the 1-based caller offset into the
  backend's 0-based cursor, fetch exactly one page and return that page's size.

In both modes a handler returning ``False`` stops the iteration immediately.
Only ``fetch_page`` performs I/O and at most one page is held at a time.
"""
from __future__ import annotations
import logging
from typing import Callable, Optional, Sequence, TypeVar

T = TypeVar("T")

# fetch_page(start, size) -> elements of that page
PageFetcher = Callable[[int, int], Sequence[T]]
# handler(element) -> False to stop
QueryHandler = Callable[[T], bool]

logger = logging.getLogger(__name__)


def fetch_all(
    handler: QueryHandler,
    page_size: int,
    fetch_page: PageFetcher,
    start_offset: int = 0,
) -> int:
    """Walk every page until an empty or short one.

    Args:
        handler: Called per element; returning False stops the scan
        page_size: Elements requested per page
        fetch_page: ``(start, size) -> page`` callable
        start_offset: First cursor value (0 or 1 depending on the backend)

    Returns:
        Number of elements handed to ``handler``, including the one that
        requested termination
    """
    if page_size < 1:
        raise ValueError(f"page_size must be positive, got {page_size}")

    start = start_offset
    count = 0
    while True:
        page = fetch_page(start, page_size) or []
        if len(page) == 0:
            # End of data
            return count

        for element in page:
            count += 1
            if not handler(element):
                logger.debug("Search stopped by handler after %d element(s)", count)
                return count

        if len(page) < page_size:
            # A short page is the last one
            return count

        start += page_size


def fetch_one_page(
    handler: QueryHandler,
    page_size: int,
    page_offset: int,
    fetch_page: PageFetcher,
) -> int:
    """Fetch the single page the caller asked for.

    The caller's offset starts from 1 while the backend cursor starts from 0.

    Returns:
        Size of the fetched page (not a running total)
    """
    if page_offset < 1:
        raise ValueError(f"page_offset must start from 1, got {page_offset}")

    page = fetch_page(page_offset - 1, page_size) or []
    for element in page:
        if not handler(element):
            break
    return len(page)


def paginate(
    handler: QueryHandler,
    page_size: int,
    page_offset: Optional[int],
    fetch_page: PageFetcher,
    start_offset: int = 0,
) -> int:
    """Dispatch to full-scan or explicit-page mode."""
    # Offsets start from 1; 0 or None means "all data"
    if page_offset is None or page_offset < 1:
        return fetch_all(handler, page_size, fetch_page, start_offset)
    return fetch_one_page(handler, page_size, page_offset, fetch_page)
