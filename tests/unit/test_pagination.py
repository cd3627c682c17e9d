import math

import pytest

from kintone_connector.core.pagination import fetch_all, fetch_one_page, paginate


class RecordingFetcher:
    """Serves ``total`` integers page by page and records every call."""

    def __init__(self, total: int):
        self.data = list(range(total))
        self.calls = []

    def __call__(self, start, size):
        self.calls.append((start, size))
        return self.data[start:start + size]


@pytest.mark.parametrize("total,page_size", [(0, 5), (3, 5), (5, 5), (12, 5), (10, 1), (49, 50)])
def test_full_scan_fetch_count(total, page_size):
    fetcher = RecordingFetcher(total)
    seen = []

    count = fetch_all(lambda e: seen.append(e) or True, page_size, fetcher)

    assert count == total
    assert seen == list(range(total))
    assert len(fetcher.calls) == math.ceil((total + 1) / page_size)


def test_full_scan_advances_cursor_from_start_offset():
    fetcher = RecordingFetcher(7)

    fetch_all(lambda e: True, 3, fetcher, start_offset=0)

    assert fetcher.calls == [(0, 3), (3, 3), (6, 3)]


def test_full_scan_early_termination_counts_stopping_element():
    fetcher = RecordingFetcher(20)
    seen = []

    def handler(element):
        seen.append(element)
        return element != 6

    count = fetch_all(handler, 5, fetcher)

    assert count == 7
    assert seen == list(range(7))
    # Element 6 is on the second page; nothing after it is fetched
    assert fetcher.calls == [(0, 5), (5, 5)]


def test_full_scan_rejects_non_positive_page_size():
    with pytest.raises(ValueError):
        fetch_all(lambda e: True, 0, RecordingFetcher(1))


def test_explicit_page_translates_offset_and_returns_page_size():
    fetcher = RecordingFetcher(30)
    seen = []

    count = fetch_one_page(lambda e: seen.append(e) or True, 10, 2, fetcher)

    assert fetcher.calls == [(1, 10)]
    assert count == 10
    assert seen == list(range(1, 11))


def test_explicit_page_empty():
    fetcher = RecordingFetcher(0)
    seen = []

    count = paginate(lambda e: seen.append(e) or True, 20, 1, fetcher)

    assert count == 0
    assert seen == []
    assert fetcher.calls == [(0, 20)]


def test_explicit_page_honours_early_termination_but_reports_page_length():
    fetcher = RecordingFetcher(10)
    seen = []

    count = paginate(lambda e: seen.append(e) or False, 5, 1, fetcher)

    assert seen == [0]
    assert count == 5


@pytest.mark.parametrize("offset", [None, 0, -1])
def test_paginate_without_offset_scans_everything(offset):
    fetcher = RecordingFetcher(4)

    assert paginate(lambda e: True, 3, offset, fetcher) == 4
    assert fetcher.calls == [(0, 3), (3, 3)]
