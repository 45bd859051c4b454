"""
Tests for listing filters, the entry limit and page-by-page extraction.
"""

import asyncio

import pytest
from bs4 import BeautifulSoup

from conftest import SITE, FakeSite, listing_page
from harvest.contexts.scraping.pagination import (
    EntryCounter,
    LimitState,
    ListingFilters,
    ListingPaginator,
    build_filtered_url,
    check_entry_limit,
    next_page_url,
)
from harvest.utils import get_query_param


def test_filters_are_added_as_query_params():
    url = build_filtered_url(f"{SITE}/praca/", ListingFilters(query="tech", last_n_days=21, remote_work_type="fullRemote"))

    assert get_query_param(url, "search_anywhere") == "tech"
    assert get_query_param(url, "count_days") == "21"
    assert get_query_param(url, "remote_work") == "1"


def test_no_filters_leaves_url_unchanged():
    url = f"{SITE}/praca/bratislavsky-kraj/?page_num=3"
    assert build_filtered_url(url, ListingFilters()) == url


@pytest.mark.parametrize(
    "filters",
    [
        ListingFilters(query="python", last_n_days=7),
        ListingFilters(min_salary_value=1500, min_salary_period="month"),
        ListingFilters(employment_type="internship", remote_work_type="partialRemote"),
        ListingFilters(query="data", employment_type="fte", min_salary_value=10),
    ],
)
def test_filtered_url_is_idempotent(filters):
    """Applying the same filters to an already filtered URL changes nothing."""
    once = build_filtered_url(f"{SITE}/praca/?page_num=2", filters)
    assert build_filtered_url(once, filters) == once


@pytest.mark.parametrize("value,period", [(1200, "m"), (100, "m"), (5.5, "h"), (99, "h")])
def test_missing_salary_period_falls_back_on_value(value, period):
    url = build_filtered_url(f"{SITE}/praca/", ListingFilters(min_salary_value=value))
    assert get_query_param(url, "salary_period") == period


def test_whole_salary_is_formatted_without_decimals():
    url = build_filtered_url(f"{SITE}/praca/", ListingFilters(min_salary_value=1500.0, min_salary_period="month"))
    assert get_query_param(url, "salary") == "1500"


def test_employment_type_is_a_path_segment_after_job_section():
    url = build_filtered_url(f"{SITE}/praca/?page_num=2", ListingFilters(employment_type="internship"))
    assert url == f"{SITE}/praca/internship-staz/?page_num=2"

    nested = build_filtered_url(f"{SITE}/praca/bratislavsky-kraj/", ListingFilters(employment_type="fte"))
    assert nested == f"{SITE}/praca/plny-uvazok/bratislavsky-kraj/"


def test_next_page_url_increments_page_num():
    assert get_query_param(next_page_url(f"{SITE}/praca/"), "page_num") == "2"
    assert get_query_param(next_page_url(f"{SITE}/praca/?page_num=4&count_days=3"), "page_num") == "5"
    assert get_query_param(next_page_url(f"{SITE}/praca/?page_num=4&count_days=3"), "count_days") == "3"


def test_no_limit_is_never_reached():
    assert not check_entry_limit(500, LimitState(max_count=None, persisted_count=1000)).limit_reached


def test_limit_needs_a_progress_signal():
    assert not check_entry_limit(50, LimitState(max_count=10)).limit_reached


def test_batch_alone_over_limit():
    check = check_entry_limit(20, LimitState(max_count=5, persisted_count=0, page_offset_estimate=20))
    assert check.limit_reached
    assert check.overflow == 15


def test_persisted_count_plus_batch_over_limit():
    check = check_entry_limit(20, LimitState(max_count=30, persisted_count=20))
    assert check.limit_reached
    assert check.overflow == 10


def test_page_offset_estimate_over_limit():
    check = check_entry_limit(20, LimitState(max_count=21, persisted_count=0, page_offset_estimate=40))
    assert check.limit_reached
    assert check.overflow == 19


def test_exact_limit_keeps_whole_batch():
    """Reaching the limit exactly stops pagination without dropping rows."""
    check = check_entry_limit(20, LimitState(max_count=20, persisted_count=0, page_offset_estimate=20))
    assert check.limit_reached
    assert check.overflow == 0


def test_entry_counter_never_overgrants_under_concurrency():
    async def main():
        counter = EntryCounter(max_count=45)
        grants = await asyncio.gather(*(counter.reserve(20) for _ in range(5)))
        return counter, grants

    counter, grants = asyncio.run(main())

    assert sum(grants) == 45
    assert sorted(grants) == [0, 0, 5, 20, 20]
    assert counter.exhausted
    assert counter.remaining == 0


def test_unlimited_entry_counter_grants_everything():
    counter = EntryCounter()
    assert asyncio.run(counter.reserve(1000)) == 1000
    assert counter.remaining is None
    assert not counter.exhausted


def test_keyed_reservation_is_granted_once():
    async def main():
        counter = EntryCounter(max_count=30)
        first = await counter.reserve(20, key="page-1")
        again = await counter.reserve(20, key="page-1")
        other = await counter.reserve(20, key="page-2")
        return counter, first, again, other

    counter, first, again, other = asyncio.run(main())

    assert (first, again, other) == (20, 20, 10)
    assert counter.granted == 30
    assert counter.grant_for("page-1") == 20
    assert counter.grant_for("page-3") is None


def test_negative_entry_limit_is_rejected():
    with pytest.raises(ValueError):
        EntryCounter(-1)


def extract_all_pages(site, max_count=None, count_only=False, filters=None):
    """Walk the fake site page by page the way scheduled listing tasks do."""

    async def main():
        paginator = ListingPaginator(filters or ListingFilters(), EntryCounter(max_count), count_only=count_only)
        url, page_num, results = f"{SITE}/praca/", 1, []
        while url is not None:
            doc = BeautifulSoup(await site.fetch_html(url), "html.parser")
            result = await paginator.extract_page(doc, url, page_num, site.fetch_html)
            results.append(result)
            url, page_num = result.next_page_url, page_num + 1
        return results

    return asyncio.run(main())


@pytest.mark.parametrize("max_count,expected", [(None, 45), (1, 1), (20, 20), (21, 21), (40, 40), (45, 45), (100, 45)])
def test_emitted_entries_never_exceed_limit(max_count, expected):
    results = extract_all_pages(FakeSite(total=45), max_count=max_count)
    records = [record for result in results for record in result.records]

    assert len(records) == expected
    assert len({record["offer_id"] for record in records}) == expected


def test_pagination_stops_on_empty_page():
    site = FakeSite(total=40)
    results = extract_all_pages(site)

    assert [len(result.records) for result in results] == [20, 20, 0]
    assert results[-1].next_page_url is None
    assert len(site.fetched) == 3


def test_pagination_stops_once_limit_reached():
    site = FakeSite(total=100)
    results = extract_all_pages(site, max_count=21)

    assert [len(result.records) for result in results] == [20, 1]
    assert results[-1].limit_reached
    assert results[-1].next_page_url is None


def test_count_only_reports_total_without_records():
    site = FakeSite(total=45)
    results = extract_all_pages(site, count_only=True)

    assert len(results) == 1
    assert results[0].records == []
    assert results[0].next_page_url is None
    assert results[0].page_count.total == 45


def test_filtered_url_is_refetched():
    site = FakeSite(total=5)
    results = extract_all_pages(site, filters=ListingFilters(query="python"))

    assert site.fetched[0] == f"{SITE}/praca/"
    assert get_query_param(site.fetched[1], "search_anywhere") == "python"
    assert results[0].url == site.fetched[1]
    assert len(results[0].records) == 5


def test_persisted_count_limits_batch():
    """Records already stored by this run count towards the limit."""

    async def main():
        paginator = ListingPaginator(ListingFilters(), EntryCounter(25), persisted_count=lambda: 20)
        doc = BeautifulSoup(listing_page(1, 20, 100), "html.parser")

        async def fetch_html(url):
            raise AssertionError("No refetch expected")

        return await paginator.extract_page(doc, f"{SITE}/praca/", 1, fetch_html)

    result = asyncio.run(main())

    assert len(result.records) == 5
    assert result.limit_reached


def test_retried_page_keeps_its_entries():
    """A second attempt at a page is not cut short by records other pages stored meanwhile."""
    stored = {"count": 0}

    async def main():
        paginator = ListingPaginator(ListingFilters(), EntryCounter(40), persisted_count=lambda: stored["count"])
        doc = BeautifulSoup(listing_page(1, 20, 100), "html.parser")

        first = await paginator.extract_page(doc, f"{SITE}/praca/", 1, FakeSite(total=100).fetch_html)
        # Page 2 finished while page 1 was failing
        stored["count"] = 30
        retry = await paginator.extract_page(doc, f"{SITE}/praca/", 1, FakeSite(total=100).fetch_html)
        return paginator, first, retry

    paginator, first, retry = asyncio.run(main())

    assert len(first.records) == 20
    assert [r["offer_id"] for r in retry.records] == [r["offer_id"] for r in first.records]
    assert paginator.counter.granted == 20


def test_filters_keep_repeated_start_url_params():
    url = f"{SITE}/praca/?region=bratislava&region=kosice"

    filtered = build_filtered_url(url, ListingFilters(query="python"))

    assert filtered == f"{SITE}/praca/?region=bratislava&region=kosice&search_anywhere=python"
    assert next_page_url(filtered).endswith("region=bratislava&region=kosice&search_anywhere=python&page_num=2")
