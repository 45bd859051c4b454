"""
Listing pagination.

One listing task extracts one page:

1. Apply the configured filters to the URL (re-fetching the page when the
   filtered URL differs from the fetched one).
2. In count-only mode, report the result count and stop.
3. Extract the rows. No rows means the end of the results.
4. Truncate the batch against the run's entry limit.
5. Report the next page URL unless the limit was reached.

The caller enqueues the next page before doing per-record work on the
current batch (detail expansion), so the next page is fetched meanwhile.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import urlsplit, urlunsplit

from bs4 import BeautifulSoup
from loguru import logger

from harvest.contexts.scraping.extractors import PageCountInfo, extract_job_offer_entries, parse_page_count
from harvest.utils import get_query_param, set_query_params, urls_equal

PAGE_SIZE = 20

REMOTE_WORK_CODES = {
    "fullRemote": "1",
    "partialRemote": "2",
    "noRemote": "0",
}

SALARY_PERIOD_CODES = {
    "month": "m",
    "hour": "h",
}

EMPLOYMENT_TYPE_PATHS = {
    "fte": "plny-uvazok",
    "pte": "skrateny-uvazok",
    "selfemploy": "zivnost",
    "voluntary": "na-dohodu-brigady",
    "internship": "internship-staz",
}

JOB_SECTION_PREFIX = "/praca/"

FetchHTML = Callable[[str], Awaitable[str]]


@dataclass(frozen=True)
class ListingFilters:
    query: Optional[str] = None
    min_salary_value: Optional[float] = None
    min_salary_period: Optional[str] = None
    employment_type: Optional[str] = None
    remote_work_type: Optional[str] = None
    last_n_days: Optional[int] = None

    @classmethod
    def from_config(cls, filters_config) -> "ListingFilters":
        if not filters_config:
            return cls()
        return cls(
            query=filters_config.get("query"),
            min_salary_value=filters_config.get("min_salary_value"),
            min_salary_period=filters_config.get("min_salary_period"),
            employment_type=filters_config.get("employment_type"),
            remote_work_type=filters_config.get("remote_work_type"),
            last_n_days=filters_config.get("last_n_days"),
        )


def _format_number(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def build_filtered_url(url: str, filters: ListingFilters) -> str:
    """
    Apply listing filters to a listing URL.

    Applying the same filters to the result again returns the same URL.

    Example:
        >>> build_filtered_url("https://www.profesia.sk/praca/", ListingFilters(query="tech", last_n_days=21))
        'https://www.profesia.sk/praca/?search_anywhere=tech&count_days=21'
    """
    params: Dict[str, str] = {}

    if filters.query is not None:
        params["search_anywhere"] = filters.query

    if filters.last_n_days is not None:
        params["count_days"] = str(filters.last_n_days)

    if filters.remote_work_type:
        params["remote_work"] = REMOTE_WORK_CODES[filters.remote_work_type]

    if filters.min_salary_value is not None:
        params["salary"] = _format_number(filters.min_salary_value)
        period = filters.min_salary_period
        if not period:
            period = "month" if filters.min_salary_value >= 100 else "hour"
            logger.warning(f'Salary period is missing. Using value "{period}" as fallback.')
        params["salary_period"] = SALARY_PERIOD_CODES[period]

    filtered_url = set_query_params(url, params) if params else url

    # Employment type is a path segment: /praca/internship-staz/...
    if filters.employment_type:
        segment = EMPLOYMENT_TYPE_PATHS[filters.employment_type]
        filtered_url = _add_path_segment(filtered_url, segment)

    return filtered_url


def _add_path_segment(url: str, segment: str) -> str:
    parts = urlsplit(url)
    path = parts.path
    if f"/{segment}" in path:
        return url
    if path.lower().startswith(JOB_SECTION_PREFIX):
        path = f"{JOB_SECTION_PREFIX}{segment}/{path[len(JOB_SECTION_PREFIX):]}"
    else:
        path = f"{path.rstrip('/')}/{segment}/"
    return urlunsplit(parts._replace(path=path))


def next_page_url(url: str) -> str:
    """Increment the ``page_num`` query parameter (a missing one counts as page 1)."""
    current = get_query_param(url, "page_num")
    page_num = int(current) if current and current.isdigit() else 1
    return set_query_params(url, {"page_num": page_num + 1})


@dataclass(frozen=True)
class LimitState:
    """
    Inputs for the entry limit decision.

    ``persisted_count`` is the number of records already in the sink;
    ``page_offset_estimate`` assumes every page before the current one was
    full: ``(page_num - 1) * PAGE_SIZE`` plus the current batch. Either may
    be missing.
    """

    max_count: Optional[int]
    persisted_count: Optional[int] = None
    page_offset_estimate: Optional[int] = None


@dataclass(frozen=True)
class LimitCheck:
    limit_reached: bool
    overflow: int = 0


def check_entry_limit(batch_count: int, state: LimitState) -> LimitCheck:
    """
    Decide whether the current batch reaches the maximum number of entries.

    Signals are checked in order: the batch alone, the persisted count plus
    the batch, then the page offset estimate. The first one at or over the
    limit decides the overflow (rows to drop from the tail of the batch).
    """
    max_count = state.max_count
    if max_count is None or (state.persisted_count is None and state.page_offset_estimate is None):
        return LimitCheck(limit_reached=False)

    if batch_count >= max_count:
        return LimitCheck(limit_reached=True, overflow=batch_count - max_count)

    if state.persisted_count is not None and state.persisted_count + batch_count >= max_count:
        return LimitCheck(limit_reached=True, overflow=state.persisted_count + batch_count - max_count)

    if state.page_offset_estimate is not None and state.page_offset_estimate >= max_count:
        return LimitCheck(limit_reached=True, overflow=state.page_offset_estimate - max_count)

    return LimitCheck(limit_reached=False)


class EntryCounter:
    """
    Run-wide quota of listing entries, shared by all concurrent listing tasks.

    ``reserve`` is atomic: concurrent pages can never together be granted
    more than ``max_count`` entries. A reservation made under a key (the
    page URL) is remembered, so a retried page gets its earlier grant back
    instead of drawing on the quota again.
    """

    def __init__(self, max_count: Optional[int] = None):
        if max_count is not None and max_count < 0:
            raise ValueError("max_count must not be negative")
        self.max_count = max_count
        self.granted = 0
        self._grants: Dict[str, int] = {}
        self._lock = asyncio.Lock()

    @property
    def remaining(self) -> Optional[int]:
        if self.max_count is None:
            return None
        return max(self.max_count - self.granted, 0)

    @property
    def exhausted(self) -> bool:
        return self.max_count is not None and self.granted >= self.max_count

    def grant_for(self, key: str) -> Optional[int]:
        return self._grants.get(key)

    async def reserve(self, count: int, key: Optional[str] = None) -> int:
        """Grant up to ``count`` entries and return how many were granted."""
        async with self._lock:
            if key is not None and key in self._grants:
                return min(count, self._grants[key])
            granted = count if self.max_count is None else min(count, self.remaining)
            self.granted += granted
            if key is not None:
                self._grants[key] = granted
            return granted


@dataclass
class PageResult:
    url: str
    records: List[Dict[str, Any]] = field(default_factory=list)
    next_page_url: Optional[str] = None
    page_count: Optional[PageCountInfo] = None
    limit_reached: bool = False


class ListingPaginator:
    """
    Extract listing pages for one run.

    Args:
        filters: Listing filters applied to every listing URL
        counter: The run's shared entry quota
        persisted_count: Callable returning the number of records already
            stored (legacy limit signal), or None to skip that signal
        count_only: Only report the result count, extract nothing
        page_size: Rows per listing page
    """

    def __init__(
        self,
        filters: ListingFilters,
        counter: EntryCounter,
        persisted_count: Optional[Callable[[], int]] = None,
        count_only: bool = False,
        page_size: int = PAGE_SIZE,
    ):
        self.filters = filters
        self.counter = counter
        self.persisted_count = persisted_count
        self.count_only = count_only
        self.page_size = page_size

    async def _limit_state(self, page_num: int, batch_count: int) -> LimitState:
        persisted = None
        if self.persisted_count is not None:
            persisted = await asyncio.to_thread(self.persisted_count)
        return LimitState(
            max_count=self.counter.max_count,
            persisted_count=persisted,
            page_offset_estimate=(page_num - 1) * self.page_size + batch_count,
        )

    async def extract_page(self, doc: BeautifulSoup, url: str, page_num: int, fetch_html: FetchHTML) -> PageResult:
        filtered_url = build_filtered_url(url, self.filters)
        if not urls_equal(url, filtered_url):
            logger.info(f"[Pagination] Redirecting to URL that has filters applied. NEW URL: {filtered_url}")
            html = await fetch_html(filtered_url)
            doc = BeautifulSoup(html, "html.parser")
        else:
            logger.info("[Pagination] Generated URL with filters is the same as current URL")

        page_count = parse_page_count(doc)
        if page_count is not None:
            logger.info(f"[Pagination] Total {page_count.total} entries exist for current filter settings. URL: {filtered_url}")

        if self.count_only:
            logger.info("[Pagination] Count-only mode. Entries are not scraped.")
            return PageResult(url=filtered_url, page_count=page_count)

        entries = extract_job_offer_entries(doc, filtered_url)
        if not entries:
            logger.info("[Pagination] Stopping scraping - no entries found. Assuming this is the end of pagination")
            return PageResult(url=filtered_url, page_count=page_count)

        earlier_grant = self.counter.grant_for(filtered_url)
        if earlier_grant is not None:
            # Retried page: the records stored since the first attempt include this run's other pages
            logger.info(f"[Pagination] Page {page_num} was reserved before, reusing {earlier_grant} entries")
            check = LimitCheck(limit_reached=False)
        else:
            check = check_entry_limit(len(entries), await self._limit_state(page_num, len(entries)))
            if check.limit_reached:
                entries = entries[: max(len(entries) - check.overflow, 0)]

        granted = await self.counter.reserve(len(entries), key=filtered_url)
        entries = entries[:granted]
        limit_reached = check.limit_reached or self.counter.exhausted

        result = PageResult(url=filtered_url, records=entries, page_count=page_count, limit_reached=limit_reached)
        if not limit_reached and entries:
            result.next_page_url = next_page_url(filtered_url)
        elif limit_reached:
            logger.info("[Pagination] Stopping pagination - already have max entries")

        logger.info(f"[Pagination] Page {page_num}: {len(entries)} entries kept. URL: {filtered_url}")
        return result
