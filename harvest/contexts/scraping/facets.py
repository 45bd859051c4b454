"""
Facet interception for the marketplace store page.

The store page loads its items from a search endpoint. Requests made for a
single category carry a facet filter (``"categories:AI"``) but the items in
the responses do not say which categories they belong to. So every distinct
facet seen on an outgoing request is re-fetched to exhaustion, and items are
merged by ``objectID``, collecting the labels of every facet they appear in.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from loguru import logger

from harvest.utils import first_completed, poll

ITEMS_QUERY_URL_FRAGMENT = "algolia.net/1/indexes/prod_PUBLIC_STORE/query"
DEFAULT_ITEMS_QUERY_URL = "https://ow0o5i3qo7-dsn.algolia.net/1/indexes/prod_PUBLIC_STORE/query"

# Example values; the headers of the intercepted request take precedence
DEFAULT_QUERY_HEADERS = {
    "accept": "*/*",
    "content-type": "application/x-www-form-urlencoded",
    "x-algolia-api-key": "0ecccd09f50396a4dbbe5dbfb17f4525",
    "x-algolia-application-id": "OW0O5I3QO7",
}

DEFAULT_QUERY_PAYLOAD = {
    "query": "",
    "page": 0,
    "hitsPerPage": 24,
    "restrictSearchableAttributes": [],
    "attributesToHighlight": [],
    "attributesToRetrieve": [
        "title",
        "name",
        "username",
        "userFullName",
        "stats",
        "description",
        "pictureUrl",
        "userPictureUrl",
        "notice",
        "currentPricingInfo",
    ],
}

FACET_PAGE_SIZE = 500
FACET_PAGE_PAUSE = 0.3
UNRECOGNIZED_FACET = "unrecognized"

PostJSON = Callable[[str, Dict[str, Any], Dict[str, str]], Awaitable[Dict[str, Any]]]
HitsCallback = Callable[[List[Dict[str, Any]]], None]


@dataclass(frozen=True)
class Category:
    text: str
    facet_key: str


# Category buttons as shown on the page and the facet key their requests use.
# Must be kept in sync with the store page by hand.
CATEGORIES = (
    Category("ai", "AI"),
    Category("automation", "AUTOMATION"),
    Category("business", "BUSINESS"),
    Category("covid-19", "COVID_19"),
    Category("developer examples", "DEVELOPER_EXAMPLES"),
    Category("developer tools", "DEVELOPER_TOOLS"),
    Category("e-commerce", "ECOMMERCE"),
    Category("games", "GAMES"),
    Category("jobs", "JOBS"),
    Category("marketing", "MARKETING"),
    Category("news", "NEWS"),
    Category("seo tools", "SEO_TOOLS"),
    Category("social media", "SOCIAL_MEDIA"),
    Category("travel", "TRAVEL"),
    Category("videos", "VIDEOS"),
    Category("real estate", "REAL_ESTATE"),
    Category("sports", "SPORTS"),
    Category("education", "EDUCATION"),
    Category("other", "OTHER"),
)
CATEGORIES_BY_TEXT = {c.text: c for c in CATEGORIES}
CATEGORIES_BY_KEY = {c.facet_key: c for c in CATEGORIES}


def is_items_query(url: str) -> bool:
    return ITEMS_QUERY_URL_FRAGMENT in url


def parse_facet_key(filters: Optional[str]) -> Optional[str]:
    """``"categories:AI"`` -> ``"AI"``"""
    if not filters:
        return None
    _, sep, value = filters.partition(":")
    key = (value if sep else filters).strip()
    return key or None


def facet_label(facet_key: str) -> str:
    if facet_key in CATEGORIES_BY_KEY:
        return facet_key
    logger.warning(
        f'[Facets] Unrecognized facet "{facet_key}". Items are stored with the label "{UNRECOGNIZED_FACET}"'
    )
    return UNRECOGNIZED_FACET


def facet_key_for_text(text: Optional[str]) -> Optional[str]:
    """Facet key of a category button, or None for unknown buttons."""
    category = CATEGORIES_BY_TEXT.get((text or "").strip().lower())
    return category.facet_key if category else None


def merge_hits(items_by_id: Dict[str, Dict[str, Any]], hits: List[Dict[str, Any]], label: str) -> int:
    """
    Merge hits into ``items_by_id`` by ``objectID``.

    Items seen before get ``label`` appended to their ``categories`` (once);
    new items are stored with ``categories = [label]``.

    Returns:
        Number of new items
    """
    new_items = 0
    for hit in hits:
        object_id = hit.get("objectID")
        if object_id is None:
            logger.warning(f"[Facets] Skipping hit without objectID: {hit.get('name') or hit.get('title')}")
            continue

        existing = items_by_id.get(object_id)
        if existing is not None:
            if label not in existing["categories"]:
                existing["categories"].append(label)
            continue

        hit["categories"] = [label]
        items_by_id[object_id] = hit
        new_items += 1
    return new_items


@dataclass
class InterceptedRequest:
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def facet_key(self) -> Optional[str]:
        return parse_facet_key(self.payload.get("filters"))


def _query_headers(headers: Dict[str, str]) -> Dict[str, str]:
    lowered = {k.lower(): v for k, v in (headers or {}).items()}
    return {name: lowered.get(name, default) for name, default in DEFAULT_QUERY_HEADERS.items()}


async def fetch_facet_items(
    post_json: PostJSON,
    request: InterceptedRequest,
    on_hits: HitsCallback,
    query: Optional[str] = None,
    page_size: int = FACET_PAGE_SIZE,
    pause: float = FACET_PAGE_PAUSE,
) -> int:
    """
    Fetch every page of the intercepted query.

    The loop stops on a page with no hits, or once a page holds all the
    reported hits (``nbHits``).

    Returns:
        Total number of hits received
    """
    payload = {**DEFAULT_QUERY_PAYLOAD, **request.payload, "hitsPerPage": page_size}
    if query:
        payload["query"] = query
    payload.setdefault("page", 0)
    headers = _query_headers(request.headers)
    url = request.url or DEFAULT_ITEMS_QUERY_URL

    total = 0
    while True:
        logger.info(f"[Facets] Fetching page {payload['page'] + 1} for filter {payload.get('filters')!r}")
        data = await post_json(url, dict(payload), headers)
        hits = data.get("hits") or []
        total += len(hits)
        on_hits(hits)

        nb_hits = data.get("nbHits")
        if not hits or (nb_hits and (nb_hits <= len(hits) or nb_hits <= total)):
            logger.info(f"[Facets] Done fetching filter {payload.get('filters')!r} ({total} hits)")
            break

        payload["page"] += 1
        await asyncio.sleep(pause)
    return total


async def wait_for_facet(
    is_discovered: Callable[[], bool],
    event: asyncio.Event,
    timeout: Optional[float] = None,
    poll_interval: float = 0.05,
) -> bool:
    """
    Wait until a facet is discovered.

    Checks the discovered state first, then waits for whichever comes first:
    the event, or a poll of the discovered state. The poll covers the case
    where the request was intercepted before the caller started waiting.

    Returns:
        True if discovered (or the event fired) before the timeout
    """
    if is_discovered():
        return True
    return await first_completed(event.wait(), poll(is_discovered, poll_interval), timeout=timeout)


class FacetInterceptor:
    """
    Deduplicate facets seen on intercepted requests and fetch each one once.

    One interceptor serves one page; its facet set and item map are not
    shared with other pages. Call ``drain`` to wait for all fetch loops and
    collect the merged items.
    """

    def __init__(
        self,
        post_json: PostJSON,
        query: Optional[str] = None,
        page_size: int = FACET_PAGE_SIZE,
        pause: float = FACET_PAGE_PAUSE,
    ):
        self.post_json = post_json
        self.query = query
        self.page_size = page_size
        self.pause = pause

        self.discovered: Set[str] = set()
        self.items_by_id: Dict[str, Dict[str, Any]] = {}
        self.loop_count = 0
        self.request_seen = asyncio.Event()
        self._tasks: List[asyncio.Task] = []

    def is_discovered(self, facet_key: Optional[str]) -> bool:
        return facet_key in self.discovered

    def observe(self, request: InterceptedRequest) -> Optional[asyncio.Task]:
        """
        Handle one outgoing request.

        Returns:
            The fetch task started for a newly discovered facet, else None
        """
        if not is_items_query(request.url):
            return None
        self.request_seen.set()

        facet_key = request.facet_key
        if facet_key is None:
            return None
        if facet_key in self.discovered:
            logger.debug(f"[Facets] Facet {facet_key} already discovered")
            return None

        logger.info(f'[Facets] Found facet filter "{request.payload.get("filters")}"')
        self.discovered.add(facet_key)
        self.loop_count += 1

        task = asyncio.create_task(self._fetch(request, facet_key))
        self._tasks.append(task)
        return task

    async def _fetch(self, request: InterceptedRequest, facet_key: str) -> int:
        label = facet_label(facet_key)
        return await fetch_facet_items(
            self.post_json,
            request,
            on_hits=lambda hits: merge_hits(self.items_by_id, hits, label),
            query=self.query,
            page_size=self.page_size,
            pause=self.pause,
        )

    async def wait_for_facet(self, facet_key: Optional[str], timeout: Optional[float] = None) -> bool:
        """
        Wait for the request of ``facet_key``; for unknown keys, for any items request.

        Clear ``request_seen`` before triggering the request.
        """
        if facet_key is None:
            return await wait_for_facet(lambda: False, self.request_seen, timeout=timeout)
        return await wait_for_facet(lambda: self.is_discovered(facet_key), self.request_seen, timeout=timeout)

    async def drain(self) -> List[Dict[str, Any]]:
        """
        Wait for every facet fetch loop, then return the merged items.

        A failed loop does not cut the others short. Once all have finished,
        the first failure is raised.
        """
        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        errors = [result for result in results if isinstance(result, BaseException)]
        for error in errors:
            logger.error(f"[Facets] Facet fetch loop failed: {type(error).__name__}: {error}")
        if errors:
            raise errors[0]
        return list(self.items_by_id.values())
