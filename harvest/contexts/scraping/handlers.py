"""
Route handlers for the job catalog site.

Each handler receives a ``HandlerContext`` for one crawled page and pushes
the records it extracts to the record sink.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

from bs4 import BeautifulSoup
from loguru import logger
from tqdm import tqdm

from harvest.contexts.routing import RouteLabel
from harvest.contexts.scraping.extractors import (
    PRIVATE_FIELDS,
    extract_job_detail,
    extract_list_entries,
    extract_partner_entries,
    is_locations_page,
    tab_urls,
    to_generic_entries,
    to_location_entries,
)
from harvest.contexts.scraping.pagination import ListingPaginator
from harvest.contexts.scraping.queue import CrawlTask, TaskQueue
from harvest.contexts.storage import RecordSink

FetchHTML = Callable[[str], Awaitable[str]]

DETAIL_REQUEST_PAUSE = 0.1


@dataclass
class HandlerContext:
    """
    Everything a handler needs about the page being handled.

    ``url`` is the URL the page was loaded from; ``fetch_html`` fetches
    further pages (filtered listing, detail pages, tabs) within the task.
    """

    task: CrawlTask
    url: str
    html: str
    doc: BeautifulSoup
    fetch_html: FetchHTML
    queue: TaskQueue

    async def enqueue(self, tasks: Iterable[CrawlTask], forefront: bool = False) -> int:
        return self.queue.add(tasks, forefront=forefront)

    async def enqueue_url(
        self,
        url: str,
        label: Optional[RouteLabel] = None,
        user_data: Optional[Dict[str, Any]] = None,
        forefront: bool = False,
    ) -> int:
        return await self.enqueue([CrawlTask(url=url, label=label, user_data=user_data or {})], forefront=forefront)

    async def parse(self, url: str) -> BeautifulSoup:
        return BeautifulSoup(await self.fetch_html(url), "html.parser")


class JobRouteHandlers:
    """
    Handlers for every route label of the job catalog site.

    Args:
        sink: Dataset receiving the records
        paginator: Listing pagination for this run
        detailed: Also fetch the detail page of each listing row
        detail_pause: Seconds to wait between detail page fetches
        run_id: Stored with every record's metadata
    """

    def __init__(
        self,
        sink: RecordSink,
        paginator: ListingPaginator,
        detailed: bool = False,
        detail_pause: float = DETAIL_REQUEST_PAUSE,
        run_id: Optional[str] = None,
    ):
        self.sink = sink
        self.paginator = paginator
        self.detailed = detailed
        self.detail_pause = detail_pause
        self.run_id = run_id

    async def push(
        self,
        records: Union[Dict[str, Any], List[Dict[str, Any]]],
        source_url: str,
        redact_fields: Optional[Iterable[str]] = None,
    ) -> int:
        metadata = {"run_id": self.run_id, "source_url": source_url}
        return await asyncio.to_thread(self.sink.push, records, redact_fields, metadata)

    async def job_listing(self, ctx: HandlerContext) -> None:
        page_num = ctx.task.user_data.get("listing_page_num") or 1
        result = await self.paginator.extract_page(ctx.doc, ctx.url, page_num, ctx.fetch_html)

        # Next page goes in first so it can be fetched while this page's details are
        if result.next_page_url:
            logger.info(f"[Listing] Scheduling page {page_num + 1} for scraping. URL: {result.next_page_url}")
            await ctx.enqueue_url(
                result.next_page_url,
                label=RouteLabel.JOB_LISTING,
                user_data={"listing_page_num": page_num + 1},
            )

        if not result.records:
            return

        if not self.detailed:
            await self.push(result.records, source_url=result.url)
            return

        await self.expand_details(result.records, ctx)

    async def expand_details(self, records: List[Dict[str, Any]], ctx: HandlerContext) -> int:
        """
        Fetch the detail page of each record, one at a time, pushing after each.

        Returns:
            Number of detail records pushed
        """
        logger.info(f"[Listing] Fetching details page of {len(records)} entries")
        # Survives a retry of the listing task, so stored details are not pushed twice
        done = ctx.task.user_data.setdefault("details_pushed", set())
        pushed = 0
        for record in tqdm(records, desc="Job details", leave=False):
            offer_url = record.get("offer_url")
            if not offer_url:
                logger.info(f"[Listing] Skipping details page - URL is missing (ID: {record.get('offer_id')})")
                continue
            if offer_url in done:
                continue

            logger.info(f"[Listing] Fetching details page (ID: {record.get('offer_id')}) URL: {offer_url}")
            detail = extract_job_detail(await ctx.parse(offer_url), offer_url, partial_record=record)
            await asyncio.gather(
                self.push(detail, source_url=offer_url, redact_fields=PRIVATE_FIELDS),
                asyncio.sleep(self.detail_pause),
            )
            done.add(offer_url)
            pushed += 1
        return pushed

    async def job_detail(self, ctx: HandlerContext) -> None:
        record = extract_job_detail(ctx.doc, ctx.url, partial_record=ctx.task.user_data.get("partial_record"))
        await self.push(record, source_url=ctx.url, redact_fields=PRIVATE_FIELDS)

    async def job_related_list(self, ctx: HandlerContext) -> None:
        locations = is_locations_page(ctx.url)
        for tab_index, tab_url in enumerate(tab_urls(ctx.url, ctx.doc)):
            logger.info(f"[Related lists] Fetching entries for tab {tab_index}. URL: {tab_url}")
            entries = extract_list_entries(await ctx.parse(tab_url), ctx.url)
            if locations:
                records = to_location_entries(entries, tab_index)
            else:
                records = to_generic_entries(entries)
            await self.push(records, source_url=tab_url)

    async def partners(self, ctx: HandlerContext) -> None:
        await self.push(extract_partner_entries(ctx.doc, ctx.url), source_url=ctx.url)
