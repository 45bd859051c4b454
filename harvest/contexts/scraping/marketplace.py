"""
Marketplace store crawl (Playwright).

Items on the store page are loaded from a search endpoint. The crawler
intercepts those requests, clicks through the category buttons so a request
is made for every category, and lets ``FacetInterceptor`` fetch each
category to exhaustion. Merged items are pushed once all loops finish.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger
from playwright.async_api import Page, Route, async_playwright

from harvest.contexts.scraping.facets import FacetInterceptor, InterceptedRequest, facet_key_for_text, is_items_query
from harvest.contexts.scraping.requests import URLFetcher
from harvest.contexts.storage import RecordSink
from harvest.utils import clean_text

COOKIE_CONSENT_SELECTOR = "#onetrust-accept-btn-handler"
CATEGORY_LINKS_SELECTOR = '[data-test="sidebar-categories"] a'


class MarketplaceCrawler:
    """
    Crawl marketplace store pages.

    Args:
        sink: Dataset receiving the merged items
        fetcher: HTTP client used for the facet fetch loops
        query: Search query replacing the one of intercepted requests
        categories: Only click category buttons with these texts (default: all)
        headless: Run the browser without a window
        response_timeout: Seconds to wait for a category's request after clicking
        click_pause: Seconds to wait after each category
    """

    def __init__(
        self,
        sink: RecordSink,
        fetcher: URLFetcher,
        query: Optional[str] = None,
        categories: Optional[Sequence[str]] = None,
        headless: bool = True,
        response_timeout: float = 30.0,
        click_pause: float = 0.5,
    ):
        self.sink = sink
        self.fetcher = fetcher
        self.query = query
        self.categories = [c.strip().lower() for c in categories] if categories else None
        self.headless = headless
        self.response_timeout = response_timeout
        self.click_pause = click_pause

    async def run(self, start_urls: Sequence[str]) -> int:
        """
        Crawl every start URL.

        Returns:
            Number of items pushed
        """
        pushed = 0
        async with async_playwright() as playwright:
            browser = await playwright.chromium.launch(headless=self.headless)
            try:
                page = await browser.new_page()
                for url in start_urls:
                    items = await self.crawl_page(page, url)
                    pushed += await asyncio.to_thread(self.sink.push, items, None, {"source_url": url})
            finally:
                await browser.close()
        return pushed

    async def category_links(self, page: Page) -> List[Any]:
        links = page.locator(CATEGORY_LINKS_SELECTOR)
        locators = await links.all()
        if self.categories is None:
            return locators

        texts = [(clean_text(t) or "").lower() for t in await links.all_text_contents()]
        selected = [loc for loc, text in zip(locators, texts) if text in self.categories]
        if selected:
            logger.info(f"[Marketplace] {len(selected)} categories matched texts {self.categories}")
        else:
            logger.info(f"[Marketplace] None of available categories matched texts {self.categories}")
        return selected

    async def dismiss_cookie_consent(self, page: Page) -> bool:
        button = page.locator(COOKIE_CONSENT_SELECTOR)
        if not await button.count():
            return False
        logger.info("[Marketplace] Clicking away cookie consent window")
        await button.click(timeout=5000)
        return True

    async def crawl_page(self, page: Page, url: str) -> List[Dict[str, Any]]:
        """Click through the categories of one store page and collect the merged items."""
        interceptor = FacetInterceptor(self.fetcher.post_json_async, query=self.query)

        async def handle_route(route: Route) -> None:
            request = route.request
            payload = json.loads(request.post_data or "{}")
            await route.continue_()
            interceptor.observe(InterceptedRequest(url=request.url, headers=request.headers, payload=payload))

        await page.route(is_items_query, handle_route)
        try:
            logger.info(f"[Marketplace] Opening store page {url}")
            await page.goto(url)

            consent_dismissed = False
            for link in await self.category_links(page):
                if not consent_dismissed:
                    consent_dismissed = await self.dismiss_cookie_consent(page)

                text = clean_text(await link.text_content())
                facet_key = facet_key_for_text(text)
                if facet_key is None:
                    logger.warning(f'[Marketplace] Unrecognized category "{text}"')

                logger.info(f'[Marketplace] Clicking on category "{text}"')
                interceptor.request_seen.clear()
                await link.click()

                if not await interceptor.wait_for_facet(facet_key, timeout=self.response_timeout):
                    logger.warning(f'[Marketplace] No items request seen for category "{text}"')
                await asyncio.sleep(self.click_pause)

            items = await interceptor.drain()
        finally:
            await page.unroute(is_items_query, handle_route)

        logger.info(f"[Marketplace] {len(items)} items from {interceptor.loop_count} facet(s). URL: {url}")
        return items
