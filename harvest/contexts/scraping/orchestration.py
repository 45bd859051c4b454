"""
Crawl orchestration with logging.

Provides functionality to:
- Run a job catalog crawl from a validated input config
- Run a marketplace store crawl
- Log execution details to timestamped files
- Return structured results
"""

import asyncio
import os
import time
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

from bs4 import BeautifulSoup
from dotenv import load_dotenv
from loguru import logger
from omegaconf import DictConfig

from harvest.contexts.routing import RouteLabel, Router, build_route_rules
from harvest.contexts.scraping.errors import ErrorReporter
from harvest.contexts.scraping.handlers import HandlerContext, JobRouteHandlers
from harvest.contexts.scraping.inputs import resolve_start_urls, validate_input
from harvest.contexts.scraping.marketplace import MarketplaceCrawler
from harvest.contexts.scraping.pagination import EntryCounter, ListingFilters, ListingPaginator
from harvest.contexts.scraping.queue import CrawlTask, PoolStats, TaskQueue, WorkerPool
from harvest.contexts.scraping.requests import NetworkCircuitBreakerException, URLFetcher
from harvest.contexts.storage import DatabaseConfig, RecordSink

load_dotenv()
LOGS_PATH = Path(os.getenv("LOGS_PATH", "outs/logs"))

FetchHTML = Callable[[str], Awaitable[str]]


def setup_logger(log_dir: Path = LOGS_PATH) -> Path:
    """
    Configure loguru to write to timestamped log file.

    Args:
        log_dir: Directory for log files (default: LOGS_PATH from environment)

    Returns:
        Path to the created log file
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"crawl_{timestamp}.txt"

    logger.remove()  # Remove default stderr handler
    logger.add(log_file, format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}")
    logger.add(
        lambda msg: print(msg, end=""),  # Also print to console
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}\n",
        level="INFO",
    )

    return log_file


class Crawler:
    """
    Fetch, parse and route queued pages with a bounded worker pool.

    Args:
        router: Router holding this run's route table and handlers
        fetch_html: Coroutine fetching a URL's HTML
        reporter: Captures handler and fetch errors to the reporting dataset
        max_concurrency: Pages handled at once
        request_timeout: Timeout (s) for non-listing tasks
        listing_timeout: Timeout (s) for listing tasks, which fetch detail pages inline
        max_retries: Retries of a failed task
        retry_backoff: Base retry delay (s), doubled on each retry
        max_tasks: Maximum number of tasks started in the run
    """

    def __init__(
        self,
        router: Router,
        fetch_html: FetchHTML,
        reporter: ErrorReporter,
        max_concurrency: int = 5,
        request_timeout: float = 60.0,
        listing_timeout: float = 180.0,
        max_retries: int = 3,
        retry_backoff: float = 1.0,
        max_tasks: Optional[int] = None,
    ):
        self.router = router
        self.fetch_html = fetch_html
        self.reporter = reporter
        self.request_timeout = request_timeout
        self.listing_timeout = listing_timeout
        self.queue = TaskQueue()
        self.failed_urls: List[str] = []
        self.pool = WorkerPool(
            self.queue,
            self.handle,
            max_concurrency=max_concurrency,
            task_timeout=self.timeout_for,
            max_retries=max_retries,
            retry_backoff=retry_backoff,
            max_tasks=max_tasks,
            on_failure=self.on_failure,
        )
        self._route = reporter.wrap(router.route)

    def timeout_for(self, task: CrawlTask) -> float:
        # Unlabelled start URLs are usually listings
        if task.label in (None, RouteLabel.JOB_LISTING):
            return self.listing_timeout
        return self.request_timeout

    async def handle(self, task: CrawlTask) -> None:
        try:
            html = await self.fetch_html(task.url)
        except Exception as error:
            await self.reporter.capture(error, url=task.url)
            raise

        ctx = HandlerContext(
            task=task,
            url=task.url,
            html=html,
            doc=BeautifulSoup(html, "html.parser"),
            fetch_html=self.fetch_html,
            queue=self.queue,
        )
        await self._route(ctx)

    def on_failure(self, task: CrawlTask, error: BaseException) -> None:
        logger.error(f"[Crawler] Request failed and reached maximum retries. URL: {task.url} ({error})")
        self.failed_urls.append(task.url)
        if isinstance(error, NetworkCircuitBreakerException):
            logger.error("[Crawler] Network circuit breaker tripped, stopping the crawl")
            self.pool.stop()

    async def run(self, start_urls: List[str]) -> PoolStats:
        self.queue.add(CrawlTask(url=url) for url in start_urls)
        logger.info(f"[Crawler] Starting crawl of {len(start_urls)} start URL(s)")
        return await self.pool.run()


def build_crawler(
    config: DictConfig,
    sink: RecordSink,
    reporting_sink: Optional[RecordSink],
    fetch_html: FetchHTML,
    reporter: Optional[ErrorReporter] = None,
) -> Crawler:
    """Wire one run: route table, paginator, handlers and worker pool."""
    crawler_config = config.crawler
    reporter = reporter or ErrorReporter(reporting_sink)

    # The dataset table outlives runs; count only what this run adds
    baseline = sink.count()

    paginator = ListingPaginator(
        filters=ListingFilters.from_config(config.get("filters")),
        counter=EntryCounter(config.get("max_entries")),
        persisted_count=lambda: sink.count() - baseline,
        count_only=bool(config.get("count_only")),
    )
    handlers = JobRouteHandlers(
        sink,
        paginator,
        detailed=bool(config.get("detailed")),
        detail_pause=crawler_config.detail_request_pause,
        run_id=reporter.run_id,
    )
    router = Router(build_route_rules(), handlers)

    return Crawler(
        router,
        fetch_html,
        reporter,
        max_concurrency=crawler_config.max_concurrency,
        request_timeout=crawler_config.request_handler_timeout_secs,
        listing_timeout=crawler_config.listing_handler_timeout_secs,
        max_retries=crawler_config.max_request_retries,
        retry_backoff=crawler_config.retry_backoff,
        max_tasks=crawler_config.get("max_requests_per_crawl"),
    )


def _open_sinks(config: DictConfig, db_config: Optional[DatabaseConfig]):
    storage = config.storage
    db_config = (db_config or DatabaseConfig.from_env()).for_table(storage.dataset)
    sink = RecordSink(db_config)
    reporting_sink = RecordSink(db_config.for_table(storage.reporting_dataset), engine=sink.engine)
    return sink, reporting_sink


def run_crawl(
    config: DictConfig,
    db_config: Optional[DatabaseConfig] = None,
    fetcher: Optional[URLFetcher] = None,
    verbose: bool = True,
) -> Dict[str, Any]:
    """
    Run a job catalog crawl and return results.

    Args:
        config: Crawl input (see config/crawl.yaml)
        db_config: Database to write to (default: from environment)
        fetcher: HTTP client (default: built from ``config.fetch``)
        verbose: Log the traceback of a failed run

    Returns:
        Dict with keys:
            - status: "success" or "failed"
            - rows_added: Number of records added to the dataset
            - errors_captured: Number of error reports written
            - tasks: Worker pool statistics
            - failed_urls: URLs that failed after all retries
            - time_elapsed: Time in seconds
            - dataset: Dataset (table) name
            - error: Error message (if failed)
            - traceback: Full traceback (if failed)

    Raises:
        ConfigurationError: If the input is invalid (nothing is crawled)
    """
    validate_input(config)
    start_urls = resolve_start_urls(config)

    start_time = time.time()
    result = {
        "status": "failed",
        "rows_added": 0,
        "errors_captured": 0,
        "tasks": {},
        "failed_urls": [],
        "time_elapsed": 0.0,
        "dataset": config.storage.dataset,
        "error": None,
        "traceback": None,
    }

    sink, reporting_sink = _open_sinks(config, db_config)
    fetcher = fetcher or URLFetcher.from_config(config.fetch)
    crawler = build_crawler(config, sink, reporting_sink, fetcher.fetch_text_async)
    initial_rows = sink.count()

    try:
        stats = asyncio.run(crawler.run(start_urls))
        result.update({"status": "success", "tasks": stats.as_dict()})
    except Exception as e:
        result.update({"error": str(e), "traceback": traceback.format_exc()})
        logger.error(f"[Crawler] Failed: {e}")
        if verbose:
            logger.debug(f"[Crawler] Traceback:\n{result['traceback']}")

    elapsed = time.time() - start_time
    result.update(
        {
            "rows_added": sink.count() - initial_rows,
            "errors_captured": crawler.reporter.captured,
            "failed_urls": crawler.failed_urls,
            "time_elapsed": elapsed,
        }
    )
    if result["status"] == "success":
        logger.success(f"[Crawler] Completed: {result['rows_added']} rows added to {sink.name} ({elapsed:.1f}s)")
    return result


def run_marketplace(
    config: DictConfig,
    db_config: Optional[DatabaseConfig] = None,
    fetcher: Optional[URLFetcher] = None,
) -> Dict[str, Any]:
    """
    Run a marketplace store crawl and return results.

    Returns:
        Dict with keys status, rows_added, time_elapsed, dataset, error, traceback
    """
    start_time = time.time()
    result = {
        "status": "failed",
        "rows_added": 0,
        "time_elapsed": 0.0,
        "dataset": config.storage.dataset,
        "error": None,
        "traceback": None,
    }

    sink, _ = _open_sinks(config, db_config)
    crawler = MarketplaceCrawler(
        sink,
        fetcher or URLFetcher.from_config(config.fetch),
        query=config.get("query"),
        categories=config.get("categories"),
        headless=config.browser.headless,
        response_timeout=config.browser.response_timeout_secs,
        click_pause=config.browser.click_pause,
    )

    try:
        rows_added = asyncio.run(crawler.run(list(config.start_urls)))
        result.update({"status": "success", "rows_added": rows_added})
        logger.success(f"[Marketplace] Completed: {rows_added} items added to {sink.name}")
    except Exception as e:
        result.update({"error": str(e), "traceback": traceback.format_exc()})
        logger.error(f"[Marketplace] Failed: {e}")

    result["time_elapsed"] = time.time() - start_time
    return result
