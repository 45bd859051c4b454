"""
Crawling domain.

Fetches catalog and marketplace pages, extracts records, drives listing
pagination and facet interception, and runs the crawl.
"""

from harvest.contexts.scraping.errors import (
    ConfigurationError,
    ErrorReporter,
    FetchError,
    HarvestError,
)
from harvest.contexts.scraping.facets import (
    FacetInterceptor,
    InterceptedRequest,
    fetch_facet_items,
    merge_hits,
    wait_for_facet,
)
from harvest.contexts.scraping.handlers import HandlerContext, JobRouteHandlers
from harvest.contexts.scraping.inputs import load_crawl_input, resolve_start_urls, validate_input
from harvest.contexts.scraping.orchestration import (
    Crawler,
    build_crawler,
    run_crawl,
    run_marketplace,
    setup_logger,
)
from harvest.contexts.scraping.pagination import (
    EntryCounter,
    ListingFilters,
    ListingPaginator,
    build_filtered_url,
    check_entry_limit,
    next_page_url,
)
from harvest.contexts.scraping.queue import CrawlTask, TaskQueue, WorkerPool
from harvest.contexts.scraping.requests import (
    NetworkCircuitBreakerException,
    URLFetcher,
    classify_http_outcome,
)

__all__ = [
    "ConfigurationError",
    "ErrorReporter",
    "FetchError",
    "HarvestError",
    "FacetInterceptor",
    "InterceptedRequest",
    "fetch_facet_items",
    "merge_hits",
    "wait_for_facet",
    "HandlerContext",
    "JobRouteHandlers",
    "load_crawl_input",
    "resolve_start_urls",
    "validate_input",
    "Crawler",
    "build_crawler",
    "run_crawl",
    "run_marketplace",
    "setup_logger",
    "EntryCounter",
    "ListingFilters",
    "ListingPaginator",
    "build_filtered_url",
    "check_entry_limit",
    "next_page_url",
    "CrawlTask",
    "TaskQueue",
    "WorkerPool",
    "NetworkCircuitBreakerException",
    "URLFetcher",
    "classify_http_outcome",
]
