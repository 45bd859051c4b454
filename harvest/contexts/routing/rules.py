"""
Route rules for the job catalog site.

A rule pairs a predicate with either a handler label or an override action.
Rules are evaluated in order and the first match wins, so the order in
``build_route_rules`` matters: several predicates can be true for the same
URL (a company profile URL is also a ``/praca/`` URL).
"""

import inspect
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Union

from bs4 import BeautifulSoup
from loguru import logger

from harvest.contexts.routing.constants import JOB_OFFERS_URL
from harvest.contexts.routing.labels import RouteLabel

Predicate = Callable[[str, Optional[BeautifulSoup]], Union[Any, Awaitable[Any]]]
# Actions receive the URL and the handler context of the task being routed
Action = Callable[[str, Any], Awaitable[None]]

MAIN_PAGE_PATTERN = re.compile(r"[\W]profesia\.sk/?(?:[?#~]|$)", re.IGNORECASE)
JOB_RELATED_LIST_PATTERN = re.compile(r"[\W]profesia\.sk/praca/zoznam-[a-z0-9-]+/?(?:[?#~]|$)", re.IGNORECASE)
JOB_SECTION_PATTERN = re.compile(r"[\W]profesia\.sk/praca/", re.IGNORECASE)
PARTNERS_PATTERN = re.compile(r"[\W]profesia\.sk/partneri/?(?:[?#~]|$)", re.IGNORECASE)

# /praca/accenture/C3691
COMPANY_PATH_PATTERN = re.compile(r"/praca/.*?/C[0-9]{2,}")
# /praca/?company_id=187125
COMPANY_QUERY_PATTERN = re.compile(r"company_id=[0-9]{2,}")
# /praca/gohealth/O3964543
JOB_OFFER_PATH_PATTERN = re.compile(r"/praca/.*?/O[0-9]{2,}")

CUSTOM_DESIGN_SELECTOR = "body.listing.custom-design"
STANDARD_DESIGN_SELECTOR = "body.listing:not(.custom-design)"


@dataclass(frozen=True)
class RouteRule:
    """
    One entry of the ordered route table.

    A rule with ``label=None`` must have an ``action``; such rules are
    handled specially and never dispatched to a label handler.
    """

    name: str
    predicate: Predicate
    label: Optional[RouteLabel] = None
    action: Optional[Action] = None

    def __post_init__(self):
        if self.label is None and self.action is None:
            raise ValueError(f"Route rule '{self.name}' needs a handler label or an action")

    async def matches(self, url: str, doc: Optional[BeautifulSoup] = None) -> bool:
        result = self.predicate(url, doc)
        if inspect.isawaitable(result):
            result = await result
        return bool(result)


def is_main_page(url: str, doc=None) -> bool:
    return bool(MAIN_PAGE_PATTERN.search(url))


def is_job_related_list(url: str, doc=None) -> bool:
    return bool(JOB_RELATED_LIST_PATTERN.search(url))


def is_job_section(url: str, doc=None) -> bool:
    return bool(JOB_SECTION_PATTERN.search(url))


def is_company_profile(url: str, doc=None) -> bool:
    return is_job_section(url) and bool(COMPANY_PATH_PATTERN.search(url) or COMPANY_QUERY_PATTERN.search(url))


def is_job_offer(url: str, doc=None) -> bool:
    return is_job_section(url) and bool(JOB_OFFER_PATH_PATTERN.search(url))


def is_partners_page(url: str, doc=None) -> bool:
    return bool(PARTNERS_PATTERN.search(url))


def has_custom_design(doc: Optional[BeautifulSoup]) -> bool:
    return doc is not None and doc.select_one(CUSTOM_DESIGN_SELECTOR) is not None


def has_standard_design(doc: Optional[BeautifulSoup]) -> bool:
    return doc is not None and doc.select_one(STANDARD_DESIGN_SELECTOR) is not None


def is_custom_company_profile(url: str, doc: Optional[BeautifulSoup] = None) -> bool:
    return is_company_profile(url) and has_custom_design(doc)


def is_standard_company_profile(url: str, doc: Optional[BeautifulSoup] = None) -> bool:
    return is_company_profile(url) and has_standard_design(doc)


async def redirect_to_job_offers(url: str, ctx) -> None:
    logger.info(f"[Router] Redirecting to {JOB_OFFERS_URL}")
    await ctx.enqueue_url(JOB_OFFERS_URL, forefront=True)


async def skip_unsupported_company_page(url: str, ctx) -> None:
    logger.error(
        "[Router] UNSUPPORTED PAGE TYPE DETECTED - company page with custom design. "
        f"These are not supported. URL will not be processed. URL: {url}"
    )


def build_route_rules() -> Tuple[RouteRule, ...]:
    """
    Build the ordered route table for one run.

    Order:
        1. main page, redirected to the job offers listing
        2. job-related list pages (/praca/zoznam-*)
        3. company profile with custom design, logged and skipped
        4. company profile with standard design, handled as a listing
           (it is a listing with an extra company info box)
        5. job offer detail
        6. catch-all /praca/ listing
        7. partners page
    """
    return (
        RouteRule(name="Main page", predicate=is_main_page, action=redirect_to_job_offers),
        RouteRule(name="Job related list", predicate=is_job_related_list, label=RouteLabel.JOB_RELATED_LIST),
        RouteRule(name="Company detail - custom", predicate=is_custom_company_profile, action=skip_unsupported_company_page),
        RouteRule(name="Company detail - standard", predicate=is_standard_company_profile, label=RouteLabel.JOB_LISTING),
        RouteRule(name="Job detail", predicate=is_job_offer, label=RouteLabel.JOB_DETAIL),
        RouteRule(name="Job listing", predicate=is_job_section, label=RouteLabel.JOB_LISTING),
        RouteRule(name="Partners", predicate=is_partners_page, label=RouteLabel.PARTNERS),
    )
