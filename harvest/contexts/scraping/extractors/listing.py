"""
Listing page extraction.

A listing page (``/praca/...``) shows up to 20 job offer rows and a
"1 - 20 z 1 234" counter of the total results for the current filters.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup
from loguru import logger

from harvest.contexts.scraping.extractors.dom import node_attr, node_text
from harvest.utils import clean_text, parse_salary_text, text_as_number

OFFER_ID_PATTERN = re.compile(r"O\d{2,}")

ROW_SELECTOR = ".list-row:not(.native-agent):not(.reach-list)"
SALARY_LABEL_SELECTOR = '.label-group > a[data-dimension7="Salary label"]'
OTHER_LABELS_SELECTOR = '.label-group > a:not([data-dimension7="Salary label"])'


@dataclass(frozen=True)
class PageCountInfo:
    total: int
    range_lower: int
    range_upper: int


def parse_offer_id(url: Optional[str]) -> Optional[str]:
    """``https://www.profesia.sk/praca/gohealth/O3964543`` -> ``O3964543``"""
    if not url:
        return None
    match = OFFER_ID_PATTERN.search(url)
    return match.group(0) if match else None


def _last_change(row) -> Dict[str, Optional[str]]:
    footer = row.select_one(".list-footer .info")
    if footer is None:
        return {"last_change_relative_time": None, "last_change_type": None}

    relative_time = node_text(footer.find("strong"))
    # Footer reads "pridané <strong>pred 2 dňami</strong>" or "aktualizované ..."
    change_text = clean_text(
        " ".join(s for s in footer.find_all(string=True) if s.parent.name != "strong")
    )
    change_type = "added" if (change_text or "").lower() == "pridané" else "modified"
    return {"last_change_relative_time": relative_time, "last_change_type": change_type}


def extract_job_offer_row(row, listing_url: str) -> Dict[str, Any]:
    logo_link = row.select_one(".offer-company-logo-link")
    offer_link = row.select_one("h2 a")
    offer_url = node_attr(offer_link, "href", listing_url)

    labels = [label for label in (node_text(el) for el in row.select(OTHER_LABELS_SELECTOR)) if label]

    return {
        "listing_url": listing_url,
        "employer_name": node_text(row.select_one(".employer")),
        "employer_url": node_attr(logo_link, "href", listing_url),
        "employer_logo_url": node_attr(row.select_one(".offer-company-logo-link img"), "src", listing_url),
        "offer_name": node_text(offer_link),
        "offer_url": offer_url,
        "offer_id": parse_offer_id(offer_url),
        "location": node_text(row.select_one(".job-location")),
        "labels": labels,
        **_last_change(row),
        **parse_salary_text(node_text(row.select_one(SALARY_LABEL_SELECTOR))),
    }


def extract_job_offer_entries(doc: BeautifulSoup, url: str) -> List[Dict[str, Any]]:
    """Extract all job offer rows of a listing page, in page order."""
    logger.info(f"[Listing] Extracting entries from the page. URL: {url}")
    entries = [extract_job_offer_row(row, url) for row in doc.select(ROW_SELECTOR)]
    logger.info(f"[Listing] Found {len(entries)} entries.")
    return entries


def parse_page_count(doc: BeautifulSoup) -> Optional[PageCountInfo]:
    """
    Parse the results counter, e.g. "1 - 20 z 1 234".

    Returns:
        PageCountInfo, or None when the page has no counter
    """
    count_text = node_text(doc.select_one(".offer-counter"))
    if not count_text:
        return None

    raw_range, _, raw_total = count_text.partition(" z ")
    if not raw_total:
        raw_range, _, raw_total = count_text.partition("z")
    lower, _, upper = raw_range.partition("-")

    info = PageCountInfo(
        total=text_as_number(raw_total) or 0,
        range_lower=text_as_number(lower) or 0,
        range_upper=text_as_number(upper) or 0,
    )
    logger.info(f"[Listing] Parsed results count: {info}")
    return info
