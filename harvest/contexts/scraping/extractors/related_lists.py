"""
Job-related list pages: industries, professions, languages, companies, locations.

    https://www.profesia.sk/praca/zoznam-pracovnych-oblasti/
    https://www.profesia.sk/praca/zoznam-pozicii/
    https://www.profesia.sk/praca/zoznam-jazykovych-znalosti/
    https://www.profesia.sk/praca/zoznam-spolocnosti/
    https://www.profesia.sk/praca/zoznam-lokalit/

Some of these pages split their links into tabs; each tab is a separate
page selected with ``?tab_index=<n>``.
"""

import re
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup
from loguru import logger

from harvest.contexts.scraping.extractors.dom import node_attr, node_text
from harvest.utils import clean_text, set_query_params, text_as_number

LOCATIONS_PAGE_PATTERN = re.compile(r"[\W]profesia\.sk/praca/zoznam-lokalit", re.IGNORECASE)
HOME_COUNTRY = "Slovenská republika"


def is_locations_page(url: str) -> bool:
    return bool(LOCATIONS_PAGE_PATTERN.search(url))


def extract_nav_tabs(doc: BeautifulSoup) -> List[Optional[str]]:
    tabs = [node_text(el) for el in doc.select(".nav-tabs a")]
    logger.info(f"[Related lists] Found {len(tabs)} tabs")
    return tabs


def tab_urls(url: str, doc: BeautifulSoup) -> List[str]:
    """
    URLs of every tab of the page.

    Pages without tab navigation still yield one URL (``tab_index=0``).
    """
    tabs = extract_nav_tabs(doc) or [None]
    return [set_query_params(url, {"tab_index": index}) for index in range(len(tabs))]


def _own_text(el, skip_tag: str) -> Optional[str]:
    return clean_text(" ".join(s for s in el.find_all(string=True) if s.parent.name != skip_tag))


def extract_list_entries(doc: BeautifulSoup, url: str) -> List[Dict[str, Any]]:
    """
    Extract the links of one tab.

    Heading links (containing an ``h2``) carry their count in a nested
    ``span``; other links take the count from a ``span`` in their parent.
    Every entry remembers the title of the last heading above it.
    """
    heading = doc.find("h1")
    container = heading.parent if heading is not None else doc

    entries = []
    last_heading_title = None
    for link in container.select(".card a"):
        href = link.get("href")
        if not href or href.startswith("#"):
            continue

        if link.find("h2") is not None:
            count = text_as_number(node_text(link.find("span"))) or 0
            name = last_heading_title = _own_text(link, "span")
        else:
            name = node_text(link)
            count_el = link.parent.find("span") if link.parent is not None else None
            count = text_as_number(node_text(count_el)) or 0

        entries.append({
            "url": node_attr(link, "href", url),
            "name": name,
            "count": count,
            "last_heading_title": last_heading_title,
        })

    logger.info(f"[Related lists] Found {len(entries)} entries.")
    return entries


def to_generic_entries(entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [{"url": e["url"], "name": e["name"], "count": e["count"]} for e in entries]


def to_location_entries(entries: List[Dict[str, Any]], tab_index: int) -> List[Dict[str, Any]]:
    """
    Location entries: the first tab lists regions of the home country, the
    other tabs list foreign locations grouped by country.
    """
    is_home_country = tab_index == 0
    return [
        {
            "url": e["url"],
            "name": e["name"],
            "count": e["count"],
            "region": e["last_heading_title"] if is_home_country else None,
            "country": HOME_COUNTRY if is_home_country else e["last_heading_title"],
        }
        for e in entries
    ]
