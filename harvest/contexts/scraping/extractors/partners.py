"""Partners page extraction (https://www.profesia.sk/partneri)."""

from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup
from loguru import logger

from harvest.contexts.scraping.extractors.dom import first_attr, node_attr, node_text
from harvest.utils import clean_text


def extract_partner_entry(entry_el, url: str, category: Optional[str]) -> Dict[str, Any]:
    info_el = entry_el.select_one("div:nth-child(2)")
    link = info_el.find("a") if info_el is not None else None

    description = None
    if info_el is not None:
        description = clean_text(
            " ".join(s for s in info_el.find_all(string=True) if link is None or s.find_parent("a") is not link)
        )

    return {
        "name": node_text(link),
        "url": node_attr(link, "href", url),
        "description": description,
        "logo_url": first_attr(entry_el, "img", "src", url),
        "category": category,
    }


def extract_partner_entries(doc: BeautifulSoup, url: str) -> List[Dict[str, Any]]:
    """Partners grouped by category; one tab card per category, in tab order."""
    categories = [name for name in (node_text(el) for el in doc.select(".nav-tabs a")) if name]
    cards = doc.select(".tab-content .card")
    logger.info(f"[Partners] Found {len(categories)} partners categories {categories}")

    entries = []
    for index, card in enumerate(cards):
        category = categories[index] if index < len(categories) else None
        card_entries = [extract_partner_entry(row, url, category) for row in card.select(".row")]
        logger.info(f"[Partners] Found {len(card_entries)} entries for category {category}")
        entries.extend(card_entries)

    logger.info(f"[Partners] Done extracting partners entries (total {len(entries)})")
    return entries
