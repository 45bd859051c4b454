"""
Page extractors.

Pure functions from a parsed page (BeautifulSoup) and its URL to records.
"""

from harvest.contexts.scraping.extractors.detail import PRIVATE_FIELDS, extract_job_detail
from harvest.contexts.scraping.extractors.listing import (
    PageCountInfo,
    extract_job_offer_entries,
    parse_offer_id,
    parse_page_count,
)
from harvest.contexts.scraping.extractors.partners import extract_partner_entries
from harvest.contexts.scraping.extractors.related_lists import (
    extract_list_entries,
    is_locations_page,
    tab_urls,
    to_generic_entries,
    to_location_entries,
)

__all__ = [
    "PRIVATE_FIELDS",
    "extract_job_detail",
    "PageCountInfo",
    "extract_job_offer_entries",
    "parse_offer_id",
    "parse_page_count",
    "extract_partner_entries",
    "extract_list_entries",
    "is_locations_page",
    "tab_urls",
    "to_generic_entries",
    "to_location_entries",
]
