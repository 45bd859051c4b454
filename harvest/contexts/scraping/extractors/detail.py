"""
Job offer detail page extraction.

Example pages:
    https://www.profesia.sk/praca/komix-sk/O4556386
    https://www.profesia.sk/praca/gohealth/O3964543
"""

from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup
from loguru import logger

from harvest.contexts.scraping.extractors.dom import first_attr, first_text, node_text
from harvest.contexts.scraping.extractors.listing import parse_offer_id
from harvest.utils import chunked, clean_text, parse_salary_text

EMPLOYMENT_TYPE_TEXTS = {
    "fte": "plný úväzok",
    "pte": "skrátený úväzok",
    "selfemploy": "živnosť",
    "voluntary": "na dohodu (brigády)",
    "internship": "internship, stáž",
}

# Description sections: each is a sequence of (title, content) element pairs.
# A field is filled when the lower-cased title contains one of its fragments.
DESCRIPTION_SECTIONS = (
    (
        ".job-info",
        {
            "job_info_responsibilities": ("náplň práce", "právomoci", "zodpovednosti"),
            "job_info_benefits": ("výhody", "benefity"),
            "job_info_deadline": ("termín", "ukončenia", "výberového konania"),
        },
    ),
    (
        ".job-requirements",
        {
            "job_req_education": ("vzdelaním",),
            "job_req_expertise": ("vzdelanie v odbore",),
            "job_req_language": ("jazykové",),
            "job_req_other": ("ostatné",),
            "job_req_drivers_license": ("vodičský",),
            "job_req_industry": ("pozícii", "v oblasti"),
            "job_req_suitable_for_graduate": ("absolventa",),
            "job_req_personal_skills": ("osobnostné", "predpoklady", "zručnosti"),
        },
    ),
    (
        ".company-info",
        {
            "employer_description": ("charakteristika spoločnosti",),
            "employee_count": ("počet zamestnancov",),
            "employer_contact": ("kontakt",),
        },
    ),
)

# Fields holding personal contact data; redacted before records are stored
PRIVATE_FIELDS = frozenset({"employer_contact", "phone_numbers"})


def extract_basic_info(entry_el, url: str) -> Dict[str, Any]:
    employment_text = first_text(entry_el, '[itemprop="employmentType"]') or ""
    employment_types = [key for key, text in EMPLOYMENT_TYPE_TEXTS.items() if text in employment_text]

    phone_numbers = []
    if entry_el is not None:
        phone_numbers = [t for t in (node_text(el) for el in entry_el.select(".details-section .tel")) if t]

    return {
        "offer_name": first_text(entry_el, '[itemprop="title"]'),
        "employer_name": first_text(entry_el, '[itemprop="hiringOrganization"]'),
        "employer_url": first_attr(entry_el, ".easy-design-btn-offer-list", "href", url),
        "employer_logo_url": first_attr(entry_el, ".easy-design-logo img", "src", url),
        "employment_types": employment_types,
        "start_date": first_text(entry_el, ".panel-body > .row:nth-child(2) > div:nth-child(1) span"),
        "location": first_text(entry_el, '[itemprop="jobLocation"]'),
        "phone_numbers": phone_numbers,
        "date_posted": first_text(entry_el, '[itemprop="datePosted"]'),
    }


def extract_description_info(entry_el) -> Dict[str, Optional[str]]:
    fields: Dict[str, Optional[str]] = {}
    if entry_el is None:
        return fields

    for selector, subsections in DESCRIPTION_SECTIONS:
        section_el = entry_el.select_one(selector)
        if section_el is None:
            continue
        for el in section_el.select(".subtitle-line"):
            el.decompose()

        children = section_el.find_all(recursive=False)
        for pair in chunked(children, 2):
            if len(pair) < 2:
                continue
            title_el, content_el = pair
            title = (clean_text(title_el.get_text(" ")) or "").lower()
            for field_name, fragments in subsections.items():
                if any(fragment in title for fragment in fragments):
                    for el in content_el.select(".text-gray"):
                        el.decompose()
                    fields[field_name] = node_text(content_el)
    return fields


def extract_categories(entry_el) -> Dict[str, List[Dict[str, Optional[str]]]]:
    """Location and position categories listed under the offer's overview box."""
    location_categs: List[Dict[str, Optional[str]]] = []
    position_categs: List[Dict[str, Optional[str]]] = []

    info_el = entry_el.select_one(".overall-info .hidden-xs") if entry_el is not None else None
    if info_el is None:
        return {"location_categs": location_categs, "position_categs": position_categs}

    heading = ""
    for child in info_el.find_all(recursive=False):
        if child.name == "strong":
            heading = (clean_text(child.get_text(" ")) or "").lower()
        elif child.name == "a":
            categ = {"url": child.get("href"), "name": node_text(child)}
            if "lokalit" in heading:
                location_categs.append(categ)
            if "pozícia" in heading:
                position_categs.append(categ)

    return {"location_categs": location_categs, "position_categs": position_categs}


def extract_job_detail(
    doc: BeautifulSoup,
    url: Optional[str],
    partial_record: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Extract a job offer detail page.

    Args:
        doc: Parsed detail page
        url: URL of the detail page (source of ``offer_id``)
        partial_record: The listing-row record this page was reached from,
            if any. Detail fields override its fields; listing-only fields
            (``listing_url``, last change info) are kept.
    """
    logger.info(f"[Detail] Extracting job details from the page. URL: {url}")
    container = doc.select_one("#content .container")
    entry_el = container.select_one("#detail .card-content") if container is not None else None

    labels = []
    if container is not None:
        labels = [t.lower() for t in (node_text(el) for el in container.select(".label")) if t]

    partial_record = partial_record or {}
    salary_text = first_text(entry_el, ".salary-range")

    record = {
        **partial_record,
        "listing_url": partial_record.get("listing_url"),
        "last_change_relative_time": partial_record.get("last_change_relative_time"),
        "last_change_type": partial_record.get("last_change_type"),
        **extract_basic_info(entry_el, url),
        **parse_salary_text(salary_text),
        **extract_description_info(entry_el),
        **extract_categories(entry_el),
        "offer_url": url,
        "offer_id": parse_offer_id(url),
        "labels": labels,
    }
    logger.info(f"[Detail] Done extracting job details (ID: {record['offer_id']})")
    return record
