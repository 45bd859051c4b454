"""
Tests for listing, detail, related-list and partners page extraction.
"""

from bs4 import BeautifulSoup

from conftest import PARTNERS_PAGE, RELATED_LIST_PAGE, SITE, detail_page, listing_page
from harvest.contexts.scraping.extractors import (
    extract_job_detail,
    extract_job_offer_entries,
    extract_list_entries,
    extract_partner_entries,
    is_locations_page,
    parse_offer_id,
    parse_page_count,
    tab_urls,
    to_generic_entries,
    to_location_entries,
)

LISTING_URL = f"{SITE}/praca/"


def parse(html):
    return BeautifulSoup(html, "html.parser")


def test_listing_rows_skip_ads():
    entries = extract_job_offer_entries(parse(listing_page(1, 3, 3)), LISTING_URL)

    assert [entry["offer_id"] for entry in entries] == ["O1001", "O1002", "O1003"]


def test_listing_row_fields():
    entry = extract_job_offer_entries(parse(listing_page(7, 1, 7)), LISTING_URL)[0]

    assert entry["listing_url"] == LISTING_URL
    assert entry["offer_name"] == "Python developer 7"
    assert entry["offer_url"] == f"{SITE}/praca/acme-7/O1007"
    assert entry["employer_name"] == "ACME 7 s.r.o."
    assert entry["employer_url"] == f"{SITE}/praca/acme-7/C507"
    assert entry["employer_logo_url"] == f"{SITE}/logos/7.png"
    assert entry["location"] == "Bratislava"
    assert entry["labels"] == ["Práca z domu"]
    assert entry["last_change_relative_time"] == "pred 2 dňami"
    assert entry["last_change_type"] == "added"
    assert entry["salary_range"] == "Od 1 500 EUR/mesiac"
    assert entry["salary_range_lower"] == 1500
    assert entry["salary_range_upper"] is None
    assert entry["salary_currency"] == "EUR"
    assert entry["salary_period"] == "mesiac"


def test_page_count():
    info = parse_page_count(parse(listing_page(21, 20, 1234)))

    assert (info.range_lower, info.range_upper, info.total) == (21, 40, 1234)
    assert parse_page_count(parse("<html><body></body></html>")) is None


def test_parse_offer_id():
    assert parse_offer_id("https://www.profesia.sk/praca/gohealth/O3964543") == "O3964543"
    assert parse_offer_id("https://www.profesia.sk/praca/") is None
    assert parse_offer_id(None) is None


def test_job_detail_fields():
    url = f"{SITE}/praca/acme-4/O1004"
    record = extract_job_detail(parse(detail_page(4)), url)

    assert record["offer_id"] == "O1004"
    assert record["offer_url"] == url
    assert record["offer_name"] == "Python developer 4"
    assert record["employer_name"] == "ACME 4 s.r.o."
    assert record["employer_url"] == f"{SITE}/praca/acme-4/C504"
    assert record["employment_types"] == ["fte", "selfemploy"]
    assert record["phone_numbers"] == ["+421 900 000 000"]
    assert record["date_posted"] == "1.2.2024"
    assert record["labels"] == ["nové"]
    assert record["salary_range_lower"] == 35000
    assert record["salary_range_upper"] == 45000
    assert record["salary_period"] == "rok"
    assert record["job_info_responsibilities"] == "Writing Python"
    assert record["job_info_benefits"] == "Home office"
    assert record["employer_contact"] == "hr@acme.sk"
    assert record["location_categs"] == [{"url": "/praca/bratislava/", "name": "Bratislava"}]
    assert record["position_categs"] == [{"url": "/praca/programator/", "name": "Programátor"}]


def test_job_detail_keeps_listing_fields_of_partial_record():
    partial = {"listing_url": LISTING_URL, "last_change_type": "modified", "offer_name": "Old name"}

    record = extract_job_detail(parse(detail_page(4)), f"{SITE}/praca/acme-4/O1004", partial_record=partial)

    assert record["listing_url"] == LISTING_URL
    assert record["last_change_type"] == "modified"
    assert record["offer_name"] == "Python developer 4"


def test_job_detail_of_unexpected_page_has_empty_fields():
    record = extract_job_detail(parse("<html><body><p>Gone</p></body></html>"), f"{SITE}/praca/x/O99")

    assert record["offer_id"] == "O99"
    assert record["offer_name"] is None
    assert record["location_categs"] == []


def test_tab_urls():
    url = f"{SITE}/praca/zoznam-lokalit/"

    assert tab_urls(url, parse(RELATED_LIST_PAGE)) == [f"{url}?tab_index=0", f"{url}?tab_index=1"]
    assert tab_urls(url, parse("<html></html>")) == [f"{url}?tab_index=0"]


def test_related_list_entries():
    url = f"{SITE}/praca/zoznam-lokalit/"
    entries = extract_list_entries(parse(RELATED_LIST_PAGE), url)

    assert [(e["name"], e["count"], e["last_heading_title"]) for e in entries] == [
        ("Bratislavský kraj", 1234, "Bratislavský kraj"),
        ("Bratislava", 1100, "Bratislavský kraj"),
        ("Senec", 34, "Bratislavský kraj"),
    ]
    assert entries[1]["url"] == f"{SITE}/praca/bratislava/"


def test_location_entries_by_tab():
    entries = extract_list_entries(parse(RELATED_LIST_PAGE), f"{SITE}/praca/zoznam-lokalit/")

    home = to_location_entries(entries, tab_index=0)[1]
    abroad = to_location_entries(entries, tab_index=1)[1]

    assert (home["region"], home["country"]) == ("Bratislavský kraj", "Slovenská republika")
    assert (abroad["region"], abroad["country"]) == (None, "Bratislavský kraj")
    assert set(to_generic_entries(entries)[0]) == {"url", "name", "count"}


def test_is_locations_page():
    assert is_locations_page(f"{SITE}/praca/zoznam-lokalit/?tab_index=2")
    assert not is_locations_page(f"{SITE}/praca/zoznam-pozicii/")


def test_partner_entries():
    entries = extract_partner_entries(parse(PARTNERS_PAGE), f"{SITE}/partneri")

    assert entries == [
        {
            "name": "Media SK",
            "url": "https://media.example.sk",
            "description": "Najčítanejší portál",
            "logo_url": f"{SITE}/logos/media.png",
            "category": "Mediálni partneri",
        },
        {
            "name": "School",
            "url": "https://school.example.sk",
            "description": "Kurzy a školenia",
            "logo_url": f"{SITE}/logos/school.png",
            "category": "Vzdelávanie",
        },
    ]
