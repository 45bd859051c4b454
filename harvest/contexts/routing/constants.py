"""Canonical URLs of the job catalog site."""

from typing import Dict

JOB_OFFERS_URL = "https://www.profesia.sk/praca/"

DATASET_TYPE_TO_URL: Dict[str, str] = {
    "jobOffers": JOB_OFFERS_URL,
    "industries": "https://www.profesia.sk/praca/zoznam-pracovnych-oblasti/",
    "professions": "https://www.profesia.sk/praca/zoznam-pozicii/",
    "companies": "https://www.profesia.sk/praca/zoznam-spolocnosti/",
    "locations": "https://www.profesia.sk/praca/zoznam-lokalit/",
    "languages": "https://www.profesia.sk/praca/zoznam-jazykovych-znalosti/",
    "partners": "https://www.profesia.sk/partneri/",
}

DATASET_TYPES = list(DATASET_TYPE_TO_URL.keys())
