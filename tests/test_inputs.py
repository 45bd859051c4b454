"""
Tests for crawl input loading and validation.
"""

from pathlib import Path

import pytest
from omegaconf import OmegaConf

from harvest.contexts.routing import DATASET_TYPE_TO_URL
from harvest.contexts.scraping.errors import ConfigurationError
from harvest.contexts.scraping.inputs import load_crawl_input, resolve_start_urls, validate_input

DEFAULTS = Path(__file__).resolve().parents[1] / "config" / "crawl.yaml"


def load(overrides, config_paths=None):
    return load_crawl_input(config_paths, overrides, defaults_path=DEFAULTS)


def test_defaults_merged_with_overrides():
    config = load({"dataset_type": "jobOffers", "max_entries": 50, "filters": {"query": "python"}})

    assert config.max_entries == 50
    assert config.filters.query == "python"
    assert config.filters.last_n_days is None
    assert config.crawler.max_concurrency == 5


def test_none_overrides_keep_defaults():
    config = load({"dataset_type": "jobOffers", "detailed": None, "crawler": {"max_concurrency": None}})

    assert config.detailed is False
    assert config.crawler.max_concurrency == 5


def test_extra_config_file_is_merged(tmp_path):
    run_file = tmp_path / "run.yaml"
    run_file.write_text("dataset_type: partners\ncrawler:\n  max_concurrency: 2\n")

    config = load({}, [run_file])

    assert config.dataset_type == "partners"
    assert config.crawler.max_concurrency == 2


def test_start_urls_and_dataset_type_are_exclusive():
    with pytest.raises(ConfigurationError, match="Only one"):
        load({"start_urls": ["https://www.profesia.sk/praca/"], "dataset_type": "jobOffers"})


def test_one_of_start_urls_and_dataset_type_is_required():
    with pytest.raises(ConfigurationError, match="One of"):
        load({})


@pytest.mark.parametrize(
    "overrides",
    [
        {"dataset_type": "jobs"},
        {"start_urls": ["not a url"]},
        {"start_urls": ["ftp://www.profesia.sk/praca/"]},
        {"dataset_type": "jobOffers", "filters": {"min_salary_period": "year"}},
        {"dataset_type": "jobOffers", "filters": {"employment_type": "freelance"}},
        {"dataset_type": "jobOffers", "filters": {"remote_work_type": "sometimes"}},
        {"dataset_type": "jobOffers", "filters": {"last_n_days": -1}},
        {"dataset_type": "jobOffers", "filters": {"min_salary_value": -100}},
        {"dataset_type": "jobOffers", "max_entries": -5},
        {"dataset_type": "jobOffers", "crawler": {"max_concurrency": 0}},
    ],
)
def test_invalid_input_is_rejected(overrides):
    with pytest.raises(ConfigurationError):
        load(overrides)


def test_configuration_error_is_a_value_error():
    with pytest.raises(ValueError):
        validate_input({"start_urls": [], "dataset_type": None})


def test_resolve_start_urls():
    explicit = OmegaConf.create({"start_urls": ["https://www.profesia.sk/praca/python/"], "dataset_type": None})
    by_type = OmegaConf.create({"start_urls": [], "dataset_type": "locations"})

    assert resolve_start_urls(explicit) == ["https://www.profesia.sk/praca/python/"]
    assert resolve_start_urls(by_type) == [DATASET_TYPE_TO_URL["locations"]]
