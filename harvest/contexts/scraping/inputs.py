"""
Crawl input: loading and validation.

Defaults live in ``CONFIG_PATH/crawl.yaml``; run-specific values are merged
on top. Invalid input raises ``ConfigurationError`` before anything is
crawled.
"""

import os
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Union

from dotenv import load_dotenv
from omegaconf import DictConfig

from harvest.contexts.routing import DATASET_TYPE_TO_URL
from harvest.contexts.scraping.errors import ConfigurationError
from harvest.contexts.scraping.pagination import EMPLOYMENT_TYPE_PATHS, REMOTE_WORK_CODES, SALARY_PERIOD_CODES
from harvest.utils import merge_configs, validate_url

load_dotenv()
CONFIG_PATH = Path(os.getenv("CONFIG_PATH", "config"))


def load_crawl_input(
    config_paths: Optional[Sequence[Union[str, Path]]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    defaults_path: Optional[Path] = None,
) -> DictConfig:
    """
    Load and validate the crawl input.

    Args:
        config_paths: Extra YAML files merged over the defaults, in order
        overrides: Values merged last (None values are ignored)
        defaults_path: Defaults file (default: CONFIG_PATH/crawl.yaml)

    Raises:
        ConfigurationError: If the merged input is invalid
    """
    paths = [defaults_path or CONFIG_PATH / "crawl.yaml", *(config_paths or [])]
    config = merge_configs(paths, overrides)
    validate_input(config)
    return config


def _check_choice(value, choices, name: str) -> None:
    if value is not None and value not in choices:
        raise ConfigurationError(f'Invalid {name} "{value}". Allowed values: {", ".join(choices)}')


def _check_non_negative(value, name: str) -> None:
    if value is not None and value < 0:
        raise ConfigurationError(f"{name} must not be negative (got {value})")


def validate_input(config: Union[DictConfig, Mapping[str, Any]]) -> None:
    """
    Check the crawl input.

    Exactly one of ``start_urls`` and ``dataset_type`` must be given.
    """
    start_urls = config.get("start_urls") or []
    dataset_type = config.get("dataset_type")

    if start_urls and dataset_type:
        raise ConfigurationError("Only one of start_urls and dataset_type can be given")
    if not start_urls and not dataset_type:
        raise ConfigurationError("One of start_urls or dataset_type must be given")

    _check_choice(dataset_type, list(DATASET_TYPE_TO_URL), "dataset_type")

    for url in start_urls:
        try:
            validate_url(url)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    filters = config.get("filters") or {}
    _check_choice(filters.get("min_salary_period"), list(SALARY_PERIOD_CODES), "filters.min_salary_period")
    _check_choice(filters.get("employment_type"), list(EMPLOYMENT_TYPE_PATHS), "filters.employment_type")
    _check_choice(filters.get("remote_work_type"), list(REMOTE_WORK_CODES), "filters.remote_work_type")
    _check_non_negative(filters.get("min_salary_value"), "filters.min_salary_value")
    _check_non_negative(filters.get("last_n_days"), "filters.last_n_days")
    _check_non_negative(config.get("max_entries"), "max_entries")

    crawler = config.get("crawler") or {}
    max_concurrency = crawler.get("max_concurrency")
    if max_concurrency is not None and max_concurrency < 1:
        raise ConfigurationError(f"crawler.max_concurrency must be at least 1 (got {max_concurrency})")


def resolve_start_urls(config: Union[DictConfig, Mapping[str, Any]]) -> List[str]:
    """Start URLs given explicitly, or the canonical URL of the dataset type."""
    start_urls = config.get("start_urls")
    if start_urls:
        return [str(url) for url in start_urls]
    return [DATASET_TYPE_TO_URL[config.get("dataset_type")]]
