"""
Shared utility functions.
"""

from harvest.utils.async_helpers import first_completed, poll
from harvest.utils.config_helpers import drop_none, merge_configs
from harvest.utils.helpers import (
    chunked,
    get_query_param,
    normalize_url,
    resolve_url,
    set_query_params,
    urls_equal,
    validate_url,
)
from harvest.utils.text_processing import clean_text, parse_salary_text, text_as_number

__all__ = [
    # URL utilities
    "chunked",
    "get_query_param",
    "normalize_url",
    "resolve_url",
    "set_query_params",
    "urls_equal",
    "validate_url",
    # Text processing
    "clean_text",
    "parse_salary_text",
    "text_as_number",
    # Async utilities
    "first_completed",
    "poll",
    # Configuration utilities
    "drop_none",
    "merge_configs",
]
