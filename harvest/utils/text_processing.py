"""
Text processing utilities for HARVEST.

Small parsers for the free text found on listing and detail pages
(counts like "1 234", salaries like "Od 6,5 EUR/hod.").
"""

import re
from typing import Optional, Union

_WHITESPACE = re.compile(r"\s+")

# "Od 6,5 EUR/hod." or "1 200 EUR/mesiac"
_SALARY_FROM = re.compile(
    r"^[a-z]*\s*(?P<low>[\d, ]+)\s*(?P<currency>[^\W\d_][\w ]*?)/(?P<period>\w+)",
    re.IGNORECASE,
)
# "35 000 - 45 000 Kč/mesiac"
_SALARY_RANGE = re.compile(
    r"^(?P<low>[\d,. ]+)\s*-\s*(?P<up>[\d,. ]+?)\s*(?P<currency>[^\W\d_][\w ]*?)/(?P<period>\w+)",
    re.IGNORECASE,
)


def clean_text(text: Optional[str]) -> Optional[str]:
    """
    Collapse runs of whitespace and trim.

    Returns None for None or whitespace-only input so missing DOM nodes and
    empty DOM nodes look the same to callers.
    """
    if text is None:
        return None
    text = _WHITESPACE.sub(" ", text).strip()
    return text or None


def text_as_number(
    text: Optional[str],
    mode: str = "int",
    remove_whitespace: bool = True,
) -> Optional[Union[int, float]]:
    """
    Parse a human-formatted number.

    Args:
        text: Text like "1 234" or "6,5"
        mode: "int" truncates, "float" keeps decimals
        remove_whitespace: Drop all whitespace first (thousands separators)

    Returns:
        The number, or None if the text has no parseable number

    Example:
        >>> text_as_number("1 234")
        1234
        >>> text_as_number("6,5", mode="float")
        6.5
    """
    if text is None:
        return None
    if remove_whitespace:
        text = _WHITESPACE.sub("", text)
    text = text.replace(",", ".")
    match = re.search(r"-?\d+(?:\.\d+)?", text)
    if not match:
        return None
    value = float(match.group(0))
    return int(value) if mode == "int" else value


def _salary_value(raw: Optional[str]) -> Optional[Union[int, float]]:
    value = text_as_number(raw, mode="float")
    if value is None:
        return None
    return int(value) if value.is_integer() else value


def parse_salary_text(salary_text: Optional[str]) -> dict:
    """
    Split a salary label into its parts.

    Returns:
        Dict with salary_range, salary_range_lower, salary_range_upper,
        salary_currency and salary_period. Unparseable parts are None.
    """
    salary_text = clean_text(salary_text)
    fields = {
        "salary_range": salary_text,
        "salary_range_lower": None,
        "salary_range_upper": None,
        "salary_currency": None,
        "salary_period": None,
    }
    if not salary_text:
        return fields

    match = _SALARY_FROM.match(salary_text) or _SALARY_RANGE.match(salary_text)
    if not match:
        return fields

    groups = match.groupdict()
    fields["salary_range_lower"] = _salary_value(groups.get("low"))
    fields["salary_range_upper"] = _salary_value(groups.get("up"))
    fields["salary_currency"] = clean_text(groups.get("currency"))
    fields["salary_period"] = groups.get("period")
    return fields
