"""Small BeautifulSoup helpers shared by the page extractors."""

from typing import Optional

from harvest.utils import clean_text, resolve_url


def node_text(el) -> Optional[str]:
    """Whitespace-collapsed text of an element, None for missing or empty elements."""
    return clean_text(el.get_text(" ")) if el is not None else None


def node_attr(el, name: str, base_url: Optional[str] = None) -> Optional[str]:
    """Attribute value, resolved against ``base_url`` (for href/src)."""
    if el is None or not el.get(name):
        return None
    return resolve_url(base_url, el[name])


def first_text(el, selector: str) -> Optional[str]:
    return node_text(el.select_one(selector)) if el is not None else None


def first_attr(el, selector: str, name: str, base_url: Optional[str] = None) -> Optional[str]:
    return node_attr(el.select_one(selector), name, base_url) if el is not None else None
