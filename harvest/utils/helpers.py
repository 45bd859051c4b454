"""
General utility functions for HARVEST.

Contains URL helpers used across different modules.
"""

from typing import Iterable, Iterator, List, Optional, Tuple, TypeVar
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

T = TypeVar("T")


def validate_url(url: str) -> str:
    """Raise ValueError unless ``url`` is an absolute http(s) URL."""
    parts = urlsplit(url or "")
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ValueError(f'Invalid URL: "{url}"')
    return url


def resolve_url(base_url: Optional[str], href: Optional[str]) -> Optional[str]:
    """Turn a (possibly relative) href into an absolute URL."""
    if not href:
        return None
    href = href.strip()
    if not base_url:
        return href
    return urljoin(base_url, href)


def get_query_param(url: str, name: str) -> Optional[str]:
    for key, value in parse_qsl(urlsplit(url).query, keep_blank_values=True):
        if key == name:
            return value
    return None


def set_query_params(url: str, params: dict) -> str:
    """
    Set (or replace) query parameters, keeping the position of existing ones.

    A key being set keeps the position of its first occurrence and loses
    any repeats; other keys, repeated or not, are left as they are. New
    parameters are appended in the order given.
    """
    parts = urlsplit(url)
    pairs = []
    replaced = set()
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        if key not in params:
            pairs.append((key, value))
        elif key not in replaced:
            pairs.append((key, str(params[key])))
            replaced.add(key)
    pairs.extend((key, str(value)) for key, value in params.items() if key not in replaced)
    return urlunsplit(parts._replace(query=urlencode(pairs)))


def normalize_url(url: str) -> Tuple[str, str, str, Tuple[Tuple[str, str], ...]]:
    """Comparable form of a URL: lower-cased host, no trailing slash, sorted query, no fragment."""
    parts = urlsplit(url)
    path = parts.path.rstrip("/") or "/"
    query = tuple(sorted(parse_qsl(parts.query, keep_blank_values=True)))
    return parts.scheme.lower(), parts.netloc.lower(), path, query


def urls_equal(url_a: Optional[str], url_b: Optional[str]) -> bool:
    if not url_a or not url_b:
        return url_a == url_b
    return normalize_url(url_a) == normalize_url(url_b)


def chunked(items: Iterable[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive lists of ``size`` items (the last one may be shorter)."""
    batch: List[T] = []
    for item in items:
        batch.append(item)
        if len(batch) == size:
            yield batch
            batch = []
    if batch:
        yield batch
