"""HTTP helpers shared by scraping contexts."""

import asyncio
import json
import time
from typing import Any, Dict, Optional

import requests
from loguru import logger

from harvest.contexts.scraping.errors import FetchError

PermanentCodeSet = (400, 401, 403, 404, 410)
TransientCodeSet = (408, 425, 429, 500, 502, 503, 504)

PermanentErrorTypes = (
    requests.exceptions.InvalidURL,
    requests.exceptions.MissingSchema,
    requests.exceptions.InvalidSchema,
    requests.exceptions.TooManyRedirects,
)

LINK_GOOD = "success"
LINK_BAD = "failure"
LINK_UNKNOWN = "transient failure"

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/124.0 Safari/537.36"
    ),
    "Accept-Language": "sk,en;q=0.8",
}


def classify_http_outcome(
    exception: Optional[requests.RequestException] = None,
    response: Optional[requests.Response] = None,
) -> str:
    if response is None and exception is not None:
        response = getattr(exception, "response", None)

    if response is not None: # We received a response object.
        status = response.status_code
        if 200 <= status < 300:
            return LINK_GOOD
        elif status in PermanentCodeSet:
            return LINK_BAD
        else:
            return LINK_UNKNOWN

    elif exception is not None: # No response object, but an exception.
        if isinstance(exception, PermanentErrorTypes):
            return LINK_BAD
        else:
            return LINK_UNKNOWN
    else:
        return LINK_UNKNOWN


def request_with_retry(session, url, method="GET", max_attempts=3, delay=1.0, **kwargs):
    """
    Make an HTTP request, retrying transient failures with exponential backoff.

    Args:
        session (requests.Session): Session used to send the request
        url (str): The URL to request
        method (str): HTTP method - either 'GET' or 'POST' (default: 'GET')
        max_attempts (int): How many times to try the request (default: 3)
        delay (float): Initial delay in seconds between retries (default: 1.0)
        **kwargs: Any additional arguments to pass to session.request()

    Returns:
        requests.Response: The response object from successful request

    Raises:
        requests.RequestException: If all retry attempts fail, or on the first permanent failure
    """
    most_recent_exception = None

    for attempt in range(max_attempts):
        try:
            response = session.request(method, url, **kwargs)
            response.raise_for_status()
            return response

        except requests.RequestException as e:
            most_recent_exception = e
            if classify_http_outcome(exception=e) == LINK_BAD:
                break

            if attempt < max_attempts - 1:
                wait_time = delay * (2**attempt)
                logger.warning(f"Request failed ({e}), retrying in {wait_time}s...")
                time.sleep(wait_time)

    raise most_recent_exception


class NetworkCircuitBreakerException(Exception):
    retryable = False


class URLFetcher:
    """
    Blocking HTTP client with retry, outcome classification and circuit breaking.

    The crawler runs these calls in worker threads; see ``fetch_text_async``.
    """

    def __init__(self, max_consecutive_failures=5, request_delay=1.0, max_retries=3, timeout=30, headers=None):
        self.max_consecutive_failures = max_consecutive_failures
        self.request_delay = request_delay
        self.max_retries = max_retries
        self.timeout = timeout
        self.consecutive_failures = 0

        self.session = requests.Session()
        self.session.headers.update(DEFAULT_HEADERS)
        if headers:
            self.session.headers.update(headers)

    @classmethod
    def from_config(cls, fetch_config):
        return cls(
            max_consecutive_failures=fetch_config.max_consecutive_failures,
            request_delay=fetch_config.request_delay,
            max_retries=fetch_config.max_retries,
            timeout=fetch_config.timeout,
        )

    def fetch(self, url, method="GET", **kwargs) -> requests.Response:
        """
        Fetch URL with retry, classification, and circuit breaking.

        Returns:
            requests.Response for a successful request

        Raises:
            FetchError: On failure (``retryable`` is False for permanent failures)
            NetworkCircuitBreakerException: If consecutive transient failures exceed threshold
        """
        kwargs.setdefault("timeout", self.timeout)
        response = None
        error_msg = None

        try:
            response = request_with_retry(
                self.session,
                url,
                method=method,
                max_attempts=self.max_retries,
                delay=self.request_delay,
                **kwargs,
            )
            classification = classify_http_outcome(response=response)
        except requests.RequestException as e:
            classification = classify_http_outcome(exception=e)
            error_msg = str(e)

        if classification == LINK_UNKNOWN:
            self.consecutive_failures += 1

            if self.consecutive_failures >= self.max_consecutive_failures:
                raise NetworkCircuitBreakerException(
                    f"Circuit breaker: {self.consecutive_failures} consecutive transient failures"
                )
        else:
            self.consecutive_failures = 0

        if classification == LINK_GOOD:
            return response
        raise FetchError(url, error_msg or "Request failed", retryable=classification != LINK_BAD)

    def fetch_text(self, url: str) -> str:
        return self.fetch(url).text

    def post_json(self, url: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """POST a JSON body and decode the JSON response."""
        response = self.fetch(url, method="POST", data=json.dumps(payload), headers=headers)
        return response.json()

    async def fetch_text_async(self, url: str) -> str:
        return await asyncio.to_thread(self.fetch_text, url)

    async def post_json_async(self, url: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        return await asyncio.to_thread(self.post_json, url, payload, headers)
