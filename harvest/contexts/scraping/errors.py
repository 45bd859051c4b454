"""
Error types and error capture for crawl tasks.

Failures inside a route handler are reported to a dedicated reporting
dataset (separate from the records dataset) with the URL and an optional
HTML snapshot, then re-raised so the task queue's retry policy applies.
"""

import asyncio
import os
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

from dotenv import load_dotenv
from loguru import logger

from harvest.contexts.storage import RecordSink

load_dotenv()
SNAPSHOTS_PATH = Path(os.getenv("SNAPSHOTS_PATH", "outs/snapshots"))


class HarvestError(Exception):
    pass


class ConfigurationError(HarvestError, ValueError):
    """Invalid crawl input. Raised before any crawling begins."""


class FetchError(HarvestError):
    """
    An HTTP fetch that did not produce a usable response.

    ``retryable`` is False for permanent failures (404, invalid URL, ...),
    which the worker pool does not retry.
    """

    def __init__(self, url: str, message: str, retryable: bool = True):
        super().__init__(f"{message} (URL: {url})")
        self.url = url
        self.retryable = retryable


class ErrorReporter:
    """Capture handler errors into the reporting dataset."""

    def __init__(
        self,
        sink: Optional[RecordSink],
        run_id: Optional[str] = None,
        snapshot_dir: Optional[Path] = SNAPSHOTS_PATH,
    ):
        self.sink = sink
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.snapshot_dir = snapshot_dir
        self.captured = 0

    def _save_snapshot(self, key: str, html: str) -> Optional[str]:
        if self.snapshot_dir is None:
            return None
        self.snapshot_dir.mkdir(parents=True, exist_ok=True)
        path = self.snapshot_dir / f"{key}.html"
        path.write_text(html, encoding="utf-8")
        return str(path)

    def build_report(self, error: BaseException, url: Optional[str], html: Optional[str] = None) -> Dict[str, Any]:
        key = f"ERROR-{uuid.uuid4().hex}"
        snapshot = self._save_snapshot(key, html) if html else None
        return {
            "run_id": self.run_id,
            "error_name": type(error).__name__,
            "error_message": str(error),
            "page_url": url,
            "page_html_snapshot": snapshot,
            "captured_at": datetime.now().isoformat(),
        }

    async def capture(self, error: BaseException, url: Optional[str], html: Optional[str] = None) -> Dict[str, Any]:
        """Log the error and push a report. Marks the error so it is captured only once."""
        logger.error(f"[Error capture] {type(error).__name__}: {error} (URL: {url})")
        report = await asyncio.to_thread(self.build_report, error, url, html)

        if self.sink is not None:
            logger.info(f"[Error capture] Pushing error to dataset {self.sink.name}")
            await asyncio.to_thread(self.sink.push, report)

        self.captured += 1
        setattr(error, "_harvest_captured", True)
        return report

    def wrap(self, handler: Callable[[Any], Awaitable[None]]) -> Callable[[Any], Awaitable[None]]:
        """
        Wrap a handler taking a context with ``url`` and ``html`` attributes.

        Errors are captured (unless already captured) and re-raised.
        """

        async def wrapper(ctx) -> None:
            try:
                await handler(ctx)
            except Exception as error:
                if not getattr(error, "_harvest_captured", False):
                    await self.capture(error, url=getattr(ctx, "url", None), html=getattr(ctx, "html", None))
                raise

        return wrapper
