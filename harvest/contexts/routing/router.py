"""
Router: picks the handler for a crawled URL.

Tasks that already carry a label (e.g. scheduled pagination pages) go
straight to their handler. Unlabelled tasks are classified against the
ordered route table; the first matching rule decides.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from bs4 import BeautifulSoup
from loguru import logger

from harvest.contexts.routing.labels import RouteLabel
from harvest.contexts.routing.rules import Action, RouteRule


class RouteHandlers(Protocol):
    """One coroutine per route label."""

    async def job_listing(self, ctx) -> None: ...

    async def job_detail(self, ctx) -> None: ...

    async def job_related_list(self, ctx) -> None: ...

    async def partners(self, ctx) -> None: ...


class UnhandledRouteError(Exception):
    pass


@dataclass(frozen=True)
class Classification:
    rule: RouteRule

    @property
    def label(self) -> Optional[RouteLabel]:
        return self.rule.label

    @property
    def action(self) -> Optional[Action]:
        return self.rule.action


class Router:
    """
    Classify URLs and dispatch them to label handlers.

    The rule table is copied into a tuple on construction and never changes
    afterwards, so one Router can be shared by all concurrent tasks of a run.
    """

    def __init__(self, rules: Sequence[RouteRule], handlers: RouteHandlers):
        if not rules:
            raise ValueError("Router needs at least one route rule")
        self.rules = tuple(rules)
        self.handlers = handlers

    async def classify(self, url: str, doc: Optional[BeautifulSoup] = None) -> Optional[Classification]:
        """Return the first rule matching ``url`` (and ``doc``), or None."""
        for rule in self.rules:
            if await rule.matches(url, doc):
                return Classification(rule=rule)
        return None

    async def route(self, ctx) -> Optional[Classification]:
        """
        Handle one crawled page.

        Returns:
            The classification used, or None when the task was dispatched by
            its own label or dropped because no rule matched.
        """
        if ctx.task.label is not None:
            logger.debug(f"[Router] Task already labelled {ctx.task.label.value}. URL: {ctx.url}")
            await self._dispatch(ctx.task.label, ctx)
            return None

        classification = await self.classify(ctx.url, ctx.doc)
        if classification is None:
            logger.error(f"[Router] No route matched URL. URL will not be processed. URL: {ctx.url}")
            return None

        rule = classification.rule
        label_name = rule.label.value if rule.label else None
        logger.info(f"[Router] URL matched route {rule.name} ({label_name}). URL: {ctx.url}")

        if rule.action is not None:
            await rule.action(ctx.url, ctx)
        else:
            logger.info(f"[Router] Passing URL to handler {label_name}. URL: {ctx.url}")
            await self._dispatch(rule.label, ctx)
        return classification

    async def _dispatch(self, label: RouteLabel, ctx) -> None:
        match label:
            case RouteLabel.JOB_LISTING:
                await self.handlers.job_listing(ctx)
            case RouteLabel.JOB_DETAIL:
                await self.handlers.job_detail(ctx)
            case RouteLabel.JOB_RELATED_LIST:
                await self.handlers.job_related_list(ctx)
            case RouteLabel.PARTNERS:
                await self.handlers.partners(ctx)
            case _:
                raise UnhandledRouteError(f"No handler for route label {label!r}")
