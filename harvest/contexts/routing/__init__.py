"""
URL routing domain.

Decides which extraction handler applies to a crawled URL.
"""

from harvest.contexts.routing.constants import (
    DATASET_TYPE_TO_URL,
    DATASET_TYPES,
    JOB_OFFERS_URL,
)
from harvest.contexts.routing.labels import RouteLabel
from harvest.contexts.routing.router import (
    Classification,
    Router,
    UnhandledRouteError,
)
from harvest.contexts.routing.rules import (
    RouteRule,
    build_route_rules,
    is_company_profile,
    is_job_offer,
)

__all__ = [
    "DATASET_TYPE_TO_URL",
    "DATASET_TYPES",
    "JOB_OFFERS_URL",
    "RouteLabel",
    "Classification",
    "Router",
    "UnhandledRouteError",
    "RouteRule",
    "build_route_rules",
    "is_company_profile",
    "is_job_offer",
]
