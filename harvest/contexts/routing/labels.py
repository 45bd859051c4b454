from enum import Enum


class RouteLabel(str, Enum):
    """Handler labels. Every member must be handled by ``Router._dispatch``."""

    JOB_LISTING = "JOB_LISTING"
    JOB_DETAIL = "JOB_DETAIL"
    JOB_RELATED_LIST = "JOB_RELATED_LIST"
    PARTNERS = "PARTNERS"
