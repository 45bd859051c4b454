"""
Data storage domain.

Handles persistence of crawled records and error reports.

Public API exports only the interfaces needed by other contexts.
Credentials and engine details remain private.
"""

from harvest.contexts.storage.database import (
    DatabaseConfig,
    create_db_engine,
)
from harvest.contexts.storage.sink import (
    RecordSink,
    redact_record,
    record_identity,
)

__all__ = [
    "DatabaseConfig",
    "create_db_engine",
    "RecordSink",
    "redact_record",
    "record_identity",
]
