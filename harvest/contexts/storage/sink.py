"""
Record sinks: append-only datasets stored in a SQL table.

Every record is stored as one JSON document next to a few indexed columns,
so listing rows, detail pages and list-page entries (which all have
different fields) can share a table without schema migrations.
"""

import json
import threading
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union

import pandas as pd
from loguru import logger
from sqlalchemy import Column, DateTime, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from harvest.contexts.storage.database import DatabaseConfig, create_db_engine

Record = Dict[str, Any]

# Fields commonly used as a record's stable identity, in lookup order
ID_FIELDS = ("offer_id", "objectID", "id", "url")


def redact_record(record: Record, redact_fields: Optional[Iterable[str]]) -> Record:
    """Replace private fields with a placeholder, leaving other fields untouched."""
    if not redact_fields:
        return dict(record)
    redacted = dict(record)
    for field in redact_fields:
        if field in redacted and redacted[field] not in (None, [], ""):
            redacted[field] = f'<Redacted property "{field}">'
    return redacted


def record_identity(record: Record) -> Optional[str]:
    for field in ID_FIELDS:
        value = record.get(field)
        if value:
            return str(value)
    return None


class RecordSink:
    """
    A named dataset backed by one SQL table.

    ``push`` and ``count`` are synchronous and guarded by a lock, so several
    in-flight handlers can share one sink (handlers call them through
    ``asyncio.to_thread``).
    """

    def __init__(self, config: DatabaseConfig, engine: Optional[Engine] = None):
        self.config = config
        self.engine = engine or create_db_engine(config)
        self._lock = threading.Lock()

        metadata = MetaData()
        self.table = Table(
            config.table,
            metadata,
            Column("seq", Integer, primary_key=True, autoincrement=True),
            Column("record_id", String(255), index=True),
            Column("pushed_at", DateTime),
            Column("data", Text, nullable=False),
        )
        metadata.create_all(self.engine)

    @property
    def name(self) -> str:
        return self.config.table

    def push(
        self,
        records: Union[Record, List[Record]],
        redact_fields: Optional[Iterable[str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> int:
        """
        Append records to the dataset.

        Args:
            records: One record or a list of records
            redact_fields: Field names whose values are masked before storage
            metadata: Optional context stored under the ``metadata`` key of each record

        Returns:
            Number of records written
        """
        if isinstance(records, dict):
            records = [records]
        if not records:
            return 0

        pushed_at = datetime.now()
        rows = []
        for record in records:
            stored = redact_record(record, redact_fields)
            if metadata:
                stored["metadata"] = {**metadata, "pushed_at": pushed_at.isoformat()}
            rows.append(
                {
                    "record_id": record_identity(record),
                    "pushed_at": pushed_at,
                    "data": json.dumps(stored, ensure_ascii=False, default=str),
                }
            )

        df = pd.DataFrame(rows)
        with self._lock:
            df.to_sql(self.config.table, self.engine, if_exists="append", index=False)

        logger.debug(f"[Sink:{self.name}] Pushed {len(rows)} record(s)")
        return len(rows)

    def count(self) -> int:
        """Number of records currently stored in the dataset."""
        with self._lock, self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(self.table)).scalar_one()

    def export_records(self) -> List[Record]:
        """Load every stored record, in insertion order."""
        with self._lock:
            df = pd.read_sql_query(select(self.table.c.data).order_by(self.table.c.seq), self.engine)
        return [json.loads(data) for data in df["data"]]

    def export_df(self) -> pd.DataFrame:
        """Stored records flattened into a DataFrame."""
        return pd.json_normalize(self.export_records())
