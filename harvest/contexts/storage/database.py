"""
Database configuration for HARVEST storage context.

Resolves where records are written. A full ``DATABASE_URL`` wins; otherwise
PostgreSQL credentials are read from ``POSTGRES_*`` variables, and when those
are absent too a local SQLite file under ``OUTS_PATH`` is used.
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url

# Load environment variables from .env file
load_dotenv()
OUTS_PATH = Path(os.getenv("OUTS_PATH", "outs"))


@dataclass
class DatabaseConfig:
    """Generic database connection configuration."""

    url: str
    table: str = "records"

    def __post_init__(self):
        if not self.url:
            raise ValueError("Database URL is required")
        if not self.table:
            raise ValueError("Table name is required")

    @classmethod
    def from_env(cls, table: str = "records"):
        """Create DatabaseConfig from environment variables."""
        url = os.getenv("DATABASE_URL")
        if url:
            return cls(url=url, table=table)

        if os.getenv("POSTGRES_HOST"):
            db_env_setting_keys = ["port", "user", "password", "host", "db"]
            db_settings = {setting: os.getenv(f"POSTGRES_{setting.upper()}") for setting in db_env_setting_keys}
            db_settings["port"] = int(db_settings["port"] or 5432)
            db_settings["db"] = db_settings["db"] or "harvest"
            return cls(
                url="postgresql+psycopg2://{user}:{password}@{host}:{port}/{db}".format(**db_settings),
                table=table,
            )

        return cls(url=f"sqlite:///{OUTS_PATH / 'harvest.db'}", table=table)

    @property
    def connection_string(self) -> str:
        return self.url

    @property
    def is_sqlite(self) -> bool:
        return make_url(self.url).get_backend_name() == "sqlite"

    def for_table(self, table: str) -> "DatabaseConfig":
        """Same database, different table (e.g. the reporting dataset)."""
        return replace(self, table=table)


def create_db_engine(config: DatabaseConfig) -> Engine:
    """
    Build a SQLAlchemy engine for the configured database.

    SQLite parent directories are created on demand so a fresh checkout can
    crawl without any setup.
    """
    if config.is_sqlite:
        database = make_url(config.url).database
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(config.connection_string)
