"""
Tests for the SQL-backed record sink and its database configuration.
"""

from harvest.contexts.storage import DatabaseConfig, RecordSink
from harvest.contexts.storage.sink import record_identity, redact_record


def test_push_and_count(sink):
    assert sink.count() == 0
    assert sink.push([{"offer_id": "O1"}, {"offer_id": "O2"}]) == 2
    assert sink.push({"offer_id": "O3"}) == 1
    assert sink.push([]) == 0

    assert sink.count() == 3
    assert [r["offer_id"] for r in sink.export_records()] == ["O1", "O2", "O3"]


def test_push_redacts_private_fields(sink):
    sink.push(
        {"offer_id": "O1", "employer_contact": "hr@acme.sk", "phone_numbers": [], "location": "Bratislava"},
        redact_fields={"employer_contact", "phone_numbers"},
    )

    record = sink.export_records()[0]
    assert record["employer_contact"] == '<Redacted property "employer_contact">'
    # Empty values stay empty
    assert record["phone_numbers"] == []
    assert record["location"] == "Bratislava"


def test_redaction_does_not_touch_the_input():
    record = {"employer_contact": "hr@acme.sk"}
    redacted = redact_record(record, ["employer_contact"])

    assert record["employer_contact"] == "hr@acme.sk"
    assert redacted["employer_contact"] != record["employer_contact"]


def test_metadata_is_stored_with_each_record(sink):
    sink.push([{"offer_id": "O1"}, {"offer_id": "O2"}], metadata={"run_id": "abc", "source_url": "https://x"})

    for record in sink.export_records():
        assert record["metadata"]["run_id"] == "abc"
        assert record["metadata"]["source_url"] == "https://x"
        assert "pushed_at" in record["metadata"]


def test_record_identity():
    assert record_identity({"offer_id": "O1", "url": "https://x"}) == "O1"
    assert record_identity({"objectID": "abc"}) == "abc"
    assert record_identity({"name": "no id"}) is None


def test_export_df_flattens_records(sink):
    sink.push({"offer_id": "O1"}, metadata={"run_id": "abc"})

    df = sink.export_df()
    assert list(df["offer_id"]) == ["O1"]
    assert list(df["metadata.run_id"]) == ["abc"]


def test_sinks_on_one_engine_are_separate_datasets(sink, reporting_sink):
    sink.push({"offer_id": "O1"})

    assert reporting_sink.count() == 0
    assert reporting_sink.name == "errors"


def test_database_config_from_env(monkeypatch, tmp_path):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("POSTGRES_HOST", raising=False)
    assert DatabaseConfig.from_env().is_sqlite

    monkeypatch.setenv("POSTGRES_HOST", "db")
    monkeypatch.setenv("POSTGRES_USER", "harvest")
    monkeypatch.setenv("POSTGRES_PASSWORD", "secret")
    monkeypatch.delenv("POSTGRES_PORT", raising=False)
    monkeypatch.delenv("POSTGRES_DB", raising=False)
    config = DatabaseConfig.from_env(table="jobs")
    assert config.url == "postgresql+psycopg2://harvest:secret@db:5432/harvest"
    assert config.table == "jobs"
    assert not config.is_sqlite

    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'x.db'}")
    assert DatabaseConfig.from_env().url == f"sqlite:///{tmp_path / 'x.db'}"


def test_sqlite_directory_is_created(tmp_path):
    sink = RecordSink(DatabaseConfig(url=f"sqlite:///{tmp_path / 'nested' / 'dir' / 'h.db'}"))

    sink.push({"offer_id": "O1"})
    assert (tmp_path / "nested" / "dir" / "h.db").exists()
