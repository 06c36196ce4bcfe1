"""Tests for service config loading and the structured event log."""

import json
import logging
import sys
import tempfile
from pathlib import Path

import pydantic
import pytest
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from tracker.config import ServiceConfig
from tracker.db import create_db_engine, init_schema
from tracker.logging_utils import clear_event_log_path, event_log, event_log_path, set_event_log_path
from tracker.service import BenchmarkTracker


def test_defaults_without_environment():
    config = ServiceConfig.from_env({})
    assert config.database_url == "sqlite:///./benchmarks.db"
    assert config.default_page_size == 20
    assert config.max_page_size == 2000
    assert config.event_log_path is None
    assert config.echo_sql is False


def test_environment_overrides():
    config = ServiceConfig.from_env({
        "BENCHMARK_DATABASE_URL": "postgresql://bench@db/bench",
        "BENCHMARK_DEFAULT_PAGE_SIZE": "50",
        "BENCHMARK_ECHO_SQL": "true",
        "BENCHMARK_PORT": "9000",
        "BENCHMARK_LOG_LEVEL": "",
        "UNRELATED": "x",
    })
    assert config.database_url == "postgresql://bench@db/bench"
    assert config.default_page_size == 50
    assert config.echo_sql is True
    assert config.port == 9000
    assert config.log_level == "INFO"


def test_invalid_environment_is_rejected():
    with pytest.raises(pydantic.ValidationError):
        ServiceConfig.from_env({"BENCHMARK_DEFAULT_PAGE_SIZE": "0"})
    with pytest.raises(pydantic.ValidationError):
        ServiceConfig.from_env({"BENCHMARK_DEFAULT_PAGE_SIZE": "30", "BENCHMARK_MAX_PAGE_SIZE": "10"})


def test_event_log_writes_json_lines(caplog):
    with tempfile.TemporaryDirectory() as tmp:
        path = str(Path(tmp) / "logs" / "events.jsonl")
        set_event_log_path(path)
        try:
            assert event_log_path() == path
            with caplog.at_level(logging.INFO, logger="tracker.events"):
                event_log("benchmark_run_started", name="bench", sequence_id="s1")
        finally:
            clear_event_log_path()
        assert event_log_path() is None
        with open(path) as f:
            lines = [json.loads(line) for line in f]
    assert len(lines) == 1
    assert lines[0]["event"] == "benchmark_run_started"
    assert lines[0]["name"] == "bench"
    assert lines[0]["level"] == "info"
    assert "ts" in lines[0]
    assert any("benchmark_run_started" in rec.getMessage() for rec in caplog.records)


def test_tracker_emits_lifecycle_events():
    engine = create_db_engine("sqlite://")
    init_schema(engine)
    tracker = BenchmarkTracker(sessionmaker(bind=engine, expire_on_commit=False))
    with tempfile.TemporaryDirectory() as tmp:
        path = str(Path(tmp) / "events.jsonl")
        set_event_log_path(path)
        try:
            tracker.start_benchmark_run("bench", "s1")
            tracker.start_execution("bench", "s1", "e1")
            tracker.finish_execution("bench", "s1", "e1", [])
            tracker.finish_benchmark_run("bench", "s1", [])
        finally:
            clear_event_log_path()
        with open(path) as f:
            events = [json.loads(line)["event"] for line in f]
    engine.dispose()
    assert events == ["benchmark_run_started", "execution_started", "execution_finished", "benchmark_run_finished"]


def test_log_level_is_normalised_and_constrained():
    assert ServiceConfig.from_env({"BENCHMARK_LOG_LEVEL": "debug"}).log_level == "DEBUG"
    with pytest.raises(pydantic.ValidationError):
        ServiceConfig.from_env({"BENCHMARK_LOG_LEVEL": "verbose"})
