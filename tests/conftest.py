"""
Pytest configuration and shared fixtures.
"""

from typing import Any, Dict

import pytest

from firstjobly.config import Settings
from firstjobly.logger import StructuredLogger, reset_logger
from firstjobly.store import EmbeddedPostingStore, NetworkedPostingStore


@pytest.fixture(autouse=True)
def fresh_logger():
    """Every test starts with a new global logger."""
    reset_logger()
    yield
    reset_logger()


@pytest.fixture
def quiet_logger() -> StructuredLogger:
    return StructuredLogger(name="firstjobly-test", enable_console=False)


@pytest.fixture
def valid_job_posting() -> Dict[str, Any]:
    """Valid job posting payload as a producer would send it."""
    return {
        "title": "Software Engineer",
        "description": "Build and run the job board backend.",
        "company_name": "Acme Corp",
        "company_logo": "https://cdn.example.com/acme.png",
        "job_req_id": "REQ-1001",
        "apply_link": "https://careers.example.com/apply/1001",
        "location": "Bengaluru, India",
        "experience": "0-2 years",
        "skills": "python, sql ,  docker",
        "remote_type": "Hybrid",
        "time_type": "Full time",
        "posted_date": "2024-05-01",
    }


@pytest.fixture
def invalid_job_posting() -> Dict[str, Any]:
    """Invalid job posting (missing description)."""
    return {
        "title": "Data Analyst",
        "company_name": "Acme Corp",
    }


@pytest.fixture
def embedded_store(tmp_path, quiet_logger):
    store = EmbeddedPostingStore.from_path(tmp_path / "jobs_local.db", logger=quiet_logger)
    store.ensure_schema()
    yield store
    store.close()


@pytest.fixture
def sqlite_primary_settings(tmp_path) -> Settings:
    """Primary-store settings pointing at a SQLite file, so no server is needed."""
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'primary.db'}",
        sqlite_path=str(tmp_path / "fallback.db"),
        pool_size=3,
        pool_timeout=2,
        connect_timeout=2,
    )


@pytest.fixture
def networked_store(sqlite_primary_settings, quiet_logger):
    store = NetworkedPostingStore.from_settings(sqlite_primary_settings, logger=quiet_logger)
    store.ensure_schema()
    yield store
    store.close()


@pytest.fixture(params=["embedded", "networked"])
def store(request):
    """Run a test against both store implementations."""
    return request.getfixturevalue(f"{request.param}_store")
