"""
Tests for store.py - both implementations must behave the same.
"""

import threading
from datetime import date

import pytest
from sqlalchemy import func, select, text, update

from firstjobly.errors import PersistenceError
from firstjobly.normalize import normalize_posting
from firstjobly.pagination import PAGE_SIZE
from firstjobly.schema import JobPosting
from firstjobly.store import EmbeddedPostingStore, NetworkedPostingStore


def _posting(**overrides) -> JobPosting:
    payload = {"title": "Engineer", "description": "Build things"}
    payload.update(overrides)
    return normalize_posting(payload)


def _count(store) -> int:
    with store.engine.connect() as conn:
        return conn.execute(select(func.count()).select_from(store.table)).scalar_one()


class TestUpsert:
    """Insert-or-update keyed on job_req_id."""

    def test_insert_assigns_id_and_created_at(self, store, valid_job_posting):
        saved = store.upsert(normalize_posting(valid_job_posting))

        assert saved.id is not None
        assert saved.created_at is not None
        assert saved.skills == ["python", "sql", "docker"]
        assert saved.posted_date == date(2024, 5, 1)

    def test_same_req_id_updates_in_place(self, store):
        first = store.upsert(_posting(job_req_id="R-1", title="Old title"))
        second = store.upsert(_posting(job_req_id="R-1", title="New title"))

        assert _count(store) == 1
        assert second.id == first.id
        assert second.created_at == first.created_at
        assert second.title == "New title"
        assert store.get_by_id(first.id).title == "New title"

    def test_conflict_refreshes_all_mutable_fields(self, store):
        store.upsert(_posting(job_req_id="R-2", skills=["java"], location="Pune"))
        updated = store.upsert(_posting(
            job_req_id="R-2",
            description="New description",
            apply_link="https://apply.example.com/2",
            company_logo="https://cdn.example.com/logo.png",
            skills="go, rust",
            location="Remote",
            remote_type="Remote",
        ))

        assert updated.description == "New description"
        assert updated.apply_link == "https://apply.example.com/2"
        assert updated.company_logo == "https://cdn.example.com/logo.png"
        assert updated.skills == ["go", "rust"]
        assert updated.location == "Remote"
        assert updated.remote_type == "Remote"

    def test_conflict_does_not_blank_missing_fields(self, store):
        store.upsert(_posting(
            job_req_id="R-3",
            company_name="Acme",
            location="Delhi",
            skills=["sql"],
            posted_date="2024-02-02",
        ))
        updated = store.upsert(_posting(job_req_id="R-3", title="Renamed"))

        assert updated.title == "Renamed"
        assert updated.company_name == "Acme"
        assert updated.location == "Delhi"
        assert updated.skills == ["sql"]
        assert updated.posted_date == date(2024, 2, 2)

    def test_no_req_id_never_deduplicates(self, store):
        a = store.upsert(_posting())
        b = store.upsert(_posting())

        assert a.id != b.id
        assert _count(store) == 2

    def test_ids_increase(self, store):
        ids = [store.upsert(_posting(job_req_id=f"R-{i}")).id for i in range(3)]
        assert ids == sorted(ids)
        assert len(set(ids)) == 3

    def test_concurrent_same_key_creates_one_row(self, store):
        """Writers racing on one job_req_id never create duplicates."""
        errors = []

        def writer(n):
            try:
                store.upsert(_posting(job_req_id="RACE", title=f"title {n}"))
            except PersistenceError as e:
                errors.append(e)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        with store.engine.connect() as conn:
            rows = conn.execute(
                select(store.table.c.title).where(store.table.c.job_req_id == "RACE")
            ).all()
        assert len(rows) == 1
        assert rows[0].title in {f"title {n}" for n in range(16)}
        assert errors == []


class TestList:
    """Paginated reads, newest first."""

    def test_empty_store(self, store):
        jobs, total = store.list(1)
        assert jobs == []
        assert total == 0

    def test_page_size_and_total(self, store):
        for i in range(30):
            store.upsert(_posting(job_req_id=f"P-{i}"))

        first, total = store.list(1)
        second, _ = store.list(2)

        assert total == 30
        assert len(first) == PAGE_SIZE
        assert len(second) == 30 - PAGE_SIZE

    def test_newest_first(self, store):
        store.upsert(_posting(title="older"))
        store.upsert(_posting(title="newer"))
        # Push the first row back in time
        with store.engine.begin() as conn:
            conn.execute(text("UPDATE posts SET created_at = '2000-01-01 00:00:00' WHERE title = 'older'"))

        jobs, _ = store.list(1)
        assert [j.title for j in jobs] == ["newer", "older"]

    def test_identical_timestamps_ordered_by_id(self, store):
        saved = [store.upsert(_posting(title=f"job {i}")) for i in range(5)]
        with store.engine.begin() as conn:
            conn.execute(update(store.table).values(created_at=saved[0].created_at))

        first, _ = store.list(1)
        again, _ = store.list(1)

        expected = sorted((s.id for s in saved), reverse=True)
        assert [j.id for j in first] == expected
        assert [j.id for j in again] == expected

    def test_page_below_one_is_clamped(self, store):
        store.upsert(_posting())
        jobs_zero, _ = store.list(0)
        jobs_negative, _ = store.list(-4)
        jobs_one, _ = store.list(1)
        assert [j.id for j in jobs_zero] == [j.id for j in jobs_one]
        assert [j.id for j in jobs_negative] == [j.id for j in jobs_one]

    def test_page_beyond_last_is_empty(self, store):
        store.upsert(_posting())
        jobs, total = store.list(99)
        assert jobs == []
        assert total == 1

    def test_huge_page_is_empty_with_total(self, store):
        store.upsert(_posting())
        jobs, total = store.list(10 ** 20)
        assert jobs == []
        assert total == 1

    def test_skills_are_lists(self, store):
        store.upsert(_posting(skills='["a", "b"]'))
        store.upsert(_posting())
        jobs, _ = store.list(1)
        assert all(isinstance(j.skills, list) for j in jobs)


class TestGetById:

    def test_found(self, store):
        saved = store.upsert(_posting(company_name="Acme"))
        found = store.get_by_id(saved.id)
        assert found.company_name == "Acme"
        assert found.skills == []

    def test_not_found_is_none(self, store):
        assert store.get_by_id(12345) is None

    @pytest.mark.parametrize("post_id", [0, -1, 2 ** 63, 2 ** 70])
    def test_out_of_range_id_is_none(self, store, post_id):
        store.upsert(_posting())
        assert store.get_by_id(post_id) is None


class TestFailures:
    """Engine errors surface as PersistenceError."""

    def test_missing_schema_raises(self, tmp_path, quiet_logger):
        store = EmbeddedPostingStore.from_path(tmp_path / "empty.db", logger=quiet_logger)
        try:
            with pytest.raises(PersistenceError) as exc_info:
                store.list(1)
        finally:
            store.close()
        assert exc_info.value.status_code == 500
        assert exc_info.value.details == "OperationalError"
        assert quiet_logger.get_metrics()["failures_by_operation"] == {"list": 1}

    def test_overflow_is_translated(self, embedded_store, monkeypatch):
        def overflow(*args, **kwargs):
            raise OverflowError("Python int too large to convert to SQLite INTEGER")

        monkeypatch.setattr(embedded_store.engine, "connect", overflow)
        with pytest.raises(PersistenceError) as exc_info:
            embedded_store.list(1)
        assert exc_info.value.details == "OverflowError"

    def test_probe_unreachable(self, tmp_path, quiet_logger):
        from firstjobly.config import Settings

        settings = Settings(database_url=f"sqlite:///{tmp_path / 'missing' / 'dir' / 'x.db'}")
        store = NetworkedPostingStore.from_settings(settings, logger=quiet_logger)
        try:
            with pytest.raises(PersistenceError):
                store.probe()
        finally:
            store.close()

    def test_unconfigured_primary(self, quiet_logger):
        from firstjobly.config import Settings

        with pytest.raises(PersistenceError):
            NetworkedPostingStore.from_settings(Settings(), logger=quiet_logger)


class TestMetrics:

    def test_reads_and_writes_counted(self, embedded_store, quiet_logger):
        saved = embedded_store.upsert(_posting())
        embedded_store.list(1)
        embedded_store.get_by_id(saved.id)

        metrics = quiet_logger.get_metrics()
        assert metrics["writes"] == 1
        assert metrics["reads"] == 2
        assert metrics["failures"] == 0

    def test_backend_names(self, embedded_store, networked_store):
        assert embedded_store.backend == "embedded"
        assert networked_store.backend == "primary"
        assert embedded_store.description == "sqlite (embedded)"
