"""
Posting stores.

Responsibilities:
- Schema creation (additive only).
- Atomic upsert keyed on job_req_id.
- Paginated and point reads, newest first.

Non-Responsibilities:
- No payload coercion (see normalize.py).
- No retries; callers own retry policy.
- No choice of backend (see selector.py).

Invariant:
Both implementations behave identically for the same inputs. Uniqueness of
job_req_id is enforced by the engine's unique constraint, never by a
check-then-write in Python.
"""

import threading
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import List, Optional, Tuple

from sqlalchemy import exc as sa_exc
from sqlalchemy import func, insert, select, text
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine

from .database import Post, create_embedded_engine, create_primary_engine, init_database
from .errors import PersistenceError
from .logger import StructuredLogger, get_logger
from .pagination import PAGE_SIZE
from .schema import JobPosting

# Largest value a signed 64-bit column or OFFSET can hold
MAX_ROW_ID = 2 ** 63 - 1


class PostingStore:
    """Storage capability shared by the primary and fallback backends."""

    backend = "base"

    def __init__(self, engine: Engine, logger: Optional[StructuredLogger] = None):
        self.engine = engine
        self.table = Post.__table__
        self.logger = logger or get_logger()

    @property
    def description(self) -> str:
        return f"{self.engine.dialect.name} ({self.backend})"

    @contextmanager
    def _translate_errors(self, operation: str):
        """Surface engine failures as PersistenceError."""
        try:
            yield
        except sa_exc.TimeoutError as e:
            self.logger.record_failure(operation, "PoolTimeout")
            self.logger.error(f"{operation} timed out waiting for a connection", backend=self.backend)
            raise PersistenceError(
                "timed out waiting for a database connection", details="TimeoutError"
            ) from e
        except sa_exc.SQLAlchemyError as e:
            error_type = type(e).__name__
            self.logger.record_failure(operation, error_type)
            self.logger.error(f"{operation} failed", backend=self.backend, error_type=error_type)
            raise PersistenceError(f"{operation} failed", details=error_type) from e
        except OverflowError as e:
            self.logger.record_failure(operation, "OverflowError")
            self.logger.error(f"{operation} failed", backend=self.backend, error_type="OverflowError")
            raise PersistenceError(f"{operation} failed", details="OverflowError") from e

    def _write_lock(self):
        return nullcontext()

    def probe(self) -> None:
        """Run a trivial query; raises PersistenceError when unreachable."""
        with self._translate_errors("probe"):
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))

    def ensure_schema(self) -> None:
        with self._translate_errors("ensure_schema"):
            init_database(self.engine)
        self.logger.info("Schema ready", backend=self.backend)

    def _upsert_statement(self, values: dict, update_fields: List[str]):
        dialect = self.engine.dialect.name
        if dialect in ("mysql", "mariadb"):
            stmt = mysql_insert(self.table).values(**values)
            return stmt.on_duplicate_key_update({f: stmt.inserted[f] for f in update_fields})
        if dialect in ("postgresql", "sqlite"):
            insert_fn = pg_insert if dialect == "postgresql" else sqlite_insert
            stmt = insert_fn(self.table).values(**values)
            return stmt.on_conflict_do_update(
                index_elements=[self.table.c.job_req_id],
                set_={f: stmt.excluded[f] for f in update_fields},
            )
        raise PersistenceError(f"upsert is not supported on {dialect}", details="UnsupportedDialect")

    def upsert(self, candidate: JobPosting) -> JobPosting:
        """
        Insert a posting, or update the one sharing its job_req_id.

        On conflict every mutable field that carries a value is refreshed;
        id, created_at and job_req_id are never touched. Postings without a
        job_req_id are always inserted.
        """
        values = candidate.column_values()
        if candidate.job_req_id is None:
            stmt = insert(self.table).values(**values)
        else:
            stmt = self._upsert_statement(values, candidate.assigned_fields())

        with self._translate_errors("upsert"):
            with self._write_lock():
                with self.engine.begin() as conn:
                    result = conn.execute(stmt)
                    if candidate.job_req_id is None:
                        where = self.table.c.id == result.inserted_primary_key[0]
                    else:
                        where = self.table.c.job_req_id == candidate.job_req_id
                    row = conn.execute(select(self.table).where(where)).mappings().one()

        self.logger.record_write()
        return JobPosting.from_row(row)

    def list(self, page: int = 1) -> Tuple[List[JobPosting], int]:
        """One page of postings, newest first, and the total count."""
        page = max(1, int(page))
        offset = (page - 1) * PAGE_SIZE
        t = self.table
        query = (
            select(t)
            .order_by(t.c.created_at.desc(), t.c.id.desc())
            .limit(PAGE_SIZE)
            .offset(offset)
        )
        with self._translate_errors("list"):
            with self.engine.connect() as conn:
                # No table can hold that many rows, so the page is empty
                rows = conn.execute(query).mappings().all() if offset <= MAX_ROW_ID else []
                total = conn.execute(select(func.count()).select_from(t)).scalar_one()

        self.logger.record_read()
        return [JobPosting.from_row(r) for r in rows], total

    def get_by_id(self, post_id: int) -> Optional[JobPosting]:
        """Point lookup; None when no posting has this id."""
        if not 0 < post_id <= MAX_ROW_ID:
            self.logger.record_read()
            return None
        with self._translate_errors("get_by_id"):
            with self.engine.connect() as conn:
                row = conn.execute(
                    select(self.table).where(self.table.c.id == post_id)
                ).mappings().first()

        self.logger.record_read()
        return JobPosting.from_row(row) if row is not None else None

    def close(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()


class NetworkedPostingStore(PostingStore):
    """Primary relational store reached over the network through a bounded pool."""

    backend = "primary"

    @classmethod
    def from_settings(cls, settings, logger: Optional[StructuredLogger] = None) -> "NetworkedPostingStore":
        url = settings.primary_url()
        if url is None:
            raise PersistenceError("primary store is not configured", details="MissingConfiguration")
        try:
            engine = create_primary_engine(
                url,
                pool_size=settings.pool_size,
                pool_timeout=settings.pool_timeout,
                connect_timeout=settings.connect_timeout,
                require_ssl=settings.db_ssl,
            )
        except (sa_exc.ArgumentError, ImportError) as e:
            # Unknown dialect or missing DBAPI driver
            raise PersistenceError("primary store could not be configured", details=type(e).__name__) from e
        return cls(engine, logger=logger)


class EmbeddedPostingStore(PostingStore):
    """Local SQLite fallback. Writes are serialized by the store."""

    backend = "embedded"

    def __init__(self, engine: Engine, logger: Optional[StructuredLogger] = None):
        super().__init__(engine, logger=logger)
        self._lock = threading.Lock()

    @classmethod
    def from_path(cls, db_path, logger: Optional[StructuredLogger] = None) -> "EmbeddedPostingStore":
        return cls(create_embedded_engine(Path(db_path)), logger=logger)

    def _write_lock(self):
        return self._lock
