"""
Startup backend selection.

Runs once per process, before traffic is accepted:

1. No primary configuration -> embedded store, no connection attempt.
2. Primary configured -> build the pool and probe it with SELECT 1.
3. Probe succeeded -> ensure schema on the primary.
4. Probe failed -> log the cause, fall back to the embedded store.

There is no failback; a restart re-probes the primary.
"""

from typing import Optional

from .config import Settings
from .errors import PersistenceError
from .logger import StructuredLogger, get_logger
from .retry import RetryError, exponential_backoff
from .store import EmbeddedPostingStore, NetworkedPostingStore, PostingStore


def _probe_primary(settings: Settings, logger: StructuredLogger) -> NetworkedPostingStore:
    store = NetworkedPostingStore.from_settings(settings, logger=logger)

    def on_retry(attempt, error, delay):
        logger.warning(
            f"Primary probe attempt {attempt} failed, retrying in {delay:.1f}s",
            details=getattr(error, "details", None),
        )

    probe = exponential_backoff(
        max_retries=settings.probe_retries,
        base_delay=1.0,
        max_delay=10.0,
        exceptions=(PersistenceError,),
        on_retry=on_retry,
    )(store.probe)
    try:
        probe()
    except RetryError:
        store.close()
        raise
    return store


def _ensure_schema(store: PostingStore, settings: Settings, logger: StructuredLogger) -> None:
    try:
        store.ensure_schema()
    except PersistenceError as e:
        if settings.strict_schema:
            store.close()
            raise
        # Keep serving; reads and writes will report their own errors
        logger.error(
            "Schema setup failed, continuing in degraded mode",
            backend=store.backend,
            details=e.details,
        )


def select_store(settings: Settings, logger: Optional[StructuredLogger] = None) -> PostingStore:
    """Pick and initialize the store that will serve this process."""
    logger = logger or get_logger()
    store: Optional[PostingStore] = None

    if settings.store_backend == "embedded":
        logger.info("Embedded store requested explicitly")
    elif not settings.primary_configured:
        if settings.store_backend == "primary":
            raise PersistenceError("STORE_BACKEND=primary but no primary store is configured",
                                   details="MissingConfiguration")
        logger.info("No primary store configured, using embedded fallback")
    else:
        try:
            store = _probe_primary(settings, logger)
            logger.info("Connected to primary store", url=settings.redacted_url())
        except (PersistenceError, RetryError) as e:
            cause = e.__cause__ if isinstance(e, RetryError) else e
            if settings.store_backend == "primary":
                raise PersistenceError("primary store is unreachable",
                                       details=getattr(cause, "details", None)) from e
            logger.warning(
                "Primary store unreachable, switching to embedded fallback",
                url=settings.redacted_url(),
                details=getattr(cause, "details", None),
            )

    if store is None:
        store = EmbeddedPostingStore.from_path(settings.sqlite_path, logger=logger)
        logger.info("Embedded store ready", path=settings.sqlite_path)

    _ensure_schema(store, settings, logger)
    logger.record_backend(store.backend)
    return store
