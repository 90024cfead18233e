import argparse
import json
from pathlib import Path

from . import __version__
from .config import Settings
from .env import load_env
from .errors import PersistenceError, ValidationError
from .logger import configure_logger
from .normalize import normalize_posting
from .pagination import assemble
from .schema import validate_posting
from .selector import select_store


def _load_json(path_arg: str):
    input_path = Path(path_arg)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    with input_path.open("r", encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise SystemExit(f"Invalid JSON in {input_path}: {e}")


def ingest_postings(payloads, store) -> dict:
    """Upsert each payload; a bad record is counted, not fatal."""
    counts = {"saved": 0, "invalid": 0, "failed": 0}
    for payload in payloads:
        try:
            saved = store.upsert(normalize_posting(payload))
        except ValidationError as e:
            print(f"[invalid] {e.message}")
            counts["invalid"] += 1
            continue
        except PersistenceError as e:
            print(f"[error] {e.message}")
            counts["failed"] += 1
            continue
        print(f"[saved] id={saved.id} job_req_id={saved.job_req_id or '-'} {saved.title}")
        counts["saved"] += 1
    return counts


def cmd_ingest(args: argparse.Namespace, settings: Settings) -> None:
    data = _load_json(args.input)
    payloads = data if isinstance(data, list) else [data]
    store = select_store(settings)
    try:
        counts = ingest_postings(payloads, store)
    finally:
        store.close()
    print(f"Done. saved={counts['saved']} invalid={counts['invalid']} failed={counts['failed']}")


def cmd_validate(args: argparse.Namespace, settings: Settings) -> None:
    errors = validate_posting(_load_json(args.input))
    if errors:
        print("Invalid:")
        for e in errors:
            print(f" - {e}")
        raise SystemExit(2)
    print("Valid")


def cmd_list(args: argparse.Namespace, settings: Settings) -> None:
    store = select_store(settings)
    try:
        jobs, total = store.list(args.page)
    finally:
        store.close()
    result = assemble(jobs, max(1, args.page), total)
    if not jobs:
        print(f"No jobs on page {result.current_page} (total {total}).")
        return
    print(f"Page {result.current_page}/{result.total_pages} ({total} jobs):\n")
    for job in jobs:
        print(f"ID: {job.id}")
        print(f"  Title: {job.title}")
        print(f"  Company: {job.company_name}")
        print(f"  Location: {job.location}")
        print(f"  Skills: {', '.join(job.skills)}")
        print(f"  Created: {job.created_at}")
        print()


def cmd_show(args: argparse.Namespace, settings: Settings) -> None:
    store = select_store(settings)
    try:
        job = store.get_by_id(args.id)
    finally:
        store.close()
    if job is None:
        raise SystemExit(f"Post not found: {args.id}")
    print(json.dumps(job.to_dict(), indent=2, ensure_ascii=False))


def cmd_status(args: argparse.Namespace, settings: Settings) -> None:
    store = select_store(settings)
    try:
        print(f"Backend: {store.backend} ({store.description})")
        if settings.primary_configured:
            print(f"Primary: {settings.redacted_url()}")
        _, total = store.list(1)
        print(f"Jobs: {total}")
    finally:
        store.close()


def cmd_serve(args: argparse.Namespace, settings: Settings) -> None:
    import uvicorn

    from .api import create_app

    uvicorn.run(
        create_app(settings),
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=settings.log_level.lower(),
    )


def main(argv=None):
    # Load .env if present (DATABASE_URL, DB_HOST, SQLITE_PATH, etc.)
    load_env()
    parser = argparse.ArgumentParser(prog="firstjobly", description="firstjobly job board backend")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")
    srv = subparsers.add_parser("serve", help="Run the HTTP API")
    srv.add_argument("--host", help="Bind address (default: HOST or 0.0.0.0)")
    srv.add_argument("--port", type=int, help="Port (default: PORT or 3000)")
    srv.set_defaults(func=cmd_serve)

    ing = subparsers.add_parser("ingest", help="Upsert postings from a JSON file (object or list)")
    ing.add_argument("--input", required=True, help="Path to posting JSON input")
    ing.set_defaults(func=cmd_ingest)

    val = subparsers.add_parser("validate", help="Check a posting JSON for required fields")
    val.add_argument("--input", required=True, help="Path to posting JSON input")
    val.set_defaults(func=cmd_validate)

    lst = subparsers.add_parser("list", help="List stored jobs, newest first")
    lst.add_argument("--page", type=int, default=1, help="Page number (24 jobs per page)")
    lst.set_defaults(func=cmd_list)

    shw = subparsers.add_parser("show", help="Show one job by id")
    shw.add_argument("--id", type=int, required=True, help="Job id")
    shw.set_defaults(func=cmd_show)

    sts = subparsers.add_parser("status", help="Show the active backend")
    sts.set_defaults(func=cmd_status)

    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        settings = Settings.from_env()
        configure_logger(settings)
        try:
            args.func(args, settings)
        except PersistenceError as e:
            raise SystemExit(f"Storage error: {e.message}")
        return

    parser.print_help()


if __name__ == "__main__":
    main()
