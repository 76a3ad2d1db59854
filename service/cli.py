# service/cli.py
"""
User-facing command-line entrypoints.

Subcommands
-----------
search [--role R] [--location L] [--criteria PATH] [--boards a,b] [...]
    - Runs one search via greenhouse_watch.main.run(...)
    - Prints the text listing (or HTML with --html, or the meta dict with --json)

discover [--no-search-engine]
    - Prints the board tokens a search would query

validate-criteria PATH
    - Loads/validates a criteria JSON file and returns nonzero on error
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import time
import uuid
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from greenhouse_watch import main as _module
from greenhouse_watch.lib import config as _config
from greenhouse_watch.lib import discovery as _discovery
from greenhouse_watch.lib.engine import NoBoardsError
from greenhouse_watch.lib.http_client import HttpClient
from service import logging_utils as L

LOG = logging.getLogger("service.cli")


# ----------------------------- Logging setup ---------------------------------
def _ensure_logging(verbose: bool = False) -> None:
    """Initialize a reasonable logging setup if none exists yet."""
    root = logging.getLogger()
    if not root.handlers:
        level = "DEBUG" if verbose else os.getenv("LOG_LEVEL", "WARNING").upper()
        logging.basicConfig(
            level=getattr(logging, level, logging.WARNING),
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )


# -------------------------- Utility / glue code ------------------------------
def _parse_kv_pairs(pairs: Iterable[str]) -> dict[str, Any]:
    """
    Parse key=value strings into a dict.
    - Values that look like JSON (true/false/null/number/object/array) are parsed.
    - Otherwise keep as raw strings.
    """
    out: dict[str, Any] = {}
    for raw in pairs:
        if "=" not in raw:
            raise argparse.ArgumentTypeError(f"--kwargs item must be key=value (got {raw!r})")
        k, v = raw.split("=", 1)
        k = k.strip()
        v = v.strip()
        if not k:
            raise argparse.ArgumentTypeError(f"Invalid key in --kwargs item {raw!r}")
        try:
            out[k] = json.loads(v)
        except ValueError:
            out[k] = v
    return out


def _now_iso() -> str:
    return datetime.now().astimezone().isoformat()


def _search_kwargs(args: argparse.Namespace) -> dict[str, Any]:
    """Merge --kwargs with the dedicated flags (flags win)."""
    kwargs = _parse_kv_pairs(args.kwargs or [])
    flags = {
        "role": args.role,
        "location": args.location,
        "criteria_path": args.criteria,
        "extra_boards": args.boards,
        "max_concurrency": args.max_concurrency,
        "deadline_seconds": args.deadline,
        "timeout": args.timeout,
    }
    kwargs.update({k: v for k, v in flags.items() if v is not None})
    if args.no_search_engine:
        kwargs["use_search_engine"] = False
    if args.only_boards:
        kwargs["fallback_boards"] = args.only_boards
        kwargs["use_search_engine"] = False
    if args.html:
        kwargs["output"] = "html"
    return kwargs


# ------------------------------ Subcommands ----------------------------------
def cmd_search(args: argparse.Namespace) -> int:
    run_id = uuid.uuid4().hex
    start_time = time.monotonic()

    try:
        kwargs = _search_kwargs(args)
        LOG.debug("Search with kwargs=%s", kwargs)
        rendered, meta = _module.run(**kwargs)
        duration_ms = int((time.monotonic() - start_time) * 1000)
        L.write_activity_log({
            "ts": _now_iso(),
            "event": "cli_search",
            "run_id": run_id,
            "kwargs": kwargs,
            "matches": meta["matches"],
            "boards": meta["boards"],
            "boards_failed": meta["boards_failed"],
            "duration_ms": duration_ms,
        })

        if args.json:
            print(json.dumps(meta, indent=2, default=str))
        else:
            print(rendered)
        return 0

    except KeyboardInterrupt:
        return 130
    except (_config.ConfigError, argparse.ArgumentTypeError) as e:
        print(f"ERROR: invalid configuration: {e}", file=sys.stderr)
        return 2
    except NoBoardsError as e:
        print(f"FAILURE: {e}", file=sys.stderr)
        L.write_error_log({
            "ts": _now_iso(),
            "where": "cli.search",
            "run_id": run_id,
            "error": repr(e),
            "duration_ms": int((time.monotonic() - start_time) * 1000),
        })
        return 1


def cmd_discover(args: argparse.Namespace) -> int:
    try:
        settings = _config.Settings.from_env_and_kwargs(_parse_kv_pairs(args.kwargs or []))
    except (_config.ConfigError, argparse.ArgumentTypeError) as e:
        print(f"ERROR: invalid configuration: {e}", file=sys.stderr)
        return 2

    with HttpClient(timeout=settings.timeout, user_agent=settings.user_agent) as client:
        found = _discovery.discover(
            client,
            use_search_engine=settings.use_search_engine and not args.no_search_engine,
            fallback=settings.fallback_boards,
            extra=settings.extra_boards,
        )
    for token in sorted(found.tokens):
        print(token)
    if found.primary_failed:
        print(f"note: search-engine discovery failed ({found.primary_error})", file=sys.stderr)
    print(
        f"{len(found.tokens)} boards ({len(found.primary_tokens)} from search engine, "
        f"{found.fallback_count} known)",
        file=sys.stderr,
    )
    return 0


def cmd_validate_criteria(args: argparse.Namespace) -> int:
    try:
        criteria = _config.load_criteria(args.path)
    except _config.ConfigError as e:
        print(f"ERROR: criteria invalid: {e}", file=sys.stderr)
        return 1
    print("OK: criteria file is valid.")
    print(json.dumps(criteria.to_dict(), indent=2))
    return 0


# ------------------------------- Argparse ------------------------------------
def _csv(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="greenhouse-watch",
        description="Search Greenhouse-hosted job boards for a role and location.",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging to stderr.")
    sub = p.add_subparsers(dest="cmd", required=True)

    # search
    sp = sub.add_parser("search", help="Query every discovered board and print matches.")
    sp.add_argument("--role", help='Role keywords, e.g. "principal product manager".')
    sp.add_argument("--location", help='Target location, e.g. "94555".')
    sp.add_argument("--criteria", metavar="PATH", help="Criteria JSON file (role, location, synonyms, aliases).")
    sp.add_argument("--boards", type=_csv, metavar="a,b", help="Extra board tokens to include.")
    sp.add_argument("--only-boards", type=_csv, metavar="a,b", help="Search exactly these boards (no discovery).")
    sp.add_argument("--no-search-engine", action="store_true", help="Skip search-engine discovery.")
    sp.add_argument("--max-concurrency", type=int, help="Cap on simultaneous board requests.")
    sp.add_argument("--deadline", type=float, metavar="SECONDS", help="Overall deadline for board queries.")
    sp.add_argument("--timeout", type=float, metavar="SECONDS", help="Per-request HTTP timeout.")
    sp.add_argument("--html", action="store_true", help="Print an HTML report instead of text.")
    sp.add_argument("--json", action="store_true", help="Print the result meta dict as JSON.")
    sp.add_argument(
        "--kwargs",
        metavar="k=v",
        nargs="*",
        help="Extra settings (JSON values supported), e.g. max_delay_ms=0.",
    )
    sp.set_defaults(func=cmd_search)

    # discover
    sp = sub.add_parser("discover", help="Print the board tokens a search would query.")
    sp.add_argument("--no-search-engine", action="store_true", help="Only list the known boards.")
    sp.add_argument("--kwargs", metavar="k=v", nargs="*", help="Extra settings (JSON values supported).")
    sp.set_defaults(func=cmd_discover)

    # validate-criteria
    sp = sub.add_parser("validate-criteria", help="Verify a criteria JSON file.")
    sp.add_argument("path", help="Path to the criteria file.")
    sp.set_defaults(func=cmd_validate_criteria)

    return p


# --------------------------------- Main --------------------------------------
def main(argv: Iterable[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(args=list(argv) if argv is not None else None)
    _ensure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
