from __future__ import annotations

from typing import Any

from .lib import render
from .lib.config import Settings
from .lib.engine import run_once as _run_engine
from .lib.logging_bridge import activity as log_activity
from .lib.models import SearchResult


def run(**kwargs: Any) -> tuple[str, dict]:
    """
    Entry point for the 'greenhouse_watch' module.

    Accepts kwargs (from the CLI or another caller), including:
      role: str = "principal product manager"
      location: str = "94555"
      criteria_path: Optional[str]       # JSON criteria file
      timeout: float = 30.0
      user_agent: str
      max_concurrency: Optional[int]
      deadline_seconds: Optional[float]
      use_search_engine: bool = True
      fallback_boards / extra_boards: list[str]
      skip_network: bool = False
      output: "text" | "html"

    Returns:
      (rendered: str, meta: dict) - rendered is plain text or HTML per `output`.
    """
    settings = Settings.from_env_and_kwargs(kwargs)
    criteria = settings.criteria

    log_activity({
        "component": "greenhouse_watch.main",
        "op": "start",
        "role": criteria.role,
        "location": criteria.location,
        "flags": {
            "use_search_engine": settings.use_search_engine,
            "skip_network": settings.skip_network,
            "max_concurrency": settings.max_concurrency,
            "deadline_seconds": settings.deadline_seconds,
        },
    })

    result = _run_engine(settings, criteria)

    if settings.output == "html":
        rendered = render.format_html(result, heading=f"Greenhouse Watch: {criteria.role} @ {criteria.location}")
    else:
        rendered = render.format_text(result)
    return rendered, build_meta(result)


def build_meta(result: SearchResult) -> dict:
    return {
        "summary": render.summary_line(result),
        "matches": len(result.jobs),
        "boards": result.boards_searched,
        "boards_matched": result.boards_matched,
        "boards_empty": result.boards_empty,
        "boards_failed": result.boards_failed,
        "failures_by_kind": result.failures_by_kind,
        "discovery_failed": result.discovery_failed,
        "skipped": result.skipped,
        "total_us": result.duration_us,
        "jobs": [
            {
                "board": j.board,
                "id": j.id,
                "title": j.title,
                "company": j.company,
                "location": j.location,
                "updated_at": j.updated_at,
                "url": j.url,
            }
            for j in result.jobs
        ],
    }
