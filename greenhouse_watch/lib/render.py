from __future__ import annotations

from itertools import groupby

from . import utils
from .models import JobRecord, SearchResult


def summary_line(result: SearchResult) -> str:
    """'searched 35 boards, 4 failed, found 2 matches' plus the discovery note."""
    line = result.summary()
    if result.discovery_failed:
        line += " (search-engine discovery failed; used known boards)"
    return line


def format_text(result: SearchResult) -> str:
    """
    Plain-text listing for terminals:

        SEARCH RESULTS
        =================
        Found 2 matching job(s):

        1. Job Title: Senior Product Manager
           Company: Stripe
           Date Posted: 2025-01-01T00:00:00-05:00
           URL: https://...
    """
    lines: list[str] = ["SEARCH RESULTS", "================="]
    if result.skipped:
        lines.append("Skipped: network access disabled (skip_network).")
        return "\n".join(lines)

    if not result.jobs:
        lines.append("No jobs found matching your criteria.")
    else:
        lines.append(f"Found {len(result.jobs)} matching job(s):")
        lines.append("")
        for i, job in enumerate(result.jobs, 1):
            lines.extend(_job_lines(i, job))
            lines.append("")

    lines.append(summary_line(result))
    failures = result.failures_by_kind
    if failures:
        lines.append("Failures: " + ", ".join(f"{kind}={n}" for kind, n in failures.items()))
    return "\n".join(lines)


def _job_lines(i: int, job: JobRecord) -> list[str]:
    return [
        f"{i}. Job Title: {job.title}",
        f"   Company: {job.company}",
        f"   Location: {job.location or '(not listed)'}",
        f"   Date Posted: {job.updated_at or '(unknown)'}",
        f"   URL: {job.url}",
    ]


def build_table(jobs: tuple[JobRecord, ...] | list[JobRecord]) -> str:
    """
    HTML sections grouped by board; each section is a Title | Location | Updated | Link table.
    `jobs` is expected in (board, id) order, as SearchResult keeps it.
    """
    sections: list[str] = []
    for board, items in groupby(jobs, key=lambda j: j.board):
        row_html: list[str] = []
        for job in items:
            title = job.title or "(no title)"
            link_html = f'<a href="{utils.esc(job.url)}">{utils.esc(job.url)}</a>'
            row_html.append(
                f"<tr><td>{utils.esc(title)}</td><td>{utils.esc(job.location or '')}</td>"
                f"<td>{utils.esc(job.updated_at)}</td><td>{link_html}</td></tr>"
            )
        table_html = (
            "<table border='1' cellspacing='0' cellpadding='6'>"
            "<tr><th>Title</th><th>Location</th><th>Updated</th><th>Link</th></tr>" + "".join(row_html) + "</table>"
        )
        sections.append(f"<h3>{utils.esc(utils.capitalize_token(board))}</h3>\n{table_html}")
    return "\n".join(sections)


def wrap_document(content_html: str, *, heading: str | None = None, intro: str | None = None) -> str:
    """Wrap tables in a minimal document structure with a heading and summary line."""
    parts: list[str] = ["<div>"]
    if heading:
        parts.append(f"<h2>{utils.esc(heading)}</h2>")
    if intro:
        parts.append(f"<p>{utils.esc(intro)}</p>")
    parts.append(content_html)
    parts.append("</div>")
    return "\n".join(parts)


def format_html(result: SearchResult, *, heading: str | None = None) -> str:
    return wrap_document(build_table(result.jobs), heading=heading, intro=summary_line(result))
