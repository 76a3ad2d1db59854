# greenhouse_watch/lib/board_query.py
from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from typing import Any
from urllib.parse import quote

import requests

from .config import SearchCriteria
from .http_client import HttpClient
from .matcher import matches
from .models import BoardOutcome, FailureKind, JobRecord
from .utils import elapsed_us

log = logging.getLogger(__name__)

BOARD_API_BASE = "https://boards-api.greenhouse.io/v1/boards"
DEFAULT_MAX_DELAY = 0.2  # seconds; ceiling of the pre-request jitter


class BoardDecodeError(ValueError):
    """Board listing is not shaped like {"jobs": [{id, title, ...}, ...]}."""


def board_api_url(token: str) -> str:
    """Listing endpoint for one board, with expanded job content."""
    return f"{BOARD_API_BASE}/{quote(token, safe='')}/jobs?content=true"


def jitter_delay(rng: random.Random | Any, max_delay: float) -> float:
    """Uniform delay in [0, max_delay] seconds; 0 when jitter is disabled."""
    if max_delay <= 0:
        return 0.0
    return rng.uniform(0.0, max_delay)


def decode_jobs(payload: Any, board: str) -> list[JobRecord]:
    """
    Turn a listing payload into JobRecords.

    Strict on the parts every posting must have (integer id, string title);
    lenient on the optional ones (location, departments may be absent/null).
    """
    if not isinstance(payload, dict):
        raise BoardDecodeError(f"expected a JSON object, got {type(payload).__name__}")
    raw_jobs = payload.get("jobs")
    if not isinstance(raw_jobs, list):
        raise BoardDecodeError("missing 'jobs' list")

    out: list[JobRecord] = []
    for i, raw in enumerate(raw_jobs):
        if not isinstance(raw, dict):
            raise BoardDecodeError(f"jobs[{i}] is not an object")
        job_id = raw.get("id")
        if isinstance(job_id, bool) or not isinstance(job_id, int):
            raise BoardDecodeError(f"jobs[{i}].id must be an integer")
        title = raw.get("title")
        if not isinstance(title, str):
            raise BoardDecodeError(f"jobs[{i}].title must be a string")

        departments = raw.get("departments") or []
        if not isinstance(departments, list):
            raise BoardDecodeError(f"jobs[{i}].departments must be a list")

        out.append(
            JobRecord(
                board=board,
                id=job_id,
                title=title.strip(),
                updated_at=str(raw.get("updated_at") or ""),
                location=_location_name(raw.get("location")),
                url=str(raw.get("absolute_url") or ""),
                departments=tuple(
                    str(d["name"]).strip() for d in departments if isinstance(d, dict) and d.get("name")
                ),
            )
        )
    return out


def _location_name(raw: Any) -> str | None:
    if isinstance(raw, dict):
        raw = raw.get("name")
    if not isinstance(raw, str):
        return None
    return raw.strip() or None


def _sampled_debug(rng: random.Random | Any, rate: float, msg: str, *args: Any) -> None:
    # Boards fail constantly (stale tokens); only a sample is worth a log line.
    if rate > 0 and rng.random() < rate:
        log.debug(msg, *args)


def _body_not_json(token: str, e: Exception, rng: random.Random | Any, rate: float, t0: int) -> BoardOutcome:
    # A body arrived (2xx) but could not be parsed.
    _sampled_debug(rng, rate, "%s JSON parse error: %s", token, e)
    return BoardOutcome.failed(
        token,
        FailureKind.DECODE_ERROR,
        str(e)[:200],
        status_code=200,
        duration_us=elapsed_us(t0, time.perf_counter_ns()),
    )


def query_board(
    token: str,
    criteria: SearchCriteria,
    client: HttpClient,
    *,
    rng: random.Random | None = None,
    sleep: Callable[[float], None] = time.sleep,
    max_delay: float = DEFAULT_MAX_DELAY,
    debug_sample_rate: float = 0.1,
    timeout: float | None = None,
) -> BoardOutcome:
    """
    Fetch one board, keep the postings that match `criteria`.

    Never raises for transport, status or payload problems: those come back as
    a FAILED BoardOutcome (UNREACHABLE, HTTP_ERROR, DECODE_ERROR) so a single
    board cannot abort the caller's batch. Shares nothing mutable; safe to run
    from many threads at once with one HttpClient.
    """
    rand = rng if rng is not None else random
    t0 = time.perf_counter_ns()
    sleep(jitter_delay(rand, max_delay))

    url = board_api_url(token)
    try:
        payload = client.get_json(url, timeout=timeout)
    except requests.HTTPError as e:
        code = e.response.status_code if e.response is not None else None
        if code == 404:
            _sampled_debug(rand, debug_sample_rate * 2, "%s returned status %s (board doesn't exist)", token, code)
        else:
            _sampled_debug(rand, debug_sample_rate, "%s returned status %s", token, code)
        return BoardOutcome.failed(
            token,
            FailureKind.HTTP_ERROR,
            f"HTTP {code}",
            status_code=code,
            duration_us=elapsed_us(t0, time.perf_counter_ns()),
        )
    except requests.exceptions.InvalidJSONError as e:
        return _body_not_json(token, e, rand, debug_sample_rate, t0)
    except requests.RequestException as e:
        # InvalidURL, InvalidHeader etc. are also ValueErrors; no response was received.
        _sampled_debug(rand, debug_sample_rate, "%s network error: %s", token, e)
        return BoardOutcome.failed(
            token,
            FailureKind.UNREACHABLE,
            f"{type(e).__name__}: {e}"[:200],
            duration_us=elapsed_us(t0, time.perf_counter_ns()),
        )
    except ValueError as e:
        return _body_not_json(token, e, rand, debug_sample_rate, t0)

    try:
        records = decode_jobs(payload, token)
    except BoardDecodeError as e:
        _sampled_debug(rand, debug_sample_rate, "%s unexpected payload: %s", token, e)
        return BoardOutcome.failed(
            token,
            FailureKind.DECODE_ERROR,
            str(e),
            status_code=200,
            duration_us=elapsed_us(t0, time.perf_counter_ns()),
        )

    if records:
        log.debug("%s: %d jobs found", token, len(records))

    matched = [r for r in records if matches(r.title, r.location, criteria)]
    for job in matched:
        log.info("Match: %r at %s (%s)", job.title, job.company, job.location)

    return BoardOutcome.matched(
        token,
        matched,
        total_jobs=len(records),
        duration_us=elapsed_us(t0, time.perf_counter_ns()),
    )
