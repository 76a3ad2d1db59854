# tests/conftest.py
import os
import random
import threading
import time

import pytest
import requests
from freezegun import freeze_time

from greenhouse_watch.lib.config import SearchCriteria, Settings


# ---------------------------------------------------------------------
# Live tests are opt-in: use --live or RUN_LIVE_TESTS=1
# ---------------------------------------------------------------------
def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--live",
        action="store_true",
        default=False,
        help="Run tests marked as 'live' (network calls to Greenhouse / search engine).",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "live: marks tests that perform live network calls or hit external services (skipped by default).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_live = config.getoption("--live") or os.getenv("RUN_LIVE_TESTS") == "1"
    if run_live:
        return
    skip_live = pytest.mark.skip(reason="live tests disabled (use --live or RUN_LIVE_TESTS=1)")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------
# Test-wide env defaults (autouse, function-scoped)
# ---------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _env_defaults(monkeypatch, tmp_path):
    # Write logs to a throwaway dir so real logs stay clean (per test)
    log_dir = tmp_path / "logs"
    monkeypatch.setenv("LOG_DIR", str(log_dir))
    monkeypatch.setenv("ACTIVITY_LOG_PREFIX", "activity-test")
    monkeypatch.setenv("ERROR_LOG_PREFIX", "error-test")
    monkeypatch.delenv("ACTIVITY_LOG_MAX_BYTES", raising=False)
    yield


@pytest.fixture
def log_dir(tmp_path):
    return tmp_path / "logs"


@pytest.fixture
def frozen_utc():
    with freeze_time("2025-01-01T00:00:00Z"):
        yield


# ---------------------------------------------------------------------
# Fake transport
# ---------------------------------------------------------------------
def http_error(code: int) -> requests.HTTPError:
    resp = requests.Response()
    resp.status_code = code
    resp.url = "https://boards-api.greenhouse.io/v1/boards/x/jobs"
    return requests.HTTPError(f"{code} Client Error", response=resp)


def job(
    job_id: int,
    title: str,
    location: str | None,
    *,
    departments: tuple[str, ...] = (),
    updated_at: str = "2025-01-01T00:00:00-05:00",
    board: str = "acme",
) -> dict:
    return {
        "id": job_id,
        "title": title,
        "updated_at": updated_at,
        "location": {"name": location} if location is not None else None,
        "absolute_url": f"https://boards.greenhouse.io/{board}/jobs/{job_id}",
        "departments": [{"id": i, "name": name} for i, name in enumerate(departments)],
    }


class FakeHttpClient:
    """
    Stands in for HttpClient. Board listings are routed by token:
      boards[token] = payload dict | Exception instance
    Unknown tokens answer 404. `html` is the search-engine page (or an
    Exception); None means the search engine is unreachable.
    `gates[token]` is a threading.Event the request waits on (slow boards).
    """

    def __init__(self, boards=None, *, html=None, gates=None, barrier=None):
        self.boards = dict(boards or {})
        self.html = html
        self.gates = dict(gates or {})
        self.barrier = barrier
        self.json_calls: list[tuple[str, float | None]] = []
        self.text_calls: list[tuple[str, dict | None]] = []
        self.closed = False
        self._lock = threading.Lock()
        self.in_flight = 0
        self.max_in_flight = 0

    def get_json(self, url, *, timeout=None, **kwargs):
        token = url.split("/boards/", 1)[1].split("/", 1)[0]
        with self._lock:
            self.json_calls.append((url, timeout))
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.barrier is not None:
                self.barrier.wait(timeout=5)
            gate = self.gates.get(token)
            if gate is not None:
                gate.wait(timeout=10)
            else:
                time.sleep(0.01)
            value = self.boards.get(token, http_error(404))
            if isinstance(value, BaseException):
                raise value
            return value
        finally:
            with self._lock:
                self.in_flight -= 1

    def get_text(self, url, *, params=None, **kwargs):
        self.text_calls.append((url, dict(params) if params else None))
        if self.html is None:
            raise requests.ConnectionError("search engine unreachable")
        if isinstance(self.html, BaseException):
            raise self.html
        return self.html

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


@pytest.fixture
def fake_client_cls():
    return FakeHttpClient


@pytest.fixture
def make_job():
    return job


@pytest.fixture
def make_http_error():
    return http_error


# ---------------------------------------------------------------------
# Criteria / settings
# ---------------------------------------------------------------------
@pytest.fixture
def criteria() -> SearchCriteria:
    """Default search: principal product manager near 94555, default tables."""
    return SearchCriteria.build("principal product manager", "94555")


@pytest.fixture
def no_sleep():
    slept: list[float] = []
    return slept.append, slept


@pytest.fixture
def seeded_rng():
    return random.Random(1234)


@pytest.fixture
def offline_settings():
    """Settings that never touch the search engine; boards given per test."""

    def _make(boards, **extra):
        kwargs = {
            "fallback_boards": list(boards),
            "use_search_engine": False,
            "max_delay_ms": 0,
        }
        kwargs.update(extra)
        return Settings.from_env_and_kwargs(kwargs)

    return _make
