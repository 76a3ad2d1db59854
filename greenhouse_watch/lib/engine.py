"""
Engine for searching every discovered Greenhouse board for matching postings.

Features:
  - Discovery once per run (search engine + curated fallback)
  - Parallel execution: one thread-pool task per board token
  - Per-board error isolation: failures come back as BoardOutcome data
  - Optional concurrency cap and overall deadline
  - Progress observation while boards are being queried
  - Dependency injection for testability (`query`, `discover_fn`, `rng`, `sleep`)
  - Structured logging via `logging_bridge`
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeout

from . import logging_bridge
from .board_query import query_board
from .config import SearchCriteria, Settings
from .discovery import SEARCH_RESULTS, Discovery, discover
from .http_client import HttpClient
from .models import BoardOutcome, FailureKind, SearchResult, SearchState
from .utils import elapsed_us

QueryFn = Callable[..., BoardOutcome]
DiscoverFn = Callable[..., Discovery]
ProgressFn = Callable[[int, int, BoardOutcome], None]


class NoBoardsError(RuntimeError):
    """Discovery produced zero board tokens (empty fallback and nothing found)."""


def _default_pool_size(settings: Settings) -> int:
    if settings.max_concurrency:
        return settings.max_concurrency
    return SEARCH_RESULTS + len(settings.fallback_boards) + len(settings.extra_boards)


# =============================================================================
# ORCHESTRATOR
# =============================================================================
class GreenhouseJobSearcher:
    """
    Owns the HTTP client and the token set of a run.

    run_search() walks IDLE -> DISCOVERING -> QUERYING -> AGGREGATING -> DONE.
    Board tasks only read the criteria and the client; all run state below is
    mutated from the calling thread.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        client: HttpClient | None = None,
        query: QueryFn | None = None,
        discover_fn: DiscoverFn | None = None,
        rng: random.Random | None = None,
        sleep: Callable[[float], None] = time.sleep,
        on_progress: ProgressFn | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self._owns_client = client is None
        self.client = client or HttpClient(
            timeout=self.settings.timeout,
            user_agent=self.settings.user_agent,
            pool_maxsize=_default_pool_size(self.settings),
        )
        self._query = query or query_board
        self._discover = discover_fn or discover
        self._rng = rng
        self._sleep = sleep
        self._on_progress = on_progress

        self.state = SearchState.IDLE
        self.board_tokens: frozenset[str] = frozenset()
        self.discovery: Discovery | None = None
        self._completed = 0
        self._total = 0

    # ---- observation ----
    @property
    def progress(self) -> tuple[int, int]:
        """(boards completed, boards started) for the current or last run."""
        return (self._completed, self._total)

    # ---- lifecycle ----
    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> GreenhouseJobSearcher:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ---- main entry ----
    def run_search(self, criteria: SearchCriteria | None = None) -> SearchResult:
        """
        Discover boards, query all of them concurrently, aggregate matches.

        Only raises NoBoardsError (nothing to search). Any problem with an
        individual board is reported in that board's outcome.
        """
        criteria = criteria or self.settings.criteria
        start_ns = time.perf_counter_ns()
        self._completed = 0
        self._total = 0

        if self.settings.skip_network:
            logging_bridge.activity({
                "component": "greenhouse_watch.engine",
                "op": "skipped",
                "reason": "skip_network",
                "role": criteria.role,
                "location": criteria.location,
            })
            self.state = SearchState.DONE
            return SearchResult(skipped=True)

        # ---------------------------------------------------------------------
        # DISCOVERING: token set is fixed for the rest of the run
        # ---------------------------------------------------------------------
        self.state = SearchState.DISCOVERING
        self.discovery = self._discover(
            self.client,
            use_search_engine=self.settings.use_search_engine,
            fallback=self.settings.fallback_boards,
            extra=self.settings.extra_boards,
        )
        self.board_tokens = frozenset(self.discovery.tokens)
        if not self.board_tokens:
            self.state = SearchState.IDLE
            logging_bridge.error({
                "component": "greenhouse_watch.engine",
                "op": "no_boards",
                "primary_error": self.discovery.primary_error,
            })
            raise NoBoardsError("discovery produced no board tokens; check fallback_boards")

        # ---------------------------------------------------------------------
        # QUERYING: fan out, one task per board
        # ---------------------------------------------------------------------
        self.state = SearchState.QUERYING
        outcomes = self._fan_out(sorted(self.board_tokens), criteria)

        # ---------------------------------------------------------------------
        # AGGREGATING: single-threaded fold over completed outcomes
        # ---------------------------------------------------------------------
        self.state = SearchState.AGGREGATING
        result = SearchResult.from_outcomes(
            outcomes,
            discovery_error=self.discovery.primary_error,
            duration_us=elapsed_us(start_ns, time.perf_counter_ns()),
        )
        self._log_summary(result, criteria)

        self.state = SearchState.DONE
        return result

    # -------------------------------------------------------------------------
    # internals
    # -------------------------------------------------------------------------
    def _fan_out(self, tokens: list[str], criteria: SearchCriteria) -> list[BoardOutcome]:
        deadline = self.settings.deadline_seconds
        workers = self.settings.effective_max_workers(len(tokens), criteria)
        timeout = self.settings.effective_timeout(criteria)
        self._total = len(tokens)

        outcomes: dict[str, BoardOutcome] = {}
        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="board")
        try:
            futures = {pool.submit(self._query_one, tok, criteria, timeout): tok for tok in tokens}
            try:
                for fut in as_completed(futures, timeout=deadline):
                    tok = futures[fut]
                    self._record(outcomes, self._collect(tok, fut))
            except FuturesTimeout:
                for fut, tok in futures.items():
                    if tok in outcomes:
                        continue
                    if fut.done() and not fut.cancelled():
                        self._record(outcomes, self._collect(tok, fut))
                        continue
                    fut.cancel()
                    logging_bridge.error({
                        "component": "greenhouse_watch.engine",
                        "op": "board_timeout",
                        "board": tok,
                        "deadline_seconds": deadline,
                    })
                    self._record(
                        outcomes,
                        BoardOutcome.failed(tok, FailureKind.TIMEOUT, f"not finished within {deadline}s"),
                    )
        finally:
            # With a deadline, stragglers are abandoned rather than awaited.
            pool.shutdown(wait=deadline is None, cancel_futures=True)

        return [outcomes[tok] for tok in tokens]

    def _query_one(self, token: str, criteria: SearchCriteria, timeout: float) -> BoardOutcome:
        return self._query(
            token,
            criteria,
            self.client,
            rng=self._rng,
            sleep=self._sleep,
            max_delay=self.settings.max_delay_ms / 1000.0,
            debug_sample_rate=self.settings.debug_sample_rate,
            timeout=timeout,
        )

    def _collect(self, token: str, fut: Future) -> BoardOutcome:
        try:
            return fut.result()
        except Exception as e:
            logging_bridge.error({
                "component": "greenhouse_watch.engine",
                "op": "board_query",
                "board": token,
                "error": repr(e),
            })
            return BoardOutcome.failed(token, FailureKind.INTERNAL, repr(e)[:200])

    def _record(self, outcomes: dict[str, BoardOutcome], outcome: BoardOutcome) -> None:
        outcomes[outcome.board] = outcome
        self._completed += 1
        if self._on_progress is not None:
            self._on_progress(self._completed, self._total, outcome)

    def _log_summary(self, result: SearchResult, criteria: SearchCriteria) -> None:
        slowest = sorted(result.outcomes, key=lambda o: o.duration_us, reverse=True)[:5]
        logging_bridge.activity({
            "component": "greenhouse_watch.engine",
            "op": "summary",
            "role": criteria.role,
            "location": criteria.location,
            "boards": result.boards_searched,
            "matched": result.boards_matched,
            "empty": result.boards_empty,
            "failed": result.boards_failed,
            "failures_by_kind": result.failures_by_kind,
            "matches": len(result.jobs),
            "discovery_failed": result.discovery_failed,
            "slowest_us": {o.board: o.duration_us for o in slowest},
            "total_us": result.duration_us,
        })


# =============================================================================
# CONVENIENCE
# =============================================================================
def run_once(
    settings: Settings,
    criteria: SearchCriteria | None = None,
    *,
    searcher_factory: Callable[[Settings], GreenhouseJobSearcher] | None = None,
) -> SearchResult:
    """Build a searcher, run one search, release the HTTP client."""
    factory = searcher_factory or GreenhouseJobSearcher
    with factory(settings) as searcher:
        return searcher.run_search(criteria)
