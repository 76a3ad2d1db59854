from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import Enum

from .utils import capitalize_token

# A company's board identifier on Greenhouse, e.g. "stripe".
BoardToken = str


class SearchState(str, Enum):
    """Lifecycle of one GreenhouseJobSearcher run."""

    IDLE = "idle"
    DISCOVERING = "discovering"
    QUERYING = "querying"
    AGGREGATING = "aggregating"
    DONE = "done"


class OutcomeStatus(str, Enum):
    MATCHED = "matched"  # board answered and at least one posting matched
    EMPTY = "empty"  # board answered, nothing matched
    FAILED = "failed"


class FailureKind(str, Enum):
    """Why a single board could not be searched."""

    UNREACHABLE = "unreachable"  # connection error, read timeout
    DECODE_ERROR = "decode_error"  # body is not the expected JSON shape
    HTTP_ERROR = "http_error"  # non-2xx status
    TIMEOUT = "timeout"  # still running when the run deadline expired
    INTERNAL = "internal"  # unexpected exception inside the board's task


@dataclass(frozen=True)
class JobRecord:
    """
    One normalized posting from a board listing.
    `board` is the token the posting was fetched from.
    """

    board: BoardToken
    id: int
    title: str
    updated_at: str
    location: str | None
    url: str
    departments: tuple[str, ...] = ()

    @property
    def company(self) -> str:
        """First department name if the board reports one, else the capitalized token."""
        if self.departments and self.departments[0]:
            return self.departments[0]
        return capitalize_token(self.board)

    def sort_key(self) -> tuple[str, int]:
        return (self.board, self.id)


@dataclass(frozen=True)
class BoardOutcome:
    """
    Result of querying one board. Failures are carried as data:
    status=FAILED with a FailureKind and a short detail string.
    """

    board: BoardToken
    status: OutcomeStatus
    jobs: tuple[JobRecord, ...] = ()
    failure: FailureKind | None = None
    detail: str = ""
    status_code: int | None = None
    total_jobs: int = 0  # postings on the board before filtering
    duration_us: int = 0

    @property
    def ok(self) -> bool:
        return self.status is not OutcomeStatus.FAILED

    @classmethod
    def matched(
        cls,
        board: BoardToken,
        jobs: list[JobRecord] | tuple[JobRecord, ...],
        *,
        total_jobs: int,
        status_code: int | None = 200,
        duration_us: int = 0,
    ) -> BoardOutcome:
        ordered = tuple(sorted(jobs, key=JobRecord.sort_key))
        return cls(
            board=board,
            status=OutcomeStatus.MATCHED if ordered else OutcomeStatus.EMPTY,
            jobs=ordered,
            status_code=status_code,
            total_jobs=total_jobs,
            duration_us=duration_us,
        )

    @classmethod
    def failed(
        cls,
        board: BoardToken,
        failure: FailureKind,
        detail: str = "",
        *,
        status_code: int | None = None,
        duration_us: int = 0,
    ) -> BoardOutcome:
        return cls(
            board=board,
            status=OutcomeStatus.FAILED,
            failure=failure,
            detail=detail,
            status_code=status_code,
            duration_us=duration_us,
        )


@dataclass(frozen=True)
class SearchResult:
    """
    Aggregate of one run: all matching postings plus one outcome per board.
    - jobs: sorted by (board, id)
    - outcomes: sorted by board token
    """

    jobs: tuple[JobRecord, ...] = ()
    outcomes: tuple[BoardOutcome, ...] = ()
    discovery_failed: bool = False
    discovery_error: str | None = None
    duration_us: int = 0
    skipped: bool = False

    @classmethod
    def from_outcomes(
        cls,
        outcomes: list[BoardOutcome],
        *,
        discovery_error: str | None = None,
        duration_us: int = 0,
    ) -> SearchResult:
        ordered = sorted(outcomes, key=lambda o: o.board)
        jobs = sorted((j for o in ordered for j in o.jobs), key=JobRecord.sort_key)
        return cls(
            jobs=tuple(jobs),
            outcomes=tuple(ordered),
            discovery_failed=discovery_error is not None,
            discovery_error=discovery_error,
            duration_us=duration_us,
        )

    # ---- tallies ----
    @property
    def boards_searched(self) -> int:
        return len(self.outcomes)

    @property
    def boards_matched(self) -> int:
        return sum(1 for o in self.outcomes if o.status is OutcomeStatus.MATCHED)

    @property
    def boards_empty(self) -> int:
        return sum(1 for o in self.outcomes if o.status is OutcomeStatus.EMPTY)

    @property
    def boards_failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status is OutcomeStatus.FAILED)

    @property
    def failures_by_kind(self) -> dict[str, int]:
        counts = Counter(o.failure.value for o in self.outcomes if o.failure is not None)
        return dict(sorted(counts.items()))

    def failed_boards(self) -> list[BoardToken]:
        return [o.board for o in self.outcomes if o.status is OutcomeStatus.FAILED]

    def summary(self) -> str:
        return (
            f"searched {self.boards_searched} boards, {self.boards_failed} failed, "
            f"found {len(self.jobs)} matches"
        )
