# greenhouse_watch/lib/__init__.py
from __future__ import annotations

# Re-export commonly-used types for convenience
from .board_query import BoardDecodeError, query_board
from .config import ConfigError, SearchCriteria, Settings
from .discovery import KNOWN_BOARD_TOKENS, Discovery, discover, discover_tokens
from .engine import GreenhouseJobSearcher, NoBoardsError, run_once
from .matcher import matches_location, matches_role
from .models import BoardOutcome, FailureKind, JobRecord, OutcomeStatus, SearchResult, SearchState

__all__ = [
    "KNOWN_BOARD_TOKENS",
    "BoardDecodeError",
    "BoardOutcome",
    "ConfigError",
    "Discovery",
    "FailureKind",
    "GreenhouseJobSearcher",
    "JobRecord",
    "NoBoardsError",
    "OutcomeStatus",
    "SearchCriteria",
    "SearchResult",
    "SearchState",
    "Settings",
    "discover",
    "discover_tokens",
    "matches_location",
    "matches_role",
    "query_board",
    "run_once",
]
