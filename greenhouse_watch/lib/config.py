from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from .discovery import KNOWN_BOARD_TOKENS
from .utils import truthy


# -----------------------------
# Exceptions
# -----------------------------
class ConfigError(ValueError):
    """Raised when provided kwargs/files cannot form valid Settings or SearchCriteria."""


# -----------------------------
# Defaults
# -----------------------------
DEFAULT_ROLE = "principal product manager"
DEFAULT_LOCATION = "94555"  # Fremont, CA area

# Only the title variations and Fremont aliases searched by default; anything else belongs in
# a criteria file.
DEFAULT_SYNONYMS: dict[str, tuple[str, ...]] = {
    "principal": ("principal", "senior", "staff", "lead"),
    "manager": ("manager", "management"),
}
DEFAULT_LOCATION_ALIASES: dict[str, tuple[str, ...]] = {
    "94555": ("Fremont, CA", "Bay Area", "SF", "Silicon Valley"),
}
DEFAULT_REMOTE_MARKERS: tuple[str, ...] = ("remote",)

DEFAULT_TIMEOUT = 30.0
DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
DEFAULT_MAX_DELAY_MS = 200
DEFAULT_DEBUG_SAMPLE_RATE = 0.1

OUTPUT_FORMATS = ("text", "html")


# -----------------------------
# Models
# -----------------------------
@dataclass(frozen=True)
class SearchCriteria:
    """
    What a run is looking for. Shared read-only by every board task.

    - role: phrase whose whitespace-separated keywords must ALL appear in a title
    - location: target location string (e.g. "94555")
    - synonyms: keyword -> group of accepted variants
    - location_aliases: target -> group of locations treated as equal to it
    - remote_markers: locations that always match
    - max_concurrency / request_timeout: optional per-run overrides of Settings
    """

    role: str
    location: str
    synonyms: Mapping[str, tuple[str, ...]] = field(default_factory=lambda: MappingProxyType({}))
    location_aliases: Mapping[str, tuple[str, ...]] = field(default_factory=lambda: MappingProxyType({}))
    remote_markers: tuple[str, ...] = DEFAULT_REMOTE_MARKERS
    max_concurrency: int | None = None
    request_timeout: float | None = None

    @classmethod
    def build(
        cls,
        role: str,
        location: str,
        *,
        synonyms: Mapping[str, Iterable[str]] | None = None,
        location_aliases: Mapping[str, Iterable[str]] | None = None,
        remote_markers: Iterable[str] | None = None,
        max_concurrency: int | None = None,
        request_timeout: float | None = None,
    ) -> SearchCriteria:
        """Normalize tables (lower-cased keys, tuple groups) and freeze them."""
        criteria = cls(
            role=" ".join(str(role or "").split()),
            location=str(location or "").strip(),
            synonyms=MappingProxyType(_normalize_synonyms(DEFAULT_SYNONYMS if synonyms is None else synonyms)),
            location_aliases=MappingProxyType(
                _normalize_aliases(DEFAULT_LOCATION_ALIASES if location_aliases is None else location_aliases)
            ),
            remote_markers=tuple(
                str(m).strip()
                for m in (DEFAULT_REMOTE_MARKERS if remote_markers is None else remote_markers)
                if str(m).strip()
            ),
            max_concurrency=max_concurrency,
            request_timeout=request_timeout,
        )
        _validate_criteria(criteria)
        return criteria

    @property
    def keywords(self) -> tuple[str, ...]:
        return tuple(self.role.lower().split())

    @property
    def keyword_groups(self) -> tuple[tuple[str, ...], ...]:
        """One group per keyword: the keyword itself plus its configured synonyms."""
        groups: list[tuple[str, ...]] = []
        for kw in self.keywords:
            extra = self.synonyms.get(kw, ())
            groups.append((kw, *(s for s in extra if s != kw)))
        return tuple(groups)

    def location_targets(self) -> tuple[str, ...]:
        """Target plus its aliases; order preserved, target first."""
        aliases = self.location_aliases.get(self.location.casefold(), ())
        return (self.location, *aliases)

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.role,
            "location": self.location,
            "synonyms": {k: list(v) for k, v in self.synonyms.items()},
            "location_aliases": {k: list(v) for k, v in self.location_aliases.items()},
            "remote_markers": list(self.remote_markers),
            "max_concurrency": self.max_concurrency,
            "request_timeout": self.request_timeout,
        }


@dataclass
class Settings:
    """
    Canonical configuration for a 'greenhouse_watch' run.

    Criteria come from kwargs, optionally layered over a JSON criteria file
    (criteria_path). Transport settings (timeout, user agent) are handed to the
    shared HttpClient; nothing here is read from the environment.
    """

    criteria: SearchCriteria = field(default_factory=lambda: SearchCriteria.build(DEFAULT_ROLE, DEFAULT_LOCATION))
    criteria_path: str | None = None

    # Transport
    timeout: float = DEFAULT_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT

    # Fan-out
    max_concurrency: int | None = None  # None -> one worker per board
    deadline_seconds: float | None = None  # None -> wait for every board
    max_delay_ms: int = DEFAULT_MAX_DELAY_MS
    debug_sample_rate: float = DEFAULT_DEBUG_SAMPLE_RATE

    # Discovery
    use_search_engine: bool = True
    fallback_boards: tuple[str, ...] = KNOWN_BOARD_TOKENS
    extra_boards: tuple[str, ...] = ()

    # Runtime behavior
    skip_network: bool = False
    output: str = "text"

    # ------------- convenience -------------
    def effective_max_workers(self, board_count: int, criteria: SearchCriteria | None = None) -> int:
        """Worker count for a run over board_count boards (never below 1)."""
        c = criteria or self.criteria
        cap = c.max_concurrency or self.max_concurrency
        workers = board_count if not cap else min(board_count, cap)
        return max(1, workers)

    def effective_timeout(self, criteria: SearchCriteria | None = None) -> float:
        c = criteria or self.criteria
        return float(c.request_timeout or self.timeout)

    # ------------- constructors -------------
    @classmethod
    def from_env_and_kwargs(cls, kwargs: Mapping[str, Any] | None) -> Settings:
        """
        Build Settings from kwargs with validation.

        Expected kwargs (all optional):

            role: str = "principal product manager"
            location: str = "94555"
            criteria_path: str          # JSON file; kwargs win over file values
            synonyms: dict[str, list[str]]
            location_aliases: dict[str, list[str]]
            remote_markers: list[str]
            max_concurrency: int | None
            request_timeout: float | None

            timeout: float = 30.0
            user_agent: str
            deadline_seconds: float | None
            max_delay_ms: int = 200
            debug_sample_rate: float = 0.1
            use_search_engine: bool = true
            fallback_boards: list[str]
            extra_boards: list[str]
            skip_network: bool = false
            output: "text" | "html"
        """
        kw = dict(kwargs or {})

        criteria_path = kw.get("criteria_path")
        if criteria_path is not None:
            criteria_path = str(criteria_path).strip() or None
        file_values: dict[str, Any] = load_criteria_file(criteria_path) if criteria_path else {}

        def pick(name: str) -> Any:
            val = kw.get(name)
            return val if val is not None else file_values.get(name)

        criteria = SearchCriteria.build(
            role=pick("role") if pick("role") is not None else DEFAULT_ROLE,
            location=pick("location") if pick("location") is not None else DEFAULT_LOCATION,
            synonyms=_as_mapping(pick("synonyms"), "synonyms"),
            location_aliases=_as_mapping(pick("location_aliases"), "location_aliases"),
            remote_markers=_as_str_list(pick("remote_markers"), "remote_markers"),
            max_concurrency=_opt_int(pick("max_concurrency"), "max_concurrency"),
            request_timeout=_opt_float(pick("request_timeout"), "request_timeout"),
        )

        fallback = _as_str_list(kw.get("fallback_boards"), "fallback_boards")
        extra = _as_str_list(kw.get("extra_boards"), "extra_boards")

        settings = cls(
            criteria=criteria,
            criteria_path=criteria_path,
            timeout=_opt_float(kw.get("timeout"), "timeout")
            if kw.get("timeout") not in (None, "")
            else DEFAULT_TIMEOUT,
            user_agent=str(kw.get("user_agent") or DEFAULT_USER_AGENT),
            max_concurrency=_opt_int(kw.get("max_concurrency"), "max_concurrency"),
            deadline_seconds=_opt_float(kw.get("deadline_seconds"), "deadline_seconds"),
            max_delay_ms=_opt_int(kw.get("max_delay_ms"), "max_delay_ms")
            if kw.get("max_delay_ms") is not None
            else DEFAULT_MAX_DELAY_MS,
            debug_sample_rate=_opt_float(kw.get("debug_sample_rate"), "debug_sample_rate")
            if kw.get("debug_sample_rate") is not None
            else DEFAULT_DEBUG_SAMPLE_RATE,
            use_search_engine=truthy(kw["use_search_engine"]) if "use_search_engine" in kw else True,
            fallback_boards=_normalize_tokens(fallback) if fallback is not None else KNOWN_BOARD_TOKENS,
            extra_boards=_normalize_tokens(extra or ()),
            skip_network=truthy(kw.get("skip_network")),
            output=str(kw.get("output") or "text").strip().lower(),
        )
        _validate_settings(settings)
        return settings


# -----------------------------
# Helpers
# -----------------------------
def load_criteria_file(path: str) -> dict[str, Any]:
    """
    Read a criteria JSON object:
        {"role": "...", "location": "...", "synonyms": {...},
         "location_aliases": {...}, "remote_markers": [...]}
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"criteria file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"criteria file is invalid JSON: {path}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"criteria file must contain a JSON object: {path}")
    return data


def load_criteria(path: str) -> SearchCriteria:
    """Build SearchCriteria from a criteria file alone (used by `validate-criteria`)."""
    return Settings.from_env_and_kwargs({"criteria_path": path}).criteria


def _normalize_synonyms(table: Mapping[str, Iterable[str]]) -> dict[str, tuple[str, ...]]:
    out: dict[str, tuple[str, ...]] = {}
    for key, group in table.items():
        k = str(key).strip().lower()
        if not k:
            raise ConfigError("synonyms: keys cannot be empty.")
        if isinstance(group, str):
            raise ConfigError(f"synonyms[{key!r}] must be a list of strings.")
        members = [str(s).strip().lower() for s in group if str(s).strip()]
        out[k] = tuple(dict.fromkeys([k, *members]))
    return out


def _normalize_aliases(table: Mapping[str, Iterable[str]]) -> dict[str, tuple[str, ...]]:
    out: dict[str, tuple[str, ...]] = {}
    for key, group in table.items():
        k = str(key).strip().casefold()
        if not k:
            raise ConfigError("location_aliases: keys cannot be empty.")
        if isinstance(group, str):
            raise ConfigError(f"location_aliases[{key!r}] must be a list of strings.")
        out[k] = tuple(str(a).strip() for a in group if str(a).strip())
    return out


def _normalize_tokens(tokens: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(t.strip().lower() for t in tokens if t and t.strip()))


def _as_mapping(value: Any, name: str) -> Mapping[str, Any] | None:
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise ConfigError(f"'{name}' must be a JSON object.") from e
    if not isinstance(value, Mapping):
        raise ConfigError(f"'{name}' must be an object mapping strings to lists.")
    return value


def _as_str_list(value: Any, name: str) -> list[str] | None:
    if value is None:
        return None
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise ConfigError(f"'{name}' must be a list of strings.")
    return [str(v) for v in value]


def _opt_int(value: Any, name: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{name}' must be an integer (got {value!r}).") from e


def _opt_float(value: Any, name: str) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{name}' must be a number (got {value!r}).") from e


def _validate_criteria(c: SearchCriteria) -> None:
    if not c.role:
        raise ConfigError("'role' cannot be empty.")
    if not c.location:
        raise ConfigError("'location' cannot be empty.")
    if c.max_concurrency is not None and c.max_concurrency <= 0:
        raise ConfigError("'max_concurrency' must be >= 1.")
    if c.request_timeout is not None and c.request_timeout <= 0:
        raise ConfigError("'request_timeout' must be > 0.")


def _validate_settings(s: Settings) -> None:
    if s.timeout <= 0:
        raise ConfigError("'timeout' must be > 0.")
    if s.max_concurrency is not None and s.max_concurrency <= 0:
        raise ConfigError("'max_concurrency' must be >= 1.")
    if s.deadline_seconds is not None and s.deadline_seconds <= 0:
        raise ConfigError("'deadline_seconds' must be > 0.")
    if s.max_delay_ms < 0:
        raise ConfigError("'max_delay_ms' cannot be negative.")
    if not 0.0 <= s.debug_sample_rate <= 1.0:
        raise ConfigError("'debug_sample_rate' must be between 0 and 1.")
    if s.output not in OUTPUT_FORMATS:
        raise ConfigError(f"'output' must be one of {', '.join(OUTPUT_FORMATS)}.")
    if not s.user_agent.strip():
        raise ConfigError("'user_agent' cannot be empty.")
    if "\r" in s.user_agent or "\n" in s.user_agent:
        raise ConfigError("'user_agent' cannot contain line breaks.")
