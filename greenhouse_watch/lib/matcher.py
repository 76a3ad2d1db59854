"""
Binary title/location predicates applied to every posting of every board.

Both functions are pure: same inputs, same answer, no I/O. They are called
concurrently from board tasks and only read the (frozen) SearchCriteria.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import SearchCriteria

_TOKEN_RE = re.compile(r"[a-z0-9]+")


def title_tokens(title: str | None) -> list[str]:
    """'Sr. Product Manager, Payments' -> ['sr', 'product', 'manager', 'payments']"""
    return _TOKEN_RE.findall((title or "").lower())


def _normalize_phrase(s: str) -> str:
    return " ".join(title_tokens(s))


def matches_role(title: str | None, criteria: SearchCriteria) -> bool:
    """
    True iff every keyword group of the role has at least one member present in
    the title. Matching is case-insensitive and substring-tolerant over the
    tokenized title, so "manage" would hit "management" and a multi-word
    synonym ("product lead") must appear as a phrase.
    """
    haystack = _normalize_phrase(title or "")
    for group in criteria.keyword_groups:
        if not any(_contains(haystack, member) for member in group):
            return False
    return True


def _contains(haystack: str, member: str) -> bool:
    needle = _normalize_phrase(member)
    return bool(needle) and needle in haystack


def matches_location(job_location: str | None, criteria: SearchCriteria) -> bool:
    """
    True iff the posting's location equals the target, one of the target's
    aliases, or a remote marker (all compared trimmed and case-folded).
    Missing location never matches.
    """
    loc = (job_location or "").strip().casefold()
    if not loc:
        return False
    if any(loc == m.casefold() for m in criteria.remote_markers):
        return True
    return any(loc == t.strip().casefold() for t in criteria.location_targets() if t.strip())


def matches(title: str | None, job_location: str | None, criteria: SearchCriteria) -> bool:
    return matches_role(title, criteria) and matches_location(job_location, criteria)
