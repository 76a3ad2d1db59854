from __future__ import annotations

import html
from typing import Any

_HTML_ESCAPE_QUOTE = True  # keep quotes escaped for attributes


def esc(s: str | None) -> str:
    """
    Escape text for HTML contexts (titles, URLs). Do NOT wrap or add tags.
    """
    if s is None:
        return ""
    return html.escape(str(s), quote=_HTML_ESCAPE_QUOTE)


def truthy(v: Any) -> bool:
    """
    Normalize common truthy inputs from env/kwargs.
    Accepts bools or strings like: '1', 'true', 'yes', 'on'.
    """
    if isinstance(v, bool):
        return v
    if v is None:
        return False
    if isinstance(v, (int, float)):
        return v != 0
    s = str(v).strip().lower()
    return s in {"1", "true", "yes", "on", "y", "t"}


def elapsed_us(start_ns: int, end_ns: int) -> int:
    """Microseconds between two perf_counter_ns() readings."""
    return int((end_ns - start_ns) // 1000)


def capitalize_token(token: str) -> str:
    """'stripe' -> 'Stripe'; leaves the rest of the token untouched."""
    if not token:
        return ""
    return token[:1].upper() + token[1:]
