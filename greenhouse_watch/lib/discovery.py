# greenhouse_watch/lib/discovery.py
"""
Board discovery: which Greenhouse board tokens should a run query?

Primary: one search-engine results page restricted to boards.greenhouse.io,
scraped for anchors pointing at a board. Fallback: a curated list of companies
known to host their board on Greenhouse. The fallback is always included, so a
run works with no access to the search engine at all.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from urllib.parse import parse_qs, unquote, urlsplit

from bs4 import BeautifulSoup  # pip install beautifulsoup4 html5lib

from . import logging_bridge
from .http_client import HttpClient

log = logging.getLogger(__name__)

SEARCH_ENGINE_URL = "https://www.google.com/search"
SEARCH_QUERY = "site:boards.greenhouse.io"
SEARCH_RESULTS = 100

# Companies verified to publish their board on Greenhouse.
KNOWN_BOARD_TOKENS: tuple[str, ...] = (
    "stripe", "uber", "airbnb", "shopify", "atlassian",
    "mongodb", "snowflake", "databricks", "plaid", "twilio",
    "coinbase", "square", "dropbox", "slack", "zoom",
    "figma", "notion", "airtable", "zapier", "hubspot",
    "asana", "gitlab", "newrelic", "datadog", "sendgrid",
    "doordash", "instacart", "reddit", "discord", "spotify",
    "pinterest", "robinhood", "lyft", "github", "palantir",
)  # fmt: skip

# boards.greenhouse.io/<token>[/jobs/<id>] and job-boards.greenhouse.io/<token>
_BOARD_PATH_RE = re.compile(r"(?<![\w-])(?:job-)?boards\.greenhouse\.io/([A-Za-z0-9_-]+)", re.I)
# boards-api.greenhouse.io/v1/boards/<token>/...
_API_PATH_RE = re.compile(r"boards-api\.greenhouse\.io/v1/boards/([A-Za-z0-9_-]+)", re.I)
# Path segments that are part of the platform, not a company
_RESERVED = {"embed", "v1", "jobs", "api"}


class DiscoveryError(RuntimeError):
    """Search-engine discovery produced nothing usable."""


@dataclass(frozen=True)
class Discovery:
    """
    Outcome of one discovery pass.
    - tokens: primary ∪ fallback ∪ extra (never smaller than the fallback set)
    - primary_error: set when the search-engine path failed or found nothing
    """

    tokens: frozenset[str]
    primary_tokens: frozenset[str] = frozenset()
    fallback_count: int = 0
    primary_error: str | None = None

    @property
    def primary_failed(self) -> bool:
        return self.primary_error is not None


def extract_board_token(url: str | None) -> str | None:
    """
    Pull a board token out of anything that links to a Greenhouse board,
    including search-engine redirect wrappers ("/url?q=https%3A//boards...").

        https://boards.greenhouse.io/stripe/jobs/123        -> "stripe"
        https://job-boards.greenhouse.io/figma              -> "figma"
        https://boards.greenhouse.io/embed/job_board?for=x  -> "x"
        https://boards-api.greenhouse.io/v1/boards/y/jobs   -> "y"
    """
    if not url:
        return None
    text = unquote(unquote(url))

    m = _API_PATH_RE.search(text)
    if m:
        return m.group(1).lower()

    for m in _BOARD_PATH_RE.finditer(text):
        token = m.group(1).lower()
        if token == "embed":
            embedded = _embed_for_param(text[m.start():])
            if embedded:
                return embedded
            continue
        if token not in _RESERVED:
            return token
    return None


def _embed_for_param(fragment: str) -> str | None:
    qs = parse_qs(urlsplit("https://" + fragment.split("&sa=")[0]).query)
    values = qs.get("for") or []
    token = (values[0] if values else "").strip().lower()
    return token if re.fullmatch(r"[a-z0-9_-]+", token or "") else None


def tokens_from_html(html: str) -> frozenset[str]:
    """Every distinct board token linked from an HTML page."""
    soup = BeautifulSoup(html, "html5lib")
    found: set[str] = set()
    for a in soup.select("a[href*='greenhouse.io']"):
        token = extract_board_token(a.get("href"))
        if token:
            found.add(token)
    return frozenset(found)


def search_engine_tokens(
    client: HttpClient,
    *,
    query: str = SEARCH_QUERY,
    num: int = SEARCH_RESULTS,
) -> frozenset[str]:
    """
    Primary method: one results page for `site:boards.greenhouse.io`.
    Raises (requests errors, DiscoveryError) when nothing usable comes back.
    """
    html = client.get_text(SEARCH_ENGINE_URL, params={"q": query, "num": num})
    tokens = tokens_from_html(html)
    if not tokens:
        raise DiscoveryError("no board tokens found in search results")
    return tokens


def fallback_tokens(known: Iterable[str] = KNOWN_BOARD_TOKENS) -> frozenset[str]:
    """Static method: the curated list, normalized."""
    return frozenset(t.strip().lower() for t in known if t and t.strip())


def discover(
    client: HttpClient | None,
    *,
    use_search_engine: bool = True,
    fallback: Iterable[str] = KNOWN_BOARD_TOKENS,
    extra: Iterable[str] = (),
) -> Discovery:
    """
    Run discovery once. Never raises: a failed primary path is recorded in
    Discovery.primary_error and in the error log, and the run continues with
    the fallback (plus anything the primary path did find).
    """
    floor = fallback_tokens(fallback)
    extras = fallback_tokens(extra)

    primary: frozenset[str] = frozenset()
    primary_error: str | None = None
    if use_search_engine and client is None:
        primary_error = "no http client"
    elif use_search_engine:
        try:
            primary = search_engine_tokens(client)
        except Exception as e:
            primary_error = f"{type(e).__name__}: {e}"
            logging_bridge.error({
                "component": "greenhouse_watch.discovery",
                "op": "search_engine",
                "error": repr(e),
                "fallback_count": len(floor),
            })

    tokens = primary | floor | extras
    logging_bridge.activity({
        "component": "greenhouse_watch.discovery",
        "op": "discovered",
        "search_engine": use_search_engine,
        "primary_count": len(primary),
        "fallback_count": len(floor),
        "extra_count": len(extras),
        "total": len(tokens),
        "primary_error": primary_error,
        "sample": sorted(tokens)[:10],
    })
    log.debug("Discovered %d board tokens (%d via search engine)", len(tokens), len(primary))
    return Discovery(
        tokens=tokens,
        primary_tokens=primary,
        fallback_count=len(floor),
        primary_error=primary_error,
    )


def discover_tokens(client: HttpClient | None, **kwargs) -> frozenset[str]:
    """Token set only; see discover() for the failure details."""
    return discover(client, **kwargs).tokens
