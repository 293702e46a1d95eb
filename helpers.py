# helpers.py  – shared utilities (settings, headers, HTTP fetch, text parsing)

import logging
import math
import random
import re
import urllib.parse

import curl_cffi.requests
from curl_cffi.requests import AsyncSession

from models import RawPage

logger = logging.getLogger(__name__)

# ───────────────────────────────── SETTINGS ──────────────────────────────────
IMPERSONATE      = "chrome124"
FETCH_TIMEOUT    = 20          # seconds, per page fetch
SEARCH_DEADLINE  = 10          # seconds, whole concurrent search batch

DEFAULT_CURRENCY  = "INR"
PLACEHOLDER_TITLE = "Product"

MAX_IMAGES      = 6
MAX_HIGHLIGHTS  = 6
HIGHLIGHT_MIN   = 10           # chars, inclusive
HIGHLIGHT_MAX   = 500
MAX_PLACEHOLDERS = 3           # search-link rows when nothing else was found

# ───────────────────────────── competitor → token map ────────────────────────
COMPETITOR_MAP = {
    "amazon":           "amazon",
    "amazon.in":        "amazon",
    "flipkart":         "flipkart",
    "croma":            "croma",
    "meesho":           "meesho",
    "reliance":         "reliancedigital",
    "reliance digital": "reliancedigital",
    "reliancedigital":  "reliancedigital",
    "myntra":           "myntra",
}

# ────────────────────────────────── HEADERS ──────────────────────────────────
UA_DESKTOP = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.%d.%d Safari/537.36"
)

USER_AGENTS = [
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
]


def random_user_agent() -> str:
    """Chrome-124 desktop UA with a random build number, or one of the fixed UAs."""
    choices = USER_AGENTS + [
        UA_DESKTOP % (random.randint(4200, 4299), random.randint(60, 99))
    ]
    return random.choice(choices)


def browser_headers() -> dict:
    """Fresh header set for one request."""
    return {
        "User-Agent": random_user_agent(),
        "Accept": (
            "text/html,application/xhtml+xml,application/xml;"
            "q=0.9,image/avif,image/webp,*/*;q=0.8"
        ),
        "Accept-Language": "en-US,en;q=0.5",
        "Accept-Encoding": "gzip, deflate, br",
        "Connection":      "keep-alive",
        "Upgrade-Insecure-Requests": "1",
        "Cache-Control":   "max-age=0",
        "Sec-Fetch-Dest":  "document",
        "Sec-Fetch-Mode":  "navigate",
        "Sec-Fetch-Site":  "none",
        "Sec-Fetch-User":  "?1",
    }


# ──────────────────────────────── HTTP fetch ─────────────────────────────────
class FetchError(Exception):
    """A page could not be retrieved (network failure or non-2xx status)."""

    def __init__(self, url: str, reason: str, status: int | None = None):
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason
        self.status = status


class PageFetcher:
    """
    Single-shot page retrieval with a Chrome TLS fingerprint.

    `session` is anything with an async ``get(url, headers=, impersonate=,
    timeout=)`` returning an object with ``status_code`` and ``text``; when
    omitted a short-lived curl_cffi AsyncSession is opened per fetch so a
    cancelled fetch closes its own connection.
    """

    def __init__(self, session=None, impersonate: str = IMPERSONATE,
                 timeout: float = FETCH_TIMEOUT):
        self.session = session
        self.impersonate = impersonate
        self.timeout = timeout

    async def fetch(self, url: str) -> RawPage:
        try:
            if self.session is not None:
                resp = await self._get(self.session, url)
            else:
                async with AsyncSession() as session:
                    resp = await self._get(session, url)
        except curl_cffi.requests.RequestsError as e:
            raise FetchError(url, str(e)) from e

        if not 200 <= resp.status_code < 300:
            raise FetchError(url, f"HTTP {resp.status_code}", resp.status_code)

        logger.debug("Fetched %s (%d bytes)", url, len(resp.text))
        return RawPage(url=url, text=resp.text, status=resp.status_code)

    async def _get(self, session, url):
        return await session.get(
            url,
            headers=browser_headers(),
            impersonate=self.impersonate,
            timeout=self.timeout,
        )


# ─────────────────────────────── text parsing ────────────────────────────────
_CURRENCY_RE = re.compile(r"[₹$€£]")
_PREFIX_RE   = re.compile(r"MRP:?|Rs\.?|INR", re.IGNORECASE)
_NUMBER_RE   = re.compile(r"(\d+\.?\d*)")
_COUNT_RE    = re.compile(r"([\d.]+)([km]?)")
_RATING_RE   = re.compile(r"(\d+(?:\.\d+)?)")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def parse_price(txt) -> float:
    """
    "₹1,23,499.00" → 123499.0,  "MRP: Rs. 2,999" → 2999.0.

    Lakh and Western grouping both reduce to dropping every comma. The first
    number wins ("₹1,999 ₹2,499" is the current price followed by the MRP).
    Missing or unparseable prices come back as 0.
    """
    if not txt:
        return 0
    cleaned = _PREFIX_RE.sub("", _CURRENCY_RE.sub("", str(txt))).strip()
    cleaned = cleaned.replace(",", "")

    m = _NUMBER_RE.search(cleaned)
    if not m:
        return 0
    try:
        return round(float(m.group(1)), 2)
    except ValueError:
        return 0


def parse_count(txt) -> int:
    """"1,234 ratings" → 1234,  "1.2K ratings" → 1200,  "3M" → 3000000."""
    if not txt:
        return 0
    cleaned = re.sub(r"[,\s]", "", str(txt)).lower()
    m = _COUNT_RE.search(cleaned)
    if not m:
        return 0
    try:
        count = float(m.group(1))
    except ValueError:
        return 0
    if m.group(2) == "k":
        count *= 1_000
    elif m.group(2) == "m":
        count *= 1_000_000
    return _round_half_up(count)


def parse_rating(txt) -> float:
    """First decimal in "4.3 out of 5 stars"; anything outside 0–5 reads as 0."""
    if not txt:
        return 0
    m = _RATING_RE.search(str(txt))
    if not m:
        return 0
    value = float(m.group(1))
    return value if 0 <= value <= 5 else 0


def title_from_url(url: str) -> str:
    """Best guess at a product name from the URL slug."""
    try:
        parts = urllib.parse.urlsplit(url)
    except ValueError:
        return PLACEHOLDER_TITLE
    if not parts.netloc:
        return PLACEHOLDER_TITLE

    for part in filter(None, parts.path.split("/")):
        if len(part) > 10 and not re.fullmatch(r"[A-Za-z0-9]{10}", part):
            return part.replace("-", " ").replace("_", " ")
    return f"Product from {parts.hostname}"
