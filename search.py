# search.py  – look the product up on other marketplaces and collect their prices

import asyncio
import logging
import urllib.parse
from dataclasses import dataclass
from typing import Optional

from bs4 import BeautifulSoup

from extractors import Attr, Chain, Text, first_price, first_text
from helpers import (
    DEFAULT_CURRENCY,
    MAX_PLACEHOLDERS,
    SEARCH_DEADLINE,
    FetchError,
    PageFetcher,
)
from models import Availability, PriceObservation
from ranking import placeholder_rows, rank_prices

logger = logging.getLogger(__name__)


def _encode(text: str) -> str:
    """Same escaping a browser's encodeURIComponent applies."""
    return urllib.parse.quote(text, safe="-_.!~*'()")


# ───────────────────────────── search-page tables ────────────────────────────
@dataclass(frozen=True)
class SearchProfile:
    store: str
    token: str                  # matched against the source marketplace name
    url_template: str
    max_query: int
    price: Chain
    link: Chain
    base_url: str
    title: Chain = ()
    result: Optional[str] = None  # first-result container; None = whole page
    strip_query: bool = False

    def search_url(self, product_title: str) -> str:
        return self.url_template.format(q=_encode(product_title[: self.max_query]))

    def result_url(self, href: str) -> str:
        if self.strip_query:
            href = href.split("?", 1)[0]
        return urllib.parse.urljoin(self.base_url, href)


AMAZON_SEARCH = SearchProfile(
    store="Amazon",
    token="amazon",
    url_template="https://www.amazon.in/s?k={q}",
    max_query=100,
    result='div[data-component-type="s-search-result"]',
    price=(
        Text(".a-price-whole"),
        Text(".a-price .a-offscreen"),
        Text("span.a-price span.a-offscreen"),
        Text('.a-price[data-a-color="price"] .a-offscreen'),
    ),
    link=(
        Attr("a.a-link-normal.s-no-outline", "href"),
        Attr('a.a-link-normal[href*="/dp/"]', "href"),
    ),
    base_url="https://www.amazon.in",
    strip_query=True,
    title=(Text("h2 span"), Text("span.a-size-medium")),
)

FLIPKART_SEARCH = SearchProfile(
    store="Flipkart",
    token="flipkart",
    url_template="https://www.flipkart.com/search?q={q}",
    max_query=100,
    price=(
        Text("div.Nx9bqj._4b5DiR"),
        Text("div.Nx9bqj"),
        Text("div._30jeq3._1_WHN1"),
        Text("div._30jeq3"),
        Text("div._25b18c div._30jeq3"),
        Text('div[class*="price"]'),
    ),
    link=(Attr('a._1fQZEK, a.s1Q9rs, a._2rpwqI, a.CGtC98, a[href*="/p/"]', "href"),),
    base_url="https://www.flipkart.com",
    strip_query=True,
    title=(Text("div.KzDlHZ"), Text("a.s1Q9rs"), Text("div._2WkVRV")),
)

CROMA_SEARCH = SearchProfile(
    store="Croma",
    token="croma",
    url_template="https://www.croma.com/search/?q={q}",
    max_query=80,
    price=(Text("span.amount"),),
    link=(Attr('a.product-link, a[class*="product"]', "href"),),
    base_url="https://www.croma.com",
    title=(Text("h3.product-title"),),
)

RELIANCE_SEARCH = SearchProfile(
    store="Reliance Digital",
    token="reliance",
    url_template="https://www.reliancedigital.in/search?q={q}",
    max_query=80,
    price=(Text('span[class*="price"], span.sp'),),
    link=(Attr('a[class*="product"]', "href"),),
    base_url="https://www.reliancedigital.in",
    title=(Text('p[class*="product-title"]'),),
)

SEARCHABLE = (AMAZON_SEARCH, FLIPKART_SEARCH, CROMA_SEARCH, RELIANCE_SEARCH)


def searchable_for(source_marketplace: str, registry=SEARCHABLE) -> list:
    """Every searchable marketplace except the one the product came from."""
    source = (source_marketplace or "").lower()
    return [p for p in registry if p.token not in source]


# ─────────────────────────────── one search ──────────────────────────────────
def parse_search_page(profile: SearchProfile, html: str, search_url: str) -> Optional[PriceObservation]:
    soup = BeautifulSoup(html, "lxml")

    node = soup
    if profile.result:
        node = soup.select_one(profile.result)
        if node is None:
            logger.info("%s: no search results found", profile.store)
            return None

    price = first_price(node, profile.price, f"{profile.store} search")
    if price <= 0:
        return None

    href = first_text(node, profile.link)
    return PriceObservation(
        store=profile.store,
        price=price,
        currency=DEFAULT_CURRENCY,
        url=profile.result_url(href) if href else search_url,
        availability=Availability.IN_STOCK,
        matched_title=first_text(node, profile.title) or None,
    )


async def search_marketplace(profile: SearchProfile, product_title: str,
                             fetcher: PageFetcher = None) -> Optional[PriceObservation]:
    """First search hit's price on one marketplace; None on any failure."""
    fetcher = fetcher or PageFetcher()
    search_url = profile.search_url(product_title)
    logger.info("Searching %s for: %s", profile.store, product_title[:40])
    try:
        page = await fetcher.fetch(search_url)
        return parse_search_page(profile, page.text, search_url)
    except FetchError as e:
        logger.warning("%s search failed: %s", profile.store, e)
    except Exception:
        logger.exception("Error searching %s", profile.store)
    return None


# ─────────────────────────────── aggregation ─────────────────────────────────
async def search_prices(product_title: str, source_marketplace: str,
                        fetcher: PageFetcher = None,
                        deadline: float = SEARCH_DEADLINE,
                        registry=SEARCHABLE) -> list:
    """
    Run every eligible marketplace search concurrently under one deadline.

    If the deadline passes before the whole batch finishes, every search is
    cancelled and the batch counts as empty, including searches that had
    already finished. Only hits with a positive price are returned.
    """
    fetcher = fetcher or PageFetcher()
    profiles = searchable_for(source_marketplace, registry)
    tasks = [
        asyncio.create_task(search_marketplace(p, product_title, fetcher))
        for p in profiles
    ]
    if not tasks:
        return []

    try:
        results = await asyncio.wait_for(asyncio.gather(*tasks), timeout=deadline)
    except asyncio.TimeoutError:
        logger.warning("Price search exceeded %ss; dropping %d searches", deadline, len(tasks))
        results = []
    finally:
        for t in tasks:
            if not t.done():
                t.cancel()

    return [r for r in results if r is not None and r.price > 0]


def marketplace_search_links(product_title: str, source_marketplace: str) -> list:
    """(store, search URL) for each marketplace other than the source."""
    q = _encode(product_title or "")
    links = [
        ("Amazon",           f"https://www.amazon.in/s?k={q}"),
        ("Flipkart",         f"https://www.flipkart.com/search?q={q}"),
        ("Myntra",           f"https://www.myntra.com/{q.replace('%20', '-')}"),
        ("Meesho",           f"https://www.meesho.com/search?q={q}"),
        ("Croma",            f"https://www.croma.com/search/?q={q}"),
        ("Reliance Digital", f"https://www.reliancedigital.in/search?q={q}"),
    ]
    source = (source_marketplace or "").lower()
    return [(name, url) for name, url in links if name.lower() != source]


async def aggregate_prices(product_title: str, source_marketplace: str,
                           source_price: float, source_url: str,
                           fetcher: PageFetcher = None,
                           deadline: float = SEARCH_DEADLINE) -> list:
    """
    Ranked price list: the source row first, then whatever the other
    marketplaces quoted. When nothing else turned up, zero-price search links
    are appended so the caller still has somewhere to point the user.
    """
    source = PriceObservation(
        store=source_marketplace,
        price=source_price,
        currency=DEFAULT_CURRENCY,
        url=source_url,
        availability=Availability.IN_STOCK,
    )
    found = await search_prices(product_title, source_marketplace, fetcher, deadline)
    ranked = rank_prices([source] + found)
    logger.info("Found %d prices from different marketplaces", len(ranked))

    if len(ranked) == 1:
        logger.info("No other marketplace prices found, using search URLs as fallback")
        links = marketplace_search_links(product_title, source_marketplace)
        ranked.extend(placeholder_rows(links[:MAX_PLACEHOLDERS]))
    return ranked
