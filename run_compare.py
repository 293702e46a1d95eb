import asyncio
import csv
import logging
import sys

from extractors import Marketplace, detect_marketplace, extract_product
from helpers import COMPETITOR_MAP, PLACEHOLDER_TITLE, PageFetcher, title_from_url
from search import aggregate_prices

logger = logging.getLogger(__name__)


def normalise_header(row):
    """
    Return a copy where keys are stripped + lower-cased,
    e.g. ' URL '  →  'url'
    """
    return {
        k.strip().lower(): (v.strip() if isinstance(v, str) else v)
        for k, v in row.items()
        if k is not None
    }


def marketplace_for(row, url):
    """Explicit competitor column first ('Reliance' → reliancedigital), else the URL."""
    comp = (row.get("competitor") or row.get("retailer") or "").lower()
    token = COMPETITOR_MAP.get(comp)
    if token:
        return next(m for m in Marketplace if m.token == token)
    return detect_marketplace(url)


async def compare(url, marketplace, fetcher):
    product = await extract_product(url, fetcher)
    if product is None:
        logger.warning("[SKIP] No product data for %s", url)
        return

    title = product.title
    if title == PLACEHOLDER_TITLE:
        title = title_from_url(url)

    print(f"{marketplace.label:<16} | {title[:60]} → {product.price.current:>10} {product.price.currency}")

    prices = await aggregate_prices(title, marketplace.label, product.price.current, url, fetcher)
    for p in prices:
        out = f"    {p.store:<16} {p.price:>10} {p.currency}"
        if p.is_best_price:
            out += "  [best]"
        if p.savings:
            out += f"  (+{p.savings})"
        print(out)


async def main(path="targets.csv"):
    fetcher = PageFetcher()
    with open(path, newline="", encoding="utf-8-sig") as f:
        for raw in csv.DictReader(f):
            row = normalise_header(raw)

            url = row.get("url") or row.get("link")
            if not url:
                print(f"[SKIP] Missing URL in row: {row}")
                continue

            marketplace = marketplace_for(row, url)
            if marketplace is None:
                print(f"[SKIP] No extractor for {url}")
                continue

            try:
                await compare(url, marketplace, fetcher)
            except Exception as e:
                print(f"[FAIL] {url}: {e}")


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    asyncio.run(main(*sys.argv[1:2]))
