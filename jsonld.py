# jsonld.py  – schema.org Product/Offer prices from <script type="application/ld+json">

import json
import logging

logger = logging.getLogger(__name__)


def _is_product(item) -> bool:
    kind = item.get("@type")
    if isinstance(kind, list):
        return "Product" in kind
    return kind == "Product"


def _entries(data):
    """Top-level object, array of objects, or @graph container → flat list."""
    items = data if isinstance(data, list) else [data]
    for item in items:
        if not isinstance(item, dict):
            continue
        graph = item.get("@graph")
        if isinstance(graph, list):
            yield from (g for g in graph if isinstance(g, dict))
        else:
            yield item


def _as_float(value):
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def read_jsonld_price(soup):
    """
    Returns (current, original) from the first Product that carries an offer,
    original being None when the offer has no highPrice. None when nothing
    usable is embedded.
    """
    for tag in soup.find_all("script", type="application/ld+json"):
        raw = tag.string or tag.get_text()
        if not raw or not raw.strip():
            continue
        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.debug("Skipping malformed JSON-LD block: %s", e)
            continue

        for item in _entries(data):
            if not _is_product(item) or not item.get("offers"):
                continue
            offers = item["offers"]
            if not isinstance(offers, list):
                offers = [offers]
            for offer in offers:
                if not isinstance(offer, dict):
                    continue
                current = _as_float(offer.get("price") or offer.get("lowPrice"))
                if current is None:
                    continue
                logger.debug("Found price in JSON-LD: %s", current)
                return current, _as_float(offer.get("highPrice"))
    return None
