# ranking.py  – best-price flag and savings over a list of price observations

import logging
import math

from models import Availability, PriceObservation, RankedPrice

logger = logging.getLogger(__name__)


def rank_prices(observations) -> list:
    """
    Flag the cheapest known price and annotate the rest with savings.

    A price of 0 means "unknown" (search-link placeholders, pages where no
    price could be read); such rows are never best and never get savings.
    Ties go to the first row holding the minimum so exactly one row is best.
    """
    ranked = [RankedPrice.from_observation(o) for o in observations]

    known = [r.price for r in ranked if r.price > 0]
    if not known:
        return ranked
    best = min(known)

    flagged = False
    for r in ranked:
        if r.price <= 0:
            continue
        if r.price == best and not flagged:
            r.is_best_price = True
            flagged = True
        elif r.price > best:
            r.savings = int(math.floor(r.price - best + 0.5))

    logger.debug("Best price %s across %d rows", best, len(ranked))
    return ranked


def placeholder_rows(links, currency: str = "INR") -> list:
    """(store, search_url) pairs → zero-price rows pointing at marketplace searches."""
    return [
        RankedPrice.from_observation(PriceObservation(
            store=store,
            price=0,
            url=search_url,
            currency=currency,
            availability=Availability.IN_STOCK,
        ))
        for store, search_url in links
    ]
