# models.py

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


@dataclass(frozen=True)
class RawPage:
    """Body of one fetched URL. Lives only as long as the parse that needs it."""
    url: str
    text: str
    status: int = 200


@dataclass
class PriceInfo:
    current: float = 0
    original: Optional[float] = None
    currency: str = "INR"

    def __post_init__(self):
        # an MRP that isn't above the selling price is noise, not a discount
        if self.original is not None and not self.original > self.current:
            self.original = None

    def to_dict(self) -> dict:
        d = {"current": self.current, "currency": self.currency}
        if self.original is not None:
            d["original"] = self.original
        return d


@dataclass
class Ratings:
    average: float = 0
    count: int = 0

    def to_dict(self) -> dict:
        return {"average": self.average, "count": self.count}


@dataclass
class NormalizedProduct:
    """
    Best-effort record for one product page. Fields that could not be located
    stay empty or zero; the title falls back to a generic placeholder.
    """
    title: str = "Product"
    brand: str = ""
    price: PriceInfo = field(default_factory=PriceInfo)
    images: List[str] = field(default_factory=list)
    specifications: Dict[str, str] = field(default_factory=dict)
    ratings: Ratings = field(default_factory=Ratings)
    highlights: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "brand": self.brand,
            "price": self.price.to_dict(),
            "images": list(self.images),
            "specifications": dict(self.specifications),
            "ratings": self.ratings.to_dict(),
            "highlights": list(self.highlights),
        }


class Availability(str, Enum):
    IN_STOCK = "in-stock"
    OUT_OF_STOCK = "out-of-stock"
    LIMITED = "limited"


@dataclass
class PriceObservation:
    """One marketplace's quoted price. A price of 0 means "unknown"."""
    store: str
    price: float
    url: str
    currency: str = "INR"
    availability: Availability = Availability.IN_STOCK
    matched_title: Optional[str] = None


@dataclass
class RankedPrice:
    store: str
    price: float
    url: str
    currency: str = "INR"
    availability: Availability = Availability.IN_STOCK
    matched_title: Optional[str] = None
    is_best_price: bool = False
    savings: Optional[int] = None

    @classmethod
    def from_observation(cls, obs: PriceObservation) -> "RankedPrice":
        return cls(
            store=obs.store,
            price=obs.price,
            url=obs.url,
            currency=obs.currency,
            availability=obs.availability,
            matched_title=obs.matched_title,
        )

    def to_dict(self) -> dict:
        d = {
            "store": self.store,
            "price": self.price,
            "currency": self.currency,
            "url": self.url,
            "availability": self.availability.value,
            "isBestPrice": self.is_best_price,
        }
        if self.savings is not None:
            d["savings"] = self.savings
        if self.matched_title:
            d["matchedTitle"] = self.matched_title
        return d
