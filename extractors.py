#  ── extractors.py  – product-page extraction for six Indian marketplaces ──
#
# Every site is described by a SiteProfile: for each field an ordered chain of
# locators, tried until one yields something. One SiteExtractor runs them all.

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

from bs4 import BeautifulSoup

from helpers import (
    DEFAULT_CURRENCY,
    HIGHLIGHT_MAX,
    HIGHLIGHT_MIN,
    MAX_HIGHLIGHTS,
    MAX_IMAGES,
    PLACEHOLDER_TITLE,
    FetchError,
    PageFetcher,
    parse_count,
    parse_price,
    parse_rating,
)
from jsonld import read_jsonld_price
from models import NormalizedProduct, PriceInfo, RawPage, Ratings

logger = logging.getLogger(__name__)


# ───────────────────────────── locator variants ──────────────────────────────
@dataclass(frozen=True)
class Text:
    """Text of the first matching element (optionally one containing `contains`)."""
    selector: str
    contains: Optional[str] = None


@dataclass(frozen=True)
class Attr:
    """Attribute value of the first matching element that carries it."""
    selector: str
    name: str


@dataclass(frozen=True)
class SplitPrice:
    """Amazon-style price split over a whole-number and a fraction element."""
    whole: str
    fraction: str


Locator = Union[Text, Attr, SplitPrice]
Chain = Tuple[Locator, ...]

_INVISIBLE = dict.fromkeys(map(ord, "\u200e\u200f\u200b\xa0"), " ")


def _clean(txt: str) -> str:
    return " ".join(txt.translate(_INVISIBLE).split())


def locate(node, loc: Locator) -> str:
    if isinstance(loc, Text):
        for el in node.select(loc.selector):
            txt = _clean(el.get_text())
            if txt and (loc.contains is None or loc.contains in txt):
                return txt
        return ""

    if isinstance(loc, Attr):
        for el in node.select(loc.selector):
            value = el.get(loc.name)
            if value and value.strip():
                return value.strip()
        return ""

    if isinstance(loc, SplitPrice):
        whole = node.select_one(loc.whole)
        if whole is None:
            return ""
        digits = re.sub(r"[^\d]", "", whole.get_text())
        if not digits:
            return ""
        frac = node.select_one(loc.fraction)
        cents = re.sub(r"[^\d]", "", frac.get_text()) if frac is not None else ""
        return f"{digits}.{cents or '00'}"

    raise TypeError(f"Unknown locator: {loc!r}")


def first_text(node, chain: Chain) -> str:
    for loc in chain:
        txt = locate(node, loc)
        if txt:
            return txt
    return ""


def first_price(node, chain: Chain, site: str = "") -> float:
    for loc in chain:
        value = parse_price(locate(node, loc))
        if value > 0:
            logger.debug("%s: found price using %s = %s", site, loc, value)
            return value
    return 0


# ──────────────────────────────── site tables ────────────────────────────────
@dataclass(frozen=True)
class SpecTable:
    rows: str
    key: str
    value: str


@dataclass(frozen=True)
class ImageRule:
    selector: str
    attrs: Tuple[str, ...] = ("src",)
    upsize: Tuple[Tuple[str, str], ...] = ()
    require: Optional[str] = None
    fallback: Chain = ()


@dataclass(frozen=True)
class SiteProfile:
    name: str
    title: Chain
    price: Chain
    original_price: Chain = ()
    brand: Chain = ()
    brand_strip: Tuple[str, ...] = ()
    rating: Chain = ()
    rating_count: Chain = ()
    count_pattern: Optional[str] = None
    spec_tables: Tuple[SpecTable, ...] = ()
    highlights: Tuple[str, ...] = ()
    images: Optional[ImageRule] = None
    currency: str = DEFAULT_CURRENCY


PLACEHOLDER_ASSETS = ("grey-pixel", "spinner", "transparent-pixel", "data:image")


class Marketplace(Enum):
    AMAZON           = ("amazon", "Amazon")
    FLIPKART         = ("flipkart", "Flipkart")
    CROMA            = ("croma", "Croma")
    MEESHO           = ("meesho", "Meesho")
    RELIANCE_DIGITAL = ("reliancedigital", "Reliance Digital")
    MYNTRA           = ("myntra", "Myntra")

    def __init__(self, token, label):
        self.token = token
        self.label = label


def detect_marketplace(url: str) -> Optional[Marketplace]:
    """Marketplace whose domain token occurs in the URL; the longest token wins."""
    lower = (url or "").lower()
    hits = [m for m in Marketplace if m.token in lower]
    if not hits:
        return None
    return max(hits, key=lambda m: len(m.token))


# ── AMAZON ───────────────────────────────────────────────────────────────
AMAZON = SiteProfile(
    name="Amazon",
    title=(
        Text("#productTitle"),
        Text("h1.a-size-large"),
        Text('h1[data-hook="product-title"]'),
    ),
    brand=(Text("#bylineInfo"), Text("a#bylineInfo")),
    brand_strip=(r"^(Visit the |Brand:\s*)", r"\s+Store$"),
    price=(
        SplitPrice(".a-price-whole", ".a-price-fraction"),
        Text("#priceblock_ourprice"),
        Text("#priceblock_dealprice"),
        Text("#priceblock_saleprice"),
        Text(".a-price .a-offscreen"),
        Text("span.a-price span.a-offscreen"),
        Text("#corePrice_feature_div .a-offscreen"),
        Text("#corePriceDisplay_desktop_feature_div .a-offscreen"),
        Text(".reinventPricePriceToPayMargin .a-offscreen"),
        Text("#apex_offerDisplay_desktop .a-offscreen"),
    ),
    original_price=(
        Text(".a-text-price .a-offscreen"),
        Text("span.a-price.a-text-price span.a-offscreen"),
        Text("#listPrice"),
    ),
    rating=(
        Attr("#acrPopover", "title"),
        Text('span[data-hook="rating-out-of-text"]'),
        Text(".a-icon-star span.a-icon-alt"),
    ),
    rating_count=(
        Text("#acrCustomerReviewText"),
        Text('span[data-hook="total-review-count"]'),
    ),
    spec_tables=(
        SpecTable(
            "#productDetails_techSpec_section_1 tr, #productDetails_detailBullets_sections1 tr",
            "th", "td",
        ),
        SpecTable("#tech-specs-mobile tr, .prodDetTable tr", "td:first-child, th", "td:last-child"),
    ),
    highlights=(
        "#feature-bullets li span.a-list-item, #feature-bullets ul li",
        'div[id*="aboutThisItem"] li, #aplus-feature-bullets li',
    ),
    images=ImageRule(
        selector="#altImages img, #imageBlock img, #landingImage",
        attrs=("data-a-dynamic-image", "data-old-hires", "src"),
        # ._SX300_SY300_. / ._AC_US40_. are thumbnail size tokens
        upsize=((r"\._[^./]+\.", "."),),
        fallback=(
            Attr("#landingImage", "data-old-hires"),
            Attr("#landingImage", "src"),
            Attr("#imgBlkFront", "src"),
        ),
    ),
)

# ── FLIPKART ─────────────────────────────────────────────────────────────
FLIPKART = SiteProfile(
    name="Flipkart",
    title=(
        Text("span.VU-ZEz"),
        Text("span.B_NuCI"),
        Text("h1.yhB1nd span"),
        Text("h1._9E25nV"),
        Text('h1[class*="title"]'),
        Text("div._2WkVRV"),
    ),
    brand=(Text("span._2WkVRV"), Text("a._1fGeJ_")),
    price=(
        Text("div.Nx9bqj.CxhGGd"),
        Text("div.Nx9bqj"),
        Text("div._30jeq3._16Jk6d"),
        Text("div._30jeq3"),
        Text("div.CEmiEU div.UOCQB1"),
        Text("div._25b18c div._30jeq3"),
        Text("span._2WkVRV + span"),
        Text('div[class*="price"] span'),
        Text("div._16Jk6d"),
    ),
    original_price=(
        Text("div.yRaY8j.A6\\+E6v", contains="₹"),
        Text("div._3I9_wc._2p6lqe", contains="₹"),
        Text("div.yRaY8j", contains="₹"),
        Text("span.B_NuCI + div span", contains="₹"),
        Text("div.UOCQB1 span", contains="₹"),
    ),
    rating=(Text("div.XQDdHH"), Text("div._3LWZlK")),
    rating_count=(Text("span.Wphh3N span"), Text("span._2_R_DZ span")),
    count_pattern=r"([\d,.]+\s*[km]?)\s*(?:ratings?|reviews?)",
    spec_tables=(
        SpecTable("div._4gvKMe table tr, div.GNDEQ- table tr", "td:first-child", "td:last-child"),
    ),
    highlights=("li._7eSDEz, li.rgWa7D",),
    images=ImageRule(
        selector="img._0DkuPH, img._396cs4, img.q6DClP, div._3kidJX img",
        # rukminim CDN encodes WxH in the path: /image/128/128/…
        upsize=((r"/(?:128|416)(?=/)", "/832"),),
        require="rukminim",
    ),
)

# ── CROMA ────────────────────────────────────────────────────────────────
CROMA = SiteProfile(
    name="Croma",
    title=(Text("h1.pd-title"), Text('h1[data-testid="pdp-product-title"]')),
    brand=(Text("a.pd-brand"), Text("p.pd-brand")),
    price=(
        Text("span.amount"),
        Text('span[data-testid="new-price"]'),
        Text("span.new-price"),
    ),
    original_price=(Text("span.old-price"), Text('span[data-testid="old-price"]')),
    rating=(Text("span.rating-value"), Text("div.rating span")),
    rating_count=(Text("span.review-count"),),
    spec_tables=(
        SpecTable("div.specifications tr, table.specifications tr", "td:first-child, th", "td:last-child"),
    ),
    highlights=("ul.key-features li, div.product-highlights li",),
    images=ImageRule(
        selector='img.pd-image, div.product-gallery img, img[data-testid="product-image"]',
        attrs=("src", "data-src"),
    ),
)

# ── MEESHO ───────────────────────────────────────────────────────────────
MEESHO = SiteProfile(
    name="Meesho",
    title=(
        Text("span.sc-eDvSVe"),
        Text('h1[class*="ProductTitle"]'),
        Text('p[class*="Text__StyledText"]'),
    ),
    brand=(Text('p[class*="BrandName"]'),),
    price=(
        Text('h4[class*="Price"]'),
        Text('span[class*="discountedPrice"]'),
        Text("h5", contains="₹"),
    ),
    original_price=(
        Text('p[class*="originalPrice"]'),
        Text('span[class*="strikethrough"]'),
    ),
    rating=(Text('span[class*="RatingValue"]'),),
    rating_count=(Text('span[class*="RatingCount"]'),),
    spec_tables=(
        SpecTable('div[class*="ProductDescription"] tr', "td:first-child", "td:last-child"),
    ),
    highlights=('div[class*="ProductDetails"] li, ul[class*="Features"] li',),
    images=ImageRule(
        selector='img[class*="ProductImage"], div[class*="ImageContainer"] img',
        require="meesho",
    ),
)

# ── RELIANCE DIGITAL ─────────────────────────────────────────────────────
RELIANCE_DIGITAL = SiteProfile(
    name="Reliance Digital",
    title=(Text("h1.pdp__title"), Text('h1[class*="product-title"]')),
    brand=(Text("a.pdp__brand-link"), Text('span[class*="brand"]')),
    price=(Text("span.pdp__offerPrice"), Text('span[class*="sp"]')),
    original_price=(Text("span.pdp__mrp"), Text('span[class*="mrp"]')),
    rating=(Text("span.pdp__rating-value"),),
    rating_count=(Text("span.pdp__review-count"),),
    spec_tables=(
        SpecTable("div.pdp__specs tr, table.specifications tr", "td:first-child", "td:last-child"),
    ),
    highlights=("ul.pdp__highlights li, div.key-features li",),
    images=ImageRule(
        selector="img.pdp__image, div.pdp-carousel img",
        attrs=("src", "data-src"),
    ),
)

# ── MYNTRA ───────────────────────────────────────────────────────────────
MYNTRA = SiteProfile(
    name="Myntra",
    title=(Text("h1.pdp-title"), Text('h1[class*="product-title"]')),
    brand=(Text("h1.pdp-name"), Text("a.pdp-brand")),
    price=(Text("span.pdp-price strong"), Text('span[class*="discounted-price"]')),
    original_price=(Text("span.pdp-mrp s"), Text('span[class*="striked"]')),
    rating=(Text("div.index-overallRating span"),),
    rating_count=(Text("div.index-ratingsCount"),),
    spec_tables=(
        SpecTable("div.index-row, div.pdp-specs tr", "div.index-rowKey, td:first-child",
                  "div.index-rowValue, td:last-child"),
    ),
    highlights=("ul.pdp-features li",),
    images=ImageRule(selector="div.image-grid img, div.pdp-image img"),
)

PROFILES = {
    Marketplace.AMAZON:           AMAZON,
    Marketplace.FLIPKART:         FLIPKART,
    Marketplace.CROMA:            CROMA,
    Marketplace.MEESHO:           MEESHO,
    Marketplace.RELIANCE_DIGITAL: RELIANCE_DIGITAL,
    Marketplace.MYNTRA:           MYNTRA,
}


# ────────────────────────────── field helpers ────────────────────────────────
def _largest_dynamic_image(raw: str) -> str:
    """data-a-dynamic-image is {"url": [width, height], …}; pick the biggest."""
    try:
        variants = json.loads(raw)
    except ValueError:
        return ""
    if not isinstance(variants, dict) or not variants:
        return ""

    def area(item):
        dims = item[1]
        if not isinstance(dims, (list, tuple)) or len(dims) < 2:
            return 0
        try:
            return int(dims[0]) * int(dims[1])
        except (TypeError, ValueError):
            return 0

    return max(variants.items(), key=area)[0]


def _image_src(el, attrs) -> str:
    for name in attrs:
        value = (el.get(name) or "").strip()
        if not value:
            continue
        if name == "data-a-dynamic-image":
            value = _largest_dynamic_image(value)
            if not value:
                continue
        return value
    return ""


def normalize_image(src: str, rule: ImageRule) -> str:
    for pattern, repl in rule.upsize:
        src = re.sub(pattern, repl, src)
    return src


def _usable_image(src: str, rule: ImageRule, seen) -> bool:
    if not src or src in seen:
        return False
    if any(marker in src for marker in PLACEHOLDER_ASSETS):
        return False
    return rule.require is None or rule.require in src


# ──────────────────────────────── extractor ──────────────────────────────────
class SiteExtractor:
    """Fetch a product page and run a SiteProfile's chains over it."""

    def __init__(self, marketplace: Marketplace, profile: SiteProfile = None,
                 fetcher: PageFetcher = None):
        self.marketplace = marketplace
        self.profile = profile or PROFILES[marketplace]
        self.fetcher = fetcher or PageFetcher()

    def can_handle(self, url: str) -> bool:
        return self.marketplace.token in (url or "").lower()

    async def extract(self, url: str) -> Optional[NormalizedProduct]:
        logger.info("Scraping %s product: %s", self.profile.name, url)
        try:
            page = await self.fetcher.fetch(url)
        except FetchError as e:
            logger.warning("%s: %s", self.profile.name, e)
            return None
        return self.parse(page)

    def parse(self, page: RawPage) -> NormalizedProduct:
        """Best-effort record from fetched HTML; never None."""
        p = self.profile
        soup = BeautifulSoup(page.text, "lxml")

        title = first_text(soup, p.title) or PLACEHOLDER_TITLE
        product = NormalizedProduct(
            title=title,
            brand=self._brand(soup),
            price=self._price(soup),
            images=self._images(soup),
            specifications=self._specifications(soup),
            ratings=self._ratings(soup),
            highlights=self._highlights(soup),
        )
        logger.info("%s scraped: %r price=%s", p.name, title[:40], product.price.current)
        return product

    def _brand(self, soup) -> str:
        brand = first_text(soup, self.profile.brand)
        for pattern in self.profile.brand_strip:
            brand = re.sub(pattern, "", brand)
        return brand.strip()

    def _price(self, soup) -> PriceInfo:
        p = self.profile
        current = first_price(soup, p.price, p.name)
        original = first_price(soup, p.original_price, p.name)

        if current == 0 or original == 0:
            ld = read_jsonld_price(soup)
            if ld:
                ld_current, ld_original = ld
                if current == 0 and ld_current > 0:
                    logger.info("%s: using JSON-LD price %s", p.name, ld_current)
                    current = round(ld_current, 2)
                if original == 0 and ld_original:
                    original = round(ld_original, 2)

        # PriceInfo drops an original that isn't above current
        return PriceInfo(current=current, original=original or None, currency=p.currency)

    def _images(self, soup) -> list:
        rule = self.profile.images
        if rule is None:
            return []

        images = []
        for el in soup.select(rule.selector):
            src = normalize_image(_image_src(el, rule.attrs), rule)
            if _usable_image(src, rule, images):
                images.append(src)
            if len(images) >= MAX_IMAGES:
                break

        if not images and rule.fallback:
            src = normalize_image(first_text(soup, rule.fallback), rule)
            if _usable_image(src, rule, images):
                images.append(src)
        return images

    def _specifications(self, soup) -> dict:
        specs = {}
        for table in self.profile.spec_tables:
            for row in soup.select(table.rows):
                key_el = row.select_one(table.key)
                value_el = row.select_one(table.value)
                if key_el is None or value_el is None:
                    continue
                key, value = _clean(key_el.get_text()), _clean(value_el.get_text())
                if key and value and key != value:
                    specs[key] = value
        return specs

    def _ratings(self, soup) -> Ratings:
        p = self.profile
        average = parse_rating(first_text(soup, p.rating))

        count_text = first_text(soup, p.rating_count)
        if p.count_pattern:
            m = re.search(p.count_pattern, count_text, re.IGNORECASE)
            count_text = m.group(1) if m else ""
        return Ratings(average=average, count=parse_count(count_text))

    def _highlights(self, soup) -> list:
        for group in self.profile.highlights:
            found = []
            for el in soup.select(group):
                txt = _clean(el.get_text())
                if not HIGHLIGHT_MIN <= len(txt) <= HIGHLIGHT_MAX or "›" in txt:
                    continue
                if txt not in found:
                    found.append(txt)
            if found:
                return found[:MAX_HIGHLIGHTS]
        return []


# ───────────────────────────────── routing ───────────────────────────────────
class ExtractionRouter:
    """URL → SiteExtractor. Unsupported marketplaces return None without a fetch."""

    def __init__(self, fetcher: PageFetcher = None):
        fetcher = fetcher or PageFetcher()
        self.extractors = {
            m: SiteExtractor(m, PROFILES[m], fetcher) for m in Marketplace
        }

    def extractor_for(self, url: str) -> Optional[SiteExtractor]:
        marketplace = detect_marketplace(url)
        return self.extractors.get(marketplace) if marketplace else None

    async def extract(self, url: str) -> Optional[NormalizedProduct]:
        extractor = self.extractor_for(url)
        if extractor is None:
            logger.info("Scraping not supported for this marketplace: %s", url)
            return None
        return await extractor.extract(url)


async def extract_product(url: str, fetcher: PageFetcher = None) -> Optional[NormalizedProduct]:
    """Normalized record for a product URL, or None (unsupported or fetch failed)."""
    return await ExtractionRouter(fetcher).extract(url)
