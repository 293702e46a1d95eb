import json

from bs4 import BeautifulSoup

from jsonld import read_jsonld_price


def _page(*blocks):
    scripts = "".join(
        f'<script type="application/ld+json">{b if isinstance(b, str) else json.dumps(b)}</script>'
        for b in blocks
    )
    return BeautifulSoup(f"<html><head>{scripts}</head><body></body></html>", "lxml")


def test_single_product_offer():
    soup = _page({"@type": "Product", "name": "Phone", "offers": {"price": "54999", "priceCurrency": "INR"}})
    assert read_jsonld_price(soup) == (54999.0, None)


def test_high_price_becomes_original():
    soup = _page({"@type": "Product", "offers": {"lowPrice": "899", "highPrice": "1299"}})
    assert read_jsonld_price(soup) == (899.0, 1299.0)


def test_price_preferred_over_low_price():
    soup = _page({"@type": "Product", "offers": {"price": 950, "lowPrice": 899}})
    assert read_jsonld_price(soup) == (950.0, None)


def test_array_and_multi_type():
    soup = _page([
        {"@type": "BreadcrumbList", "itemListElement": []},
        {"@type": ["Product", "IndividualProduct"], "offers": [{"price": "1499"}, {"price": "1599"}]},
    ])
    assert read_jsonld_price(soup) == (1499.0, None)


def test_malformed_block_is_skipped():
    soup = _page("{not json", {"@type": "Product", "offers": {"price": "299"}})
    assert read_jsonld_price(soup) == (299.0, None)


def test_graph_container():
    soup = _page({"@context": "https://schema.org", "@graph": [
        {"@type": "WebPage"},
        {"@type": "Product", "offers": {"price": "75"}},
    ]})
    assert read_jsonld_price(soup) == (75.0, None)


def test_product_without_offers():
    soup = _page({"@type": "Product", "name": "Phone"})
    assert read_jsonld_price(soup) is None


def test_no_product():
    soup = _page({"@type": "Organization", "offers": {"price": "10"}})
    assert read_jsonld_price(soup) is None


def test_no_scripts():
    assert read_jsonld_price(BeautifulSoup("<html></html>", "lxml")) is None
