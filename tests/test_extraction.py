"""
Tests for selector-driven product extraction.
"""

import asyncio

import pytest

from product_scraper.errors import ExtractionFault
from product_scraper.extraction import ExtractionEngine, absolute_url, normalize_text
from product_scraper.models import NOT_AVAILABLE
from product_scraper.sources import AMAZON, FLIPKART

from fakes import FakeElement, FakePage, network_error, product_card, stub_source


def extract(page, spec):
    return asyncio.run(ExtractionEngine().extract(page, spec))


def test_pixel_9_capped_at_ten_in_document_order():
    cards = [product_card(f"Pixel 9 variant {i}", price=f"₹{70000 + i}") for i in range(12)]
    page = FakePage(containers={'.card': cards})

    records = extract(page, stub_source(cap=10))

    assert len(records) == 10
    assert [r.name for r in records] == [f"Pixel 9 variant {i}" for i in range(10)]


def test_nameless_cards_are_dropped_before_cap():
    cards = [
        product_card(None, price="₹1"),
        product_card("First"),
        product_card("   \n  "),
        product_card("Second"),
        product_card("Third"),
    ]
    records = extract(FakePage(containers={'.card': cards}), stub_source(cap=2))

    assert [r.name for r in records] == ["First", "Second"]


def test_missing_fields_use_sentinel_and_text_is_trimmed():
    cards = [product_card("  Pixel   9 \n Pro ")]
    record = extract(FakePage(containers={'.card': cards}), stub_source())[0]

    assert record.name == "Pixel 9 Pro"
    assert record.price == NOT_AVAILABLE
    assert record.image_url == NOT_AVAILABLE
    assert record.rating == NOT_AVAILABLE


def test_prices_are_not_coerced():
    cards = [product_card("Phone", price=" ₹1,29,999 ")]
    record = extract(FakePage(containers={'.card': cards}), stub_source())[0]
    assert record.price == "₹1,29,999"


def test_relative_urls_become_absolute():
    cards = [
        product_card("Relative", image="/img/1.jpg", link="/dp/B0D123?ref=sr"),
        product_card("Absolute", image="https://cdn.example/2.jpg", link="https://stub.example/p/2"),
        product_card("Protocol", image="//cdn.example/3.jpg", link="p/3"),
    ]
    records = extract(FakePage(containers={'.card': cards}), stub_source())

    assert records[0].image_url == "https://stub.example/img/1.jpg"
    assert records[0].detail_url == "https://stub.example/dp/B0D123?ref=sr"
    assert records[1].image_url == "https://cdn.example/2.jpg"
    assert records[2].image_url == "https://cdn.example/3.jpg"
    assert records[2].detail_url == "https://stub.example/p/3"


def test_no_containers_yields_empty_list():
    assert extract(FakePage(), stub_source()) == []


def test_amazon_defaults_for_price_and_availability():
    name_selector = AMAZON.field_rule('name').selector
    card = FakeElement(children={name_selector: FakeElement(text="Echo Dot")})
    record = extract(FakePage(containers={AMAZON.container_selector: [card]}), AMAZON)[0]

    assert record.price == "Out of Stock"
    assert record.availability == "In Stock"
    assert record.discount_label == NOT_AVAILABLE


def test_flipkart_name_joins_title_and_details():
    name_rule = FLIPKART.field_rule('name')
    with_details = FakeElement(children={
        name_rule.selector: FakeElement(text="Google Pixel 9"),
        name_rule.suffix_selector: FakeElement(text="12 GB RAM | 256 GB ROM"),
        'a': FakeElement(attrs={'href': '/google-pixel-9/p/itm123'}),
    })
    title_only = FakeElement(children={name_rule.selector: FakeElement(text="Google Pixel 9a")})
    details_only = FakeElement(children={name_rule.suffix_selector: FakeElement(text="8 GB RAM")})
    page = FakePage(containers={FLIPKART.container_selector: [with_details, title_only, details_only]})

    records = extract(page, FLIPKART)

    assert [r.name for r in records] == ["Google Pixel 9.12 GB RAM | 256 GB ROM", "Google Pixel 9a"]
    assert records[0].detail_url == "https://www.flipkart.com/google-pixel-9/p/itm123"


def test_dom_failure_raises_extraction_fault():
    class BrokenCard(FakeElement):
        async def query_selector(self, selector):
            raise network_error("Element is not attached to the DOM")

    with pytest.raises(ExtractionFault):
        extract(FakePage(containers={'.card': [BrokenCard()]}), stub_source())


def test_helpers():
    assert normalize_text(None) == ''
    assert normalize_text(" a \t b ") == 'a b'
    assert absolute_url("https://www.amazon.in", "/s?k=x") == "https://www.amazon.in/s?k=x"
