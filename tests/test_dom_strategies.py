"""Test the pure DOM extraction strategies against fixed HTML."""

from src.extractors.dom_strategies import (
    MAX_EMBEDDED_DEPTH,
    dedupe_cards,
    embedded_data_strategy,
    extract_cards,
    extract_options,
    extract_page_content,
    extract_product_fields,
    extract_structured_data,
    fallback_images,
    find_embedded_products,
    grid_items_strategy,
    listing_debug_info,
    parse_html,
    resolve_url,
    product_links_strategy,
    visible_text,
)
from src.extractors.models import ProductOption, RawProductCard

PRODUCT = {"name": "Deep Mug", "price": "$9.00", "url": "/product-page/deep-mug"}


def _nest(payload, levels: int):
    for _ in range(levels):
        payload = {"wrapper": payload}
    return payload


class TestGridItemsStrategy:
    """Test the product-grid item strategy."""

    def test_extracts_all_fields(self, grid_listing_html, base_url):
        cards = grid_items_strategy(parse_html(grid_listing_html), base_url)

        assert len(cards) == 2
        assert cards[0].name == "Bull Market Mug"
        assert cards[0].price == "$18.00"
        assert cards[0].url == f"{base_url}/product-page/bull-market-mug"
        assert cards[0].image.startswith("https://static.wixstatic.com/media/mug.jpg")
        assert cards[0].image_alt == "Mug"

    def test_no_grid_items(self, links_listing_html, base_url):
        assert grid_items_strategy(parse_html(links_listing_html), base_url) == []

    def test_malformed_link_does_not_drop_page(self, base_url):
        html = """
        <ul>
          <li data-hook="product-list-grid-item">
            <a href="http://[broken/product-page/x"></a>
            <p data-hook="product-item-name">Broken Link Mug</p>
          </li>
          <li data-hook="product-list-grid-item">
            <a href="/product-page/good-mug"></a>
            <p data-hook="product-item-name">Good Mug</p>
          </li>
        </ul>
        """
        cards = grid_items_strategy(parse_html(html), base_url)

        assert [c.url for c in cards] == ["", f"{base_url}/product-page/good-mug"]
        assert [c.name for c in dedupe_cards(cards)] == ["Good Mug"]


class TestProductLinksStrategy:
    """Test the product-link strategy."""

    def test_describes_link_by_container(self, links_listing_html, base_url):
        cards = product_links_strategy(parse_html(links_listing_html), base_url)

        assert [c.url for c in cards] == [
            f"{base_url}/product-page/to-the-moon-tee",
            f"{base_url}/product-page/hodl-cap",
        ]
        assert cards[0].name == "To The Moon Tee"
        assert cards[0].price == "$25.00"
        assert cards[0].image == f"{base_url}/img/tee.png"

    def test_falls_back_to_link_text(self, links_listing_html, base_url):
        cards = product_links_strategy(parse_html(links_listing_html), base_url)
        assert cards[1].name == "HODL Cap"
        assert cards[1].price == ""
        assert cards[1].image == ""


class TestEmbeddedDataStrategy:
    """Test product discovery inside inline JSON payloads."""

    def test_finds_products_in_script(self, embedded_listing_html, base_url):
        cards = embedded_data_strategy(parse_html(embedded_listing_html), base_url)

        assert [c.name for c in cards] == ["Candle", "Sticker"]
        assert cards[0].price == "$12.00"
        assert cards[0].url == f"{base_url}/product-page/candle"
        assert cards[0].image == "https://static.wixstatic.com/media/candle.jpg"
        assert cards[1].price == "$3.00"
        assert cards[1].image == "https://static.wixstatic.com/media/sticker.jpg"

    def test_ignores_invalid_json(self, base_url):
        html = '<script type="application/json">{"product": "price", broken</script>'
        assert embedded_data_strategy(parse_html(html), base_url) == []

    def test_depth_bound(self):
        assert len(find_embedded_products(_nest([PRODUCT], MAX_EMBEDDED_DEPTH))) == 1
        assert find_embedded_products(_nest([PRODUCT], MAX_EMBEDDED_DEPTH + 1)) == []

    def test_cyclic_payload_terminates(self):
        payload = {"items": [PRODUCT]}
        payload["self"] = payload

        cards = find_embedded_products(payload)
        assert [c.name for c in cards] == ["Deep Mug"]

    def test_requires_name_and_price(self):
        payload = {"items": [{"name": "No price"}, {"price": "$1"}]}
        assert find_embedded_products(payload) == []


class TestExtractCards:
    """Test strategy ordering and deduplication."""

    def test_grid_wins_over_links(self, grid_listing_html, base_url):
        name, cards = extract_cards(parse_html(grid_listing_html), base_url)
        assert name == "grid"
        assert len(cards) == 2

    def test_falls_through_to_links(self, links_listing_html, base_url):
        name, _ = extract_cards(parse_html(links_listing_html), base_url)
        assert name == "links"

    def test_falls_through_to_embedded(self, embedded_listing_html, base_url):
        name, _ = extract_cards(parse_html(embedded_listing_html), base_url)
        assert name == "embedded"

    def test_first_non_empty_result_wins(self, base_url):
        card = RawProductCard(name="X", url="https://a/product-page/x")
        strategies = [
            ("empty", lambda soup, url: []),
            ("second", lambda soup, url: [card]),
            ("third", lambda soup, url: [card, card]),
        ]
        assert extract_cards(parse_html(""), base_url, strategies) == ("second", [card])

    def test_nothing_found(self, base_url):
        assert extract_cards(parse_html("<html><body></body></html>"), base_url) == (None, [])

    def test_dedupe_keeps_first_seen(self):
        cards = [
            RawProductCard(name="First", url="https://a/product-page/x"),
            RawProductCard(name="Second", url="https://a/product-page/x"),
            RawProductCard(name="No link", url=""),
            RawProductCard(name="Other", url="https://a/product-page/y"),
        ]
        unique = dedupe_cards(cards)
        assert [c.name for c in unique] == ["First", "Other"]

    def test_listing_debug_info_skips_small_images(self, base_url):
        html = """
        <body>
          <p>Nothing here</p>
          <img src="https://x/big.jpg" data-natural-width="300" data-natural-height="200">
          <img src="https://x/icon.png" data-natural-width="16">
        </body>
        """
        info = listing_debug_info(parse_html(html), base_url)
        assert info["imageCount"] == 1
        assert info["allImages"][0]["width"] == 300
        assert "Nothing here" in info["bodyText"]


class TestProductFields:
    """Test product page extraction."""

    def test_extracts_product(self, product_html, base_url):
        fields = extract_product_fields(parse_html(product_html), base_url, "wixstatic")

        assert fields["name"] == "Bull Market Mug"
        assert fields["price"] == "$18.00"
        assert "<p>A ceramic mug. Holds coffee.</p>" in fields["description"]
        assert fields["description_text"] == "A ceramic mug. Holds coffee."
        assert [i.src for i in fields["images"]] == [
            "https://static.wixstatic.com/media/mug-1.jpg",
            "https://static.wixstatic.com/media/mug-2.jpg",
        ]
        assert fields["sku"] == "MUG-001"
        assert fields["structured_data"]["@type"] == "Product"
        assert fields["not_found"] is False

    def test_options_skip_placeholder_and_empty_groups(self, product_html):
        options = extract_options(parse_html(product_html))
        assert options == [ProductOption(label="Size", values=["11oz", "15oz"])]

    def test_structured_data_last_product_wins(self):
        html = """
        <script type="application/ld+json">{"@type": "Product", "name": "First"}</script>
        <script type="application/ld+json">not json</script>
        <script type="application/ld+json">[{"@type": "Organization"}, {"name": "Second", "offers": {"price": "5"}}]</script>
        """
        assert extract_structured_data(parse_html(html))["name"] == "Second"

    def test_structured_data_absent(self):
        assert extract_structured_data(parse_html("<body></body>")) is None

    def test_null_offers_is_not_a_product(self):
        html = """
        <script type="application/ld+json">{"@type": "Product", "name": "Real"}</script>
        <script type="application/ld+json">{"name": "Breadcrumbs", "offers": null}</script>
        """
        assert extract_structured_data(parse_html(html))["name"] == "Real"

    def test_non_finite_numbers_read_as_missing(self):
        html = '<script type="application/ld+json">{"@type": "Product", "offers": {"price": NaN}}</script>'
        assert extract_structured_data(parse_html(html))["offers"] == {"price": None}

    def test_not_found_page(self, not_found_html, base_url):
        fields = extract_product_fields(parse_html(not_found_html), base_url, "wixstatic")
        assert fields["not_found"] is True
        assert fields["name"] == ""

    def test_not_found_text_ignores_scripts(self):
        soup = parse_html("<body><script>var m = \"couldn't be found\";</script><p>Mug</p></body>")
        assert "couldn't be found" not in visible_text(soup)

    def test_fallback_images_cap_and_width(self, base_url):
        big = "".join(
            f'<img src="https://static.wixstatic.com/media/{i}.jpg" data-natural-width="400">'
            for i in range(12)
        )
        html = (
            "<body>"
            '<img src="https://static.wixstatic.com/media/small.jpg" data-natural-width="80">'
            '<img src="https://cdn.other.com/big.jpg" data-natural-width="800">'
            f"{big}</body>"
        )
        images = fallback_images(parse_html(html), base_url, "wixstatic")

        assert len(images) == 10
        assert all("wixstatic" in image.src for image in images)
        assert not any("small" in image.src for image in images)

    def test_fallback_used_when_gallery_empty(self, base_url):
        html = '<body><img src="https://static.wixstatic.com/media/a.jpg" width="500"></body>'
        fields = extract_product_fields(parse_html(html), base_url, "wixstatic")
        assert [i.src for i in fields["images"]] == ["https://static.wixstatic.com/media/a.jpg"]


class TestPageContent:
    """Test content page extraction."""

    HTML = """
    <html>
      <head>
        <title>Home | Memdex</title>
        <meta name="description" content="Merch">
      </head>
      <body>
        <nav><a href="/about-9">About</a></nav>
        <section id="hero" style="background-image: url('https://static.wixstatic.com/media/bg.jpg')">
          <h1>Welcome</h1>
          <p>Official merchandise store.</p>
          <img src="/logo.png" data-natural-width="120" data-natural-height="60">
        </section>
      </body>
    </html>
    """

    def test_extracts_structure(self, base_url):
        data = extract_page_content(parse_html(self.HTML), base_url)

        assert data["title"] == "Home | Memdex"
        assert data["meta"] == {"description": "Merch"}
        assert data["navItems"] == [{"href": f"{base_url}/about-9", "text": "About"}]
        assert data["bgImages"] == ["https://static.wixstatic.com/media/bg.jpg"]
        assert data["images"] == [
            {"src": f"{base_url}/logo.png", "alt": "", "width": 120, "height": 60}
        ]

        section = data["sections"][0]
        assert section["id"] == "hero"
        assert section["headings"] == [{"tag": "H1", "text": "Welcome"}]
        assert section["paragraphs"] == ["Official merchandise store."]


class TestResolveUrl:
    def test_relative_and_data_urls(self, base_url):
        assert resolve_url(base_url, "/a.jpg") == f"{base_url}/a.jpg"
        assert resolve_url(base_url, "data:image/png;base64,AA") == "data:image/png;base64,AA"
        assert resolve_url(base_url, None) == ""

    def test_malformed_url_resolves_to_empty(self, base_url):
        assert resolve_url(base_url, "https://[broken/a.jpg") == ""
