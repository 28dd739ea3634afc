"""
Pure extraction functions over a rendered DOM snapshot.

Every function here takes a parsed BeautifulSoup document (plus the page URL
used to resolve relative links) and returns plain data. Nothing touches the
browser, so each strategy can be exercised against a fixed HTML fixture.
"""

import json
import re
from typing import Callable, Optional
from urllib.parse import urljoin

import soupsieve
from bs4 import BeautifulSoup, Comment, Tag

from src.extractors.models import ProductImage, ProductOption, RawProductCard

# Fixed bound on the recursive search through embedded JSON payloads
MAX_EMBEDDED_DEPTH = 10

NOT_FOUND_PHRASES = ("couldn't be found", "product not found")

_INVISIBLE_TAGS = {"script", "style", "noscript", "template", "head", "title"}

# --- listing page selectors -------------------------------------------------

GRID_ITEM_SELECTOR = (
    '[data-hook="product-list-grid-item"], '
    'li[data-hook*="product"], '
    '[data-hook="gallery-item-container"]'
)
GRID_NAME_SELECTORS = [
    '[data-hook="product-item-name"]',
    '[data-hook="product-title"]',
    "h3",
    "h2",
    '[class*="productName"]',
    '[class*="product-name"]',
]
GRID_PRICE_SELECTORS = [
    '[data-hook="product-item-price-to-pay"]',
    '[data-hook="product-price"]',
    '[class*="price"]',
]
PRODUCT_LINK_SELECTOR = 'a[href*="product-page"]'
LINK_CONTAINER_SELECTOR = 'li, article, [class*="product"], [class*="gallery-item"]'
LINK_NAME_SELECTOR = 'h2, h3, h4, [data-hook="product-item-name"]'
LINK_PRICE_SELECTOR = '[data-hook*="price"], [class*="price"]'

# --- product page selectors -------------------------------------------------

DETAIL_NAME_SELECTORS = [
    '[data-hook="product-title"]',
    'h1[class*="product"]',
    '[data-hook="product-page-title"]',
]
DETAIL_PRICE_SELECTORS = [
    '[data-hook="product-price"]',
    '[data-hook="formatted-primary-price"]',
    '[class*="ProductPrice"]',
]
DETAIL_DESCRIPTION_SELECTORS = [
    '[data-hook="product-description"]',
    '[data-hook="info-section-description"]',
]
GALLERY_IMAGE_SELECTOR = (
    '[data-hook="product-image"] img, '
    '[data-hook="main-media-image-wrapper"] img, '
    '[data-hook="thumbnail-image"] img, '
    '[class*="product-gallery"] img, '
    '[class*="ProductGallery"] img'
)
OPTION_CONTROL_SELECTOR = (
    '[data-hook="product-options"] select, '
    '[data-hook="option-selector"], '
    '[class*="OptionSelector"]'
)
OPTION_ITEM_SELECTOR = '[data-hook="product-options-item"]'
OPTION_LABEL_SELECTOR = 'label, [class*="title"]'
OPTION_PLACEHOLDERS = {"Select"}
SKU_SELECTOR = '[data-hook="product-sku"]'

FALLBACK_IMAGE_MIN_WIDTH = 100
FALLBACK_IMAGE_LIMIT = 10


def _no_constant(name: str) -> None:
    """NaN / Infinity literals in page JSON are read as missing values."""
    return None


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


# ---------------------------------------------------------------------------
# Small DOM helpers
# ---------------------------------------------------------------------------


def element_text(el: Optional[Tag]) -> str:
    """Visible text of an element with whitespace collapsed."""
    if el is None:
        return ""
    return re.sub(r"\s+", " ", el.get_text(" ")).strip()


def visible_text(soup: BeautifulSoup, limit: Optional[int] = None) -> str:
    """Text of the document body, skipping scripts, styles and comments."""
    root = soup.body or soup
    parts = []
    for string in root.find_all(string=True):
        if isinstance(string, Comment):
            continue
        if string.parent is not None and string.parent.name in _INVISIBLE_TAGS:
            continue
        cleaned = string.strip()
        if cleaned:
            parts.append(re.sub(r"\s+", " ", cleaned))
    text = "\n".join(parts)
    return text[:limit] if limit is not None else text


def resolve_url(base_url: str, href: Optional[str]) -> str:
    if not href:
        return ""
    href = href.strip()
    if href.startswith("data:"):
        return href
    try:
        return urljoin(base_url, href)
    except ValueError:
        # e.g. an unbalanced "[" in the host
        return ""


def image_src(img: Optional[Tag], base_url: str) -> str:
    if img is None:
        return ""
    return resolve_url(base_url, img.get("src") or "")


def natural_width(img: Tag) -> int:
    """Rendered width stamped by the session snapshot, else the width attr."""
    for attr in ("data-natural-width", "width"):
        value = img.get(attr)
        if value:
            try:
                return int(float(value))
            except (TypeError, ValueError):
                continue
    return 0


def natural_height(img: Tag) -> int:
    for attr in ("data-natural-height", "height"):
        value = img.get(attr)
        if value:
            try:
                return int(float(value))
            except (TypeError, ValueError):
                continue
    return 0


def closest(tag: Tag, selector: str) -> Optional[Tag]:
    """Nearest element (the tag itself included) matching a CSS selector."""
    node = tag
    while isinstance(node, Tag) and not isinstance(node, BeautifulSoup):
        if soupsieve.match(selector, node):
            return node
        node = node.parent
    return None


def first_match(root, selectors: list) -> Optional[Tag]:
    """First element found for the first selector that matches anything."""
    for selector in selectors:
        el = root.select_one(selector)
        if el is not None:
            return el
    return None


def first_text(root, selectors: list) -> str:
    return element_text(first_match(root, selectors))


# ---------------------------------------------------------------------------
# Listing page strategies
# ---------------------------------------------------------------------------


def grid_items_strategy(soup: BeautifulSoup, base_url: str) -> list[RawProductCard]:
    """Known product-grid item markers with prioritized sub-selectors."""
    cards = []
    for item in soup.select(GRID_ITEM_SELECTOR):
        name_el = first_match(item, GRID_NAME_SELECTORS)
        price_el = first_match(item, GRID_PRICE_SELECTORS)
        link_el = item.select_one(PRODUCT_LINK_SELECTOR)
        img_el = item.select_one("img")

        if name_el is None and link_el is None:
            continue

        cards.append(
            RawProductCard(
                name=element_text(name_el),
                price=element_text(price_el),
                url=resolve_url(base_url, link_el.get("href")) if link_el else "",
                image=image_src(img_el, base_url),
                image_alt=(img_el.get("alt") or "") if img_el else "",
            )
        )
    return cards


def product_links_strategy(
    soup: BeautifulSoup, base_url: str
) -> list[RawProductCard]:
    """Any anchor pointing at a product page, described by its container."""
    cards = []
    seen = set()
    for link in soup.select(PRODUCT_LINK_SELECTOR):
        href = resolve_url(base_url, link.get("href"))
        if href in seen:
            continue
        seen.add(href)

        container = closest(link, LINK_CONTAINER_SELECTOR) or link
        name_el = container.select_one(LINK_NAME_SELECTOR)
        price_el = container.select_one(LINK_PRICE_SELECTOR)
        img_el = container.select_one("img")

        cards.append(
            RawProductCard(
                name=element_text(name_el) if name_el else element_text(link),
                price=element_text(price_el),
                url=href,
                image=image_src(img_el, base_url),
                image_alt=(img_el.get("alt") or "") if img_el else "",
            )
        )
    return cards


def _embedded_price(item: dict) -> str:
    if item.get("formattedPrice"):
        return str(item["formattedPrice"])
    price = item.get("price")
    if isinstance(price, dict):
        return str(price.get("formatted") or "")
    if price is None or isinstance(price, (list, bool)):
        return ""
    return str(price)


def _embedded_image(item: dict) -> str:
    main_media = item.get("mainMedia")
    if isinstance(main_media, dict):
        image = main_media.get("image")
        if isinstance(image, dict) and image.get("url"):
            return str(image["url"])
    media = item.get("media")
    if isinstance(media, list) and media and isinstance(media[0], dict):
        if media[0].get("url"):
            return str(media[0]["url"])
    return str(item.get("imageUrl") or "")


def _looks_like_product(item) -> bool:
    return (
        isinstance(item, dict)
        and bool(item.get("name") or item.get("productName"))
        and bool(item.get("price") or item.get("formattedPrice"))
    )


def find_embedded_products(payload, base_url: str = "") -> list[RawProductCard]:
    """Depth-bounded search for arrays of product-like objects in JSON data."""
    found: list[RawProductCard] = []
    visited: set[int] = set()

    def walk(node, depth: int) -> None:
        if depth > MAX_EMBEDDED_DEPTH:
            return
        if not isinstance(node, (dict, list)):
            return
        if id(node) in visited:
            return
        visited.add(id(node))

        if isinstance(node, list):
            for item in node:
                if _looks_like_product(item):
                    name = item.get("name") or item.get("productName") or ""
                    found.append(
                        RawProductCard(
                            name=str(name),
                            price=_embedded_price(item),
                            url=resolve_url(
                                base_url,
                                item.get("productPageUrl") or item.get("url") or "",
                            ),
                            image=_embedded_image(item),
                            image_alt=str(name),
                        )
                    )
            children = node
        else:
            children = node.values()

        for child in children:
            walk(child, depth + 1)

    walk(payload, 0)
    return found


def embedded_data_strategy(
    soup: BeautifulSoup, base_url: str
) -> list[RawProductCard]:
    """Product arrays inside inline ``application/json`` script payloads."""
    cards = []
    for script in soup.select('script[type="application/json"]'):
        raw = script.string or script.get_text()
        if not raw:
            continue
        lowered = raw.lower()
        if "product" not in lowered or "price" not in lowered:
            continue
        try:
            data = json.loads(raw, parse_constant=_no_constant)
        except ValueError:
            continue
        cards.extend(find_embedded_products(data, base_url))
    return cards


CardStrategy = Callable[[BeautifulSoup, str], list]

CARD_STRATEGIES: list[tuple[str, CardStrategy]] = [
    ("grid", grid_items_strategy),
    ("links", product_links_strategy),
    ("embedded", embedded_data_strategy),
]


def extract_cards(
    soup: BeautifulSoup,
    base_url: str,
    strategies: Optional[list] = None,
) -> tuple[Optional[str], list[RawProductCard]]:
    """Run card strategies in order; the first non-empty result wins."""
    for name, strategy in strategies or CARD_STRATEGIES:
        cards = strategy(soup, base_url)
        if cards:
            return name, cards
    return None, []


def dedupe_cards(cards: list[RawProductCard]) -> list[RawProductCard]:
    """Drop cards without a URL and later duplicates of the same URL."""
    seen = set()
    unique = []
    for card in cards:
        if not card.url or card.url in seen:
            continue
        seen.add(card.url)
        unique.append(card)
    return unique


def listing_debug_info(soup: BeautifulSoup, base_url: str) -> dict:
    """Body text and visible images of a listing page that produced no cards."""
    images = []
    for img in soup.select("img"):
        src = image_src(img, base_url)
        if not src or src.startswith("data:") or natural_width(img) <= 50:
            continue
        images.append(
            {
                "src": src,
                "alt": img.get("alt") or "",
                "width": natural_width(img),
                "height": natural_height(img),
            }
        )
    return {
        "bodyText": visible_text(soup, limit=5000),
        "imageCount": len(images),
        "allImages": images[:100],
    }


# ---------------------------------------------------------------------------
# Product page extraction
# ---------------------------------------------------------------------------


def gallery_images(soup: BeautifulSoup, base_url: str) -> list[ProductImage]:
    images = []
    for img in soup.select(GALLERY_IMAGE_SELECTOR):
        src = image_src(img, base_url)
        if src and not src.startswith("data:"):
            images.append(ProductImage(src=src, alt=img.get("alt") or ""))
    return images


def fallback_images(
    soup: BeautifulSoup,
    base_url: str,
    asset_host: str,
    min_width: int = FALLBACK_IMAGE_MIN_WIDTH,
    limit: int = FALLBACK_IMAGE_LIMIT,
) -> list[ProductImage]:
    """Large images served from the storefront's asset CDN."""
    images = []
    for img in soup.select("img"):
        src = image_src(img, base_url)
        if not src or src.startswith("data:") or asset_host not in src:
            continue
        if natural_width(img) <= min_width:
            continue
        images.append(ProductImage(src=src, alt=img.get("alt") or ""))
        if len(images) >= limit:
            break
    return images


def extract_options(soup: BeautifulSoup) -> list[ProductOption]:
    options = []
    for control in soup.select(OPTION_CONTROL_SELECTOR):
        label = ""
        item = closest(control, OPTION_ITEM_SELECTOR)
        if item is not None:
            label = element_text(item.select_one(OPTION_LABEL_SELECTOR))

        values = []
        for option in control.select("option"):
            text = element_text(option)
            if text and text not in OPTION_PLACEHOLDERS:
                values.append(text)

        if values:
            options.append(ProductOption(label=label, values=values))
    return options


def _is_product_payload(data) -> bool:
    return isinstance(data, dict) and (
        data.get("@type") == "Product" or bool(data.get("offers"))
    )


def extract_structured_data(soup: BeautifulSoup) -> Optional[dict]:
    """Last JSON-LD block describing a Product or carrying offers."""
    structured = None
    for script in soup.select('script[type="application/ld+json"]'):
        raw = script.string or script.get_text()
        try:
            data = json.loads(raw, parse_constant=_no_constant)
        except (TypeError, ValueError):
            continue
        candidates = data if isinstance(data, list) else [data]
        for candidate in candidates:
            if _is_product_payload(candidate):
                structured = candidate
    return structured


def is_not_found(body_text: str) -> bool:
    return any(phrase in body_text for phrase in NOT_FOUND_PHRASES)


def extract_product_fields(
    soup: BeautifulSoup, base_url: str, asset_host: str
) -> dict:
    """All product page fields. Each field falls back independently."""
    desc_el = first_match(soup, DETAIL_DESCRIPTION_SELECTORS)
    images = gallery_images(soup, base_url)
    if not images:
        images = fallback_images(soup, base_url, asset_host)
    body_text = visible_text(soup, limit=3000)

    return {
        "name": first_text(soup, DETAIL_NAME_SELECTORS),
        "price": first_text(soup, DETAIL_PRICE_SELECTORS),
        "description": desc_el.decode_contents() if desc_el is not None else "",
        "description_text": element_text(desc_el),
        "images": images,
        "options": extract_options(soup),
        "sku": element_text(soup.select_one(SKU_SELECTOR)),
        "structured_data": extract_structured_data(soup),
        "body_text": body_text,
        "not_found": is_not_found(body_text),
    }


# ---------------------------------------------------------------------------
# Content pages
# ---------------------------------------------------------------------------

_BACKGROUND_URL = re.compile(r"background(?:-image)?\s*:[^;]*url\(\s*['\"]?([^'\")]+)")


def extract_page_content(soup: BeautifulSoup, base_url: str) -> dict:
    """Title, meta tags, navigation, sections and images of a content page."""
    images = []
    for img in soup.select("img"):
        src = image_src(img, base_url)
        if not src or src.startswith("data:"):
            continue
        images.append(
            {
                "src": src,
                "alt": img.get("alt") or "",
                "width": natural_width(img),
                "height": natural_height(img),
            }
        )

    bg_images = []
    for el in soup.select("[style]"):
        for match in _BACKGROUND_URL.finditer(el.get("style") or ""):
            url = resolve_url(base_url, match.group(1))
            if url not in bg_images:
                bg_images.append(url)

    meta = {}
    for tag in soup.select("meta"):
        key = tag.get("name") or tag.get("property")
        content = tag.get("content")
        if key and content:
            meta[key] = content

    nav_items = []
    for link in soup.select('nav a, [data-testid="linkElement"]'):
        text = element_text(link)
        if text:
            nav_items.append({"href": resolve_url(base_url, link.get("href")), "text": text})

    sections = []
    for section in soup.select('section, [id*="comp-"]'):
        headings = [
            {"tag": h.name.upper(), "text": element_text(h)}
            for h in section.select("h1, h2, h3, h4, h5, h6")
        ]
        paragraphs = [
            text
            for text in (element_text(p) for p in section.select("p, span"))
            if len(text) > 5
        ]
        if not headings and not paragraphs:
            continue
        sections.append(
            {
                "id": section.get("id") or "",
                "headings": headings,
                "paragraphs": paragraphs,
                "links": [
                    {"href": resolve_url(base_url, a.get("href")), "text": element_text(a)}
                    for a in section.select("a[href]")
                ],
                "images": [
                    src
                    for src in (image_src(img, base_url) for img in section.select("img"))
                    if src and not src.startswith("data:")
                ],
            }
        )

    return {
        "title": element_text(soup.title) if soup.title else "",
        "meta": meta,
        "navItems": nav_items,
        "sections": sections,
        "images": images,
        "bgImages": bg_images,
        "bodyText": visible_text(soup),
    }
