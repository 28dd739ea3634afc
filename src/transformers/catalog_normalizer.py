"""
Catalog normalizer: turns raw crawl records into the canonical catalog.

Pure data transform. A malformed field on one record degrades to a safe
default (empty string, zero, empty list); every input record yields exactly one
output record. Records that are not found / nameless are filtered out by
``split_valid_records`` before normalization, never inside ``normalize``.
"""

import logging
import math
import re
import unicodedata
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

SHORT_DESCRIPTION_LIMIT = 200
ELLIPSIS = "..."
DEFAULT_CURRENCY = "USD"
OTHER_CATEGORY = "Other"

HIGH_RES_SIZE = "w_800,h_800"
THUMBNAIL_SIZE = "w_200,h_200"
_SIZE_TOKEN = re.compile(r"w_\d+,h_\d+")

_PRICE_LABEL = re.compile(r"\n?Price$", re.IGNORECASE)
_PRICE_NUMBER = re.compile(r"(-)?\s*\$?\s*(\d[\d,]*(?:\.\d+)?|\.\d+)")
_FIRST_SENTENCE = re.compile(r"^[^.!?]+[.!?]")

# Checked in order, first match wins. Drinkware comes first so that "mug" and
# "bottle" are never shadowed by a broader rule further down.
CATEGORY_RULES: list[tuple[str, list[re.Pattern]]] = [
    (
        "Drinkware",
        [
            re.compile(r"\bmug\b"),
            re.compile(r"\bcup\b"),
            re.compile(r"\bwater bottle\b"),
            re.compile(r"\bbottle\b"),
            re.compile(r"\bceramic\b"),
        ],
    ),
    (
        "Hoodies & Sweatshirts",
        [
            re.compile(r"\bhoodie\b"),
            re.compile(r"\bsweatshirt\b"),
            re.compile(r"\bpullover\b"),
        ],
    ),
    (
        "Hats",
        [re.compile(r"\bhat\b"), re.compile(r"\bcap\b"), re.compile(r"\btrucker\b")],
    ),
    (
        "Footwear",
        [re.compile(r"\bsneaker"), re.compile(r"\bslides?\b"), re.compile(r"\bshoe")],
    ),
    (
        "Accessories",
        [
            re.compile(r"\bcandle\b"),
            re.compile(r"\bsticker"),
            re.compile(r"\blicense plate\b"),
            re.compile(r"\bdecal\b"),
            re.compile(r"\bphone case\b"),
        ],
    ),
    (
        "T-Shirts",
        [
            re.compile(r"\bt-shirt\b"),
            re.compile(r"\btee\b"),
            re.compile("\\bt\u2011shirt\\b"),
        ],
    ),
]


class CatalogImage(BaseModel):
    url: str = ""
    thumbnail: str = ""
    alt: str = ""
    local: str = ""


class CanonicalProduct(BaseModel):
    """A product as stored in the storefront's catalog file."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    slug: str
    name: str
    short_description: str = Field(default="", alias="shortDescription")
    description: str = ""
    price: float = 0.0
    formatted_price: str = Field(default="$0.00", alias="formattedPrice")
    currency: str = DEFAULT_CURRENCY
    category: str = OTHER_CATEGORY
    images: list[CatalogImage] = Field(default_factory=list)
    options: list[Any] = Field(default_factory=list)
    sku: str = ""
    in_stock: bool = Field(default=False, alias="inStock")
    url: str = ""

    @field_validator("price")
    @classmethod
    def non_negative(cls, v: float) -> float:
        return max(v, 0.0) if math.isfinite(v) else 0.0

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _as_str(value) -> str:
    if value is None or isinstance(value, (dict, list, bool)):
        return ""
    return str(value)


def _as_dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def _as_list(value) -> list:
    return value if isinstance(value, list) else []


def _to_float(value, signed: bool = False) -> Optional[float]:
    """
    Number from a price value, or None.

    Non-finite values (NaN, Infinity) count as missing. With ``signed`` a
    leading minus is kept so that the caller can clamp it.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        match = _PRICE_NUMBER.search(str(value))
        if not match:
            return None
        try:
            number = float(match.group(2).replace(",", ""))
        except ValueError:
            return None
        if signed and match.group(1):
            number = -number
    return number if math.isfinite(number) else None


def clean_price(price) -> str:
    """Strip a trailing "Price" label and surrounding whitespace."""
    text = _as_str(price)
    if not text:
        return ""
    return _PRICE_LABEL.sub("", text.rstrip()).strip()


def parse_price(text: str) -> float:
    """First $-prefixed or bare decimal number in the text, else 0."""
    value = _to_float(text)
    return value if value is not None and value >= 0 else 0.0


def get_offer(structured_data: dict) -> dict:
    offer = structured_data.get("Offers") or structured_data.get("offers") or {}
    if isinstance(offer, list):
        offer = offer[0] if offer else {}
    return _as_dict(offer)


def split_description(description: str) -> tuple[str, str]:
    """Return (short description, full description)."""
    if len(description) > SHORT_DESCRIPTION_LIMIT:
        match = _FIRST_SENTENCE.match(description)
        if match:
            return match.group(0), description
        return description[:SHORT_DESCRIPTION_LIMIT] + ELLIPSIS, description
    return description, description


def detect_category(name: str) -> str:
    lower = _as_str(name).lower()
    for category, patterns in CATEGORY_RULES:
        if any(pattern.search(lower) for pattern in patterns):
            return category
    return OTHER_CATEGORY


def high_res_url(url: str) -> str:
    return _SIZE_TOKEN.sub(HIGH_RES_SIZE, url, count=1)


def thumbnail_url(high_res: str) -> str:
    return high_res.replace(HIGH_RES_SIZE, THUMBNAIL_SIZE, 1)


def local_image_path(slug: str, index: int) -> str:
    return f"assets/products/{slug}/img-{index}.jpg"


def product_page_url(slug: str) -> str:
    return f"shop/product.html?product={slug}"


def is_in_stock(availability) -> bool:
    marker = re.sub(r"[\s_-]", "", _as_str(availability).lower())
    return "instock" in marker


def structured_images(structured_data: dict, name: str, slug: str) -> list[CatalogImage]:
    images = []
    raw_images = structured_data.get("image")
    if not isinstance(raw_images, list):
        return images
    for index, entry in enumerate(raw_images):
        if isinstance(entry, dict):
            url = _as_str(entry.get("contentUrl"))
            provided_thumb = _as_dict(entry.get("thumbnail")).get("contentUrl")
        else:
            url = _as_str(entry)
            provided_thumb = None
        high_res = high_res_url(url)
        images.append(
            CatalogImage(
                url=high_res,
                thumbnail=_as_str(provided_thumb) or thumbnail_url(high_res),
                alt=name,
                local=local_image_path(slug, index),
            )
        )
    return images


def dom_images(raw_images, name: str, slug: str) -> list[CatalogImage]:
    kept = []
    for image in _as_list(raw_images):
        if not isinstance(image, dict):
            continue
        src = _as_str(image.get("src"))
        alt = _as_str(image.get("alt"))
        if not src or alt.startswith("Thumbnail:"):
            continue
        kept.append((src, alt))
    return [
        CatalogImage(url=src, thumbnail=src, alt=alt or name, local=local_image_path(slug, index))
        for index, (src, alt) in enumerate(kept)
    ]


def choose_images(
    from_metadata: list[CatalogImage], from_dom: list[CatalogImage]
) -> list[CatalogImage]:
    """Prefer metadata images unless they are missing or sparse (<3) next to a larger DOM gallery."""
    if not from_metadata:
        return from_dom
    if len(from_metadata) < 3 and len(from_dom) > len(from_metadata):
        return from_dom
    return from_metadata


def collation_key(value: str) -> tuple[str, str]:
    """Case- and accent-insensitive ordering, ties broken by the raw text."""
    folded = unicodedata.normalize("NFKD", value)
    folded = "".join(ch for ch in folded if not unicodedata.combining(ch))
    return folded.casefold(), value


def catalog_sort_key(product: CanonicalProduct) -> tuple:
    return collation_key(product.category) + collation_key(product.name)


# ---------------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------------


def normalize_product(raw: dict, index: int) -> CanonicalProduct:
    """Normalize one raw record; ``index`` is its 0-based input position."""
    raw = _as_dict(raw)
    structured = _as_dict(raw.get("structuredData"))
    offer = get_offer(structured)

    slug = _as_str(raw.get("slug"))
    name = _as_str(raw.get("name"))

    description = _as_str(structured.get("description")) or _as_str(raw.get("description"))
    short_description, full_description = split_description(description)

    cleaned_price = clean_price(raw.get("price"))
    offer_price = _to_float(offer.get("price"), signed=True) if offer.get("price") else None
    price = offer_price if offer_price is not None else parse_price(cleaned_price)
    price = max(price, 0.0)

    currency = _as_str(offer.get("priceCurrency")) or DEFAULT_CURRENCY

    images = choose_images(
        structured_images(structured, name, slug),
        dom_images(raw.get("images"), name, slug),
    )

    return CanonicalProduct(
        id=f"product-{index + 1}",
        slug=slug,
        name=name,
        short_description=short_description,
        description=full_description,
        price=price,
        formatted_price=f"${price:.2f}",
        currency=currency,
        category=detect_category(name),
        images=images,
        options=_as_list(raw.get("options")),
        sku=_as_str(raw.get("sku")),
        in_stock=is_in_stock(offer.get("Availability") or offer.get("availability")),
        url=product_page_url(slug),
    )


class CatalogNormalizer:
    """Transforms raw product records into the sorted canonical catalog."""

    def normalize(self, raw_products: list) -> list[CanonicalProduct]:
        products = []
        for index, raw in enumerate(raw_products):
            try:
                products.append(normalize_product(raw, index))
            except Exception as e:
                # Degrade to an empty shell rather than losing the record
                logger.warning("Record %d could not be normalized: %s", index + 1, e)
                raw = _as_dict(raw)
                slug = _as_str(raw.get("slug"))
                products.append(
                    CanonicalProduct(
                        id=f"product-{index + 1}",
                        slug=slug,
                        name=_as_str(raw.get("name")),
                        url=product_page_url(slug),
                    )
                )
        products.sort(key=catalog_sort_key)
        return products

    def normalize_to_dicts(self, raw_products: list) -> list[dict]:
        return [product.to_dict() for product in self.normalize(raw_products)]


def split_valid_records(records: list) -> tuple[list[dict], list[dict]]:
    """
    Partition raw records into (valid, failed).

    Failed: not a dict, ``notFound`` set, empty name, or a slug already taken
    by an earlier valid record.
    """
    valid, failed = [], []
    seen_slugs = set()
    for record in records:
        if not isinstance(record, dict):
            failed.append({"error": "malformed record", "record": record})
            continue
        if record.get("notFound") or not _as_str(record.get("name")):
            failed.append(record)
            continue
        slug = _as_str(record.get("slug"))
        if slug in seen_slugs:
            logger.warning("Dropping duplicate slug %r", slug)
            failed.append({**record, "error": record.get("error") or "duplicate slug"})
            continue
        seen_slugs.add(slug)
        valid.append(record)
    return valid, failed
