"""
Raw records produced by the crawler.

Field names are snake_case in Python; ``to_dict()`` emits the camelCase keys
used in the raw extraction JSON files.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class RawProductCard:
    """A product tile from a listing page. ``url`` is the dedup key."""

    name: str = ""
    price: str = ""
    url: str = ""
    image: str = ""
    image_alt: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "price": self.price,
            "url": self.url,
            "image": self.image,
            "imageAlt": self.image_alt,
        }


@dataclass
class ProductImage:
    src: str
    alt: str = ""

    def to_dict(self) -> dict:
        return {"src": self.src, "alt": self.alt}


@dataclass
class ProductOption:
    """A variant option group, e.g. Size: [S, M, L]."""

    label: str
    values: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"label": self.label, "values": list(self.values)}


@dataclass
class RawProductDetail:
    """Fields scraped from a product's own page."""

    slug: str
    url: str
    name: str = ""
    price: str = ""
    description: str = ""  # inner HTML
    description_text: str = ""
    images: list = field(default_factory=list)  # list[ProductImage]
    options: list = field(default_factory=list)  # list[ProductOption]
    sku: str = ""
    structured_data: Optional[dict] = None
    body_text: str = ""
    not_found: bool = False
    error: Optional[str] = None

    @classmethod
    def failed(cls, slug: str, url: str, error: str) -> "RawProductDetail":
        """Degenerate record for a product page that could not be extracted."""
        return cls(slug=slug, url=url, error=error, not_found=True)

    def to_dict(self) -> dict:
        if self.error is not None:
            return {
                "slug": self.slug,
                "url": self.url,
                "error": self.error,
                "notFound": True,
            }
        return {
            "slug": self.slug,
            "url": self.url,
            "name": self.name,
            "price": self.price,
            "description": self.description,
            "descriptionText": self.description_text,
            "images": [image.to_dict() for image in self.images],
            "options": [option.to_dict() for option in self.options],
            "sku": self.sku,
            "structuredData": self.structured_data,
            "bodyText": self.body_text,
            "notFound": self.not_found,
        }


@dataclass
class RawProduct:
    """Listing card merged with its detail record (detail fields win)."""

    slug: str
    url: str
    name: str = ""
    price: str = ""
    description: str = ""
    description_html: str = ""
    images: list = field(default_factory=list)  # list[ProductImage]
    options: list = field(default_factory=list)  # list[ProductOption]
    sku: str = ""
    structured_data: Optional[dict] = None
    category_image: str = ""
    listings: list = field(default_factory=list)
    not_found: bool = False
    error: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return not self.not_found and bool(self.name)

    def to_dict(self) -> dict:
        data = {
            "slug": self.slug,
            "url": self.url,
            "name": self.name,
            "price": self.price,
            "description": self.description,
            "descriptionHtml": self.description_html,
            "images": [image.to_dict() for image in self.images],
            "options": [option.to_dict() for option in self.options],
            "sku": self.sku,
            "structuredData": self.structured_data,
            "categoryImage": self.category_image,
            "listings": list(self.listings),
            "notFound": self.not_found,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


def slug_from_url(url: str, marker: str = "/product-page/") -> str:
    """Path segment after the product marker, or the whole URL if absent."""
    if marker in url:
        tail = url.split(marker, 1)[1]
        segment = tail.split("?", 1)[0].split("#", 1)[0].split("/", 1)[0]
        if segment:
            return segment
    return url


def merge_card_and_detail(
    card: RawProductCard,
    detail: RawProductDetail,
    listings: Optional[list] = None,
    marker: str = "/product-page/",
) -> RawProduct:
    """Combine a listing card with its detail record.

    Detail values take priority; the card value is only used when the detail
    value is empty. When the detail page had no images, the card thumbnail
    becomes the single image.
    """
    if detail.images:
        images = list(detail.images)
    elif card.image:
        images = [ProductImage(src=card.image, alt=card.image_alt)]
    else:
        images = []

    return RawProduct(
        slug=detail.slug or slug_from_url(card.url, marker),
        url=detail.url or card.url,
        name=detail.name or card.name,
        price=detail.price or card.price,
        description=detail.description_text,
        description_html=detail.description,
        images=images,
        options=list(detail.options),
        sku=detail.sku,
        structured_data=detail.structured_data,
        category_image=card.image,
        listings=list(listings or []),
        not_found=detail.not_found,
        error=detail.error,
    )
