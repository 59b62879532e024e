"""
commerce/models.py -- Domain dataclasses for carts and product reviews.

Pure data containers. Totals, merging and rating aggregates live in
commerce/store.py.

Products and variants are owned by Shopify; product_id and variant_id are
opaque Shopify identifiers stored as strings.
"""

from dataclasses import asdict, dataclass, field
from typing import Optional


@dataclass
class CartItem:
    product_id: str
    variant_id: str
    quantity: int
    price: float
    title: str
    image: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Cart:
    """A user's cart. One per user (UNIQUE user_id).

    total_price is derived from items on every write and never accepted
    from a client.
    """

    user_id: int
    items: list[CartItem] = field(default_factory=list)
    total_price: float = 0.0
    version: int = 0
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)


@dataclass
class Review:
    """A product review. One per (user_id, product_id).

    stars mirrors rating. verified_buyer starts as the author's verified flag
    at creation time and can be overridden by an admin.
    """

    user_id: int
    product_id: str
    rating: int
    comment: str
    stars: int = 0
    image_urls: list[str] = field(default_factory=list)
    verified_buyer: bool = False
    found_helpful: int = 0
    not_helpful: int = 0
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""
