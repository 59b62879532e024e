"""
commerce/store.py -- SQLAlchemy Core persistence for carts and reviews.

Pattern: Repository + Data Mapper (same as auth/store.py). CartStore and
ReviewStore are the repositories; _row_to_cart / _row_to_review are the
mappers.

Carts:
  One row per user (UNIQUE user_id). Line items are a JSON array. total_price
  is recomputed from the items on every write; callers cannot set it.
  Every write bumps the version column and only lands if the version is
  still the one that was read, so concurrent edits to one cart are applied
  one after another instead of overwriting each other.

Reviews:
  UNIQUE(user_id, product_id) enforces one review per user and product.
  Helpful counters are incremented in SQL (col = col + 1) so concurrent votes
  are not lost.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from sqlalchemy import Column, Float, Integer, MetaData, String, Table, Text, UniqueConstraint, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from commerce.models import Cart, CartItem, Review
from core.db import dump_json, load_json, now_iso, page_offset
from core.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger("storefront.commerce.store")

# Optimistic writes retried this many times before giving up with a 409.
_MAX_WRITE_ATTEMPTS = 50

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_carts = Table(
    "carts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False, unique=True),
    Column("items", Text, nullable=False),  # JSON array of CartItem dicts
    Column("total_price", Float, nullable=False, server_default="0"),
    Column("version", Integer, nullable=False, server_default="0"),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
)

_reviews = Table(
    "reviews",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("product_id", String(255), nullable=False, index=True),
    Column("rating", Integer, nullable=False),
    Column("comment", Text, nullable=False),
    Column("stars", Integer, nullable=False, server_default="0"),
    Column("image_urls", Text),  # JSON array of URLs
    Column("verified_buyer", Integer, nullable=False, server_default="0"),
    Column("found_helpful", Integer, nullable=False, server_default="0"),
    Column("not_helpful", Integer, nullable=False, server_default="0"),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
    UniqueConstraint("user_id", "product_id", name="uq_reviews_user_product"),
)

# Whitelist for ORDER BY -- never build a column name from raw user input.
_REVIEW_SORT_COLUMNS = {
    "created_at": _reviews.c.created_at,
    "rating": _reviews.c.rating,
    "found_helpful": _reviews.c.found_helpful,
}


def _total(items: list[CartItem]) -> float:
    return round(sum(item.price * item.quantity for item in items), 2)


# ---------------------------------------------------------------------------
# Carts
# ---------------------------------------------------------------------------


class CartStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        _metadata.create_all(self.engine)

    def get(self, user_id: int) -> Cart | None:
        with self.engine.connect() as conn:
            row = conn.execute(_carts.select().where(_carts.c.user_id == user_id)).fetchone()
        return _row_to_cart(row) if row is not None else None

    def get_by_id(self, cart_id: int) -> Cart | None:
        with self.engine.connect() as conn:
            row = conn.execute(_carts.select().where(_carts.c.id == cart_id)).fetchone()
        return _row_to_cart(row) if row is not None else None

    def get_or_create(self, user_id: int) -> Cart:
        """Return the user's cart, creating an empty one on first access."""
        cart = self.get(user_id)
        if cart is not None:
            return cart
        stamp = now_iso()
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _carts.insert().values(
                        user_id=user_id, items="[]", total_price=0.0, version=0, created_at=stamp, updated_at=stamp
                    )
                )
                conn.commit()
        except IntegrityError:
            # A concurrent request may have created it first.
            cart = self.get(user_id)
            if cart is None:
                raise
            return cart
        return self.get(user_id)

    def _modify(self, user_id: int, change: Callable[[list[CartItem]], list[CartItem]], create: bool = False) -> Cart:
        """Apply change to the user's line items and persist the result.

        The write is a compare-and-swap on the row's version. When another
        writer got in between the read and the write, the cart is re-read and
        change is applied again to the fresh items.
        """
        for _ in range(_MAX_WRITE_ATTEMPTS):
            cart = self.get_or_create(user_id) if create else self.get(user_id)
            if cart is None:
                raise NotFoundError("Cart not found.")
            items = change(cart.items)
            with self.engine.connect() as conn:
                result = conn.execute(
                    _carts.update()
                    .where(_carts.c.id == cart.id, _carts.c.version == cart.version)
                    .values(
                        items=dump_json([i.to_dict() for i in items]),
                        total_price=_total(items),
                        version=cart.version + 1,
                        updated_at=now_iso(),
                    )
                )
                conn.commit()
            if result.rowcount == 1:
                return self.get_by_id(cart.id)
            logger.debug("Cart %s changed underneath a write, retrying", cart.id)
        raise ConflictError("The cart is being updated by another request. Try again.", code="cart_busy")

    def add_item(
        self,
        user_id: int,
        item: CartItem,
        image_resolver: Callable[[str], str | None] | None = None,
    ) -> Cart:
        """Add item to the user's cart.

        An existing line with the same product_id and variant_id has its
        quantity increased. A new line gets its image from image_resolver
        (called with the product id) when one is supplied. The resolver runs
        at most once per call, even if the write has to be retried.
        """
        if item.quantity < 1:
            raise ValidationError("Quantity must be at least 1.")
        resolved: dict[str, str | None] = {}

        def change(items: list[CartItem]) -> list[CartItem]:
            for existing in items:
                if existing.product_id == item.product_id and existing.variant_id == item.variant_id:
                    existing.quantity += item.quantity
                    return items
            line = CartItem(**item.to_dict())
            if line.image is None and image_resolver is not None:
                if "image" not in resolved:
                    resolved["image"] = image_resolver(item.product_id)
                line.image = resolved["image"]
            return items + [line]

        return self._modify(user_id, change, create=True)

    def update_quantity(self, user_id: int, variant_id: str, quantity: int) -> Cart:
        if quantity < 1:
            raise ValidationError("Valid quantity is required (minimum 1).")

        def change(items: list[CartItem]) -> list[CartItem]:
            for existing in items:
                if existing.variant_id == variant_id:
                    existing.quantity = quantity
                    return items
            raise NotFoundError("Item not found in cart.")

        return self._modify(user_id, change)

    def remove_item(self, user_id: int, variant_id: str) -> Cart:
        def change(items: list[CartItem]) -> list[CartItem]:
            kept = [i for i in items if i.variant_id != variant_id]
            if len(kept) == len(items):
                raise NotFoundError("Item not found in cart.")
            return kept

        return self._modify(user_id, change)

    def clear(self, user_id: int) -> Cart:
        return self._modify(user_id, lambda items: [])

    def delete_cart(self, cart_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_carts.delete().where(_carts.c.id == cart_id))
            conn.commit()
        return result.rowcount > 0

    def list_carts(self, user_id: int | None = None, page: int = 1, limit: int = 20) -> tuple[list[Cart], int]:
        """Return (carts, total), most recently updated first."""
        query = _carts.select()
        count_query = select(func.count()).select_from(_carts)
        if user_id is not None:
            query = query.where(_carts.c.user_id == user_id)
            count_query = count_query.where(_carts.c.user_id == user_id)
        with self.engine.connect() as conn:
            total = conn.execute(count_query).scalar() or 0
            rows = conn.execute(
                query.order_by(_carts.c.updated_at.desc(), _carts.c.id.desc())
                .offset(page_offset(page, limit))
                .limit(limit)
            ).fetchall()
        return [_row_to_cart(r) for r in rows], total

    def count(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(_carts)).scalar() or 0

    def total_sales(self) -> float:
        with self.engine.connect() as conn:
            value = conn.execute(select(func.coalesce(func.sum(_carts.c.total_price), 0.0))).scalar()
        return round(float(value or 0.0), 2)

    def recent(self, limit: int = 10) -> list[Cart]:
        """Latest carts by creation time, used for the dashboard's recent-orders list."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _carts.select().order_by(_carts.c.created_at.desc(), _carts.c.id.desc()).limit(limit)
            ).fetchall()
        return [_row_to_cart(r) for r in rows]


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------


class ReviewStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        _metadata.create_all(self.engine)

    def create(self, review: Review) -> Review:
        """Insert a review. Raises ConflictError if the user already reviewed the product."""
        _check_rating(review.rating)
        stamp = now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _reviews.insert().values(
                        user_id=review.user_id,
                        product_id=review.product_id.strip(),
                        rating=review.rating,
                        comment=review.comment.strip(),
                        stars=review.rating,
                        image_urls=dump_json(review.image_urls or []),
                        verified_buyer=1 if review.verified_buyer else 0,
                        found_helpful=0,
                        not_helpful=0,
                        created_at=stamp,
                        updated_at=stamp,
                    )
                )
                conn.commit()
                review_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise ConflictError("You have already reviewed this product.", code="duplicate_review") from exc
        return self.get(review_id)

    def get(self, review_id: int) -> Review | None:
        with self.engine.connect() as conn:
            row = conn.execute(_reviews.select().where(_reviews.c.id == review_id)).fetchone()
        return _row_to_review(row) if row is not None else None

    def update(self, review_id: int, **fields) -> Review | None:
        """Update rating, comment and/or image_urls. stars follows rating."""
        values: dict = {}
        if fields.get("rating") is not None:
            _check_rating(fields["rating"])
            values["rating"] = fields["rating"]
            values["stars"] = fields["rating"]
        if fields.get("comment") is not None:
            values["comment"] = fields["comment"].strip()
        if fields.get("image_urls") is not None:
            values["image_urls"] = dump_json(list(fields["image_urls"]))
        if values:
            values["updated_at"] = now_iso()
            with self.engine.connect() as conn:
                conn.execute(_reviews.update().where(_reviews.c.id == review_id).values(**values))
                conn.commit()
        return self.get(review_id)

    def delete(self, review_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_reviews.delete().where(_reviews.c.id == review_id))
            conn.commit()
        return result.rowcount > 0

    def mark_helpful(self, review_id: int, helpful: bool) -> Review | None:
        column = _reviews.c.found_helpful if helpful else _reviews.c.not_helpful
        with self.engine.connect() as conn:
            conn.execute(_reviews.update().where(_reviews.c.id == review_id).values({column: column + 1}))
            conn.commit()
        return self.get(review_id)

    def set_verified_buyer(self, review_id: int, verified_buyer: bool) -> Review | None:
        with self.engine.connect() as conn:
            conn.execute(
                _reviews.update()
                .where(_reviews.c.id == review_id)
                .values(verified_buyer=1 if verified_buyer else 0, updated_at=now_iso())
            )
            conn.commit()
        return self.get(review_id)

    def list_reviews(
        self,
        product_id: str | None = None,
        user_id: int | None = None,
        rating: int | None = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Review], int]:
        """Return (reviews, total) matching the filters."""
        conditions = []
        if product_id is not None:
            conditions.append(_reviews.c.product_id == product_id)
        if user_id is not None:
            conditions.append(_reviews.c.user_id == user_id)
        if rating is not None:
            conditions.append(_reviews.c.rating == rating)
        sort_column = _REVIEW_SORT_COLUMNS.get(sort_by, _reviews.c.created_at)
        ordering = sort_column.asc() if sort_order == "asc" else sort_column.desc()

        query = _reviews.select()
        count_query = select(func.count()).select_from(_reviews)
        if conditions:
            query = query.where(*conditions)
            count_query = count_query.where(*conditions)
        with self.engine.connect() as conn:
            total = conn.execute(count_query).scalar() or 0
            rows = conn.execute(
                query.order_by(ordering, _reviews.c.id.desc()).offset(page_offset(page, limit)).limit(limit)
            ).fetchall()
        return [_row_to_review(r) for r in rows], total

    def rating_counts(self, product_id: str) -> dict[int, int]:
        """Number of reviews per rating 1..5 for a product, zero-filled."""
        counts = {star: 0 for star in range(1, 6)}
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(_reviews.c.rating, func.count())
                .where(_reviews.c.product_id == product_id)
                .group_by(_reviews.c.rating)
            ).fetchall()
        for rating, count in rows:
            if rating in counts:
                counts[rating] = count
        return counts

    def count(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(_reviews)).scalar() or 0


def rating_summary(counts: dict[int, int]) -> dict:
    """Aggregate a rating_counts() mapping into totals, average and percentages.

    average is rounded to 2 decimals, percentages to 1 decimal. breakdown
    lists ratings from 5 down to 1.
    """
    total = sum(counts.values())
    weighted = sum(star * count for star, count in counts.items())
    average = round(weighted / total, 2) if total else 0
    percentages = {star: (round(count / total * 100, 1) if total else 0) for star, count in counts.items()}
    return {
        "total_reviews": total,
        "average_rating": average,
        "distribution": counts,
        "percentages": percentages,
        "breakdown": [
            {"stars": star, "count": counts[star], "percentage": percentages[star]} for star in range(5, 0, -1)
        ],
    }


def _check_rating(rating: int) -> None:
    if not 1 <= int(rating) <= 5:
        raise ValidationError("Rating must be between 1 and 5.")


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_cart(row) -> Cart:
    return Cart(
        id=row.id,
        user_id=row.user_id,
        items=[CartItem(**i) for i in load_json(row.items, default=[])],
        total_price=row.total_price,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_review(row) -> Review:
    return Review(
        id=row.id,
        user_id=row.user_id,
        product_id=row.product_id,
        rating=row.rating,
        comment=row.comment,
        stars=row.stars,
        image_urls=load_json(row.image_urls, default=[]),
        verified_buyer=bool(row.verified_buyer),
        found_helpful=row.found_helpful,
        not_helpful=row.not_helpful,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
