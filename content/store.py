"""
content/store.py -- SQLAlchemy Core persistence for testimonials, inquiries,
interest sign-ups, text banners and pages.

Pattern: Repository + Data Mapper, one repository class per entity. All of
them share the engine created by create_app().

Interests:
  email is UNIQUE and stored lowercased, so a second sign-up for the same
  address is a ConflictError whatever its casing.

Pages:
  path is UNIQUE. Singleton pages (homepage, navbar, legal/<type>) are written
  through upsert_by_path(); ad-hoc pages through create()/update(). Every
  write bumps version and records updated_by.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from content.models import Inquiry, Interest, Page, Testimonial, TextBanner
from core.db import dump_json, load_json, now_iso, page_offset
from core.errors import ConflictError, NotFoundError, ValidationError

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_testimonials = Table(
    "testimonials",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(200), nullable=False),
    Column("stars", Integer, nullable=False),
    Column("quote", Text, nullable=False),
    Column("occupation", String(200), nullable=False),
    Column("location", String(200), nullable=False),
    Column("published", Integer, nullable=False, server_default="0"),
    Column("image_url", Text),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
)

_inquiries = Table(
    "inquiries",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(200), nullable=False),
    Column("email", String(320), nullable=False),
    Column("purpose", String(200), nullable=False),
    Column("message", Text, nullable=False),
    Column("resolved", Integer, nullable=False, server_default="0"),
    Column("resolved_by", Integer),
    Column("resolving_message", Text),
    Column("resolved_at", String(40)),
    Column("created_at", String(40), nullable=False),
)

_interests = Table(
    "interests",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(320), nullable=False, unique=True),
    Column("created_at", String(40), nullable=False),
)

_text_banners = Table(
    "text_banners",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("content", Text, nullable=False),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
)

_pages = Table(
    "pages",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(200), nullable=False),
    Column("path", String(255), nullable=False, unique=True),
    Column("kind", String(20), nullable=False),
    Column("content", Text, nullable=False),  # JSON, see content/pages.py
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("version", Integer, nullable=False, server_default="1"),
    Column("created_by", Integer),
    Column("updated_by", Integer),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
)


def _count(conn, table, *conditions) -> int:
    query = select(func.count()).select_from(table)
    if conditions:
        query = query.where(*conditions)
    return conn.execute(query).scalar() or 0


def _check_stars(stars: int) -> None:
    if not 0 <= int(stars) <= 5:
        raise ValidationError("Stars must be between 0 and 5.")


# ---------------------------------------------------------------------------
# Testimonials
# ---------------------------------------------------------------------------


class TestimonialStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        _metadata.create_all(self.engine)

    def create(self, testimonial: Testimonial) -> Testimonial:
        _check_stars(testimonial.stars)
        stamp = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _testimonials.insert().values(
                    name=testimonial.name.strip(),
                    stars=testimonial.stars,
                    quote=testimonial.quote.strip(),
                    occupation=testimonial.occupation.strip(),
                    location=testimonial.location.strip(),
                    published=1 if testimonial.published else 0,
                    image_url=testimonial.image_url,
                    created_at=stamp,
                    updated_at=stamp,
                )
            )
            conn.commit()
            testimonial_id = result.inserted_primary_key[0]
        return self.get(testimonial_id)

    def get(self, testimonial_id: int) -> Testimonial | None:
        with self.engine.connect() as conn:
            row = conn.execute(_testimonials.select().where(_testimonials.c.id == testimonial_id)).fetchone()
        return _row_to_testimonial(row) if row is not None else None

    def update(self, testimonial_id: int, **fields) -> Testimonial | None:
        """Update any of name, stars, quote, occupation, location, published, image_url."""
        values = {k: v for k, v in fields.items() if v is not None}
        if "stars" in values:
            _check_stars(values["stars"])
        if "published" in values:
            values["published"] = 1 if values["published"] else 0
        if values:
            values["updated_at"] = now_iso()
            with self.engine.connect() as conn:
                conn.execute(_testimonials.update().where(_testimonials.c.id == testimonial_id).values(**values))
                conn.commit()
        return self.get(testimonial_id)

    def set_published(self, testimonial_id: int, published: bool) -> Testimonial | None:
        return self.update(testimonial_id, published=published)

    def delete(self, testimonial_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_testimonials.delete().where(_testimonials.c.id == testimonial_id))
            conn.commit()
        return result.rowcount > 0

    def list_testimonials(
        self,
        published: bool | None = None,
        min_stars: int | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Testimonial], int]:
        """Return (testimonials, total) newest first. search matches name, case-insensitively."""
        conditions = []
        if published is not None:
            conditions.append(_testimonials.c.published == (1 if published else 0))
        if min_stars is not None:
            conditions.append(_testimonials.c.stars >= min_stars)
        if search and search.strip():
            conditions.append(_testimonials.c.name.icontains(search.strip(), autoescape=True))
        query = _testimonials.select()
        if conditions:
            query = query.where(*conditions)
        with self.engine.connect() as conn:
            total = _count(conn, _testimonials, *conditions)
            rows = conn.execute(
                query.order_by(_testimonials.c.created_at.desc(), _testimonials.c.id.desc())
                .offset(page_offset(page, limit))
                .limit(limit)
            ).fetchall()
        return [_row_to_testimonial(r) for r in rows], total

    def count(self) -> int:
        with self.engine.connect() as conn:
            return _count(conn, _testimonials)


# ---------------------------------------------------------------------------
# Inquiries
# ---------------------------------------------------------------------------


class InquiryStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        _metadata.create_all(self.engine)

    def create(self, inquiry: Inquiry) -> Inquiry:
        with self.engine.connect() as conn:
            result = conn.execute(
                _inquiries.insert().values(
                    name=inquiry.name.strip(),
                    email=inquiry.email.strip().lower(),
                    purpose=inquiry.purpose.strip(),
                    message=inquiry.message.strip(),
                    resolved=0,
                    created_at=now_iso(),
                )
            )
            conn.commit()
            inquiry_id = result.inserted_primary_key[0]
        return self.get(inquiry_id)

    def get(self, inquiry_id: int) -> Inquiry | None:
        with self.engine.connect() as conn:
            row = conn.execute(_inquiries.select().where(_inquiries.c.id == inquiry_id)).fetchone()
        return _row_to_inquiry(row) if row is not None else None

    def list_inquiries(
        self,
        resolved: bool | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Inquiry], int]:
        """Return (inquiries, total) newest first. search spans name, email, purpose and message."""
        conditions = []
        if resolved is not None:
            conditions.append(_inquiries.c.resolved == (1 if resolved else 0))
        if search and search.strip():
            term = search.strip()
            conditions.append(
                or_(
                    _inquiries.c.name.icontains(term, autoescape=True),
                    _inquiries.c.email.icontains(term, autoescape=True),
                    _inquiries.c.purpose.icontains(term, autoescape=True),
                    _inquiries.c.message.icontains(term, autoescape=True),
                )
            )
        query = _inquiries.select()
        if conditions:
            query = query.where(*conditions)
        with self.engine.connect() as conn:
            total = _count(conn, _inquiries, *conditions)
            rows = conn.execute(
                query.order_by(_inquiries.c.created_at.desc(), _inquiries.c.id.desc())
                .offset(page_offset(page, limit))
                .limit(limit)
            ).fetchall()
        return [_row_to_inquiry(r) for r in rows], total

    def resolve(self, inquiry_id: int, resolved_by: int, resolving_message: str) -> Inquiry:
        """Mark an inquiry resolved.

        Raises NotFoundError for an unknown id and ValidationError if the
        message is blank or the inquiry is already resolved.
        """
        resolving_message = (resolving_message or "").strip()
        if not resolving_message:
            raise ValidationError("Resolving message is required.")
        inquiry = self.get(inquiry_id)
        if inquiry is None:
            raise NotFoundError("Inquiry not found.")
        if inquiry.resolved:
            raise ValidationError("Inquiry is already resolved.", code="already_resolved")
        with self.engine.connect() as conn:
            conn.execute(
                _inquiries.update()
                .where(_inquiries.c.id == inquiry_id)
                .values(resolved=1, resolved_by=resolved_by, resolving_message=resolving_message, resolved_at=now_iso())
            )
            conn.commit()
        return self.get(inquiry_id)

    def unresolve(self, inquiry_id: int) -> Inquiry:
        inquiry = self.get(inquiry_id)
        if inquiry is None:
            raise NotFoundError("Inquiry not found.")
        if not inquiry.resolved:
            raise ValidationError("Inquiry is not resolved.", code="not_resolved")
        with self.engine.connect() as conn:
            conn.execute(
                _inquiries.update()
                .where(_inquiries.c.id == inquiry_id)
                .values(resolved=0, resolved_by=None, resolving_message=None, resolved_at=None)
            )
            conn.commit()
        return self.get(inquiry_id)

    def delete(self, inquiry_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_inquiries.delete().where(_inquiries.c.id == inquiry_id))
            conn.commit()
        return result.rowcount > 0

    def stats(self, since: datetime) -> dict:
        """Totals plus the number created since `since` and the resolution rate (percent, 1 decimal)."""
        with self.engine.connect() as conn:
            total = _count(conn, _inquiries)
            resolved = _count(conn, _inquiries, _inquiries.c.resolved == 1)
            recent = _count(conn, _inquiries, _inquiries.c.created_at >= since.isoformat())
        return {
            "total": total,
            "resolved": resolved,
            "pending": total - resolved,
            "recent": recent,
            "resolution_rate": round(resolved / total * 100, 1) if total else 0.0,
        }

    def count(self) -> int:
        with self.engine.connect() as conn:
            return _count(conn, _inquiries)


# ---------------------------------------------------------------------------
# Interests
# ---------------------------------------------------------------------------


class InterestStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        _metadata.create_all(self.engine)

    def create(self, email: str) -> Interest:
        """Record a sign-up. Raises ConflictError if the email is already registered."""
        try:
            with self.engine.connect() as conn:
                result = conn.execute(_interests.insert().values(email=email.strip().lower(), created_at=now_iso()))
                conn.commit()
                interest_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise ConflictError("Email is already registered.", code="duplicate_interest") from exc
        return self.get(interest_id)

    def get(self, interest_id: int) -> Interest | None:
        with self.engine.connect() as conn:
            row = conn.execute(_interests.select().where(_interests.c.id == interest_id)).fetchone()
        return _row_to_interest(row) if row is not None else None

    def delete(self, interest_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_interests.delete().where(_interests.c.id == interest_id))
            conn.commit()
        return result.rowcount > 0

    def list_interests(self, search: str | None = None, page: int = 1, limit: int = 10) -> tuple[list[Interest], int]:
        """Return (interests, total) newest first. search matches email, case-insensitively."""
        conditions = []
        if search and search.strip():
            conditions.append(_interests.c.email.icontains(search.strip(), autoescape=True))
        query = _interests.select()
        if conditions:
            query = query.where(*conditions)
        with self.engine.connect() as conn:
            total = _count(conn, _interests, *conditions)
            rows = conn.execute(
                query.order_by(_interests.c.created_at.desc(), _interests.c.id.desc())
                .offset(page_offset(page, limit))
                .limit(limit)
            ).fetchall()
        return [_row_to_interest(r) for r in rows], total

    def count(self) -> int:
        with self.engine.connect() as conn:
            return _count(conn, _interests)


# ---------------------------------------------------------------------------
# Text banners
# ---------------------------------------------------------------------------


class TextBannerStore:
    """Short announcement strips shown above the storefront header."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        _metadata.create_all(self.engine)

    def create(self, content: str, is_active: bool = True) -> TextBanner:
        content = _banner_content(content)
        stamp = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _text_banners.insert().values(
                    content=content, is_active=1 if is_active else 0, created_at=stamp, updated_at=stamp
                )
            )
            conn.commit()
            banner_id = result.inserted_primary_key[0]
        return self.get(banner_id)

    def get(self, banner_id: int) -> TextBanner | None:
        with self.engine.connect() as conn:
            row = conn.execute(_text_banners.select().where(_text_banners.c.id == banner_id)).fetchone()
        return _row_to_text_banner(row) if row is not None else None

    def update(self, banner_id: int, content: str | None = None, is_active: bool | None = None) -> TextBanner:
        """Change content and/or is_active. Raises NotFoundError for an unknown id."""
        values: dict = {}
        if content is not None:
            values["content"] = _banner_content(content)
        if is_active is not None:
            values["is_active"] = 1 if is_active else 0
        values["updated_at"] = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_text_banners.update().where(_text_banners.c.id == banner_id).values(**values))
            conn.commit()
        if result.rowcount == 0:
            raise NotFoundError("Text banner not found.")
        return self.get(banner_id)

    def toggle(self, banner_id: int) -> TextBanner:
        """Flip is_active in SQL so two concurrent toggles both take effect."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _text_banners.update()
                .where(_text_banners.c.id == banner_id)
                .values(is_active=1 - _text_banners.c.is_active, updated_at=now_iso())
            )
            conn.commit()
        if result.rowcount == 0:
            raise NotFoundError("Text banner not found.")
        return self.get(banner_id)

    def delete(self, banner_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_text_banners.delete().where(_text_banners.c.id == banner_id))
            conn.commit()
        return result.rowcount > 0

    def list_banners(self, search: str | None = None, page: int = 1, limit: int = 10) -> tuple[list[TextBanner], int]:
        conditions = []
        if search and search.strip():
            conditions.append(_text_banners.c.content.icontains(search.strip(), autoescape=True))
        query = _text_banners.select()
        if conditions:
            query = query.where(*conditions)
        with self.engine.connect() as conn:
            total = _count(conn, _text_banners, *conditions)
            rows = conn.execute(
                query.order_by(_text_banners.c.created_at.desc(), _text_banners.c.id.desc())
                .offset(page_offset(page, limit))
                .limit(limit)
            ).fetchall()
        return [_row_to_text_banner(r) for r in rows], total

    def active(self) -> list[TextBanner]:
        """Every active banner, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _text_banners.select()
                .where(_text_banners.c.is_active == 1)
                .order_by(_text_banners.c.created_at.desc(), _text_banners.c.id.desc())
            ).fetchall()
        return [_row_to_text_banner(r) for r in rows]


def _banner_content(content: str) -> str:
    content = (content or "").strip()
    if not content:
        raise ValidationError("Content is required.")
    return content


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


class PageStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        _metadata.create_all(self.engine)

    def create(self, name: str, path: str, kind: str, content: dict, user_id: int | None) -> Page:
        """Insert a page. Raises ConflictError if the path is taken."""
        stamp = now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _pages.insert().values(
                        name=name.strip(),
                        path=path.strip(),
                        kind=kind,
                        content=dump_json(content),
                        is_active=1,
                        version=1,
                        created_by=user_id,
                        updated_by=user_id,
                        created_at=stamp,
                        updated_at=stamp,
                    )
                )
                conn.commit()
                page_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise ConflictError("Page with this path already exists.", code="duplicate_path") from exc
        return self.get(page_id)

    def get(self, page_id: int) -> Page | None:
        with self.engine.connect() as conn:
            row = conn.execute(_pages.select().where(_pages.c.id == page_id)).fetchone()
        return _row_to_page(row) if row is not None else None

    def get_by_path(self, path: str) -> Page | None:
        with self.engine.connect() as conn:
            row = conn.execute(_pages.select().where(_pages.c.path == path)).fetchone()
        return _row_to_page(row) if row is not None else None

    def get_by_identifier(self, identifier: str) -> Page | None:
        """Look a page up by numeric id, falling back to path."""
        if identifier.isdigit():
            page = self.get(int(identifier))
            if page is not None:
                return page
        return self.get_by_path(identifier)

    def update(
        self,
        page_id: int,
        user_id: int | None,
        name: str | None = None,
        content: dict | None = None,
        kind: str | None = None,
        is_active: bool | None = None,
    ) -> Page | None:
        """Apply the given changes, bump version and record the editor."""
        values: dict = {"updated_by": user_id, "updated_at": now_iso(), "version": _pages.c.version + 1}
        if name is not None:
            values["name"] = name.strip()
        if content is not None:
            values["content"] = dump_json(content)
        if kind is not None:
            values["kind"] = kind
        if is_active is not None:
            values["is_active"] = 1 if is_active else 0
        with self.engine.connect() as conn:
            result = conn.execute(_pages.update().where(_pages.c.id == page_id).values(**values))
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.get(page_id)

    def upsert_by_path(self, path: str, name: str, kind: str, content: dict, user_id: int | None) -> Page:
        """Create the page at path, or replace its content and bump its version."""
        existing = self.get_by_path(path)
        if existing is None:
            try:
                return self.create(name, path, kind, content, user_id)
            except ConflictError:
                existing = self.get_by_path(path)
                if existing is None:
                    raise
        return self.update(existing.id, user_id, content=content, kind=kind)

    def delete(self, page_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_pages.delete().where(_pages.c.id == page_id))
            conn.commit()
        return result.rowcount > 0

    def delete_by_path(self, path: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_pages.delete().where(_pages.c.path == path))
            conn.commit()
        return result.rowcount > 0

    def list_pages(
        self,
        is_active: bool | None = None,
        kind: str | None = None,
        path_prefix: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Page], int]:
        """Return (pages, total), most recently updated first."""
        conditions = []
        if is_active is not None:
            conditions.append(_pages.c.is_active == (1 if is_active else 0))
        if kind is not None:
            conditions.append(_pages.c.kind == kind)
        if path_prefix:
            conditions.append(_pages.c.path.startswith(path_prefix, autoescape=True))
        query = _pages.select()
        if conditions:
            query = query.where(*conditions)
        with self.engine.connect() as conn:
            total = _count(conn, _pages, *conditions)
            rows = conn.execute(
                query.order_by(_pages.c.updated_at.desc(), _pages.c.id.desc())
                .offset(page_offset(page, limit))
                .limit(limit)
            ).fetchall()
        return [_row_to_page(r) for r in rows], total


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_testimonial(row) -> Testimonial:
    return Testimonial(
        id=row.id,
        name=row.name,
        stars=row.stars,
        quote=row.quote,
        occupation=row.occupation,
        location=row.location,
        published=bool(row.published),
        image_url=row.image_url,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_inquiry(row) -> Inquiry:
    return Inquiry(
        id=row.id,
        name=row.name,
        email=row.email,
        purpose=row.purpose,
        message=row.message,
        resolved=bool(row.resolved),
        resolved_by=row.resolved_by,
        resolving_message=row.resolving_message,
        resolved_at=row.resolved_at,
        created_at=row.created_at,
    )


def _row_to_page(row) -> Page:
    return Page(
        id=row.id,
        name=row.name,
        path=row.path,
        kind=row.kind,
        content=load_json(row.content, default={}),
        is_active=bool(row.is_active),
        version=row.version,
        created_by=row.created_by,
        updated_by=row.updated_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_interest(row) -> Interest:
    return Interest(id=row.id, email=row.email, created_at=row.created_at)


def _row_to_text_banner(row) -> TextBanner:
    return TextBanner(
        id=row.id,
        content=row.content,
        is_active=bool(row.is_active),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
