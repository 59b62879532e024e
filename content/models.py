"""
content/models.py -- Domain dataclasses for site content.

Testimonials, inquiries, interest sign-ups and text banners are flat records. Page.content holds the
validated, serialized form of one of the shapes in content/pages.py, tagged
by its "kind" key.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Testimonial:
    name: str
    stars: int  # 0..5
    quote: str
    occupation: str
    location: str
    published: bool = False
    image_url: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Inquiry:
    """A contact-form message.

    resolved_by / resolving_message / resolved_at are set together by
    InquiryStore.resolve() and cleared together by unresolve().
    """

    name: str
    email: str
    purpose: str
    message: str
    resolved: bool = False
    resolved_by: Optional[int] = None
    resolving_message: Optional[str] = None
    resolved_at: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""


@dataclass
class Page:
    name: str
    path: str
    kind: str  # "homepage" | "navbar" | "legal" | "generic"
    content: dict = field(default_factory=dict)
    is_active: bool = True
    version: int = 1
    created_by: Optional[int] = None
    updated_by: Optional[int] = None
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Interest:
    """An email address left on the "notify me" form. email is unique, lowercased."""

    email: str
    id: Optional[int] = None
    created_at: str = ""


@dataclass
class TextBanner:
    content: str
    is_active: bool = True
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""
