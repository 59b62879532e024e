"""
content/pages.py -- Known page content shapes, as a tagged union on "kind".

  homepage  hero slides, banners and fashion banners
  navbar    sections -> categories -> items; ids and 1-based order are
            assigned on save, so clients send titles and labels only
  legal     one of LEGAL_TYPES: title, markdown body, last_updated
  generic   versioned bag of scalar key/value fields for ad-hoc pages

Every shape is validated with Pydantic v2 before it reaches the store, so a
stored page always parses back into the same model.
"""

from datetime import datetime, timezone
from typing import Annotated, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

# Path segment -> display title. Stored under path "legal/<type>".
LEGAL_TYPES = {
    "privacy-policy": "Privacy Policy",
    "terms-of-service": "Terms of Service",
    "cookie-policy": "Cookie Policy",
    "refund-policy": "Refund Policy",
    "shipping-policy": "Shipping Policy",
}

HOMEPAGE_PATH = "homepage"
NAVBAR_PATH = "navbar"

_Scalar = Union[str, int, float, bool, None]


def legal_path(legal_type: str) -> str:
    return f"legal/{legal_type}"


# ---------------------------------------------------------------------------
# Homepage
# ---------------------------------------------------------------------------


class HeroSlide(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = ""
    subtitle: str = ""
    image_url: Optional[str] = None
    cta_text: Optional[str] = None
    cta_link: Optional[str] = None


class Banner(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = ""
    subtitle: str = ""
    image_url: Optional[str] = None
    link: Optional[str] = None


class HomepageContent(BaseModel):
    kind: Literal["homepage"] = "homepage"
    hero_slides: list[HeroSlide] = Field(default_factory=list)
    banners: list[Banner] = Field(default_factory=list)
    fashion_banners: list[Banner] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Navbar
# ---------------------------------------------------------------------------


class NavItem(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    label: str = Field(min_length=1)
    keyword: str = ""
    href: str = ""
    order: int = 0


class NavCategory(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = None
    title: str = Field(min_length=1)
    order: int = 0
    items: list[NavItem] = Field(default_factory=list)


class NavSection(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = None
    title: str = Field(min_length=1)
    order: int = 0
    categories: list[NavCategory] = Field(default_factory=list)


class NavbarContent(BaseModel):
    kind: Literal["navbar"] = "navbar"
    sections: list[NavSection] = Field(default_factory=list)


def normalize_navbar(content: NavbarContent) -> NavbarContent:
    """Assign fresh ids and 1-based order by list position at every level."""
    sections = []
    for s_index, section in enumerate(content.sections, start=1):
        categories = []
        for c_index, category in enumerate(section.categories, start=1):
            items = [item.model_copy(update={"order": i_index}) for i_index, item in enumerate(category.items, start=1)]
            categories.append(category.model_copy(update={"id": str(uuid4()), "order": c_index, "items": items}))
        sections.append(section.model_copy(update={"id": str(uuid4()), "order": s_index, "categories": categories}))
    return NavbarContent(sections=sections)


def default_navbar() -> NavbarContent:
    """Structure served by GET /pages/navbar until an admin saves one."""
    return normalize_navbar(
        NavbarContent(
            sections=[
                NavSection(
                    title="WOMEN",
                    categories=[
                        NavCategory(
                            title="Women's Clothing",
                            items=[
                                NavItem(label="T-Shirts", keyword="womens-tshirts", href="/womens/t-shirts"),
                                NavItem(label="Skirts", keyword="womens-skirts", href="/womens/skirts"),
                                NavItem(label="Shorts", keyword="womens-shorts", href="/womens/shorts"),
                                NavItem(label="Jeans", keyword="womens-jeans", href="/womens/jeans"),
                            ],
                        )
                    ],
                ),
                NavSection(
                    title="MEN",
                    categories=[
                        NavCategory(
                            title="Men's Clothing",
                            items=[
                                NavItem(label="T-Shirts", keyword="mens-tshirts", href="/mens/t-shirts"),
                                NavItem(label="Shirts", keyword="mens-shirts", href="/mens/shirts"),
                                NavItem(label="Jeans", keyword="mens-jeans", href="/mens/jeans"),
                            ],
                        )
                    ],
                ),
            ]
        )
    )


# ---------------------------------------------------------------------------
# Legal and generic
# ---------------------------------------------------------------------------


class LegalContent(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    kind: Literal["legal"] = "legal"
    title: str = Field(min_length=1)
    body: str = ""  # markdown
    last_updated: Optional[str] = None


def stamp_legal(content: LegalContent) -> LegalContent:
    return content.model_copy(update={"last_updated": datetime.now(timezone.utc).isoformat()})


class GenericContent(BaseModel):
    kind: Literal["generic"] = "generic"
    schema_version: int = Field(default=1, ge=1)
    fields: dict[str, _Scalar] = Field(default_factory=dict)


PageContent = Annotated[
    Union[HomepageContent, NavbarContent, LegalContent, GenericContent],
    Field(discriminator="kind"),
]

