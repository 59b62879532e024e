"""
API request and response models for the Storefront REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py,
commerce/models.py and content/models.py, which own the internal domain
representation. Route handlers map between the two via the from_* factories.

No response model carries a password hash. UserOut is the only way a User
leaves the API.
"""

import math
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Address, Role, User
from commerce.models import Cart, CartItem, Review
from content.models import Inquiry, Interest, Page, Testimonial, TextBanner
from content.pages import LEGAL_TYPES, PageContent, legal_path
from webhooks.models import WebhookEvent

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
OTP_PATTERN = r"^\d{6}$"

_Email = Annotated[str, Field(pattern=EMAIL_PATTERN, max_length=320)]
_Password = Annotated[str, Field(min_length=6, max_length=128)]
_Otp = Annotated[str, Field(pattern=OTP_PATTERN)]
_Url = Annotated[str, Field(max_length=2048)]


# ---------------------------------------------------------------------------
# Shared envelopes
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class Pagination(BaseModel):
    model_config = ConfigDict(frozen=True)

    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit) if limit else 0)


# ---------------------------------------------------------------------------
# Users and auth
# ---------------------------------------------------------------------------


class AddressModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    street: Optional[str] = Field(default=None, max_length=200)
    city: Optional[str] = Field(default=None, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    zip: Optional[str] = Field(default=None, max_length=20)
    country: Optional[str] = Field(default=None, max_length=100)

    def to_domain(self) -> Address:
        return Address(**self.model_dump())


class UserOut(BaseModel):
    """Public view of an account."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    name: str
    role: Role
    verified: bool
    phone: Optional[str] = None
    address: Optional[AddressModel] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            verified=user.verified,
            phone=user.phone,
            address=AddressModel(**user.address.to_dict()) if user.address else None,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class RegisterRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: _Email
    password: _Password
    name: str = Field(min_length=1, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=40)


class RegisterResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    user: UserOut


class EmailRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: _Email


class VerifyOtpRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: _Email
    otp: _Otp


class LoginRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: _Email
    # No min_length on login: a short guess is simply a wrong password.
    password: str = Field(min_length=1, max_length=128)


class ResetPasswordRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: _Email
    otp: _Otp
    new_password: _Password


class UpdateProfileRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=40)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1, max_length=128)
    new_password: _Password


class SessionResponse(BaseModel):
    """Returned by every endpoint that opens a session. The cookie carries the same token."""

    model_config = ConfigDict(frozen=True)

    token: str
    user: UserOut


class UserUpdateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=40)
    email: Optional[_Email] = None
    address: Optional[AddressModel] = None


class RoleUpdateRequest(BaseModel):
    role: Role


class UserListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    users: list[UserOut]
    pagination: Pagination


class UserStatsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_users: int
    by_role: dict[str, int]
    recent_signups: int
    percentages: dict[str, float]


class OwnerSummary(BaseModel):
    """Name and email of the account that owns a cart, review or resolution."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str

    @classmethod
    def from_user(cls, user: Optional[User]) -> Optional["OwnerSummary"]:
        if user is None:
            return None
        return cls(id=user.id, name=user.name, email=user.email)


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------


class CartItemIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    product_id: str = Field(min_length=1, max_length=255)
    variant_id: str = Field(min_length=1, max_length=255)
    quantity: int = Field(ge=1, le=1000)
    price: float = Field(ge=0)
    title: str = Field(min_length=1, max_length=500)

    def to_domain(self) -> CartItem:
        return CartItem(**self.model_dump())


class QuantityUpdate(BaseModel):
    quantity: int = Field(ge=1, le=1000)


class CartItemOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: str
    variant_id: str
    quantity: int
    price: float
    title: str
    image: Optional[str] = None

    @classmethod
    def from_item(cls, item: CartItem) -> "CartItemOut":
        return cls(**item.to_dict())


class CartOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    user_id: int
    items: list[CartItemOut]
    total_price: float
    item_count: int
    created_at: str
    updated_at: str
    customer: Optional[OwnerSummary] = None

    @classmethod
    def from_cart(cls, cart: Cart, owner: Optional[User] = None) -> "CartOut":
        return cls(
            id=cart.id,
            user_id=cart.user_id,
            items=[CartItemOut.from_item(i) for i in cart.items],
            total_price=cart.total_price,
            item_count=cart.item_count,
            created_at=cart.created_at,
            updated_at=cart.updated_at,
            customer=OwnerSummary.from_user(owner),
        )


class CartCountResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    item_count: int
    total_items: int


class CartListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    carts: list[CartOut]
    pagination: Pagination


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------


class ReviewCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    product_id: str = Field(min_length=1, max_length=255)
    rating: int = Field(ge=1, le=5)
    comment: str = Field(min_length=1, max_length=5000)
    image_urls: list[_Url] = Field(default_factory=list, max_length=10)


class ReviewUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    rating: Optional[int] = Field(default=None, ge=1, le=5)
    comment: Optional[str] = Field(default=None, min_length=1, max_length=5000)
    image_urls: Optional[list[_Url]] = Field(default=None, max_length=10)


class HelpfulRequest(BaseModel):
    helpful: bool


class VerifiedBuyerRequest(BaseModel):
    verified_buyer: bool


class ReviewOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    user_id: int
    product_id: str
    rating: int
    stars: int
    comment: str
    image_urls: list[str]
    verified_buyer: bool
    found_helpful: int
    not_helpful: int
    created_at: str
    updated_at: str
    author: Optional[str] = None

    @classmethod
    def from_review(cls, review: Review, author: Optional[User] = None) -> "ReviewOut":
        return cls(
            id=review.id,
            user_id=review.user_id,
            product_id=review.product_id,
            rating=review.rating,
            stars=review.stars,
            comment=review.comment,
            image_urls=list(review.image_urls),
            verified_buyer=review.verified_buyer,
            found_helpful=review.found_helpful,
            not_helpful=review.not_helpful,
            created_at=review.created_at,
            updated_at=review.updated_at,
            author=author.name if author else None,
        )


class ReviewListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    reviews: list[ReviewOut]
    pagination: Pagination
    average_rating: Optional[float] = None
    total_reviews: Optional[int] = None


class RatingBreakdownRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    stars: int
    count: int
    percentage: float


class RatingDistributionResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: str
    total_reviews: int
    average_rating: float
    distribution: dict[int, int]
    percentages: dict[int, float]
    breakdown: list[RatingBreakdownRow]


# ---------------------------------------------------------------------------
# Testimonials
# ---------------------------------------------------------------------------


class TestimonialCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=200)
    stars: int = Field(ge=0, le=5)
    quote: str = Field(min_length=1, max_length=2000)
    occupation: str = Field(min_length=1, max_length=200)
    location: str = Field(min_length=1, max_length=200)
    published: bool = False
    image_url: Optional[_Url] = None

    def to_domain(self) -> Testimonial:
        return Testimonial(**self.model_dump())


class TestimonialUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    stars: Optional[int] = Field(default=None, ge=0, le=5)
    quote: Optional[str] = Field(default=None, min_length=1, max_length=2000)
    occupation: Optional[str] = Field(default=None, min_length=1, max_length=200)
    location: Optional[str] = Field(default=None, min_length=1, max_length=200)
    published: Optional[bool] = None
    image_url: Optional[_Url] = None


class PublishRequest(BaseModel):
    published: bool


class TestimonialOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    stars: int
    quote: str
    occupation: str
    location: str
    published: bool
    image_url: Optional[str] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_testimonial(cls, t: Testimonial) -> "TestimonialOut":
        return cls(
            id=t.id,
            name=t.name,
            stars=t.stars,
            quote=t.quote,
            occupation=t.occupation,
            location=t.location,
            published=t.published,
            image_url=t.image_url,
            created_at=t.created_at,
            updated_at=t.updated_at,
        )


class TestimonialListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    testimonials: list[TestimonialOut]
    pagination: Pagination


# ---------------------------------------------------------------------------
# Inquiries
# ---------------------------------------------------------------------------


class InquiryCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=200)
    email: _Email
    purpose: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=5000)

    def to_domain(self) -> Inquiry:
        return Inquiry(**self.model_dump())


class ResolveRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    resolving_message: str = Field(min_length=1, max_length=5000)


class InquiryOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    purpose: str
    message: str
    resolved: bool
    resolved_by: Optional[OwnerSummary] = None
    resolving_message: Optional[str] = None
    resolved_at: Optional[str] = None
    created_at: str

    @classmethod
    def from_inquiry(cls, inquiry: Inquiry, resolver: Optional[User] = None) -> "InquiryOut":
        return cls(
            id=inquiry.id,
            name=inquiry.name,
            email=inquiry.email,
            purpose=inquiry.purpose,
            message=inquiry.message,
            resolved=inquiry.resolved,
            resolved_by=OwnerSummary.from_user(resolver),
            resolving_message=inquiry.resolving_message,
            resolved_at=inquiry.resolved_at,
            created_at=inquiry.created_at,
        )


class InquiryListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    inquiries: list[InquiryOut]
    pagination: Pagination


class InquiryStatsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int
    resolved: int
    pending: int
    recent: int
    resolution_rate: float


# ---------------------------------------------------------------------------
# Interest sign-ups and text banners
# ---------------------------------------------------------------------------


class InterestCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: _Email


class InterestOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    created_at: str

    @classmethod
    def from_interest(cls, interest: Interest) -> "InterestOut":
        return cls(id=interest.id, email=interest.email, created_at=interest.created_at)


class InterestListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    interests: list[InterestOut]
    pagination: Pagination


class TextBannerCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    content: str = Field(min_length=1, max_length=1000)
    is_active: bool = True


class TextBannerUpdate(BaseModel):
    """Partial update. At least one field should be set; an empty body only bumps updated_at."""

    model_config = ConfigDict(str_strip_whitespace=True)

    content: Optional[str] = Field(default=None, min_length=1, max_length=1000)
    is_active: Optional[bool] = None


class TextBannerOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    content: str
    is_active: bool
    created_at: str
    updated_at: str

    @classmethod
    def from_banner(cls, banner: TextBanner) -> "TextBannerOut":
        return cls(
            id=banner.id,
            content=banner.content,
            is_active=banner.is_active,
            created_at=banner.created_at,
            updated_at=banner.updated_at,
        )


class TextBannerListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    text_banners: list[TextBannerOut]
    pagination: Pagination


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


class PageCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=200)
    path: str = Field(min_length=1, max_length=255, pattern=r"^[a-z0-9][a-z0-9/_-]*$")
    content: PageContent


class PageUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    content: Optional[PageContent] = None
    is_active: Optional[bool] = None


class LegalBody(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    body: str = Field(max_length=200_000)


class PageOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    name: str
    path: str
    kind: str
    content: dict
    is_active: bool = True
    version: int = 0
    created_by: Optional[int] = None
    updated_by: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_page(cls, page: Page) -> "PageOut":
        return cls(
            id=page.id,
            name=page.name,
            path=page.path,
            kind=page.kind,
            content=page.content,
            is_active=page.is_active,
            version=page.version,
            created_by=page.created_by,
            updated_by=page.updated_by,
            created_at=page.created_at,
            updated_at=page.updated_at,
        )


class PageListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    pages: list[PageOut]
    pagination: Pagination


class LegalTypeOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    title: str
    path: str

    @classmethod
    def all(cls) -> list["LegalTypeOut"]:
        return [cls(type=t, title=title, path=legal_path(t)) for t, title in LEGAL_TYPES.items()]


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


class DashboardStatsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    users: int
    carts: int
    inquiries: int
    reviews: int
    testimonials: int
    total_sales: float


class RecentOrder(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    customer_name: str
    customer_email: str
    amount: str
    items: int
    date: str


class RecentOrdersResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    orders: list[RecentOrder]


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------


class WebhookAck(BaseModel):
    model_config = ConfigDict(frozen=True)

    received: bool = True
    duplicate: bool = False


class WebhookEventOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    topic: str
    shop_domain: Optional[str] = None
    webhook_id: Optional[str] = None
    resource_id: Optional[str] = None
    payload: dict
    received_at: str

    @classmethod
    def from_event(cls, event: WebhookEvent) -> "WebhookEventOut":
        return cls(
            id=event.id,
            topic=event.topic,
            shop_domain=event.shop_domain,
            webhook_id=event.webhook_id,
            resource_id=event.resource_id,
            payload=event.payload if isinstance(event.payload, dict) else {"data": event.payload},
            received_at=event.received_at,
        )


class WebhookEventListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    events: list[WebhookEventOut]
    pagination: Pagination
