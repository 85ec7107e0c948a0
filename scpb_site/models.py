"""
scpb_site/models.py — All Pydantic data schemas
Domain entities served to the site (products, articles, team), form
submission payloads and rate-limit types.
"""
from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from pydantic.alias_generators import to_camel


# ──────────────────────────────────────────────────────────────────────────────
# Enumerations
# ──────────────────────────────────────────────────────────────────────────────

class Locale(str, Enum):
    FR = "fr"
    EN = "en"


DEFAULT_LOCALE = Locale.FR
SUPPORTED_LOCALES = {locale.value for locale in Locale}


class RouteClass(str, Enum):
    CONTACT = "contact"
    RFQ = "rfq"
    NEWSLETTER = "newsletter"


class ContentType(str, Enum):
    PRODUCT = "product"
    ARTICLE = "article"
    TEAM = "team"
    STATISTICS = "statistics"
    ALL = "all"


# ──────────────────────────────────────────────────────────────────────────────
# Content domain entities
# ──────────────────────────────────────────────────────────────────────────────

class _Entity(BaseModel):
    model_config = ConfigDict(frozen=True)


class LocalizedText(_Entity):
    fr: str = ""
    en: str = ""

    def get(self, locale: str) -> str:
        """Text for locale, falling back to French when empty."""
        value = getattr(self, locale, "") if locale in SUPPORTED_LOCALES else ""
        return value or self.fr


class Image(_Entity):
    url: str
    alt: LocalizedText = LocalizedText()
    width: Optional[int] = None
    height: Optional[int] = None


class ConstellationNode(_Entity):
    id: str
    position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    size: float = 1.0
    label: Optional[str] = None


class ConstellationConfig(_Entity):
    nodes: list[ConstellationNode] = Field(default_factory=list)
    connections: list[tuple[int, int]] = Field(default_factory=list)
    color: str = "#ffffff"
    glow_intensity: float = 1.0
    animation_speed: float = 1.0


class Product(_Entity):
    id: str
    slug: str
    name: LocalizedText
    description: LocalizedText
    category: str = ""
    origin: list[str] = Field(default_factory=list)
    season: str = ""
    certifications: list[str] = Field(default_factory=list)
    packaging_options: list[str] = Field(default_factory=list)
    images: list[Image] = Field(default_factory=list)
    constellation: ConstellationConfig = ConstellationConfig()
    related_products: list[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ArticleCategory(_Entity):
    id: str
    slug: str
    name: LocalizedText


class ArticleTag(_Entity):
    id: str
    slug: str
    name: LocalizedText


class ArticleAuthor(_Entity):
    id: str
    name: str
    avatar: Optional[str] = None
    link: Optional[str] = None
    is_external: bool = False


class ArticleListItem(_Entity):
    id: str
    slug: str
    title: LocalizedText
    excerpt: LocalizedText
    featured_image: Optional[Image] = None
    category: Optional[ArticleCategory] = None
    published_at: Optional[datetime] = None


class Article(ArticleListItem):
    content: LocalizedText
    tags: list[ArticleTag] = Field(default_factory=list)
    author: Optional[ArticleAuthor] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TeamMemberPhoto(_Entity):
    url: str
    alt: str = ""
    width: Optional[int] = None
    height: Optional[int] = None


class TeamMember(_Entity):
    id: str
    name: str
    role: LocalizedText
    bio: LocalizedText
    photo: Optional[TeamMemberPhoto] = None
    is_ceo: bool = False
    order: int = 0
    email: Optional[str] = None
    linkedin: Optional[str] = None


class ExportKPI(_Entity):
    tonnes_exported: float = 0
    countries_served: int = 0
    producer_partners: int = 0
    years_experience: int = 0
    traced_lots: float = 0  # percentage of lots with full traceability


class RegionShare(_Entity):
    region: Literal["eu", "asia", "usa", "africa", "other"]
    percentage: float
    countries: list[str] = Field(default_factory=list)


class Destination(_Entity):
    country: str
    country_code: str
    percentage: float
    port: Optional[str] = None


class MonthlyVolume(_Entity):
    month: str
    year: int
    volume: float


class ProductShare(_Entity):
    product: str
    slug: str
    volume: float
    percentage: float
    color: str


class ExportStatistics(_Entity):
    """Figures for the public statistics page, edited once a month in the CMS."""
    last_updated: Optional[str] = None
    kpi: ExportKPI = Field(default_factory=ExportKPI)
    exports_by_region: list[RegionShare] = Field(default_factory=list)
    top_destinations: list[Destination] = Field(default_factory=list)
    monthly_volumes: list[MonthlyVolume] = Field(default_factory=list)
    product_mix: list[ProductShare] = Field(default_factory=list)


# ──────────────────────────────────────────────────────────────────────────────
# Rate limiting
# ──────────────────────────────────────────────────────────────────────────────

class RatePolicy(_Entity):
    limit: int = Field(gt=0)
    window_seconds: int = Field(gt=0)
    prefix: str


class RateLimitResult(_Entity):
    allowed: bool
    remaining: int = Field(ge=0)
    retry_after_seconds: int = Field(ge=0)
    limit: int


# ──────────────────────────────────────────────────────────────────────────────
# Form submissions, accepted in camelCase from the site frontend
# ──────────────────────────────────────────────────────────────────────────────

ContactSubject = Literal["products", "certifications", "logistics", "availability", "other"]
Incoterm = Literal["EXW", "FCA", "FAS", "FOB", "CFR", "CIF", "CPT", "CIP", "DAP", "DPU", "DDP"]
QuantityUnit = Literal["kg", "tonnes", "containers"]
Packaging = Literal["jute-pe", "bigbags", "cartons", "bulk"]
ContainerSize = Literal["20ft", "40ft"]
OrderFrequency = Literal["spot", "monthly", "quarterly", "contract"]
CocoaType = Literal["beans", "butter", "paste", "powder"]
CocoaCertification = Literal["bio", "fairtrade", "utz", "none"]


class _FormModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


class ContactSubmission(_FormModel):
    name: str = Field(min_length=2, max_length=100)
    email: EmailStr
    company: Optional[str] = Field(default=None, max_length=200)
    subject: ContactSubject
    message: str = Field(min_length=10, max_length=5000)
    privacy_consent: Literal[True]
    recaptcha_token: Optional[str] = None


class RFQSubmission(_FormModel):
    company_name: str = Field(min_length=2, max_length=200)
    contact_person: str = Field(min_length=2, max_length=100)
    email: EmailStr
    phone: str = Field(pattern=r"^\+?[0-9\s-]{8,20}$")
    country: str = Field(min_length=2, max_length=100)
    products: list[str] = Field(min_length=1)
    cocoa_type: Optional[CocoaType] = None
    cocoa_certification: Optional[CocoaCertification] = None
    quantity: float = Field(gt=0)
    unit: QuantityUnit
    order_frequency: Optional[OrderFrequency] = None
    incoterm: Incoterm
    destination_port: str = Field(min_length=2, max_length=200)
    packaging: Packaging
    container_size: ContainerSize
    delivery_start: date
    delivery_end: date
    special_requirements: Optional[str] = Field(default=None, max_length=5000)
    privacy_consent: Literal[True]
    recaptcha_token: Optional[str] = None

    @model_validator(mode="after")
    def check_delivery_window(self) -> "RFQSubmission":
        if self.delivery_end <= self.delivery_start:
            raise ValueError("delivery_end must be after delivery_start")
        return self


class SampleRequestSubmission(_FormModel):
    name: str = Field(min_length=2, max_length=100)
    email: EmailStr
    phone: str = Field(pattern=r"^\+?[0-9\s-]{8,20}$")
    company: str = Field(min_length=2, max_length=200)
    product: str = Field(min_length=1, max_length=200)
    # Free samples are capped at 2 kg
    sample_weight: float = Field(gt=0, le=2)
    address_line1: str = Field(min_length=5, max_length=200)
    address_line2: Optional[str] = Field(default=None, max_length=200)
    city: str = Field(min_length=2, max_length=100)
    postal_code: str = Field(min_length=2, max_length=20)
    country: str = Field(min_length=2, max_length=100)
    purpose: str = Field(min_length=10, max_length=1000)
    privacy_consent: Literal[True]
    locale: Locale = DEFAULT_LOCALE
    recaptcha_token: Optional[str] = None


class NewsletterSubscription(_FormModel):
    email: EmailStr
    consent: Literal[True]
    locale: Locale = DEFAULT_LOCALE
    recaptcha_token: Optional[str] = None


class FormResponse(BaseModel):
    success: bool = True
    message: str
    reference: Optional[str] = None


# ──────────────────────────────────────────────────────────────────────────────
# Admin webhooks
# ──────────────────────────────────────────────────────────────────────────────

class RevalidateRequest(BaseModel):
    secret: str
    type: Optional[ContentType] = None
    slug: Optional[str] = None
    tag: Optional[str] = None
    locale: Optional[Locale] = None


class RevalidateResponse(BaseModel):
    revalidated: bool
    prefixes: list[str] = Field(default_factory=list)
    invalidated: int = 0
    timestamp: datetime
