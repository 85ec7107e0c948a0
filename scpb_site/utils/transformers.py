"""
scpb_site/utils/transformers.py — CMS record → domain entity mapping
CMS records carry one field per locale (name_fr, name_en, ...). Domain
entities group them into LocalizedText. Missing optional structures fall
back to defaults so one incomplete record never breaks a page.
"""
from __future__ import annotations

from typing import Any, Iterable, Optional

from scpb_site.models import (
    Article,
    ArticleAuthor,
    ArticleCategory,
    ArticleListItem,
    ArticleTag,
    ConstellationConfig,
    ConstellationNode,
    Destination,
    ExportKPI,
    ExportStatistics,
    Image,
    LocalizedText,
    MonthlyVolume,
    Product,
    ProductShare,
    RegionShare,
    TeamMember,
    TeamMemberPhoto,
)

Raw = dict[str, Any]


def localized(raw: Raw, field: str) -> LocalizedText:
    return LocalizedText(
        fr=raw.get(f"{field}_fr") or "",
        en=raw.get(f"{field}_en") or "",
    )


def _items(value: Any) -> list[Any]:
    if isinstance(value, dict) and "data" in value:
        # {data: [...]} relation envelope
        value = value["data"]
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _one(value: Any) -> Optional[Raw]:
    if isinstance(value, dict) and "data" in value:
        value = value["data"]
    if isinstance(value, dict) and isinstance(value.get("attributes"), dict):
        value = {"id": value.get("id"), **value["attributes"]}
    return value or None


def _str_id(raw: Raw) -> str:
    value = raw.get("id")
    return "" if value is None else str(value)


def _timestamp(raw: Raw, *names: str) -> Optional[str]:
    for name in names:
        if raw.get(name):
            return raw[name]
    return None


# ──────────────────────────────────────────────────────────────────────────────
# Nested structures
# ──────────────────────────────────────────────────────────────────────────────

def transform_image(raw: Optional[Raw]) -> Optional[Image]:
    raw = _one(raw)
    if not raw or not raw.get("url"):
        return None
    return Image(
        url=raw["url"],
        alt=localized(raw, "alt"),
        width=raw.get("width"),
        height=raw.get("height"),
    )


def transform_constellation(raw: Optional[Raw]) -> ConstellationConfig:
    if not raw:
        return ConstellationConfig()
    nodes = [
        ConstellationNode(
            id=str(node.get("id", "")),
            position=tuple(node.get("position") or (0, 0, 0)),
            size=node.get("size", 1),
            label=node.get("label"),
        )
        for node in raw.get("nodes") or []
    ]
    return ConstellationConfig(
        nodes=nodes,
        connections=[tuple(pair) for pair in raw.get("connections") or []],
        color=raw.get("color") or "#ffffff",
        glow_intensity=raw.get("glowIntensity", raw.get("glow_intensity", 1)),
        animation_speed=raw.get("animationSpeed", raw.get("animation_speed", 1)),
    )


def transform_category(raw: Optional[Raw]) -> Optional[ArticleCategory]:
    raw = _one(raw)
    if not raw:
        return None
    return ArticleCategory(id=_str_id(raw), slug=raw.get("slug", ""), name=localized(raw, "name"))


def transform_tag(raw: Raw) -> ArticleTag:
    raw = _one(raw) or {}
    return ArticleTag(id=_str_id(raw), slug=raw.get("slug", ""), name=localized(raw, "name"))


def transform_author(raw: Optional[Raw]) -> Optional[ArticleAuthor]:
    raw = _one(raw)
    if not raw:
        return None
    return ArticleAuthor(
        id=_str_id(raw),
        name=raw.get("name", ""),
        avatar=raw.get("avatar"),
        link=raw.get("link"),
        is_external=bool(raw.get("isExternal", raw.get("is_external", False))),
    )


def transform_team_photo(raw: Optional[Raw]) -> Optional[TeamMemberPhoto]:
    raw = _one(raw)
    if not raw or not raw.get("url"):
        return None
    return TeamMemberPhoto(
        url=raw["url"],
        alt=raw.get("alt_fr") or raw.get("alt_en") or "",
        width=raw.get("width"),
        height=raw.get("height"),
    )


# ──────────────────────────────────────────────────────────────────────────────
# Entities
# ──────────────────────────────────────────────────────────────────────────────

def transform_product(raw: Raw) -> Product:
    images = [transform_image(image) for image in _items(raw.get("images"))]
    related = [_one(item) or {} for item in _items(raw.get("related_products"))]
    return Product(
        id=_str_id(raw),
        slug=raw.get("slug", ""),
        name=localized(raw, "name"),
        description=localized(raw, "description"),
        category=raw.get("category") or "",
        origin=raw.get("origin") or [],
        season=raw.get("season") or "",
        certifications=raw.get("certifications") or [],
        packaging_options=raw.get("packaging_options") or [],
        images=[image for image in images if image is not None],
        constellation=transform_constellation(raw.get("constellation_config")),
        related_products=[item["slug"] for item in related if item.get("slug")],
        created_at=_timestamp(raw, "createdAt", "created_at"),
        updated_at=_timestamp(raw, "updatedAt", "updated_at"),
    )


def transform_article_list_item(raw: Raw) -> ArticleListItem:
    """Lighter shape for listings: no body, tags or author."""
    return ArticleListItem(
        id=_str_id(raw),
        slug=raw.get("slug", ""),
        title=localized(raw, "title"),
        excerpt=localized(raw, "excerpt"),
        featured_image=transform_image(raw.get("featured_image")),
        category=transform_category(raw.get("category")),
        published_at=_timestamp(raw, "published_at", "publishedAt"),
    )


def transform_article(raw: Raw) -> Article:
    return Article(
        id=_str_id(raw),
        slug=raw.get("slug", ""),
        title=localized(raw, "title"),
        excerpt=localized(raw, "excerpt"),
        content=localized(raw, "content"),
        featured_image=transform_image(raw.get("featured_image")),
        category=transform_category(raw.get("category")),
        tags=[transform_tag(tag) for tag in _items(raw.get("tags"))],
        author=transform_author(raw.get("author")),
        published_at=_timestamp(raw, "published_at", "publishedAt"),
        created_at=_timestamp(raw, "createdAt", "created_at"),
        updated_at=_timestamp(raw, "updatedAt", "updated_at"),
    )


def transform_team_member(raw: Raw) -> TeamMember:
    return TeamMember(
        id=_str_id(raw),
        name=raw.get("name", ""),
        role=localized(raw, "role"),
        bio=localized(raw, "bio"),
        photo=transform_team_photo(raw.get("photo")),
        is_ceo=bool(raw.get("is_ceo", False)),
        order=raw.get("order") or 0,
        email=raw.get("email"),
        linkedin=raw.get("linkedin"),
    )


def sort_team_members(members: Iterable[TeamMember]) -> list[TeamMember]:
    """CEO first, then by display order."""
    return sorted(members, key=lambda member: (not member.is_ceo, member.order))


def extract_slugs(records: Iterable[Raw]) -> list[str]:
    return [record["slug"] for record in records if record.get("slug")]


_REGIONS = {"eu", "asia", "usa", "africa", "other"}


def _pick(raw: Raw, camel: str, snake: str, default: Any = None) -> Any:
    value = raw.get(camel, raw.get(snake))
    return default if value is None else value


def transform_export_statistics(raw: Raw) -> ExportStatistics:
    """Accepts camelCase or snake_case fields; missing figures default to zero."""
    kpi = raw.get("kpi") or {}
    regions = [
        RegionShare(
            region=region["region"] if region.get("region") in _REGIONS else "other",
            percentage=region.get("percentage") or 0,
            countries=region.get("countries") or [],
        )
        for region in _pick(raw, "exportsByRegion", "exports_by_region", [])
    ]
    destinations = [
        Destination(
            country=item.get("country", ""),
            country_code=_pick(item, "countryCode", "country_code", ""),
            percentage=item.get("percentage") or 0,
            port=item.get("port"),
        )
        for item in _pick(raw, "topDestinations", "top_destinations", [])
    ]
    volumes = [
        MonthlyVolume(month=item.get("month", ""), year=item.get("year") or 0, volume=item.get("volume") or 0)
        for item in _pick(raw, "monthlyVolumes", "monthly_volumes", [])
    ]
    mix = [
        ProductShare(
            product=item.get("product", ""),
            slug=item.get("slug", ""),
            volume=item.get("volume") or 0,
            percentage=item.get("percentage") or 0,
            color=item.get("color") or "#ffffff",
        )
        for item in _pick(raw, "productMix", "product_mix", [])
    ]
    return ExportStatistics(
        last_updated=_timestamp(raw, "lastUpdated", "last_updated", "updatedAt"),
        kpi=ExportKPI(
            tonnes_exported=_pick(kpi, "tonnesExported", "tonnes_exported", 0),
            countries_served=_pick(kpi, "countriesServed", "countries_served", 0),
            producer_partners=_pick(kpi, "producerPartners", "producer_partners", 0),
            years_experience=_pick(kpi, "yearsExperience", "years_experience", 0),
            traced_lots=_pick(kpi, "tracedLots", "traced_lots", 0),
        ),
        exports_by_region=regions,
        top_destinations=destinations,
        monthly_volumes=volumes,
        product_mix=mix,
    )
