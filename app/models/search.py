from __future__ import annotations

import re
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny, field_validator, model_validator
from pydantic.alias_generators import to_camel

from app.tools.regions import clean_regions, normalize_region

SearchType = Literal["marketing", "help"]
CategoryTag = Literal["gatherings", "people", "platforms", "exchanges", "licenses"]
CATEGORY_TAGS: tuple[str, ...] = ("gatherings", "people", "platforms", "exchanges", "licenses")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class CamelModel(BaseModel):
    """Base model whose wire/JSON form uses camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def dedupe_strings(values: Any) -> list[str]:
    """Keep first spelling of each case/whitespace-insensitive value."""
    if not isinstance(values, (list, tuple)):
        return []
    result: list[str] = []
    seen: set[str] = set()
    for value in values:
        if not isinstance(value, str):
            continue
        cleaned = " ".join(value.split())
        key = cleaned.lower()
        if not cleaned or key in seen:
            continue
        seen.add(key)
        result.append(cleaned)
    return result


# --- Query analysis ---


class QueryAnalysis(CamelModel):
    has_location: bool = False
    has_profession: bool = False
    has_product: bool = False
    location: str | None = None
    profession: str | None = None
    product: str | None = None
    reasoning: str = ""


class ProfileAnalysis(CamelModel):
    has_location: bool = False
    has_profession: bool = False
    location: str | None = None
    profession: str | None = None
    reasoning: str = ""


class RegionAnalysis(CamelModel):
    larger_regions: list[str] = Field(default_factory=list)
    smaller_regions: list[str] = Field(default_factory=list)
    reasoning: str = ""


class ProfessionIndustryAnalysis(CamelModel):
    professions: list[str] = Field(default_factory=list)
    industries: list[str] = Field(default_factory=list)
    reasoning: str = ""


class QueryExpansion(CamelModel):
    queries: list[str] = Field(default_factory=list)
    reasoning: str = ""


# --- Plan ---


class RegionSet(CamelModel):
    model_config = ConfigDict(frozen=True)

    base_region: str
    larger: tuple[str, ...] = ()
    smaller: tuple[str, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def clean_region_lists(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        base_key = "baseRegion" if "baseRegion" in data else "base_region"
        base = normalize_region(str(data.get(base_key) or ""))
        data[base_key] = base
        larger = clean_regions(base, data.get("larger") or [])
        smaller = [r for r in clean_regions(base, data.get("smaller") or []) if r not in larger]
        data["larger"] = tuple(larger)
        data["smaller"] = tuple(smaller)
        return data

    @property
    def all_regions(self) -> list[str]:
        regions = [self.base_region] if self.base_region else []
        return regions + list(self.larger) + list(self.smaller)


class ProfessionSet(CamelModel):
    model_config = ConfigDict(frozen=True)

    professions: tuple[str, ...] = ()
    industries: tuple[str, ...] = ()

    @field_validator("professions", "industries", mode="before")
    @classmethod
    def dedupe_names(cls, value: Any) -> tuple[str, ...]:
        return tuple(dedupe_strings(value))

    @property
    def audiences(self) -> list[str]:
        return dedupe_strings(list(self.professions) + list(self.industries))

    @property
    def primary_profession(self) -> str | None:
        if self.professions:
            return self.professions[0]
        if self.industries:
            return self.industries[0]
        return None


class SearchPlan(CamelModel):
    """A finalized plan. Frozen: fan-out reads it, nothing writes it."""

    model_config = ConfigDict(frozen=True)

    base_query: str = Field(min_length=1)
    regions: RegionSet
    professions: ProfessionSet = Field(default_factory=ProfessionSet)
    selected_categories: tuple[CategoryTag, ...]
    search_type: SearchType = "marketing"

    @field_validator("selected_categories", mode="before")
    @classmethod
    def canonical_order(cls, value: Any) -> tuple[str, ...]:
        if not isinstance(value, (list, tuple, set, frozenset)):
            return value
        requested = list(value)
        unknown = [v for v in requested if v not in CATEGORY_TAGS]
        if unknown:
            raise ValueError(f"Unknown categories: {', '.join(map(str, unknown))}")
        if not requested:
            raise ValueError("At least one category must be selected")
        return tuple(tag for tag in CATEGORY_TAGS if tag in requested)


class AgentResponse(CamelModel):
    text: str
    regions: RegionSet | None = None
    professions: ProfessionSet | None = None
    analysis: QueryAnalysis | None = None


# --- Category results ---


class CategoryItem(CamelModel):
    name: str = ""
    description: str = ""
    source: str | None = None
    relevance_score: float = 0.0

    @field_validator("name", "description", mode="before")
    @classmethod
    def none_to_empty(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("relevance_score", mode="before")
    @classmethod
    def clamp_score(cls, value: Any) -> float:
        try:
            score = float(value)
        except (TypeError, ValueError):
            return 0.0
        return max(0.0, min(score, 1.0))


def _none_to_list(value: Any) -> Any:
    return [] if value is None else value


class Gathering(CategoryItem):
    date: str | None = None
    location: str = ""
    url: str | None = None
    type: Literal["conference", "expo", "fair", "meetup", "other"] = "other"
    contact_information: str | None = None
    region: str | None = None
    industry: str | None = None

    @field_validator("location", mode="before")
    @classmethod
    def location_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("type", mode="before")
    @classmethod
    def known_type(cls, value: Any) -> str:
        allowed = {"conference", "expo", "fair", "meetup"}
        lowered = str(value or "").strip().lower()
        return lowered if lowered in allowed else "other"


class Person(CategoryItem):
    title: str = ""
    company: str | None = None
    location: str = ""

    @field_validator("title", "location", mode="before")
    @classmethod
    def required_text(cls, value: Any) -> Any:
        return "" if value is None else value


class Platform(CategoryItem):
    type: str | None = None
    location: str | None = None
    features: list[str] = Field(default_factory=list)
    pricing: str | None = None
    user_base: str | None = None

    @field_validator("features", mode="before")
    @classmethod
    def features_list(cls, value: Any) -> Any:
        return _none_to_list(value)


class Exchange(CategoryItem):
    type: str | None = None
    location: str | None = None
    features: list[str] = Field(default_factory=list)
    audience: str | None = None
    frequency: str | None = None
    contact: str | None = None

    @field_validator("features", mode="before")
    @classmethod
    def features_list(cls, value: Any) -> Any:
        return _none_to_list(value)


class License(CategoryItem):
    type: str | None = None
    database_url: str | None = None
    jurisdiction: str | None = None
    requirements: list[str] = Field(default_factory=list)

    @field_validator("requirements", mode="before")
    @classmethod
    def requirements_list(cls, value: Any) -> Any:
        return _none_to_list(value)


class CategorySearchConfig(CamelModel):
    query: str = Field(min_length=1)
    location: str | None = None
    profession: str | None = None
    search_type: SearchType = "marketing"
    num_results: int = Field(default=5, ge=1, le=10)


class CategorySearchResult(CamelModel):
    items: list[SerializeAsAny[CategoryItem]] = Field(default_factory=list)
    reasoning: str = ""


# --- Campaign ---


class CampaignStatus(str, Enum):
    NAVIGATING = "navigating"
    EXTRACTING_SUMMARY = "extracting_summary"
    EXTRACTING_CONTACTS = "extracting_contacts"
    COMPLETED = "completed"
    FAILED = "failed"


class CampaignProgress(CamelModel):
    current_person: int
    total_people: int
    current_person_name: str = ""
    status: CampaignStatus


class PageSummary(CamelModel):
    summary: str = ""
    name: str = ""


class Contact(CamelModel):
    name: str | None = None
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    role: str | None = None

    @field_validator("email", mode="before")
    @classmethod
    def valid_email(cls, value: Any) -> str | None:
        if not isinstance(value, str):
            return None
        value = value.strip()
        if value.lower().startswith("mailto:"):
            value = value[7:]
        return value if _EMAIL_RE.match(value) else None


class ContactInfo(CamelModel):
    contacts: list[Contact] = Field(default_factory=list)

    @field_validator("contacts", mode="before")
    @classmethod
    def contacts_list(cls, value: Any) -> Any:
        return _none_to_list(value)


class CampaignEntry(CamelModel):
    original_person: Person
    summary: PageSummary | None = None
    contact_info: ContactInfo | None = None
