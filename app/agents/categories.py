"""Category descriptors.

Each category is described once here: its item schema, prompt keys, dedup
key and the fan-out shape the orchestrator uses to expand a plan into
``(region, profession)`` units. The search machinery itself is generic.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable

from app.models.search import (
    CategoryItem,
    Exchange,
    Gathering,
    License,
    Person,
    Platform,
    SearchPlan,
)


class FanOutShape(str, Enum):
    REGION_BY_AUDIENCE = "region_by_audience"
    REGION_BY_INDUSTRY = "region_by_industry"
    PER_REGION = "per_region"
    BASE_ONCE = "base_once"


def name_key(item: CategoryItem) -> tuple[str, ...]:
    return (item.name,)


def name_location_key(item: CategoryItem) -> tuple[str, ...]:
    return (item.name, getattr(item, "location", "") or "")


@dataclass(frozen=True)
class CategoryDescriptor:
    tag: str
    label: str
    item_model: type[CategoryItem]
    fan_out: FanOutShape
    dedup_key: Callable[[CategoryItem], tuple[str, ...]] = name_key

    @property
    def query_prompt_key(self) -> str:
        return f"categories.{self.tag}.queries"

    @property
    def analysis_prompt_key(self) -> str:
        return f"categories.{self.tag}.analyze"


CATEGORIES: dict[str, CategoryDescriptor] = {
    d.tag: d
    for d in (
        CategoryDescriptor(
            tag="gatherings",
            label="Gatherings",
            item_model=Gathering,
            fan_out=FanOutShape.REGION_BY_INDUSTRY,
            dedup_key=name_location_key,
        ),
        CategoryDescriptor(
            tag="people",
            label="People",
            item_model=Person,
            fan_out=FanOutShape.REGION_BY_AUDIENCE,
        ),
        CategoryDescriptor(
            tag="platforms",
            label="Platforms",
            item_model=Platform,
            fan_out=FanOutShape.BASE_ONCE,
        ),
        CategoryDescriptor(
            tag="exchanges",
            label="Information Exchanges",
            item_model=Exchange,
            fan_out=FanOutShape.PER_REGION,
        ),
        CategoryDescriptor(
            tag="licenses",
            label="Licenses",
            item_model=License,
            fan_out=FanOutShape.REGION_BY_AUDIENCE,
        ),
    )
}


def get_category(tag: str) -> CategoryDescriptor:
    try:
        return CATEGORIES[tag]
    except KeyError:
        raise KeyError(f"Unknown category: {tag}") from None


def fan_out_units(descriptor: CategoryDescriptor, plan: SearchPlan) -> list[tuple[str, str | None]]:
    """Expand a plan into the ``(region, profession)`` pairs one category runs.

    An empty audience list still yields one unit per region, with no
    profession; an empty region set yields units without a location.
    """
    regions = plan.regions.all_regions or [plan.regions.base_region]
    shape = descriptor.fan_out

    if shape == FanOutShape.BASE_ONCE:
        return [(plan.regions.base_region, plan.professions.primary_profession)]
    if shape == FanOutShape.PER_REGION:
        return [(region, plan.professions.primary_profession) for region in regions]

    if shape == FanOutShape.REGION_BY_INDUSTRY:
        audiences: list[str] = list(plan.professions.industries)
    else:
        audiences = plan.professions.audiences
    if not audiences:
        return [(region, None) for region in regions]
    return [(region, audience) for region in regions for audience in audiences]
