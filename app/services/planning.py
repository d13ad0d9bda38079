"""Editable plan state between query analysis and fan-out.

A ``PlanningSession`` holds the region and audience lists the user is still
adjusting. ``finalize`` freezes them into a ``SearchPlan``; after that every
edit raises ``ValidationError``.
"""
from __future__ import annotations

from typing import Iterable

from pydantic import ValidationError as SchemaValidationError

from app.errors import ValidationError
from app.models.search import AgentResponse, ProfessionSet, RegionSet, SearchPlan, SearchType
from app.tools.regions import is_country, normalize_region


def _contains(values: list[str], value: str) -> bool:
    key = value.lower()
    return any(v.lower() == key for v in values)


def _remove(values: list[str], value: str) -> bool:
    key = normalize_region(value).lower()
    for i, existing in enumerate(values):
        if existing.lower() == key:
            del values[i]
            return True
    return False


class PlanningSession:
    def __init__(
        self,
        base_query: str,
        base_region: str = "",
        *,
        larger: Iterable[str] = (),
        smaller: Iterable[str] = (),
        professions: Iterable[str] = (),
        industries: Iterable[str] = (),
        search_type: SearchType = "marketing",
    ):
        regions = RegionSet(base_region=base_region, larger=list(larger), smaller=list(smaller))
        audience = ProfessionSet(professions=list(professions), industries=list(industries))
        self.base_query = base_query
        self.base_region = regions.base_region
        self.larger = list(regions.larger)
        self.smaller = list(regions.smaller)
        self.professions = list(audience.professions)
        self.industries = list(audience.industries)
        self.search_type = search_type
        self.plan: SearchPlan | None = None

    @classmethod
    def from_agent_response(cls, base_query: str, response: AgentResponse) -> "PlanningSession":
        regions = response.regions
        audience = response.professions
        location = response.analysis.location if response.analysis else None
        return cls(
            base_query,
            regions.base_region if regions else (location or ""),
            larger=regions.larger if regions else (),
            smaller=regions.smaller if regions else (),
            professions=audience.professions if audience else (),
            industries=audience.industries if audience else (),
        )

    @property
    def finalized(self) -> bool:
        return self.plan is not None

    def _check_editable(self) -> None:
        if self.plan is not None:
            raise ValidationError("Plan is finalized and can no longer be edited")

    def add_region(self, region: str, *, larger: bool = False) -> bool:
        """Add a region; returns False when it is blank, a country or already present."""
        self._check_editable()
        value = normalize_region(region)
        if (
            not value
            or is_country(value)
            or value.lower() == self.base_region.lower()
            or _contains(self.larger + self.smaller, value)
        ):
            return False
        (self.larger if larger else self.smaller).append(value)
        return True

    def remove_region(self, region: str) -> bool:
        self._check_editable()
        return _remove(self.larger, region) or _remove(self.smaller, region)

    def add_profession(self, name: str, *, industry: bool = False) -> bool:
        self._check_editable()
        value = " ".join(name.split())
        if not value or _contains(self.professions + self.industries, value):
            return False
        (self.industries if industry else self.professions).append(value)
        return True

    def remove_profession(self, name: str) -> bool:
        self._check_editable()
        return _remove(self.professions, name) or _remove(self.industries, name)

    def finalize(self, selected_categories: Iterable[str]) -> SearchPlan:
        self._check_editable()
        try:
            plan = SearchPlan(
                base_query=self.base_query,
                regions=RegionSet(
                    base_region=self.base_region, larger=self.larger, smaller=self.smaller
                ),
                professions=ProfessionSet(professions=self.professions, industries=self.industries),
                selected_categories=list(selected_categories),
                search_type=self.search_type,
            )
        except SchemaValidationError as exc:
            errors = exc.errors(include_url=False, include_context=False)
            raise ValidationError("Invalid search plan", details={"errors": errors}) from exc
        self.plan = plan
        return plan

    def summary(self) -> str:
        return plan_summary(self.plan) if self.plan else ""


def plan_summary(plan: SearchPlan) -> str:
    lines = ["I'll focus on:"]
    regions = plan.regions
    if regions.all_regions:
        lines.append(f"• Base Region: {regions.base_region}")
        if regions.larger:
            lines.append(f"• Larger Regions: {', '.join(regions.larger)}")
        if regions.smaller:
            lines.append(f"• Smaller Regions: {', '.join(regions.smaller)}")
    audiences = plan.professions.audiences
    if audiences:
        lines.append(f"• Target Audience: {', '.join(audiences)}")
    return "\n".join(lines)
