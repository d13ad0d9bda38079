from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as SchemaValidationError

from app.errors import ValidationError
from app.models.search import CamelModel, ProfessionSet, RegionSet, SearchPlan, SearchType


# --- Requests ---


class AgentRequest(CamelModel):
    query: str = Field(min_length=1)
    user_profile: str = ""


class RegionRequest(CamelModel):
    region: str = Field(min_length=1)


class QueryExpanderRequest(CamelModel):
    query: str = Field(min_length=1)
    num_queries: int = Field(default=5, ge=1, le=10)


class PlanRequest(CamelModel):
    query: str = Field(min_length=1)
    regions: RegionSet
    professions: ProfessionSet = Field(default_factory=ProfessionSet)
    search_type: SearchType = "marketing"

    def to_plan(self, selected_categories: list[str]) -> SearchPlan:
        try:
            return SearchPlan(
                base_query=self.query,
                regions=self.regions,
                professions=self.professions,
                selected_categories=selected_categories,
                search_type=self.search_type,
            )
        except SchemaValidationError as exc:
            errors = exc.errors(include_url=False, include_context=False)
            raise ValidationError("Invalid search plan", details={"errors": errors}) from exc


class SearchRunRequest(PlanRequest):
    selected_categories: list[str] = Field(default_factory=list)

    def build_plan(self) -> SearchPlan:
        return self.to_plan(self.selected_categories)


class SaveSearchRequest(CamelModel):
    query: str | None = None
    search_data: dict[str, Any] | None = None


# --- Responses ---


class QueryExpanderResponse(CamelModel):
    queries: list[str]


class SearchRecord(BaseModel):
    """Saved search row; keys stay snake_case as stored."""

    id: str
    user_id: str
    query: str
    search_data: dict[str, Any] = Field(default_factory=dict)
    campaign: list[dict[str, Any]] | None = None
    campaign_progress: dict[str, Any] | None = None
    created_at: str | None = None


class CampaignResponse(CamelModel):
    message: str
    campaign_data: list[dict[str, Any]]
    cancelled: bool = False


class CancelResponse(CamelModel):
    cancelled: bool
