"""Turns a free-text goal into a structured outreach plan proposal."""
from __future__ import annotations

from loguru import logger

from app import llm_client
from app.models.search import (
    AgentResponse,
    ProfessionIndustryAnalysis,
    ProfessionSet,
    ProfileAnalysis,
    QueryAnalysis,
    QueryExpansion,
    RegionAnalysis,
    RegionSet,
    dedupe_strings,
)
from app.services.prompt_store import render_prompt
from app.tools.regions import clean_regions

PROFILE_REASONING_JOINER = " Trying profile data, here is what I found: "
FALLBACK_TEXT = "I'll help you with your general query."


def _present(value: str | None) -> bool:
    return bool(value and value.strip())


def merge_profession_analyses(
    first: ProfessionIndustryAnalysis,
    second: ProfessionIndustryAnalysis,
) -> ProfessionIndustryAnalysis:
    """Union two analyses, matching names case- and whitespace-insensitively."""
    return ProfessionIndustryAnalysis(
        professions=dedupe_strings(first.professions + second.professions),
        industries=dedupe_strings(first.industries + second.industries),
        reasoning=f"Combined analysis: {first.reasoning} {second.reasoning}".strip(),
    )


def build_response(
    analysis: QueryAnalysis,
    regions: RegionAnalysis,
    professions: ProfessionIndustryAnalysis,
) -> AgentResponse:
    """Compose the status line and optional payloads. Pure."""
    has_audience = bool(professions.professions or professions.industries)
    profession_set = (
        ProfessionSet(professions=professions.professions, industries=professions.industries)
        if has_audience
        else None
    )

    if (
        analysis.has_location
        and analysis.has_profession
        and _present(analysis.location)
        and _present(analysis.profession)
    ):
        text = f"I understand you're looking for {analysis.profession} in {analysis.location}."
        region_set = None
        if regions.larger_regions or regions.smaller_regions:
            text += " Determining Relevant Regions..."
            region_set = RegionSet(
                base_region=analysis.location,
                larger=regions.larger_regions,
                smaller=regions.smaller_regions,
            )
        if profession_set is not None:
            text += " Here are some potential target audiences:"
        return AgentResponse(
            text=text, regions=region_set, professions=profession_set, analysis=analysis
        )

    if analysis.has_product and _present(analysis.product):
        text = f"I'll help you with information about {analysis.product}."
        if profession_set is not None:
            text += " Here are some potential target audiences:"
        return AgentResponse(text=text, professions=profession_set, analysis=analysis)

    return AgentResponse(text=FALLBACK_TEXT, analysis=analysis)


class QueryAnalyzer:
    def __init__(self, model: str | None = None):
        self.model = model

    async def analyze_query(self, query: str, user_profile: str = "") -> QueryAnalysis:
        """Extract location, profession and product, falling back to the profile.

        The profile pass only fills fields the first pass left missing.
        Extraction errors propagate.
        """
        analysis = await llm_client.extract_structured(
            render_prompt("analysis.query", query=query),
            QueryAnalysis,
            model=self.model,
            caller="analyze_query",
        )
        if analysis.has_location and analysis.has_profession:
            return analysis

        profile = await llm_client.extract_structured(
            render_prompt("analysis.profile", profile=user_profile or "", query=query),
            ProfileAnalysis,
            model=self.model,
            caller="analyze_profile",
        )
        update: dict = {}
        if not analysis.has_location and profile.has_location and _present(profile.location):
            update.update(has_location=True, location=profile.location)
        if not analysis.has_profession and profile.has_profession and _present(profile.profession):
            update.update(has_profession=True, profession=profile.profession)
        update["reasoning"] = f"{analysis.reasoning}{PROFILE_REASONING_JOINER}{profile.reasoning}"
        merged = analysis.model_copy(update=update)
        logger.debug(f"Query analysis after profile pass: {merged.model_dump()}")
        return merged

    async def analyze_regions(self, location: str) -> RegionAnalysis:
        analysis = await llm_client.extract_structured(
            render_prompt("analysis.regions", location=location),
            RegionAnalysis,
            system=render_prompt("analysis.regions_system"),
            model=self.model,
            caller="analyze_regions",
        )
        larger = clean_regions(location, analysis.larger_regions)
        smaller = [r for r in clean_regions(location, analysis.smaller_regions) if r not in larger]
        return analysis.model_copy(update={"larger_regions": larger, "smaller_regions": smaller})

    async def analyze_professions_and_industries(
        self, text: str, is_product: bool = False
    ) -> ProfessionIndustryAnalysis:
        subject = "product" if is_product else "query"
        values = {
            "subject": subject,
            "subject_plural": "products" if is_product else "queries",
            "subject_article": "a product/service" if is_product else "a query",
            "example": (
                "project management software"
                if is_product
                else "looking for marketing help in tech industry"
            ),
        }
        return await llm_client.extract_structured(
            render_prompt("analysis.professions", input=text, **values),
            ProfessionIndustryAnalysis,
            system=render_prompt("analysis.professions_system", **values),
            model=self.model,
            caller=f"analyze_professions:{subject}",
        )

    async def expand_query(self, query: str, num_queries: int = 5) -> list[str]:
        expansion = await llm_client.extract_structured(
            render_prompt("expander.queries", query=query, num_queries=num_queries),
            QueryExpansion,
            model=self.model,
            caller="expand_query",
        )
        return dedupe_strings(expansion.queries)[:num_queries]

    async def plan(self, query: str, user_profile: str = "") -> AgentResponse:
        analysis = await self.analyze_query(query, user_profile)

        regions = RegionAnalysis()
        if analysis.has_location and _present(analysis.location):
            regions = await self.analyze_regions(analysis.location)

        professions = await self.analyze_professions_and_industries(query, is_product=False)
        if analysis.has_product and _present(analysis.product):
            product_professions = await self.analyze_professions_and_industries(
                analysis.product, is_product=True
            )
            professions = merge_profession_analyses(professions, product_professions)

        response = build_response(analysis, regions, professions)
        logger.info(f"Planned query '{query[:80]}': {response.text}")
        return response
