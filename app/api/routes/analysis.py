from __future__ import annotations

from fastapi import APIRouter, Depends

from app.agents.categories import CATEGORIES
from app.agents.category_search import CategorySearcher
from app.agents.query_analyzer import QueryAnalyzer
from app.api.deps import get_current_user
from app.errors import NotFoundError
from app.models.schemas import (
    AgentRequest,
    QueryExpanderRequest,
    QueryExpanderResponse,
    RegionRequest,
)
from app.models.search import (
    AgentResponse,
    CategorySearchConfig,
    RegionAnalysis,
)
from app.services import logger as log_service

router = APIRouter(prefix="/api", tags=["analysis"])


@router.post("/agent", response_model=AgentResponse, response_model_exclude_none=True)
async def analyze(request: AgentRequest, user_id: str = Depends(get_current_user)):
    """Analyze a goal into location, audience and product with a proposed plan."""
    log_service.log_event(
        "agent_query", "Analyzing query", user_id=user_id, query=request.query[:100]
    )
    return await QueryAnalyzer().plan(request.query, request.user_profile)


@router.post("/region", response_model=RegionAnalysis)
async def analyze_region(request: RegionRequest, user_id: str = Depends(get_current_user)):
    return await QueryAnalyzer().analyze_regions(request.region)


@router.post("/query-expander", response_model=QueryExpanderResponse)
async def expand_query(request: QueryExpanderRequest, user_id: str = Depends(get_current_user)):
    queries = await QueryAnalyzer().expand_query(request.query, request.num_queries)
    return QueryExpanderResponse(queries=queries)


@router.post("/search/{category}")
async def search_category(
    category: str,
    config: CategorySearchConfig,
    user_id: str = Depends(get_current_user),
):
    """Run one category search for a single location and profession."""
    descriptor = CATEGORIES.get(category)
    if descriptor is None:
        raise NotFoundError(f"Unknown category: {category}", details={"category": category})
    result = await CategorySearcher(descriptor).search(config)
    return result.to_wire()
