from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sse_starlette.sse import EventSourceResponse

from app.agents.orchestrator import SearchOrchestrator
from app.api.deps import get_current_user
from app.errors import ValidationError
from app.models.schemas import PlanRequest, SaveSearchRequest, SearchRecord, SearchRunRequest
from app.services import logger as log_service
from app.services import streaming
from app.services import supabase as db

router = APIRouter(prefix="/api", tags=["searches"])


@router.post("/searches/run")
async def run_search(
    request: SearchRunRequest,
    stream: bool = Query(default=True),
    user_id: str = Depends(get_current_user),
):
    """Run the fan-out for a finalized plan.

    Streams progress as server-sent events ending in ``search_complete``;
    with ``stream=false`` the final payload is returned as JSON instead.
    """
    plan = request.build_plan()
    orchestrator = SearchOrchestrator()

    if not stream:
        return await orchestrator.execute(plan, user_id)

    async def event_generator():
        log_service.log_event(
            "search_started",
            "Fan-out search started",
            user_id=user_id,
            categories=list(plan.selected_categories),
        )
        try:
            async for event in orchestrator.run(plan, user_id):
                yield event.to_sse()
        except Exception as e:
            log_service.log_event(
                event_type="stream_error",
                message="Unhandled error in search stream",
                error=str(e),
                user_id=user_id,
            )
            yield streaming.error("Search stream failed unexpectedly.").to_sse()

    return EventSourceResponse(event_generator())


@router.post("/gatherings/stream")
async def stream_gatherings(request: PlanRequest, user_id: str = Depends(get_current_user)):
    """Gatherings across every region and industry, streamed as they finish."""
    plan = request.to_plan(["gatherings"])
    orchestrator = SearchOrchestrator()

    async def event_generator():
        try:
            async for event in orchestrator.stream_gatherings(plan):
                yield event.to_sse()
        except Exception as e:
            log_service.log_event(
                event_type="stream_error",
                message="Unhandled error in gatherings stream",
                error=str(e),
                user_id=user_id,
            )
            yield streaming.error("Gathering stream failed unexpectedly.", "gatherings").to_sse()

    return EventSourceResponse(event_generator())


@router.get("/searches", response_model=list[SearchRecord])
async def list_searches(user_id: str = Depends(get_current_user)):
    return await db.list_searches(user_id)


@router.get("/searches/{search_id}", response_model=SearchRecord)
async def get_search(search_id: str, user_id: str = Depends(get_current_user)):
    return await db.get_search(search_id, user_id)


@router.post("/searches", response_model=SearchRecord)
async def save_search(request: SaveSearchRequest, user_id: str = Depends(get_current_user)):
    if not request.query or request.search_data is None:
        raise ValidationError("Query and search data are required")
    return await db.create_search(user_id, request.query, request.search_data)
