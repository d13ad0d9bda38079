from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from app.agents.campaign import CampaignRunner, cancel_campaign, get_active_run
from app.api.deps import get_current_user
from app.config import settings
from app.models.schemas import CampaignResponse, CancelResponse
from app.services import logger as log_service
from app.services import streaming
from app.services import supabase as db

router = APIRouter(prefix="/api/searches", tags=["campaign"])


@router.post("/{search_id}/campaign", response_model=CampaignResponse)
async def run_campaign(search_id: str, user_id: str = Depends(get_current_user)):
    """Run the outreach campaign over the search's people and return the entries."""
    runner = CampaignRunner(search_id, user_id)
    entries = await runner.run()
    message = "Campaign cancelled" if runner.cancelled else "Campaign completed successfully"
    return CampaignResponse(
        message=message,
        campaign_data=[entry.to_wire() for entry in entries],
        cancelled=runner.cancelled,
    )


@router.get("/{search_id}/campaign/stream")
async def stream_campaign(search_id: str, user_id: str = Depends(get_current_user)):
    """Push campaign progress by re-reading the search row on a short interval.

    Ends once every person has an entry, or when no run is active and the
    progress field has been cleared.
    """
    await db.get_search(search_id, user_id)

    async def event_generator():
        last: tuple | None = None
        try:
            while True:
                row = await db.get_search(search_id, user_id)
                progress = row.get("campaign_progress")
                campaign = row.get("campaign") or []
                snapshot = (repr(progress), len(campaign))
                if snapshot != last:
                    last = snapshot
                    yield streaming.campaign_progress(progress, len(campaign)).to_sse()

                total = (progress or {}).get("totalPeople")
                if progress and total is not None and len(campaign) >= total:
                    break
                if not progress and get_active_run(search_id) is None:
                    break
                await asyncio.sleep(settings.campaign_poll_interval_seconds)
            yield streaming.campaign_complete(campaign).to_sse()
        except Exception as e:
            log_service.log_event(
                event_type="stream_error",
                message="Unhandled error in campaign stream",
                error=str(e),
                search_id=search_id,
            )
            yield streaming.error("Campaign stream failed unexpectedly.").to_sse()

    return EventSourceResponse(event_generator())


@router.delete("/{search_id}/campaign", response_model=CancelResponse)
async def cancel(search_id: str, user_id: str = Depends(get_current_user)):
    return CancelResponse(cancelled=cancel_campaign(search_id, user_id))
