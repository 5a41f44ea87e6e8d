"""Nudge API routes."""

import uuid

from fastapi import APIRouter, HTTPException

from nudgepush.api.deps import NudgeStoreDep, PublisherDep
from nudgepush.models.nudge import NudgeEvent, NudgeRecord
from nudgepush.schemas.common import APIResponse
from nudgepush.schemas.nudge import NudgeCreate, NudgeCreateResponse

router = APIRouter(prefix="/nudges", tags=["nudges"])


@router.post("", response_model=APIResponse[NudgeCreateResponse], status_code=202)
async def create_nudge(
    data: NudgeCreate,
    store: NudgeStoreDep,
    publisher: PublisherDep,
) -> APIResponse[NudgeCreateResponse]:
    """Record a nudge and queue it for processing.

    Rate limiting happens asynchronously; the sender is not told whether
    the nudge was delivered.
    """
    if data.from_user_id == data.to_user_id:
        raise HTTPException(status_code=400, detail="Cannot nudge yourself")

    event = NudgeEvent(id=f"nudge_{uuid.uuid4().hex[:16]}", **data.model_dump())
    await store.create(event)
    await publisher.publish(event)

    return APIResponse(data=NudgeCreateResponse(nudge_id=event.id))


@router.get("/{nudge_id}", response_model=APIResponse[NudgeRecord])
async def get_nudge(nudge_id: str, store: NudgeStoreDep) -> APIResponse[NudgeRecord]:
    """Get a nudge record with its outcome fields."""
    record = await store.get(nudge_id)
    if not record:
        raise HTTPException(status_code=404, detail=f"Nudge {nudge_id} not found")
    return APIResponse(data=record)
