from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from moderation import (
    ModerationService,
    approved_ngos,
    filter_items,
    filter_ngo_requests,
    pending_items,
    recent_activity,
)
from .auth import CurrentStateDep, SessionState

router = APIRouter(tags=["admin"])


def _moderator(state: SessionState) -> ModerationService:
    if state.ctx.identity.role != "admin":
        raise HTTPException(status_code=403, detail="Only administrators can access this section.")
    return ModerationService(state.store, state.ctx)


def _after_transition(service: ModerationService, notice) -> dict:
    return {
        "notice": notice.model_dump(),
        "overview": service.overview().model_dump(by_alias=True),
    }


@router.get("/overview")
def overview(state: CurrentStateDep):
    return _moderator(state).overview().model_dump(by_alias=True)


@router.get("/activity")
def activity(state: CurrentStateDep, limit: int = Query(5, ge=1, le=50)):
    _moderator(state)
    entries = recent_activity(state.ctx.user_items, state.ctx.ngo_requests, limit=limit)
    return [entry.model_dump(by_alias=True) for entry in entries]


@router.get("/items")
def list_items(
    state: CurrentStateDep,
    status: Optional[str] = None,
    type: Optional[str] = None,
):
    """
    Every item on the platform, optionally filtered by status and type.
    """
    _moderator(state)
    items = filter_items(state.ctx.user_items, status=status, item_type=type)
    return [item.model_dump(by_alias=True) for item in items]


@router.get("/items/pending")
def list_pending_items(state: CurrentStateDep):
    _moderator(state)
    return [item.model_dump(by_alias=True) for item in pending_items(state.ctx.user_items)]


@router.post("/items/{item_id}/approve")
def approve_item(item_id: str, state: CurrentStateDep):
    service = _moderator(state)
    return _after_transition(service, service.approve_item(item_id))


@router.post("/items/{item_id}/reject")
def reject_item(item_id: str, state: CurrentStateDep):
    service = _moderator(state)
    return _after_transition(service, service.reject_item(item_id))


@router.get("/ngo-requests")
def list_ngo_requests(state: CurrentStateDep, status: Optional[str] = None):
    _moderator(state)
    requests = filter_ngo_requests(state.ctx.ngo_requests, status=status)
    return [ngo.model_dump(by_alias=True) for ngo in requests]


@router.get("/ngos/approved")
def list_approved_ngos(state: CurrentStateDep):
    _moderator(state)
    return [ngo.model_dump(by_alias=True) for ngo in approved_ngos(state.ctx.ngo_requests)]


@router.post("/ngo-requests/{ngo_id}/approve")
def approve_ngo(ngo_id: str, state: CurrentStateDep):
    service = _moderator(state)
    return _after_transition(service, service.approve_ngo(ngo_id))


@router.post("/ngo-requests/{ngo_id}/reject")
def reject_ngo(ngo_id: str, state: CurrentStateDep):
    service = _moderator(state)
    return _after_transition(service, service.reject_ngo(ngo_id))
