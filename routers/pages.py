# routers/pages.py
from fastapi import APIRouter, HTTPException
from fastapi.responses import RedirectResponse

from loader import require_role
from moderation import approved_ngos, donor_stats, filter_ngo_requests, pending_items, recent_activity, ModerationService
from .auth import SessionState, SessionStateDep
from .cart import cart_payload

router = APIRouter(tags=["pages"])


def _guard(state: SessionState, role: str):
    """Return a redirect when the session may not see ``role``'s dashboard."""
    decision = require_role(state.ctx, role)
    if decision.redirect:
        return RedirectResponse(url=decision.redirect, status_code=303)
    if not decision.allowed:
        raise HTTPException(status_code=401, detail="Session is still loading")
    return None


@router.get("/donor")
def donor_dashboard(state: SessionStateDep):
    """Donor dashboard: own listings and earnings."""
    redirect = _guard(state, "donor")
    if redirect:
        return redirect

    items = state.ctx.user_items
    return {
        "user": state.ctx.identity.model_dump(by_alias=True),
        "items": [item.model_dump(by_alias=True) for item in items],
        "stats": donor_stats(items).model_dump(by_alias=True),
    }


@router.get("/customer")
def customer_dashboard(state: SessionStateDep):
    """Customer dashboard: catalog, cart and wishlist."""
    redirect = _guard(state, "customer")
    if redirect:
        return redirect

    return {
        "user": state.ctx.identity.model_dump(by_alias=True),
        "products": [p.model_dump(by_alias=True) for p in state.ctx.products],
        "cart": cart_payload(state),
        "wishlist": state.ctx.wishlist,
    }


@router.get("/ngo")
def ngo_dashboard(state: SessionStateDep):
    """NGO dashboard: verification status."""
    redirect = _guard(state, "ngo")
    if redirect:
        return redirect

    identity = state.ctx.identity
    request = state.ctx.ngo_requests[0] if state.ctx.ngo_requests else None
    return {
        "user": identity.model_dump(by_alias=True),
        "ngoStatus": identity.ngo_status,
        "request": request.model_dump(by_alias=True) if request else None,
        "verificationRequired": identity.ngo_status is None,
    }


@router.get("/admin")
def admin_dashboard(state: SessionStateDep):
    """Admin dashboard: overview counters and the moderation queues."""
    redirect = _guard(state, "admin")
    if redirect:
        return redirect

    ctx = state.ctx
    overview = ModerationService(state.store, ctx).overview()
    return {
        "user": ctx.identity.model_dump(by_alias=True),
        "overview": overview.model_dump(by_alias=True),
        "pendingItems": [i.model_dump(by_alias=True) for i in pending_items(ctx.user_items)],
        "ngoRequests": [
            n.model_dump(by_alias=True) for n in filter_ngo_requests(ctx.ngo_requests, "pending")
        ],
        "approvedNGOs": [n.model_dump(by_alias=True) for n in approved_ngos(ctx.ngo_requests)],
        "recentActivity": [
            a.model_dump(by_alias=True) for a in recent_activity(ctx.user_items, ctx.ngo_requests)
        ],
    }
