# routers/users.py
from typing import List

from fastapi import APIRouter, HTTPException

from schemas import Identity, from_document
from .auth import CurrentStateDep

router = APIRouter(tags=["users"])


@router.get("/", response_model=List[Identity])
def list_users(state: CurrentStateDep):
    """
    List all user profiles (admin only).
    """
    if state.ctx.identity.role != "admin":
        raise HTTPException(status_code=403, detail="Only administrators can list users.")
    profiles = state.store.users.query(order_by="created_at").unwrap()
    return [from_document(Identity, profile) for profile in profiles]


@router.get("/{user_id}", response_model=Identity)
def get_user(user_id: str, state: CurrentStateDep):
    """
    Get a single user profile by ID. Users may read their own profile.
    """
    identity = state.ctx.identity
    if identity.role != "admin" and identity.id != user_id:
        raise HTTPException(status_code=403, detail="You can only view your own profile.")
    result = state.store.users.get_by_id(user_id)
    if not result.ok:
        raise HTTPException(status_code=404, detail="User not found")
    return from_document(Identity, result.value)
