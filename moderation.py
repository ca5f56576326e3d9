"""
Moderation of donated items and NGO verification requests.

Both follow ``pending -> approved | rejected``; approved and rejected are
terminal. A transition is a single-field status write followed by a full
reload of the admin views, so the views always reflect the store rather
than a local guess.
"""
from typing import List, Optional

import structlog

from errors import PermissionDeniedError, ValidationError
from loader import SessionContext, load_items, load_ngo_requests
from schemas import Activity, AdminOverview, DonorStats, ItemRead, NGORequestRead, Notice
from store import Collection, DocumentStore

logger = structlog.get_logger(__name__)

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"


def donor_stats(items: List[ItemRead]) -> DonorStats:
    return DonorStats(
        total_items=len(items),
        approved_items=sum(1 for item in items if item.status == APPROVED),
        free_items=sum(1 for item in items if item.free_for_ngo),
        total_earnings=sum(
            item.price for item in items if item.status == APPROVED and not item.free_for_ngo
        ),
    )


def admin_overview(
    items: List[ItemRead], ngo_requests: List[NGORequestRead], total_users: int
) -> AdminOverview:
    return AdminOverview(
        total_items=len(items),
        pending_items=sum(1 for item in items if item.status == PENDING),
        total_users=total_users,
        active_ngos=sum(1 for ngo in ngo_requests if ngo.status == APPROVED),
        pending_ngos=sum(1 for ngo in ngo_requests if ngo.status == PENDING),
    )


ACTIVITY_TEXT = {
    ("item", PENDING): "New item uploaded: {name}",
    ("item", APPROVED): "{name} approved and listed",
    ("item", REJECTED): "{name} rejected",
    ("ngo_request", PENDING): "New NGO registration request from {name}",
    ("ngo_request", APPROVED): "{name} verified",
    ("ngo_request", REJECTED): "{name} verification rejected",
}


def recent_activity(
    items: List[ItemRead], ngo_requests: List[NGORequestRead], limit: int = 5
) -> List[Activity]:
    """Newest items and NGO requests, merged into one feed."""
    entries = [
        Activity(
            kind="item",
            text=ACTIVITY_TEXT[("item", item.status)].format(name=item.name),
            at=item.created_at,
            ref_id=item.id,
        )
        for item in items
    ] + [
        Activity(
            kind="ngo_request",
            text=ACTIVITY_TEXT[("ngo_request", ngo.status)].format(name=ngo.ngo_name),
            at=ngo.submitted_at,
            ref_id=ngo.id,
        )
        for ngo in ngo_requests
    ]
    entries.sort(key=lambda entry: entry.at, reverse=True)
    return entries[:limit]


def filter_items(
    items: List[ItemRead], status: Optional[str] = None, item_type: Optional[str] = None
) -> List[ItemRead]:
    if status:
        items = [item for item in items if item.status == status]
    if item_type:
        items = [item for item in items if item.type == item_type]
    return items


def pending_items(items: List[ItemRead]) -> List[ItemRead]:
    return filter_items(items, status=PENDING)


def filter_ngo_requests(
    ngo_requests: List[NGORequestRead], status: Optional[str] = None
) -> List[NGORequestRead]:
    if status:
        return [ngo for ngo in ngo_requests if ngo.status == status]
    return ngo_requests


def approved_ngos(ngo_requests: List[NGORequestRead]) -> List[NGORequestRead]:
    return filter_ngo_requests(ngo_requests, status=APPROVED)


class ModerationService:
    def __init__(self, store: DocumentStore, ctx: SessionContext):
        self.store = store
        self.ctx = ctx

    def _require_admin(self) -> None:
        if self.ctx.identity is None or self.ctx.identity.role != "admin":
            raise PermissionDeniedError("Only administrators can moderate listings.")

    def reload(self) -> None:
        """Re-read every item and NGO request into the admin views."""
        self.ctx.user_items = load_items(self.store, self.ctx.identity, "all_items")
        self.ctx.ngo_requests = load_ngo_requests(self.store, self.ctx.identity)

    def _transition(self, collection: Collection, label: str, entity_id: str, status: str) -> None:
        self._require_admin()

        current = collection.get_by_id(entity_id).unwrap()
        if current.status != PENDING:
            raise ValidationError(f"Only pending {label}s can be {status}.")

        collection.update(entity_id, {"status": status}).unwrap()
        logger.info(
            "moderation_transition",
            collection=collection.name,
            entity_id=entity_id,
            status=status,
            moderator=self.ctx.identity.id,
        )
        self.reload()

    def approve_item(self, item_id: str) -> Notice:
        self._transition(self.store.items, "item", item_id, APPROVED)
        return Notice(text="Item approved successfully")

    def reject_item(self, item_id: str) -> Notice:
        self._transition(self.store.items, "item", item_id, REJECTED)
        return Notice(text="Item rejected")

    def approve_ngo(self, ngo_id: str) -> Notice:
        self._transition(self.store.ngo_requests, "NGO request", ngo_id, APPROVED)
        return Notice(text="NGO approved successfully")

    def reject_ngo(self, ngo_id: str) -> Notice:
        self._transition(self.store.ngo_requests, "NGO request", ngo_id, REJECTED)
        return Notice(text="NGO request rejected")

    def overview(self) -> AdminOverview:
        self._require_admin()
        total_users = self.store.users.count().unwrap()
        return admin_overview(self.ctx.user_items, self.ctx.ngo_requests, total_users)
