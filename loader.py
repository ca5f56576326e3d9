"""
Role-scoped state loader.

Each session transition replaces the contents of a :class:`SessionContext`
with what the identity's role is allowed to see. Roles are a closed set of
:class:`RolePolicy` variants, each declaring its own loading rules and its
landing view.
"""
from dataclasses import dataclass, field
from typing import ClassVar, Dict, List, Optional

import structlog

from errors import Result
from schemas import Identity, ItemRead, NGORequestRead, from_document
from store import DocumentStore

logger = structlog.get_logger(__name__)

SIGN_IN_PATH = "/login"


@dataclass
class SessionContext:
    """Domain state held for one session, replaced on every transition."""

    session_resolved: bool = False
    identity: Optional[Identity] = None
    cart: List[dict] = field(default_factory=list)
    cart_version: int = 0
    wishlist: List[dict] = field(default_factory=list)
    wishlist_version: int = 0
    products: List[ItemRead] = field(default_factory=list)
    user_items: List[ItemRead] = field(default_factory=list)
    ngo_requests: List[NGORequestRead] = field(default_factory=list)

    def clear(self) -> None:
        self.identity = None
        self.cart = []
        self.cart_version = 0
        self.wishlist = []
        self.wishlist_version = 0
        self.products = []
        self.user_items = []
        self.ngo_requests = []


def _logged(result: Result, what: str, identity: Optional[Identity]) -> Optional[list]:
    if result.ok:
        return result.value
    subject = identity.id if identity else None
    logger.error("state_load_failed", what=what, subject=subject, error=result.error.message)
    return None


def load_items(store: DocumentStore, identity: Optional[Identity], what: str, **filters) -> List[ItemRead]:
    rows = _logged(store.items.query(filters, order_by="created_at"), what, identity)
    return [from_document(ItemRead, row) for row in rows or []]


def load_ngo_requests(store: DocumentStore, identity: Optional[Identity], **filters) -> List[NGORequestRead]:
    rows = _logged(store.ngo_requests.query(filters, order_by="submitted_at"), "ngo_requests", identity)
    return [from_document(NGORequestRead, row) for row in rows or []]


def load_catalog(store: DocumentStore, identity: Optional[Identity] = None) -> List[ItemRead]:
    """Approved, paid items: what customers can buy."""
    return load_items(store, identity, "products", status="approved", free_for_ngo=False)


def load_cart(store: DocumentStore, ctx: SessionContext) -> None:
    result = store.get_cart(ctx.identity.id)
    if result.ok:
        ctx.cart, ctx.cart_version = result.value.items, result.value.version
    else:
        _logged(result, "cart", ctx.identity)


def load_wishlist(store: DocumentStore, ctx: SessionContext) -> None:
    result = store.get_wishlist(ctx.identity.id)
    if result.ok:
        ctx.wishlist, ctx.wishlist_version = result.value.items, result.value.version
    else:
        _logged(result, "wishlist", ctx.identity)


class RolePolicy:
    role: ClassVar[str]
    landing: ClassVar[str]

    def load(self, store: DocumentStore, ctx: SessionContext) -> None:
        raise NotImplementedError


class DonorPolicy(RolePolicy):
    role = "donor"
    landing = "/donor"

    def load(self, store, ctx):
        ctx.user_items = load_items(store, ctx.identity, "user_items", donor_id=ctx.identity.id)


class CustomerPolicy(RolePolicy):
    role = "customer"
    landing = "/customer"

    def load(self, store, ctx):
        ctx.products = load_catalog(store, ctx.identity)
        load_wishlist(store, ctx)


class NGOPolicy(RolePolicy):
    role = "ngo"
    landing = "/ngo"

    def load(self, store, ctx):
        requests = load_ngo_requests(store, ctx.identity, user_id=ctx.identity.id)
        ctx.ngo_requests = requests
        if requests:
            # verification state lives on the request, the profile copy may lag
            ctx.identity.ngo_status = requests[0].status
            ctx.identity.ngo_id = requests[0].id


class AdminPolicy(RolePolicy):
    role = "admin"
    landing = "/admin"

    def load(self, store, ctx):
        ctx.products = load_catalog(store, ctx.identity)
        ctx.user_items = load_items(store, ctx.identity, "all_items")
        ctx.ngo_requests = load_ngo_requests(store, ctx.identity)


POLICIES: Dict[str, RolePolicy] = {
    policy.role: policy for policy in (DonorPolicy(), CustomerPolicy(), NGOPolicy(), AdminPolicy())
}


def policy_for(role: str) -> RolePolicy:
    return POLICIES[role]


class StateLoader:
    def __init__(self, store: DocumentStore):
        self.store = store

    def handle_session_change(self, ctx: SessionContext, identity: Optional[Identity]) -> None:
        ctx.clear()
        if identity is not None:
            ctx.identity = identity
            load_cart(self.store, ctx)
            policy_for(identity.role).load(self.store, ctx)
            logger.debug(
                "session_state_loaded",
                subject=identity.id,
                role=identity.role,
                cart=len(ctx.cart),
                items=len(ctx.user_items),
                products=len(ctx.products),
            )
        ctx.session_resolved = True

    def bind(self, ctx: SessionContext):
        """Session-change callback that keeps ``ctx`` in step with the gateway."""

        def on_session_change(identity: Optional[Identity]) -> None:
            self.handle_session_change(ctx, identity)

        return on_session_change


@dataclass
class Authorization:
    allowed: bool
    redirect: Optional[str] = None


def landing_for(identity: Optional[Identity]) -> str:
    if identity is None:
        return SIGN_IN_PATH
    return policy_for(identity.role).landing


def require_role(ctx: SessionContext, role: Optional[str] = None) -> Authorization:
    """
    Decide whether the session may see a view for ``role``.

    Nothing is decided before the first session transition, so a page load
    never redirects on a session that is still resolving.
    """
    if not ctx.session_resolved:
        return Authorization(allowed=False)
    if ctx.identity is None:
        return Authorization(allowed=False, redirect=SIGN_IN_PATH)
    if role and ctx.identity.role != role:
        return Authorization(allowed=False, redirect=landing_for(ctx.identity))
    return Authorization(allowed=True)
