"""
Cart and wishlist synchronizer.

The session's cart and wishlist are ordered lists of item snapshots. Every
mutation is written straight back as a full replacement of the stored
document, guarded by the document version read at load time. When another
writer got there first the document is re-read and the same change is
applied once more on top of it.
"""
from typing import Callable, List, Optional, Tuple

import structlog

from errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from loader import SessionContext
from pricing import checkout_totals, format_price
from schemas import CartTotals, ItemRead, Notice
from store import DocumentStore

logger = structlog.get_logger(__name__)

Mutation = Callable[[List[dict]], List[dict]]


def contains(entries: List[dict], item_id: str) -> bool:
    return any(entry.get("id") == item_id for entry in entries)


def snapshot(item: ItemRead) -> dict:
    return item.model_dump(by_alias=True)


def ensure_present(entry: dict) -> Mutation:
    def mutate(entries: List[dict]) -> List[dict]:
        if contains(entries, entry["id"]):
            return entries
        return entries + [entry]

    return mutate


def ensure_absent(item_id: str) -> Mutation:
    def mutate(entries: List[dict]) -> List[dict]:
        return [entry for entry in entries if entry.get("id") != item_id]

    return mutate


class CartSynchronizer:
    def __init__(self, store: DocumentStore, ctx: SessionContext):
        self.store = store
        self.ctx = ctx

    def _require_identity(self, action: str) -> None:
        if self.ctx.identity is None:
            raise PermissionDeniedError(f"Please login to {action}")

    def _catalog_item(self, item_id: str) -> ItemRead:
        for product in self.ctx.products:
            if product.id == item_id:
                return product
        raise NotFoundError("Item not found")

    def _sync(self, kind: str, mutate: Mutation) -> None:
        if kind == "cart":
            load, save = self.store.get_cart, self.store.save_cart
        else:
            load, save = self.store.get_wishlist, self.store.save_wishlist

        user_id = self.ctx.identity.id
        entries = getattr(self.ctx, kind)
        version = getattr(self.ctx, f"{kind}_version")

        for attempt in (1, 2):
            result = save(user_id, mutate(list(entries)), expected_version=version)
            if result.ok:
                setattr(self.ctx, kind, result.value.items)
                setattr(self.ctx, f"{kind}_version", result.value.version)
                return
            if attempt == 2 or not isinstance(result.error, ConflictError):
                raise result.error
            logger.info("list_write_retry", kind=kind, user_id=user_id)
            fresh = load(user_id).unwrap()
            entries, version = fresh.items, fresh.version

    # -- cart -------------------------------------------------------------------

    def add_to_cart(self, item_id: str) -> Notice:
        self._require_identity("add items to cart")
        product = self._catalog_item(item_id)

        if contains(self.ctx.cart, item_id):
            return Notice(kind="info", text="Item already in cart")

        self._sync("cart", ensure_present(snapshot(product)))
        logger.info("cart_item_added", user_id=self.ctx.identity.id, item_id=item_id)
        return Notice(text="Item added to cart")

    def remove_from_cart(self, item_id: str) -> Notice:
        self._require_identity("manage your cart")
        self._sync("cart", ensure_absent(item_id))
        logger.info("cart_item_removed", user_id=self.ctx.identity.id, item_id=item_id)
        return Notice(text="Item removed from cart")

    def totals(self) -> CartTotals:
        return checkout_totals(entry["price"] for entry in self.ctx.cart)

    def proceed_to_checkout(self, entries: Optional[List[dict]] = None) -> Tuple[CartTotals, Notice]:
        entries = self.ctx.cart if entries is None else entries
        if not entries:
            raise ValidationError("Your cart is empty")
        totals = checkout_totals(entry["price"] for entry in entries)
        notice = Notice(kind="info", text=f"Processing payment for {format_price(totals.final_total)}")
        return totals, notice

    def buy_now(self, item_id: str) -> Tuple[CartTotals, Notice]:
        """Check out a single catalog item without touching the cart."""
        self._require_identity("buy items")
        product = self._catalog_item(item_id)
        return self.proceed_to_checkout([snapshot(product)])

    # -- wishlist ---------------------------------------------------------------

    def is_in_wishlist(self, item_id: str) -> bool:
        return contains(self.ctx.wishlist, item_id)

    def toggle_wishlist(self, item_id: str) -> Notice:
        self._require_identity("manage wishlist")

        # decide against the state the user saw; a retry then keeps that intent
        if self.is_in_wishlist(item_id):
            self._sync("wishlist", ensure_absent(item_id))
            return Notice(text="Removed from wishlist")

        product = self._catalog_item(item_id)
        self._sync("wishlist", ensure_present(snapshot(product)))
        return Notice(text="Added to wishlist")
