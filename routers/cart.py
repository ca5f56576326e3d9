from fastapi import APIRouter

from cart import CartSynchronizer
from .auth import CurrentStateDep, SessionState

router = APIRouter(tags=["cart"])


def cart_payload(state: SessionState) -> dict:
    totals = CartSynchronizer(state.store, state.ctx).totals()
    return {
        "items": state.ctx.cart,
        "totals": totals.model_dump(by_alias=True),
    }


@router.get("/cart")
def get_cart(state: CurrentStateDep):
    return cart_payload(state)


@router.post("/cart/checkout")
def checkout(state: CurrentStateDep):
    """Price the whole cart; payment itself is not handled here."""
    totals, notice = CartSynchronizer(state.store, state.ctx).proceed_to_checkout()
    return {"totals": totals.model_dump(by_alias=True), "notice": notice.model_dump()}


@router.post("/cart/{item_id}")
def add_to_cart(item_id: str, state: CurrentStateDep):
    notice = CartSynchronizer(state.store, state.ctx).add_to_cart(item_id)
    return {"notice": notice.model_dump(), **cart_payload(state)}


@router.delete("/cart/{item_id}")
def remove_from_cart(item_id: str, state: CurrentStateDep):
    notice = CartSynchronizer(state.store, state.ctx).remove_from_cart(item_id)
    return {"notice": notice.model_dump(), **cart_payload(state)}


@router.get("/wishlist")
def get_wishlist(state: CurrentStateDep):
    return {"items": state.ctx.wishlist}


@router.post("/wishlist/{item_id}")
def toggle_wishlist(item_id: str, state: CurrentStateDep):
    sync = CartSynchronizer(state.store, state.ctx)
    notice = sync.toggle_wishlist(item_id)
    return {
        "notice": notice.model_dump(),
        "items": state.ctx.wishlist,
        "inWishlist": sync.is_in_wishlist(item_id),
    }
