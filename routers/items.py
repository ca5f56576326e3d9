from typing import List, Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from cart import CartSynchronizer
from listings import create_item, filter_products, free_donations, search_products, upload_images
from loader import load_catalog
from moderation import donor_stats
from schemas import ItemCreate, ItemRead, Notice, from_document
from .auth import CurrentStateDep, SessionStateDep

router = APIRouter(tags=["items"])


@router.get("/", response_model=List[ItemRead])
def list_products(
    state: SessionStateDep,
    type: Optional[str] = None,
    size: Optional[str] = None,
    gender: Optional[str] = None,
    max_price: Optional[int] = None,
    q: Optional[str] = None,
):
    """
    The catalog of approved, paid items, optionally filtered by
    type, size, gender and max_price, and searched by q.
    """
    products = state.ctx.products
    if not products and (state.ctx.identity is None or state.ctx.identity.role not in ("customer", "admin")):
        products = load_catalog(state.store, state.ctx.identity)

    products = filter_products(products, item_type=type, size=size, gender=gender, max_price=max_price)
    return search_products(products, q)


@router.post("/", status_code=201)
async def donate_item(request: Request, state: CurrentStateDep):
    """
    List a donated item; it waits for admin approval.
    Accepts JSON, or form-data with optional image files under 'images'.
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("application/json"):
        item_in = ItemCreate(**await request.json())
    else:
        form = await request.form()
        files = [
            (upload.filename, await upload.read())
            for upload in form.getlist("images")
            if not isinstance(upload, str) and upload.filename
        ]
        fields = {key: value for key, value in form.items() if isinstance(value, str)}
        fields["freeNgo"] = fields.get("freeNgo") in ("on", "true", "1")
        if not fields.get("originalPrice"):
            fields.pop("originalPrice", None)
        item_in = ItemCreate(**fields)
        if files and state.ctx.identity.role == "donor":
            item_in.images = upload_images(state.store, state.ctx.identity, files)

    item = create_item(state.store, state.ctx.identity, item_in)
    notice = Notice(text="Item uploaded successfully! Pending admin approval.")
    return JSONResponse(
        {"notice": notice.model_dump(), "item": item.model_dump(by_alias=True)},
        status_code=201,
    )


@router.get("/my")
def my_items(state: CurrentStateDep):
    if state.ctx.identity.role != "donor":
        raise HTTPException(status_code=403, detail="Only donors can view this page.")
    items = state.ctx.user_items
    return {
        "items": [item.model_dump(by_alias=True) for item in items],
        "stats": donor_stats(items).model_dump(by_alias=True),
    }


@router.get("/free", response_model=List[ItemRead])
def list_free_donations(state: CurrentStateDep):
    """Approved items donated free for NGOs; verified NGOs only."""
    return free_donations(state.store, state.ctx.identity)


@router.get("/{item_id}", response_model=ItemRead)
def get_item(item_id: str, state: SessionStateDep):
    """
    Get a single item by ID. Unapproved items are only visible to
    their donor and to administrators.
    """
    result = state.store.items.get_by_id(item_id)
    if not result.ok:
        raise HTTPException(status_code=404, detail="Item not found")

    item = from_document(ItemRead, result.value)
    identity = state.ctx.identity
    visible = item.status == "approved" or (
        identity is not None and (identity.role == "admin" or identity.id == item.donor_id)
    )
    if not visible:
        raise HTTPException(status_code=404, detail="Item not found")
    return item


@router.post("/{item_id}/buy-now")
def buy_now(item_id: str, state: CurrentStateDep):
    totals, notice = CartSynchronizer(state.store, state.ctx).buy_now(item_id)
    return {"totals": totals.model_dump(by_alias=True), "notice": notice.model_dump()}
