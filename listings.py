import math
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import structlog

import config
from errors import NotFoundError, PermissionDeniedError, ValidationError
from models import Item, NGORequest
from pricing import resale_price
from schemas import Identity, ItemCreate, ItemRead, NGORequestCreate, NGORequestRead, Notice, from_document
from store import DocumentStore, generate_id, now_ms

logger = structlog.get_logger(__name__)

ITEM_FIELDS = (
    ("name", "item name"),
    ("type", "item type"),
    ("size", "size"),
    ("gender", "gender"),
    ("condition", "condition"),
    ("original_price", "original price"),
)

NGO_FIELDS = (
    ("ngo_name", "ngo name"),
    ("registration_number", "registration number"),
    ("contact_person", "contact person"),
    ("designation", "designation"),
    ("phone", "phone"),
    ("email", "email"),
    ("address", "address"),
    ("service_areas", "service areas"),
    ("description", "description"),
)


def _ensure_role(identity: Optional[Identity], role: str, message: str) -> Identity:
    if identity is None or identity.role != role:
        raise PermissionDeniedError(message)
    return identity


def _require_fields(data, fields: Iterable[Tuple[str, str]]) -> None:
    for name, label in fields:
        value = getattr(data, name)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(f"Please fill in the {label}")


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def upload_images(
    store: DocumentStore, identity: Identity, files: List[Tuple[str, bytes]]
) -> List[str]:
    urls = []
    for filename, data in files:
        path = f"items/{identity.id}/{generate_id()}-{Path(filename).name}"
        urls.append(store.upload(data, path).unwrap())
    return urls


def create_item(store: DocumentStore, identity: Optional[Identity], data: ItemCreate) -> ItemRead:
    """List a donated item for moderation. The resale price is fixed here."""
    donor = _ensure_role(identity, "donor", "Only donors can create items.")
    _require_fields(data, ITEM_FIELDS)
    if not math.isfinite(data.original_price) or data.original_price > config.MAX_ORIGINAL_PRICE:
        raise ValidationError("Please enter a valid original price")
    if data.original_price < 0:
        raise ValidationError("Original price cannot be negative")

    item = Item(
        id=generate_id(),
        name=_clean(data.name),
        type=_clean(data.type),
        size=_clean(data.size),
        gender=_clean(data.gender),
        condition=_clean(data.condition),
        original_price=data.original_price,
        price=resale_price(data.original_price),
        description=_clean(data.description),
        free_for_ngo=data.free_for_ngo,
        donor=donor.name,
        donor_id=donor.id,
        status="pending",
        images=list(data.images) or [config.PLACEHOLDER_IMAGE],
        created_at=now_ms(),
    )
    stored = store.items.create(item).unwrap()
    logger.info("item_created", item_id=item.id, donor_id=donor.id, price=item.price)
    return from_document(ItemRead, stored)


def submit_ngo_request(
    store: DocumentStore, identity: Optional[Identity], data: NGORequestCreate
) -> NGORequestRead:
    ngo = _ensure_role(identity, "ngo", "Only NGO accounts can request verification.")
    _require_fields(data, NGO_FIELDS)

    existing = store.ngo_requests.query({"user_id": ngo.id}, limit=1).unwrap()
    if existing:
        raise ValidationError("A verification request has already been submitted")

    request = NGORequest(
        id=generate_id(),
        ngo_name=_clean(data.ngo_name),
        registration_number=_clean(data.registration_number),
        contact_person=_clean(data.contact_person),
        designation=_clean(data.designation),
        phone=_clean(data.phone),
        email=_clean(data.email),
        address=_clean(data.address),
        service_areas=_clean(data.service_areas),
        description=_clean(data.description),
        website=_clean(data.website),
        user_id=ngo.id,
        status="pending",
        submitted_at=now_ms(),
    )
    stored = from_document(NGORequestRead, store.ngo_requests.create(request).unwrap())

    profile_update = store.users.update(ngo.id, {"ngo_status": "pending", "ngo_id": request.id})
    if not profile_update.ok:
        logger.error("ngo_profile_update_failed", subject=ngo.id, ngo_id=request.id)

    ngo.ngo_status = "pending"
    ngo.ngo_id = request.id
    logger.info("ngo_request_submitted", subject=ngo.id, ngo_id=request.id)
    return stored


def _ensure_verified_ngo(identity: Optional[Identity]) -> Identity:
    ngo = _ensure_role(identity, "ngo", "Only NGO accounts can access donations.")
    if ngo.ngo_status != "approved":
        raise PermissionDeniedError("Complete NGO verification to access free donations")
    return ngo


def free_donations(store: DocumentStore, identity: Optional[Identity]) -> List[ItemRead]:
    _ensure_verified_ngo(identity)
    rows = store.items.query({"status": "approved", "free_for_ngo": True}, order_by="created_at").unwrap()
    return [from_document(ItemRead, row) for row in rows]


def request_donation(store: DocumentStore, identity: Optional[Identity], item_id: str) -> Notice:
    ngo = _ensure_verified_ngo(identity)
    item = store.items.get_by_id(item_id).unwrap()
    if item.status != "approved" or not item.free_for_ngo:
        raise NotFoundError("Donation not available")
    logger.info("donation_pickup_requested", subject=ngo.id, item_id=item_id, donor_id=item.donor_id)
    return Notice(text="Pickup request sent! Donor will be notified.")


def upload_document(
    store: DocumentStore, identity: Optional[Identity], filename: str, data: bytes
) -> str:
    ngo = _ensure_role(identity, "ngo", "Only NGO accounts can upload verification documents.")
    name = Path(filename or "").name
    if not name:
        raise ValidationError("Please choose a file to upload")
    if len(data) > config.MAX_DOCUMENT_BYTES:
        raise ValidationError(f"File {name} is too large (max 5MB)")
    url = store.upload(data, f"ngo_documents/{ngo.id}/{generate_id()}-{name}").unwrap()
    logger.info("ngo_document_uploaded", subject=ngo.id, url=url)
    return url


def filter_products(
    products: List[ItemRead],
    item_type: Optional[str] = None,
    size: Optional[str] = None,
    gender: Optional[str] = None,
    max_price: Optional[int] = None,
) -> List[ItemRead]:
    if item_type:
        products = [p for p in products if p.type == item_type]
    if size:
        products = [p for p in products if p.size == size]
    if gender:
        products = [p for p in products if p.gender == gender]
    if max_price is not None:
        products = [p for p in products if p.price <= max_price]
    return products


def search_products(products: List[ItemRead], term: Optional[str]) -> List[ItemRead]:
    term = (term or "").strip().lower()
    if not term:
        return products
    return [
        p
        for p in products
        if term in p.name.lower() or term in p.description.lower() or term in p.type.lower()
    ]
