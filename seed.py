import structlog

from models import Item, NGORequest
from store import DocumentStore, now_ms

logger = structlog.get_logger(__name__)

DAY_MS = 86400000

SAMPLE_PRODUCTS = [
    {
        "id": "prod_1",
        "name": "Vintage Denim Jacket",
        "type": "jacket",
        "size": "M",
        "gender": "unisex",
        "condition": "excellent",
        "price": 750,
        "original_price": 3000,
        "images": ["https://images.unsplash.com/photo-1551698618-1dfe5d97d256?w=400"],
        "description": "Classic blue denim jacket in excellent condition",
        "donor": "John Doe",
        "donor_id": "sample_donor_1",
        "free_for_ngo": False,
        "age_days": 1,
    },
    {
        "id": "prod_2",
        "name": "Floral Summer Dress",
        "type": "dress",
        "size": "S",
        "gender": "female",
        "condition": "good",
        "price": 600,
        "original_price": 2400,
        "images": ["https://images.unsplash.com/photo-1595777457583-95e059d581b8?w=400"],
        "description": "Beautiful floral print summer dress",
        "donor": "Sarah Smith",
        "donor_id": "sample_donor_2",
        "free_for_ngo": False,
        "age_days": 2,
    },
    {
        "id": "prod_3",
        "name": "Cotton White Shirt",
        "type": "shirt",
        "size": "L",
        "gender": "male",
        "condition": "excellent",
        "price": 400,
        "original_price": 1600,
        "images": ["https://images.unsplash.com/photo-1602810318383-e386cc2a3ccf?w=400"],
        "description": "Crisp white cotton formal shirt",
        "donor": "Mike Johnson",
        "donor_id": "sample_donor_3",
        "free_for_ngo": True,
        "age_days": 3,
    },
    {
        "id": "prod_4",
        "name": "Designer Sneakers",
        "type": "shoes",
        "size": "9",
        "gender": "unisex",
        "condition": "good",
        "price": 1200,
        "original_price": 4800,
        "images": ["https://images.unsplash.com/photo-1542291026-7eec264c27ff?w=400"],
        "description": "Trendy designer sneakers in great condition",
        "donor": "Alex Chen",
        "donor_id": "sample_donor_4",
        "free_for_ngo": False,
        "age_days": 4,
    },
]

SAMPLE_NGO = {
    "id": "ngo_1",
    "ngo_name": "Helping Hands Foundation",
    "registration_number": "NGO001",
    "contact_person": "Priya Sharma",
    "designation": "Director",
    "phone": "+91 9876543210",
    "email": "priya@helpinghands.org",
    "address": "Mumbai, Maharashtra",
    "service_areas": "Mumbai, Thane, Navi Mumbai",
    "description": "A foundation dedicated to helping underprivileged communities",
    "website": "https://helpinghands.org",
    "user_id": "sample_ngo_user",
}


def seed_sample_data(store: DocumentStore) -> bool:
    """Insert the sample catalog once. Returns False if items already exist."""
    existing = store.items.query(limit=1)
    if existing.ok and existing.value:
        return False

    now = now_ms()
    for product in SAMPLE_PRODUCTS:
        data = {k: v for k, v in product.items() if k != "age_days"}
        store.items.create(
            Item(**data, status="approved", created_at=now - product["age_days"] * DAY_MS)
        ).unwrap()

    store.ngo_requests.create(
        NGORequest(**SAMPLE_NGO, status="pending", submitted_at=now - DAY_MS)
    ).unwrap()

    logger.info("sample_data_seeded", items=len(SAMPLE_PRODUCTS))
    return True
