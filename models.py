from typing import List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class Credential(SQLModel, table=True):
    """An account known to the identity provider, profile or not."""

    __tablename__ = "credentials"

    subject: str = Field(primary_key=True)
    email: str = Field(index=True, unique=True)
    password_hash: Optional[str] = None
    provider: str = "password"  # password | federated
    federated_subject: Optional[str] = Field(default=None, index=True)


class UserProfile(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(primary_key=True)
    email: str
    name: str
    phone: Optional[str] = None
    role: str = "customer"  # donor | customer | ngo | admin
    ngo_status: Optional[str] = None
    ngo_id: Optional[str] = None
    provider: Optional[str] = None
    photo_url: Optional[str] = None
    role_selected: bool = True
    created_at: int = 0


class Item(SQLModel, table=True):
    __tablename__ = "items"

    id: str = Field(primary_key=True)
    name: str
    type: str
    size: str
    gender: str
    condition: str
    original_price: float
    price: int
    description: str = ""
    free_for_ngo: bool = False
    donor: str
    donor_id: str = Field(index=True)
    status: str = Field(default="pending", index=True)  # pending | approved | rejected
    images: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    created_at: int = 0


class NGORequest(SQLModel, table=True):
    __tablename__ = "ngo_requests"

    id: str = Field(primary_key=True)
    ngo_name: str
    registration_number: str
    contact_person: str
    designation: str
    phone: str
    email: str
    address: str
    service_areas: str
    description: str
    website: str = ""
    user_id: str = Field(index=True)
    status: str = Field(default="pending", index=True)  # pending | approved | rejected
    submitted_at: int = 0


class Cart(SQLModel, table=True):
    __tablename__ = "carts"

    user_id: str = Field(primary_key=True)
    items: List[dict] = Field(default_factory=list, sa_column=Column(JSON))
    updated_at: int = 0
    version: int = 0


class Wishlist(SQLModel, table=True):
    __tablename__ = "wishlists"

    user_id: str = Field(primary_key=True)
    items: List[dict] = Field(default_factory=list, sa_column=Column(JSON))
    updated_at: int = 0
    version: int = 0
