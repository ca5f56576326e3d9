from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["donor", "customer", "ngo", "admin"]
PublicRole = Literal["donor", "customer", "ngo"]
ModerationStatus = Literal["pending", "approved", "rejected"]
NoticeKind = Literal["success", "info", "error"]


class Notice(BaseModel):
    """A transient notification shown once to the user."""

    kind: NoticeKind = "success"
    text: str


# ---------------------------------------------------------------------------
# Read models: the wire format keeps the camelCase names clients already use.
# ---------------------------------------------------------------------------


class Identity(BaseModel):
    id: str
    email: str
    name: str
    phone: Optional[str] = None
    role: Role
    ngo_status: Optional[ModerationStatus] = Field(default=None, alias="ngoStatus")
    ngo_id: Optional[str] = Field(default=None, alias="ngoId")
    provider: Optional[str] = None
    photo_url: Optional[str] = Field(default=None, alias="photoURL")
    role_selected: bool = Field(default=True, alias="roleSelected")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class ItemRead(BaseModel):
    id: str
    name: str
    type: str
    size: str
    gender: str
    condition: str
    original_price: float = Field(alias="originalPrice")
    price: int
    description: str = ""
    free_for_ngo: bool = Field(default=False, alias="freeForNGO")
    donor: str
    donor_id: str = Field(alias="donorId")
    status: ModerationStatus
    images: List[str] = []
    created_at: int = Field(default=0, alias="createdAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class NGORequestRead(BaseModel):
    id: str
    ngo_name: str = Field(alias="ngoName")
    registration_number: str = Field(alias="registrationNumber")
    contact_person: str = Field(alias="contactPerson")
    designation: str
    phone: str
    email: str
    address: str
    service_areas: str = Field(alias="serviceAreas")
    description: str
    website: str = ""
    user_id: str = Field(alias="userId")
    status: ModerationStatus
    submitted_at: int = Field(default=0, alias="submittedAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


# ---------------------------------------------------------------------------
# Form payloads. Presence checks happen in the services so that the user
# gets the same messages for JSON and form posts.
# ---------------------------------------------------------------------------


class SignUpData(BaseModel):
    role: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = Field(default=None, alias="confirmPassword")

    model_config = ConfigDict(populate_by_name=True)


class LoginData(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class FederatedLogin(BaseModel):
    """Either a signed assertion from the broker or the popup's error code."""

    assertion: Optional[str] = None
    error: Optional[str] = None


class RoleSelection(BaseModel):
    role: Optional[str] = None


class ItemCreate(BaseModel):
    name: Optional[str] = Field(default=None, alias="itemName")
    type: Optional[str] = Field(default=None, alias="itemType")
    size: Optional[str] = None
    gender: Optional[str] = None
    condition: Optional[str] = None
    original_price: Optional[float] = Field(default=None, alias="originalPrice")
    description: Optional[str] = None
    free_for_ngo: bool = Field(default=False, alias="freeNgo")
    images: List[str] = []

    model_config = ConfigDict(populate_by_name=True)


class NGORequestCreate(BaseModel):
    ngo_name: Optional[str] = Field(default=None, alias="ngoName")
    registration_number: Optional[str] = Field(default=None, alias="registrationNumber")
    contact_person: Optional[str] = Field(default=None, alias="contactPerson")
    designation: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    service_areas: Optional[str] = Field(default=None, alias="serviceAreas")
    description: Optional[str] = None
    website: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Derived views
# ---------------------------------------------------------------------------


class CartTotals(BaseModel):
    items_total: int = Field(alias="itemsTotal")
    platform_fee: int = Field(alias="platformFee")
    delivery_fee: int = Field(alias="deliveryFee")
    final_total: int = Field(alias="finalTotal")

    model_config = ConfigDict(populate_by_name=True)


class DonorStats(BaseModel):
    total_items: int = Field(alias="totalItems")
    approved_items: int = Field(alias="approvedItems")
    free_items: int = Field(alias="freeItems")
    total_earnings: int = Field(alias="totalEarnings")

    model_config = ConfigDict(populate_by_name=True)


class Activity(BaseModel):
    """One line of the admin activity feed."""

    kind: Literal["item", "ngo_request"]
    text: str
    at: int
    ref_id: str = Field(alias="refId")

    model_config = ConfigDict(populate_by_name=True)


class AdminOverview(BaseModel):
    total_items: int = Field(alias="totalItems")
    pending_items: int = Field(alias="pendingItems")
    total_users: int = Field(alias="totalUsers")
    active_ngos: int = Field(alias="activeNGOs")
    pending_ngos: int = Field(alias="pendingNGOs")

    model_config = ConfigDict(populate_by_name=True)


def from_document(schema, document):
    """
    Build a read model from a stored document. Attributes are read one by
    one so that a document expired by a later commit is reloaded first.
    """
    fields = type(document).model_fields
    return schema.model_validate({name: getattr(document, name) for name in fields})
