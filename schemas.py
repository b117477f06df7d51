from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from models import (
    DonationStatus,
    InterestStatus,
    NotificationType,
    PaymentStatus,
    Role,
    VerificationStatus,
)


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    full_name: str = Field(min_length=1)
    role: Literal["DONOR", "NGO"] = "DONOR"
    organization_name: Optional[str] = None
    location: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)


class LoginData(BaseModel):
    email: EmailStr
    password: str


class ProfileRead(BaseModel):
    id: int
    email: EmailStr
    role: Role
    full_name: str
    organization_name: Optional[str] = None
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    verification_status: Optional[VerificationStatus] = None
    payment_status: Optional[PaymentStatus] = None

    model_config = ConfigDict(from_attributes=True)


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    organization_name: Optional[str] = None
    location: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)


class NearbyNgo(BaseModel):
    id: int
    organization_name: Optional[str] = None
    full_name: str
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    distance_km: Optional[float] = None


class DonationCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    category: str = Field(min_length=1)
    condition: str = ""
    image_urls: List[str] = []
    pickup_time: Optional[str] = None
    related_request_id: Optional[int] = None


class DonationUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    condition: Optional[str] = None
    image_urls: Optional[List[str]] = None
    pickup_time: Optional[str] = None


class DonationRead(BaseModel):
    id: int
    donor_id: int
    ngo_id: Optional[int] = None
    related_request_id: Optional[int] = None
    title: str
    description: str
    category: str
    condition: str
    status: DonationStatus
    location: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    image_urls: List[str] = []
    pickup_time: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MarketplaceItem(DonationRead):
    my_interest_status: Optional[InterestStatus] = None
    distance_km: Optional[float] = None


class InterestCreate(BaseModel):
    donation_id: int


class InterestRead(BaseModel):
    id: int
    donation_id: int
    ngo_id: int
    status: InterestStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InterestWithNgo(InterestRead):
    organization_name: Optional[str] = None
    full_name: str
    location: Optional[str] = None


class IncomingRequest(BaseModel):
    interest_id: int
    donation_id: int
    donation_title: str
    ngo_id: int
    ngo_name: str
    created_at: datetime


class ProfileStats(BaseModel):
    profile_id: int
    role: Role
    total_items: int
    messages_count: int
    impact_points: int
    pledges_received: Optional[int] = None


class InventoryItem(BaseModel):
    interest_id: int
    donation_id: int
    title: str
    category: str
    status: str
    donation_status: DonationStatus
    created_at: datetime


class Inventory(BaseModel):
    items: List[InventoryItem]
    requests: int
    in_transit: int
    collected: int


class VerificationSubmit(BaseModel):
    organization_name: str = Field(min_length=1)
    representative_name: str = Field(min_length=1)
    phone_number: str = Field(min_length=1)
    certificate_number: str = Field(min_length=1)
    certificate_url: Optional[str] = None
    location: Optional[str] = None


class BroadcastCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    category: str = "Other"
    urgency: Literal["Low", "Medium", "Critical"] = "Low"


class BroadcastUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


class BroadcastRead(BaseModel):
    id: int
    ngo_id: int
    title: str
    description: str
    category: str
    priority: str
    status: str
    created_at: datetime
    organization_name: Optional[str] = None
    distance_km: Optional[float] = None

    model_config = ConfigDict(from_attributes=True)


class MessageCreate(BaseModel):
    receiver_id: int
    content: str = Field(min_length=1)


class MessageRead(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    content: str
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Conversation(BaseModel):
    user_id: int
    name: str
    last_message: str
    last_message_at: datetime
    unread_count: int


class NotificationRead(BaseModel):
    id: int
    type: NotificationType
    title: str
    description: str
    link: Optional[str] = None
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
