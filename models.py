from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    DONOR = "DONOR"
    NGO = "NGO"
    ADMIN = "ADMIN"


class VerificationStatus(str, Enum):
    UNVERIFIED = "UNVERIFIED"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    VERIFIED = "VERIFIED"


class PaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"


class DonationStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class InterestStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"


class NotificationType(str, Enum):
    DONATION = "donation"
    REQUEST = "request"
    MESSAGE = "message"


class Profile(SQLModel, table=True):
    __tablename__ = "profiles"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    role: Role = Role.DONOR

    full_name: str = ""
    organization_name: Optional[str] = None
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    # NGO only
    verification_status: Optional[VerificationStatus] = None
    payment_status: Optional[PaymentStatus] = None
    representative_name: Optional[str] = None
    phone_number: Optional[str] = None
    certificate_number: Optional[str] = None
    certificate_url: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def display_name(self) -> str:
        return self.organization_name or self.full_name


class NgoRequest(SQLModel, table=True):
    __tablename__ = "ngo_requests"

    id: Optional[int] = Field(default=None, primary_key=True)
    ngo_id: int = Field(foreign_key="profiles.id", index=True)

    title: str
    description: str
    category: str
    priority: str = "Low"  # High | Medium | Low
    status: str = "ACTIVE"
    created_at: datetime = Field(default_factory=utcnow)


class Donation(SQLModel, table=True):
    __tablename__ = "donations"

    id: Optional[int] = Field(default=None, primary_key=True)
    donor_id: int = Field(foreign_key="profiles.id", index=True)
    ngo_id: Optional[int] = Field(default=None, foreign_key="profiles.id", index=True)
    related_request_id: Optional[int] = Field(default=None, foreign_key="ngo_requests.id")

    title: str
    description: str = ""
    category: str
    condition: str = ""
    status: DonationStatus = Field(default=DonationStatus.ACTIVE, index=True)
    location: str = "Not Specified"
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    image_urls: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    pickup_time: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class DonationInterest(SQLModel, table=True):
    __tablename__ = "donation_interests"
    __table_args__ = (UniqueConstraint("donation_id", "ngo_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    donation_id: int = Field(foreign_key="donations.id", index=True)
    ngo_id: int = Field(foreign_key="profiles.id", index=True)

    status: InterestStatus = InterestStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)


class Message(SQLModel, table=True):
    __tablename__ = "messages"

    id: Optional[int] = Field(default=None, primary_key=True)
    sender_id: int = Field(foreign_key="profiles.id", index=True)
    receiver_id: int = Field(foreign_key="profiles.id", index=True)

    content: str
    is_read: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class Notification(SQLModel, table=True):
    __tablename__ = "notifications"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="profiles.id", index=True)

    type: NotificationType
    title: str
    description: str
    link: Optional[str] = None  # client-side route hint
    is_read: bool = False
    created_at: datetime = Field(default_factory=utcnow)

    # outbox: NULL until the delivery worker has handed it to the sink
    delivered_at: Optional[datetime] = Field(default=None, index=True)
