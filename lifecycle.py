"""
Donation lifecycle: ACTIVE -> PENDING -> COMPLETED, plus deletion.

Every transition runs in the caller's session and commits once. The writes
that decide a transition are conditional on the status they expect, so a
concurrent writer makes the second caller fail with ConflictError instead of
both "succeeding". Notifications are written to the outbox in the same
transaction.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

import structlog
from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

import notifications
from errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from models import (
    Donation,
    DonationInterest,
    DonationStatus,
    InterestStatus,
    NgoRequest,
    PaymentStatus,
    Profile,
    Role,
    VerificationStatus,
    utcnow,
)

logger = structlog.get_logger()

EDITABLE_FIELDS = ("title", "description", "category", "condition", "image_urls", "pickup_time")


@dataclass(frozen=True)
class Actor:
    """The authenticated caller. Capability checks live here, not in the views."""

    profile: Profile

    @property
    def id(self) -> int:
        return self.profile.id

    @property
    def role(self) -> Role:
        return self.profile.role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_active_ngo(self) -> bool:
        return (
            self.role == Role.NGO
            and self.profile.verification_status == VerificationStatus.VERIFIED
            and self.profile.payment_status == PaymentStatus.PAID
        )

    def require_role(self, role: Role) -> None:
        if self.role != role:
            raise PermissionDeniedError(f"Only {role.value} accounts can do this.")

    def require_active_ngo(self) -> None:
        self.require_role(Role.NGO)
        if not self.is_active_ngo:
            raise PermissionDeniedError(
                "NGO must be verified and activated before using this feature."
            )


def _commit(session: Session) -> None:
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise ConflictError("The change conflicts with existing data.") from exc
    except Exception:
        session.rollback()
        raise


def _abort(session: Session, exc: Exception) -> None:
    session.rollback()
    raise exc


def get_donation(session: Session, donation_id: int) -> Donation:
    donation = session.get(Donation, donation_id)
    if donation is None:
        raise NotFoundError("Donation", donation_id)
    return donation


def _owned_donation(session: Session, actor: Actor, donation_id: int) -> Donation:
    actor.require_role(Role.DONOR)
    donation = get_donation(session, donation_id)
    if donation.donor_id != actor.id:
        raise PermissionDeniedError("You can only manage your own donations.")
    return donation


def create_donation(session: Session, actor: Actor, data: Dict[str, Any]) -> Donation:
    """
    List a new item. Location and coordinates come from the donor's profile;
    ``related_request_id`` links the item to the broadcast it answers.
    """
    actor.require_role(Role.DONOR)

    if not (data.get("title") or "").strip() or not (data.get("category") or "").strip():
        raise ValidationFailedError("Title and category are required.")

    related_request_id = data.get("related_request_id")
    if related_request_id is not None and session.get(NgoRequest, related_request_id) is None:
        raise NotFoundError("NGO request", related_request_id)

    profile = actor.profile
    donation = Donation(
        donor_id=actor.id,
        title=data["title"].strip(),
        description=data.get("description") or "",
        category=data["category"].strip(),
        condition=data.get("condition") or "",
        image_urls=list(data.get("image_urls") or []),
        pickup_time=data.get("pickup_time"),
        location=profile.location or "Not Specified",
        latitude=profile.latitude,
        longitude=profile.longitude,
        related_request_id=related_request_id,
        status=DonationStatus.ACTIVE,
    )
    session.add(donation)
    _commit(session)
    session.refresh(donation)
    logger.info("donation.created", donation_id=donation.id, donor_id=actor.id)
    return donation


def edit_donation(session: Session, actor: Actor, donation_id: int, changes: Dict[str, Any]) -> Donation:
    """ACTIVE -> ACTIVE. Only the owner, only while nobody has been accepted."""
    donation = _owned_donation(session, actor, donation_id)
    if donation.status != DonationStatus.ACTIVE:
        raise PermissionDeniedError(
            f"Donation can no longer be edited (status {donation.status.value})."
        )

    values = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS and v is not None}
    for field in ("title", "category"):
        if field in values and not str(values[field]).strip():
            raise ValidationFailedError(f"{field.capitalize()} cannot be empty.", field=field)
    if not values:
        return donation
    values["updated_at"] = utcnow()

    result = session.exec(
        update(Donation)
        .where(Donation.id == donation_id, Donation.status == DonationStatus.ACTIVE)
        .values(**values)
    )
    if result.rowcount != 1:
        _abort(session, PermissionDeniedError("Donation was assigned while you were editing it."))
    _commit(session)
    session.refresh(donation)
    logger.info("donation.edited", donation_id=donation_id, fields=sorted(values))
    return donation


def delete_donation(session: Session, actor: Actor, donation_id: int) -> None:
    """-> DELETED. Refused once the donation is PENDING or COMPLETED."""
    donation = _owned_donation(session, actor, donation_id)
    if donation.status in (DonationStatus.PENDING, DonationStatus.COMPLETED):
        raise InvalidTransitionError("donation", donation.status.value, "delete")

    session.exec(delete(DonationInterest).where(DonationInterest.donation_id == donation_id))
    result = session.exec(
        delete(Donation).where(
            Donation.id == donation_id,
            Donation.status.notin_([DonationStatus.PENDING, DonationStatus.COMPLETED]),
        )
    )
    if result.rowcount != 1:
        _abort(session, ConflictError("Donation was assigned before it could be deleted."))
    _commit(session)
    logger.info("donation.deleted", donation_id=donation_id, donor_id=actor.id)


def submit_interest(session: Session, actor: Actor, donation_id: int) -> DonationInterest:
    """Record an NGO's claim on an ACTIVE, unassigned donation and tell the donor."""
    actor.require_active_ngo()
    donation = get_donation(session, donation_id)
    if donation.status != DonationStatus.ACTIVE or donation.ngo_id is not None:
        raise InvalidTransitionError("donation", donation.status.value, "request")

    existing = session.exec(
        select(DonationInterest).where(
            DonationInterest.donation_id == donation_id,
            DonationInterest.ngo_id == actor.id,
        )
    ).first()
    if existing is not None:
        raise ConflictError("You have already requested this donation.")

    interest = DonationInterest(
        donation_id=donation_id,
        ngo_id=actor.id,
        status=InterestStatus.PENDING,
    )
    session.add(interest)
    notifications.enqueue_interest_received(session, donation, actor.profile)
    _commit(session)
    session.refresh(interest)
    logger.info("interest.submitted", interest_id=interest.id, donation_id=donation_id, ngo_id=actor.id)
    return interest


def withdraw_interest(session: Session, actor: Actor, interest_id: int) -> None:
    actor.require_role(Role.NGO)
    interest = session.get(DonationInterest, interest_id)
    if interest is None:
        raise NotFoundError("Interest", interest_id)
    if interest.ngo_id != actor.id:
        raise PermissionDeniedError("You can only withdraw your own requests.")
    if interest.status != InterestStatus.PENDING:
        raise InvalidTransitionError("request", interest.status.value, "withdraw")

    result = session.exec(
        delete(DonationInterest).where(
            DonationInterest.id == interest_id,
            DonationInterest.status == InterestStatus.PENDING,
        )
    )
    if result.rowcount != 1:
        _abort(session, ConflictError("Request was decided before it could be withdrawn."))
    _commit(session)
    logger.info("interest.withdrawn", interest_id=interest_id, ngo_id=actor.id)


def pending_interests(session: Session, actor: Actor, donation_id: int) -> List[Tuple[DonationInterest, Profile]]:
    """PENDING interests on the actor's donation with the requesting NGO's profile."""
    donation = _owned_donation(session, actor, donation_id)
    if donation.status != DonationStatus.ACTIVE:
        return []
    rows = session.exec(
        select(DonationInterest, Profile)
        .join(Profile, Profile.id == DonationInterest.ngo_id)
        .where(
            DonationInterest.donation_id == donation_id,
            DonationInterest.status == InterestStatus.PENDING,
        )
        .order_by(DonationInterest.created_at, DonationInterest.id)
    ).all()
    return list(rows)


def incoming_requests(
    session: Session, actor: Actor
) -> List[Tuple[DonationInterest, Donation, Profile]]:
    """Every PENDING interest across the donor's items, newest first."""
    actor.require_role(Role.DONOR)
    rows = session.exec(
        select(DonationInterest, Donation, Profile)
        .join(Donation, Donation.id == DonationInterest.donation_id)
        .join(Profile, Profile.id == DonationInterest.ngo_id)
        .where(
            Donation.donor_id == actor.id,
            DonationInterest.status == InterestStatus.PENDING,
        )
        .order_by(DonationInterest.created_at.desc(), DonationInterest.id.desc())
    ).all()
    return list(rows)


def accept_interest(session: Session, actor: Actor, donation_id: int, interest_id: int) -> Donation:
    """
    Arbitration: ACTIVE -> PENDING.

    The chosen interest becomes ACCEPTED, every other PENDING interest on the
    donation becomes REJECTED, and the accepted NGO is notified, all in one
    transaction.
    """
    donation = _owned_donation(session, actor, donation_id)

    interest = session.get(DonationInterest, interest_id)
    if interest is None or interest.donation_id != donation_id:
        raise NotFoundError("Interest", interest_id)
    if donation.status != DonationStatus.ACTIVE:
        raise InvalidTransitionError("donation", donation.status.value, "accept a request for")
    if interest.status != InterestStatus.PENDING:
        raise InvalidTransitionError("request", interest.status.value, "accept")

    ngo_id = interest.ngo_id
    claimed = session.exec(
        update(Donation)
        .where(Donation.id == donation_id, Donation.status == DonationStatus.ACTIVE)
        .values(status=DonationStatus.PENDING, ngo_id=ngo_id, updated_at=utcnow())
    )
    if claimed.rowcount != 1:
        _abort(session, ConflictError("Another request was accepted for this donation."))

    accepted = session.exec(
        update(DonationInterest)
        .where(
            DonationInterest.id == interest_id,
            DonationInterest.status == InterestStatus.PENDING,
        )
        .values(status=InterestStatus.ACCEPTED)
    )
    if accepted.rowcount != 1:
        _abort(session, ConflictError("The request was withdrawn before it could be accepted."))

    rejected = session.exec(
        update(DonationInterest)
        .where(
            DonationInterest.donation_id == donation_id,
            DonationInterest.id != interest_id,
            DonationInterest.status == InterestStatus.PENDING,
        )
        .values(status=InterestStatus.REJECTED)
    )

    notifications.enqueue_interest_accepted(session, donation, ngo_id)
    _commit(session)
    session.refresh(donation)
    logger.info(
        "interest.accepted",
        donation_id=donation_id,
        interest_id=interest_id,
        ngo_id=ngo_id,
        rejected=rejected.rowcount,
    )
    return donation


def complete_pickup(session: Session, actor: Actor, donation_id: int) -> Donation:
    """PENDING -> COMPLETED, performed by the assigned NGO; the donor is notified."""
    actor.require_active_ngo()
    donation = get_donation(session, donation_id)
    if donation.ngo_id != actor.id:
        raise PermissionDeniedError("Only the assigned NGO can complete this pickup.")
    if donation.status != DonationStatus.PENDING:
        raise InvalidTransitionError("donation", donation.status.value, "complete")

    result = session.exec(
        update(Donation)
        .where(
            Donation.id == donation_id,
            Donation.status == DonationStatus.PENDING,
            Donation.ngo_id == actor.id,
        )
        .values(status=DonationStatus.COMPLETED, updated_at=utcnow())
    )
    if result.rowcount != 1:
        _abort(session, ConflictError("Donation changed before the pickup could be completed."))

    session.exec(
        update(DonationInterest)
        .where(
            DonationInterest.donation_id == donation_id,
            DonationInterest.ngo_id == actor.id,
        )
        .values(status=InterestStatus.COMPLETED)
    )
    notifications.enqueue_donation_completed(session, donation, actor.profile)
    _commit(session)
    session.refresh(donation)
    logger.info("donation.completed", donation_id=donation_id, ngo_id=actor.id)
    return donation


def interest_status_for(session: Session, ngo_id: int, donation_ids: List[int]) -> Dict[int, InterestStatus]:
    if not donation_ids:
        return {}
    rows = session.exec(
        select(DonationInterest).where(
            DonationInterest.ngo_id == ngo_id,
            DonationInterest.donation_id.in_(donation_ids),
        )
    ).all()
    return {row.donation_id: row.status for row in rows}


def claim_status(session: Session, ngo_id: int, donation: Donation) -> str:
    """How a donation looks from one NGO's side: NONE, PENDING, ACCEPTED or REJECTED."""
    interest = session.exec(
        select(DonationInterest).where(
            DonationInterest.donation_id == donation.id,
            DonationInterest.ngo_id == ngo_id,
        )
    ).first()
    if interest is not None:
        if interest.status in (InterestStatus.ACCEPTED, InterestStatus.COMPLETED):
            return "ACCEPTED"
        return interest.status.value
    if donation.ngo_id == ngo_id and donation.status != DonationStatus.ACTIVE:
        return "ACCEPTED"
    return "NONE"
