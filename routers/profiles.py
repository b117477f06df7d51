# routers/profiles.py
from typing import List, Optional

import structlog
from fastapi import APIRouter, HTTPException, Response
from sqlalchemy import delete, or_
from sqlmodel import Session, func, select

from db import SessionDep
from geo import Coordinates, coordinates_of, nearby
from models import (
    Donation,
    DonationInterest,
    DonationStatus,
    Message,
    NgoRequest,
    Notification,
    Profile,
    Role,
    VerificationStatus,
    utcnow,
)
from schemas import NearbyNgo, ProfileRead, ProfileStats, ProfileUpdate
from .auth import SESSION_COOKIE, ActorDep

router = APIRouter(tags=["profiles"])
logger = structlog.get_logger()


def nearby_verified_ngos(session: Session, origin: Optional[Coordinates]) -> List[NearbyNgo]:
    """Verified NGOs within the radius of ``origin``, nearest first."""
    ngos = session.exec(
        select(Profile)
        .where(
            Profile.role == Role.NGO,
            Profile.verification_status == VerificationStatus.VERIFIED,
        )
        .order_by(Profile.id)
    ).all()
    return [
        NearbyNgo(
            id=ngo.id,
            organization_name=ngo.organization_name,
            full_name=ngo.full_name,
            location=ngo.location,
            latitude=ngo.latitude,
            longitude=ngo.longitude,
            distance_km=distance,
        )
        for ngo, distance in nearby(origin, ngos)
    ]


def purge_profile(session: Session, profile: Profile) -> None:
    """
    Delete a profile and everything hanging off it. Does not commit.
    Refuses while one of the profile's donations is mid-pickup.
    """
    donation_ids = session.exec(
        select(Donation.id).where(Donation.donor_id == profile.id)
    ).all()

    pending = session.exec(
        select(Donation.id).where(
            Donation.donor_id == profile.id,
            Donation.status == DonationStatus.PENDING,
        )
    ).first()
    if pending is not None:
        raise HTTPException(
            status_code=400,
            detail="Cannot delete an account with donations awaiting pickup.",
        )
    # an NGO that was assigned items stays on record as their collector
    assigned = session.exec(select(Donation.id).where(Donation.ngo_id == profile.id)).first()
    if assigned is not None:
        raise HTTPException(
            status_code=400,
            detail="Cannot delete an NGO account that has been assigned donations.",
        )

    # 1) Interests made by this profile, or on its donations
    session.exec(
        delete(DonationInterest).where(
            or_(
                DonationInterest.ngo_id == profile.id,
                DonationInterest.donation_id.in_(donation_ids),
            )
        )
    )
    # 2) Broadcasts, and the links donations hold to them
    request_ids = session.exec(
        select(NgoRequest.id).where(NgoRequest.ngo_id == profile.id)
    ).all()
    for donation in session.exec(
        select(Donation).where(Donation.related_request_id.in_(request_ids))
    ).all():
        donation.related_request_id = None
        session.add(donation)
    session.flush()
    session.exec(delete(NgoRequest).where(NgoRequest.ngo_id == profile.id))
    # 3) The donor's own items, messages and notifications
    session.exec(delete(Donation).where(Donation.donor_id == profile.id))
    session.exec(
        delete(Message).where(
            or_(Message.sender_id == profile.id, Message.receiver_id == profile.id)
        )
    )
    session.exec(delete(Notification).where(Notification.user_id == profile.id))
    # 4) Finally, the profile itself
    session.delete(profile)


@router.get("/nearby-ngos", response_model=List[NearbyNgo])
def list_nearby_ngos(session: SessionDep, actor: ActorDep):
    """
    Verified NGOs within 25 km of the caller, nearest first.
    """
    return nearby_verified_ngos(session, coordinates_of(actor.profile))


@router.get("/{profile_id}", response_model=ProfileRead)
def get_profile(profile_id: int, session: SessionDep, actor: ActorDep):
    """
    Get a single profile by ID.
    """
    profile = session.get(Profile, profile_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.get("/{profile_id}/stats", response_model=ProfileStats)
def get_profile_stats(profile_id: int, session: SessionDep, actor: ActorDep):
    """
    Impact numbers shown on a profile page. Items are the donations a donor
    listed, or the donations assigned to an NGO.
    """
    profile = session.get(Profile, profile_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")

    owner = Donation.ngo_id if profile.role == Role.NGO else Donation.donor_id
    total_items = session.exec(
        select(func.count()).select_from(Donation).where(owner == profile_id)
    ).one()
    messages_count = session.exec(
        select(func.count())
        .select_from(Message)
        .where(or_(Message.sender_id == profile_id, Message.receiver_id == profile_id))
    ).one()

    return ProfileStats(
        profile_id=profile_id,
        role=profile.role,
        total_items=total_items,
        messages_count=messages_count,
        impact_points=total_items * 10,
        pledges_received=total_items if profile.role == Role.NGO else None,
    )


@router.patch("/me", response_model=ProfileRead)
def update_own_profile(changes: ProfileUpdate, session: SessionDep, actor: ActorDep):
    profile = actor.profile
    data = changes.model_dump(exclude_unset=True)
    if "full_name" in data and not (data["full_name"] or "").strip():
        raise HTTPException(status_code=400, detail="Full name cannot be empty")
    if profile.role != Role.NGO:
        data.pop("organization_name", None)

    for field, value in data.items():
        setattr(profile, field, value)
    profile.updated_at = utcnow()
    session.add(profile)
    session.commit()
    session.refresh(profile)
    logger.info("profile.updated", profile_id=profile.id, fields=sorted(data))
    return profile


@router.delete("/me", status_code=204)
def delete_own_account(
    session: SessionDep,
    actor: ActorDep,
):
    profile = actor.profile
    if profile.role == Role.ADMIN:
        raise HTTPException(status_code=400, detail="Admin accounts cannot be deleted")

    profile_id = profile.id
    purge_profile(session, profile)
    session.commit()
    logger.info("profile.deleted", profile_id=profile_id)

    response = Response(status_code=204)
    response.delete_cookie(SESSION_COOKIE)
    return response
