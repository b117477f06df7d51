from typing import List, Optional

from fastapi import APIRouter, Response
from sqlmodel import select

import lifecycle
from db import SessionDep
from geo import coordinates_of, nearby
from models import Donation, DonationStatus, Role
from schemas import (
    DonationCreate,
    DonationRead,
    DonationUpdate,
    IncomingRequest,
    InterestWithNgo,
    MarketplaceItem,
)
from .auth import ActorDep
from .broadcasts import nearby_broadcasts
from .profiles import nearby_verified_ngos

router = APIRouter(tags=["donations"])


@router.post("/", response_model=DonationRead, status_code=201)
def create_donation(donation_in: DonationCreate, session: SessionDep, actor: ActorDep):
    """
    List a new item. It starts ACTIVE, unassigned, at the donor's location.
    """
    return lifecycle.create_donation(session, actor, donation_in.model_dump())


@router.get("/mine", response_model=List[DonationRead])
def my_donations(
    session: SessionDep,
    actor: ActorDep,
    status: Optional[DonationStatus] = None,
):
    """
    The donor's own donations, newest first, optionally for one status tab.
    """
    actor.require_role(Role.DONOR)
    query = select(Donation).where(Donation.donor_id == actor.id)
    if status is not None:
        query = query.where(Donation.status == status)
    return session.exec(query.order_by(Donation.created_at.desc(), Donation.id.desc())).all()


@router.get("/marketplace", response_model=List[MarketplaceItem])
def marketplace(
    session: SessionDep,
    actor: ActorDep,
    category: Optional[str] = None,
    nearby_only: bool = False,
):
    """
    ACTIVE, unassigned donations for NGOs, newest first.
    With nearby_only, restricted to the 25 km radius around the NGO and
    ordered nearest first.
    """
    actor.require_role(Role.NGO)
    query = select(Donation).where(
        Donation.status == DonationStatus.ACTIVE,
        Donation.ngo_id.is_(None),
    )
    if category is not None and category != "All":
        query = query.where(Donation.category == category)
    donations = session.exec(query.order_by(Donation.created_at.desc(), Donation.id.desc())).all()

    if nearby_only:
        scored = nearby(coordinates_of(actor.profile), donations)
    else:
        scored = [(d, None) for d in donations]

    mine = lifecycle.interest_status_for(session, actor.id, [d.id for d, _ in scored])
    return [
        MarketplaceItem(
            **DonationRead.model_validate(d).model_dump(),
            my_interest_status=mine.get(d.id),
            distance_km=distance,
        )
        for d, distance in scored
    ]


@router.get("/dashboard")
def donor_dashboard(session: SessionDep, actor: ActorDep):
    """Donor landing data: impact stats, recent items, nearby NGOs and appeals."""
    actor.require_role(Role.DONOR)

    donations = session.exec(
        select(Donation)
        .where(Donation.donor_id == actor.id)
        .order_by(Donation.created_at.desc(), Donation.id.desc())
    ).all()
    active = sum(1 for d in donations if d.status in (DonationStatus.ACTIVE, DonationStatus.PENDING))
    completed = sum(1 for d in donations if d.status == DonationStatus.COMPLETED)
    connected_ngos = len({d.ngo_id for d in donations if d.ngo_id is not None})

    origin = coordinates_of(actor.profile)
    return {
        "stats": {
            "total": len(donations),
            "active": active,
            "completed": completed,
            "connected_ngos": connected_ngos,
        },
        "recent_donations": [DonationRead.model_validate(d) for d in donations[:5]],
        "nearby_ngos": nearby_verified_ngos(session, origin)[:3],
        "nearby_requests": nearby_broadcasts(session, origin)[:4],
    }


@router.get("/requests", response_model=List[IncomingRequest])
def incoming_requests(session: SessionDep, actor: ActorDep):
    """
    Pending NGO interest across all of the donor's items, newest first.
    """
    return [
        IncomingRequest(
            interest_id=interest.id,
            donation_id=donation.id,
            donation_title=donation.title,
            ngo_id=ngo.id,
            ngo_name=ngo.organization_name or ngo.full_name,
            created_at=interest.created_at,
        )
        for interest, donation, ngo in lifecycle.incoming_requests(session, actor)
    ]


@router.get("/{donation_id}", response_model=DonationRead)
def get_donation(donation_id: int, session: SessionDep, actor: ActorDep):
    """
    Get a single donation by ID.
    """
    return lifecycle.get_donation(session, donation_id)


@router.get("/{donation_id}/claim-status")
def claim_status(donation_id: int, session: SessionDep, actor: ActorDep):
    """Where the calling NGO stands on this donation."""
    actor.require_role(Role.NGO)
    donation = lifecycle.get_donation(session, donation_id)
    return {"donation_id": donation_id, "claim_status": lifecycle.claim_status(session, actor.id, donation)}


@router.patch("/{donation_id}", response_model=DonationRead)
def edit_donation(
    donation_id: int,
    changes: DonationUpdate,
    session: SessionDep,
    actor: ActorDep,
):
    """Only while ACTIVE; rejected once an NGO has been accepted."""
    return lifecycle.edit_donation(
        session, actor, donation_id, changes.model_dump(exclude_unset=True)
    )


@router.delete("/{donation_id}", status_code=204)
def delete_donation(donation_id: int, session: SessionDep, actor: ActorDep):
    lifecycle.delete_donation(session, actor, donation_id)
    return Response(status_code=204)


@router.get("/{donation_id}/interests", response_model=List[InterestWithNgo])
def list_pending_interests(donation_id: int, session: SessionDep, actor: ActorDep):
    """
    NGOs waiting on the donor's decision for this item.
    Empty once the donation has left ACTIVE.
    """
    rows = lifecycle.pending_interests(session, actor, donation_id)
    return [
        InterestWithNgo(
            id=interest.id,
            donation_id=interest.donation_id,
            ngo_id=interest.ngo_id,
            status=interest.status,
            created_at=interest.created_at,
            organization_name=ngo.organization_name,
            full_name=ngo.full_name,
            location=ngo.location,
        )
        for interest, ngo in rows
    ]


@router.post("/{donation_id}/interests/{interest_id}/accept", response_model=DonationRead)
def accept_interest(
    donation_id: int,
    interest_id: int,
    session: SessionDep,
    actor: ActorDep,
):
    return lifecycle.accept_interest(session, actor, donation_id, interest_id)


@router.post("/{donation_id}/complete", response_model=DonationRead)
def complete_pickup(donation_id: int, session: SessionDep, actor: ActorDep):
    return lifecycle.complete_pickup(session, actor, donation_id)

