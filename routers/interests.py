from fastapi import APIRouter, Response
from sqlmodel import select

import lifecycle
from db import SessionDep
from errors import NotFoundError, PermissionDeniedError
from models import Donation, DonationInterest, DonationStatus, InterestStatus, Role
from schemas import InterestCreate, InterestRead, Inventory, InventoryItem
from .auth import ActorDep

router = APIRouter(tags=["interests"])


@router.post("/", response_model=InterestRead, status_code=201)
def create_interest(interest_in: InterestCreate, session: SessionDep, actor: ActorDep):
    """
    Request an ACTIVE donation. The donor is notified; one request per NGO
    per donation.
    """
    return lifecycle.submit_interest(session, actor, interest_in.donation_id)


@router.get("/mine", response_model=Inventory)
def my_inventory(session: SessionDep, actor: ActorDep):
    """
    Everything this NGO has requested, newest first. A request whose donation
    is already COMPLETED is shown as COMPLETED.
    """
    actor.require_role(Role.NGO)
    rows = session.exec(
        select(DonationInterest, Donation)
        .join(Donation, Donation.id == DonationInterest.donation_id)
        .where(DonationInterest.ngo_id == actor.id)
        .order_by(DonationInterest.created_at.desc(), DonationInterest.id.desc())
    ).all()

    items = []
    for interest, donation in rows:
        shown = (
            InterestStatus.COMPLETED
            if donation.status == DonationStatus.COMPLETED
            else interest.status
        )
        items.append(
            InventoryItem(
                interest_id=interest.id,
                donation_id=donation.id,
                title=donation.title,
                category=donation.category,
                status=shown.value,
                donation_status=donation.status,
                created_at=interest.created_at,
            )
        )

    return Inventory(
        items=items,
        requests=sum(1 for i in items if i.status == InterestStatus.PENDING.value),
        in_transit=sum(1 for i in items if i.status == InterestStatus.ACCEPTED.value),
        collected=sum(1 for i in items if i.status == InterestStatus.COMPLETED.value),
    )


@router.get("/{interest_id}", response_model=InterestRead)
def get_interest(interest_id: int, session: SessionDep, actor: ActorDep):
    interest = session.get(DonationInterest, interest_id)
    if interest is None:
        raise NotFoundError("Interest", interest_id)
    donation = session.get(Donation, interest.donation_id)
    if actor.id not in (interest.ngo_id, donation.donor_id if donation else None):
        raise PermissionDeniedError("You can only view requests you are part of.")
    return interest


@router.delete("/{interest_id}", status_code=204)
def withdraw_interest(interest_id: int, session: SessionDep, actor: ActorDep):
    """Withdraw a request the donor has not decided on yet."""
    lifecycle.withdraw_interest(session, actor, interest_id)
    return Response(status_code=204)
