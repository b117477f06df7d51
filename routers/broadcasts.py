from typing import List, Optional

import structlog
from fastapi import APIRouter, HTTPException, Response
from sqlmodel import Session, select

import notifications
from db import SessionDep
from geo import NEARBY_RADIUS_KM, Coordinates, coordinates_of, distance_between, nearby
from models import Donation, NgoRequest, Profile, Role
from schemas import BroadcastCreate, BroadcastRead, BroadcastUpdate
from .auth import ActorDep

router = APIRouter(tags=["broadcasts"])
logger = structlog.get_logger()

PRIORITY_BY_URGENCY = {"Critical": "High", "Medium": "Medium"}


def priority_for(urgency: str) -> str:
    return PRIORITY_BY_URGENCY.get(urgency, "Low")


def _to_read(request: NgoRequest, ngo: Optional[Profile], distance: Optional[float] = None) -> BroadcastRead:
    return BroadcastRead(
        id=request.id,
        ngo_id=request.ngo_id,
        title=request.title,
        description=request.description,
        category=request.category,
        priority=request.priority,
        status=request.status,
        created_at=request.created_at,
        organization_name=ngo.organization_name if ngo else None,
        distance_km=distance,
    )


def nearby_broadcasts(session: Session, origin: Optional[Coordinates]) -> List[BroadcastRead]:
    """Active broadcasts from NGOs within the radius of ``origin``, nearest first."""
    rows = session.exec(
        select(NgoRequest, Profile)
        .join(Profile, Profile.id == NgoRequest.ngo_id)
        .where(NgoRequest.status == "ACTIVE")
        .order_by(NgoRequest.created_at.desc(), NgoRequest.id.desc())
    ).all()
    candidates = [
        {"request": r, "ngo": p, "latitude": p.latitude, "longitude": p.longitude}
        for r, p in rows
    ]
    return [
        _to_read(c["request"], c["ngo"], distance)
        for c, distance in nearby(origin, candidates)
    ]


def _own_broadcast(session: Session, actor, request_id: int) -> NgoRequest:
    actor.require_role(Role.NGO)
    request = session.get(NgoRequest, request_id)
    if request is None:
        raise HTTPException(status_code=404, detail="Request not found")
    if request.ngo_id != actor.id:
        raise HTTPException(status_code=403, detail="You can only manage your own requests.")
    return request


@router.post("/", response_model=BroadcastRead, status_code=201)
def create_broadcast(broadcast_in: BroadcastCreate, session: SessionDep, actor: ActorDep):
    """
    Post a public appeal. Donors with a known location inside the radius of
    the NGO are notified in the same transaction.
    """
    actor.require_active_ngo()
    ngo = actor.profile

    request = NgoRequest(
        ngo_id=ngo.id,
        title=broadcast_in.title,
        description=broadcast_in.description,
        category=broadcast_in.category,
        priority=priority_for(broadcast_in.urgency),
        status="ACTIVE",
    )
    session.add(request)

    notified = 0
    origin = coordinates_of(ngo)
    if origin is not None:
        donors = session.exec(
            select(Profile).where(
                Profile.role == Role.DONOR,
                Profile.latitude.is_not(None),
                Profile.longitude.is_not(None),
            )
        ).all()
        for donor in donors:
            distance = distance_between(origin, donor)
            if distance is not None and distance <= NEARBY_RADIUS_KM:
                notifications.enqueue_broadcast_nearby(session, donor.id, ngo, broadcast_in.title)
                notified += 1

    session.commit()
    session.refresh(request)
    logger.info("broadcast.created", request_id=request.id, ngo_id=ngo.id, notified=notified)
    return _to_read(request, ngo)


@router.get("/mine", response_model=List[BroadcastRead])
def my_broadcasts(session: SessionDep, actor: ActorDep):
    actor.require_role(Role.NGO)
    requests = session.exec(
        select(NgoRequest)
        .where(NgoRequest.ngo_id == actor.id)
        .order_by(NgoRequest.created_at.desc(), NgoRequest.id.desc())
    ).all()
    return [_to_read(r, actor.profile) for r in requests]


@router.get("/nearby", response_model=List[BroadcastRead])
def list_nearby_broadcasts(session: SessionDep, actor: ActorDep):
    """
    Appeals within 25 km of the caller. Without a location on the caller's
    profile every appeal is listed.
    """
    return nearby_broadcasts(session, coordinates_of(actor.profile))


@router.patch("/{request_id}", response_model=BroadcastRead)
def update_broadcast(
    request_id: int,
    changes: BroadcastUpdate,
    session: SessionDep,
    actor: ActorDep,
):
    request = _own_broadcast(session, actor, request_id)
    data = changes.model_dump(exclude_unset=True)
    for field in ("title", "description"):
        if field in data:
            if not (data[field] or "").strip():
                raise HTTPException(status_code=400, detail=f"{field.capitalize()} cannot be empty")
            setattr(request, field, data[field])
    session.add(request)
    session.commit()
    session.refresh(request)
    return _to_read(request, actor.profile)


@router.delete("/{request_id}", status_code=204)
def delete_broadcast(request_id: int, session: SessionDep, actor: ActorDep):
    request = _own_broadcast(session, actor, request_id)

    # donations answering this appeal stay, without the link
    linked = session.exec(
        select(Donation).where(Donation.related_request_id == request_id)
    ).all()
    for donation in linked:
        donation.related_request_id = None
        session.add(donation)
    session.flush()

    session.delete(request)
    session.commit()
    logger.info("broadcast.deleted", request_id=request_id, ngo_id=actor.id)
    return Response(status_code=204)
