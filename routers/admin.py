from typing import List, Literal, Optional

import structlog
from fastapi import APIRouter, HTTPException, Response
from sqlalchemy import case
from sqlmodel import func, select

import notifications
import reporting
from db import SessionDep
from errors import InvalidTransitionError, NotFoundError
from models import (
    Donation,
    DonationStatus,
    PaymentStatus,
    Profile,
    Role,
    VerificationStatus,
    utcnow,
)
from schemas import DonationRead, ProfileRead
from .auth import AdminDep
from .profiles import purge_profile

router = APIRouter(tags=["admin"])
logger = structlog.get_logger()

ACTIVATION_FEE = 499


def _get_ngo(session, ngo_id: int) -> Profile:
    ngo = session.get(Profile, ngo_id)
    if ngo is None or ngo.role != Role.NGO:
        raise NotFoundError("NGO", ngo_id)
    return ngo


def _decide(session, ngo_id: int, approve: bool) -> Profile:
    ngo = _get_ngo(session, ngo_id)
    if ngo.verification_status != VerificationStatus.PENDING:
        current = ngo.verification_status.value if ngo.verification_status else "UNVERIFIED"
        raise InvalidTransitionError("verification", current, "approve" if approve else "reject")

    if approve:
        ngo.verification_status = VerificationStatus.APPROVED
        notifications.enqueue_ngo_approved(session, ngo.id)
    else:
        ngo.verification_status = VerificationStatus.REJECTED
        notifications.enqueue_ngo_rejected(session, ngo.id)
    ngo.updated_at = utcnow()
    session.add(ngo)
    session.commit()
    session.refresh(ngo)
    return ngo


@router.get("/ngos", response_model=List[ProfileRead])
def list_ngos(session: SessionDep, admin: AdminDep):
    """All NGOs, those awaiting review first, then newest first."""
    pending_first = case((Profile.verification_status == VerificationStatus.PENDING, 0), else_=1)
    return session.exec(
        select(Profile)
        .where(Profile.role == Role.NGO)
        .order_by(pending_first, Profile.created_at.desc(), Profile.id.desc())
    ).all()


@router.get("/verifications")
def pending_verifications(session: SessionDep, admin: AdminDep):
    ngos = session.exec(
        select(Profile)
        .where(
            Profile.role == Role.NGO,
            Profile.verification_status == VerificationStatus.PENDING,
        )
        .order_by(Profile.updated_at, Profile.id)
    ).all()
    return [
        {
            **ProfileRead.model_validate(ngo).model_dump(),
            "representative_name": ngo.representative_name,
            "phone_number": ngo.phone_number,
            "certificate_number": ngo.certificate_number,
            "certificate_url": ngo.certificate_url,
            "created_at": ngo.created_at,
        }
        for ngo in ngos
    ]


@router.post("/ngos/{ngo_id}/approve", response_model=ProfileRead)
def approve_ngo(ngo_id: int, session: SessionDep, admin: AdminDep):
    ngo = _decide(session, ngo_id, approve=True)
    logger.info("admin.ngo_approved", ngo_id=ngo_id, admin_id=admin.id)
    return ngo


@router.post("/ngos/{ngo_id}/reject", response_model=ProfileRead)
def reject_ngo(ngo_id: int, session: SessionDep, admin: AdminDep):
    ngo = _decide(session, ngo_id, approve=False)
    logger.info("admin.ngo_rejected", ngo_id=ngo_id, admin_id=admin.id)
    return ngo


@router.get("/revenue")
def revenue(session: SessionDep, admin: AdminDep):
    """
    Activation revenue. Pending payments are approved NGOs that have not
    activated yet; the history is the running count of paid NGOs by the
    month they joined.
    """
    ngos = session.exec(select(Profile).where(Profile.role == Role.NGO)).all()
    paid = [n for n in ngos if n.payment_status == PaymentStatus.PAID]
    pending_payments = sum(
        1
        for n in ngos
        if n.verification_status == VerificationStatus.APPROVED
        and n.payment_status != PaymentStatus.PAID
    )
    total_users = session.exec(
        select(func.count()).select_from(Profile).where(Profile.role != Role.ADMIN)
    ).one()

    return {
        "total_revenue": len(paid) * ACTIVATION_FEE,
        "active_subscribers": len(paid),
        "pending_payments": pending_payments,
        "pending_revenue": pending_payments * ACTIVATION_FEE,
        "total_users": total_users,
        "growth_rate": round(len(paid) / len(ngos) * 100) if ngos else 0,
        "history": {
            "labels": reporting.month_labels(),
            "subscribers": reporting.cumulative(
                reporting.monthly_counts(n.created_at for n in paid), len(paid)
            ),
        },
    }


@router.get("/donations", response_model=List[DonationRead])
def all_donations(
    session: SessionDep,
    admin: AdminDep,
    view: Optional[Literal["active", "completed"]] = None,
):
    """Every donation, newest first. ``active`` covers ACTIVE and PENDING."""
    query = select(Donation)
    if view == "active":
        query = query.where(Donation.status.in_([DonationStatus.ACTIVE, DonationStatus.PENDING]))
    elif view == "completed":
        query = query.where(Donation.status == DonationStatus.COMPLETED)
    return session.exec(query.order_by(Donation.created_at.desc(), Donation.id.desc())).all()


@router.delete("/donors/{donor_id}", status_code=204)
def remove_donor(donor_id: int, session: SessionDep, admin: AdminDep):
    donor = session.get(Profile, donor_id)
    if donor is None:
        raise NotFoundError("Donor", donor_id)
    if donor.role != Role.DONOR:
        raise HTTPException(status_code=400, detail="Only donor accounts can be removed here")

    purge_profile(session, donor)
    session.commit()
    logger.info("admin.donor_removed", donor_id=donor_id, admin_id=admin.id)
    return Response(status_code=204)
