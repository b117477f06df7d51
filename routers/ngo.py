from collections import Counter

import structlog
from fastapi import APIRouter
from sqlmodel import func, select

import reporting
from db import SessionDep
from errors import InvalidTransitionError
from models import (
    Donation,
    DonationInterest,
    DonationStatus,
    NgoRequest,
    PaymentStatus,
    Role,
    VerificationStatus,
    utcnow,
)
from schemas import ProfileRead, VerificationSubmit
from .auth import ActorDep

router = APIRouter(tags=["ngo"])
logger = structlog.get_logger()

BENEFICIARIES_PER_ITEM = 3


@router.post("/verification", response_model=ProfileRead)
def submit_verification(payload: VerificationSubmit, session: SessionDep, actor: ActorDep):
    """
    Send organization details for admin review. Allowed for a fresh or a
    rejected application; the profile moves to PENDING.
    """
    actor.require_role(Role.NGO)
    profile = actor.profile
    current = profile.verification_status or VerificationStatus.UNVERIFIED
    if current not in (VerificationStatus.UNVERIFIED, VerificationStatus.REJECTED):
        raise InvalidTransitionError("verification", current.value, "resubmit")

    for field, value in payload.model_dump(exclude_none=True).items():
        setattr(profile, field, value)
    profile.verification_status = VerificationStatus.PENDING
    profile.updated_at = utcnow()
    session.add(profile)
    session.commit()
    session.refresh(profile)
    logger.info("ngo.verification_submitted", profile_id=profile.id)
    return profile


@router.post("/activate", response_model=ProfileRead)
def activate(session: SessionDep, actor: ActorDep):
    """
    Record the activation fee as paid. Only an APPROVED NGO can activate;
    no payment is processed here.
    """
    actor.require_role(Role.NGO)
    profile = actor.profile
    if profile.verification_status != VerificationStatus.APPROVED:
        current = profile.verification_status.value if profile.verification_status else "UNVERIFIED"
        raise InvalidTransitionError("verification", current, "activate")

    profile.verification_status = VerificationStatus.VERIFIED
    profile.payment_status = PaymentStatus.PAID
    profile.updated_at = utcnow()
    session.add(profile)
    session.commit()
    session.refresh(profile)
    logger.info("ngo.activated", profile_id=profile.id)
    return profile


@router.get("/dashboard")
def ngo_dashboard(session: SessionDep, actor: ActorDep):
    actor.require_role(Role.NGO)

    available = session.exec(
        select(func.count())
        .select_from(Donation)
        .where(Donation.status == DonationStatus.ACTIVE, Donation.ngo_id.is_(None))
    ).one()
    interests = session.exec(
        select(func.count()).select_from(DonationInterest).where(DonationInterest.ngo_id == actor.id)
    ).one()
    broadcasts = session.exec(
        select(func.count()).select_from(NgoRequest).where(NgoRequest.ngo_id == actor.id)
    ).one()
    impact = session.exec(
        select(func.count())
        .select_from(Donation)
        .where(Donation.ngo_id == actor.id, Donation.status == DonationStatus.COMPLETED)
    ).one()

    return {
        "available_donations": available,
        "active_requests": interests + broadcasts,
        "impact": impact,
        "verification_status": actor.profile.verification_status,
        "payment_status": actor.profile.payment_status,
    }


@router.get("/analytics")
def ngo_analytics(session: SessionDep, actor: ActorDep):
    """
    Claim and impact figures for an activated NGO. The claim trend counts
    requests per month over the last six months, oldest first.
    """
    actor.require_active_ngo()

    claims = session.exec(
        select(DonationInterest).where(DonationInterest.ngo_id == actor.id)
    ).all()
    completed = session.exec(
        select(Donation).where(
            Donation.ngo_id == actor.id,
            Donation.status == DonationStatus.COMPLETED,
        )
    ).all()

    total_claims = len(claims)
    total_completed = len(completed)
    completion_rate = round(total_completed / total_claims * 100) if total_claims else 0
    categories = Counter(d.category for d in completed)

    return {
        "total_claims": total_claims,
        "completed": total_completed,
        "lives_impacted": total_completed * BENEFICIARIES_PER_ITEM,
        "completion_rate": completion_rate,
        "unique_donors": len({d.donor_id for d in completed}),
        "categories": dict(categories.most_common()),
        "claim_trend": {
            "labels": reporting.month_labels(),
            "counts": reporting.monthly_counts(c.created_at for c in claims),
        },
    }
