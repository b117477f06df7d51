import os
import secrets
from typing import Annotated, Optional

import structlog
from db import SessionDep
from fastapi import APIRouter, Cookie, Depends, HTTPException, Response
from fastapi.responses import JSONResponse
from itsdangerous import BadSignature, URLSafeTimedSerializer
from lifecycle import Actor
from models import PaymentStatus, Profile, Role, VerificationStatus
from passlib.context import CryptContext
from schemas import LoginData, ProfileRead, UserCreate
from sqlmodel import Session, select

router = APIRouter(tags=["auth"])
logger = structlog.get_logger()

SECRET_KEY = os.getenv("SESSION_SECRET") or secrets.token_hex(32)
serializer = URLSafeTimedSerializer(SECRET_KEY)

SESSION_COOKIE = "session"
SESSION_MAX_AGE = 60 * 60 * 8


pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_session_token(user_id: int, role: str) -> str:
    """
    Store user_id + role in the signed token.
    Example data:
        {"user_id": 3, "role": "DONOR"}
    """
    return serializer.dumps({"user_id": user_id, "role": role})


def verify_session_token(token: str, max_age_seconds: int = SESSION_MAX_AGE) -> Optional[dict]:
    """
    Returns dict {'user_id': ..., 'role': ...} if valid,
    or None if token is invalid/expired.
    """
    try:
        return serializer.loads(token, max_age=max_age_seconds)
    except BadSignature:
        return None


def _resolve_actor(session: Session, session_token: Optional[str]) -> Optional[Actor]:
    if session_token is None:
        return None
    data = verify_session_token(session_token)
    if not data:
        return None
    profile = session.get(Profile, data["user_id"])
    # a role change (or a deleted account) invalidates outstanding cookies
    if profile is None or profile.role.value != data["role"]:
        return None
    return Actor(profile=profile)


def get_current_actor(
    session: SessionDep,
    session_token: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE),
) -> Actor:
    """
    Reads the 'session' cookie, verifies the token and loads the profile.
    Raises 401 if not logged in / invalid.
    """
    if session_token is None:
        raise HTTPException(status_code=401, detail="Not logged in")
    actor = _resolve_actor(session, session_token)
    if actor is None:
        raise HTTPException(status_code=401, detail="Invalid or expired session")
    return actor


ActorDep = Annotated[Actor, Depends(get_current_actor)]


def require_admin(actor: ActorDep) -> Actor:
    if not actor.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return actor


AdminDep = Annotated[Actor, Depends(require_admin)]


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        httponly=True,
        secure=os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true",
        samesite="lax",
        max_age=SESSION_MAX_AGE,
    )


def ensure_admin(session: Session) -> Optional[Profile]:
    """Create the configured admin account if it does not exist yet."""
    email = os.getenv("ADMIN_EMAIL")
    password = os.getenv("ADMIN_PASSWORD")
    if not email or not password:
        return None

    existing = session.exec(select(Profile).where(Profile.email == email)).first()
    if existing is not None:
        return existing

    admin = Profile(
        email=email,
        password_hash=hash_password(password),
        role=Role.ADMIN,
        full_name="Administrator",
    )
    session.add(admin)
    session.commit()
    session.refresh(admin)
    logger.info("auth.admin_created", profile_id=admin.id)
    return admin


@router.post("/register", status_code=201)
def register(user_in: UserCreate, session: SessionDep):
    """
    Register a donor or NGO account and log it in.
    NGOs start UNVERIFIED and UNPAID.
    """
    if user_in.role == "NGO" and not (user_in.organization_name or "").strip():
        raise HTTPException(status_code=400, detail="Organization name is required for NGOs")

    existing = session.exec(
        select(Profile).where(Profile.email == user_in.email)
    ).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")

    role = Role(user_in.role)
    profile = Profile(
        email=user_in.email,
        password_hash=hash_password(user_in.password),
        role=role,
        full_name=user_in.full_name,
        organization_name=user_in.organization_name if role == Role.NGO else None,
        location=user_in.location,
        latitude=user_in.latitude,
        longitude=user_in.longitude,
    )
    if role == Role.NGO:
        profile.verification_status = VerificationStatus.UNVERIFIED
        profile.payment_status = PaymentStatus.UNPAID

    session.add(profile)
    session.commit()
    session.refresh(profile)

    if profile.id is None:
        raise HTTPException(
            status_code=500, detail="User was not created successfully"
        )
    logger.info("auth.registered", profile_id=profile.id, role=role.value)

    resp = JSONResponse(
        {"message": "Registration successful", "id": profile.id, "role": role.value},
        status_code=201,
    )
    _set_session_cookie(resp, create_session_token(profile.id, role.value))
    return resp


@router.post("/login")
def login(payload: LoginData, session: SessionDep):
    """Log in with email + password and set a signed cookie."""
    profile = session.exec(
        select(Profile).where(Profile.email == payload.email)
    ).first()

    if profile is None or not verify_password(payload.password, profile.password_hash):
        logger.info("auth.login_failed", email=payload.email)
        raise HTTPException(status_code=400, detail="Invalid email or password")

    resp = JSONResponse({"message": "Login successful", "role": profile.role.value})
    _set_session_cookie(resp, create_session_token(profile.id, profile.role.value))
    return resp


@router.post("/logout")
def logout():
    """Clear the session cookie."""
    response = JSONResponse({"message": "Logged out"})
    response.delete_cookie(SESSION_COOKIE)
    return response


@router.get("/me", response_model=ProfileRead)
def read_me(actor: ActorDep):
    """The logged-in profile, including NGO verification and payment state."""
    return actor.profile
