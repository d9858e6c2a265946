# app/core/auth.py
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlmodel import Session

from app.core.config import get_settings
from app.database import get_session
from app.models.user import User
from app.repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)

settings = get_settings()
user_repo = UserRepository()

# auto_error=False => a missing Authorization header is answered with our
# own 401 from require_auth instead of FastAPI's 403.
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class PortalIdentity:
    """The claims we rely on from a Supabase access token."""

    user_id: uuid.UUID
    email: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def contact_name(self) -> str:
        name = (self.metadata.get("contact_name") or "").strip()
        return name or self.email.split("@", 1)[0]

    @property
    def company_name(self) -> str | None:
        return (self.metadata.get("company_name") or "").strip() or None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a Supabase access token (JWT).

    Verification:
      - signature (HS256 using SUPABASE_JWT_SECRET)
      - expiration time (exp)
      - audience is NOT verified (Supabase 'aud' may vary)

    Raises:
        HTTPException(401): if token is invalid/expired.
    """
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.SUPABASE_JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise _unauthorized("Invalid or expired token")


def identity_from_claims(claims: dict[str, Any]) -> PortalIdentity:
    sub = claims.get("sub")
    email = claims.get("email")
    if not sub or not email:
        raise _unauthorized("Token missing sub/email")

    try:
        user_id = uuid.UUID(sub)
    except ValueError:
        raise _unauthorized("Invalid sub in token")

    return PortalIdentity(
        user_id=user_id,
        email=email,
        metadata=claims.get("user_metadata") or {},
    )


def _provision_customer(session: Session, identity: PortalIdentity) -> User:
    """
    First request after sign-up: mirror the Supabase account as an
    unapproved customer. Staff accounts are promoted manually.
    """
    logger.info("Provisioning customer profile for %s", identity.email)
    return user_repo.create(
        session,
        User(
            id=identity.user_id,
            email=identity.email,
            name=identity.contact_name,
            company_name=identity.company_name,
            role="user",
            approved=False,
        ),
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User | None:
    """
    Resolve the caller from a Supabase JWT, or None when no token is sent.
    """
    if credentials is None:
        return None

    identity = identity_from_claims(decode_access_token(credentials.credentials))
    user = user_repo.get_by_id(session, identity.user_id)
    if user is None:
        user = _provision_customer(session, identity)
    return user


def require_auth(user: User | None = Depends(get_current_user)) -> User:
    if user is None:
        raise _unauthorized("Authentication required")
    return user


def require_admin(user: User = Depends(require_auth)) -> User:
    """
    Enforce staff role (pricing, scheduling, status changes).

    Raises:
        HTTPException(403): if role is not admin.
    """
    if user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


def require_user(user: User = Depends(require_auth)) -> User:
    """
    Enforce an approved customer (role='user').

    Use this for:
      - cart endpoints
      - order submission and "my orders"
    Staff are rejected with 403, and so are customers whose account
    is still waiting for approval.
    """
    if user.role != "user":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Customer access required",
        )
    if not user.approved:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account pending approval",
        )
    return user
