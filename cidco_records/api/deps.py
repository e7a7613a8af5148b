from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from cidco_records.core.config import settings
from cidco_records.core.database import get_db
from cidco_records.core.exceptions import AuthorizationError, InvalidTokenError
from cidco_records.core.logging_config import set_user_id
from cidco_records.core.security import decode_token
from cidco_records.models.user import User
from cidco_records.services.email_service import EmailService
from cidco_records.services.evidence_service import EvidenceService
from cidco_records.services.storage_service import StorageService

# auto_error=False so a missing header reaches us and AUTH_REQUIRED decides
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    """
    User behind the bearer token.

    With AUTH_REQUIRED off, requests without a token pass through as None;
    a token that is sent is still validated.
    """
    if credentials is None:
        if not settings.AUTH_REQUIRED:
            return None
        raise InvalidTokenError("Not authenticated")

    payload = decode_token(credentials.credentials)
    if payload.get("type") != "access":
        raise InvalidTokenError("Invalid token type")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise InvalidTokenError("Invalid token payload")

    user = await db.get(User, user_id)
    if user is None:
        raise InvalidTokenError("User not found")

    set_user_id(str(user.id))
    return user


async def get_current_admin(
    current_user: Optional[User] = Depends(get_current_user)
) -> Optional[User]:
    if current_user is None and not settings.AUTH_REQUIRED:
        return None
    if current_user is None or not current_user.is_admin:
        raise AuthorizationError("Admin access required")
    return current_user


def get_storage_service(request: Request) -> StorageService:
    storage = getattr(request.app.state, "storage_service", None)
    if storage is None:
        storage = StorageService()
        request.app.state.storage_service = storage
    return storage


def get_evidence_service(
    storage: StorageService = Depends(get_storage_service)
) -> EvidenceService:
    return EvidenceService(storage, expiration=settings.SIGNED_URL_EXPIRY)


def get_email_service(request: Request) -> EmailService:
    email = getattr(request.app.state, "email_service", None)
    if email is None:
        email = EmailService()
        request.app.state.email_service = email
    return email
