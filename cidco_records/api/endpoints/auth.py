from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cidco_records.api.deps import get_email_service
from cidco_records.core.database import get_db
from cidco_records.core.logging_config import logger, set_user_id
from cidco_records.core.rate_limiter import limiter, LOGIN_LIMIT, PASSWORD_RESET_LIMIT
from cidco_records.core.security import create_access_token
from cidco_records.schemas.auth import (
    UserLogin,
    LoginResponse,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    ActionResponse,
)
from cidco_records.services.email_service import EmailService
from cidco_records.services.user_service import UserService


router = APIRouter()


@router.post("/login", response_model=LoginResponse)
@limiter.limit(LOGIN_LIMIT)
async def login(
    request: Request,
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    """Login user (rate limited: 5/min)"""
    user = await UserService(db).authenticate(credentials.username, credentials.password)
    set_user_id(str(user.id))

    access_token = create_access_token({
        "sub": str(user.id),
        "username": user.username,
        "role": user.role,
    })

    return LoginResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        name=user.name,
        role=user.role,
        access_token=access_token,
        token_type="bearer",
    )


@router.post("/forgot-password", response_model=ActionResponse)
@limiter.limit(PASSWORD_RESET_LIMIT)
async def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service)
):
    """
    Request a password reset link.

    Always answers the same way so that callers cannot probe which
    usernames or addresses exist.
    """
    client_ip = request.client.host if request.client else "unknown"
    logger.info(f"[Auth] Password reset requested from {client_ip}")

    message = await UserService(db).request_password_reset(body.identifier, email_service)
    return ActionResponse(success=True, message=message)


@router.post("/reset-password", response_model=ActionResponse)
async def reset_password(
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db)
):
    """Set a new password using the token from the reset email"""
    message = await UserService(db).reset_password(body.token, body.password)
    return ActionResponse(success=True, message=message)
