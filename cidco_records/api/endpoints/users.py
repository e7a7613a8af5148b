from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from cidco_records.api.deps import get_current_user, get_current_admin
from cidco_records.core.database import get_db
from cidco_records.core.exceptions import AuthorizationError
from cidco_records.models.user import User
from cidco_records.schemas.auth import UserCreate, UpdatePasswordRequest, ActionResponse
from cidco_records.services.user_service import UserService, USER_CREATED


router = APIRouter()


@router.post("/add", response_model=ActionResponse)
async def add_user(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db),
    current_admin: Optional[User] = Depends(get_current_admin)
):
    """Create an account (admin only)"""
    await UserService(db).add_user(user_data)
    return ActionResponse(success=True, message=USER_CREATED)


@router.post("/update-password", response_model=ActionResponse, response_model_exclude_none=True)
async def update_password(
    body: UpdatePasswordRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Optional[User] = Depends(get_current_user)
):
    """Change a password; users may change their own, admins anyone's"""
    if current_user is not None and current_user.id != body.userId and not current_user.is_admin:
        raise AuthorizationError("You can only change your own password")

    await UserService(db).update_password(body.userId, body.newPassword)
    return ActionResponse(success=True)
