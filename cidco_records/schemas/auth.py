from pydantic import BaseModel, Field, ConfigDict
from typing import Optional

from cidco_records.models.user import UserRole


class UserLogin(BaseModel):
    username: str = ""
    password: str = ""


class UserResponse(BaseModel):
    """Account as returned to clients - never carries the password hash"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: str


class LoginResponse(UserResponse):
    access_token: str
    token_type: str = "bearer"


class UserCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)
    email: Optional[str] = None
    name: Optional[str] = None
    role: Optional[UserRole] = None


class UpdatePasswordRequest(BaseModel):
    userId: int
    newPassword: str = Field(..., min_length=1)


class ForgotPasswordRequest(BaseModel):
    identifier: str = ""


class ResetPasswordRequest(BaseModel):
    token: str = ""
    password: str = Field(..., min_length=1)


class ActionResponse(BaseModel):
    success: bool
    message: Optional[str] = None
