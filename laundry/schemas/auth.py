"""
Laundry Service — Auth / user Pydantic schemas
"""
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    role: str
    redirect_to: str


class RefreshRequest(BaseModel):
    refresh_token: str


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field(..., max_length=32)
    password: str = Field(..., min_length=6, max_length=128)
    address: str | None = Field(None, max_length=500)


class InvitationAcceptRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=6, max_length=128)
    new_password: str = Field(..., min_length=6, max_length=128)


class ProfileUpdateRequest(BaseModel):
    """Only the fields present in the request are changed."""
    name: str | None = Field(None, min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=32)
    address: str | None = Field(None, max_length=500)


class StaffCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: str | None = Field(None, max_length=32)
    password: str = Field(..., min_length=6, max_length=128)
    role: str = Field("staff", pattern=r"^(staff|admin)$")
    department: str | None = Field(None, max_length=64)
    permissions: list[str] = Field(default_factory=list)


class RoleUpdateRequest(BaseModel):
    role: str = Field(..., pattern=r"^(customer|staff|admin)$")
    department: str | None = Field(None, max_length=64)
    permissions: list[str] | None = None


class UserResponse(BaseModel):
    id: str
    name: str
    email: str | None
    phone: str | None
    address: str | None
    role: str
    is_active: bool
    department: str | None
    permissions: list[str]
    account_activated: bool
    registered_by: str
    created_at: datetime

    model_config = {"from_attributes": True}


class AccessCheckResponse(BaseModel):
    path: str
    requirement: str
    allowed: bool
    redirect_to: str | None = None
    reason: str | None = None
    message: str | None = None


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    dependencies: dict[str, str]
