"""Authentication routes.

Provides email/password authentication endpoints:
- POST /auth/register: Create account and receive credentials
- POST /auth/login: Verify password and receive credentials
- POST /auth/logout: Clear the credential cookie
- POST /auth/refresh: Exchange a renewal credential for a session credential
- GET/PATCH /auth/me: Read or update the current identity
- POST /auth/change-password: Replace the password hash
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, EmailStr, Field

from hhs.api.dependencies import get_auth_service, get_current_identity
from hhs.lib.settings import settings
from hhs.services.auth_service import AuthService, IssuedCredentials
from hhs.services.role_guard import AuthorizedIdentity


router = APIRouter(prefix="/auth", tags=["Authentication"])


# Request/Response Models
class RegisterRequest(BaseModel):
    email: EmailStr = Field(..., examples=["user@example.com"])
    password: str = Field(..., min_length=1, description="Account password")
    name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, description="Password is required")


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., description="Renewal credential from login/register")


class UpdateProfileRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    avatar: Optional[str] = Field(None, max_length=1024)


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


class UserResponse(BaseModel):
    """Identity projection returned to clients."""
    id: UUID
    email: str
    name: str
    role: str
    phone: Optional[str] = None
    avatar: Optional[str] = None
    created_at: datetime


class ProfileResponse(UserResponse):
    design_count: int = 0
    booking_count: int = 0


class AuthResponse(BaseModel):
    user: UserResponse
    token: str = Field(..., description="Session credential (also set as httpOnly cookie)")
    refresh_token: Optional[str] = Field(None, description="Renewal credential")


class MessageResponse(BaseModel):
    message: str


def _user_response(user) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role.value,
        phone=user.phone,
        avatar=user.avatar,
        created_at=user.created_at,
    )


def _set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.cookie_name,
        value=token,
        httponly=True,
        secure=settings.is_production,
        samesite=settings.cookie_samesite,
        max_age=settings.cookie_max_age,
    )


def _auth_response(response: Response, issued: IssuedCredentials) -> AuthResponse:
    _set_auth_cookie(response, issued.token)
    return AuthResponse(
        user=_user_response(issued.user),
        token=issued.token,
        refresh_token=issued.refresh_token,
    )


# Routes
@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register",
)
def register(
    request: RegisterRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Create a CLIENT account; a welcome email is sent in the background."""
    issued = auth_service.register(
        email=request.email,
        password=request.password,
        name=request.name,
        phone=request.phone,
    )
    return _auth_response(response, issued)


@router.post("/login", response_model=AuthResponse, summary="Login")
def login(
    request: LoginRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
):
    issued = auth_service.login(request.email, request.password)
    return _auth_response(response, issued)


@router.post("/logout", response_model=MessageResponse, summary="Logout")
def logout(response: Response):
    """Clear the credential cookie. Bearer tokens simply expire."""
    response.delete_cookie(
        key=settings.cookie_name,
        httponly=True,
        secure=settings.is_production,
        samesite=settings.cookie_samesite,
    )
    return MessageResponse(message="Logged out successfully")


@router.post("/refresh", response_model=AuthResponse, summary="Renew session")
def refresh(
    request: RefreshRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
):
    issued = auth_service.refresh(request.refresh_token)
    return _auth_response(response, issued)


@router.get("/me", response_model=ProfileResponse, summary="Current user")
def me(
    identity: AuthorizedIdentity = Depends(get_current_identity),
    auth_service: AuthService = Depends(get_auth_service),
):
    user, design_count, booking_count = auth_service.get_profile(identity.user_id)
    return ProfileResponse(
        **_user_response(user).model_dump(),
        design_count=design_count,
        booking_count=booking_count,
    )


@router.patch("/me", response_model=UserResponse, summary="Update profile")
def update_me(
    request: UpdateProfileRequest,
    identity: AuthorizedIdentity = Depends(get_current_identity),
    auth_service: AuthService = Depends(get_auth_service),
):
    user = auth_service.update_profile(
        identity.user_id,
        name=request.name,
        phone=request.phone,
        avatar=request.avatar,
    )
    return _user_response(user)


@router.post("/change-password", response_model=MessageResponse, summary="Change password")
def change_password(
    request: ChangePasswordRequest,
    identity: AuthorizedIdentity = Depends(get_current_identity),
    auth_service: AuthService = Depends(get_auth_service),
):
    auth_service.change_password(identity.user_id, request.current_password, request.new_password)
    return MessageResponse(message="Password updated successfully")
