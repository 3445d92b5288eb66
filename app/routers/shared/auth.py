from typing import Annotated
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.db.models import User
from app.db.session import get_sync_session
from app.services.auth_service import AuthService
from app.schemas.auth_schemas import LoginRequest, LoginResponse, UserResponse
from app.middlewares.auth_middleware import get_current_user, AuthState
from app.utils.responses import ResponseBuilder
from app.utils.errors import AuthenticationError

auth_router = APIRouter()


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=str(user.id),
        email=user.email,
        role=user.role.value,
        is_active=user.is_active,
        last_login=user.last_login,
    )


@auth_router.post("/login")
async def login(
    login_request: LoginRequest,
    request: Request,
    db: Annotated[Session, Depends(get_sync_session)],
):
    """
    Login with email and password.

    Returns a bearer access token to send as ``Authorization: Bearer <token>``.
    """
    auth_service = AuthService(db)
    access_token, user = await auth_service.login_user(
        login_request.email, login_request.password
    )

    login_data = LoginResponse(
        access_token=access_token,
        expires_in=AuthService.token_lifetime_seconds(),
        user=_user_response(user),
    )

    return ResponseBuilder.success(
        request=request,
        data=login_data.model_dump(by_alias=True),
        message="Login successful",
    )


@auth_router.get("/me")
async def get_current_user_info(
    request: Request,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_sync_session)],
):
    """Get current authenticated user information"""
    auth_service = AuthService(db)
    user = await auth_service.get_user_by_id(current_user.user_id)

    if not user:
        raise AuthenticationError("User not found")

    return ResponseBuilder.success(
        request=request,
        data=_user_response(user).model_dump(by_alias=True),
        message="User information retrieved",
    )
