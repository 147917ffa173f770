"""
Authentication API Endpoints.

Registration, login, token refresh and the current user's account.
"""

from fastapi import APIRouter

from accounting.backend.core.dependencies import CurrentUser, DbSession, RequestId
from accounting.backend.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenPair,
    UserResponse,
)
from accounting.backend.schemas.base import ApiResponse
from accounting.backend.services.auth import AuthService

router = APIRouter()


@router.post(
    "/register",
    response_model=ApiResponse[AuthResponse],
    status_code=201,
    summary="Register an account",
    description="Create a user and return an access/refresh token pair.",
)
async def register(
    data: RegisterRequest,
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[AuthResponse]:
    user, tokens = await AuthService(db).register(data)
    return ApiResponse(data=AuthResponse(**tokens, user=UserResponse.model_validate(user)))


@router.post(
    "/login",
    response_model=ApiResponse[AuthResponse],
    summary="Log in",
    description="Exchange email and password for a token pair.",
)
async def login(
    data: LoginRequest,
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[AuthResponse]:
    user, tokens = await AuthService(db).login(data.email, data.password)
    return ApiResponse(data=AuthResponse(**tokens, user=UserResponse.model_validate(user)))


@router.post(
    "/refresh",
    response_model=ApiResponse[TokenPair],
    summary="Refresh tokens",
    description="Issue a new token pair from a valid refresh token.",
)
async def refresh(
    data: RefreshRequest,
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[TokenPair]:
    tokens = await AuthService(db).refresh(data.refresh_token)
    return ApiResponse(data=TokenPair(**tokens))


@router.get(
    "/me",
    response_model=ApiResponse[UserResponse],
    summary="Current user",
)
async def me(user: CurrentUser, request_id: RequestId) -> ApiResponse[UserResponse]:
    return ApiResponse(data=UserResponse.model_validate(user))


@router.post(
    "/change-password",
    status_code=204,
    summary="Change password",
    description="Requires the current password. The new one must differ.",
)
async def change_password(
    data: ChangePasswordRequest,
    user: CurrentUser,
    db: DbSession,
) -> None:
    await AuthService(db).change_password(user, data)
