"""Authentication API routes.

Provides endpoints for Sign in with Apple, token refresh, and logout.

Every authentication failure raises an ``AuthError`` subclass, which the
application renders as one generic 401 response so clients cannot tell an
unknown token from an expired or reused one.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from pydantic import ValidationError

from verbio.application.services import SessionService
from verbio.core.logging import get_logger
from verbio.domain.entities import ProfileHint
from verbio.infrastructure.api.dependencies import (
    AuthenticatedUser,
    get_apple_verifier,
    get_session_service,
)
from verbio.infrastructure.api.schemas import (
    AppleAuthRequest,
    AuthResponse,
    ErrorResponse,
    LogoutRequest,
    LogoutResponse,
    RefreshRequest,
    SafeUserResponse,
    TokenRefreshResponse,
    ValidationErrorResponse,
)
from verbio.infrastructure.auth import AppleIdentityVerifier

logger = get_logger(__name__)

router = APIRouter()

Sessions = Annotated[SessionService, Depends(get_session_service)]

ERROR_RESPONSES = {
    401: {"model": ErrorResponse, "description": "Unauthorized"},
    422: {"model": ValidationErrorResponse, "description": "Validation error"},
}


@router.post(
    "/apple",
    status_code=status.HTTP_200_OK,
    response_model=AuthResponse,
    responses=ERROR_RESPONSES,
)
async def sign_in_with_apple(
    request: AppleAuthRequest,
    sessions: Sessions,
    verifier: Annotated[AppleIdentityVerifier, Depends(get_apple_verifier)],
) -> AuthResponse:
    """Sign in with an Apple identity token.

    Flow:
    1. Verify the identity token against Apple's published keys
    2. Find the user by Apple subject, or create one
    3. Start a new refresh-token family and issue a token pair
    """
    identity = await verifier.verify(request.identity_token)

    result = await sessions.login(
        identity,
        ProfileHint(
            email=request.email,
            first_name=request.first_name,
            last_name=request.last_name,
        ),
    )

    return AuthResponse(
        user=SafeUserResponse.model_validate(result.user),
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        expires_in=result.tokens.expires_in,
    )


@router.post(
    "/refresh",
    status_code=status.HTTP_200_OK,
    response_model=TokenRefreshResponse,
    responses=ERROR_RESPONSES,
)
async def refresh_tokens(
    request: RefreshRequest,
    sessions: Sessions,
) -> TokenRefreshResponse:
    """Exchange a refresh token for a new token pair.

    The presented token is consumed. Presenting it again revokes every
    token descended from the same sign-in.
    """
    result = await sessions.rotate(request.refresh_token)
    tokens = result.raise_for_outcome()

    return TokenRefreshResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_in=tokens.expires_in,
    )


async def _read_logout_request(request: Request) -> LogoutRequest:
    body = await request.body()
    if not body:
        return LogoutRequest()
    try:
        return LogoutRequest.model_validate_json(body)
    except ValidationError:
        logger.info("Logout body ignored: not a valid logout request")
        return LogoutRequest()


@router.post(
    "/logout",
    status_code=status.HTTP_200_OK,
    response_model=LogoutResponse,
    responses=ERROR_RESPONSES,
)
async def logout(
    current_user: AuthenticatedUser,
    sessions: Sessions,
    body: Annotated[LogoutRequest, Depends(_read_logout_request)],
) -> LogoutResponse:
    """End the caller's session chain, or all of their sessions.

    The body is optional; a missing or malformed body is treated as empty,
    which leaves refresh tokens untouched.
    """
    await sessions.logout(
        current_user.user_id,
        refresh_token=body.refresh_token,
        all_devices=body.all_devices,
    )

    message = (
        "Logged out from all devices" if body.all_devices else "Logged out successfully"
    )
    return LogoutResponse(success=True, message=message)
