"""Pydantic schemas for authentication and profile endpoints.

Field names are camelCase on the wire (``identityToken``, ``expiresIn``)
and snake_case in Python; both spellings are accepted on input.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema serializing field names as camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class AppleAuthRequest(CamelModel):
    """Request body for Sign in with Apple."""

    identity_token: str = Field(
        ..., min_length=1, description="Identity token JWT issued by Apple"
    )
    authorization_code: str | None = Field(
        None, description="Authorization code from Apple (accepted, not exchanged)"
    )
    first_name: str | None = Field(None, max_length=100, description="Given name")
    last_name: str | None = Field(None, max_length=100, description="Family name")
    email: EmailStr | None = Field(
        None, description="Email shared by the user on first sign-in"
    )


class RefreshRequest(CamelModel):
    """Request body for token refresh."""

    refresh_token: str = Field(..., min_length=1, description="Current refresh token")


class LogoutRequest(CamelModel):
    """Optional request body for logout."""

    refresh_token: str | None = Field(
        None, description="Refresh token whose session chain should end"
    )
    all_devices: bool = Field(False, description="End every session of the user")


class SafeUserResponse(CamelModel):
    """User fields that are safe to return to the client."""

    id: str = Field(..., description="User ID")
    email: str = Field(..., description="User's email address")
    first_name: str | None = Field(None, description="Given name")
    last_name: str | None = Field(None, description="Family name")
    subscription_tier: str = Field(..., description="Subscription tier")
    daily_translations: int = Field(..., description="Translations used today")
    total_translations: int = Field(..., description="Translations used overall")
    last_usage_reset: datetime = Field(..., description="When daily usage was last reset")
    created_at: datetime = Field(..., description="When the user was created")
    updated_at: datetime = Field(..., description="When the user was last updated")


class AuthResponse(CamelModel):
    """Response for a successful sign-in."""

    user: SafeUserResponse = Field(..., description="User information")
    access_token: str = Field(..., description="ES256 access token")
    refresh_token: str = Field(..., description="Opaque single-use refresh token")
    expires_in: int = Field(..., description="Access token lifetime in seconds")


class TokenRefreshResponse(CamelModel):
    """Response for a successful token refresh."""

    access_token: str = Field(..., description="New ES256 access token")
    refresh_token: str = Field(..., description="Replacement refresh token")
    expires_in: int = Field(..., description="Access token lifetime in seconds")


class LogoutResponse(CamelModel):
    """Response for logout."""

    success: bool = Field(..., description="Whether the logout was processed")
    message: str = Field(..., description="Human-readable result")


class ProfileResponse(CamelModel):
    """Response for the profile endpoint."""

    user: SafeUserResponse = Field(..., description="User information")


class ErrorResponse(BaseModel):
    """Error body returned by every failing endpoint."""

    error: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")


class ValidationErrorDetail(BaseModel):
    """Detail for a single validation error."""

    field: str = Field(..., description="Field name that failed validation")
    message: str = Field(..., description="Human-readable error message")
    code: str | None = Field(None, description="Machine-readable error code")


class ValidationErrorResponse(ErrorResponse):
    """Response for request validation errors."""

    details: list[ValidationErrorDetail] = Field(..., description="List of validation errors")
