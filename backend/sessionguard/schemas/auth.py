"""Authentication schemas."""
from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    """Login request."""

    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1)


class AuthRejection(BaseModel):
    """Body of an auth failure."""

    model_config = ConfigDict(populate_by_name=True)

    error_type: str = Field(..., alias="errorType")
    error_message: str = Field(..., alias="errorMessage")


class AuthRejectedResponse(BaseModel):
    """Failure envelope returned on 401/500 auth outcomes."""

    model_config = ConfigDict(populate_by_name=True)

    auth_rejected: AuthRejection = Field(..., alias="authRejected")


class LoginResponse(BaseModel):
    """Successful login."""

    model_config = ConfigDict(populate_by_name=True)

    owner_id: str = Field(..., alias="ownerId")
    logged_in: bool = Field(True, alias="loggedIn")


class SessionStatusResponse(BaseModel):
    """Result of a logged-in check."""

    model_config = ConfigDict(populate_by_name=True)

    logged_in: bool = Field(..., alias="loggedIn")
    owner_id: str | None = Field(None, alias="ownerId")
    error_type: str | None = Field(None, alias="errorType")


class IdentityResponse(BaseModel):
    """Identity attached to a request by the session gate."""

    model_config = ConfigDict(populate_by_name=True)

    owner_id: str = Field(..., alias="ownerId")
    login_session_id: str = Field(..., alias="loginSessionId")


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str
