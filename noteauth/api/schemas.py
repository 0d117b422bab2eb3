"""Request and response bodies; JSON keys are camelCase."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


def _to_camel(name: str) -> str:
    """Convert snake_case to camelCase for JSON serialization."""
    parts = name.split("_")
    return parts[0] + "".join(p.capitalize() for p in parts[1:])


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=_to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class LoginResponse(CamelModel):
    """Response for GET /auth/login."""

    authorization_url: str
    state: str
    message: str = "Redirect user to authorizationUrl to complete login"


class CallbackUser(CamelModel):
    id: str
    email: str | None = None
    name: str | None = None
    organization_id: str | None = None


class CallbackResponse(CamelModel):
    """Response for GET /auth/callback: tokens for the client to hold."""

    access_token: str
    refresh_token: str | None = None
    id_token: str | None = None
    expires_in: int | None = None
    token_type: str = "Bearer"
    user: CallbackUser


class RefreshRequest(CamelModel):
    refresh_token: str | None = None


class ProfileResponse(CamelModel):
    """Response for GET /auth/profile."""

    id: str
    email: str | None = None
    name: str | None = None
    username: str | None = None
    organization_id: str | None = None


class LogoutResponse(CamelModel):
    logout_url: str
    message: str = "Redirect user to logoutUrl to complete logout"


class OAuthUser(CamelModel):
    id: str
    username: str
    email: str | None = None
    provider: str | None = None


class OAuthCallbackResponse(CamelModel):
    user: OAuthUser


class CreateNotePayload(CamelModel):
    """Request body for POST /notes."""

    title: str = Field(min_length=1, max_length=500)
    content: str = ""


class UpdateNotePayload(CamelModel):
    """Request body for PATCH /notes/{id}."""

    title: str | None = Field(default=None, min_length=1, max_length=500)
    content: str | None = None


class NoteResponse(CamelModel):
    id: str
    owner_id: str
    title: str
    content: str
    created_at: datetime
    updated_at: datetime
