from __future__ import annotations

from pydantic import Field

from harmony.types import ApplicationStatus, CamelModel, ConnectionStatus, ResetDecision


class LoginRequest(CamelModel):
    username: str
    password: str


class ForgotPasswordRequest(CamelModel):
    email: str


class AvailabilityResponse(CamelModel):
    available: bool


class MessageResponse(CamelModel):
    message: str


class ApplyRequest(CamelModel):
    note: str | None = None


class ApplicationStatusRequest(CamelModel):
    status: ApplicationStatus


class ConnectionStatusRequest(CamelModel):
    status: ConnectionStatus


class ConnectionCreateRequest(CamelModel):
    receiver_id: int


class MessageCreateRequest(CamelModel):
    receiver_id: int
    content: str = Field(min_length=1)


class ResetDecisionRequest(CamelModel):
    action: ResetDecision
    admin_notes: str | None = None
    temporary_password: str | None = None


class SavedStateResponse(CamelModel):
    saved: bool


class UpdatedCountResponse(CamelModel):
    updated: int
