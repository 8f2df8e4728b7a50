"""Client payload validators.

Insert models carry only the fields a client may supply when creating an
entity; ids, timestamps and server-managed fields (counters, statuses,
profile data filled in later) are not declared and are silently dropped.
Update models are partial: only keys present in the payload are applied.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StrictInt, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from harmony.core.security import BCRYPT_MAX_BYTES
from harmony.errors import ValidationError
from harmony.types import EducationEntry, ExperienceEntry, PrivacySettings


class _Payload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
    )


class UserInsert(_Payload):
    username: str = Field(min_length=3, max_length=120)
    password: str = Field(min_length=6)
    email: EmailStr
    name: str = Field(min_length=1, max_length=255)
    title: str | None = None
    bio: str | None = None
    mobile_number: str | None = None
    profile_image_url: str | None = None
    is_recruiter: bool = False
    company: str | None = None
    industry: str | None = None
    two_factor_enabled: bool = False

    @field_validator("password")
    @classmethod
    def validate_password_bytes(cls, value: str) -> str:
        if len(value.encode("utf-8")) > BCRYPT_MAX_BYTES:
            raise ValueError(f"password must be at most {BCRYPT_MAX_BYTES} bytes")
        return value


class PostInsert(_Payload):
    user_id: StrictInt
    content: str = Field(min_length=1)
    image_url: str | None = None
    is_anonymous: bool = False
    community_id: StrictInt | None = None
    original_post_id: StrictInt | None = None
    reposted_by: StrictInt | None = None

    @model_validator(mode="after")
    def check_repost_pair(self) -> "PostInsert":
        if (self.original_post_id is None) != (self.reposted_by is None):
            raise ValueError("originalPostId and repostedBy must be set together")
        return self


class CommentInsert(_Payload):
    user_id: StrictInt
    post_id: StrictInt
    content: str = Field(min_length=1)


class RepostInsert(_Payload):
    user_id: StrictInt
    post_id: StrictInt


class JobInsert(_Payload):
    title: str = Field(min_length=1, max_length=255)
    company: str = Field(min_length=1, max_length=255)
    location: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    skills: list[str] = Field(default_factory=list)
    user_id: StrictInt
    salary: str | None = None
    job_type: str | None = None
    experience_level: str | None = None


class CommunityInsert(_Payload):
    name: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    created_by: StrictInt
    is_private: bool = False
    invite_only: bool = False
    initial_participants: list[StrictInt] | None = None


class ConnectionInsert(_Payload):
    requester_id: StrictInt
    receiver_id: StrictInt


class MessageInsert(_Payload):
    sender_id: StrictInt
    receiver_id: StrictInt
    content: str = Field(min_length=1)


class JobApplicationInsert(_Payload):
    job_id: StrictInt
    applicant_id: StrictInt
    note: str | None = None


class SavedJobInsert(_Payload):
    job_id: StrictInt
    user_id: StrictInt


class CompanyInsert(_Payload):
    name: str = Field(min_length=1, max_length=255)
    owner_id: StrictInt
    description: str | None = None
    industry: str | None = None
    location: str | None = None
    size: str | None = None
    website: str | None = None
    email: EmailStr | None = None
    logo_url: str | None = None


class PasswordResetRequestInsert(_Payload):
    user_id: StrictInt
    email: EmailStr


class UserUpdate(_Payload):
    username: str | None = Field(default=None, min_length=3, max_length=120)
    email: EmailStr | None = None
    name: str | None = Field(default=None, min_length=1, max_length=255)
    title: str | None = None
    bio: str | None = None
    mobile_number: str | None = None
    profile_image_url: str | None = None
    digital_cv_url: str | None = None
    company: str | None = None
    industry: str | None = None
    two_factor_enabled: bool | None = None
    privacy_settings: PrivacySettings | None = None
    skills: list[str] | None = None
    experiences: list[ExperienceEntry] | None = None
    education: list[EducationEntry] | None = None


class AdminUserUpdate(UserUpdate):
    is_recruiter: bool | None = None


class PostUpdate(_Payload):
    content: str | None = Field(default=None, min_length=1)
    image_url: str | None = None
    is_anonymous: bool | None = None


class JobUpdate(_Payload):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    company: str | None = Field(default=None, min_length=1, max_length=255)
    location: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, min_length=1)
    skills: list[str] | None = None
    salary: str | None = None
    job_type: str | None = None
    experience_level: str | None = None


class CommunityUpdate(_Payload):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, min_length=1)
    is_private: bool | None = None
    invite_only: bool | None = None


class CompanyUpdate(_Payload):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    industry: str | None = None
    location: str | None = None
    size: str | None = None
    website: str | None = None
    email: EmailStr | None = None
    logo_url: str | None = None


INSERT_MODELS: dict[str, type[_Payload]] = {
    "user": UserInsert,
    "post": PostInsert,
    "comment": CommentInsert,
    "repost": RepostInsert,
    "job": JobInsert,
    "community": CommunityInsert,
    "connection": ConnectionInsert,
    "message": MessageInsert,
    "job_application": JobApplicationInsert,
    "saved_job": SavedJobInsert,
    "company": CompanyInsert,
    "password_reset_request": PasswordResetRequestInsert,
}

UPDATE_MODELS: dict[str, type[_Payload]] = {
    "user": UserUpdate,
    "admin_user": AdminUserUpdate,
    "post": PostUpdate,
    "job": JobUpdate,
    "community": CommunityUpdate,
    "company": CompanyUpdate,
}

# Columns that are NOT NULL in storage; an explicit null in an update is rejected.
_USER_NON_NULLABLE = {
    "username",
    "email",
    "name",
    "two_factor_enabled",
    "privacy_settings",
    "skills",
    "experiences",
    "education",
    "is_recruiter",
}

_NON_NULLABLE_BY_KIND = {
    "user": _USER_NON_NULLABLE,
    "admin_user": _USER_NON_NULLABLE,
    "post": {"content", "is_anonymous"},
    "job": {"title", "company", "location", "description", "skills"},
    "community": {"name", "description", "is_private", "invite_only"},
    "company": {"name"},
}


def _first_error(exc: PydanticValidationError) -> ValidationError:
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error.get("loc", ())) or "payload"
    return ValidationError(field, error.get("msg", "invalid value"))


def _ensure_mapping(payload: Any) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise ValidationError("payload", "must be a JSON object")
    return payload


def validate_insert(kind: str, payload: Any) -> _Payload:
    model = INSERT_MODELS.get(kind)
    if model is None:
        raise ValidationError("kind", f"unknown entity kind '{kind}'")
    try:
        return model.model_validate(_ensure_mapping(payload))
    except PydanticValidationError as exc:
        raise _first_error(exc) from exc


def validate_update(kind: str, payload: Any) -> dict[str, Any]:
    """Validate a partial payload and return column values for the keys it set."""
    model = UPDATE_MODELS.get(kind)
    if model is None:
        raise ValidationError("kind", f"unknown entity kind '{kind}'")
    try:
        validated = model.model_validate(_ensure_mapping(payload))
    except PydanticValidationError as exc:
        raise _first_error(exc) from exc

    values: dict[str, Any] = {}
    for name in validated.model_fields_set:
        value = getattr(validated, name)
        if value is None and name in _NON_NULLABLE_BY_KIND[kind]:
            raise ValidationError(to_camel(name), "may not be null")
        values[name] = _column_value(name, value)
    return values


def _column_value(name: str, value: Any) -> Any:
    if name == "privacy_settings" and value is not None:
        return value.model_dump()
    if name in {"experiences", "education"} and value is not None:
        return [entry.model_dump(by_alias=True) for entry in value]
    return value
