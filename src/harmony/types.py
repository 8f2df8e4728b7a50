from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ProfileVisibility = Literal["all", "connections", "recruiters"]
DigitalCvVisibility = Literal["all", "connections", "applied", "recruiters"]
ApplicationStatus = Literal["applied", "shortlisted", "interview", "hired", "rejected"]
ConnectionStatus = Literal["pending", "accepted", "rejected"]
ResetStatus = Literal["pending", "approved", "rejected"]
ResetDecision = Literal["approve", "reject"]
MemberRole = Literal["member", "moderator", "admin"]


@dataclass(slots=True, frozen=True)
class Actor:
    """The authenticated caller a data access operation is performed for."""

    user_id: int
    is_recruiter: bool = False
    is_admin: bool = False

    def can_modify(self, owner_id: int | None) -> bool:
        return self.is_admin or (owner_id is not None and owner_id == self.user_id)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class PrivacySettings(CamelModel):
    profile_visibility: ProfileVisibility = "all"
    digital_cv_visibility: DigitalCvVisibility = "all"


class ExperienceEntry(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    title: str
    company: str
    location: str = ""
    start_date: str = ""
    end_date: str = ""
    current: bool = False
    description: str = ""


class EducationEntry(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    institution: str
    degree: str = ""
    field_of_study: str = ""
    start_date: str = ""
    end_date: str = ""
    description: str = ""


class UserView(CamelModel):
    id: int
    username: str
    email: str
    name: str
    title: str | None = None
    bio: str | None = None
    mobile_number: str | None = None
    profile_image_url: str | None = None
    digital_cv_url: str | None = None
    is_recruiter: bool = False
    company: str | None = None
    industry: str | None = None
    two_factor_enabled: bool = False
    privacy_settings: PrivacySettings = Field(default_factory=PrivacySettings)
    skills: list[str] = Field(default_factory=list)
    experiences: list[dict[str, Any]] = Field(default_factory=list)
    education: list[dict[str, Any]] = Field(default_factory=list)


class UserSummary(CamelModel):
    id: int
    username: str
    name: str
    title: str | None = None
    profile_image_url: str | None = None
    skills: list[str] = Field(default_factory=list)


class UserStats(CamelModel):
    user_id: int
    posts_count: int
    connections_count: int
    communities_count: int
    profile_strength: int


class _PostFields(CamelModel):
    id: int
    user_id: int
    content: str
    image_url: str | None = None
    created_at: datetime
    is_anonymous: bool = False
    community_id: int | None = None


class OriginalPostView(_PostFields):
    kind: Literal["original"] = "original"


class RepostView(_PostFields):
    kind: Literal["repost"] = "repost"
    original_post_id: int
    reposted_by: int


PostView = Annotated[Union[OriginalPostView, RepostView], Field(discriminator="kind")]


class CommentView(CamelModel):
    id: int
    user_id: int
    post_id: int
    content: str
    created_at: datetime


class CommentWithAuthor(CamelModel):
    comment: CommentView
    user: UserSummary


class LikeView(CamelModel):
    id: int
    user_id: int
    post_id: int
    created_at: datetime


class RepostRecordView(CamelModel):
    id: int
    user_id: int
    post_id: int
    created_at: datetime


class PostDetail(CamelModel):
    post: PostView
    author: UserSummary | None = None
    like_count: int = 0
    repost_count: int = 0
    comments: list[CommentWithAuthor] = Field(default_factory=list)


class JobView(CamelModel):
    id: int
    title: str
    company: str
    location: str
    description: str
    skills: list[str] = Field(default_factory=list)
    user_id: int
    created_at: datetime
    salary: str | None = None
    job_type: str | None = None
    experience_level: str | None = None
    is_archived: bool = False


class JobWithApplicantCount(CamelModel):
    job: JobView
    applicant_count: int


class ApplicationView(CamelModel):
    id: int
    job_id: int
    applicant_id: int
    status: ApplicationStatus
    note: str | None = None
    created_at: datetime


class ApplicationWithApplicant(CamelModel):
    application: ApplicationView
    applicant: UserSummary


class ApplicationWithJob(CamelModel):
    application: ApplicationView
    job: JobView


class SavedJobView(CamelModel):
    id: int
    job_id: int
    user_id: int
    created_at: datetime


class CommunityView(CamelModel):
    id: int
    name: str
    description: str
    created_by: int
    created_at: datetime
    member_count: int
    is_private: bool = False
    invite_only: bool = False


class CommunityMemberView(CamelModel):
    id: int
    user_id: int
    community_id: int
    joined_at: datetime
    role: MemberRole
    is_invited: bool = False


class MemberWithUser(CamelModel):
    member: CommunityMemberView
    user: UserSummary


class ConnectionView(CamelModel):
    id: int
    requester_id: int
    receiver_id: int
    status: ConnectionStatus
    created_at: datetime


class ConnectionWithUser(CamelModel):
    connection: ConnectionView
    user: UserSummary


class MessageView(CamelModel):
    id: int
    sender_id: int
    receiver_id: int
    content: str
    created_at: datetime
    is_read: bool = False


class MessageWithSender(CamelModel):
    message: MessageView
    sender: UserSummary


class CompanyView(CamelModel):
    id: int
    name: str
    owner_id: int
    description: str | None = None
    industry: str | None = None
    location: str | None = None
    size: str | None = None
    website: str | None = None
    email: str | None = None
    logo_url: str | None = None
    created_at: datetime


class PasswordResetRequestView(CamelModel):
    id: int
    user_id: int
    email: str
    status: ResetStatus
    created_at: datetime
    processed_at: datetime | None = None
    processed_by: int | None = None
    admin_notes: str | None = None
    temporary_password: str | None = None


class AdminUserView(CamelModel):
    id: int
    username: str
    email: str
    name: str
    is_recruiter: bool
    company: str | None = None
    post_count: int
    job_count: int


class AdminPostView(CamelModel):
    id: int
    content: str
    created_at: datetime
    is_anonymous: bool
    community_id: int | None = None
    author_id: int
    author_username: str
    like_count: int
    comment_count: int


class AdminJobView(CamelModel):
    id: int
    title: str
    company: str
    location: str
    is_archived: bool
    created_at: datetime
    poster_id: int
    poster_username: str
    applicant_count: int


class AdminCommunityView(CamelModel):
    id: int
    name: str
    description: str
    member_count: int
    is_private: bool
    created_at: datetime
    creator_id: int
    creator_username: str


class AdminAnalytics(CamelModel):
    user_total: int
    recruiter_total: int
    job_total: int
    active_job_total: int
    application_total: int
    community_total: int
    community_post_total: int
    pending_password_resets: int
