from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any, TypeVar

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from harmony.core.security import BCRYPT_MAX_BYTES, hash_password, verify_password
from harmony.core.workflows import (
    APPLICATION_STATUS,
    CONNECTION_STATUS,
    JOB_ARCHIVE_STATE,
    PASSWORD_RESET_STATUS,
    ensure_transition,
    job_state,
)
from harmony.db.models import (
    Comment,
    Community,
    CommunityMember,
    Company,
    Connection,
    Job,
    JobApplication,
    Like,
    Message,
    PasswordResetRequest,
    Post,
    Repost,
    SavedJob,
    User,
)
from harmony.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from harmony.types import (
    Actor,
    AdminAnalytics,
    AdminCommunityView,
    AdminJobView,
    AdminPostView,
    AdminUserView,
    ApplicationView,
    ApplicationWithApplicant,
    ApplicationWithJob,
    CommentView,
    CommentWithAuthor,
    CommunityMemberView,
    ConnectionView,
    ConnectionWithUser,
    JobView,
    JobWithApplicantCount,
    MemberWithUser,
    MessageView,
    MessageWithSender,
    OriginalPostView,
    PostDetail,
    RepostView,
    UserStats,
    UserSummary,
)
from harmony.validation import (
    CommentInsert,
    CommunityInsert,
    CompanyInsert,
    ConnectionInsert,
    JobApplicationInsert,
    JobInsert,
    MessageInsert,
    PostInsert,
    SavedJobInsert,
    UserInsert,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")

RESET_DECISIONS = {"approve": "approved", "reject": "rejected"}


def newest_first(model: Any) -> tuple[Any, Any]:
    return (model.created_at.desc(), model.id.desc())


class Repository:
    def __init__(self, session: Session):
        self.session = session

    # -- plumbing ---------------------------------------------------------

    @contextmanager
    def _atomic(self) -> Iterator[None]:
        """Commit everything written inside the block, or nothing at all."""
        try:
            yield
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            logger.warning("Integrity violation rolled back: %s", exc.orig)
            raise ConflictError("Record conflicts with existing data") from exc
        except Exception:
            self.session.rollback()
            raise

    def _require(self, model: type[ModelT], entity_id: int, entity: str) -> ModelT:
        row = self.session.get(model, entity_id)
        if row is None:
            raise NotFoundError(entity, entity_id)
        return row

    @staticmethod
    def _authorize(actor: Actor, owner_id: int | None, action: str, entity: str) -> None:
        if not actor.can_modify(owner_id):
            logger.warning("User %s may not %s %s owned by %s", actor.user_id, action, entity, owner_id)
            raise ForbiddenError(f"You can only {action} your own {entity}")

    @staticmethod
    def _require_admin(actor: Actor) -> None:
        if not actor.is_admin:
            raise ForbiddenError("Admin access required")

    def _count(self, model: Any, *criteria: Any) -> int:
        statement = select(func.count()).select_from(model)
        if criteria:
            statement = statement.where(*criteria)
        return int(self.session.scalar(statement) or 0)

    def _summaries(self, user_ids: Iterable[int]) -> dict[int, UserSummary]:
        ids = set(user_ids)
        if not ids:
            return {}
        rows = self.session.scalars(select(User).where(User.id.in_(ids))).all()
        return {row.id: UserSummary.model_validate(row) for row in rows}

    # -- users ------------------------------------------------------------

    def create_user(self, payload: UserInsert) -> User:
        if self.get_user_by_username(payload.username):
            raise ConflictError("Username already exists")
        if self.get_user_by_email(payload.email):
            raise ConflictError("Email already exists")

        values = payload.model_dump(exclude={"password"})
        user = User(**values, password=hash_password(payload.password))
        with self._atomic():
            self.session.add(user)
        self.session.refresh(user)
        logger.info("Registered user %s (%s)", user.id, user.username)
        return user

    def get_user(self, user_id: int) -> User:
        return self._require(User, user_id, "user")

    def get_user_by_username(self, username: str) -> User | None:
        return self.session.scalar(select(User).where(User.username == username))

    def get_user_by_email(self, email: str) -> User | None:
        return self.session.scalar(select(User).where(func.lower(User.email) == email.lower()))

    def get_user_by_mobile_number(self, mobile_number: str) -> User | None:
        return self.session.scalar(select(User).where(User.mobile_number == mobile_number))

    def username_available(self, username: str) -> bool:
        return self.get_user_by_username(username) is None

    def email_available(self, email: str) -> bool:
        return self.get_user_by_email(email) is None

    def mobile_number_available(self, mobile_number: str) -> bool:
        return self.get_user_by_mobile_number(mobile_number) is None

    def authenticate(self, identifier: str, password: str) -> User | None:
        user = self.get_user_by_username(identifier) or self.get_user_by_email(identifier)
        if user is None or not verify_password(password, user.password):
            return None
        return user

    def list_users(self) -> list[User]:
        return list(self.session.scalars(select(User).order_by(User.id.asc())).all())

    def list_directory(self, actor: Actor) -> list[UserSummary]:
        statement = select(User).where(User.id != actor.user_id).order_by(User.name.asc(), User.id.asc())
        return [UserSummary.model_validate(row) for row in self.session.scalars(statement).all()]

    def update_user(self, user_id: int, values: dict[str, Any], actor: Actor) -> User:
        user = self.get_user(user_id)
        self._authorize(actor, user.id, "edit", "profile")
        if "is_recruiter" in values and not actor.is_admin:
            raise ForbiddenError("Only admins can change account roles")

        username = values.get("username")
        if username and username != user.username and not self.username_available(username):
            raise ConflictError("Username already exists")
        email = values.get("email")
        if email and email.lower() != user.email.lower() and not self.email_available(email):
            raise ConflictError("Email already exists")

        with self._atomic():
            for key, value in values.items():
                setattr(user, key, value)
        self.session.refresh(user)
        logger.info("User %s updated profile %s fields=%s", actor.user_id, user.id, sorted(values))
        return user

    def set_password(self, user_id: int, password: str) -> None:
        user = self.get_user(user_id)
        with self._atomic():
            user.password = hash_password(password)

    def user_stats(self, user_id: int) -> UserStats:
        user = self.get_user(user_id)
        strength = 0
        for filled in (user.name, user.title, user.bio, user.skills, user.digital_cv_url):
            if filled:
                strength += 20
        return UserStats(
            user_id=user.id,
            posts_count=self._count(Post, Post.user_id == user.id),
            connections_count=self._count(
                Connection,
                or_(Connection.requester_id == user.id, Connection.receiver_id == user.id),
                Connection.status == "accepted",
            ),
            communities_count=self._count(CommunityMember, CommunityMember.user_id == user.id),
            profile_strength=strength,
        )

    def delete_user(self, user_id: int, actor: Actor) -> None:
        self._require_admin(actor)
        user = self.get_user(user_id)

        with self._atomic():
            for post_id in self.session.scalars(select(Post.id).where(Post.user_id == user.id)).all():
                self._delete_post_rows(post_id)
            for job_id in self.session.scalars(select(Job.id).where(Job.user_id == user.id)).all():
                self._delete_job_rows(job_id)
            for community_id in self.session.scalars(
                select(Community.id).where(Community.created_by == user.id)
            ).all():
                self._delete_community_rows(community_id)
            for community_id in self.session.scalars(
                select(CommunityMember.community_id).where(CommunityMember.user_id == user.id)
            ).all():
                self._remove_member_row(user.id, community_id)

            self.session.execute(delete(Like).where(Like.user_id == user.id))
            self.session.execute(delete(Comment).where(Comment.user_id == user.id))
            self.session.execute(delete(Repost).where(Repost.user_id == user.id))
            self.session.execute(delete(JobApplication).where(JobApplication.applicant_id == user.id))
            self.session.execute(delete(SavedJob).where(SavedJob.user_id == user.id))
            self.session.execute(
                delete(Connection).where(
                    or_(Connection.requester_id == user.id, Connection.receiver_id == user.id)
                )
            )
            self.session.execute(
                delete(Message).where(or_(Message.sender_id == user.id, Message.receiver_id == user.id))
            )
            self.session.execute(delete(Company).where(Company.owner_id == user.id))
            self.session.execute(delete(PasswordResetRequest).where(PasswordResetRequest.user_id == user.id))
            self.session.execute(
                update(PasswordResetRequest)
                .where(PasswordResetRequest.processed_by == user.id)
                .values(processed_by=None)
            )
            self.session.execute(delete(User).where(User.id == user.id))
        logger.info("Admin %s deleted user %s", actor.user_id, user_id)

    # -- posts ------------------------------------------------------------

    def create_post(self, payload: PostInsert) -> Post:
        if payload.community_id is not None:
            self.get_community(payload.community_id)

        original_post_id = payload.original_post_id
        if original_post_id is not None:
            original_post_id = self._repost_root(self.get_post(original_post_id)).id

        post = Post(
            user_id=payload.user_id,
            content=payload.content,
            image_url=payload.image_url,
            is_anonymous=payload.is_anonymous,
            community_id=payload.community_id,
            original_post_id=original_post_id,
            reposted_by=payload.reposted_by,
        )
        with self._atomic():
            self.session.add(post)
        self.session.refresh(post)
        logger.info("User %s created post %s", post.user_id, post.id)
        return post

    def get_post(self, post_id: int) -> Post:
        return self._require(Post, post_id, "post")

    def list_posts(self, limit: int | None = None) -> list[Post]:
        statement = select(Post).order_by(*newest_first(Post))
        if limit is not None:
            statement = statement.limit(limit)
        return list(self.session.scalars(statement).all())

    def list_posts_by_user(self, user_id: int) -> list[Post]:
        statement = select(Post).where(Post.user_id == user_id).order_by(*newest_first(Post))
        return list(self.session.scalars(statement).all())

    def list_posts_by_community(self, community_id: int) -> list[Post]:
        statement = select(Post).where(Post.community_id == community_id).order_by(*newest_first(Post))
        return list(self.session.scalars(statement).all())

    @staticmethod
    def to_post_view(post: Post) -> OriginalPostView | RepostView:
        if post.original_post_id is None:
            return OriginalPostView.model_validate(post)
        return RepostView.model_validate(post)

    def list_feed(self, limit: int = 50) -> list[PostDetail]:
        return self._post_details(self.list_posts(limit=limit))

    def get_post_detail(self, post_id: int) -> PostDetail:
        return self._post_details([self.get_post(post_id)])[0]

    def _post_details(self, posts: list[Post]) -> list[PostDetail]:
        if not posts:
            return []
        post_ids = [post.id for post in posts]
        like_counts = dict(
            self.session.execute(
                select(Like.post_id, func.count(Like.id)).where(Like.post_id.in_(post_ids)).group_by(Like.post_id)
            ).all()
        )
        repost_counts = dict(
            self.session.execute(
                select(Repost.post_id, func.count(Repost.id))
                .where(Repost.post_id.in_(post_ids))
                .group_by(Repost.post_id)
            ).all()
        )
        comments: dict[int, list[CommentWithAuthor]] = {post_id: [] for post_id in post_ids}
        comment_rows = self.session.execute(
            select(Comment, User)
            .join(User, Comment.user_id == User.id)
            .where(Comment.post_id.in_(post_ids))
            .order_by(Comment.created_at.asc(), Comment.id.asc())
        ).all()
        for comment, author in comment_rows:
            comments[comment.post_id].append(
                CommentWithAuthor(
                    comment=CommentView.model_validate(comment),
                    user=UserSummary.model_validate(author),
                )
            )
        authors = self._summaries(post.user_id for post in posts if not post.is_anonymous)

        return [
            PostDetail(
                post=self.to_post_view(post),
                author=None if post.is_anonymous else authors.get(post.user_id),
                like_count=like_counts.get(post.id, 0),
                repost_count=repost_counts.get(post.id, 0),
                comments=comments[post.id],
            )
            for post in posts
        ]

    def update_post(self, post_id: int, values: dict[str, Any], actor: Actor) -> Post:
        post = self.get_post(post_id)
        self._authorize(actor, post.user_id, "edit", "post")
        if post.is_repost:
            raise ValidationError("postId", "reposts mirror the original post and cannot be edited")

        with self._atomic():
            for key, value in values.items():
                setattr(post, key, value)
        self.session.refresh(post)
        logger.info("User %s edited post %s", actor.user_id, post.id)
        return post

    def delete_post(self, post_id: int, actor: Actor) -> None:
        post = self.get_post(post_id)
        self._authorize(actor, post.user_id, "delete", "post")
        with self._atomic():
            self._delete_post_rows(post.id)
        logger.info("User %s deleted post %s", actor.user_id, post_id)

    def _delete_post_rows(self, post_id: int) -> None:
        # reposts of a deleted post have nothing left to point at
        pointer_ids = self.session.scalars(select(Post.id).where(Post.original_post_id == post_id)).all()
        for pointer_id in pointer_ids:
            self._delete_post_rows(pointer_id)

        post = self.session.get(Post, post_id)
        if post is not None and post.is_repost:
            self.session.execute(
                delete(Repost).where(
                    and_(Repost.user_id == post.reposted_by, Repost.post_id == post.original_post_id)
                )
            )
        self.session.execute(delete(Like).where(Like.post_id == post_id))
        self.session.execute(delete(Comment).where(Comment.post_id == post_id))
        self.session.execute(delete(Repost).where(Repost.post_id == post_id))
        self.session.execute(delete(Post).where(Post.id == post_id))

    def _repost_root(self, post: Post) -> Post:
        """Reposting a repost targets the original post, so chains never form."""
        if post.original_post_id is None:
            return post
        return self.get_post(post.original_post_id)

    def get_user_repost(self, user_id: int, post_id: int) -> Repost | None:
        return self.session.scalar(
            select(Repost).where(and_(Repost.user_id == user_id, Repost.post_id == post_id))
        )

    def repost(self, post_id: int, actor: Actor) -> Post:
        root = self._repost_root(self.get_post(post_id))
        if self.get_user_repost(actor.user_id, root.id):
            raise ConflictError("Post already reposted")

        pointer = Post(
            user_id=actor.user_id,
            content=root.content,
            image_url=root.image_url,
            is_anonymous=False,
            community_id=root.community_id,
            original_post_id=root.id,
            reposted_by=actor.user_id,
        )
        with self._atomic():
            self.session.add(pointer)
            self.session.add(Repost(user_id=actor.user_id, post_id=root.id))
        self.session.refresh(pointer)
        logger.info("User %s reposted post %s as %s", actor.user_id, root.id, pointer.id)
        return pointer

    def remove_repost(self, post_id: int, actor: Actor) -> None:
        root = self._repost_root(self.get_post(post_id))
        record = self.get_user_repost(actor.user_id, root.id)
        if record is None:
            raise NotFoundError("repost", post_id)

        pointer_ids = self.session.scalars(
            select(Post.id).where(and_(Post.original_post_id == root.id, Post.reposted_by == actor.user_id))
        ).all()
        with self._atomic():
            for pointer_id in pointer_ids:
                self._delete_post_rows(pointer_id)
            self.session.execute(delete(Repost).where(Repost.id == record.id))
        logger.info("User %s removed repost of post %s", actor.user_id, root.id)

    def list_reposts(self, post_id: int) -> list[Repost]:
        self.get_post(post_id)
        statement = select(Repost).where(Repost.post_id == post_id).order_by(*newest_first(Repost))
        return list(self.session.scalars(statement).all())

    def add_like(self, post_id: int, actor: Actor) -> Like:
        self.get_post(post_id)
        existing = self.session.scalar(
            select(Like).where(and_(Like.user_id == actor.user_id, Like.post_id == post_id))
        )
        if existing is not None:
            return existing

        like = Like(user_id=actor.user_id, post_id=post_id)
        try:
            with self._atomic():
                self.session.add(like)
        except ConflictError:
            # a concurrent like won the race; the pair is liked either way
            return self.session.scalar(
                select(Like).where(and_(Like.user_id == actor.user_id, Like.post_id == post_id))
            )
        self.session.refresh(like)
        return like

    def remove_like(self, post_id: int, actor: Actor) -> None:
        with self._atomic():
            result = self.session.execute(
                delete(Like).where(and_(Like.user_id == actor.user_id, Like.post_id == post_id))
            )
            if result.rowcount == 0:
                raise NotFoundError("like", post_id)

    def list_likes(self, post_id: int) -> list[Like]:
        self.get_post(post_id)
        statement = select(Like).where(Like.post_id == post_id).order_by(*newest_first(Like))
        return list(self.session.scalars(statement).all())

    def add_comment(self, payload: CommentInsert) -> Comment:
        self.get_post(payload.post_id)
        comment = Comment(user_id=payload.user_id, post_id=payload.post_id, content=payload.content)
        with self._atomic():
            self.session.add(comment)
        self.session.refresh(comment)
        return comment

    def list_comments(self, post_id: int) -> list[CommentWithAuthor]:
        self.get_post(post_id)
        rows = self.session.execute(
            select(Comment, User)
            .join(User, Comment.user_id == User.id)
            .where(Comment.post_id == post_id)
            .order_by(Comment.created_at.asc(), Comment.id.asc())
        ).all()
        return [
            CommentWithAuthor(comment=CommentView.model_validate(comment), user=UserSummary.model_validate(user))
            for comment, user in rows
        ]

    # -- jobs -------------------------------------------------------------

    def create_job(self, payload: JobInsert, actor: Actor) -> Job:
        if not (actor.is_recruiter or actor.is_admin):
            raise ForbiddenError("Only recruiters can post jobs")
        job = Job(**payload.model_dump())
        with self._atomic():
            self.session.add(job)
        self.session.refresh(job)
        logger.info("Recruiter %s posted job %s", job.user_id, job.id)
        return job

    def get_job(self, job_id: int) -> Job:
        return self._require(Job, job_id, "job")

    def list_jobs(self) -> list[Job]:
        return list(self.session.scalars(select(Job).order_by(*newest_first(Job))).all())

    def list_active_jobs(self) -> list[Job]:
        statement = select(Job).where(Job.is_archived.is_(False)).order_by(*newest_first(Job))
        return list(self.session.scalars(statement).all())

    def list_jobs_by_owner(self, owner_id: int, include_archived: bool = True) -> list[Job]:
        statement = select(Job).where(Job.user_id == owner_id)
        if not include_archived:
            statement = statement.where(Job.is_archived.is_(False))
        return list(self.session.scalars(statement.order_by(*newest_first(Job))).all())

    def list_jobs_with_applicant_counts(self, owner_id: int) -> list[JobWithApplicantCount]:
        statement = (
            select(Job, func.count(JobApplication.id))
            .outerjoin(JobApplication, JobApplication.job_id == Job.id)
            .where(Job.user_id == owner_id)
            .group_by(Job.id)
            .order_by(*newest_first(Job))
        )
        return [
            JobWithApplicantCount(job=JobView.model_validate(job), applicant_count=count)
            for job, count in self.session.execute(statement).all()
        ]

    def update_job(self, job_id: int, values: dict[str, Any], actor: Actor) -> Job:
        job = self.get_job(job_id)
        self._authorize(actor, job.user_id, "edit", "job")
        with self._atomic():
            for key, value in values.items():
                setattr(job, key, value)
        self.session.refresh(job)
        logger.info("User %s updated job %s fields=%s", actor.user_id, job.id, sorted(values))
        return job

    def archive_job(self, job_id: int, actor: Actor) -> Job:
        return self._set_job_archived(job_id, actor, archived=True)

    def unarchive_job(self, job_id: int, actor: Actor) -> Job:
        return self._set_job_archived(job_id, actor, archived=False)

    def _set_job_archived(self, job_id: int, actor: Actor, *, archived: bool) -> Job:
        job = self.get_job(job_id)
        self._authorize(actor, job.user_id, "archive", "job")
        ensure_transition(JOB_ARCHIVE_STATE, job_state(job.is_archived), job_state(archived))
        with self._atomic():
            job.is_archived = archived
        self.session.refresh(job)
        logger.info("User %s set job %s to %s", actor.user_id, job.id, job_state(archived))
        return job

    def delete_job(self, job_id: int, actor: Actor) -> None:
        job = self.get_job(job_id)
        self._authorize(actor, job.user_id, "delete", "job")
        with self._atomic():
            self._delete_job_rows(job.id)
        logger.info("User %s deleted job %s", actor.user_id, job_id)

    def _delete_job_rows(self, job_id: int) -> None:
        self.session.execute(delete(JobApplication).where(JobApplication.job_id == job_id))
        self.session.execute(delete(SavedJob).where(SavedJob.job_id == job_id))
        self.session.execute(delete(Job).where(Job.id == job_id))

    # -- applications -----------------------------------------------------

    def apply_to_job(self, payload: JobApplicationInsert, actor: Actor) -> JobApplication:
        if actor.is_recruiter:
            raise ForbiddenError("Recruiters cannot apply to jobs")
        job = self.get_job(payload.job_id)
        if job.is_archived:
            raise ValidationError("jobId", "job is archived and no longer accepts applications")

        # Earlier applications for the same job stay as history.
        application = JobApplication(job_id=job.id, applicant_id=payload.applicant_id, note=payload.note)
        with self._atomic():
            self.session.add(application)
        self.session.refresh(application)
        logger.info("User %s applied to job %s (application %s)", actor.user_id, job.id, application.id)
        return application

    def get_application(self, application_id: int) -> JobApplication:
        return self._require(JobApplication, application_id, "application")

    def list_applications_for_job(self, job_id: int, actor: Actor) -> list[ApplicationWithApplicant]:
        job = self.get_job(job_id)
        self._authorize(actor, job.user_id, "view applicants of", "job")
        rows = self.session.execute(
            select(JobApplication, User)
            .join(User, JobApplication.applicant_id == User.id)
            .where(JobApplication.job_id == job.id)
            .order_by(*newest_first(JobApplication))
        ).all()
        return [
            ApplicationWithApplicant(
                application=ApplicationView.model_validate(application),
                applicant=UserSummary.model_validate(applicant),
            )
            for application, applicant in rows
        ]

    def list_applications_for_user(self, user_id: int) -> list[ApplicationWithJob]:
        rows = self.session.execute(
            select(JobApplication, Job)
            .join(Job, JobApplication.job_id == Job.id)
            .where(JobApplication.applicant_id == user_id)
            .order_by(*newest_first(JobApplication))
        ).all()
        return [
            ApplicationWithJob(application=ApplicationView.model_validate(application), job=JobView.model_validate(job))
            for application, job in rows
        ]

    def list_applications_for_recruiter(self, actor: Actor) -> list[ApplicationWithApplicant]:
        rows = self.session.execute(
            select(JobApplication, User)
            .join(Job, JobApplication.job_id == Job.id)
            .join(User, JobApplication.applicant_id == User.id)
            .where(Job.user_id == actor.user_id)
            .order_by(*newest_first(JobApplication))
        ).all()
        return [
            ApplicationWithApplicant(
                application=ApplicationView.model_validate(application),
                applicant=UserSummary.model_validate(applicant),
            )
            for application, applicant in rows
        ]

    def set_application_status(self, application_id: int, status: str, actor: Actor) -> JobApplication:
        application = self.get_application(application_id)
        job = self.get_job(application.job_id)
        self._authorize(actor, job.user_id, "review applications for", "job")
        ensure_transition(APPLICATION_STATUS, application.status, status)

        with self._atomic():
            application.status = status
        self.session.refresh(application)
        logger.info("User %s moved application %s to %s", actor.user_id, application.id, status)
        return application

    # -- saved jobs -------------------------------------------------------

    def _find_saved_job(self, user_id: int, job_id: int) -> SavedJob | None:
        return self.session.scalar(
            select(SavedJob).where(and_(SavedJob.user_id == user_id, SavedJob.job_id == job_id))
        )

    def save_job(self, payload: SavedJobInsert) -> SavedJob:
        self.get_job(payload.job_id)
        existing = self._find_saved_job(payload.user_id, payload.job_id)
        if existing is not None:
            return existing

        saved = SavedJob(user_id=payload.user_id, job_id=payload.job_id)
        try:
            with self._atomic():
                self.session.add(saved)
        except ConflictError:
            existing = self._find_saved_job(payload.user_id, payload.job_id)
            if existing is None:
                raise
            return existing
        self.session.refresh(saved)
        return saved

    def unsave_job(self, user_id: int, job_id: int) -> None:
        with self._atomic():
            result = self.session.execute(
                delete(SavedJob).where(and_(SavedJob.user_id == user_id, SavedJob.job_id == job_id))
            )
            if result.rowcount == 0:
                raise NotFoundError("saved job", job_id)

    def list_saved_jobs(self, user_id: int) -> list[Job]:
        statement = (
            select(Job)
            .join(SavedJob, SavedJob.job_id == Job.id)
            .where(SavedJob.user_id == user_id)
            .order_by(*newest_first(SavedJob))
        )
        return list(self.session.scalars(statement).all())

    def is_job_saved(self, user_id: int, job_id: int) -> bool:
        return self._find_saved_job(user_id, job_id) is not None

    # -- communities ------------------------------------------------------

    def create_community(self, payload: CommunityInsert, actor: Actor) -> Community:
        participant_ids: list[int] = []
        for user_id in payload.initial_participants or []:
            if user_id != payload.created_by and user_id not in participant_ids:
                self.get_user(user_id)
                participant_ids.append(user_id)

        community = Community(
            name=payload.name,
            description=payload.description,
            created_by=payload.created_by,
            is_private=payload.is_private,
            invite_only=payload.invite_only,
            member_count=0,
        )
        with self._atomic():
            self.session.add(community)
            self.session.flush()
            self._add_member_row(payload.created_by, community.id, role="admin")
            for user_id in participant_ids:
                self._add_member_row(user_id, community.id, is_invited=True)
        self.session.refresh(community)
        logger.info(
            "User %s created community %s with %s members",
            actor.user_id,
            community.id,
            community.member_count,
        )
        return community

    def get_community(self, community_id: int) -> Community:
        return self._require(Community, community_id, "community")

    def get_community_by_name(self, name: str) -> Community | None:
        return self.session.scalar(select(Community).where(Community.name == name))

    def list_communities(self) -> list[Community]:
        return list(self.session.scalars(select(Community).order_by(*newest_first(Community))).all())

    def update_community(self, community_id: int, values: dict[str, Any], actor: Actor) -> Community:
        community = self.get_community(community_id)
        self._authorize(actor, community.created_by, "edit", "community")
        with self._atomic():
            for key, value in values.items():
                setattr(community, key, value)
        self.session.refresh(community)
        return community

    def delete_community(self, community_id: int, actor: Actor) -> None:
        community = self.get_community(community_id)
        self._authorize(actor, community.created_by, "delete", "community")
        with self._atomic():
            self._delete_community_rows(community.id)
        logger.info("User %s deleted community %s", actor.user_id, community_id)

    def _delete_community_rows(self, community_id: int) -> None:
        self.session.execute(delete(CommunityMember).where(CommunityMember.community_id == community_id))
        self.session.execute(update(Post).where(Post.community_id == community_id).values(community_id=None))
        self.session.execute(delete(Community).where(Community.id == community_id))

    def _add_member_row(
        self,
        user_id: int,
        community_id: int,
        *,
        role: str = "member",
        is_invited: bool = False,
    ) -> CommunityMember:
        # The only place membership rows are created; the counter moves with them.
        member = CommunityMember(user_id=user_id, community_id=community_id, role=role, is_invited=is_invited)
        self.session.add(member)
        self.session.flush()
        self.session.execute(
            update(Community)
            .where(Community.id == community_id)
            .values(member_count=Community.member_count + 1)
            .execution_options(synchronize_session=False)
        )
        return member

    def _remove_member_row(self, user_id: int, community_id: int) -> bool:
        result = self.session.execute(
            delete(CommunityMember).where(
                and_(CommunityMember.user_id == user_id, CommunityMember.community_id == community_id)
            )
        )
        if result.rowcount == 0:
            return False
        self.session.execute(
            update(Community)
            .where(Community.id == community_id)
            .values(member_count=Community.member_count - 1)
            .execution_options(synchronize_session=False)
        )
        return True

    def get_membership(self, user_id: int, community_id: int) -> CommunityMember | None:
        return self.session.scalar(
            select(CommunityMember).where(
                and_(CommunityMember.user_id == user_id, CommunityMember.community_id == community_id)
            )
        )

    def join_community(self, community_id: int, actor: Actor) -> CommunityMember:
        community = self.get_community(community_id)
        if community.invite_only and not actor.is_admin:
            raise ForbiddenError("This community is invite-only")
        if self.get_membership(actor.user_id, community.id):
            raise ConflictError("Already a member of this community")

        with self._atomic():
            member = self._add_member_row(actor.user_id, community.id)
        self.session.refresh(member)
        logger.info("User %s joined community %s", actor.user_id, community.id)
        return member

    def leave_community(self, community_id: int, actor: Actor) -> None:
        community = self.get_community(community_id)
        with self._atomic():
            if not self._remove_member_row(actor.user_id, community.id):
                raise NotFoundError("membership", community.id)
        logger.info("User %s left community %s", actor.user_id, community.id)

    def list_community_members(self, community_id: int) -> list[MemberWithUser]:
        self.get_community(community_id)
        rows = self.session.execute(
            select(CommunityMember, User)
            .join(User, CommunityMember.user_id == User.id)
            .where(CommunityMember.community_id == community_id)
            .order_by(CommunityMember.joined_at.asc(), CommunityMember.id.asc())
        ).all()
        return [
            MemberWithUser(member=CommunityMemberView.model_validate(member), user=UserSummary.model_validate(user))
            for member, user in rows
        ]

    def list_user_communities(self, user_id: int) -> list[Community]:
        statement = (
            select(Community)
            .join(CommunityMember, CommunityMember.community_id == Community.id)
            .where(CommunityMember.user_id == user_id)
            .order_by(CommunityMember.joined_at.desc(), Community.id.desc())
        )
        return list(self.session.scalars(statement).all())

    def count_active_members(self, community_id: int) -> int:
        return self._count(CommunityMember, CommunityMember.community_id == community_id)

    # -- connections ------------------------------------------------------

    def _open_connection_between(self, user_a: int, user_b: int) -> Connection | None:
        return self.session.scalar(
            select(Connection).where(
                or_(
                    and_(Connection.requester_id == user_a, Connection.receiver_id == user_b),
                    and_(Connection.requester_id == user_b, Connection.receiver_id == user_a),
                ),
                Connection.status.in_(("pending", "accepted")),
            )
        )

    def request_connection(self, payload: ConnectionInsert) -> Connection:
        if payload.requester_id == payload.receiver_id:
            raise ValidationError("receiverId", "cannot connect with yourself")
        self.get_user(payload.receiver_id)

        with self._atomic():
            existing = self._open_connection_between(payload.requester_id, payload.receiver_id)
            if existing is not None:
                raise ConflictError(f"A {existing.status} connection already exists between these users")
            connection = Connection(
                requester_id=payload.requester_id,
                receiver_id=payload.receiver_id,
                status="pending",
            )
            self.session.add(connection)
        self.session.refresh(connection)
        logger.info(
            "User %s requested connection %s with %s",
            payload.requester_id,
            connection.id,
            payload.receiver_id,
        )
        return connection

    def get_connection(self, connection_id: int) -> Connection:
        return self._require(Connection, connection_id, "connection")

    def update_connection_status(self, connection_id: int, status: str, actor: Actor) -> Connection:
        connection = self.get_connection(connection_id)
        if not actor.can_modify(connection.receiver_id):
            raise ForbiddenError("Only the receiver can respond to a connection request")
        ensure_transition(CONNECTION_STATUS, connection.status, status)

        with self._atomic():
            connection.status = status
        self.session.refresh(connection)
        logger.info("User %s marked connection %s %s", actor.user_id, connection.id, status)
        return connection

    def accept_connection(self, connection_id: int, actor: Actor) -> Connection:
        return self.update_connection_status(connection_id, "accepted", actor)

    def reject_connection(self, connection_id: int, actor: Actor) -> Connection:
        return self.update_connection_status(connection_id, "rejected", actor)

    def delete_connection(self, connection_id: int, actor: Actor) -> None:
        connection = self.get_connection(connection_id)
        if not (
            actor.is_admin or actor.user_id in (connection.requester_id, connection.receiver_id)
        ):
            raise ForbiddenError("You can only delete your own connections")
        with self._atomic():
            self.session.execute(delete(Connection).where(Connection.id == connection.id))

    def _connections_with_other_user(self, rows: list[Connection], user_id: int) -> list[ConnectionWithUser]:
        others = self._summaries(
            row.receiver_id if row.requester_id == user_id else row.requester_id for row in rows
        )
        result: list[ConnectionWithUser] = []
        for row in rows:
            other_id = row.receiver_id if row.requester_id == user_id else row.requester_id
            if other_id in others:
                result.append(ConnectionWithUser(connection=ConnectionView.model_validate(row), user=others[other_id]))
        return result

    def list_connections(self, user_id: int) -> list[ConnectionWithUser]:
        rows = self.session.scalars(
            select(Connection)
            .where(
                or_(Connection.requester_id == user_id, Connection.receiver_id == user_id),
                Connection.status == "accepted",
            )
            .order_by(*newest_first(Connection))
        ).all()
        return self._connections_with_other_user(list(rows), user_id)

    def list_pending_connections(self, user_id: int) -> list[ConnectionWithUser]:
        rows = self.session.scalars(
            select(Connection)
            .where(Connection.receiver_id == user_id, Connection.status == "pending")
            .order_by(*newest_first(Connection))
        ).all()
        return self._connections_with_other_user(list(rows), user_id)

    def list_sent_pending_connections(self, user_id: int) -> list[ConnectionWithUser]:
        rows = self.session.scalars(
            select(Connection)
            .where(Connection.requester_id == user_id, Connection.status == "pending")
            .order_by(*newest_first(Connection))
        ).all()
        return self._connections_with_other_user(list(rows), user_id)

    # -- messages ---------------------------------------------------------

    def send_message(self, payload: MessageInsert) -> Message:
        self.get_user(payload.receiver_id)
        message = Message(sender_id=payload.sender_id, receiver_id=payload.receiver_id, content=payload.content)
        with self._atomic():
            self.session.add(message)
        self.session.refresh(message)
        logger.info("User %s sent message %s to %s", message.sender_id, message.id, message.receiver_id)
        return message

    def list_conversation(self, user_a: int, user_b: int) -> list[Message]:
        statement = (
            select(Message)
            .where(
                or_(
                    and_(Message.sender_id == user_a, Message.receiver_id == user_b),
                    and_(Message.sender_id == user_b, Message.receiver_id == user_a),
                )
            )
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        return list(self.session.scalars(statement).all())

    def list_inbox(self, user_id: int) -> list[MessageWithSender]:
        rows = self.session.execute(
            select(Message, User)
            .join(User, Message.sender_id == User.id)
            .where(Message.receiver_id == user_id)
            .order_by(*newest_first(Message))
        ).all()
        return [
            MessageWithSender(message=MessageView.model_validate(message), sender=UserSummary.model_validate(sender))
            for message, sender in rows
        ]

    def mark_conversation_read(self, actor: Actor, other_user_id: int) -> int:
        with self._atomic():
            result = self.session.execute(
                update(Message)
                .where(
                    Message.sender_id == other_user_id,
                    Message.receiver_id == actor.user_id,
                    Message.is_read.is_(False),
                )
                .values(is_read=True)
                .execution_options(synchronize_session=False)
            )
        return int(result.rowcount or 0)

    # -- companies --------------------------------------------------------

    def create_company(self, payload: CompanyInsert) -> Company:
        company = Company(**payload.model_dump())
        with self._atomic():
            self.session.add(company)
        self.session.refresh(company)
        logger.info("User %s created company %s", company.owner_id, company.id)
        return company

    def get_company(self, company_id: int) -> Company:
        return self._require(Company, company_id, "company")

    def list_companies(self) -> list[Company]:
        return list(self.session.scalars(select(Company).order_by(Company.name.asc(), Company.id.asc())).all())

    def list_companies_by_owner(self, owner_id: int) -> list[Company]:
        statement = select(Company).where(Company.owner_id == owner_id).order_by(*newest_first(Company))
        return list(self.session.scalars(statement).all())

    def update_company(self, company_id: int, values: dict[str, Any], actor: Actor) -> Company:
        company = self.get_company(company_id)
        self._authorize(actor, company.owner_id, "edit", "company")
        with self._atomic():
            for key, value in values.items():
                setattr(company, key, value)
        self.session.refresh(company)
        return company

    def delete_company(self, company_id: int, actor: Actor) -> None:
        company = self.get_company(company_id)
        self._authorize(actor, company.owner_id, "delete", "company")
        with self._atomic():
            self.session.execute(delete(Company).where(Company.id == company.id))
        logger.info("User %s deleted company %s", actor.user_id, company_id)

    def list_company_jobs(self, company_id: int) -> list[Job]:
        company = self.get_company(company_id)
        statement = (
            select(Job)
            .where(func.lower(Job.company) == company.name.lower(), Job.is_archived.is_(False))
            .order_by(*newest_first(Job))
        )
        return list(self.session.scalars(statement).all())

    # -- password resets --------------------------------------------------

    def _pending_reset_for(self, user_id: int) -> PasswordResetRequest | None:
        return self.session.scalar(
            select(PasswordResetRequest).where(
                PasswordResetRequest.user_id == user_id,
                PasswordResetRequest.status == "pending",
            )
        )

    def create_password_reset_request(self, email: str) -> PasswordResetRequest:
        user = self.get_user_by_email(email)
        if user is None:
            raise NotFoundError("account", email)

        with self._atomic():
            pending = self._pending_reset_for(user.id)
            if pending is not None:
                raise ConflictError("A password reset request is already pending for this account")
            request = PasswordResetRequest(user_id=user.id, email=user.email, status="pending")
            self.session.add(request)
        self.session.refresh(request)
        logger.info("Password reset request %s opened for user %s", request.id, user.id)
        return request

    def get_password_reset_request(self, request_id: int) -> PasswordResetRequest:
        return self._require(PasswordResetRequest, request_id, "password reset request")

    def list_password_reset_requests(self) -> list[PasswordResetRequest]:
        statement = select(PasswordResetRequest).order_by(*newest_first(PasswordResetRequest))
        return list(self.session.scalars(statement).all())

    def list_pending_password_reset_requests(self) -> list[PasswordResetRequest]:
        statement = (
            select(PasswordResetRequest)
            .where(PasswordResetRequest.status == "pending")
            .order_by(*newest_first(PasswordResetRequest))
        )
        return list(self.session.scalars(statement).all())

    def process_password_reset(
        self,
        request_id: int,
        decision: str,
        actor: Actor,
        *,
        admin_notes: str | None = None,
        temporary_password: str | None = None,
    ) -> PasswordResetRequest:
        self._require_admin(actor)
        request = self.get_password_reset_request(request_id)
        status = RESET_DECISIONS.get(decision)
        if status is None:
            raise ValidationError("action", "must be 'approve' or 'reject'")
        ensure_transition(PASSWORD_RESET_STATUS, request.status, status)
        if status == "approved":
            if not temporary_password or len(temporary_password) < 6:
                raise ValidationError("temporaryPassword", "a temporary password of at least 6 characters is required")
            if len(temporary_password.encode("utf-8")) > BCRYPT_MAX_BYTES:
                raise ValidationError("temporaryPassword", f"must be at most {BCRYPT_MAX_BYTES} bytes")

        with self._atomic():
            if status == "approved":
                user = self.get_user(request.user_id)
                user.password = hash_password(temporary_password)
                request.temporary_password = temporary_password
            request.status = status
            request.processed_at = datetime.now(UTC)
            request.processed_by = actor.user_id
            request.admin_notes = admin_notes
        self.session.refresh(request)
        logger.info("Admin %s %s password reset request %s", actor.user_id, status, request.id)
        return request

    def delete_password_reset_request(self, request_id: int, actor: Actor) -> None:
        self._require_admin(actor)
        request = self.get_password_reset_request(request_id)
        with self._atomic():
            self.session.execute(delete(PasswordResetRequest).where(PasswordResetRequest.id == request.id))

    # -- admin projections ------------------------------------------------

    def admin_list_users(self, actor: Actor, *, recruiters_only: bool = False) -> list[AdminUserView]:
        self._require_admin(actor)
        post_counts = (
            select(Post.user_id.label("user_id"), func.count(Post.id).label("n"))
            .group_by(Post.user_id)
            .subquery()
        )
        job_counts = (
            select(Job.user_id.label("user_id"), func.count(Job.id).label("n")).group_by(Job.user_id).subquery()
        )
        statement = (
            select(User, func.coalesce(post_counts.c.n, 0), func.coalesce(job_counts.c.n, 0))
            .outerjoin(post_counts, post_counts.c.user_id == User.id)
            .outerjoin(job_counts, job_counts.c.user_id == User.id)
            .order_by(User.id.asc())
        )
        if recruiters_only:
            statement = statement.where(User.is_recruiter.is_(True))
        return [
            AdminUserView(
                id=user.id,
                username=user.username,
                email=user.email,
                name=user.name,
                is_recruiter=user.is_recruiter,
                company=user.company,
                post_count=post_count,
                job_count=job_count,
            )
            for user, post_count, job_count in self.session.execute(statement).all()
        ]

    def admin_list_recruiters(self, actor: Actor) -> list[AdminUserView]:
        return self.admin_list_users(actor, recruiters_only=True)

    def admin_update_user(self, user_id: int, values: dict[str, Any], actor: Actor) -> User:
        self._require_admin(actor)
        return self.update_user(user_id, values, actor)

    def admin_list_posts(self, actor: Actor) -> list[AdminPostView]:
        self._require_admin(actor)
        like_counts = (
            select(Like.post_id.label("post_id"), func.count(Like.id).label("n"))
            .group_by(Like.post_id)
            .subquery()
        )
        comment_counts = (
            select(Comment.post_id.label("post_id"), func.count(Comment.id).label("n"))
            .group_by(Comment.post_id)
            .subquery()
        )
        statement = (
            select(Post, User.username, func.coalesce(like_counts.c.n, 0), func.coalesce(comment_counts.c.n, 0))
            .join(User, Post.user_id == User.id)
            .outerjoin(like_counts, like_counts.c.post_id == Post.id)
            .outerjoin(comment_counts, comment_counts.c.post_id == Post.id)
            .order_by(*newest_first(Post))
        )
        return [
            AdminPostView(
                id=post.id,
                content=post.content,
                created_at=post.created_at,
                is_anonymous=post.is_anonymous,
                community_id=post.community_id,
                author_id=post.user_id,
                author_username=username,
                like_count=like_count,
                comment_count=comment_count,
            )
            for post, username, like_count, comment_count in self.session.execute(statement).all()
        ]

    def admin_list_jobs(self, actor: Actor) -> list[AdminJobView]:
        self._require_admin(actor)
        statement = (
            select(Job, User.username, func.count(JobApplication.id))
            .join(User, Job.user_id == User.id)
            .outerjoin(JobApplication, JobApplication.job_id == Job.id)
            .group_by(Job.id, User.username)
            .order_by(*newest_first(Job))
        )
        return [
            AdminJobView(
                id=job.id,
                title=job.title,
                company=job.company,
                location=job.location,
                is_archived=job.is_archived,
                created_at=job.created_at,
                poster_id=job.user_id,
                poster_username=username,
                applicant_count=count,
            )
            for job, username, count in self.session.execute(statement).all()
        ]

    def admin_list_communities(self, actor: Actor) -> list[AdminCommunityView]:
        self._require_admin(actor)
        statement = (
            select(Community, User.username)
            .join(User, Community.created_by == User.id)
            .order_by(*newest_first(Community))
        )
        return [
            AdminCommunityView(
                id=community.id,
                name=community.name,
                description=community.description,
                member_count=community.member_count,
                is_private=community.is_private,
                created_at=community.created_at,
                creator_id=community.created_by,
                creator_username=username,
            )
            for community, username in self.session.execute(statement).all()
        ]

    def admin_analytics(self, actor: Actor) -> AdminAnalytics:
        self._require_admin(actor)
        return AdminAnalytics(
            user_total=self._count(User),
            recruiter_total=self._count(User, User.is_recruiter.is_(True)),
            job_total=self._count(Job),
            active_job_total=self._count(Job, Job.is_archived.is_(False)),
            application_total=self._count(JobApplication),
            community_total=self._count(Community),
            community_post_total=self._count(Post, Post.community_id.is_not(None)),
            pending_password_resets=self._count(PasswordResetRequest, PasswordResetRequest.status == "pending"),
        )
