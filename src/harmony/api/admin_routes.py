from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Response, status
from sqlalchemy.orm import Session

from harmony.api.deps import get_db, require_admin
from harmony.api.routes import no_content
from harmony.api.schemas import ResetDecisionRequest
from harmony.db.repositories import Repository
from harmony.types import (
    Actor,
    AdminAnalytics,
    AdminCommunityView,
    AdminJobView,
    AdminPostView,
    AdminUserView,
    PasswordResetRequestView,
    UserView,
)
from harmony.validation import validate_update

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/users", response_model=list[AdminUserView])
def list_users(actor: Actor = Depends(require_admin), db: Session = Depends(get_db)) -> list[AdminUserView]:
    return Repository(db).admin_list_users(actor)


@router.get("/recruiters", response_model=list[AdminUserView])
def list_recruiters(actor: Actor = Depends(require_admin), db: Session = Depends(get_db)) -> list[AdminUserView]:
    return Repository(db).admin_list_recruiters(actor)


@router.patch("/users/{user_id}", response_model=UserView)
def update_user(
    user_id: int,
    payload: dict[str, Any] = Body(...),
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
) -> UserView:
    values = validate_update("admin_user", payload)
    return UserView.model_validate(Repository(db).admin_update_user(user_id, values, actor))


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def delete_user(user_id: int, actor: Actor = Depends(require_admin), db: Session = Depends(get_db)) -> Response:
    Repository(db).delete_user(user_id, actor)
    return no_content()


@router.get("/posts", response_model=list[AdminPostView])
def list_posts(actor: Actor = Depends(require_admin), db: Session = Depends(get_db)) -> list[AdminPostView]:
    return Repository(db).admin_list_posts(actor)


@router.delete("/posts/{post_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def delete_post(post_id: int, actor: Actor = Depends(require_admin), db: Session = Depends(get_db)) -> Response:
    Repository(db).delete_post(post_id, actor)
    return no_content()


@router.get("/jobs", response_model=list[AdminJobView])
def list_jobs(actor: Actor = Depends(require_admin), db: Session = Depends(get_db)) -> list[AdminJobView]:
    return Repository(db).admin_list_jobs(actor)


@router.delete("/jobs/{job_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def delete_job(job_id: int, actor: Actor = Depends(require_admin), db: Session = Depends(get_db)) -> Response:
    Repository(db).delete_job(job_id, actor)
    return no_content()


@router.get("/communities", response_model=list[AdminCommunityView])
def list_communities(
    actor: Actor = Depends(require_admin), db: Session = Depends(get_db)
) -> list[AdminCommunityView]:
    return Repository(db).admin_list_communities(actor)


@router.delete("/communities/{community_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def delete_community(
    community_id: int, actor: Actor = Depends(require_admin), db: Session = Depends(get_db)
) -> Response:
    Repository(db).delete_community(community_id, actor)
    return no_content()


@router.get("/analytics", response_model=AdminAnalytics)
def analytics(actor: Actor = Depends(require_admin), db: Session = Depends(get_db)) -> AdminAnalytics:
    return Repository(db).admin_analytics(actor)


@router.get("/password-resets", response_model=list[PasswordResetRequestView])
def list_password_resets(
    pending: bool = Query(False),
    _: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
) -> list[PasswordResetRequestView]:
    repo = Repository(db)
    rows = repo.list_pending_password_reset_requests() if pending else repo.list_password_reset_requests()
    return [PasswordResetRequestView.model_validate(row) for row in rows]


@router.post("/password-resets/{request_id}/process", response_model=PasswordResetRequestView)
def process_password_reset(
    request_id: int,
    payload: ResetDecisionRequest,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
) -> PasswordResetRequestView:
    request = Repository(db).process_password_reset(
        request_id,
        payload.action,
        actor,
        admin_notes=payload.admin_notes,
        temporary_password=payload.temporary_password,
    )
    return PasswordResetRequestView.model_validate(request)


@router.delete("/password-resets/{request_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def delete_password_reset(
    request_id: int, actor: Actor = Depends(require_admin), db: Session = Depends(get_db)
) -> Response:
    Repository(db).delete_password_reset_request(request_id, actor)
    return no_content()
