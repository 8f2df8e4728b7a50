from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Response, status
from sqlalchemy.orm import Session

from harmony.api.deps import get_actor, get_db, require_recruiter
from harmony.api.routes import no_content, with_server_fields
from harmony.api.schemas import ApplicationStatusRequest, ApplyRequest, SavedStateResponse
from harmony.db.repositories import Repository
from harmony.types import (
    Actor,
    ApplicationView,
    ApplicationWithApplicant,
    ApplicationWithJob,
    JobView,
    JobWithApplicantCount,
    SavedJobView,
)
from harmony.validation import validate_insert, validate_update

router = APIRouter(prefix="/api", tags=["jobs"])


@router.get("/jobs", response_model=list[JobView])
def list_jobs(
    include_archived: bool = Query(False, alias="includeArchived"),
    _: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> list[JobView]:
    repo = Repository(db)
    rows = repo.list_jobs() if include_archived else repo.list_active_jobs()
    return [JobView.model_validate(row) for row in rows]


@router.post("/jobs", response_model=JobView, status_code=status.HTTP_201_CREATED)
def create_job(
    payload: dict[str, Any] = Body(...),
    actor: Actor = Depends(require_recruiter),
    db: Session = Depends(get_db),
) -> JobView:
    data = with_server_fields(payload, user_id=actor.user_id)
    return JobView.model_validate(Repository(db).create_job(validate_insert("job", data), actor))


@router.get("/jobs/{job_id}", response_model=JobView)
def get_job(job_id: int, _: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> JobView:
    return JobView.model_validate(Repository(db).get_job(job_id))


@router.patch("/jobs/{job_id}", response_model=JobView)
def update_job(
    job_id: int,
    payload: dict[str, Any] = Body(...),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> JobView:
    values = validate_update("job", payload)
    return JobView.model_validate(Repository(db).update_job(job_id, values, actor))


@router.delete("/jobs/{job_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def delete_job(job_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> Response:
    Repository(db).delete_job(job_id, actor)
    return no_content()


@router.post("/jobs/{job_id}/archive", response_model=JobView)
def archive_job(job_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> JobView:
    return JobView.model_validate(Repository(db).archive_job(job_id, actor))


@router.post("/jobs/{job_id}/unarchive", response_model=JobView)
def unarchive_job(job_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> JobView:
    return JobView.model_validate(Repository(db).unarchive_job(job_id, actor))


@router.get("/jobs/{job_id}/applications", response_model=list[ApplicationWithApplicant])
def job_applications(
    job_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)
) -> list[ApplicationWithApplicant]:
    return Repository(db).list_applications_for_job(job_id, actor)


@router.post("/jobs/{job_id}/apply", response_model=ApplicationView, status_code=status.HTTP_201_CREATED)
def apply_to_job(
    job_id: int,
    payload: ApplyRequest | None = None,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> ApplicationView:
    data = {"jobId": job_id, "applicantId": actor.user_id, "note": payload.note if payload else None}
    application = Repository(db).apply_to_job(validate_insert("job_application", data), actor)
    return ApplicationView.model_validate(application)


@router.get("/jobs/{job_id}/saved", response_model=SavedStateResponse)
def saved_state(job_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> SavedStateResponse:
    return SavedStateResponse(saved=Repository(db).is_job_saved(actor.user_id, job_id))


@router.post("/jobs/{job_id}/save", response_model=SavedJobView, status_code=status.HTTP_201_CREATED)
def save_job(job_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> SavedJobView:
    data = {"jobId": job_id, "userId": actor.user_id}
    return SavedJobView.model_validate(Repository(db).save_job(validate_insert("saved_job", data)))


@router.delete("/jobs/{job_id}/save", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def unsave_job(job_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> Response:
    Repository(db).unsave_job(actor.user_id, job_id)
    return no_content()


@router.get("/applications", response_model=list[ApplicationWithJob])
def my_applications(actor: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> list[ApplicationWithJob]:
    return Repository(db).list_applications_for_user(actor.user_id)


@router.patch("/applications/{application_id}", response_model=ApplicationView)
def set_application_status(
    application_id: int,
    payload: ApplicationStatusRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> ApplicationView:
    application = Repository(db).set_application_status(application_id, payload.status, actor)
    return ApplicationView.model_validate(application)


@router.get("/recruiter/jobs", response_model=list[JobWithApplicantCount])
def recruiter_jobs(
    actor: Actor = Depends(require_recruiter), db: Session = Depends(get_db)
) -> list[JobWithApplicantCount]:
    return Repository(db).list_jobs_with_applicant_counts(actor.user_id)


@router.get("/recruiter/applications", response_model=list[ApplicationWithApplicant])
def recruiter_applications(
    actor: Actor = Depends(require_recruiter), db: Session = Depends(get_db)
) -> list[ApplicationWithApplicant]:
    return Repository(db).list_applications_for_recruiter(actor)
