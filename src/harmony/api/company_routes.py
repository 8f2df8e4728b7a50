from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Response, status
from sqlalchemy.orm import Session

from harmony.api.deps import get_actor, get_db
from harmony.api.routes import no_content, with_server_fields
from harmony.db.repositories import Repository
from harmony.types import Actor, CompanyView, JobView
from harmony.validation import validate_insert, validate_update

router = APIRouter(prefix="/api/companies", tags=["companies"])


@router.get("", response_model=list[CompanyView])
def list_companies(
    owner_id: int | None = Query(None, alias="ownerId"),
    _: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> list[CompanyView]:
    repo = Repository(db)
    rows = repo.list_companies() if owner_id is None else repo.list_companies_by_owner(owner_id)
    return [CompanyView.model_validate(row) for row in rows]


@router.post("", response_model=CompanyView, status_code=status.HTTP_201_CREATED)
def create_company(
    payload: dict[str, Any] = Body(...),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> CompanyView:
    data = with_server_fields(payload, owner_id=actor.user_id)
    return CompanyView.model_validate(Repository(db).create_company(validate_insert("company", data)))


@router.get("/{company_id}", response_model=CompanyView)
def get_company(company_id: int, _: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> CompanyView:
    return CompanyView.model_validate(Repository(db).get_company(company_id))


@router.patch("/{company_id}", response_model=CompanyView)
def update_company(
    company_id: int,
    payload: dict[str, Any] = Body(...),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> CompanyView:
    values = validate_update("company", payload)
    return CompanyView.model_validate(Repository(db).update_company(company_id, values, actor))


@router.delete("/{company_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def delete_company(company_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> Response:
    Repository(db).delete_company(company_id, actor)
    return no_content()


@router.get("/{company_id}/jobs", response_model=list[JobView])
def company_jobs(company_id: int, _: Actor = Depends(get_actor), db: Session = Depends(get_db)) -> list[JobView]:
    return [JobView.model_validate(row) for row in Repository(db).list_company_jobs(company_id)]
