from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from intranet.database import get_db
from intranet.models.user import User
from intranet.routers.auth_deps import get_current_org, get_current_user, require_permission
from intranet.schemas.directory import RoleSuggestion
from intranet.schemas.job_title import JobTitleCatalogue, JobTitleCreate, JobTitleResponse, JobTitleUpdate
from intranet.services.job_titles import (
    JobTitleService,
    get_common_job_titles,
    get_job_title_categories,
    get_job_titles_by_category,
    suggest_system_role,
)

router = APIRouter(
    prefix="/job-titles",
    tags=["job-titles"]
)


@router.get("/catalogue", response_model=JobTitleCatalogue)
def get_catalogue(
    category: Optional[str] = None,
    current_user: User = Depends(get_current_user),
):
    """Built-in hotel job titles, optionally narrowed to one category."""
    titles = get_job_titles_by_category(category) if category else get_common_job_titles()
    return JobTitleCatalogue(categories=get_job_title_categories(), titles=titles)


@router.get("/suggest-role", response_model=RoleSuggestion)
def suggest_role(
    job_title: str = Query(..., min_length=1, max_length=200),
    current_user: User = Depends(get_current_user),
):
    return RoleSuggestion(job_title=job_title, role=suggest_system_role(job_title))


@router.get("", response_model=List[JobTitleResponse])
def list_job_titles(
    category: Optional[str] = None,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(get_current_user),
):
    return JobTitleService(db, org_id).list(category=category, include_inactive=include_inactive)


@router.post("", response_model=JobTitleResponse, status_code=201)
def create_job_title(
    data: JobTitleCreate,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("job_titles", "manage")),
):
    return JobTitleService(db, org_id).create(data.title, data.category, data.default_role)


@router.patch("/{job_title_id}", response_model=JobTitleResponse)
def update_job_title(
    job_title_id: int,
    data: JobTitleUpdate,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("job_titles", "manage")),
):
    return JobTitleService(db, org_id).update(job_title_id, **data.model_dump(exclude_unset=True))


@router.delete("/{job_title_id}", response_model=JobTitleResponse)
def deactivate_job_title(
    job_title_id: int,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("job_titles", "manage")),
):
    return JobTitleService(db, org_id).deactivate(job_title_id)


@router.post("/seed")
def seed_job_titles(
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("job_titles", "manage")),
):
    added = JobTitleService(db, org_id).seed_defaults()
    return {"success": True, "added": added}
