"""Job registry and maintainer endpoints."""

from fastapi import APIRouter, Query, status

from cronwatch.dependencies import ApiKey, DBSession
from cronwatch.schemas.job import (
    JobCreate,
    JobResponse,
    JobUpdate,
    MaintainerCreate,
    MaintainerResponse,
    MaintainerSet,
)
from cronwatch.services import maintainers, registry

router = APIRouter()

# REST callers are authenticated by API key only; activity entries name them "api"
API_ACTOR = "api"


@router.get("/jobs", response_model=list[JobResponse])
async def list_jobs(
    db: DBSession,
    active_only: bool = Query(default=False, description="Only monitored jobs"),
) -> list[JobResponse]:
    """List registered jobs ordered by name."""
    jobs = await registry.list_jobs(db, active_only=active_only)
    return [JobResponse.model_validate(job) for job in jobs]


@router.post(
    "/jobs",
    response_model=JobResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[ApiKey],
)
async def create_job(body: JobCreate, db: DBSession) -> JobResponse:
    """Register a job. 409 if the name is taken."""
    job = await registry.register_job(db, body, actor=API_ACTOR)
    return JobResponse.model_validate(job)


@router.get("/jobs/{name}", response_model=JobResponse)
async def get_job(name: str, db: DBSession) -> JobResponse:
    job = await registry.require_job(db, name)
    return JobResponse.model_validate(job)


@router.patch("/jobs/{name}", response_model=JobResponse, dependencies=[ApiKey])
async def update_job(name: str, body: JobUpdate, db: DBSession) -> JobResponse:
    """Apply a partial update. Only fields present in the body change."""
    job = await registry.update_job(db, name, body, actor=API_ACTOR)
    return JobResponse.model_validate(job)


@router.post("/jobs/{name}/deactivate", response_model=JobResponse, dependencies=[ApiKey])
async def deactivate_job(name: str, db: DBSession) -> JobResponse:
    """Stop monitoring a job. Its run history is kept."""
    job = await registry.deactivate_job(db, name, actor=API_ACTOR)
    return JobResponse.model_validate(job)


@router.post("/jobs/{name}/activate", response_model=JobResponse, dependencies=[ApiKey])
async def activate_job(name: str, db: DBSession) -> JobResponse:
    job = await registry.activate_job(db, name, actor=API_ACTOR)
    return JobResponse.model_validate(job)


@router.delete("/jobs/{name}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[ApiKey])
async def delete_job(name: str, db: DBSession) -> None:
    """Remove a job together with its runs and maintainers."""
    await registry.delete_job(db, name, actor=API_ACTOR)


@router.get("/jobs/{name}/maintainers", response_model=list[MaintainerResponse])
async def list_maintainers(name: str, db: DBSession) -> list[MaintainerResponse]:
    await registry.require_job(db, name)
    rows = await maintainers.list_maintainers(db, name)
    return [MaintainerResponse.model_validate(row) for row in rows]


@router.post(
    "/jobs/{name}/maintainers",
    response_model=MaintainerResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[ApiKey],
)
async def add_maintainer(name: str, body: MaintainerCreate, db: DBSession) -> MaintainerResponse:
    """Add a maintainer. Adding an existing maintainer is a no-op."""
    row = await maintainers.add_maintainer(db, name, body.user_id, added_by=API_ACTOR)
    return MaintainerResponse.model_validate(row)


@router.delete(
    "/jobs/{name}/maintainers/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[ApiKey],
)
async def remove_maintainer(name: str, user_id: str, db: DBSession) -> None:
    await maintainers.remove_maintainer(db, name, user_id, actor=API_ACTOR)


@router.put(
    "/jobs/{name}/maintainers",
    response_model=list[MaintainerResponse],
    dependencies=[ApiKey],
)
async def set_maintainers(name: str, body: MaintainerSet, db: DBSession) -> list[MaintainerResponse]:
    """Replace the full maintainer list of a job."""
    rows = await maintainers.set_maintainers(db, name, body.user_ids, added_by=API_ACTOR)
    return [MaintainerResponse.model_validate(row) for row in rows]
