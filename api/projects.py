from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user
from api.serializers import events_to_response, project_to_response, work_request_to_response
from database import get_db
from models import User
from schemas.work_request import ProjectCreate, WorkRequestCreate
from services import work_requests as wr_service

router = APIRouter(prefix="/api/projects", tags=["projects"])


@router.post("", response_model=dict, status_code=201)
async def create_project(body: ProjectCreate, db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)):
    project = await wr_service.create_project(db, user, body)
    return project_to_response(project)


@router.get("/{project_id}/work-requests", response_model=list[dict])
async def list_work_requests(project_id: str, db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)):
    work_requests = await wr_service.list_project_work_requests(db, user, project_id)
    return [work_request_to_response(wr, wr_service.role_on(wr, user)) for wr in work_requests]


@router.post("/{project_id}/work-requests", response_model=dict, status_code=201)
async def create_work_request(
    project_id: str,
    body: WorkRequestCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    wr, events = await wr_service.create_work_request(db, user, project_id, body)
    return {
        "workRequest": work_request_to_response(wr, "business"),
        "events": events_to_response(events),
    }
