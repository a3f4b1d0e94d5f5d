"""Project endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.actor import ActorContext
from api.deps import get_actor, get_db
from api.responses import ApiResponse, PaginatedResponse, paginated
from models.attachment import AttachmentOwner, AttachmentResponse
from models.project import (
    AddClientRequest,
    AssignTechnicianRequest,
    ProjectCreate,
    ProjectDetailResponse,
    ProjectMetricsSummary,
    ProjectResponse,
    ProjectStatus,
    ProjectStatusChange,
    ProjectUpdate,
)
from models.status_history import StatusHistoryEntryResponse
from services import projects_service, storage

logger = logging.getLogger(__name__)

router = APIRouter()


def _server_error(action: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )


@router.get("/projects", response_model=PaginatedResponse[ProjectResponse])
async def list_projects_endpoint(
    status_filter: ProjectStatus | None = Query(None, alias="status"),
    search: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    List projects visible to the caller.

    Admins see every project, technicians the ones assigned to them and
    clients the ones they are members of.
    """
    projects, total = await projects_service.list_projects(
        db,
        actor=actor,
        status_filter=status_filter.value if status_filter else None,
        search=search,
        page=page,
        limit=limit,
    )
    return PaginatedResponse(**paginated(projects, total, page, limit))


@router.get("/projects/metrics", response_model=ApiResponse[ProjectMetricsSummary])
async def project_metrics_endpoint(
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Project counts by status and technician (admin only)."""
    return ApiResponse(data=await projects_service.get_metrics_summary(db, actor=actor))


@router.post("/projects", response_model=ApiResponse[ProjectResponse], status_code=status.HTTP_201_CREATED)
async def create_project_endpoint(
    payload: ProjectCreate,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Create a project (admin only)."""
    try:
        project = await projects_service.create_project(db, actor=actor, payload=payload)
        return ApiResponse(data=project, message="Project created")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to create project")
        raise _server_error("create project")


@router.get("/projects/{project_id}", response_model=ApiResponse[ProjectDetailResponse])
async def get_project_endpoint(
    project_id: UUID,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Get a project with its milestones, photos, documents and location points.

    Raises:
        404 if not found, 403 if the caller has no access.
    """
    return ApiResponse(data=await projects_service.get_project(db, actor=actor, project_id=project_id))


@router.put("/projects/{project_id}", response_model=ApiResponse[ProjectResponse])
async def update_project_endpoint(
    project_id: UUID,
    payload: ProjectUpdate,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Update an existing project.

    Only provided fields will be updated.
    """
    try:
        project = await projects_service.update_project(db, actor=actor, project_id=project_id, payload=payload)
        return ApiResponse(data=project, message="Project updated")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to update project %s", project_id)
        raise _server_error("update project")


@router.delete("/projects/{project_id}", response_model=ApiResponse[None])
async def delete_project_endpoint(
    project_id: UUID,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        await projects_service.delete_project(db, actor=actor, project_id=project_id)
        return ApiResponse(message="Project deleted")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to delete project %s", project_id)
        raise _server_error("delete project")


@router.put("/projects/{project_id}/status", response_model=ApiResponse[ProjectResponse])
async def change_project_status_endpoint(
    project_id: UUID,
    payload: ProjectStatusChange,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        project = await projects_service.change_status(
            db,
            actor=actor,
            project_id=project_id,
            new_status=payload.status,
            comments=payload.comments,
        )
        return ApiResponse(data=project, message="Project status updated")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to change status of project %s", project_id)
        raise _server_error("update project status")


@router.put("/projects/{project_id}/technician", response_model=ApiResponse[ProjectResponse])
async def assign_technician_endpoint(
    project_id: UUID,
    payload: AssignTechnicianRequest,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        project = await projects_service.assign_technician(
            db, actor=actor, project_id=project_id, technician_id=payload.technician_id
        )
        return ApiResponse(data=project, message="Technician assigned")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to assign technician to project %s", project_id)
        raise _server_error("assign technician")


@router.post("/projects/{project_id}/clients", response_model=ApiResponse[ProjectResponse])
async def add_client_endpoint(
    project_id: UUID,
    payload: AddClientRequest,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        project = await projects_service.add_client(db, actor=actor, project_id=project_id, client_id=payload.client_id)
        return ApiResponse(data=project, message="Client added to project")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to add client to project %s", project_id)
        raise _server_error("add client to project")


@router.get("/projects/{project_id}/history", response_model=ApiResponse[list[StatusHistoryEntryResponse]])
async def project_history_endpoint(
    project_id: UUID,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    history = await projects_service.get_history(db, actor=actor, project_id=project_id)
    return ApiResponse(data=[StatusHistoryEntryResponse.model_validate(entry) for entry in history])


async def _upload_project_files(
    db: AsyncSession,
    actor: ActorContext,
    project_id: UUID,
    owner_type: AttachmentOwner,
    files: list[UploadFile],
    description: str | None,
) -> list[AttachmentResponse]:
    stored = await storage.save_uploads(files, f"projects/{owner_type.value}")
    attachments = await projects_service.add_files(
        db,
        actor=actor,
        project_id=project_id,
        owner_type=owner_type,
        files=stored,
        description=description,
    )
    return [AttachmentResponse.model_validate(attachment) for attachment in attachments]


@router.post(
    "/projects/{project_id}/photos",
    response_model=ApiResponse[list[AttachmentResponse]],
    status_code=status.HTTP_201_CREATED,
)
async def upload_photos_endpoint(
    project_id: UUID,
    photos: list[UploadFile] = File(...),
    description: str | None = Form(None),
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        data = await _upload_project_files(db, actor, project_id, AttachmentOwner.PROJECT_PHOTO, photos, description)
        return ApiResponse(data=data, message="Photos uploaded")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to upload photos to project %s", project_id)
        raise _server_error("upload photos")


@router.delete("/projects/{project_id}/photos/{photo_id}", response_model=ApiResponse[None])
async def delete_photo_endpoint(
    project_id: UUID,
    photo_id: UUID,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        photo = await projects_service.remove_file(
            db,
            actor=actor,
            project_id=project_id,
            owner_type=AttachmentOwner.PROJECT_PHOTO,
            attachment_id=photo_id,
        )
        await storage.delete_file(photo.url)
        return ApiResponse(message="Photo deleted")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to delete photo %s of project %s", photo_id, project_id)
        raise _server_error("delete photo")


@router.post(
    "/projects/{project_id}/documents",
    response_model=ApiResponse[list[AttachmentResponse]],
    status_code=status.HTTP_201_CREATED,
)
async def upload_documents_endpoint(
    project_id: UUID,
    documents: list[UploadFile] = File(...),
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        data = await _upload_project_files(db, actor, project_id, AttachmentOwner.PROJECT_DOCUMENT, documents, None)
        return ApiResponse(data=data, message="Documents uploaded")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to upload documents to project %s", project_id)
        raise _server_error("upload documents")


@router.delete("/projects/{project_id}/documents/{document_id}", response_model=ApiResponse[None])
async def delete_document_endpoint(
    project_id: UUID,
    document_id: UUID,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        document = await projects_service.remove_file(
            db,
            actor=actor,
            project_id=project_id,
            owner_type=AttachmentOwner.PROJECT_DOCUMENT,
            attachment_id=document_id,
        )
        await storage.delete_file(document.url)
        return ApiResponse(message="Document deleted")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to delete document %s of project %s", document_id, project_id)
        raise _server_error("delete document")
