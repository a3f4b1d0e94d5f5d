"""Service request endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.actor import ActorContext
from api.deps import get_actor, get_db
from api.responses import ApiResponse, PaginatedResponse, paginated
from models.attachment import AttachmentResponse
from models.service_request import (
    CommentCreate,
    CommentResponse,
    Priority,
    ServiceRequestCreate,
    ServiceRequestDetailResponse,
    ServiceRequestResponse,
    ServiceRequestStatus,
    ServiceRequestStatusChange,
    ServiceRequestUpdate,
)
from models.status_history import StatusHistoryEntryResponse
from services import service_requests_service, storage

logger = logging.getLogger(__name__)

router = APIRouter()


def _server_error(action: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )


@router.get("/service-requests", response_model=PaginatedResponse[ServiceRequestResponse])
async def list_service_requests_endpoint(
    project_id: UUID | None = None,
    status_filter: ServiceRequestStatus | None = Query(None, alias="status"),
    priority: Priority | None = None,
    search: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    List service requests visible to the caller, newest first.

    Clients see the requests they raised, technicians the ones assigned to
    them and admins all of them.
    """
    requests, total = await service_requests_service.list_requests(
        db,
        actor=actor,
        project_id=project_id,
        status_filter=status_filter.value if status_filter else None,
        priority=priority.value if priority else None,
        search=search,
        page=page,
        limit=limit,
    )
    items = [ServiceRequestResponse.model_validate(sr) for sr in requests]
    return PaginatedResponse(**paginated(items, total, page, limit))


@router.post(
    "/service-requests",
    response_model=ApiResponse[ServiceRequestResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_service_request_endpoint(
    payload: ServiceRequestCreate,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Raise a service request on a project.

    The request number (SR-YYMM-NNNN) is assigned by the server.
    """
    try:
        service_request = await service_requests_service.create_request(db, actor=actor, payload=payload)
        return ApiResponse(
            data=ServiceRequestResponse.model_validate(service_request),
            message="Service request created",
        )
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to create service request")
        raise _server_error("create service request")


@router.get("/service-requests/{service_request_id}", response_model=ApiResponse[ServiceRequestDetailResponse])
async def get_service_request_endpoint(
    service_request_id: UUID,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    detail = await service_requests_service.get_request(db, actor=actor, service_request_id=service_request_id)
    return ApiResponse(data=detail)


@router.put("/service-requests/{service_request_id}", response_model=ApiResponse[ServiceRequestResponse])
async def update_service_request_endpoint(
    service_request_id: UUID,
    payload: ServiceRequestUpdate,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        service_request = await service_requests_service.update_request(
            db, actor=actor, service_request_id=service_request_id, payload=payload
        )
        return ApiResponse(
            data=ServiceRequestResponse.model_validate(service_request),
            message="Service request updated",
        )
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to update service request %s", service_request_id)
        raise _server_error("update service request")


@router.delete("/service-requests/{service_request_id}", response_model=ApiResponse[None])
async def delete_service_request_endpoint(
    service_request_id: UUID,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        await service_requests_service.delete_request(db, actor=actor, service_request_id=service_request_id)
        return ApiResponse(message="Service request deleted")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to delete service request %s", service_request_id)
        raise _server_error("delete service request")


@router.put("/service-requests/{service_request_id}/status", response_model=ApiResponse[ServiceRequestResponse])
async def change_service_request_status_endpoint(
    service_request_id: UUID,
    payload: ServiceRequestStatusChange,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Move a request through its lifecycle.

    Raises:
        400 for a transition the lifecycle does not allow, 403 for clients
        and technicians other than the assignee.
    """
    try:
        service_request = await service_requests_service.change_status(
            db,
            actor=actor,
            service_request_id=service_request_id,
            new_status=payload.status,
            notes=payload.notes,
        )
        return ApiResponse(
            data=ServiceRequestResponse.model_validate(service_request),
            message="Service request status updated",
        )
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to change status of service request %s", service_request_id)
        raise _server_error("update service request status")


@router.post(
    "/service-requests/{service_request_id}/comments",
    response_model=ApiResponse[CommentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_comment_endpoint(
    service_request_id: UUID,
    payload: CommentCreate,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        comment = await service_requests_service.add_comment(
            db, actor=actor, service_request_id=service_request_id, text=payload.text
        )
        return ApiResponse(data=CommentResponse.model_validate(comment), message="Comment added")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to add comment to service request %s", service_request_id)
        raise _server_error("add comment")


@router.post(
    "/service-requests/{service_request_id}/attachments",
    response_model=ApiResponse[list[AttachmentResponse]],
    status_code=status.HTTP_201_CREATED,
)
async def upload_attachments_endpoint(
    service_request_id: UUID,
    attachments: list[UploadFile] = File(...),
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        stored = await storage.save_uploads(attachments, "service-requests")
        saved = await service_requests_service.add_attachments(
            db, actor=actor, service_request_id=service_request_id, files=stored
        )
        return ApiResponse(
            data=[AttachmentResponse.model_validate(attachment) for attachment in saved],
            message="Attachments uploaded",
        )
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to upload attachments to service request %s", service_request_id)
        raise _server_error("upload attachments")


@router.get(
    "/service-requests/{service_request_id}/history",
    response_model=ApiResponse[list[StatusHistoryEntryResponse]],
)
async def service_request_history_endpoint(
    service_request_id: UUID,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    history = await service_requests_service.get_history(db, actor=actor, service_request_id=service_request_id)
    return ApiResponse(data=[StatusHistoryEntryResponse.model_validate(entry) for entry in history])
