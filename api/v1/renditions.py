"""Rendition (field work report) endpoints."""

import logging
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.actor import ActorContext
from api.deps import get_actor, get_db
from api.responses import ApiResponse, PaginatedResponse, paginated
from models.attachment import AttachmentResponse
from models.rendition import (
    ExpenseCreate,
    ExpenseResponse,
    RenditionApprove,
    RenditionCreate,
    RenditionDetailResponse,
    RenditionReject,
    RenditionResponse,
    RenditionStatus,
    RenditionUpdate,
)
from models.status_history import StatusHistoryEntryResponse
from services import renditions_service, storage

logger = logging.getLogger(__name__)

router = APIRouter()


def _server_error(action: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )


@router.get("/renditions", response_model=PaginatedResponse[RenditionResponse])
async def list_renditions_endpoint(
    project_id: UUID | None = None,
    service_request_id: UUID | None = None,
    status_filter: RenditionStatus | None = Query(None, alias="status"),
    search: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """List renditions. Technicians see their own, admins all, clients none."""
    renditions, total = await renditions_service.list_renditions(
        db,
        actor=actor,
        project_id=project_id,
        service_request_id=service_request_id,
        status_filter=status_filter.value if status_filter else None,
        search=search,
        page=page,
        limit=limit,
    )
    items = [RenditionResponse.model_validate(rendition) for rendition in renditions]
    return PaginatedResponse(**paginated(items, total, page, limit))


@router.post("/renditions", response_model=ApiResponse[RenditionResponse], status_code=status.HTTP_201_CREATED)
async def create_rendition_endpoint(
    payload: RenditionCreate,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    File a rendition against a service request.

    The folio (RND-YYMMDD-NNN) is assigned by the server. Only
    technicians may file; when the request is assigned, only its assignee.
    """
    try:
        rendition = await renditions_service.create_rendition(db, actor=actor, payload=payload)
        return ApiResponse(data=RenditionResponse.model_validate(rendition), message="Rendition created")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to create rendition")
        raise _server_error("create rendition")


@router.get("/renditions/{rendition_id}", response_model=ApiResponse[RenditionDetailResponse])
async def get_rendition_endpoint(
    rendition_id: UUID,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return ApiResponse(data=await renditions_service.get_rendition(db, actor=actor, rendition_id=rendition_id))


@router.put("/renditions/{rendition_id}", response_model=ApiResponse[RenditionResponse])
async def update_rendition_endpoint(
    rendition_id: UUID,
    payload: RenditionUpdate,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        rendition = await renditions_service.update_rendition(
            db, actor=actor, rendition_id=rendition_id, payload=payload
        )
        return ApiResponse(data=RenditionResponse.model_validate(rendition), message="Rendition updated")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to update rendition %s", rendition_id)
        raise _server_error("update rendition")


@router.delete("/renditions/{rendition_id}", response_model=ApiResponse[None])
async def delete_rendition_endpoint(
    rendition_id: UUID,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        await renditions_service.delete_rendition(db, actor=actor, rendition_id=rendition_id)
        return ApiResponse(message="Rendition deleted")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to delete rendition %s", rendition_id)
        raise _server_error("delete rendition")


@router.put("/renditions/{rendition_id}/review", response_model=ApiResponse[RenditionResponse])
async def review_rendition_endpoint(
    rendition_id: UUID,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Take a submitted rendition under review (admin only)."""
    try:
        rendition = await renditions_service.start_review(db, actor=actor, rendition_id=rendition_id)
        return ApiResponse(data=RenditionResponse.model_validate(rendition), message="Rendition under review")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to start review of rendition %s", rendition_id)
        raise _server_error("start rendition review")


@router.put("/renditions/{rendition_id}/approve", response_model=ApiResponse[RenditionResponse])
async def approve_rendition_endpoint(
    rendition_id: UUID,
    payload: RenditionApprove,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Approve a rendition (admin only).

    The related service request is moved to Completed in the same request.
    """
    try:
        rendition = await renditions_service.approve_rendition(
            db, actor=actor, rendition_id=rendition_id, review_comments=payload.review_comments
        )
        return ApiResponse(data=RenditionResponse.model_validate(rendition), message="Rendition approved")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to approve rendition %s", rendition_id)
        raise _server_error("approve rendition")


@router.put("/renditions/{rendition_id}/reject", response_model=ApiResponse[RenditionResponse])
async def reject_rendition_endpoint(
    rendition_id: UUID,
    payload: RenditionReject,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        rendition = await renditions_service.reject_rendition(
            db, actor=actor, rendition_id=rendition_id, payload=payload
        )
        return ApiResponse(data=RenditionResponse.model_validate(rendition), message="Rendition rejected")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to reject rendition %s", rendition_id)
        raise _server_error("reject rendition")


@router.post(
    "/renditions/{rendition_id}/expenses",
    response_model=ApiResponse[ExpenseResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_expense_endpoint(
    rendition_id: UUID,
    category: str = Form(..., min_length=1),
    amount: Decimal = Form(..., gt=0),
    description: str = Form(..., min_length=1),
    payment_proof: UploadFile | None = File(None),
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Add an expense (multipart form), optionally with a payment proof file."""
    payload = ExpenseCreate(category=category, amount=amount, description=description)
    try:
        proof = await storage.save_upload(payment_proof, "expenses") if payment_proof else None
        expense = await renditions_service.add_expense(
            db, actor=actor, rendition_id=rendition_id, payload=payload, payment_proof=proof
        )
        return ApiResponse(data=ExpenseResponse.model_validate(expense), message="Expense added")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to add expense to rendition %s", rendition_id)
        raise _server_error("add expense")


@router.post(
    "/renditions/{rendition_id}/attachments",
    response_model=ApiResponse[list[AttachmentResponse]],
    status_code=status.HTTP_201_CREATED,
)
async def upload_rendition_attachments_endpoint(
    rendition_id: UUID,
    attachments: list[UploadFile] = File(...),
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        stored = await storage.save_uploads(attachments, "renditions")
        saved = await renditions_service.add_attachments(db, actor=actor, rendition_id=rendition_id, files=stored)
        return ApiResponse(
            data=[AttachmentResponse.model_validate(attachment) for attachment in saved],
            message="Attachments uploaded",
        )
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to upload attachments to rendition %s", rendition_id)
        raise _server_error("upload attachments")


@router.get("/renditions/{rendition_id}/history", response_model=ApiResponse[list[StatusHistoryEntryResponse]])
async def rendition_history_endpoint(
    rendition_id: UUID,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    history = await renditions_service.get_history(db, actor=actor, rendition_id=rendition_id)
    return ApiResponse(data=[StatusHistoryEntryResponse.model_validate(entry) for entry in history])
