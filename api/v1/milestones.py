"""Project milestone endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.actor import ActorContext
from api.deps import get_actor, get_db
from api.responses import ApiResponse
from models.project_assets import MilestoneCreate, MilestoneResponse, MilestoneUpdate
from services import project_assets_service, storage

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/projects/{project_id}/milestones", response_model=ApiResponse[list[MilestoneResponse]])
async def list_milestones_endpoint(
    project_id: UUID,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    milestones = await project_assets_service.list_milestones(db, actor=actor, project_id=project_id)
    return ApiResponse(data=milestones)


@router.post(
    "/projects/{project_id}/milestones",
    response_model=ApiResponse[MilestoneResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_milestone_endpoint(
    project_id: UUID,
    title: str = Form(..., min_length=1),
    description: str = Form(..., min_length=1),
    attachments: list[UploadFile] | None = File(None),
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Add a milestone, optionally with attachments (multipart form)."""
    try:
        stored = await storage.save_uploads(attachments or [], "milestones")
        milestone = await project_assets_service.add_milestone(
            db,
            actor=actor,
            project_id=project_id,
            payload=MilestoneCreate(title=title, description=description),
            files=stored,
        )
        return ApiResponse(data=milestone, message="Milestone added")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to add milestone to project %s", project_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to add milestone",
        )


@router.get("/projects/{project_id}/milestones/{milestone_id}", response_model=ApiResponse[MilestoneResponse])
async def get_milestone_endpoint(
    project_id: UUID,
    milestone_id: UUID,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    milestone = await project_assets_service.get_milestone(
        db, actor=actor, project_id=project_id, milestone_id=milestone_id
    )
    return ApiResponse(data=milestone)


@router.put("/projects/{project_id}/milestones/{milestone_id}", response_model=ApiResponse[MilestoneResponse])
async def update_milestone_endpoint(
    project_id: UUID,
    milestone_id: UUID,
    title: str | None = Form(None),
    description: str | None = Form(None),
    attachments: list[UploadFile] | None = File(None),
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        stored = await storage.save_uploads(attachments or [], "milestones")
        milestone = await project_assets_service.update_milestone(
            db,
            actor=actor,
            project_id=project_id,
            milestone_id=milestone_id,
            payload=MilestoneUpdate(title=title or None, description=description or None),
            files=stored,
        )
        return ApiResponse(data=milestone, message="Milestone updated")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to update milestone %s", milestone_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update milestone",
        )


@router.delete("/projects/{project_id}/milestones/{milestone_id}", response_model=ApiResponse[None])
async def delete_milestone_endpoint(
    project_id: UUID,
    milestone_id: UUID,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        await project_assets_service.delete_milestone(
            db, actor=actor, project_id=project_id, milestone_id=milestone_id
        )
        return ApiResponse(message="Milestone deleted")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to delete milestone %s", milestone_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete milestone",
        )
