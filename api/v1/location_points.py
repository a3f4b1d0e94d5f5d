"""Project location point endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.actor import ActorContext
from api.deps import get_actor, get_db
from api.responses import ApiResponse
from models.project_assets import LocationPointCreate, LocationPointResponse, LocationPointUpdate
from services import project_assets_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/projects/{project_id}/location-points", response_model=ApiResponse[list[LocationPointResponse]])
async def list_location_points_endpoint(
    project_id: UUID,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    points = await project_assets_service.list_location_points(db, actor=actor, project_id=project_id)
    return ApiResponse(data=[LocationPointResponse.model_validate(point) for point in points])


@router.post(
    "/projects/{project_id}/location-points",
    response_model=ApiResponse[LocationPointResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_location_point_endpoint(
    project_id: UUID,
    payload: LocationPointCreate,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        point = await project_assets_service.add_location_point(
            db, actor=actor, project_id=project_id, payload=payload
        )
        return ApiResponse(data=LocationPointResponse.model_validate(point), message="Location point added")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to add location point to project %s", project_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to add location point",
        )


@router.get(
    "/projects/{project_id}/location-points/{point_id}",
    response_model=ApiResponse[LocationPointResponse],
)
async def get_location_point_endpoint(
    project_id: UUID,
    point_id: UUID,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    point = await project_assets_service.get_location_point(
        db, actor=actor, project_id=project_id, point_id=point_id
    )
    return ApiResponse(data=LocationPointResponse.model_validate(point))


@router.put(
    "/projects/{project_id}/location-points/{point_id}",
    response_model=ApiResponse[LocationPointResponse],
)
async def update_location_point_endpoint(
    project_id: UUID,
    point_id: UUID,
    payload: LocationPointUpdate,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        point = await project_assets_service.update_location_point(
            db, actor=actor, project_id=project_id, point_id=point_id, payload=payload
        )
        return ApiResponse(data=LocationPointResponse.model_validate(point), message="Location point updated")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to update location point %s", point_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update location point",
        )


@router.delete("/projects/{project_id}/location-points/{point_id}", response_model=ApiResponse[None])
async def delete_location_point_endpoint(
    project_id: UUID,
    point_id: UUID,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        await project_assets_service.delete_location_point(
            db, actor=actor, project_id=project_id, point_id=point_id
        )
        return ApiResponse(message="Location point deleted")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to delete location point %s", point_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete location point",
        )
