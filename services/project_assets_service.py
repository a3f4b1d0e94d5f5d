"""Service layer for project milestones and location points."""

from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.actor import ActorContext
from models.attachment import AttachmentOwner, AttachmentResponse, StoredFile
from models.notification import EventType
from models.project_assets import (
    LocationPoint,
    LocationPointCreate,
    LocationPointResponse,
    LocationPointUpdate,
    Milestone,
    MilestoneCreate,
    MilestoneResponse,
    MilestoneUpdate,
)
from repos import attachments_repo, project_assets_repo
from services import notifications_service
from services.access_policy import require
from services.projects_service import get_accessible_project


def _milestone_response(milestone: Milestone, attachments) -> MilestoneResponse:
    return MilestoneResponse(
        id=milestone.id,
        project_id=milestone.project_id,
        position=milestone.position,
        title=milestone.title,
        description=milestone.description,
        created_by=milestone.created_by,
        created_at=milestone.created_at,
        updated_at=milestone.updated_at,
        attachments=[AttachmentResponse.model_validate(attachment) for attachment in attachments],
    )


async def milestone_responses(session: AsyncSession, *, project_id: UUID) -> list[MilestoneResponse]:
    milestones = await project_assets_repo.list_milestones(session, project_id=project_id)
    attachments = await attachments_repo.list_for_owners(
        session,
        owner_type=AttachmentOwner.MILESTONE.value,
        owner_ids=[milestone.id for milestone in milestones],
    )
    return [_milestone_response(milestone, attachments.get(milestone.id, [])) for milestone in milestones]


async def location_point_responses(session: AsyncSession, *, project_id: UUID) -> list[LocationPointResponse]:
    points = await project_assets_repo.list_location_points(session, project_id=project_id)
    return [LocationPointResponse.model_validate(point) for point in points]


async def _get_milestone_or_404(session: AsyncSession, project_id: UUID, milestone_id: UUID) -> Milestone:
    milestone = await project_assets_repo.get_milestone(session, project_id=project_id, milestone_id=milestone_id)
    if not milestone:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Milestone not found",
        )
    return milestone


async def add_milestone(
    session: AsyncSession,
    *,
    actor: ActorContext,
    project_id: UUID,
    payload: MilestoneCreate,
    files: list[StoredFile] | None = None,
) -> MilestoneResponse:
    """
    Append a milestone to a project the actor can access.

    The project's clients and technician, except the author, are notified.
    """
    project = await get_accessible_project(session, actor=actor, project_id=project_id)

    milestone = Milestone(
        project_id=project.id,
        title=payload.title,
        description=payload.description,
        created_by=actor.user_id,
    )
    milestone = await project_assets_repo.create_milestone(session, milestone)
    attachments = []
    if files:
        attachments = await attachments_repo.add_many(
            session,
            owner_type=AttachmentOwner.MILESTONE.value,
            owner_id=milestone.id,
            files=files,
            uploaded_by=actor.user_id,
        )
    event = await notifications_service.record_event(
        session,
        event_type=EventType.MILESTONE_ADDED,
        actor_id=actor.user_id,
        payload={
            "project_id": project.id,
            "project_name": project.name,
            "milestone_title": milestone.title,
        },
    )
    await session.commit()
    await notifications_service.dispatch(session, [event])
    return _milestone_response(milestone, attachments)


async def list_milestones(session: AsyncSession, *, actor: ActorContext, project_id: UUID) -> list[MilestoneResponse]:
    project = await get_accessible_project(session, actor=actor, project_id=project_id)
    return await milestone_responses(session, project_id=project.id)


async def get_milestone(
    session: AsyncSession,
    *,
    actor: ActorContext,
    project_id: UUID,
    milestone_id: UUID,
) -> MilestoneResponse:
    project = await get_accessible_project(session, actor=actor, project_id=project_id)
    milestone = await _get_milestone_or_404(session, project.id, milestone_id)
    attachments = await attachments_repo.list_for_owner(
        session, owner_type=AttachmentOwner.MILESTONE.value, owner_id=milestone.id
    )
    return _milestone_response(milestone, attachments)


async def update_milestone(
    session: AsyncSession,
    *,
    actor: ActorContext,
    project_id: UUID,
    milestone_id: UUID,
    payload: MilestoneUpdate,
    files: list[StoredFile] | None = None,
) -> MilestoneResponse:
    """Edit a milestone (its author or an admin); new files are appended."""
    project = await get_accessible_project(session, actor=actor, project_id=project_id)
    milestone = await _get_milestone_or_404(session, project.id, milestone_id)
    require(
        actor.is_admin or milestone.created_by == actor.user_id,
        "You do not have permission to modify this milestone",
    )

    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(milestone, field, value)
    milestone = await project_assets_repo.save_milestone(session, milestone)
    if files:
        await attachments_repo.add_many(
            session,
            owner_type=AttachmentOwner.MILESTONE.value,
            owner_id=milestone.id,
            files=files,
            uploaded_by=actor.user_id,
        )
    await session.commit()

    attachments = await attachments_repo.list_for_owner(
        session, owner_type=AttachmentOwner.MILESTONE.value, owner_id=milestone.id
    )
    return _milestone_response(milestone, attachments)


async def delete_milestone(
    session: AsyncSession,
    *,
    actor: ActorContext,
    project_id: UUID,
    milestone_id: UUID,
) -> None:
    project = await get_accessible_project(session, actor=actor, project_id=project_id)
    milestone = await _get_milestone_or_404(session, project.id, milestone_id)
    require(
        actor.is_admin or milestone.created_by == actor.user_id,
        "You do not have permission to delete this milestone",
    )
    await attachments_repo.delete_for_owner(
        session, owner_type=AttachmentOwner.MILESTONE.value, owner_id=milestone.id
    )
    await project_assets_repo.delete_milestone(session, milestone)
    await session.commit()


# Location points

async def _get_point_or_404(session: AsyncSession, project_id: UUID, point_id: UUID) -> LocationPoint:
    point = await project_assets_repo.get_location_point(session, project_id=project_id, point_id=point_id)
    if not point:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Location point not found",
        )
    return point


def _require_point_editor(project, actor: ActorContext) -> None:
    require(
        actor.is_admin or (actor.is_technician and project.technician_id == actor.user_id),
        "You do not have permission to modify this project's location points",
    )


async def add_location_point(
    session: AsyncSession,
    *,
    actor: ActorContext,
    project_id: UUID,
    payload: LocationPointCreate,
) -> LocationPoint:
    """Add a named point (admin or the project's technician)."""
    project = await get_accessible_project(session, actor=actor, project_id=project_id)
    _require_point_editor(project, actor)

    longitude, latitude = payload.coordinates
    point = LocationPoint(
        project_id=project.id,
        name=payload.name,
        point_type=payload.point_type.value,
        description=payload.description,
        longitude=longitude,
        latitude=latitude,
        created_by=actor.user_id,
    )
    point = await project_assets_repo.create_location_point(session, point)
    await session.commit()
    return point


async def list_location_points(session: AsyncSession, *, actor: ActorContext, project_id: UUID) -> list[LocationPoint]:
    project = await get_accessible_project(session, actor=actor, project_id=project_id)
    return await project_assets_repo.list_location_points(session, project_id=project.id)


async def get_location_point(
    session: AsyncSession,
    *,
    actor: ActorContext,
    project_id: UUID,
    point_id: UUID,
) -> LocationPoint:
    project = await get_accessible_project(session, actor=actor, project_id=project_id)
    return await _get_point_or_404(session, project.id, point_id)


async def update_location_point(
    session: AsyncSession,
    *,
    actor: ActorContext,
    project_id: UUID,
    point_id: UUID,
    payload: LocationPointUpdate,
) -> LocationPoint:
    project = await get_accessible_project(session, actor=actor, project_id=project_id)
    _require_point_editor(project, actor)
    point = await _get_point_or_404(session, project.id, point_id)

    data = payload.model_dump(exclude_unset=True)
    coordinates = data.pop("coordinates", None)
    if coordinates is not None:
        point.longitude, point.latitude = coordinates
    if data.get("point_type") is not None:
        data["point_type"] = data["point_type"].value
    for field, value in data.items():
        if value is not None:
            setattr(point, field, value)

    point = await project_assets_repo.save_location_point(session, point)
    await session.commit()
    return point


async def delete_location_point(
    session: AsyncSession,
    *,
    actor: ActorContext,
    project_id: UUID,
    point_id: UUID,
) -> None:
    project = await get_accessible_project(session, actor=actor, project_id=project_id)
    _require_point_editor(project, actor)
    point = await _get_point_or_404(session, project.id, point_id)
    await project_assets_repo.delete_location_point(session, point)
    await session.commit()
