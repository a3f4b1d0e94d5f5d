"""Service layer for the admin reports."""

import calendar
import logging
from collections import defaultdict
from datetime import UTC, date, datetime, time, timedelta

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.actor import ActorContext
from db import utcnow
from models.project import Project
from models.rendition import Rendition, RenditionStatus
from models.report import (
    CategoryExpenses,
    DateRange,
    DayActivity,
    GroupCount,
    MonthCount,
    MonthlyPeriod,
    MonthlyReport,
    MonthlySummary,
    PerformanceMetrics,
    ProjectRequestCount,
    ProjectsReport,
    RenditionsReport,
    ServiceRequestsReport,
    TechnicianCount,
    TechnicianPerformance,
    TechnicianPerformanceReport,
)
from models.service_request import ServiceRequest, ServiceRequestStatus
from repos import reports_repo
from services.access_policy import require_admin

logger = logging.getLogger(__name__)

TREND_MONTHS = 12


def months_before(moment: datetime, months: int) -> datetime:
    """Same day and time ``months`` calendar months earlier, clamped to the month's last day."""
    month_index = moment.year * 12 + moment.month - 1 - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def resolve_range(
    start_date: date | None,
    end_date: date | None,
    now: datetime | None = None,
) -> tuple[datetime, datetime]:
    """
    Turn optional calendar dates into a half-open UTC range.

    ``end_date`` is inclusive (the range ends at the following midnight); it
    defaults to now. ``start_date`` defaults to one month before the end.

    Raises:
        HTTPException: 400 if the range is empty
    """
    now = now or utcnow()
    end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=UTC) if end_date else now
    start = datetime.combine(start_date, time.min, tzinfo=UTC) if start_date else months_before(end, 1)
    if start >= end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start_date must not be after end_date",
        )
    return start, end


def _percent(part: int, whole: int) -> float:
    return round(part * 100 / whole, 2) if whole else 0.0


def _groups(rows) -> list[GroupCount]:
    return [GroupCount(key=key, count=count) for key, count in rows]


async def projects_report(
    session: AsyncSession,
    *,
    actor: ActorContext,
    start_date: date | None = None,
    end_date: date | None = None,
    now: datetime | None = None,
) -> ProjectsReport:
    """Projects created in the range by status, and service requests per project."""
    require_admin(actor, "Only administrators can view reports")
    start, end = resolve_range(start_date, end_date, now)

    by_status = await reports_repo.count_projects_by_status(session, start=start, end=end)
    by_project = await reports_repo.count_requests_by_project(session, start=start, end=end)
    return ProjectsReport(
        projects_by_status=_groups(by_status),
        service_requests_by_project=[
            ProjectRequestCount(project_id=project_id, project_name=name, count=count)
            for project_id, name, count in by_project
        ],
        date_range=DateRange(start_date=start, end_date=end),
    )


async def service_requests_report(
    session: AsyncSession,
    *,
    actor: ActorContext,
    start_date: date | None = None,
    end_date: date | None = None,
    now: datetime | None = None,
) -> ServiceRequestsReport:
    """
    Service requests created in the range by status, priority and type.

    The monthly trend ignores the range and always covers the last twelve months.
    """
    require_admin(actor, "Only administrators can view reports")
    now = now or utcnow()
    start, end = resolve_range(start_date, end_date, now)

    grouped = {
        field: _groups(await reports_repo.count_requests_grouped(session, field=field, start=start, end=end))
        for field in ("status", "priority", "request_type")
    }
    by_month = await reports_repo.count_requests_by_month(session, since=months_before(now, TREND_MONTHS))
    return ServiceRequestsReport(
        requests_by_status=grouped["status"],
        requests_by_priority=grouped["priority"],
        requests_by_type=grouped["request_type"],
        requests_by_month=[MonthCount(month=f"{year}-{month:02d}", count=count) for year, month, count in by_month],
        date_range=DateRange(start_date=start, end_date=end),
    )


async def renditions_report(
    session: AsyncSession,
    *,
    actor: ActorContext,
    start_date: date | None = None,
    end_date: date | None = None,
    now: datetime | None = None,
) -> RenditionsReport:
    """Renditions created in the range by status and technician, and their expenses per category."""
    require_admin(actor, "Only administrators can view reports")
    start, end = resolve_range(start_date, end_date, now)

    by_status = await reports_repo.count_renditions_by_status(session, start=start, end=end)
    by_technician = await reports_repo.count_renditions_by_technician(session, start=start, end=end)
    by_category = await reports_repo.sum_expenses_by_category(session, start=start, end=end)
    return RenditionsReport(
        renditions_by_status=_groups(by_status),
        renditions_by_technician=[
            TechnicianCount(technician_id=technician_id, technician_name=name, count=count)
            for technician_id, name, count in by_technician
        ],
        expenses_by_category=[
            CategoryExpenses(category=category, total_amount=total, count=count)
            for category, total, count in by_category
        ],
        date_range=DateRange(start_date=start, end_date=end),
    )


async def technician_performance_report(
    session: AsyncSession,
    *,
    actor: ActorContext,
    start_date: date | None = None,
    end_date: date | None = None,
    now: datetime | None = None,
) -> TechnicianPerformanceReport:
    """
    Per-technician workload and outcomes for work created in the range.

    Every technician appears, including those with no activity. Response time
    is the mean number of days from creation to completion of the completed
    requests assigned to the technician; None when there are none.
    """
    require_admin(actor, "Only administrators can view reports")
    start, end = resolve_range(start_date, end_date, now)

    assigned = await reports_repo.count_requests_per_assignee(session, start=start, end=end)
    completed = await reports_repo.count_requests_per_assignee(
        session, start=start, end=end, status=ServiceRequestStatus.COMPLETED.value
    )
    submitted = await reports_repo.count_renditions_per_technician(session, start=start, end=end)
    approved = await reports_repo.count_renditions_per_technician(
        session, start=start, end=end, status=RenditionStatus.APPROVED.value
    )
    spans: dict = defaultdict(list)
    for assignee, created_at, completed_at in await reports_repo.list_completed_request_spans(
        session, start=start, end=end
    ):
        spans[assignee].append((completed_at - created_at).total_seconds() / 86400)

    performance = []
    for technician in await reports_repo.list_technicians(session):
        tech_id = technician.id
        days = spans.get(tech_id)
        performance.append(
            TechnicianPerformance(
                technician_id=tech_id,
                technician_name=f"{technician.first_name} {technician.last_name}",
                metrics=PerformanceMetrics(
                    assigned_requests=assigned.get(tech_id, 0),
                    completed_requests=completed.get(tech_id, 0),
                    completion_rate=_percent(completed.get(tech_id, 0), assigned.get(tech_id, 0)),
                    renditions_submitted=submitted.get(tech_id, 0),
                    renditions_approved=approved.get(tech_id, 0),
                    approval_rate=_percent(approved.get(tech_id, 0), submitted.get(tech_id, 0)),
                    avg_response_days=round(sum(days) / len(days), 2) if days else None,
                ),
            )
        )
    return TechnicianPerformanceReport(
        technician_performance=performance,
        date_range=DateRange(start_date=start, end_date=end),
    )


async def monthly_report(
    session: AsyncSession,
    *,
    actor: ActorContext,
    year: int | None = None,
    month: int | None = None,
    now: datetime | None = None,
) -> MonthlyReport:
    """
    Activity summary for one calendar month (defaults to the current one).

    Completions and approvals count by when they happened, not by when the
    entity was created. Day-by-day activity lists service request status
    changes for every day of the month, empty days included.
    """
    require_admin(actor, "Only administrators can view reports")
    now = now or utcnow()
    year = year or now.year
    month = month or now.month
    days_in_month = calendar.monthrange(year, month)[1]
    start = datetime(year, month, 1, tzinfo=UTC)
    end = start + timedelta(days=days_in_month)

    summary = MonthlySummary(
        new_projects=await reports_repo.count_created(session, Project, start=start, end=end),
        completed_projects=await reports_repo.count_projects_completed(session, start=start, end=end),
        new_requests=await reports_repo.count_created(session, ServiceRequest, start=start, end=end),
        completed_requests=await reports_repo.count_requests_completed(session, start=start, end=end),
        new_renditions=await reports_repo.count_created(session, Rendition, start=start, end=end),
        approved_renditions=await reports_repo.count_renditions_approved(session, start=start, end=end),
        total_expenses=await reports_repo.sum_approved_expenses(session, start=start, end=end),
    )

    activity: dict[int, list[GroupCount]] = defaultdict(list)
    for day, status_value, count in await reports_repo.count_request_activity_by_day(session, start=start, end=end):
        activity[day].append(GroupCount(key=status_value, count=count))

    logger.debug("Monthly report %d-%02d computed", year, month)
    return MonthlyReport(
        period=MonthlyPeriod(year=year, month=month, start_date=start, end_date=end),
        summary=summary,
        activity_by_day=[
            DayActivity(day=day, activities=activity.get(day, []))
            for day in range(1, days_in_month + 1)
        ],
    )
