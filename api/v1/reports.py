"""Admin report endpoints. Read-only aggregates over projects, requests and renditions."""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.actor import ActorContext
from api.deps import get_actor, get_db
from api.responses import ApiResponse
from models.report import (
    MonthlyReport,
    ProjectsReport,
    RenditionsReport,
    ServiceRequestsReport,
    TechnicianPerformanceReport,
)
from services import reports_service

router = APIRouter()


@router.get("/reports/projects", response_model=ApiResponse[ProjectsReport])
async def projects_report_endpoint(
    start_date: date | None = None,
    end_date: date | None = None,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Projects by status and service requests per project, for the date range."""
    report = await reports_service.projects_report(db, actor=actor, start_date=start_date, end_date=end_date)
    return ApiResponse(data=report)


@router.get("/reports/service-requests", response_model=ApiResponse[ServiceRequestsReport])
async def service_requests_report_endpoint(
    start_date: date | None = None,
    end_date: date | None = None,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    report = await reports_service.service_requests_report(
        db, actor=actor, start_date=start_date, end_date=end_date
    )
    return ApiResponse(data=report)


@router.get("/reports/renditions", response_model=ApiResponse[RenditionsReport])
async def renditions_report_endpoint(
    start_date: date | None = None,
    end_date: date | None = None,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    report = await reports_service.renditions_report(db, actor=actor, start_date=start_date, end_date=end_date)
    return ApiResponse(data=report)


@router.get("/reports/technician-performance", response_model=ApiResponse[TechnicianPerformanceReport])
async def technician_performance_report_endpoint(
    start_date: date | None = None,
    end_date: date | None = None,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    report = await reports_service.technician_performance_report(
        db, actor=actor, start_date=start_date, end_date=end_date
    )
    return ApiResponse(data=report)


@router.get("/reports/monthly", response_model=ApiResponse[MonthlyReport])
async def monthly_report_endpoint(
    year: int | None = Query(None, ge=2000, le=9999),
    month: int | None = Query(None, ge=1, le=12),
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Activity summary for one month, the current one by default."""
    report = await reports_service.monthly_report(db, actor=actor, year=year, month=month)
    return ApiResponse(data=report)
