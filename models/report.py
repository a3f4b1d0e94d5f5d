"""Response schemas for the admin reports. Reports are computed, never stored."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel


class DateRange(BaseModel):
    start_date: datetime
    end_date: datetime


class GroupCount(BaseModel):
    """Row count for one value of a grouped column (status, priority, ...)."""

    key: str | None
    count: int


class ProjectRequestCount(BaseModel):
    project_id: UUID
    project_name: str
    count: int


class TechnicianCount(BaseModel):
    technician_id: UUID
    technician_name: str
    count: int


class MonthCount(BaseModel):
    month: str  # YYYY-MM
    count: int


class CategoryExpenses(BaseModel):
    category: str
    total_amount: Decimal
    count: int


class ProjectsReport(BaseModel):
    projects_by_status: list[GroupCount]
    service_requests_by_project: list[ProjectRequestCount]
    date_range: DateRange


class ServiceRequestsReport(BaseModel):
    requests_by_status: list[GroupCount]
    requests_by_priority: list[GroupCount]
    requests_by_type: list[GroupCount]
    requests_by_month: list[MonthCount]
    date_range: DateRange


class RenditionsReport(BaseModel):
    renditions_by_status: list[GroupCount]
    renditions_by_technician: list[TechnicianCount]
    expenses_by_category: list[CategoryExpenses]
    date_range: DateRange


class PerformanceMetrics(BaseModel):
    assigned_requests: int
    completed_requests: int
    completion_rate: float  # percent
    renditions_submitted: int
    renditions_approved: int
    approval_rate: float  # percent
    avg_response_days: float | None = None


class TechnicianPerformance(BaseModel):
    technician_id: UUID
    technician_name: str
    metrics: PerformanceMetrics


class TechnicianPerformanceReport(BaseModel):
    technician_performance: list[TechnicianPerformance]
    date_range: DateRange


class MonthlyPeriod(BaseModel):
    year: int
    month: int
    start_date: datetime
    end_date: datetime


class MonthlySummary(BaseModel):
    new_projects: int
    completed_projects: int
    new_requests: int
    completed_requests: int
    new_renditions: int
    approved_renditions: int
    total_expenses: Decimal


class DayActivity(BaseModel):
    day: int
    activities: list[GroupCount]


class MonthlyReport(BaseModel):
    period: MonthlyPeriod
    summary: MonthlySummary
    activity_by_day: list[DayActivity]
