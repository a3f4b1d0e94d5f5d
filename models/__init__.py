"""Database models."""

from db import Base

# Import all models so Alembic can detect them
from models.user import User
from models.project import Project, ProjectClient
from models.project_assets import Milestone, LocationPoint
from models.attachment import Attachment
from models.service_request import ServiceRequest, ServiceRequestComment
from models.rendition import Rendition, RenditionExpense
from models.status_history import StatusHistoryEntry
from models.notification import Notification, NotificationEvent
from models.sequence_counter import SequenceCounter
from models.expense_category import ExpenseCategory

__all__ = [
    "Base",
    "User",
    "Project",
    "ProjectClient",
    "Milestone",
    "LocationPoint",
    "Attachment",
    "ServiceRequest",
    "ServiceRequestComment",
    "Rendition",
    "RenditionExpense",
    "StatusHistoryEntry",
    "Notification",
    "NotificationEvent",
    "SequenceCounter",
    "ExpenseCategory",
]
