"""Main API router that includes versioned routers."""

from fastapi import APIRouter

from api.v1 import (
    auth,
    expense_categories,
    health,
    location_points,
    milestones,
    notifications,
    projects,
    renditions,
    reports,
    service_requests,
    users,
)

# Main API router
api_router = APIRouter()

# Include v1 routers
v1_router = APIRouter(prefix="/v1")
v1_router.include_router(health.router, tags=["health"])
v1_router.include_router(auth.router, tags=["auth"])
v1_router.include_router(users.router, tags=["users"])
v1_router.include_router(projects.router, tags=["projects"])
v1_router.include_router(milestones.router, tags=["milestones"])
v1_router.include_router(location_points.router, tags=["location-points"])
v1_router.include_router(service_requests.router, tags=["service-requests"])
v1_router.include_router(renditions.router, tags=["renditions"])
v1_router.include_router(expense_categories.router, tags=["expense-categories"])
v1_router.include_router(notifications.router, tags=["notifications"])
v1_router.include_router(reports.router, tags=["reports"])

api_router.include_router(v1_router)
