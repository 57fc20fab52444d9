"""Main API router that includes versioned routers."""

from fastapi import APIRouter

from api.v1 import (
    auth,
    dashboard,
    documents,
    health,
    invoices,
    milestones,
    notifications,
    payments,
    profiles,
    projects,
)

# Main API router
api_router = APIRouter()

# Include v1 routers
v1_router = APIRouter(prefix="/v1")
v1_router.include_router(health.router, tags=["health"])
v1_router.include_router(auth.router, tags=["auth"])
v1_router.include_router(profiles.router, tags=["profiles"])
v1_router.include_router(projects.router, tags=["projects"])
v1_router.include_router(milestones.router, tags=["milestones"])
v1_router.include_router(payments.router, tags=["payments"])
v1_router.include_router(invoices.router, tags=["invoices"])
v1_router.include_router(documents.router, tags=["documents"])
v1_router.include_router(notifications.router, tags=["notifications"])
v1_router.include_router(dashboard.router, tags=["dashboard"])

api_router.include_router(v1_router)
