"""
API v1 Router - Aggregates all v1 endpoints.

Usage in main.py:
    from api.routes.v1 import router as v1_router
    app.include_router(v1_router, prefix="/api/v1")
"""

from fastapi import APIRouter

from api.routes.v1 import documents, health, models

router = APIRouter()

# Health endpoints (no auth required)
router.include_router(
    health.router,
    tags=["Health"],
)

# Artifact versions and suggestions
router.include_router(
    documents.router,
    tags=["Documents"],
)

# Model picker
router.include_router(
    models.router,
    tags=["Models"],
)

__all__ = ["router"]
