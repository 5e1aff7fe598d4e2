"""API router: health, content and embeddings endpoints under /api/v1."""

from fastapi import APIRouter

from app.presentation.api.v1.endpoints.health import router as health_router
from app.presentation.api.v1.content_controller import router as content_router
from app.presentation.api.v1.embeddings_controller import router as embeddings_router

router = APIRouter(prefix="/api/v1")
router.include_router(health_router)
router.include_router(content_router)
router.include_router(embeddings_router)
