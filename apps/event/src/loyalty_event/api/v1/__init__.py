from fastapi import APIRouter

from .endpoints import events, health, observability

router = APIRouter()
router.include_router(health.router, tags=["Health"])
router.include_router(events.router)
router.include_router(observability.router)
