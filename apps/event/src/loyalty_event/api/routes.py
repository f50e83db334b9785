from fastapi import APIRouter

from .v1 import router as v1_router
from .v1.endpoints import events

api_router = APIRouter()
api_router.include_router(v1_router, prefix="/api/v1")

# Push subscriptions deliver to the bare path of the deployed service.
root_router = APIRouter()
root_router.include_router(events.router)
