from fastapi import APIRouter

from fundgate.api.v1 import campaigns, events

api_router = APIRouter()
api_router.include_router(campaigns.router)
api_router.include_router(events.router)
