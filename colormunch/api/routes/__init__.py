"""API routes package."""

from fastapi import APIRouter

from colormunch.api.routes import health, relay

api_router = APIRouter()

api_router.include_router(health.router, tags=["Health"])
api_router.include_router(relay.router, prefix="/relay", tags=["Relay"])
