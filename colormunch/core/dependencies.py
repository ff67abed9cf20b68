"""FastAPI dependencies for the relay."""

from typing import Annotated

import httpx
from fastapi import Depends, Request

from colormunch.services.relay_service import RelayService


async def get_upstream_client(request: Request) -> httpx.AsyncClient:
    """Shared HTTP client created in the app lifespan."""
    return request.app.state.upstream_client


def get_relay_service() -> RelayService:
    return RelayService()


UpstreamClient = Annotated[httpx.AsyncClient, Depends(get_upstream_client)]
Relay = Annotated[RelayService, Depends(get_relay_service)]
