"""Relay endpoint: the only way browser/Python clients reach the Kuler API."""

import json
import logging
import re
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse, Response

from colormunch.core.dependencies import Relay, UpstreamClient
from colormunch.schemas.feed import FeedResponse
from colormunch.services.relay_service import UpstreamError

logger = logging.getLogger(__name__)
router = APIRouter()

# JavaScript identifier, dotted paths allowed (e.g. ns.handler)
CALLBACK_PATTERN = re.compile(r"[A-Za-z_$][0-9A-Za-z_$]*(\.[A-Za-z_$][0-9A-Za-z_$]*)*")


def render(payload: Any, callback: Optional[str], request_id: Optional[str]) -> Response:
    """Return payload as JSON, or as a callback invocation when one was requested."""
    headers = {"X-Request-ID": request_id} if request_id else None
    if callback:
        body = f"{callback}({json.dumps(payload)});"
        return Response(content=body, media_type="text/javascript", headers=headers)
    return JSONResponse(content=payload, headers=headers)


@router.get("")
async def relay(
    request: Request,
    client: UpstreamClient,
    service: Relay,
    request_url: Optional[str] = None,
    callback: Optional[str] = None,
    requestid: Optional[str] = None,
):
    """
    Forward a Kuler API request.

    Responds with an empty result when the referer is not allow-listed, or
    when request_url does not target one of the registered Kuler endpoints.
    """
    if callback and not CALLBACK_PATTERN.fullmatch(callback):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid callback name",
        )

    if not service.is_referer_allowed(request.headers.get("referer")):
        logger.warning(f"Relay request refused for referer {request.headers.get('referer')!r}")
        return render([], callback, requestid)

    endpoint = service.resolve_endpoint(request_url)
    if endpoint is None:
        logger.warning(f"Relay request refused for url {request_url!r}")
        return render([], callback, requestid)

    try:
        items = await service.fetch_items(client, request_url, endpoint)
    except UpstreamError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(e),
        )

    payload = FeedResponse(items=items).model_dump(by_alias=True)
    return render(payload, callback, requestid)
