from typing import Annotated

from fastapi import APIRouter, Depends, Query, WebSocket

from app.realtime.gateway import RealtimeGateway, gateway

router = APIRouter(prefix="", tags=["realtime"])


def get_gateway() -> RealtimeGateway:
    return gateway


def _bearer_token(websocket: WebSocket) -> str | None:
    authorization = websocket.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials
    return None


@router.websocket("/ws")
async def realtime_endpoint(
    websocket: WebSocket,
    realtime: Annotated[RealtimeGateway, Depends(get_gateway)],
    token: str | None = Query(None),
):
    """
    Live channel for new messages, typing indicators and read receipts.

    Authenticate with ``?token=<jwt>`` or an ``Authorization: Bearer`` header.
    """
    await realtime.serve(websocket, token or _bearer_token(websocket))
