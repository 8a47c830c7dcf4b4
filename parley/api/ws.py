"""
WebSocket transport.

One socket is one connection: frames are handled strictly one after the
other, and everything the engine publishes for the connection is drained
from its outbound queue by a sender task.
"""

import asyncio
from uuid import uuid4

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from parley.api.deps import Registry, Router, Service
from parley.core.logger import setup_logger
from parley.models.events import ErrorOut, RequestParseError, ServerEvent, ServerEventName, parse_request

router = APIRouter()

logger = setup_logger(__name__)


@router.websocket("/ws")
async def chat_socket(
    websocket: WebSocket,
    service: Service,
    registry: Registry,
    broadcast: Router,
) -> None:
    await websocket.accept()
    connection_id = str(uuid4())
    queue = await broadcast.register(connection_id)
    registry.open(connection_id)
    logger.info("Connection %s opened", connection_id)

    async def sender() -> None:
        while True:
            message = await queue.get()
            await websocket.send_text(message)

    sender_task = asyncio.create_task(sender())
    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", 1000))
            # Binary frames go through the same parser as text frames
            raw = frame.get("text")
            if raw is None:
                raw = frame.get("bytes") or b""
            try:
                request = parse_request(raw)
            except RequestParseError as exc:
                await service.reject_frame(connection_id, exc)
                continue
            try:
                await service.handle(connection_id, request)
            except Exception:
                logger.exception("Unhandled error on %s for %s", connection_id, request.event)
                await broadcast.to_connection(
                    connection_id,
                    ServerEvent.of(
                        ServerEventName.ERROR,
                        ErrorOut(event=request.event, code="INTERNAL", message="Internal server error"),
                    ),
                )
    except WebSocketDisconnect:
        pass
    finally:
        sender_task.cancel()
        await asyncio.gather(sender_task, return_exceptions=True)
        await registry.close(connection_id)
        logger.info("Connection %s closed", connection_id)
