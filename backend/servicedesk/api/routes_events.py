import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from servicedesk.services import resolve_services

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/v1/events")
async def events_socket(websocket: WebSocket) -> None:
    services = resolve_services(websocket.app)
    if services is None:
        await websocket.close(code=1013)
        return
    await websocket.accept()
    broadcaster = services.broadcaster
    await broadcaster.connect(websocket)
    try:
        while True:
            # Inbound frames are ignored; receiving keeps the disconnect observable.
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await broadcaster.disconnect(websocket)
