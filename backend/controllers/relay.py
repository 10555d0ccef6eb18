import asyncio
import logging

from fastapi import APIRouter, Depends, WebSocket

from ..database import SessionLocal
from ..dependencies import get_relay
from ..services import yoga_service
from ..services.relay import PlaybackRelay
from ..utils.time_utils import ensure_utc

logger = logging.getLogger(__name__)

router = APIRouter(tags=["relay"])


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/ws/yoga/scheduled/{class_id}")
async def audio_relay(
    websocket: WebSocket,
    class_id: str,
    relay: PlaybackRelay = Depends(get_relay),
):
    """
    Registers the class with the playback relay and sends the client a single
    AUDIO_START message when the class begins, then closes. Frames sent by the
    client are ignored.
    """
    db = SessionLocal()
    try:
        sched = yoga_service.fetch_scheduled_class_by_id(db, class_id)
        if sched is not None:
            audio_url = sched.yoga_class_type.audio_url
            start = ensure_utc(sched.scheduled_start_time)
    finally:
        db.close()
    if sched is None:
        await websocket.close(code=4404, reason="Scheduled class not found")
        return

    await websocket.accept()
    queue = relay.worker_for(class_id).subscribe()
    get_message = asyncio.ensure_future(queue.get())
    client_gone = asyncio.ensure_future(_wait_for_disconnect(websocket))
    try:
        await relay.register(class_id, audio_url, start)
        done, _ = await asyncio.wait({get_message, client_gone}, return_when=asyncio.FIRST_COMPLETED)
        if get_message in done:
            await websocket.send_json(get_message.result())
            await websocket.close()
        else:
            logger.info("Relay client for class %s disconnected", class_id)
    finally:
        get_message.cancel()
        client_gone.cancel()
        relay.release(class_id, queue)
