import asyncio
import logging
from concurrent.futures import Future

from starlette.websockets import WebSocket, WebSocketState

log = logging.getLogger(__name__)


class WebSocketConnection:
    """
    Fan-out handle for one browser socket.

    ``send`` may be called from any thread (MQTT network loop, sync route
    workers); the frame is scheduled on the event loop that owns the socket.
    """

    def __init__(self, websocket: WebSocket, loop: asyncio.AbstractEventLoop):
        self.websocket = websocket
        self.loop = loop

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
            and not self.loop.is_closed()
        )

    def send(self, payload: str) -> None:
        future = asyncio.run_coroutine_threadsafe(self.websocket.send_text(payload), self.loop)
        future.add_done_callback(_log_failure)


def _log_failure(future: Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        log.warning("WebSocket push failed: %s", exc)
