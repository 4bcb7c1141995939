from starlette.websockets import WebSocket, WebSocketState

from adminws.constants import (
    WS_KEEPALIVE_PING,
    WS_KEEPALIVE_PONG,
    WS_NORMAL_CLOSURE_CODE,
)
from adminws.managers.connection import Frame, FrameKind


class StarletteTransport:
    """
    Adapts an accepted Starlette WebSocket to the connection transport.

    ASGI servers answer protocol level pings themselves and never surface
    pongs to the application, so keep-alive is done with text frames: the
    server sends ``ping`` and the client answers ``pong``.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket

    async def receive(self) -> Frame:
        message = await self.websocket.receive()

        if message["type"] == "websocket.disconnect":
            return Frame(
                FrameKind.DISCONNECT,
                code=int(message.get("code") or WS_NORMAL_CLOSURE_CODE),
            )

        text = message.get("text")
        if text is not None:
            if text == WS_KEEPALIVE_PONG:
                return Frame(FrameKind.PONG)
            return Frame(FrameKind.MESSAGE, data=text)

        return Frame(FrameKind.MESSAGE, data=message.get("bytes"))

    async def send(self, payload: bytes) -> None:
        # Payloads are opaque; JSON events go out as text frames
        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError:
            await self.websocket.send_bytes(payload)
        else:
            await self.websocket.send_text(text)

    async def ping(self) -> None:
        await self.websocket.send_text(WS_KEEPALIVE_PING)

    async def close(self, code: int = WS_NORMAL_CLOSURE_CODE) -> None:
        if WebSocketState.DISCONNECTED in (
            self.websocket.client_state,
            self.websocket.application_state,
        ):
            return
        await self.websocket.close(code=code)
