from fastapi import APIRouter

from adminws.api.ws.websocket import RegistryWebSocketEndpoint

router = APIRouter()


@router.websocket_route("/websocket/ws")
class Web(RegistryWebSocketEndpoint):
    """
    Push channel for balance updates and other server events.

    Clients connect with ``Sec-WebSocket-Protocol: Bearer, <token>``; every
    open tab of the same identity receives the events dispatched to it.
    """
