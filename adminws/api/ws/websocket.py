from starlette.endpoints import WebSocketEndpoint
from starlette.websockets import WebSocket

from adminws.api.ws.transport import StarletteTransport
from adminws.auth import decode_token, extract_websocket_token
from adminws.constants import WS_AUTH_SUBPROTOCOL, WS_POLICY_VIOLATION_CODE
from adminws.exceptions import AuthenticationError
from adminws.logging import clear_log_context, logger, set_log_context
from adminws.managers.connection import Connection
from adminws.managers.websocket_connection_manager import ConnectionRegistry
from adminws.utils.metrics import ws_connections_total


class RegistryWebSocketEndpoint(WebSocketEndpoint):  # type: ignore[misc]
    """
    WebSocket endpoint that admits authenticated clients to the registry.

    The bearer token is verified before the handshake is accepted; an
    unauthenticated client is refused with close code 1008 and never
    reaches the registry. An admitted client is tracked under its identity
    key until its reader/writer tasks stop.
    """

    async def dispatch(self) -> None:
        """
        Manages the WebSocket connection lifecycle.

        1. Verifies the token offered with the upgrade request.
        2. Registers a new ``Connection`` for the caller's identity.
        3. Accepts the handshake, echoing the ``Bearer`` subprotocol.
        4. Runs the connection's reader and writer tasks.
        5. Tears the connection down and unregisters it, whatever the
           reason it stopped.
        """
        websocket = WebSocket(self.scope, receive=self.receive, send=self.send)
        registry: ConnectionRegistry = websocket.app.state.registry

        token = extract_websocket_token(
            websocket.headers, websocket.query_params
        )
        try:
            user = decode_token(token)
        except AuthenticationError as ex:
            logger.info(
                f"WebSocket authentication failed ({ex.reason}), "
                "connection will be closed"
            )
            ws_connections_total.labels(status="rejected_auth").inc()
            await websocket.close(code=WS_POLICY_VIOLATION_CODE)
            return

        identity = user.websocket_key
        connection = Connection(identity, StarletteTransport(websocket))
        set_log_context(identity=identity, connection_id=connection.id)

        subprotocol = (
            WS_AUTH_SUBPROTOCOL
            if WS_AUTH_SUBPROTOCOL in self.scope.get("subprotocols", [])
            else None
        )

        try:
            await registry.register(identity, connection)
            ws_connections_total.labels(status="accepted").inc()
            logger.info(
                f"{identity} connected (conn: {connection.id}, total "
                "connections for identity: "
                f"{await registry.connection_count(identity)})"
            )

            await websocket.accept(subprotocol=subprotocol)
            await connection.run()
        finally:
            await connection.close()
            await registry.unregister(connection)
            logger.info(
                f"{identity} disconnected (conn: {connection.id}, remaining "
                f"connections: {await registry.connection_count(identity)})"
            )
            clear_log_context()
