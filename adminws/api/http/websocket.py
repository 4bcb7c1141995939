"""HTTP endpoints for pushing to and inspecting WebSocket connections."""

from typing import Annotated

from fastapi import APIRouter, Form, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from adminws.dependencies import AdminDep, RegistryDep, UserDep
from adminws.logging import logger
from adminws.schemas.response import (
    ClientsResponse,
    ConnectionsResponse,
    ErrorResponse,
    SendToUserResponse,
)
from adminws.services.balance_notifier import BalanceNotifier

router = APIRouter(prefix="/websocket", tags=["websocket"])


class BalanceBroadcastRequest(BaseModel):
    member_id: int
    currency_id: int
    balance: float


@router.post(
    "/broadcast",
    response_model=SendToUserResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Send a message to every open connection of the caller",
)
async def broadcast_to_user(
    user: UserDep,
    registry: RegistryDep,
    message: Annotated[str, Form()] = "",
) -> SendToUserResponse | JSONResponse:
    identity = user.websocket_key
    payload = f"{message} - {identity}".encode()

    sent = await registry.dispatch_to_identity(identity, payload)

    if sent == 0:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=ErrorResponse(
                error=f"No active connections for user {identity}"
            ).model_dump(),
        )

    return SendToUserResponse(
        message=f"Message sent to {sent} connection(s) for user {identity}",
        user_id=identity,
        connections_reached=sent,
    )


@router.post(
    "/balance",
    summary="Push a member balance update to admins and the member",
)
async def broadcast_balance(
    body: BalanceBroadcastRequest, user: AdminDep, registry: RegistryDep
) -> dict[str, int]:
    logger.info(
        f"{user.websocket_key} requested balance broadcast for member "
        f"{body.member_id}"
    )
    sent = await BalanceNotifier(registry).broadcast_balance(
        body.member_id, body.currency_id, body.balance
    )
    return {"connections_reached": sent}


@router.get("/clients", response_model=ClientsResponse)
async def get_clients(_: AdminDep, registry: RegistryDep) -> ClientsResponse:
    """List identities with at least one open connection."""
    return ClientsResponse(
        clients=sorted(await registry.enumerate_identities())
    )


@router.get("/connections", response_model=ConnectionsResponse)
async def get_connections(
    _: AdminDep, registry: RegistryDep
) -> ConnectionsResponse:
    """List connection ids per identity, in connect order."""
    return ConnectionsResponse(
        connections=await registry.enumerate_connections()
    )
