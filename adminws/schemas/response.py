from typing import Generic, TypeVar

from pydantic import BaseModel, Field

from adminws.constants import (
    BALANCE_UPDATE_MESSAGE,
    BALANCE_UPDATE_TOPIC,
    BROADCAST_RESPONSE_CODE,
)


T = TypeVar("T")


class BroadcastResponseModel(BaseModel, Generic[T]):  # type: ignore[misc]
    """Envelope of every server pushed event."""

    message: str
    code: int = BROADCAST_RESPONSE_CODE
    data: T

    def to_payload(self) -> bytes:
        return self.model_dump_json().encode()


class BalanceUpdate(BaseModel):  # type: ignore[misc]
    member_id: int
    currency_id: int
    balance: float
    action: str = "update"
    topic: str = BALANCE_UPDATE_TOPIC

    def envelope(self) -> BroadcastResponseModel["BalanceUpdate"]:
        return BroadcastResponseModel[BalanceUpdate](
            message=BALANCE_UPDATE_MESSAGE, data=self
        )


class SendToUserResponse(BaseModel):  # type: ignore[misc]
    message: str
    user_id: str
    connections_reached: int = Field(ge=0)


class ClientsResponse(BaseModel):  # type: ignore[misc]
    clients: list[str]


class ConnectionsResponse(BaseModel):  # type: ignore[misc]
    connections: dict[str, list[str]]


class ErrorResponse(BaseModel):  # type: ignore[misc]
    error: str
