"""
Messaging package: NATS gateway plus request/response envelopes.
"""

from .gateway import GatewayState, GatewaySubjects, MessageGateway
from .models import (
    ExchangeCreatePayload,
    ExchangeQueryPayload,
    GameMessage,
    GameResponse,
    MessageDecodeError,
    MessageType,
    ResponseStatus,
)

__all__ = [
    "ExchangeCreatePayload",
    "ExchangeQueryPayload",
    "GameMessage",
    "GameResponse",
    "GatewayState",
    "GatewaySubjects",
    "MessageDecodeError",
    "MessageGateway",
    "MessageType",
    "ResponseStatus",
]
