"""
Bus message envelopes and per-type payload schemas.
"""

import json
import re
import uuid
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator


_INTEGER_TEXT = re.compile(r"[+-]?[0-9]+")


class MessageType(str, Enum):
    """Request types understood by the connector."""
    EXCHANGE_CREATE = "exchange.create"
    EXCHANGE_QUERY = "exchange.query"
    HEALTH_CHECK = "health.check"


class ResponseStatus(IntEnum):
    """Status codes carried in responses."""
    SUCCESS = 200
    BAD_REQUEST = 400
    NOT_FOUND = 404
    INTERNAL_ERROR = 500
    DATABASE_ERROR = 501
    INVALID_DATA = 422


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MessageDecodeError(ValueError):
    """Inbound body could not be decoded into a GameMessage."""


class GameMessage(BaseModel):
    """Request published by the game."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    message_id: str = Field(default_factory=lambda: str(uuid.uuid4()), alias="messageId")
    message_type: str = Field(default="", alias="messageType")
    player_id: str = Field(default="", alias="playerId")
    data: Dict[str, Any] = Field(alias="data")
    timestamp: datetime = Field(default_factory=_utc_now, alias="timestamp")

    @field_validator("message_id", "message_type", "player_id", mode="before")
    @classmethod
    def _coerce_identifiers(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return str(uuid.uuid4()) if info.field_name == "message_id" else ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @classmethod
    def decode(cls, raw: bytes) -> "GameMessage":
        """Decode a UTF-8 JSON body; raises MessageDecodeError on any problem."""
        try:
            document = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise MessageDecodeError(f"Body is not valid JSON: {exc}") from exc

        if not isinstance(document, dict) or not isinstance(document.get("data"), dict):
            raise MessageDecodeError("Body must be an object with a data object")

        try:
            return cls.model_validate(document)
        except ValidationError as exc:
            raise MessageDecodeError(str(exc)) from exc


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


class ExchangeCreatePayload(BaseModel):
    """Payload of exchange.create."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    opener: str = ""
    follower: str = ""
    opener_card: str = Field(default="", alias="openerCard")
    follower_card: str = Field(default="", alias="followerCard")

    @field_validator("opener", "follower", "opener_card", "follower_card", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _as_text(value)

    def missing_required(self) -> bool:
        return not self.opener or not self.follower


class ExchangeQueryPayload(BaseModel):
    """Payload of exchange.query; exchange_id is None when absent or unparseable."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    exchange_id: Optional[int] = Field(default=None, alias="exchangeId")

    @field_validator("exchange_id", mode="before")
    @classmethod
    def _parse_exchange_id(cls, value: Any) -> Optional[int]:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            text = value.strip()
            if _INTEGER_TEXT.fullmatch(text) is None:
                return None
            return int(text)
        return None


class GameResponse(BaseModel):
    """Response published back to the requester."""
    model_config = ConfigDict(populate_by_name=True)

    message_id: str = Field(alias="messageId")
    status_code: ResponseStatus = Field(default=ResponseStatus.SUCCESS, alias="statusCode")
    message: str = ""
    data: Optional[Dict[str, Any]] = None
    timestamp: datetime = Field(default_factory=_utc_now)

    def encode(self) -> bytes:
        """Serialize to the UTF-8 JSON wire format."""
        return json.dumps(self.model_dump(by_alias=True, mode="json")).encode("utf-8")
