"""
NATS request/response gateway for game messages.

Each delivery on a subscribed subject is handled on its own task; the
handler always produces a GameResponse which is published to the
delivery's reply subject.
"""

import asyncio
import json
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, TYPE_CHECKING

from shared.errors import BusConnectionError, GatewayStateError
from shared.logging import get_logger, set_message_context

from ..domain.exchange import Exchange, utc_now
from ..domain.exchange_repository import ExchangeRepository
from .models import (
    ExchangeCreatePayload,
    ExchangeQueryPayload,
    GameMessage,
    GameResponse,
    MessageDecodeError,
    ResponseStatus,
)

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


Handler = Callable[[Any], Awaitable[GameResponse]]


class GatewayState(str, Enum):
    """Lifecycle of a gateway instance."""
    STOPPED = "stopped"
    LISTENING = "listening"
    STOPPING = "stopping"


@dataclass(frozen=True)
class GatewaySubjects:
    """Subjects the gateway subscribes to."""
    exchange_create: str = "game.exchange.create"
    exchange_query: str = "game.exchange.query"
    health_check: str = "game.health.check"


def _peek_message_id(raw: bytes) -> str:
    """Best-effort messageId extraction; a fresh id when the body is unusable."""
    try:
        document = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError, AttributeError):
        return str(uuid.uuid4())
    if isinstance(document, dict) and document.get("messageId"):
        return str(document["messageId"])
    return str(uuid.uuid4())


class MessageGateway:
    """Dispatches bus requests to the exchange repository and replies."""

    def __init__(
        self,
        bus: Any,
        repository: ExchangeRepository,
        *,
        service_name: str = "TursoConnector",
        subjects: Optional[GatewaySubjects] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        if bus is None:
            raise ValueError("bus is required")
        if repository is None:
            raise ValueError("repository is required")

        self.bus = bus
        self.repository = repository
        self.service_name = service_name
        self.subjects = subjects or GatewaySubjects()
        self.metrics = metrics
        self.logger = get_logger("connector.gateway")

        self._state = GatewayState.STOPPED
        self._used = False
        self._subscriptions: List[Any] = []
        self._inflight: Set[asyncio.Task] = set()

    @property
    def state(self) -> GatewayState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return bool(getattr(self.bus, "is_connected", False))

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    def _routes(self) -> Dict[str, Handler]:
        return {
            self.subjects.exchange_create: self.handle_exchange_create,
            self.subjects.exchange_query: self.handle_exchange_query,
            self.subjects.health_check: self.handle_health_check,
        }

    async def start(self) -> None:
        """Subscribe to every subject and enter the listening state."""
        if self._used:
            raise GatewayStateError(
                "Gateway instances cannot be restarted; construct a new one",
                details={"state": self._state.value},
            )
        self._used = True

        self.logger.info("Starting NATS message listeners")
        try:
            for subject, handler in self._routes().items():
                subscription = await self.bus.subscribe(subject, cb=self._callback(subject, handler))
                self._subscriptions.append(subscription)
        except Exception as exc:
            self.logger.error("Failed to subscribe", error=str(exc))
            await self._unsubscribe_all()
            await self._close_bus()
            raise BusConnectionError(f"Failed to subscribe: {exc}") from exc

        self._state = GatewayState.LISTENING
        self.logger.info("NATS listeners started", subscriptions=len(self._subscriptions))

    async def listen(self, stop_event: asyncio.Event) -> None:
        """Listen until ``stop_event`` is set or the task is cancelled."""
        await self.start()
        try:
            await stop_event.wait()
            self.logger.info("Shutdown requested")
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Unsubscribe, let in-flight handlers finish, close the bus."""
        if self._state != GatewayState.LISTENING:
            return

        self._state = GatewayState.STOPPING
        self.logger.info("Stopping NATS gateway", inflight=len(self._inflight))

        await self._unsubscribe_all()

        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

        await self._close_bus()

        self._state = GatewayState.STOPPED
        self.logger.info("NATS gateway stopped")

    async def _unsubscribe_all(self) -> None:
        for subscription in self._subscriptions:
            try:
                await subscription.unsubscribe()
            except Exception as exc:
                self.logger.warning("Error unsubscribing", error=str(exc))
        self._subscriptions.clear()

    async def _close_bus(self) -> None:
        try:
            await self.bus.close()
        except Exception as exc:
            self.logger.warning("Error closing NATS connection", error=str(exc))

    def _callback(self, subject: str, handler: Handler) -> Callable[[Any], Awaitable[None]]:
        async def on_message(msg: Any) -> None:
            if self._state != GatewayState.LISTENING:
                self.logger.debug("Dropping delivery received while not listening", subject=subject)
                return
            task = asyncio.create_task(self._dispatch(subject, handler, msg))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

        return on_message

    async def _dispatch(self, subject: str, handler: Handler, msg: Any) -> None:
        set_message_context(subject=subject)
        start_time = time.time()

        try:
            response = await handler(msg)
        except Exception as exc:
            self.logger.error("Unhandled error in message handler", error=str(exc), exc_info=True)
            if self.metrics is not None:
                self.metrics.record_error(type(exc).__name__)
            response = GameResponse(
                message_id=_peek_message_id(getattr(msg, "data", b"")),
                status_code=ResponseStatus.INTERNAL_ERROR,
                message="Internal server error",
            )

        await self.send_response(getattr(msg, "reply", None), response)

        if self.metrics is not None:
            self.metrics.record_message(subject, response.status_code.name, time.time() - start_time)

    def _decode(self, msg: Any) -> Optional[GameMessage]:
        try:
            message = GameMessage.decode(msg.data)
        except MessageDecodeError as exc:
            self.logger.warning("Invalid message format", error=str(exc))
            return None
        set_message_context(message_id=message.message_id)
        self.logger.info("Received request", message_type=message.message_type, player_id=message.player_id)
        return message

    @staticmethod
    def _bad_request() -> GameResponse:
        return GameResponse(
            message_id=str(uuid.uuid4()),
            status_code=ResponseStatus.BAD_REQUEST,
            message="Invalid message format",
        )

    async def handle_exchange_create(self, msg: Any) -> GameResponse:
        """Validate and persist a new exchange."""
        message = self._decode(msg)
        if message is None:
            return self._bad_request()

        response = GameResponse(message_id=message.message_id)
        try:
            payload = ExchangeCreatePayload.model_validate(message.data)
            if payload.missing_required():
                response.status_code = ResponseStatus.INVALID_DATA
                response.message = "Missing required fields: opener and follower"
                return response

            exchange = Exchange(
                opener=payload.opener,
                follower=payload.follower,
                opener_card=payload.opener_card,
                follower_card=payload.follower_card,
                occurred_at=utc_now(),
            )
            persisted = await self.repository.insert(exchange)

            if persisted is not None:
                response.status_code = ResponseStatus.SUCCESS
                response.message = "Exchange created successfully"
                response.data = {
                    "exchangeId": persisted.id,
                    "createdAt": persisted.occurred_at.isoformat(),
                }
                self.logger.info(
                    "Exchange created successfully",
                    exchange_id=persisted.id,
                    opener=persisted.opener,
                    follower=persisted.follower,
                )
            else:
                response.status_code = ResponseStatus.DATABASE_ERROR
                response.message = "Failed to create exchange in database"
        except Exception as exc:
            self.logger.error("Error handling exchange create", error=str(exc), exc_info=True)
            response.status_code = ResponseStatus.INTERNAL_ERROR
            response.message = "Internal server error"
            response.data = None

        return response

    async def handle_exchange_query(self, msg: Any) -> GameResponse:
        """Fetch one exchange by id, or all of them."""
        message = self._decode(msg)
        if message is None:
            return self._bad_request()

        response = GameResponse(message_id=message.message_id)
        try:
            payload = ExchangeQueryPayload.model_validate(message.data)

            if payload.exchange_id is not None:
                exchange = await self.repository.fetch_by_id(payload.exchange_id)
                if exchange is not None:
                    response.status_code = ResponseStatus.SUCCESS
                    response.message = "Exchange found"
                    response.data = {"exchange": exchange.to_payload()}
                else:
                    response.status_code = ResponseStatus.NOT_FOUND
                    response.message = "Exchange not found"
            else:
                exchanges = await self.repository.fetch_all()
                response.status_code = ResponseStatus.SUCCESS
                response.message = f"Found {len(exchanges)} exchanges"
                response.data = {"exchanges": [exchange.to_payload() for exchange in exchanges]}

            self.logger.info("Exchange query processed", status=response.status_code.name)
        except Exception as exc:
            self.logger.error("Error handling exchange query", error=str(exc), exc_info=True)
            response.status_code = ResponseStatus.INTERNAL_ERROR
            response.message = "Internal server error"
            response.data = None

        return response

    async def handle_health_check(self, msg: Any) -> GameResponse:
        """Liveness answer; never touches the database."""
        response = GameResponse(
            message_id=_peek_message_id(msg.data),
            status_code=ResponseStatus.SUCCESS,
            message="Service is healthy",
            data={
                "service": self.service_name,
                "status": "running",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "natsConnected": self.is_connected,
            },
        )
        self.logger.info("Health check request processed")
        return response

    async def send_response(self, reply: Optional[str], response: GameResponse) -> None:
        """Publish ``response`` to ``reply``; dropped when there is no reply subject."""
        if not reply:
            self.logger.debug("No reply subject; response dropped", status=response.status_code.name)
            return

        try:
            await self.bus.publish(reply, response.encode())
            self.logger.info("Response sent", reply=reply, status=response.status_code.name)
        except Exception as exc:
            self.logger.error("Failed to send response", reply=reply, error=str(exc))
