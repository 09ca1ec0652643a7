"""
TursoConnector service: composition and runtime.
"""

import asyncio
import signal
from dataclasses import dataclass
from typing import Any, Optional

import nats

from shared.config import ConnectorConfig, get_config
from shared.errors import BusConnectionError, DatabaseUnavailableError
from shared.logging import configure_logging, get_logger
from shared.metrics import MetricsCollector, get_metrics_collector
from shared.retry import ResilientExecutor, RetryConfig

from .adapters.throttle import ConnectionThrottle
from .adapters.turso_client import TRANSIENT_HTTP_ERRORS, TursoClient
from .caching.query_cache import QueryResultCache
from .domain.exchange_repository import ExchangeRepository
from .health.aggregator import HealthAggregator, database_check, memory_check
from .messaging.gateway import GatewaySubjects, MessageGateway


@dataclass
class Components:
    """Components built ahead of the bus connection."""
    metrics: MetricsCollector
    throttle: ConnectionThrottle
    executor: ResilientExecutor
    cache: Optional[QueryResultCache]
    client: TursoClient
    repository: ExchangeRepository
    health: HealthAggregator


def build_components(config: ConnectorConfig, *, transport: Any = None) -> Components:
    """Construct components in dependency order."""
    metrics = get_metrics_collector(config.service_name)
    throttle = ConnectionThrottle(config.database_pool_size)
    executor = ResilientExecutor(
        RetryConfig(
            max_attempts=config.max_retry_attempts,
            base_delay=config.retry_base_delay_seconds,
        ),
        transient_exceptions=TRANSIENT_HTTP_ERRORS,
        metrics=metrics,
    )
    cache = QueryResultCache(config.cache_max_size) if config.cache_enabled else None
    client = TursoClient(
        config.database_url,
        config.auth_token.get_secret_value(),
        throttle=throttle,
        executor=executor,
        cache=cache,
        metrics=metrics,
        timeout=config.database_timeout_seconds,
        transport=transport,
    )
    repository = ExchangeRepository(client)
    health = HealthAggregator(
        {
            "database": database_check(client),
            "memory": memory_check(config.memory_threshold_mb),
        },
        timeout=config.health_check_timeout_seconds,
        metrics=metrics,
    )
    return Components(
        metrics=metrics,
        throttle=throttle,
        executor=executor,
        cache=cache,
        client=client,
        repository=repository,
        health=health,
    )


async def connect_bus(config: ConnectorConfig) -> Any:
    """Connect to NATS, raising BusConnectionError on failure."""
    logger = get_logger("connector.bus")

    async def error_cb(error: Exception) -> None:
        logger.error("NATS error occurred", error=str(error))

    async def disconnected_cb() -> None:
        logger.warning("Disconnected from NATS")

    async def reconnected_cb() -> None:
        logger.info("Reconnected to NATS")

    try:
        client = await nats.connect(
            servers=config.nats_url,
            max_reconnect_attempts=config.nats_max_reconnect_attempts,
            reconnect_time_wait=config.nats_reconnect_time_wait,
            error_cb=error_cb,
            disconnected_cb=disconnected_cb,
            reconnected_cb=reconnected_cb,
        )
    except Exception as exc:
        logger.error("Failed to connect to NATS", url=config.nats_url, error=str(exc))
        raise BusConnectionError(f"Failed to connect to NATS: {exc}", details={"url": config.nats_url}) from exc

    logger.info("Connected to NATS", url=config.nats_url)
    return client


class ConnectorService:
    """Runs the gateway over fully assembled components."""

    def __init__(self, config: ConnectorConfig, components: Optional[Components] = None):
        self.config = config
        self.components = components or build_components(config)
        self.logger = get_logger("connector.service")
        self.gateway: Optional[MessageGateway] = None

    def build_gateway(self, bus: Any) -> MessageGateway:
        return MessageGateway(
            bus,
            self.components.repository,
            service_name=self.config.service_name,
            subjects=GatewaySubjects(
                exchange_create=self.config.exchange_create_subject,
                exchange_query=self.config.exchange_query_subject,
                health_check=self.config.health_check_subject,
            ),
            metrics=self.components.metrics,
        )

    async def initialize_database(self) -> None:
        """Verify connectivity and create the exchange table when configured."""
        client = self.components.client
        if not await client.test_connection():
            raise DatabaseUnavailableError(
                "Cannot start without database connection",
                details={"database_url": client.database_url},
            )
        self.logger.info("Database connected", database_url=client.database_url)

        if self.config.initialize_database:
            if not await self.components.repository.create_table():
                raise DatabaseUnavailableError("Database initialization failed")
            self.logger.info("Database initialized successfully")

    async def monitor_health(self, stop_event: asyncio.Event) -> None:
        """Log the aggregate health status every interval until stopped."""
        interval = self.config.health_check_interval_seconds
        while not stop_event.is_set():
            status = await self.components.health.check_health()
            self.logger.info("Health status", **status.to_dict())
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue

    async def run(self, stop_event: asyncio.Event, bus: Any = None) -> None:
        """Serve bus requests until ``stop_event`` is set."""
        monitor: Optional[asyncio.Task] = None
        try:
            await self.initialize_database()

            if bus is None:
                bus = await connect_bus(self.config)
            self.gateway = self.build_gateway(bus)

            if self.config.enable_metrics:
                self.components.metrics.start_metrics_server(self.config.metrics_port)
                self.logger.info("Metrics server started", port=self.config.metrics_port)

            monitor = asyncio.create_task(self.monitor_health(stop_event))
            self.logger.info("Starting NATS messaging service for game communication")
            await self.gateway.listen(stop_event)
        finally:
            if monitor is not None:
                monitor.cancel()
                await asyncio.gather(monitor, return_exceptions=True)
            await self.components.client.close()
            self.logger.info("NATS messaging service stopped")


async def serve(config: ConnectorConfig) -> None:
    """Run the connector until SIGINT or SIGTERM."""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:  # pragma: no cover - Windows event loops
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop_event.set))

    await ConnectorService(config).run(stop_event)


def main() -> None:
    """Console entry point."""
    config = get_config()
    configure_logging(config.service_name, config.log_level)
    asyncio.run(serve(config))


if __name__ == "__main__":
    main()
