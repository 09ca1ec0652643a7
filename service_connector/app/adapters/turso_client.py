"""
Async Turso (libSQL) HTTP client used by the connector.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

import httpx
from pydantic import ValidationError

from shared.logging import get_logger
from shared.retry import ResilientExecutor

from ..caching.query_cache import QueryResultCache
from .throttle import ConnectionThrottle
from .turso_models import PipelineRequest, PipelineResponse

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


# Timeouts and connection failures; worth another attempt.
TRANSIENT_HTTP_ERRORS = (httpx.TransportError,)

USER_AGENT = "TursoConnector/1.0"


def build_api_url(database_url: str) -> str:
    """Turn a libsql:// database URL into its HTTP pipeline endpoint."""
    url = database_url.strip()
    if url.startswith("libsql://"):
        url = "https://" + url[len("libsql://"):]
    return url.rstrip("/") + "/v2/pipeline"


@dataclass
class DatabaseMetrics:
    """Point-in-time view of the data access layer."""
    cached_queries: int
    available_connections: int
    database_url: str


class TursoClient:
    """Executes SQL text against Turso's /v2/pipeline endpoint."""

    def __init__(
        self,
        database_url: str,
        auth_token: str,
        *,
        throttle: ConnectionThrottle,
        executor: ResilientExecutor,
        cache: Optional[QueryResultCache] = None,
        metrics: Optional["MetricsCollector"] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not database_url:
            raise ValueError("database_url is required")
        if not auth_token:
            raise ValueError("auth_token is required")

        self.database_url = database_url
        self.api_url = build_api_url(database_url)
        self.throttle = throttle
        self.executor = executor
        self.cache = cache
        self.metrics = metrics
        self.logger = get_logger("connector.turso_client")
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {auth_token}",
                "User-Agent": USER_AGENT,
                "Accept": "application/json",
            },
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def execute_sql(self, sql: str) -> Optional[PipelineResponse]:
        """
        Execute one SQL statement and return the parsed pipeline response.

        Returns None when the store answers with a non-success status or the
        call fails; only blank SQL raises.
        """
        if sql is None or not sql.strip():
            raise ValueError("SQL query cannot be null or empty")

        async with self.throttle.slot():
            self._update_gauges()
            start_time = time.time()
            outcome = "error"
            try:
                self.logger.info("Executing SQL query", sql=sql)
                body = PipelineRequest.execute(sql).model_dump()

                async def _post() -> httpx.Response:
                    return await self._client.post(self.api_url, json=body)

                response = await self.executor.execute(
                    _post, is_success=lambda r: r.is_success
                )

                if not response.is_success:
                    self.logger.error(
                        "Turso request failed",
                        status_code=response.status_code,
                        response=response.text,
                        sql=sql,
                    )
                    outcome = "http_error"
                    return None

                result = PipelineResponse.model_validate(response.json())
                for message in result.errors():
                    self.logger.error("Turso statement error", error=message, sql=sql)

                if self.cache is not None:
                    self.cache.record(sql, result)

                self.logger.debug("Query executed successfully", sql=sql)
                outcome = "success"
                return result

            except (ValueError, ValidationError) as exc:
                self.logger.error("Invalid Turso response", error=str(exc), sql=sql)
                return None
            except Exception as exc:
                self.logger.error(
                    "Error executing SQL query",
                    error=str(exc),
                    error_type=type(exc).__name__,
                    sql=sql,
                )
                if self.metrics is not None:
                    self.metrics.record_error(type(exc).__name__)
                return None
            finally:
                if self.metrics is not None:
                    self.metrics.record_query(outcome, time.time() - start_time)

    async def test_connection(self) -> bool:
        """Return True when the store answers SELECT 1 with a result set."""
        try:
            self.logger.info("Testing database connection")
            result = await self.execute_sql("SELECT 1 as test")
            healthy = result is not None and result.has_result_set()
            if healthy:
                self.logger.info("Database connection test successful")
            else:
                self.logger.error("Database connection test failed - no results returned")
            return healthy
        except Exception as exc:
            self.logger.error("Database connection test failed", error=str(exc))
            return False
        finally:
            self._update_gauges()

    def get_metrics(self) -> DatabaseMetrics:
        """Snapshot of cache size, free connection slots and the store URL."""
        return DatabaseMetrics(
            cached_queries=len(self.cache) if self.cache is not None else 0,
            available_connections=self.throttle.available,
            database_url=self.database_url,
        )

    def _update_gauges(self) -> None:
        if self.metrics is None:
            return
        snapshot = self.get_metrics()
        self.metrics.set_gauge("query_cache_entries", snapshot.cached_queries)
        self.metrics.set_gauge("available_connections", snapshot.available_connections)
