"""
Unit tests for the Turso client (data access layer).
"""

import pytest
import json
from typing import List
from unittest.mock import AsyncMock

import httpx
from structlog.testing import capture_logs

from service_connector.app.adapters.throttle import ConnectionThrottle
from service_connector.app.adapters.turso_client import (
    TRANSIENT_HTTP_ERRORS,
    TursoClient,
    build_api_url,
)
from service_connector.app.caching.query_cache import QueryResultCache
from shared.metrics import MetricsCollector
from shared.retry import ResilientExecutor, RetryConfig
from shared.test_helpers import exchange_data_factory


DATABASE_URL = "libsql://test-db.turso.io"
AUTH_TOKEN = "secret-token"


def make_client(handler, *, cache=None, throttle=None, metrics=None) -> TursoClient:
    executor = ResilientExecutor(
        RetryConfig(),
        transient_exceptions=TRANSIENT_HTTP_ERRORS,
        sleep=AsyncMock(),
    )
    return TursoClient(
        DATABASE_URL,
        AUTH_TOKEN,
        throttle=throttle or ConnectionThrottle(2),
        executor=executor,
        cache=cache,
        metrics=metrics,
        transport=httpx.MockTransport(handler),
    )


class TestBuildApiUrl:
    """Test cases for endpoint derivation."""

    @pytest.mark.parametrize("database_url,expected", [
        ("libsql://test-db.turso.io", "https://test-db.turso.io/v2/pipeline"),
        ("libsql://test-db.turso.io/", "https://test-db.turso.io/v2/pipeline"),
        ("https://test-db.turso.io", "https://test-db.turso.io/v2/pipeline"),
        ("http://localhost:8080", "http://localhost:8080/v2/pipeline"),
    ])
    def test_build_api_url(self, database_url, expected):
        """Test libsql scheme rewrite and pipeline path."""
        assert build_api_url(database_url) == expected


class TestTursoClient:
    """Test cases for TursoClient."""

    @pytest.fixture
    def requests(self) -> List[httpx.Request]:
        """Requests seen by the mock transport."""
        return []

    @pytest.fixture
    def cache(self):
        """Create QueryResultCache instance."""
        return QueryResultCache(max_entries=10)

    @pytest.fixture
    def ok_handler(self, requests):
        """Transport answering every statement with two exchange rows."""
        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(
                200,
                json=exchange_data_factory.create_pipeline_body(
                    rows=exchange_data_factory.create_exchange_rows()
                ),
            )
        return handler

    def test_requires_url_and_token(self):
        """Test constructor validation."""
        executor = ResilientExecutor(sleep=AsyncMock())
        with pytest.raises(ValueError):
            TursoClient("", AUTH_TOKEN, throttle=ConnectionThrottle(), executor=executor)
        with pytest.raises(ValueError):
            TursoClient(DATABASE_URL, "", throttle=ConnectionThrottle(), executor=executor)

    @pytest.mark.asyncio
    async def test_execute_sql_posts_pipeline_request(self, ok_handler, requests):
        """Test request URL, headers and body."""
        client = make_client(ok_handler)

        result = await client.execute_sql("SELECT 1")

        assert result is not None
        assert len(requests) == 1
        request = requests[0]
        assert str(request.url) == "https://test-db.turso.io/v2/pipeline"
        assert request.method == "POST"
        assert request.headers["Authorization"] == f"Bearer {AUTH_TOKEN}"
        assert request.headers["User-Agent"] == "TursoConnector/1.0"
        assert json.loads(request.content) == {
            "requests": [{"type": "execute", "stmt": {"sql": "SELECT 1"}}]
        }
        await client.close()

    @pytest.mark.asyncio
    async def test_execute_sql_parses_rows(self, ok_handler):
        """Test that the pipeline envelope is parsed into rows."""
        client = make_client(ok_handler)

        result = await client.execute_sql("SELECT * FROM ExchangeTable")

        rows = result.rows()
        assert len(rows) == 2
        assert rows[0][1].text == "bob"
        assert result.has_result_set() is True
        await client.close()

    @pytest.mark.parametrize("sql", ["", "   ", None])
    @pytest.mark.asyncio
    async def test_blank_sql_rejected(self, ok_handler, requests, sql):
        """Test that blank SQL raises before any request is made."""
        client = make_client(ok_handler)

        with pytest.raises(ValueError):
            await client.execute_sql(sql)

        assert requests == []
        assert client.throttle.available == 2
        await client.close()

    @pytest.mark.asyncio
    async def test_select_results_are_cached(self, ok_handler, cache):
        """Test that successful reads are recorded and writes are not."""
        client = make_client(ok_handler, cache=cache)

        await client.execute_sql("SELECT * FROM ExchangeTable")
        await client.execute_sql("INSERT INTO ExchangeTable VALUES (1)")

        assert len(cache) == 1
        assert cache.contains("SELECT * FROM ExchangeTable")
        await client.close()

    @pytest.mark.asyncio
    async def test_non_success_status_returns_none_after_retries(self, requests, cache):
        """Test that a persistent 500 yields None after three attempts."""
        def handler(request):
            requests.append(request)
            return httpx.Response(500, text="server error")

        client = make_client(handler, cache=cache)

        result = await client.execute_sql("SELECT 1")

        assert result is None
        assert len(requests) == 3
        assert len(cache) == 0
        assert client.throttle.available == 2
        await client.close()

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, requests):
        """Test that a connection fault then a 503 still ends in success."""
        responses = iter(["fault", 503, 200])

        def handler(request):
            requests.append(request)
            outcome = next(responses)
            if outcome == "fault":
                raise httpx.ConnectError("connection refused", request=request)
            if outcome == 503:
                return httpx.Response(503)
            return httpx.Response(200, json=exchange_data_factory.create_pipeline_body())

        client = make_client(handler)

        result = await client.execute_sql("SELECT 1")

        assert result is not None
        assert len(requests) == 3
        await client.close()

    @pytest.mark.asyncio
    async def test_persistent_transport_errors_return_none(self, requests):
        """Test that exhausted transport faults are reported as None."""
        def handler(request):
            requests.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)

        assert await client.execute_sql("SELECT 1") is None
        assert len(requests) == 3
        assert client.throttle.available == 2
        await client.close()

    @pytest.mark.asyncio
    async def test_malformed_body_returns_none(self):
        """Test that an unparseable response body is reported as None."""
        client = make_client(lambda request: httpx.Response(200, text="not json"))

        assert await client.execute_sql("SELECT 1") is None
        await client.close()

    @pytest.mark.asyncio
    async def test_test_connection(self, ok_handler):
        """Test the SELECT 1 probe."""
        client = make_client(ok_handler)

        assert await client.test_connection() is True
        await client.close()

    @pytest.mark.asyncio
    async def test_test_connection_failure(self):
        """Test that an unreachable store fails the probe."""
        client = make_client(lambda request: httpx.Response(401))

        assert await client.test_connection() is False
        await client.close()

    @pytest.mark.asyncio
    async def test_get_metrics(self, ok_handler, cache):
        """Test cache size, free slots and URL snapshot."""
        throttle = ConnectionThrottle(5)
        client = make_client(ok_handler, cache=cache, throttle=throttle)

        await client.execute_sql("SELECT 1")
        snapshot = client.get_metrics()

        assert snapshot.cached_queries == 1
        assert snapshot.available_connections == 5
        assert snapshot.database_url == DATABASE_URL
        await client.close()

    @pytest.mark.asyncio
    async def test_records_query_metrics(self, ok_handler):
        """Test that outcomes are counted in the collector."""
        metrics = MetricsCollector("test-connector")
        client = make_client(ok_handler, metrics=metrics)

        assert await client.test_connection() is True

        assert metrics.get_sample("db_queries_total", outcome="success") == 1.0
        assert metrics.get_sample("available_connections") == 2.0
        await client.close()

    @pytest.mark.asyncio
    async def test_auth_token_never_logged(self, ok_handler):
        """Test that the bearer token does not appear in log events."""
        client = make_client(ok_handler)

        with capture_logs() as logs:
            await client.execute_sql("SELECT 1")

        assert logs
        assert all(AUTH_TOKEN not in str(event) for event in logs)
        await client.close()

    @pytest.mark.asyncio
    async def test_records_transport_errors(self):
        """Test that exhausted transport faults are counted by type."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        metrics = MetricsCollector("test-connector")
        client = make_client(handler, metrics=metrics)

        assert await client.execute_sql("SELECT 1") is None
        assert metrics.get_sample("errors_total", error_type="ConnectError") == 1.0
        assert metrics.get_sample("db_queries_total", outcome="error") == 1.0
        await client.close()
