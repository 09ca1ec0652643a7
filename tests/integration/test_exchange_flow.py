"""
Integration tests for the exchange flow against the mock Turso server.
"""

import pytest
import asyncio

import httpx

from mocks.turso.server import MockTursoServer
from service_connector.app.domain.exchange import Exchange
from service_connector.app.main import ConnectorService, build_components
from shared.config import get_config
from shared.test_helpers import FakeBus, exchange_data_factory


AUTH_TOKEN = "integration-token"


async def wait_for_replies(bus: FakeBus, count: int, timeout: float = 2.0) -> None:
    async def poll():
        while len(bus.published) < count:
            await asyncio.sleep(0.01)
    await asyncio.wait_for(poll(), timeout=timeout)


class TestExchangeFlow:
    """Integration tests for repository and gateway over the pipeline API."""

    @pytest.fixture
    def server(self):
        """Mock Turso server backed by in-memory SQLite."""
        return MockTursoServer(auth_token=AUTH_TOKEN)

    @pytest.fixture
    def config(self):
        """Connector configuration pointing at the mock server."""
        return get_config(
            database_url="libsql://mock.turso.test",
            auth_token=AUTH_TOKEN,
            retry_base_delay_seconds=0,
            health_check_interval_seconds=60,
        )

    @pytest.fixture
    def service(self, server, config):
        """ConnectorService wired to the mock server."""
        components = build_components(config, transport=httpx.ASGITransport(app=server.app))
        return ConnectorService(config, components)

    @pytest.mark.asyncio
    async def test_insert_and_fetch_round_trip(self, service):
        """Test that a stored exchange reads back identically."""
        await service.initialize_database()
        repository = service.components.repository

        persisted = await repository.insert(
            Exchange(opener="O'Brien", follower="bob", opener_card="Dragon's Egg", follower_card="Iron Golem")
        )
        fetched = await repository.fetch_by_id(persisted.id)

        assert persisted.id == 1
        assert fetched == persisted
        assert await repository.fetch_by_id(99) is None
        await service.components.client.close()

    @pytest.mark.asyncio
    async def test_fetch_all_newest_first(self, service):
        """Test ordering of the full listing."""
        await service.initialize_database()
        repository = service.components.repository
        client = service.components.client

        await client.execute_sql(
            "INSERT INTO ExchangeTable (requestOpener, requestFollower, openerCard, followerCard, date) "
            "VALUES ('alice', 'bob', 'Sky Whale', 'Iron Golem', '2024-05-01 09:15:00')"
        )
        await client.execute_sql(
            "INSERT INTO ExchangeTable (requestOpener, requestFollower, openerCard, followerCard, date) "
            "VALUES ('bob', 'carol', 'Ember Drake', 'Frost Giant', '2024-05-02 18:30:00')"
        )

        exchanges = await repository.fetch_all()

        assert [exchange.opener for exchange in exchanges] == ["bob", "alice"]
        assert service.components.cache.contains(
            "SELECT id, requestOpener, requestFollower, openerCard, followerCard, date "
            "FROM ExchangeTable ORDER BY date DESC"
        )
        await client.close()

    @pytest.mark.asyncio
    async def test_retries_injected_failures(self, service, server):
        """Test that transient 503s are retried until the store answers."""
        server.fail_next = [503, 503]

        assert await service.components.client.test_connection() is True
        assert server.request_count == 3
        await service.components.client.close()

    @pytest.mark.asyncio
    async def test_wrong_token_is_unavailable(self, server):
        """Test that a rejected token fails the connectivity probe."""
        config = get_config(
            database_url="libsql://mock.turso.test",
            auth_token="wrong-token",
            retry_base_delay_seconds=0,
        )
        client = build_components(config, transport=httpx.ASGITransport(app=server.app)).client

        assert await client.test_connection() is False
        await client.close()

    @pytest.mark.asyncio
    async def test_gateway_flow(self, service):
        """Test create, lookup and listing through the bus."""
        bus = FakeBus()
        stop_event = asyncio.Event()
        task = asyncio.create_task(service.run(stop_event, bus=bus))
        await bus.wait_for_subscriptions()

        for index, (opener, follower) in enumerate((("alice", "bob"), ("carol", "dave")), start=1):
            await bus.deliver("game.exchange.create", exchange_data_factory.create_game_message(
                "exchange.create", {"opener": opener, "follower": follower, "openerCard": "Sky Whale"},
                message_id=f"create-{opener}",
            ))
            await wait_for_replies(bus, index)

        await bus.deliver("game.exchange.create", exchange_data_factory.create_game_message(
            "exchange.create", {"opener": "eve"}, message_id="create-invalid",
        ))
        await bus.deliver("game.exchange.query", exchange_data_factory.create_game_message(
            "exchange.query", {"exchangeId": 1}, message_id="query-one",
        ))
        await bus.deliver("game.exchange.query", exchange_data_factory.create_game_message(
            "exchange.query", {"exchangeId": 42}, message_id="query-missing",
        ))
        await bus.deliver("game.exchange.query", exchange_data_factory.create_game_message(
            "exchange.query", {}, message_id="query-all",
        ))

        stop_event.set()
        await asyncio.wait_for(task, timeout=5.0)

        replies = {reply["body"]["messageId"]: reply["body"] for reply in bus.published}
        assert replies["create-alice"]["statusCode"] == 200
        assert replies["create-alice"]["data"]["exchangeId"] == 1
        assert replies["create-carol"]["data"]["exchangeId"] == 2
        assert replies["create-invalid"]["statusCode"] == 422
        assert replies["query-one"]["data"]["exchange"]["opener"] == "alice"
        assert replies["query-one"]["data"]["exchange"]["openerCard"] == "Sky Whale"
        assert replies["query-missing"]["statusCode"] == 404
        assert replies["query-all"]["message"] == "Found 2 exchanges"
        assert bus.closed is True
