"""
Unit tests for the MongoDB connection lifecycle.

Tests cover:
- Database name and host parsing from the connection URL
- Connect, ping and close against a mocked Motor client
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from mediachat.core.database import Database, database_name, redacted_host


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture(autouse=True)
def reset_database():
    yield
    Database.client = None
    Database.database = None


@pytest.fixture
def motor_client():
    client = MagicMock()
    client.admin.command = AsyncMock(return_value={"ok": 1})
    client.__getitem__.return_value = MagicMock(name="database")
    return client


# ============================================================================
# URL PARSING
# ============================================================================

class TestDatabaseName:
    """Database selection from the URL path"""

    @pytest.mark.parametrize("url, expected", [
        ("mongodb://localhost:27017/mediachat_test", "mediachat_test"),
        ("mongodb://user:pw@db:27017/chats?authSource=admin", "chats"),
        ("mongodb+srv://user:pw@cluster.example.net/prod", "prod"),
        ("mongodb://localhost:27017", "mediachat"),
        ("mongodb://localhost:27017/", "mediachat"),
        ("mongodb://localhost:27017/?retryWrites=true", "mediachat"),
    ])
    def test_database_name(self, url, expected):
        assert database_name(url) == expected

    def test_redacted_host_drops_credentials(self):
        """Should never log the user or password"""
        assert redacted_host("mongodb://user:secret@db:27017/chats") == "db:27017"


# ============================================================================
# LIFECYCLE
# ============================================================================

class TestDatabaseLifecycle:
    """Connect, ping and close"""

    @pytest.mark.asyncio
    async def test_connect_registers_documents(self, settings, motor_client):
        """Should ping the server and initialize Beanie on the named database"""
        with patch("mediachat.core.database.AsyncIOMotorClient", return_value=motor_client) as client_cls, \
                patch("mediachat.core.database.init_beanie", new=AsyncMock()) as init:
            await Database.connect_to_mongo(settings)

        assert client_cls.call_args.args == (settings.mongodb_url,)
        assert client_cls.call_args.kwargs["maxPoolSize"] == settings.db_max_pool_size
        motor_client.__getitem__.assert_called_once_with(database_name(settings.mongodb_url))
        motor_client.admin.command.assert_awaited_once_with("ping")
        init.assert_awaited_once()
        assert init.await_args.kwargs["database"] is Database.database

    @pytest.mark.asyncio
    async def test_connect_failure_propagates(self, settings, motor_client):
        """Should raise when the server does not answer, without initializing Beanie"""
        motor_client.admin.command.side_effect = RuntimeError("server selection timeout")

        with patch("mediachat.core.database.AsyncIOMotorClient", return_value=motor_client), \
                patch("mediachat.core.database.init_beanie", new=AsyncMock()) as init:
            with pytest.raises(RuntimeError):
                await Database.connect_to_mongo(settings)

        init.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ping(self, motor_client):
        assert await Database.ping() is False

        Database.client = motor_client
        assert await Database.ping() is True

        motor_client.admin.command.side_effect = RuntimeError("down")
        assert await Database.ping() is False

    @pytest.mark.asyncio
    async def test_close(self, motor_client):
        """Should close the client once and forget it"""
        Database.client = motor_client

        await Database.close_mongo_connection()
        await Database.close_mongo_connection()

        motor_client.close.assert_called_once()
        assert Database.client is None
