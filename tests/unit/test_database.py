"""
Unit tests for document store helpers
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from core import database
from core.config import load_settings


class TestDatabaseHelpers:
    """Test client and collection wiring (no server needed)"""

    @pytest.mark.asyncio
    async def test_collections_follow_settings(self, monkeypatch):
        monkeypatch.setenv("MONGO_DATABASE", "sui_testnet")
        monkeypatch.setenv("MONGO_COLLECTION", "testnet_objects")
        settings = load_settings()

        client = database.create_client(settings)
        try:
            db = database.get_database(client, settings)
            assert db.name == "sui_testnet"
            assert database.get_objects_collection(db, settings).name == "testnet_objects"
            assert database.get_checkpoint_collection(db, settings).name == "etl_checkpoints"
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_ping_runs_admin_command(self):
        client = MagicMock()
        client.admin.command = AsyncMock(return_value={"ok": 1.0})

        await database.ping(client)

        client.admin.command.assert_awaited_once_with("ping")
