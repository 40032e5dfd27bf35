"""
Pytest configuration and fixtures
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.config import get_settings
from ingestion.checkpoint import CheckpointStore
from models.base import ETLStatus
from models.change_event import ChangeEvent
from models.checkpoint import ETLCheckpoint, utcnow
from schemas.sui import ObjectChange, ObjectData, PastObjectResponse, TransactionBlockPage


class ScriptedSui:
    """
    Stand-in for SuiReadApi.query_transaction_blocks that replays pages.

    Each scripted response is a page or an exception to raise. Once the
    script is exhausted the stop event is set and the request never
    returns, like a node that is slow to answer during shutdown.
    """

    def __init__(self, responses, stop_event: asyncio.Event):
        self.responses = list(responses)
        self.stop_event = stop_event
        self.cursors: List[Optional[str]] = []

    async def query_transaction_blocks(self, query, cursor=None, limit=50, descending=False):
        self.cursors.append(cursor)
        if not self.responses:
            self.stop_event.set()
            await asyncio.Event().wait()
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class MemoryCheckpointStore(CheckpointStore):
    """Checkpoint store kept in a dict, for pipeline tests"""

    def __init__(self, checkpoints: Optional[Dict[str, ETLCheckpoint]] = None):
        self.checkpoints = dict(checkpoints or {})

    async def load(self, source_name: str) -> Optional[ETLCheckpoint]:
        return self.checkpoints.get(source_name)

    async def save(self, source_name: str, previous_cursor: Optional[str], next_cursor: str) -> None:
        checkpoint = self.checkpoints.setdefault(source_name, ETLCheckpoint(source_name=source_name))
        checkpoint.previous_cursor = previous_cursor
        checkpoint.cursor = next_cursor
        checkpoint.pages_completed += 1
        checkpoint.status = ETLStatus.RUNNING.value
        checkpoint.updated_at = utcnow()

    async def mark_status(self, source_name: str, status: ETLStatus, error_message: Optional[str] = None) -> None:
        checkpoint = self.checkpoints.setdefault(source_name, ETLCheckpoint(source_name=source_name))
        checkpoint.status = status.value
        checkpoint.error_message = error_message
        checkpoint.updated_at = utcnow()


@pytest.fixture(autouse=True)
def fresh_settings():
    """Default settings are rebuilt from the environment of each test"""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def make_change():
    """Factory for raw ``objectChanges`` entries as the node sends them"""
    def _make(change_type: str = "created", object_id: str = "0x1", version: int = 1, **extra) -> Dict[str, Any]:
        data = {
            "type": change_type,
            "sender": "0xa11ce",
            "version": str(version),
        }
        if change_type == "published":
            data.update(packageId=object_id, digest=f"pkg-{object_id}", modules=["coin"])
        else:
            data.update(objectId=object_id, objectType="0x2::coin::Coin<0x2::sui::SUI>")
        if change_type in ("created", "mutated", "transferred", "published"):
            data["digest"] = f"obj-{object_id}-{version}"
        if change_type in ("created", "mutated"):
            data["owner"] = {"AddressOwner": "0xa11ce"}
        if change_type == "mutated":
            data["previousVersion"] = str(version - 1)
        if change_type == "transferred":
            data["recipient"] = {"AddressOwner": "0xb0b"}
        data.update(extra)
        return data
    return _make


@pytest.fixture
def make_object():
    """Factory for raw object data (the ``details`` of a found past object)"""
    def _make(object_id: str = "0x1", version: int = 1) -> Dict[str, Any]:
        return {
            "objectId": object_id,
            "version": str(version),
            "digest": f"obj-{object_id}-{version}",
            "type": "0x2::coin::Coin<0x2::sui::SUI>",
            "owner": {"AddressOwner": "0xa11ce"},
            "previousTransaction": "tx-prev",
            "storageRebate": "988000",
            "content": {"dataType": "moveObject", "fields": {"balance": "1000"}},
            "bcs": {"dataType": "moveObject", "bcsBytes": "AAEC"},
        }
    return _make


@pytest.fixture
def make_event(make_change, make_object):
    """Factory for ChangeEvents, optionally with the snapshot attached"""
    def _make(
        change_type: str = "created",
        object_id: str = "0x1",
        version: int = 1,
        digest: str = "tx1",
        with_object: bool = False
    ) -> ChangeEvent:
        event = ChangeEvent.from_change(
            digest, ObjectChange.model_validate(make_change(change_type, object_id, version))
        )
        if with_object:
            event.object = ObjectData.model_validate(make_object(object_id, version))
        return event
    return _make


@pytest.fixture
def make_page():
    """Factory for transaction block pages from (digest, changes) pairs"""
    def _make(blocks: List[Tuple[str, Optional[List[Dict[str, Any]]]]], next_cursor: Optional[str]) -> TransactionBlockPage:
        return TransactionBlockPage.model_validate({
            "data": [{"digest": digest, "objectChanges": changes} for digest, changes in blocks],
            "nextCursor": next_cursor,
            "hasNextPage": next_cursor is not None,
        })
    return _make


@pytest.fixture
def found(make_object):
    """Factory for a VersionFound past object response"""
    def _make(object_id: str = "0x1", version: int = 1) -> PastObjectResponse:
        return PastObjectResponse.model_validate({
            "status": "VersionFound",
            "details": make_object(object_id, version),
        })
    return _make


@pytest.fixture
def scripted_sui():
    def _make(responses, stop_event: asyncio.Event) -> ScriptedSui:
        return ScriptedSui(responses, stop_event)
    return _make


@pytest.fixture
def checkpoint_store():
    return MemoryCheckpointStore()


@pytest.fixture
def mock_collection():
    """Document store collection with async operations"""
    collection = MagicMock()
    collection.delete_one = AsyncMock()
    collection.update_one = AsyncMock()
    collection.find_one = AsyncMock(return_value=None)
    return collection


async def collect(agen) -> list:
    return [item async for item in agen]


@pytest.fixture
def drain():
    """Collect an async iterator into a list"""
    return collect
