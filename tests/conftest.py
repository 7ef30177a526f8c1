"""Shared fixtures and in-memory fakes for the reindexer tests."""

import asyncio
import json
import uuid
from typing import Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

from services.models import DocumentRef, ProjectMetadata, QueueStatus
from services.queue_store import RELEASE_SCRIPT, UPDATE_SCRIPT


class InMemoryQueueStatusStore:
    """QueueStatusStore keeping entries in a dict, recording every write."""

    def __init__(self):
        self.entries: Dict[str, QueueStatus] = {}
        self.owners: Dict[str, str] = {}
        self.history: List[QueueStatus] = []
        self.released: List[str] = []
        self._lock = asyncio.Lock()

    def _snapshot(self, status: QueueStatus) -> QueueStatus:
        return QueueStatus.from_dict(status.to_dict())

    def expire(self, key: str) -> None:
        """Drop an entry the way a lapsed TTL would."""
        self.entries.pop(key, None)
        self.owners.pop(key, None)

    async def try_acquire(self, key: str, status: QueueStatus) -> Optional[str]:
        async with self._lock:
            if key in self.entries:
                return None
            owner = uuid.uuid4().hex
            self.entries[key] = self._snapshot(status)
            self.owners[key] = owner
            self.history.append(self._snapshot(status))
            return owner

    async def update(self, key: str, owner: str, status: QueueStatus) -> bool:
        if self.owners.get(key) != owner:
            return False
        self.entries[key] = self._snapshot(status)
        self.history.append(self._snapshot(status))
        return True

    async def get(self, key: str) -> Optional[QueueStatus]:
        status = self.entries.get(key)
        return self._snapshot(status) if status else None

    async def release(self, key: str, owner: str) -> bool:
        if self.owners.get(key) != owner:
            return False
        self.expire(key)
        self.released.append(key)
        return True


class FakeRedis:
    """Dict-backed stand-in for the few ``redis.asyncio`` calls the store makes.

    ``eval`` understands the store's two owner-checked scripts.
    """

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.expiry: Dict[str, Optional[int]] = {}

    async def set(self, key, value, ex=None, nx=False):
        if nx and key in self.data:
            return None
        self.data[key] = value
        self.expiry[key] = ex
        return True

    async def get(self, key):
        return self.data.get(key)

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if key in self.data:
                del self.data[key]
                self.expiry.pop(key, None)
                removed += 1
        return removed

    async def eval(self, script, numkeys, *keys_and_args):
        key, owner = keys_and_args[0], keys_and_args[1]
        current = self.data.get(key)
        if current is None or json.loads(current).get("owner") != owner:
            return 0
        if script == UPDATE_SCRIPT:
            value, ttl = keys_and_args[2], int(keys_and_args[3])
            self.data[key] = value
            self.expiry[key] = ttl or None
            return 1
        if script == RELEASE_SCRIPT:
            return await self.delete(key)
        raise NotImplementedError(script)

    async def ping(self):
        return True

    async def aclose(self):
        pass


@pytest.fixture
def memory_store():
    return InMemoryQueueStatusStore()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def project():
    return ProjectMetadata(
        id="docs-portal",
        name="Docs Portal",
        description="Documentation portal",
        default_branch="main",
        tags=["python", "guides"],
        group="platform",
    )


@pytest.fixture
def documents():
    return [
        DocumentRef(uri="index.md"),
        DocumentRef(uri="images/logo.png"),
        DocumentRef(uri="guides/getting_started.md"),
    ]


@pytest.fixture
def gateway(project, documents):
    """Gateway mock answering every call successfully."""
    mock = AsyncMock()
    mock.get_project.return_value = project
    mock.list_documents.return_value = documents
    mock.get_document_content.return_value = "<h1>Hello</h1><p>Some <b>content</b></p>"
    mock.remove_index.return_value = None
    mock.upload_index.return_value = None
    return mock
