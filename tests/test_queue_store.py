"""Tests for the Redis-backed queue status store."""

import json

import pytest

from services.models import IndexStatus, ProjectRef, QueueStatus
from services.queue_store import RedisQueueStatusStore

REF = ProjectRef("docs-portal", "main")
REDIS_KEY = "reindexer:docs-portal#main"


@pytest.fixture
def store(fake_redis):
    return RedisQueueStatusStore(fake_redis, key_prefix="reindexer:", ttl_seconds=3600)


class TestRedisQueueStatusStore:

    @pytest.mark.asyncio
    async def test_acquire_writes_prefixed_key(self, store, fake_redis):
        owner = await store.try_acquire(REF.key, QueueStatus.started(REF))

        assert owner
        payload = json.loads(fake_redis.data[REDIS_KEY])
        assert payload["owner"] == owner
        assert payload["indexStatus"] == "Indexing"
        assert payload["numberOfIndexedDocuments"] == 0
        assert payload["numberOfAllDocuments"] is None

    @pytest.mark.asyncio
    async def test_each_acquire_gets_a_fresh_owner(self, store):
        first = await store.try_acquire(REF.key, QueueStatus.started(REF))
        await store.release(REF.key, first)

        second = await store.try_acquire(REF.key, QueueStatus.started(REF))

        assert first != second

    @pytest.mark.asyncio
    async def test_second_acquire_fails_without_overwriting(self, store):
        first = QueueStatus.started(REF)
        first.documents_total = 7
        await store.try_acquire(REF.key, first)

        assert await store.try_acquire(REF.key, QueueStatus.started(REF)) is None

        current = await store.get(REF.key)
        assert current.documents_total == 7

    @pytest.mark.asyncio
    async def test_ttl_is_set_and_renewed(self, store, fake_redis):
        owner = await store.try_acquire(REF.key, QueueStatus.started(REF))
        assert fake_redis.expiry[REDIS_KEY] == 3600

        fake_redis.expiry[REDIS_KEY] = None
        assert await store.update(REF.key, owner, QueueStatus.started(REF))
        assert fake_redis.expiry[REDIS_KEY] == 3600

    @pytest.mark.asyncio
    async def test_zero_ttl_disables_expiry(self, fake_redis):
        store = RedisQueueStatusStore(fake_redis, ttl_seconds=0)

        owner = await store.try_acquire(REF.key, QueueStatus.started(REF))
        await store.update(REF.key, owner, QueueStatus.started(REF))

        assert fake_redis.expiry[REF.key] is None

    @pytest.mark.asyncio
    async def test_get_round_trips_snapshot(self, store):
        status = QueueStatus.started(REF)
        status.documents_total = 12
        status.documents_indexed = 5
        await store.try_acquire(REF.key, status)

        loaded = await store.get(REF.key)

        assert loaded == status
        assert loaded.state == IndexStatus.INDEXING
        assert loaded.start_time.tzinfo is not None

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, store):
        assert await store.get("missing#main") is None

    @pytest.mark.asyncio
    async def test_release_is_idempotent(self, store, fake_redis):
        owner = await store.try_acquire(REF.key, QueueStatus.started(REF))

        assert await store.release(REF.key, owner)
        assert not await store.release(REF.key, owner)

        assert fake_redis.data == {}
        assert await store.try_acquire(REF.key, QueueStatus.started(REF))

    @pytest.mark.asyncio
    async def test_prefix_isolates_instances(self, fake_redis):
        blue = RedisQueueStatusStore(fake_redis, key_prefix="blue:")
        green = RedisQueueStatusStore(fake_redis, key_prefix="green:")

        assert await blue.try_acquire(REF.key, QueueStatus.started(REF))
        assert await green.try_acquire(REF.key, QueueStatus.started(REF))

    @pytest.mark.asyncio
    async def test_ping(self, store):
        assert await store.ping()


class TestOwnerChecks:

    @pytest.mark.asyncio
    async def test_expired_owner_cannot_update_successor(self, store, fake_redis):
        stale = await store.try_acquire(REF.key, QueueStatus.started(REF))
        await fake_redis.delete(REDIS_KEY)
        successor = await store.try_acquire(REF.key, QueueStatus.started(REF))

        overwritten = QueueStatus.started(REF)
        overwritten.documents_indexed = 99
        assert not await store.update(REF.key, stale, overwritten)

        current = json.loads(fake_redis.data[REDIS_KEY])
        assert current["owner"] == successor
        assert current["numberOfIndexedDocuments"] == 0

    @pytest.mark.asyncio
    async def test_expired_owner_cannot_release_successor(self, store, fake_redis):
        stale = await store.try_acquire(REF.key, QueueStatus.started(REF))
        await fake_redis.delete(REDIS_KEY)
        successor = await store.try_acquire(REF.key, QueueStatus.started(REF))

        assert not await store.release(REF.key, stale)

        assert REDIS_KEY in fake_redis.data
        assert await store.try_acquire(REF.key, QueueStatus.started(REF)) is None
        assert await store.release(REF.key, successor)

    @pytest.mark.asyncio
    async def test_update_does_not_recreate_expired_entry(self, store, fake_redis):
        owner = await store.try_acquire(REF.key, QueueStatus.started(REF))
        await fake_redis.delete(REDIS_KEY)

        assert not await store.update(REF.key, owner, QueueStatus.started(REF))
        assert fake_redis.data == {}

    @pytest.mark.asyncio
    async def test_scripts_are_sent_with_key_and_owner(self, store):
        calls = []
        real_eval = store.redis_client.eval

        async def recording_eval(script, numkeys, *args):
            calls.append((numkeys, args[:2]))
            return await real_eval(script, numkeys, *args)

        store.redis_client.eval = recording_eval
        owner = await store.try_acquire(REF.key, QueueStatus.started(REF))
        await store.update(REF.key, owner, QueueStatus.started(REF))
        await store.release(REF.key, owner)

        assert calls == [(1, (REDIS_KEY, owner)), (1, (REDIS_KEY, owner))]
