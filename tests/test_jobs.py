"""Tests for the background job runner."""

import asyncio

import pytest

from pipelines.reindex import ReindexOrchestrator
from server.jobs import JobRunner


@pytest.mark.asyncio
async def test_submitted_job_runs():
    runner = JobRunner()
    runner.start()
    done = asyncio.Event()
    received = []

    async def job(project_id, branch_name):
        received.append((project_id, branch_name))
        done.set()

    try:
        job_id = runner.submit(job, "docs-portal", "main", job_id="reindex:docs-portal#main")
        await asyncio.wait_for(done.wait(), timeout=5)
    finally:
        await runner.shutdown()

    assert job_id == "reindex:docs-portal#main"
    assert received == [("docs-portal", "main")]


@pytest.mark.asyncio
async def test_failing_job_does_not_stop_runner():
    runner = JobRunner()
    runner.start()
    done = asyncio.Event()

    async def failing():
        raise RuntimeError("boom")

    async def succeeding():
        done.set()

    try:
        runner.submit(failing)
        runner.submit(succeeding)
        await asyncio.wait_for(done.wait(), timeout=5)
        assert runner.running
    finally:
        await runner.shutdown()


def test_submit_requires_started_runner():
    with pytest.raises(RuntimeError):
        JobRunner().submit(lambda: None)


@pytest.mark.asyncio
async def test_shutdown():
    runner = JobRunner()
    runner.start()
    await runner.shutdown()

    assert not runner.running
    assert runner.scheduler is None


async def _wait_until(condition, attempts=200):
    for _ in range(attempts):
        if condition():
            return
        await asyncio.sleep(0.01)
    raise AssertionError("condition not reached")


class TestShutdownDrainsJobs:

    @pytest.mark.asyncio
    async def test_waits_for_running_job(self, gateway, memory_store):
        resume = asyncio.Event()

        async def slow_content(*args, **kwargs):
            await resume.wait()
            return "<p>text</p>"

        gateway.get_document_content.side_effect = slow_content
        orchestrator = ReindexOrchestrator(gateway, memory_store)
        runner = JobRunner()
        runner.start()

        lease = await orchestrator.acquire("docs-portal", "main")
        runner.submit(orchestrator.run, lease)
        await _wait_until(lambda: gateway.get_document_content.await_count == 1)

        asyncio.get_running_loop().call_later(0.05, resume.set)
        await runner.shutdown(wait=True, timeout=5)

        assert gateway.upload_index.await_count == 2
        assert memory_store.released == ["docs-portal#main"]

    @pytest.mark.asyncio
    async def test_stuck_job_is_cancelled_and_releases_entry(self, gateway, memory_store):
        async def stuck_project(*args, **kwargs):
            await asyncio.Event().wait()

        gateway.get_project.side_effect = stuck_project
        orchestrator = ReindexOrchestrator(gateway, memory_store)
        runner = JobRunner()
        runner.start()

        lease = await orchestrator.acquire("docs-portal", "main")
        runner.submit(orchestrator.run, lease)
        await _wait_until(lambda: gateway.get_project.await_count == 1)

        await runner.shutdown(wait=True, timeout=0.05)

        assert memory_store.entries == {}
        assert memory_store.released == ["docs-portal#main"]
