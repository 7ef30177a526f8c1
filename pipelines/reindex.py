"""Reindex orchestration for a single project branch.

A job wipes the branch's search index and rebuilds it document by document
from the gateway. The queue status entry for the branch is the job's mutex
and its progress report: it is created atomically when the job starts,
rewritten after every document and deleted however the job ends. Writes and
the final delete carry the owner token handed out on acquire; a job that
finds its entry gone or taken over stops with ``QueueOwnershipLostError``.
"""

import asyncio
import time
from typing import Optional

from observability.logging import get_structured_logger
from observability.metrics import record_document, record_job_finished, record_job_started
from services.errors import QueueAlreadyExistsError, QueueOwnershipLostError
from services.gateway import GatewayClient
from services.models import ProjectRef, QueueLease, QueueStatus, ReindexSummary
from services.queue_store import QueueStatusStore

from .document_index import DocumentIndexBuilder, is_indexable

logger = get_structured_logger(__name__, component="reindex")


class ReindexOrchestrator:
    """Runs reindex jobs and answers status queries."""

    def __init__(
        self,
        gateway: GatewayClient,
        store: QueueStatusStore,
        builder: Optional[DocumentIndexBuilder] = None,
    ):
        self.gateway = gateway
        self.store = store
        self.builder = builder or DocumentIndexBuilder()

    async def trigger(
        self, project_id: str, branch_name: str, authorization: Optional[str] = None
    ) -> ReindexSummary:
        """Acquire the branch's queue entry and run the whole job."""
        lease = await self.acquire(project_id, branch_name)
        return await self.run(lease, authorization)

    async def acquire(self, project_id: str, branch_name: str) -> QueueLease:
        """Create the queue entry for a branch.

        Raises:
            QueueAlreadyExistsError: a job for the branch is still running
        """
        ref = ProjectRef(project_id, branch_name)
        status = QueueStatus.started(ref)
        owner = await self.store.try_acquire(ref.key, status)
        if owner is None:
            raise QueueAlreadyExistsError(
                f"Queue for project '{project_id}' and branch '{branch_name}' already exists."
            )

        record_job_started()
        logger.info("Queue created", project_id=project_id, branch_name=branch_name)
        return QueueLease(ref=ref, owner=owner, status=status)

    async def abandon(self, lease: QueueLease) -> None:
        """Release an acquired queue entry whose job will never run."""
        await self.store.release(lease.ref.key, lease.owner)
        record_job_finished(0.0, error="abandoned")
        logger.warning(
            "Queue abandoned",
            project_id=lease.ref.project_id,
            branch_name=lease.ref.branch_name,
        )

    async def _publish(self, lease: QueueLease) -> None:
        if not await self.store.update(lease.ref.key, lease.owner, lease.status):
            raise QueueOwnershipLostError(
                f"Queue for project '{lease.ref.project_id}' and branch "
                f"'{lease.ref.branch_name}' expired or is held by another job."
            )

    async def run(self, lease: QueueLease, authorization: Optional[str] = None) -> ReindexSummary:
        """Rebuild the index of a branch whose queue entry is held by ``lease``.

        The entry is released when this returns or raises.
        """
        ref = lease.ref
        project_id, branch_name = ref.project_id, ref.branch_name
        status = lease.status
        log = logger.bind(project_id=project_id, branch_name=branch_name)
        summary = ReindexSummary(project_id=project_id, branch_name=branch_name)
        started = time.monotonic()
        error: Optional[str] = None

        try:
            project = await self.gateway.get_project(project_id, authorization=authorization)
            documents = await self.gateway.list_documents(
                project_id, branch_name, authorization=authorization
            )

            summary.documents_total = len(documents)
            status.documents_total = len(documents)
            await self._publish(lease)

            await self.gateway.remove_index(project_id, branch_name, authorization=authorization)

            for document in documents:
                if is_indexable(document):
                    log.info(f"Indexing file: {document.uri}")
                    content = await self.gateway.get_document_content(
                        project_id, branch_name, document, authorization=authorization
                    )
                    record = self.builder.build(ref, project, document, content)
                    await self.gateway.upload_index(
                        project_id, branch_name, record, authorization=authorization
                    )
                    summary.documents_uploaded += 1
                    record_document(uploaded=True)
                else:
                    summary.documents_skipped += 1
                    record_document(uploaded=False)

                summary.documents_processed += 1
                status.documents_indexed += 1
                await self._publish(lease)

            log.info(
                "Reindexing finished",
                documents_total=summary.documents_total,
                documents_uploaded=summary.documents_uploaded,
            )
            return summary

        except asyncio.CancelledError:
            error = "cancelled"
            log.warning("Reindexing cancelled", documents_processed=summary.documents_processed)
            raise

        except Exception as e:
            error = type(e).__name__
            log.error(
                f"Reindexing failed: {e}",
                error_type=error,
                documents_processed=summary.documents_processed,
            )
            raise

        finally:
            summary.duration_seconds = time.monotonic() - started
            record_job_finished(summary.duration_seconds, error)
            if await self.store.release(ref.key, lease.owner):
                log.debug("Queue released")

    async def get_status(self, project_id: str, branch_name: str) -> QueueStatus:
        """Current snapshot of a branch, or an Unknown-state one when idle."""
        ref = ProjectRef(project_id, branch_name)
        status = await self.store.get(ref.key)
        if status is None:
            return QueueStatus.unknown(ref)
        return status
