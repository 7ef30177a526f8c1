"""FastAPI application exposing reindex queues.

``POST /queues/{project_id}/{branch_name}`` starts a reindex of a branch and
``GET`` on the same path reports its progress.
"""

import datetime
import logging
import uuid
from typing import Optional

import aiohttp
from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError

from config import Settings
from observability import setup_logging, setup_prometheus_metrics
from pipelines.reindex import ReindexOrchestrator
from services.discovery import DiscoveryServiceLocator
from services.errors import (
    GatewayUnavailableError,
    QueueAlreadyExistsError,
    QueueOwnershipLostError,
    ReindexError,
)
from services.gateway import HttpGatewayClient
from services.queue_store import RedisQueueStatusStore

from .jobs import JobRunner

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

app = FastAPI(title="Reindexer API", version=VERSION)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
setup_prometheus_metrics(app)

# Components created on startup
settings: Optional[Settings] = None
http_session: Optional[aiohttp.ClientSession] = None
queue_store: Optional[RedisQueueStatusStore] = None
locator: Optional[DiscoveryServiceLocator] = None
orchestrator: Optional[ReindexOrchestrator] = None
job_runner: Optional[JobRunner] = None


@app.on_event("startup")
async def startup_event():
    """Wire the cache, discovery, gateway client and job runner."""
    global settings, http_session, queue_store, locator, orchestrator, job_runner

    settings = Settings.load()
    setup_logging(
        level=settings.logging.level,
        service_name=settings.service_name,
        log_file=settings.logging.log_file,
        use_json=settings.logging.use_json,
    )

    http_session = aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=settings.http_timeout_seconds)
    )
    locator = DiscoveryServiceLocator(
        http_session,
        settings.discovery.server_addresses,
        secure_token=settings.discovery.server_secure_token,
        service_type=settings.discovery.gateway_service_type,
        cache_seconds=settings.discovery.gateway_address_cache_seconds,
        static_address=settings.discovery.gateway_address,
    )
    queue_store = RedisQueueStatusStore.from_url(
        settings.cache.redis_url,
        key_prefix=settings.cache.instance_name,
        ttl_seconds=settings.cache.status_ttl_seconds,
    )
    gateway = HttpGatewayClient(http_session, locator, secure_token=settings.secure_token)
    orchestrator = ReindexOrchestrator(gateway, queue_store)

    job_runner = JobRunner()
    job_runner.start()
    logging.info("Reindexer initialized")


@app.on_event("shutdown")
async def shutdown_event():
    """Clean up resources on shutdown."""
    if job_runner:
        await job_runner.shutdown(wait=True)
    if queue_store:
        await queue_store.close()
    if http_session:
        await http_session.close()
    logging.info("Reindexer shutdown completed")


async def get_orchestrator() -> ReindexOrchestrator:
    if orchestrator is None:
        raise HTTPException(status_code=500, detail="Reindexer not initialized")
    return orchestrator


async def get_job_runner() -> JobRunner:
    if job_runner is None or not job_runner.running:
        raise HTTPException(status_code=500, detail="Job runner not initialized")
    return job_runner


def _http_error(error: ReindexError) -> HTTPException:
    if isinstance(error, (QueueAlreadyExistsError, QueueOwnershipLostError)):
        status_code = 409
    elif isinstance(error, GatewayUnavailableError):
        status_code = 503
    else:
        status_code = 502
    return HTTPException(status_code=status_code, detail=error.to_dict())


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "message": "Reindexer API",
        "version": VERSION,
        "docs": "/docs",
        "health": "/health",
        "metrics": "/metrics"
    }


@app.get("/health")
async def health():
    return {"status": "ok", "time": datetime.datetime.now(datetime.timezone.utc).isoformat()}


@app.get("/health/detailed")
async def detailed_health_check():
    """Health of the cache and of gateway address resolution."""
    health_status = {
        "status": "healthy",
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "version": VERSION,
        "components": {}
    }

    if queue_store is None:
        health_status["components"]["cache"] = {"status": "unavailable"}
        health_status["status"] = "degraded"
    else:
        try:
            await queue_store.ping()
            health_status["components"]["cache"] = {"status": "healthy"}
        except RedisError as e:
            health_status["components"]["cache"] = {"status": "unhealthy", "error": str(e)}
            health_status["status"] = "degraded"

    address = await locator.resolve_gateway_address() if locator else None
    if address:
        health_status["components"]["gateway"] = {"status": "healthy", "address": address}
    else:
        health_status["components"]["gateway"] = {"status": "unavailable"}
        health_status["status"] = "degraded"

    return health_status


@app.get("/queues/{project_id}/{branch_name}")
async def get_queue_status(
    project_id: str,
    branch_name: str,
    reindexer: ReindexOrchestrator = Depends(get_orchestrator),
):
    """Get status of the index for a project branch."""
    try:
        status = await reindexer.get_status(project_id, branch_name)
    except RedisError as e:
        logger.error(f"Queue status cache unavailable: {e}")
        raise HTTPException(status_code=503, detail="Queue status cache unavailable") from e
    return status.to_dict()


@app.post("/queues/{project_id}/{branch_name}")
async def create_queue(
    project_id: str,
    branch_name: str,
    wait: bool = False,
    authorization: Optional[str] = Header(default=None),
    reindexer: ReindexOrchestrator = Depends(get_orchestrator),
    runner: JobRunner = Depends(get_job_runner),
):
    """Reindex all documents of a project branch.

    By default the job runs in the background and the response only confirms
    it was queued. ``wait=true`` runs the job within the request.
    """
    try:
        if wait:
            summary = await reindexer.trigger(project_id, branch_name, authorization)
            return summary.to_dict()

        lease = await reindexer.acquire(project_id, branch_name)
    except ReindexError as e:
        raise _http_error(e) from e
    except RedisError as e:
        logger.error(f"Queue status cache unavailable: {e}")
        raise HTTPException(status_code=503, detail="Queue status cache unavailable") from e

    payload = lease.status.to_dict()
    key = lease.ref.key
    try:
        job_id = runner.submit(
            reindexer.run,
            lease,
            authorization,
            job_id=f"reindex:{key}:{uuid.uuid4().hex[:8]}",
        )
    except Exception as e:
        logger.error(f"Failed to submit reindex job for {key}: {e}")
        await reindexer.abandon(lease)
        raise HTTPException(status_code=503, detail=f"Failed to enqueue job: {str(e)}") from e

    return {"status": "queued", "jobId": job_id, **payload}
