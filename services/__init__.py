"""Collaborators of the reindex pipeline: models, cache, discovery and gateway."""

from .errors import (
    ErrorKind,
    ReindexError,
    GatewayUnavailableError,
    DownloadProjectDataError,
    DownloadDocumentsError,
    DownloadDocumentContentError,
    RemoveIndexError,
    UploadDocumentError,
    QueueAlreadyExistsError,
    QueueOwnershipLostError,
)
from .models import (
    IndexStatus,
    ProjectRef,
    ProjectMetadata,
    DocumentRef,
    IndexRecord,
    QueueStatus,
    QueueLease,
    ReindexSummary,
)
from .queue_store import QueueStatusStore, RedisQueueStatusStore
from .discovery import ServiceLocator, DiscoveryServiceLocator
from .gateway import GatewayClient, HttpGatewayClient

__all__ = [
    'ErrorKind',
    'ReindexError',
    'GatewayUnavailableError',
    'DownloadProjectDataError',
    'DownloadDocumentsError',
    'DownloadDocumentContentError',
    'RemoveIndexError',
    'UploadDocumentError',
    'QueueAlreadyExistsError',
    'QueueOwnershipLostError',
    'IndexStatus',
    'ProjectRef',
    'ProjectMetadata',
    'DocumentRef',
    'IndexRecord',
    'QueueStatus',
    'QueueLease',
    'ReindexSummary',
    'QueueStatusStore',
    'RedisQueueStatusStore',
    'ServiceLocator',
    'DiscoveryServiceLocator',
    'GatewayClient',
    'HttpGatewayClient',
]
