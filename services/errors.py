"""Error taxonomy for reindex jobs."""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    GATEWAY_UNAVAILABLE = "GatewayUnavailable"
    DOWNLOAD_PROJECT_DATA = "DownloadProjectData"
    DOWNLOAD_DOCUMENTS = "DownloadDocuments"
    DOWNLOAD_DOCUMENT_CONTENT = "DownloadDocumentContent"
    REMOVE_INDEX_FAILED = "RemoveIndexFailed"
    UPLOAD_DOCUMENT_FAILED = "UploadDocumentFailed"
    QUEUE_ALREADY_EXISTS = "QueueAlreadyExists"
    QUEUE_OWNERSHIP_LOST = "QueueOwnershipLost"


class ReindexError(Exception):
    """Base class for every failure a reindex job can end with."""

    kind: ErrorKind

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_body = response_body

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "statusCode": self.status_code,
        }


class GatewayUnavailableError(ReindexError):
    kind = ErrorKind.GATEWAY_UNAVAILABLE


class DownloadProjectDataError(ReindexError):
    kind = ErrorKind.DOWNLOAD_PROJECT_DATA


class DownloadDocumentsError(ReindexError):
    kind = ErrorKind.DOWNLOAD_DOCUMENTS


class DownloadDocumentContentError(ReindexError):
    kind = ErrorKind.DOWNLOAD_DOCUMENT_CONTENT


class RemoveIndexError(ReindexError):
    kind = ErrorKind.REMOVE_INDEX_FAILED


class UploadDocumentError(ReindexError):
    kind = ErrorKind.UPLOAD_DOCUMENT_FAILED


class QueueAlreadyExistsError(ReindexError):
    """Raised when a job for the same project and branch is still running."""
    kind = ErrorKind.QUEUE_ALREADY_EXISTS


class QueueOwnershipLostError(ReindexError):
    """Raised when a job's queue entry expired or was taken over by another job."""
    kind = ErrorKind.QUEUE_OWNERSHIP_LOST
