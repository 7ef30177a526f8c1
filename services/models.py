"""Data models shared by the reindexing pipeline.

Gateway DTOs are pydantic models speaking the gateway's camelCase JSON.
Queue status snapshots are plain dataclasses serialized by hand, the same
way job records are kept in the cache.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class IndexStatus(str, Enum):
    """Index status reported to pollers."""
    UNKNOWN = "Unknown"
    INDEXING = "Indexing"


@dataclass(frozen=True)
class ProjectRef:
    """A (project, branch) pair; the unit of work and the mutex key."""
    project_id: str
    branch_name: str

    @property
    def key(self) -> str:
        return f"{self.project_id}#{self.branch_name}"


class GatewayModel(BaseModel):
    """Base for payloads exchanged with the gateway."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class ProjectMetadata(GatewayModel):
    id: str
    name: str = ""
    description: Optional[str] = None
    default_branch: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    group: Optional[str] = None
    site: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("projectSite", "site"),
        serialization_alias="projectSite",
    )


class DocumentRef(GatewayModel):
    uri: str


class IndexRecord(GatewayModel):
    """Search-ready record uploaded to the search backend."""
    id: str
    project_id: str
    branch_name: str
    project_name: str
    title: str
    url: str
    content: str
    tags: List[str] = Field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


@dataclass
class QueueStatus:
    """Progress snapshot of one reindex job."""
    project_id: str
    branch_name: str
    start_time: Optional[datetime] = None
    documents_indexed: int = 0
    documents_total: Optional[int] = None
    state: IndexStatus = IndexStatus.UNKNOWN

    @classmethod
    def started(cls, ref: ProjectRef) -> 'QueueStatus':
        """Initial snapshot written when a job acquires its lock."""
        return cls(
            project_id=ref.project_id,
            branch_name=ref.branch_name,
            start_time=datetime.now(timezone.utc),
            documents_indexed=0,
            documents_total=None,
            state=IndexStatus.INDEXING,
        )

    @classmethod
    def unknown(cls, ref: ProjectRef) -> 'QueueStatus':
        """Snapshot reported when no job is in flight."""
        return cls(project_id=ref.project_id, branch_name=ref.branch_name)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the status payload served to pollers."""
        return {
            "projectId": self.project_id,
            "branchName": self.branch_name,
            "startTime": self.start_time.isoformat() if self.start_time else None,
            "numberOfIndexedDocuments": self.documents_indexed,
            "numberOfAllDocuments": self.documents_total,
            "indexStatus": self.state.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'QueueStatus':
        start_time = data.get("startTime")
        return cls(
            project_id=data["projectId"],
            branch_name=data["branchName"],
            start_time=datetime.fromisoformat(start_time) if start_time else None,
            documents_indexed=int(data.get("numberOfIndexedDocuments", 0)),
            documents_total=data.get("numberOfAllDocuments"),
            state=IndexStatus(data.get("indexStatus", IndexStatus.UNKNOWN.value)),
        )


@dataclass
class QueueLease:
    """A held queue entry: the job's snapshot plus the token proving ownership."""
    ref: ProjectRef
    owner: str
    status: QueueStatus


@dataclass
class ReindexSummary:
    """Outcome of a completed reindex job."""
    project_id: str
    branch_name: str
    documents_total: int = 0
    documents_processed: int = 0
    documents_uploaded: int = 0
    documents_skipped: int = 0
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "projectId": self.project_id,
            "branchName": self.branch_name,
            "documentsTotal": self.documents_total,
            "documentsProcessed": self.documents_processed,
            "documentsUploaded": self.documents_uploaded,
            "documentsSkipped": self.documents_skipped,
            "durationSeconds": round(self.duration_seconds, 3),
        }
