"""
Snapshots of cluster objects as the job manager sees them.

Records are built from Kubernetes API responses and never mutated locally;
every run re-reads the cluster.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class JobRecord:
    """A batch/v1 Job: identity, labels and status counters."""

    name: str
    namespace: str
    labels: Dict[str, str] = field(default_factory=dict)
    active: int = 0
    succeeded: int = 0
    failed: int = 0
    completion_time: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.active > 0

    @classmethod
    def from_k8s(cls, job: Any) -> "JobRecord":
        """
        Build a record from a ``kubernetes.client.V1Job``.

        Counters the API leaves unset (``None``) are read as zero.
        """
        metadata = job.metadata
        status = job.status
        return cls(
            name=metadata.name,
            namespace=metadata.namespace,
            labels=dict(metadata.labels or {}),
            active=(status.active or 0) if status else 0,
            succeeded=(status.succeeded or 0) if status else 0,
            failed=(status.failed or 0) if status else 0,
            completion_time=status.completion_time if status else None,
        )


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a paginated listing. An empty cursor marks the last page."""

    items: List[T]
    cursor: str = ""

    @property
    def is_last(self) -> bool:
        return not self.cursor
