"""
Pytest configuration and shared fixtures.
"""

import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional

import pytest
import yaml
from kubernetes.client.rest import ApiException

from jobmanager.models import JobRecord, Page

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def unavailable() -> ApiException:
    return ApiException(status=503, reason="Service Unavailable")


def _matches(job: JobRecord, label_selector: str) -> bool:
    """Equality-based selectors only ("a=b,c=d")."""
    for term in filter(None, (t.strip() for t in label_selector.split(","))):
        key, _, value = term.partition("=")
        if job.labels.get(key.strip()) != value.strip():
            return False
    return True


def _paginate(items: list, cursor: str, size: int) -> Page:
    start = int(cursor) if cursor else 0
    end = start + size
    return Page(items=items[start:end], cursor=str(end) if end < len(items) else "")


class FakeClient:
    """
    In-memory stand-in for JobsClient.

    Failures are injected per namespace (``list_failures``), for the
    namespace listing (``namespace_failures``) and per job name
    (``delete_errors``). Counts are decremented on each failed call.
    """

    def __init__(
        self,
        jobs: Optional[List[JobRecord]] = None,
        namespaces: Optional[List[str]] = None,
        page_size: Optional[int] = None,
    ):
        self.jobs: List[JobRecord] = list(jobs or [])
        self._lock = threading.Lock()
        if namespaces is None:
            namespaces = sorted({job.namespace for job in self.jobs})
        self.namespaces = namespaces
        self.page_size = page_size

        self.list_failures: Dict[str, int] = {}
        self.list_error = unavailable
        self.namespace_failures = 0
        self.delete_errors: Dict[str, Exception] = {}
        self.create_error: Optional[Exception] = None

        self.list_calls: List[tuple] = []
        self.namespace_calls: List[str] = []
        self.created: List[tuple] = []
        self.deleted: List[tuple] = []

    def _size(self, limit: Optional[int], total: int) -> int:
        sizes = [s for s in (limit, self.page_size) if s]
        return min(sizes) if sizes else max(total, 1)

    def list_jobs(self, namespace, label_selector="", limit=None, cursor=""):
        with self._lock:
            self.list_calls.append((namespace, label_selector, limit, cursor))
            if self.list_failures.get(namespace, 0) > 0:
                self.list_failures[namespace] -= 1
                raise self.list_error()
            snapshot = list(self.jobs)

        matching = [
            job for job in snapshot
            if job.namespace == namespace and _matches(job, label_selector)
        ]
        return _paginate(matching, cursor, self._size(limit, len(matching)))

    def list_namespaces(self, cursor=""):
        self.namespace_calls.append(cursor)
        if self.namespace_failures > 0:
            self.namespace_failures -= 1
            raise unavailable()
        return _paginate(self.namespaces, cursor, self._size(None, len(self.namespaces)))

    def create_job(self, namespace, manifest):
        if self.create_error is not None:
            raise self.create_error
        self.created.append((namespace, manifest))
        metadata = manifest.get("metadata") or {}
        return JobRecord(
            name=metadata.get("name", "created"),
            namespace=namespace,
            labels=dict(metadata.get("labels") or {}),
            active=1,
        )

    def delete_job(self, namespace, name, propagation="Background"):
        if name in self.delete_errors:
            raise self.delete_errors[name]
        with self._lock:
            for job in self.jobs:
                if job.namespace == namespace and job.name == name:
                    self.jobs.remove(job)
                    self.deleted.append((namespace, name, propagation))
                    return
        raise ApiException(status=404, reason="Not Found")

    @property
    def deleted_names(self) -> List[str]:
        return [name for _, name, _ in self.deleted]


def make_job(
    name: str,
    namespace: str = "default",
    release: Optional[str] = "web",
    active: int = 0,
    succeeded: int = 0,
    failed: int = 0,
    completed_minutes: Optional[int] = None,
    labels: Optional[Dict[str, str]] = None,
) -> JobRecord:
    """Build a JobRecord completed ``completed_minutes`` after T0."""
    job_labels = dict(labels or {})
    if release is not None:
        job_labels.setdefault("meta.helm.sh/release-name", release)
    completion = T0 + timedelta(minutes=completed_minutes) if completed_minutes is not None else None
    return JobRecord(
        name=name,
        namespace=namespace,
        labels=job_labels,
        active=active,
        succeeded=succeeded,
        failed=failed,
        completion_time=completion,
    )


@pytest.fixture
def job_template() -> dict:
    """Minimal batch/v1 Job manifest."""
    return {
        "apiVersion": "batch/v1",
        "kind": "Job",
        "metadata": {"name": "nightly-report", "namespace": "reports"},
        "spec": {
            "template": {
                "spec": {
                    "containers": [{"name": "report", "image": "registry.example.com/report:1.2"}],
                    "restartPolicy": "Never",
                }
            }
        },
    }


@pytest.fixture
def template_file(tmp_path, job_template) -> Path:
    """Job template written to a YAML file."""
    path = tmp_path / "job.yaml"
    path.write_text(yaml.safe_dump(job_template))
    return path
