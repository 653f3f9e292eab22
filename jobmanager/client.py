"""
Thin wrapper over the Kubernetes batch and core APIs.

Only the calls the job manager needs are exposed, and list results are
converted to JobRecord pages so the rest of the package never touches
generated API models.
"""

from typing import Any, Dict, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from .logger import get_logger
from .models import JobRecord, Page

logger = get_logger()

# Failures of a platform call, as opposed to bugs in our own code
PLATFORM_ERRORS = (ApiException, HTTPError, OSError)

BACKGROUND_PROPAGATION = "Background"


class ClusterConfigError(Exception):
    """Raised when neither in-cluster nor kubeconfig credentials are available."""
    pass


class JobsClient:
    """Lists, creates and deletes Jobs; lists Namespaces."""

    def __init__(self, batch_api: client.BatchV1Api, core_api: client.CoreV1Api):
        self.batch_api = batch_api
        self.core_api = core_api

    @classmethod
    def from_cluster(cls) -> "JobsClient":
        """
        Build a client from the pod's service account, falling back to the
        local kubeconfig when running outside the cluster.
        """
        try:
            config.load_incluster_config()
        except config.ConfigException:
            try:
                config.load_kube_config()
            except (config.ConfigException, OSError) as e:
                raise ClusterConfigError(f"Could not read in cluster config: {e}") from e
        return cls(client.BatchV1Api(), client.CoreV1Api())

    def list_jobs(
        self,
        namespace: str,
        label_selector: str = "",
        limit: Optional[int] = None,
        cursor: str = "",
    ) -> Page[JobRecord]:
        kwargs: Dict[str, Any] = {}
        if label_selector:
            kwargs["label_selector"] = label_selector
        if limit:
            kwargs["limit"] = limit
        if cursor:
            kwargs["_continue"] = cursor

        logger.record_api_call()
        result = self.batch_api.list_namespaced_job(namespace, **kwargs)
        return Page(
            items=[JobRecord.from_k8s(job) for job in result.items or []],
            cursor=_continue_token(result),
        )

    def list_namespaces(self, cursor: str = "") -> Page[str]:
        kwargs: Dict[str, Any] = {}
        if cursor:
            kwargs["_continue"] = cursor

        logger.record_api_call()
        result = self.core_api.list_namespace(**kwargs)
        return Page(
            items=[ns.metadata.name for ns in result.items or []],
            cursor=_continue_token(result),
        )

    def create_job(self, namespace: str, manifest: Dict[str, Any]) -> JobRecord:
        logger.record_api_call()
        created = self.batch_api.create_namespaced_job(namespace, manifest)
        return JobRecord.from_k8s(created)

    def delete_job(
        self,
        namespace: str,
        name: str,
        propagation: str = BACKGROUND_PROPAGATION,
    ) -> None:
        logger.record_api_call()
        self.batch_api.delete_namespaced_job(
            name,
            namespace,
            propagation_policy=propagation,
        )


def _continue_token(result: Any) -> str:
    metadata = getattr(result, "metadata", None)
    if metadata is None:
        return ""
    return metadata._continue or ""


def is_not_found(exception: Exception) -> bool:
    """True for an API error meaning the object is already gone."""
    return isinstance(exception, ApiException) and exception.status == 404
