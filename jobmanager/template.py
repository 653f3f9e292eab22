"""
Job template loading and pod spec overrides.

Templates are batch/v1 Job manifests in YAML, kept as plain dicts so they can
be passed straight to the Kubernetes API.
"""

import copy
from pathlib import Path
from typing import Any, Dict, Iterable

import yaml

DEFAULT_NAMESPACE = "default"


class TemplateError(Exception):
    """Raised when a job template cannot be read or parsed."""
    pass


def read_template(path: Path) -> Dict[str, Any]:
    """
    Load a Job manifest from a YAML file.

    Raises:
        TemplateError: If the file is unreadable, not YAML, or not a mapping
    """
    try:
        content = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise TemplateError(f"Could not read from file: {e}") from e

    try:
        job = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise TemplateError(f"Could not parse yaml into job spec: {e}") from e

    if not isinstance(job, dict):
        raise TemplateError(
            f"Could not parse yaml into job spec: expected a mapping, got {type(job).__name__}"
        )
    return job


def template_namespace(job: Dict[str, Any]) -> str:
    metadata = job.get("metadata") or {}
    return metadata.get("namespace") or DEFAULT_NAMESPACE


def add_image_pull_secrets(job: Dict[str, Any], secrets: Iterable[str]) -> Dict[str, Any]:
    """
    Return a copy of ``job`` with ``secrets`` appended to the pod spec's
    imagePullSecrets, in order and after any entries already present.
    """
    job = copy.deepcopy(job)
    secrets = list(secrets)
    if not secrets:
        return job

    # Empty YAML keys ("spec:") load as None
    job_spec = job["spec"] = job.get("spec") or {}
    pod_template = job_spec["template"] = job_spec.get("template") or {}
    pod_spec = pod_template["spec"] = pod_template.get("spec") or {}
    pull_secrets = pod_spec.get("imagePullSecrets") or []
    pull_secrets.extend({"name": name} for name in secrets)
    pod_spec["imagePullSecrets"] = pull_secrets
    return job
