"""
Create a job from its template unless an equivalent run is in flight.
"""

from typing import Optional

from .client import JobsClient
from .config import CreateOpts
from .guard import has_active_run
from .logger import get_logger
from .models import JobRecord
from .template import add_image_pull_secrets, read_template, template_namespace

logger = get_logger()


def submit_job(opts: CreateOpts, client: JobsClient) -> Optional[JobRecord]:
    """
    Create the job described by ``opts.template_path``.

    Returns the created job, or None when concurrency is disallowed and a job
    matching ``opts.label_selector`` is still active. Skipping is not an error.

    Raises:
        TemplateError: If the template cannot be loaded
        RetryError: If the active-run check could not list jobs
        ApiException: If the API rejects the listing or the create call
    """
    job = read_template(opts.template_path)
    namespace = template_namespace(job)

    if not opts.allow_concurrency and has_active_run(
        client,
        namespace,
        opts.label_selector,
        max_attempts=opts.retry.max_attempts,
        base_delay=opts.retry.base_delay,
    ):
        logger.record_dispatch_skipped()
        logger.info(
            "Skipping job creation, an equivalent job is still active",
            namespace=namespace,
            label_selector=opts.label_selector,
        )
        return None

    manifest = add_image_pull_secrets(job, opts.image_pull_secrets)
    created = client.create_job(namespace, manifest)
    logger.info("Created job", namespace=created.namespace, job=created.name)
    return created
