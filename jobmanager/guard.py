"""
Check for an in-flight run before creating a job.
"""

import functools

from .client import JobsClient
from .listing import DEFAULT_MAX_ATTEMPTS, Listing
from .logger import get_logger

logger = get_logger()

GUARD_PAGE_SIZE = 25


def has_active_run(
    client: JobsClient,
    namespace: str,
    label_selector: str,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = 0.0,
) -> bool:
    """
    Return True if any job matching ``label_selector`` in ``namespace`` is active.

    Stops at the first active job without reading the remaining pages. Listing
    errors are not tolerated here: RetryError or the API error propagates so
    the caller never creates a job on an unverified precondition.
    """
    listing = Listing(
        functools.partial(client.list_jobs, namespace, label_selector, GUARD_PAGE_SIZE),
        max_attempts=max_attempts,
        base_delay=base_delay,
    )
    for job in listing.items():
        if job.is_active:
            logger.info(
                "Found active job",
                namespace=namespace,
                job=job.name,
                label_selector=label_selector,
            )
            return True
    return False
