"""
Cleanup of historical job runs.

Completed jobs are grouped by the release that owns them and only the most
recent runs per release and outcome are kept. This keeps the cluster from
accumulating finished Job objects forever.
"""

import functools
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Tuple

from .client import BACKGROUND_PROPAGATION, PLATFORM_ERRORS, JobsClient, is_not_found
from .config import DEFAULT_RETENTION_LIMIT, RemoveAllOpts
from .listing import DEFAULT_MAX_ATTEMPTS, Listing
from .logger import get_logger
from .models import JobRecord

logger = get_logger()

RELEASE_LABEL = "meta.helm.sh/release-name"
INSTANCE_LABEL = "app.kubernetes.io/instance"


def release_key(job: JobRecord) -> Optional[str]:
    """Release owning ``job``, or None when its labels don't say."""
    return job.labels.get(RELEASE_LABEL) or job.labels.get(INSTANCE_LABEL) or None


def group_by_release(jobs: Iterable[JobRecord]) -> Dict[str, List[JobRecord]]:
    """
    Group jobs by release, keeping discovery order within each group.

    Jobs without a release are left out and so are never pruned.
    """
    releases: Dict[str, List[JobRecord]] = {}
    unowned = 0

    for job in jobs:
        key = release_key(job)
        if key is None:
            unowned += 1
            continue
        releases.setdefault(key, []).append(job)

    if unowned:
        logger.debug("Jobs without a release label are not pruned", count=unowned)

    return releases


def split_buckets(jobs: Iterable[JobRecord]) -> Tuple[List[JobRecord], List[JobRecord]]:
    """
    Partition finished jobs into (succeeded, failed), most recent first.

    Active jobs and jobs without a completion time are in neither bucket.
    Sorting is stable, so jobs completed at the same instant keep discovery order.
    """
    succeeded: List[JobRecord] = []
    failed: List[JobRecord] = []

    for job in jobs:
        if job.is_active or job.completion_time is None:
            continue
        if job.succeeded > 0:
            succeeded.append(job)
        elif job.failed > 0:
            failed.append(job)

    succeeded.sort(key=lambda j: j.completion_time, reverse=True)
    failed.sort(key=lambda j: j.completion_time, reverse=True)
    return succeeded, failed


def enforce_retention(
    client: JobsClient,
    jobs: List[JobRecord],
    retention_limit: int = DEFAULT_RETENTION_LIMIT,
    dry_run: bool = False,
) -> List[JobRecord]:
    """
    Delete the jobs of one release beyond the newest ``retention_limit``
    succeeded and the newest ``retention_limit`` failed runs.

    Args:
        client: Platform client
        jobs: Every discovered job of a single release
        retention_limit: Runs to keep per outcome
        dry_run: Log the jobs that would be deleted without deleting them

    Returns:
        The jobs pruned by this call. Jobs whose deletion failed are not included.
    """
    pruned: List[JobRecord] = []

    for bucket in split_buckets(jobs):
        for job in bucket[retention_limit:]:
            if dry_run:
                logger.info("[DRY RUN] Would delete job", namespace=job.namespace, job=job.name)
                pruned.append(job)
            elif _delete_quietly(client, job):
                pruned.append(job)

    return pruned


def _delete_quietly(client: JobsClient, job: JobRecord) -> bool:
    try:
        client.delete_job(job.namespace, job.name, propagation=BACKGROUND_PROPAGATION)
    except PLATFORM_ERRORS as e:
        if is_not_found(e):
            logger.debug("Job already deleted", namespace=job.namespace, job=job.name)
            return True
        logger.record_delete_failure(type(e).__name__)
        logger.error(
            "Failed to delete job",
            namespace=job.namespace,
            job=job.name,
            error=str(e),
        )
        return False

    logger.record_job_deleted()
    logger.debug(
        "Deleted job",
        namespace=job.namespace,
        job=job.name,
        completion_time=job.completion_time,
    )
    return True


def _list_namespace_jobs(
    client: JobsClient,
    namespace: str,
    max_attempts: int,
    base_delay: float,
) -> List[JobRecord]:
    listing = Listing(
        functools.partial(client.list_jobs, namespace),
        max_attempts=max_attempts,
        base_delay=base_delay,
    )
    return listing.collect(f"jobs in namespace {namespace}")


def cleanup_jobs(
    client: JobsClient,
    retention_limit: int = DEFAULT_RETENTION_LIMIT,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = 0.0,
    dry_run: bool = False,
) -> None:
    """
    Prune old job runs across every namespace.

    Namespaces are listed first, then each namespace's jobs are listed on its
    own worker. Once every listing has finished, each release is pruned on its
    own worker. Listing failures skip the affected namespace and delete
    failures skip the affected job, so the pass always runs to completion.
    """
    logger.info("Deleting older job runs, if any", retention_limit=retention_limit, dry_run=dry_run)

    namespaces = Listing(
        client.list_namespaces,
        max_attempts=max_attempts,
        base_delay=base_delay,
    ).collect("namespaces")

    jobs: List[JobRecord] = []
    if namespaces:
        list_jobs = functools.partial(
            _list_namespace_jobs,
            client,
            max_attempts=max_attempts,
            base_delay=base_delay,
        )
        with ThreadPoolExecutor(max_workers=len(namespaces), thread_name_prefix="list") as pool:
            for namespace_jobs in pool.map(list_jobs, namespaces):
                jobs.extend(namespace_jobs)

    logger.record_jobs_discovered(len(jobs))
    releases = group_by_release(jobs)

    deleted = 0
    if releases:
        with ThreadPoolExecutor(max_workers=len(releases), thread_name_prefix="prune") as pool:
            futures = [
                pool.submit(enforce_retention, client, release_jobs, retention_limit, dry_run)
                for release_jobs in releases.values()
            ]
            for future in futures:
                deleted += len(future.result())

    logger.info(
        "Deleted older job runs, if any",
        namespaces=len(namespaces),
        jobs=len(jobs),
        releases=len(releases),
        deleted=deleted,
    )


def remove_all_jobs(
    opts: RemoveAllOpts,
    client: JobsClient,
) -> int:
    """
    Delete every job matching ``opts.label_selector`` in ``opts.namespace``.

    Unlike cleanup, errors propagate: a failed listing or delete aborts the
    removal. Jobs already gone are skipped.

    Returns:
        Number of jobs removed
    """
    listing = Listing(
        functools.partial(client.list_jobs, opts.namespace, opts.label_selector),
        max_attempts=opts.retry.max_attempts,
        base_delay=opts.retry.base_delay,
    )
    # Read every page before deleting so the cursor isn't invalidated under us
    matching = list(listing.items())

    removed = 0
    for job in matching:
        try:
            client.delete_job(opts.namespace, job.name, propagation=BACKGROUND_PROPAGATION)
        except PLATFORM_ERRORS as e:
            if not is_not_found(e):
                raise
            logger.debug("Job already deleted", namespace=opts.namespace, job=job.name)
            continue
        logger.record_job_deleted()
        removed += 1

    logger.info(
        "Removed jobs",
        namespace=opts.namespace,
        label_selector=opts.label_selector,
        removed=removed,
    )
    return removed
