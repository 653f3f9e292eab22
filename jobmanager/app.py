import argparse
from concurrent.futures import ThreadPoolExecutor

from . import __version__
from .cleanup import cleanup_jobs, remove_all_jobs
from .client import PLATFORM_ERRORS, ClusterConfigError, JobsClient
from .config import CleanupOpts, ConfigError, CreateOpts, LogSettings, RemoveAllOpts
from .dispatch import submit_job
from .env import load_env
from .logger import configure_logger, get_logger
from .retry import RetryError
from .template import TemplateError

logger = get_logger()


def _connect() -> JobsClient:
    try:
        return JobsClient.from_cluster()
    except ClusterConfigError as e:
        raise SystemExit(str(e))


def _run_cleanup(client: JobsClient, opts: CleanupOpts) -> None:
    cleanup_jobs(
        client,
        retention_limit=opts.retention_limit,
        max_attempts=opts.retry.max_attempts,
        base_delay=opts.retry.base_delay,
        dry_run=opts.dry_run,
    )


def cmd_create(args: argparse.Namespace) -> None:
    try:
        cleanup_opts = CleanupOpts.from_env()
        create_opts = CreateOpts.from_env()
    except ConfigError as e:
        raise SystemExit(f"Invalid configuration: {e}")

    client = _connect()

    # Cleanup runs alongside dispatch; leaving the block waits for it either way
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="cleanup") as pool:
        cleanup = pool.submit(_run_cleanup, client, cleanup_opts)
        try:
            created = submit_job(create_opts, client)
        except (TemplateError, RetryError) + PLATFORM_ERRORS as e:
            raise SystemExit(f"Could not create job: {e}")

    cleanup.result()
    logger.log_metrics_summary()

    if created is None:
        print("Skipped: an equivalent job is still active")
        return
    print(f"Created job {created.namespace}/{created.name}")


def cmd_cleanup(args: argparse.Namespace) -> None:
    try:
        opts = CleanupOpts.from_env()
    except ConfigError as e:
        raise SystemExit(f"Invalid configuration: {e}")
    if args.dry_run:
        opts.dry_run = True

    client = _connect()
    _run_cleanup(client, opts)
    logger.log_metrics_summary()


def cmd_remove_all(args: argparse.Namespace) -> None:
    try:
        opts = RemoveAllOpts.from_env()
    except ConfigError as e:
        raise SystemExit(f"Invalid configuration: {e}")

    client = _connect()
    try:
        removed = remove_all_jobs(opts, client)
    except (RetryError,) + PLATFORM_ERRORS as e:
        raise SystemExit(f"Could not remove jobs: {e}")

    logger.log_metrics_summary()
    print(f"Removed {removed} jobs from {opts.namespace}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jobmanager",
        description="jobmanager creates and removes jobs in a cluster.",
    )
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")
    crt = subparsers.add_parser(
        "create",
        help="Create a job from JOB_TEMPLATE_PATH and prune old job runs",
    )
    crt.set_defaults(func=cmd_create)

    cln = subparsers.add_parser("cleanup", help="Prune old job runs in every namespace")
    cln.add_argument("--dry-run", action="store_true", help="Log what would be deleted without deleting")
    cln.set_defaults(func=cmd_cleanup)

    rma = subparsers.add_parser(
        "remove-all",
        help=(
            "Delete every job matching LABEL_SELECTOR in JOB_NAMESPACE. "
            "LABEL_SELECTOR is required; an empty selector is refused "
            "rather than deleting every job in the namespace"
        ),
    )
    rma.set_defaults(func=cmd_remove_all)

    return parser


def main():
    # Load .env if present (LABEL_SELECTOR, JOB_TEMPLATE_PATH, etc.)
    load_env()
    parser = build_parser()
    args = parser.parse_args()

    if args.version:
        print(__version__)
        return

    try:
        log_settings = LogSettings.from_env()
    except ConfigError as e:
        raise SystemExit(f"Invalid configuration: {e}")
    configure_logger(level=log_settings.level, log_dir=log_settings.log_dir)

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()
    raise SystemExit(2)


if __name__ == "__main__":
    main()
