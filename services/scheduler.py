"""Scheduled runner: ingest, process the queue, then sweep stale jobs.

Meant to be invoked by cron or a CI schedule::

    python -m services.scheduler                 # scrape, dry-run queue, cleanup
    python -m services.scheduler --scrape-only
    python -m services.scheduler --cleanup-only
    python -m services.scheduler --limit 5 --submit
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from app.config import Settings, get_settings
from app.errors import QueueStateError
from app.log import configure_logging
from app.schemas import CleanupReport, ScheduledRunReport
from app.targets import ScrapeTarget, enabled_targets

logger = logging.getLogger(__name__)


async def run_cleanup(pipeline, settings: Settings) -> CleanupReport:
    logger.info("Starting retention sweep")
    report = CleanupReport(
        stale_marked=await pipeline.store.mark_stale_inactive(settings.stale_days),
        purged=await pipeline.store.purge_inactive(settings.purge_days),
    )
    logger.info("Marked inactive: %d, purged: %d", report.stale_marked, report.purged)
    return report


async def run_scheduled(
    pipeline,
    *,
    targets: list[ScrapeTarget] | None = None,
    scrape: bool = True,
    process: bool = True,
    cleanup: bool = True,
    limit: int | None = None,
    dry_run: bool | None = None,
    user_id: str = "default",
) -> ScheduledRunReport:
    settings = pipeline.settings
    report = ScheduledRunReport()

    if scrape:
        report.ingestion = await pipeline.ingestion.run(enabled_targets(targets))
        logger.info(
            "Ingestion: %d/%d targets, %d found, %d new, %d updated",
            report.ingestion.successful_targets, report.ingestion.total_targets,
            report.ingestion.jobs_found, report.ingestion.jobs_inserted, report.ingestion.jobs_updated,
        )

    if process:
        try:
            report.queue = await pipeline.processor.process_queue(
                limit or settings.default_queue_limit,
                settings.default_dry_run if dry_run is None else dry_run,
                user_id,
            )
        except QueueStateError as exc:
            logger.warning("Skipping queue processing: %s", exc)

    if cleanup:
        report.cleanup = await run_cleanup(pipeline, settings)

    return report


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run one scheduled pipeline cycle")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--scrape-only", action="store_true", help="ingest targets and stop")
    mode.add_argument("--cleanup-only", action="store_true", help="only run the retention sweep")
    parser.add_argument("--limit", type=int, default=None, help="maximum jobs to process")
    parser.add_argument("--submit", action="store_true", help="dispatch real submissions (default is dry run)")
    parser.add_argument("--user", default="default", help="profile id to apply with")
    parser.add_argument(
        "--sample-file", action="store_true", help="ingest from the configured sample job file only"
    )
    return parser.parse_args(argv)


async def _main(args: argparse.Namespace) -> int:
    from app.dependencies import build_pipeline

    settings = get_settings()
    configure_logging(settings)
    pipeline = build_pipeline(settings)
    await pipeline.start()

    targets = None
    if args.sample_file:
        targets = [ScrapeTarget("sample", "Sample jobs", f"file:{settings.sample_job_file}", "file")]

    try:
        report = await run_scheduled(
            pipeline,
            targets=targets,
            scrape=not args.cleanup_only,
            process=not (args.scrape_only or args.cleanup_only),
            cleanup=not args.scrape_only,
            limit=args.limit,
            dry_run=not args.submit,
            user_id=args.user,
        )
    except Exception:  # pylint: disable=broad-except
        logger.exception("Scheduled run failed")
        return 1
    finally:
        await pipeline.close()

    logger.info("Scheduled run complete: %s", report.model_dump_json(exclude={"queue": {"outcomes"}}))
    return 0


def main(argv: list[str] | None = None) -> int:
    return asyncio.run(_main(_parse_args(argv)))


if __name__ == "__main__":
    sys.exit(main())
