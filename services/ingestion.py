"""Job storage, deduplicated ingestion and the retention sweep."""
from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Protocol

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models import Job
from app.schemas import (
    AuditAction,
    IngestionReport,
    JobRecord,
    JobStatus,
    RawJob,
    TargetResult,
    Verdict,
)
from app.targets import ScrapeTarget, record_error, record_success, unhealthy_targets
from services.audit import AuditSink

logger = logging.getLogger(__name__)

_MUTABLE_FIELDS = ("company", "title", "url", "location", "is_remote", "description", "posted_at")


class JobStore:
    """Persist jobs keyed by (provider, provider_job_id)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], audit: AuditSink | None = None) -> None:
        self.session_factory = session_factory
        self.audit = audit

    async def save_job(self, raw: RawJob) -> str | None:
        """Insert a new posting and return its id.

        A posting that already exists is refreshed in place and ``None`` is
        returned, so callers can count inserts versus updates.
        """

        async with self.session_factory() as session:
            existing = await self._find(session, raw.provider, raw.provider_job_id)
            if existing is not None:
                for name in _MUTABLE_FIELDS:
                    setattr(existing, name, getattr(raw, name))
                existing.last_seen_at = datetime.utcnow()
                existing.is_active = True
                await session.commit()
                logger.debug("Refreshed job %s (%s/%s)", existing.id, raw.provider, raw.provider_job_id)
                return None

            job = Job(
                provider=raw.provider,
                provider_job_id=raw.provider_job_id,
                company=raw.company,
                title=raw.title,
                url=raw.url,
                location=raw.location,
                is_remote=raw.is_remote,
                description=raw.description,
                posted_at=raw.posted_at,
                status=JobStatus.PENDING.value,
            )
            session.add(job)
            await session.commit()
            await session.refresh(job)

        logger.info("Saved new job %s: %s - %s", job.id, raw.company, raw.title)
        if self.audit is not None:
            self.audit.record(
                AuditAction.INGEST,
                job_id=job.id,
                verdict=Verdict.ACCEPTED,
                details={"source": raw.provider, "company": raw.company, "title": raw.title},
            )
        return job.id

    async def list_pending_jobs(self, limit: int) -> list[JobRecord]:
        stmt = (
            select(Job)
            .where(Job.status == JobStatus.PENDING.value, Job.is_active.is_(True))
            .order_by(Job.created_at.asc(), Job.id.asc())
            .limit(limit)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [JobRecord.model_validate(row) for row in result.scalars().all()]

    async def update_status(self, job_id: str, status: JobStatus) -> None:
        stmt = (
            update(Job)
            .where(Job.id == job_id)
            .values(status=status.value, updated_at=datetime.utcnow())
        )
        async with self.session_factory() as session:
            await session.execute(stmt)
            await session.commit()
        logger.debug("Job %s -> %s", job_id, status.value)

    async def get_job(self, job_id: str) -> JobRecord | None:
        async with self.session_factory() as session:
            job = await session.get(Job, job_id)
            return JobRecord.model_validate(job) if job else None

    async def list_jobs(self, status: JobStatus | None = None, limit: int = 100) -> list[JobRecord]:
        stmt = select(Job).order_by(Job.created_at.desc()).limit(limit)
        if status is not None:
            stmt = stmt.where(Job.status == status.value)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [JobRecord.model_validate(row) for row in result.scalars().all()]

    async def job_stats(self) -> dict[str, int]:
        stats = {status.value: 0 for status in JobStatus}
        stmt = select(Job.status, func.count()).group_by(Job.status)
        async with self.session_factory() as session:
            for status, count in (await session.execute(stmt)).all():
                stats[status] = count
        stats["total"] = sum(stats.values())
        return stats

    async def mark_stale_inactive(self, stale_days: int) -> int:
        cutoff = datetime.utcnow() - timedelta(days=stale_days)
        stmt = (
            update(Job)
            .where(Job.is_active.is_(True), Job.last_seen_at < cutoff)
            .values(is_active=False)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
        count = result.rowcount or 0
        logger.info("Marked %d stale jobs inactive (not seen in %d days)", count, stale_days)
        return count

    async def purge_inactive(self, purge_days: int) -> int:
        cutoff = datetime.utcnow() - timedelta(days=purge_days)
        stmt = delete(Job).where(Job.is_active.is_(False), Job.last_seen_at < cutoff)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
        count = result.rowcount or 0
        logger.info("Purged %d inactive jobs (not seen in %d days)", count, purge_days)
        return count

    @staticmethod
    async def _find(session: AsyncSession, provider: str, provider_job_id: str) -> Job | None:
        stmt = select(Job).where(Job.provider == provider, Job.provider_job_id == provider_job_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()


class Scraper(Protocol):
    name: str

    async def scrape(self, url: str) -> list[RawJob]: ...


class SampleFileScraper:
    """Read normalized postings from a local JSON file (``file:`` targets)."""

    name = "SampleFile"

    async def scrape(self, url: str) -> list[RawJob]:
        path = Path(url.removeprefix("file:"))
        if not path.exists():
            raise FileNotFoundError(f"Sample job file not found: {path}")
        with path.open("r", encoding="utf-8") as handle:
            return [RawJob.model_validate(item) for item in json.load(handle)]


class IngestionService:
    """Run every enabled target through its scraper and store the results."""

    def __init__(self, store: JobStore, scrapers: dict[str, Scraper] | None = None) -> None:
        self.store = store
        self.scrapers: dict[str, Scraper] = {"file": SampleFileScraper()}
        self.scrapers.update(scrapers or {})

    def resolve(self, target: ScrapeTarget) -> Scraper | None:
        if target.url.startswith("file:"):
            return self.scrapers.get("file")
        return self.scrapers.get(target.provider)

    async def run(self, targets: list[ScrapeTarget]) -> IngestionReport:
        logger.info("Starting job ingestion cycle for %d targets", len(targets))
        started = time.monotonic()
        report = IngestionReport(duration_seconds=0.0, total_targets=len(targets))

        for target in targets:
            scraper = self.resolve(target)
            if scraper is None:
                logger.warning("No scraper registered for target %s (%s)", target.name, target.provider)
                report.results.append(
                    TargetResult(target=target.id, success=False, error=f"no scraper for {target.provider}")
                )
                continue

            try:
                jobs = await scraper.scrape(target.url)
                result = TargetResult(target=target.id, success=True, jobs_found=len(jobs))
                for raw in jobs:
                    if await self.store.save_job(raw):
                        result.jobs_inserted += 1
                    else:
                        result.jobs_updated += 1
                record_success(target)
            except Exception as exc:  # pylint: disable=broad-except
                record_error(target)
                logger.error("Error ingesting from %s: %s", target.url, exc)
                result = TargetResult(target=target.id, success=False, error=str(exc))

            report.results.append(result)
            logger.info(
                "Target %s: %d found, %d new, %d updated",
                target.name, result.jobs_found, result.jobs_inserted, result.jobs_updated,
            )

        report.successful_targets = sum(1 for r in report.results if r.success)
        report.jobs_found = sum(r.jobs_found for r in report.results)
        report.jobs_inserted = sum(r.jobs_inserted for r in report.results)
        report.jobs_updated = sum(r.jobs_updated for r in report.results)
        report.duration_seconds = round(time.monotonic() - started, 3)

        for target in unhealthy_targets(targets):
            logger.warning("Unhealthy target %s: %d consecutive errors", target.name, target.error_count)

        logger.info("Job ingestion cycle complete")
        return report
