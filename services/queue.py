"""Unattended queue processor: filter, match and submit pending jobs one at a time."""
from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from app.config import Settings
from app.errors import (
    AnomalyError,
    ProviderUnsupported,
    QueueBusy,
    QueuePaused,
    TransientError,
    UnknownError,
)
from app.schemas import (
    AuditAction,
    FilterStatus,
    JobOutcome,
    JobOutcomeKind,
    JobRecord,
    JobStatus,
    QueueReport,
    QueueStatus,
    UserProfile,
    Verdict,
)
from services.application import ApplicationSubmitter
from services.audit import AuditSink
from services.documents import DocumentGenerator
from services.filtering import FilterEngine
from services.ingestion import JobStore
from services.matching import ResumeSelector
from services.profile import ProfileStore

logger = logging.getLogger(__name__)


class QueuePhase(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"


@dataclass
class QueueRunState:
    """Run state owned by one processor instance.

    A paused queue never starts a job. ``resume`` clears the pause but leaves
    ``consecutive_failures`` alone; only :meth:`reset_failures` does that.
    """

    is_running: bool = False
    is_paused: bool = False
    pause_reason: str | None = None
    stop_requested: bool = False
    consecutive_failures: int = 0
    last_activity_at: datetime | None = None

    @property
    def phase(self) -> QueuePhase:
        if self.is_paused:
            return QueuePhase.PAUSED
        if self.is_running:
            return QueuePhase.RUNNING
        return QueuePhase.IDLE

    def touch(self) -> None:
        self.last_activity_at = datetime.utcnow()

    def reset_failures(self) -> None:
        self.consecutive_failures = 0


class QueueProcessor:
    def __init__(
        self,
        settings: Settings,
        *,
        store: JobStore,
        profiles: ProfileStore,
        submitter: ApplicationSubmitter,
        audit: AuditSink,
        documents: DocumentGenerator | None = None,
        selector: ResumeSelector | None = None,
        state: QueueRunState | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.profiles = profiles
        self.submitter = submitter
        self.audit = audit
        self.documents = documents or DocumentGenerator(settings)
        self.selector = selector or ResumeSelector(audit)
        self.state = state or QueueRunState()

    def get_status(self) -> QueueStatus:
        return QueueStatus(
            is_running=self.state.is_running,
            is_paused=self.state.is_paused,
            pause_reason=self.state.pause_reason,
            consecutive_failures=self.state.consecutive_failures,
            last_activity_at=self.state.last_activity_at,
        )

    def pause(self, reason: str = "Paused by operator") -> None:
        self.state.is_paused = True
        self.state.pause_reason = reason
        logger.warning("Queue PAUSED: %s", reason)

    def resume(self) -> None:
        self.state.is_paused = False
        self.state.pause_reason = None
        logger.info("Queue resumed (consecutive failures: %d)", self.state.consecutive_failures)

    def stop(self) -> None:
        if self.state.is_running:
            self.state.stop_requested = True
            logger.info("Queue stop signal received; finishing current job")

    async def process_queue(self, limit: int = 1, dry_run: bool = True, user_id: str = "default") -> QueueReport:
        if self.state.is_running:
            raise QueueBusy("Queue is already processing")
        if self.state.is_paused:
            raise QueuePaused(f"Queue is paused ({self.state.pause_reason}); resume to continue")

        self.state.is_running = True
        self.state.stop_requested = False
        self.state.touch()
        started_at = datetime.utcnow()
        started = time.monotonic()
        report = QueueReport(started_at=started_at, duration_seconds=0.0, dry_run=dry_run)
        logger.info("Starting queue processing. Limit: %d, dry run: %s", limit, dry_run)

        try:
            jobs = await self.store.list_pending_jobs(limit)
            report.jobs_found = len(jobs)
            if not jobs:
                logger.info("No pending jobs found")
                return report

            profile = self.profiles.get_profile(user_id)
            engine = FilterEngine.from_preferences(profile.preferences)

            for index, job in enumerate(jobs):
                if index and self.settings.inter_job_delay_seconds > 0:
                    await asyncio.sleep(self.settings.inter_job_delay_seconds)
                # Checked after the delay: a pause or stop may arrive while sleeping.
                if self.state.stop_requested or self.state.is_paused:
                    logger.info("Queue processing stopped before job %s", job.id)
                    break

                outcome = await self._process_job(job, profile, engine, dry_run)
                report.jobs_processed += 1
                report.outcomes.append(outcome)
                self._tally(report, outcome)
                self.state.touch()
        finally:
            self.state.is_running = False
            self.state.stop_requested = False
            report.paused = self.state.is_paused
            report.pause_reason = self.state.pause_reason
            report.duration_seconds = round(time.monotonic() - started, 3)
            await self.audit.flush()
            logger.info(
                "Queue processing finished: processed=%d applied=%d rejected=%d review=%d failed=%d",
                report.jobs_processed, report.applied, report.rejected, report.needs_review, report.failed,
            )

        return report

    async def _process_job(
        self,
        job: JobRecord,
        profile: UserProfile,
        engine: FilterEngine,
        dry_run: bool,
    ) -> JobOutcome:
        logger.info("Processing job %s - %s (%s)", job.id, job.company, job.title)

        verdict = engine.evaluate(job)
        self.audit.record(
            AuditAction.FILTER,
            job_id=job.id,
            verdict=Verdict(verdict.status.value),
            details={"reason": verdict.reason, "trigger_rule": verdict.rule},
            metadata={"job_title": job.title},
        )
        if verdict.status is FilterStatus.REJECTED:
            await self._set_status(job, JobStatus.REJECTED, dry_run)
            return self._outcome(job, JobOutcomeKind.REJECTED, verdict.reason)

        match = self.selector.select(job, profile)
        resume_path = None
        try:
            resume_path = await self.documents.generate(profile, job, match)
            result = await self.submitter.submit_job(job, profile, resume_path, dry_run=dry_run)
        except AnomalyError as exc:
            self.pause(exc.reason)
            self._audit_error(job, exc, kind="anomaly")
            return self._outcome(job, JobOutcomeKind.ANOMALY, exc.reason, match=match)
        except TransientError as exc:
            self.state.consecutive_failures += 1
            self._audit_error(job, exc, kind="transient")
            threshold = self.settings.failure_streak_threshold
            logger.warning(
                "Transient failure for job %s (%d consecutive): %s",
                job.id, self.state.consecutive_failures, exc.reason,
            )
            if threshold and self.state.consecutive_failures >= threshold:
                self.pause(f"{self.state.consecutive_failures} consecutive transient failures; last: {exc.reason}")
            return self._outcome(job, JobOutcomeKind.TRANSIENT_ERROR, exc.reason, match=match)
        except ProviderUnsupported as exc:
            await self._set_status(job, JobStatus.ANALYZED, dry_run)
            self._audit_error(job, exc, kind="unsupported")
            return self._outcome(job, JobOutcomeKind.UNSUPPORTED, exc.reason, match=match)
        except UnknownError as exc:
            self._audit_error(job, exc, kind="fatal")
            raise
        except Exception as exc:  # pylint: disable=broad-except
            self._audit_error(job, exc, kind="fatal")
            raise UnknownError(f"Unexpected error processing job {job.id}: {exc}", job_id=job.id) from exc
        finally:
            if resume_path is not None:
                with contextlib.suppress(OSError):
                    resume_path.unlink()

        if result.needs_review:
            await self._set_status(job, JobStatus.ANALYZED, dry_run)
            self.audit.record(
                AuditAction.ERROR,
                job_id=job.id,
                verdict=Verdict.FAILED,
                details={
                    "error": result.reason,
                    "kind": "needs_review",
                    "screenshot": result.screenshot_path,
                    "filled_fields": result.filled_fields,
                    "unfilled_fields": result.unfilled_fields,
                    "skipped_fields": result.skipped_fields,
                },
                metadata={"job_title": job.title},
            )
            logger.warning("Job %s flagged for manual review: %s", job.id, result.reason)
            return self._outcome(
                job, JobOutcomeKind.NEEDS_REVIEW, result.reason, match=match,
                screenshot=result.screenshot_path, filled=result.filled_fields,
            )

        self.state.reset_failures()
        await self._set_status(job, JobStatus.APPLIED, dry_run)
        self.audit.record(
            AuditAction.DRY_RUN if dry_run else AuditAction.SUBMIT,
            job_id=job.id,
            verdict=Verdict.REVIEW_OPTIONAL,
            details={
                "reason": result.reason,
                "screenshot": result.screenshot_path,
                "provider": result.provider,
                "filled_fields": result.filled_fields,
                "unfilled_fields": result.unfilled_fields,
                "skipped_fields": result.skipped_fields,
                "submitted": result.submitted,
                "dry_run": dry_run,
            },
            metadata={"resume_profile": match.profile_id, "match_score": match.score},
        )
        return self._outcome(
            job,
            JobOutcomeKind.DRY_RUN if dry_run else JobOutcomeKind.APPLIED,
            result.reason,
            match=match,
            screenshot=result.screenshot_path,
            filled=result.filled_fields,
        )

    async def _set_status(self, job: JobRecord, status: JobStatus, dry_run: bool) -> None:
        # Dry runs are repeatable rehearsals and never move a job.
        if dry_run:
            return
        await self.store.update_status(job.id, status)

    def _audit_error(self, job: JobRecord, exc: Exception, *, kind: str, **extra) -> None:
        reason = getattr(exc, "reason", None) or str(exc)
        self.audit.record(
            AuditAction.ERROR,
            job_id=job.id,
            verdict=Verdict.FAILED,
            details={"error": reason, "error_type": type(exc).__name__, "kind": kind, "stage": "QueueProcessor", **extra},
            metadata={"job_title": job.title},
        )
        logger.error("Job %s failed (%s): %s", job.id, type(exc).__name__, reason)

    @staticmethod
    def _outcome(job, kind, reason, *, match=None, screenshot=None, filled=None) -> JobOutcome:
        return JobOutcome(
            job_id=job.id,
            title=job.title,
            company=job.company,
            outcome=kind,
            reason=reason,
            resume_profile_id=match.profile_id if match else None,
            match_score=match.score if match else None,
            screenshot_path=screenshot,
            filled_fields=filled or [],
        )

    @staticmethod
    def _tally(report: QueueReport, outcome: JobOutcome) -> None:
        if outcome.outcome in (JobOutcomeKind.APPLIED, JobOutcomeKind.DRY_RUN):
            report.applied += 1
        elif outcome.outcome is JobOutcomeKind.REJECTED:
            report.rejected += 1
        elif outcome.outcome in (JobOutcomeKind.NEEDS_REVIEW, JobOutcomeKind.UNSUPPORTED):
            report.needs_review += 1
        else:
            report.failed += 1
