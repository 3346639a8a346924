"""Append-only audit trail with isolated, fire-and-forget backends."""
from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Protocol

import aiofiles
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models import AuditLog
from app.schemas import AuditAction, AuditEntry, AuditRecord, Verdict

logger = logging.getLogger(__name__)


class AuditBackend(Protocol):
    name: str

    async def write(self, record: AuditRecord) -> None: ...


class DatabaseAuditBackend:
    """Persist audit records into the ``audit_logs`` table."""

    name = "database"

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def write(self, record: AuditRecord) -> None:
        async with self.session_factory() as session:
            session.add(
                AuditLog(
                    action_type=record.action.value,
                    job_id=record.job_id,
                    verdict=record.verdict.value if record.verdict else None,
                    details=record.details,
                    extra=record.metadata,
                    created_at=record.timestamp,
                )
            )
            await session.commit()

    async def recent(self, limit: int = 100, *, job_id: str | None = None) -> list[AuditEntry]:
        stmt = select(AuditLog).order_by(AuditLog.created_at.desc()).limit(limit)
        if job_id is not None:
            stmt = stmt.where(AuditLog.job_id == job_id)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [AuditEntry.model_validate(row) for row in result.scalars().all()]


class JsonlAuditBackend:
    """Append audit records as JSON lines to a local file."""

    name = "jsonl"

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = asyncio.Lock()

    async def write(self, record: AuditRecord) -> None:
        line = json.dumps(record.model_dump(mode="json"), sort_keys=True)
        async with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(self.path, "a", encoding="utf-8") as handle:
                await handle.write(line + "\n")


class AuditSink:
    """Single logical audit sink fanning out to every configured backend.

    ``log`` never raises and never waits on a backend: each write runs as its
    own task and a failing backend only produces a log line.
    """

    def __init__(self, backends: list[AuditBackend]) -> None:
        self.backends = list(backends)
        self._pending: set[asyncio.Task] = set()

    def log(self, record: AuditRecord) -> None:
        logger.info(
            "[AUDIT] action=%s verdict=%s job=%s",
            record.action.value,
            record.verdict.value if record.verdict else "N/A",
            record.job_id or "-",
        )
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.error("Audit record %s dropped: no running event loop", record.action.value)
            return
        for backend in self.backends:
            task = loop.create_task(self._write(backend, record))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    def record(
        self,
        action: AuditAction,
        *,
        job_id: str | None = None,
        verdict: Verdict | None = None,
        details: dict | None = None,
        metadata: dict | None = None,
    ) -> None:
        self.log(
            AuditRecord(
                action=action,
                job_id=job_id,
                verdict=verdict,
                details=details or {},
                metadata=metadata or {},
            )
        )

    async def flush(self) -> None:
        """Wait for outstanding backend writes."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @staticmethod
    async def _write(backend: AuditBackend, record: AuditRecord) -> None:
        try:
            await backend.write(record)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Audit backend %s failed to write %s record", backend.name, record.action.value)
