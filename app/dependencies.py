"""Wiring of the pipeline components and FastAPI dependency helpers."""
from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.config import Settings
from app.database import create_engine, create_session_factory, init_models
from services.application import ApplicationSubmitter, ContextFactory
from services.audit import AuditSink, DatabaseAuditBackend, JsonlAuditBackend
from services.ingestion import IngestionService, JobStore, Scraper
from services.profile import ProfileStore
from services.queue import QueueProcessor


@dataclass
class Pipeline:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    audit: AuditSink
    audit_db: DatabaseAuditBackend
    store: JobStore
    profiles: ProfileStore
    ingestion: IngestionService
    processor: QueueProcessor

    async def start(self) -> None:
        await init_models(self.engine)

    async def close(self) -> None:
        await self.audit.flush()
        await self.engine.dispose()


def build_pipeline(
    settings: Settings,
    *,
    context_factory: ContextFactory | None = None,
    scrapers: dict[str, Scraper] | None = None,
) -> Pipeline:
    settings.ensure_directories()
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)
    audit_db = DatabaseAuditBackend(session_factory)
    audit = AuditSink([audit_db, JsonlAuditBackend(settings.audit_log_path)])
    store = JobStore(session_factory, audit)
    profiles = ProfileStore(settings, audit)
    processor = QueueProcessor(
        settings,
        store=store,
        profiles=profiles,
        submitter=ApplicationSubmitter(settings, context_factory),
        audit=audit,
    )
    return Pipeline(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        audit=audit,
        audit_db=audit_db,
        store=store,
        profiles=profiles,
        ingestion=IngestionService(store, scrapers),
        processor=processor,
    )


def get_pipeline(request: Request) -> Pipeline:
    return request.app.state.pipeline


def get_processor(request: Request) -> QueueProcessor:
    return request.app.state.pipeline.processor
