"""FastAPI entrypoint exposing queue control, jobs and the audit trail."""
from __future__ import annotations

import logging

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException

from app.config import Settings, get_settings
from app.dependencies import Pipeline, build_pipeline, get_pipeline, get_processor
from app.errors import QueueStateError
from app.log import configure_logging
from app.schemas import AuditEntry, JobRecord, JobStatus, QueueRunRequest, QueueStatus, UserProfile
from services.queue import QueueProcessor

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, pipeline: Pipeline | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)
    app = FastAPI(title="Job Application Pipeline", version="0.2.0")
    app.state.pipeline = pipeline or build_pipeline(settings)

    @app.on_event("startup")
    async def _startup() -> None:  # pragma: no cover - framework hook
        await app.state.pipeline.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:  # pragma: no cover - framework hook
        await app.state.pipeline.close()

    async def _run_queue(processor: QueueProcessor, request: QueueRunRequest) -> None:
        try:
            await processor.process_queue(request.limit, request.dry_run, request.user_id)
        except QueueStateError as exc:
            logger.warning("Queue run not started: %s", exc)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Queue run failed")

    @app.get("/queue/status", response_model=QueueStatus)
    async def queue_status(processor: QueueProcessor = Depends(get_processor)) -> QueueStatus:
        return processor.get_status()

    @app.post("/queue/run", response_model=QueueStatus, status_code=202)
    async def run_queue(
        request: QueueRunRequest,
        background: BackgroundTasks,
        processor: QueueProcessor = Depends(get_processor),
    ) -> QueueStatus:
        status = processor.get_status()
        if status.is_running:
            raise HTTPException(status_code=409, detail="Queue is already processing")
        if status.is_paused:
            raise HTTPException(status_code=409, detail=f"Queue is paused: {status.pause_reason}")
        background.add_task(_run_queue, processor, request)
        return status

    @app.post("/queue/pause", response_model=QueueStatus)
    async def pause_queue(processor: QueueProcessor = Depends(get_processor)) -> QueueStatus:
        processor.pause()
        return processor.get_status()

    @app.post("/queue/resume", response_model=QueueStatus)
    async def resume_queue(processor: QueueProcessor = Depends(get_processor)) -> QueueStatus:
        processor.resume()
        return processor.get_status()

    @app.post("/queue/stop", response_model=QueueStatus)
    async def stop_queue(processor: QueueProcessor = Depends(get_processor)) -> QueueStatus:
        processor.stop()
        return processor.get_status()

    @app.get("/jobs", response_model=list[JobRecord])
    async def list_jobs(
        status: JobStatus | None = None,
        limit: int = 100,
        pipeline: Pipeline = Depends(get_pipeline),
    ) -> list[JobRecord]:
        return await pipeline.store.list_jobs(status=status, limit=limit)

    @app.get("/jobs/stats", response_model=dict[str, int])
    async def job_stats(pipeline: Pipeline = Depends(get_pipeline)) -> dict[str, int]:
        return await pipeline.store.job_stats()

    @app.get("/audit", response_model=list[AuditEntry])
    async def audit_trail(
        limit: int = 100,
        job_id: str | None = None,
        pipeline: Pipeline = Depends(get_pipeline),
    ) -> list[AuditEntry]:
        return await pipeline.audit_db.recent(limit, job_id=job_id)

    @app.get("/users/{user_id}/profile", response_model=UserProfile)
    async def get_profile(user_id: str, pipeline: Pipeline = Depends(get_pipeline)) -> UserProfile:
        return pipeline.profiles.get_profile(user_id)

    @app.put("/users/{user_id}/profile", response_model=UserProfile)
    async def put_profile(
        user_id: str,
        payload: UserProfile,
        pipeline: Pipeline = Depends(get_pipeline),
    ) -> UserProfile:
        return pipeline.profiles.save_profile(user_id, payload)

    return app
