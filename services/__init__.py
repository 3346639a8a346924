"""Service layer for the application pipeline."""

from .application import ApplicationSubmitter
from .audit import AuditSink
from .filtering import FilterEngine
from .ingestion import IngestionService, JobStore
from .matching import ResumeSelector
from .profile import ProfileStore
from .queue import QueueProcessor, QueueRunState

__all__ = [
    "ApplicationSubmitter",
    "AuditSink",
    "FilterEngine",
    "IngestionService",
    "JobStore",
    "ProfileStore",
    "QueueProcessor",
    "QueueRunState",
    "ResumeSelector",
]
