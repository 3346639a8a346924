"""Failure taxonomy surfaced by the submission driver and the queue processor."""
from __future__ import annotations


class PipelineError(Exception):
    """Base class for every error raised by the pipeline."""


class SubmissionError(PipelineError):
    """A submission attempt for one job ended without a clean result."""

    def __init__(self, reason: str, *, job_id: str | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.job_id = job_id


class AnomalyError(SubmissionError):
    """Unattended automation is no longer safe; the queue must pause."""


class CaptchaDetected(AnomalyError):
    """A bot-challenge page was served instead of the application form."""


class UserTakeover(AnomalyError):
    """The page state shows that a human is interacting with the session."""


class ProviderUnsupported(SubmissionError):
    """No form strategy exists for the job's ATS provider."""


class TransientError(SubmissionError):
    """Network, timeout or stalled-session failure; retry in a later run."""


class UnknownError(SubmissionError):
    """Unexpected failure; surfaced to the caller and never retried."""


class QueueStateError(PipelineError):
    """The queue cannot start a run in its current state."""


class QueueBusy(QueueStateError):
    pass


class QueuePaused(QueueStateError):
    pass
