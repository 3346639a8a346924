"""Pydantic schemas shared across services."""
from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.keywords import DEFAULT_EXCLUSION_KEYWORDS, SENIORITY_LEVELS

RESUME_PROFILE_MAX_LENGTH = 34
RESUME_PROFILE_MAX_COUNT = 5
RESUME_PROFILE_NAME_PATTERN = re.compile(r"^[a-z]+(-[a-z]+)*$")


class Provider(str, Enum):
    GREENHOUSE = "greenhouse"
    LEVER = "lever"
    ASHBY = "ashby"


class JobStatus(str, Enum):
    PENDING = "pending"
    ANALYZED = "analyzed"
    APPLIED = "applied"
    REJECTED = "rejected"


class FilterStatus(str, Enum):
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    REVIEW_OPTIONAL = "REVIEW_OPTIONAL"


class AuditAction(str, Enum):
    INGEST = "INGEST"
    FILTER = "FILTER"
    MATCH = "MATCH"
    SUBMIT = "SUBMIT"
    DRY_RUN = "DRY_RUN"
    ERROR = "ERROR"
    AUTH = "AUTH"
    PROFILE_UPDATE = "PROFILE_UPDATE"


class Verdict(str, Enum):
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    REVIEW_OPTIONAL = "REVIEW_OPTIONAL"
    FAILED = "FAILED"


class RawJob(BaseModel):
    """Normalized posting as produced by a scraper adapter."""

    provider: str
    provider_job_id: str
    company: str
    title: str
    url: str
    location: str | None = None
    is_remote: bool = False
    description: str = ""
    posted_at: datetime | None = None


class JobRecord(BaseModel):
    """Detached view of a stored job handed to the pipeline stages."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    provider: str
    provider_job_id: str
    company: str
    title: str
    url: str
    location: str | None = None
    is_remote: bool = False
    description: str = ""
    status: JobStatus = JobStatus.PENDING
    created_at: datetime | None = None

    @property
    def text(self) -> str:
        return f"{self.title} {self.description or ''}"


class ContactInfo(BaseModel):
    first_name: str = "Candidate"
    last_name: str = "User"
    email: str = "candidate@example.com"
    phone: str = "000-000-0000"
    linkedin: str = ""
    github: str | None = None
    portfolio: str | None = None
    location: str = "Remote"
    current_role: str | None = None
    current_company: str | None = None
    bio: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Preferences(BaseModel):
    remote_only: bool = False
    excluded_keywords: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUSION_KEYWORDS))
    excluded_seniority: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)
    min_salary: int | None = None

    @field_validator("excluded_seniority")
    @classmethod
    def _check_seniority(cls, value: list[str]) -> list[str]:
        levels = [level.strip().lower() for level in value if level.strip()]
        unknown = sorted(set(levels) - set(SENIORITY_LEVELS))
        if unknown:
            raise ValueError(f"unknown seniority levels: {', '.join(unknown)}")
        return levels


class Experience(BaseModel):
    title: str
    company: str
    location: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    current: bool = False
    description: str = ""
    bullets: list[str] = Field(default_factory=list)


class Education(BaseModel):
    institution: str
    degree: str
    field_of_study: str | None = None
    start_date: str | None = None
    end_date: str | None = None


class ResumeProfile(BaseModel):
    id: str
    name: str
    category: str | None = None
    target_roles: list[str] = Field(default_factory=list)
    summary: str | None = None
    skills: list[str] = Field(default_factory=list)
    experience: list[Experience] = Field(default_factory=list)
    education: list[Education] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if len(value) > RESUME_PROFILE_MAX_LENGTH or not RESUME_PROFILE_NAME_PATTERN.match(value):
            raise ValueError(
                f"profile name must be lowercase, dash-separated and at most {RESUME_PROFILE_MAX_LENGTH} characters"
            )
        return value


class UserProfile(BaseModel):
    contact: ContactInfo = Field(default_factory=ContactInfo)
    preferences: Preferences = Field(default_factory=Preferences)
    skills: list[str] = Field(default_factory=list)
    resume_profiles: list[ResumeProfile] = Field(default_factory=list)

    @field_validator("resume_profiles")
    @classmethod
    def _check_profile_count(cls, value: list[ResumeProfile]) -> list[ResumeProfile]:
        if len(value) > RESUME_PROFILE_MAX_COUNT:
            raise ValueError(f"at most {RESUME_PROFILE_MAX_COUNT} resume profiles are allowed")
        return value


class FilterResult(BaseModel):
    status: FilterStatus
    reason: str
    rule: str | None = None


class ResumeMatch(BaseModel):
    profile_id: str
    score: int = Field(ge=0)
    reason: str


class AuditRecord(BaseModel):
    action: AuditAction
    job_id: str | None = None
    verdict: Verdict | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class JobOutcomeKind(str, Enum):
    APPLIED = "applied"
    DRY_RUN = "dry_run"
    REJECTED = "rejected"
    NEEDS_REVIEW = "needs_review"
    UNSUPPORTED = "unsupported"
    TRANSIENT_ERROR = "transient_error"
    ANOMALY = "anomaly"


class JobOutcome(BaseModel):
    job_id: str
    title: str
    company: str
    outcome: JobOutcomeKind
    reason: str
    resume_profile_id: str | None = None
    match_score: int | None = None
    screenshot_path: str | None = None
    filled_fields: list[str] = Field(default_factory=list)


class QueueReport(BaseModel):
    started_at: datetime
    duration_seconds: float
    dry_run: bool
    jobs_found: int = 0
    jobs_processed: int = 0
    applied: int = 0
    rejected: int = 0
    needs_review: int = 0
    failed: int = 0
    paused: bool = False
    pause_reason: str | None = None
    outcomes: list[JobOutcome] = Field(default_factory=list)


class QueueStatus(BaseModel):
    is_running: bool
    is_paused: bool
    pause_reason: str | None = None
    consecutive_failures: int = 0
    last_activity_at: datetime | None = None


class QueueRunRequest(BaseModel):
    limit: int = Field(default=1, ge=1)
    dry_run: bool = True
    user_id: str = "default"


class TargetResult(BaseModel):
    target: str
    success: bool
    jobs_found: int = 0
    jobs_inserted: int = 0
    jobs_updated: int = 0
    error: str | None = None


class IngestionReport(BaseModel):
    duration_seconds: float
    total_targets: int = 0
    successful_targets: int = 0
    jobs_found: int = 0
    jobs_inserted: int = 0
    jobs_updated: int = 0
    results: list[TargetResult] = Field(default_factory=list)


class CleanupReport(BaseModel):
    stale_marked: int = 0
    purged: int = 0


class ScheduledRunReport(BaseModel):
    ingestion: IngestionReport | None = None
    queue: QueueReport | None = None
    cleanup: CleanupReport | None = None


class AuditEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    action_type: str
    job_id: str | None = None
    verdict: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    # Read from AuditLog.extra, the ORM name of the "metadata" column.
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="extra")
    created_at: datetime
