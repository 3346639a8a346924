"""Pick the resume profile that best fits a job."""
from __future__ import annotations

import logging

from app.keywords import KEYWORD_CATEGORIES, KeywordCategory, find_best_category, keyword_score
from app.schemas import AuditAction, JobRecord, ResumeMatch, ResumeProfile, UserProfile, Verdict
from services.audit import AuditSink

logger = logging.getLogger(__name__)

DEFAULT_PROFILE_ID = "default"
TITLE_MATCH_WEIGHT = 5


class ResumeSelector:
    """Score each resume profile against a job and keep the strictly best one.

    score = 5 * target roles found in the title
            + best-fit category keywords found in the job text
            + user skills found in the job text

    Ties keep the earlier profile, so the result is deterministic for a given
    profile order.
    """

    def __init__(
        self,
        audit: AuditSink | None = None,
        categories: tuple[KeywordCategory, ...] = KEYWORD_CATEGORIES,
    ) -> None:
        self.audit = audit
        self.categories = categories

    def select(self, job: JobRecord, profile: UserProfile) -> ResumeMatch:
        if not profile.resume_profiles:
            match = ResumeMatch(
                profile_id=DEFAULT_PROFILE_ID,
                score=0,
                reason="No resume profiles configured; using default resume",
            )
            self._audit(job, match, category=None, profile_name=None)
            return match

        job_text = job.text.lower()
        category = find_best_category(job_text, self.categories)

        best: ResumeProfile = profile.resume_profiles[0]
        best_score = self.score(job, best, category, profile.skills)
        logger.debug("Resume profile %s scored %d for job %s", best.name, best_score, job.id)
        for resume in profile.resume_profiles[1:]:
            score = self.score(job, resume, category, profile.skills)
            logger.debug("Resume profile %s scored %d for job %s", resume.name, score, job.id)
            if score > best_score:
                best, best_score = resume, score

        match = ResumeMatch(
            profile_id=best.id,
            score=best_score,
            reason=f"Highest match score ({best_score}) with profile {best.name} in category {category.name}",
        )
        self._audit(job, match, category=category.name, profile_name=best.name)
        return match

    @staticmethod
    def score(job: JobRecord, resume: ResumeProfile, category: KeywordCategory, skills: list[str]) -> int:
        title = job.title.lower()
        role_hits = sum(1 for role in resume.target_roles if role and role.lower() in title)
        return (
            TITLE_MATCH_WEIGHT * role_hits
            + keyword_score(job.text, category.keywords)
            + keyword_score(job.text, skills)
        )

    def _audit(self, job: JobRecord, match: ResumeMatch, *, category: str | None, profile_name: str | None) -> None:
        if self.audit is None:
            return
        self.audit.record(
            AuditAction.MATCH,
            job_id=job.id,
            verdict=Verdict.ACCEPTED,
            details=match.model_dump(),
            metadata={"category": category, "resume_name": profile_name},
        )
