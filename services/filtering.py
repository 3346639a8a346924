"""Hard-gate filter rules evaluated before any submission work."""
from __future__ import annotations

import logging
from typing import Protocol

from app.schemas import FilterResult, FilterStatus, JobRecord, Preferences

logger = logging.getLogger(__name__)


class FilterRule(Protocol):
    name: str

    def evaluate(self, job: JobRecord) -> FilterResult: ...


class TechStackRule:
    """Reject jobs mentioning an excluded technology in title or description.

    Matching is a plain case-insensitive substring test, so "java" also
    matches "javascript". Keywords must be specific enough for that.
    """

    name = "Excluded Technology"

    def __init__(self, excluded_keywords: list[str] | None = None) -> None:
        self.excluded_keywords = [k.lower() for k in excluded_keywords or [] if k]

    def evaluate(self, job: JobRecord) -> FilterResult:
        text = job.text.lower()
        for keyword in self.excluded_keywords:
            if keyword in text:
                return FilterResult(
                    status=FilterStatus.REJECTED,
                    reason=f"Contains excluded technology: {keyword}",
                    rule=self.name,
                )
        return FilterResult(status=FilterStatus.ACCEPTED, reason="Tech stack compatible", rule=self.name)


class RemoteRule:
    name = "Remote Policy"

    def __init__(self, remote_only: bool = False) -> None:
        self.remote_only = remote_only

    def evaluate(self, job: JobRecord) -> FilterResult:
        if not self.remote_only:
            return FilterResult(status=FilterStatus.ACCEPTED, reason="Remote not required", rule=self.name)

        # Scrapers set is_remote unreliably; a "remote" title counts too.
        if not job.is_remote and "remote" not in job.title.lower():
            location = f" (location: {job.location})" if job.location else ""
            return FilterResult(
                status=FilterStatus.REJECTED,
                reason=f"Position is not marked as remote and title does not mention remote{location}",
                rule=self.name,
            )
        return FilterResult(status=FilterStatus.ACCEPTED, reason="Remote position", rule=self.name)


class SeniorityRule:
    """Reject titles containing an excluded seniority token. Title only."""

    name = "Seniority Mismatch"

    def __init__(self, excluded_levels: list[str] | None = None) -> None:
        self.excluded_levels = [level.lower() for level in excluded_levels or [] if level]

    def evaluate(self, job: JobRecord) -> FilterResult:
        title = job.title.lower()
        for level in self.excluded_levels:
            if level in title:
                return FilterResult(
                    status=FilterStatus.REJECTED,
                    reason=f"Seniority level excluded: {level}",
                    rule=self.name,
                )
        return FilterResult(status=FilterStatus.ACCEPTED, reason="Seniority level acceptable", rule=self.name)


class FilterEngine:
    """Run rules in declared order; the first rejection wins."""

    def __init__(self, rules: list[FilterRule]) -> None:
        self.rules = list(rules)

    @classmethod
    def from_preferences(cls, preferences: Preferences) -> FilterEngine:
        return cls(
            [
                TechStackRule(preferences.excluded_keywords),
                RemoteRule(preferences.remote_only),
                SeniorityRule(preferences.excluded_seniority),
            ]
        )

    def evaluate(self, job: JobRecord) -> FilterResult:
        review: FilterResult | None = None
        for rule in self.rules:
            result = rule.evaluate(job)
            if result.status is FilterStatus.REJECTED:
                logger.info("Job %s rejected by %s: %s", job.id, rule.name, result.reason)
                return result
            if result.status is FilterStatus.REVIEW_OPTIONAL and review is None:
                review = result

        if review is not None:
            return review
        return FilterResult(status=FilterStatus.ACCEPTED, reason="Passed all hard gates", rule="All Rules")
