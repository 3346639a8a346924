"""Render the upload artifact for one application."""
from __future__ import annotations

import logging
from pathlib import Path

import aiofiles

from app.config import Settings
from app.schemas import JobRecord, ResumeMatch, ResumeProfile, UserProfile

logger = logging.getLogger(__name__)


class DocumentGenerator:
    """Write the selected resume profile to a plain-text file for upload."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def artifact_path(self, job: JobRecord) -> Path:
        return self.settings.artifact_directory / f"resume_{job.id}.txt"

    async def generate(self, profile: UserProfile, job: JobRecord, match: ResumeMatch) -> Path:
        resume = next((p for p in profile.resume_profiles if p.id == match.profile_id), None)
        path = self.artifact_path(job)
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "w", encoding="utf-8") as handle:
            await handle.write(self.render(profile, resume))
        logger.debug("Rendered resume %s for job %s -> %s", match.profile_id, job.id, path)
        return path

    @staticmethod
    def render(profile: UserProfile, resume: ResumeProfile | None) -> str:
        contact = profile.contact
        lines = [contact.full_name]
        lines.append(" | ".join(v for v in (contact.email, contact.phone, contact.location) if v))
        links = [v for v in (contact.linkedin, contact.github, contact.portfolio) if v]
        if links:
            lines.append(" | ".join(links))

        summary = (resume.summary if resume else None) or contact.bio
        if summary:
            lines += ["", "SUMMARY", summary]

        skills = list(dict.fromkeys((resume.skills if resume else []) + profile.skills))
        if skills:
            lines += ["", "SKILLS", ", ".join(skills)]

        if resume and resume.experience:
            lines += ["", "EXPERIENCE"]
            for item in resume.experience:
                end = "Present" if item.current else (item.end_date or "")
                period = f" ({item.start_date or ''} - {end})" if item.start_date or end else ""
                lines.append(f"{item.title}, {item.company}{period}")
                if item.description:
                    lines.append(item.description)
                lines.extend(f"- {bullet}" for bullet in item.bullets)

        if resume and resume.education:
            lines += ["", "EDUCATION"]
            for item in resume.education:
                field = f" in {item.field_of_study}" if item.field_of_study else ""
                lines.append(f"{item.degree}{field}, {item.institution}")

        return "\n".join(lines) + "\n"
