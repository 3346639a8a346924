"""User profile storage backed by one JSON file per user."""
from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from app.config import Settings
from app.schemas import AuditAction, UserProfile
from services.audit import AuditSink

logger = logging.getLogger(__name__)


class ProfileStore:
    def __init__(self, settings: Settings, audit: AuditSink | None = None) -> None:
        self.settings = settings
        self.audit = audit

    def _path(self, user_id: str) -> Path:
        return self.settings.profile_directory / f"{user_id}.json"

    def get_profile(self, user_id: str = "default") -> UserProfile:
        """Load a user's profile, falling back to the default profile."""

        path = self._path(user_id)
        if not path.exists():
            logger.warning("Profile for %s not found at %s; using defaults", user_id, path)
            return UserProfile()
        try:
            with path.open("r", encoding="utf-8") as handle:
                return UserProfile.model_validate(json.load(handle))
        except (OSError, ValueError, ValidationError) as exc:
            logger.error("Failed to load profile for %s: %s", user_id, exc)
            return UserProfile()

    def save_profile(self, user_id: str, profile: UserProfile) -> UserProfile:
        path = self._path(user_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as handle:
            json.dump(profile.model_dump(mode="json"), handle, indent=4)
        logger.info("Saved profile for %s", user_id)
        if self.audit is not None:
            self.audit.record(
                AuditAction.PROFILE_UPDATE,
                details={
                    "user_id": user_id,
                    "resume_profiles": [p.name for p in profile.resume_profiles],
                },
                metadata={"resume_profile_count": len(profile.resume_profiles)},
            )
        return profile
