from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.schemas import Preferences, ResumeProfile, UserProfile
from conftest import make_profile


def test_missing_profile_falls_back_to_defaults(pipeline):
    profile = pipeline.profiles.get_profile("nobody")

    assert profile.contact.first_name == "Candidate"
    assert profile.resume_profiles == []


def test_profile_round_trips_through_disk(pipeline, settings):
    pipeline.profiles.save_profile("ada", make_profile(remote_only=True))

    loaded = pipeline.profiles.get_profile("ada")

    assert (settings.profile_directory / "ada.json").exists()
    assert loaded.contact.full_name == "Ada Lovelace"
    assert loaded.preferences.remote_only
    assert [p.id for p in loaded.resume_profiles] == ["eng", "data"]


def test_corrupt_profile_file_falls_back_to_defaults(pipeline, settings):
    (settings.profile_directory / "broken.json").write_text("{not json", encoding="utf-8")

    assert pipeline.profiles.get_profile("broken") == UserProfile()


async def test_saving_a_profile_is_audited(pipeline):
    pipeline.profiles.save_profile("ada", make_profile())
    await pipeline.audit.flush()

    [entry] = await pipeline.audit_db.recent()
    assert entry.action_type == "PROFILE_UPDATE"
    assert entry.details["resume_profiles"] == ["software-engineering", "data-engineering"]


@pytest.mark.parametrize("name", ["Backend", "backend_eng", "-backend", "x" * 35])
def test_resume_profile_names_are_validated(name):
    with pytest.raises(ValidationError):
        ResumeProfile(id="p", name=name)


def test_at_most_five_resume_profiles():
    profiles = [ResumeProfile(id=letter, name=f"profile-{letter}") for letter in "abcdef"]

    with pytest.raises(ValidationError):
        UserProfile(resume_profiles=profiles)
    assert len(UserProfile(resume_profiles=profiles[:5]).resume_profiles) == 5


def test_default_preferences_exclude_clearance_roles():
    preferences = UserProfile().preferences

    assert "security clearance required" in preferences.excluded_keywords


def test_seniority_levels_are_normalised_and_checked():
    assert Preferences(excluded_seniority=[" Staff ", "PRINCIPAL"]).excluded_seniority == ["staff", "principal"]
    with pytest.raises(ValidationError):
        Preferences(excluded_seniority=["wizard"])
