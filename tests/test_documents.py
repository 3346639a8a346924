from __future__ import annotations

from app.schemas import Education, Experience, JobRecord, ResumeMatch, UserProfile
from conftest import make_profile
from services.documents import DocumentGenerator


def job() -> JobRecord:
    return JobRecord(id="j1", provider="greenhouse", provider_job_id="1", company="Acme", title="Data Engineer", url="u")


async def test_generate_writes_selected_profile(settings):
    profile = make_profile()
    data = profile.resume_profiles[1]
    data.summary = "Pipelines at scale."
    data.skills = ["spark", "python"]
    data.experience = [Experience(title="Data Engineer", company="Initech", start_date="2020", current=True,
                                  bullets=["Cut batch time in half"])]
    data.education = [Education(institution="Cambridge", degree="BSc", field_of_study="Mathematics")]

    path = await DocumentGenerator(settings).generate(profile, job(), ResumeMatch(profile_id="data", score=6, reason="r"))

    text = path.read_text(encoding="utf-8")
    assert path == settings.artifact_directory / "resume_j1.txt"
    assert text.startswith("Ada Lovelace\n")
    assert "Pipelines at scale." in text
    assert "spark, python, sql" in text
    assert "Data Engineer, Initech (2020 - Present)" in text
    assert "- Cut batch time in half" in text
    assert "BSc in Mathematics, Cambridge" in text


async def test_default_match_renders_contact_only(settings):
    path = await DocumentGenerator(settings).generate(
        UserProfile(), job(), ResumeMatch(profile_id="default", score=0, reason="none")
    )

    text = path.read_text(encoding="utf-8")
    assert text.splitlines()[0] == "Candidate User"
    assert "EXPERIENCE" not in text
