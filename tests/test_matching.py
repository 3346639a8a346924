from __future__ import annotations

from app.keywords import find_best_category, keyword_score
from app.schemas import AuditAction, JobRecord, ResumeProfile, UserProfile, Verdict
from services.matching import DEFAULT_PROFILE_ID, ResumeSelector


class RecordingAudit:
    def __init__(self):
        self.records = []

    def record(self, action, **kwargs):
        self.records.append((action, kwargs))


def job(title: str, description: str = "") -> JobRecord:
    return JobRecord(
        id="job-7",
        provider="lever",
        provider_job_id="7",
        company="Acme",
        title=title,
        url="https://jobs.lever.co/acme/7",
        description=description,
    )


def profiles(*items: ResumeProfile, skills=()) -> UserProfile:
    return UserProfile(skills=list(skills), resume_profiles=list(items))


def test_data_profile_wins_for_data_engineer_title():
    user = profiles(
        ResumeProfile(id="eng", name="software-engineering", target_roles=["Software Engineer"]),
        ResumeProfile(id="data", name="data-engineering", category="Data", target_roles=["Data Engineer"]),
        skills=["python", "sql"],
    )
    posting = job("Data Engineer (Remote)", "You will build pipelines with Python and SQL.")

    match = ResumeSelector().select(posting, user)

    assert match.profile_id == "data"
    assert match.score >= 5 + 2
    assert "data-engineering" in match.reason


def test_zero_profiles_returns_default_sentinel():
    audit = RecordingAudit()

    match = ResumeSelector(audit).select(job("Anything"), UserProfile())

    assert match.profile_id == DEFAULT_PROFILE_ID
    assert match.score == 0
    assert audit.records[0][0] is AuditAction.MATCH


def test_first_profile_wins_ties():
    user = profiles(
        ResumeProfile(id="a", name="first", target_roles=["Designer"]),
        ResumeProfile(id="b", name="second", target_roles=["Designer"]),
    )

    match = ResumeSelector().select(job("Product Designer"), user)

    assert match.profile_id == "a"


def test_selection_is_deterministic():
    user = profiles(
        ResumeProfile(id="a", name="frontend", target_roles=["Frontend"]),
        ResumeProfile(id="b", name="backend", target_roles=["Backend"]),
        skills=["react", "docker"],
    )
    posting = job("Backend Engineer", "Docker, Kubernetes and React dashboards")
    selector = ResumeSelector()

    results = {selector.select(posting, user).model_dump_json() for _ in range(5)}

    assert len(results) == 1


def test_zero_score_still_accepted_and_audited():
    audit = RecordingAudit()
    user = profiles(ResumeProfile(id="a", name="chef", target_roles=["Chef"]))

    match = ResumeSelector(audit).select(job("Zookeeper"), user)

    assert match.profile_id == "a"
    assert match.score == 0
    action, kwargs = audit.records[0]
    assert action is AuditAction.MATCH
    assert kwargs["verdict"] is Verdict.ACCEPTED
    assert len(audit.records) == 1


def test_best_category_falls_back_to_general():
    assert find_best_category("zzz qqq").name == "General"


def test_best_category_tie_keeps_declared_order():
    # "python" appears in both Engineering and Data; Engineering is declared first.
    assert find_best_category("python").name == "Engineering"


def test_keyword_score_counts_distinct_keywords():
    assert keyword_score("SQL and more sql and Spark", ["sql", "spark", "hadoop"]) == 2


def test_later_profile_wins_only_with_a_strictly_higher_score():
    user = profiles(
        ResumeProfile(id="a", name="generalist", target_roles=["Engineer"]),
        ResumeProfile(id="b", name="also-general", target_roles=["Engineer"]),
        ResumeProfile(id="c", name="platform", target_roles=["Engineer", "Platform Engineer"]),
    )

    match = ResumeSelector().select(job("Platform Engineer"), user)

    assert match.profile_id == "c"
    assert match.score >= 10
