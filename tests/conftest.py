from __future__ import annotations

import asyncio
import contextlib
from pathlib import Path

import pytest
import pytest_asyncio
from playwright.async_api import Error as PlaywrightError

from app.config import Settings
from app.dependencies import build_pipeline
from app.schemas import ContactInfo, Preferences, RawJob, ResumeProfile, UserProfile
from services.application import SubmissionOutcome

GREENHOUSE_FIELDS = ("#first_name", "#last_name", "#email", "#phone")
FILE_INPUT = 'input[type="file"]'


class FakeLocator:
    def __init__(self, page: FakePage, selector: str) -> None:
        self.page = page
        self.selector = selector

    @property
    def first(self) -> FakeLocator:
        return self

    async def is_visible(self) -> bool:
        self.page.raise_if_closed()
        return self.selector in self.page.visible

    async def count(self) -> int:
        self.page.raise_if_closed()
        return 1 if self.selector in self.page.visible or self.selector in self.page.present else 0

    async def fill(self, value: str) -> None:
        self.page.raise_if_closed()
        self.page.values[self.selector] = value
        if self.page.redirect_on_fill:
            self.page.url = self.page.redirect_on_fill

    async def input_value(self) -> str:
        self.page.raise_if_closed()
        if self.selector in self.page.tampered:
            return self.page.tampered[self.selector]
        return self.page.values.get(self.selector, "")

    async def set_input_files(self, path: str) -> None:
        self.page.raise_if_closed()
        self.page.uploads.append((self.selector, path))

    async def click(self) -> None:
        self.page.raise_if_closed()
        self.page.clicks.append(self.selector)


class FakePage:
    """Just enough of Playwright's async Page for the submission driver."""

    def __init__(
        self,
        *,
        title: str = "Job Application",
        content: str = "<html><form></form></html>",
        visible: tuple[str, ...] = (),
        present: tuple[str, ...] = (),
        goto_error: Exception | None = None,
        goto_delay: float = 0.0,
        screenshot_error: Exception | None = None,
        redirect_on_fill: str | None = None,
        tampered: dict[str, str] | None = None,
    ) -> None:
        self.url = "about:blank"
        self._title = title
        self._content = content
        self.visible = set(visible)
        self.present = set(present)
        self.goto_error = goto_error
        self.goto_delay = goto_delay
        self.screenshot_error = screenshot_error
        self.redirect_on_fill = redirect_on_fill
        self.tampered = tampered or {}
        self.values: dict[str, str] = {}
        self.uploads: list[tuple[str, str]] = []
        self.clicks: list[str] = []
        self.screenshots: list[str] = []
        self.closed = False

    def raise_if_closed(self) -> None:
        if self.closed:
            raise PlaywrightError("Target page, context or browser has been closed")

    def set_default_timeout(self, timeout: float) -> None:
        self.default_timeout = timeout

    async def goto(self, url: str, wait_until: str | None = None, timeout: float | None = None) -> None:
        waited = 0.0
        while waited < self.goto_delay:
            self.raise_if_closed()
            await asyncio.sleep(0.01)
            waited += 0.01
        self.raise_if_closed()
        if self.goto_error is not None:
            raise self.goto_error
        self.url = url

    async def title(self) -> str:
        return self._title

    async def content(self) -> str:
        return self._content

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    def is_closed(self) -> bool:
        return self.closed

    async def wait_for_load_state(self, state: str | None = None) -> None:
        self.raise_if_closed()

    async def screenshot(self, path: str, full_page: bool = False) -> None:
        self.raise_if_closed()
        if self.screenshot_error is not None:
            raise self.screenshot_error
        Path(path).write_bytes(b"\x89PNG")
        self.screenshots.append(path)


class FakeContext:
    def __init__(self, page: FakePage) -> None:
        self.page = page
        self.closed = False

    async def new_page(self) -> FakePage:
        return self.page

    async def close(self) -> None:
        self.closed = True
        self.page.closed = True


class FakeBrowser:
    """Context factory handing out one fresh FakeContext per submission."""

    def __init__(self, page_factory=None) -> None:
        self.page_factory = page_factory or greenhouse_page
        self.contexts: list[FakeContext] = []

    @contextlib.asynccontextmanager
    async def __call__(self):
        context = FakeContext(self.page_factory())
        self.contexts.append(context)
        try:
            yield context
        finally:
            await context.close()

    @property
    def last_page(self) -> FakePage:
        return self.contexts[-1].page


def greenhouse_page(**overrides) -> FakePage:
    options = {"visible": GREENHOUSE_FIELDS + ("#submit_app",), "present": (FILE_INPUT,)}
    options.update(overrides)
    return FakePage(**options)


class ScriptedSubmitter:
    """Stand-in submitter whose behaviour is keyed by job title."""

    def __init__(self, script: dict | None = None) -> None:
        self.script = script or {}
        self.calls: list[str] = []
        self.on_call = None

    async def submit_job(self, job, profile, resume_path, *, dry_run=True) -> SubmissionOutcome:
        assert Path(resume_path).exists()
        self.calls.append(job.title)
        if self.on_call is not None:
            await self.on_call(job)
        action = self.script.get(job.title)
        if isinstance(action, Exception):
            raise action
        if isinstance(action, SubmissionOutcome):
            return action
        return SubmissionOutcome(
            job_id=job.id,
            provider=job.provider,
            dry_run=dry_run,
            submitted=not dry_run,
            reason="Dry run: form filled, submit withheld" if dry_run else "Submit dispatched",
            filled_fields=["First Name", "Email"],
            resume_uploaded=True,
            screenshot_path=f"job_{job.id}_filled.png",
        )


def make_raw_job(title: str = "Software Engineer", **overrides) -> RawJob:
    data = {
        "provider": "greenhouse",
        "provider_job_id": title.lower().replace(" ", "-"),
        "company": "Acme",
        "title": title,
        "url": "https://boards.greenhouse.io/acme/jobs/1",
        "location": "Remote",
        "is_remote": True,
        "description": "Build services in Python.",
    }
    data.update(overrides)
    return RawJob(**data)


def make_profile(**preferences) -> UserProfile:
    return UserProfile(
        contact=ContactInfo(first_name="Ada", last_name="Lovelace", email="ada@example.com", phone="555-0100"),
        preferences=Preferences(**preferences),
        skills=["python", "sql"],
        resume_profiles=[
            ResumeProfile(id="eng", name="software-engineering", target_roles=["Software Engineer"]),
            ResumeProfile(id="data", name="data-engineering", category="Data", target_roles=["Data Engineer"]),
        ],
    )


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    settings = Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        data_directory=tmp_path / "data",
        profile_directory=tmp_path / "data" / "profiles",
        artifact_directory=tmp_path / "data" / "artifacts",
        screenshot_directory=tmp_path / "data" / "screenshots",
        log_directory=tmp_path / "logs",
        audit_log_path=tmp_path / "data" / "audit.jsonl",
        sample_job_file=tmp_path / "data" / "sample_jobs.json",
        idle_timeout_seconds=5.0,
        inter_job_delay_seconds=0.0,
        failure_streak_threshold=3,
    )
    settings.ensure_directories()
    return settings


@pytest.fixture
def browser() -> FakeBrowser:
    return FakeBrowser()


@pytest_asyncio.fixture
async def pipeline(settings: Settings, browser: FakeBrowser):
    pipeline = build_pipeline(settings, context_factory=browser)
    await pipeline.start()
    yield pipeline
    await pipeline.close()
