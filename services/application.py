"""Application submission automation."""
from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, AsyncContextManager

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from app.config import Settings
from app.errors import CaptchaDetected, ProviderUnsupported, SubmissionError, TransientError, UnknownError
from app.schemas import JobRecord, UserProfile
from services.forms import FormSession, strategy_for

logger = logging.getLogger(__name__)

CHALLENGE_TITLES = ("just a moment", "attention required", "verify you are human")
CHALLENGE_MARKERS = ("cf-turnstile", "challenge-platform", "cf-chl-", "g-recaptcha", "hcaptcha", "h-captcha")

_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


class SubmissionState(str, Enum):
    NAV = "NAV"
    CHALLENGE_CHECK = "CHALLENGE_CHECK"
    FORM_FILL = "FORM_FILL"
    VERIFY = "VERIFY"
    DONE = "DONE"
    FAILED = "FAILED"


@dataclass
class SubmissionOutcome:
    job_id: str
    provider: str
    dry_run: bool
    submitted: bool = False
    needs_review: bool = False
    reason: str = ""
    state: SubmissionState = SubmissionState.DONE
    filled_fields: list[str] = field(default_factory=list)
    unfilled_fields: list[str] = field(default_factory=list)
    skipped_fields: list[str] = field(default_factory=list)
    resume_uploaded: bool = False
    screenshot_path: str | None = None


def detect_challenge(title: str, content: str) -> str | None:
    """Return the bot-challenge marker found on the page, if any."""

    lowered_title = (title or "").lower()
    for marker in CHALLENGE_TITLES:
        if marker in lowered_title:
            return f"title:{marker}"
    lowered_content = (content or "").lower()
    for marker in CHALLENGE_MARKERS:
        if marker in lowered_content:
            return marker
    return None


class IdleWatchdog:
    """Tear a browser session down after ``timeout`` seconds without activity."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        self.stalled = False
        self._last_activity = time.monotonic()

    def touch(self) -> None:
        self._last_activity = time.monotonic()

    @property
    def idle_for(self) -> float:
        return time.monotonic() - self._last_activity

    @contextlib.asynccontextmanager
    async def guard(self, on_stall: Callable[[], Awaitable[Any]]) -> AsyncIterator[IdleWatchdog]:
        self.stalled = False
        self.touch()
        task = asyncio.create_task(self._watch(on_stall))
        try:
            yield self
        finally:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _watch(self, on_stall: Callable[[], Awaitable[Any]]) -> None:
        while True:
            remaining = self.timeout - self.idle_for
            if remaining <= 0:
                break
            await asyncio.sleep(remaining)

        self.stalled = True
        logger.warning("Browser session idle for %.1fs; tearing it down", self.idle_for)
        try:
            await on_stall()
        except Exception:  # pylint: disable=broad-except
            logger.exception("Failed to tear down stalled browser session")


ContextFactory = Callable[[], AsyncContextManager[Any]]


def playwright_context_factory(settings: Settings) -> ContextFactory:
    """Open a fresh, isolated Chromium context per submission."""

    @contextlib.asynccontextmanager
    async def open_context() -> AsyncIterator[Any]:
        async with async_playwright() as playwright:
            browser = await playwright.chromium.launch(headless=settings.playwright_headless)
            try:
                context = await browser.new_context(
                    viewport={"width": 1280, "height": 900},
                    user_agent=_USER_AGENT,
                )
                try:
                    yield context
                finally:
                    with contextlib.suppress(PlaywrightError):
                        await context.close()
            finally:
                with contextlib.suppress(PlaywrightError):
                    await browser.close()

    return open_context


class ApplicationSubmitter:
    """Drive Playwright to fill and submit application forms.

    One call handles one job and walks NAV -> CHALLENGE_CHECK -> FORM_FILL ->
    VERIFY. The browser context is always closed before returning. Failures
    surface as :mod:`app.errors` subclasses of ``SubmissionError``.
    """

    def __init__(self, settings: Settings, context_factory: ContextFactory | None = None) -> None:
        self.settings = settings
        self.context_factory = context_factory or playwright_context_factory(settings)

    async def submit_job(
        self,
        job: JobRecord,
        profile: UserProfile,
        resume_path: Path,
        *,
        dry_run: bool = True,
    ) -> SubmissionOutcome:
        strategy = strategy_for(job.provider)
        if strategy is None:
            raise ProviderUnsupported(f"ATS {job.provider} not supported for submission", job_id=job.id)

        logger.info("Starting submission for job %s - %s (dry run: %s)", job.id, job.company, dry_run)
        outcome = SubmissionOutcome(job_id=job.id, provider=strategy.provider.value, dry_run=dry_run)
        watchdog = IdleWatchdog(self.settings.idle_timeout_seconds)
        state = SubmissionState.NAV

        try:
            async with self.context_factory() as context:
                async with watchdog.guard(context.close):
                    page = await context.new_page()
                    page.set_default_timeout(self.settings.navigation_timeout_ms)
                    await page.goto(job.url, wait_until="networkidle", timeout=self.settings.navigation_timeout_ms)
                    watchdog.touch()

                    state = SubmissionState.CHALLENGE_CHECK
                    marker = detect_challenge(await page.title(), await page.content())
                    if marker:
                        raise CaptchaDetected(f"CAPTCHA detected on {job.url} ({marker})", job_id=job.id)

                    state = SubmissionState.FORM_FILL
                    session = FormSession(page, watchdog, job_id=job.id)
                    fill = await strategy.fill(session, job, profile, resume_path)
                    outcome.filled_fields = list(fill.filled)
                    outcome.unfilled_fields = list(fill.unfilled)
                    outcome.skipped_fields = list(fill.skipped)
                    outcome.resume_uploaded = fill.resume_uploaded
                    await session.check_takeover()

                    if not fill.resume_uploaded:
                        outcome.needs_review = True
                        outcome.reason = "Resume upload field not found; flagged for manual review"
                    elif dry_run:
                        outcome.reason = "Dry run: form filled, submit withheld"
                    else:
                        clicked = await session.click_first(strategy.submit_selectors)
                        if clicked:
                            outcome.submitted = True
                            outcome.reason = f"Submit dispatched via {clicked}"
                            await page.wait_for_load_state("networkidle")
                            watchdog.touch()
                        else:
                            outcome.needs_review = True
                            outcome.reason = "Submit control not found; flagged for manual review"

                    state = SubmissionState.VERIFY
                    if not outcome.submitted:
                        await session.check_takeover()
                    outcome.screenshot_path = await self._capture(page, job)
                    state = SubmissionState.DONE
        except SubmissionError:
            outcome.state = SubmissionState.FAILED
            logger.warning("Submission for job %s failed during %s", job.id, state.value)
            raise
        except PlaywrightTimeoutError as exc:
            raise TransientError(f"Timed out during {state.value}: {_first_line(exc)}", job_id=job.id) from exc
        except PlaywrightError as exc:
            if watchdog.stalled:
                raise TransientError(
                    f"Browser session stalled during {state.value} and was torn down", job_id=job.id
                ) from exc
            if "net::" in str(exc):
                raise TransientError(f"Network error during {state.value}: {_first_line(exc)}", job_id=job.id) from exc
            raise UnknownError(f"Browser error during {state.value}: {_first_line(exc)}", job_id=job.id) from exc
        except Exception as exc:  # pylint: disable=broad-except
            raise UnknownError(f"Unexpected error during {state.value}: {exc}", job_id=job.id) from exc

        outcome.state = state
        logger.info(
            "Form processing complete for job %s: filled=%s unfilled=%s screenshot=%s",
            job.id, outcome.filled_fields, outcome.unfilled_fields, outcome.screenshot_path,
        )
        return outcome

    async def _capture(self, page, job: JobRecord) -> str:
        path = self.settings.screenshot_directory / f"job_{job.id}_filled.png"
        path.parent.mkdir(parents=True, exist_ok=True)
        await page.screenshot(path=str(path), full_page=True)
        return str(path)


def _first_line(exc: BaseException) -> str:
    return str(exc).split("\n")[0][:150]
