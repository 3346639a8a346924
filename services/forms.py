"""Provider-specific application form layouts and the page session that fills them."""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol
from urllib.parse import urlparse

from playwright.async_api import Error as PlaywrightError

from app.errors import TransientError, UserTakeover
from app.schemas import JobRecord, Provider, UserProfile

logger = logging.getLogger(__name__)


class ActivityClock(Protocol):
    stalled: bool

    def touch(self) -> None: ...


@dataclass
class FillOutcome:
    filled: list[str] = field(default_factory=list)
    unfilled: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    resume_uploaded: bool = False


class FormSession:
    """Fill one page through ordered selector candidates.

    The first visible candidate wins. Every value written is remembered so
    :meth:`check_takeover` can tell whether someone edited the form behind the
    automation's back.
    """

    def __init__(self, page, clock: ActivityClock, *, job_id: str) -> None:
        self.page = page
        self.clock = clock
        self.job_id = job_id
        self.expected_host = urlparse(page.url).hostname
        self.outcome = FillOutcome()
        self._written: dict[str, tuple[str, str]] = {}

    def ensure_usable(self) -> None:
        if self.clock.stalled:
            raise TransientError("Browser session stalled and was torn down", job_id=self.job_id)
        if self.page.is_closed():
            raise UserTakeover("Browser page was closed outside the automation", job_id=self.job_id)

    async def fill_field(self, name: str, selectors: tuple[str, ...], value: str | None) -> bool:
        self.ensure_usable()
        if not value:
            self.outcome.skipped.append(name)
            logger.debug("No value for %s; skipping", name)
            return False

        for selector in selectors:
            try:
                locator = self.page.locator(selector).first
                if await locator.is_visible():
                    await locator.fill(value)
                    self.clock.touch()
                    self._written[name] = (selector, value)
                    self.outcome.filled.append(name)
                    logger.info("Filled %s using selector: %s", name, selector)
                    return True
            except PlaywrightError as exc:
                logger.debug("Selector %s failed for %s: %s", selector, name, exc)

        self.ensure_usable()
        self.outcome.unfilled.append(name)
        logger.warning("Could not fill field: %s", name)
        return False

    async def upload(self, selectors: tuple[str, ...], path: Path) -> bool:
        self.ensure_usable()
        for selector in selectors:
            try:
                locator = self.page.locator(selector).first
                # File inputs are usually hidden, so presence in the DOM is enough.
                if await locator.count() > 0:
                    await locator.set_input_files(str(path))
                    self.clock.touch()
                    self.outcome.resume_uploaded = True
                    logger.info("Uploaded resume using selector: %s", selector)
                    return True
            except PlaywrightError as exc:
                logger.warning("Failed to upload resume with selector %s: %s", selector, exc)

        self.ensure_usable()
        logger.warning("Could not find resume upload field")
        return False

    async def click_first(self, selectors: tuple[str, ...]) -> str | None:
        self.ensure_usable()
        for selector in selectors:
            try:
                locator = self.page.locator(selector).first
                if await locator.is_visible():
                    await locator.click()
                    self.clock.touch()
                    return selector
            except PlaywrightError as exc:
                logger.debug("Click on %s failed: %s", selector, exc)
        return None

    async def check_takeover(self) -> None:
        """Raise :class:`UserTakeover` when the page no longer matches what was automated."""

        self.ensure_usable()
        host = urlparse(self.page.url).hostname
        if self.expected_host and host != self.expected_host:
            raise UserTakeover(
                f"Page navigated from {self.expected_host} to {host} without the automation",
                job_id=self.job_id,
            )
        for name, (selector, value) in self._written.items():
            try:
                current = await self.page.locator(selector).first.input_value()
            except PlaywrightError as exc:
                logger.debug("Could not re-read %s: %s", name, exc)
                continue
            if current != value:
                raise UserTakeover(f"Field {name} was changed outside the automation", job_id=self.job_id)


@dataclass(frozen=True)
class FieldSpec:
    name: str
    selectors: tuple[str, ...]
    value: Callable[[UserProfile], str | None]


@dataclass(frozen=True)
class FormStrategy:
    """Form layout of one ATS provider."""

    provider: Provider
    fields: tuple[FieldSpec, ...]
    upload_selectors: tuple[str, ...]
    submit_selectors: tuple[str, ...]

    async def fill(self, session: FormSession, job: JobRecord, profile: UserProfile, resume_path: Path) -> FillOutcome:
        logger.debug("Filling %s form for job %s", self.provider.value, job.id)
        for spec in self.fields:
            await session.fill_field(spec.name, spec.selectors, spec.value(profile))
        await session.upload(self.upload_selectors, resume_path)
        return session.outcome


def _full_name(profile: UserProfile) -> str:
    return profile.contact.full_name


GREENHOUSE = FormStrategy(
    provider=Provider.GREENHOUSE,
    fields=(
        FieldSpec("First Name", ("#first_name", 'input[name="first_name"]'), lambda p: p.contact.first_name),
        FieldSpec("Last Name", ("#last_name", 'input[name="last_name"]'), lambda p: p.contact.last_name),
        FieldSpec("Email", ("#email", 'input[name="email"]', 'input[type="email"]'), lambda p: p.contact.email),
        FieldSpec("Phone", ("#phone", 'input[name="phone"]', 'input[type="tel"]'), lambda p: p.contact.phone),
        FieldSpec(
            "LinkedIn",
            ('input[name*="linkedin" i]', 'label:has-text("LinkedIn") + input'),
            lambda p: p.contact.linkedin,
        ),
        FieldSpec(
            "Portfolio",
            ('input[name*="website" i]', 'label:has-text("Website") + input'),
            lambda p: p.contact.portfolio,
        ),
    ),
    upload_selectors=('#resume_fieldset input[type="file"]', '[data-source="attach"]', 'input[type="file"]'),
    submit_selectors=("#submit_app", 'button[type="submit"]', 'input[type="submit"]'),
)

LEVER = FormStrategy(
    provider=Provider.LEVER,
    fields=(
        FieldSpec("Full Name", ('input[name="name"]', 'input[name="fullName"]'), _full_name),
        FieldSpec("Email", ('input[name="email"]',), lambda p: p.contact.email),
        FieldSpec("Phone", ('input[name="phone"]',), lambda p: p.contact.phone),
        FieldSpec("Current Company", ('input[name="org"]', 'input[name="company"]'), lambda p: p.contact.current_company),
        FieldSpec("LinkedIn", ('input[name="urls[LinkedIn]"]',), lambda p: p.contact.linkedin),
        FieldSpec("Portfolio", ('input[name="urls[Portfolio]"]',), lambda p: p.contact.portfolio),
    ),
    upload_selectors=('input[type="file"]',),
    submit_selectors=("button.postings-btn", 'button[type="submit"]', 'button:has-text("Submit application")'),
)

ASHBY = FormStrategy(
    provider=Provider.ASHBY,
    fields=(
        FieldSpec("Full Name", ('input[name="_systemfield_name"]', 'input[name="name"]'), _full_name),
        FieldSpec("Email", ('input[name="_systemfield_email"]', 'input[name="email"]'), lambda p: p.contact.email),
        FieldSpec("Phone", ('input[name="phoneNumber"]', 'input[type="tel"]'), lambda p: p.contact.phone),
    ),
    upload_selectors=('input[type="file"]',),
    submit_selectors=('button:has-text("Submit Application")', 'button[type="submit"]'),
)

FORM_STRATEGIES: dict[Provider, FormStrategy] = {
    Provider.GREENHOUSE: GREENHOUSE,
    Provider.LEVER: LEVER,
    Provider.ASHBY: ASHBY,
}


def strategy_for(provider: str) -> FormStrategy | None:
    try:
        return FORM_STRATEGIES.get(Provider(provider.lower()))
    except ValueError:
        return None
