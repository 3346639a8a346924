"""Career pages polled by the scheduled runner, with per-target health."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from app.schemas import Provider


@dataclass
class ScrapeTarget:
    id: str
    name: str
    url: str
    provider: str
    enabled: bool = True
    notes: str | None = None
    last_success_at: datetime | None = None
    last_error_at: datetime | None = None
    error_count: int = 0


SCRAPE_TARGETS: list[ScrapeTarget] = [
    ScrapeTarget("figma", "Figma", "https://boards.greenhouse.io/figma", Provider.GREENHOUSE.value,
                 notes="Design collaboration platform"),
    ScrapeTarget("stripe", "Stripe", "https://boards.greenhouse.io/stripe", Provider.GREENHOUSE.value,
                 notes="Payment infrastructure"),
    ScrapeTarget("vercel", "Vercel", "https://boards.greenhouse.io/vercel", Provider.GREENHOUSE.value,
                 notes="Frontend deployment platform"),
    ScrapeTarget("notion", "Notion", "https://boards.greenhouse.io/notion", Provider.GREENHOUSE.value,
                 notes="Productivity and notes app"),
    ScrapeTarget("duolingo", "Duolingo", "https://jobs.lever.co/duolingo", Provider.LEVER.value,
                 notes="Language learning platform"),
    ScrapeTarget("netflix", "Netflix", "https://jobs.lever.co/netflix", Provider.LEVER.value,
                 notes="Streaming entertainment"),
    ScrapeTarget("linear", "Linear", "https://jobs.ashbyhq.com/linear", Provider.ASHBY.value,
                 notes="Project management tool"),
    ScrapeTarget("ramp", "Ramp", "https://jobs.ashbyhq.com/ramp", Provider.ASHBY.value,
                 notes="Corporate cards and spend management"),
]


def enabled_targets(targets: list[ScrapeTarget] | None = None) -> list[ScrapeTarget]:
    return [t for t in (SCRAPE_TARGETS if targets is None else targets) if t.enabled]


def record_success(target: ScrapeTarget) -> None:
    target.last_success_at = datetime.utcnow()
    target.error_count = 0


def record_error(target: ScrapeTarget) -> None:
    target.last_error_at = datetime.utcnow()
    target.error_count += 1


def is_healthy(target: ScrapeTarget) -> bool:
    if target.error_count == 0:
        return True
    if target.last_success_at is None or target.last_error_at is None:
        return False
    return target.last_success_at > target.last_error_at


def unhealthy_targets(targets: list[ScrapeTarget], threshold: int = 3) -> list[ScrapeTarget]:
    """Targets with at least ``threshold`` consecutive errors. Advisory only."""
    return [t for t in targets if t.error_count >= threshold]
