"""Synthetic listings used when the job provider is unavailable."""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from autoapply.log import get_logger
from autoapply.models import FALLBACK_PLATFORM, JobListing
from autoapply.sources.base import JobSearchBase

log = get_logger(__name__)


def _mock_id(day: date, index: int) -> str:
    """Date-based ID so fallback listings count as new each day."""
    return f"mock-{day.isoformat()}-{index}"


class MockSource(JobSearchBase):
    platform = FALLBACK_PLATFORM

    def __init__(self, today: date | None = None) -> None:
        self.today = today

    def search(self, query: str, location: str, limit: int = 100) -> list[JobListing]:
        day = self.today or datetime.now(timezone.utc).date()
        log.info("MockSource generating %d sample jobs", limit)
        return [
            JobListing(
                id=_mock_id(day, i),
                title=f"Developer Role {i} (Fullstack/Frontend/Backend)",
                company=f"Tech Company {i}",
                location=location or "India",
                url=f"https://example.com/job/{i}",
                description="Sample job for software/fullstack/web/java developer with modern stack.",
                posted_at=(day - timedelta(days=i - 1)).isoformat(),
                platform=self.platform,
            )
            for i in range(1, max(0, limit) + 1)
        ]
