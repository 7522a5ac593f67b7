from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from autoapply.config import Settings
from autoapply.errors import ProviderUnavailable
from autoapply.models import JobListing, ParsedResume
from autoapply.sources.base import JobSearchBase
from autoapply.store import Store

FIXED_NOW = datetime(2026, 3, 2, 10, 30, tzinfo=timezone.utc)


def make_jobs(n: int, prefix: str = "job") -> list[JobListing]:
    return [
        JobListing(
            id=f"{prefix}-{i}",
            external_id=f"{prefix}-{i}",
            title=f"Backend Developer {i}",
            company=f"Company {i}",
            location="Pune",
            url=f"https://jobs.example.com/{prefix}/{i}",
            description="Python, Django, SQL and AWS. 3+ years.",
            platform="Fake",
        )
        for i in range(1, n + 1)
    ]


class FakeProvider(JobSearchBase):
    platform = "Fake"

    def __init__(self, jobs: list[JobListing] | None = None, error: Exception | None = None) -> None:
        self.jobs = jobs or []
        self.error = error
        self.queries: list[str] = []

    def search(self, query: str, location: str, limit: int = 100) -> list[JobListing]:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return [JobListing(**{**j.__dict__, "raw": {}}) for j in self.jobs[:limit]]


class FakeClassifier:
    def __init__(self, parsed: ParsedResume | None = None, error: Exception | None = None) -> None:
        self.parsed = parsed
        self.error = error
        self.texts: list[str] = []

    def __call__(self, text: str) -> ParsedResume:
        self.texts.append(text)
        if self.error is not None:
            raise self.error
        return self.parsed or ParsedResume()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        search_interval_ms=60_000,
        daily_limit=30,
        default_result_count=100,
        serpapi_key="",
        groq_api_key="",
        uploads_path=tmp_path / "uploads",
        db_path=tmp_path / "data" / "autoapply.db",
        log_dir=tmp_path / "logs",
    )


@pytest.fixture()
def store(tmp_path: Path) -> Store:
    return Store(tmp_path / "store.db")


@pytest.fixture()
def user(store: Store):
    profile = store.create_user(full_name="Asha Rao", email="asha@example.com", role="backend developer",
                                experience_years=3)
    store.upsert_skills(profile.id, ["Python", "SQL"])
    return store.get_profile(profile.id)


@pytest.fixture()
def unavailable_provider() -> FakeProvider:
    return FakeProvider(error=ProviderUnavailable("down"))
