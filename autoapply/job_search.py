"""Job source adapter: query building, provider call, catalog upsert, fallback."""
from __future__ import annotations

import sqlite3
from uuid import uuid4

from autoapply.config import MAX_RESULT_COUNT, clamp_result_count
from autoapply.errors import ProviderUnavailable
from autoapply.log import get_logger
from autoapply.models import JobListing
from autoapply.sources.base import JobSearchBase
from autoapply.sources.mock import MockSource
from autoapply.store import Store

log = get_logger(__name__)

DEFAULT_QUERY = "software developer jobs any company"
DEFAULT_LOCATION = "India"

ROLE_QUERIES: dict[str, str] = {
    "frontend": "frontend developer OR react developer OR html css javascript jobs any company",
    "backend": "backend developer OR node.js developer OR python java backend jobs any company",
    "fullstack": "fullstack developer OR mean mern stack fullstack jobs any company",
    "java": "java developer OR spring boot hibernate java jobs any company",
    "mern": "mern stack developer OR react node.js mongodb express mern jobs any company",
    "web": "web developer OR php laravel html css js web jobs any company",
    "software": "software developer OR software engineer c# .net python jobs any company",
}


def build_query(query: str | None = None, role: str = "all", location: str = DEFAULT_LOCATION) -> str:
    """Map a role tag to its synonym expression and add location/recency qualifiers.

    Unknown role tags keep the free-text query.
    """
    search_query = (query or "").strip() or DEFAULT_QUERY
    tag = (role or "all").strip().lower()
    if tag != "all":
        search_query = ROLE_QUERIES.get(tag, search_query)
    return f"{search_query} {location} remote OR onsite recent"


class JobSourceAdapter:
    def __init__(
        self,
        provider: JobSearchBase,
        store: Store,
        *,
        fallback: JobSearchBase | None = None,
        default_count: int = MAX_RESULT_COUNT,
    ) -> None:
        self.provider = provider
        self.store = store
        self.fallback = fallback or MockSource()
        self.default_count = clamp_result_count(default_count)

    def search(
        self,
        query: str | None = None,
        location: str = DEFAULT_LOCATION,
        count: int | None = None,
        *,
        role: str = "all",
    ) -> list[JobListing]:
        return self.fetch(build_query(query, role, location), location, count)

    def fetch(self, query: str, location: str = DEFAULT_LOCATION, count: int | None = None) -> list[JobListing]:
        """Run *query* as-is against the provider; fall back to synthetic listings."""
        limit = clamp_result_count(count, self.default_count)
        try:
            jobs = self.provider.search(query, location, limit)
        except ProviderUnavailable as exc:
            log.warning("Job provider unavailable (%s); using fallback listings", exc.message)
            jobs = []
        except Exception as exc:
            log.error("Job provider FAILED (%s: %s); using fallback listings", exc.__class__.__name__, exc)
            jobs = []

        if not jobs:
            log.warning("No provider results for %r; using fallback listings", query[:80])
            return self.fallback.search(query, location, limit)

        for job in jobs[:limit]:
            self._upsert(job)
        return jobs[:limit]

    def _upsert(self, job: JobListing) -> None:
        try:
            self.store.upsert_job(job)
        except sqlite3.Error as exc:
            log.warning("Save job %r to catalog failed: %s", job.title[:60], exc)
            if not job.external_id:
                job.id = f"local-{uuid4().hex[:12]}"
