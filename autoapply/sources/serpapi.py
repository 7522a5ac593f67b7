"""SerpAPI Google Jobs search."""
from __future__ import annotations

import hashlib

import requests

from autoapply.config import MAX_RESULT_COUNT
from autoapply.errors import ProviderUnavailable
from autoapply.log import get_logger
from autoapply.models import JobListing
from autoapply.sources.base import JobSearchBase

log = get_logger(__name__)

# Groq keys share the env file and are a common paste mistake.
_INVALID_KEY_PREFIXES = ("gsk_",)


def _text(value) -> str:
    """Scalar payload field as a string; containers and None become ''."""
    if value is None or isinstance(value, (dict, list, tuple)):
        return ""
    return str(value)


def _best_apply_link(hit: dict) -> str:
    for opts_key in ("apply_options", "related_links"):
        opts = hit.get(opts_key, [])
        if opts and isinstance(opts, list):
            for opt in opts:
                link = _text(opt.get("link")) if isinstance(opt, dict) else ""
                if link:
                    return link
    return _text(hit.get("job_url")) or _text(hit.get("share_link")) or _text(hit.get("link"))


def external_key(hit: dict) -> str:
    """Provider job id, else a stable hash of title, company and location."""
    job_id = _text(hit.get("job_id"))
    if job_id:
        return job_id
    basis = _text(hit.get("title")) + _text(hit.get("company_name")) + _text(hit.get("location"))
    return "serp-" + hashlib.sha256(basis.encode()).hexdigest()[:12]


class SerpApiSource(JobSearchBase):
    URL = "https://serpapi.com/search.json"
    platform = "Google Jobs"

    def __init__(self, api_key: str, *, timeout: float = 20.0, session: requests.Session | None = None) -> None:
        self.api_key = (api_key or "").strip()
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) and not self.api_key.startswith(_INVALID_KEY_PREFIXES)

    def _fetch(self, query: str, location: str, limit: int) -> dict:
        if not self.is_configured:
            raise ProviderUnavailable("Invalid SerpAPI key")
        try:
            r = self.session.get(
                self.URL,
                params={
                    "engine": "google_jobs",
                    "q": query,
                    "location": location,
                    "num": limit,
                    "sort_by": "date",
                    "api_key": self.api_key,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise ProviderUnavailable(f"SerpAPI request failed: {exc.__class__.__name__}") from exc
        if not r.ok:
            raise ProviderUnavailable(f"SerpAPI HTTP {r.status_code}")
        try:
            data = r.json()
        except ValueError as exc:
            raise ProviderUnavailable("SerpAPI returned malformed JSON") from exc
        if not isinstance(data, dict):
            raise ProviderUnavailable("SerpAPI returned malformed payload")
        return data

    def search(self, query: str, location: str, limit: int = MAX_RESULT_COUNT) -> list[JobListing]:
        limit = max(1, min(limit, MAX_RESULT_COUNT))
        data = self._fetch(query, location, limit)
        hits = data.get("jobs_results")
        if not isinstance(hits, list):
            raise ProviderUnavailable(_text(data.get("error")) or "SerpAPI response has no jobs_results")

        jobs: list[JobListing] = []
        skipped = 0
        for hit in hits[:limit]:
            try:
                jobs.append(self._to_listing(hit, location))
            except (AttributeError, TypeError, ValueError) as exc:
                skipped += 1
                log.debug("Skipping malformed SerpAPI hit: %s", exc)
        if skipped:
            log.warning("SerpAPI q=%r: skipped %d malformed hit(s)", query, skipped)
        log.debug("SerpAPI q=%r returned %d jobs", query, len(jobs))
        return jobs

    def _to_listing(self, hit: dict, location: str) -> JobListing:
        if not isinstance(hit, dict):
            raise TypeError(f"hit is {type(hit).__name__}, not an object")
        key = external_key(hit)
        extensions = hit.get("detected_extensions")
        if not isinstance(extensions, dict):
            extensions = {}
        return JobListing(
            id=key,
            external_id=key,
            title=_text(hit.get("title")) or _text(hit.get("job_title")),
            company=_text(hit.get("company_name")) or "Various Companies",
            location=_text(hit.get("location")) or location,
            url=_best_apply_link(hit),
            description=_text(hit.get("description")),
            posted_at=_text(hit.get("posted_at")) or _text(extensions.get("posted_at")) or None,
            platform=self.platform,
            raw=hit,
        )
