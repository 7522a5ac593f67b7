"""Wire the store, job source, apply engine, scheduler and ingestion together.

``AutoApplyService`` is the single entry point used by the CLI and by any
request layer. Session hooks bind the scheduler to login/logout.
"""
from __future__ import annotations

from typing import Any

from autoapply.apply_engine import ADJACENT_ROLES, ApplyEngine
from autoapply.config import SCHEDULED_BATCH_SIZE, Settings, ensure_dirs, load_settings
from autoapply.errors import InvalidSkills, ProfileNotFound, UserNotFound
from autoapply.ingestion import Classifier, ResumeIngestionPipeline
from autoapply.job_search import DEFAULT_LOCATION, JobSourceAdapter
from autoapply.log import get_logger, setup_file_logging
from autoapply.models import ApplyResult, IngestResult, JobListing, UserProfile, normalize_skills
from autoapply.resume_parser import GroqClassifier
from autoapply.scheduler import AutoSearchScheduler
from autoapply.scoring import MatchScorer, random_match_score
from autoapply.sources.base import JobSearchBase
from autoapply.sources.serpapi import SerpApiSource
from autoapply.store import Store
from autoapply.uploads import UploadStorage

log = get_logger(__name__)

MATCHES_SHOWN = 20
MATCHES_FETCHED = 50


class AutoApplyService:
    def __init__(
        self,
        settings: Settings,
        *,
        store: Store | None = None,
        provider: JobSearchBase | None = None,
        classifier: Classifier | None = None,
        scorer: MatchScorer = random_match_score,
    ) -> None:
        self.settings = settings
        ensure_dirs(settings)
        setup_file_logging(settings.log_dir, settings.log_level)
        self.store = store or Store(settings.db_path)
        self.adapter = JobSourceAdapter(
            provider or SerpApiSource(settings.serpapi_key, timeout=settings.provider_timeout),
            self.store,
            default_count=settings.default_result_count,
        )
        self.engine = ApplyEngine(self.store, self.adapter, daily_limit=settings.daily_limit, scorer=scorer)
        self.scheduler = AutoSearchScheduler(self._scheduled_tick, interval_sec=settings.search_interval_sec)
        self.ingestion = ResumeIngestionPipeline(
            self.store,
            UploadStorage(settings.uploads_path),
            self.engine,
            classifier or GroqClassifier(settings.groq_api_key, settings.groq_model),
        )

    @classmethod
    def from_env(cls, **kwargs: Any) -> "AutoApplyService":
        return cls(load_settings(), **kwargs)

    def _scheduled_tick(self, user_id: int) -> ApplyResult:
        return self.engine.auto_apply(user_id, SCHEDULED_BATCH_SIZE, "all")

    # ── session boundary ───────────────────────────────────────────────

    def on_session_start(self, user_id: int) -> None:
        self.scheduler.start(user_id)

    def on_session_end(self, user_id: int) -> None:
        self.scheduler.stop(user_id)
        self.engine.release_user(user_id)

    def shutdown(self) -> None:
        self.scheduler.shutdown()

    # ── profile ────────────────────────────────────────────────────────

    def register_user(
        self, full_name: str, email: str, role: str | None = None, experience_years: int = 0,
    ) -> UserProfile:
        return self.store.create_user(
            full_name=full_name, email=email, role=role, experience_years=experience_years,
        )

    def get_profile(self, user_id: int) -> UserProfile:
        profile = self.store.get_profile(user_id)
        if profile is None:
            raise ProfileNotFound(user_id)
        return profile

    def update_profile(self, user_id: int, fields: dict[str, Any]) -> UserProfile:
        if not self.store.update_profile(user_id, fields):
            raise UserNotFound(user_id)
        return self.get_profile(user_id)

    def add_skills(self, user_id: int, skills: list[str]) -> list[str]:
        if not isinstance(skills, list) or not normalize_skills(skills):
            raise InvalidSkills()
        if self.store.get_profile(user_id) is None:
            raise UserNotFound(user_id)
        self.store.upsert_skills(user_id, skills)
        return self.store.list_skills(user_id)

    # ── jobs ───────────────────────────────────────────────────────────

    def list_jobs(
        self,
        query: str | None = None,
        role: str = "all",
        location: str = DEFAULT_LOCATION,
        count: int | None = None,
    ) -> list[JobListing]:
        return self.adapter.search(query, location, count, role=role)

    def job_matches(self, user_id: int) -> dict[str, Any]:
        profile = self.get_profile(user_id)
        parts = [ADJACENT_ROLES, " OR ".join(profile.parsed_skills or profile.skills)]
        query = " ".join(p for p in parts if p) + f" jobs any company {DEFAULT_LOCATION} recent"
        jobs = self.adapter.fetch(query, DEFAULT_LOCATION, MATCHES_FETCHED)
        return {
            "jobs": jobs[:MATCHES_SHOWN],
            "total": len(jobs),
            "message": f"Found {len(jobs)} matches for {profile.role or 'developer'} role",
        }

    # ── applications ───────────────────────────────────────────────────

    def auto_apply(self, user_id: int, requested_count: int | None = None, role: str = "all") -> ApplyResult:
        return self.engine.auto_apply(user_id, requested_count, role)

    def apply_job(self, user_id: int, job_id: str) -> dict[str, Any]:
        return self.engine.apply_job(user_id, job_id)

    def update_status(self, user_id: int, application_id: int, status: str) -> None:
        self.engine.update_status(user_id, application_id, status)

    def list_applications(self, user_id: int, page: int = 1, limit: int = 50) -> dict[str, Any]:
        return self.engine.list_applications(user_id, page, limit)

    # ── resume ─────────────────────────────────────────────────────────

    def upload_resume(self, user_id: int, document: bytes | None, filename: str = "resume.pdf") -> IngestResult:
        return self.ingestion.ingest(user_id, document, filename)

    def get_resume(self, user_id: int) -> dict[str, Any]:
        return self.ingestion.get_resume(user_id)

    def delete_resume(self, user_id: int) -> None:
        self.ingestion.delete_resume(user_id)
