"""
Apply engine.

Runs: quota check → profile lookup → composite query → candidate search →
per-candidate dedup + insert, stopping once the batch is filled.

All application writes go through this module.
"""
from __future__ import annotations

import sqlite3
import threading
from datetime import datetime, timezone
from typing import Any, Callable

from autoapply.errors import ApplicationNotFound, InvalidStatus, ProfileNotFound, QuotaExceeded
from autoapply.job_search import DEFAULT_LOCATION, JobSourceAdapter
from autoapply.log import get_logger
from autoapply.models import APPLICATION_STATUSES, ApplyOutcome, ApplyResult, JobListing, UserProfile
from autoapply.scoring import MatchScorer, random_match_score
from autoapply.store import Store

log = get_logger(__name__)

ADJACENT_ROLES = "fullstack OR frontend OR backend OR web developer OR java developer OR software developer"


def compose_query(profile: UserProfile, role_filter: str = "all", location: str = DEFAULT_LOCATION) -> str:
    """Role + adjacent developer roles + skills + seniority qualifier."""
    seniority = "senior" if profile.experience_years > 5 else "mid level"
    parts = [
        profile.role or "software developer",
        "OR",
        ADJACENT_ROLES,
        "any company",
        " ".join(profile.skills),
        seniority,
        f"{location} remote OR onsite recent",
    ]
    tag = (role_filter or "all").strip()
    if tag.lower() != "all":
        parts.append(tag)
    return " ".join(p for p in parts if p)


class ApplyEngine:
    def __init__(
        self,
        store: Store,
        adapter: JobSourceAdapter,
        *,
        daily_limit: int = 30,
        scorer: MatchScorer = random_match_score,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.adapter = adapter
        self.daily_limit = daily_limit
        self.scorer = scorer
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._locks: dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _user_lock(self, user_id: int) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = self._locks[user_id] = threading.Lock()
            return lock

    def release_user(self, user_id: int) -> bool:
        """Drop the user's lock unless a run currently holds it."""
        with self._locks_guard:
            lock = self._locks.get(user_id)
            if lock is None or lock.locked():
                return False
            del self._locks[user_id]
            return True

    def remaining_today(self, user_id: int) -> int:
        applied = self.store.count_applications_on(user_id, self._clock().date())
        return max(0, self.daily_limit - applied)

    def auto_apply(
        self,
        user_id: int,
        requested_count: int | None = None,
        role: str = "all",
        *,
        location: str = DEFAULT_LOCATION,
    ) -> ApplyResult:
        """Apply to up to *requested_count* new jobs, bounded by the daily quota.

        Calls for the same user are serialized, so the count-then-insert
        sequence cannot overshoot the quota within this process.
        """
        with self._user_lock(user_id):
            return self._auto_apply(user_id, requested_count, role, location)

    def _auto_apply(self, user_id: int, requested_count: int | None, role: str, location: str) -> ApplyResult:
        now = self._clock()
        already = self.store.count_applications_on(user_id, now.date())
        remaining = self.daily_limit - already
        requested = self.daily_limit if requested_count is None else requested_count
        to_apply = min(requested, max(0, remaining))
        if to_apply <= 0:
            raise QuotaExceeded(self.daily_limit, already)

        profile = self.store.get_profile(user_id)
        if profile is None:
            raise ProfileNotFound(user_id)

        query = compose_query(profile, role, location)
        candidates = self.adapter.fetch(query, location)
        log.debug("User %d: %d candidates for %d slots", user_id, len(candidates), to_apply)

        outcomes: list[ApplyOutcome] = []
        applied: list[ApplyOutcome] = []
        for job in candidates:
            if len(applied) >= to_apply:
                break
            outcome = self._apply_one(profile, job, now)
            outcomes.append(outcome)
            if outcome.kind == "applied":
                applied.append(outcome)

        result = ApplyResult(
            applied=applied,
            remaining=remaining - len(applied),
            daily_limit=self.daily_limit,
            outcomes=outcomes,
        )
        log.info(
            "User %d: applied=%d skipped=%d failed=%d remaining=%d",
            user_id, len(applied), len(result.skipped), len(result.failed), result.remaining,
        )
        return result

    def _apply_one(self, profile: UserProfile, job: JobListing, now: datetime) -> ApplyOutcome:
        try:
            if self.store.application_exists(profile.id, job.id):
                return ApplyOutcome(job=job, kind="skipped_duplicate")
            score = int(self.scorer(profile, job))
            app_id = self.store.insert_application(
                profile.id, job, match_score=score, profile=profile, applied_at=now,
            )
        except sqlite3.IntegrityError:
            # lost a race with another writer for the same (user, job)
            return ApplyOutcome(job=job, kind="skipped_duplicate")
        except sqlite3.Error as exc:
            log.warning("Apply to %r failed: %s", job.id, exc)
            return ApplyOutcome(job=job, kind="failed", reason=str(exc))
        return ApplyOutcome(job=job, kind="applied", match_score=score, application_id=app_id)

    # ── manual application operations ──────────────────────────────────

    def apply_job(self, user_id: int, job_id: str) -> dict[str, Any]:
        """Mark one job as applied; re-applying refreshes status and timestamp."""
        job = None
        try:
            job = self.store.get_job(job_id)
        except sqlite3.Error as exc:
            log.warning("Job lookup for %r failed (using defaults): %s", job_id, exc)
        job_title = (job.title if job else "") or "Untitled Job"
        company_name = (job.company if job else "") or "N/A"
        with self._user_lock(user_id):
            app_id = self.store.apply_or_refresh(
                user_id, job_id, job_title=job_title, company_name=company_name, applied_at=self._clock(),
            )
        log.info("User %d applied to %s", user_id, job_id)
        return {"application_id": app_id, "job_title": job_title}

    def update_status(self, user_id: int, application_id: int, status: str) -> None:
        if status not in APPLICATION_STATUSES:
            raise InvalidStatus()
        if not self.store.update_application_status(user_id, application_id, status):
            raise ApplicationNotFound()
        log.debug("Application %d → %s", application_id, status)

    def list_applications(self, user_id: int, page: int = 1, limit: int = 50) -> dict[str, Any]:
        page = max(1, int(page))
        limit = max(1, int(limit))
        apps, total = self.store.list_applications(user_id, limit=limit, offset=(page - 1) * limit)
        return {"applications": apps, "total": total, "page": page, "limit": limit}
