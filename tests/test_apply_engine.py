import sqlite3
import threading

import pytest
from conftest import FIXED_NOW, FakeProvider, make_jobs

from autoapply.apply_engine import ApplyEngine, compose_query
from autoapply.errors import ApplicationNotFound, InvalidStatus, ProfileNotFound, QuotaExceeded
from autoapply.job_search import JobSourceAdapter
from autoapply.scoring import MAX_SCORE, MIN_SCORE


def _engine(store, provider, daily_limit=30, scorer=None):
    kwargs = {"daily_limit": daily_limit, "clock": lambda: FIXED_NOW}
    if scorer is not None:
        kwargs["scorer"] = scorer
    return ApplyEngine(store, JobSourceAdapter(provider, store), **kwargs)


def _seed_today(store, user, n):
    for job in make_jobs(n, prefix="seed"):
        store.insert_application(user.id, job, match_score=60, profile=user, applied_at=FIXED_NOW)


def test_applies_requested_count_in_provider_order(store, user):
    engine = _engine(store, FakeProvider(jobs=make_jobs(10)))
    result = engine.auto_apply(user.id, 4)
    assert [o.job.id for o in result.applied] == ["job-1", "job-2", "job-3", "job-4"]
    assert result.remaining == 26
    assert all(MIN_SCORE <= o.match_score <= MAX_SCORE for o in result.applied)
    assert store.count_applications_on(user.id, FIXED_NOW.date()) == 4


def test_quota_nearly_used_caps_new_applications(store, user):
    _seed_today(store, user, 28)
    engine = _engine(store, FakeProvider(jobs=make_jobs(20)))
    result = engine.auto_apply(user.id, 10)
    assert len(result.applied) == 2
    assert result.remaining == 0
    assert store.count_applications_on(user.id, FIXED_NOW.date()) == 30


def test_quota_exhausted_raises_with_counts(store, user):
    _seed_today(store, user, 3)
    engine = _engine(store, FakeProvider(jobs=make_jobs(5)), daily_limit=3)
    with pytest.raises(QuotaExceeded) as excinfo:
        engine.auto_apply(user.id, 5)
    assert excinfo.value.limit == 3
    assert excinfo.value.applied_today == 3
    assert "Daily limit (3) reached" in excinfo.value.message


def test_missing_profile_raises(store):
    engine = _engine(store, FakeProvider(jobs=make_jobs(2)))
    with pytest.raises(ProfileNotFound):
        engine.auto_apply(999, 2)


def test_reapplying_skips_duplicates(store, user):
    provider = FakeProvider(jobs=make_jobs(5))
    engine = _engine(store, provider)
    first = engine.auto_apply(user.id, 3)
    second = engine.auto_apply(user.id, 3)

    assert [o.job.id for o in first.applied] == ["job-1", "job-2", "job-3"]
    assert [o.job.id for o in second.applied] == ["job-4", "job-5"]
    assert [o.job.id for o in second.skipped] == ["job-1", "job-2", "job-3"]
    _, total = store.list_applications(user.id, limit=100)
    assert total == 5


def test_daily_total_never_exceeds_limit_over_many_calls(store, user):
    engine = _engine(store, FakeProvider(jobs=make_jobs(60)), daily_limit=12)
    for _ in range(3):
        try:
            engine.auto_apply(user.id, 5)
        except QuotaExceeded:
            pass
    with pytest.raises(QuotaExceeded):
        engine.auto_apply(user.id, 5)
    assert store.count_applications_on(user.id, FIXED_NOW.date()) == 12


def test_insert_errors_are_tagged_failed(store, user, monkeypatch):
    real_insert = store.insert_application

    def flaky(user_id, job, **kwargs):
        if job.id == "job-2":
            raise sqlite3.OperationalError("database is locked")
        return real_insert(user_id, job, **kwargs)

    monkeypatch.setattr(store, "insert_application", flaky)
    result = _engine(store, FakeProvider(jobs=make_jobs(4))).auto_apply(user.id, 3)
    assert [o.job.id for o in result.applied] == ["job-1", "job-3", "job-4"]
    assert [(o.job.id, o.reason) for o in result.failed] == [("job-2", "database is locked")]


def test_integrity_error_counts_as_duplicate(store, user, monkeypatch):
    monkeypatch.setattr(store, "application_exists", lambda user_id, job_id: False)
    store.insert_application(user.id, make_jobs(1)[0], match_score=50, profile=user, applied_at=FIXED_NOW)
    result = _engine(store, FakeProvider(jobs=make_jobs(2))).auto_apply(user.id, 1)
    assert [o.job.id for o in result.skipped] == ["job-1"]
    assert [o.job.id for o in result.applied] == ["job-2"]


def test_fallback_listings_are_applied_when_provider_down(store, user, unavailable_provider):
    result = _engine(store, unavailable_provider).auto_apply(user.id, 3)
    assert len(result.applied) == 3
    assert all(o.job.is_fallback for o in result.applied)


def test_custom_scorer_is_used(store, user):
    result = _engine(store, FakeProvider(jobs=make_jobs(2)), scorer=lambda p, j: 77).auto_apply(user.id, 2)
    assert [o.match_score for o in result.applied] == [77, 77]


def test_concurrent_calls_for_same_user_respect_quota(store, user):
    engine = _engine(store, FakeProvider(jobs=make_jobs(40)), daily_limit=10)
    errors = []

    def run():
        try:
            engine.auto_apply(user.id, 8)
        except QuotaExceeded as exc:
            errors.append(exc)

    threads = [threading.Thread(target=run) for _ in range(3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert store.count_applications_on(user.id, FIXED_NOW.date()) == 10


def test_compose_query_seniority_and_role_filter(user):
    assert "mid level" in compose_query(user)
    user.experience_years = 6
    q = compose_query(user, "java")
    assert q.startswith("backend developer OR fullstack")
    assert "python sql" in q
    assert " senior " in q
    assert q.endswith(" java")


def test_manual_apply_refreshes_existing(store, user):
    job = make_jobs(1)[0]
    store.upsert_job(job)
    engine = _engine(store, FakeProvider())
    first = engine.apply_job(user.id, job.id)
    engine.update_status(user.id, first["application_id"], "interview")
    second = engine.apply_job(user.id, job.id)

    assert first["job_title"] == job.title
    assert second["application_id"] == first["application_id"]
    listing = engine.list_applications(user.id)
    assert listing["total"] == 1
    assert listing["applications"][0].status == "applied"


def test_manual_apply_unknown_job_uses_placeholders(store, user):
    out = _engine(store, FakeProvider()).apply_job(user.id, "nope")
    assert out["job_title"] == "Untitled Job"


def test_update_status_validation(store, user):
    engine = _engine(store, FakeProvider())
    with pytest.raises(InvalidStatus):
        engine.update_status(user.id, 1, "ghosted")
    with pytest.raises(ApplicationNotFound):
        engine.update_status(user.id, 12345, "offer")


def test_list_applications_paginates(store, user):
    engine = _engine(store, FakeProvider(jobs=make_jobs(5)))
    engine.auto_apply(user.id, 5)
    page = engine.list_applications(user.id, page=2, limit=2)
    assert page["total"] == 5
    assert page["page"] == 2
    assert len(page["applications"]) == 2


def test_candidate_fetch_uses_adapter_default_count(store, user):
    adapter = JobSourceAdapter(FakeProvider(jobs=make_jobs(40)), store, default_count=6)
    engine = ApplyEngine(store, adapter, daily_limit=30, clock=lambda: FIXED_NOW)
    result = engine.auto_apply(user.id, 30)
    assert len(result.applied) == 6
    assert result.remaining == 24


def test_release_user_keeps_lock_while_a_run_holds_it(store, user):
    engine = _engine(store, FakeProvider(jobs=make_jobs(3)))
    lock = engine._user_lock(user.id)
    with lock:
        assert engine.release_user(user.id) is False
    assert engine.release_user(user.id) is True
    assert engine.release_user(user.id) is False
    assert engine._user_lock(user.id) is not lock
