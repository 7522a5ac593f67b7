import sqlite3

import pytest
from conftest import FIXED_NOW, make_jobs

from autoapply.errors import AutoApplyError, UserNotFound
from autoapply.models import ParsedResume


def test_skills_are_trimmed_lowercased_and_deduped(store, user):
    store.delete_skills(user.id)
    stored = store.upsert_skills(user.id, ["React", " Node ", "react"])
    assert set(stored) == {"react", "node"}
    assert set(store.list_skills(user.id)) == {"react", "node"}


def test_repeat_skill_upsert_does_not_duplicate(store, user):
    store.upsert_skills(user.id, ["python", "PYTHON "])
    assert store.list_skills(user.id).count("python") == 1


def test_duplicate_email_is_rejected(store, user):
    with pytest.raises(AutoApplyError, match="Email already exists"):
        store.create_user(full_name="Other", email="asha@example.com")


def test_upsert_job_refreshes_instead_of_duplicating(store):
    job = make_jobs(1)[0]
    first = store.upsert_job(job)
    second = store.upsert_job(job)
    assert first == second
    assert store.job_count() == 1
    loaded = store.get_job(job.id)
    assert loaded is not None
    assert loaded.title == job.title


def test_application_pair_is_unique(store, user):
    job = make_jobs(1)[0]
    store.insert_application(user.id, job, match_score=70, profile=user, applied_at=FIXED_NOW)
    with pytest.raises(sqlite3.IntegrityError):
        store.insert_application(user.id, job, match_score=80, profile=user, applied_at=FIXED_NOW)
    apps, total = store.list_applications(user.id)
    assert total == 1
    assert apps[0].match_score == 70


def test_apply_or_refresh_updates_existing_row(store, user):
    job = make_jobs(1)[0]
    app_id = store.insert_application(user.id, job, match_score=60, profile=user, applied_at=FIXED_NOW)
    store.update_application_status(user.id, app_id, "rejected")

    again = store.apply_or_refresh(user.id, job.id, job_title="Renamed", company_name="Co")
    apps, total = store.list_applications(user.id)
    assert again == app_id
    assert total == 1
    assert apps[0].status == "applied"
    assert apps[0].job_title == "Renamed"


def test_count_applications_on_uses_submission_date(store, user):
    for job in make_jobs(3):
        store.insert_application(user.id, job, match_score=50, profile=user, applied_at=FIXED_NOW)
    assert store.count_applications_on(user.id, FIXED_NOW.date()) == 3
    assert store.count_applications_on(user.id, FIXED_NOW.date().replace(day=1)) == 0


def test_save_parsed_resume_without_profile_keeps_fields(store, user):
    store.save_parsed_resume(user.id, text="hello", ats_score=40, resume_path="/x.pdf", parsed=None)
    profile = store.get_profile(user.id)
    assert profile.role == "backend developer"
    assert profile.ats_score == 40


def test_save_parsed_resume_with_profile(store, user):
    parsed = ParsedResume(role="Fullstack Developer", experience_years=6, education="B.Tech",
                          current_company="Acme", skills=["React"])
    store.save_parsed_resume(user.id, text="t", ats_score=90, resume_path="/r.pdf", parsed=parsed)
    profile = store.get_profile(user.id)
    assert profile.role == "Fullstack Developer"
    assert profile.experience_years == 6
    assert profile.parsed_skills == ["React"]
    assert profile.resume_path == "/r.pdf"


def test_create_user_raises_when_row_cannot_be_read_back(store, monkeypatch):
    monkeypatch.setattr(store, "get_profile", lambda user_id: None)
    with pytest.raises(UserNotFound):
        store.create_user(full_name="Ghost", email="ghost@example.com")
