"""SQLite durable store for users, skills, job listings, applications and resumes.

Each public method opens its own short-lived connection, so one ``Store``
may be shared between the scheduler threads and request handlers. Unique
constraints do the arbitration under concurrent writers:

- ``jobs(external_id)``          one catalog row per external listing
- ``applications(user_id, job_id)``  one application per user and job
- ``skills(user_id, skill_name)``    one row per normalized skill
- ``resumes(user_id)``           latest resume per user
"""
from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from autoapply.errors import AutoApplyError, UserNotFound
from autoapply.log import get_logger
from autoapply.models import (
    Application,
    JobListing,
    ParsedResume,
    UserProfile,
    normalize_skills,
)

log = get_logger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    full_name        TEXT NOT NULL DEFAULT '',
    email            TEXT UNIQUE,
    role             TEXT,
    experience_years INTEGER NOT NULL DEFAULT 0,
    education        TEXT,
    current_company  TEXT,
    parsed_text      TEXT,
    parsed_skills    TEXT,
    resume_path      TEXT,
    ats_score        INTEGER,
    created_at       TEXT NOT NULL,
    updated_at       TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS skills (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id     INTEGER NOT NULL,
    skill_name  TEXT NOT NULL,
    updated_at  TEXT NOT NULL,
    UNIQUE (user_id, skill_name)
);
CREATE TABLE IF NOT EXISTS jobs (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    external_id      TEXT NOT NULL UNIQUE,
    platform         TEXT,
    job_title        TEXT,
    company_name     TEXT,
    job_description  TEXT,
    job_url          TEXT,
    location         TEXT,
    posted_at        TEXT,
    created_at       TEXT NOT NULL,
    updated_at       TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS applications (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id          INTEGER NOT NULL,
    job_id           TEXT NOT NULL,
    job_title        TEXT,
    company_name     TEXT,
    status           TEXT NOT NULL DEFAULT 'applied',
    match_score      INTEGER,
    resume_path      TEXT,
    education        TEXT,
    current_company  TEXT,
    applied_skills   TEXT,
    applied_at       TEXT NOT NULL,
    UNIQUE (user_id, job_id)
);
CREATE INDEX IF NOT EXISTS idx_applications_user_day ON applications (user_id, applied_at);
CREATE TABLE IF NOT EXISTS resumes (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id      INTEGER NOT NULL UNIQUE,
    resume_path  TEXT NOT NULL,
    ats_score    INTEGER,
    uploaded_at  TEXT NOT NULL
);
"""

_PROFILE_FIELDS = ("full_name", "role", "experience_years", "education", "current_company")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _ts(dt: datetime | None = None) -> str:
    return (dt or _utc_now()).astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _json_list(raw: str | None) -> list[str]:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except ValueError:
        return []
    return [str(v) for v in value] if isinstance(value, list) else []


class Store:
    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.init_schema()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(_SCHEMA)

    # ── users / profile ────────────────────────────────────────────────

    def create_user(
        self,
        *,
        full_name: str,
        email: str,
        role: str | None = None,
        experience_years: int = 0,
    ) -> UserProfile:
        now = _ts()
        try:
            with self._connect() as conn:
                cur = conn.execute(
                    "INSERT INTO users (full_name, email, role, experience_years, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (full_name, email, role or "software developer", int(experience_years or 0), now, now),
                )
                user_id = int(cur.lastrowid)
        except sqlite3.IntegrityError as exc:
            raise AutoApplyError("Email already exists") from exc
        log.info("Registered user %d", user_id)
        profile = self.get_profile(user_id)
        if profile is None:
            raise UserNotFound(user_id)
        return profile

    def get_profile(self, user_id: int) -> UserProfile | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            if row is None:
                return None
            skills = [
                r["skill_name"]
                for r in conn.execute(
                    "SELECT skill_name FROM skills WHERE user_id = ? ORDER BY skill_name", (user_id,)
                )
            ]
        return UserProfile(
            id=int(row["id"]),
            full_name=row["full_name"] or "",
            email=row["email"] or "",
            role=row["role"],
            experience_years=int(row["experience_years"] or 0),
            education=row["education"],
            current_company=row["current_company"],
            skills=skills,
            parsed_skills=_json_list(row["parsed_skills"]),
            resume_path=row["resume_path"],
            ats_score=row["ats_score"],
        )

    def update_profile(self, user_id: int, fields: dict[str, Any]) -> bool:
        updates = {k: v for k, v in fields.items() if k in _PROFILE_FIELDS}
        if not updates:
            return self.get_profile(user_id) is not None
        if "experience_years" in updates:
            updates["experience_years"] = int(updates["experience_years"] or 0)
        assignments = ", ".join(f"{k} = ?" for k in updates)
        with self._connect() as conn:
            cur = conn.execute(
                f"UPDATE users SET {assignments}, updated_at = ? WHERE id = ?",
                (*updates.values(), _ts(), user_id),
            )
            return cur.rowcount > 0

    def save_parsed_resume(
        self,
        user_id: int,
        *,
        text: str,
        ats_score: int,
        resume_path: str,
        parsed: ParsedResume | None,
    ) -> bool:
        """Persist extracted text and score; profile fields only when *parsed* is given."""
        with self._connect() as conn:
            if parsed is None:
                cur = conn.execute(
                    "UPDATE users SET parsed_text = ?, ats_score = ?, resume_path = ?, updated_at = ? "
                    "WHERE id = ?",
                    (text, ats_score, resume_path, _ts(), user_id),
                )
            else:
                cur = conn.execute(
                    "UPDATE users SET parsed_text = ?, parsed_skills = ?, role = ?, experience_years = ?, "
                    "education = ?, current_company = ?, ats_score = ?, resume_path = ?, updated_at = ? "
                    "WHERE id = ?",
                    (
                        text,
                        json.dumps(parsed.skills),
                        parsed.role,
                        parsed.experience_years,
                        parsed.education,
                        parsed.current_company,
                        ats_score,
                        resume_path,
                        _ts(),
                        user_id,
                    ),
                )
            return cur.rowcount > 0

    def clear_parsed_resume(self, user_id: int) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE users SET parsed_text = NULL, parsed_skills = NULL, role = NULL, "
                "experience_years = 0, education = NULL, current_company = NULL, ats_score = NULL, "
                "resume_path = NULL, updated_at = ? WHERE id = ?",
                (_ts(), user_id),
            )

    # ── skills ─────────────────────────────────────────────────────────

    def upsert_skills(self, user_id: int, skills: list[str]) -> list[str]:
        normalized = normalize_skills(skills)
        now = _ts()
        with self._connect() as conn:
            conn.executemany(
                "INSERT INTO skills (user_id, skill_name, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT (user_id, skill_name) DO UPDATE SET updated_at = excluded.updated_at",
                [(user_id, s, now) for s in normalized],
            )
        return normalized

    def list_skills(self, user_id: int) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT skill_name FROM skills WHERE user_id = ? ORDER BY skill_name", (user_id,)
            ).fetchall()
        return [r["skill_name"] for r in rows]

    def delete_skills(self, user_id: int) -> int:
        with self._connect() as conn:
            return conn.execute("DELETE FROM skills WHERE user_id = ?", (user_id,)).rowcount

    # ── job catalog ────────────────────────────────────────────────────

    def upsert_job(self, job: JobListing) -> int:
        """Insert on first sight; on repeat sight only refresh ``updated_at``."""
        key = job.external_id or job.id
        now = _ts()
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO jobs (external_id, platform, job_title, company_name, job_description, "
                "job_url, location, posted_at, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT (external_id) DO UPDATE SET updated_at = excluded.updated_at",
                (key, job.platform, job.title, job.company, job.description, job.url,
                 job.location, job.posted_at, now, now),
            )
            row = conn.execute("SELECT id FROM jobs WHERE external_id = ?", (key,)).fetchone()
        return int(row["id"])

    def get_job(self, job_id: str) -> JobListing | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM jobs WHERE external_id = ? OR CAST(id AS TEXT) = ? LIMIT 1",
                (str(job_id), str(job_id)),
            ).fetchone()
        if row is None:
            return None
        return JobListing(
            id=row["external_id"],
            external_id=row["external_id"],
            title=row["job_title"] or "",
            company=row["company_name"] or "",
            location=row["location"] or "",
            url=row["job_url"] or "",
            description=row["job_description"] or "",
            platform=row["platform"] or "unknown",
            posted_at=row["posted_at"],
            updated_at=row["updated_at"],
        )

    def job_count(self) -> int:
        with self._connect() as conn:
            return int(conn.execute("SELECT COUNT(*) FROM jobs").fetchone()[0])

    # ── applications ───────────────────────────────────────────────────

    def count_applications_on(self, user_id: int, day: date) -> int:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM applications WHERE user_id = ? AND date(applied_at) = ?",
                (user_id, day.isoformat()),
            ).fetchone()
        return int(row[0])

    def application_exists(self, user_id: int, job_id: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM applications WHERE user_id = ? AND job_id = ?", (user_id, str(job_id))
            ).fetchone()
        return row is not None

    def insert_application(
        self,
        user_id: int,
        job: JobListing,
        *,
        match_score: int,
        profile: UserProfile,
        applied_at: datetime | None = None,
    ) -> int:
        """Insert a new application snapshot.

        Raises ``sqlite3.IntegrityError`` if the (user, job) pair exists.
        """
        applied_skills = json.dumps(list(dict.fromkeys(profile.parsed_skills + profile.skills)))
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO applications (user_id, job_id, job_title, company_name, status, match_score, "
                "resume_path, education, current_company, applied_skills, applied_at) "
                "VALUES (?, ?, ?, ?, 'applied', ?, ?, ?, ?, ?, ?)",
                (user_id, str(job.id), job.title, job.company, match_score, profile.resume_path,
                 profile.education, profile.current_company, applied_skills, _ts(applied_at)),
            )
            return int(cur.lastrowid)

    def apply_or_refresh(
        self,
        user_id: int,
        job_id: str,
        *,
        job_title: str,
        company_name: str,
        applied_at: datetime | None = None,
    ) -> int:
        """Insert, or on an existing (user, job) reset status to applied and bump the timestamp."""
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO applications (user_id, job_id, job_title, company_name, status, applied_at) "
                "VALUES (?, ?, ?, ?, 'applied', ?) "
                "ON CONFLICT (user_id, job_id) DO UPDATE SET status = 'applied', "
                "applied_at = excluded.applied_at, job_title = excluded.job_title, "
                "company_name = excluded.company_name",
                (user_id, str(job_id), job_title, company_name, _ts(applied_at)),
            )
            row = conn.execute(
                "SELECT id FROM applications WHERE user_id = ? AND job_id = ?", (user_id, str(job_id))
            ).fetchone()
        return int(row["id"])

    def update_application_status(self, user_id: int, application_id: int, status: str) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE applications SET status = ? WHERE id = ? AND user_id = ?",
                (status, application_id, user_id),
            )
            return cur.rowcount > 0

    def list_applications(self, user_id: int, *, limit: int = 50, offset: int = 0) -> tuple[list[Application], int]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM applications WHERE user_id = ? ORDER BY applied_at DESC, id DESC "
                "LIMIT ? OFFSET ?",
                (user_id, limit, offset),
            ).fetchall()
            total = conn.execute(
                "SELECT COUNT(*) FROM applications WHERE user_id = ?", (user_id,)
            ).fetchone()[0]
        apps = [
            Application(
                id=int(r["id"]),
                user_id=int(r["user_id"]),
                job_id=r["job_id"],
                job_title=r["job_title"] or "Untitled Job",
                company_name=r["company_name"] or "N/A",
                status=r["status"],
                match_score=r["match_score"],
                applied_at=r["applied_at"],
            )
            for r in rows
        ]
        return apps, int(total)

    # ── resumes ────────────────────────────────────────────────────────

    def upsert_resume(self, user_id: int, resume_path: str, ats_score: int) -> int:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO resumes (user_id, resume_path, ats_score, uploaded_at) VALUES (?, ?, ?, ?) "
                "ON CONFLICT (user_id) DO UPDATE SET resume_path = excluded.resume_path, "
                "ats_score = excluded.ats_score, uploaded_at = excluded.uploaded_at",
                (user_id, resume_path, ats_score, _ts()),
            )
            row = conn.execute("SELECT id FROM resumes WHERE user_id = ?", (user_id,)).fetchone()
        return int(row["id"])

    def get_resume(self, user_id: int) -> dict[str, Any] | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT r.id, r.resume_path, r.ats_score, r.uploaded_at, u.parsed_text "
                "FROM resumes r LEFT JOIN users u ON u.id = r.user_id WHERE r.user_id = ?",
                (user_id,),
            ).fetchone()
        return dict(row) if row is not None else None

    def delete_resume(self, user_id: int) -> int:
        with self._connect() as conn:
            return conn.execute("DELETE FROM resumes WHERE user_id = ?", (user_id,)).rowcount
