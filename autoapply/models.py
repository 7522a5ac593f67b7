"""Data models for users, job listings, and applications."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from autoapply.errors import ClassificationFailed

APPLICATION_STATUSES: tuple[str, ...] = ("applied", "interview", "offer", "rejected")

OutcomeKind = Literal["applied", "skipped_duplicate", "failed"]
FALLBACK_PLATFORM = "Mock (API fallback)"


def normalize_skills(skills: list[str]) -> list[str]:
    """Trim, lowercase and dedupe skills, keeping first-seen order."""
    cleaned = [str(s).strip().lower() for s in skills if s is not None]
    return list(dict.fromkeys(s for s in cleaned if s))


@dataclass
class JobListing:
    id: str
    title: str
    company: str
    location: str
    url: str
    description: str
    platform: str = "unknown"
    external_id: str | None = None
    posted_at: str | None = None
    updated_at: str | None = None
    raw: dict = field(default_factory=dict)

    @property
    def is_fallback(self) -> bool:
        return self.platform == FALLBACK_PLATFORM


@dataclass
class UserProfile:
    id: int
    full_name: str = ""
    email: str = ""
    role: str | None = None
    experience_years: int = 0
    education: str | None = None
    current_company: str | None = None
    skills: list[str] = field(default_factory=list)
    parsed_skills: list[str] = field(default_factory=list)
    resume_path: str | None = None
    ats_score: int | None = None


@dataclass
class Application:
    id: int
    user_id: int
    job_id: str
    job_title: str
    company_name: str
    status: str = "applied"
    match_score: int | None = None
    applied_at: str | None = None


@dataclass
class ApplyOutcome:
    """What happened to one candidate in an apply run."""

    job: JobListing
    kind: OutcomeKind
    match_score: int | None = None
    application_id: int | None = None
    reason: str | None = None


@dataclass
class ApplyResult:
    applied: list[ApplyOutcome]
    remaining: int
    daily_limit: int
    outcomes: list[ApplyOutcome] = field(default_factory=list)

    @property
    def skipped(self) -> list[ApplyOutcome]:
        return [o for o in self.outcomes if o.kind == "skipped_duplicate"]

    @property
    def failed(self) -> list[ApplyOutcome]:
        return [o for o in self.outcomes if o.kind == "failed"]

    @property
    def message(self) -> str:
        return (
            f"Auto-applied to {len(self.applied)} new jobs "
            f"(limit: {self.daily_limit}, remaining: {self.remaining})"
        )


@dataclass
class ParsedResume:
    role: str | None = None
    experience_years: int = 0
    education: str | None = None
    current_company: str | None = None
    skills: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ParsedResume":
        """Build from classifier JSON; wrongly shaped text fields raise ClassificationFailed."""
        try:
            years = int(float(data.get("experience_years") or 0))
        except (TypeError, ValueError, OverflowError):
            years = 0
        skills = data.get("skills")
        if skills is None:
            skills = data.get("parsed_skills", [])
        if not isinstance(skills, list):
            skills = []
        return cls(
            role=_scalar_text(data, "role"),
            experience_years=max(0, years),
            education=_scalar_text(data, "education"),
            current_company=_scalar_text(data, "current_company"),
            skills=[str(s).strip() for s in skills
                    if isinstance(s, (str, int, float)) and str(s).strip()][:10],
        )


def _scalar_text(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None or value == "":
        return None
    if isinstance(value, (dict, list, tuple, bool)):
        raise ClassificationFailed(f"Classifier field {key!r} is not text")
    return str(value).strip() or None


@dataclass
class IngestResult:
    resume_path: str
    suitability_score: int
    profile: ParsedResume | None
    classification_error: str | None = None
    bootstrap: ApplyResult | None = None
