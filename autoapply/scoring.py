"""Match-score strategies for the apply engine.

A scorer is any callable ``(profile, job) -> int`` returning a value in
[MIN_SCORE, MAX_SCORE]. The default is a random placeholder; the keyword
scorer gives a deterministic alternative based on skill and role overlap.
"""
from __future__ import annotations

import random
import re
from typing import Callable

from autoapply.models import JobListing, UserProfile

MIN_SCORE = 50
MAX_SCORE = 100

MatchScorer = Callable[[UserProfile, JobListing], int]

# Minimum token length when expanding compound skills to avoid
# tiny tokens like "ai", "js" that match everything.
_MIN_SKILL_TOKEN_LEN = 4

_SENIORITY_TERMS = ["senior", "lead", "principal", "staff", "5+", "8+", "experienced"]


def random_match_score(profile: UserProfile, job: JobListing, rng: random.Random | None = None) -> int:
    return (rng or random).randint(MIN_SCORE, MAX_SCORE)


def _normalize(s: str | None) -> str:
    return (s or "").lower().strip()


def _expand_skills(raw_skills: list[str]) -> list[str]:
    """Break compound skills into matchable tokens, filtering short noise."""
    tokens: list[str] = []
    for s in raw_skills:
        low = s.lower()
        tokens.append(low)
        for part in re.findall(r"[a-z0-9+#.]+(?:[\s-][a-z0-9+#.]+)*", low):
            part = part.strip()
            if part and part != low and len(part) >= _MIN_SKILL_TOKEN_LEN:
                tokens.append(part)
    return list(dict.fromkeys(tokens))


class KeywordMatchScorer:
    """Role-in-title, skill overlap and seniority fit folded into [50, 100]."""

    def __call__(self, profile: UserProfile, job: JobListing) -> int:
        title = _normalize(job.title)
        text = title + " " + _normalize(job.description)

        score = 0.0
        role = _normalize(profile.role)
        if role and role in title:
            score += 0.40
        elif role and role in text:
            score += 0.15

        skills = _expand_skills(list(dict.fromkeys(profile.skills + profile.parsed_skills)))
        matched = [s for s in skills if s in text]
        score += min(0.08 * len(matched), 0.45)

        senior_profile = profile.experience_years > 5
        senior_job = any(term in text for term in _SENIORITY_TERMS)
        if senior_profile == senior_job:
            score += 0.15

        score = min(score, 1.0)
        return MIN_SCORE + round(score * (MAX_SCORE - MIN_SCORE))
