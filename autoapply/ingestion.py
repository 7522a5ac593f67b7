"""
Resume ingestion.

Runs: validate → store upload → extract text → suitability score →
classify → persist profile and skills → bootstrap apply batch.
"""
from __future__ import annotations

from typing import Any, Callable

from autoapply.apply_engine import ApplyEngine
from autoapply.config import BOOTSTRAP_BATCH_SIZE, MAX_UPLOAD_BYTES
from autoapply.errors import (
    AutoApplyError,
    ClassificationFailed,
    ExtractionFailed,
    InvalidDocument,
    ResumeNotFound,
    UserNotFound,
)
from autoapply.log import get_logger
from autoapply.models import ApplyResult, IngestResult, ParsedResume
from autoapply.resume_parser import extract_text, suitability_score
from autoapply.store import Store
from autoapply.uploads import UploadStorage

log = get_logger(__name__)

Classifier = Callable[[str], ParsedResume]


class ResumeIngestionPipeline:
    def __init__(
        self,
        store: Store,
        storage: UploadStorage,
        engine: ApplyEngine,
        classifier: Classifier,
        *,
        extractor: Callable[[bytes], str] = extract_text,
        bootstrap_count: int = BOOTSTRAP_BATCH_SIZE,
        max_bytes: int = MAX_UPLOAD_BYTES,
    ) -> None:
        self.store = store
        self.storage = storage
        self.engine = engine
        self.classifier = classifier
        self.extractor = extractor
        self.bootstrap_count = bootstrap_count
        self.max_bytes = max_bytes

    def ingest(self, user_id: int, document: bytes | None, filename: str = "resume.pdf") -> IngestResult:
        if not document:
            raise InvalidDocument()
        if len(document) > self.max_bytes:
            raise InvalidDocument(f"Resume exceeds {self.max_bytes // (1024 * 1024)} MB limit")
        if self.store.get_profile(user_id) is None:
            raise UserNotFound(user_id)

        path = self.storage.save(user_id, filename, document)

        try:
            text = self.extractor(document)
        except ExtractionFailed:
            raise
        except Exception as exc:
            raise ExtractionFailed(f"Failed to parse resume: {exc}") from exc

        score = suitability_score(text)

        parsed: ParsedResume | None = None
        classification_error: str | None = None
        try:
            parsed = self.classifier(text)
        except ClassificationFailed as exc:
            classification_error = exc.message
            log.warning("Resume classification failed for user %s (%s); keeping text and score", user_id, exc.message)

        self.store.upsert_resume(user_id, str(path), score)
        self.store.save_parsed_resume(
            user_id, text=text, ats_score=score, resume_path=str(path), parsed=parsed,
        )
        if parsed is not None and parsed.skills:
            self.store.upsert_skills(user_id, parsed.skills)

        log.info("Resume ingested for user %s — ATS score %d, role=%s", user_id, score, parsed.role if parsed else None)
        bootstrap = self._bootstrap(user_id, parsed)
        return IngestResult(
            resume_path=str(path),
            suitability_score=score,
            profile=parsed,
            classification_error=classification_error,
            bootstrap=bootstrap,
        )

    def _bootstrap(self, user_id: int, parsed: ParsedResume | None) -> ApplyResult | None:
        role = (parsed.role if parsed else None) or "fullstack"
        try:
            return self.engine.auto_apply(user_id, self.bootstrap_count, role)
        except AutoApplyError as exc:
            log.error("Bootstrap apply for user %s failed: %s", user_id, exc.message)
        except Exception:
            log.exception("Bootstrap apply for user %s crashed", user_id)
        return None

    def get_resume(self, user_id: int) -> dict[str, Any]:
        resume = self.store.get_resume(user_id)
        if resume is None:
            raise ResumeNotFound()
        profile = self.store.get_profile(user_id)
        data = dict(resume)
        if profile is not None:
            data.update(
                role=profile.role,
                experience_years=profile.experience_years,
                education=profile.education,
                current_company=profile.current_company,
                skills=profile.skills,
                parsed_skills=profile.parsed_skills,
            )
        return data

    def delete_resume(self, user_id: int) -> None:
        resume = self.store.get_resume(user_id)
        if resume is not None:
            if resume.get("resume_path"):
                self.storage.delete(resume["resume_path"])
            self.store.delete_resume(user_id)
        self.store.clear_parsed_resume(user_id)
        self.store.delete_skills(user_id)
        log.info("Resume deleted for user %s", user_id)
