"""Extract text and a structured profile from an uploaded resume.

Supports PDF (via pypdf), DOCX (via stdlib zipfile) and plain text, detected
from the document bytes. Structured extraction goes through a Groq-hosted
LLM using the OpenAI client; there is no heuristic substitute.
"""
from __future__ import annotations

import io
import json
import re
import zipfile
from typing import Any
from xml.etree import ElementTree

import openai
from openai import OpenAI
from pypdf import PdfReader

from autoapply.config import CLASSIFIER_EXCERPT_CHARS
from autoapply.errors import ClassificationFailed, ExtractionFailed
from autoapply.log import get_logger
from autoapply.models import ParsedResume
from autoapply.retry import retry

log = get_logger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"

ATS_KEYWORDS: tuple[str, ...] = (
    "react", "node", "javascript", "sql", "aws", "java", "spring", "html",
    "css", "mongodb", "python", "git", "docker", "fullstack", "frontend", "backend",
)

# ── Text extraction ──────────────────────────────────────────────────────


def detect_format(data: bytes) -> str:
    if data.startswith(b"%PDF"):
        return "pdf"
    if data.startswith(b"PK\x03\x04"):
        return "docx"
    return "txt"


def extract_text(data: bytes) -> str:
    """Return plain text from PDF, DOCX or UTF-8 bytes; ExtractionFailed otherwise."""
    fmt = detect_format(data)
    try:
        if fmt == "pdf":
            return _extract_pdf(data)
        if fmt == "docx":
            return _extract_docx(data)
        return data.decode("utf-8")
    except Exception as exc:
        raise ExtractionFailed(f"Failed to parse {fmt.upper()}: {exc}") from exc


def _fix_spacing(text: str) -> str:
    """Re-insert spaces when PDF extraction merges words together.

    Detects the problem by checking if the space-to-character ratio is
    abnormally low, then applies heuristic space insertion.
    """
    if not text or len(text) < 50:
        return text
    space_ratio = text.count(" ") / len(text)
    if space_ratio > 0.08:
        return text

    log.debug("Low space ratio (%.2f%%) — applying spacing fix", space_ratio * 100)
    fixed = re.sub(r"([a-z])([A-Z])", r"\1 \2", text)
    fixed = re.sub(r"([a-zA-Z])(\d)", r"\1 \2", fixed)
    fixed = re.sub(r"(\d)([a-zA-Z])", r"\1 \2", fixed)
    fixed = re.sub(r"([.!?,;:])([A-Za-z])", r"\1 \2", fixed)
    return fixed


def _extract_pdf(data: bytes) -> str:
    reader = PdfReader(io.BytesIO(data))
    return "\n".join(_fix_spacing(page.extract_text() or "") for page in reader.pages)


def _extract_docx(data: bytes) -> str:
    ns = "{http://schemas.openxmlformats.org/wordprocessingml/2006/main}"
    texts: list[str] = []
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        with zf.open("word/document.xml") as f:
            tree = ElementTree.parse(f)
            for para in tree.iter(f"{ns}p"):
                parts = [node.text for node in para.iter(f"{ns}t") if node.text]
                if parts:
                    texts.append("".join(parts))
    return "\n".join(texts)


def suitability_score(text: str) -> int:
    """10 points per ATS keyword present in *text*, capped at 100."""
    low = (text or "").lower()
    matches = sum(1 for kw in ATS_KEYWORDS if kw in low)
    return min(matches * 10, 100)


# ── LLM-based classification ────────────────────────────────────────────

_PARSE_PROMPT = """\
Parse this resume for job applications. Return ONLY valid JSON with these exact keys:

{{
  "role": "Detected role (e.g. Fullstack Developer; prefer fullstack/frontend/backend/web/java/software)",
  "experience_years": 0,
  "education": "Highest degree (e.g. B.Tech Computer Science)",
  "current_company": "Current employer",
  "skills": ["Top 10 skills, e.g. React, Node.js, Java, SQL, AWS"]
}}

Resume text:
{resume_text}
"""

_TRANSIENT = (openai.APIConnectionError, openai.APITimeoutError, openai.RateLimitError)


def _parse_json_object(raw: str) -> dict[str, Any]:
    start = raw.find("{")
    end = raw.rfind("}") + 1
    if start == -1 or end == 0:
        raise ClassificationFailed("Classifier did not return JSON")
    try:
        data = json.loads(raw[start:end])
    except ValueError as exc:
        raise ClassificationFailed(f"Classifier returned malformed JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ClassificationFailed("Classifier JSON is not an object")
    return data


class GroqClassifier:
    """Callable ``text -> ParsedResume`` backed by a Groq chat model."""

    def __init__(self, api_key: str, model: str, *, client: OpenAI | None = None) -> None:
        self.api_key = (api_key or "").strip()
        self.model = model
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not self.api_key:
                raise ClassificationFailed("Groq API key not configured")
            self._client = OpenAI(api_key=self.api_key, base_url=GROQ_BASE_URL)
        return self._client

    @retry(max_attempts=2, base_delay=2.0, retryable=_TRANSIENT)
    def _complete(self, prompt: str) -> str:
        resp = self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=600,
            temperature=0.1,
        )
        if not resp.choices:
            raise ClassificationFailed("Classifier returned no choices")
        return (resp.choices[0].message.content or "").strip()

    def __call__(self, text: str) -> ParsedResume:
        prompt = _PARSE_PROMPT.format(resume_text=text[:CLASSIFIER_EXCERPT_CHARS])
        log.info("Classifying resume with LLM (%s)", self.model)
        try:
            raw = self._complete(prompt)
        except openai.OpenAIError as exc:
            raise ClassificationFailed(f"Classifier call failed: {exc.__class__.__name__}") from exc
        parsed = ParsedResume.from_dict(_parse_json_object(raw))
        log.info("LLM extraction complete — role=%s, skills=%d", parsed.role, len(parsed.skills))
        return parsed
