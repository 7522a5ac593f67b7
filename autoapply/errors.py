"""Error taxonomy for the auto-apply engine.

Every error carries a stable, user-safe ``message``; callers surface that
string and never the traceback.
"""
from __future__ import annotations


class AutoApplyError(Exception):
    message = "Auto-apply failed"

    def __init__(self, message: str | None = None) -> None:
        if message:
            self.message = message
        super().__init__(self.message)


class ProviderUnavailable(AutoApplyError):
    message = "Job provider unavailable"


class QuotaExceeded(AutoApplyError):
    def __init__(self, limit: int, applied_today: int) -> None:
        self.limit = limit
        self.applied_today = applied_today
        self.remaining = 0
        super().__init__(f"Daily limit ({limit}) reached. Applied {applied_today} today.")


class ProfileNotFound(AutoApplyError):
    def __init__(self, user_id: int) -> None:
        self.user_id = user_id
        super().__init__("User profile not found")


class UserNotFound(AutoApplyError):
    def __init__(self, user_id: int) -> None:
        self.user_id = user_id
        super().__init__("User not found")


class InvalidDocument(AutoApplyError):
    message = "No resume document uploaded"


class ExtractionFailed(AutoApplyError):
    message = "Failed to extract text from resume"


class ClassificationFailed(AutoApplyError):
    message = "Resume classification failed"


class ApplicationNotFound(AutoApplyError):
    message = "Application not found"


class InvalidStatus(AutoApplyError):
    message = "Invalid status"


class InvalidSkills(AutoApplyError):
    message = "Skills array required (non-empty)"


class ResumeNotFound(AutoApplyError):
    message = "Resume data not found"
