"""Store uploaded resume documents under a per-user file name."""
from __future__ import annotations

import re
import time
from pathlib import Path

from autoapply.log import get_logger

log = get_logger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


class UploadStorage:
    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def save(self, user_id: int, filename: str, data: bytes) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        safe_name = _UNSAFE.sub("_", Path(filename or "resume").name) or "resume"
        path = self.root / f"{user_id}_{int(time.time() * 1000)}_{safe_name}"
        path.write_bytes(data)
        log.debug("Stored upload for user %s → %s", user_id, path.name)
        return path

    def delete(self, path: Path | str) -> bool:
        try:
            Path(path).unlink()
        except FileNotFoundError:
            log.warning("Upload %s already removed", path)
            return False
        return True
