#!/usr/bin/env python3
"""Entry point: ingest a resume, run one apply batch, or keep auto-searching."""
from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

from autoapply.errors import AutoApplyError
from autoapply.log import get_logger
from autoapply.service import AutoApplyService

log = get_logger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Automated job search and apply agent")
    p.add_argument("--user", type=int, required=True, help="User id")
    p.add_argument("--resume", type=Path, help="Resume file to ingest first")
    p.add_argument("--once", action="store_true", help="Run one apply batch and exit")
    p.add_argument("--count", type=int, default=None, help="Jobs to apply to (default: daily limit)")
    p.add_argument("--role", default="all", help="Role filter, e.g. frontend, backend, java")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    service = AutoApplyService.from_env()

    try:
        if args.resume:
            result = service.upload_resume(args.user, args.resume.read_bytes(), args.resume.name)
            log.info("Resume ingested — ATS score %d", result.suitability_score)
            if result.classification_error:
                log.warning("Profile not extracted: %s", result.classification_error)

        if args.once:
            result = service.auto_apply(args.user, args.count, args.role)
            log.info(result.message)
            for outcome in result.applied:
                log.info("  [%d] %s @ %s", outcome.match_score or 0, outcome.job.title, outcome.job.company)
            return 0
    except AutoApplyError as exc:
        log.error(exc.message)
        return 1

    service.on_session_start(args.user)
    log.info("Auto-search running every %.0f minutes. Ctrl-C to stop.", service.settings.search_interval_sec / 60)
    try:
        while True:
            time.sleep(3600)
    except KeyboardInterrupt:
        log.info("Stopping...")
    finally:
        service.on_session_end(args.user)
        service.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
