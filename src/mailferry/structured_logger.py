"""Structured logging for mailferry."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class StructuredLogger:
    """JSONL audit trail of saved and skipped attachments."""

    def __init__(self, log_file: str | None = None):
        """Initialize structured logger.

        Args:
            log_file: Path to JSON log file for audit trail
        """
        self.log_file = Path(log_file) if log_file else None

    def log_event(self, event_type: str, data: dict[str, Any]) -> None:
        """Log a structured event.

        Args:
            event_type: Type of event (e.g., 'attachment_saved', 'rule_failed')
            data: Event data
        """
        event = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
            **{k: self._sanitize(v) for k, v in data.items()},
        }

        if self.log_file:
            try:
                with open(self.log_file, "a", encoding="utf-8") as f:
                    f.write(json.dumps(event) + "\n")
            except OSError as e:
                logger.error(f"Failed to write to audit log: {e}")

    def log_error(self, error_type: str, message: str, details: dict[str, Any] | None = None) -> None:
        """Log error event."""
        self.log_event(
            error_type,
            {
                "message": message,
                "details": details or {},
            },
        )

    def log_run_started(self, rule_count: int, dry_run: bool) -> None:
        self.log_event("run_started", {"rules": rule_count, "dry_run": dry_run})

    def log_run_finished(self, threads: int, saved: int, failed: int) -> None:
        self.log_event("run_finished", {"threads": threads, "saved": saved, "failed_rules": failed})

    def _sanitize(self, value: Any) -> Any:
        """Strip control characters and cap the length of string values."""
        if not isinstance(value, str):
            return value
        sanitized = "".join(c for c in value if c.isprintable() or c in [" ", "\t"])
        if len(sanitized) > 500:
            sanitized = sanitized[:497] + "..."
        return sanitized
