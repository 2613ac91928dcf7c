"""
mailferry application - wires configuration, Google services and the engine.
"""

from __future__ import annotations

import logging
import os
import signal
import time
from pathlib import Path
from typing import TYPE_CHECKING

from mailferry.config import Config, load_config
from mailferry.rules_engine import RulesEngine, RunSummary
from mailferry.storage import KeyValueRuleRepository, KeyValueStore, RuleRepository
from mailferry.structured_logger import StructuredLogger

if TYPE_CHECKING:
    from mailferry.drive import Storage
    from mailferry.mailbox import Mailbox

logger = logging.getLogger(__name__)


def create_repository(config: Config) -> KeyValueRuleRepository:
    """Rule repository for the configured database and user."""
    store = KeyValueStore(config.storage.database_path, user=config.storage.user)
    return KeyValueRuleRepository(store, key=config.storage.rules_key)


class Mailferry:
    """Main application class."""

    def __init__(
        self,
        config: Config,
        repository: RuleRepository | None = None,
        mailbox: Mailbox | None = None,
        storage: Storage | None = None,
    ):
        """Initialize mailferry.

        Args:
            config: Loaded configuration
            repository: Rule repository, defaults to the configured store
            mailbox: Mailbox, defaults to Gmail with the configured account
            storage: Attachment storage, defaults to Google Drive
        """
        self.config = config
        self.repository = repository or create_repository(config)
        self.structured_logger = StructuredLogger(config.logging.audit_file)
        self._mailbox = mailbox
        self._storage = storage
        self.running = True

    def _connect(self) -> None:
        """Build the Google services that were not injected."""
        if self._mailbox is not None and self._storage is not None:
            return

        from mailferry.drive import DriveStorage
        from mailferry.google_auth import build_drive_service, build_gmail_service, load_credentials
        from mailferry.mailbox import GmailMailbox

        creds = load_credentials(self.config.google, interactive=False)
        if self._mailbox is None:
            self._mailbox = GmailMailbox(build_gmail_service(creds), self.config.google.user_id)
        if self._storage is None:
            self._storage = DriveStorage(build_drive_service(creds))

    def run_once(self) -> RunSummary:
        """Load the rule set and process it once."""
        rules = self.repository.load()
        mode = "DRY-RUN" if self.config.dry_run else "ACTIVE"
        logger.info(f"Processing {len(rules)} rule(s) (mode: {mode})")
        self.structured_logger.log_run_started(len(rules), self.config.dry_run)

        if not rules:
            logger.info("No rules stored, skipping mailbox access")
            return RunSummary()

        self._connect()
        engine = RulesEngine(
            self._mailbox,
            self._storage,
            batch_size=self.config.processing.batch_size,
            dry_run=self.config.dry_run,
            structured_logger=self.structured_logger,
        )
        summary = engine.process_all(rules)

        logger.info(
            f"Run finished: {summary.threads} thread(s), {summary.saved} file(s) saved, "
            f"{summary.failed} rule(s) failed"
        )
        self.structured_logger.log_run_finished(summary.threads, summary.saved, summary.failed)
        return summary

    def signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, shutting down...")
        self.running = False

    def run_forever(self, interval: int | None = None) -> None:
        """Run the rule set every interval seconds until signalled to stop."""
        signal.signal(signal.SIGINT, self.signal_handler)
        signal.signal(signal.SIGTERM, self.signal_handler)

        interval = interval or self.config.processing.interval
        logger.info(f"Watching mailbox every {interval}s")

        while self.running:
            try:
                self.run_once()
            except Exception as e:
                logger.error(f"Error in processing loop: {e}", exc_info=True)

            deadline = time.monotonic() + interval
            while self.running and time.monotonic() < deadline:
                time.sleep(1)

        logger.info("mailferry stopped")


def process_rules_trigger(config_path: str | Path | None = None) -> None:
    """Scheduler entry point: process all stored rules once.

    The config path defaults to MAILFERRY_CONFIG, else config.yml. Failures
    are logged and never raised, so a scheduler only sees the logs.
    """
    config_path = config_path or os.environ.get("MAILFERRY_CONFIG", "config.yml")
    try:
        summary = Mailferry(load_config(config_path)).run_once()
    except Exception as e:
        logger.error(f"Rule processing failed ({config_path}): {e}", exc_info=True)
        return

    if summary.failed:
        logger.warning(f"{summary.failed} rule(s) failed, see the log above")
