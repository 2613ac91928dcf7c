"""Rules engine: searches the mailbox per rule and dispatches attachments."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from mailferry.dispatcher import AttachmentDispatcher

if TYPE_CHECKING:
    from mailferry.drive import Storage
    from mailferry.mailbox import Mailbox, Thread
    from mailferry.models import Rule
    from mailferry.structured_logger import StructuredLogger

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10


def build_search_query(rule: Rule) -> str:
    """Build the Gmail search expression for a rule.

    Always restricted to unread mail. Sender and subject filters are added
    when set, and attachment presence when the rule has actions.
    """
    query = "is:unread"
    if rule.sender:
        query += f' from:"{rule.sender}"'
    if rule.subject:
        query += f' subject:("{rule.subject}")'
    if rule.attachment_actions:
        query += " has:attachment"
    return query


@dataclass
class RuleOutcome:
    """What happened to one rule during a run."""

    rule_id: str
    sender: str | None
    query: str
    threads: int = 0
    messages: int = 0
    saved: int = 0
    skipped: int = 0
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class RunSummary:
    """Aggregated result of processing a rule set once."""

    outcomes: list[RuleOutcome] = field(default_factory=list)

    @property
    def threads(self) -> int:
        return sum(o.threads for o in self.outcomes)

    @property
    def saved(self) -> int:
        return sum(o.saved for o in self.outcomes)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)


class RulesEngine:
    """Applies attachment rules to unread mail."""

    def __init__(
        self,
        mailbox: Mailbox,
        storage: Storage,
        batch_size: int = DEFAULT_BATCH_SIZE,
        dry_run: bool = False,
        structured_logger: StructuredLogger | None = None,
    ):
        """Initialize the engine.

        Args:
            mailbox: Mailbox to search and mark read
            storage: Destination storage for attachments
            batch_size: Maximum threads handled per rule per run
            dry_run: Log instead of creating files or marking threads read
            structured_logger: Optional audit trail
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self.mailbox = mailbox
        self.batch_size = batch_size
        self.dry_run = dry_run
        self.structured_logger = structured_logger
        self.dispatcher = AttachmentDispatcher(
            storage, dry_run=dry_run, structured_logger=structured_logger
        )

    def process_all(self, rules: list[Rule]) -> RunSummary:
        """Process every rule once. A failing rule does not stop the others."""
        summary = RunSummary()

        if not rules:
            logger.info("No rules configured, nothing to do")
            return summary

        for rule in rules:
            outcome = RuleOutcome(
                rule_id=rule.id, sender=rule.sender, query=build_search_query(rule)
            )
            try:
                self._process_rule(rule, outcome)
            except Exception as e:
                outcome.error = str(e)
                logger.error(
                    f"Error processing rule for sender {rule.sender}: {e}", exc_info=True
                )
                if self.structured_logger:
                    self.structured_logger.log_error(
                        "rule_failed",
                        str(e),
                        {"rule_id": rule.id, "sender": rule.sender, "query": outcome.query},
                    )
            summary.outcomes.append(outcome)

        return summary

    def _process_rule(self, rule: Rule, outcome: RuleOutcome) -> None:
        threads = self.mailbox.search(outcome.query, 0, self.batch_size)
        logger.info(f"Rule {rule.id}: {len(threads)} thread(s) for {outcome.query}")

        for thread in threads:
            self._process_thread(rule, thread, outcome)
            outcome.threads += 1

    def _process_thread(self, rule: Rule, thread: Thread, outcome: RuleOutcome) -> None:
        for message in thread.get_messages():
            if not message.is_unread():
                continue
            outcome.messages += 1

            for action in rule.attachment_actions:
                result = self.dispatcher.dispatch(message, action)
                outcome.saved += len(result.saved)
                outcome.skipped += len(result.skipped)

        if self.dry_run:
            logger.info(f"[DRY-RUN] Rule {rule.id}: would mark thread read")
            return

        thread.mark_read()
