"""Copies matching attachments of one message into one Drive folder."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from mailferry.exceptions import FolderNotFoundError
from mailferry.matching import attachment_matches
from mailferry.templating import render_filename

if TYPE_CHECKING:
    from mailferry.drive import Storage
    from mailferry.mailbox import Message
    from mailferry.models import AttachmentAction
    from mailferry.structured_logger import StructuredLogger

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    """Outcome of dispatching one action on one message."""

    action_id: str
    folder_id: str
    saved: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    unmatched: list[str] = field(default_factory=list)
    folder_missing: bool = False


class AttachmentDispatcher:
    """Saves a message's matching attachments according to an action."""

    def __init__(
        self,
        storage: Storage,
        dry_run: bool = False,
        structured_logger: StructuredLogger | None = None,
    ):
        self.storage = storage
        self.dry_run = dry_run
        self.structured_logger = structured_logger

    def dispatch(self, message: Message, action: AttachmentAction) -> DispatchResult:
        """Copy the message's attachments that pass the action's filter.

        A missing destination folder is logged and only aborts this action.
        Files whose output name already exists in the folder are skipped.
        """
        result = DispatchResult(action_id=action.id, folder_id=action.drive_folder_id)

        try:
            folder = self.storage.get_folder_by_id(action.drive_folder_id)
        except FolderNotFoundError as e:
            logger.error(f"Action {action.id}: {e}")
            result.folder_missing = True
            self._audit("folder_missing", {"action_id": action.id, "folder_id": action.drive_folder_id})
            return result

        subject = message.get_subject()
        message_date = message.get_date()

        for attachment in message.get_attachments():
            output_name = render_filename(
                action.output_file_name, attachment.name, subject, message_date
            )

            if not attachment_matches(attachment.name, action.attachment_name):
                result.unmatched.append(attachment.name)
                continue

            if next(iter(folder.get_files_by_name(output_name)), None) is not None:
                logger.info(
                    f"Action {action.id}: '{output_name}' already exists in folder "
                    f"{action.drive_folder_id}, skipping"
                )
                result.skipped.append(output_name)
                self._audit(
                    "attachment_skipped",
                    {"action_id": action.id, "folder_id": action.drive_folder_id, "file_name": output_name},
                )
                continue

            if self.dry_run:
                logger.info(
                    f"[DRY-RUN] Action {action.id}: would save '{attachment.name}' "
                    f"as '{output_name}' in folder {action.drive_folder_id}"
                )
                result.saved.append(output_name)
                continue

            created = folder.create_file(attachment)
            created.set_name(output_name)

            logger.info(
                f"Action {action.id}: saved '{attachment.name}' as '{output_name}' "
                f"in folder {action.drive_folder_id}"
            )
            result.saved.append(output_name)
            self._audit(
                "attachment_saved",
                {
                    "action_id": action.id,
                    "folder_id": action.drive_folder_id,
                    "original_name": attachment.name,
                    "file_name": output_name,
                },
            )

        return result

    def _audit(self, event_type: str, data: dict) -> None:
        if self.structured_logger:
            self.structured_logger.log_event(event_type, data)
