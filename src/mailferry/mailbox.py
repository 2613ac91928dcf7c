"""Mailbox access: thread search, message inspection and read state."""

from __future__ import annotations

import base64
import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Iterator, Protocol

logger = logging.getLogger(__name__)

UNREAD_LABEL = "UNREAD"


class Attachment(Protocol):
    """An attachment that can be copied into storage."""

    name: str
    content_type: str

    def get_bytes(self) -> bytes: ...


class Message(Protocol):
    """A single mail inside a thread."""

    def is_unread(self) -> bool: ...

    def get_attachments(self) -> list[Attachment]: ...

    def get_subject(self) -> str: ...

    def get_date(self) -> datetime: ...

    def get_from(self) -> str: ...


class Thread(Protocol):
    """A mailbox conversation."""

    def get_messages(self) -> list[Message]: ...

    def mark_read(self) -> None: ...


class Mailbox(Protocol):
    """Searchable mailbox."""

    def search(self, query: str, offset: int, limit: int) -> list[Thread]: ...


class GmailAttachment:
    """Attachment part of a Gmail message, downloaded on demand."""

    def __init__(
        self,
        service: Any,
        user_id: str,
        message_id: str,
        part: dict[str, Any],
    ):
        self._service = service
        self._user_id = user_id
        self._message_id = message_id
        self._body = part.get("body", {})
        self.name: str = part.get("filename", "")
        self.content_type: str = part.get("mimeType", "application/octet-stream")
        self._data: bytes | None = None

    def get_bytes(self) -> bytes:
        """Return the attachment content, fetching it from Gmail if needed."""
        if self._data is not None:
            return self._data

        data = self._body.get("data")
        if data is None:
            attachment_id = self._body.get("attachmentId")
            if not attachment_id:
                raise ValueError(f"Attachment {self.name!r} has no content")
            response = (
                self._service.users()
                .messages()
                .attachments()
                .get(userId=self._user_id, messageId=self._message_id, id=attachment_id)
                .execute()
            )
            data = response.get("data", "")

        self._data = base64.urlsafe_b64decode(data)
        return self._data

    def __repr__(self) -> str:
        return f"GmailAttachment(name={self.name!r}, content_type={self.content_type!r})"


class GmailMessage:
    """A message from a Gmail thread resource (format=full)."""

    def __init__(self, service: Any, user_id: str, resource: dict[str, Any]):
        self._service = service
        self._user_id = user_id
        self._resource = resource
        self.id: str = resource["id"]
        payload = resource.get("payload", {})
        self._headers = {
            h["name"].lower(): h["value"] for h in payload.get("headers", [])
        }
        self._attachments: list[GmailAttachment] | None = None

    def is_unread(self) -> bool:
        return UNREAD_LABEL in self._resource.get("labelIds", [])

    def get_subject(self) -> str:
        return self._headers.get("subject", "")

    def get_from(self) -> str:
        return self._headers.get("from", "")

    def get_date(self) -> datetime:
        """Return when the message was sent, in local time."""
        internal_date = self._resource.get("internalDate")
        if internal_date:
            return datetime.fromtimestamp(int(internal_date) / 1000, tz=timezone.utc).astimezone()

        date_header = self._headers.get("date")
        if date_header:
            try:
                return parsedate_to_datetime(date_header).astimezone()
            except (TypeError, ValueError):
                logger.warning(f"Message {self.id}: unparseable Date header {date_header!r}")

        return datetime.now().astimezone()

    def get_attachments(self) -> list[GmailAttachment]:
        if self._attachments is None:
            self._attachments = [
                GmailAttachment(self._service, self._user_id, self.id, part)
                for part in _walk_parts(self._resource.get("payload", {}))
                if part.get("filename")
            ]
        return self._attachments


def _walk_parts(part: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """Yield every MIME part of a Gmail payload, depth first."""
    yield part
    for child in part.get("parts", []) or []:
        yield from _walk_parts(child)


class GmailThread:
    """A Gmail conversation, fetched lazily."""

    def __init__(self, service: Any, user_id: str, thread_id: str):
        self._service = service
        self._user_id = user_id
        self.id = thread_id
        self._messages: list[GmailMessage] | None = None

    def get_messages(self) -> list[GmailMessage]:
        if self._messages is None:
            resource = (
                self._service.users()
                .threads()
                .get(userId=self._user_id, id=self.id, format="full")
                .execute()
            )
            self._messages = [
                GmailMessage(self._service, self._user_id, m)
                for m in resource.get("messages", [])
            ]
        return self._messages

    def mark_read(self) -> None:
        self._service.users().threads().modify(
            userId=self._user_id,
            id=self.id,
            body={"removeLabelIds": [UNREAD_LABEL]},
        ).execute()
        logger.debug(f"Thread {self.id} marked read")


class GmailMailbox:
    """Mailbox backed by the Gmail v1 API."""

    def __init__(self, service: Any, user_id: str = "me"):
        """Initialize with an authorized Gmail service resource.

        Args:
            service: Result of googleapiclient.discovery.build("gmail", "v1")
            user_id: Gmail user, "me" for the authorized account
        """
        self.service = service
        self.user_id = user_id

    def search(self, query: str, offset: int, limit: int) -> list[GmailThread]:
        """Return up to limit threads matching a Gmail search query."""
        wanted = offset + limit
        thread_ids: list[str] = []
        page_token: str | None = None

        while len(thread_ids) < wanted:
            request: dict[str, Any] = {
                "userId": self.user_id,
                "q": query,
                "maxResults": wanted - len(thread_ids),
            }
            if page_token:
                request["pageToken"] = page_token

            response = self.service.users().threads().list(**request).execute()
            thread_ids.extend(t["id"] for t in response.get("threads", []))

            page_token = response.get("nextPageToken")
            if not page_token:
                break

        logger.debug(f"Search {query!r} returned {len(thread_ids)} thread(s)")
        return [
            GmailThread(self.service, self.user_id, thread_id)
            for thread_id in thread_ids[offset:wanted]
        ]
