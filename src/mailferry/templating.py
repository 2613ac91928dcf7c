"""Output file name templating for saved attachments."""

from __future__ import annotations

import re
from datetime import date, datetime

ORIGINAL_NAME_TOKEN = "{original_name}"
SUBJECT_TOKEN = "{subject}"
DATE_TOKEN = "{date}"

# Characters unsafe in stored file names
_UNSAFE_CHARS = re.compile(r'[/\\?%*:|"<>]')

_TOKEN_PATTERN = re.compile(
    "|".join(re.escape(token) for token in (ORIGINAL_NAME_TOKEN, SUBJECT_TOKEN, DATE_TOKEN))
)


def sanitize_subject(subject: str | None) -> str:
    """Replace storage-unsafe characters in a subject with '-'."""
    if not subject:
        return ""
    return _UNSAFE_CHARS.sub("-", subject)


def format_message_date(message_date: date | datetime | None) -> str:
    """Format a message date as YYYY-MM-DD."""
    if message_date is None:
        return ""
    return f"{message_date.year:04d}-{message_date.month:02d}-{message_date.day:02d}"


def render_filename(
    template: str | None,
    original_name: str,
    subject: str | None,
    message_date: date | datetime | None,
) -> str:
    """Render the stored file name for an attachment.

    Args:
        template: Name template, may contain {original_name}, {subject}
            and {date}. Empty or None keeps the original name.
        original_name: Attachment file name as sent
        subject: Message subject
        message_date: Date the message was sent

    Returns:
        The output file name. Unknown tokens are left as they are.
    """
    if not template:
        return original_name

    values = {
        ORIGINAL_NAME_TOKEN: original_name,
        SUBJECT_TOKEN: sanitize_subject(subject),
        DATE_TOKEN: format_message_date(message_date),
    }
    return _TOKEN_PATTERN.sub(lambda match: values[match.group(0)], template)
