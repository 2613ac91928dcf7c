"""Attachment name filtering."""

from mailferry.models import MATCH_ANY


def attachment_matches(attachment_name: str, name_filter: str) -> bool:
    """Check an attachment name against an action's name filter.

    "*" matches every attachment. Anything else must equal the name
    exactly, case included.
    """
    if name_filter == MATCH_ANY:
        return True
    return attachment_name == name_filter
