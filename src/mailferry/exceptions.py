"""Exception types raised by mailferry."""


class MailferryError(Exception):
    """Base class for mailferry errors."""


class RuleValidationError(MailferryError, ValueError):
    """A rule or attachment action failed validation."""


class RuleNotFoundError(MailferryError, KeyError):
    """A referenced rule id does not exist in the rule set."""

    def __init__(self, rule_id: str):
        super().__init__(rule_id)
        self.rule_id = rule_id

    def __str__(self) -> str:
        return f"Rule not found: {self.rule_id}"


class FolderNotFoundError(MailferryError):
    """A destination folder could not be resolved."""

    def __init__(self, folder_id: str, reason: str | None = None):
        message = f"Folder not found: {folder_id}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.folder_id = folder_id
