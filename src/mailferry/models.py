"""Rule and attachment action models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

MATCH_ANY = "*"


def _blank_to_none(value: object) -> object:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class AttachmentAction(BaseModel):
    """Copy matching attachments of a message into one Drive folder."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(min_length=1)
    drive_folder_id: str = Field(alias="driveFolderId", min_length=1)
    attachment_name: str = Field(
        default=MATCH_ANY,
        alias="attachmentName",
        description='Exact attachment name to copy, "*" for any attachment',
    )
    output_file_name: str | None = Field(
        default=None,
        alias="outputFileName",
        description="Template for the stored file name, original name when empty",
    )

    @field_validator("output_file_name", mode="before")
    @classmethod
    def _normalize_template(cls, value: object) -> object:
        return _blank_to_none(value)

    @field_validator("attachment_name", mode="before")
    @classmethod
    def _normalize_filter(cls, value: object) -> object:
        # An empty filter is stored by older clients to mean "any attachment"
        if value is None or (isinstance(value, str) and not value.strip()):
            return MATCH_ANY
        return value


class Rule(BaseModel):
    """A sender/subject filter with the attachment actions to run on matches."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(min_length=1)
    sender: str | None = None
    subject: str | None = None
    attachment_actions: list[AttachmentAction] = Field(
        default_factory=list, alias="attachmentActions"
    )

    @field_validator("sender", "subject", mode="before")
    @classmethod
    def _normalize_filters(cls, value: object) -> object:
        return _blank_to_none(value)

    @field_validator("attachment_actions", mode="before")
    @classmethod
    def _normalize_actions(cls, value: object) -> object:
        return [] if value is None else value

    @model_validator(mode="after")
    def _require_filter(self) -> Rule:
        if self.sender is None and self.subject is None:
            raise ValueError("A rule needs a sender or a subject")
        return self

    def to_dict(self) -> dict:
        """Convert to the persisted dictionary form."""
        return self.model_dump(by_alias=True)


_rule_set_adapter = TypeAdapter(list[Rule])


def parse_rule_set(raw: str | None) -> list[Rule]:
    """Parse a JSON-serialized rule set. Empty input yields no rules."""
    if not raw:
        return []
    return _rule_set_adapter.validate_json(raw)


def dump_rule_set(rules: list[Rule]) -> str:
    """Serialize a rule set to JSON using the persisted field names."""
    return _rule_set_adapter.dump_json(rules, by_alias=True).decode("utf-8")
