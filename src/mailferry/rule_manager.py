"""Rule management operations used by the CLI and the web API."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping

from pydantic import ValidationError

from mailferry.exceptions import RuleNotFoundError, RuleValidationError
from mailferry.ids import IdGenerator, UuidIdGenerator
from mailferry.models import AttachmentAction, Rule

if TYPE_CHECKING:
    from mailferry.storage import RuleRepository

logger = logging.getLogger(__name__)

# Give up instead of spinning if a generator keeps returning taken ids
MAX_ID_ATTEMPTS = 100


def _validation_message(error: ValidationError) -> str:
    return "; ".join(e["msg"] for e in error.errors())


class RuleManager:
    """Create, list and delete rules and their attachment actions.

    Every mutation loads the full rule set, changes it and saves it back.
    """

    def __init__(self, repository: RuleRepository, id_generator: IdGenerator | None = None):
        self.repository = repository
        self.id_generator = id_generator or UuidIdGenerator()

    def get_rules(self) -> list[Rule]:
        return self.repository.load()

    def get_rule(self, rule_id: str) -> Rule:
        for rule in self.repository.load():
            if rule.id == rule_id:
                return rule
        raise RuleNotFoundError(rule_id)

    def add_rule(self, data: Mapping[str, Any] | Rule) -> Rule:
        """Add a new rule and return it with its generated id.

        Raises:
            RuleValidationError: If neither sender nor subject is set
        """
        payload = data.to_dict() if isinstance(data, Rule) else dict(data)
        payload.pop("id", None)

        raw_actions = payload.pop("attachmentActions", None)
        snake_actions = payload.pop("attachment_actions", None)
        if raw_actions is None:
            raw_actions = snake_actions if snake_actions is not None else []
        if not isinstance(raw_actions, (list, tuple)):
            raise RuleValidationError("attachmentActions must be a list of actions")

        rules = self.repository.load()
        rule_id = self._new_id({r.id for r in rules})

        action_ids: set[str] = set()
        actions = []
        for raw_action in raw_actions:
            action = self._build_action(raw_action, action_ids)
            action_ids.add(action.id)
            actions.append(action)

        try:
            rule = Rule.model_validate({**payload, "id": rule_id, "attachmentActions": actions})
        except ValidationError as e:
            raise RuleValidationError(_validation_message(e)) from e

        rules.append(rule)
        self.repository.save(rules)
        logger.info(f"Added rule {rule.id} (sender={rule.sender}, subject={rule.subject})")
        return rule

    def save_rules(self, rules: list[Rule] | list[Mapping[str, Any]]) -> list[Rule]:
        """Replace the whole rule set.

        Raises:
            RuleValidationError: If any rule is invalid or ids repeat
        """
        try:
            validated = [
                rule if isinstance(rule, Rule) else Rule.model_validate(rule)
                for rule in rules
            ]
        except ValidationError as e:
            raise RuleValidationError(_validation_message(e)) from e

        ids = [rule.id for rule in validated]
        if len(ids) != len(set(ids)):
            raise RuleValidationError("Rule ids must be unique")

        self.repository.save(validated)
        logger.info(f"Saved {len(validated)} rule(s)")
        return validated

    def delete_rule(self, rule_id: str) -> bool:
        """Delete a rule. Returns False if no rule had that id."""
        rules = self.repository.load()
        remaining = [rule for rule in rules if rule.id != rule_id]
        self.repository.save(remaining)

        deleted = len(remaining) != len(rules)
        if deleted:
            logger.info(f"Deleted rule {rule_id}")
        return deleted

    def add_attachment_action(
        self, rule_id: str, data: Mapping[str, Any] | AttachmentAction
    ) -> AttachmentAction:
        """Append an attachment action to a rule and return it with its id.

        Raises:
            RuleNotFoundError: If the rule does not exist
            RuleValidationError: If the action is invalid
        """
        rules = self.repository.load()
        for index, rule in enumerate(rules):
            if rule.id == rule_id:
                break
        else:
            raise RuleNotFoundError(rule_id)

        action = self._build_action(data, {a.id for a in rule.attachment_actions})
        rules[index] = rule.model_copy(
            update={"attachment_actions": [*rule.attachment_actions, action]}
        )
        self.repository.save(rules)
        logger.info(f"Added action {action.id} to rule {rule_id} (folder={action.drive_folder_id})")
        return action

    def delete_attachment_action(self, rule_id: str, action_id: str) -> bool:
        """Remove an action from a rule. Returns False if nothing was removed."""
        rules = self.repository.load()
        deleted = False

        for index, rule in enumerate(rules):
            if rule.id != rule_id:
                continue
            actions = [a for a in rule.attachment_actions if a.id != action_id]
            if len(actions) != len(rule.attachment_actions):
                rules[index] = rule.model_copy(update={"attachment_actions": actions})
                deleted = True

        self.repository.save(rules)
        if deleted:
            logger.info(f"Deleted action {action_id} from rule {rule_id}")
        return deleted

    def _build_action(
        self,
        data: Mapping[str, Any] | AttachmentAction,
        taken_ids: set[str],
    ) -> AttachmentAction:
        """Validate action data under a newly generated id."""
        if isinstance(data, AttachmentAction):
            payload = data.model_dump(by_alias=True)
        elif isinstance(data, Mapping):
            payload = dict(data)
        else:
            raise RuleValidationError(f"An attachment action must be an object, got {type(data).__name__}")
        payload["id"] = self._new_id(taken_ids)
        try:
            return AttachmentAction.model_validate(payload)
        except ValidationError as e:
            raise RuleValidationError(_validation_message(e)) from e

    def _new_id(self, taken: set[str]) -> str:
        for _ in range(MAX_ID_ATTEMPTS):
            new_id = self.id_generator()
            if new_id not in taken:
                return new_id
        raise RuntimeError(f"Could not generate a unique id after {MAX_ID_ATTEMPTS} attempts")
