"""Tests for rule management operations."""

import pytest

from mailferry.exceptions import RuleNotFoundError, RuleValidationError
from mailferry.ids import SequentialIdGenerator
from mailferry.models import Rule
from mailferry.rule_manager import RuleManager
from mailferry.storage import InMemoryRuleRepository


class TestRuleManager:
    """Tests for RuleManager."""

    @pytest.fixture
    def repository(self):
        return InMemoryRuleRepository()

    @pytest.fixture
    def manager(self, repository):
        return RuleManager(repository, SequentialIdGenerator("id-"))

    def test_add_rule_without_filters_fails(self, manager, repository):
        with pytest.raises(RuleValidationError):
            manager.add_rule({})
        assert repository.load() == []

    def test_add_rule_with_sender(self, manager):
        rule = manager.add_rule({"sender": "a@b.com"})

        assert rule.id == "id-1"
        assert rule.sender == "a@b.com"
        assert manager.get_rules() == [rule]

    def test_validation_error_is_value_error(self, manager):
        with pytest.raises(ValueError):
            manager.add_rule({"sender": "", "subject": None})

    def test_supplied_id_is_ignored(self, manager):
        rule = manager.add_rule({"id": "chosen", "subject": "Invoice"})
        assert rule.id == "id-1"

    def test_generated_id_skips_existing(self, repository):
        repository.save([Rule(id="id-1", sender="x@example.com")])
        manager = RuleManager(repository, SequentialIdGenerator("id-"))

        rule = manager.add_rule({"subject": "Invoice"})

        assert rule.id == "id-2"

    def test_stuck_generator_raises(self, repository):
        repository.save([Rule(id="same", sender="x@example.com")])
        manager = RuleManager(repository, lambda: "same")

        with pytest.raises(RuntimeError):
            manager.add_rule({"subject": "Invoice"})

    def test_add_rule_with_actions_assigns_ids(self, manager):
        rule = manager.add_rule(
            {
                "sender": "a@b.com",
                "attachmentActions": [
                    {"driveFolderId": "f1"},
                    {"driveFolderId": "f2", "attachmentName": "x.pdf"},
                ],
            }
        )

        assert [a.id for a in rule.attachment_actions] == ["id-2", "id-3"]
        assert rule.attachment_actions[1].attachment_name == "x.pdf"

    @pytest.mark.parametrize("actions", ["x", [5], ["folder-1"], {"driveFolderId": "f1"}])
    def test_malformed_action_list_fails(self, manager, repository, actions):
        with pytest.raises(RuleValidationError):
            manager.add_rule({"sender": "a@b.com", "attachmentActions": actions})
        assert repository.load() == []

    def test_snake_case_actions_key(self, manager):
        rule = manager.add_rule(
            {
                "sender": "a@b.com",
                "attachmentActions": [{"driveFolderId": "f1"}],
                "attachment_actions": [{"driveFolderId": "f2"}],
            }
        )

        assert [a.drive_folder_id for a in rule.attachment_actions] == ["f1"]

        rule = manager.add_rule({"sender": "c@d.com", "attachment_actions": [{"driveFolderId": "f3"}]})
        assert [a.drive_folder_id for a in rule.attachment_actions] == ["f3"]

    def test_rules_keep_insertion_order(self, manager):
        first = manager.add_rule({"sender": "a@b.com"})
        second = manager.add_rule({"subject": "Report"})

        assert [r.id for r in manager.get_rules()] == [first.id, second.id]

    def test_delete_rule(self, manager):
        first = manager.add_rule({"sender": "a@b.com"})
        second = manager.add_rule({"subject": "Report"})

        assert manager.delete_rule(first.id) is True
        assert manager.get_rules() == [second]
        assert manager.delete_rule("unknown") is False

    def test_add_attachment_action(self, manager):
        rule = manager.add_rule({"sender": "a@b.com"})

        action = manager.add_attachment_action(
            rule.id, {"driveFolderId": "f1", "outputFileName": "{date}_{original_name}"}
        )

        stored = manager.get_rule(rule.id)
        assert stored.attachment_actions == [action]
        assert action.id == "id-2"
        assert action.attachment_name == "*"

    def test_add_attachment_action_unknown_rule(self, manager):
        with pytest.raises(RuleNotFoundError):
            manager.add_attachment_action("missing", {"driveFolderId": "f1"})

    def test_add_attachment_action_requires_folder(self, manager):
        rule = manager.add_rule({"sender": "a@b.com"})
        with pytest.raises(RuleValidationError):
            manager.add_attachment_action(rule.id, {"attachmentName": "x.pdf"})

    def test_action_id_not_client_controlled(self, manager):
        rule = manager.add_rule({"sender": "a@b.com"})
        action = manager.add_attachment_action(rule.id, {"id": "mine", "driveFolderId": "f1"})
        assert action.id != "mine"

    def test_delete_attachment_action(self, manager):
        rule = manager.add_rule({"sender": "a@b.com"})
        keep = manager.add_attachment_action(rule.id, {"driveFolderId": "f1"})
        drop = manager.add_attachment_action(rule.id, {"driveFolderId": "f2"})

        assert manager.delete_attachment_action(rule.id, drop.id) is True
        assert manager.get_rule(rule.id).attachment_actions == [keep]
        assert manager.delete_attachment_action(rule.id, drop.id) is False

    def test_save_rules_replaces_set(self, manager):
        manager.add_rule({"sender": "a@b.com"})

        saved = manager.save_rules([{"id": "x", "subject": "Only"}])

        assert [r.id for r in manager.get_rules()] == ["x"]
        assert saved[0].subject == "Only"

    def test_save_rules_rejects_invalid(self, manager):
        with pytest.raises(RuleValidationError):
            manager.save_rules([{"id": "x"}])

    def test_save_rules_rejects_duplicate_ids(self, manager):
        with pytest.raises(RuleValidationError):
            manager.save_rules([{"id": "x", "sender": "a@b.com"}, {"id": "x", "subject": "S"}])

    def test_get_rule_unknown(self, manager):
        with pytest.raises(RuleNotFoundError):
            manager.get_rule("missing")
