"""
Unit tests for sanitize() - stripping environment-specific fields before replay.
"""
import copy
import pytest
from fh_sync.core.category import Category
from fh_sync.services.sanitizer import (
    INITIAL_STEP_ACTION_ID,
    INITIAL_TASK_ACTION_ID,
    sanitize,
)


def _all_keys(value):
    """Every dict key at any depth."""
    keys = set()
    if isinstance(value, dict):
        for key, item in value.items():
            keys.add(key)
            keys |= _all_keys(item)
    elif isinstance(value, list):
        for item in value:
            keys |= _all_keys(item)
    return keys


def _action_ids(value):
    found = []
    if isinstance(value, dict):
        if "action_id" in value:
            found.append(value["action_id"])
        for item in value.values():
            found.extend(_action_ids(item))
    elif isinstance(value, list):
        for item in value:
            found.extend(_action_ids(item))
    return found


NESTED_SERVICE = {
    "id": "svc-1",
    "name": "Checkout",
    "description": "Handles payments",
    "created_at": "2024-01-01T00:00:00Z",
    "updated_at": "2024-01-02T00:00:00Z",
    "owner": {"id": "team-1", "name": "Payments"},
    "labels": {"tier": "1"},
    "links": [
        {"id": "link-1", "href_url": "https://status.example.com", "created_at": "x"},
    ],
    "functionalities": [
        {"id": "func-1", "name": "Card capture", "owner": {"id": "t"}, "nested": [{"field_id": "f"}]},
    ],
}


class TestStripEnvironmentFields:
    """Generic rules applied to every category."""

    @pytest.mark.unit
    def test_drops_ids_timestamps_and_owner_everywhere(self):
        result = sanitize(NESTED_SERVICE, Category.SERVICES)
        keys = _all_keys(result)

        assert "id" not in keys
        assert "field_id" not in keys
        assert "owner" not in keys
        assert not any(k.endswith("_at") for k in keys)

    @pytest.mark.unit
    def test_keeps_portable_fields(self):
        result = sanitize(NESTED_SERVICE, Category.SERVICES)

        assert result["name"] == "Checkout"
        assert result["description"] == "Handles payments"
        assert result["labels"] == {"tier": "1"}
        assert result["links"] == [{"href_url": "https://status.example.com"}]
        assert result["functionalities"][0]["name"] == "Card capture"

    @pytest.mark.unit
    def test_input_is_not_modified(self):
        original = copy.deepcopy(NESTED_SERVICE)
        sanitize(NESTED_SERVICE, Category.SERVICES)
        assert NESTED_SERVICE == original

    @pytest.mark.unit
    def test_drops_attachment_rule_and_last_executed(self):
        record = {
            "name": "X",
            "attachment_rule": {"logic": {"eq": [1, 1]}},
            "last_executed_for_incident": {"id": "inc-1"},
        }
        assert sanitize(record, Category.FUNCTIONALITIES) == {"name": "X"}

    @pytest.mark.unit
    def test_custom_field_definition_loses_field_id(self):
        record = {"field_id": "f-1", "display_name": "Region", "field_type": "select"}
        assert sanitize(record, Category.CUSTOM_FIELDS) == {
            "display_name": "Region",
            "field_type": "select",
        }

    @pytest.mark.unit
    def test_action_id_always_preserved(self):
        record = {
            "name": "R",
            "action_id": "top",
            "nested": {"action_id": "inner", "id": "drop-me"},
            "list": [{"action_id": "in-list"}],
        }
        result = sanitize(record, Category.SERVICES)
        assert sorted(_action_ids(result)) == ["in-list", "inner", "top"]

    @pytest.mark.unit
    def test_none_record(self):
        assert sanitize(None, Category.SERVICES) == {}


class TestIncidentTypeFixes:
    """Incident type templates reference runbooks/teams that don't exist in the target."""

    @pytest.mark.unit
    def test_template_references_are_reset(self):
        record = {
            "id": "it-1",
            "name": "Outage",
            "template": {
                "severity": "SEV1",
                "runbook_ids": ["rb-1"],
                "team_ids": ["team-1"],
                "impacts": [{"id": "imp-1"}],
                "custom_fields": [{"field_id": "f-1", "value": "eu"}],
            },
        }
        result = sanitize(record, Category.INCIDENT_TYPES)

        assert result["template"] == {
            "severity": "SEV1",
            "runbook_ids": [],
            "team_ids": [],
            "impacts": [],
            "custom_fields": [],
        }

    @pytest.mark.unit
    def test_template_values_replaced_wholesale(self):
        record = {
            "name": "Outage",
            "template_values": {
                "services": [{"id": "svc-1"}],
                "runbooks": {"rb-1": {"name": "Page"}},
                "anything_else": True,
            },
        }
        result = sanitize(record, Category.INCIDENT_TYPES)

        assert result["template_values"] == {
            "services": [],
            "functionalities": [],
            "environments": [],
            "teams": [],
            "runbooks": {},
        }

    @pytest.mark.unit
    def test_no_template_no_change(self):
        assert sanitize({"name": "Plain"}, Category.INCIDENT_TYPES) == {"name": "Plain"}


class TestRunbookFixes:
    """Runbooks need at least one step and stable action ids."""

    @pytest.mark.unit
    def test_empty_steps_get_placeholder(self):
        result = sanitize({"id": "rb-1", "name": "Empty", "steps": []}, Category.RUNBOOKS)

        assert len(result["steps"]) == 1
        step = result["steps"][0]
        assert step["action_id"] == INITIAL_STEP_ACTION_ID
        assert len(step["tasks"]) == 1
        assert step["tasks"][0]["action_id"] == INITIAL_TASK_ACTION_ID
        assert step["tasks"][0]["type"] == "markdown"

    @pytest.mark.unit
    def test_missing_steps_get_placeholder(self):
        result = sanitize({"name": "No steps key"}, Category.RUNBOOKS)
        assert result["steps"][0]["action_id"] == INITIAL_STEP_ACTION_ID

    @pytest.mark.unit
    def test_action_ids_synthesized_only_when_absent(self):
        record = {
            "name": "Page",
            "steps": [
                {
                    "id": "step-db-1",
                    "name": "Notify",
                    "tasks": [
                        {"id": "t1", "name": "Slack", "record_id": "rec-1"},
                        {"name": "Email", "action_id": "keep-me", "runbook_id": "rb-9"},
                    ],
                },
                {"name": "Existing", "action_id": "custom-step", "tasks": [{"name": "Only"}]},
            ],
        }
        result = sanitize(record, Category.RUNBOOKS)
        first, second = result["steps"]

        assert first["action_id"] == "step_0"
        assert first["tasks"][0]["action_id"] == "task_0_0"
        assert first["tasks"][1]["action_id"] == "keep-me"
        assert second["action_id"] == "custom-step"
        assert second["tasks"][0]["action_id"] == "task_1_0"

    @pytest.mark.unit
    def test_task_source_references_removed(self):
        record = {
            "name": "Page",
            "steps": [{"tasks": [{"name": "T", "record_id": "r", "runbook_id": "rb"}]}],
        }
        task = sanitize(record, Category.RUNBOOKS)["steps"][0]["tasks"][0]
        assert "record_id" not in task
        assert "runbook_id" not in task

    @pytest.mark.unit
    def test_runbook_output_has_no_ids_anywhere(self):
        record = {
            "id": "rb-1",
            "name": "Page",
            "owner": {"id": "team"},
            "attachment_rule": {"logic": {}},
            "last_executed_for_incident": None,
            "steps": [{"id": "s", "tasks": [{"id": "t", "created_at": "x"}]}],
        }
        result = sanitize(record, Category.RUNBOOKS)
        keys = _all_keys(result)
        assert {"id", "field_id", "owner", "attachment_rule", "last_executed_for_incident"}.isdisjoint(keys)
