"""
Record sanitization before replaying into another environment.

FireHydrant rejects (or silently mis-links) payloads that carry object ids
from a different tenant. sanitize() returns a deep copy with those fields
removed everywhere in the tree, then applies category-specific fix-ups so the
result is creatable, or safely patchable, in the target environment.
"""
import logging
from typing import Any, Dict

from fh_sync.core.category import Category

logger = logging.getLogger(__name__)

# Dropped at every nesting level
REMOVED_FIELDS = frozenset({
    "id",
    "field_id",
    "last_executed_for_incident",
    "owner",
    "attachment_rule",
})
TIMESTAMP_SUFFIX = "_at"

# Structural reference between runbook steps, not a database id
PRESERVED_FIELDS = frozenset({"action_id"})

INCIDENT_TEMPLATE_RESET_FIELDS = ("runbook_ids", "team_ids", "impacts", "custom_fields")
RUNBOOK_TASK_REMOVED_FIELDS = ("record_id", "runbook_id")
RUNBOOK_TOP_LEVEL_REMOVED_FIELDS = ("attachment_rule", "owner", "last_executed_for_incident")

INITIAL_STEP_ACTION_ID = "initial_step"
INITIAL_TASK_ACTION_ID = "initial_task"


def _should_drop(key: str) -> bool:
    if key in PRESERVED_FIELDS:
        return False
    return key in REMOVED_FIELDS or key.endswith(TIMESTAMP_SUFFIX)


def strip_environment_fields(value: Any) -> Any:
    """Recursively copy value, dropping environment-specific keys."""
    if isinstance(value, dict):
        return {
            key: strip_environment_fields(item)
            for key, item in value.items()
            if not _should_drop(key)
        }
    if isinstance(value, (list, tuple)):
        return [strip_environment_fields(item) for item in value]
    return value


def _empty_template_values() -> Dict[str, Any]:
    return {
        "services": [],
        "functionalities": [],
        "environments": [],
        "teams": [],
        "runbooks": {},
    }


def _fix_incident_type(record: Dict[str, Any]) -> Dict[str, Any]:
    template = record.get("template")
    if isinstance(template, dict):
        for field in INCIDENT_TEMPLATE_RESET_FIELDS:
            template[field] = []
    if "template_values" in record:
        record["template_values"] = _empty_template_values()
    return record


def _initial_step() -> Dict[str, Any]:
    return {
        "name": "Initial step",
        "action_id": INITIAL_STEP_ACTION_ID,
        "automatic": False,
        "repeats": False,
        "tasks": [
            {
                "name": "Initial task",
                "action_id": INITIAL_TASK_ACTION_ID,
                "type": "markdown",
                "manual": True,
                "config": {"markdown": ""},
            }
        ],
    }


def _fix_runbook(record: Dict[str, Any]) -> Dict[str, Any]:
    steps = record.get("steps")
    if not isinstance(steps, list) or not steps:
        logger.debug("Runbook '%s' has no steps, adding placeholder step", record.get("name"))
        record["steps"] = [_initial_step()]
    else:
        for step_index, step in enumerate(steps):
            if not isinstance(step, dict):
                continue
            step.setdefault("action_id", f"step_{step_index}")
            tasks = step.get("tasks")
            if not isinstance(tasks, list):
                continue
            for task_index, task in enumerate(tasks):
                if not isinstance(task, dict):
                    continue
                task.setdefault("action_id", f"task_{step_index}_{task_index}")
                for field in RUNBOOK_TASK_REMOVED_FIELDS:
                    task.pop(field, None)

    for field in RUNBOOK_TOP_LEVEL_REMOVED_FIELDS:
        record.pop(field, None)
    return record


_CATEGORY_FIXES = {
    Category.INCIDENT_TYPES: _fix_incident_type,
    Category.RUNBOOKS: _fix_runbook,
}


def sanitize(record: Dict[str, Any], category: Category) -> Dict[str, Any]:
    """Return a copy of record that is safe to send to a different environment.

    The input is never modified.
    """
    cleaned = strip_environment_fields(record or {})
    fix = _CATEGORY_FIXES.get(Category(category))
    if fix is not None:
        cleaned = fix(cleaned)
    return cleaned
