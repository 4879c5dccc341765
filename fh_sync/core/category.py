"""Category enum and per-category remote collection metadata.

A category names one FireHydrant collection. It decides which endpoint the
client talks to, which HTTP verb updates use and which sanitization rules
apply before a record is replayed into another environment.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class Category(str, Enum):
    """Collections the sync engine can mirror between environments."""
    INCIDENT_TYPES = "incident_types"
    RUNBOOKS = "runbooks"
    SERVICES = "services"
    FUNCTIONALITIES = "functionalities"
    CUSTOM_FIELDS = "custom_fields/definitions"

    # Viewer-only collections, readable but never synced
    ENVIRONMENTS = "environments"
    SETTINGS = "settings"

    @classmethod
    def from_string(cls, value: Optional[str]) -> Optional["Category"]:
        """Convert a string to a Category.

        Args:
            value: Category string value (collection path)

        Returns:
            Category enum value, or None if value is empty or unknown
        """
        if not value:
            return None
        try:
            return cls(value.strip())
        except ValueError:
            return None

    @classmethod
    def get_syncable_categories(cls) -> list[str]:
        return [c.value for c in cls if c.spec.syncable]

    @property
    def spec(self) -> "CategorySpec":
        return CATEGORY_SPECS[self]

    @property
    def slug(self) -> str:
        """Filesystem-safe form of the collection path."""
        return self.value.replace("/", "-")


@dataclass(frozen=True)
class CategorySpec:
    """Remote collection contract for one category."""
    label: str
    path: str
    update_method: str = "PATCH"
    syncable: bool = True


CATEGORY_SPECS: Dict[Category, CategorySpec] = {
    Category.INCIDENT_TYPES: CategorySpec(label="Incident Types", path="incident_types"),
    Category.RUNBOOKS: CategorySpec(label="Runbooks", path="runbooks", update_method="PUT"),
    Category.SERVICES: CategorySpec(label="Services", path="services"),
    Category.FUNCTIONALITIES: CategorySpec(label="Functionalities", path="functionalities"),
    Category.CUSTOM_FIELDS: CategorySpec(label="Custom Fields", path="custom_fields/definitions"),
    Category.ENVIRONMENTS: CategorySpec(label="Environments", path="environments", syncable=False),
    Category.SETTINGS: CategorySpec(label="Settings", path="settings", syncable=False),
}
