"""
Identity resolution for schema-less FireHydrant records.

Records from different environments never share database ids, so matching is
done on a derived key: the first truthy field out of a fixed priority list.
This is a heuristic. Two records that derive the same key (two runbooks named
"Default", say) collide; callers detect that with find_duplicate_keys() and
log it rather than trying to disambiguate.
"""
from typing import Any, Dict, Iterable, List, Optional

# Priority order matters: human-readable names first, database ids last
MATCH_KEY_FIELDS = ("name", "title", "display_name", "id", "field_id")
IDENTIFIER_FIELDS = ("id", "field_id")


def _first_value(
    record: Optional[Dict[str, Any]], fields: Iterable[str], truthy: bool
) -> Optional[Any]:
    if not record:
        return None
    for field in fields:
        if field not in record:
            continue
        value = record[field]
        if truthy and not value:
            continue
        if value is None or value == "":
            continue
        return value
    return None


def match_key(record: Optional[Dict[str, Any]]) -> str:
    """Key used to pair a record with its counterpart in another environment."""
    value = _first_value(record, MATCH_KEY_FIELDS, truthy=True)
    return "" if value is None else str(value)


def identifier(record: Optional[Dict[str, Any]]) -> Optional[str]:
    """Remote identifier used to address the record for update/delete."""
    value = _first_value(record, IDENTIFIER_FIELDS, truthy=False)
    return None if value is None else str(value)


def index_by_match_key(records: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """Map match key -> record. The first record holding a key wins."""
    index: Dict[str, Dict[str, Any]] = {}
    for record in records:
        index.setdefault(match_key(record), record)
    return index


def find_duplicate_keys(records: List[Dict[str, Any]]) -> List[str]:
    seen = set()
    duplicates: List[str] = []
    for record in records:
        key = match_key(record)
        if key in seen and key not in duplicates:
            duplicates.append(key)
        seen.add(key)
    return duplicates
