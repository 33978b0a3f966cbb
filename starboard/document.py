"""The StarBoard document: shape, defaults and structural validation.

A single JSON-shaped Document holds every class, student, teacher and
setting. It is always read and written as a whole.
"""

import copy
import math
import random
import string
import time
from datetime import datetime, timezone
from typing import Any

from jsonschema import Draft7Validator

DOCUMENT_VERSION = "2.0"

DEFAULT_TEACHERS = {"teacher": "starboard"}

DEFAULT_THRESHOLDS = {"bronze": 10, "silver": 25, "gold": 50}

REQUIRED_SECTIONS = ("classes", "teachers", "settings")

DOCUMENT_SCHEMA = {
    "type": "object",
    "required": list(REQUIRED_SECTIONS),
    "properties": {
        "classes": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "required": ["students"],
                "properties": {
                    "students": {
                        "type": "object",
                        "additionalProperties": {
                            "type": "object",
                            "required": ["name", "stars"],
                            "properties": {
                                "name": {"type": "string", "minLength": 1},
                                "stars": {"type": "number", "minimum": 0},
                            },
                        },
                    },
                },
            },
        },
        "teachers": {
            "type": "object",
            "additionalProperties": {"type": "string"},
        },
        "settings": {"type": "object"},
    },
}

_VALIDATOR = Draft7Validator(DOCUMENT_SCHEMA)

_BASE36 = string.digits + string.ascii_lowercase


def utc_now() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(timezone.utc).isoformat()


def default_settings() -> dict[str, Any]:
    return {
        "theme": "dark",
        "soundEnabled": True,
        "autoBackup": True,
        "achievementThresholds": dict(DEFAULT_THRESHOLDS),
    }


def default_document() -> dict[str, Any]:
    """Build a fresh default Document."""
    now = utc_now()
    return {
        "classes": {},
        "teachers": dict(DEFAULT_TEACHERS),
        "settings": default_settings(),
        "metadata": {
            "version": DOCUMENT_VERSION,
            "created": now,
            "lastModified": now,
            "backupCount": 0,
        },
    }


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_document(candidate: Any) -> bool:
    """Check the structural shape of a candidate Document.

    Returns True only if ``classes``, ``teachers`` and ``settings`` are all
    dicts, every class has a ``students`` dict, every student has a
    non-empty string ``name`` and a numeric ``stars >= 0``, and every teacher
    entry maps a string to a string.
    """
    return _VALIDATOR.is_valid(candidate)


def _finite_count(value: Any) -> int:
    if not is_number(value) or not math.isfinite(value):
        return 0
    return int(value)


def stamp_metadata(
    document: dict[str, Any],
    previous_count: int = 0,
) -> dict[str, Any]:
    """Return a deep copy of ``document`` with refreshed metadata.

    ``backupCount`` becomes one more than the larger of the document's own
    count and ``previous_count``, so it never goes backwards even when a
    stale copy is saved.
    """
    stamped = copy.deepcopy(document)
    metadata = stamped.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {}

    incoming_count = _finite_count(metadata.get("backupCount"))

    now = utc_now()
    metadata["version"] = DOCUMENT_VERSION
    metadata.setdefault("created", now)
    metadata["lastModified"] = now
    metadata["backupCount"] = max(incoming_count, _finite_count(previous_count)) + 1
    stamped["metadata"] = metadata
    return stamped


def backup_count(document: dict[str, Any] | None) -> int:
    if not document:
        return 0
    metadata = document.get("metadata")
    if not isinstance(metadata, dict):
        return 0
    return _finite_count(metadata.get("backupCount"))


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_student_id() -> str:
    """Generate a student id: base-36 millisecond timestamp + random suffix."""
    timestamp = _to_base36(int(time.time() * 1000))
    suffix = "".join(random.choices(_BASE36, k=10))
    return f"{timestamp}{suffix}"


def achievement_thresholds(document: dict[str, Any]) -> dict[str, int]:
    """Thresholds from settings, falling back to the defaults."""
    thresholds = document.get("settings", {}).get("achievementThresholds")
    if not isinstance(thresholds, dict):
        return dict(DEFAULT_THRESHOLDS)
    merged = dict(DEFAULT_THRESHOLDS)
    for tier in merged:
        value = thresholds.get(tier)
        if is_number(value):
            merged[tier] = int(value)
    return merged


def iter_students(document: dict[str, Any]):
    """Yield ``(class_name, student_id, student)`` for every student."""
    for class_name, class_record in document.get("classes", {}).items():
        for student_id, student in (class_record.get("students") or {}).items():
            yield class_name, student_id, student
