"""Export and import of the StarBoard document (JSON backups and CSV)."""

import csv
import io
import json
from datetime import date, datetime
from typing import Any

from .document import DOCUMENT_VERSION, utc_now


class ImportFormatError(ValueError):
    """Uploaded content is not a usable StarBoard export."""


def default_export_filename(prefix: str = "starboard-data", day: date | None = None) -> str:
    day = day or date.today()
    return f"{prefix}-{day.isoformat()}.json"


def export_json(document: dict[str, Any]) -> str:
    return json.dumps(document, indent=2)


def export_backup(document: dict[str, Any], created_by: str | None = None) -> str:
    """Serialize the Document with a ``backupInfo`` block describing the backup."""
    backup = dict(document)
    backup["backupInfo"] = {
        "timestamp": utc_now(),
        "type": "manual",
        "createdBy": created_by,
        "version": DOCUMENT_VERSION,
    }
    return json.dumps(backup, indent=2)


def parse_import(text: str) -> dict[str, Any]:
    """Parse an uploaded export.

    Only the presence of a ``classes`` object is checked here. The caller
    passes the result to ``save_data``, which applies full validation.

    Raises:
        ImportFormatError: If the text is not JSON or lacks ``classes``.
    """
    try:
        data = json.loads(text)
    except ValueError as e:
        raise ImportFormatError(f"Invalid file format: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("classes"), dict):
        raise ImportFormatError("Invalid data format: missing 'classes'")

    data.pop("backupInfo", None)
    return data


def _display_date(timestamp: str | None) -> str:
    if not timestamp:
        return date.today().isoformat()
    try:
        return datetime.fromisoformat(timestamp.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return timestamp


def export_students_csv(document: dict[str, Any]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    writer.writerow(["Name", "Class", "Stars", "Joined"])
    for class_name, class_record in document.get("classes", {}).items():
        for student in (class_record.get("students") or {}).values():
            writer.writerow([
                student.get("name", ""),
                class_name,
                student.get("stars", 0),
                _display_date(student.get("created")),
            ])
    return output.getvalue()


def export_classes_csv(document: dict[str, Any]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    writer.writerow(["Class Name", "Students", "Total Stars", "Created"])
    for class_name, class_record in document.get("classes", {}).items():
        students = (class_record.get("students") or {}).values()
        writer.writerow([
            class_name,
            len(students),
            sum(student.get("stars", 0) for student in students),
            _display_date(class_record.get("created")),
        ])
    return output.getvalue()
