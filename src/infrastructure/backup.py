"""
Backup Module

JSON backup of the employee and target collections, and JSON export and
import of targets on their own.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from domain.entities import Target, new_id
from domain.exceptions import FileFormatError
from infrastructure.excel_parser import TargetImportResult
from infrastructure.logger import get_logger
from infrastructure.repository import (
    TimesheetRepository, employee_to_record, target_from_record, target_to_record
)

logger = get_logger("Backup")

BACKUP_VERSION = "1.0"


async def export_backup(repository: TimesheetRepository) -> Dict[str, Any]:
    """
    Collect employees and targets into a backup document.

    Returns:
        {"exportedAt": ISO timestamp, "version": "1.0",
         "data": {"employees": [...], "targets": [...]}}
    """
    employees = await repository.get_all_employees()
    targets = await repository.get_all_targets()
    return {
        "exportedAt": datetime.now(timezone.utc).isoformat(),
        "version": BACKUP_VERSION,
        "data": {
            "employees": [employee_to_record(emp) for emp in employees],
            "targets": [target_to_record(t) for t in targets],
        },
    }


def default_backup_name(today: Optional[datetime] = None) -> str:
    day = (today or datetime.now()).strftime("%Y-%m-%d")
    return f"timesheet-backup-{day}.json"


def default_targets_name(today: Optional[datetime] = None) -> str:
    day = (today or datetime.now()).strftime("%Y-%m-%d")
    return f"MucTieu_{day}.json"


def _write_json(path: Path, document: Any) -> None:
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(document, f, indent=2, ensure_ascii=False)


async def write_backup(repository: TimesheetRepository, path: Path) -> Path:
    """
    Write a backup file. A directory path gets the default file name.

    Returns:
        Path of the written file
    """
    if path.is_dir():
        path = path / default_backup_name()
    backup = await export_backup(repository)
    _write_json(path, backup)
    logger.info(
        f"Backup written to {path}: {len(backup['data']['employees'])} employees, "
        f"{len(backup['data']['targets'])} targets"
    )
    return path


def export_targets_json(targets: Sequence[Target], path: Path) -> Path:
    """
    Write targets as a JSON array of stored records.

    Returns:
        Path of the written file
    """
    path = Path(path)
    if path.is_dir():
        path = path / default_targets_name()
    _write_json(path, [target_to_record(t) for t in targets])
    logger.info(f"Targets written to {path}: {len(targets)} targets")
    return path


def import_targets_json(path: Path) -> TargetImportResult:
    """
    Read targets from a JSON array, or from the targets of a backup file.

    Entries without a name are reported as "Item N: ..." and skipped.
    Entries without an id get a new one.

    Raises:
        FileFormatError: If the file is not readable JSON
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            document = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error(f"Cannot read targets file {path}: {e}")
        raise FileFormatError("Cannot read the JSON file. Please check its format.") from e

    if isinstance(document, dict) and isinstance(document.get("data"), dict):
        document = document["data"].get("targets")

    result = TargetImportResult()
    if not isinstance(document, list):
        result.errors.append("Wrong file format: expected a JSON array of targets.")
        return result

    for index, item in enumerate(document, start=1):
        if not isinstance(item, dict) or not str(item.get("name") or "").strip():
            result.errors.append(f"Item {index}: missing target name")
            continue
        target = target_from_record(new_id(), item)
        result.targets.append(Target(id=target.id, name=target.name.strip(), roster=target.roster))

    logger.info(f"Read {len(result.targets)} targets from {path}, {len(result.errors)} errors")
    return result
