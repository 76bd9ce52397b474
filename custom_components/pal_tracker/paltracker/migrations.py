"""Versioned migrations for cached student snapshots.

A snapshot is ``{"version": n, "students": [...], "selectedId": ..., "currentDate": ...}``.
Snapshots written before versioning carry no tag and count as version 1.
Each step upgrades a snapshot by exactly one version, runs in a fixed
order, and leaves already-upgraded students unchanged.
"""

import copy
import logging
from typing import Any, Callable, Dict, List, NamedTuple, Tuple

from .exceptions import SnapshotVersionError
from .models import DEFAULT_AREA, DEFAULT_YEAR, INTERVIEW_INTRO, INTERVIEW_TYPES
from .utils import new_provisional_id

_LOGGER = logging.getLogger(__name__)

UNVERSIONED = 1
CURRENT_VERSION = 7

UNKNOWN_FIRST_NAME = "Unknown"
UNKNOWN_LAST_NAME = "Apprentice"

_PLACEHOLDERS = {"", "undefined", "null"}

# Legacy milestone flags and the interview slot each one became
_MILESTONE_SLOTS = {
	"intro": "intro",
	"intermediate": "interim",
	"final": "final",
}

StudentStep = Callable[[Dict[str, Any]], None]


class Migration(NamedTuple):
	from_version: int
	name: str
	apply: StudentStep


def split_full_name(student: Dict[str, Any]) -> None:
	name = student.pop("name", None)
	if not name or (student.get("first_name") and student.get("last_name")):
		return
	parts = [part for part in str(name).split() if part not in _PLACEHOLDERS]
	student["first_name"] = student.get("first_name") or (parts[0] if parts else UNKNOWN_FIRST_NAME)
	student["last_name"] = student.get("last_name") or (" ".join(parts[1:]) if len(parts) > 1 else UNKNOWN_LAST_NAME)


def clean_placeholder_names(student: Dict[str, Any]) -> None:
	if str(student.get("first_name") or "").strip() in _PLACEHOLDERS:
		student["first_name"] = UNKNOWN_FIRST_NAME
	if str(student.get("last_name") or "").strip() in _PLACEHOLDERS:
		student["last_name"] = UNKNOWN_LAST_NAME


def milestones_to_interviews(student: Dict[str, Any]) -> None:
	milestones = student.pop("milestones", None)
	if not isinstance(milestones, dict) or student.get("interviews"):
		return
	student["interviews"] = {
		slot: {"type": slot, "done": bool(milestones.get(flag))}
		for flag, slot in _MILESTONE_SLOTS.items()
	}


def ensure_interview_fields(student: Dict[str, Any]) -> None:
	interviews = student.get("interviews")
	if not isinstance(interviews, dict):
		interviews = {}
	for interview_type in INTERVIEW_TYPES:
		slot = interviews.get(interview_type)
		if not isinstance(slot, dict):
			slot = {}
		slot.setdefault("type", interview_type)
		slot.setdefault("remote_id", None)
		slot.setdefault("done", False)
		slot.setdefault("conducted_date", "")
		slot.setdefault("planned_date", "")
		slot.setdefault("mentor", "")
		slot.setdefault("notes", "")
		if interview_type == INTERVIEW_INTRO:
			slot["planned_date"] = ""
		interviews[interview_type] = slot
	student["interviews"] = interviews


def ensure_year_and_work_orders(student: Dict[str, Any]) -> None:
	if student.get("year") in (None, ""):
		student["year"] = DEFAULT_YEAR
	if not isinstance(student.get("work_orders"), list):
		student["work_orders"] = []
	if not student.get("id"):
		student["id"] = new_provisional_id()


def ensure_instruction_log(student: Dict[str, Any]) -> None:
	if isinstance(student.get("instruction_log"), dict):
		student["instruction_log"].setdefault("entries", [])
		return
	student["instruction_log"] = {
		"remote_id": None,
		"area": DEFAULT_AREA,
		"period": "",
		"course_no": "",
		"remarks": "",
		"entries": [],
	}


MIGRATIONS: Tuple[Migration, ...] = (
	Migration(1, "split_full_name", split_full_name),
	Migration(2, "clean_placeholder_names", clean_placeholder_names),
	Migration(3, "milestones_to_interviews", milestones_to_interviews),
	Migration(4, "ensure_interview_fields", ensure_interview_fields),
	Migration(5, "ensure_year_and_work_orders", ensure_year_and_work_orders),
	Migration(6, "ensure_instruction_log", ensure_instruction_log),
)


def snapshot_version(snapshot: Dict[str, Any]) -> int:
	version = snapshot.get("version", UNVERSIONED)
	try:
		return int(version)
	except (TypeError, ValueError):
		return UNVERSIONED


def migrate_snapshot(snapshot: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
	"""Upgrade a snapshot to the current version.

	Returns the upgraded copy and the names of the steps that ran.
	"""
	version = snapshot_version(snapshot)
	if version > CURRENT_VERSION:
		raise SnapshotVersionError(
			f"Snapshot version {version} is newer than supported version {CURRENT_VERSION}"
		)

	migrated = copy.deepcopy(snapshot)
	students = migrated.get("students")
	if not isinstance(students, list):
		students = []
	students = [student for student in students if isinstance(student, dict)]

	applied: List[str] = []
	for migration in MIGRATIONS:
		if migration.from_version < version:
			continue
		for student in students:
			migration.apply(student)
		applied.append(migration.name)
		version = migration.from_version + 1

	migrated["students"] = students
	migrated["version"] = CURRENT_VERSION
	migrated.setdefault("selectedId", None)
	migrated.setdefault("currentDate", None)

	if applied:
		_LOGGER.info(f"Migrated snapshot of {len(students)} students through {', '.join(applied)}")
	return migrated, applied
