"""Typed row schema for the remote collections.

Every row read from the backend passes through one of the ``*Row.from_row``
constructors, and every write payload is built by one of the ``*_fields``
helpers below. Nothing outside this module knows the remote column names.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .models import (
	DEFAULT_AREA,
	DEFAULT_COLOR,
	DEFAULT_YEAR,
	INTERVIEW_INTRO,
	InstructionLog,
	Interview,
	LogEntry,
	Student,
	WorkOrder,
)
from .utils import normalize_id, parse_bool, parse_int, parse_text

COLLECTION_APPRENTICES = "apprentices"
COLLECTION_INTERVIEWS = "interviews"
COLLECTION_WORK_ORDERS = "workOrders"
COLLECTION_INSTRUCTION_LOGS = "instructionLogs"
COLLECTION_LOG_ENTRIES = "logEntries"

COLLECTIONS = (
	COLLECTION_APPRENTICES,
	COLLECTION_INTERVIEWS,
	COLLECTION_WORK_ORDERS,
	COLLECTION_INSTRUCTION_LOGS,
	COLLECTION_LOG_ENTRIES,
)

STATUS_ACTIVE = "active"
STATUS_ARCHIVED = "archived"

# Foreign keys used to scope listings
FK_APPRENTICE = "apprenticeId"
FK_INSTRUCTION_LOG = "instructionLogId"


@dataclass(frozen=True)
class ApprenticeRow:
	id: Optional[str]
	status: str
	first_name: str
	last_name: str
	color: str
	year: int
	deployment_start: str
	deployment_end: str

	@classmethod
	def from_row(cls, row: Dict[str, Any]) -> "ApprenticeRow":
		return cls(
			id=normalize_id(row.get("id")),
			status=parse_text(row.get("status")).lower(),
			first_name=parse_text(row.get("firstName")),
			last_name=parse_text(row.get("lastName")),
			color=parse_text(row.get("color"), DEFAULT_COLOR),
			year=parse_int(row.get("year"), default=DEFAULT_YEAR, minimum=1),
			deployment_start=parse_text(row.get("deploymentStart")),
			deployment_end=parse_text(row.get("deploymentEnd")),
		)

	@property
	def is_active(self) -> bool:
		return self.status == STATUS_ACTIVE


@dataclass(frozen=True)
class InterviewRow:
	id: Optional[str]
	apprentice_id: Optional[str]
	type: str
	planned_date: str
	conducted_date: str
	mentor: str
	done: bool
	notes: str

	@classmethod
	def from_row(cls, row: Dict[str, Any]) -> "InterviewRow":
		return cls(
			id=normalize_id(row.get("id")),
			apprentice_id=normalize_id(row.get(FK_APPRENTICE)),
			type=parse_text(row.get("type")).lower(),
			planned_date=parse_text(row.get("plannedDate")),
			conducted_date=parse_text(row.get("conductedDate")),
			mentor=parse_text(row.get("mentor")),
			done=parse_bool(row.get("done")),
			notes=parse_text(row.get("notes")),
		)

	def to_model(self) -> Interview:
		return Interview(
			type=self.type,
			remote_id=self.id,
			done=self.done,
			conducted_date=self.conducted_date,
			planned_date="" if self.type == INTERVIEW_INTRO else self.planned_date,
			mentor=self.mentor,
			notes=self.notes,
		)


@dataclass(frozen=True)
class WorkOrderRow:
	id: Optional[str]
	apprentice_id: Optional[str]
	task: str
	done: bool
	assigned_date: str
	notes: str

	@classmethod
	def from_row(cls, row: Dict[str, Any]) -> "WorkOrderRow":
		return cls(
			id=normalize_id(row.get("id")),
			apprentice_id=normalize_id(row.get(FK_APPRENTICE)),
			task=parse_text(row.get("task")),
			done=parse_bool(row.get("done")),
			assigned_date=parse_text(row.get("assignedDate")),
			notes=parse_text(row.get("notes")),
		)

	def to_model(self) -> WorkOrder:
		return WorkOrder(
			task=self.task,
			remote_id=self.id,
			done=self.done,
			assigned_date=self.assigned_date,
			notes=self.notes,
		)


@dataclass(frozen=True)
class InstructionLogRow:
	id: Optional[str]
	apprentice_id: Optional[str]
	area: str
	period: str
	course_no: str
	remarks: str

	@classmethod
	def from_row(cls, row: Dict[str, Any]) -> "InstructionLogRow":
		return cls(
			id=normalize_id(row.get("id")),
			apprentice_id=normalize_id(row.get(FK_APPRENTICE)),
			area=parse_text(row.get("area"), DEFAULT_AREA),
			period=parse_text(row.get("period")),
			course_no=parse_text(row.get("courseNo")),
			remarks=parse_text(row.get("remarks")),
		)


@dataclass(frozen=True)
class LogEntryRow:
	id: Optional[str]
	instruction_log_id: Optional[str]
	date: str
	minutes: int
	mentor: str
	situation: str

	@classmethod
	def from_row(cls, row: Dict[str, Any]) -> "LogEntryRow":
		return cls(
			id=normalize_id(row.get("id")),
			instruction_log_id=normalize_id(row.get(FK_INSTRUCTION_LOG)),
			date=parse_text(row.get("date")),
			minutes=parse_int(row.get("minutes"), minimum=0),
			mentor=parse_text(row.get("mentor")),
			situation=parse_text(row.get("situation")),
		)

	def to_model(self) -> LogEntry:
		return LogEntry(
			date=self.date,
			minutes=self.minutes,
			mentor=self.mentor,
			situation=self.situation,
			remote_id=self.id,
		)


# Write payloads

def profile_fields(student: Student) -> Dict[str, Any]:
	return {
		"firstName": student.first_name,
		"lastName": student.last_name,
		"color": student.color,
		"year": student.year,
		"deploymentStart": student.deployment_start,
		"deploymentEnd": student.deployment_end,
	}


def new_apprentice_fields(student: Student) -> Dict[str, Any]:
	fields = profile_fields(student)
	fields["status"] = STATUS_ACTIVE
	return fields


def archive_fields() -> Dict[str, Any]:
	return {"status": STATUS_ARCHIVED}


def interview_fields(interview: Interview) -> Dict[str, Any]:
	return {
		"plannedDate": "" if interview.type == INTERVIEW_INTRO else interview.planned_date,
		"conductedDate": interview.conducted_date,
		"mentor": interview.mentor,
		"done": interview.done,
		"notes": interview.notes,
	}


def new_interview_fields(apprentice_id: str, interview: Interview) -> Dict[str, Any]:
	fields = {FK_APPRENTICE: apprentice_id, "type": interview.type}
	fields.update(interview_fields(interview))
	return fields


def new_work_order_fields(apprentice_id: str, order: WorkOrder) -> Dict[str, Any]:
	return {
		FK_APPRENTICE: apprentice_id,
		"task": order.task,
		"done": order.done,
		"assignedDate": order.assigned_date,
		"notes": order.notes,
	}


def work_order_update_fields(order: WorkOrder) -> Dict[str, Any]:
	# Task text and assignment date are fixed once the order exists remotely
	return {"done": order.done, "notes": order.notes}


def instruction_log_fields(log: InstructionLog) -> Dict[str, Any]:
	return {
		"area": log.area,
		"period": log.period,
		"courseNo": log.course_no,
		"remarks": log.remarks,
	}


def new_instruction_log_fields(apprentice_id: str) -> Dict[str, Any]:
	fields = {FK_APPRENTICE: apprentice_id}
	fields.update(instruction_log_fields(InstructionLog()))
	return fields


def log_entry_fields(entry: LogEntry) -> Dict[str, Any]:
	return {
		"date": entry.date,
		"minutes": entry.minutes,
		"mentor": entry.mentor,
		"situation": entry.situation,
	}


def new_log_entry_fields(instruction_log_id: str, entry: LogEntry) -> Dict[str, Any]:
	fields = {FK_INSTRUCTION_LOG: instruction_log_id}
	fields.update(log_entry_fields(entry))
	return fields
