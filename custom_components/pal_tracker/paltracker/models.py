"""Data models for PAL Tracker entities."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from .utils import new_provisional_id, normalize_id, parse_bool, parse_int, parse_text

INTERVIEW_INTRO = "intro"
INTERVIEW_INTERIM = "interim"
INTERVIEW_FINAL = "final"
INTERVIEW_TYPES = (INTERVIEW_INTRO, INTERVIEW_INTERIM, INTERVIEW_FINAL)

DEFAULT_COLOR = "#3b82f6"
DEFAULT_YEAR = 1
DEFAULT_AREA = "MIN-148 Pulmologie u. Infektiologie"


@dataclass
class Interview:
	"""One of the three milestone interviews of a deployment."""
	type: str
	remote_id: Optional[str] = None
	done: bool = False
	conducted_date: str = ""
	planned_date: str = ""
	mentor: str = ""
	notes: str = ""

	@property
	def auto_done(self) -> bool:
		"""An interview with a date and a mentor counts as conducted."""
		return bool(self.conducted_date) and bool(self.mentor)

	@classmethod
	def from_dict(cls, interview_type: str, data: Dict[str, Any]) -> "Interview":
		planned = parse_text(data.get("planned_date"))
		return cls(
			type=interview_type,
			remote_id=normalize_id(data.get("remote_id")),
			done=parse_bool(data.get("done")),
			conducted_date=parse_text(data.get("conducted_date")),
			planned_date="" if interview_type == INTERVIEW_INTRO else planned,
			mentor=parse_text(data.get("mentor")),
			notes=parse_text(data.get("notes")),
		)


def default_interviews() -> Dict[str, Interview]:
	"""Return the three empty interview slots."""
	return {interview_type: Interview(type=interview_type) for interview_type in INTERVIEW_TYPES}


@dataclass
class WorkOrder:
	"""A task assigned to an apprentice."""
	task: str
	remote_id: Optional[str] = None
	done: bool = False
	assigned_date: str = ""
	notes: str = ""

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "WorkOrder":
		return cls(
			task=parse_text(data.get("task")),
			remote_id=normalize_id(data.get("remote_id")),
			done=parse_bool(data.get("done")),
			assigned_date=parse_text(data.get("assigned_date")),
			notes=parse_text(data.get("notes")),
		)


@dataclass
class LogEntry:
	"""A single instruction session in the instruction log."""
	date: str = ""
	minutes: int = 0
	mentor: str = ""
	situation: str = ""
	remote_id: Optional[str] = None

	@property
	def is_blank(self) -> bool:
		return not self.date and not self.minutes and not self.mentor and not self.situation

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "LogEntry":
		return cls(
			date=parse_text(data.get("date")),
			minutes=parse_int(data.get("minutes"), minimum=0),
			mentor=parse_text(data.get("mentor")),
			situation=parse_text(data.get("situation")),
			remote_id=normalize_id(data.get("remote_id")),
		)


@dataclass
class InstructionLog:
	"""The monthly instruction-time record of a student."""
	remote_id: Optional[str] = None
	area: str = DEFAULT_AREA
	period: str = ""
	course_no: str = ""
	remarks: str = ""
	entries: List[LogEntry] = field(default_factory=list)

	@property
	def total_minutes(self) -> int:
		return sum(entry.minutes for entry in self.entries)

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "InstructionLog":
		return cls(
			remote_id=normalize_id(data.get("remote_id")),
			area=parse_text(data.get("area"), DEFAULT_AREA),
			period=parse_text(data.get("period")),
			course_no=parse_text(data.get("course_no")),
			remarks=parse_text(data.get("remarks")),
			entries=[LogEntry.from_dict(entry) for entry in data.get("entries") or []],
		)


@dataclass
class Student:
	"""Denormalised aggregate of one apprentice and all related records."""
	id: str
	first_name: str = ""
	last_name: str = ""
	color: str = DEFAULT_COLOR
	year: int = DEFAULT_YEAR
	deployment_start: str = ""
	deployment_end: str = ""
	remote_id: Optional[str] = None
	interviews: Dict[str, Interview] = field(default_factory=default_interviews)
	work_orders: List[WorkOrder] = field(default_factory=list)
	instruction_log: InstructionLog = field(default_factory=InstructionLog)

	@property
	def full_name(self) -> str:
		return f"{self.first_name} {self.last_name}".strip()

	@property
	def initials(self) -> str:
		return f"{self.first_name[:1]}{self.last_name[:1]}".upper()

	@property
	def is_synced(self) -> bool:
		"""Whether the apprentice row exists remotely."""
		return self.remote_id is not None

	@property
	def work_order_progress(self) -> Dict[str, int]:
		"""Completed/total work orders and the rounded percentage."""
		total = len(self.work_orders)
		completed = sum(1 for order in self.work_orders if order.done)
		percent = round(completed / total * 100) if total else 0
		return {"completed": completed, "total": total, "percent": percent}

	@property
	def interviews_done(self) -> int:
		return sum(1 for interview in self.interviews.values() if interview.done)

	def __str__(self) -> str:
		return f"{self.full_name} (year {self.year})"

	def to_dict(self) -> Dict[str, Any]:
		return asdict(self)

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "Student":
		"""Build a student from its cached snapshot form."""
		raw_interviews = data.get("interviews") or {}
		interviews = {
			interview_type: Interview.from_dict(interview_type, raw_interviews.get(interview_type) or {})
			for interview_type in INTERVIEW_TYPES
		}
		return cls(
			id=parse_text(data.get("id")) or new_provisional_id(),
			first_name=parse_text(data.get("first_name")),
			last_name=parse_text(data.get("last_name")),
			color=parse_text(data.get("color"), DEFAULT_COLOR),
			year=parse_int(data.get("year"), default=DEFAULT_YEAR, minimum=1),
			deployment_start=parse_text(data.get("deployment_start")),
			deployment_end=parse_text(data.get("deployment_end")),
			remote_id=normalize_id(data.get("remote_id")),
			interviews=interviews,
			work_orders=[WorkOrder.from_dict(order) for order in data.get("work_orders") or []],
			instruction_log=InstructionLog.from_dict(data.get("instruction_log") or {}),
		)
