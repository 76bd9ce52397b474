"""Instruction-time requirement for a deployment."""

import math
from dataclasses import dataclass
from typing import Any

from .models import Student
from .utils import parse_date

# 15 % of working time per apprentice and deployment
WEEKLY_INSTRUCTION_HOURS = 5.7


@dataclass(frozen=True)
class InstructionSummary:
	"""Logged instruction time measured against the deployment requirement."""
	total_minutes: int
	weeks: int
	required_minutes: int

	@property
	def total_hours(self) -> float:
		return round(self.total_minutes / 60, 1)

	@property
	def required_hours(self) -> float:
		return round(self.weeks * WEEKLY_INSTRUCTION_HOURS, 1)

	@property
	def requirement_met(self) -> bool:
		return self.total_minutes >= self.required_minutes

	@property
	def progress_percent(self) -> int:
		if not self.required_minutes:
			return 100
		return min(100, round(self.total_minutes / self.required_minutes * 100))

	@property
	def missing_hours(self) -> float:
		return max(0.0, round(self.required_hours - self.total_hours, 1))


def deployment_weeks(start: Any, end: Any) -> int:
	"""Number of started weeks between two dates, at least one."""
	start_date = parse_date(start)
	end_date = parse_date(end)
	if start_date is None or end_date is None:
		return 1
	days = abs((end_date - start_date).days)
	return max(1, math.ceil(days / 7))


def required_minutes(weeks: int) -> int:
	return round(weeks * WEEKLY_INSTRUCTION_HOURS * 60)


def summarize(student: Student) -> InstructionSummary:
	"""Compute the instruction-time summary of a student."""
	weeks = deployment_weeks(student.deployment_start, student.deployment_end)
	return InstructionSummary(
		total_minutes=student.instruction_log.total_minutes,
		weeks=weeks,
		required_minutes=required_minutes(weeks),
	)


def default_period(start: Any, end: Any) -> str:
	"""Period label "dd.mm.yy - dd.mm.yy" used to pre-fill an empty log."""
	start_date = parse_date(start)
	end_date = parse_date(end)
	if start_date is None or end_date is None:
		return ""
	return f"{start_date.strftime('%d.%m.%y')} - {end_date.strftime('%d.%m.%y')}"
