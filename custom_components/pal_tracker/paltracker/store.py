"""Owner of the in-memory student collection."""

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .cache import LocalCache
from .exceptions import PalTrackerError, SnapshotVersionError, SyncError, UnknownStudentError
from .hours import InstructionSummary, default_period, summarize
from .migrations import CURRENT_VERSION
from .models import (
	DEFAULT_COLOR,
	DEFAULT_YEAR,
	INTERVIEW_INTRO,
	INTERVIEW_TYPES,
	InstructionLog,
	Interview,
	LogEntry,
	Student,
	WorkOrder,
)
from .reconciler import StudentReconciler
from .status import SYNC_STATUS_ERROR, SYNC_STATUS_OFFLINE, StatusCallback, report_status
from .utils import is_provisional_id, new_provisional_id, parse_date

_LOGGER = logging.getLogger(__name__)

PROFILE_FIELDS = ("first_name", "last_name", "color", "year", "deployment_start", "deployment_end")
LOG_HEADER_FIELDS = ("area", "period", "course_no", "remarks")


class StudentStore:
	"""Single owner of the student collection, the selection and the calendar date.

	Every mutation writes the cache snapshot first and then, when a
	reconciler is configured, pushes the student to the backend. A failed
	push is logged and reported but never undoes the local change; the next
	save of the same student converges the backend.
	"""

	def __init__(
		self,
		cache: LocalCache,
		reconciler: Optional[StudentReconciler] = None,
		on_sync_status: Optional[StatusCallback] = None,
	) -> None:
		self.cache = cache
		self.reconciler = reconciler
		self.on_sync_status = on_sync_status
		self.students: List[Student] = []
		self.selected_id: Optional[str] = None
		self.current_date: date = date.today()

	@property
	def remote_enabled(self) -> bool:
		return self.reconciler is not None

	@property
	def selected(self) -> Optional[Student]:
		return self.find(self.selected_id) if self.selected_id else None

	async def async_load(self) -> bool:
		"""Restore the collection from the cache. Returns False if it was empty."""
		if not self.remote_enabled:
			report_status(self.on_sync_status, SYNC_STATUS_OFFLINE)

		try:
			snapshot = await self.cache.async_load()
		except SnapshotVersionError as err:
			_LOGGER.error(f"Ignoring cached snapshot: {err}")
			return False
		if snapshot is None:
			return False

		self.students = [Student.from_dict(data) for data in snapshot.get("students", [])]
		selected_id = snapshot.get("selectedId")
		self.selected_id = selected_id if self.find(selected_id) else None
		self.current_date = parse_date(snapshot.get("currentDate")) or date.today()
		_LOGGER.info(f"Loaded {len(self.students)} students from local cache")
		local_only = [student for student in self.students if is_provisional_id(student.id)]
		if local_only and self.remote_enabled:
			_LOGGER.warning(f"{len(local_only)} cached students exist only locally; import them to push them to the backend")
		return True

	def snapshot(self) -> Dict[str, Any]:
		return {
			"version": CURRENT_VERSION,
			"students": [student.to_dict() for student in self.students],
			"selectedId": self.selected_id,
			"currentDate": self.current_date.isoformat(),
		}

	def find(self, student_id: Optional[str]) -> Optional[Student]:
		for student in self.students:
			if student.id == student_id:
				return student
		return None

	def get(self, student_id: str) -> Student:
		student = self.find(student_id)
		if student is None:
			raise UnknownStudentError(f"Unknown student: {student_id}")
		return student

	def select(self, student_id: Optional[str]) -> Optional[Student]:
		student = self.get(student_id) if student_id else None
		self.selected_id = student_id
		self._persist()
		return student

	def set_current_date(self, value: date) -> None:
		self.current_date = value
		self._persist()

	def replace_students(self, students: Iterable[Student]) -> None:
		"""Adopt a freshly assembled collection, keeping the selection if possible.

		Students that only exist locally are not part of any remote listing;
		they are kept after the assembled ones until they are pushed.
		"""
		assembled = list(students)
		remote_ids = {student.id for student in assembled}
		local_only = [
			student for student in self.students
			if is_provisional_id(student.id) and student.id not in remote_ids
		]
		self.students = assembled + local_only
		if self.selected_id and self.find(self.selected_id) is None:
			self.selected_id = None
		self._persist()

	def summary(self, student_id: str) -> InstructionSummary:
		return summarize(self.get(student_id))

	async def async_add_student(
		self,
		first_name: str,
		last_name: str,
		deployment_start: str,
		deployment_end: str,
		year: int = DEFAULT_YEAR,
		color: str = DEFAULT_COLOR,
	) -> Student:
		"""Add a student and create it remotely when the backend is enabled."""
		first_name = (first_name or "").strip()
		last_name = (last_name or "").strip()
		if not first_name or not last_name or not deployment_start or not deployment_end:
			raise ValueError("First name, last name and deployment dates are required")
		if parse_date(deployment_start) is None or parse_date(deployment_end) is None:
			raise ValueError("Deployment dates must be ISO dates")
		if int(year) < 1:
			raise ValueError("Year must be at least 1")

		student = Student(
			id=new_provisional_id(),
			first_name=first_name,
			last_name=last_name,
			color=color or DEFAULT_COLOR,
			year=int(year),
			deployment_start=deployment_start,
			deployment_end=deployment_end,
			instruction_log=InstructionLog(period=default_period(deployment_start, deployment_end)),
		)
		self.students.append(student)
		return await self._async_commit(student)

	async def async_update_profile(self, student_id: str, **changes: Any) -> Student:
		student = self.get(student_id)
		unknown = set(changes) - set(PROFILE_FIELDS)
		if unknown:
			raise ValueError(f"Unknown profile fields: {', '.join(sorted(unknown))}")
		for name, value in changes.items():
			if value is None:
				continue
			if name == "year":
				value = int(value)
				if value < 1:
					raise ValueError("Year must be at least 1")
			setattr(student, name, value)
		return await self._async_commit(student)

	async def async_update_interview(
		self,
		student_id: str,
		interview_type: str,
		conducted_date: Optional[str] = None,
		planned_date: Optional[str] = None,
		mentor: Optional[str] = None,
		notes: Optional[str] = None,
		done: Optional[bool] = None,
	) -> Student:
		"""Edit one interview slot.

		An interview with a conducted date and a mentor is marked done even if
		the explicit flag is off.
		"""
		if interview_type not in INTERVIEW_TYPES:
			raise ValueError(f"Unknown interview type: {interview_type}")
		student = self.get(student_id)
		interview: Interview = student.interviews[interview_type]

		if conducted_date is not None:
			interview.conducted_date = conducted_date
		if planned_date is not None:
			interview.planned_date = planned_date
		if mentor is not None:
			interview.mentor = mentor
		if notes is not None:
			interview.notes = notes
		explicit_done = interview.done if done is None else bool(done)
		# TODO: decide whether an explicit "not done" should beat a date+mentor pair
		interview.done = interview.auto_done or explicit_done
		if interview_type == INTERVIEW_INTRO:
			interview.planned_date = ""
		return await self._async_commit(student)

	async def async_add_work_order(self, student_id: str, task: str, assigned_date: Optional[str] = None) -> Student:
		task = (task or "").strip()
		if not task:
			raise ValueError("Work order task must not be empty")
		student = self.get(student_id)
		student.work_orders.append(WorkOrder(
			task=task,
			assigned_date=assigned_date or date.today().isoformat(),
		))
		return await self._async_commit(student)

	async def async_update_work_order(
		self,
		student_id: str,
		index: int,
		done: Optional[bool] = None,
		notes: Optional[str] = None,
	) -> Student:
		student = self.get(student_id)
		order = self._item(student.work_orders, index, "work order")
		if done is not None:
			order.done = bool(done)
		if notes is not None:
			order.notes = notes
		return await self._async_commit(student)

	async def async_remove_work_order(self, student_id: str, index: int) -> Student:
		student = self.get(student_id)
		self._item(student.work_orders, index, "work order")
		del student.work_orders[index]
		return await self._async_commit(student)

	async def async_update_instruction_log(self, student_id: str, **changes: Any) -> Student:
		student = self.get(student_id)
		unknown = set(changes) - set(LOG_HEADER_FIELDS)
		if unknown:
			raise ValueError(f"Unknown instruction log fields: {', '.join(sorted(unknown))}")
		for name, value in changes.items():
			if value is not None:
				setattr(student.instruction_log, name, value)
		return await self._async_commit(student)

	async def async_add_log_entry(
		self,
		student_id: str,
		entry_date: str,
		minutes: int,
		mentor: str = "",
		situation: str = "",
	) -> Student:
		student = self.get(student_id)
		student.instruction_log.entries.append(self._new_entry(entry_date, minutes, mentor, situation))
		return await self._async_commit(student)

	async def async_replace_log_entries(self, student_id: str, entries: Iterable[LogEntry]) -> Student:
		"""Replace all log entries, dropping blank rows and ordering by date.

		Entries keep their remote ids; entries left out are deleted remotely
		on the next save.
		"""
		student = self.get(student_id)
		kept = []
		for entry in entries:
			if entry.minutes < 0:
				raise ValueError("Minutes must not be negative")
			if not entry.is_blank:
				kept.append(entry)
		kept.sort(key=lambda entry: entry.date)
		student.instruction_log.entries = kept
		return await self._async_commit(student)

	async def async_remove_log_entry(self, student_id: str, index: int) -> Student:
		student = self.get(student_id)
		self._item(student.instruction_log.entries, index, "log entry")
		del student.instruction_log.entries[index]
		return await self._async_commit(student)

	async def async_delete_student(self, student_id: str) -> Student:
		"""Remove a student locally and archive it remotely."""
		student = self.get(student_id)
		self.students.remove(student)
		if self.selected_id == student_id:
			self.selected_id = None
		self._persist()

		if self.remote_enabled:
			try:
				await self.reconciler.async_delete_student(student)
			except SyncError as err:
				_LOGGER.warning(f"Archiving student {student_id} remotely failed: {err}")
				report_status(self.on_sync_status, SYNC_STATUS_ERROR)
		return student

	async def async_import_to_remote(self) -> Tuple[int, int]:
		"""Push every cached student without a remote id to the backend.

		Returns the number of imported and skipped students.
		"""
		if not self.remote_enabled:
			raise PalTrackerError("Remote backend is not configured")

		imported = 0
		skipped = 0
		for student in [student for student in self.students if student.remote_id is None]:
			try:
				await self.reconciler.async_create_student(student)
				await self.reconciler.async_save_student(student)
			except SyncError as err:
				_LOGGER.warning(f"Import of {student.full_name} failed: {err}")
				skipped += 1
			else:
				imported += 1
			self._persist()

		_LOGGER.info(f"Import finished: {imported} imported, {skipped} skipped")
		return imported, skipped

	async def _async_commit(self, student: Student) -> Student:
		self._persist()
		if not self.remote_enabled:
			return student

		if student.remote_id is None:
			if not await self._async_create_remote(student):
				self._persist()
				return student
		try:
			await self.reconciler.async_save_student(student)
		except SyncError as err:
			_LOGGER.warning(f"Background save of {student.full_name} failed: {err}")
		# Remote ids stamped during the save must reach the cache
		self._persist()
		return student

	async def _async_create_remote(self, student: Student) -> bool:
		provisional_id = student.id
		try:
			await self.reconciler.async_create_student(student)
		except SyncError as err:
			_LOGGER.warning(f"Creating {student.full_name} remotely failed: {err}")
			report_status(self.on_sync_status, SYNC_STATUS_ERROR)
			return False
		finally:
			if self.selected_id == provisional_id:
				self.selected_id = student.id
		return True

	def _persist(self) -> None:
		self.cache.save(self.snapshot())

	@staticmethod
	def _new_entry(entry_date: str, minutes: Any, mentor: str, situation: str) -> LogEntry:
		minutes = int(minutes)
		if minutes < 0:
			raise ValueError("Minutes must not be negative")
		return LogEntry(date=entry_date or "", minutes=minutes, mentor=mentor or "", situation=situation or "")

	@staticmethod
	def _item(items: List[Any], index: int, label: str) -> Any:
		if not 0 <= index < len(items):
			raise IndexError(f"No {label} at index {index}")
		return items[index]
