"""Build student aggregates from the remote collections."""

import asyncio
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from .client import RemoteCollectionClient
from .exceptions import AssemblyError, RemoteError
from .models import INTERVIEW_TYPES, InstructionLog, Interview, Student
from .schema import (
	COLLECTION_APPRENTICES,
	COLLECTION_INSTRUCTION_LOGS,
	COLLECTION_INTERVIEWS,
	COLLECTION_LOG_ENTRIES,
	COLLECTION_WORK_ORDERS,
	ApprenticeRow,
	InstructionLogRow,
	InterviewRow,
	LogEntryRow,
	WorkOrderRow,
)
from .status import (
	SYNC_STATUS_ERROR,
	SYNC_STATUS_SYNCED,
	SYNC_STATUS_SYNCING,
	StatusCallback,
	report_status,
)

_LOGGER = logging.getLogger(__name__)

_LOAD_ORDER = (
	COLLECTION_APPRENTICES,
	COLLECTION_INTERVIEWS,
	COLLECTION_WORK_ORDERS,
	COLLECTION_INSTRUCTION_LOGS,
	COLLECTION_LOG_ENTRIES,
)


class StudentAssembler:
	"""Read all five collections and fold them into Student aggregates."""

	def __init__(self, client: RemoteCollectionClient, on_sync_status: Optional[StatusCallback] = None) -> None:
		self.client = client
		self.on_sync_status = on_sync_status

	async def async_assemble(self) -> List[Student]:
		"""Load every active student with all related records.

		The five listings run concurrently. If any of them fails the whole
		load fails; a student without its interview rows would be
		indistinguishable from one whose interviews were never created.
		"""
		report_status(self.on_sync_status, SYNC_STATUS_SYNCING)

		results = await asyncio.gather(
			*(self.client.async_list(collection) for collection in _LOAD_ORDER),
			return_exceptions=True,
		)

		for collection, result in zip(_LOAD_ORDER, results):
			if isinstance(result, BaseException):
				report_status(self.on_sync_status, SYNC_STATUS_ERROR)
				if isinstance(result, RemoteError):
					_LOGGER.warning(f"Loading {collection} failed: {result}")
					raise AssemblyError(f"Loading {collection} failed: {result}") from result
				raise result

		apprentices, interviews, work_orders, logs, entries = results
		students = build_students(
			[ApprenticeRow.from_row(row) for row in apprentices],
			[InterviewRow.from_row(row) for row in interviews],
			[WorkOrderRow.from_row(row) for row in work_orders],
			[InstructionLogRow.from_row(row) for row in logs],
			[LogEntryRow.from_row(row) for row in entries],
		)

		_LOGGER.debug(f"Assembled {len(students)} active students from {len(apprentices)} apprentice rows")
		report_status(self.on_sync_status, SYNC_STATUS_SYNCED)
		return students


def build_students(
	apprentices: Sequence[ApprenticeRow],
	interviews: Sequence[InterviewRow],
	work_orders: Sequence[WorkOrderRow],
	logs: Sequence[InstructionLogRow],
	entries: Sequence[LogEntryRow],
) -> List[Student]:
	"""Join typed rows into one Student per active apprentice."""
	interviews_by_key: Dict[Tuple[str, str], InterviewRow] = {}
	for row in interviews:
		if row.apprentice_id is None:
			continue
		interviews_by_key.setdefault((row.apprentice_id, row.type), row)

	orders_by_apprentice: Dict[str, List[WorkOrderRow]] = {}
	for row in work_orders:
		if row.apprentice_id is not None:
			orders_by_apprentice.setdefault(row.apprentice_id, []).append(row)

	# First log wins; duplicates are a backend anomaly
	log_by_apprentice: Dict[str, InstructionLogRow] = {}
	for row in logs:
		if row.apprentice_id is not None:
			log_by_apprentice.setdefault(row.apprentice_id, row)

	entries_by_log: Dict[str, List[LogEntryRow]] = {}
	for row in entries:
		if row.instruction_log_id is not None:
			entries_by_log.setdefault(row.instruction_log_id, []).append(row)

	students: List[Student] = []
	for apprentice in apprentices:
		if not apprentice.is_active or apprentice.id is None:
			continue
		apprentice_id = apprentice.id

		slots: Dict[str, Interview] = {}
		for interview_type in INTERVIEW_TYPES:
			row = interviews_by_key.get((apprentice_id, interview_type))
			slots[interview_type] = row.to_model() if row else Interview(type=interview_type)

		log_row = log_by_apprentice.get(apprentice_id)
		if log_row is not None and log_row.id is not None:
			instruction_log = InstructionLog(
				remote_id=log_row.id,
				area=log_row.area,
				period=log_row.period,
				course_no=log_row.course_no,
				remarks=log_row.remarks,
				entries=[entry.to_model() for entry in entries_by_log.get(log_row.id, [])],
			)
		else:
			instruction_log = InstructionLog()

		students.append(Student(
			id=apprentice_id,
			remote_id=apprentice_id,
			first_name=apprentice.first_name,
			last_name=apprentice.last_name,
			color=apprentice.color,
			year=apprentice.year,
			deployment_start=apprentice.deployment_start,
			deployment_end=apprentice.deployment_end,
			interviews=slots,
			work_orders=[row.to_model() for row in orders_by_apprentice.get(apprentice_id, [])],
			instruction_log=instruction_log,
		))

	return students
