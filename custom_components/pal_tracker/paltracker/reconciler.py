"""Push local student aggregates to the remote collections."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar, Union

from .client import RemoteCollectionClient
from .exceptions import ReconciliationError, RemoteError
from .models import INTERVIEW_TYPES, Interview, LogEntry, Student, WorkOrder
from .schema import (
	COLLECTION_APPRENTICES,
	COLLECTION_INSTRUCTION_LOGS,
	COLLECTION_INTERVIEWS,
	COLLECTION_LOG_ENTRIES,
	COLLECTION_WORK_ORDERS,
	FK_APPRENTICE,
	FK_INSTRUCTION_LOG,
	archive_fields,
	instruction_log_fields,
	interview_fields,
	log_entry_fields,
	new_apprentice_fields,
	new_instruction_log_fields,
	new_interview_fields,
	new_log_entry_fields,
	new_work_order_fields,
	profile_fields,
	work_order_update_fields,
)
from .status import (
	SYNC_STATUS_ERROR,
	SYNC_STATUS_SYNCED,
	SYNC_STATUS_SYNCING,
	StatusCallback,
	report_status,
)
from .utils import normalize_id

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")
ChildRecord = Union[WorkOrder, LogEntry]


@dataclass
class SaveResult:
	"""Remote writes issued by one save."""
	created: int = 0
	updated: int = 0
	deleted: List[str] = field(default_factory=list)


class StudentReconciler:
	"""Converge the remote collections with a local Student aggregate.

	Child records are matched exclusively by their remote id. Records without
	one are created and the returned id is stamped back onto the aggregate;
	records with one are updated. Records removed locally are found by
	listing the parent's remote children after all creates and updates and
	deleting the ids no longer present locally.
	"""

	def __init__(self, client: RemoteCollectionClient, on_sync_status: Optional[StatusCallback] = None) -> None:
		self.client = client
		self.on_sync_status = on_sync_status

	async def async_create_student(self, student: Student) -> str:
		"""Create the apprentice row plus its empty interview and log rows.

		The assigned apprentice id becomes the student's id. Rows created
		before a failing step are left in place.
		"""
		apprentice_id = await self._call(
			"create apprentice",
			self.client.async_create(COLLECTION_APPRENTICES, new_apprentice_fields(student)),
		)
		student.remote_id = apprentice_id
		student.id = apprentice_id
		_LOGGER.info(f"Created apprentice {apprentice_id} for {student.full_name}")

		results = await asyncio.gather(
			*(
				self.client.async_create(
					COLLECTION_INTERVIEWS,
					new_interview_fields(apprentice_id, Interview(type=interview_type)),
				)
				for interview_type in INTERVIEW_TYPES
			),
			return_exceptions=True,
		)
		failure: Optional[BaseException] = None
		for interview_type, result in zip(INTERVIEW_TYPES, results):
			if isinstance(result, BaseException):
				failure = failure or result
				continue
			student.interviews[interview_type].remote_id = result
		if failure is not None:
			if isinstance(failure, RemoteError):
				raise ReconciliationError("create interviews", str(failure)) from failure
			raise failure

		student.instruction_log.remote_id = await self._call(
			"create instruction log",
			self.client.async_create(COLLECTION_INSTRUCTION_LOGS, new_instruction_log_fields(apprentice_id)),
		)
		return apprentice_id

	async def async_save_student(self, student: Student) -> Optional[SaveResult]:
		"""Write every part of the student to the backend.

		Safe to repeat: a second save of an unchanged student only issues
		updates. Returns None when the student does not exist remotely yet.
		"""
		if student.remote_id is None:
			_LOGGER.debug(f"Student {student.id} has no remote id yet, nothing to save")
			return None

		report_status(self.on_sync_status, SYNC_STATUS_SYNCING)
		try:
			result = await self._save(student)
		except ReconciliationError as err:
			_LOGGER.warning(f"Saving student {student.id} failed at step '{err.step}': {err}")
			report_status(self.on_sync_status, SYNC_STATUS_ERROR)
			raise

		_LOGGER.debug(
			f"Saved student {student.id}: {result.created} created, {result.updated} updated, "
			f"{len(result.deleted)} deleted"
		)
		report_status(self.on_sync_status, SYNC_STATUS_SYNCED)
		return result

	async def async_delete_student(self, student: Student) -> bool:
		"""Archive the apprentice row; child rows are left untouched.

		Returns False when the student never existed remotely.
		"""
		if student.remote_id is None:
			return False
		await self._call(
			"archive apprentice",
			self.client.async_update(COLLECTION_APPRENTICES, student.remote_id, archive_fields()),
		)
		_LOGGER.info(f"Archived apprentice {student.remote_id}")
		return True

	async def _save(self, student: Student) -> SaveResult:
		result = SaveResult()
		apprentice_id = student.remote_id

		await self._call(
			"update apprentice",
			self.client.async_update(COLLECTION_APPRENTICES, apprentice_id, profile_fields(student)),
		)
		result.updated += 1

		for interview_type in INTERVIEW_TYPES:
			interview = student.interviews[interview_type]
			if interview.remote_id is not None:
				await self._call(
					f"update {interview_type} interview",
					self.client.async_update(COLLECTION_INTERVIEWS, interview.remote_id, interview_fields(interview)),
				)
				result.updated += 1
			else:
				interview.remote_id = await self._call(
					f"create {interview_type} interview",
					self.client.async_create(COLLECTION_INTERVIEWS, new_interview_fields(apprentice_id, interview)),
				)
				result.created += 1

		await self._sync_children(
			result,
			label="work order",
			collection=COLLECTION_WORK_ORDERS,
			foreign_key=FK_APPRENTICE,
			parent_id=apprentice_id,
			items=student.work_orders,
			create_fields=lambda order: new_work_order_fields(apprentice_id, order),
			update_fields=work_order_update_fields,
		)

		log = student.instruction_log
		if log.remote_id is None:
			# The log row is only ever created together with the apprentice
			_LOGGER.warning(f"Student {student.id} has no remote instruction log, skipping {len(log.entries)} log entries")
			return result

		log_id = log.remote_id
		await self._call(
			"update instruction log",
			self.client.async_update(COLLECTION_INSTRUCTION_LOGS, log_id, instruction_log_fields(log)),
		)
		result.updated += 1

		await self._sync_children(
			result,
			label="log entry",
			collection=COLLECTION_LOG_ENTRIES,
			foreign_key=FK_INSTRUCTION_LOG,
			parent_id=log_id,
			items=log.entries,
			create_fields=lambda entry: new_log_entry_fields(log_id, entry),
			update_fields=log_entry_fields,
		)
		return result

	async def _sync_children(
		self,
		result: SaveResult,
		label: str,
		collection: str,
		foreign_key: str,
		parent_id: str,
		items: Sequence[ChildRecord],
		create_fields: Callable[[Any], Dict[str, Any]],
		update_fields: Callable[[Any], Dict[str, Any]],
	) -> None:
		"""Create, update and diff-delete one child collection of a parent."""
		for item in items:
			if item.remote_id is None:
				item.remote_id = await self._call(
					f"create {label}",
					self.client.async_create(collection, create_fields(item)),
				)
				result.created += 1
			else:
				await self._call(
					f"update {label}",
					self.client.async_update(collection, item.remote_id, update_fields(item)),
				)
				result.updated += 1

		# Listing must follow every create above so fresh ids are not deleted
		rows = await self._call(
			f"list {label}s",
			self.client.async_list(collection, {foreign_key: parent_id}),
		)
		local_ids = {item.remote_id for item in items}
		stale: List[str] = []
		for row in rows:
			# Only rows of this parent, even if the backend ignored the filter
			if normalize_id(row.get(foreign_key)) != parent_id:
				continue
			row_id = normalize_id(row.get("id"))
			if row_id is not None and row_id not in local_ids and row_id not in stale:
				stale.append(row_id)

		if stale:
			await self._call(f"delete {label}s", self.client.async_bulk_delete(collection, stale))
			result.deleted.extend(stale)
			_LOGGER.debug(f"Deleted {len(stale)} {label}s of {parent_id} removed locally")

	@staticmethod
	async def _call(step: str, awaitable: Awaitable[T]) -> T:
		try:
			return await awaitable
		except RemoteError as err:
			raise ReconciliationError(step, str(err)) from err
