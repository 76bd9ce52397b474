"""Shared fixtures for the PAL Tracker tests."""

import copy
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pytest

# Import the library directly, without Home Assistant, and the integration as a package
_COMPONENTS = Path(__file__).resolve().parents[1] / "custom_components"
sys.path.insert(0, str(_COMPONENTS / "pal_tracker"))
sys.path.insert(1, str(_COMPONENTS))

from paltracker.exceptions import RemoteApplicationError  # noqa: E402
from paltracker.models import LogEntry, Student, WorkOrder  # noqa: E402
from paltracker.schema import COLLECTIONS  # noqa: E402
from paltracker.utils import new_provisional_id, normalize_id  # noqa: E402


class FakeBackend:
	"""In-memory stand-in for the collection client.

	Rows are stored the way a spreadsheet backend returns them: numeric ids
	and foreign keys as given by the writer. Every call is recorded in
	``calls`` as ``(action, collection)``.
	"""

	def __init__(self) -> None:
		self.tables: Dict[str, List[Dict[str, Any]]] = {name: [] for name in COLLECTIONS}
		self.calls: List[Tuple[str, str]] = []
		self.failures: Dict[Tuple[str, str], Exception] = {}
		self.ignore_filters = False
		self._next_id = 100

	def fail(self, action: str, collection: str, error: Optional[Exception] = None) -> None:
		self.failures[(action, collection)] = error or RemoteApplicationError(f"{action} {collection} refused")

	def recover(self) -> None:
		self.failures.clear()

	def add_row(self, collection: str, **fields: Any) -> str:
		row_id = self._new_id()
		self.tables[collection].append({"id": row_id, **fields})
		return str(row_id)

	def rows(self, collection: str) -> List[Dict[str, Any]]:
		return self.tables[collection]

	def row(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
		for row in self.tables[collection]:
			if normalize_id(row.get("id")) == record_id:
				return row
		return None

	def writes(self) -> List[Tuple[str, str]]:
		return [call for call in self.calls if call[0] != "list"]

	def reset_calls(self) -> None:
		self.calls.clear()

	async def async_list(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
		self._record("list", collection)
		rows = self.tables[collection]
		if filters and not self.ignore_filters:
			rows = [
				row for row in rows
				if all(str(row.get(key)) == str(value) for key, value in filters.items())
			]
		return copy.deepcopy(rows)

	async def async_create(self, collection: str, fields: Dict[str, Any]) -> str:
		self._record("create", collection)
		row_id = self._new_id()
		self.tables[collection].append({"id": row_id, **copy.deepcopy(fields)})
		return str(row_id)

	async def async_update(self, collection: str, record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
		self._record("update", collection)
		row = self.row(collection, record_id)
		if row is None:
			raise RemoteApplicationError(f"Row {record_id} not found in {collection}")
		row.update(copy.deepcopy(fields))
		return {"success": True}

	async def async_delete(self, collection: str, record_id: str) -> Dict[str, Any]:
		self._record("delete", collection)
		self.tables[collection] = [
			row for row in self.tables[collection] if normalize_id(row.get("id")) != record_id
		]
		return {"success": True}

	async def async_bulk_delete(self, collection: str, ids: Iterable[str]) -> Dict[str, Any]:
		self._record("bulkDelete", collection)
		doomed = set(ids)
		self.tables[collection] = [
			row for row in self.tables[collection] if normalize_id(row.get("id")) not in doomed
		]
		return {"success": True, "deleted": len(doomed)}

	def _record(self, action: str, collection: str) -> None:
		self.calls.append((action, collection))
		error = self.failures.get((action, collection))
		if error is not None:
			raise error

	def _new_id(self) -> int:
		self._next_id += 1
		return self._next_id


class StatusRecorder:
	"""Collects reported sync statuses."""

	def __init__(self) -> None:
		self.statuses: List[str] = []

	def __call__(self, status: str) -> None:
		self.statuses.append(status)

	@property
	def last(self) -> Optional[str]:
		return self.statuses[-1] if self.statuses else None


def make_student(
	first_name: str = "Anna",
	last_name: str = "Berger",
	work_orders: Iterable[str] = (),
	entries: Iterable[Tuple[str, int]] = (),
	**kwargs: Any,
) -> Student:
	"""Build an unsynced student with optional work orders and log entries."""
	student = Student(
		id=kwargs.pop("id", None) or new_provisional_id(),
		first_name=first_name,
		last_name=last_name,
		deployment_start=kwargs.pop("deployment_start", "2024-03-04"),
		deployment_end=kwargs.pop("deployment_end", "2024-03-18"),
		**kwargs,
	)
	student.work_orders = [WorkOrder(task=task, assigned_date="2024-03-05") for task in work_orders]
	student.instruction_log.entries = [
		LogEntry(date=entry_date, minutes=minutes, mentor="Mentor") for entry_date, minutes in entries
	]
	return student


@pytest.fixture
def backend() -> FakeBackend:
	return FakeBackend()


@pytest.fixture
def status_recorder() -> StatusRecorder:
	return StatusRecorder()
