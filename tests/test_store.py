"""Tests for the student store and its mutations."""

from datetime import date

import pytest

from paltracker.assembler import StudentAssembler
from paltracker.cache import STORAGE_KEY, MemoryCache
from paltracker.exceptions import PalTrackerError, UnknownStudentError
from paltracker.migrations import CURRENT_VERSION
from paltracker.models import LogEntry
from paltracker.reconciler import StudentReconciler
from paltracker.store import StudentStore
from paltracker.utils import is_provisional_id

from conftest import make_student


def _offline_store(cache=None, status=None) -> StudentStore:
	return StudentStore(cache or MemoryCache(), on_sync_status=status)


def _remote_store(backend, cache=None, status=None) -> StudentStore:
	return StudentStore(cache or MemoryCache(), StudentReconciler(backend), on_sync_status=status)


async def _add_anna(store: StudentStore):
	return await store.async_add_student("Anna", "Berger", "2024-03-04", "2024-03-18", year=2)


async def test_offline_store_reports_offline_and_keeps_provisional_ids(status_recorder):
	cache = MemoryCache()
	store = _offline_store(cache, status_recorder)

	assert await store.async_load() is False
	student = await _add_anna(store)

	assert status_recorder.statuses == ["offline"]
	assert is_provisional_id(student.id)
	assert student.remote_id is None
	assert cache.data[STORAGE_KEY]["students"][0]["first_name"] == "Anna"


@pytest.mark.parametrize(
	"args",
	[
		("", "Berger", "2024-03-04", "2024-03-18"),
		("Anna", "  ", "2024-03-04", "2024-03-18"),
		("Anna", "Berger", "", "2024-03-18"),
		("Anna", "Berger", "04.03.2024", "2024-03-18"),
	],
)
async def test_add_student_requires_names_and_dates(args):
	store = _offline_store()

	with pytest.raises(ValueError):
		await store.async_add_student(*args)
	assert store.students == []


async def test_cache_round_trip_restores_selection_and_date():
	cache = MemoryCache()
	store = _offline_store(cache)
	student = await _add_anna(store)
	store.select(student.id)
	store.set_current_date(date(2024, 3, 10))

	restored = _offline_store(cache)
	assert await restored.async_load() is True

	assert restored.students == store.students
	assert restored.selected_id == student.id
	assert restored.current_date == date(2024, 3, 10)


async def test_select_unknown_student_raises():
	store = _offline_store()

	with pytest.raises(UnknownStudentError):
		store.select("nobody")


async def test_replace_students_keeps_selection_only_if_present():
	store = _offline_store()
	anna = make_student(id="11", remote_id="11")
	ben = make_student("Ben", "Weber", id="12", remote_id="12")
	store.replace_students([anna, ben])
	store.select(anna.id)

	store.replace_students([anna, ben])
	assert store.selected_id == anna.id

	store.replace_students([ben])
	assert store.selected_id is None


async def test_interview_with_date_and_mentor_is_done():
	store = _offline_store()
	student = await _add_anna(store)

	await store.async_update_interview(student.id, "interim", conducted_date="2024-03-11", mentor="Dr. Kurz", done=False)
	await store.async_update_interview(student.id, "intro", planned_date="2024-03-05")

	assert student.interviews["interim"].done is True
	assert student.interviews["intro"].done is False
	assert student.interviews["intro"].planned_date == ""

	await store.async_update_interview(student.id, "final", done=True)
	assert student.interviews["final"].done is True

	with pytest.raises(ValueError):
		await store.async_update_interview(student.id, "exit")


async def test_work_order_lifecycle():
	store = _offline_store()
	student = await _add_anna(store)

	await store.async_add_work_order(student.id, "Blood gas analysis")
	await store.async_add_work_order(student.id, "Inhaler training", "2024-03-06")
	await store.async_update_work_order(student.id, 0, done=True, notes="Well done")

	assert student.work_orders[0].assigned_date == date.today().isoformat()
	assert student.work_order_progress == {"completed": 1, "total": 2, "percent": 50}

	await store.async_remove_work_order(student.id, 0)
	assert [order.task for order in student.work_orders] == ["Inhaler training"]

	with pytest.raises(IndexError):
		await store.async_update_work_order(student.id, 5, done=True)
	with pytest.raises(ValueError):
		await store.async_add_work_order(student.id, "   ")


async def test_log_entries_and_summary():
	store = _offline_store()
	student = await _add_anna(store)

	await store.async_update_instruction_log(student.id, period="04.03.24 - 18.03.24", course_no="K1")
	await store.async_add_log_entry(student.id, "2024-03-06", 105, mentor="Dr. Kurz")
	await store.async_add_log_entry(student.id, "2024-03-05", "90", mentor="Dr. Kurz")

	summary = store.summary(student.id)
	assert summary.total_minutes == 195
	assert summary.required_minutes == 684
	assert student.instruction_log.course_no == "K1"

	with pytest.raises(ValueError):
		await store.async_add_log_entry(student.id, "2024-03-07", -5)

	await store.async_remove_log_entry(student.id, 0)
	assert [entry.minutes for entry in student.instruction_log.entries] == [90]


async def test_replace_log_entries_drops_blank_rows_and_sorts():
	store = _offline_store()
	student = await _add_anna(store)

	await store.async_replace_log_entries(student.id, [
		LogEntry(date="2024-03-08", minutes=30),
		LogEntry(),
		LogEntry(date="2024-03-05", minutes=45, mentor="Dr. Kurz"),
	])

	assert [entry.date for entry in student.instruction_log.entries] == ["2024-03-05", "2024-03-08"]

	with pytest.raises(ValueError):
		await store.async_replace_log_entries(student.id, [LogEntry(date="2024-03-05", minutes=-1)])


async def test_unknown_profile_field_is_rejected():
	store = _offline_store()
	student = await _add_anna(store)

	with pytest.raises(ValueError):
		await store.async_update_profile(student.id, nickname="Annie")


async def test_remote_add_student_uses_backend_id(backend):
	cache = MemoryCache()
	store = _remote_store(backend, cache)

	student = await _add_anna(store)

	assert student.id == student.remote_id
	assert backend.row("apprentices", student.remote_id)["year"] == 2
	cached = cache.data[STORAGE_KEY]["students"][0]
	assert cached["remote_id"] == student.remote_id
	assert cached["interviews"]["intro"]["remote_id"] == student.interviews["intro"].remote_id


async def test_mutations_converge_with_the_backend(backend):
	store = _remote_store(backend)
	student = await _add_anna(store)

	await store.async_add_work_order(student.id, "ECG", "2024-03-05")
	await store.async_add_log_entry(student.id, "2024-03-05", 60, mentor="Dr. Kurz")
	await store.async_update_profile(student.id, last_name="Berger-Kurz")

	assert await StudentAssembler(backend).async_assemble() == store.students


async def test_failed_background_save_keeps_local_change(backend, status_recorder):
	cache = MemoryCache()
	store = _remote_store(backend, cache, status_recorder)
	store.reconciler.on_sync_status = status_recorder
	student = await _add_anna(store)
	backend.fail("create", "workOrders")

	await store.async_add_work_order(student.id, "ECG", "2024-03-05")

	assert [order.task for order in student.work_orders] == ["ECG"]
	assert cache.data[STORAGE_KEY]["students"][0]["work_orders"][0]["task"] == "ECG"
	assert status_recorder.last == "error"
	assert backend.rows("workOrders") == []

	backend.recover()
	await store.async_update_work_order(student.id, 0, done=True)

	assert backend.rows("workOrders")[0]["done"] is True
	assert status_recorder.last == "synced"


async def test_failed_remote_create_is_retried_on_next_mutation(backend, status_recorder):
	store = _remote_store(backend, status=status_recorder)
	backend.fail("create", "apprentices")

	student = await _add_anna(store)
	assert student.remote_id is None
	assert status_recorder.last == "error"

	backend.recover()
	await store.async_add_work_order(student.id, "ECG", "2024-03-05")

	assert student.remote_id is not None
	assert len(backend.rows("apprentices")) == 1
	assert len(backend.rows("workOrders")) == 1


async def test_selection_follows_the_remote_id(backend):
	store = _remote_store(backend)
	backend.fail("create", "apprentices")
	student = await _add_anna(store)
	store.select(student.id)

	backend.recover()
	await store.async_add_work_order(student.id, "ECG")

	assert store.selected_id == student.remote_id


async def test_delete_student_archives_remotely(backend):
	store = _remote_store(backend)
	student = await _add_anna(store)
	store.select(student.id)

	await store.async_delete_student(student.id)

	assert store.students == []
	assert store.selected_id is None
	assert backend.row("apprentices", student.remote_id)["status"] == "archived"


async def test_import_pushes_only_unsynced_students(backend):
	cache = MemoryCache()
	offline = _offline_store(cache)
	await _add_anna(offline)
	await offline.async_add_student("Ben", "Weber", "2024-03-04", "2024-03-18")
	await offline.async_add_work_order(offline.students[1].id, "ECG", "2024-03-05")

	store = _remote_store(backend, cache)
	await store.async_load()
	imported, skipped = await store.async_import_to_remote()

	assert (imported, skipped) == (2, 0)
	assert all(student.is_synced for student in store.students)
	assert len(backend.rows("workOrders")) == 1

	assert await store.async_import_to_remote() == (0, 0)


async def test_import_counts_failures_as_skipped(backend):
	cache = MemoryCache()
	offline = _offline_store(cache)
	await _add_anna(offline)

	store = _remote_store(backend, cache)
	await store.async_load()
	backend.fail("create", "apprentices")

	assert await store.async_import_to_remote() == (0, 1)
	assert store.students[0].remote_id is None


async def test_import_requires_a_backend():
	with pytest.raises(PalTrackerError):
		await _offline_store().async_import_to_remote()


async def test_newer_cached_snapshot_starts_empty(caplog):
	cache = MemoryCache({STORAGE_KEY: {"version": CURRENT_VERSION + 1, "students": [{"id": "s1"}]}})
	store = _offline_store(cache)

	assert await store.async_load() is False
	assert store.students == []
	assert "Ignoring cached snapshot" in caplog.text


async def test_poll_keeps_student_whose_remote_create_failed(backend):
	cache = MemoryCache()
	store = _remote_store(backend, cache)
	backend.fail("create", "apprentices")
	student = await _add_anna(store)
	backend.recover()

	store.replace_students(await StudentAssembler(backend).async_assemble())

	assert store.find(student.id) is student
	assert cache.data[STORAGE_KEY]["students"][0]["id"] == student.id
	assert await store.async_import_to_remote() == (1, 0)
	assert len(backend.rows("apprentices")) == 1


async def test_empty_backend_does_not_drop_cached_history(backend):
	cache = MemoryCache()
	offline = _offline_store(cache)
	await _add_anna(offline)
	synced_id = backend.add_row(
		"apprentices", firstName="Ben", lastName="Weber", status="active",
		deploymentStart="2024-03-04", deploymentEnd="2024-03-18", year=1,
	)

	store = _remote_store(backend, cache)
	await store.async_load()
	store.replace_students(await StudentAssembler(backend).async_assemble())

	assert [student.id for student in store.students][0] == synced_id
	assert len(store.students) == 2
	assert await store.async_import_to_remote() == (1, 0)
	assert len(backend.rows("apprentices")) == 2
