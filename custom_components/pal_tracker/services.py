"""Service registration and handlers for the PAL Tracker integration."""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Any, Awaitable, Callable

import voluptuous as vol
from homeassistant.core import HomeAssistant, ServiceCall
from homeassistant.exceptions import HomeAssistantError
import homeassistant.helpers.config_validation as cv

from .const import (
	ATTR_INDEX,
	ATTR_INTERVIEW_TYPE,
	ATTR_STUDENT_ID,
	DOMAIN,
	SERVICE_ADD_LOG_ENTRY,
	SERVICE_ADD_STUDENT,
	SERVICE_ADD_WORK_ORDER,
	SERVICE_DELETE_STUDENT,
	SERVICE_IMPORT_LOCAL_DATA,
	SERVICE_REFRESH_DATA,
	SERVICE_REMOVE_LOG_ENTRY,
	SERVICE_REMOVE_WORK_ORDER,
	SERVICE_SELECT_STUDENT,
	SERVICE_UPDATE_INSTRUCTION_LOG,
	SERVICE_UPDATE_INTERVIEW,
	SERVICE_UPDATE_PROFILE,
	SERVICE_UPDATE_WORK_ORDER,
)
from .coordinator import PalTrackerDataUpdateCoordinator
from .paltracker.exceptions import PalTrackerError
from .paltracker.models import INTERVIEW_TYPES
from .paltracker.store import StudentStore

_LOGGER = logging.getLogger(__name__)

CoordinatorAction = Callable[[str, PalTrackerDataUpdateCoordinator, ServiceCall], Awaitable[None]]
StoreAction = Callable[[StudentStore, dict], Awaitable[Any]]

_SERVICES_REGISTERED = False


def _build_schema(extra: dict) -> vol.Schema:
	"""Helper to build schemas with shared optional fields."""
	fields: dict = {vol.Optional("config_entry_id"): str}
	fields.update(extra)
	return vol.Schema(fields)


def _student_schema(extra: dict) -> vol.Schema:
	fields: dict = {vol.Required(ATTR_STUDENT_ID): cv.string}
	fields.update(extra)
	return _build_schema(fields)


_INDEX = vol.All(vol.Coerce(int), vol.Range(min=0))

SERVICE_REFRESH_DATA_SCHEMA = _build_schema({})

SERVICE_IMPORT_LOCAL_DATA_SCHEMA = _build_schema({})

SERVICE_SELECT_STUDENT_SCHEMA = _build_schema({
	vol.Optional(ATTR_STUDENT_ID): vol.Any(None, cv.string),
})

SERVICE_ADD_STUDENT_SCHEMA = _build_schema({
	vol.Required("first_name"): cv.string,
	vol.Required("last_name"): cv.string,
	vol.Required("deployment_start"): cv.date,
	vol.Required("deployment_end"): cv.date,
	vol.Optional("year"): vol.All(vol.Coerce(int), vol.Range(min=1)),
	vol.Optional("color"): cv.string,
})

SERVICE_UPDATE_PROFILE_SCHEMA = _student_schema({
	vol.Optional("first_name"): cv.string,
	vol.Optional("last_name"): cv.string,
	vol.Optional("deployment_start"): cv.date,
	vol.Optional("deployment_end"): cv.date,
	vol.Optional("year"): vol.All(vol.Coerce(int), vol.Range(min=1)),
	vol.Optional("color"): cv.string,
})

SERVICE_DELETE_STUDENT_SCHEMA = _student_schema({})

SERVICE_UPDATE_INTERVIEW_SCHEMA = _student_schema({
	vol.Required(ATTR_INTERVIEW_TYPE): vol.In(INTERVIEW_TYPES),
	vol.Optional("conducted_date"): vol.Any("", cv.date),
	vol.Optional("planned_date"): vol.Any("", cv.date),
	vol.Optional("mentor"): str,
	vol.Optional("notes"): str,
	vol.Optional("done"): cv.boolean,
})

SERVICE_ADD_WORK_ORDER_SCHEMA = _student_schema({
	vol.Required("task"): cv.string,
	vol.Optional("assigned_date"): cv.date,
})

SERVICE_UPDATE_WORK_ORDER_SCHEMA = _student_schema({
	vol.Required(ATTR_INDEX): _INDEX,
	vol.Optional("done"): cv.boolean,
	vol.Optional("notes"): str,
})

SERVICE_REMOVE_WORK_ORDER_SCHEMA = _student_schema({
	vol.Required(ATTR_INDEX): _INDEX,
})

SERVICE_UPDATE_INSTRUCTION_LOG_SCHEMA = _student_schema({
	vol.Optional("area"): str,
	vol.Optional("period"): str,
	vol.Optional("course_no"): str,
	vol.Optional("remarks"): str,
})

SERVICE_ADD_LOG_ENTRY_SCHEMA = _student_schema({
	vol.Required("date"): cv.date,
	vol.Required("minutes"): vol.All(vol.Coerce(int), vol.Range(min=0)),
	vol.Optional("mentor", default=""): str,
	vol.Optional("situation", default=""): str,
})

SERVICE_REMOVE_LOG_ENTRY_SCHEMA = _student_schema({
	vol.Required(ATTR_INDEX): _INDEX,
})


async def _store_select_student(store: StudentStore, data: dict) -> None:
	store.select(data.get(ATTR_STUDENT_ID))


async def _store_add_student(store: StudentStore, data: dict) -> None:
	student = await store.async_add_student(**data)
	_LOGGER.info(f"Added student {student.full_name} ({student.id})")


async def _store_update_profile(store: StudentStore, data: dict) -> None:
	await store.async_update_profile(data.pop(ATTR_STUDENT_ID), **data)


async def _store_delete_student(store: StudentStore, data: dict) -> None:
	student = await store.async_delete_student(data[ATTR_STUDENT_ID])
	_LOGGER.info(f"Deleted student {student.full_name}")


async def _store_update_interview(store: StudentStore, data: dict) -> None:
	await store.async_update_interview(data.pop(ATTR_STUDENT_ID), data.pop(ATTR_INTERVIEW_TYPE), **data)


async def _store_add_work_order(store: StudentStore, data: dict) -> None:
	await store.async_add_work_order(data[ATTR_STUDENT_ID], data["task"], data.get("assigned_date"))


async def _store_update_work_order(store: StudentStore, data: dict) -> None:
	await store.async_update_work_order(data.pop(ATTR_STUDENT_ID), data.pop(ATTR_INDEX), **data)


async def _store_remove_work_order(store: StudentStore, data: dict) -> None:
	await store.async_remove_work_order(data[ATTR_STUDENT_ID], data[ATTR_INDEX])


async def _store_update_instruction_log(store: StudentStore, data: dict) -> None:
	await store.async_update_instruction_log(data.pop(ATTR_STUDENT_ID), **data)


async def _store_add_log_entry(store: StudentStore, data: dict) -> None:
	await store.async_add_log_entry(
		data[ATTR_STUDENT_ID],
		data["date"],
		data["minutes"],
		mentor=data["mentor"],
		situation=data["situation"],
	)


async def _store_remove_log_entry(store: StudentStore, data: dict) -> None:
	await store.async_remove_log_entry(data[ATTR_STUDENT_ID], data[ATTR_INDEX])


# Service name -> (schema, store action)
_STORE_SERVICES: dict[str, tuple[vol.Schema, StoreAction]] = {
	SERVICE_SELECT_STUDENT: (SERVICE_SELECT_STUDENT_SCHEMA, _store_select_student),
	SERVICE_ADD_STUDENT: (SERVICE_ADD_STUDENT_SCHEMA, _store_add_student),
	SERVICE_UPDATE_PROFILE: (SERVICE_UPDATE_PROFILE_SCHEMA, _store_update_profile),
	SERVICE_DELETE_STUDENT: (SERVICE_DELETE_STUDENT_SCHEMA, _store_delete_student),
	SERVICE_UPDATE_INTERVIEW: (SERVICE_UPDATE_INTERVIEW_SCHEMA, _store_update_interview),
	SERVICE_ADD_WORK_ORDER: (SERVICE_ADD_WORK_ORDER_SCHEMA, _store_add_work_order),
	SERVICE_UPDATE_WORK_ORDER: (SERVICE_UPDATE_WORK_ORDER_SCHEMA, _store_update_work_order),
	SERVICE_REMOVE_WORK_ORDER: (SERVICE_REMOVE_WORK_ORDER_SCHEMA, _store_remove_work_order),
	SERVICE_UPDATE_INSTRUCTION_LOG: (SERVICE_UPDATE_INSTRUCTION_LOG_SCHEMA, _store_update_instruction_log),
	SERVICE_ADD_LOG_ENTRY: (SERVICE_ADD_LOG_ENTRY_SCHEMA, _store_add_log_entry),
	SERVICE_REMOVE_LOG_ENTRY: (SERVICE_REMOVE_LOG_ENTRY_SCHEMA, _store_remove_log_entry),
}

_REGISTERED_SERVICES = (SERVICE_REFRESH_DATA, SERVICE_IMPORT_LOCAL_DATA, *_STORE_SERVICES)


async def async_register_services(hass: HomeAssistant) -> None:
	"""Register PAL Tracker services once per Home Assistant instance."""
	global _SERVICES_REGISTERED

	if _SERVICES_REGISTERED:
		return

	async def handle_refresh_data(call: ServiceCall) -> None:
		await _run_for_targets(hass, call, _action_refresh_data)

	async def handle_import_local_data(call: ServiceCall) -> None:
		await _run_for_targets(hass, call, _action_import_local_data)

	hass.services.async_register(
		DOMAIN,
		SERVICE_REFRESH_DATA,
		handle_refresh_data,
		schema=SERVICE_REFRESH_DATA_SCHEMA,
	)

	hass.services.async_register(
		DOMAIN,
		SERVICE_IMPORT_LOCAL_DATA,
		handle_import_local_data,
		schema=SERVICE_IMPORT_LOCAL_DATA_SCHEMA,
	)

	for service, (schema, action) in _STORE_SERVICES.items():
		hass.services.async_register(DOMAIN, service, _make_store_handler(hass, action), schema=schema)

	_SERVICES_REGISTERED = True


async def async_unregister_services(hass: HomeAssistant) -> None:
	"""Remove PAL Tracker services when the last entry is unloaded."""
	global _SERVICES_REGISTERED

	if not _SERVICES_REGISTERED:
		return

	for service in _REGISTERED_SERVICES:
		hass.services.async_remove(DOMAIN, service)

	_SERVICES_REGISTERED = False


def _make_store_handler(hass: HomeAssistant, action: StoreAction) -> Callable[[ServiceCall], Awaitable[None]]:
	async def handler(call: ServiceCall) -> None:
		coordinator = _get_student_coordinator(hass, call)
		data = _store_arguments(call.data)
		try:
			await action(coordinator.store, data)
		except (PalTrackerError, ValueError, IndexError) as err:
			raise HomeAssistantError(f"{call.service} failed: {err}") from err
		coordinator.async_publish()

	return handler


def _store_arguments(service_data: Any) -> dict:
	"""Copy service data into store keyword arguments, dates as ISO strings."""
	data = {}
	for key, value in service_data.items():
		if key == "config_entry_id":
			continue
		data[key] = value.isoformat() if isinstance(value, date) else value
	return data


async def _run_for_targets(
	hass: HomeAssistant,
	call: ServiceCall,
	action: CoordinatorAction,
) -> None:
	"""Execute an action for each targeted coordinator."""
	targets = _get_target_coordinators(hass, call)

	results = await asyncio.gather(
		*(action(entry_id, coordinator, call) for entry_id, coordinator in targets),
		return_exceptions=True,
	)

	errors = [result for result in results if isinstance(result, Exception)]
	if not errors:
		return

	for err in errors:
		_LOGGER.error("Service %s failed: %s", call.service, err)

	if len(errors) == len(targets):
		raise HomeAssistantError(f"{call.service} failed for all targets. Check the logs for details.")

	raise HomeAssistantError(f"{call.service} partially failed. Check the logs for details.")


def _get_coordinators(hass: HomeAssistant) -> dict[str, PalTrackerDataUpdateCoordinator]:
	domain_data = hass.data.get(DOMAIN)
	if not domain_data:
		raise HomeAssistantError("PAL Tracker is not currently set up.")

	coordinators = {
		entry_id: coordinator
		for entry_id, coordinator in domain_data.items()
		if isinstance(coordinator, PalTrackerDataUpdateCoordinator)
	}
	if not coordinators:
		raise HomeAssistantError("PAL Tracker coordinators are not ready yet.")
	return coordinators


def _get_target_coordinators(
	hass: HomeAssistant,
	call: ServiceCall,
) -> list[tuple[str, PalTrackerDataUpdateCoordinator]]:
	"""Return coordinators that should process the service call."""
	coordinators = _get_coordinators(hass)
	config_entry_id = call.data.get("config_entry_id")
	if config_entry_id:
		if config_entry_id not in coordinators:
			raise HomeAssistantError(f"No PAL Tracker entry found for config_entry_id '{config_entry_id}'.")
		return [(config_entry_id, coordinators[config_entry_id])]
	return list(coordinators.items())


def _get_student_coordinator(hass: HomeAssistant, call: ServiceCall) -> PalTrackerDataUpdateCoordinator:
	"""Pick the single coordinator a student-level call applies to."""
	targets = _get_target_coordinators(hass, call)
	student_id = call.data.get(ATTR_STUDENT_ID)
	if student_id:
		owners = [coordinator for _, coordinator in targets if coordinator.store.find(student_id)]
		if not owners:
			raise HomeAssistantError(f"Unknown student: {student_id}")
		return owners[0]
	if len(targets) > 1:
		raise HomeAssistantError(f"{call.service} needs a config_entry_id when several entries are set up.")
	return targets[0][1]


async def _action_refresh_data(
	entry_id: str,
	coordinator: PalTrackerDataUpdateCoordinator,
	call: ServiceCall,
) -> None:
	"""Handle manual refresh requests."""
	if not coordinator.remote_enabled:
		raise HomeAssistantError(f"Entry {entry_id} has no web app URL configured.")
	await coordinator.async_request_refresh()
	_LOGGER.info("Manual refresh completed for entry %s", entry_id)


async def _action_import_local_data(
	entry_id: str,
	coordinator: PalTrackerDataUpdateCoordinator,
	call: ServiceCall,
) -> None:
	"""Push cached students that never reached the backend."""
	try:
		imported, skipped = await coordinator.store.async_import_to_remote()
	except PalTrackerError as err:
		raise HomeAssistantError(str(err)) from err
	coordinator.async_publish()
	_LOGGER.info(
		"Import finished for entry %s: %d imported, %d skipped",
		entry_id,
		imported,
		skipped,
	)
