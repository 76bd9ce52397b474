"""Support for PAL Tracker sensors."""

import logging
from typing import Any, Dict, List, Optional, Set

from homeassistant.components.sensor import SensorDeviceClass, SensorEntity, SensorStateClass
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import PERCENTAGE, UnitOfTime
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers import entity_registry as er
from homeassistant.helpers.entity import DeviceInfo
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import (
	ATTR_STUDENT_ID,
	ATTR_STUDENT_NAME,
	DEFAULT_TITLE,
	DOMAIN,
	SENSOR_INSTRUCTION_TIME,
	SENSOR_INTERVIEWS,
	SENSOR_STUDENT_COUNT,
	SENSOR_SYNC_STATUS,
	SENSOR_WORK_ORDERS,
)
from .coordinator import PalTrackerDataUpdateCoordinator
from .paltracker.hours import summarize
from .paltracker.models import INTERVIEW_TYPES, Student
from .paltracker.status import SYNC_STATUSES

_LOGGER = logging.getLogger(__name__)

STUDENT_SENSOR_TYPES = (SENSOR_INSTRUCTION_TIME, SENSOR_INTERVIEWS, SENSOR_WORK_ORDERS)


def student_unique_id(entry_id: str, sensor_type: str, student_id: str) -> str:
	return f"{entry_id}_{sensor_type}_{student_id}"


async def async_setup_entry(
	hass: HomeAssistant,
	config_entry: ConfigEntry,
	async_add_entities: AddEntitiesCallback,
) -> None:
	"""Set up PAL Tracker sensors based on a config entry."""
	coordinator: PalTrackerDataUpdateCoordinator = hass.data[DOMAIN][config_entry.entry_id]
	known_ids: Set[str] = set()

	@callback
	def _remove_stale_entities(current_ids: Set[str]) -> None:
		stale_ids = known_ids - current_ids
		if not stale_ids:
			return
		registry = er.async_get(hass)
		for student_id in stale_ids:
			known_ids.discard(student_id)
			for sensor_type in STUDENT_SENSOR_TYPES:
				entity_id = registry.async_get_entity_id(
					"sensor", DOMAIN, student_unique_id(config_entry.entry_id, sensor_type, student_id)
				)
				if entity_id is not None:
					registry.async_remove(entity_id)
		_LOGGER.info(f"Removed PAL Tracker entities of {len(stale_ids)} students")

	@callback
	def _add_student_entities() -> None:
		_remove_stale_entities({student.id for student in coordinator.store.students})
		new_entities: List[SensorEntity] = []
		for student in coordinator.store.students:
			if student.id in known_ids:
				continue
			known_ids.add(student.id)
			new_entities.extend([
				PalTrackerInstructionTimeSensor(coordinator, config_entry, student),
				PalTrackerInterviewsSensor(coordinator, config_entry, student),
				PalTrackerWorkOrdersSensor(coordinator, config_entry, student),
			])
		if new_entities:
			_LOGGER.info(f"Adding {len(new_entities)} PAL Tracker student entities")
			async_add_entities(new_entities)

	async_add_entities([
		PalTrackerStudentCountSensor(coordinator, config_entry),
		PalTrackerSyncStatusSensor(coordinator, config_entry),
	])
	_add_student_entities()
	config_entry.async_on_unload(coordinator.async_add_listener(_add_student_entities))


class PalTrackerSensorBase(CoordinatorEntity[PalTrackerDataUpdateCoordinator], SensorEntity):
	"""Base class for PAL Tracker sensors."""

	def __init__(
		self,
		coordinator: PalTrackerDataUpdateCoordinator,
		config_entry: ConfigEntry,
	) -> None:
		"""Initialise the sensor."""
		super().__init__(coordinator)
		self.config_entry = config_entry
		self._attr_device_info = DeviceInfo(
			identifiers={(DOMAIN, config_entry.entry_id)},
			manufacturer="PAL Tracker",
			name=config_entry.title or DEFAULT_TITLE,
		)


class PalTrackerStudentCountSensor(PalTrackerSensorBase):
	"""Sensor for the number of active students."""

	def __init__(
		self,
		coordinator: PalTrackerDataUpdateCoordinator,
		config_entry: ConfigEntry,
	) -> None:
		super().__init__(coordinator, config_entry)
		self._attr_name = "PAL Tracker Students"
		self._attr_unique_id = f"{config_entry.entry_id}_{SENSOR_STUDENT_COUNT}"
		self._attr_icon = "mdi:account-school"
		self._attr_state_class = SensorStateClass.MEASUREMENT

	@property
	def native_value(self) -> int:
		return len(self.coordinator.store.students)

	@property
	def extra_state_attributes(self) -> Dict[str, Any]:
		store = self.coordinator.store
		selected = store.selected
		return {
			"students": {student.id: student.full_name for student in store.students},
			"unsynced": [student.id for student in store.students if not student.is_synced],
			"selected_id": store.selected_id,
			"selected_name": selected.full_name if selected else None,
			"current_date": store.current_date.isoformat(),
		}


class PalTrackerSyncStatusSensor(PalTrackerSensorBase):
	"""Sensor mirroring the sync status of the remote backend."""

	def __init__(
		self,
		coordinator: PalTrackerDataUpdateCoordinator,
		config_entry: ConfigEntry,
	) -> None:
		super().__init__(coordinator, config_entry)
		self._attr_name = "PAL Tracker Sync Status"
		self._attr_unique_id = f"{config_entry.entry_id}_{SENSOR_SYNC_STATUS}"
		self._attr_icon = "mdi:cloud-sync"
		self._attr_device_class = SensorDeviceClass.ENUM
		self._attr_options = list(SYNC_STATUSES)

	@property
	def available(self) -> bool:
		# Reports "error" and "offline" itself
		return True

	@property
	def native_value(self) -> str:
		return self.coordinator.sync_status

	@property
	def extra_state_attributes(self) -> Dict[str, Any]:
		return {
			"remote_enabled": self.coordinator.remote_enabled,
			"sync_interval": self.coordinator.sync_interval,
			"last_update_success": self.coordinator.last_update_success,
		}


class PalTrackerStudentSensorBase(PalTrackerSensorBase):
	"""Base class for per-student sensors."""

	def __init__(
		self,
		coordinator: PalTrackerDataUpdateCoordinator,
		config_entry: ConfigEntry,
		student: Student,
		sensor_type: str,
		label: str,
	) -> None:
		super().__init__(coordinator, config_entry)
		self.student_id = student.id
		self._attr_name = f"{student.full_name} {label}"
		self._attr_unique_id = student_unique_id(config_entry.entry_id, sensor_type, student.id)

	@property
	def student(self) -> Optional[Student]:
		return self.coordinator.store.find(self.student_id)

	@property
	def available(self) -> bool:
		return self.student is not None

	def _base_attributes(self, student: Student) -> Dict[str, Any]:
		return {
			ATTR_STUDENT_ID: student.id,
			ATTR_STUDENT_NAME: student.full_name,
			"year": student.year,
			"synced": student.is_synced,
		}


class PalTrackerInstructionTimeSensor(PalTrackerStudentSensorBase):
	"""Logged instruction hours of one student."""

	def __init__(
		self,
		coordinator: PalTrackerDataUpdateCoordinator,
		config_entry: ConfigEntry,
		student: Student,
	) -> None:
		super().__init__(coordinator, config_entry, student, SENSOR_INSTRUCTION_TIME, "Instruction Time")
		self._attr_icon = "mdi:clock-check-outline"
		self._attr_native_unit_of_measurement = UnitOfTime.HOURS
		self._attr_device_class = SensorDeviceClass.DURATION
		self._attr_state_class = SensorStateClass.MEASUREMENT

	@property
	def native_value(self) -> Optional[float]:
		student = self.student
		if student is None:
			return None
		return summarize(student).total_hours

	@property
	def extra_state_attributes(self) -> Dict[str, Any]:
		student = self.student
		if student is None:
			return {}
		summary = summarize(student)
		log = student.instruction_log
		attributes = self._base_attributes(student)
		attributes.update({
			"deployment_start": student.deployment_start,
			"deployment_end": student.deployment_end,
			"weeks": summary.weeks,
			"required_hours": summary.required_hours,
			"missing_hours": summary.missing_hours,
			"progress_percent": summary.progress_percent,
			"requirement_met": summary.requirement_met,
			"area": log.area,
			"period": log.period,
			"course_no": log.course_no,
			"entries": [
				{"date": entry.date, "minutes": entry.minutes, "mentor": entry.mentor}
				for entry in log.entries
			],
		})
		return attributes


class PalTrackerInterviewsSensor(PalTrackerStudentSensorBase):
	"""Number of conducted interviews of one student."""

	def __init__(
		self,
		coordinator: PalTrackerDataUpdateCoordinator,
		config_entry: ConfigEntry,
		student: Student,
	) -> None:
		super().__init__(coordinator, config_entry, student, SENSOR_INTERVIEWS, "Interviews")
		self._attr_icon = "mdi:account-voice"

	@property
	def native_value(self) -> Optional[int]:
		student = self.student
		return student.interviews_done if student else None

	@property
	def extra_state_attributes(self) -> Dict[str, Any]:
		student = self.student
		if student is None:
			return {}
		attributes = self._base_attributes(student)
		attributes["total"] = len(INTERVIEW_TYPES)
		for interview_type in INTERVIEW_TYPES:
			interview = student.interviews[interview_type]
			attributes[interview_type] = {
				"done": interview.done,
				"conducted_date": interview.conducted_date,
				"planned_date": interview.planned_date,
				"mentor": interview.mentor,
			}
		return attributes


class PalTrackerWorkOrdersSensor(PalTrackerStudentSensorBase):
	"""Completion percentage of one student's work orders."""

	def __init__(
		self,
		coordinator: PalTrackerDataUpdateCoordinator,
		config_entry: ConfigEntry,
		student: Student,
	) -> None:
		super().__init__(coordinator, config_entry, student, SENSOR_WORK_ORDERS, "Work Orders")
		self._attr_icon = "mdi:clipboard-check-multiple-outline"
		self._attr_native_unit_of_measurement = PERCENTAGE

	@property
	def native_value(self) -> Optional[int]:
		student = self.student
		return student.work_order_progress["percent"] if student else None

	@property
	def extra_state_attributes(self) -> Dict[str, Any]:
		student = self.student
		if student is None:
			return {}
		progress = student.work_order_progress
		attributes = self._base_attributes(student)
		attributes.update({
			"completed": progress["completed"],
			"total": progress["total"],
			"orders": [
				{"task": order.task, "done": order.done, "assigned_date": order.assigned_date}
				for order in student.work_orders
			],
		})
		return attributes
