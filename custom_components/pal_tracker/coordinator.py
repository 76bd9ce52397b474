"""DataUpdateCoordinator for PAL Tracker."""

import logging
from typing import List, Optional

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.aiohttp_client import async_get_clientsession
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from .paltracker.assembler import StudentAssembler
from .paltracker.client import RemoteCollectionClient
from .paltracker.exceptions import SyncError
from .paltracker.models import Student
from .paltracker.reconciler import StudentReconciler
from .paltracker.scheduler import SyncScheduler
from .paltracker.status import SYNC_STATUS_OFFLINE
from .paltracker.store import StudentStore
from .storage import PalTrackerStorage

from .const import (
	CONF_SYNC_INTERVAL,
	CONF_WEB_APP_URL,
	DEFAULT_SYNC_INTERVAL,
	DOMAIN,
)

_LOGGER = logging.getLogger(__name__)


class PalTrackerDataUpdateCoordinator(DataUpdateCoordinator[List[Student]]):
	"""Owns the student store and drives the remote sync for one config entry.

	Polling is done by the library's SyncScheduler rather than by the
	coordinator's own interval, so a slow load never overlaps the next one.
	Each successful poll is pushed to listeners via ``async_set_updated_data``.
	"""

	def __init__(self, hass: HomeAssistant, entry: ConfigEntry) -> None:
		"""Initialise coordinator."""
		self.web_app_url: Optional[str] = entry.options.get(CONF_WEB_APP_URL, entry.data.get(CONF_WEB_APP_URL)) or None
		self.sync_interval: int = entry.options.get(
			CONF_SYNC_INTERVAL, entry.data.get(CONF_SYNC_INTERVAL, DEFAULT_SYNC_INTERVAL)
		)
		self.sync_status: str = SYNC_STATUS_OFFLINE

		self.storage = PalTrackerStorage(hass, entry.entry_id)
		self.client: Optional[RemoteCollectionClient] = None
		self.assembler: Optional[StudentAssembler] = None
		self.scheduler: Optional[SyncScheduler] = None
		reconciler: Optional[StudentReconciler] = None

		if self.web_app_url:
			self.client = RemoteCollectionClient(self.web_app_url, session=async_get_clientsession(hass))
			self.assembler = StudentAssembler(self.client, on_sync_status=self._handle_sync_status)
			reconciler = StudentReconciler(self.client, on_sync_status=self._handle_sync_status)
			self.scheduler = SyncScheduler(
				self.assembler,
				on_data_refresh=self._handle_scheduled_refresh,
				interval=self.sync_interval,
			)

		self.store = StudentStore(self.storage, reconciler, on_sync_status=self._handle_sync_status)

		super().__init__(
			hass,
			_LOGGER,
			name=DOMAIN,
			config_entry=entry,
			update_interval=None,
		)

	@property
	def remote_enabled(self) -> bool:
		return self.store.remote_enabled

	async def async_load_cache(self) -> None:
		"""Restore the cached collection before the first remote load."""
		if await self.store.async_load():
			self.data = list(self.store.students)

	async def _async_update_data(self) -> List[Student]:
		"""Load fresh aggregates, falling back to the cached collection."""
		if self.assembler is None:
			return list(self.store.students)

		try:
			students = await self.assembler.async_assemble()
		except SyncError as err:
			if self.store.students:
				_LOGGER.warning(f"Remote load failed, keeping {len(self.store.students)} cached students: {err}")
				return list(self.store.students)
			raise UpdateFailed(f"Loading students failed: {err}") from err

		self.store.replace_students(students)
		return list(self.store.students)

	@callback
	def async_start_polling(self) -> None:
		if self.scheduler is not None:
			self.scheduler.start()

	@callback
	def async_publish(self) -> None:
		"""Push the store's current collection to all entities."""
		self.async_set_updated_data(list(self.store.students))

	@callback
	def _handle_scheduled_refresh(self, students: List[Student]) -> None:
		self.store.replace_students(students)
		self.async_publish()

	@callback
	def _handle_sync_status(self, status: str) -> None:
		if status == self.sync_status:
			return
		_LOGGER.debug(f"Sync status changed from {self.sync_status} to {status}")
		self.sync_status = status
		if self.data is not None:
			self.async_update_listeners()

	async def async_shutdown(self) -> None:
		"""Stop polling and flush the cache."""
		if self.scheduler is not None:
			self.scheduler.stop()
		await self.storage.async_flush()
		await super().async_shutdown()
