"""Persistent storage for the PAL Tracker integration."""

import logging
from typing import Any, Dict, Optional

from homeassistant.core import HomeAssistant
from homeassistant.helpers.storage import Store

from .paltracker.cache import LEGACY_STORAGE_KEY, STORAGE_KEY, LocalCache

_LOGGER = logging.getLogger(__name__)

STORAGE_VERSION = 1
SAVE_DELAY = 1  # seconds


class PalTrackerStorage(LocalCache):
	"""Student snapshot cache backed by Home Assistant's JSON store.

	Each cache key maps to its own Store file, scoped to the config entry.
	Writes are coalesced through ``async_delay_save`` so mutations never
	wait on disk.
	"""

	def __init__(self, hass: HomeAssistant, entry_id: str) -> None:
		"""Initialise storage handler."""
		super().__init__(key=STORAGE_KEY, legacy_key=LEGACY_STORAGE_KEY)
		self.hass = hass
		self.entry_id = entry_id
		self._stores: Dict[str, Store] = {}
		self._pending: Dict[str, Dict[str, Any]] = {}

	def _store(self, key: str) -> Store:
		if key not in self._stores:
			self._stores[key] = Store(self.hass, STORAGE_VERSION, f"{key}_{self.entry_id}")
		return self._stores[key]

	async def _async_read(self, key: str) -> Optional[Any]:
		if key in self._pending:
			return self._pending[key]
		return await self._store(key).async_load()

	def _write(self, key: str, data: Dict[str, Any]) -> None:
		self._pending[key] = data
		self._store(key).async_delay_save(lambda: self._pending.get(key, data), SAVE_DELAY)
		_LOGGER.debug(f"Scheduled save of {len(data.get('students', []))} students to {key}")

	async def _async_remove(self, key: str) -> None:
		self._pending.pop(key, None)
		await self._store(key).async_remove()

	async def async_flush(self) -> None:
		"""Write any pending snapshot immediately."""
		for key, data in list(self._pending.items()):
			await self._store(key).async_save(data)
