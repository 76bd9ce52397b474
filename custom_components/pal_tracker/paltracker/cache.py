"""Local snapshot cache of the student collection."""

import copy
import logging
from typing import Any, Dict, Optional

from .migrations import migrate_snapshot

_LOGGER = logging.getLogger(__name__)

STORAGE_KEY = "pal_tracker_state"
LEGACY_STORAGE_KEY = "apprentice_tracker_state"


class LocalCache:
	"""Durable snapshot of the full student collection.

	Backends provide raw per-key access; this class handles the fallback to
	the legacy key and the one-time schema upgrade. Writes are synchronous
	from the caller's point of view and treated as infallible.
	"""

	def __init__(self, key: str = STORAGE_KEY, legacy_key: Optional[str] = LEGACY_STORAGE_KEY) -> None:
		self.key = key
		self.legacy_key = legacy_key

	async def async_load(self) -> Optional[Dict[str, Any]]:
		"""Load the cached snapshot, upgrading it to the current version."""
		from_legacy = False
		data = await self._async_read(self.key)
		if data is None and self.legacy_key:
			data = await self._async_read(self.legacy_key)
			from_legacy = data is not None

		if data is None:
			return None
		if not isinstance(data, dict):
			_LOGGER.warning(f"Ignoring malformed cached snapshot of type {type(data).__name__}")
			return None

		snapshot, applied = migrate_snapshot(data)
		if applied or from_legacy:
			self._write(self.key, snapshot)
		if from_legacy:
			await self._async_remove(self.legacy_key)
			_LOGGER.info(f"Moved cached snapshot from legacy key {self.legacy_key} to {self.key}")
		return snapshot

	def save(self, snapshot: Dict[str, Any]) -> None:
		"""Persist a snapshot under the main key."""
		self._write(self.key, snapshot)

	async def _async_read(self, key: str) -> Optional[Any]:
		raise NotImplementedError

	def _write(self, key: str, data: Dict[str, Any]) -> None:
		raise NotImplementedError

	async def _async_remove(self, key: str) -> None:
		raise NotImplementedError


class MemoryCache(LocalCache):
	"""In-process cache backend, used when no durable storage is available."""

	def __init__(self, data: Optional[Dict[str, Any]] = None, **kwargs: Any) -> None:
		super().__init__(**kwargs)
		self.data: Dict[str, Any] = dict(data or {})

	async def _async_read(self, key: str) -> Optional[Any]:
		return copy.deepcopy(self.data.get(key))

	def _write(self, key: str, data: Dict[str, Any]) -> None:
		self.data[key] = copy.deepcopy(data)

	async def _async_remove(self, key: str) -> None:
		self.data.pop(key, None)
