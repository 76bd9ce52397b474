"""Periodic reload of the student aggregates."""

import asyncio
import logging
from typing import Callable, List, Optional, Set

from .assembler import StudentAssembler
from .exceptions import PalTrackerError
from .models import Student

_LOGGER = logging.getLogger(__name__)

DEFAULT_SYNC_INTERVAL = 30  # seconds

RefreshCallback = Callable[[List[Student]], None]


class SyncScheduler:
	"""Run the assembler on a fixed interval without overlapping cycles.

	A tick that fires while the previous cycle is still loading is skipped
	entirely; there is no queueing and no backoff beyond the interval itself.
	"""

	def __init__(
		self,
		assembler: StudentAssembler,
		on_data_refresh: RefreshCallback,
		interval: float = DEFAULT_SYNC_INTERVAL,
	) -> None:
		if interval <= 0:
			raise ValueError("Sync interval must be positive")
		self.assembler = assembler
		self.on_data_refresh = on_data_refresh
		self.interval = interval
		self._in_flight = False
		self._timer: Optional[asyncio.TimerHandle] = None
		self._tasks: Set[asyncio.Task] = set()

	@property
	def running(self) -> bool:
		return self._timer is not None

	@property
	def in_flight(self) -> bool:
		return self._in_flight

	def start(self) -> None:
		"""Arm the repeating timer; restarting replaces a running timer."""
		self.stop()
		_LOGGER.info(f"Starting auto refresh every {self.interval} seconds")
		self._schedule_next()

	def stop(self) -> None:
		"""Cancel the timer. A cycle already in flight runs to completion."""
		if self._timer is not None:
			self._timer.cancel()
			self._timer = None
			_LOGGER.info("Stopped auto refresh")

	async def async_tick(self) -> bool:
		"""Run one refresh cycle unless one is already running.

		Returns True if a cycle ran (successfully or not).
		"""
		if self._in_flight:
			_LOGGER.debug("Previous refresh still in flight, skipping this tick")
			return False

		self._in_flight = True
		try:
			students = await self.assembler.async_assemble()
		except PalTrackerError as err:
			_LOGGER.warning(f"Auto refresh failed: {err}")
			return True
		finally:
			self._in_flight = False

		self.on_data_refresh(students)
		return True

	def _schedule_next(self) -> None:
		loop = asyncio.get_running_loop()
		self._timer = loop.call_later(self.interval, self._on_timer)

	def _on_timer(self) -> None:
		self._schedule_next()
		task = asyncio.ensure_future(self.async_tick())
		self._tasks.add(task)
		task.add_done_callback(self._tasks.discard)
