"""Tests for the non-overlapping refresh scheduler."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from paltracker.exceptions import AssemblyError
from paltracker.scheduler import SyncScheduler


class GatedAssembler:
	"""Assembler whose loads block until released."""

	def __init__(self) -> None:
		self.calls = 0
		self.release = asyncio.Event()

	async def async_assemble(self):
		self.calls += 1
		await self.release.wait()
		return ["student"]


def test_interval_must_be_positive():
	with pytest.raises(ValueError):
		SyncScheduler(MagicMock(), MagicMock(), interval=0)


async def test_tick_is_skipped_while_previous_cycle_is_in_flight():
	assembler = GatedAssembler()
	on_refresh = MagicMock()
	scheduler = SyncScheduler(assembler, on_refresh, interval=30)

	first = asyncio.ensure_future(scheduler.async_tick())
	await asyncio.sleep(0)
	assert scheduler.in_flight is True

	assert await scheduler.async_tick() is False
	assert assembler.calls == 1

	assembler.release.set()
	assert await first is True
	assert scheduler.in_flight is False
	on_refresh.assert_called_once_with(["student"])


async def test_failed_cycle_clears_in_flight_flag_and_skips_callback():
	assembler = MagicMock()
	assembler.async_assemble = AsyncMock(side_effect=AssemblyError("Loading apprentices failed"))
	on_refresh = MagicMock()
	scheduler = SyncScheduler(assembler, on_refresh, interval=30)

	assert await scheduler.async_tick() is True
	assert scheduler.in_flight is False
	on_refresh.assert_not_called()

	assembler.async_assemble = AsyncMock(return_value=[])
	assert await scheduler.async_tick() is True
	on_refresh.assert_called_once_with([])


async def test_start_and_repeated_stop():
	assembler = MagicMock()
	assembler.async_assemble = AsyncMock(return_value=[])
	scheduler = SyncScheduler(assembler, MagicMock(), interval=30)

	scheduler.start()
	assert scheduler.running is True
	scheduler.start()
	assert scheduler.running is True

	scheduler.stop()
	scheduler.stop()
	assert scheduler.running is False
	assembler.async_assemble.assert_not_called()


async def test_timer_runs_cycles_until_stopped():
	assembler = MagicMock()
	assembler.async_assemble = AsyncMock(return_value=[])
	on_refresh = MagicMock()
	scheduler = SyncScheduler(assembler, on_refresh, interval=0.01)

	scheduler.start()
	await asyncio.sleep(0.1)
	scheduler.stop()
	await asyncio.sleep(0.02)
	calls = on_refresh.call_count

	assert calls >= 2
	await asyncio.sleep(0.05)
	assert on_refresh.call_count == calls
