"""The PAL Tracker integration."""

import asyncio
import logging

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import Platform
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import ConfigEntryNotReady
from homeassistant.helpers import device_registry as dr

from .const import DEFAULT_TITLE, DOMAIN
from .services import async_register_services, async_unregister_services

_LOGGER = logging.getLogger(__name__)

PLATFORMS: list[Platform] = [Platform.SENSOR]

FIRST_REFRESH_TIMEOUT = 120  # seconds


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
	"""Set up PAL Tracker from a config entry."""
	_LOGGER.debug("Setting up PAL Tracker integration")

	# Lazy import to minimise import-time work
	from .coordinator import PalTrackerDataUpdateCoordinator

	coordinator = PalTrackerDataUpdateCoordinator(hass, entry)
	await coordinator.async_load_cache()

	try:
		await asyncio.wait_for(
			coordinator.async_config_entry_first_refresh(),
			timeout=FIRST_REFRESH_TIMEOUT,
		)
	except asyncio.TimeoutError:
		_LOGGER.error(f"PAL Tracker setup timed out after {FIRST_REFRESH_TIMEOUT} seconds")
		raise ConfigEntryNotReady("Setup timeout") from None

	hass.data.setdefault(DOMAIN, {})
	hass.data[DOMAIN][entry.entry_id] = coordinator

	device_registry = dr.async_get(hass)
	device_registry.async_get_or_create(
		config_entry_id=entry.entry_id,
		identifiers={(DOMAIN, entry.entry_id)},
		manufacturer="PAL Tracker",
		name=entry.title or DEFAULT_TITLE,
		model="Remote" if coordinator.remote_enabled else "Local",
	)

	await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
	await async_register_services(hass)

	coordinator.async_start_polling()
	entry.async_on_unload(entry.add_update_listener(async_reload_entry))
	return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
	"""Unload a config entry."""
	_LOGGER.debug("Unloading PAL Tracker integration")

	unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)

	if unload_ok:
		coordinator = hass.data[DOMAIN].pop(entry.entry_id)
		await coordinator.async_shutdown()

		# Remove services if this was the last entry
		if not hass.data[DOMAIN]:
			await async_unregister_services(hass)

	return unload_ok


async def async_reload_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
	"""Reload config entry after its options changed."""
	await hass.config_entries.async_reload(entry.entry_id)
