"""Config flow for PAL Tracker integration."""

import logging
from typing import Any, Dict, Optional

import voluptuous as vol

from homeassistant import config_entries
from homeassistant.core import callback
from homeassistant.data_entry_flow import FlowResult
from homeassistant.helpers.aiohttp_client import async_get_clientsession

from .paltracker.exceptions import RemoteApplicationError, RemoteDataError, TransportError

from .const import (
	CONF_SYNC_INTERVAL,
	CONF_WEB_APP_URL,
	DEFAULT_SYNC_INTERVAL,
	DEFAULT_TITLE,
	DOMAIN,
	MIN_SYNC_INTERVAL,
)

_LOGGER = logging.getLogger(__name__)


def _build_schema(url: str = "", interval: int = DEFAULT_SYNC_INTERVAL) -> vol.Schema:
	return vol.Schema(
		{
			vol.Optional(CONF_WEB_APP_URL, description={"suggested_value": url}): str,
			vol.Required(CONF_SYNC_INTERVAL, default=interval): vol.All(
				vol.Coerce(int), vol.Range(min=MIN_SYNC_INTERVAL)
			),
		}
	)


async def _async_validate_input(hass, user_input: Dict[str, Any]) -> Dict[str, str]:
	"""Check that the backend answers a listing; returns form errors."""
	errors: Dict[str, str] = {}
	url = (user_input.get(CONF_WEB_APP_URL) or "").strip()
	if not url:
		return errors
	if not url.startswith(("http://", "https://")):
		errors[CONF_WEB_APP_URL] = "invalid_url"
		return errors

	# Lazy import to avoid heavy imports at module load time
	from .paltracker.client import RemoteCollectionClient
	from .paltracker.schema import COLLECTION_APPRENTICES

	try:
		client = RemoteCollectionClient(url, session=async_get_clientsession(hass))
		await client.async_list(COLLECTION_APPRENTICES)
	except TransportError:
		errors["base"] = "cannot_connect"
	except (RemoteApplicationError, RemoteDataError):
		errors["base"] = "invalid_response"
	except Exception:  # pylint: disable=broad-except
		_LOGGER.exception("Unexpected exception while validating the web app URL")
		errors["base"] = "unknown"
	else:
		_LOGGER.info("Successfully validated PAL Tracker web app URL")
	return errors


def _clean_input(user_input: Dict[str, Any]) -> Dict[str, Any]:
	return {
		CONF_WEB_APP_URL: (user_input.get(CONF_WEB_APP_URL) or "").strip(),
		CONF_SYNC_INTERVAL: user_input[CONF_SYNC_INTERVAL],
	}


class PalTrackerConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
	"""Handle a config flow for PAL Tracker."""

	VERSION = 1

	async def async_step_user(
		self, user_input: Optional[Dict[str, Any]] = None
	) -> FlowResult:
		"""Handle the initial step."""
		errors: Dict[str, str] = {}

		if user_input is not None:
			errors = await _async_validate_input(self.hass, user_input)
			if not errors:
				data = _clean_input(user_input)
				await self.async_set_unique_id(data[CONF_WEB_APP_URL] or DOMAIN)
				self._abort_if_unique_id_configured()

				return self.async_create_entry(title=DEFAULT_TITLE, data=data)

		return self.async_show_form(
			step_id="user",
			data_schema=_build_schema(),
			errors=errors,
		)

	@staticmethod
	@callback
	def async_get_options_flow(config_entry: config_entries.ConfigEntry) -> config_entries.OptionsFlow:
		"""Return the options flow for this handler."""
		return PalTrackerOptionsFlow()


class PalTrackerOptionsFlow(config_entries.OptionsFlow):
	"""Edit the web app URL and the sync interval."""

	async def async_step_init(
		self, user_input: Optional[Dict[str, Any]] = None
	) -> FlowResult:
		"""Manage the options."""
		errors: Dict[str, str] = {}
		current = {**self.config_entry.data, **self.config_entry.options}

		if user_input is not None:
			errors = await _async_validate_input(self.hass, user_input)
			if not errors:
				# The update listener reloads the entry
				return self.async_create_entry(title="", data=_clean_input(user_input))

		return self.async_show_form(
			step_id="init",
			data_schema=_build_schema(
				current.get(CONF_WEB_APP_URL) or "",
				current.get(CONF_SYNC_INTERVAL, DEFAULT_SYNC_INTERVAL),
			),
			errors=errors,
		)
