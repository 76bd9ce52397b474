"""Client for the remote collection backend."""

import asyncio
import json
import logging
from typing import Any, Dict, Iterable, List, Optional

import aiohttp

from .exceptions import RemoteApplicationError, RemoteDataError, TransportError
from .schema import COLLECTIONS
from .utils import normalize_id

_LOGGER = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT = 30  # seconds

ACTION_CREATE = "create"
ACTION_UPDATE = "update"
ACTION_DELETE = "delete"
ACTION_BULK_DELETE = "bulkDelete"

DEFAULT_HEADERS = {
	"Accept": "application/json",
}


class RemoteCollectionClient:
	"""Generic list/create/update/delete access to named remote collections.

	The backend is a web app in front of a spreadsheet: reads are GET requests
	carrying the collection name and optional filters, writes are POST requests
	carrying a JSON action document. Every failure is raised as a subclass of
	``RemoteError``; retry policy is left to the caller.
	"""

	def __init__(
		self,
		url: str,
		session: Optional[aiohttp.ClientSession] = None,
		timeout: float = DEFAULT_REQUEST_TIMEOUT,
	) -> None:
		"""Initialise the client.

		Args:
			url: Web app endpoint of the backend.
			session: Optional aiohttp session. If None, one is created on first use.
			timeout: Total timeout per request in seconds.
		"""
		self.url = url
		self._session = session
		self._own_session = session is None
		self._timeout = aiohttp.ClientTimeout(total=timeout)

	async def __aenter__(self):
		"""Async context manager entry."""
		self._get_session()
		return self

	async def __aexit__(self, exc_type, exc_val, exc_tb):
		"""Async context manager exit."""
		await self.close()

	async def close(self) -> None:
		"""Close the session if this client created it."""
		if self._own_session and self._session and not self._session.closed:
			await self._session.close()
		if self._own_session:
			self._session = None

	async def async_list(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
		"""Return all rows of a collection, optionally filtered by column values."""
		self._check_collection(collection)
		params = {"sheet": collection}
		for key, value in (filters or {}).items():
			params[key] = str(value)

		data = await self._request("GET", params=params)
		if not isinstance(data, list):
			raise RemoteDataError(f"Expected a list of rows for {collection}, got {type(data).__name__}")
		rows = [row for row in data if isinstance(row, dict)]
		if len(rows) != len(data):
			raise RemoteDataError(f"Listing of {collection} contains non-record entries")
		_LOGGER.debug(f"Listed {len(rows)} rows from {collection} (filters={filters})")
		return rows

	async def async_create(self, collection: str, fields: Dict[str, Any]) -> str:
		"""Create a row and return the identifier assigned by the backend."""
		data = await self._write(ACTION_CREATE, collection, data=fields)
		record_id = normalize_id(data.get("id"))
		if record_id is None:
			raise RemoteDataError(f"Create on {collection} returned no id")
		_LOGGER.debug(f"Created row {record_id} in {collection}")
		return record_id

	async def async_update(self, collection: str, record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
		"""Update the given columns of one row."""
		return await self._write(ACTION_UPDATE, collection, record_id=record_id, data=fields)

	async def async_delete(self, collection: str, record_id: str) -> Dict[str, Any]:
		"""Delete one row."""
		return await self._write(ACTION_DELETE, collection, record_id=record_id)

	async def async_bulk_delete(self, collection: str, ids: Iterable[str]) -> Dict[str, Any]:
		"""Delete several rows in one request."""
		return await self._write(ACTION_BULK_DELETE, collection, ids=list(ids))

	async def _write(
		self,
		action: str,
		collection: str,
		record_id: Optional[str] = None,
		ids: Optional[List[str]] = None,
		data: Optional[Dict[str, Any]] = None,
	) -> Dict[str, Any]:
		self._check_collection(collection)
		body: Dict[str, Any] = {"action": action, "sheet": collection}
		if record_id is not None:
			body["id"] = record_id
		if ids is not None:
			body["ids"] = ids
		if data is not None:
			body["data"] = data

		result = await self._request("POST", body=body)
		if not isinstance(result, dict):
			raise RemoteDataError(f"Expected an acknowledgement object for {action} on {collection}")
		return result

	async def _request(
		self,
		method: str,
		params: Optional[Dict[str, str]] = None,
		body: Optional[Dict[str, Any]] = None,
	) -> Any:
		session = self._get_session()
		headers = DEFAULT_HEADERS.copy()
		payload = None
		if body is not None:
			# The backend only accepts simple requests, so JSON travels as text/plain
			headers["Content-Type"] = "text/plain;charset=utf-8"
			payload = json.dumps(body)

		try:
			async with session.request(
				method,
				self.url,
				params=params,
				data=payload,
				headers=headers,
				timeout=self._timeout,
			) as resp:
				if resp.status != 200:
					raise TransportError(f"Backend request failed: HTTP {resp.status}")
				text = await resp.text()
		except aiohttp.ClientError as e:
			raise TransportError(f"Connection error: {e}") from e
		except asyncio.TimeoutError as e:
			raise TransportError("Request to backend timed out") from e

		try:
			data = json.loads(text)
		except json.JSONDecodeError as e:
			_LOGGER.debug(f"Response doesn't look like JSON: {text[:200]}...")
			raise RemoteDataError(f"Invalid JSON response from backend: {e}") from e

		if isinstance(data, dict) and data.get("error"):
			raise RemoteApplicationError(str(data["error"]))
		return data

	def _get_session(self) -> aiohttp.ClientSession:
		if self._session is None or self._session.closed:
			if not self._own_session:
				raise TransportError("Shared session is closed")
			self._session = aiohttp.ClientSession()
		return self._session

	@staticmethod
	def _check_collection(collection: str) -> None:
		if collection not in COLLECTIONS:
			raise ValueError(f"Unknown collection: {collection}")
