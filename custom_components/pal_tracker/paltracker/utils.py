"""Normalisation helpers for loosely typed backend rows."""

import uuid
from datetime import date, datetime
from typing import Any, Optional

PROVISIONAL_ID_PREFIX = "local-"

_TRUE_STRINGS = {"true", "1", "yes", "x"}


def parse_bool(value: Any) -> bool:
	"""Interpret a backend cell as a boolean.

	Spreadsheet backends hand back checkbox cells as real booleans, as the
	strings "TRUE"/"FALSE", or as empty cells.
	"""
	if isinstance(value, bool):
		return value
	if value is None:
		return False
	if isinstance(value, (int, float)):
		return value != 0
	return str(value).strip().lower() in _TRUE_STRINGS


def parse_int(value: Any, default: int = 0, minimum: Optional[int] = None) -> int:
	"""Interpret a backend cell as an integer, falling back to ``default``."""
	if isinstance(value, bool):
		result = int(value)
	elif isinstance(value, int):
		result = value
	elif isinstance(value, float):
		result = int(value)
	else:
		text = str(value).strip() if value is not None else ""
		try:
			result = int(float(text)) if text else default
		except ValueError:
			result = default
	if minimum is not None and result < minimum:
		return minimum
	return result


def parse_text(value: Any, default: str = "") -> str:
	"""Return a cell as a stripped string; empty and null cells give ``default``."""
	if value is None:
		return default
	text = str(value).strip()
	return text if text else default


def normalize_id(value: Any) -> Optional[str]:
	"""Return a remote identifier as a string, or None when absent.

	Backends return row ids as numbers in some responses and as strings in
	others; ids are always compared in their string form.
	"""
	if value is None or isinstance(value, bool):
		return None
	if isinstance(value, float) and value.is_integer():
		value = int(value)
	text = str(value).strip()
	return text or None


def parse_date(value: Any) -> Optional[date]:
	"""Parse an ISO date (or datetime) cell, returning None when invalid."""
	if isinstance(value, datetime):
		return value.date()
	if isinstance(value, date):
		return value
	text = parse_text(value)
	if not text:
		return None
	try:
		return date.fromisoformat(text[:10])
	except ValueError:
		return None


def new_provisional_id() -> str:
	"""Generate a local id for a student that does not exist remotely yet."""
	return f"{PROVISIONAL_ID_PREFIX}{uuid.uuid4().hex}"


def is_provisional_id(value: Optional[str]) -> bool:
	"""Check whether an id was generated locally."""
	return bool(value) and value.startswith(PROVISIONAL_ID_PREFIX)
