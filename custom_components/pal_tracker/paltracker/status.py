"""Sync status values reported to the UI layer."""

from typing import Callable, Optional

SYNC_STATUS_SYNCING = "syncing"
SYNC_STATUS_SYNCED = "synced"
SYNC_STATUS_ERROR = "error"
SYNC_STATUS_OFFLINE = "offline"

SYNC_STATUSES = (
	SYNC_STATUS_SYNCING,
	SYNC_STATUS_SYNCED,
	SYNC_STATUS_ERROR,
	SYNC_STATUS_OFFLINE,
)

StatusCallback = Callable[[str], None]


def report_status(callback: Optional[StatusCallback], status: str) -> None:
	"""Invoke the status callback if one is registered."""
	if callback is not None:
		callback(status)
