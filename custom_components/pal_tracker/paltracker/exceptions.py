"""Custom exceptions for the PAL Tracker library."""


class PalTrackerError(Exception):
	"""Base exception for PAL Tracker errors."""
	pass


class RemoteError(PalTrackerError):
	"""A call against the remote collection backend failed."""
	pass


class TransportError(RemoteError):
	"""Connection to the remote backend failed."""
	pass


class RemoteApplicationError(RemoteError):
	"""The backend answered with an error marker."""
	pass


class RemoteDataError(RemoteError):
	"""The backend response could not be parsed."""
	pass


class SyncError(PalTrackerError):
	"""A multi-step synchronisation operation failed."""
	pass


class AssemblyError(SyncError):
	"""Loading the student aggregates failed as a whole."""
	pass


class ReconciliationError(SyncError):
	"""One step of a create/save/delete against the backend failed.

	Remote writes issued before the failing step are not rolled back.
	"""
	
	def __init__(self, step: str, message: str) -> None:
		super().__init__(f"{step}: {message}")
		self.step = step


class SnapshotVersionError(PalTrackerError):
	"""A cached snapshot was written by a newer schema version."""
	pass


class UnknownStudentError(PalTrackerError):
	"""No student with the requested id exists."""
	pass
