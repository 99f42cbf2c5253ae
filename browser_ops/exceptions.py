"""Error taxonomy for browser operations.

Per-item errors are caught by the session driver and surface on the output
record; only ModelConfigError is raised to the caller of a batch.
"""


class BrowserOpsError(Exception):
	"""Base class for every error raised by browser_ops."""

	pass


class ModelConfigError(BrowserOpsError):
	"""Raised when the upstream chat model cannot be used to drive a session."""

	pass


class SchemaError(BrowserOpsError):
	"""Raised when a schema descriptor cannot be resolved into a type contract."""

	pass


class SessionConnectionError(BrowserOpsError):
	"""Raised when a browser session cannot be opened against the automation engine."""

	pass


class NavigationError(BrowserOpsError):
	"""Raised when the session fails to navigate to the requested page."""

	pass


class OperationError(BrowserOpsError):
	"""Raised when an act/extract/observe/agent dispatch fails."""

	pass


class UnsupportedOperationError(OperationError):
	"""Raised for an operation tag that is not one of act, extract, observe, agent."""

	def __init__(self, operation: str):
		self.operation = operation
		super().__init__(f'Unsupported operation: {operation!r}')
