from browser_ops.engine.base import (
	DOM_CONTENT_LOADED,
	AgentExecution,
	BrowserEngine,
	EngineAgent,
	EngineSession,
	LogCallback,
	SessionOptions,
)

__all__ = [
	'BrowserEngine',
	'EngineSession',
	'EngineAgent',
	'AgentExecution',
	'SessionOptions',
	'LogCallback',
	'DOM_CONTENT_LOADED',
	'BrowserUseEngine',
]


def __getattr__(name: str):
	"""Lazy import so the protocols stay usable without loading browser-use."""
	if name == 'BrowserUseEngine':
		from browser_ops.engine.browser_use_engine import BrowserUseEngine

		return BrowserUseEngine
	raise AttributeError(f'module {__name__!r} has no attribute {name!r}')
