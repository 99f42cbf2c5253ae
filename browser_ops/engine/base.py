"""Interface between the session driver and a browser automation engine."""

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from browser_ops.logs.views import LogMessage

LogCallback = Callable[[LogMessage | dict[str, Any]], None]

# Navigation readiness: wait for the parsed document, not every subresource
DOM_CONTENT_LOADED = 'domcontentloaded'


class SessionOptions(BaseModel):
	"""Everything an engine needs to open one session."""

	model_config = ConfigDict(arbitrary_types_allowed=True)

	connection_url: str
	model_identity: str
	api_key: str = Field(repr=False)
	enable_caching: bool = True
	verbose: int = 0
	log_callback: LogCallback | None = None


class AgentExecution(BaseModel):
	"""Outcome of an autonomous multi-step run."""

	success: bool = False
	completed: bool = False
	message: str = ''
	actions: list[dict[str, Any]] = Field(default_factory=list)


@runtime_checkable
class EngineAgent(Protocol):
	async def execute(
		self,
		instruction: str,
		*,
		max_steps: int,
		auto_screenshot: bool = True,
		context: str | None = None,
	) -> AgentExecution: ...


@runtime_checkable
class EngineSession(Protocol):
	"""One live connection to a browser, owned by a single item."""

	async def navigate(self, url: str, wait_until: str = DOM_CONTENT_LOADED) -> None: ...

	async def act(self, instruction: str) -> Any: ...

	async def extract(self, instruction: str, contract: type[BaseModel]) -> Any: ...

	async def observe(self, instruction: str) -> Any: ...

	def agent(self) -> EngineAgent: ...

	async def current_url(self) -> str: ...

	async def close(self) -> None: ...


@runtime_checkable
class BrowserEngine(Protocol):
	async def open(self, options: SessionOptions) -> EngineSession: ...
