"""Engine adapter backed by browser-use, driving an existing browser over CDP."""

import importlib
import json
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from browser_ops.engine.base import DOM_CONTENT_LOADED, AgentExecution, LogCallback, SessionOptions
from browser_ops.exceptions import ModelConfigError
from browser_ops.logs.service import USAGE_LOG_CATEGORY
from browser_ops.logs.views import LogMessage

if TYPE_CHECKING:
	from browser_use import BrowserSession
	from browser_use.agent.views import AgentHistoryList

logger = logging.getLogger(__name__)

# Root of the loggers browser-use writes to
ENGINE_LOGGER = 'browser_use'

# Chat model class per provider tag, imported on first use
LLM_CLASSES: dict[str, str] = {
	'openai': 'browser_use.llm.openai.chat:ChatOpenAI',
	'anthropic': 'browser_use.llm.anthropic.chat:ChatAnthropic',
	'google': 'browser_use.llm.google.chat:ChatGoogle',
	'groq': 'browser_use.llm.groq.chat:ChatGroq',
	'deepseek': 'browser_use.llm.deepseek.chat:ChatDeepSeek',
	'mistral': 'browser_use.llm.mistral.chat:ChatMistral',
}

# Steps granted to the agent behind a single act instruction
ACT_MAX_STEPS = 3

ACT_SYSTEM_EXTENSION = """
## Single action mode
- Perform exactly the instruction you were given on the current page, then call `done`.
- Do not navigate away unless the instruction asks for it.
"""

EXTRACT_SYSTEM_EXTENSION = """
## Extraction mode
- Read the data from the current page only. Do not click, type or navigate.
- Call `done` with the extracted data as soon as you have it.
"""

OBSERVE_SYSTEM_PROMPT = (
	'You inspect a web page and list the interactive elements relevant to an instruction. '
	'For each element give a short description, the index shown in the page state, '
	'the method a user would apply (click, fill, select, scroll) and its arguments.'
)

LLMFactory = Callable[[str, str], Any]


def create_llm(model_identity: str, api_key: str) -> Any:
	"""Instantiate the browser-use chat model for a ``provider/model`` identity."""
	provider, _, model = model_identity.partition('/')
	if not model:
		raise ModelConfigError(f'Model identity must look like provider/model, got {model_identity!r}')

	path = LLM_CLASSES.get(provider)
	if path is None:
		raise ModelConfigError(f'Unsupported model provider: {provider}')

	module_name, _, class_name = path.partition(':')
	llm_class = getattr(importlib.import_module(module_name), class_name)
	return llm_class(model=model, api_key=api_key)


class ObservedElement(BaseModel):
	description: str
	index: int | None = None
	method: str | None = None
	arguments: list[str] = Field(default_factory=list)


class ObservedActions(BaseModel):
	elements: list[ObservedElement] = Field(default_factory=list)


def _level_for(record: logging.LogRecord) -> int:
	if record.levelno >= logging.ERROR:
		return 0
	if record.levelno >= logging.INFO:
		return 1
	return 2


class _LogCapture(logging.Handler):
	"""Forwards browser-use log records to a session's log callback."""

	def __init__(self, callback: LogCallback, level: int):
		super().__init__(level)
		self.callback = callback

	def emit(self, record: logging.LogRecord) -> None:
		try:
			self.callback(LogMessage(category=record.name, message=record.getMessage(), level=_level_for(record)))
		except Exception:
			self.handleError(record)


def _usage_message(usage: Any) -> LogMessage | None:
	"""Wrap a usage summary in the message shape the usage aggregator reads."""
	if usage is None:
		return None
	counters = {
		'prompt_tokens': getattr(usage, 'total_prompt_tokens', None) or getattr(usage, 'prompt_tokens', 0) or 0,
		'completion_tokens': getattr(usage, 'total_completion_tokens', None) or getattr(usage, 'completion_tokens', 0) or 0,
		'total_tokens': getattr(usage, 'total_tokens', 0) or 0,
	}
	return LogMessage(
		category=USAGE_LOG_CATEGORY,
		message='response',
		level=2,
		auxiliary={'response': {'value': json.dumps({'usage': counters}), 'type': 'object'}},
	)


def history_to_actions(history: 'AgentHistoryList') -> list[dict[str, Any]]:
	"""Flatten an agent history into one dict per executed action."""
	actions: list[dict[str, Any]] = []
	for item in history.history:
		model_output = item.model_output
		if model_output is None:
			continue
		reasoning = model_output.next_goal or model_output.thinking
		page_url = item.state.url if item.state else None
		for index, action in enumerate(model_output.action):
			dumped = action.model_dump(exclude_none=True, mode='json')
			if not dumped:
				continue
			action_type, parameters = next(iter(dumped.items()))
			result = item.result[index] if index < len(item.result) else None
			actions.append(
				{
					'type': action_type,
					'reasoning': reasoning,
					'parameters': parameters,
					'taskCompleted': bool(result and result.is_done),
					'pageUrl': page_url,
				}
			)
	return actions


class BrowserUseAgent:
	"""Autonomous runner bound to one open session."""

	def __init__(self, session: 'BrowserUseSession'):
		self.session = session

	async def execute(
		self,
		instruction: str,
		*,
		max_steps: int,
		auto_screenshot: bool = True,
		context: str | None = None,
	) -> AgentExecution:
		task = instruction if not context else f'{instruction}\n\nContext:\n{context}'
		history = await self.session.run_agent(task, max_steps=max_steps, use_vision=auto_screenshot)
		return AgentExecution(
			success=bool(history.is_successful()),
			completed=history.is_done(),
			message=history.final_result() or '',
			actions=history_to_actions(history),
		)


class BrowserUseSession:
	"""One CDP connection plus the chat model that drives it."""

	def __init__(
		self,
		browser_session: 'BrowserSession',
		llm: Any,
		options: SessionOptions,
		act_max_steps: int = ACT_MAX_STEPS,
	):
		self.browser_session = browser_session
		self.llm = llm
		self.options = options
		self.act_max_steps = act_max_steps
		self._capture: _LogCapture | None = None
		self._restore_level: int | None = None

		if options.log_callback is not None and options.verbose > 0:
			engine_logger = logging.getLogger(ENGINE_LOGGER)
			self._capture = _LogCapture(options.log_callback, logging.ERROR if options.verbose == 1 else logging.DEBUG)
			engine_logger.addHandler(self._capture)
			# The logger level filters records before any handler sees them
			if options.verbose == 2 and engine_logger.getEffectiveLevel() > logging.DEBUG:
				self._restore_level = engine_logger.level
				engine_logger.setLevel(logging.DEBUG)

	def _emit(self, message: LogMessage | None) -> None:
		if message is not None and self.options.log_callback is not None:
			self.options.log_callback(message)

	async def run_agent(
		self,
		task: str,
		*,
		max_steps: int,
		use_vision: bool = True,
		output_model_schema: type[BaseModel] | None = None,
		extend_system_message: str | None = None,
	) -> 'AgentHistoryList':
		from browser_use import Agent

		agent = Agent(
			task=task,
			llm=self.llm,
			browser_session=self.browser_session,
			output_model_schema=output_model_schema,
			use_vision=use_vision,
			use_judge=False,
			directly_open_url=False,
			extend_system_message=extend_system_message,
		)
		history = await agent.run(max_steps=max_steps)
		self._emit(_usage_message(history.usage))
		return history

	async def navigate(self, url: str, wait_until: str = DOM_CONTENT_LOADED) -> None:
		# browser-use returns once the document is committed, which is as far as domcontentloaded goes
		logger.debug(f'Navigating to {url} (wait_until={wait_until})')
		await self.browser_session.navigate_to(url, new_tab=False)

	async def act(self, instruction: str) -> Any:
		history = await self.run_agent(
			instruction,
			max_steps=self.act_max_steps,
			extend_system_message=ACT_SYSTEM_EXTENSION,
		)
		return {
			'success': bool(history.is_successful()),
			'message': history.final_result() or '',
			'actions': [action['type'] for action in history_to_actions(history)],
		}

	async def extract(self, instruction: str, contract: type[BaseModel]) -> Any:
		history = await self.run_agent(
			instruction,
			max_steps=self.act_max_steps,
			output_model_schema=contract,
			extend_system_message=EXTRACT_SYSTEM_EXTENSION,
		)
		structured = history.structured_output
		if structured is None:
			raise RuntimeError(f'Extraction finished without structured output: {history.final_result()}')
		return structured.model_dump(mode='json', by_alias=True)

	async def observe(self, instruction: str) -> Any:
		from browser_use.llm.messages import SystemMessage, UserMessage

		page_state = await self.browser_session.get_state_as_text()
		response = await self.llm.ainvoke(
			[
				SystemMessage(content=OBSERVE_SYSTEM_PROMPT),
				UserMessage(content=f'Instruction: {instruction}\n\nPage state:\n{page_state}'),
			],
			output_format=ObservedActions,
		)
		self._emit(_usage_message(response.usage))
		return [element.model_dump() for element in response.completion.elements]

	def agent(self) -> BrowserUseAgent:
		return BrowserUseAgent(self)

	async def current_url(self) -> str:
		return await self.browser_session.get_current_page_url()

	async def close(self) -> None:
		engine_logger = logging.getLogger(ENGINE_LOGGER)
		if self._capture is not None:
			engine_logger.removeHandler(self._capture)
			self._capture = None
		if self._restore_level is not None:
			engine_logger.setLevel(self._restore_level)
			self._restore_level = None
		# stop() disconnects and leaves the remote browser running
		await self.browser_session.stop()


class BrowserUseEngine:
	"""BrowserEngine that attaches browser-use to a browser reachable over CDP.

	Caching is not offered by browser-use, so ``enable_caching`` is accepted and ignored.
	"""

	def __init__(self, act_max_steps: int = ACT_MAX_STEPS, llm_factory: LLMFactory | None = None):
		self.act_max_steps = act_max_steps
		self.llm_factory = llm_factory or create_llm

	async def open(self, options: SessionOptions) -> BrowserUseSession:
		from browser_use import BrowserSession

		llm = self.llm_factory(options.model_identity, options.api_key)
		browser_session = BrowserSession(cdp_url=options.connection_url, keep_alive=True)
		logger.info(f'Connecting to browser at {options.connection_url} with {options.model_identity}')
		try:
			await browser_session.start()
		except BaseException:
			# Also reached when the connect is cancelled by a timeout
			try:
				await browser_session.stop()
			except Exception as e:
				logger.warning(f'Failed to stop browser session after a failed connect: {e}')
			raise
		return BrowserUseSession(browser_session, llm, options, act_max_steps=self.act_max_steps)
