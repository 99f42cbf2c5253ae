import asyncio
import logging
from collections.abc import Awaitable
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from browser_ops.config import RunnerSettings
from browser_ops.engine.base import DOM_CONTENT_LOADED, AgentExecution, BrowserEngine, EngineSession, SessionOptions
from browser_ops.exceptions import (
	BrowserOpsError,
	NavigationError,
	OperationError,
	SchemaError,
	SessionConnectionError,
	UnsupportedOperationError,
)
from browser_ops.logs.service import aggregate_usage, filter_for_output
from browser_ops.logs.views import LogMessage
from browser_ops.schema.service import resolve_schema
from browser_ops.session.views import (
	ActPayload,
	ActStep,
	AgentAction,
	AgentPayload,
	ChatModelInfo,
	ExtractPayload,
	ItemConfig,
	ObservePayload,
	Operation,
	OperationPayload,
	OutputRecord,
)

T = TypeVar('T')


def parse_operation(tag: str) -> Operation:
	try:
		return Operation(tag)
	except ValueError:
		raise UnsupportedOperationError(tag) from None


def split_instructions(text: str) -> list[str]:
	"""Non-empty, stripped instruction lines in their original order."""
	return [line.strip() for line in text.splitlines() if line.strip()]


def first_instruction(text: str) -> str | None:
	lines = split_instructions(text)
	return lines[0] if lines else None


class SessionDriver:
	"""Runs one item against its own browser session.

	Every item gets a fresh session and log buffer. A session that was opened is
	closed exactly once before run_item returns, whatever happened in between.
	Errors never escape run_item; they land on the returned OutputRecord.
	"""

	def __init__(
		self,
		engine: BrowserEngine,
		model: ChatModelInfo,
		settings: RunnerSettings | None = None,
		logger: logging.Logger | None = None,
	):
		self.engine = engine
		self.model = model
		self.settings = settings or RunnerSettings()
		self.logger = logger or logging.getLogger(__name__)

		# Raises ModelConfigError before any item is touched
		self.model_identity = model.model_identity

	async def run_item(self, item: ItemConfig) -> OutputRecord:
		settings = item.options.apply_to(self.settings)
		captured: list[LogMessage] = []

		def output_messages():
			return filter_for_output(captured) if settings.log_messages else None

		try:
			operation = parse_operation(item.operation)
			contract = self._resolve_contract(item) if operation is Operation.EXTRACT else None
		except Exception as e:
			self.logger.error(f'Rejected {item.operation!r} item before connecting: {e}')
			return OutputRecord.failure(item.operation, e, output_messages())

		self.logger.info(f'Running {operation.value} against {item.connection_url}')
		session: EngineSession | None = None
		try:
			session = await self._open(item, settings, captured)
			if item.page_url:
				await self._bounded(
					session.navigate(item.page_url, wait_until=DOM_CONTENT_LOADED),
					NavigationError,
					f'Navigation to {item.page_url}',
					settings.operation_timeout,
				)
			payload = await self._dispatch(operation, session, item, contract, settings, captured)
			record = OutputRecord(operation=operation.value, payload=payload, messages=output_messages())
		except Exception as e:
			self.logger.error(f'{operation.value} failed: {type(e).__name__}: {e}')
			record = OutputRecord.failure(operation.value, e, output_messages())
		finally:
			if session is not None:
				await self._close(session, settings)

		return record

	def _resolve_contract(self, item: ItemConfig) -> type[BaseModel]:
		if item.extraction_schema is None:
			raise SchemaError('extract requires a schema descriptor')
		return resolve_schema(item.extraction_schema)

	def _log_callback(self, captured: list[LogMessage]):
		def callback(message: LogMessage | dict[str, Any]) -> None:
			if isinstance(message, LogMessage):
				captured.append(message)
				return
			try:
				captured.append(LogMessage.model_validate(message))
			except ValidationError:
				captured.append(LogMessage(message=str(message)))

		return callback

	async def _bounded(self, awaitable: Awaitable[T], error_type: type[BrowserOpsError], description: str, timeout: float | None) -> T:
		"""Await one engine call under the timeout, re-raising failures as error_type."""
		try:
			if timeout is None:
				return await awaitable
			return await asyncio.wait_for(awaitable, timeout)
		except BrowserOpsError:
			raise
		except TimeoutError as e:
			limit = f' after {timeout:g}s' if timeout is not None else ''
			raise error_type(f'{description} timed out{limit}') from e
		except Exception as e:
			raise error_type(f'{description} failed: {e}') from e

	async def _open(self, item: ItemConfig, settings: RunnerSettings, captured: list[LogMessage]) -> EngineSession:
		options = SessionOptions(
			connection_url=item.connection_url,
			model_identity=self.model_identity,
			api_key=self.model.api_key,
			enable_caching=settings.enable_caching,
			verbose=settings.verbose,
			log_callback=self._log_callback(captured),
		)
		session = await self._bounded(
			self.engine.open(options),
			SessionConnectionError,
			f'Connecting to {item.connection_url}',
			settings.operation_timeout,
		)
		self.logger.debug(f'Session open on {item.connection_url} ({self.model_identity})')
		return session

	async def _close(self, session: EngineSession, settings: RunnerSettings) -> None:
		try:
			await self._bounded(session.close(), OperationError, 'Closing session', settings.operation_timeout)
		except Exception as e:
			self.logger.warning(f'Failed to close session: {e}')
		else:
			self.logger.debug('Session closed')

	async def _current_url(self, session: EngineSession, settings: RunnerSettings) -> str:
		return await self._bounded(session.current_url(), OperationError, 'Reading current URL', settings.operation_timeout)

	async def _dispatch(
		self,
		operation: Operation,
		session: EngineSession,
		item: ItemConfig,
		contract: type[BaseModel] | None,
		settings: RunnerSettings,
		captured: list[LogMessage],
	) -> OperationPayload:
		timeout = settings.operation_timeout

		if operation is Operation.ACT:
			results: list[ActStep] = []
			for instruction in split_instructions(item.instructions):
				self.logger.debug(f'act: {instruction}')
				result = await self._bounded(session.act(instruction), OperationError, f'act {instruction!r}', timeout)
				results.append(ActStep(instruction=instruction, result=result))
			return ActPayload(results=results, current_url=await self._current_url(session, settings))

		if operation is Operation.EXTRACT:
			if contract is None:
				raise OperationError('extract requires a resolved schema contract')
			instruction = self._require_instruction(operation, item)
			result = await self._bounded(session.extract(instruction, contract), OperationError, 'extract', timeout)
			return ExtractPayload(result=result)

		if operation is Operation.OBSERVE:
			instruction = self._require_instruction(operation, item)
			result = await self._bounded(session.observe(instruction), OperationError, 'observe', timeout)
			return ObservePayload(result=result)

		if operation is Operation.AGENT:
			task = item.instructions.strip()
			if not task:
				raise OperationError('agent requires a task description')
			max_steps = item.max_steps or settings.default_max_steps
			context = item.context.strip()

			async def execute() -> AgentExecution:
				agent = session.agent()
				if context:
					raw = await agent.execute(task, max_steps=max_steps, auto_screenshot=True, context=context)
				else:
					raw = await agent.execute(task, max_steps=max_steps, auto_screenshot=True)
				return AgentExecution.model_validate(raw)

			execution = await self._bounded(execute(), OperationError, 'agent', timeout)
			actions = [AgentAction.from_raw(action) for action in execution.actions]
			return AgentPayload(
				success=execution.success,
				message=execution.message,
				completed=execution.completed,
				actions=actions,
				action_count=len(actions),
				usage=aggregate_usage(captured),
				current_url=await self._current_url(session, settings),
			)

		raise UnsupportedOperationError(operation.value)

	def _require_instruction(self, operation: Operation, item: ItemConfig) -> str:
		instruction = first_instruction(item.instructions)
		if instruction is None:
			raise OperationError(f'{operation.value} requires an instruction')
		return instruction
