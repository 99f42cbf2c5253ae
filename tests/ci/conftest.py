"""Shared fixtures: an in-memory engine that records every call made against it."""

import asyncio
import json
from typing import Any

import pytest

from browser_ops.config import RunnerSettings
from browser_ops.engine.base import AgentExecution, SessionOptions
from browser_ops.logs.views import LogMessage
from browser_ops.session.views import ChatModelInfo


def usage_message(prompt: int, completion: int, total: int, camel_case: bool = False) -> LogMessage:
	"""A model-usage log message in the shape the engine reports it."""
	if camel_case:
		usage = {'promptTokens': prompt, 'completionTokens': completion, 'totalTokens': total}
	else:
		usage = {'prompt_tokens': prompt, 'completion_tokens': completion, 'total_tokens': total}
	return LogMessage(
		category='aisdk',
		message='response',
		level=2,
		auxiliary={'response': {'value': json.dumps({'usage': usage}), 'type': 'object'}},
	)


class FakeAgent:
	def __init__(self, session: 'FakeSession'):
		self.session = session

	async def execute(
		self,
		instruction: str,
		*,
		max_steps: int,
		auto_screenshot: bool = True,
		context: str | None = None,
	) -> AgentExecution:
		self.session.calls.append(('agent', instruction, {'max_steps': max_steps, 'auto_screenshot': auto_screenshot, 'context': context}))
		if self.session.fail_on == 'agent':
			raise RuntimeError('agent exploded')
		self.session.emit(usage_message(100, 20, 120))
		self.session.emit(usage_message(50, 5, 55, camel_case=True))
		return AgentExecution(
			success=True,
			completed=True,
			message='Found the pricing page',
			actions=[
				{
					'type': 'click',
					'reasoning': 'Open pricing',
					'parameters': {'index': 4},
					'taskCompleted': False,
					'pageUrl': 'https://example.com',
					'screenshot': 'aGVsbG8=',
				},
				{'type': 'done', 'reasoning': 'Finished', 'parameters': {'text': 'ok'}, 'taskCompleted': True},
			],
		)


class FakeSession:
	"""Records calls in order; fail_on names the call that should raise."""

	def __init__(self, options: SessionOptions, fail_on: str | None = None, url: str = 'https://example.com/current'):
		self.options = options
		self.fail_on = fail_on
		self.url = url
		self.calls: list[tuple] = []
		self.close_calls = 0

	def emit(self, message: LogMessage) -> None:
		if self.options.log_callback is not None:
			self.options.log_callback(message)

	async def navigate(self, url: str, wait_until: str = 'domcontentloaded') -> None:
		self.calls.append(('navigate', url, wait_until))
		if self.fail_on == 'navigate':
			raise RuntimeError('net::ERR_NAME_NOT_RESOLVED')
		self.url = url

	async def act(self, instruction: str) -> Any:
		self.calls.append(('act', instruction))
		if self.fail_on == 'act':
			raise RuntimeError('element not found')
		if self.fail_on == 'hang':
			await asyncio.sleep(5)
		self.emit(LogMessage(category='action', message=f'performed {instruction}', level=1))
		return {'success': True, 'action': instruction}

	async def extract(self, instruction: str, contract: Any) -> Any:
		self.calls.append(('extract', instruction, contract))
		if self.fail_on == 'extract':
			raise RuntimeError('extraction failed')
		return {'title': 'Example Domain'}

	async def observe(self, instruction: str) -> Any:
		self.calls.append(('observe', instruction))
		return [{'description': 'Sign in button', 'method': 'click', 'arguments': []}]

	def agent(self) -> FakeAgent:
		return FakeAgent(self)

	async def current_url(self) -> str:
		return self.url

	async def close(self) -> None:
		self.close_calls += 1
		if self.fail_on == 'close':
			raise RuntimeError('socket already closed')


class FakeEngine:
	"""BrowserEngine double; connection URLs in refuse are rejected at open."""

	def __init__(self, refuse: set[str] | None = None, fail_on: str | None = None):
		self.refuse = refuse or set()
		self.fail_on = fail_on
		self.opened: list[SessionOptions] = []
		self.sessions: list[FakeSession] = []

	async def open(self, options: SessionOptions) -> FakeSession:
		self.opened.append(options)
		if options.connection_url in self.refuse:
			raise OSError(f'connect ECONNREFUSED {options.connection_url}')
		session = FakeSession(options, fail_on=self.fail_on)
		self.sessions.append(session)
		return session


@pytest.fixture
def chat_model() -> ChatModelInfo:
	return ChatModelInfo(namespace=['langchain', 'chat_models', 'openai'], model='gpt-4o', api_key='sk-test')


@pytest.fixture
def engine() -> FakeEngine:
	return FakeEngine()


@pytest.fixture
def make_engine():
	return FakeEngine


@pytest.fixture
def settings() -> RunnerSettings:
	return RunnerSettings(operation_timeout=5)
