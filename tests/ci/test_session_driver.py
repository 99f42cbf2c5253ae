"""Tests for the per-item session driver: lifecycle, dispatch and error containment."""

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from browser_ops.config import RunnerSettings
from browser_ops.exceptions import ModelConfigError, OperationError
from browser_ops.logs.views import UsageTotals
from browser_ops.schema import ExampleSchema, FieldListSchema, FieldSpec, JsonSchemaSource, contract_field_names
from browser_ops.session import (
	ActPayload,
	AgentPayload,
	ChatModelInfo,
	ExtractPayload,
	ItemConfig,
	ItemOptions,
	ObservePayload,
	Operation,
	SessionDriver,
	first_instruction,
	split_instructions,
)


def _item(operation: str, **kwargs) -> ItemConfig:
	return ItemConfig(operation=operation, connection_url='ws://127.0.0.1:9222/devtools/browser/abc', **kwargs)


class TestInstructionSplitting:
	def test_blank_lines_are_dropped(self):
		assert split_instructions('Click A\n\nType B\n') == ['Click A', 'Type B']

	def test_lines_are_stripped(self):
		assert split_instructions('  Click A  \r\n\t\n  Type B') == ['Click A', 'Type B']

	def test_first_instruction(self):
		assert first_instruction('\n\n  Get the title \nignored') == 'Get the title'
		assert first_instruction('  \n ') is None


class TestAct:
	async def test_runs_each_instruction_in_order(self, engine, chat_model, settings):
		driver = SessionDriver(engine, chat_model, settings)
		record = await driver.run_item(_item('act', instructions='Click A\n\nType B\n'))

		session = engine.sessions[0]
		assert [call for call in session.calls if call[0] == 'act'] == [('act', 'Click A'), ('act', 'Type B')]
		assert record.ok
		assert isinstance(record.payload, ActPayload)
		assert [step.instruction for step in record.payload.results] == ['Click A', 'Type B']
		assert record.payload.results[1].result == {'success': True, 'action': 'Type B'}
		assert record.payload.current_url == 'https://example.com/current'

	async def test_navigates_before_dispatch(self, engine, chat_model, settings):
		driver = SessionDriver(engine, chat_model, settings)
		record = await driver.run_item(_item('act', page_url='https://example.com/login', instructions='Click login'))

		assert engine.sessions[0].calls[0] == ('navigate', 'https://example.com/login', 'domcontentloaded')
		assert engine.sessions[0].calls[1] == ('act', 'Click login')
		assert record.payload.current_url == 'https://example.com/login'

	async def test_no_navigation_without_page_url(self, engine, chat_model, settings):
		await SessionDriver(engine, chat_model, settings).run_item(_item('act', instructions='Scroll down'))
		assert all(call[0] != 'navigate' for call in engine.sessions[0].calls)

	async def test_failure_stops_later_instructions(self, make_engine, chat_model, settings):
		engine = make_engine(fail_on='act')
		record = await SessionDriver(engine, chat_model, settings).run_item(_item('act', instructions='Click A\nType B'))

		assert [call for call in engine.sessions[0].calls if call[0] == 'act'] == [('act', 'Click A')]
		assert record.error is not None
		assert record.error.type == 'OperationError'
		assert 'element not found' in record.error.message
		assert record.payload is None


class TestExtractAndObserve:
	async def test_extract_uses_first_line_and_resolved_contract(self, engine, chat_model, settings):
		item = _item(
			'extract',
			instructions='\nGet the page title\nand ignore this',
			extraction_schema=FieldListSchema(fields=[FieldSpec(name='title')]),
		)
		record = await SessionDriver(engine, chat_model, settings).run_item(item)

		_, instruction, contract = engine.sessions[0].calls[0]
		assert instruction == 'Get the page title'
		assert contract_field_names(contract) == ['title']
		assert record.payload == ExtractPayload(result={'title': 'Example Domain'})

	async def test_extract_accepts_descriptor_mapping(self, engine, chat_model, settings):
		item = ItemConfig.model_validate(
			{
				'operation': 'extract',
				'connection_url': 'ws://127.0.0.1:9222',
				'instructions': 'Get the title',
				'extraction_schema': {'source': 'example', 'example': {'title': 'x'}},
			}
		)
		assert isinstance(item.extraction_schema, ExampleSchema)
		record = await SessionDriver(engine, chat_model, settings).run_item(item)
		assert record.ok

	async def test_schema_error_is_reported_before_connecting(self, engine, chat_model, settings):
		item = _item('extract', instructions='Get it', extraction_schema=ExampleSchema(example=['not', 'an', 'object']))
		record = await SessionDriver(engine, chat_model, settings).run_item(item)

		assert record.error.type == 'SchemaError'
		assert record.operation == 'extract'
		assert engine.opened == []

	async def test_malformed_json_schema_becomes_a_record(self, engine, chat_model, settings):
		document = {'type': 'object', 'properties': {'a': {'type': {}}}}
		item = _item('extract', instructions='Get it', extraction_schema=JsonSchemaSource(document=document))
		record = await SessionDriver(engine, chat_model, settings).run_item(item)

		assert record.error.type == 'SchemaError'
		assert engine.opened == []

	async def test_missing_schema_is_a_schema_error(self, engine, chat_model, settings):
		record = await SessionDriver(engine, chat_model, settings).run_item(_item('extract', instructions='Get it'))
		assert record.error.type == 'SchemaError'
		assert engine.opened == []

	async def test_extract_without_instruction(self, engine, chat_model, settings):
		item = _item('extract', instructions='  \n', extraction_schema=ExampleSchema(example={'a': 1}))
		record = await SessionDriver(engine, chat_model, settings).run_item(item)
		assert record.error.type == 'OperationError'
		assert engine.sessions[0].close_calls == 1

	async def test_extract_dispatch_without_contract(self, chat_model, settings):
		session = MagicMock()
		session.extract = AsyncMock()
		driver = SessionDriver(MagicMock(), chat_model, settings)
		item = _item('extract', instructions='Get it')

		with pytest.raises(OperationError, match='resolved schema contract'):
			await driver._dispatch(Operation.EXTRACT, session, item, None, settings, [])
		session.extract.assert_not_called()

	async def test_observe_returns_plan_verbatim(self, engine, chat_model, settings):
		record = await SessionDriver(engine, chat_model, settings).run_item(
			_item('observe', instructions='Find the sign in button\nsecond line')
		)
		assert engine.sessions[0].calls == [('observe', 'Find the sign in button')]
		assert record.payload == ObservePayload(result=[{'description': 'Sign in button', 'method': 'click', 'arguments': []}])


class TestAgent:
	async def test_runs_whole_block_with_defaults(self, engine, chat_model, settings):
		record = await SessionDriver(engine, chat_model, settings).run_item(
			_item('agent', instructions='  Open pricing\nthen compare plans  ')
		)

		call = engine.sessions[0].calls[0]
		assert call == ('agent', 'Open pricing\nthen compare plans', {'max_steps': 10, 'auto_screenshot': True, 'context': None})

		payload = record.payload
		assert isinstance(payload, AgentPayload)
		assert payload.success and payload.completed
		assert payload.message == 'Found the pricing page'
		assert payload.action_count == 2
		assert payload.current_url == 'https://example.com/current'

	async def test_actions_are_reduced(self, engine, chat_model, settings):
		record = await SessionDriver(engine, chat_model, settings).run_item(_item('agent', instructions='Do it'))

		first, last = record.payload.actions
		assert first.model_dump() == {'type': 'click', 'reasoning': 'Open pricing', 'parameters': {'index': 4}, 'task_completed': False}
		assert last.task_completed is True
		assert 'screenshot' not in record.to_dict()['actions'][0]

	async def test_flattened_record_uses_camel_case_keys(self, engine, chat_model, settings):
		record = await SessionDriver(engine, chat_model, settings).run_item(_item('agent', instructions='Do it'))
		data = record.to_dict()

		assert data['actionCount'] == 2
		assert data['currentUrl'] == 'https://example.com/current'
		assert data['actions'][1]['taskCompleted'] is True
		assert data['usage'] == {'prompt_tokens': 150, 'completion_tokens': 25, 'total_tokens': 175}
		assert 'action_count' not in data and 'current_url' not in data

	async def test_usage_is_aggregated_from_captured_logs(self, engine, chat_model, settings):
		record = await SessionDriver(engine, chat_model, settings).run_item(_item('agent', instructions='Do it'))
		assert record.payload.usage == UsageTotals(prompt_tokens=150, completion_tokens=25, total_tokens=175)

	async def test_max_steps_and_context(self, engine, chat_model, settings):
		item = _item('agent', instructions='Do it', max_steps=3, context='Account: demo@example.com')
		await SessionDriver(engine, chat_model, settings).run_item(item)
		assert engine.sessions[0].calls[0][2] == {'max_steps': 3, 'auto_screenshot': True, 'context': 'Account: demo@example.com'}

	async def test_default_max_steps_comes_from_settings(self, engine, chat_model):
		driver = SessionDriver(engine, chat_model, RunnerSettings(default_max_steps=25))
		await driver.run_item(_item('agent', instructions='Do it'))
		assert engine.sessions[0].calls[0][2]['max_steps'] == 25

	async def test_agent_failure_is_contained(self, make_engine, chat_model, settings):
		engine = make_engine(fail_on='agent')
		record = await SessionDriver(engine, chat_model, settings).run_item(_item('agent', instructions='Do it'))
		assert record.error.type == 'OperationError'
		assert engine.sessions[0].close_calls == 1


class TestLifecycle:
	async def test_unsupported_operation_opens_nothing(self, engine, chat_model, settings):
		record = await SessionDriver(engine, chat_model, settings).run_item(_item('scrape', instructions='x'))

		assert record.operation == 'scrape'
		assert record.error.type == 'UnsupportedOperationError'
		assert record.payload is None
		assert engine.opened == []

	async def test_open_failure_is_a_connection_error(self, make_engine, chat_model, settings):
		engine = make_engine(refuse={'ws://127.0.0.1:9222/devtools/browser/abc'})
		record = await SessionDriver(engine, chat_model, settings).run_item(_item('act', instructions='Click'))

		assert record.error.type == 'SessionConnectionError'
		assert 'ECONNREFUSED' in record.error.message
		assert engine.sessions == []

	async def test_navigation_failure(self, make_engine, chat_model, settings):
		engine = make_engine(fail_on='navigate')
		record = await SessionDriver(engine, chat_model, settings).run_item(
			_item('act', page_url='https://nowhere.invalid', instructions='Click')
		)

		session = engine.sessions[0]
		assert record.error.type == 'NavigationError'
		assert all(call[0] != 'act' for call in session.calls)
		assert session.close_calls == 1

	@pytest.mark.parametrize('operation', ['act', 'extract', 'observe', 'agent'])
	async def test_close_happens_exactly_once_on_success(self, engine, chat_model, settings, operation):
		item = _item(operation, instructions='Do it', extraction_schema=ExampleSchema(example={'title': 'x'}))
		record = await SessionDriver(engine, chat_model, settings).run_item(item)
		assert record.ok
		assert engine.sessions[0].close_calls == 1

	async def test_close_happens_exactly_once_when_dispatch_throws(self, make_engine, chat_model, settings):
		engine = make_engine(fail_on='extract')
		item = _item('extract', instructions='Get it', extraction_schema=ExampleSchema(example={'title': 'x'}))
		record = await SessionDriver(engine, chat_model, settings).run_item(item)

		assert record.error.type == 'OperationError'
		assert engine.sessions[0].close_calls == 1

	async def test_close_failure_does_not_mask_result(self, make_engine, chat_model, settings):
		engine = make_engine(fail_on='close')
		record = await SessionDriver(engine, chat_model, settings).run_item(_item('observe', instructions='Look'))

		assert record.ok
		assert engine.sessions[0].close_calls == 1

	async def test_timeout_raises_the_step_error(self, make_engine, chat_model):
		engine = make_engine(fail_on='hang')
		driver = SessionDriver(engine, chat_model, RunnerSettings(operation_timeout=0.05))
		record = await driver.run_item(_item('act', instructions='Click'))

		assert record.error.type == 'OperationError'
		assert 'timed out' in record.error.message
		assert engine.sessions[0].close_calls == 1

	async def test_session_options(self, engine, chat_model):
		driver = SessionDriver(engine, chat_model, RunnerSettings(enable_caching=False, verbose=2))
		await driver.run_item(_item('observe', instructions='Look'))

		options = engine.opened[0]
		assert options.connection_url == 'ws://127.0.0.1:9222/devtools/browser/abc'
		assert options.model_identity == 'openai/gpt-4o'
		assert options.api_key == 'sk-test'
		assert options.enable_caching is False
		assert options.verbose == 2
		assert options.log_callback is not None

	async def test_item_options_override_settings(self, engine, chat_model, settings):
		item = _item('observe', instructions='Look', options=ItemOptions(verbose=1, enable_caching=False))
		await SessionDriver(engine, chat_model, settings).run_item(item)
		assert engine.opened[0].verbose == 1
		assert engine.opened[0].enable_caching is False

	async def test_each_item_gets_its_own_session(self, engine, chat_model, settings):
		driver = SessionDriver(engine, chat_model, settings)
		await driver.run_item(_item('act', instructions='One'))
		await driver.run_item(_item('act', instructions='Two'))

		assert len(engine.sessions) == 2
		assert engine.sessions[0] is not engine.sessions[1]
		assert [session.close_calls for session in engine.sessions] == [1, 1]


class TestMessages:
	async def test_messages_omitted_by_default(self, engine, chat_model, settings):
		record = await SessionDriver(engine, chat_model, settings).run_item(_item('act', instructions='Click A'))
		assert record.messages is None
		assert 'messages' not in record.to_dict()

	async def test_messages_included_when_enabled(self, engine, chat_model, settings):
		item = _item('act', instructions='Click A\nType B', options=ItemOptions(log_messages=True))
		record = await SessionDriver(engine, chat_model, settings).run_item(item)
		assert [entry.message for entry in record.messages] == ['performed Click A', 'performed Type B']

	async def test_messages_kept_when_close_fails(self, make_engine, chat_model):
		engine = make_engine(fail_on='close')
		settings = RunnerSettings(log_messages=True)
		record = await SessionDriver(engine, chat_model, settings).run_item(_item('act', instructions='Click A'))
		assert record.to_dict()['messages'] == [{'category': 'action', 'message': 'performed Click A', 'level': 1}]

	async def test_raw_dict_messages_are_accepted(self, chat_model):
		session = MagicMock()
		session.act = AsyncMock(return_value='ok')
		session.current_url = AsyncMock(return_value='https://example.com')
		session.close = AsyncMock()

		async def open_session(options):
			options.log_callback({'category': 'action', 'message': 'raw', 'level': 1, 'extra_field': True})
			return session

		engine = MagicMock()
		engine.open = open_session
		record = await SessionDriver(engine, chat_model, RunnerSettings(log_messages=True)).run_item(_item('act', instructions='Go'))

		assert [entry.message for entry in record.messages] == ['raw']
		session.close.assert_awaited_once()


class TestDriverSetup:
	def test_model_identity(self, engine, chat_model):
		assert SessionDriver(engine, chat_model).model_identity == 'openai/gpt-4o'

	def test_non_chat_model_is_rejected(self, engine):
		model = ChatModelInfo(namespace=['langchain', 'llms', 'openai'], model='gpt-3.5-turbo-instruct', api_key='sk')
		with pytest.raises(ModelConfigError):
			SessionDriver(engine, model)

	async def test_uses_injected_logger(self, engine, chat_model, settings):
		logger = MagicMock(spec=logging.Logger)
		await SessionDriver(engine, chat_model, settings, logger=logger).run_item(_item('scrape'))
		logger.error.assert_called_once()
