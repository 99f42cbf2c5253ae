import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from browser_ops.config import RunnerSettings
from browser_ops.engine.base import BrowserEngine
from browser_ops.exceptions import BrowserOpsError
from browser_ops.session.service import SessionDriver
from browser_ops.session.views import ChatModelInfo, ItemConfig, OutputRecord

logger = logging.getLogger(__name__)


def _operation_tag(raw: Any) -> str:
	if isinstance(raw, ItemConfig):
		return raw.operation
	if isinstance(raw, Mapping):
		return str(raw.get('operation', ''))
	return ''


class BatchRunner:
	"""Feeds items to a SessionDriver one at a time, one record per item."""

	def __init__(self, driver: SessionDriver):
		self.driver = driver

	async def run(self, items: Iterable[ItemConfig | Mapping[str, Any]]) -> list[OutputRecord]:
		records: list[OutputRecord] = []
		for index, raw in enumerate(items):
			records.append(await self._run_one(index, raw))

		failed = sum(1 for record in records if not record.ok)
		logger.info(f'Batch finished: {len(records)} items, {failed} failed')
		return records

	async def _run_one(self, index: int, raw: ItemConfig | Mapping[str, Any]) -> OutputRecord:
		operation = _operation_tag(raw)
		try:
			item = raw if isinstance(raw, ItemConfig) else ItemConfig.model_validate(raw)
		except ValidationError as e:
			logger.error(f'Item {index} has an invalid configuration: {e}')
			return OutputRecord.failure(operation, BrowserOpsError(f'Invalid item configuration: {e}'))

		try:
			return await self.driver.run_item(item)
		except Exception as e:
			# run_item reports its own failures; this only catches driver bugs
			logger.exception(f'Item {index} crashed the session driver')
			return OutputRecord.failure(operation, e)


async def run_batch(
	items: Iterable[ItemConfig | Mapping[str, Any]],
	engine: BrowserEngine,
	model: ChatModelInfo | Any,
	settings: RunnerSettings | None = None,
) -> list[OutputRecord]:
	"""Run every item against engine with model, returning records in input order.

	model may be a ChatModelInfo or a LangChain-style chat model object.
	Raises ModelConfigError before any item runs if the model is unusable.
	"""
	info = model if isinstance(model, ChatModelInfo) else ChatModelInfo.from_chat_model(model)
	return await BatchRunner(SessionDriver(engine, info, settings=settings)).run(items)
