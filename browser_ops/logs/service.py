"""Filtering of captured log messages and token usage accounting."""

import json
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from browser_ops.logs.views import LogEntry, LogMessage, UsageTotals

logger = logging.getLogger(__name__)

# Category under which the engine reports raw model responses (with usage)
USAGE_LOG_CATEGORY = 'aisdk'

# Messages whose serialized form reaches this size are left out of output
MAX_OUTPUT_MESSAGE_CHARS = 5000

# Substrings that mark embedded image/screenshot payloads
IMAGE_MARKERS = ('image', 'screenshot')

_COUNTER_KEYS = {
	'prompt_tokens': ('prompt_tokens', 'promptTokens'),
	'completion_tokens': ('completion_tokens', 'completionTokens'),
	'total_tokens': ('total_tokens', 'totalTokens'),
}


def filter_for_output(messages: Iterable[LogMessage]) -> list[LogEntry]:
	"""Keep the messages that are safe to surface in an output record.

	Drops anything whose JSON form mentions an image/screenshot payload or is
	MAX_OUTPUT_MESSAGE_CHARS characters or longer. Order is preserved.
	"""
	entries: list[LogEntry] = []
	for message in messages:
		serialized = message.model_dump_json(exclude_none=True)
		if len(serialized) >= MAX_OUTPUT_MESSAGE_CHARS:
			continue
		if any(marker in serialized for marker in IMAGE_MARKERS):
			continue
		entries.append(LogEntry(category=message.category, message=message.message, level=message.level))
	return entries


def _read_counter(usage: Mapping[str, Any], keys: tuple[str, ...]) -> int:
	"""First non-zero value among the key spellings, 0 if none is set."""
	for key in keys:
		value = usage.get(key)
		if not value:
			continue
		if isinstance(value, bool) or not isinstance(value, int | float | str):
			raise ValueError(f'{key} is not a number: {value!r}')
		count = int(value)
		if count < 0:
			raise ValueError(f'{key} is negative: {count}')
		return count
	return 0


def _parse_usage(message: LogMessage) -> UsageTotals | None:
	"""Usage counters carried by one engine message, or None if it carries none."""
	auxiliary = message.auxiliary or {}
	response = auxiliary.get('response')
	if not isinstance(response, Mapping):
		return None

	value = response.get('value')
	payload = json.loads(value) if isinstance(value, str) else value
	if not isinstance(payload, Mapping):
		return None

	usage = payload.get('usage')
	if not usage or not isinstance(usage, Mapping):
		return None

	return UsageTotals(**{field: _read_counter(usage, keys) for field, keys in _COUNTER_KEYS.items()})


def aggregate_usage(messages: Iterable[LogMessage]) -> UsageTotals | None:
	"""Sum token usage over every model-usage message of a session.

	Accepts both snake_case and camelCase counter names. A message whose payload
	cannot be parsed is skipped without aborting the aggregation. Returns None
	when no message contributed usage.
	"""
	total: UsageTotals | None = None
	for message in messages:
		if message.category != USAGE_LOG_CATEGORY:
			continue
		try:
			usage = _parse_usage(message)
		except (ValueError, TypeError, OverflowError) as e:
			logger.debug(f'Skipping unparseable usage payload: {e}')
			continue
		if usage is None:
			continue
		total = usage if total is None else total + usage
	return total
