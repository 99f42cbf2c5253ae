from browser_ops.session.service import SessionDriver, first_instruction, parse_operation, split_instructions
from browser_ops.session.views import (
	ActPayload,
	ActStep,
	AgentAction,
	AgentPayload,
	ChatModelInfo,
	ExtractPayload,
	ItemConfig,
	ItemOptions,
	ObservePayload,
	Operation,
	OutputRecord,
	RecordError,
	resolve_provider,
)

__all__ = [
	'SessionDriver',
	'parse_operation',
	'split_instructions',
	'first_instruction',
	'resolve_provider',
	'ChatModelInfo',
	'ItemConfig',
	'ItemOptions',
	'Operation',
	'OutputRecord',
	'RecordError',
	'ActPayload',
	'ActStep',
	'ExtractPayload',
	'ObservePayload',
	'AgentPayload',
	'AgentAction',
]
