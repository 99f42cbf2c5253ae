"""Browser operations over a remote browser session.

Runs act, extract, observe and agent operations per input item, resolving
extraction schemas from four descriptor sources into pydantic models.

Usage:
    from browser_ops import ChatModelInfo, RunnerSettings, run_batch
    from browser_ops.engine import BrowserUseEngine

    model = ChatModelInfo(namespace=['langchain', 'chat_models', 'openai'], model='gpt-4.1', api_key='sk-...')
    records = await run_batch(items, BrowserUseEngine(), model, RunnerSettings.from_env())
"""

from browser_ops.batch import BatchRunner, run_batch
from browser_ops.config import RunnerSettings
from browser_ops.exceptions import (
	BrowserOpsError,
	ModelConfigError,
	NavigationError,
	OperationError,
	SchemaError,
	SessionConnectionError,
	UnsupportedOperationError,
)
from browser_ops.logging_config import setup_logging
from browser_ops.logs import LogEntry, LogMessage, UsageTotals, aggregate_usage, filter_for_output
from browser_ops.schema import resolve_schema, z
from browser_ops.session import ChatModelInfo, ItemConfig, ItemOptions, Operation, OutputRecord, SessionDriver

__all__ = [
	'BatchRunner',
	'run_batch',
	'SessionDriver',
	'RunnerSettings',
	'ChatModelInfo',
	'ItemConfig',
	'ItemOptions',
	'Operation',
	'OutputRecord',
	'resolve_schema',
	'z',
	'filter_for_output',
	'aggregate_usage',
	'LogMessage',
	'LogEntry',
	'UsageTotals',
	'setup_logging',
	'BrowserOpsError',
	'ModelConfigError',
	'SchemaError',
	'SessionConnectionError',
	'NavigationError',
	'OperationError',
	'UnsupportedOperationError',
]
