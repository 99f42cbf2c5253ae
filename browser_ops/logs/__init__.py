from browser_ops.logs.service import (
	IMAGE_MARKERS,
	MAX_OUTPUT_MESSAGE_CHARS,
	USAGE_LOG_CATEGORY,
	aggregate_usage,
	filter_for_output,
)
from browser_ops.logs.views import LogEntry, LogMessage, UsageTotals

__all__ = [
	'filter_for_output',
	'aggregate_usage',
	'LogMessage',
	'LogEntry',
	'UsageTotals',
	'USAGE_LOG_CATEGORY',
	'MAX_OUTPUT_MESSAGE_CHARS',
	'IMAGE_MARKERS',
]
