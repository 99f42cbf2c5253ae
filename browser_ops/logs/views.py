from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class LogMessage(BaseModel):
	"""One log line emitted by the automation engine during a session.

	Levels follow the engine convention: 0 error, 1 info, 2 debug.
	"""

	model_config = ConfigDict(extra='allow')

	category: str = ''
	message: str = ''
	level: int = 1
	auxiliary: dict[str, Any] | None = None


class LogEntry(BaseModel):
	"""A log message as it appears in an output record."""

	category: str
	message: str
	level: int


class UsageTotals(BaseModel):
	"""Token counters summed over the model calls of one session."""

	prompt_tokens: int = Field(default=0, ge=0)
	completion_tokens: int = Field(default=0, ge=0)
	total_tokens: int = Field(default=0, ge=0)

	def __add__(self, other: 'UsageTotals') -> 'UsageTotals':
		return UsageTotals(
			prompt_tokens=self.prompt_tokens + other.prompt_tokens,
			completion_tokens=self.completion_tokens + other.completion_tokens,
			total_tokens=self.total_tokens + other.total_tokens,
		)
