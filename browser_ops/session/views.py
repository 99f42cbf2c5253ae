from collections.abc import Mapping
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from browser_ops.config import RunnerSettings
from browser_ops.exceptions import ModelConfigError
from browser_ops.logs.views import LogEntry, UsageTotals
from browser_ops.schema.views import SchemaDescriptor

# Provider tags collapsed onto the name the engine expects
PROVIDER_ALIASES: dict[str, str] = {
	'google_genai': 'google',
	'google_vertexai': 'google',
}

# Attributes a LangChain-style chat model may keep its credential under
_API_KEY_ATTRIBUTES = (
	'api_key',
	'openai_api_key',
	'anthropic_api_key',
	'google_api_key',
	'groq_api_key',
	'mistral_api_key',
	'deepseek_api_key',
)


class Operation(str, Enum):
	"""The unit of work dispatched against a session."""

	ACT = 'act'
	EXTRACT = 'extract'
	OBSERVE = 'observe'
	AGENT = 'agent'


def resolve_provider(namespace: list[str], model: str) -> str:
	"""Map a chat model's namespace (and name) to the engine's provider tag."""
	if 'chat_models' not in namespace:
		raise ModelConfigError(f'A chat model is required, got namespace {".".join(namespace) or "<empty>"}')
	if len(namespace) < 3:
		raise ModelConfigError(f'Cannot determine the model provider from namespace {".".join(namespace)}')

	provider = namespace[2]
	if provider in PROVIDER_ALIASES:
		return PROVIDER_ALIASES[provider]
	if 'deepseek' in model:
		return 'deepseek'
	return provider


class ChatModelInfo(BaseModel):
	"""Read-only view of the upstream chat model used to drive the engine."""

	namespace: list[str]
	model: str = Field(min_length=1)
	api_key: str = Field(min_length=1, repr=False)

	@property
	def provider(self) -> str:
		return resolve_provider(self.namespace, self.model)

	@property
	def model_identity(self) -> str:
		return f'{self.provider}/{self.model}'

	@classmethod
	def from_chat_model(cls, chat_model: Any) -> 'ChatModelInfo':
		"""Read namespace, model name and key from a LangChain-style chat model object.

		Raises:
			ModelConfigError: If the object is not a chat model or lacks a model name or key.
		"""
		get_namespace = getattr(chat_model, 'get_lc_namespace', None)
		namespace = get_namespace() if callable(get_namespace) else getattr(chat_model, 'lc_namespace', None)
		if not namespace:
			raise ModelConfigError('A chat model is required')

		model_name = getattr(chat_model, 'model_name', None) or getattr(chat_model, 'model', None)
		if not isinstance(model_name, str) or not model_name:
			raise ModelConfigError('Model is not defined on the chat model')

		api_key: Any = None
		for attribute in _API_KEY_ATTRIBUTES:
			api_key = getattr(chat_model, attribute, None)
			if api_key is not None:
				break
		if hasattr(api_key, 'get_secret_value'):
			api_key = api_key.get_secret_value()
		if not isinstance(api_key, str) or not api_key:
			raise ModelConfigError('API key is not defined on the chat model')

		info = cls(namespace=list(namespace), model=model_name, api_key=api_key)
		# Fail here rather than on the first item
		resolve_provider(info.namespace, info.model)
		return info


class ItemOptions(BaseModel):
	"""Per-item overrides of RunnerSettings; None means use the run default."""

	model_config = ConfigDict(extra='forbid')

	enable_caching: bool | None = None
	log_messages: bool | None = None
	verbose: Literal[0, 1, 2] | None = None

	def apply_to(self, settings: RunnerSettings) -> RunnerSettings:
		return settings.model_copy(update=self.model_dump(exclude_none=True))


class ItemConfig(BaseModel):
	"""Configuration of one input item, as supplied by the host."""

	model_config = ConfigDict(extra='forbid')

	operation: str
	connection_url: str
	page_url: str = ''
	instructions: str = ''
	extraction_schema: SchemaDescriptor | None = None
	max_steps: int | None = Field(default=None, ge=1)
	context: str = ''
	options: ItemOptions = Field(default_factory=ItemOptions)


class ActStep(BaseModel):
	instruction: str
	result: Any = None


class ActPayload(BaseModel):
	model_config = ConfigDict(validate_by_name=True, validate_by_alias=True)

	results: list[ActStep]
	current_url: str = Field(alias='currentUrl')


class ExtractPayload(BaseModel):
	result: Any = None


class ObservePayload(BaseModel):
	result: Any = None


class AgentAction(BaseModel):
	"""One recorded agent action, without the engine's per-action diagnostics."""

	model_config = ConfigDict(validate_by_name=True, validate_by_alias=True)

	type: str | None = None
	reasoning: str | None = None
	parameters: Any = None
	task_completed: bool | None = Field(default=None, alias='taskCompleted')

	@classmethod
	def from_raw(cls, raw: Mapping[str, Any]) -> 'AgentAction':
		return cls(
			type=raw.get('type'),
			reasoning=raw.get('reasoning'),
			parameters=raw.get('parameters'),
			task_completed=raw.get('taskCompleted', raw.get('task_completed')),
		)


class AgentPayload(BaseModel):
	model_config = ConfigDict(validate_by_name=True, validate_by_alias=True)

	success: bool
	message: str
	completed: bool
	actions: list[AgentAction]
	action_count: int = Field(alias='actionCount')
	usage: UsageTotals | None = None
	current_url: str = Field(alias='currentUrl')


OperationPayload = ActPayload | ExtractPayload | ObservePayload | AgentPayload


class RecordError(BaseModel):
	type: str
	message: str

	@classmethod
	def from_exception(cls, error: BaseException) -> 'RecordError':
		return cls(type=type(error).__name__, message=str(error) or type(error).__name__)


class OutputRecord(BaseModel):
	"""The single result produced for one input item."""

	operation: str
	payload: OperationPayload | None = None
	messages: list[LogEntry] | None = None
	error: RecordError | None = None

	@property
	def ok(self) -> bool:
		return self.error is None

	@classmethod
	def failure(cls, operation: str, error: BaseException, messages: list[LogEntry] | None = None) -> 'OutputRecord':
		return cls(operation=operation, error=RecordError.from_exception(error), messages=messages)

	def to_dict(self) -> dict[str, Any]:
		"""Flatten into ``{operation, **payload, messages?, error?}`` with camelCase payload keys."""
		data: dict[str, Any] = {'operation': self.operation}
		if self.payload is not None:
			data.update(self.payload.model_dump(mode='json', by_alias=True))
		if self.messages is not None:
			data['messages'] = [entry.model_dump() for entry in self.messages]
		if self.error is not None:
			data['error'] = self.error.model_dump()
		return data
