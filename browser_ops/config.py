"""Process-wide settings, read once and treated as read-only during a run."""

import logging
import os
from typing import Literal

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

ENV_PREFIX = 'BROWSER_OPS_'

DEFAULT_OPERATION_TIMEOUT = 300.0

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}
_FALSE_VALUES = {'0', 'false', 'no', 'off'}


def _env(name: str) -> str | None:
	value = os.getenv(ENV_PREFIX + name)
	if value is None or not value.strip():
		return None
	return value.strip()


def _env_bool(name: str, default: bool) -> bool:
	value = _env(name)
	if value is None:
		return default
	if value.lower() in _TRUE_VALUES:
		return True
	if value.lower() in _FALSE_VALUES:
		return False
	raise ValueError(f'{ENV_PREFIX}{name} must be a boolean, got {value!r}')


def _env_timeout(name: str, default: float | None) -> float | None:
	value = _env(name)
	if value is None:
		return default
	if value.lower() in {'none', 'off'}:
		return None
	timeout = float(value)
	return timeout if timeout > 0 else None


class RunnerSettings(BaseModel):
	"""Defaults for every item of a run; per-item options override them."""

	enable_caching: bool = True
	log_messages: bool = False
	verbose: Literal[0, 1, 2] = 0
	operation_timeout: float | None = Field(default=DEFAULT_OPERATION_TIMEOUT, gt=0)
	default_max_steps: int = Field(default=10, ge=1)

	@classmethod
	def from_env(cls, dotenv: bool = True) -> 'RunnerSettings':
		"""Build settings from BROWSER_OPS_* environment variables (and a .env file)."""
		if dotenv:
			load_dotenv(find_dotenv(usecwd=True))

		verbose = _env('VERBOSE')
		max_steps = _env('DEFAULT_MAX_STEPS')
		settings = cls(
			enable_caching=_env_bool('ENABLE_CACHING', True),
			log_messages=_env_bool('LOG_MESSAGES', False),
			verbose=int(verbose) if verbose is not None else 0,
			operation_timeout=_env_timeout('OPERATION_TIMEOUT', DEFAULT_OPERATION_TIMEOUT),
			default_max_steps=int(max_steps) if max_steps is not None else 10,
		)
		logger.debug(f'Loaded settings from environment: {settings.model_dump()}')
		return settings
