import logging
import os
import sys
from typing import TextIO

LOGGER_NAME = 'browser_ops'
LOG_FORMAT = '%(levelname)-8s [%(name)s] %(message)s'

_HANDLER_FLAG = '_browser_ops_handler'


def setup_logging(level: str | int | None = None, stream: TextIO | None = None, force: bool = False) -> logging.Logger:
	"""Attach a stream handler to the browser_ops logger.

	The level comes from the argument, then BROWSER_OPS_LOGGING_LEVEL, then 'info'.
	Calling it again is a no-op unless force=True, which replaces the handler.
	"""
	root = logging.getLogger(LOGGER_NAME)
	existing = [handler for handler in root.handlers if getattr(handler, _HANDLER_FLAG, False)]
	if existing and not force:
		return root
	for handler in existing:
		root.removeHandler(handler)

	if level is None:
		level = os.getenv('BROWSER_OPS_LOGGING_LEVEL', 'info')
	if isinstance(level, str):
		level = logging.getLevelName(level.upper())
		if not isinstance(level, int):
			level = logging.INFO

	handler = logging.StreamHandler(stream or sys.stdout)
	handler.setFormatter(logging.Formatter(LOG_FORMAT))
	setattr(handler, _HANDLER_FLAG, True)

	root.addHandler(handler)
	root.setLevel(level)
	root.propagate = False
	return root
