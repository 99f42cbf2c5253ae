"""Infers a TypeNode from the shape of an example value."""

import json
from collections.abc import Mapping
from typing import Any

from browser_ops.exceptions import SchemaError
from browser_ops.schema.builder import z
from browser_ops.schema.views import TypeNode


def _infer(value: Any) -> TypeNode:
	if value is None:
		return z.any()
	# bool before int: bool is an int subclass
	if isinstance(value, bool):
		return z.boolean()
	if isinstance(value, int | float):
		return z.number()
	if isinstance(value, str):
		return z.string()
	if isinstance(value, Mapping):
		return z.object({str(key): _infer(item) for key, item in value.items()})
	if isinstance(value, list | tuple):
		if not value:
			return z.array(z.any())
		variants: list[TypeNode] = []
		for item in value:
			node = _infer(item)
			if node not in variants:
				variants.append(node)
		return z.array(z.union(variants))
	raise SchemaError(f'Cannot infer a type from example value of type {type(value).__name__}')


def example_to_node(example: Any) -> TypeNode:
	"""Infer an object TypeNode from an example mapping or its JSON text.

	Every key becomes a required property typed after its value; nested mappings
	become nested objects and lists take the type(s) of their elements.
	"""
	if isinstance(example, str):
		try:
			example = json.loads(example)
		except json.JSONDecodeError as e:
			raise SchemaError(f'Example is not valid JSON: {e}') from e

	if not isinstance(example, Mapping):
		raise SchemaError(f'Example must be a JSON object, got {type(example).__name__}')

	return _infer(example)
