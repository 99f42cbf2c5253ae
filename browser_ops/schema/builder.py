"""Combinators for building type contracts.

``z`` is the vocabulary shared by Python callers and by the expression language:

	z.object({'title': z.string().describe('Page title'), 'tags': z.array(z.string()).optional()})

is the programmatic form of the expression ``z.object({title: z.string().describe("Page title"), tags: z.array(z.string()).optional()})``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from browser_ops.exceptions import SchemaError
from browser_ops.schema.views import TypeNode

_LITERAL_TYPES = (str, int, float, bool)


class ContractBuilder:
	"""Constructors for TypeNodes. Modifiers (optional, describe, ...) live on TypeNode itself."""

	CONSTRUCTORS = frozenset(
		{'object', 'string', 'number', 'boolean', 'array', 'any', 'unknown', 'null', 'enum', 'literal', 'union'}
	)

	def object(self, shape: Mapping[str, TypeNode] | None = None) -> TypeNode:
		shape = shape or {}
		if not isinstance(shape, Mapping):
			raise SchemaError(f'object() expects a mapping of property names to types, got {type(shape).__name__}')
		properties = []
		for name, value in shape.items():
			if not isinstance(name, str):
				raise SchemaError(f'Property names must be strings, got {name!r}')
			if not isinstance(value, TypeNode):
				raise SchemaError(f'Property {name!r} must be a type, got {type(value).__name__}')
			properties.append((name, value))
		return TypeNode(kind='object', properties=tuple(properties))

	def string(self) -> TypeNode:
		return TypeNode(kind='string')

	def number(self) -> TypeNode:
		return TypeNode(kind='number')

	def boolean(self) -> TypeNode:
		return TypeNode(kind='boolean')

	def any(self) -> TypeNode:
		return TypeNode(kind='any')

	def unknown(self) -> TypeNode:
		return TypeNode(kind='any')

	def null(self) -> TypeNode:
		return TypeNode(kind='null')

	def array(self, item: TypeNode | None = None) -> TypeNode:
		if item is not None and not isinstance(item, TypeNode):
			raise SchemaError(f'array() expects an element type, got {type(item).__name__}')
		return TypeNode(kind='array', items=item)

	def enum(self, values: Sequence[Any]) -> TypeNode:
		if isinstance(values, str) or not isinstance(values, Sequence) or not values:
			raise SchemaError('enum() expects a non-empty list of values')
		for value in values:
			if not isinstance(value, _LITERAL_TYPES):
				raise SchemaError(f'enum() values must be strings, numbers or booleans, got {value!r}')
		return TypeNode(kind='enum', choices=tuple(values))

	def literal(self, value: Any) -> TypeNode:
		if not isinstance(value, _LITERAL_TYPES):
			raise SchemaError(f'literal() expects a string, number or boolean, got {value!r}')
		return TypeNode(kind='enum', choices=(value,))

	def union(self, options: Sequence[TypeNode]) -> TypeNode:
		if isinstance(options, str) or not isinstance(options, Sequence) or not options:
			raise SchemaError('union() expects a non-empty list of types')
		for option in options:
			if not isinstance(option, TypeNode):
				raise SchemaError(f'union() members must be types, got {type(option).__name__}')
		if len(options) == 1:
			return options[0]
		return TypeNode(kind='union', variants=tuple(options))


z = ContractBuilder()
