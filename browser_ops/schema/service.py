"""Resolves schema descriptors into pydantic type contracts."""

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any, assert_never

from pydantic import BaseModel, TypeAdapter, ValidationError

from browser_ops.exceptions import SchemaError
from browser_ops.schema.builder import z
from browser_ops.schema.compiler import DEFAULT_CONTRACT_NAME, build_contract
from browser_ops.schema.example import example_to_node
from browser_ops.schema.expression import parse_expression
from browser_ops.schema.json_schema import json_schema_to_node
from browser_ops.schema.views import (
	ExampleSchema,
	ExpressionSchema,
	FieldListSchema,
	FieldSpec,
	JsonSchemaSource,
	SchemaDescriptor,
	TypeNode,
)

logger = logging.getLogger(__name__)

# Field-list kinds are deliberately coarse: arrays and objects leave their members unconstrained
_FIELD_KINDS: dict[str, Callable[[], TypeNode]] = {
	'string': z.string,
	'number': z.number,
	'boolean': z.boolean,
	'array': lambda: z.array(z.any()),
	'object': lambda: z.object().passthrough(),
}

_descriptor_adapter: TypeAdapter[SchemaDescriptor] = TypeAdapter(SchemaDescriptor)


def fields_to_node(fields: Sequence[FieldSpec]) -> TypeNode:
	"""Map a field list to an object node; unknown kinds become unconstrained."""
	if not fields:
		raise SchemaError('A field list needs at least one field')

	shape: dict[str, TypeNode] = {}
	for field in fields:
		name = field.name
		if not name.strip():
			raise SchemaError('Field names must not be empty')
		if name in shape:
			raise SchemaError(f'Duplicate field name: {name!r}')

		factory = _FIELD_KINDS.get(field.kind)
		if factory is None:
			logger.debug(f'Unknown field kind {field.kind!r} for {name!r}, leaving it unconstrained')
			node = z.any()
		else:
			node = factory()
		shape[name] = node.optional() if field.optional else node

	return z.object(shape)


def parse_descriptor(data: SchemaDescriptor | Mapping[str, Any]) -> SchemaDescriptor:
	"""Validate a raw mapping (e.g. from host configuration) into a schema descriptor."""
	if isinstance(data, FieldListSchema | ExampleSchema | JsonSchemaSource | ExpressionSchema):
		return data
	try:
		return _descriptor_adapter.validate_python(data)
	except ValidationError as e:
		raise SchemaError(f'Invalid schema descriptor: {e}') from e


def resolve_schema(descriptor: SchemaDescriptor) -> type[BaseModel]:
	"""Resolve a schema descriptor into an object-shaped pydantic model.

	Resolution has no side effects; resolving the same descriptor twice yields
	equivalent models.

	Raises:
		SchemaError: If the descriptor is malformed or does not describe an object.
	"""
	if isinstance(descriptor, FieldListSchema):
		node = fields_to_node(descriptor.fields)
	elif isinstance(descriptor, ExampleSchema):
		node = example_to_node(descriptor.example)
	elif isinstance(descriptor, JsonSchemaSource):
		node = json_schema_to_node(descriptor.document)
	elif isinstance(descriptor, ExpressionSchema):
		node = parse_expression(descriptor.expression)
	else:
		assert_never(descriptor)

	contract = build_contract(node, node.title or DEFAULT_CONTRACT_NAME)
	logger.debug(f'Resolved {descriptor.source} schema into {contract.__name__} ({len(contract.model_fields)} fields)')
	return contract
