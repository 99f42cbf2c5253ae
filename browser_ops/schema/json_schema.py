"""Translates a JSON Schema document into a TypeNode tree."""

import json
import logging
from dataclasses import replace
from typing import Any

from browser_ops.exceptions import SchemaError
from browser_ops.schema.builder import z
from browser_ops.schema.views import TypeNode

logger = logging.getLogger(__name__)

# Keywords that indicate conditional/negation patterns we don't support
_UNSUPPORTED_KEYWORDS = frozenset(
	{
		'not',
		'if',
		'then',
		'else',
		'dependentSchemas',
		'dependentRequired',
		'patternProperties',
		'unevaluatedProperties',
		'prefixItems',
	}
)

_PRIMITIVE_KINDS = frozenset({'string', 'number', 'integer', 'boolean', 'null'})


def _check_unsupported(schema: dict, path: str) -> None:
	"""Raise SchemaError if the schema uses unsupported keywords."""
	for kw in _UNSUPPORTED_KEYWORDS:
		if kw in schema:
			raise SchemaError(f'Unsupported JSON Schema keyword {kw!r} at {path}')


class _Translator:
	def __init__(self, root: dict[str, Any]):
		self.root = root
		self._ref_stack: list[str] = []

	def translate(self, schema: Any, path: str) -> TypeNode:
		if schema is True:
			return z.any()
		if not isinstance(schema, dict):
			raise SchemaError(f'Schema at {path} must be an object, got {type(schema).__name__}')

		_check_unsupported(schema, path)

		if '$ref' in schema:
			node = self._translate_ref(schema['$ref'], path)
		elif 'allOf' in schema:
			members = schema['allOf']
			if not isinstance(members, list) or len(members) != 1:
				raise SchemaError(f'allOf at {path} is only supported with exactly one member')
			node = self.translate(members[0], f'{path}/allOf/0')
		elif 'anyOf' in schema or 'oneOf' in schema:
			keyword = 'anyOf' if 'anyOf' in schema else 'oneOf'
			node = self._translate_union(schema[keyword], f'{path}/{keyword}')
		elif 'const' in schema:
			node = self._translate_enum([schema['const']], path)
		elif 'enum' in schema:
			node = self._translate_enum(schema['enum'], path)
		else:
			node = self._translate_typed(schema, path)

		if schema.get('nullable', False):
			node = node.nullable()
		if isinstance(schema.get('description'), str):
			node = node.describe(schema['description'])
		return node

	def _translate_ref(self, ref: Any, path: str) -> TypeNode:
		if not isinstance(ref, str) or not ref.startswith('#'):
			raise SchemaError(f'Only local $ref values are supported, got {ref!r} at {path}')
		if ref in self._ref_stack:
			raise SchemaError(f'Recursive $ref {ref!r} is not supported')

		target: Any = self.root
		for part in ref.lstrip('#').strip('/').split('/'):
			if not part:
				continue
			part = part.replace('~1', '/').replace('~0', '~')
			if not isinstance(target, dict) or part not in target:
				raise SchemaError(f'Unresolvable $ref {ref!r} at {path}')
			target = target[part]

		self._ref_stack.append(ref)
		try:
			return self.translate(target, ref)
		finally:
			self._ref_stack.pop()

	def _translate_union(self, members: Any, path: str) -> TypeNode:
		if not isinstance(members, list) or not members:
			raise SchemaError(f'{path} must be a non-empty list')

		nullable = False
		options: list[TypeNode] = []
		for i, member in enumerate(members):
			if isinstance(member, dict) and member.get('type') == 'null':
				nullable = True
				continue
			options.append(self.translate(member, f'{path}/{i}'))

		node = z.union(options) if options else z.null()
		return node.nullable() if nullable and options else node

	def _translate_enum(self, values: Any, path: str) -> TypeNode:
		if not isinstance(values, list) or not values:
			raise SchemaError(f'enum at {path} must be a non-empty list')
		choices = [value for value in values if value is not None]
		if not choices:
			return z.null()
		node = z.enum(choices)
		return node.nullable() if len(choices) < len(values) else node

	def _translate_typed(self, schema: dict, path: str) -> TypeNode:
		json_type = schema.get('type')
		if json_type is None:
			if 'properties' in schema:
				json_type = 'object'
			elif 'items' in schema:
				json_type = 'array'
			else:
				return z.any()

		# Type lists: ["string", "null"] is a nullable string
		if isinstance(json_type, list):
			for kind in json_type:
				if not isinstance(kind, str):
					raise SchemaError(f'JSON Schema type entries must be strings, got {kind!r} at {path}')
			kinds = [kind for kind in json_type if kind != 'null']
			if not kinds:
				return z.null()
			options = [self._translate_typed({**schema, 'type': kind}, path) for kind in kinds]
			node = z.union(options)
			return node.nullable() if len(kinds) < len(json_type) else node

		if not isinstance(json_type, str):
			raise SchemaError(f'JSON Schema type must be a string or a list of strings, got {json_type!r} at {path}')

		if json_type == 'object':
			return self._translate_object(schema, path)

		if json_type == 'array':
			items = schema.get('items')
			if items is None:
				return z.array()
			if isinstance(items, list):
				raise SchemaError(f'Tuple-style items at {path} are not supported')
			return z.array(self.translate(items, f'{path}/items'))

		if json_type in _PRIMITIVE_KINDS:
			return TypeNode(kind=json_type)

		raise SchemaError(f'Unsupported JSON Schema type {json_type!r} at {path}')

	def _translate_object(self, schema: dict, path: str) -> TypeNode:
		properties = schema.get('properties', {})
		if not isinstance(properties, dict):
			raise SchemaError(f'properties at {path} must be an object')
		required = schema.get('required', [])
		if not isinstance(required, list) or not all(isinstance(name, str) for name in required):
			raise SchemaError(f'required at {path} must be a list of property names')

		shape: dict[str, TypeNode] = {}
		for prop_name, prop_schema in properties.items():
			prop_node = self.translate(prop_schema, f'{path}/properties/{prop_name}')
			shape[prop_name] = prop_node if prop_name in required else prop_node.optional()

		node = z.object(shape)
		additional = schema.get('additionalProperties')
		if additional is False:
			node = node.strict()
		elif additional is True or isinstance(additional, dict):
			node = node.passthrough()
		return node


def json_schema_to_node(document: dict[str, Any] | str) -> TypeNode:
	"""Translate a JSON Schema document (or its JSON text) into a TypeNode.

	The root must describe an object. The document's ``title`` is kept on the
	returned node and becomes the contract's model name.

	Raises:
		SchemaError: If the document is not valid JSON, uses unsupported keywords,
			or does not describe an object.
	"""
	if isinstance(document, str):
		try:
			document = json.loads(document)
		except json.JSONDecodeError as e:
			raise SchemaError(f'JSON Schema is not valid JSON: {e}') from e

	if not isinstance(document, dict):
		raise SchemaError(f'JSON Schema must be an object, got {type(document).__name__}')

	node = _Translator(document).translate(document, '#')
	if not node.is_object:
		raise SchemaError(f'Top-level schema must describe an object, got {node.kind}')

	title = document.get('title')
	if isinstance(title, str) and title.strip():
		node = replace(node, title=title.strip())
	logger.debug(f'Translated JSON Schema with {len(node.properties)} top-level properties')
	return node
