"""Compiles a TypeNode tree into a runtime pydantic model."""

import keyword
import logging
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, create_model

from browser_ops.exceptions import SchemaError
from browser_ops.schema.views import TypeNode

logger = logging.getLogger(__name__)

DEFAULT_CONTRACT_NAME = 'ExtractionContract'

_PRIMITIVE_MAP: dict[str, Any] = {
	'string': str,
	'number': float,
	'integer': int,
	'boolean': bool,
	'null': type(None),
	'any': Any,
}

# Attribute names a property cannot use directly on a pydantic model
_RESERVED_NAMES = frozenset(dir(BaseModel))


def _attribute_name(prop_name: str, index: int, taken: set[str]) -> str:
	"""Python attribute name for a property; unusable names get a generated one and keep theirs as alias."""
	if (
		prop_name.isidentifier()
		and not keyword.iskeyword(prop_name)
		and not prop_name.startswith('_')
		and prop_name not in _RESERVED_NAMES
		and prop_name not in taken
	):
		return prop_name
	candidate = f'field_{index}'
	while candidate in taken:
		candidate = f'{candidate}_'
	return candidate


def _resolve_type(node: TypeNode, name: str) -> Any:
	"""Recursively resolve a TypeNode to a Python type usable in create_model."""
	if node.kind == 'object':
		python_type: Any = _build_model(node, name) if node.properties else dict[str, Any]
	elif node.kind == 'array':
		item_type = _resolve_type(node.items, f'{name}_item') if node.items is not None else Any
		python_type = list[item_type]
	elif node.kind == 'enum':
		python_type = Literal[node.choices]
	elif node.kind == 'union':
		options = tuple(_resolve_type(variant, f'{name}_option{i}') for i, variant in enumerate(node.variants))
		python_type = Union[options] if len(options) > 1 else options[0]
	else:
		python_type = _PRIMITIVE_MAP[node.kind]

	if (node.is_nullable or node.is_optional) and python_type is not Any:
		return python_type | None
	return python_type


def _build_model(node: TypeNode, name: str) -> type[BaseModel]:
	"""Build a pydantic model from an object node."""
	fields: dict[str, Any] = {}
	taken: set[str] = set()

	for index, (prop_name, prop_node) in enumerate(node.properties):
		attribute = _attribute_name(prop_name, index, taken)
		taken.add(attribute)

		field_kwargs: dict[str, Any] = {}
		if attribute != prop_name:
			field_kwargs['alias'] = prop_name
		if prop_node.description is not None:
			field_kwargs['description'] = prop_node.description

		default = None if prop_node.is_optional else ...
		fields[attribute] = (_resolve_type(prop_node, f'{name}_{attribute}'), Field(default, **field_kwargs))

	config = ConfigDict(extra=node.extra, validate_by_name=True, validate_by_alias=True, protected_namespaces=())
	return create_model(name, __config__=config, __doc__=node.description, **fields)


def build_contract(node: TypeNode, name: str = DEFAULT_CONTRACT_NAME) -> type[BaseModel]:
	"""Compile the root of a contract into a pydantic model.

	The root must be an object node; a contract always describes a record.

	Raises:
		SchemaError: If the root is not an object or pydantic rejects the generated model.
	"""
	if not node.is_object:
		raise SchemaError(f'A schema must describe an object, got {node.kind}')

	try:
		return _build_model(node, name)
	except SchemaError:
		raise
	except Exception as e:
		logger.debug(f'create_model failed for {name}: {e}')
		raise SchemaError(f'Could not build a type contract: {e}') from e


def contract_field_names(model: type[BaseModel]) -> list[str]:
	"""External (aliased) property names of a contract, in declaration order."""
	return [field.alias or attribute for attribute, field in model.model_fields.items()]
