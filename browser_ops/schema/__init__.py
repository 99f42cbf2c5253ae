from browser_ops.schema.builder import ContractBuilder, z
from browser_ops.schema.compiler import build_contract, contract_field_names
from browser_ops.schema.service import fields_to_node, parse_descriptor, resolve_schema
from browser_ops.schema.views import (
	ExampleSchema,
	ExpressionSchema,
	FieldListSchema,
	FieldSpec,
	JsonSchemaSource,
	SchemaDescriptor,
	TypeNode,
)

__all__ = [
	'resolve_schema',
	'parse_descriptor',
	'fields_to_node',
	'build_contract',
	'contract_field_names',
	'ContractBuilder',
	'z',
	'TypeNode',
	'FieldSpec',
	'FieldListSchema',
	'ExampleSchema',
	'JsonSchemaSource',
	'ExpressionSchema',
	'SchemaDescriptor',
]
