from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from browser_ops.exceptions import SchemaError

NodeKind = Literal['string', 'number', 'integer', 'boolean', 'null', 'any', 'array', 'object', 'enum', 'union']
ExtraPolicy = Literal['ignore', 'allow', 'forbid']


@dataclass(frozen=True)
class TypeNode:
	"""Declarative description of one type inside a contract.

	Every schema source builds a tree of TypeNodes; the compiler turns the root
	object node into a pydantic model. Modifier methods return new nodes, so a
	node can be shared between several parents.
	"""

	kind: NodeKind
	items: TypeNode | None = None
	properties: tuple[tuple[str, TypeNode], ...] = ()
	variants: tuple[TypeNode, ...] = ()
	choices: tuple[Any, ...] = ()
	is_optional: bool = False
	is_nullable: bool = False
	description: str | None = None
	extra: ExtraPolicy = 'ignore'
	title: str | None = None

	@property
	def is_object(self) -> bool:
		return self.kind == 'object'

	def optional(self) -> TypeNode:
		return replace(self, is_optional=True)

	def nullable(self) -> TypeNode:
		return replace(self, is_nullable=True)

	def nullish(self) -> TypeNode:
		return replace(self, is_optional=True, is_nullable=True)

	def describe(self, description: str) -> TypeNode:
		if not isinstance(description, str):
			raise SchemaError(f'describe() expects a string, got {type(description).__name__}')
		return replace(self, description=description)

	def passthrough(self) -> TypeNode:
		return self._with_extra('allow', 'passthrough')

	def strict(self) -> TypeNode:
		return self._with_extra('forbid', 'strict')

	def strip(self) -> TypeNode:
		return self._with_extra('ignore', 'strip')

	def int(self) -> TypeNode:
		if self.kind not in ('number', 'integer'):
			raise SchemaError(f'int() can only be applied to a number, not {self.kind}')
		return replace(self, kind='integer')

	def array(self) -> TypeNode:
		return TypeNode(kind='array', items=self)

	def _with_extra(self, extra: ExtraPolicy, modifier: str) -> TypeNode:
		if not self.is_object:
			raise SchemaError(f'{modifier}() can only be applied to an object, not {self.kind}')
		return replace(self, extra=extra)


class FieldSpec(BaseModel):
	"""One entry of a field-list schema."""

	model_config = ConfigDict(extra='forbid')

	name: str
	kind: str = 'string'
	optional: bool = False


class FieldListSchema(BaseModel):
	"""Schema given as a flat list of named, typed fields."""

	model_config = ConfigDict(extra='forbid')

	source: Literal['field_list'] = 'field_list'
	fields: list[FieldSpec] = Field(default_factory=list)


class ExampleSchema(BaseModel):
	"""Schema inferred from the shape of an example value (a mapping or its JSON text)."""

	model_config = ConfigDict(extra='forbid')

	source: Literal['example'] = 'example'
	example: Any


class JsonSchemaSource(BaseModel):
	"""Schema given as a JSON Schema document (a mapping or its JSON text)."""

	model_config = ConfigDict(extra='forbid')

	source: Literal['json_schema'] = 'json_schema'
	document: dict[str, Any] | str


class ExpressionSchema(BaseModel):
	"""Schema written in the contract expression language, e.g. ``z.object({title: z.string()})``."""

	model_config = ConfigDict(extra='forbid')

	source: Literal['expression'] = 'expression'
	expression: str


SchemaDescriptor = Annotated[
	FieldListSchema | ExampleSchema | JsonSchemaSource | ExpressionSchema,
	Field(discriminator='source'),
]
