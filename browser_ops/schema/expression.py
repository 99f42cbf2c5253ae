"""Parser for the contract expression language.

Expressions use the ``z`` vocabulary from browser_ops.schema.builder, written the
way a JavaScript author would write a zod schema:

	z.object({
		title: z.string().describe("The page title"),
		price: z.number().optional(),
	})

The source is parsed with ``ast`` and walked node by node; only constructor
calls on ``z``, whitelisted modifier calls, literals, lists and object literals
are accepted. Nothing is ever executed.
"""

import ast
from typing import Any

from browser_ops.exceptions import SchemaError
from browser_ops.schema.builder import ContractBuilder, z
from browser_ops.schema.views import TypeNode

MODIFIERS = frozenset({'optional', 'nullable', 'nullish', 'describe', 'passthrough', 'strict', 'strip', 'int', 'array'})

# zod refinements that only constrain values; accepted and left out of the contract
REFINEMENTS = frozenset(
	{
		'min',
		'max',
		'length',
		'nonempty',
		'url',
		'email',
		'uuid',
		'datetime',
		'trim',
		'toLowerCase',
		'toUpperCase',
		'startsWith',
		'endsWith',
		'includes',
		'positive',
		'negative',
		'nonnegative',
		'nonpositive',
		'finite',
		'multipleOf',
	}
)

_JS_LITERALS: dict[str, Any] = {'true': True, 'false': False, 'null': None}


def _where(node: ast.AST) -> str:
	return f'line {getattr(node, "lineno", "?")}, column {getattr(node, "col_offset", -1) + 1}'


def _evaluate(node: ast.expr) -> Any:
	if isinstance(node, ast.Constant):
		if isinstance(node.value, str | int | float | bool) or node.value is None:
			return node.value
		raise SchemaError(f'Unsupported literal {node.value!r} at {_where(node)}')

	if isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.USub):
		operand = _evaluate(node.operand)
		if isinstance(operand, int | float) and not isinstance(operand, bool):
			return -operand
		raise SchemaError(f'Unary minus only applies to numbers at {_where(node)}')

	if isinstance(node, ast.Name):
		if node.id in _JS_LITERALS:
			return _JS_LITERALS[node.id]
		raise SchemaError(f'Unknown name {node.id!r} at {_where(node)}')

	if isinstance(node, ast.Dict):
		shape: dict[str, Any] = {}
		for key, value in zip(node.keys, node.values):
			if key is None:
				raise SchemaError(f'Spread syntax is not supported at {_where(value)}')
			if isinstance(key, ast.Name):
				name = key.id
			elif isinstance(key, ast.Constant) and isinstance(key.value, str):
				name = key.value
			else:
				raise SchemaError(f'Object keys must be names or strings at {_where(key)}')
			shape[name] = _evaluate(value)
		return shape

	if isinstance(node, ast.List | ast.Tuple):
		return [_evaluate(element) for element in node.elts]

	if isinstance(node, ast.Call):
		return _evaluate_call(node)

	raise SchemaError(f'Unsupported syntax ({type(node).__name__}) at {_where(node)}')


def _evaluate_call(node: ast.Call) -> Any:
	if node.keywords:
		raise SchemaError(f'Keyword arguments are not supported at {_where(node)}')
	if not isinstance(node.func, ast.Attribute):
		raise SchemaError(f'Only z.<type>() constructors and type modifiers can be called at {_where(node)}')

	for arg in node.args:
		if isinstance(arg, ast.Starred):
			raise SchemaError(f'Spread arguments are not supported at {_where(arg)}')

	method = node.func.attr
	target = node.func.value

	if isinstance(target, ast.Name) and target.id == 'z':
		if method not in ContractBuilder.CONSTRUCTORS:
			raise SchemaError(f'Unknown constructor z.{method}() at {_where(node)}')
		func = getattr(z, method)
	else:
		receiver = _evaluate(target)
		if not isinstance(receiver, TypeNode):
			raise SchemaError(f'.{method}() must be called on a type at {_where(node)}')
		if method in REFINEMENTS or method == 'default':
			for arg in node.args:
				_evaluate(arg)
			# A field with a default may be left out
			return receiver.optional() if method == 'default' else receiver
		if method not in MODIFIERS:
			raise SchemaError(f'Unknown modifier .{method}() at {_where(node)}')
		func = getattr(receiver, method)

	args = [_evaluate(arg) for arg in node.args]
	try:
		return func(*args)
	except TypeError as e:
		raise SchemaError(f'Bad arguments for {method}() at {_where(node)}: {e}') from e


def parse_expression(source: str) -> TypeNode:
	"""Parse an expression-language source text into a TypeNode.

	Raises:
		SchemaError: On syntax errors, constructs outside the vocabulary, or when
			the expression does not evaluate to an object type.
	"""
	text = source.strip().rstrip(';').strip() if isinstance(source, str) else ''
	if not text:
		raise SchemaError('Schema expression is empty')

	try:
		tree = ast.parse(text, mode='eval')
	except SyntaxError as e:
		raise SchemaError(f'Invalid schema expression (line {e.lineno}, column {e.offset}): {e.msg}') from e

	result = _evaluate(tree.body)
	if not isinstance(result, TypeNode):
		raise SchemaError(f'Schema expression must evaluate to a type, got {type(result).__name__}')
	if not result.is_object:
		raise SchemaError(f'Schema expression must evaluate to z.object(...), got {result.kind}')
	return result
