"""
Restricted evaluator for math-node code.

The node's code is treated as the body of a function whose parameters are
the node's dynamic input labels::

    return a + b;

    total = a * 2
    if total > 10:
        total = 10
    return {'result': total, 'doubled': a * 2}

Only a whitelisted subset of Python syntax is interpreted, by walking the
AST; nothing is passed to ``exec``/``eval``. There is no access to
builtins beyond a fixed numeric/collection set, no imports, no function or
class definitions and no private attributes. Loops are bounded by a step
budget.
"""

from __future__ import annotations

from collections.abc import Sized
from functools import lru_cache
from typing import Any
import ast
import keyword
import math
import operator

import numpy as np

from .config import settings


class SandboxError(Exception):
    """Base exception for sandboxed evaluation errors."""

    def __init__(self, message: str, node: ast.AST | None = None):
        self.message = message
        self.line = getattr(node, 'lineno', None) if node is not None else None
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.line is not None:
            return f"{self.message} (line {self.line})"
        return self.message


class SandboxSecurityError(SandboxError):
    """Raised when code uses syntax or names outside the whitelist."""


class SandboxNameError(SandboxError):
    """Raised when code reads an undefined variable."""


class SandboxLimitError(SandboxError):
    """Raised when code exceeds the step budget or size limits."""


MAX_POWER_EXPONENT = 10_000
MAX_SEQUENCE_REPEAT = 1_000_000
MAX_RANGE_LENGTH = 1_000_000


def _safe_pow(base: Any, exponent: Any) -> Any:
    if isinstance(exponent, int) and abs(exponent) > MAX_POWER_EXPONENT and base not in (0, 1, -1):
        raise SandboxLimitError(f"Exponent {exponent} is too large")
    return operator.pow(base, exponent)


def _safe_mul(left: Any, right: Any) -> Any:
    for seq, count in ((left, right), (right, left)):
        if isinstance(seq, (str, list, tuple)) and isinstance(count, int):
            if len(seq) * count > MAX_SEQUENCE_REPEAT:
                raise SandboxLimitError("Sequence repetition is too large")
    return operator.mul(left, right)


def _safe_range(*args: Any) -> range:
    values = range(*args)
    # len() overflows for ranges beyond sys.maxsize
    if values.start + MAX_RANGE_LENGTH * values.step in values:
        raise SandboxLimitError(f"Range of more than {MAX_RANGE_LENGTH} items is too large")
    return values


def _size(value: Any) -> int:
    if isinstance(value, np.ndarray):
        return int(value.size)
    return len(value) if isinstance(value, Sized) else 0


SAFE_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: _safe_mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: _safe_pow,
    ast.BitOr: operator.or_,
    ast.BitXor: operator.xor,
    ast.BitAnd: operator.and_,
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
    ast.In: lambda x, y: x in y,
    ast.NotIn: lambda x, y: x not in y,
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
    ast.Not: operator.not_,
    ast.Invert: operator.inv,
}

SAFE_FUNCTIONS = {
    'len': len,
    'int': int,
    'float': float,
    'str': str,
    'bool': bool,
    'list': list,
    'dict': dict,
    'tuple': tuple,
    'min': min,
    'max': max,
    'sum': sum,
    'abs': abs,
    'round': round,
    'all': all,
    'any': any,
    'range': _safe_range,
    'sorted': sorted,
    'enumerate': enumerate,
    'zip': zip,
    # math
    'sqrt': math.sqrt,
    'sin': math.sin,
    'cos': math.cos,
    'tan': math.tan,
    'atan2': math.atan2,
    'floor': math.floor,
    'ceil': math.ceil,
    'log': math.log,
    'exp': math.exp,
    'hypot': math.hypot,
    'radians': math.radians,
    'degrees': math.degrees,
}

# Calls that walk their arguments eagerly; every element costs one step
ITERATING_CALLS = {
    'list', 'tuple', 'dict', 'min', 'max', 'sum', 'all', 'any', 'sorted',
    'join', 'count', 'index',
}

SAFE_CONSTANTS = {
    'pi': math.pi,
    'e': math.e,
    'inf': math.inf,
}

SAFE_METHODS = {
    'get', 'keys', 'values', 'items', 'lower', 'upper', 'strip', 'split',
    'join', 'replace', 'startswith', 'endswith', 'append', 'count', 'index',
}

_ATTRIBUTE_TYPES = (int, float, complex, str, list, dict, tuple)
_ARRAY_ATTRIBUTES = {'shape', 'size', 'ndim'}

ALLOWED_NODES = (
    ast.Module, ast.Expr, ast.Assign, ast.AugAssign, ast.Return, ast.If,
    ast.For, ast.While, ast.Break, ast.Continue, ast.Pass,
    ast.Constant, ast.Name, ast.Load, ast.Store, ast.List, ast.Tuple, ast.Dict,
    ast.BinOp, ast.UnaryOp, ast.Compare, ast.BoolOp, ast.IfExp,
    ast.Subscript, ast.Slice, ast.Attribute, ast.Call, ast.keyword,
    ast.JoinedStr, ast.FormattedValue, ast.And, ast.Or,
    *(op for op in SAFE_OPERATORS),
)


class _Return(Exception):
    def __init__(self, value: Any):
        self.value = value


class _Break(Exception):
    pass


class _Continue(Exception):
    pass


@lru_cache(maxsize=256)
def compile_code(code: str) -> ast.Module:
    """Parse and validate code once; the result is cached per code string.

    :raises SandboxError: On syntax errors
    :raises SandboxSecurityError: On syntax outside the whitelist
    """
    try:
        tree = ast.parse(code, mode='exec')
    except SyntaxError as e:
        raise SandboxError(f"Syntax error: {e.msg}", node=e) from e

    for node in ast.walk(tree):
        if not isinstance(node, ALLOWED_NODES):
            raise SandboxSecurityError(f"Use of {node.__class__.__name__} is not allowed", node=node)
        if isinstance(node, ast.Name) and node.id.startswith('_'):
            raise SandboxSecurityError(f"Name '{node.id}' is not allowed", node=node)
        if isinstance(node, ast.Attribute) and node.attr.startswith('_'):
            raise SandboxSecurityError(
                f"Access to private attribute '{node.attr}' is not allowed", node=node
            )
    return tree


class SandboxInterpreter:
    """Walks a validated AST with a private variable scope."""

    def __init__(self, scope: dict[str, Any], max_steps: int):
        self.scope = scope
        self.max_steps = max_steps
        self.steps = 0

    def run(self, tree: ast.Module) -> Any:
        try:
            self._exec_block(tree.body)
        except _Return as ret:
            return ret.value
        except (_Break, _Continue) as e:
            raise SandboxSecurityError("'break'/'continue' outside loop") from e
        return None

    # --- statements ---

    def _exec_block(self, statements: list[ast.stmt]) -> None:
        for stmt in statements:
            self._exec(stmt)

    def _exec(self, node: ast.stmt) -> None:
        if isinstance(node, ast.Expr):
            self.visit(node.value)
        elif isinstance(node, ast.Assign):
            value = self.visit(node.value)
            for target in node.targets:
                self._assign(target, value)
        elif isinstance(node, ast.AugAssign):
            op_func = SAFE_OPERATORS[type(node.op)]
            current = self.visit(self._as_load(node.target))
            self._assign(node.target, op_func(current, self.visit(node.value)))
        elif isinstance(node, ast.Return):
            raise _Return(self.visit(node.value) if node.value is not None else None)
        elif isinstance(node, ast.If):
            self._exec_block(node.body if self.visit(node.test) else node.orelse)
        elif isinstance(node, ast.For):
            self._exec_for(node)
        elif isinstance(node, ast.While):
            self._exec_while(node)
        elif isinstance(node, ast.Break):
            raise _Break()
        elif isinstance(node, ast.Continue):
            raise _Continue()
        elif isinstance(node, ast.Pass):
            pass
        else:
            raise SandboxSecurityError(f"Use of {node.__class__.__name__} is not allowed", node=node)

    def _step(self, node: ast.AST, count: int = 1) -> None:
        self.steps += count
        if self.steps > self.max_steps:
            raise SandboxLimitError(f"Step limit of {self.max_steps} exceeded", node=node)

    def _exec_for(self, node: ast.For) -> None:
        for item in self.visit(node.iter):
            self._step(node)
            self._assign(node.target, item)
            try:
                self._exec_block(node.body)
            except _Break:
                return
            except _Continue:
                continue
        self._exec_block(node.orelse)

    def _exec_while(self, node: ast.While) -> None:
        while self.visit(node.test):
            self._step(node)
            try:
                self._exec_block(node.body)
            except _Break:
                return
            except _Continue:
                continue
        self._exec_block(node.orelse)

    @staticmethod
    def _as_load(target: ast.expr) -> ast.expr:
        if isinstance(target, ast.Name):
            return ast.Name(id=target.id, ctx=ast.Load())
        if isinstance(target, ast.Subscript):
            return ast.Subscript(value=target.value, slice=target.slice, ctx=ast.Load())
        raise SandboxSecurityError("Unsupported augmented assignment target", node=target)

    def _assign(self, target: ast.expr, value: Any) -> None:
        if isinstance(target, ast.Name):
            if target.id in SAFE_FUNCTIONS or keyword.iskeyword(target.id):
                raise SandboxSecurityError(f"Cannot assign to '{target.id}'", node=target)
            self.scope[target.id] = value
        elif isinstance(target, (ast.Tuple, ast.List)):
            values = list(value)
            if len(values) != len(target.elts):
                raise SandboxError(
                    f"Cannot unpack {len(values)} values into {len(target.elts)} names", node=target
                )
            for element, item in zip(target.elts, values):
                self._assign(element, item)
        elif isinstance(target, ast.Subscript):
            container = self.visit(target.value)
            if not isinstance(container, (dict, list)):
                raise SandboxSecurityError("Item assignment only works on dicts and lists", node=target)
            container[self.visit(target.slice)] = value
        else:
            raise SandboxSecurityError(f"Cannot assign to {target.__class__.__name__}", node=target)

    # --- expressions ---

    def visit(self, node: ast.expr) -> Any:
        method = getattr(self, 'visit_' + node.__class__.__name__, None)
        if method is None:
            raise SandboxSecurityError(f"Use of {node.__class__.__name__} is not allowed", node=node)
        return method(node)

    def visit_Constant(self, node: ast.Constant) -> Any:
        return node.value

    def visit_Name(self, node: ast.Name) -> Any:
        if node.id in self.scope:
            return self.scope[node.id]
        if node.id in SAFE_CONSTANTS:
            return SAFE_CONSTANTS[node.id]
        if node.id in SAFE_FUNCTIONS:
            return SAFE_FUNCTIONS[node.id]
        raise SandboxNameError(f"Name '{node.id}' is not defined", node=node)

    def visit_List(self, node: ast.List) -> list:
        return [self.visit(elt) for elt in node.elts]

    def visit_Tuple(self, node: ast.Tuple) -> tuple:
        return tuple(self.visit(elt) for elt in node.elts)

    def visit_Dict(self, node: ast.Dict) -> dict:
        result = {}
        for key, value in zip(node.keys, node.values):
            if key is None:
                result.update(self.visit(value))
            else:
                result[self.visit(key)] = self.visit(value)
        return result

    def visit_BinOp(self, node: ast.BinOp) -> Any:
        op_func = SAFE_OPERATORS[type(node.op)]
        return op_func(self.visit(node.left), self.visit(node.right))

    def visit_UnaryOp(self, node: ast.UnaryOp) -> Any:
        return SAFE_OPERATORS[type(node.op)](self.visit(node.operand))

    def visit_Compare(self, node: ast.Compare) -> bool:
        left = self.visit(node.left)
        for op, comparator in zip(node.ops, node.comparators):
            right = self.visit(comparator)
            if not SAFE_OPERATORS[type(op)](left, right):
                return False
            left = right
        return True

    def visit_BoolOp(self, node: ast.BoolOp) -> Any:
        # Short-circuits and returns the deciding operand, like Python itself
        value = None
        for operand in node.values:
            value = self.visit(operand)
            if isinstance(node.op, ast.And) and not value:
                return value
            if isinstance(node.op, ast.Or) and value:
                return value
        return value

    def visit_IfExp(self, node: ast.IfExp) -> Any:
        return self.visit(node.body) if self.visit(node.test) else self.visit(node.orelse)

    def visit_Subscript(self, node: ast.Subscript) -> Any:
        return self.visit(node.value)[self.visit(node.slice)]

    def visit_Slice(self, node: ast.Slice) -> slice:
        return slice(
            self.visit(node.lower) if node.lower else None,
            self.visit(node.upper) if node.upper else None,
            self.visit(node.step) if node.step else None,
        )

    def visit_Attribute(self, node: ast.Attribute) -> Any:
        value = self.visit(node.value)
        if isinstance(value, np.ndarray) and node.attr in _ARRAY_ATTRIBUTES:
            return getattr(value, node.attr)
        if isinstance(value, _ATTRIBUTE_TYPES) and hasattr(value, node.attr):
            return getattr(value, node.attr)
        raise SandboxSecurityError(f"Attribute '{node.attr}' is not accessible", node=node)

    def visit_Call(self, node: ast.Call) -> Any:
        if isinstance(node.func, ast.Name):
            func = SAFE_FUNCTIONS.get(node.func.id)
            if func is None:
                raise SandboxSecurityError(
                    f"Call to function '{node.func.id}' is not allowed", node=node
                )
        elif isinstance(node.func, ast.Attribute) and node.func.attr in SAFE_METHODS:
            owner = self.visit(node.func.value)
            if not isinstance(owner, _ATTRIBUTE_TYPES):
                raise SandboxSecurityError(
                    f"Method '{node.func.attr}' is not allowed on {type(owner).__name__}", node=node
                )
            func = getattr(owner, node.func.attr)
        else:
            raise SandboxSecurityError("Only whitelisted functions and methods can be called", node=node)

        args = [self.visit(arg) for arg in node.args]
        kwargs = {kw.arg: self.visit(kw.value) for kw in node.keywords if kw.arg is not None}
        name = node.func.id if isinstance(node.func, ast.Name) else node.func.attr
        if name in ITERATING_CALLS:
            self._step(node, sum(_size(arg) for arg in args))
        return func(*args, **kwargs)

    def visit_JoinedStr(self, node: ast.JoinedStr) -> str:
        return ''.join(str(self.visit(value)) for value in node.values)

    def visit_FormattedValue(self, node: ast.FormattedValue) -> str:
        value = self.visit(node.value)
        spec = self.visit(node.format_spec) if node.format_spec else ''
        return format(value, spec)


class SandboxEvaluator:
    """Evaluates math-node code against its input values.

    Example::

        evaluator = SandboxEvaluator()
        evaluator.evaluate('return a + b;', ['a', 'b'], [2, 3])
        # {'result': 5}

    :param max_steps: Loop iterations allowed per evaluation
    """

    def __init__(self, max_steps: int | None = None):
        self.max_steps = max_steps if max_steps is not None else settings.SANDBOX_MAX_STEPS

    def evaluate(self, code: str, arg_names: list[str], arg_values: list[Any]) -> dict[str, Any]:
        """Run code with the given arguments bound as local variables.

        :param code: Function body
        :param arg_names: Parameter names, in order
        :param arg_values: Argument values; missing trailing values default to 0
        :returns: The returned dict, or ``{'result': value}`` for anything else
        :raises SandboxError: On any compile or runtime failure
        """
        scope: dict[str, Any] = {}
        for index, name in enumerate(arg_names):
            if not name.isidentifier() or keyword.iskeyword(name) or name.startswith('_'):
                raise SandboxError(f"Invalid input name '{name}'")
            value = arg_values[index] if index < len(arg_values) else None
            scope[name] = 0 if value is None else value

        tree = compile_code(code or '')
        interpreter = SandboxInterpreter(scope, self.max_steps)
        try:
            value = interpreter.run(tree)
        except SandboxError:
            raise
        except (ArithmeticError, LookupError, TypeError, ValueError, AttributeError) as e:
            raise SandboxError(f"Evaluation failed: {e}") from e

        if isinstance(value, dict):
            return {str(key): item for key, item in value.items()}
        return {'result': value}
