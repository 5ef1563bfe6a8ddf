# Lumina Operations - Base Classes
"""
Base classes and registry for node operations.

Every :class:`~lumina.catalog.NodeType` has exactly one operation, registered
with :func:`register_operation`. An operation receives the resolved input
values (keyed by input socket id), the parameter mapping the engine
captured for this evaluation and the node itself, and returns a mapping of
output socket id to value.

Example::

    @register_operation(NodeType.NUMBER)
    class NumberOperation(NodeOperation):
        async def run(self, inputs, params, node):
            return {'value': self.param(inputs, params, 'value')}
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, ClassVar, TYPE_CHECKING
import math

from ..catalog import NodeType, get_definition
from ..errors import OperationError

if TYPE_CHECKING:
    from ..graph import Node


_MISSING = object()


def _parse_number(value: Any) -> float | int | None:
    """Return value as a number when it is numeric-parseable, else None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def resolve_param(inputs: dict[str, Any], params: dict[str, Any], key: str, default: Any = None) -> Any:
    """Look up an effective parameter value.

    A connected input with the same name overrides the parameter when its
    value is numeric-parseable (``5``, ``2.5``, ``'3'``). Anything else
    (images, lists, free text, booleans) is ignored and the parameter is
    used, falling back to ``default``.

    :param inputs: Resolved input values
    :param params: Node parameters captured for this evaluation
    :param key: Parameter name
    :param default: Value used when the parameter is unset
    """
    number = _parse_number(inputs.get(key))
    if number is not None:
        return number
    value = params.get(key)
    return default if value is None else value


def as_int(value: Any, default: int = 0) -> int:
    number = _parse_number(value)
    return default if number is None else int(number)


def as_float(value: Any, default: float = 0.0) -> float:
    number = _parse_number(value)
    return default if number is None else float(number)


def as_bool(value: Any) -> bool:
    """Interpret inspector values such as ``'false'`` or ``0`` as booleans."""
    if isinstance(value, str):
        return value.strip().lower() not in ('', '0', 'false', 'no', 'off')
    return bool(value)


class NodeOperation(ABC):
    """Base class for all node operations.

    Operations are stateless; one instance per node type is kept in
    :data:`OPERATION_REGISTRY` and shared by all nodes of that type.

    :cvar node_type: The node type this operation evaluates, set on
        registration
    """

    node_type: ClassVar[NodeType]

    @abstractmethod
    async def run(self, inputs: dict[str, Any], params: dict[str, Any], node: Node) -> dict[str, Any]:
        """Evaluate the node.

        :param inputs: Input socket id to value, for connected sockets only
        :param params: Parameter mapping captured by the engine
        :param node: The node being evaluated (code, dynamic sockets)
        :returns: Output socket id to value
        :raises OperationError: If no result can be produced
        """

    def param(self, inputs: dict[str, Any], params: dict[str, Any], key: str) -> Any:
        """Resolve a parameter, falling back to the catalog default."""
        default = get_definition(self.node_type).default_params.get(key)
        return resolve_param(inputs, params, key, default)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.node_type.value})"


# Global operation registry, one instance per node type
OPERATION_REGISTRY: dict[NodeType, NodeOperation] = {}


def register_operation(node_type: NodeType) -> Callable[[type[NodeOperation]], type[NodeOperation]]:
    """Decorator to register an operation class for a node type.

    :raises RuntimeError: If the node type already has an operation
    """
    def decorator(cls: type[NodeOperation]) -> type[NodeOperation]:
        if node_type in OPERATION_REGISTRY:
            existing = OPERATION_REGISTRY[node_type]
            raise RuntimeError(
                f"Node type '{node_type.value}' is already handled by {existing.__class__.__name__}"
            )
        cls.node_type = node_type
        OPERATION_REGISTRY[node_type] = cls()
        return cls
    return decorator


def get_operation(node_type: NodeType | str) -> NodeOperation:
    """Get the registered operation for a node type.

    :raises OperationError: If no operation is registered
    """
    operation = OPERATION_REGISTRY.get(NodeType(node_type))
    if operation is None:
        raise OperationError(f"No operation registered for node type '{node_type}'")
    return operation


def verify_registry() -> None:
    """Check that every node type has an operation.

    :raises RuntimeError: Listing the node types without an operation
    """
    missing = [t.value for t in NodeType if t not in OPERATION_REGISTRY]
    if missing:
        raise RuntimeError(f"No operation registered for node types: {', '.join(missing)}")
