# Lumina Operations Module
"""
Node operations, one per node type.

Importing this package registers all operations and verifies that every
node type is covered.
"""

from .base import (
    NodeOperation,
    OPERATION_REGISTRY,
    register_operation,
    get_operation,
    verify_registry,
    resolve_param,
)
from .broadcast import BatchBroadcaster, ImageOperation

# Register operations
from . import sources, data, math, pixel, display  # noqa: F401

verify_registry()

__all__ = [
    'NodeOperation',
    'ImageOperation',
    'BatchBroadcaster',
    'OPERATION_REGISTRY',
    'register_operation',
    'get_operation',
    'verify_registry',
    'resolve_param',
]
