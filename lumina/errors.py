"""
Exception types raised by the Lumina engine.
"""


class LuminaError(Exception):
    """Base class for all Lumina errors."""


class GraphError(LuminaError, ValueError):
    """Raised when a graph mutation is invalid.

    Examples are unknown node ids, duplicate ids, edges referencing
    undeclared sockets or a second edge into an occupied input socket.
    """


class OperationError(LuminaError):
    """Raised by a node operation that cannot produce a result.

    The engine catches it at the node boundary and stores the message as
    the node's error.
    """
