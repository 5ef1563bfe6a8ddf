# Lumina Engine Module
"""
Scheduling, caching and incremental execution of node graphs.
"""

from .cache import NodeCache
from .scheduler import compute_execution_order, find_unscheduled
from .engine import Engine, PassReport
from .clipboard import copy_nodes, parse_payload, build_paste

__all__ = [
    'NodeCache',
    'compute_execution_order',
    'find_unscheduled',
    'Engine',
    'PassReport',
    'copy_nodes',
    'parse_payload',
    'build_paste',
]
