"""HTTP API for the Lumina engine."""

from .router import router, get_engine, encode_value

__all__ = ['router', 'get_engine', 'encode_value']
