"""
Repository mixins for DuckDB store.

DuckDBStore composes its query methods from focused mixins:
- EventsMixin: grouped counts and raw rows over access, completion and CTA events
- ChannelsMixin: channel definitions and ad-spend configuration
"""
from core.repositories.events import EventsMixin
from core.repositories.channels import ChannelsMixin

__all__ = [
    "EventsMixin",
    "ChannelsMixin",
]
