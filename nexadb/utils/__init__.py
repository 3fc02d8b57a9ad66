"""
NexaDB Utilities
================
"""

from nexadb.utils.env import Env
from nexadb.utils.helpers import pluralize, snake_case, studly

__all__ = [
    "Env",
    "pluralize",
    "snake_case",
    "studly",
]
