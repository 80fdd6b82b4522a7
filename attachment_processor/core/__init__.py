"""
Core package: correlation of the GitHub export, GitHub issues and Jira tickets.
This package exposes the Coordinator class which ties together the parser,
the fetchers, the upload driver and the packager.
"""

from .coordinator import Coordinator
from .index import CorrelationEngine, IndexStore

__all__ = [
    "Coordinator",
    "CorrelationEngine",
    "IndexStore",
]
