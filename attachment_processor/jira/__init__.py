"""Jira interaction package."""

from .fetcher import JiraFetcher
from .importer import Importer

__all__ = ["JiraFetcher", "Importer"]
