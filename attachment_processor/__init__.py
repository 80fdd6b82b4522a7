"""Migrate GitHub issue attachments into Jira tickets."""

__version__ = "1.0.0"
