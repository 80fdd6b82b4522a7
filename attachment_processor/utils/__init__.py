"""Helpers shared by the fetchers and the packaging stage."""

from .paging import paginate

__all__ = ["paginate"]
