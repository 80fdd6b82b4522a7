"""Exceptions raised by the collect, upload and package stages."""


class MigrationError(Exception):
    """Base exception for all stage failures."""


class MalformedRecordError(MigrationError):
    """An export record field could not be parsed."""


class NotFoundError(MigrationError):
    """The remote repository, project or ticket does not exist."""


class RepositoryNotFoundError(NotFoundError):
    """The GitHub repository does not exist or is not visible."""


class ProjectNotFoundError(NotFoundError):
    """The Jira project key does not exist or is not visible."""


class TransportError(MigrationError):
    """A remote call failed for any reason other than not-found."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PreconditionError(MigrationError):
    """The requested operation cannot run with the current options or workspace."""


class LocalIOError(MigrationError):
    """Reading or writing a local file failed."""
