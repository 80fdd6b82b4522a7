import logging
import mimetypes
from typing import BinaryIO, Optional

import httpx

from ..config import JiraConfig
from ..errors import NotFoundError, TransportError

logger = logging.getLogger(__name__)


class Importer:
    """
    Wraps Jira's issue attachment endpoint.

    Each call is a single attempt: a timeout, transport error or any status
    other than 200 raises, and the caller decides whether to run again.
    """

    def __init__(self, config: JiraConfig, client: Optional[httpx.Client] = None, *,
                 timeout: float = 120.0) -> None:
        self.config = config
        self._client = client or httpx.Client(
            base_url=config.base_url,
            auth=(config.username, config.secret),
            timeout=timeout,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "Importer":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def upload_attachment(self, ticket_key: str, fh: BinaryIO, filename: str) -> None:
        """Attach the open file ``fh`` to ``ticket_key`` under ``filename``."""
        mime_type, _ = mimetypes.guess_type(filename)
        mime_type = mime_type or "application/octet-stream"
        files = {"file": (filename, fh, mime_type)}
        try:
            resp = self._client.post(
                f"/rest/api/2/issue/{ticket_key}/attachments",
                files=files,
                headers={"X-Atlassian-Token": "no-check"},
            )
        except httpx.TimeoutException as err:
            raise TransportError(f"failed uploading attachment {filename} to {ticket_key}: timed out") from err
        except httpx.HTTPError as err:
            raise TransportError(f"failed uploading attachment {filename} to {ticket_key}: {err}") from err

        if resp.status_code == 404:
            raise NotFoundError(f"ticket {ticket_key} not found")
        if resp.status_code != 200:
            raise TransportError(
                f"failed uploading attachment {filename} to {ticket_key}: "
                f"{resp.status_code} {resp.reason_phrase}",
                status_code=resp.status_code,
            )
        logger.debug("Jira accepted %s for %s", filename, ticket_key)


__all__ = ["Importer"]
