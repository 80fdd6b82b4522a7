import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

import requests

from ..config import JiraConfig
from ..errors import ProjectNotFoundError, TransportError
from ..models import TicketRecord
from ..utils.paging import paginate

logger = logging.getLogger(__name__)


class JiraFetcher:
    """Lists the tickets of one or more Jira projects via ``/rest/api/2/search``."""

    def __init__(self, config: JiraConfig, session: Optional[requests.Session] = None) -> None:
        self.config = config
        self._session = session or requests.Session()
        self._session.auth = (config.username, config.secret)
        self._session.headers.update({"Accept": "application/json"})

    def _search(self, key: str, params: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.config.base_url}/rest/api/2/search"
        try:
            resp = self._session.get(url, params=params, timeout=60)
        except requests.RequestException as e:
            raise TransportError(f"failed searching for tickets in {key}: {e}") from e

        if resp.status_code == 404:
            raise ProjectNotFoundError(f"project {key} not found")
        if resp.status_code == 400 and "does not exist" in resp.text:
            # JQL answers an unknown project key with 400 rather than 404
            raise ProjectNotFoundError(f"project {key} not found")
        try:
            resp.raise_for_status()
        except requests.HTTPError as e:
            raise TransportError(f"failed searching for tickets in {key}: {e}", status_code=resp.status_code) from e
        try:
            return resp.json()
        except ValueError as e:
            raise TransportError(f"failed searching for tickets in {key}: undecodable response") from e

    def fetch_page(self, key: str, start_at: int) -> Tuple[List[TicketRecord], Optional[int]]:
        data = self._search(key, {
            "jql": f"project={key}",
            "startAt": start_at,
            "maxResults": self.config.page_size,
            "fields": "summary",
        })
        total = int(data.get("total", 0))
        logger.info("Processing JIRA tickets %d of %d in %s", start_at, total, key)

        records = [
            TicketRecord(title=(issue.get("fields") or {}).get("summary") or "", key=issue["key"])
            for issue in data.get("issues") or []
        ]

        page_start = int(data.get("startAt", start_at))
        page_size = int(data.get("maxResults", self.config.page_size))
        if page_size <= 0 or page_start + page_size >= total:
            return records, None
        return records, page_start + page_size

    def iter_tickets(self, key: str) -> Iterator[TicketRecord]:
        return paginate(lambda start: self.fetch_page(key, start), 0, delay=self.config.page_delay)

    def iter_all_tickets(self) -> Iterator[TicketRecord]:
        for key in self.config.project_keys:
            yield from self.iter_tickets(key)

    def close(self) -> None:
        self._session.close()
