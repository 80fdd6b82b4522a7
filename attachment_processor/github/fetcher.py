# attachment_processor/github/fetcher.py
import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

import requests

from ..config import GitHubConfig
from ..errors import RepositoryNotFoundError, TransportError
from ..models import IssueRecord
from ..utils.paging import paginate

logger = logging.getLogger(__name__)


def _page_of(url: Optional[str]) -> Optional[int]:
    if not url:
        return None
    values = parse_qs(urlparse(url).query).get("page")
    try:
        return int(values[0]) if values else None
    except ValueError:
        return None


class GitHubFetcher:
    """
    Lists every issue (open and closed) of one repository through the REST API.
    """

    def __init__(self, config: GitHubConfig, session: Optional[requests.Session] = None) -> None:
        self.config = config
        self.base_url = config.api_url.rstrip("/")
        self._session = session or requests.Session()
        self._session.headers.update({
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {config.token}",
            "User-Agent": "jira-attachment-processor",
        })

    def _get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        url = f"{self.base_url}/{endpoint}"
        try:
            resp = self._session.get(url, params=params, timeout=60)
        except requests.RequestException as e:
            raise TransportError(f"failed listing issues for {self.config.slug}: {e}") from e
        if resp.status_code == 404:
            raise RepositoryNotFoundError(f"repository {self.config.slug} not found")
        try:
            resp.raise_for_status()
        except requests.HTTPError as e:
            raise TransportError(
                f"failed listing issues for {self.config.slug}: {e}", status_code=resp.status_code
            ) from e
        return resp

    def fetch_page(self, page: int) -> Tuple[List[IssueRecord], Optional[int]]:
        resp = self._get(
            f"repos/{self.config.org}/{self.config.repo}/issues",
            params={"state": "all", "per_page": self.config.page_size, "page": page},
        )
        try:
            batch = resp.json()
        except ValueError as e:
            raise TransportError(f"undecodable issues page {page} for {self.config.slug}") from e
        if not isinstance(batch, list):
            raise TransportError(f"unexpected issues format for {self.config.slug}: {batch!r}")

        links = resp.links or {}
        last = _page_of(links.get("last", {}).get("url")) or page
        logger.info("Processing GitHub issues page %d of %d", page, last)

        records = [
            IssueRecord(title=item.get("title") or "", number=int(item["number"]), url=item.get("html_url") or "")
            for item in batch
        ]
        next_page = _page_of(links.get("next", {}).get("url"))
        if next_page is None and "next" in links:
            next_page = page + 1
        return records, next_page

    def iter_issues(self) -> Iterator[IssueRecord]:
        return paginate(self.fetch_page, 1, delay=self.config.page_delay)

    def close(self) -> None:
        self._session.close()
