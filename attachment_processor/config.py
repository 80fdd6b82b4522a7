"""Immutable configuration values handed to each component's constructor."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple

GITHUB_API_URL = "https://api.github.com"

STAGE_DIR = "stage"
DATABASE_FILE = "database.json"
ARCHIVE_DIR = "archive"
OUTPUT_ARCHIVE = "processed_archive.tgz"


@dataclass(frozen=True)
class GitHubConfig:
    token: str
    org: str
    repo: str
    api_url: str = GITHUB_API_URL
    page_size: int = 100
    page_delay: float = 1.0

    @property
    def slug(self) -> str:
        return f"{self.org}/{self.repo}"


@dataclass(frozen=True)
class JiraConfig:
    url: str
    username: str
    secret: str = field(repr=False)
    project_keys: Tuple[str, ...] = ()
    page_size: int = 1000
    page_delay: float = 1.0

    @property
    def base_url(self) -> str:
        return self.url.rstrip("/")


@dataclass(frozen=True)
class Workspace:
    """
    Local layout shared by all stages:
      - stage/                 expanded GitHub migration archive
      - database.json          persisted correlated index
      - archive/               flat copies of the attachments
      - processed_archive.tgz  compressed archive/ directory
    """

    root: Path = Path(".")

    @property
    def stage_dir(self) -> Path:
        return self.root / STAGE_DIR

    @property
    def database_path(self) -> Path:
        return self.root / DATABASE_FILE

    @property
    def archive_dir(self) -> Path:
        return self.root / ARCHIVE_DIR

    @property
    def output_archive(self) -> Path:
        return self.root / OUTPUT_ARCHIVE
