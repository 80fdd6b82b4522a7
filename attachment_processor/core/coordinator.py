import logging
import shutil
from pathlib import Path
from typing import List, Optional

from ..config import GitHubConfig, JiraConfig, Workspace
from ..errors import LocalIOError, PreconditionError
from ..github.fetcher import GitHubFetcher
from ..jira.fetcher import JiraFetcher
from ..jira.importer import Importer
from ..models import CorrelatedIndex, IssueRecord, TicketRecord
from ..utils.archive import expand, is_empty
from .index import CorrelationEngine, IndexStore
from .packager import Packager
from .parser import parse_export_dir
from .uploader import AttachmentSink, Uploader, UploadSummary

logger = logging.getLogger(__name__)


class Coordinator:
    """
    Runs the three stages against one workspace.

    Remote collaborators are built from the configuration on first use; tests
    and callers may pass their own instead.
    """

    def __init__(self,
                 workspace: Workspace,
                 github: Optional[GitHubConfig] = None,
                 jira: Optional[JiraConfig] = None,
                 *,
                 issue_fetcher: Optional[GitHubFetcher] = None,
                 ticket_fetcher: Optional[JiraFetcher] = None,
                 sink: Optional[AttachmentSink] = None,
                 engine: Optional[CorrelationEngine] = None) -> None:
        self.workspace = workspace
        self._github = github
        self._jira = jira
        self._issue_fetcher = issue_fetcher
        self._ticket_fetcher = ticket_fetcher
        self._sink = sink
        self.engine = engine or CorrelationEngine()
        self.store = IndexStore(workspace.database_path)

    # ---------- collaborators (constructing them makes no remote call) ----------
    def _issue_source(self) -> GitHubFetcher:
        if self._issue_fetcher is None:
            if self._github is None:
                raise PreconditionError("GitHub configuration is required to list issues")
            self._issue_fetcher = GitHubFetcher(self._github)
        return self._issue_fetcher

    def _ticket_source(self) -> JiraFetcher:
        if self._ticket_fetcher is None:
            if self._jira is None or not self._jira.project_keys:
                raise PreconditionError("at least one Jira project key is required to list tickets")
            self._ticket_fetcher = JiraFetcher(self._jira)
        return self._ticket_fetcher

    def _attachment_sink(self) -> AttachmentSink:
        if self._sink is None:
            if self._jira is None:
                raise PreconditionError("Jira configuration is required to upload attachments")
            self._sink = Importer(self._jira)
        return self._sink

    # ---------- staging ----------
    def prepare_stage(self, archive: Optional[Path], skip_archive: bool = False,
                      force_expand: bool = False) -> None:
        """
        Make sure the staging directory holds the expanded export.

        An existing, non-empty staging directory is reused unless
        ``force_expand`` is set; ``skip_archive`` requires it to be populated.
        """
        stage = self.workspace.stage_dir
        try:
            stage.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise LocalIOError(f"failed creating staging directory {stage}: {e}") from e

        empty = is_empty(stage)
        if skip_archive:
            if empty:
                raise PreconditionError("staging directory is empty, but --skip-archive was specified")
            logger.info("Skipping archive expansion, using %s", stage)
            return

        if not empty and not force_expand:
            logger.info("Staging directory not empty, skipping archive expansion")
            return

        if archive is None:
            raise PreconditionError("an archive path is required to populate the staging directory")
        if not empty:
            logger.info("Clearing staging directory before re-expanding")
            try:
                shutil.rmtree(stage)
                stage.mkdir(parents=True)
            except OSError as e:
                raise LocalIOError(f"failed clearing staging directory {stage}: {e}") from e

        logger.info("Expanding archive %s", archive)
        count = expand(archive, stage)
        logger.info("Expanded %d file(s) into %s", count, stage)

    # ---------- stages ----------
    def collect(self, archive: Optional[Path] = None, *, skip_archive: bool = False,
                force_expand: bool = False) -> CorrelatedIndex:
        issue_source = self._issue_source()
        ticket_source = self._ticket_source()
        try:
            self.prepare_stage(archive, skip_archive=skip_archive, force_expand=force_expand)

            logger.info("Processing GitHub archive")
            attachments = parse_export_dir(self.workspace.stage_dir)

            logger.info("Processing GitHub issues")
            issues: List[IssueRecord] = list(issue_source.iter_issues())

            logger.info("Processing JIRA tickets")
            tickets: List[TicketRecord] = list(ticket_source.iter_all_tickets())
        finally:
            issue_source.close()
            ticket_source.close()

        index = self.engine.build(attachments, issues, tickets)

        logger.info("Writing database to disk")
        self.store.save(index)
        return index

    def upload(self) -> UploadSummary:
        sink = self._attachment_sink()
        index = self.store.load()
        uploader = Uploader(sink, self.store, self.workspace.stage_dir)
        try:
            summary = uploader.run(index)
        finally:
            if isinstance(sink, Importer):
                sink.close()
        logger.info("All attachments uploaded: %d file(s) to %d ticket(s), %d ticket(s) left pending",
                    summary.transfers, summary.tickets, summary.pending)
        return summary

    def package(self) -> Path:
        index = self.store.load()
        return Packager(self.workspace).run(index)
