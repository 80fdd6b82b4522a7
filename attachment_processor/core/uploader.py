import logging
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Protocol

from ..errors import LocalIOError
from ..models import CorrelatedIndex, TicketRecord
from .index import IndexStore

logger = logging.getLogger(__name__)


class AttachmentSink(Protocol):
    def upload_attachment(self, ticket_key: str, fh: BinaryIO, filename: str) -> None: ...


@dataclass
class UploadSummary:
    tickets: int = 0  # tickets flipped to uploaded in this run
    transfers: int = 0  # files sent in this run
    pending: int = 0  # tickets left pending (no matching issue or attachments)


class Uploader:
    """
    Pushes staged attachments to the Jira ticket whose title matches their issue.

    The index is persisted after every transfer. A ticket is marked uploaded
    in the same write that records its last attachment, so an interrupted run
    can be restarted and picks up where it stopped.
    """

    def __init__(self, sink: AttachmentSink, store: IndexStore, stage_dir: Path) -> None:
        self._sink = sink
        self._store = store
        self._stage_dir = stage_dir

    def run(self, index: CorrelatedIndex) -> UploadSummary:
        summary = UploadSummary()
        for title, ticket in index.tickets.items():
            if ticket.uploaded:
                continue
            issue = index.issues.get(title)
            if issue is None:
                logger.debug("No GitHub issue titled %r, leaving %s pending", title, ticket.key)
                summary.pending += 1
                continue
            attachments = index.attachments_for(issue.number)
            if not attachments:
                summary.pending += 1
                continue
            summary.transfers += self._upload_ticket(index, ticket, attachments)
            summary.tickets += 1
        return summary

    def _upload_ticket(self, index: CorrelatedIndex, ticket: TicketRecord, attachments) -> int:
        remaining = [a for a in attachments if a.path not in ticket.sent]
        if not remaining:
            # every file went out before an earlier run stopped
            ticket.uploaded = True
            self._store.save(index)
            return 0

        for pos, attachment in enumerate(remaining, start=1):
            path = self._stage_dir / attachment.path
            try:
                fh = path.open("rb")
            except OSError as e:
                raise LocalIOError(f"failed opening attachment {path}: {e}") from e
            with fh:
                logger.info("Uploading attachment %s to %s", path, ticket.key)
                self._sink.upload_attachment(ticket.key, fh, attachment.file_name)

            ticket.sent.append(attachment.path)
            if pos == len(remaining):
                ticket.uploaded = True
            self._store.save(index)
        return len(remaining)
