import json
import logging
import os
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional

from ..errors import LocalIOError
from ..models import AttachmentRecord, CorrelatedIndex, IssueRecord, TicketRecord

logger = logging.getLogger(__name__)

CollisionHook = Callable[[str, str], None]


class CorrelationEngine:
    """
    Merges export attachments, GitHub issues and Jira tickets into one index.

    Issues and tickets are joined by title. When a title repeats on one side
    the later record replaces the earlier one; ``collisions`` counts how often
    that happened per side and ``on_collision(side, title)`` is called for
    each occurrence.
    """

    def __init__(self, on_collision: Optional[CollisionHook] = None) -> None:
        self._on_collision = on_collision
        self.collisions: Dict[str, int] = {"issues": 0, "tickets": 0}

    def _collide(self, side: str, title: str) -> None:
        self.collisions[side] += 1
        logger.debug("Duplicate %s title %r, keeping the last one", side[:-1], title)
        if self._on_collision is not None:
            self._on_collision(side, title)

    def build(self,
              attachments: Iterable[AttachmentRecord],
              issues: Iterable[IssueRecord],
              tickets: Iterable[TicketRecord]) -> CorrelatedIndex:
        self.collisions = {"issues": 0, "tickets": 0}
        index = CorrelatedIndex(attachments=list(attachments))

        for issue in issues:
            if issue.title in index.issues:
                self._collide("issues", issue.title)
            index.issues[issue.title] = issue

        for ticket in tickets:
            if ticket.title in index.tickets:
                self._collide("tickets", ticket.title)
            index.tickets[ticket.title] = ticket

        matched = sum(1 for title in index.tickets if title in index.issues)
        logger.info(
            "Correlated %d attachment(s), %d issue(s), %d ticket(s); %d ticket(s) match an issue title",
            len(index.attachments), len(index.issues), len(index.tickets), matched,
        )
        if any(self.collisions.values()):
            logger.warning("Title collisions: %d issue(s), %d ticket(s)",
                           self.collisions["issues"], self.collisions["tickets"])
        return index


class IndexStore:
    """Reads and writes the correlated index as one JSON document."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> CorrelatedIndex:
        try:
            with self.path.open(encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError as e:
            raise LocalIOError(f"failed reading database {self.path}: file not found, run collect first") from e
        except OSError as e:
            raise LocalIOError(f"failed reading database {self.path}: {e}") from e
        except json.JSONDecodeError as e:
            raise LocalIOError(f"failed unmarshalling database {self.path}: {e}") from e
        try:
            return CorrelatedIndex.from_dict(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise LocalIOError(f"failed unmarshalling database {self.path}: {e!r}") from e

    def save(self, index: CorrelatedIndex) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            with tmp.open("w", encoding="utf-8") as fh:
                json.dump(index.to_dict(), fh, indent=2)
            os.replace(tmp, self.path)
        except OSError as e:
            raise LocalIOError(f"failed writing database {self.path}: {e}") from e
