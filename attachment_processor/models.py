"""Records correlated between the GitHub export, GitHub issues and Jira tickets.

The persisted layout mirrors these classes one to one:

    {"attachments": [...], "issues": {title: ...}, "tickets": {title: ...}}

Issue and ticket records are stored under their title, so the title itself is
not repeated inside the record body.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class AttachmentKind(str, Enum):
    ISSUE = "issue"
    COMMENT = "issue_comment"


@dataclass(frozen=True)
class AttachmentRecord:
    """One staged file tied to an issue and, for comment attachments, a comment."""

    kind: AttachmentKind
    issue_number: int
    path: str  # relative to the staging directory
    url: str  # issue or comment URL the record was derived from
    comment_number: Optional[int] = None

    @property
    def file_name(self) -> str:
        return self.path.split("/")[-1]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind.value,
            "url": self.url,
            "issue_number": self.issue_number,
            "comment_number": self.comment_number,
            "path": self.path,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AttachmentRecord":
        kind = AttachmentKind(data["type"])
        comment = data.get("comment_number")
        return cls(
            kind=kind,
            issue_number=int(data["issue_number"]),
            path=data["path"],
            url=data.get("url", ""),
            comment_number=int(comment) if kind is AttachmentKind.COMMENT and comment is not None else None,
        )


@dataclass
class IssueRecord:
    title: str
    number: int
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "number": self.number}

    @classmethod
    def from_dict(cls, title: str, data: Dict[str, Any]) -> "IssueRecord":
        return cls(title=title, number=int(data["number"]), url=data.get("url", ""))


@dataclass
class TicketRecord:
    title: str
    key: str
    uploaded: bool = False
    # attachment paths already transferred to this ticket
    sent: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "uploaded": self.uploaded, "sent": list(self.sent)}

    @classmethod
    def from_dict(cls, title: str, data: Dict[str, Any]) -> "TicketRecord":
        return cls(
            title=title,
            key=data["key"],
            uploaded=bool(data.get("uploaded", False)),
            sent=list(data.get("sent") or []),
        )


@dataclass
class CorrelatedIndex:
    attachments: List[AttachmentRecord] = field(default_factory=list)
    issues: Dict[str, IssueRecord] = field(default_factory=dict)
    tickets: Dict[str, TicketRecord] = field(default_factory=dict)

    def attachments_for(self, issue_number: int) -> List[AttachmentRecord]:
        return [a for a in self.attachments if a.issue_number == issue_number]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attachments": [a.to_dict() for a in self.attachments],
            "issues": {title: issue.to_dict() for title, issue in self.issues.items()},
            "tickets": {title: ticket.to_dict() for title, ticket in self.tickets.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CorrelatedIndex":
        if not isinstance(data, dict):
            raise TypeError(f"expected a JSON object, got {type(data).__name__}")
        attachments = data.get("attachments") or []
        issues = data.get("issues") or {}
        tickets = data.get("tickets") or {}
        if not isinstance(attachments, list):
            raise TypeError(f"'attachments' must be a list, got {type(attachments).__name__}")
        for name, value in (("issues", issues), ("tickets", tickets)):
            if not isinstance(value, dict):
                raise TypeError(f"{name!r} must be an object, got {type(value).__name__}")
        return cls(
            attachments=[AttachmentRecord.from_dict(a) for a in attachments],
            issues={t: IssueRecord.from_dict(t, v) for t, v in issues.items()},
            tickets={t: TicketRecord.from_dict(t, v) for t, v in tickets.items()},
        )
