import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..errors import LocalIOError, MalformedRecordError
from ..models import AttachmentKind, AttachmentRecord

logger = logging.getLogger(__name__)

EXPORT_PREFIX = "attachments"
EXPORT_SUFFIX = ".json"
COMMENT_MARKER = "issuecomment-"

_NUMBER_RE = re.compile(r"\d+", re.ASCII)


def _parse_number(token: str, source: str, what: str) -> int:
    if not _NUMBER_RE.fullmatch(token):
        raise MalformedRecordError(f"error parsing {what} number from {source}: {token!r} is not an integer")
    return int(token)


def issue_number_from_url(url: str) -> int:
    """Issue number from the last path segment of an issue URL."""
    return _parse_number(url.split("/")[-1], url, "issue")


def comment_key_from_url(url: str) -> Tuple[int, int]:
    """(issue number, comment number) from ``.../issues/N#issuecomment-M``."""
    base, sep, fragment = url.partition("#")
    if not sep:
        raise MalformedRecordError(f"error parsing comment number from {url}: missing '#' fragment")
    if not fragment.startswith(COMMENT_MARKER):
        raise MalformedRecordError(f"error parsing comment number from {url}: missing {COMMENT_MARKER!r} marker")
    issue = _parse_number(base.split("/")[-1], url, "issue")
    comment = _parse_number(fragment[len(COMMENT_MARKER):], url, "comment")
    return issue, comment


def asset_path_from_url(url: str) -> str:
    """
    Staging-relative path of an attachment.

    ``tarball://root/attachments/1/2/a.png`` splits into
    ``["tarball:", "", "root", "attachments", ...]``; the first three tokens
    are dropped and the rest re-joined: ``attachments/1/2/a.png``.
    """
    tokens = url.split("/")
    if len(tokens) < 4:
        raise MalformedRecordError(f"error parsing asset path from {url!r}: expected at least four segments")
    return "/".join(tokens[3:])


def _text_field(raw: Dict[str, Any], name: str) -> str:
    value = raw.get(name) or ""
    if not isinstance(value, str):
        raise MalformedRecordError(f"unexpected value for {name!r}: {value!r} is not a string")
    return value


def parse_record(raw: Dict[str, Any]) -> Optional[AttachmentRecord]:
    """Build an AttachmentRecord from one raw export entry; None when it names no issue."""
    issue = _text_field(raw, "issue")
    comment = _text_field(raw, "issue_comment")
    asset_url = _text_field(raw, "asset_url")

    if issue:
        return AttachmentRecord(
            kind=AttachmentKind.ISSUE,
            issue_number=issue_number_from_url(issue),
            path=asset_path_from_url(asset_url),
            url=issue,
        )
    if comment:
        issue_number, comment_number = comment_key_from_url(comment)
        return AttachmentRecord(
            kind=AttachmentKind.COMMENT,
            issue_number=issue_number,
            comment_number=comment_number,
            path=asset_path_from_url(asset_url),
            url=comment,
        )
    return None


def is_export_file(path: Path) -> bool:
    return path.is_file() and path.name.startswith(EXPORT_PREFIX) and path.name.endswith(EXPORT_SUFFIX)


def export_files(stage_dir: Path) -> List[Path]:
    try:
        return sorted(p for p in stage_dir.iterdir() if is_export_file(p))
    except OSError as e:
        raise LocalIOError(f"error reading directory {stage_dir}: {e}") from e


def parse_export_file(path: Path) -> List[AttachmentRecord]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise LocalIOError(f"error reading file {path}: {e}") from e
    try:
        entries = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedRecordError(f"error unmarshalling JSON from {path}: {e}") from e
    if not isinstance(entries, list):
        raise MalformedRecordError(f"unexpected export format in {path}: expected a JSON array")

    records: List[AttachmentRecord] = []
    dropped = 0
    for entry in entries:
        if not isinstance(entry, dict):
            raise MalformedRecordError(f"unexpected export entry in {path}: {entry!r}")
        try:
            record = parse_record(entry)
        except MalformedRecordError as e:
            raise MalformedRecordError(f"{path.name}: {e}") from e
        if record is None:
            dropped += 1
            continue
        records.append(record)
    if dropped:
        logger.debug("Dropped %d record(s) without issue reference in %s", dropped, path.name)
    return records


def parse_export_dir(stage_dir: Path) -> List[AttachmentRecord]:
    """Parse every export file at the top level of stage_dir, in file-name order."""
    records: List[AttachmentRecord] = []
    for path in export_files(stage_dir):
        parsed = parse_export_file(path)
        logger.info("Parsed %d attachment(s) from %s", len(parsed), path.name)
        records.extend(parsed)
    return records
