import json
from pathlib import Path
from typing import List, Tuple

import pytest

from attachment_processor.config import Workspace
from attachment_processor.errors import TransportError


@pytest.fixture
def workspace(tmp_path: Path) -> Workspace:
    ws = Workspace(tmp_path)
    ws.stage_dir.mkdir()
    return ws


def write_export(stage: Path, name: str, entries: list) -> Path:
    path = stage / name
    path.write_text(json.dumps(entries), encoding="utf-8")
    return path


def stage_file(stage: Path, rel: str, content: bytes = b"data") -> Path:
    path = stage / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


class RecordingSink:
    """Collects (ticket, filename, bytes) for every upload; can fail on the Nth call."""

    def __init__(self, fail_on: int = 0) -> None:
        self.calls: List[Tuple[str, str, bytes]] = []
        self.fail_on = fail_on

    def upload_attachment(self, ticket_key, fh, filename) -> None:
        if self.fail_on and len(self.calls) + 1 == self.fail_on:
            raise TransportError(f"failed uploading attachment {filename} to {ticket_key}: 500 boom",
                                 status_code=500)
        self.calls.append((ticket_key, filename, fh.read()))


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
