"""Upload driver: state transitions, persistence and resumability."""

import json

import pytest

from attachment_processor.core.index import IndexStore
from attachment_processor.core.uploader import Uploader
from attachment_processor.errors import LocalIOError, TransportError
from attachment_processor.models import (
    AttachmentKind,
    AttachmentRecord,
    CorrelatedIndex,
    IssueRecord,
    TicketRecord,
)

from .conftest import RecordingSink, stage_file


def _att(issue, path, comment=None):
    kind = AttachmentKind.COMMENT if comment is not None else AttachmentKind.ISSUE
    return AttachmentRecord(kind=kind, issue_number=issue, path=path, url="u", comment_number=comment)


@pytest.fixture
def store(workspace):
    return IndexStore(workspace.database_path)


def _index(n_tickets, files_per_issue=1):
    index = CorrelatedIndex()
    for n in range(1, n_tickets + 1):
        title = f"Issue {n}"
        index.issues[title] = IssueRecord(title, n, f"https://github.com/a/b/issues/{n}")
        index.tickets[title] = TicketRecord(title, f"P-{n}")
        for f in range(files_per_issue):
            index.attachments.append(_att(n, f"attachments/{n}/{f}/file{f}.txt"))
    return index


def _stage_all(workspace, index):
    for a in index.attachments:
        stage_file(workspace.stage_dir, a.path, a.path.encode())


class TestUploader:
    def test_scenario_single_transfer(self, workspace, store, sink):
        index = CorrelatedIndex(
            attachments=[_att(42, "file.png")],
            issues={"Bug X": IssueRecord("Bug X", 42, "u")},
            tickets={"Bug X": TicketRecord("Bug X", "PROJ-7")},
        )
        stage_file(workspace.stage_dir, "file.png", b"PNG")
        store.save(index)

        summary = Uploader(sink, store, workspace.stage_dir).run(index)

        assert sink.calls == [("PROJ-7", "file.png", b"PNG")]
        assert summary.transfers == 1
        assert summary.tickets == 1
        assert store.load().tickets["Bug X"].uploaded is True

    def test_ticket_without_issue_stays_pending(self, workspace, store, sink):
        index = CorrelatedIndex(
            attachments=[_att(42, "file.png")],
            issues={"Bug X": IssueRecord("Bug X", 42, "u")},
            tickets={"Unrelated": TicketRecord("Unrelated", "PROJ-9")},
        )
        stage_file(workspace.stage_dir, "file.png")

        summary = Uploader(sink, store, workspace.stage_dir).run(index)

        assert sink.calls == []
        assert summary.pending == 1
        assert index.tickets["Unrelated"].uploaded is False

    def test_issue_without_attachments_stays_pending(self, workspace, store, sink):
        index = CorrelatedIndex(
            attachments=[_att(1, "other.png")],
            issues={"Bug X": IssueRecord("Bug X", 42, "u")},
            tickets={"Bug X": TicketRecord("Bug X", "PROJ-7")},
        )
        Uploader(sink, store, workspace.stage_dir).run(index)
        assert sink.calls == []
        assert index.tickets["Bug X"].uploaded is False

    def test_all_attachments_of_issue_go_to_ticket(self, workspace, store, sink):
        index = CorrelatedIndex(
            attachments=[_att(5, "a/x/one.png"), _att(6, "a/y/skip.png"), _att(5, "a/z/two.log", comment=3)],
            issues={"T": IssueRecord("T", 5, "u")},
            tickets={"T": TicketRecord("T", "P-5")},
        )
        _stage_all(workspace, index)
        Uploader(sink, store, workspace.stage_dir).run(index)
        assert [(k, n) for k, n, _ in sink.calls] == [("P-5", "one.png"), ("P-5", "two.log")]

    def test_persists_after_every_transfer(self, workspace, store, sink, monkeypatch):
        index = _index(2, files_per_issue=2)
        _stage_all(workspace, index)
        saves = []
        real_save = store.save
        monkeypatch.setattr(store, "save", lambda idx: (saves.append(1), real_save(idx)))

        Uploader(sink, store, workspace.stage_dir).run(index)

        assert len(sink.calls) == 4
        assert len(saves) == 4

    def test_resume_skips_uploaded_tickets(self, workspace, store):
        index = _index(5)
        _stage_all(workspace, index)
        for title in ("Issue 1", "Issue 3"):
            index.tickets[title].uploaded = True
        store.save(index)

        sink = RecordingSink()
        summary = Uploader(sink, store, workspace.stage_dir).run(store.load())

        assert sorted(k for k, _, _ in sink.calls) == ["P-2", "P-4", "P-5"]
        assert summary.transfers == 3
        assert all(t.uploaded for t in store.load().tickets.values())

    def test_failure_aborts_and_rerun_never_duplicates(self, workspace, store):
        index = _index(3, files_per_issue=2)
        _stage_all(workspace, index)
        store.save(index)

        # fourth transfer fails: ticket P-1 complete, P-2 has one of two files
        failing = RecordingSink(fail_on=4)
        with pytest.raises(TransportError):
            Uploader(failing, store, workspace.stage_dir).run(store.load())

        persisted = store.load()
        assert persisted.tickets["Issue 1"].uploaded is True
        assert persisted.tickets["Issue 2"].uploaded is False
        assert persisted.tickets["Issue 2"].sent == ["attachments/2/0/file0.txt"]
        assert persisted.tickets["Issue 3"].uploaded is False

        retry = RecordingSink()
        Uploader(retry, store, workspace.stage_dir).run(store.load())

        sent = [(k, n) for k, n, _ in failing.calls + retry.calls]
        assert len(sent) == len(set(sent)) == 6
        assert retry.calls[0][:2] == ("P-2", "file1.txt")
        assert all(t.uploaded for t in store.load().tickets.values())

        # a third run has nothing left to do
        idle = RecordingSink()
        Uploader(idle, store, workspace.stage_dir).run(store.load())
        assert idle.calls == []

    def test_all_sent_but_flag_missing_is_completed_without_transfer(self, workspace, store, sink):
        index = _index(1)
        index.tickets["Issue 1"].sent = [index.attachments[0].path]
        Uploader(sink, store, workspace.stage_dir).run(index)
        assert sink.calls == []
        assert store.load().tickets["Issue 1"].uploaded is True

    def test_missing_staged_file_aborts(self, workspace, store, sink):
        index = _index(2)
        stage_file(workspace.stage_dir, index.attachments[1].path)
        with pytest.raises(LocalIOError, match="failed opening attachment"):
            Uploader(sink, store, workspace.stage_dir).run(index)
        assert sink.calls == []

    def test_completion_is_keyed_by_title(self, workspace, store, sink):
        index = _index(1)
        _stage_all(workspace, index)
        Uploader(sink, store, workspace.stage_dir).run(index)
        raw = json.loads(workspace.database_path.read_text())
        assert list(raw["tickets"]) == ["Issue 1"]
        assert raw["tickets"]["Issue 1"]["uploaded"] is True
