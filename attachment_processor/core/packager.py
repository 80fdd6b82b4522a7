import logging
import shutil
from pathlib import Path

from tqdm import tqdm

from ..config import Workspace
from ..errors import LocalIOError
from ..models import AttachmentKind, AttachmentRecord, CorrelatedIndex
from ..utils.archive import use_progress_bar, compress, copy_file

logger = logging.getLogger(__name__)


def flat_name(attachment: AttachmentRecord) -> str:
    """``{issue}_{name}`` for issue attachments, ``{issue}_{comment}_{name}`` for comments."""
    if attachment.kind is AttachmentKind.COMMENT:
        return f"{attachment.issue_number}_{attachment.comment_number}_{attachment.file_name}"
    return f"{attachment.issue_number}_{attachment.file_name}"


class Packager:
    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace

    def _reset_output_dir(self) -> Path:
        out = self.workspace.archive_dir
        try:
            if out.exists():
                logger.info("Archive directory already exists, deleting contents")
                shutil.rmtree(out)
            logger.info("Creating archive directory")
            out.mkdir(parents=True)
        except OSError as e:
            raise LocalIOError(f"failed recreating archive directory {out}: {e}") from e
        return out

    def run(self, index: CorrelatedIndex) -> Path:
        out = self._reset_output_dir()

        logger.info("Copying files to archive directory")
        for attachment in tqdm(index.attachments, desc="Copying", unit="file", disable=not use_progress_bar()):
            copy_file(self.workspace.stage_dir / attachment.path, out / flat_name(attachment))

        logger.info("Compressing archive")
        dest = self.workspace.output_archive
        count = compress(out, dest)
        logger.info("Archive compressed: %s (%d file(s))", dest.name, count)
        return dest
