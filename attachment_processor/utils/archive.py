# attachment_processor/utils/archive.py
import gzip
import logging
import os
import shutil
import sys
import tarfile
from pathlib import Path
from typing import List

from tqdm import tqdm

from ..errors import LocalIOError

logger = logging.getLogger(__name__)


def use_progress_bar() -> bool:
    # progress bars only when attached to a terminal
    try:
        return sys.stdout.isatty()
    except (AttributeError, ValueError):
        return False


def is_empty(path: Path) -> bool:
    try:
        with os.scandir(path) as it:
            return next(it, None) is None
    except OSError as e:
        raise LocalIOError(f"failed checking if {path} is empty: {e}") from e


def _safe_target(root: Path, name: str) -> Path:
    target = (root / name).resolve()
    if target != root and root not in target.parents:
        raise LocalIOError(f"archive member {name!r} escapes {root}")
    return target


def expand(archive_path: Path, dest_dir: Path) -> int:
    """
    Expand a tar.gz archive into dest_dir.

    Only directories and regular files are restored; files keep the permission
    bits recorded in the archive. Returns the number of files written.
    """
    root = dest_dir.resolve()
    root.mkdir(parents=True, exist_ok=True)
    written = 0
    try:
        with tarfile.open(archive_path, "r:gz") as tar:
            members = tar.getmembers()
            for member in tqdm(members, desc="Expanding", unit="file", disable=not use_progress_bar()):
                target = _safe_target(root, member.name)
                if member.isdir():
                    target.mkdir(parents=True, exist_ok=True)
                elif member.isfile():
                    target.parent.mkdir(parents=True, exist_ok=True)
                    src = tar.extractfile(member)
                    if src is None:
                        continue
                    with src, target.open("wb") as dst:
                        shutil.copyfileobj(src, dst)
                    os.chmod(target, member.mode & 0o777)
                    written += 1
                else:
                    logger.debug("Skipping non-regular archive member %s", member.name)
    except (OSError, tarfile.TarError, EOFError) as e:
        raise LocalIOError(f"error reading tarball {archive_path}: {e}") from e
    return written


def copy_file(src: Path, dst: Path) -> None:
    if not src.is_file():
        raise LocalIOError(f"{src} is not a regular file")
    try:
        shutil.copyfile(src, dst)
    except OSError as e:
        raise LocalIOError(f"failed copying {src} to {dst}: {e}") from e


def _regular_files(src_dir: Path) -> List[Path]:
    return sorted(p for p in src_dir.rglob("*") if p.is_file())


def compress(src_dir: Path, dest: Path) -> int:
    """
    Write every regular file below src_dir into a tar.gz at dest.

    Entries are named relative to src_dir and added in sorted order with
    normalized timestamps and ownership, so the same file set always yields
    the same bytes. Returns the number of files archived.
    """
    if not src_dir.is_dir():
        raise LocalIOError(f"unable to tar files: {src_dir} does not exist")

    files = _regular_files(src_dir)
    try:
        with dest.open("wb") as raw, \
                gzip.GzipFile(filename="", fileobj=raw, mode="wb", mtime=0) as gz, \
                tarfile.open(fileobj=gz, mode="w", format=tarfile.GNU_FORMAT) as tar:
            for path in tqdm(files, desc="Compressing", unit="file", disable=not use_progress_bar()):
                info = tar.gettarinfo(str(path), arcname=path.relative_to(src_dir).as_posix())
                info.mtime = 0
                info.uid = info.gid = 0
                info.uname = info.gname = ""
                info.mode = 0o644
                with path.open("rb") as fh:
                    tar.addfile(info, fh)
    except (OSError, tarfile.TarError) as e:
        raise LocalIOError(f"failed compressing {src_dir} into {dest}: {e}") from e
    return len(files)
