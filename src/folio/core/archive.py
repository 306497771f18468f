# ABOUTME: Atomic zip archive writer that executes an ordered list of entries.
# ABOUTME: Writes to a temp file beside the destination and renames only on success.

import logging
import shutil
import tempfile
import zipfile
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from folio.errors import FolioError

logger = logging.getLogger(__name__)

# Range of timestamps a zip entry can carry.
_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)
_ZIP_LATEST = (2107, 12, 31, 23, 59, 58)
_UNIX_SYSTEM = 3
_FILE_MODE = 0o644
_COPY_CHUNK_SIZE = 1024 * 1024


class ArchiveWriteError(FolioError):
    """Raised when the archive cannot be written to its destination."""


@dataclass(frozen=True)
class ArchiveEntry:
    """One file to place in the archive.

    Either ``data`` holds the bytes, or ``source`` names a file copied in
    chunks. ``compress`` selects DEFLATE; uncompressed entries are STORED.
    """

    path: str
    data: bytes | None = None
    source: Path | None = None
    compress: bool = True

    def __post_init__(self) -> None:
        if (self.data is None) == (self.source is None):
            msg = f"entry {self.path!r} needs exactly one of data or source"
            raise ValueError(msg)


def zip_date_time(moment: datetime) -> tuple[int, int, int, int, int, int]:
    """Convert a datetime into a zip entry timestamp, clamped to 1980..2107."""
    stamp = (moment.year, moment.month, moment.day, moment.hour, moment.minute, moment.second)
    return min(max(stamp, _ZIP_EPOCH), _ZIP_LATEST)


def _zip_info(entry: ArchiveEntry, date_time: tuple[int, int, int, int, int, int]) -> zipfile.ZipInfo:
    info = zipfile.ZipInfo(entry.path, date_time=date_time)
    info.compress_type = zipfile.ZIP_DEFLATED if entry.compress else zipfile.ZIP_STORED
    info.create_system = _UNIX_SYSTEM
    info.external_attr = _FILE_MODE << 16
    return info


def _write_entries(
    target: Path, entries: Sequence[ArchiveEntry], date_time: tuple[int, int, int, int, int, int]
) -> None:
    with zipfile.ZipFile(target, "w") as zf:
        for entry in entries:
            logger.debug("writing %s", entry.path)
            info = _zip_info(entry, date_time)
            if entry.data is not None:
                zf.writestr(info, entry.data)
            else:
                assert entry.source is not None
                with open(entry.source, "rb") as src, zf.open(info, "w") as dst:
                    shutil.copyfileobj(src, dst, _COPY_CHUNK_SIZE)


def write_archive(
    entries: Sequence[ArchiveEntry],
    dest: Path,
    modified: datetime,
    *,
    check: Callable[[Path], None] | None = None,
) -> Path:
    """Write entries, in order, into a zip archive at dest.

    The archive is assembled in a temporary file in dest's directory and
    moved over dest only once it has been fully written and closed. On any
    failure the temporary file is removed and an existing dest is left
    untouched.

    Args:
        entries: Archive entries in the order they must appear.
        dest: Final archive path.
        modified: Timestamp given to every entry, for reproducible bytes.
        check: Called with the finished temporary archive before it replaces
            dest. Any exception it raises aborts the write and propagates.

    Returns:
        The destination path.

    Raises:
        ArchiveWriteError: If the destination cannot be created or written.
    """
    date_time = zip_date_time(modified)
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        handle = tempfile.NamedTemporaryFile(
            prefix=f".{dest.stem}.",
            suffix=".tmp",
            dir=str(dest.parent),
            delete=False,
        )
    except OSError as exc:
        raise ArchiveWriteError(f"Cannot write to {dest.parent}: {exc}") from exc

    tmp_path = Path(handle.name)
    handle.close()
    try:
        _write_entries(tmp_path, entries, date_time)
        if check is not None:
            check(tmp_path)
        tmp_path.chmod(_FILE_MODE)
        tmp_path.replace(dest)
    except (OSError, zipfile.LargeZipFile) as exc:
        raise ArchiveWriteError(f"Failed to write {dest}: {exc}") from exc
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)

    logger.info("wrote %d entries to %s", len(entries), dest)
    return dest
