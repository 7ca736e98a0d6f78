"""
BackupBot - Archive Builder
===========================

Streams configured files and directory trees into one .tar.gz file.

A file that cannot be read is logged and skipped; it never aborts the
archive. A file that shrinks while being copied keeps its declared size,
zero-filled, and is reported as skipped. Only failing to create, write
or finish the output file is fatal.
"""

import gzip
import os
import socket
import stat
import tarfile
from datetime import datetime
from pathlib import Path
from typing import IO, Iterator, List, Optional, Tuple

from backupbot.core.constants import ARCHIVE_SUFFIX, ARCHIVE_TIMESTAMP_FORMAT
from backupbot.core.errors import ArchiveCreationError
from backupbot.core.logger import log
from backupbot.services.backup.exclusion import is_excluded
from backupbot.services.backup.paths import archive_join, resolve_path
from backupbot.services.backup.types import Archive, BackupSpec, EntryResult, EntryStatus
from backupbot.utils.text import format_size, truncate

# Give up looking for a free name after this many suffixes
MAX_NAME_ATTEMPTS = 100


# =============================================================================
# Output File
# =============================================================================

def _hostname() -> str:
    try:
        return socket.gethostname() or "unknown"
    except OSError as e:
        log.tree("Hostname Lookup Failed", [
            ("Error", str(e)[:100]),
        ], emoji="⚠️")
        return "unknown"


def archive_base_name(spec: BackupSpec, now: Optional[datetime] = None) -> str:
    """backup_<host>_<YYYY-mm-dd_HH-MM-SS>, timestamp in the configured timezone."""
    now = now or datetime.now(spec.timezone)
    return f"{spec.name_prefix}_{_hostname()}_{now.strftime(ARCHIVE_TIMESTAMP_FORMAT)}"


def _create_output(spec: BackupSpec) -> Tuple[Path, IO[bytes]]:
    """Exclusively create a new archive file; never reuses an existing name."""
    out_dir = Path(resolve_path(spec.output_dir))
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ArchiveCreationError(f"cannot create directory {out_dir}: {e}") from e

    base = archive_base_name(spec)
    for attempt in range(MAX_NAME_ATTEMPTS):
        suffix = f"-{attempt}" if attempt else ""
        path = out_dir / f"{base}{suffix}{ARCHIVE_SUFFIX}"
        try:
            return path, open(path, "xb")
        except FileExistsError:
            continue
        except OSError as e:
            raise ArchiveCreationError(f"cannot create archive {path}: {e}") from e

    raise ArchiveCreationError(f"no free archive name for {base} in {out_dir}")


# =============================================================================
# Writer
# =============================================================================

class _SizedReader:
    """
    Yields exactly `size` bytes of a source file.

    tarfile has already written the header by the time content is copied,
    so a file that shrinks or fails mid-read is zero-filled up to the
    declared size to keep every later member aligned.
    """

    def __init__(self, f: IO[bytes], size: int) -> None:
        self._f = f
        self._remaining = size
        self.copied = 0
        self.error: Optional[OSError] = None

    def read(self, n: int = -1) -> bytes:
        if n < 0 or n > self._remaining:
            n = self._remaining
        data = b""
        if self.error is None:
            try:
                data = self._f.read(n)
            except OSError as e:
                self.error = e
                data = b""
        self.copied += len(data)
        if len(data) < n:
            data += bytes(n - len(data))
        self._remaining -= n
        return data


class _ArchiveWriter:
    """Adds entries to an open tar stream and records what happened to each."""

    def __init__(self, tar: tarfile.TarFile, exclude: Tuple[str, ...]) -> None:
        self.tar = tar
        self.exclude = exclude
        self.entries: List[EntryResult] = []

    def _ok(self, source: str, archive_path: str) -> None:
        self.entries.append(EntryResult(source, archive_path, EntryStatus.OK))

    def _skip(self, source: str, archive_path: str, reason: str) -> None:
        self.entries.append(EntryResult(source, archive_path, EntryStatus.SKIPPED, reason))

    def _excluded(self, source: str, archive_path: str, kind: str) -> None:
        log.tree(f"{kind} Excluded From Archive", [
            ("Path", source),
        ], emoji="🚫")
        self._skip(source, archive_path, "excluded")

    def _failed(self, source: str, archive_path: str, reason: str) -> None:
        log.tree("Archive Entry Skipped", [
            ("Path", source),
            ("Archive Path", archive_path or "-"),
            ("Reason", truncate(reason, 150)),
        ], emoji="⚠️")
        self._skip(source, archive_path, reason)

    def _write_file(self, source: str, archive_path: str) -> None:
        """
        Write header and content for one regular file.

        Problems with the source skip the entry. Errors writing the output
        propagate.
        """
        try:
            st = os.stat(source)
            if not stat.S_ISREG(st.st_mode):
                self._failed(source, archive_path, "not a regular file")
                return
            f = open(source, "rb")
        except OSError as e:
            self._failed(source, archive_path, f"{type(e).__name__}: {e}")
            return

        with f:
            try:
                info = self.tar.gettarinfo(arcname=archive_path, fileobj=f)
            except (OSError, tarfile.TarError) as e:
                self._failed(source, archive_path, f"{type(e).__name__}: {e}")
                return
            reader = _SizedReader(f, info.size)
            self.tar.addfile(info, reader)

        if reader.error is not None:
            self._failed(source, archive_path, (
                f"read failed after {reader.copied} of {info.size} bytes, rest zero-filled: "
                f"{type(reader.error).__name__}: {reader.error}"
            ))
        elif reader.copied < info.size:
            self._failed(source, archive_path, (
                f"changed while reading: {reader.copied} of {info.size} bytes, rest zero-filled"
            ))
        else:
            self._ok(source, archive_path)

    def add_file(self, path: str, archive_path: str) -> None:
        source = resolve_path(path)
        archive_path = archive_join(archive_path, "")
        if is_excluded(source, self.exclude):
            self._excluded(source, archive_path, "File")
            return
        self._write_file(source, archive_path)

    def add_dir(self, path: str, archive_root: str) -> None:
        root = resolve_path(path)
        if is_excluded(root, self.exclude):
            self._excluded(root, archive_join(archive_root, ""), "Directory")
            return

        if not os.path.isdir(root):
            # A file configured as a directory lands at the archive root path
            self._write_file(root, archive_join(archive_root, ""))
            return

        for source in self._walk(root, root, archive_root):
            relative = os.path.relpath(source, root)
            self._write_file(source, archive_join(archive_root, relative))

    def _walk(self, directory: str, root: str, archive_root: str) -> Iterator[str]:
        """Depth-first, name-ordered walk yielding files; excluded directories are pruned."""
        try:
            with os.scandir(directory) as it:
                children = sorted(it, key=lambda e: e.name)
        except OSError as e:
            relative = os.path.relpath(directory, root)
            self._failed(directory, archive_join(archive_root, relative), f"cannot list directory: {e}")
            return

        for child in children:
            try:
                is_dir = child.is_dir(follow_symlinks=False)
            except OSError:
                is_dir = False

            if is_excluded(child.path, self.exclude):
                relative = os.path.relpath(child.path, root)
                self._excluded(child.path, archive_join(archive_root, relative), "Directory" if is_dir else "File")
                continue

            if is_dir:
                yield from self._walk(child.path, root, archive_root)
            else:
                yield child.path


# =============================================================================
# Build
# =============================================================================

def build_archive(spec: BackupSpec) -> Archive:
    """
    Build the archive described by `spec` and return it opened for reading.

    The caller owns the result and must close it (which deletes the file).
    Raises ArchiveCreationError when the output cannot be created or finished.
    """
    path, raw = _create_output(spec)
    log.tree("Creating Archive", [
        ("File", path.name),
        ("Files", str(len(spec.files))),
        ("Dirs", str(len(spec.dirs))),
        ("Excludes", str(len(spec.exclude))),
    ], emoji="📦")

    try:
        # Exit order closes tar (footer), then gzip (trailer), then the file
        with raw, gzip.GzipFile(fileobj=raw, mode="wb") as gz, tarfile.open(
            fileobj=gz,
            mode="w",
            format=tarfile.PAX_FORMAT,
            dereference=True,
        ) as tar:
            writer = _ArchiveWriter(tar, spec.exclude)
            for mapping in spec.files:
                writer.add_file(mapping.source, mapping.archive_path)
            for mapping in spec.dirs:
                writer.add_dir(mapping.source, mapping.archive_path)

        reader = open(path, "rb")
    except (OSError, tarfile.TarError) as e:
        path.unlink(missing_ok=True)
        raise ArchiveCreationError(f"cannot finish archive {path.name}: {e}") from e
    except BaseException:
        path.unlink(missing_ok=True)
        raise

    archive = Archive(path, reader, tuple(writer.entries))
    log.tree("Archive Created", [
        ("File", archive.name),
        ("Size", format_size(archive.size)),
        ("Written", str(len(archive.written))),
        ("Skipped", str(len(archive.skipped))),
    ], emoji="✅")
    return archive


__all__ = ["build_archive", "archive_base_name"]
