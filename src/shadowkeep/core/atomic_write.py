"""Atomic write helper (temp + fsync + replace).

Readers either see the previous file or the complete new one, never a
partially written blob.
"""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path


TMP_SUFFIX = ".tmp"


def _fsync_dir(path: Path) -> None:
    # Directories cannot be opened for fsync on Windows.
    if sys.platform.startswith("win"):
        return
    try:
        fd = os.open(str(path), os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        # some filesystems reject fsync on directories; the rename already happened
        pass
    finally:
        os.close(fd)


def atomic_write_bytes(
    path: Path,
    payload: bytes,
    *,
    mode: int | None = 0o600,
    fsync: bool = True,
    tmp_dir: Path | None = None,
) -> None:
    """Write ``payload`` to ``path`` atomically.

    The temp file lives in ``tmp_dir`` (default: the destination directory),
    which must be on the same filesystem as ``path`` for ``os.replace``.
    ``mode`` is applied before the rename. OSError propagates.
    """
    path = Path(path)
    staging = Path(tmp_dir) if tmp_dir is not None else path.parent
    tmp_fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=TMP_SUFFIX, dir=str(staging))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(tmp_fd, "wb") as handle:
            handle.write(payload)
            handle.flush()
            if fsync:
                os.fsync(handle.fileno())
        if mode is not None:
            os.chmod(tmp_path, mode)
        os.replace(str(tmp_path), str(path))
        if fsync:
            _fsync_dir(path.parent)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()
