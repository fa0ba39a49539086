"""Filesystem abstraction for testability.

The RealFileSystem implementation wraps standard library operations and adds
the atomic write used for generated configuration.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write bytes to a sibling temp file, then rename it over path.

    The temp file lives in the same directory so the rename never crosses
    filesystems. On failure the temp file is removed and path is untouched.
    """
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


class RealFileSystem:
    """Production filesystem implementation.

    Satisfies the FileSystem protocol structurally.
    """

    def mkdir(self, path: Path, parents: bool = False, exist_ok: bool = False) -> None:
        """Create a directory."""
        path.mkdir(parents=parents, exist_ok=exist_ok)

    def atomic_write_text(self, path: Path, content: str) -> None:
        """Write UTF-8 text atomically with LF line endings."""
        atomic_write_bytes(path, content.encode("utf-8"))
