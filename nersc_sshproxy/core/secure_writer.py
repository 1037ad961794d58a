"""Owner-only, atomic artifact writes."""

from __future__ import annotations

import os
import stat
import tempfile
from pathlib import Path

PRIVATE_FILE_MODE = 0o600
PRIVATE_DIR_MODE = 0o700


class ArtifactWriteError(RuntimeError):
    """Raised when an artifact cannot be written with the required permissions."""


def _unlink_if_exists(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass


class SecureFileWriter:
    """Writes files through a same-directory temp file and ``os.replace``.

    ``mkstemp`` creates the temp file with mode 0600, so the content is never
    reachable through a path with wider permissions, and readers of the final
    path see either the previous file or the complete new one.
    """

    def ensure_private_dir(self, directory: Path) -> None:
        try:
            directory.mkdir(mode=PRIVATE_DIR_MODE, parents=True, exist_ok=True)
        except OSError as exc:
            raise ArtifactWriteError(f"cannot create directory {directory}: {exc}") from exc
        if not directory.is_dir():
            raise ArtifactWriteError(f"not a directory: {directory}")

    def write(self, path: Path, data: bytes, mode: int = PRIVATE_FILE_MODE) -> Path:
        if mode & 0o077:
            raise ValueError(f"artifact mode must be owner-only, got {oct(mode)}")
        if path.is_dir():
            raise ArtifactWriteError(f"refusing to replace directory {path}")

        try:
            fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
        except OSError as exc:
            raise ArtifactWriteError(f"cannot create temporary file for {path}: {exc}") from exc

        tmp_path = Path(tmp_name)
        try:
            try:
                with os.fdopen(fd, "wb") as handle:
                    os.fchmod(handle.fileno(), mode)
                    handle.write(data)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_path, path)
                actual = stat.S_IMODE(path.stat().st_mode)
            except OSError as exc:
                raise ArtifactWriteError(f"cannot write {path}: {exc}") from exc
        finally:
            _unlink_if_exists(tmp_path)

        if actual & 0o077:
            raise ArtifactWriteError(f"{path} ended up with mode {oct(actual)}")
        return path
