import os
from pathlib import Path

from .exceptions import FilesystemError


def commit_file(staged: Path, target: Path) -> None:
    """Move a staged file over its target.

    The staged file must live in the target's directory so the rename stays on one
    filesystem. On failure the staged file is left in place for the caller to clean up.

    Raises:
        FilesystemError: If the existing target cannot be removed or the rename fails.
    """
    try:
        target.unlink(missing_ok=True)
    except OSError as e:
        raise FilesystemError(f"could not remove {target}: {e}") from e

    try:
        os.rename(staged, target)
    except OSError as e:
        raise FilesystemError(f"could not move {staged} to {target}: {e}") from e
