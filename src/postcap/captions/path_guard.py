"""Confinement of file references to the upload root."""

import os
from pathlib import Path

from postcap.captions.logging import log_warning

_LOGGER_NAME = "postcap.captions.path_guard"


class PathGuard:
    """Accepts only paths whose canonical form lies under ``root``.

    Canonicalisation resolves ``..`` segments and symlinks, so traversal,
    absolute-path substitution and symlink redirection are all rejected.
    """

    def __init__(self, root: str | os.PathLike[str]):
        self.root = Path(root).resolve()

    def validate(self, path: str | os.PathLike[str]) -> bool:
        """Return True if ``path`` is inside the authorized root.

        Relative paths are resolved against the process working directory,
        the same way the file would be opened.
        """
        try:
            resolved = Path(path).resolve()
        except (OSError, RuntimeError, ValueError):
            # Symlink loops, NUL bytes and the like
            log_warning(
                "Rejected unresolvable path",
                context={"path": str(path)},
                logger_name=_LOGGER_NAME,
            )
            return False

        if resolved == self.root or not resolved.is_relative_to(self.root):
            log_warning(
                "Rejected path outside upload root",
                context={"path": str(path), "root": str(self.root)},
                logger_name=_LOGGER_NAME,
            )
            return False
        return True
