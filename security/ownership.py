"""
Ownership Resolution
--------------------
Answers "who owns this path and what are its permission bits" after
symlink resolution.

The production resolver reads real filesystem metadata. The only
sanctioned extension point is ``owner_of``, which test doubles override
to declare owners without needing real multi-user filesystems.
"""

from pathlib import Path
from typing import NamedTuple, Protocol, Union
import os
import stat

PathLike = Union[str, "os.PathLike[str]"]


class ResolvedPath(NamedTuple):
    """Metadata of a filesystem object after following symlinks."""
    uid: int        # Owning identity
    mode: int       # Low 9 permission bits
    is_file: bool
    is_dir: bool


class OwnershipResolver(Protocol):
    """Strategy for resolving ownership of a path."""

    def resolve(self, path: PathLike) -> ResolvedPath:
        ...


class FilesystemOwnership:
    """
    Resolves ownership from real filesystem metadata.

    Symlinks are always followed. Errors from ``os.stat`` (missing path,
    broken symlink, permission denied) propagate unchanged.
    """

    def resolve(self, path: PathLike) -> ResolvedPath:
        st = os.stat(path)
        return ResolvedPath(
            uid=self.owner_of(Path(path), st),
            mode=stat.S_IMODE(st.st_mode) & 0o777,
            is_file=stat.S_ISREG(st.st_mode),
            is_dir=stat.S_ISDIR(st.st_mode),
        )

    def owner_of(self, path: Path, st: os.stat_result) -> int:
        """Owning uid of ``path``, given its (followed) stat result."""
        return st.st_uid
