"""
Secure File Walker
------------------
Visits a configuration file and its drop-in extensions, checking that
nobody but the expected owner could have written any of them.

Rules:
- Every visited path is checked before it is handed to the consumer
- Symlinks are always resolved
- The first failure aborts the walk, nothing after it runs
- Ignored drop-ins are never stat-ed

Checks are evaluated lazily, so the consumer may already have run for
earlier files when a later check fails.
"""

from pathlib import Path
from typing import Callable, List, Optional

from core.errors import ContextError, SecurityCheck, SecurityViolation
from infra.logging import get_logger
from security.ownership import (
    FilesystemOwnership, OwnershipResolver, PathLike
)

logger = get_logger("security.walker")

Consumer = Callable[[Path], None]


def extension_dir(main_file: PathLike) -> Path:
    """The drop-in directory of ``main_file``: its path with ``.d`` appended."""
    main_file = Path(main_file)
    return main_file.with_name(main_file.name + ".d")


def check_path(
    path: PathLike,
    owner: int,
    expect_dir: bool = False,
    resolver: Optional[OwnershipResolver] = None,
) -> None:
    """
    Check that ``path`` is safe to trust.

    Args:
        path: File or directory to check (symlinks are followed)
        owner: Required owning uid
        expect_dir: Require a directory instead of a regular file
        resolver: Ownership resolver (default: real filesystem metadata)

    Raises:
        SecurityViolation: Wrong type, group/other permission bits or owner
        OSError: The path could not be stat-ed
    """
    resolver = resolver or FilesystemOwnership()
    resolved = resolver.resolve(path)
    path_str = str(path)

    def reject(message: str, check: SecurityCheck, **kwargs) -> SecurityViolation:
        logger.warning(f"Refusing {path_str}: {message}")
        return SecurityViolation(message, path_str, check, **kwargs)

    # Check file type
    if expect_dir:
        if not resolved.is_dir:
            raise reject("not a (symlink to a) directory", SecurityCheck.FILE_TYPE)
    elif not resolved.is_file:
        raise reject("not a (symlink to a) regular file", SecurityCheck.FILE_TYPE)

    # Check permission bits
    if resolved.mode & 0o077:
        suggested = resolved.mode & 0o700
        raise reject(
            f"file has permissions {resolved.mode:o}, change to {suggested:o}",
            SecurityCheck.PERMISSIONS,
            suggested_mode=suggested,
        )

    # Check owner
    if resolved.uid != owner:
        raise reject(
            f"must be owned by UID {owner}, not {resolved.uid}",
            SecurityCheck.OWNER,
        )

    logger.debug(f"Trusted {path_str} (uid={resolved.uid}, mode={resolved.mode:o})")


def list_extensions(main_file: PathLike) -> Optional[List[Path]]:
    """
    List the drop-ins of ``main_file`` that should be visited, in order.

    Returns None if the extension directory does not exist.

    If ``main_file`` has a suffix, only entries with the same suffix are
    kept and they are sorted by name without that suffix, so ``a.ext``
    comes before ``a.a.ext``. Otherwise every entry is kept, sorted by
    path.
    """
    main_file = Path(main_file)
    directory = extension_dir(main_file)

    try:
        entries = list(directory.iterdir())
    except FileNotFoundError:
        return None

    suffix = main_file.suffix
    if suffix:
        entries = [e for e in entries if e.suffix == suffix]
        entries.sort(key=lambda e: str(e.with_suffix("")))
    else:
        entries.sort(key=str)

    return entries


def visit_config_files(
    main_file: PathLike,
    owner: int,
    consumer: Consumer,
    resolver: Optional[OwnershipResolver] = None,
) -> None:
    """
    Check and visit ``main_file`` and the contents of ``{main_file}.d``.

    Args:
        main_file: Main configuration file
        owner: Uid that must own every visited file and the directory
        consumer: Called with each accepted path; raises to abort
        resolver: Ownership resolver (default: real filesystem metadata)

    Raises:
        ContextError: Wrapping the first failure, whether it came from a
            check, from listing the directory, or from the consumer
    """
    resolver = resolver or FilesystemOwnership()
    main_file = Path(main_file)
    directory = extension_dir(main_file)

    # Visit main file
    try:
        check_path(main_file, owner, resolver=resolver)
        consumer(main_file)
    except Exception as e:
        raise ContextError(f"loading main file {main_file}") from e

    # Try listing extensions
    try:
        extensions = list_extensions(main_file)
    except OSError as e:
        raise ContextError(f"listing extensions in {directory}") from e

    if extensions is None:
        logger.debug(f"No extension directory {directory}")
        return

    try:
        check_path(directory, owner, expect_dir=True, resolver=resolver)
    except Exception as e:
        raise ContextError(f"checking extension directory {directory}") from e

    # Visit extensions
    for entry in extensions:
        try:
            check_path(entry, owner, resolver=resolver)
            consumer(entry)
        except Exception as e:
            raise ContextError(f"loading extension file {entry}") from e
