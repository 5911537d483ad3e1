"""
Control Settings
----------------
Per-user control settings parsed from the root-owned control file and its
drop-ins.

Control files are TOML documents. Each top-level table names a user (by
UID or username) or the wildcard ``*``:

    ["*"]
    enable = false
    config = "~/.narrowssh.conf"
    authorized_keys = "~/.ssh/authorized_keys"

    [alice]
    enable = true

Tables are merged field by field in visiting order: a later table only
changes the fields it sets.
"""

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, List, Optional
import re
import tomllib

from pydantic import BaseModel, ConfigDict, ValidationError

from core.errors import (
    ContextError, ControlParseError, ControlSchemaError,
    ControlValidationError, UnknownUserError
)
from infra.logging import get_logger
from infra.users import UserMap
from security.file_walker import visit_config_files
from security.ownership import OwnershipResolver, PathLike

# Default value of `config` setting in control
DEFAULT_USER_CONFIG = "~/.narrowssh.conf"

# Default value of `authorized_keys` setting in control
DEFAULT_AUTHORIZED_KEYS = "~/.ssh/authorized_keys"

# Control files must be owned by root
CONTROL_OWNER_UID = 0

# Table key of the fallback entry
WILDCARD = "*"

MAX_UID = 2**32 - 1

_UID_PATTERN = re.compile(r"\+?[0-9]+")


class IncompleteControl(BaseModel):
    """
    One control table: every field may be absent.

    Absent fields inherit from whatever the table is merged onto, so
    ``enable = false`` and "enable not mentioned" stay distinguishable.
    """

    model_config = ConfigDict(extra="forbid", strict=True, frozen=True)

    enable: Optional[bool] = None
    config: Optional[str] = None
    authorized_keys: Optional[str] = None

    def merged(self, other: "IncompleteControl") -> "IncompleteControl":
        """Return a copy with every field set in ``other`` overwritten."""
        return self.model_copy(update=other.model_dump(exclude_none=True))

    def validate_paths(self) -> None:
        """
        Check path fields: when present, non-empty and starting with '/' or '~'.

        Raises:
            ControlValidationError: A path field is malformed
        """
        for name in ("config", "authorized_keys"):
            value = getattr(self, name)
            if value is None:
                continue
            if not value:
                raise ControlValidationError(
                    f"{name!r} fields in control files must not be empty",
                    details={"field": name},
                )
            if value[0] not in "/~":
                raise ControlValidationError(
                    f"{name!r} fields in control files must begin with '/' or '~'",
                    details={"field": name, "value": value},
                )


@dataclass(frozen=True)
class Control:
    """A user's control settings."""

    # Killswitch for all functionality
    enabled: bool

    # Path to user-defined config. Its extension directory is
    # `config_path + '.d/'`. Both must be owned by the user and have no
    # group or other permissions, otherwise all user configuration is
    # ignored. Begins with '/' (absolute) or '~' (home-relative).
    config_path: str

    # Path to the authorized_keys(5) file of this user
    authorized_keys_path: str

    @classmethod
    def defaults(cls) -> "Control":
        return cls(
            enabled=False,
            config_path=DEFAULT_USER_CONFIG,
            authorized_keys_path=DEFAULT_AUTHORIZED_KEYS,
        )

    def merged(self, source: IncompleteControl) -> "Control":
        """Return a copy with every field set in ``source`` overwritten."""
        changes = {}
        if source.enable is not None:
            changes["enabled"] = source.enable
        if source.config is not None:
            changes["config_path"] = source.config
        if source.authorized_keys is not None:
            changes["authorized_keys_path"] = source.authorized_keys
        return replace(self, **changes)


def parse_uid(key: str) -> Optional[int]:
    """Return ``key`` as a UID if it is a decimal numeral (optionally ``+``-signed) in range."""
    if not _UID_PATTERN.fullmatch(key):
        return None
    uid = int(key)
    return uid if uid <= MAX_UID else None


class ControlManager:
    """
    Manages the control settings for all users.

    Built once by ``load`` and never modified afterwards.
    """

    def __init__(self):
        # Overrides for individual users
        self._users: Dict[int, IncompleteControl] = {}

        # Default values for all other users
        self._fallback = Control.defaults()

    @classmethod
    def load(
        cls,
        users: UserMap,
        main_file: PathLike,
        resolver: Optional[OwnershipResolver] = None,
    ) -> "ControlManager":
        """
        Load the control data from the filesystem.

        ``main_file`` and the contents of ``{main_file}.d`` are checked,
        read and parsed. Symbolic links are always resolved.

        Args:
            users: User directory used to resolve usernames
            main_file: Main control file
            resolver: Ownership resolver (default: real filesystem metadata)

        Raises:
            ContextError: Wrapping the first failure; the chain holds a
                SecurityViolation, OSError, ControlParseError,
                ControlSchemaError, ControlValidationError,
                UnknownUserError or AmbiguousUserError
        """
        manager = cls()
        logger = get_logger("core.control")

        try:
            visit_config_files(
                main_file,
                CONTROL_OWNER_UID,
                lambda path: manager._process_file(path, users),
                resolver=resolver,
            )
        except Exception as e:
            raise ContextError("could not load control configuration files") from e

        overrides = {
            uid: entry.model_dump(exclude_none=True)
            for uid, entry in manager._users.items()
        }
        logger.debug(f"Loaded control: fallback={manager._fallback}, overrides={overrides}")
        return manager

    def _process_file(self, path: Path, users: UserMap) -> None:
        """Parse one control file and merge its tables."""
        logger = get_logger("core.control")
        logger.info(f"Reading control {path}")

        try:
            content = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise ControlParseError(f"{path} is not valid UTF-8") from e
        try:
            tables = tomllib.loads(content)
        except tomllib.TOMLDecodeError as e:
            raise ControlParseError(f"{path} is not a valid TOML document: {e}") from e

        for key, data in tables.items():
            try:
                entry = IncompleteControl.model_validate(data)
            except ValidationError as e:
                raise ControlSchemaError(
                    f"table [{key}] is not a valid control entry: {_summarize(e)}",
                    details={"table": key},
                ) from e

            try:
                entry.validate_paths()
            except ControlValidationError as e:
                raise ContextError(f"in table [{key}]") from e

            if key == WILDCARD:
                self._fallback = self._fallback.merged(entry)
                continue

            uid = self._resolve_uid(key, users)
            current = self._users.get(uid)
            self._users[uid] = current.merged(entry) if current else entry

    @staticmethod
    def _resolve_uid(key: str, users: UserMap) -> int:
        uid = parse_uid(key)
        if uid is not None:
            return uid

        user = users.user_by_username(key)
        if user is None:
            raise UnknownUserError(f"unknown user {key!r}", details={"username": key})
        return user.uid

    @property
    def fallback(self) -> Control:
        """Settings of users without overrides."""
        return self._fallback

    def overridden_uids(self) -> List[int]:
        """UIDs that have at least one table of their own, sorted."""
        return sorted(self._users)

    def get(self, uid: int) -> Control:
        """Return the control settings of given user."""
        result = self._fallback

        overrides = self._users.get(uid)
        if overrides is not None:
            result = result.merged(overrides)

        return result


def _summarize(error: ValidationError) -> str:
    """Short, single-line summary of a pydantic validation error."""
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "table"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)
