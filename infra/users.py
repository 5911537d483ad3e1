"""
User Directory
--------------
Snapshot of the system users, queried by uid or by name.

The snapshot is taken once per invocation and passed explicitly to
whatever needs it, so tests can hand in a synthetic directory.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Optional
import os
import pwd

from core.errors import AmbiguousUserError
from infra.logging import get_logger


@dataclass(frozen=True)
class User:
    """A system user."""
    uid: int
    name: str
    gid: int
    home_dir: str = "/"
    shell: str = "/bin/sh"

    @classmethod
    def from_passwd(cls, entry: pwd.struct_passwd) -> "User":
        """Create a user from a ``pwd`` database entry."""
        return cls(
            uid=entry.pw_uid,
            name=entry.pw_name,
            gid=entry.pw_gid,
            home_dir=entry.pw_dir,
            shell=entry.pw_shell,
        )


class UserMap:
    """
    Provides access to a snapshot of system users.

    Users are keyed by uid; if several entries share a uid, the last one
    wins.
    """

    def __init__(self, users: Iterable[User], current_uid: int):
        self._data: Dict[int, User] = {u.uid: u for u in users}
        self._current_uid = current_uid

    @classmethod
    def from_system(cls) -> "UserMap":
        """Snapshot the password database and the uid of this process."""
        users = [User.from_passwd(entry) for entry in pwd.getpwall()]
        get_logger("infra.users").debug(f"Loaded {len(users)} system users")
        return cls(users, os.getuid())

    def all_users(self) -> Iterator[User]:
        """Iterate over all known users."""
        return iter(self._data.values())

    def user_by_uid(self, uid: int) -> Optional[User]:
        """Return the user with given uid, if one exists."""
        return self._data.get(uid)

    def user_by_username(self, name: str) -> Optional[User]:
        """
        Return the user with given username if exactly one exists.

        Returns None if no user has the name.

        Raises:
            AmbiguousUserError: At least two users share the name
        """
        matches = [u for u in self._data.values() if u.name == name]
        if len(matches) > 1:
            uids = ", ".join(str(u.uid) for u in matches)
            raise AmbiguousUserError(
                f"username {name!r} is not unique (UIDs {uids})",
                details={"username": name},
            )
        return matches[0] if matches else None

    def current_uid(self) -> int:
        """The uid of the invoking process."""
        return self._current_uid

    def current_user(self) -> Optional[User]:
        """The invoking user, if known."""
        return self.user_by_uid(self._current_uid)

    def add(self, user: User) -> None:
        """Add a user manually. For use in testing."""
        self._data[user.uid] = user

    def __len__(self) -> int:
        return len(self._data)
