"""Operator accounts and the single active session.

Passwords are stored as bcrypt hashes. The whole user set is rewritten to the
users document after every successful registration; there is no separate save
call. Login failures are reported as one generic :class:`AuthError` whatever
the cause, so callers cannot tell which usernames exist.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Dict, Optional
from uuid import uuid4

import bcrypt

from . import data_manager, log
from .constants import DEFAULT_BCRYPT_ROUNDS, UserRole
from .errors import AuthError, DatabaseError, InvalidInputError
from .models import User, deserialize_user, serialize_user


def hash_password(password: str, *, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> str:
    """Hash ``password`` with a freshly generated bcrypt salt.

    Raises:
        AuthError: If bcrypt rejects the input (for example a password with
            an embedded NUL byte or an invalid cost factor).
    """
    try:
        salt = bcrypt.gensalt(rounds=rounds)
        hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    except (ValueError, TypeError) as exc:
        log.error("Password hashing failed: %s", exc)
        raise AuthError() from exc
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check ``password`` against a stored bcrypt hash.

    Raises:
        ValueError: If ``password_hash`` is not a usable bcrypt hash.
    """
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


class CredentialStore:
    """Registered users keyed by username, plus the logged-in operator."""

    def __init__(self, users_file: Path, *, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
        self.users_file = Path(users_file)
        self.rounds = rounds
        self._users: Dict[str, User] = {}
        self._current_user: Optional[User] = None

    @classmethod
    def open(
        cls,
        users_file: Path,
        *,
        rounds: int = DEFAULT_BCRYPT_ROUNDS,
        default_username: str,
        default_password: str,
    ) -> "CredentialStore":
        """Load the users document and seed the default manager when it is empty."""
        store = cls(users_file, rounds=rounds)
        store.load()
        store.ensure_default_user(default_username, default_password)
        return store

    def load(self) -> bool:
        """Replace the user set with the content of :attr:`users_file`.

        Any failure to open or decode the document leaves the store empty.

        Returns:
            bool: ``True`` when the document was read successfully.
        """
        try:
            document = data_manager.read_json_document(self.users_file)
            if not isinstance(document, dict):
                raise TypeError("Users document must be a JSON object")
            users = {}
            for username, raw in document.items():
                user = deserialize_user(raw)
                if user.username != username:
                    raise ValueError(f"User record for '{username}' is stored as '{user.username}'")
                users[username] = user
        except FileNotFoundError:
            log.info("Users file '%s' not found; starting with no users", self.users_file)
            self._users = {}
            return False
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            log.warning("Users file '%s' is unreadable (%s); starting with no users", self.users_file, exc)
            self._users = {}
            return False

        self._users = users
        log.info("Loaded %d users from '%s'", len(users), self.users_file)
        return True

    def ensure_default_user(
        self,
        username: str,
        password: str,
        role: UserRole = UserRole.MANAGER,
    ) -> bool:
        """Register a seed account if no users exist yet.

        Returns:
            bool: ``True`` if the account was created.
        """
        if not self.is_empty():
            return False
        self.register(username, password, role)
        log.info("Created default %s account '%s'", role.value, username)
        return True

    def is_empty(self) -> bool:
        return not self._users

    def user_exists(self, username: str) -> bool:
        return username in self._users

    def register(self, username: str, password: str, role: UserRole) -> User:
        """Create an account and persist the whole user set.

        Raises:
            InvalidInputError: If ``username`` is already registered or
                ``role`` is not a known role.
            AuthError: If the password cannot be hashed.
            DatabaseError: If the users document cannot be written.
        """
        if self.user_exists(username):
            log.warning("Registration rejected: username '%s' already exists", username)
            raise InvalidInputError(f"Username '{username}' already exists")

        try:
            role = UserRole(role)
        except ValueError as exc:
            log.warning("Registration rejected: unknown role %r", role)
            raise InvalidInputError(f"unknown role '{role}'") from exc

        user = User(
            id=uuid4(),
            username=username,
            password_hash=hash_password(password, rounds=self.rounds),
            role=role,
        )
        self._users[username] = user
        try:
            self._save_users()
        except DatabaseError:
            del self._users[username]
            raise
        log.info("Registered %s account '%s'", user.role.value, username)
        return user

    def _save_users(self) -> None:
        document = {name: serialize_user(user) for name, user in self._users.items()}
        try:
            data_manager.write_json_document(self.users_file, document, pretty=True)
        except (OSError, TypeError, ValueError) as exc:
            log.error("Failed to save users to '%s': %s", self.users_file, exc)
            raise DatabaseError(str(exc)) from exc
        log.info("Saved %d users to '%s'", len(self._users), self.users_file)

    def login(self, username: str, password: str) -> User:
        """Authenticate and start a session for ``username``.

        Raises:
            AuthError: If the user is unknown, the password is wrong, or the
                stored hash cannot be checked.
        """
        user = self._users.get(username)
        try:
            verified = user is not None and verify_password(password, user.password_hash)
        except ValueError as exc:
            log.debug("Password verification error for '%s': %s", username, exc)
            verified = False

        if not verified:
            log.warning("Login failed for username '%s'", username)
            raise AuthError()

        self._current_user = replace(user)
        log.info("User '%s' logged in", username)
        return self._current_user

    def logout(self) -> None:
        if self._current_user is not None:
            log.info("User '%s' logged out", self._current_user.username)
        self._current_user = None

    def is_manager(self) -> bool:
        return self._current_user is not None and self._current_user.role is UserRole.MANAGER

    def get_current_user(self) -> Optional[User]:
        return self._current_user
