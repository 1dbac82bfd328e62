"""Unit tests for the credential store and its session handling."""

from __future__ import annotations

import json

import pytest

from stockkeeper import auth
from stockkeeper.constants import UserRole
from stockkeeper.errors import AuthError, DatabaseError, InvalidInputError


def test_construction_has_no_session(credentials):
    assert credentials.get_current_user() is None
    assert credentials.is_manager() is False
    assert credentials.is_empty()


def test_construction_does_not_touch_disk(credentials, users_path):
    assert not users_path.exists()


def test_register_persists_pretty_user_document(credentials, users_path):
    user = credentials.register("clerk", "password123", UserRole.EMPLOYEE)

    text = users_path.read_text(encoding="utf-8")
    document = json.loads(text)

    assert "\n  " in text
    assert document == {
        "clerk": {
            "id": str(user.id),
            "username": "clerk",
            "password_hash": user.password_hash,
            "role": "Employee",
        }
    }
    assert user.password_hash != "password123"
    assert user.password_hash.startswith("$2")


def test_register_duplicate_username_is_rejected(credentials):
    original = credentials.register("clerk", "first", UserRole.EMPLOYEE)

    with pytest.raises(InvalidInputError):
        credentials.register("clerk", "second", UserRole.MANAGER)

    credentials.login("clerk", "first")
    assert credentials.get_current_user().password_hash == original.password_hash
    assert credentials.is_manager() is False


def test_register_unknown_role_is_rejected(credentials, users_path):
    with pytest.raises(InvalidInputError):
        credentials.register("clerk", "pw", "Owner")

    assert not credentials.user_exists("clerk")
    assert not users_path.exists()


def test_register_accepts_role_value(credentials):
    user = credentials.register("clerk", "pw", "Employee")
    assert user.role is UserRole.EMPLOYEE


def test_usernames_are_case_sensitive(credentials):
    credentials.register("Clerk", "a", UserRole.EMPLOYEE)
    credentials.register("clerk", "b", UserRole.EMPLOYEE)

    assert credentials.user_exists("Clerk")
    assert credentials.user_exists("clerk")
    with pytest.raises(AuthError):
        credentials.login("CLERK", "a")


def test_login_with_correct_credentials_sets_session(credentials):
    user = credentials.register("test_user", "password123", UserRole.EMPLOYEE)

    credentials.login("test_user", "password123")

    assert credentials.get_current_user() == user


def test_login_with_wrong_password_fails(credentials):
    credentials.register("test_user", "password123", UserRole.EMPLOYEE)
    with pytest.raises(AuthError):
        credentials.login("test_user", "wrong_password")
    assert credentials.get_current_user() is None


def test_login_with_unknown_user_fails(credentials):
    with pytest.raises(AuthError):
        credentials.login("ghost", "password123")


def test_login_failures_share_one_message(credentials):
    credentials.register("test_user", "password123", UserRole.EMPLOYEE)

    with pytest.raises(AuthError) as unknown:
        credentials.login("ghost", "password123")
    with pytest.raises(AuthError) as wrong:
        credentials.login("test_user", "nope")

    assert str(unknown.value) == str(wrong.value) == "Authentication failed"


def test_login_with_malformed_stored_hash_fails(users_path, bcrypt_rounds):
    users_path.write_text(
        json.dumps(
            {
                "broken": {
                    "id": "6f1c1bbf-6f7a-4f41-9d0a-8c3b5f1e2a10",
                    "username": "broken",
                    "password_hash": "not-a-bcrypt-hash",
                    "role": "Manager",
                }
            }
        ),
        encoding="utf-8",
    )
    store = auth.CredentialStore(users_path, rounds=bcrypt_rounds)
    assert store.load() is True

    with pytest.raises(AuthError):
        store.login("broken", "anything")


def test_is_manager_reflects_session_role(credentials):
    credentials.register("boss", "pw", UserRole.MANAGER)
    credentials.register("clerk", "pw", UserRole.EMPLOYEE)

    credentials.login("boss", "pw")
    assert credentials.is_manager() is True

    credentials.login("clerk", "pw")
    assert credentials.is_manager() is False


def test_logout_clears_session(credentials):
    credentials.register("boss", "pw", UserRole.MANAGER)
    credentials.login("boss", "pw")

    credentials.logout()

    assert credentials.get_current_user() is None
    assert credentials.is_manager() is False


def test_logout_without_session_is_harmless(credentials):
    credentials.logout()
    assert credentials.get_current_user() is None


def test_load_restores_registered_users(credentials, users_path, bcrypt_rounds):
    credentials.register("clerk", "password123", UserRole.EMPLOYEE)

    reopened = auth.CredentialStore(users_path, rounds=bcrypt_rounds)
    assert reopened.load() is True
    reopened.login("clerk", "password123")
    assert reopened.get_current_user().role is UserRole.EMPLOYEE


def test_load_missing_file_starts_empty(credentials):
    assert credentials.load() is False
    assert credentials.is_empty()


def test_load_corrupt_file_starts_empty(credentials, users_path):
    users_path.write_text("[1, 2, 3]", encoding="utf-8")
    assert credentials.load() is False
    assert credentials.is_empty()


def test_ensure_default_user_seeds_empty_store(credentials, users_path):
    assert credentials.ensure_default_user("admin", "admin123") is True

    credentials.login("admin", "admin123")
    assert credentials.is_manager() is True
    assert "admin" in json.loads(users_path.read_text(encoding="utf-8"))


def test_ensure_default_user_skips_populated_store(credentials):
    credentials.register("clerk", "pw", UserRole.EMPLOYEE)
    assert credentials.ensure_default_user("admin", "admin123") is False
    assert not credentials.user_exists("admin")


def test_open_seeds_only_on_first_run(users_path, bcrypt_rounds):
    first = auth.CredentialStore.open(
        users_path,
        rounds=bcrypt_rounds,
        default_username="admin",
        default_password="admin123",
    )
    first.register("clerk", "pw", UserRole.EMPLOYEE)

    second = auth.CredentialStore.open(
        users_path,
        rounds=bcrypt_rounds,
        default_username="other",
        default_password="other",
    )

    assert second.user_exists("admin")
    assert second.user_exists("clerk")
    assert not second.user_exists("other")
    assert second.get_current_user() is None


def test_register_rolls_back_when_save_fails(tmp_path, bcrypt_rounds):
    blocker = tmp_path / "users.json"
    blocker.mkdir()
    store = auth.CredentialStore(blocker, rounds=bcrypt_rounds)

    with pytest.raises(DatabaseError):
        store.register("clerk", "pw", UserRole.EMPLOYEE)
    assert not store.user_exists("clerk")


def test_hash_password_failure_maps_to_auth_error():
    with pytest.raises(AuthError):
        auth.hash_password("pw", rounds=2)


def test_verify_password_round_trip(bcrypt_rounds):
    hashed = auth.hash_password("pw", rounds=bcrypt_rounds)
    assert auth.verify_password("pw", hashed) is True
    assert auth.verify_password("nope", hashed) is False
