"""Shared pytest fixtures and utilities for Stockkeeper tests."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Callable, Iterator, List
from uuid import uuid4

import pytest

# Ensure source packages are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from stockkeeper import auth, cli, data_manager, inventory  # noqa: E402
from stockkeeper.models import Product  # noqa: E402

# bcrypt's minimum cost keeps hashing fast in tests.
TEST_BCRYPT_ROUNDS = 4


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    """Ensure sys.path modifications are undone after the test session."""

    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


@pytest.fixture
def bcrypt_rounds() -> int:
    """Return the bcrypt cost every test store hashes with."""

    return TEST_BCRYPT_ROUNDS


@pytest.fixture
def product_factory() -> Callable[..., Product]:
    """Factory producing products with a fresh identifier."""

    def _create(
        *,
        name: str = "Test Product",
        description: str = "Test Description",
        price: Decimal = Decimal("10.00"),
        quantity: int = 5,
    ) -> Product:
        return Product(id=uuid4(), name=name, description=description, price=price, quantity=quantity)

    return _create


@pytest.fixture
def product(product_factory: Callable[..., Product]) -> Product:
    """Return the canonical test product: price 10.00, quantity 5."""

    return product_factory()


@pytest.fixture
def store() -> inventory.InventoryStore:
    """Return an empty inventory store."""

    return inventory.InventoryStore()


@pytest.fixture
def stocked_store(store: inventory.InventoryStore, product: Product) -> inventory.InventoryStore:
    """Return a store that already holds :func:`product`."""

    store.add_product(product)
    return store


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "store.json"


@pytest.fixture
def users_path(tmp_path: Path) -> Path:
    return tmp_path / "users.json"


@pytest.fixture
def credentials(users_path: Path) -> auth.CredentialStore:
    """Return an empty credential store writing to a temp file."""

    return auth.CredentialStore(users_path, rounds=TEST_BCRYPT_ROUNDS)


@pytest.fixture
def settings(tmp_path: Path) -> data_manager.Settings:
    """Provide settings pointing every document into a temp folder."""

    return data_manager.Settings(
        store_file=tmp_path / "store.json",
        users_file=tmp_path / "users.json",
        bcrypt_rounds=TEST_BCRYPT_ROUNDS,
        admin_username="admin",
        admin_password="admin123",
    )


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Write a config.ini with relative document paths and low bcrypt cost."""

    config_path = tmp_path / "config.ini"
    config_path.write_text(
        "[Files]\n"
        "StoreFile = data/store.json\n"
        "UsersFile = data/users.json\n\n"
        "[Security]\n"
        f"BcryptRounds = {TEST_BCRYPT_ROUNDS}\n\n"
        "[Defaults]\n"
        "AdminUsername = boss\n"
        "AdminPassword = s3cret\n",
        encoding="utf-8",
    )
    return config_path


# ---------------------------------------------------------------------------
# CLI layer fixtures
# ---------------------------------------------------------------------------


@dataclass
class ScriptedConsole:
    """Feed canned answers to the menus and capture everything they print."""

    answers: List[str]
    output: List[str] = field(default_factory=list)

    def prompt(self, message: str) -> str:
        if not self.answers:
            raise EOFError
        return self.answers.pop(0)

    def echo(self, message: str) -> None:
        self.output.append(message)

    @property
    def text(self) -> str:
        return "\n".join(self.output)

    def as_console(self) -> cli.Console:
        return cli.Console(prompt=self.prompt, secret=self.prompt, echo=self.echo)


@pytest.fixture
def scripted_console() -> Callable[..., ScriptedConsole]:
    """Factory creating a :class:`ScriptedConsole` from a list of answers."""

    def _create(*answers: str) -> ScriptedConsole:
        return ScriptedConsole(answers=list(answers))

    return _create


@pytest.fixture
def runtime(settings: data_manager.Settings) -> cli.Runtime:
    """Load both stores through the public CLI helper."""

    return cli.load_runtime(settings)


@pytest.fixture
def set_fixed_datetime(monkeypatch: pytest.MonkeyPatch) -> Callable[[datetime], datetime]:
    """Patch ``inventory.datetime`` to return a predetermined moment."""

    def _apply(moment: datetime) -> datetime:
        class _FixedDateTime:
            @staticmethod
            def now(tz=None):
                return moment

        monkeypatch.setattr(inventory, "datetime", _FixedDateTime)
        return moment

    return _apply
