"""Data access layer for Stockkeeper.

This module owns everything that touches the filesystem directly. Business
rules live in :mod:`stockkeeper.inventory` and :mod:`stockkeeper.auth`.

The public API covers two responsibilities:

1. Configuration handling: finding and parsing ``config.ini`` into
   :class:`Settings`.
2. Document lifecycle: reading JSON documents and replacing them atomically.
"""


from __future__ import annotations

import configparser
import json
import os
import tempfile
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any, List, Optional

from . import log
from .constants import (
    DEFAULT_ADMIN_PASSWORD,
    DEFAULT_ADMIN_USERNAME,
    DEFAULT_BCRYPT_ROUNDS,
    DEFAULT_STORE_FILE,
    DEFAULT_USERS_FILE,
    MAX_BCRYPT_ROUNDS,
    MIN_BCRYPT_ROUNDS,
)


CONFIG_FILE_NAME = "config.ini"


@dataclass(frozen=True)
class Settings:
    """Typed representation of the ``config.ini`` settings we care about."""

    store_file: Path
    users_file: Path
    bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS
    admin_username: str = DEFAULT_ADMIN_USERNAME
    admin_password: str = DEFAULT_ADMIN_PASSWORD


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls where documents live.

    If the caller provides ``explicit_path`` the value is returned immediately
    without any verification. Otherwise the function walks up from the current
    working directory toward the filesystem root looking for a file named
    ``CONFIG_FILE_NAME``; the first match is authoritative.

    Args:
        explicit_path (Path | None): Optional path to use instead of performing
            the upward search.

    Returns:
        Path: The path provided by the caller or the discovered configuration
            file.

    Raises:
        FileNotFoundError: If the search exhausts all parent directories without
            finding ``CONFIG_FILE_NAME``.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for p in (current, *current.parents):
        candidate = p / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(
        f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    Args:
        config_path (Path): Path to the configuration file, relative or
            absolute. ``~`` is expanded.

    Returns:
        configparser.ConfigParser: Parser containing the raw configuration.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist after expansion and
            resolution.
    """

    config_path = Path(config_path).expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path, encoding="utf-8")
    return parser


def _resolve_path(raw: str, base_path: Path) -> Path:
    candidate = Path(raw).expanduser()
    if not candidate.is_absolute():
        candidate = base_path / candidate
    return candidate.resolve()


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> Settings:
    """Convert a ``ConfigParser`` into strongly typed :class:`Settings`.

    Every option is optional and falls back to the package default. Relative
    file paths are anchored at ``base_path`` (the current working directory
    when omitted) and resolved to absolute form.

    Recognised entries::

        [Files]
        StoreFile = store.json
        UsersFile = users.json

        [Security]
        BcryptRounds = 12

        [Defaults]
        AdminUsername = admin
        AdminPassword = admin123

    Raises:
        ValueError: If ``BcryptRounds`` is not an integer within the range
            bcrypt accepts.
    """

    if base_path is None:
        base_path = Path.cwd()

    store_raw = parser.get("Files", "StoreFile", fallback=DEFAULT_STORE_FILE)
    users_raw = parser.get("Files", "UsersFile", fallback=DEFAULT_USERS_FILE)
    rounds_raw = parser.get("Security", "BcryptRounds", fallback=str(DEFAULT_BCRYPT_ROUNDS))
    admin_username = parser.get("Defaults", "AdminUsername", fallback=DEFAULT_ADMIN_USERNAME)
    admin_password = parser.get("Defaults", "AdminPassword", fallback=DEFAULT_ADMIN_PASSWORD)

    try:
        rounds = int(rounds_raw)
    except ValueError as exc:
        raise ValueError(f"BcryptRounds must be an integer, got {rounds_raw!r}") from exc
    if not MIN_BCRYPT_ROUNDS <= rounds <= MAX_BCRYPT_ROUNDS:
        raise ValueError(
            f"BcryptRounds must be between {MIN_BCRYPT_ROUNDS} and {MAX_BCRYPT_ROUNDS}, got {rounds}"
        )

    return Settings(
        store_file=_resolve_path(store_raw, base_path),
        users_file=_resolve_path(users_raw, base_path),
        bcrypt_rounds=rounds,
        admin_username=admin_username,
        admin_password=admin_password,
    )


def default_settings(base_path: Optional[Path] = None) -> Settings:
    """Return settings built purely from defaults, anchored at ``base_path``."""

    return parse_settings(configparser.ConfigParser(), base_path=base_path)


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """Resolve the settings used by a CLI run.

    An explicit ``config_path`` must exist. Without one, a ``config.ini``
    discovered by :func:`find_config_file` is used; failing that the defaults
    apply relative to the current working directory.

    Raises:
        FileNotFoundError: If an explicit ``config_path`` is missing.
        ValueError: If the configuration holds an invalid value.
    """

    if config_path is None:
        try:
            located = find_config_file()
        except FileNotFoundError:
            log.info("No %s found; using default settings", CONFIG_FILE_NAME)
            return default_settings()
    else:
        located = config_path

    resolved = Path(located).expanduser().resolve()
    parser = read_config(resolved)
    settings = parse_settings(parser, base_path=resolved.parent)
    log.info("Loaded settings from '%s'", resolved)
    return settings


def read_json_document(source: Path) -> Any:
    """Read and decode a JSON document, keeping fractional numbers as ``Decimal``.

    Raises:
        FileNotFoundError: If ``source`` does not exist.
        OSError: If the file cannot be read.
        ValueError: If the content is not valid UTF-8 JSON.
    """

    path = Path(source).expanduser().resolve()
    text = path.read_text(encoding="utf-8")
    return json.loads(text, parse_float=Decimal)


def _wrap(opening: str, closing: str, parts: List[str], indent: Optional[int], depth: int) -> str:
    if indent is None:
        return opening + ",".join(parts) + closing
    inner = "\n" + " " * (indent * (depth + 1))
    return opening + inner + ("," + inner).join(parts) + "\n" + " " * (indent * depth) + closing


def _encode(value: Any, indent: Optional[int], depth: int) -> str:
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValueError(f"Out of range decimal value is not JSON compliant: {value}")
        return str(value)
    if isinstance(value, dict):
        if not value:
            return "{}"
        separator = ":" if indent is None else ": "
        parts = []
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(f"Keys must be str, not {type(key).__name__}")
            parts.append(json.dumps(key) + separator + _encode(item, indent, depth + 1))
        return _wrap("{", "}", parts, indent, depth)
    if isinstance(value, (list, tuple)):
        if not value:
            return "[]"
        return _wrap("[", "]", [_encode(item, indent, depth + 1) for item in value], indent, depth)
    return json.dumps(value, allow_nan=False)


def encode_json(payload: Any, *, indent: Optional[int] = None) -> str:
    """Encode ``payload`` as strict JSON, writing ``Decimal`` values as exact numbers.

    The output matches :func:`json.dumps` with ``separators=(",", ":")`` when
    ``indent`` is ``None`` and with ``indent=indent`` otherwise. ``Decimal``
    values keep every digit instead of passing through ``float``, so reading
    the document back with ``parse_float=Decimal`` yields equal values.

    Raises:
        TypeError: If ``payload`` holds a value JSON cannot encode.
        ValueError: If ``payload`` holds NaN or an infinity.
    """

    return _encode(payload, indent, 0)


def write_json_document(destination: Path, payload: Any, *, pretty: bool = False) -> Path:
    """Atomically replace ``destination`` with the JSON encoding of ``payload``.

    The document is written to a temporary file in the destination directory,
    flushed to disk and then renamed over the target, so readers only ever
    observe the old or the new content. Parent directories are created on
    demand.

    Args:
        destination (Path): File that should receive the document.
        payload (Any): JSON-serializable value; see :func:`encode_json`.
        pretty (bool): Indent with two spaces instead of the compact encoding.

    Returns:
        Path: The resolved destination path.

    Raises:
        OSError: If the directory or file cannot be written.
        TypeError: If ``payload`` holds a value JSON cannot encode.
        ValueError: If ``payload`` holds a value JSON cannot encode.
    """

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)

    encoded = encode_json(payload, indent=2 if pretty else None)

    fd, temp_name = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=".tmp", dir=dest.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(encoded)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_name, dest)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise

    return dest
