"""Password hashing strategies.

Both hashers are deterministic for a given salt, which is what lets login
look an account up by ``(email, digest)`` in a single query.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from typing import Protocol

from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw

from authcore.config import Settings
from authcore.errors import HashingFailure

LOGGER = logging.getLogger(__name__)


class Hasher(Protocol):
    def new_salt(self) -> str: ...

    def hash(self, plaintext: str, salt: str = "") -> str: ...


class Sha256Hasher:
    """Single-round, unsalted SHA-256 (legacy digests)."""

    def new_salt(self) -> str:
        return ""

    def hash(self, plaintext: str, salt: str = "") -> str:
        try:
            return hashlib.sha256(f"{salt}{plaintext}".encode("utf-8")).hexdigest()
        except (TypeError, ValueError, AttributeError) as exc:
            LOGGER.error("SHA-256 digest failed")
            raise HashingFailure("Password digest failed") from exc


class Argon2Hasher:
    """Salted Argon2id producing a hex digest."""

    def __init__(
        self,
        time_cost: int = 3,
        memory_cost: int = 65536,
        parallelism: int = 4,
        hash_len: int = 32,
        salt_bytes: int = 16,
    ) -> None:
        self._time_cost = time_cost
        self._memory_cost = memory_cost
        self._parallelism = parallelism
        self._hash_len = hash_len
        self._salt_bytes = salt_bytes

    def new_salt(self) -> str:
        return secrets.token_hex(self._salt_bytes)

    def hash(self, plaintext: str, salt: str = "") -> str:
        if not salt:
            raise HashingFailure("Argon2 requires a salt")
        try:
            raw = hash_secret_raw(
                secret=plaintext.encode("utf-8"),
                salt=bytes.fromhex(salt),
                time_cost=self._time_cost,
                memory_cost=self._memory_cost,
                parallelism=self._parallelism,
                hash_len=self._hash_len,
                type=Type.ID,
            )
        except (HashingError, ValueError, AttributeError) as exc:
            LOGGER.error("Argon2 digest failed")
            raise HashingFailure("Password digest failed") from exc
        return raw.hex()


def build_hasher(config: Settings) -> Hasher:
    if config.password_hasher == "sha256":
        return Sha256Hasher()
    if config.password_hasher == "argon2":
        return Argon2Hasher(
            time_cost=config.argon2_time_cost,
            memory_cost=config.argon2_memory_cost,
            parallelism=config.argon2_parallelism,
            hash_len=config.argon2_hash_len,
            salt_bytes=config.password_salt_bytes,
        )
    raise ValueError(f"Unknown password hasher: {config.password_hasher}")
