"""Credential vault: AES-256-GCM envelopes for third-party API keys.

Envelope layout (base64 encoded)::

    salt[16] | iv[16] | tag[16] | ciphertext

The key is derived per envelope with scrypt(master_key, salt). A fresh salt
and IV are drawn for every encryption, so equal plaintexts never produce
equal envelopes.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import os
from typing import TYPE_CHECKING, Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from psycopg.types.json import Jsonb

from toolgate.config import MIN_MASTER_KEY_LENGTH
from toolgate.core.errors import CredentialNotFound, VaultError

if TYPE_CHECKING:
    from toolgate.storage.database import StoreGateway

logger = logging.getLogger(__name__)

SALT_LENGTH = 16
IV_LENGTH = 16
TAG_LENGTH = 16
KEY_LENGTH = 32

SCRYPT_N = 2 ** 14
SCRYPT_R = 8
SCRYPT_P = 1


def _check_master_key(master_key: str | None) -> bytes:
    if not master_key or len(master_key) < MIN_MASTER_KEY_LENGTH:
        raise VaultError(f"Encryption key must be at least {MIN_MASTER_KEY_LENGTH} characters")
    return master_key.encode("utf-8")


def _derive_key(master_key: bytes, salt: bytes) -> bytes:
    kdf = Scrypt(salt=salt, length=KEY_LENGTH, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
    return kdf.derive(master_key)


def encrypt(plaintext: str, master_key: str | None) -> str:
    """Seal ``plaintext`` into a base64 envelope."""
    secret = _check_master_key(master_key)
    salt = os.urandom(SALT_LENGTH)
    iv = os.urandom(IV_LENGTH)
    sealed = AESGCM(_derive_key(secret, salt)).encrypt(iv, plaintext.encode("utf-8"), None)
    # AESGCM appends the tag; the envelope stores it ahead of the ciphertext.
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
    return base64.b64encode(salt + iv + tag + ciphertext).decode("ascii")


def decrypt(envelope: str, master_key: str | None) -> str:
    """Open an envelope produced by :func:`encrypt`. Raises VaultError on any tampering."""
    secret = _check_master_key(master_key)
    try:
        raw = base64.b64decode(envelope, validate=True)
    except ValueError as exc:
        raise VaultError("Malformed credential envelope") from exc

    header = SALT_LENGTH + IV_LENGTH + TAG_LENGTH
    if len(raw) < header:
        raise VaultError("Malformed credential envelope")

    salt = raw[:SALT_LENGTH]
    iv = raw[SALT_LENGTH:SALT_LENGTH + IV_LENGTH]
    tag = raw[SALT_LENGTH + IV_LENGTH:header]
    ciphertext = raw[header:]
    try:
        plaintext = AESGCM(_derive_key(secret, salt)).decrypt(iv, ciphertext + tag, None)
    except InvalidTag as exc:
        raise VaultError("Credential failed authentication (wrong key or tampered data)") from exc
    return plaintext.decode("utf-8")


def mask_secret(secret: str) -> str:
    """First 4 and last 3 characters, for display only."""
    if len(secret) <= 7:
        return "****"
    return f"{secret[:4]}****{secret[-3:]}"


class CredentialVault:
    """Encrypted per-service secrets in the ``credentials`` table."""

    def __init__(self, store: StoreGateway, master_key: str | None):
        self.store = store
        self._master_key = master_key

    @property
    def usable(self) -> bool:
        return bool(self._master_key) and len(self._master_key) >= MIN_MASTER_KEY_LENGTH

    async def get(self, service: str) -> str:
        """Return the plaintext secret for ``service``."""
        self.store.require_ready()
        row = await self.store.execute_one(
            "SELECT api_key_encrypted FROM credentials WHERE service = %s",
            (service,),
        )
        if row is None:
            raise CredentialNotFound(service)
        return await asyncio.to_thread(decrypt, row["api_key_encrypted"], self._master_key)

    async def set(self, service: str, secret: str, metadata: dict[str, Any] | None = None) -> None:
        """Create or replace the secret for ``service``."""
        self.store.require_ready()
        envelope = await asyncio.to_thread(encrypt, secret, self._master_key)
        await self.store.execute(
            """
            INSERT INTO credentials (service, api_key_encrypted, metadata)
            VALUES (%s, %s, %s)
            ON CONFLICT (service) DO UPDATE
                SET api_key_encrypted = EXCLUDED.api_key_encrypted,
                    metadata = EXCLUDED.metadata
            """,
            (service, envelope, Jsonb(metadata or {})),
        )
        logger.info("Credential stored for service: %s", service)

    async def delete(self, service: str) -> bool:
        self.store.require_ready()
        rows = await self.store.execute(
            "DELETE FROM credentials WHERE service = %s RETURNING service",
            (service,),
        )
        return bool(rows)

    async def list(self) -> list[dict]:
        """Stored services with metadata. Secrets are never returned."""
        self.store.require_ready()
        return await self.store.execute(
            "SELECT service, metadata, created_at, updated_at FROM credentials ORDER BY service"
        )
