"""
Key material and helpers for data kept at rest.
"""

import hashlib
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from smsledger.config import settings
from smsledger.exceptions import StorageUnavailable

logger = logging.getLogger(__name__)


def load_or_create_key(key: Optional[str] = None, key_path: Optional[str] = None) -> bytes:
    """
    Return the Fernet key for the ledger.

    An explicitly configured key wins. Otherwise the key file is read, or
    generated once and written with owner-only permissions.
    """
    key = key if key is not None else settings.ledger_encryption_key
    if key:
        return key.encode() if isinstance(key, str) else key

    path = Path(key_path or settings.ledger_key_path)
    try:
        if path.exists():
            return path.read_bytes().strip()

        path.parent.mkdir(parents=True, exist_ok=True)
        new_key = Fernet.generate_key()
        fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, "wb") as f:
            f.write(new_key)
        logger.info(f"Generated new ledger encryption key at {path}")
        return new_key
    except OSError as e:
        raise StorageUnavailable(f"Ledger key unavailable: {e}") from e


@lru_cache(maxsize=1)
def get_cipher() -> Fernet:
    """Process-wide cipher built from the configured key material."""
    try:
        return Fernet(load_or_create_key())
    except ValueError as e:
        raise StorageUnavailable(f"Ledger key is not a valid Fernet key: {e}") from e


def encrypt_text(value: str) -> str:
    return get_cipher().encrypt(value.encode("utf-8")).decode("ascii")


def decrypt_text(token: str) -> str:
    try:
        return get_cipher().decrypt(token.encode("ascii")).decode("utf-8")
    except InvalidToken as e:
        raise StorageUnavailable("Stored value could not be decrypted with the ledger key") from e


def hash_message(message: str) -> str:
    """One-way SHA256 digest of a raw message."""
    return hashlib.sha256(message.encode("utf-8")).hexdigest()
