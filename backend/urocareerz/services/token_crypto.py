from __future__ import annotations

import base64
import hashlib
import os
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..settings import settings

_VERSION = "v1"


def _get_key() -> bytes:
    raw = settings.token_enc_key or settings.jwt_secret or "urocareerz-dev-token-key"
    return hashlib.sha256(str(raw).encode("utf-8")).digest()  # 32 bytes


def encrypt_string(plain_text: Any, *, purpose: str = "cursor") -> str | None:
    """
    AES-GCM encrypt `plain_text` into "v1:<iv>:<tag>:<ciphertext>" (base64 parts).

    `purpose` is bound as associated data, so a token minted for one use cannot
    be replayed as another.
    """
    if plain_text is None:
        return None

    iv = os.urandom(12)
    sealed = AESGCM(_get_key()).encrypt(iv, str(plain_text).encode("utf-8"), purpose.encode("utf-8"))
    ciphertext, tag = sealed[:-16], sealed[-16:]

    return ":".join(
        [
            _VERSION,
            base64.urlsafe_b64encode(iv).decode("ascii"),
            base64.urlsafe_b64encode(tag).decode("ascii"),
            base64.urlsafe_b64encode(ciphertext).decode("ascii"),
        ]
    )


def decrypt_string(cipher_text: Any, *, purpose: str = "cursor") -> str | None:
    if not cipher_text:
        return None

    parts = str(cipher_text).split(":")
    if len(parts) != 4 or parts[0] != _VERSION:
        return None

    try:
        iv = base64.urlsafe_b64decode(parts[1])
        tag = base64.urlsafe_b64decode(parts[2])
        data = base64.urlsafe_b64decode(parts[3])
    except (ValueError, TypeError):
        return None
    if len(iv) != 12 or len(tag) != 16:
        return None

    try:
        pt = AESGCM(_get_key()).decrypt(iv, data + tag, purpose.encode("utf-8"))
    except InvalidTag:
        return None
    return pt.decode("utf-8", errors="replace")
