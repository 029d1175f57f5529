from __future__ import annotations
import base64
import hashlib
import json
from typing import Any, Dict

from cryptography.fernet import Fernet

from .config import settings


def _derive_fernet_key(secret: str) -> bytes:
    """Derive a urlsafe base64 32-byte Fernet key from SECRET_KEY."""
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


def _get_cipher() -> Fernet:
    return Fernet(_derive_fernet_key(settings.SECRET_KEY))


def encrypt_str(plaintext: str) -> str:
    return _get_cipher().encrypt(plaintext.encode("utf-8")).decode("utf-8")


def decrypt_str(token: str) -> str:
    """Raises cryptography.fernet.InvalidToken if the token was not issued with our key."""
    return _get_cipher().decrypt(token.encode("utf-8")).decode("utf-8")


def encrypt_json(data: Dict[str, Any]) -> str:
    return encrypt_str(json.dumps(data))


def decrypt_json(token: str) -> Dict[str, Any]:
    """Decrypt a token to a dict. Empty token gives an empty dict."""
    if not token:
        return {}
    return json.loads(decrypt_str(token))
