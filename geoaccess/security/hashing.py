# security/hashing.py

import base64
import hashlib
import json
import secrets
from typing import Any

import bcrypt

API_KEY_PREFIX = "gk_"
KEY_DISPLAY_LEN = 12  # chars kept as key_prefix for identification


def sha256_hex(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def canonical_json(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def generate_api_key() -> tuple[str, str, str]:
    """Returns (plaintext, key_hash, key_prefix)."""
    plaintext = API_KEY_PREFIX + secrets.token_urlsafe(32)
    return plaintext, sha256_hex(plaintext), plaintext[:KEY_DISPLAY_LEN]


def hash_api_key(plaintext: str) -> str:
    return sha256_hex(plaintext.strip())


def _prepare_password(password: str, pepper: str) -> bytes:
    # Pre-hash so peppered passwords stay under bcrypt's 72-byte input limit
    return base64.b64encode(hashlib.sha256((password + pepper).encode("utf-8")).digest())


def hash_password(password: str, pepper: str) -> str:
    return bcrypt.hashpw(_prepare_password(password, pepper), bcrypt.gensalt()).decode("ascii")


def verify_password(password: str, password_hash: str, pepper: str) -> bool:
    try:
        return bcrypt.checkpw(_prepare_password(password, pepper), password_hash.encode("ascii"))
    except ValueError:
        # malformed stored hash
        return False
