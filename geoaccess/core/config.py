# core/config.py

import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping, Optional

from dotenv import load_dotenv

load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL", "")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set")


PEPPER_LENGTH = 32
SAME_SITE_VALUES = {"strict", "lax", "none"}


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class AuthSettings:
    """Process-wide authentication settings.

    Built once at startup and handed to the token codec, the credential
    resolver and the password helpers.
    """

    jwt_secret: str
    password_pepper: str
    jwt_algorithm: str = "HS256"
    session_ttl: timedelta = timedelta(minutes=15)
    renewal_threshold: timedelta = timedelta(minutes=5)
    cookie_name: str = "token"
    cookie_secure: bool = False
    cookie_same_site: str = "strict"

    def __post_init__(self):
        if not self.jwt_secret:
            raise ConfigError("JWT_SECRET must not be empty")
        if len(self.password_pepper) != PEPPER_LENGTH:
            raise ConfigError(f"PASSWORD_PEPPER must be exactly {PEPPER_LENGTH} characters")
        if self.session_ttl <= timedelta(0):
            raise ConfigError("SESSION_TTL_MINUTES must be positive")
        if not timedelta(0) <= self.renewal_threshold < self.session_ttl:
            raise ConfigError("SESSION_RENEWAL_MINUTES must be between 0 and SESSION_TTL_MINUTES")
        if self.cookie_same_site not in SAME_SITE_VALUES:
            raise ConfigError(f"COOKIE_SAME_SITE must be one of {sorted(SAME_SITE_VALUES)}")


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e


def _bool_env(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def load_auth_settings(env: Optional[Mapping[str, str]] = None) -> AuthSettings:
    env = os.environ if env is None else env
    return AuthSettings(
        jwt_secret=env.get("JWT_SECRET", ""),
        password_pepper=env.get("PASSWORD_PEPPER", ""),
        jwt_algorithm=env.get("JWT_ALGORITHM", "HS256"),
        session_ttl=timedelta(minutes=_int_env(env, "SESSION_TTL_MINUTES", 15)),
        renewal_threshold=timedelta(minutes=_int_env(env, "SESSION_RENEWAL_MINUTES", 5)),
        cookie_name=env.get("SESSION_COOKIE_NAME", "token"),
        cookie_secure=_bool_env(env, "COOKIE_SECURE", False),
        cookie_same_site=env.get("COOKIE_SAME_SITE", "strict").lower(),
    )
