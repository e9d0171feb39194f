"""Fonctions de sécurité (hashage et JWT)."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import bcrypt
import jwt

from facturation.core.config import settings

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 12
REFRESH_TOKEN_EXPIRE_DAYS = 7

logger = logging.getLogger(__name__)


def check_secret_key() -> bool:
    """Signale la clé JWT de développement. Renvoie ``False`` si elle est utilisée."""
    if settings.uses_default_secret:
        logger.warning(
            "[AUTH] FACTURATION_SECRET_KEY non défini, les jetons sont signés avec la clé de développement"
        )
        return False
    return True


def hash_password(password: str) -> str:
    """Hash un mot de passe en utilisant bcrypt."""
    if isinstance(password, str):
        password = password.encode("utf-8")
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password, salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Vérifie qu'un mot de passe correspond à son hash."""
    if isinstance(password, str):
        password = password.encode("utf-8")
    if isinstance(hashed, str):
        hashed = hashed.encode("utf-8")
    try:
        return bcrypt.checkpw(password, hashed)
    except ValueError:
        return False


def _create_token(data: dict[str, Any], expires_delta: timedelta) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def create_access_token(subject: str, extra: Optional[dict[str, Any]] = None) -> str:
    payload = {"sub": subject}
    if extra:
        payload.update(extra)
    return _create_token(payload, timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))


def create_refresh_token(subject: str, extra: Optional[dict[str, Any]] = None) -> str:
    payload = {"sub": subject, "type": "refresh"}
    if extra:
        payload.update(extra)
    return _create_token(payload, timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS))


def decode_token(token: str) -> dict[str, Any]:
    """Decode un JWT et renvoie sa charge utile."""
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
