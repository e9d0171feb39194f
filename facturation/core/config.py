"""Configuration statique du backend de facturation."""
from __future__ import annotations

import os
from dataclasses import dataclass

from facturation.core.env_loader import load_env

_TRUE_VALUES = {"1", "true", "yes", "on", "y", "t"}
_FALSE_VALUES = {"0", "false", "no", "off", "n", "f"}

NUMERIC_POLICIES = {"lenient", "strict"}

# Clé de développement uniquement, à remplacer via FACTURATION_SECRET_KEY
DEFAULT_SECRET_KEY = "facturation-atelier-dev-secret-change-me"


def _get_env_flag(name: str, default: bool = False) -> bool:
    """Retourne une valeur booléenne à partir d'une variable d'environnement."""

    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return default


def _get_env_choice(name: str, choices: set[str], default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    return normalized if normalized in choices else default


def _get_env_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        return default
    return value if value >= minimum else default


@dataclass(frozen=True)
class Settings:
    """Paramètres globaux lus depuis l'environnement."""

    DEBUG: bool = False
    DB_DIR: str | None = None
    DB_TIMEOUT_SECONDS: int = 30
    NUMERIC_POLICY: str = "lenient"
    SECRET_KEY: str = DEFAULT_SECRET_KEY

    @property
    def strict_numbers(self) -> bool:
        return self.NUMERIC_POLICY == "strict"

    @property
    def uses_default_secret(self) -> bool:
        return self.SECRET_KEY == DEFAULT_SECRET_KEY


def load_settings() -> Settings:
    load_env()
    return Settings(
        DEBUG=_get_env_flag("FACTURATION_DEBUG", default=False),
        DB_DIR=os.getenv("FACTURATION_DB_DIR") or os.getenv("DB_DIR") or None,
        DB_TIMEOUT_SECONDS=_get_env_int("FACTURATION_DB_TIMEOUT", 30, minimum=1),
        NUMERIC_POLICY=_get_env_choice("FACTURATION_NUMERIC_POLICY", NUMERIC_POLICIES, "lenient"),
        SECRET_KEY=os.getenv("FACTURATION_SECRET_KEY") or DEFAULT_SECRET_KEY,
    )


settings = load_settings()
