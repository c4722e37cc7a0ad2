"""
Configuration de l'application.

Les valeurs sont lues depuis l'environnement (ou un fichier .env),
avec des valeurs par défaut adaptées au développement local.
"""

from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Paramètres globaux."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production"] = "local"
    LOG_LEVEL: str = "INFO"

    # Base de données
    DATABASE_URL: str = "sqlite:///marketplace.db"

    # Authentification (jetons émis par le service d'authentification)
    JWT_SECRET: str = "dev-jwt-secret"
    JWT_ALGORITHM: str = "HS256"

    # Push (API Expo), en best effort
    EXPO_PUSH_URL: str = "https://exp.host/--/api/v2/push/send"
    PUSH_TIMEOUT: float = 10.0

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("PUSH_TIMEOUT")
    @classmethod
    def délai_positif(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("PUSH_TIMEOUT doit être strictement positif")
        return v


@lru_cache
def get_settings() -> Settings:
    """Retourne l'instance de configuration (mise en cache)."""
    return Settings()
