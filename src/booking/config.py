"""Configuration de l'application, lue depuis l'environnement (Pydantic Settings)."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Paramètres chargés depuis les variables d'environnement ou `.env`."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Base de données
    database_uri: str = Field(default="sqlite:///booking.db")

    # Serveur HTTP
    port: int = Field(default=3000)
    images_dir: str = Field(default="images")
    frontend_dir: Optional[str] = Field(default=None)

    # Journalisation
    log_level: str = Field(default="INFO")


@lru_cache
def get_settings() -> Settings:
    return Settings()
