import logging
import os
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

class ConfigError(Exception):
    """Configuração inválida (detectada na carga, antes de subir qualquer serviço)"""

class Settings(BaseModel):
    db_path: str = "billing.db"
    remote: str = "http"  # http | firestore
    api_url: str = "http://localhost:8000"
    timeout_seconds: float = 10
    poll_seconds: float = 5
    sync_interval_seconds: float = 10
    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    firebase_api_key: Optional[str] = None
    google_credentials: Optional[str] = None
    log_level: str = "INFO"

    @field_validator("remote")
    @classmethod
    def _known_remote(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ("http", "firestore"):
            raise ValueError(f"BILLSYNC_REMOTE deve ser 'http' ou 'firestore', não '{value}'")
        return value

    @field_validator("timeout_seconds", "poll_seconds", "sync_interval_seconds", "max_attempts")
    @classmethod
    def _positive(cls, value):
        if value <= 0:
            raise ValueError("deve ser maior que zero")
        return value

    @field_validator("base_delay_seconds")
    @classmethod
    def _non_negative(cls, value):
        if value < 0:
            raise ValueError("não pode ser negativo")
        return value

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        value = value.strip().upper()
        if value not in ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"):
            raise ValueError(f"nível de log desconhecido: {value}")
        return value

# Variável de ambiente -> campo de Settings
ENV_VARS = {
    "BILLSYNC_DB_PATH": "db_path",
    "BILLSYNC_REMOTE": "remote",
    "BILLSYNC_API_URL": "api_url",
    "BILLSYNC_TIMEOUT_SECONDS": "timeout_seconds",
    "BILLSYNC_POLL_SECONDS": "poll_seconds",
    "BILLSYNC_SYNC_INTERVAL_SECONDS": "sync_interval_seconds",
    "BILLSYNC_MAX_ATTEMPTS": "max_attempts",
    "BILLSYNC_BASE_DELAY_SECONDS": "base_delay_seconds",
    "FIREBASE_API_KEY": "firebase_api_key",
    "GOOGLE_APPLICATION_CREDENTIALS": "google_credentials",
    "LOG_LEVEL": "log_level",
}

def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Lê o .env (se existir) e as variáveis de ambiente. `env` substitui os.environ em testes."""
    if env is None:
        load_dotenv()
        env = os.environ

    values = {field: env[var] for var, field in ENV_VARS.items() if env.get(var) not in (None, "")}
    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigError(f"Configuração inválida: {e}") from e

def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
