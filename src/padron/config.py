# Config Module
# AUTO-DOC-INDEX
#
# ES: Índice rápido
#   1) Propósito del módulo
#   2) Componentes principales
#   3) Puntos de extensión
#
# EN: Quick index
#   1) Module purpose
#   2) Main components
#   3) Extension points
#
# Secciones / Sections:
#   - Configuración / Configuration
#   - Lógica principal / Core logic
#   - Integraciones / Integrations

"""Configuración validada del motor del padrón.

Validated configuration for the registry engine.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import AnyUrl, Field, TypeAdapter, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger(__name__)

ENV_PREFIX = "PADRON_"
DEFAULT_CONFIG_PATH = Path("config/padron.yaml")

_ENV_PATH = Path(".env")
_ENV_LOCAL_PATH = Path(".env.local")
load_dotenv(_ENV_PATH, override=False)
load_dotenv(_ENV_LOCAL_PATH, override=False)


class PadronSettings(BaseSettings):
    """Variables de entorno (prefijo ``PADRON_``) y archivo .env.

    English: Environment variables (``PADRON_`` prefix) and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_base_url: str = "http://localhost:8000/api/voters"
    request_timeout: float = Field(default=30.0, gt=0)

    page_size: int = Field(default=1000, ge=1)
    batch_size: int = Field(default=3, ge=1)
    inter_batch_delay: float = Field(default=0.3, ge=0)
    max_retries: int = Field(default=1, ge=0)
    retry_backoff: float = Field(default=2.0, ge=0)
    page_retry_attempts: int = Field(default=1, ge=1)
    page_retry_delay: float = Field(default=0.5, ge=0)
    periodic_dedup_every: int = Field(default=5, ge=1)

    cache_db_path: Path = Path("data/padron_cache.sqlite3")
    cache_key_prefix: str = "voters_cache"
    cache_ttl_hours: float = Field(default=24.0, gt=0)
    cache_max_records: int = Field(default=10_000, ge=1)
    cache_chunk_bytes: int = Field(default=1024 * 1024, ge=1024)
    cache_budget_bytes: int = Field(default=5 * 1024 * 1024, ge=1024)

    search_cache_size: int = Field(default=50, ge=1)
    search_max_results: int = Field(default=5000, ge=1)
    suggestion_limit: int = Field(default=10, ge=1)

    log_level: str = "INFO"
    log_dir: Optional[Path] = None

    @field_validator("api_base_url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        """Validate URLs without changing the stored type."""
        TypeAdapter(AnyUrl).validate_python(value)
        return value.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _validate_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return level

    @property
    def cache_ttl_ms(self) -> int:
        return int(self.cache_ttl_hours * 60 * 60 * 1000)


def load_yaml_config(path: str | Path, *, required: bool = False) -> Dict[str, Any]:
    """Carga un YAML de configuración con ``yaml.safe_load``.

    Args:
        path: Ruta del archivo.
        required: Si es ``True`` y el archivo no existe, lanza
            ``FileNotFoundError``.

    English:
        Load a configuration YAML with ``yaml.safe_load``. A missing optional
        file yields ``{}``; a non-mapping document raises ``ValueError``.
    """
    resolved = Path(path)
    if not resolved.exists():
        if required:
            raise FileNotFoundError(f"Configuration file not found: {resolved}")
        logger.debug("config_file_missing", path=str(resolved))
        return {}
    try:
        payload = yaml.safe_load(resolved.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"YAML syntax error in {resolved}: {exc}") from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValueError(f"Config file must be a YAML mapping: {resolved}")
    return payload


def load_settings(path: str | Path | None = None) -> PadronSettings:
    """Carga la configuración: entorno > YAML > valores por defecto.

    English:
        Load settings with precedence environment > YAML > defaults. Invalid
        values raise ``ValueError`` carrying the pydantic detail.
    """
    explicit = path is not None or bool(os.getenv("PADRON_CONFIG_PATH"))
    config_path = Path(path or os.getenv("PADRON_CONFIG_PATH") or DEFAULT_CONFIG_PATH)
    file_values = load_yaml_config(config_path, required=explicit)
    overrides = {
        key: value
        for key, value in file_values.items()
        if f"{ENV_PREFIX}{key}".upper() not in {name.upper() for name in os.environ}
    }
    try:
        return PadronSettings(**overrides)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc
