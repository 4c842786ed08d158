import json
import os
import secrets
from typing import List, Optional, Set

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .logging_config import config_logger as logger

# Root path resolving
PROJECT_ROOT = os.path.dirname(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
)


class ServerSettings(BaseModel):
    port: int = 8000
    host: str = "127.0.0.1"
    env: str = "development"
    cors_allowed_origins: List[str] = Field(default_factory=list)


class CatalogSettings(BaseModel):
    """Tabela de produtos exposta via PostgREST (Supabase)."""

    base_url: Optional[str] = None  # ex: https://xyz.supabase.co
    api_key: Optional[str] = None
    table: str = "produtos"
    timeout_seconds: float = 15.0
    page_size: int = 1000  # Tamanho da página ao carregar todos os SKUs

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    @property
    def rest_url(self) -> str:
        """URL REST da tabela (sem query string)."""
        base = (self.base_url or "").rstrip("/")
        return f"{base}/rest/v1/{self.table}"


class ErpSettings(BaseModel):
    """Integração com o ERP SIGE (credenciais ficam no KV, não aqui)."""

    timeout_seconds: float = 20.0
    token_validity_hours: int = 12

    balance_ttl_found_seconds: int = 300
    balance_ttl_not_found_seconds: int = 120
    price_ttl_found_seconds: int = 600
    price_ttl_not_found_seconds: int = 120
    summary_ttl_seconds: int = 30

    bulk_concurrency: int = 5  # Lookups paralelos por lote
    bulk_max_skus: int = 50
    scan_max_batch: int = 50
    sync_page_size: int = 500


class SearchSettings(BaseModel):
    max_query_length: int = 100
    autocomplete_default_limit: int = 8
    autocomplete_max_limit: int = 20
    autocomplete_fetch_window: int = 200  # Linhas buscadas para re-ranking
    catalog_default_limit: int = 24
    catalog_max_limit: int = 100
    meta_cache_ttl_seconds: int = 60
    max_excluded_skus: int = 500  # Limite do filtro not.in() no modo público


class CacheSettings(BaseModel):
    enable_redis: bool = False
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "autopecas:"


class AuthSettings(BaseModel):
    # Valores devem vir de env/JSON. Evita credenciais hardcoded.
    admin_token: str = ""
    admin_token_previous: str = ""


class AppSettings(BaseSettings):
    """
    Main Application Configuration.
    Reads from environment variables and/or settings.json
    """

    server: ServerSettings = Field(default_factory=ServerSettings)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    erp: ErpSettings = Field(default_factory=ErpSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)

    @property
    def port(self) -> int:
        return self.server.port

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def load(cls) -> "AppSettings":
        """
        Loads configuration prioritizing:
        1. Environment Variables
        2. settings.json
        3. Defaults
        """
        config_path = os.path.join(PROJECT_ROOT, "autopecas", "config", "settings.json")
        json_data = {}

        if os.path.exists(config_path):
            try:
                with open(config_path, "r", encoding="utf-8") as f:
                    json_data = json.load(f)
            except (OSError, ValueError) as e:
                logger.warning("Failed to load settings.json: %s", e)

        # Pydantic handles merging: passed kwargs > env vars > defaults
        return cls(**json_data)


# Singleton instance
settings = AppSettings.load()


def _get_model_fields(model: BaseModel) -> Set[str]:
    model_fields = getattr(type(model), "model_fields", None)
    if isinstance(model_fields, dict):
        return set(model_fields.keys())
    return set(getattr(model, "__fields__", {}).keys())


def reload_settings() -> "AppSettings":
    """
    Reloads settings from env/settings.json into the existing instance.
    Keeps references stable for modules that imported `settings`.
    """
    new_settings = AppSettings.load()
    for field_name in _get_model_fields(new_settings):
        setattr(settings, field_name, getattr(new_settings, field_name))
    return settings


def is_valid_admin_token(token: str | None) -> bool:
    if not token:
        return False
    current = settings.auth.admin_token
    previous = settings.auth.admin_token_previous
    if current and secrets.compare_digest(token, current):
        return True
    if previous and secrets.compare_digest(token, previous):
        return True
    return False
