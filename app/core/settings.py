# app/core/settings.py
from __future__ import annotations

import json
from typing import Any, List, Union
from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PAGE_TYPES = ["cart", "product", "category", "checkout", "success", "header", "account", "login"]


def _parse_str_list(v: Any) -> Any:
    """
    Listas desde env:
    - JSON: '["a","b"]'
    - corchetes sin comillas: [a,b]
    - CSV: 'a,b'
    Vacío -> [] ; cualquier otro tipo se deja a Pydantic.
    """
    if v in (None, "", [], ()):
        return []
    if isinstance(v, (list, tuple)):
        return list(v)
    if not isinstance(v, str):
        return v

    s = v.strip()
    if s.startswith("[") and s.endswith("]"):
        try:
            parsed = json.loads(s)
        except ValueError:
            s = s[1:-1]
        else:
            if isinstance(parsed, list):
                return parsed
    return [item.strip().strip('"').strip("'") for item in s.split(",") if item.strip()]


class Settings(BaseSettings):
    # ============== App / API ==============
    APP_NAME: str = "Slot Layout CMS"
    API_V1_STR: str = "/api/v1"
    ENV: str = "dev"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # ============== Auth / JWT =============
    # solo operadores del editor; delivery es público
    JWT_SECRET_KEY: str = "dev-secret"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(60)

    # ================== DB ==================
    # SQLite local por defecto; en Heroku llega postgres://...
    DATABASE_URL: str = "sqlite:///./slot_cms.db"

    @property
    def SQLALCHEMY_DATABASE_URL(self) -> str:
        """
        postgres:// | postgresql:// | postgresql+psycopg:// -> postgresql+psycopg2://
        SQLite URLs are returned untouched.
        """
        url = self.DATABASE_URL or ""
        for prefix in ("postgres://", "postgresql://", "postgresql+psycopg://"):
            if url.startswith(prefix):
                return "postgresql+psycopg2://" + url[len(prefix):]
        return url

    # ================= CORS =================
    BACKEND_CORS_ORIGINS: List[Union[str, AnyHttpUrl]] = []

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors(cls, v):
        return _parse_str_list(v)

    @property
    def CORS_ORIGINS(self) -> List[str]:
        return [str(x) for x in (self.BACKEND_CORS_ORIGINS or [])]

    # ============== Slot configurations ==============
    # Directorio con los layouts estáticos por page_type (<page_type>.json)
    SLOT_DEFAULTS_DIR: str | None = None
    # page_types que reporta unpublished-status cuando no se piden explícitamente
    SLOT_PAGE_TYPES: List[str] = Field(default_factory=lambda: list(DEFAULT_PAGE_TYPES))
    SLOT_HISTORY_LIMIT: int = 20
    MAX_SLOT_CONFIG_KB: int = 512

    @field_validator("SLOT_PAGE_TYPES", mode="before")
    @classmethod
    def _parse_page_types(cls, v):
        parsed = _parse_str_list(v)
        if parsed == []:
            return list(DEFAULT_PAGE_TYPES)
        return [str(x) for x in parsed] if isinstance(parsed, list) else parsed

    # ============== Pydantic v2 ==============
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
