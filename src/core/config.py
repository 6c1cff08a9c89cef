"""Configuración del Core.

Por qué aquí:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- Permite que adaptadores (HTTP/MCP) lean config de forma consistente.
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.errors import ConfigurationError

# Valores de ejemplo que algunos READMEs sugieren copiar tal cual.
PLACEHOLDER_TOKENS: frozenset[str] = frozenset(
    {
        "strapi_token",
        "your_api_token",
        "your-api-token",
        "your_strapi_api_token",
        "changeme",
    }
)

DEFAULT_DISCOVERY_CANDIDATES: tuple[str, ...] = (
    "articles",
    "pages",
    "posts",
    "categories",
    "tags",
    "authors",
    "products",
)


def get_user_config_dir() -> Path:
    """Directorio de configuración por usuario (cross-platform, sin dependencias)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "strapi-mcp"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "strapi-mcp"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "strapi-mcp"
    return Path.home() / ".config" / "strapi-mcp"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str], env_path: Path | None = None) -> Path:
    """Escribe/actualiza variables en el .env global del usuario."""

    env_path = env_path or get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v})

    lines = ["# strapi-mcp user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class AppSettings(BaseSettings):
    """Configuración central de la aplicación.

    Las variables se leen con prefijo `STRAPI_` (p.ej. `STRAPI_URL`,
    `STRAPI_API_TOKEN`, `STRAPI_ADMIN_EMAIL`).
    """

    model_config = SettingsConfigDict(
        env_prefix="STRAPI_",
        extra="ignore",
        case_sensitive=False,
        # Orden: proyecto primero (dev), luego config global de usuario.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    url: str = Field(
        default="http://localhost:1337",
        min_length=8,
        description="Base URL de la instancia Strapi.",
    )
    api_token: str | None = Field(
        default=None,
        description="API token (bearer) para la API pública de contenido.",
    )
    admin_email: str | None = Field(
        default=None,
        description="Email del administrador para sesiones del panel admin.",
    )
    admin_password: str | None = Field(
        default=None,
        description="Password del administrador.",
    )
    dev_mode: bool = Field(
        default=False,
        description="Habilita operaciones de content-type-builder (mutaciones de esquema).",
    )

    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout por request (segundos).",
    )
    upload_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Timeout para subidas de media (segundos).",
    )
    max_upload_size: int = Field(
        default=10 * 1024 * 1024,
        gt=0,
        description="Tamaño máximo (bytes) aceptado para subidas de media.",
    )
    allowed_upload_dirs: str = Field(
        default="",
        description="Directorios permitidos para subir desde disco, separados por comas.",
    )
    user_agent: str = Field(
        default="strapi-mcp/0.1",
        min_length=1,
        description="User-Agent para peticiones a Strapi.",
    )
    log_level: str = Field(
        default="INFO",
        description="Nivel de logging (DEBUG, INFO, WARNING, ERROR).",
    )
    discovery_candidates: str = Field(
        default=",".join(DEFAULT_DISCOVERY_CANDIDATES),
        description="Colecciones a sondear en la API pública cuando no hay acceso admin.",
    )
    validation_rules: dict[str, Any] = Field(
        default_factory=dict,
        description="Reglas de validación por UID (JSON), ver `core.services.validation`.",
    )

    @field_validator("url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("validation_rules", mode="before")
    @classmethod
    def _parse_rules(cls, value: Any) -> Any:
        if isinstance(value, str):
            return json.loads(value) if value.strip() else {}
        return value

    @property
    def has_api_token(self) -> bool:
        return bool(self.api_token) and self.api_token.strip().lower() not in PLACEHOLDER_TOKENS

    @property
    def has_admin_credentials(self) -> bool:
        return bool(self.admin_email) and bool(self.admin_password)

    @property
    def upload_dirs(self) -> list[Path]:
        return [
            Path(p.strip()).expanduser().resolve()
            for p in self.allowed_upload_dirs.split(",")
            if p.strip()
        ]

    @property
    def probe_names(self) -> list[str]:
        return [p.strip() for p in self.discovery_candidates.split(",") if p.strip()]

    def require_credentials(self) -> None:
        """Valida las credenciales obligatorias (pre-flight).

        Lanza `ConfigurationError` si no hay ni API token válido ni un par
        email/password de administrador.
        """

        if self.api_token and not self.has_api_token:
            raise ConfigurationError(
                "STRAPI_API_TOKEN contains a placeholder value; set a real API token"
            )
        if bool(self.admin_email) != bool(self.admin_password):
            raise ConfigurationError(
                "STRAPI_ADMIN_EMAIL and STRAPI_ADMIN_PASSWORD must be set together"
            )
        if not self.has_api_token and not self.has_admin_credentials:
            raise ConfigurationError(
                "Missing credentials: set STRAPI_API_TOKEN or "
                "STRAPI_ADMIN_EMAIL/STRAPI_ADMIN_PASSWORD"
            )
