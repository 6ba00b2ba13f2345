# Central place for all configurable settings. We use Pydantic's
# BaseSettings so values can be read from env vars or a .env file.
# This keeps deployment flexible without hardcoding secrets.

import json
from typing import Annotated, Dict, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Core DB connection string, like sqlite:///./agency.db or a Postgres URL.
    # Counter statements rely on UPDATE ... RETURNING, so SQLite needs 3.35+.
    DATABASE_URL: str = "sqlite:///./agency.db"

    # Toggle SQLAlchemy echo logs. Useful for debugging queries locally.
    DB_ECHO: bool = False

    # Identity is verified upstream; the gateway forwards the user id here.
    ACTOR_HEADER_NAME: str = "X-Authenticated-User"

    # Tenancy: where the previously selected tenant is carried between requests.
    TENANT_HEADER_NAME: str = "X-Tenant-ID"
    TENANT_COOKIE_NAME: str = "current_tenant_id"

    # Platform admin impersonation (only honoured for is_platform_admin users).
    IMPERSONATION_HEADER_NAME: str = "X-Impersonate-Tenant"
    IMPERSONATION_COOKIE_NAME: str = "impersonated_tenant_id"

    # Fallback prefixes when a tenant profile leaves a prefix column empty.
    DEFAULT_DOCUMENT_PREFIXES: Dict[str, str] = Field(
        default_factory=lambda: {
            "proposal": "PROP",
            "contract": "CON",
            "invoice": "INV",
            "quotation": "QUO",
        }
    )

    # Audit trail writes can be disabled for load tests.
    AUDIT_ENABLED: bool = True

    # Proxy/client IP extraction settings
    TRUST_PROXY_HEADERS: bool = False
    TRUSTED_PROXY_IPS: Annotated[List[str], NoDecode] = Field(default_factory=list)
    TRUSTED_IP_HEADERS: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: [
            "CF-Connecting-IP",
            "X-Forwarded-For",
            "X-Real-IP",
        ]
    )

    LOG_LEVEL: str = "INFO"

    @field_validator("TRUSTED_PROXY_IPS", "TRUSTED_IP_HEADERS", mode="before")
    @classmethod
    def _parse_list_values(cls, value):
        if isinstance(value, str):
            # Both a JSON array and a comma-separated string are accepted.
            if value.strip().startswith("["):
                return json.loads(value)
            parts = [p.strip() for p in value.split(",") if p.strip()]
            return parts
        return value


# Instantiate a single settings object for app-wide import.
# Any module can just `from agency.core.config import settings`.
settings = Settings()
