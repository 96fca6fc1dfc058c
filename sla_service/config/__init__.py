"""
Configuration Module
====================

Application settings and domain constants using Pydantic.
"""

from datetime import time
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="sla-service", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/sla_service",
        description="Database connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Operating Calendar ==========
    operating_timezone: str = Field(
        default="America/Lima",
        description="IANA timezone that defines 'today' for SLA day counting (Peru, UTC-5)"
    )

    # ========== Daily Jobs ==========
    scheduler_enabled: bool = Field(default=True, description="Start background jobs on startup")
    scheduler_poll_seconds: int = Field(
        default=60,
        description="Seconds between daily job trigger checks",
        ge=1
    )
    scheduler_tolerance_minutes: float = Field(
        default=1.5,
        description="Minutes either side of a job's target time that count as on time",
        ge=0
    )
    sla_recompute_time: time = Field(
        default=time(0, 0),
        description="Local time of day for the SLA recompute pass"
    )
    alert_digest_enabled: bool = Field(default=False, description="Send the daily alert digest")
    alert_digest_time: time = Field(
        default=time(8, 0),
        description="Local time of day for the alert digest"
    )
    alert_digest_recipient: Optional[str] = Field(
        default=None,
        description="Administrator mailbox receiving the alert digest"
    )

    # ========== Alert Policy ==========
    alert_policy_path: Path = Field(
        default=Path("alert_policy.yaml"),
        description="Path to alert policy YAML file"
    )

    # ========== E-mail Provider ==========
    email_api_url: Optional[str] = Field(
        default=None,
        description="HTTP endpoint of the transactional e-mail provider"
    )
    email_api_key: Optional[str] = Field(default=None, description="E-mail provider API key")
    email_sender: str = Field(
        default="sla-alerts@example.com",
        description="From address for outgoing notifications"
    )
    email_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for e-mail API calls",
        ge=0.1,
        le=60
    )

    # ========== Ingestion ==========
    ingestion_auto_close_overdue: bool = Field(
        default=True,
        description="Close imported open requests that are already overdue at the SLA limit"
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:4200"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("operating_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject timezone names the tz database does not know."""
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown timezone: {v}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class LifecycleState(str):
    """Derived lifecycle state of a request."""
    EN_PROCESO = "EN_PROCESO"   # open, within threshold
    INACTIVA = "INACTIVA"       # closed within threshold
    VENCIDA = "VENCIDA"         # over threshold, open or closed


class ComplianceOutcome(str):
    """Prefixes of the compliance tag, suffixed with the policy code."""
    CUMPLE = "CUMPLE"
    NO_CUMPLE = "NO_CUMPLE"
    EN_PROCESO = "EN_PROCESO"


class RecordStatus(str):
    """Record-level status of requests and people."""
    ACTIVO = "ACTIVO"
    INACTIVO = "INACTIVO"
    ELIMINADO = "ELIMINADO"


class AlertLevel(str):
    """Alert criticality, least to most urgent."""
    MEDIO = "MEDIO"
    ALTO = "ALTO"
    CRITICO = "CRITICO"


class AlertKind(str):
    """Which flow produced an alert."""
    NUEVA = "NUEVA"
    ACTUALIZACION_DIARIA = "ACTUALIZACION_DIARIA"


class AlertStatus(str):
    """Alert read state."""
    NUEVA = "NUEVA"
    LEIDA = "LEIDA"
    ELIMINADA = "ELIMINADA"


class OriginTag(str):
    """Where a request came from."""
    MANUAL = "MANUAL"
    IMPORT = "IMPORT"


# ========== Lists for validation ==========

ASSIGNABLE_RECORD_STATUSES = [RecordStatus.ACTIVO, RecordStatus.INACTIVO]
VALID_ALERT_LEVELS = [AlertLevel.MEDIO, AlertLevel.ALTO, AlertLevel.CRITICO]
