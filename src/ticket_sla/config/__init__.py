"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from enum import Enum
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
    app_name: str = Field(default="ticket-sla-engine", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/tickets",
        description="SQLAlchemy connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== SLA Engine ==========
    sla_config_path: Path = Field(
        default=Path("sla_config.yaml"),
        description="Path to the SLA rules / business hours YAML file"
    )
    sla_sweep_interval_seconds: int = Field(
        default=180,
        description="Seconds between periodic sweeps (0 disables the scheduler)",
        ge=0
    )
    sla_sweep_concurrency: int = Field(
        default=10,
        description="Clocks evaluated in parallel during a sweep",
        ge=1
    )
    sla_sweep_batch_size: int = Field(
        default=1000,
        description="Max running clocks picked up by one sweep",
        ge=1
    )
    sla_max_evaluation_retries: int = Field(
        default=3,
        description="Attempts per evaluation when a concurrent update is detected",
        ge=1,
        le=20
    )

    # ========== Event Publishing ==========
    events_webhook_url: Optional[str] = Field(
        default=None,
        description="Messaging collaborator endpoint receiving SLA events"
    )
    events_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for event publishing calls",
        ge=0.1,
        le=30
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
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

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v.upper()


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class ClockType(str, Enum):
    """Types of SLA clocks."""
    RESPONSE = "response"
    RESOLUTION = "resolution"


class ClockStatus(str, Enum):
    """SLA clock states (values match the sla_history status column)."""
    RUNNING_OK = "ok"
    RUNNING_WARNING = "warning"
    OVERDUE = "overdue"
    MET = "met"
    STOPPED = "stopped"


class NotifyRole(str, Enum):
    """Role tags understood by the access-control collaborator."""
    ADMIN = "admin"
    AGENT = "agent"
    USER = "user"


class LifecycleEventType(str, Enum):
    """Ticket lifecycle events consumed by the engine."""
    TICKET_CREATED = "ticket_created"
    TICKET_PRIORITY_CHANGED = "ticket_priority_changed"
    TICKET_FIRST_RESPONSE = "ticket_first_response"
    TICKET_RESOLVED_OR_CLOSED = "ticket_resolved_or_closed"
    TICKET_REOPENED = "ticket_reopened"


# ========== Lists for validation ==========

VALID_CLOCK_TYPES = [ClockType.RESPONSE, ClockType.RESOLUTION]
RUNNING_STATUSES = [ClockStatus.RUNNING_OK, ClockStatus.RUNNING_WARNING, ClockStatus.OVERDUE]
TERMINAL_STATUSES = [ClockStatus.MET, ClockStatus.STOPPED]
