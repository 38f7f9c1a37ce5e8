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
    app_name: str = Field(default="storedesk", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/storedesk",
        description="Database connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== SLA / Escalation ==========
    sla_config_path: Path = Field(
        default=Path("sla_config.yaml"),
        description="Path to SLA policy YAML file (built-in table when missing)"
    )
    escalation_sweep_interval: int = Field(
        default=60,
        description="Seconds between escalation sweeps (0 disables the scheduler)",
        ge=0
    )

    # ========== Routing ==========
    routing_max_assignment_attempts: int = Field(
        default=5,
        description="Max providers tried when assignments conflict on capacity",
        ge=1
    )

    # ========== Slack Integration ==========
    slack_webhook_url: Optional[str] = Field(
        default=None,
        description="Slack webhook URL for escalation notifications"
    )
    slack_channel: str = Field(
        default="#store-escalations",
        description="Slack channel for escalation notifications"
    )
    slack_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for Slack API calls",
        ge=0.1,
        le=30
    )

    # ========== LLM Settings ==========
    llm_provider: str = Field(
        default="zai",
        description="Classifier backend: zai, openai or mock"
    )
    zai_api_key: Optional[str] = Field(default=None, description="Z.AI API key")
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    llm_model: str = Field(
        default="glm-4.7",
        description="Model used for issue classification"
    )
    llm_temperature: float = Field(
        default=0.1,
        description="Temperature for classification calls",
        ge=0.0,
        le=1.0
    )
    llm_max_tokens: int = Field(
        default=500,
        description="Max tokens for classification responses",
        ge=1,
        le=8000
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
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

    @field_validator("escalation_sweep_interval")
    @classmethod
    def validate_sweep_interval(cls, v: int) -> int:
        """Sweeps run at most every 10 seconds; 0 turns the scheduler off."""
        if 0 < v < 10:
            raise ValueError("escalation_sweep_interval must be 0 or at least 10 seconds")
        return v

    @field_validator("llm_provider")
    @classmethod
    def validate_llm_provider(cls, v: str) -> str:
        """Ensure the classifier backend is known."""
        allowed = {"zai", "openai", "mock"}
        v = v.lower()
        if v not in allowed:
            raise ValueError(f"llm_provider must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class TicketPriority(str, Enum):
    """Ticket priority levels, as assigned by classification."""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class TicketStatus(str, Enum):
    """Ticket lifecycle statuses."""
    OPEN = "OPEN"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    REJECTED_BY_TECH = "REJECTED_BY_TECH"
    ESCALATED = "ESCALATED"


class AssignmentStatus(str, Enum):
    """Status of a single routing attempt."""
    PROPOSED = "PROPOSED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class EscalationStatus(str, Enum):
    """Escalation lifecycle statuses."""
    TRIGGERED = "TRIGGERED"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    RESOLVED = "RESOLVED"


class ProviderStatus(str, Enum):
    """Service provider approval statuses."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SUSPENDED = "SUSPENDED"


class UserRole(str, Enum):
    """User roles."""
    STORE_REGISTER = "STORE_REGISTER"
    SERVICE_PROVIDER = "SERVICE_PROVIDER"
    MODERATOR = "MODERATOR"
    ADMIN = "ADMIN"


# ========== Lists for validation ==========

VALID_PRIORITIES = [TicketPriority.HIGH, TicketPriority.MEDIUM, TicketPriority.LOW]
ACTIVE_TICKET_STATUSES = [TicketStatus.OPEN, TicketStatus.ASSIGNED, TicketStatus.IN_PROGRESS]
OPEN_ESCALATION_STATUSES = [EscalationStatus.TRIGGERED, EscalationStatus.ACKNOWLEDGED]
