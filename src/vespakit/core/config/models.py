"""
Pydantic configuration models for vespakit.

These models replace the loader-injected ``window.*_CONFIG`` objects with
validated settings for:
- Knack credentials and API location
- Request pacing, retries and caching
- Proxy endpoints (email, dashboard)
- Field-code maps for the profile and staff workflows
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Enums
# =============================================================================


class FilterMatch(str, Enum):
    """How rules in a Knack filter are combined."""

    AND = "and"
    OR = "or"


class LogLevel(str, Enum):
    """Supported log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


# =============================================================================
# Knack Configuration
# =============================================================================


class KnackConfig(BaseModel):
    """Credentials and location of the Knack REST API."""

    app_id: str = Field(
        ...,
        min_length=1,
        description="Knack application id (X-Knack-Application-Id)",
    )
    api_key: str = Field(
        ...,
        min_length=1,
        description="Knack REST API key (X-Knack-REST-API-Key)",
    )
    user_token: str | None = Field(
        default=None,
        description="Logged-in user token sent as Authorization; empty when absent",
    )
    api_url: str = Field(
        default="https://api.knack.com/v1",
        description="Base URL of the Knack REST API",
    )
    timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="HTTP timeout applied by the underlying client",
    )

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalise the API URL so endpoint joins are predictable."""
        return v.rstrip("/")


# =============================================================================
# Pacing Configuration
# =============================================================================


class ThrottleConfig(BaseModel):
    """Per-resource spacing between dispatched requests."""

    base_cooldown_ms: int = Field(
        default=1000,
        ge=0,
        description="Minimum time between dispatches to the same resource",
    )
    max_cooldown_ms: int = Field(
        default=10000,
        ge=0,
        description="Ceiling the cooldown may grow to after rate limiting",
    )

    @field_validator("max_cooldown_ms")
    @classmethod
    def max_gte_base(cls, v: int, info: Any) -> int:
        """Ensure the ceiling is at least the base cooldown."""
        base = info.data.get("base_cooldown_ms", 0)
        if v < base:
            raise ValueError("max_cooldown_ms must be >= base_cooldown_ms")
        return v


class RetryConfig(BaseModel):
    """Retry/backoff policy settings."""

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Total attempts before the last error is raised",
    )
    base_delay_ms: int = Field(
        default=1000,
        ge=0,
        description="Backoff before retry N is base_delay_ms * 2**N",
    )
    log_body_chars: int = Field(
        default=200,
        ge=0,
        description="Response body characters included in debug attempt logs",
    )


class CacheConfig(BaseModel):
    """Response cache settings."""

    enabled: bool = Field(default=True, description="Use the response cache")
    ttl_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Maximum age of a cached payload",
    )


# =============================================================================
# Proxy Configuration
# =============================================================================


class EmailConfig(BaseModel):
    """Templated email settings for the SendGrid proxy."""

    from_email: str = Field(default="noreply@vespa.academy")
    from_name: str = Field(default="VESPA Academy")
    welcome_template_id: str | None = Field(default=None)
    admin_template_id: str | None = Field(default=None)
    login_url: str = Field(default="https://vespaacademy.knack.com/vespa-academy#home/")


class ProxyConfig(BaseModel):
    """Backend proxy endpoints reached by some workflows."""

    email_url: str | None = Field(
        default=None,
        description="POST endpoint that relays templated emails",
    )
    dashboard_url: str | None = Field(
        default=None,
        description="Base URL for dashboard data and AI-query passthrough",
    )
    email: EmailConfig = Field(default_factory=EmailConfig)


# =============================================================================
# Field Maps
# =============================================================================


class ProfileFieldMap(BaseModel):
    """Object and field codes used by the student profile lookup."""

    student_object: str = Field(default="object_6")
    profile_object: str = Field(default="object_112")
    student_name: str = Field(default="field_47", description="Student name (text)")
    student_name_parts: str = Field(default="field_90", description="Student name (first/last)")
    student_email: str = Field(default="field_91")
    student_year_group: str = Field(default="field_548")
    student_tutor_group: str = Field(default="field_565")
    student_attendance: str = Field(default="field_3139")
    student_school: str = Field(default="field_179")
    profile_user_id: str = Field(default="field_3064")
    profile_user_connection: str = Field(default="field_3070")
    profile_student_name: str = Field(default="field_3066")
    profile_year_group: str = Field(default="field_3078")
    profile_tutor_group: str = Field(default="field_3077")
    profile_attendance: str = Field(default="field_3076")
    profile_school: str = Field(default="field_3069")


class StaffFieldMap(BaseModel):
    """Object and field codes used when creating staff accounts."""

    staff_object: str = Field(default="object_3")
    customer: str = Field(default="field_122")
    name: str = Field(default="field_69")
    email: str = Field(default="field_70")
    password: str = Field(default="field_71")
    role: str = Field(default="field_73")
    group: str = Field(default="field_216")
    year_group: str = Field(default="field_550")
    school_id: str = Field(default="field_126")
    account_type: str = Field(default="field_441")
    account_level: str = Field(default="field_1493")
    role_profile: str = Field(default="profile_7")
    account_type_value: str = Field(default="RESOURCE PORTAL")
    account_level_value: str = Field(default="Level 2 & 3")


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(default=LogLevel.INFO)
    file: Path | None = Field(default=None, description="Log file path")
    json_format: bool = Field(default=True, description="Use JSON format for file logs")
    rich_console: bool = Field(default=True, description="Use Rich for console output")


# =============================================================================
# Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """Top-level vespakit configuration."""

    knack: KnackConfig
    throttle: ThrottleConfig = Field(default_factory=ThrottleConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    proxy: ProxyConfig = Field(default_factory=ProxyConfig)
    profiles: ProfileFieldMap = Field(default_factory=ProfileFieldMap)
    staff: StaffFieldMap = Field(default_factory=StaffFieldMap)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    debug: bool = Field(
        default=False,
        description="Log every request attempt with status and truncated body",
    )
