"""
EduGuard Configuration Management

Centralized configuration for the security posture coordinator with:
- Environment-based configuration
- Type-safe settings with Pydantic
- Hierarchical configuration sections per component
"""

from __future__ import annotations

import json
import secrets
from enum import Enum
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings


class LogLevel(str, Enum):
    """Logging levels for EduGuard."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ScoringConfig(BaseModel):
    """Weights and bands used by the risk scorer."""
    baseline: float = 50.0
    mfa_bonus: float = 20.0
    fingerprint_max_bonus: float = 15.0
    compliance_bonus: float = 10.0

    # Alert penalties
    medium_alert_penalty: float = 5.0
    high_alert_penalty: float = 15.0
    max_alert_penalty: float = 40.0

    # Session staleness
    freshness_window_seconds: float = 1800.0  # 30 minutes
    stale_decay_per_hour: float = 10.0
    max_stale_penalty: float = 20.0

    # Clearance bands on security score (inclusive lower bounds)
    high_clearance_threshold: int = 80
    medium_clearance_threshold: int = 50

    # Threat bands on risk score (strictly greater than)
    critical_risk_threshold: int = 70
    high_risk_threshold: int = 50
    medium_risk_threshold: int = 30


class SessionConfig(BaseModel):
    """Configuration for session liveness monitoring."""
    default_session_minutes: int = 30
    warning_threshold_seconds: float = 300.0  # 5 minutes
    tick_interval_seconds: float = 30.0


class MfaConfig(BaseModel):
    """Configuration for MFA enrollment."""
    max_attempts: int = 5
    issuer: str = "EduGuard"
    code_length: int = 6
    code_ttl_seconds: int = 600
    backup_code_count: int = 10
    required_roles: list[str] = Field(default_factory=lambda: ["admin", "faculty"])


class ComplianceConfig(BaseModel):
    """Frameworks applicable to each role."""
    role_frameworks: dict[str, list[str]] = Field(
        default_factory=lambda: {
            "student": ["ferpa", "coppa"],
            "parent": ["ferpa", "coppa"],
            "faculty": ["ferpa"],
            "admin": ["ferpa", "gdpr"],
        }
    )

    @field_validator("role_frameworks", mode="before")
    @classmethod
    def normalize_names(cls, v: dict[str, list[str]]) -> dict[str, list[str]]:
        """Lower-case role and framework names."""
        return {
            str(role).lower(): [str(f).lower() for f in frameworks]
            for role, frameworks in (v or {}).items()
        }


class BackendConfig(BaseModel):
    """Configuration for best-effort backend persistence."""
    base_url: Optional[str] = None  # None disables persistence
    events_path: str = "/security/events"
    incidents_path: str = "/security/incidents"
    timeout_seconds: float = 10.0
    max_pending: int = 1000


class EventConfig(BaseModel):
    """Configuration for security event handling."""
    failed_login_threshold: int = 5
    failed_login_window_seconds: float = 900.0  # 15 minutes
    max_event_history: int = 1000


class MonitoringConfig(BaseModel):
    """Configuration for logging output."""
    log_level: LogLevel = LogLevel.INFO
    log_format: Literal["json", "text"] = "json"


class EduGuardConfig(BaseSettings):
    """
    Main EduGuard Configuration

    Loads configuration from environment variables and/or config files.
    Environment variables are prefixed with EDUGUARD_
    (e.g., EDUGUARD_SESSION__TICK_INTERVAL_SECONDS=10)
    """

    environment: Literal["development", "staging", "production"] = "development"

    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    mfa: MfaConfig = Field(default_factory=MfaConfig)
    compliance: ComplianceConfig = Field(default_factory=ComplianceConfig)
    backend: BackendConfig = Field(default_factory=BackendConfig)
    events: EventConfig = Field(default_factory=EventConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    # HMAC key for fingerprint identifiers; random per process when unset
    fingerprint_key: SecretStr = Field(
        default_factory=lambda: SecretStr(secrets.token_hex(32))
    )

    model_config = {
        "env_prefix": "EDUGUARD_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
    }

    @classmethod
    def from_file(cls, config_path: Path) -> "EduGuardConfig":
        """Load configuration from a JSON file."""
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            data = json.load(f)

        return cls(**data)

    def to_file(self, config_path: Path) -> None:
        """Save configuration to a JSON file (secrets excluded)."""
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w") as f:
            json.dump(
                self.model_dump(mode="json", exclude={"fingerprint_key"}),
                f,
                indent=2,
            )


# Global configuration instance (lazy loaded)
_config: Optional[EduGuardConfig] = None


def get_config() -> EduGuardConfig:
    """Get the global EduGuard configuration instance."""
    global _config
    if _config is None:
        _config = EduGuardConfig()
    return _config


def set_config(config: EduGuardConfig) -> None:
    """Set the global EduGuard configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration to default."""
    global _config
    _config = None
