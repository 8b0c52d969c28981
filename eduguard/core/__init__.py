"""Core configuration and logging for EduGuard."""

from eduguard.core.config import (
    EduGuardConfig,
    get_config,
    reset_config,
    set_config,
)
from eduguard.core.logging import setup_logging

__all__ = [
    "EduGuardConfig",
    "get_config",
    "reset_config",
    "set_config",
    "setup_logging",
]
