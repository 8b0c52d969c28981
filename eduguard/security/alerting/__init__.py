"""Security alert queue."""

from eduguard.security.alerting.manager import AlertManager

__all__ = ["AlertManager"]
