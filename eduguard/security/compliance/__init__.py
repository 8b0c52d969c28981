"""Consent and compliance tracking."""

from eduguard.security.compliance.tracker import (
    ComplianceChangedEvent,
    ComplianceFramework,
    ComplianceTracker,
    ConsentRecord,
)

__all__ = [
    "ComplianceChangedEvent",
    "ComplianceFramework",
    "ComplianceTracker",
    "ConsentRecord",
]
