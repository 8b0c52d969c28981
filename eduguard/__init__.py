"""
EduGuard - Security Posture Coordinator

Client-side security posture management for the education platform:
- Device fingerprinting with confidence scoring
- Risk-based security scoring and clearance levels
- Consent tracking against data-protection frameworks
- Session liveness monitoring
- Prioritized security alerting
- MFA enrollment state machines
"""

__version__ = "1.0.0"
__author__ = "EduGuard Team"

from eduguard.core.config import EduGuardConfig
from eduguard.security.coordinator import SecurityCoordinator

__all__ = ["EduGuardConfig", "SecurityCoordinator", "__version__"]
