"""
Device Fingerprinting.

Derives a privacy-bounded identifier for the current browser/device from
client-side signals, together with a confidence score.

Signals include:
- Browser characteristics (user agent, language, platform)
- Display characteristics (screen, color depth, pixel ratio)
- Rendering hashes (canvas, WebGL, audio)
- Timezone
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import ipaddress
import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Mapping, Optional

import structlog

logger = structlog.get_logger(__name__)


class FingerprintComponent(str, Enum):
    """Signals recognized by the generator."""
    USER_AGENT = "user_agent"
    LANGUAGE = "language"
    PLATFORM = "platform"
    HARDWARE_CONCURRENCY = "hardware_concurrency"
    DEVICE_MEMORY = "device_memory"
    SCREEN_RESOLUTION = "screen_resolution"
    COLOR_DEPTH = "color_depth"
    PIXEL_RATIO = "pixel_ratio"
    TOUCH_SUPPORT = "touch_support"
    TIMEZONE = "timezone"
    TIMEZONE_OFFSET = "timezone_offset"
    CANVAS_HASH = "canvas_hash"
    WEBGL_VENDOR = "webgl_vendor"
    WEBGL_RENDERER = "webgl_renderer"
    AUDIO_HASH = "audio_hash"
    FONTS = "fonts"
    PLUGINS = "plugins"
    COOKIES_ENABLED = "cookies_enabled"
    IP_ADDRESS = "ip_address"
    WEBDRIVER = "webdriver"


# Confidence earned per recognized signal, capped at BREADTH_CAP
BREADTH_POINTS = 5
BREADTH_CAP = 40

# Extra confidence for high-entropy signals
ENTROPY_BONUS = {
    FingerprintComponent.CANVAS_HASH.value: 20,
    FingerprintComponent.WEBGL_RENDERER.value: 15,
    FingerprintComponent.AUDIO_HASH.value: 15,
    FingerprintComponent.TIMEZONE.value: 10,
}

MAX_CONFIDENCE = 100


@dataclass(frozen=True)
class DeviceFingerprint:
    """
    Fingerprint of the current device.

    Immutable once generated; a new one is generated per session.
    """
    fingerprint: str
    confidence: int
    generated_at: datetime
    components: tuple[str, ...] = ()
    risk_indicators: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_suspicious(self) -> bool:
        """Check if device has automation indicators."""
        return len(self.risk_indicators) > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "fingerprint": self.fingerprint,
            "confidence": self.confidence,
            "generated_at": self.generated_at.isoformat(),
            "components": list(self.components),
            "risk_indicators": list(self.risk_indicators),
        }


class UserAgentInspector:
    """Detects automation clients in user agent strings."""

    BOT_PATTERNS = [
        r"bot",
        r"crawler",
        r"spider",
        r"scraper",
        r"curl",
        r"wget",
        r"python-requests",
        r"node-fetch",
        r"Go-http-client",
        r"okhttp",
    ]

    def indicators(self, user_agent: str) -> list[str]:
        found: list[str] = []
        if not user_agent:
            return found

        if any(re.search(p, user_agent, re.IGNORECASE) for p in self.BOT_PATTERNS):
            found.append("bot_detected")

        ua_lower = user_agent.lower()
        if "headless" in ua_lower:
            found.append("headless_browser")
        if "phantomjs" in ua_lower or "selenium" in ua_lower:
            found.append("automation_tool")

        return found


class DeviceFingerprintGenerator:
    """
    Device fingerprint generator.

    Never rejects a signal bag: missing, empty or malformed signals only
    lower the confidence. Identical signal bags produce identical
    fingerprints for the lifetime of the HMAC key.
    """

    def __init__(
        self,
        hmac_key: bytes,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.hmac_key = hmac_key
        self._clock = clock
        self._ua_inspector = UserAgentInspector()
        self._logger = logger.bind(component="device_fingerprint")

    def generate(self, signals: Optional[Mapping[str, Any]]) -> DeviceFingerprint:
        """
        Generate a device fingerprint from browser signals.

        Args:
            signals: Opaque bag of client-side signals (may be partial)

        Returns:
            DeviceFingerprint with a confidence in [0, 100]
        """
        if not isinstance(signals, Mapping):
            if signals is not None:
                self._logger.warning(
                    "Ignoring non-mapping fingerprint signals",
                    signal_type=type(signals).__name__,
                )
            signals = {}

        components = self._extract_components(signals)

        fingerprint = DeviceFingerprint(
            fingerprint=self._fingerprint_id(components),
            confidence=self.confidence_for(components),
            generated_at=self._clock(),
            components=tuple(sorted(components)),
            risk_indicators=tuple(self._detect_risk_indicators(components)),
        )

        self._logger.debug(
            "Device fingerprint generated",
            confidence=fingerprint.confidence,
            components=len(components),
        )

        return fingerprint

    def _extract_components(self, signals: Mapping[str, Any]) -> dict[str, str]:
        """Keep recognized, non-empty signals as canonical strings."""
        recognized = {c.value for c in FingerprintComponent}
        components: dict[str, str] = {}

        for raw_key, value in signals.items():
            key = str(raw_key).strip().lower()
            if key not in recognized:
                continue

            canonical = self._canonicalize(value)
            if canonical is None:
                continue

            if key == FingerprintComponent.IP_ADDRESS.value:
                canonical = self._anonymize_ip(canonical)

            components[key] = canonical

        return components

    def _canonicalize(self, value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, str):
            value = value.strip()
            return value or None
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, (int, float)):
            return str(value)
        try:
            encoded = json.dumps(value, sort_keys=True, default=str)
        except (TypeError, ValueError):
            encoded = repr(value)
        return encoded if encoded not in ("[]", "{}", '""') else None

    @staticmethod
    def confidence_for(components: Mapping[str, Any]) -> int:
        """
        Confidence earned by a set of present components.

        Adding a component never lowers the result.
        """
        score = min(len(components) * BREADTH_POINTS, BREADTH_CAP)
        for key, bonus in ENTROPY_BONUS.items():
            if key in components:
                score += bonus
        return min(score, MAX_CONFIDENCE)

    def _fingerprint_id(self, components: dict[str, str]) -> str:
        """Keyed hash of the canonical component set."""
        stable_string = "|".join(
            f"{key}:{components[key]}" for key in sorted(components)
        )

        signature = hmac.new(
            self.hmac_key,
            stable_string.encode(),
            hashlib.sha256,
        ).digest()

        return base64.urlsafe_b64encode(signature[:16]).decode().rstrip("=")

    def _anonymize_ip(self, ip_address: str) -> str:
        """Anonymize IP address for privacy (keeps network portion only)."""
        try:
            ip = ipaddress.ip_address(ip_address)
            if isinstance(ip, ipaddress.IPv4Address):
                parts = ip_address.split(".")
                return f"{parts[0]}.{parts[1]}.{parts[2]}.0"
            network = ipaddress.ip_network(f"{ip_address}/48", strict=False)
            return str(network.network_address)
        except ValueError:
            return "0.0.0.0"

    def _detect_risk_indicators(self, components: dict[str, str]) -> list[str]:
        indicators = self._ua_inspector.indicators(
            components.get(FingerprintComponent.USER_AGENT.value, "")
        )

        if components.get(FingerprintComponent.WEBDRIVER.value) == "1":
            indicators.append("webdriver_detected")

        return indicators
