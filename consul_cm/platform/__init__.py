"""Platform detection result and OS parameter table."""

from consul_cm.platform.facts import (
    ARCH_MAP,
    PlatformDefaults,
    PlatformFacts,
    UnsupportedPlatformError,
    detect_platform,
    platform_defaults,
    release_arch,
)

__all__ = [
    "ARCH_MAP",
    "PlatformDefaults",
    "PlatformFacts",
    "UnsupportedPlatformError",
    "detect_platform",
    "platform_defaults",
    "release_arch",
]
