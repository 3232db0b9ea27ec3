"""Platform detection and the per-OS parameter table.

The resolver never inspects the host.  :func:`detect_platform` is called
once at the CLI/workflow boundary and its :class:`PlatformFacts` result is
handed to :class:`~consul_cm.resolve.resolver.ConfigurationResolver`.

Table rows (:func:`platform_defaults`)::

    kernel    bin_dir                 config_dir                      init_style
    Linux     /usr/local/bin          /etc/consul                     systemd
    Darwin    /usr/local/bin          /usr/local/etc/consul           launchd
    FreeBSD   /usr/local/bin          /usr/local/etc/consul.d         freebsd
    Windows   C:/ProgramData/consul   C:/ProgramData/consul/config    unmanaged
"""

from __future__ import annotations

import logging
import platform as _platform
from dataclasses import dataclass
from typing import Dict, Optional

from consul_cm.config.models import InitStyle

logger = logging.getLogger(__name__)

#: Machine string → HashiCorp release architecture.
ARCH_MAP: Dict[str, str] = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm",
    "armv6l": "arm",
    "arm": "arm",
}


class UnsupportedPlatformError(ValueError):
    """The host kernel or architecture has no Consul release or table row."""


@dataclass(frozen=True)
class PlatformFacts:
    """What the host looks like, as reported by detection or the caller.

    Attributes:
        kernel: Kernel name as reported by ``platform.system()`` (``Linux``).
        architecture: Machine string (``x86_64``, ``aarch64``).
        os_family: Optional distribution family (``Debian``, ``RedHat``).
    """

    kernel: str
    architecture: str
    os_family: Optional[str] = None


@dataclass(frozen=True)
class PlatformDefaults:
    """One row of the OS parameter table."""

    os: str
    arch: str
    bin_dir: str
    config_dir: str
    user: str
    group: str
    init_style: InitStyle
    manage_user: bool = True


def detect_platform() -> PlatformFacts:
    """Return :class:`PlatformFacts` for the running host."""
    facts = PlatformFacts(
        kernel=_platform.system(),
        architecture=_platform.machine(),
    )
    logger.debug("Detected platform: %s", facts)
    return facts


def release_arch(machine: str) -> str:
    """Map a machine string to the HashiCorp release architecture.

    Raises :class:`UnsupportedPlatformError` for architectures Consul does
    not ship.
    """
    try:
        return ARCH_MAP[machine.lower()]
    except KeyError:
        raise UnsupportedPlatformError(
            f"Unsupported architecture: {machine!r}"
        ) from None


def platform_defaults(facts: PlatformFacts) -> PlatformDefaults:
    """Look up the table row for *facts*.

    Raises :class:`UnsupportedPlatformError` for unsupported kernels or
    architectures.
    """
    arch = release_arch(facts.architecture)
    kernel = facts.kernel.lower()

    if kernel == "linux":
        return PlatformDefaults(
            os="linux",
            arch=arch,
            bin_dir="/usr/local/bin",
            config_dir="/etc/consul",
            user="consul",
            group="consul",
            init_style=InitStyle.SYSTEMD,
        )
    if kernel == "darwin":
        return PlatformDefaults(
            os="darwin",
            arch=arch,
            bin_dir="/usr/local/bin",
            config_dir="/usr/local/etc/consul",
            user="consul",
            group="consul",
            init_style=InitStyle.LAUNCHD,
        )
    if kernel == "freebsd":
        return PlatformDefaults(
            os="freebsd",
            arch=arch,
            bin_dir="/usr/local/bin",
            config_dir="/usr/local/etc/consul.d",
            user="consul",
            group="consul",
            init_style=InitStyle.FREEBSD,
        )
    if kernel == "windows":
        return PlatformDefaults(
            os="windows",
            arch=arch,
            bin_dir="C:/ProgramData/consul",
            config_dir="C:/ProgramData/consul/config",
            user="NT AUTHORITY\\NETWORK SERVICE",
            group="Administrators",
            init_style=InitStyle.UNMANAGED,
            manage_user=False,
        )
    raise UnsupportedPlatformError(f"Unsupported kernel: {facts.kernel!r}")
