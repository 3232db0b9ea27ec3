"""Values derived from the merged Consul config map.

Every lookup has an explicit fallback; absent or malformed entries are
never errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

DEFAULT_HTTP_PORT = 8500
DEFAULT_HTTP_ADDR = "127.0.0.1"

_MISSING = object()


@dataclass(frozen=True)
class DerivedValues:
    """Scalars read out of the merged config map.

    ``None`` means "absent": downstream treats it as unmanaged.
    """

    data_dir: Optional[str] = None
    http_port: int = DEFAULT_HTTP_PORT
    https_port: Optional[int] = None
    http_addr: str = DEFAULT_HTTP_ADDR
    verify_incoming: bool = False
    cert_file: Optional[str] = None
    key_file: Optional[str] = None


def dig(config: Mapping[str, Any], *path: str) -> Any:
    """Follow *path* through nested mappings; return ``_MISSING`` when absent."""
    node: Any = config
    for key in path:
        if not isinstance(node, Mapping) or key not in node:
            return _MISSING
        node = node[key]
    return node


def first_token(value: Any) -> Optional[str]:
    """First whitespace-delimited token of a string, or ``None``."""
    if not isinstance(value, str):
        return None
    parts = value.split()
    return parts[0] if parts else None


def _optional_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


def _port(value: Any) -> Optional[int]:
    # bool is an int subclass; a port of True is malformed.
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def extract_derived(config: Mapping[str, Any]) -> DerivedValues:
    """Read the derived scalars out of a merged config map.

    - ``data_dir``: value or absent
    - ``http_port``: ``ports.http`` or 8500
    - ``https_port``: ``ports.https`` or absent
    - ``http_addr``: first token of ``addresses.http``, then of
      ``client_addr``, then ``"127.0.0.1"``
    - ``verify_incoming``: boolean value or ``False``
    - ``cert_file`` / ``key_file``: value or absent
    """
    http_port = _port(dig(config, "ports", "http"))
    https_port = _port(dig(config, "ports", "https"))

    http_addr = (
        first_token(dig(config, "addresses", "http"))
        or first_token(dig(config, "client_addr"))
        or DEFAULT_HTTP_ADDR
    )

    verify_incoming = dig(config, "verify_incoming")

    return DerivedValues(
        data_dir=_optional_str(dig(config, "data_dir")),
        http_port=http_port if http_port is not None else DEFAULT_HTTP_PORT,
        https_port=https_port,
        http_addr=http_addr,
        verify_incoming=verify_incoming if isinstance(verify_incoming, bool) else False,
        cert_file=_optional_str(dig(config, "cert_file")),
        key_file=_optional_str(dig(config, "key_file")),
    )
