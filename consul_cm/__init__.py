"""consul-cm - Consul configuration management in Python.

Resolves a declarative parameter record into the merged Consul
configuration, the values derived from it, and an ordered plan of
resources (install, configure, run_service, reload_service) for an
external orchestration runtime to converge.
"""

try:
    from importlib.metadata import version

    __version__ = version("consul-cm")
except Exception:
    __version__ = "0.0.0.dev0"

__all__ = ["__version__"]
