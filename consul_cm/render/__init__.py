"""Rendering of the agent config file and init unit files."""

from consul_cm.render.renderer import (
    REQUIRED_KEYS,
    UNIT_PATHS,
    content_digest,
    render_config,
    render_state_config,
    render_template,
    render_unit_file,
    unit_file_path,
    write_config_file,
    write_unit_file,
)

__all__ = [
    "REQUIRED_KEYS",
    "UNIT_PATHS",
    "content_digest",
    "render_config",
    "render_state_config",
    "render_template",
    "render_unit_file",
    "unit_file_path",
    "write_config_file",
    "write_unit_file",
]
