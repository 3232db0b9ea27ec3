"""File rendering: agent config JSON and init unit files.

* :func:`render_config` / :func:`write_config_file`: the merged config
  map as JSON with sorted keys, compact or pretty-printed.  This is the
  only place a :class:`~consul_cm.config.sensitive.Sensitive` config is
  revealed.
* :func:`render_template`: text-level ``${KEY}`` token replacement.
* :func:`render_unit_file` / :func:`write_unit_file`: systemd unit or
  launchd plist for the agent.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, List, Mapping, Optional

from consul_cm.config.models import InitStyle
from consul_cm.config.sensitive import reveal_all

if TYPE_CHECKING:
    from consul_cm.resolve.resolver import ResolvedState

logger = logging.getLogger(__name__)

# ── constants ────────────────────────────────────────────────────────

#: Keys every unit template needs.
REQUIRED_KEYS: FrozenSet[str] = frozenset(
    {
        "CONSUL_BINARY",
        "CONSUL_CONFIG_DIR",
    },
)

SYSTEMD_UNIT_TEMPLATE = """\
[Unit]
Description=Consul Agent
Documentation=https://developer.hashicorp.com/consul
Requires=network-online.target
After=network-online.target

[Service]
Type=notify
User=${CONSUL_USER}
Group=${CONSUL_GROUP}
ExecStart=${CONSUL_BINARY} agent -config-dir=${CONSUL_CONFIG_DIR}
ExecReload=/bin/kill -HUP $MAINPID
KillMode=process
KillSignal=SIGTERM
Restart=on-failure
LimitNOFILE=131072

[Install]
WantedBy=multi-user.target
"""

LAUNCHD_PLIST_TEMPLATE = """\
<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN" "http://www.apple.com/DTDs/PropertyList-1.0.dtd">
<plist version="1.0">
<dict>
  <key>Label</key>
  <string>io.consul.daemon</string>
  <key>UserName</key>
  <string>${CONSUL_USER}</string>
  <key>GroupName</key>
  <string>${CONSUL_GROUP}</string>
  <key>ProgramArguments</key>
  <array>
    <string>${CONSUL_BINARY}</string>
    <string>agent</string>
    <string>-config-dir</string>
    <string>${CONSUL_CONFIG_DIR}</string>
  </array>
  <key>RunAtLoad</key>
  <true/>
  <key>KeepAlive</key>
  <true/>
</dict>
</plist>
"""

#: Init styles with a built-in template, and where the file goes.
UNIT_TEMPLATES: Dict[InitStyle, str] = {
    InitStyle.SYSTEMD: SYSTEMD_UNIT_TEMPLATE,
    InitStyle.LAUNCHD: LAUNCHD_PLIST_TEMPLATE,
}

UNIT_PATHS: Dict[InitStyle, str] = {
    InitStyle.SYSTEMD: "/etc/systemd/system/consul.service",
    InitStyle.LAUNCHD: "/Library/LaunchDaemons/io.consul.daemon.plist",
}


# ── config JSON ──────────────────────────────────────────────────────


def render_config(config: Any, *, pretty: bool = False, indent: int = 4) -> str:
    """Serialise a config map to JSON with sorted keys and a trailing newline.

    *config* may be :class:`Sensitive` or nest :class:`Sensitive` values at
    any depth; they are revealed in memory only for the duration of
    serialisation.  *indent* applies only when *pretty*.
    """
    data: Mapping[str, Any] = reveal_all(config)
    if pretty:
        text = json.dumps(data, indent=indent, sort_keys=True)
    else:
        text = json.dumps(data, sort_keys=True, separators=(",", ":"))
    return text + "\n"


def content_digest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def render_state_config(state: "ResolvedState") -> str:
    """Render the config file content for *state* using its pretty flags."""
    return render_config(
        state.config,
        pretty=state.pretty_config,
        indent=state.pretty_config_indent,
    )


def write_config_file(
    state: "ResolvedState", dest_dir: Optional[Path] = None,
) -> Path:
    """Write ``<dest_dir or config_dir>/<config_name>`` and return its path."""
    out_dir = Path(dest_dir) if dest_dir is not None else Path(state.config_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    dest = out_dir / state.config_name
    dest.write_text(render_state_config(state), encoding="utf-8")
    if state.config_sensitive:
        logger.info("Config written to %s (sensitive content)", dest)
    else:
        logger.info("Config written to %s", dest)
    return dest


# ── ${KEY} templates ─────────────────────────────────────────────────


def render_template(
    template_text: str,
    substitutions: Dict[str, str],
    *,
    required_keys: Optional[FrozenSet[str]] = None,
) -> str:
    """Replace all ``${KEY}`` tokens in *template_text*.

    Parameters
    ----------
    template_text:
        Raw template content.
    substitutions:
        Mapping of key → value (keys without the ``${}`` wrapper).
    required_keys:
        Keys that **must** be present in *substitutions* with a non-empty
        value.  Defaults to :data:`REQUIRED_KEYS`.

    Raises
    ------
    ValueError
        If a required key is missing or has an empty value.
    """
    if required_keys is None:
        required_keys = REQUIRED_KEYS

    missing: List[str] = sorted(
        k for k in required_keys if not substitutions.get(k)
    )
    if missing:
        raise ValueError(
            f"Missing required substitution key(s): {', '.join(missing)}"
        )

    # sorted keys keep replacement order deterministic
    result = template_text
    for key in sorted(substitutions):
        result = result.replace("${" + key + "}", substitutions[key])
    return result


# ── unit files ───────────────────────────────────────────────────────


def unit_file_path(init_style: InitStyle) -> Optional[str]:
    return UNIT_PATHS.get(init_style)


def unit_substitutions(state: "ResolvedState") -> Dict[str, str]:
    return {
        "CONSUL_BINARY": state.binary,
        "CONSUL_CONFIG_DIR": state.config_dir,
        "CONSUL_USER": state.identity.user or "root",
        "CONSUL_GROUP": state.identity.group or "root",
    }


def render_unit_file(state: "ResolvedState") -> Optional[str]:
    """Unit file text for the state's init style, or ``None`` when unmanaged."""
    template = UNIT_TEMPLATES.get(state.identity.init_style)
    if template is None:
        return None
    return render_template(template, unit_substitutions(state))


def write_unit_file(
    state: "ResolvedState", dest_dir: Path,
) -> Optional[Path]:
    """Write the unit file under *dest_dir*; ``None`` when there is none."""
    text = render_unit_file(state)
    unit_path = unit_file_path(state.identity.init_style)
    if text is None or unit_path is None:
        logger.debug(
            "No unit template for init style %s", state.identity.init_style.value,
        )
        return None
    dest = Path(dest_dir) / Path(unit_path).name
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_text(text, encoding="utf-8")
    logger.info("Unit file written to %s", dest)
    return dest
