"""
Typed configuration model with precedence-based loader.

Precedence (lowest to highest):
    defaults < config file (YAML) < profile < env vars < CLI flags < per-session overrides
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_PATHS = (
    Path("gatewaychat.yaml"),
    Path("gatewaychat.yml"),
    Path("~/.config/gatewaychat/config.yaml"),
)


# ---------------------------------------------------------------------------
# Section dataclasses
# ---------------------------------------------------------------------------

@dataclass
class GatewayConfig:
    base_url: str = "http://localhost:8080/api"
    api_key_env: str = "GATEWAYCHAT_API_KEY"
    model: str = "gpt-4o"
    timeout_seconds: int = 120
    cookies: dict[str, str] = field(default_factory=dict)

    def api_key(self) -> str:
        return os.environ.get(self.api_key_env, "") if self.api_key_env else ""


@dataclass
class StreamingConfig:
    max_iterations: int = 20
    update_throttle_ms: int = 100
    tool_timeout_seconds: int = 30


@dataclass
class ToolsConfig:
    enabled: list[str] = field(default_factory=list)
    disabled: list[str] = field(default_factory=list)
    plugins: bool = False


@dataclass
class PromptConfig:
    system_prompt: str = "You are a helpful assistant."
    include_formatting_guide: bool = True


@dataclass
class LoggingConfig:
    level: str = "WARNING"


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------

@dataclass
class GatewayChatConfig:
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    streaming: StreamingConfig = field(default_factory=StreamingConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    prompt: PromptConfig = field(default_factory=PromptConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    profiles: dict[str, dict[str, Any]] = field(default_factory=dict)

    # ----- per-session overrides (applied last) ----
    _overrides: dict[str, Any] = field(default_factory=dict, repr=False)

    def set_override(self, dotpath: str, value: Any) -> None:
        """Set a per-session override using dot notation (e.g. 'gateway.model')."""
        self._overrides[dotpath] = value
        _apply_dotpath(self, dotpath, value)

    def get_override(self, dotpath: str) -> Any | None:
        return self._overrides.get(dotpath)

    def to_dict(self) -> dict:
        d = asdict(self)
        d.pop("_overrides", None)
        return d


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _apply_dotpath(obj: Any, dotpath: str, value: Any) -> None:
    parts = dotpath.split(".")
    for part in parts[:-1]:
        obj = getattr(obj, part)
    if not hasattr(obj, parts[-1]):
        raise KeyError(f"Unknown config key: {dotpath}")
    setattr(obj, parts[-1], value)


def _deep_merge(base: dict, overlay: dict) -> dict:
    """Recursively merge overlay into base, returning a new dict."""
    merged = dict(base)
    for k, v in overlay.items():
        if k in merged and isinstance(merged[k], dict) and isinstance(v, dict):
            merged[k] = _deep_merge(merged[k], v)
        else:
            merged[k] = v
    return merged


def _coerce(value: str, target_type: type) -> Any:
    """Coerce a string env value to the target type."""
    if target_type is bool:
        return value.lower() in ("1", "true", "yes", "on")
    if target_type is int:
        return int(value)
    if target_type is float:
        return float(value)
    if target_type is list:
        return [s.strip() for s in value.split(",") if s.strip()]
    return value


def _build_section(cls: type, raw: dict) -> Any:
    """Build a dataclass section from a raw dict, ignoring unknown keys."""
    valid_fields = {f.name for f in fields(cls)}
    filtered = {k: v for k, v in (raw or {}).items() if k in valid_fields}
    return cls(**filtered)


def find_config_file() -> Path | None:
    for candidate in DEFAULT_CONFIG_PATHS:
        p = candidate.expanduser()
        if p.is_file():
            return p
    return None


# ---------------------------------------------------------------------------
# ENV var mapping
# ---------------------------------------------------------------------------

_ENV_MAP: dict[str, tuple[str, type]] = {
    "GATEWAYCHAT_BASE_URL":          ("gateway.base_url", str),
    "GATEWAYCHAT_API_KEY_ENV":       ("gateway.api_key_env", str),
    "GATEWAYCHAT_MODEL":             ("gateway.model", str),
    "GATEWAYCHAT_TIMEOUT":           ("gateway.timeout_seconds", int),
    "GATEWAYCHAT_MAX_ITERATIONS":    ("streaming.max_iterations", int),
    "GATEWAYCHAT_UPDATE_THROTTLE_MS": ("streaming.update_throttle_ms", int),
    "GATEWAYCHAT_TOOL_TIMEOUT":      ("streaming.tool_timeout_seconds", int),
    "GATEWAYCHAT_TOOLS_ENABLED":     ("tools.enabled", list),
    "GATEWAYCHAT_TOOLS_DISABLED":    ("tools.disabled", list),
    "GATEWAYCHAT_PLUGINS":           ("tools.plugins", bool),
    "GATEWAYCHAT_SYSTEM_PROMPT":     ("prompt.system_prompt", str),
    "GATEWAYCHAT_FORMATTING_GUIDE":  ("prompt.include_formatting_guide", bool),
    "GATEWAYCHAT_LOG_LEVEL":         ("logging.level", str),
}


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load_config(
    config_path: str | Path | None = None,
    *,
    profile: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> GatewayChatConfig:
    """
    Build a GatewayChatConfig by layering sources in precedence order:

        defaults  <  config file  <  profile  <  env vars  <  CLI flags

    Parameters
    ----------
    config_path : path to YAML config file; the default locations are
        searched when omitted
    profile : name of a profile to apply from the config file
    cli_overrides : dict of dotpath -> value CLI flag overrides
    """
    raw: dict[str, Any] = {}

    # --- 1. Config file ---
    path = Path(config_path).expanduser() if config_path is not None else find_config_file()
    if path is not None and path.is_file():
        with path.open("r", encoding="utf-8") as f:
            file_data = yaml.safe_load(f) or {}
        if not isinstance(file_data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        raw = _deep_merge(raw, file_data)

    # --- 2. Profile overlay ---
    if profile:
        profile_data = raw.get("profiles", {}).get(profile)
        if profile_data is None:
            raise KeyError(f"Unknown profile: {profile}")
        raw = _deep_merge(raw, profile_data)

    cfg = GatewayChatConfig(
        gateway=_build_section(GatewayConfig, raw.get("gateway", {})),
        streaming=_build_section(StreamingConfig, raw.get("streaming", {})),
        tools=_build_section(ToolsConfig, raw.get("tools", {})),
        prompt=_build_section(PromptConfig, raw.get("prompt", {})),
        logging=_build_section(LoggingConfig, raw.get("logging", {})),
        profiles=raw.get("profiles", {}),
    )

    # --- 3. Env var overrides ---
    for env_var, (dotpath, target_type) in _ENV_MAP.items():
        val = os.environ.get(env_var)
        if val is not None:
            _apply_dotpath(cfg, dotpath, _coerce(val, target_type))

    # --- 4. CLI flag overrides ---
    if cli_overrides:
        for dotpath, value in cli_overrides.items():
            _apply_dotpath(cfg, dotpath, value)

    return cfg


def validate_config(cfg: GatewayChatConfig) -> list[str]:
    """Return human-readable problems; an empty list means the config is usable."""
    problems: list[str] = []
    if not cfg.gateway.base_url.startswith(("http://", "https://")):
        problems.append(f"gateway.base_url must be an http(s) URL, got {cfg.gateway.base_url!r}")
    if not cfg.gateway.model:
        problems.append("gateway.model must not be empty")
    if not cfg.gateway.api_key() and not cfg.gateway.cookies:
        problems.append(
            f"no credential: set ${cfg.gateway.api_key_env} or gateway.cookies"
        )
    if cfg.streaming.max_iterations < 1:
        problems.append("streaming.max_iterations must be at least 1")
    if cfg.streaming.update_throttle_ms < 0:
        problems.append("streaming.update_throttle_ms must not be negative")
    if cfg.streaming.tool_timeout_seconds <= 0:
        problems.append("streaming.tool_timeout_seconds must be positive")
    overlap = set(cfg.tools.enabled) & set(cfg.tools.disabled)
    if overlap:
        problems.append(f"tools both enabled and disabled: {', '.join(sorted(overlap))}")
    return problems
