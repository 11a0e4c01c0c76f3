"""
Typed configuration model with precedence-based loader.

Precedence (lowest to highest):
    defaults < config file (YAML) < env vars < CLI flags
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from parley.errors import ConfigError
from parley.llm.assembler import FLAVOR_OPENAI, FLAVOR_OPENROUTER
from parley.llm.client import ClientConfig
from parley.llm.transport import Auth

DEFAULT_CONFIG_LOCATIONS = (
    Path("parley.yaml"),
    Path("parley.yml"),
    Path("~/.config/parley/config.yaml"),
)


# ---------------------------------------------------------------------------
# Section dataclasses
# ---------------------------------------------------------------------------

@dataclass
class ApiConfig:
    flavor: str = FLAVOR_OPENAI
    url: str = "https://api.openai.com/v1/"
    api_version: str | None = None
    api_token_env: str = "OPENAI_API_KEY"
    api_key_env: str = ""
    timeout_seconds: int = 300


@dataclass
class ModelSection:
    name: str = "gpt-4o-mini"
    system_message: str | None = None
    reasoning_effort: str | None = None
    reasoning_budget: int | None = None
    verbosity: str | None = None
    extra_params: dict = field(default_factory=dict)


@dataclass
class ContextConfig:
    min_history_tokens: int | None = None
    max_history_tokens: int | None = None
    encoding: str = "o200k_base"


@dataclass
class UIConfig:
    stream: bool = True
    show_reasoning: bool = False
    show_token_usage: bool = False


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------

@dataclass
class ParleyConfig:
    api: ApiConfig = field(default_factory=ApiConfig)
    model: ModelSection = field(default_factory=ModelSection)
    context: ContextConfig = field(default_factory=ContextConfig)
    ui: UIConfig = field(default_factory=UIConfig)

    def to_dict(self) -> dict:
        return asdict(self)

    def resolve_auth(self, environ: dict[str, str] | None = None) -> Auth:
        """
        Read the credential from the environment.

        Exactly one of ``api.api_token_env`` (bearer token) and
        ``api.api_key_env`` (``api-key`` header) must name a set variable.
        """
        env = os.environ if environ is None else environ
        token = env.get(self.api.api_token_env) if self.api.api_token_env else None
        key = env.get(self.api.api_key_env) if self.api.api_key_env else None

        if token and not key:
            return Auth.token(token)
        if key and not token:
            return Auth.api_key(key)
        raise ConfigError(
            "Exactly one of the API token "
            f"(${self.api.api_token_env or '-'}) or API key "
            f"(${self.api.api_key_env or '-'}) must be set"
        )

    def to_client_config(self, auth: Auth | None) -> ClientConfig:
        return ClientConfig(
            auth=auth,
            api_url=self.api.url,
            api_version=self.api.api_version,
            timeout=float(self.api.timeout_seconds),
            model=self.model.name,
            flavor=self.api.flavor,
            reasoning_effort=self.model.reasoning_effort,
            reasoning_budget=self.model.reasoning_budget,
            verbosity=self.model.verbosity,
            extra_params=dict(self.model.extra_params),
            system_message=self.model.system_message or None,
            min_history_tokens=self.context.min_history_tokens,
            max_history_tokens=self.context.max_history_tokens,
            encoding=self.context.encoding,
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _apply_dotpath(obj: Any, dotpath: str, value: Any) -> None:
    """Walk obj via dotpath and set the final attribute."""
    parts = dotpath.split(".")
    for part in parts[:-1]:
        obj = getattr(obj, part)
    setattr(obj, parts[-1], value)


def _coerce(value: str, target_type: type) -> Any:
    """Coerce a string env value to the target type."""
    if target_type is bool:
        return value.lower() in ("1", "true", "yes", "on")
    if target_type is int:
        return int(value)
    return value


def _build_section(cls: type, raw: dict) -> Any:
    """Build a dataclass section from a raw dict, ignoring unknown keys."""
    valid_fields = {f.name for f in fields(cls)}
    filtered = {k: v for k, v in raw.items() if k in valid_fields}
    return cls(**filtered)


def find_config_path() -> Path | None:
    """Return the first existing file among the standard locations."""
    for candidate in DEFAULT_CONFIG_LOCATIONS:
        p = candidate.expanduser()
        if p.is_file():
            return p
    return None


# ---------------------------------------------------------------------------
# ENV var mapping
# ---------------------------------------------------------------------------

_ENV_MAP: dict[str, tuple[str, type]] = {
    "PARLEY_API":                ("api.flavor", str),
    "PARLEY_API_URL":            ("api.url", str),
    "PARLEY_API_VERSION":        ("api.api_version", str),
    "PARLEY_API_TOKEN_ENV":      ("api.api_token_env", str),
    "PARLEY_API_KEY_ENV":        ("api.api_key_env", str),
    "PARLEY_TIMEOUT":            ("api.timeout_seconds", int),
    "PARLEY_MODEL":              ("model.name", str),
    "PARLEY_SYSTEM_MESSAGE":     ("model.system_message", str),
    "PARLEY_REASONING_EFFORT":   ("model.reasoning_effort", str),
    "PARLEY_REASONING_BUDGET":   ("model.reasoning_budget", int),
    "PARLEY_VERBOSITY":          ("model.verbosity", str),
    "PARLEY_MIN_HISTORY_TOKENS": ("context.min_history_tokens", int),
    "PARLEY_MAX_HISTORY_TOKENS": ("context.max_history_tokens", int),
    "PARLEY_STREAM":             ("ui.stream", bool),
    "PARLEY_SHOW_REASONING":     ("ui.show_reasoning", bool),
    "PARLEY_SHOW_TOKEN_USAGE":   ("ui.show_token_usage", bool),
}


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load_config(
    config_path: str | Path | None = None,
    *,
    cli_overrides: dict[str, Any] | None = None,
    environ: dict[str, str] | None = None,
) -> ParleyConfig:
    """
    Build a ParleyConfig by layering sources in precedence order:

        defaults  <  config file  <  env vars  <  CLI flags

    Parameters
    ----------
    config_path : path to YAML config file (optional)
    cli_overrides : dict of dotpath -> value CLI flag overrides; ``None``
        values are skipped
    environ : environment mapping, ``os.environ`` by default
    """
    raw: dict[str, Any] = {}

    # --- 1. Config file ---
    if config_path is not None:
        p = Path(config_path).expanduser()
        if not p.is_file():
            raise ConfigError(f"Config file not found: {p}")
        with p.open("r", encoding="utf-8") as f:
            try:
                raw = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigError(f"Failed to parse config file {p}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file {p} must contain a mapping")

    cfg = ParleyConfig(
        api=_build_section(ApiConfig, raw.get("api") or {}),
        model=_build_section(ModelSection, raw.get("model") or {}),
        context=_build_section(ContextConfig, raw.get("context") or {}),
        ui=_build_section(UIConfig, raw.get("ui") or {}),
    )

    # --- 2. Env var overrides ---
    env = os.environ if environ is None else environ
    for env_var, (dotpath, target_type) in _ENV_MAP.items():
        val = env.get(env_var)
        if val is not None:
            try:
                _apply_dotpath(cfg, dotpath, _coerce(val, target_type))
            except ValueError as exc:
                raise ConfigError(f"Invalid value for {env_var}: {val!r}") from exc

    # --- 3. CLI flag overrides ---
    if cli_overrides:
        for dotpath, value in cli_overrides.items():
            if value is not None:
                _apply_dotpath(cfg, dotpath, value)

    validate_config(cfg)
    return cfg


def validate_config(cfg: ParleyConfig) -> None:
    """Raise ``ConfigError`` for inconsistent settings."""
    if cfg.api.flavor not in (FLAVOR_OPENAI, FLAVOR_OPENROUTER):
        raise ConfigError(
            f"Invalid API flavor {cfg.api.flavor!r}; "
            f"expected {FLAVOR_OPENAI!r} or {FLAVOR_OPENROUTER!r}"
        )
    if cfg.model.reasoning_budget is not None:
        if cfg.model.reasoning_effort is not None:
            raise ConfigError(
                "Only one of `reasoning_effort` or `reasoning_budget` can be supplied"
            )
        if cfg.api.flavor != FLAVOR_OPENROUTER:
            raise ConfigError("`reasoning_budget` is only supported by OpenRouter API")
    lo = cfg.context.min_history_tokens
    hi = cfg.context.max_history_tokens
    if lo is not None and hi is not None and lo > hi:
        raise ConfigError(
            f"min_history_tokens ({lo}) must not exceed max_history_tokens ({hi})"
        )
