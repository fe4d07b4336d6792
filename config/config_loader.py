"""Load settings.yaml into typed dataclasses. Reports backends with missing API keys."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class BackendConfig:
    name: str
    sdk: str               # "openai", "anthropic" or "gemini"
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None
    namespaced_models: bool = False  # send "vendor/model" ids unchanged


@dataclass
class PolicyConfig:
    base_threshold: float = 0.25
    debate_discount: float = 0.10
    broadcast_discount: float = 0.10
    min_threshold: float = 0.10
    max_threshold: float = 0.90
    fail_open_pressure: float = 0.7


@dataclass
class PromptsConfig:
    regular: str
    debate: str
    evaluation: str


@dataclass
class DefaultsConfig:
    participants: list[str] = field(default_factory=list)
    debate_mode: bool = False
    default_backend: str = "openrouter"
    evaluation_max_tokens: int = 300


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    backends: dict[str, BackendConfig]
    prompts: PromptsConfig
    policy: PolicyConfig = field(default_factory=PolicyConfig)
    routes: dict[str, str] = field(default_factory=dict)
    available_backends: set[str] = field(default_factory=set)


def _load_policy(raw: dict | None) -> PolicyConfig:
    if not raw:
        return PolicyConfig()
    return PolicyConfig(**{k: float(v) for k, v in raw.items()})


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing.
    Logs backends without an API key but does not raise: the key is only
    required when a participant routed to that backend is actually called.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw.get("defaults", {})
    defaults = DefaultsConfig(
        participants=list(defaults_raw.get("participants", [])),
        debate_mode=bool(defaults_raw.get("debate_mode", False)),
        default_backend=str(defaults_raw.get("default_backend", "openrouter")),
        evaluation_max_tokens=int(defaults_raw.get("evaluation_max_tokens", 300)),
    )

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        regular=prompts_raw["regular"],
        debate=prompts_raw["debate"],
        evaluation=prompts_raw["evaluation"],
    )

    backends: dict[str, BackendConfig] = {}
    available_backends: set[str] = set()

    for backend_name, backend_raw in raw["backends"].items():
        backend_cfg = BackendConfig(
            name=backend_name,
            sdk=backend_raw["sdk"],
            api_key_env=backend_raw["api_key_env"],
            timeout_sec=int(backend_raw["timeout_sec"]),
            max_tokens=int(backend_raw["max_tokens"]),
            base_url=backend_raw.get("base_url"),
            namespaced_models=bool(backend_raw.get("namespaced_models", False)),
        )
        backends[backend_name] = backend_cfg

        api_key = os.environ.get(backend_raw["api_key_env"], "").strip()
        if api_key:
            available_backends.add(backend_name)
            logger.info("Backend available: %s", backend_name)
        else:
            logger.info(
                "Backend has no API key: %s — set %s in .env",
                backend_name,
                backend_raw["api_key_env"],
            )

    routes = {str(k): str(v) for k, v in (raw.get("routes") or {}).items()}
    for vendor, backend_name in routes.items():
        if backend_name not in backends:
            raise ValueError(f"Route '{vendor}' points at unknown backend '{backend_name}'")

    if defaults.default_backend not in backends:
        raise ValueError(f"Default backend '{defaults.default_backend}' is not configured")

    return AppConfig(
        defaults=defaults,
        backends=backends,
        prompts=prompts,
        policy=_load_policy(raw.get("policy")),
        routes=routes,
        available_backends=available_backends,
    )
