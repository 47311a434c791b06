"""
agentloop Config - YAML configuration with ${VAR} substitution

Example config.yaml:

    llm:
      provider: openai
      model: gpt-4o-mini
      api_key: ${OPENAI_API_KEY}

    agent:
      max_iterations: 50
      tool_execution_timeout: 30
      context_window: 128000

    storage:
      backend: postgres
      dsn: ${DATABASE_URL}

    plugins: [web]

    agents:
      - name: researcher
        description: Web research
        system_prompt: You research topics thoroughly.
        allowed_tools: [web_fetch]
"""

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from .agent.delegate import AgentProfile
from .agent.react_config import ReactLoopConfig
from .errors import ConfigError
from .llm.base import LLMConfig

logger = logging.getLogger(__name__)

_ENV_PATTERN = re.compile(r"\$\{(\w+)\}")

STORAGE_BACKENDS = ("memory", "postgres")


def substitute_env(raw: str, source: str = "<string>") -> str:
    """Replace ``${VAR}`` with environment variable values."""

    def _replace_env(match):
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' not set "
                f"(referenced in config file '{source}')"
            )
        return value

    return _ENV_PATTERN.sub(_replace_env, raw)


def load_yaml(path: str) -> Dict[str, Any]:
    """Read a YAML config file with environment substitution."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = f.read()
    except OSError as e:
        raise ConfigError(f"Cannot read config file '{path}': {e}", cause=e)

    resolved = substitute_env(raw, path)
    try:
        data = yaml.safe_load(resolved)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in '{path}': {e}", cause=e)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file '{path}' must contain a mapping at the top level")
    return data


@dataclass
class StorageConfig:
    backend: str = "memory"
    dsn: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "StorageConfig":
        data = data or {}
        backend = data.get("backend", "memory")
        if backend not in STORAGE_BACKENDS:
            raise ConfigError(
                f"Unknown storage backend '{backend}' (expected one of: {', '.join(STORAGE_BACKENDS)})"
            )
        dsn = data.get("dsn")
        if backend == "postgres" and not dsn:
            raise ConfigError("storage.dsn is required for the postgres backend")
        return cls(backend=backend, dsn=dsn)


@dataclass
class AppConfig:
    """Parsed application configuration."""

    provider: str = "openai"
    llm: LLMConfig = field(default_factory=LLMConfig)
    agent: ReactLoopConfig = field(default_factory=ReactLoopConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    agents: List[AgentProfile] = field(default_factory=list)
    system_prompt: str = "You are a helpful assistant."
    plugins: List[str] = field(default_factory=list)
    """Names of bundled plugins to load, e.g. ["web"]."""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        llm_cfg = data.get("llm") or {}
        if not llm_cfg.get("provider") or not llm_cfg.get("model"):
            raise ConfigError("Missing required config fields: 'llm.provider' and 'llm.model'")

        llm_kwargs = {
            k: llm_cfg[k]
            for k in ("api_key", "model", "base_url", "temperature", "max_tokens", "timeout", "context_window")
            if llm_cfg.get(k) is not None
        }
        llm = LLMConfig(**llm_kwargs)

        agent = ReactLoopConfig.from_dict(data.get("agent"))
        if "context_window" not in (data.get("agent") or {}) and "context_window" in llm_kwargs:
            agent.context_window = llm.context_window
        if "temperature" not in (data.get("agent") or {}):
            agent.temperature = llm.temperature

        try:
            profiles = [AgentProfile.from_dict(p) for p in data.get("agents") or []]
        except (KeyError, TypeError) as e:
            raise ConfigError(f"Invalid agents section: {e}", cause=e)

        return cls(
            provider=llm_cfg["provider"],
            llm=llm,
            agent=agent,
            storage=StorageConfig.from_dict(data.get("storage")),
            agents=profiles,
            system_prompt=data.get("system_prompt") or cls.system_prompt,
            plugins=list(data.get("plugins") or []),
        )


def load_config(path: str) -> AppConfig:
    """Load and validate *path* into an AppConfig."""
    config = AppConfig.from_dict(load_yaml(path))
    logger.info(
        f"Loaded config '{path}': provider={config.provider}, model={config.llm.model}, "
        f"storage={config.storage.backend}"
    )
    return config
