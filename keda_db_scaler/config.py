"""Scaler configuration.

Values come from an optional YAML file (path in SCALER_CONFIG) and from
environment variables, the environment taking precedence. An empty
TARGET_NAMESPACES means every namespace in the cluster is watched, an
empty WATCHED_APPS means every KEDA target is acted on.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Mapping

import yaml

from .errors import ConfigError
from .models import KIND_STATEFULSET, SCALABLE_KINDS, TargetTemplate


ENV_CONFIG_FILE = "SCALER_CONFIG"
ENV_TARGET_NAMESPACES = "TARGET_NAMESPACES"
ENV_WATCHED_APPS = "WATCHED_APPS"
ENV_TARGET_TEMPLATES = "TARGET_TEMPLATES"
ENV_STRIP_SUFFIX = "STRIP_SUFFIX"
ENV_HEALTH_PORT = "HEALTH_PORT"
ENV_PATCH_TIMEOUT = "PATCH_TIMEOUT_SECONDS"
ENV_SYNC_TIMEOUT = "SYNC_TIMEOUT_SECONDS"
ENV_LOG_LEVEL = "LOG_LEVEL"
ENV_LOG_FILE = "LOG_FILE"
ENV_KUBECONFIG = "KUBECONFIG"

DEFAULT_TEMPLATE = TargetTemplate(KIND_STATEFULSET, "{base}-postgresql")
DEFAULT_STRIP_SUFFIX = "-core"
DEFAULT_HEALTH_PORT = 8080
DEFAULT_PATCH_TIMEOUT = 10.0
DEFAULT_SYNC_TIMEOUT = 120.0


@dataclass
class ScalerConfig:
    target_namespaces: list[str] = field(default_factory=list)
    watched_apps: list[str] = field(default_factory=list)
    targets: list[TargetTemplate] = field(default_factory=lambda: [DEFAULT_TEMPLATE])
    strip_suffix: str = DEFAULT_STRIP_SUFFIX
    health_port: int = DEFAULT_HEALTH_PORT
    patch_timeout: float = DEFAULT_PATCH_TIMEOUT
    sync_timeout: float = DEFAULT_SYNC_TIMEOUT
    log_level: str = "INFO"
    log_file: str | None = None
    kubeconfig: str | None = None

    @property
    def watch_all_namespaces(self) -> bool:
        return not self.target_namespaces


def split_list(value: str | None) -> list[str]:
    """Split a comma-separated value, dropping blanks."""
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def parse_template(raw: str) -> TargetTemplate:
    """Parse "Kind:template" (kind defaults to StatefulSet)."""
    kind, sep, template = raw.partition(":")
    if not sep:
        kind, template = KIND_STATEFULSET, raw
    return make_template(kind.strip(), template.strip())


def make_template(kind: str, template: str) -> TargetTemplate:
    if kind not in SCALABLE_KINDS:
        raise ConfigError(f"unsupported target kind '{kind}', expected one of {', '.join(SCALABLE_KINDS)}")
    if "{base}" not in template:
        raise ConfigError(f"target template '{template}' must contain '{{base}}'")
    try:
        template.format(base="x")
    except (KeyError, IndexError, ValueError) as e:
        raise ConfigError(f"invalid target template '{template}': {e}") from e
    return TargetTemplate(kind, template)


def load_config_file(configfile: str) -> dict[str, Any]:
    try:
        with open(configfile) as file:
            config = yaml.safe_load(file)
    except OSError as e:
        raise ConfigError(f"failed to read config file {configfile}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to parse config file {configfile}: {e}") from e
    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigError(f"config file {configfile} must contain a mapping")
    return config


def _as_list(value: Any, key: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return split_list(value)
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    raise ConfigError(f"'{key}' must be a list or a comma-separated string")


def _file_targets(value: Any) -> list[TargetTemplate]:
    if isinstance(value, str):
        return [parse_template(t) for t in split_list(value)]
    if not isinstance(value, list):
        raise ConfigError("'targets' must be a list")
    targets = []
    for entry in value:
        if isinstance(entry, str):
            targets.append(parse_template(entry))
        elif isinstance(entry, dict) and "name" in entry:
            targets.append(make_template(str(entry.get("kind", KIND_STATEFULSET)), str(entry["name"])))
        else:
            raise ConfigError(f"invalid target entry {entry!r}, expected {{kind, name}}")
    return targets


def _string(raw: dict[str, Any], key: str, default: str | None) -> str | None:
    if key not in raw:
        return default
    value = raw[key]
    if not isinstance(value, str):
        raise ConfigError(f"{key} must be a string, got: {value!r}")
    return value


def _number(raw: Any, key: str, cast=float, minimum: float = 0):
    if isinstance(raw, bool) or not isinstance(raw, (str, int, float)):
        raise ConfigError(f"{key} must be a number, got: {raw!r}")
    if cast is int and isinstance(raw, float):
        raise ConfigError(f"{key} must be an integer, got: {raw!r}")
    try:
        value = cast(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{key} must be a number, got: {raw!r}") from e
    if value < minimum:
        raise ConfigError(f"{key} must be >= {minimum}, got: {value}")
    return value


def load_config(environ: Mapping[str, str] | None = None) -> ScalerConfig:
    """Build the configuration from SCALER_CONFIG (if set) and the environment."""
    env = os.environ if environ is None else environ
    raw: dict[str, Any] = {}
    configfile = env.get(ENV_CONFIG_FILE)
    if configfile:
        raw = load_config_file(configfile)

    cfg = ScalerConfig()
    cfg.target_namespaces = _as_list(raw.get("targetNamespaces"), "targetNamespaces")
    cfg.watched_apps = _as_list(raw.get("watchedApps"), "watchedApps")
    if raw.get("targets") is not None:
        cfg.targets = _file_targets(raw["targets"])
    cfg.strip_suffix = _string(raw, "stripSuffix", cfg.strip_suffix)
    health_port = raw.get("healthPort", cfg.health_port)
    patch_timeout = raw.get("patchTimeoutSeconds", cfg.patch_timeout)
    sync_timeout = raw.get("syncTimeoutSeconds", cfg.sync_timeout)
    cfg.log_level = _string(raw, "logLevel", cfg.log_level)
    cfg.log_file = _string(raw, "logFile", None) or None

    if ENV_TARGET_NAMESPACES in env:
        cfg.target_namespaces = split_list(env[ENV_TARGET_NAMESPACES])
    if ENV_WATCHED_APPS in env:
        cfg.watched_apps = split_list(env[ENV_WATCHED_APPS])
    if env.get(ENV_TARGET_TEMPLATES):
        cfg.targets = [parse_template(t) for t in split_list(env[ENV_TARGET_TEMPLATES])]
    if ENV_STRIP_SUFFIX in env:
        cfg.strip_suffix = env[ENV_STRIP_SUFFIX]
    health_port = env.get(ENV_HEALTH_PORT, health_port)
    patch_timeout = env.get(ENV_PATCH_TIMEOUT, patch_timeout)
    sync_timeout = env.get(ENV_SYNC_TIMEOUT, sync_timeout)
    cfg.log_level = env.get(ENV_LOG_LEVEL, cfg.log_level)
    cfg.log_file = env.get(ENV_LOG_FILE) or cfg.log_file
    cfg.kubeconfig = env.get(ENV_KUBECONFIG) or None

    cfg.health_port = _number(health_port, "healthPort", cast=int)
    if cfg.health_port > 65535:
        raise ConfigError(f"healthPort must be <= 65535, got: {cfg.health_port}")
    cfg.patch_timeout = _number(patch_timeout, "patchTimeoutSeconds")
    cfg.sync_timeout = _number(sync_timeout, "syncTimeoutSeconds")
    if cfg.patch_timeout == 0 or cfg.sync_timeout == 0:
        raise ConfigError("timeouts must be greater than 0")
    if not cfg.targets:
        raise ConfigError("at least one target template is required")
    return cfg
