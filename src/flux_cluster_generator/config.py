"""Operator configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from .constants import SWEEP_INTERVAL_SECONDS
from .utils.errors import ConfigurationError
from .utils.selectors import LabelSelector, SelectorParseError, everything, parse_selector

DEFAULT_RSIP_NAMESPACE = "flux-apps"
DEFAULT_SECRET_KEY = "config"
DEFAULT_RSIP_NAME_PREFIX = "inputs-"
DEFAULT_CLUSTER_NAME_LABEL_KEY = "vci.flux.loft.sh/name"
DEFAULT_PROJECT_LABEL_KEY = "vci.flux.loft.sh/project"
DEFAULT_COPY_LABEL_KEYS = "env,team,region"
DEFAULT_MAX_CONCURRENT_RECONCILES = 2
DEFAULT_CACHE_SYNC_TIMEOUT_SECONDS = 120.0
DEFAULT_METRICS_PORT = 8080


def split_non_empty(csv: str | None) -> tuple[str, ...]:
    """Split a comma-separated string, trimming entries and dropping empty ones."""
    if not csv:
        return ()
    return tuple(part.strip() for part in csv.split(",") if part.strip())


@dataclass(frozen=True)
class OperatorConfig:
    """Parsed and validated operator configuration."""

    rsip_namespace: str = DEFAULT_RSIP_NAMESPACE
    secret_key: str = DEFAULT_SECRET_KEY
    rsip_name_prefix: str = DEFAULT_RSIP_NAME_PREFIX
    cluster_name_label_key: str = DEFAULT_CLUSTER_NAME_LABEL_KEY
    project_label_key: str = DEFAULT_PROJECT_LABEL_KEY
    label_selector: LabelSelector = field(default_factory=everything)
    namespace_selector: LabelSelector = field(default_factory=everything)
    watch_namespaces: tuple[str, ...] = ()
    copy_label_keys: tuple[str, ...] = split_non_empty(DEFAULT_COPY_LABEL_KEYS)
    copy_label_prefixes: tuple[str, ...] = ()
    max_concurrent_reconciles: int = DEFAULT_MAX_CONCURRENT_RECONCILES
    cache_sync_timeout: float = DEFAULT_CACHE_SYNC_TIMEOUT_SECONDS
    sweep_interval: float = SWEEP_INTERVAL_SECONDS
    metrics_port: int = DEFAULT_METRICS_PORT


def _parse_selector_setting(name: str, value: str) -> LabelSelector:
    try:
        return parse_selector(value)
    except SelectorParseError as e:
        raise ConfigurationError(f"invalid {name} {value!r}: {e}") from e


def _parse_positive(name: str, value: str, cast: type) -> int | float:
    try:
        parsed = cast(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from e
    if parsed <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value!r}")
    return parsed


def load_config(environ: Mapping[str, str] | None = None) -> OperatorConfig:
    """Build the configuration from environment variables.

    Args:
        environ: Mapping to read from (defaults to ``os.environ``)

    Returns:
        Validated configuration

    Raises:
        ConfigurationError: If a selector is malformed or a number is invalid
    """
    env = os.environ if environ is None else environ

    def get(name: str, default: str) -> str:
        return env.get(name, "").strip() or default

    return OperatorConfig(
        rsip_namespace=get("RSIP_NAMESPACE", DEFAULT_RSIP_NAMESPACE),
        secret_key=get("SECRET_KEY", DEFAULT_SECRET_KEY),
        rsip_name_prefix=get("RSIP_NAME_PREFIX", DEFAULT_RSIP_NAME_PREFIX),
        cluster_name_label_key=get("CLUSTER_NAME_LABEL_KEY", DEFAULT_CLUSTER_NAME_LABEL_KEY),
        project_label_key=get("PROJECT_LABEL_KEY", DEFAULT_PROJECT_LABEL_KEY),
        label_selector=_parse_selector_setting("LABEL_SELECTOR", env.get("LABEL_SELECTOR", "")),
        namespace_selector=_parse_selector_setting(
            "NAMESPACE_LABEL_SELECTOR", env.get("NAMESPACE_LABEL_SELECTOR", "")
        ),
        watch_namespaces=split_non_empty(env.get("WATCH_NAMESPACES", "")),
        copy_label_keys=split_non_empty(env.get("COPY_LABEL_KEYS", DEFAULT_COPY_LABEL_KEYS)),
        copy_label_prefixes=split_non_empty(env.get("COPY_LABEL_PREFIXES", "")),
        max_concurrent_reconciles=int(
            _parse_positive(
                "MAX_CONCURRENT_RECONCILES",
                get("MAX_CONCURRENT_RECONCILES", str(DEFAULT_MAX_CONCURRENT_RECONCILES)),
                int,
            )
        ),
        cache_sync_timeout=float(
            _parse_positive(
                "CACHE_SYNC_TIMEOUT_SECONDS",
                get("CACHE_SYNC_TIMEOUT_SECONDS", str(DEFAULT_CACHE_SYNC_TIMEOUT_SECONDS)),
                float,
            )
        ),
        metrics_port=int(
            _parse_positive("METRICS_PORT", get("METRICS_PORT", str(DEFAULT_METRICS_PORT)), int)
        ),
    )
