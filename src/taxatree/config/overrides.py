"""Layering helpers shared by policies, settings and the CLI.

Configuration is assembled from YAML files, ``PREFIX__A__B=value`` environment
variables and dotted ``a.b=value`` command-line overrides. All three reduce to
nested mappings merged with :func:`deep_merge`.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Sequence

import yaml

from taxatree.exceptions import ConfigurationError


def decode_value(raw: str) -> Any:
    """JSON-decode ``raw`` when possible (``7`` -> 7, ``true`` -> True)."""

    try:
        return json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        return raw


def nest(path: Sequence[str], value: Any) -> Dict[str, Any]:
    """``nest(["merge", "arbitrary_ids"], "na")`` -> ``{"merge": {"arbitrary_ids": "na"}}``."""

    if not path:
        raise ConfigurationError("override path must not be empty")
    nested: Any = value
    for segment in reversed(path):
        nested = {segment: nested}
    return nested


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a new mapping with ``override`` merged into ``base`` recursively."""

    merged: Dict[str, Any] = {
        key: deep_merge(value, {}) if isinstance(value, Mapping) else value
        for key, value in base.items()
    }
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        elif isinstance(value, Mapping):
            merged[key] = deep_merge(value, {})
        else:
            merged[key] = value
    return merged


def read_yaml_mapping(path: Path, *, required: bool = False) -> Dict[str, Any]:
    """Load a YAML document that must be a mapping; missing optional files are empty."""

    if not path.exists():
        if required:
            raise ConfigurationError(f"Configuration file not found: {path}")
        return {}
    with path.open("r", encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle)
    if loaded is None:
        return {}
    if not isinstance(loaded, Mapping):
        raise ConfigurationError(f"Configuration file '{path}' must contain a mapping at the top level")
    return dict(loaded)


def env_overrides(prefix: str, environ: Mapping[str, str] | None = None) -> Dict[str, Any]:
    """Collect ``{prefix}A__B=value`` variables into ``{"a": {"b": value}}``."""

    environ = os.environ if environ is None else environ
    overrides: Dict[str, Any] = {}
    for key in sorted(environ):
        if not key.startswith(prefix):
            continue
        path = [segment.lower() for segment in key[len(prefix) :].split("__") if segment]
        if path:
            overrides = deep_merge(overrides, nest(path, decode_value(environ[key])))
    return overrides


__all__ = ["decode_value", "nest", "deep_merge", "read_yaml_mapping", "env_overrides"]
